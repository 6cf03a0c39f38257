"""Pytest configuration and fixtures."""

import asyncio
from pathlib import Path

import pytest

from songfetch.config import SongfetchConfig
from songfetch.models.domain import ConversionResult
from songfetch.services.archive_service import BundlingError
from songfetch.services.conversion_service import ConversionError
from songfetch.services.file_service import FileService, audio_filename, display_filename

# Configure pytest-asyncio to auto-detect async tests
pytest_plugins = ("pytest_asyncio",)


class FakeConverter:
    """Stands in for yt-dlp: writes a small file per URL.

    URLs listed in `failures` raise ConversionError with the mapped message.
    """

    def __init__(
        self,
        failures: dict[str, str] | None = None,
        delay: float = 0.0,
    ) -> None:
        self.failures = failures or {}
        self.delay = delay
        self.calls: list[str] = []

    async def convert(self, url: str, dest_dir: Path) -> ConversionResult:
        self.calls.append(url)
        if self.delay:
            await asyncio.sleep(self.delay)
        if url in self.failures:
            raise ConversionError(self.failures[url])

        title = f"Track {url.rstrip('/').rsplit('/', 1)[-1]}"
        extractor = "soundcloud" if "soundcloud" in url else "youtube"
        path = dest_dir / audio_filename(extractor, title, "mp3")
        path.write_bytes(b"ID3" + url.encode())
        return ConversionResult(
            path=path,
            title=title,
            extractor=extractor,
            thumbnail=f"https://img.example/{len(self.calls)}.jpg",
            display_name=display_filename(extractor, title, "mp3"),
        )


class FailingArchiver:
    """Archiver that always fails."""

    def __init__(self) -> None:
        self.calls = 0

    async def bundle(self, paths, dest):
        self.calls += 1
        raise BundlingError("disk full")


@pytest.fixture
def anyio_backend():
    """Use asyncio as the async backend."""
    return "asyncio"


@pytest.fixture
def config(tmp_path):
    """Configuration rooted in a temporary output directory."""
    return SongfetchConfig(
        output_dir=str(tmp_path / "downloads"),
        artifact_ttl_seconds=300,
        stream_poll_seconds=0.05,
    )


@pytest.fixture
def file_service(config):
    """FileService over the temporary output directory."""
    return FileService(config)


@pytest.fixture
def fake_converter():
    """Converter that succeeds for every URL."""
    return FakeConverter()


@pytest.fixture
def failing_archiver():
    """Archiver that always raises BundlingError."""
    return FailingArchiver()


@pytest.fixture
def make_converter():
    """Factory for FakeConverter instances with custom failures."""
    return FakeConverter
