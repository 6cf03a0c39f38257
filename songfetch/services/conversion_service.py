"""Audio conversion through the yt-dlp command line tool.

The tool runs out-of-process in two phases: a metadata fetch
(`--dump-json`) followed by the actual download and audio extraction.
Either phase failing, or the expected output file not appearing, raises
ConversionError for that URL only.
"""

from __future__ import annotations

import asyncio
import json
import logging
from pathlib import Path
from typing import TYPE_CHECKING, Protocol

from songfetch.models.domain import ConversionResult
from songfetch.services.file_service import audio_filename, display_filename

if TYPE_CHECKING:
    from songfetch.config import SongfetchConfig

logger = logging.getLogger(__name__)

# Keep error messages readable when the tool dumps a long traceback.
MAX_ERROR_CHARS = 500


class ConversionError(Exception):
    """Raised when the conversion tool fails for one URL."""

    pass


class Converter(Protocol):
    """Anything able to turn a media URL into a local audio file."""

    async def convert(self, url: str, dest_dir: Path) -> ConversionResult: ...


def _error_tail(stderr: str, returncode: int | None) -> str:
    lines = [line for line in stderr.strip().splitlines() if line.strip()]
    if not lines:
        return f"exit code {returncode}"
    return lines[-1][:MAX_ERROR_CHARS]


class YtDlpConverter:
    """Converter backed by a yt-dlp subprocess."""

    def __init__(
        self,
        binary: str = "yt-dlp",
        audio_format: str = "mp3",
        timeout_seconds: float = 900.0,
    ) -> None:
        self.binary = binary
        self.audio_format = audio_format
        self.timeout_seconds = timeout_seconds

    @classmethod
    def from_config(cls, config: "SongfetchConfig") -> "YtDlpConverter":
        return cls(
            binary=config.ytdlp_binary,
            audio_format=config.audio_format,
            timeout_seconds=config.conversion_timeout_seconds,
        )

    async def _run(self, *args: str) -> tuple[int | None, str, str]:
        """Run the tool and return (exit code, stdout, stderr)."""
        try:
            process = await asyncio.create_subprocess_exec(
                self.binary,
                *args,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
            )
        except OSError as e:
            raise ConversionError(f"cannot start {self.binary}: {e}") from e

        try:
            stdout_bytes, stderr_bytes = await asyncio.wait_for(
                process.communicate(), timeout=self.timeout_seconds
            )
        except asyncio.TimeoutError:
            process.kill()
            await process.wait()
            raise ConversionError(
                f"timed out after {self.timeout_seconds:.0f}s"
            ) from None
        except asyncio.CancelledError:
            if process.returncode is None:
                process.kill()
            raise

        return (
            process.returncode,
            stdout_bytes.decode("utf-8", errors="replace"),
            stderr_bytes.decode("utf-8", errors="replace"),
        )

    async def fetch_metadata(self, url: str) -> dict:
        """Read the URL's metadata without downloading anything."""
        code, stdout, stderr = await self._run(
            "--dump-json", "--no-playlist", "--no-warnings", url
        )
        if code != 0:
            raise ConversionError(f"metadata fetch error: {_error_tail(stderr, code)}")

        try:
            info = json.loads(stdout)
        except json.JSONDecodeError as e:
            raise ConversionError(f"metadata parse error: {e}") from e
        if not isinstance(info, dict):
            raise ConversionError("metadata parse error: expected a JSON object")
        return info

    async def convert(self, url: str, dest_dir: Path) -> ConversionResult:
        """Download `url` as audio into `dest_dir`.

        Raises:
            ConversionError: If any phase fails or no output file appears.
        """
        info = await self.fetch_metadata(url)
        title = str(info.get("title") or "untitled")
        extractor = str(info.get("extractor") or "unknown")
        thumbnail = str(info.get("thumbnail") or "")

        target = dest_dir / audio_filename(extractor, title, self.audio_format)
        stem = target.name[: -(len(self.audio_format) + 1)]
        # yt-dlp treats "%" as template syntax
        template = str(dest_dir / stem).replace("%", "%%") + ".%(ext)s"

        logger.info("Converting %s -> %s", url, target.name)
        code, _stdout, stderr = await self._run(
            "--extract-audio",
            "--audio-format", self.audio_format,
            "--embed-metadata",
            "--embed-thumbnail",
            "--no-playlist",
            "--no-warnings",
            "--output", template,
            url,
        )
        if code != 0:
            raise ConversionError(f"download error: {_error_tail(stderr, code)}")

        if not target.is_file():
            raise ConversionError(f"output file not found: {target.name}")

        return ConversionResult(
            path=target,
            title=title,
            extractor=extractor,
            thumbnail=thumbnail,
            display_name=display_filename(extractor, title, self.audio_format),
        )
