"""Batch job runner.

Converts the URLs of one submission strictly in order, one at a time,
and reports each outcome on the session's event feed. A failing URL never
aborts the batch. Once the list is exhausted, two or more results are
bundled into a zip, a single `done` event terminates the feed, and every
produced file is handed to the reaper.
"""

from __future__ import annotations

import asyncio
import logging
import mimetypes
from collections.abc import Sequence
from pathlib import Path
from typing import TYPE_CHECKING

from songfetch.config import DEFAULT_ALLOWED_URL_PREFIXES
from songfetch.enums import ResourceKind
from songfetch.models.domain import Artifact
from songfetch.models.events import (
    DoneEvent,
    ErrorEvent,
    FileEvent,
    ProgressEvent,
    ZipEvent,
)
from songfetch.services.archive_service import BundlingError
from songfetch.services.conversion_service import ConversionError

if TYPE_CHECKING:
    from songfetch.resources.publisher import ResourcePublisher
    from songfetch.scheduler.reaper import ResourceReaper
    from songfetch.services.archive_service import Archiver
    from songfetch.services.conversion_service import Converter
    from songfetch.services.file_service import FileService
    from songfetch.sessions.feed import EventFeed
    from songfetch.sessions.registry import SessionRegistry

logger = logging.getLogger(__name__)

INVALID_URL_MESSAGE = "invalid URL: must be YouTube or SoundCloud"
BUNDLE_DISPLAY_NAME = "songs.zip"
BUNDLE_MEDIA_TYPE = "application/zip"
# A bundle only makes sense for more than one file
MIN_FILES_FOR_BUNDLE = 2


class UrlValidationError(ValueError):
    """Raised when a URL is not from an allowed source."""

    pass


def validate_url(url: str, allowed_prefixes: Sequence[str]) -> None:
    """Check `url` against the source allow-list.

    Raises:
        UrlValidationError: If no allowed prefix matches.
    """
    if not any(url.startswith(prefix) for prefix in allowed_prefixes):
        raise UrlValidationError(INVALID_URL_MESSAGE)


def extractor_label(display_name: str) -> str:
    """Source label shown next to a track: the display name up to " - "."""
    return display_name.split(" - ", 1)[0]


def _media_type_for(artifact_name: str) -> str:
    media_type, _ = mimetypes.guess_type(artifact_name)
    return media_type or "application/octet-stream"


class BatchJobRunner:
    """Runs one batch per session as an independent asyncio task."""

    def __init__(
        self,
        registry: "SessionRegistry",
        converter: "Converter",
        archiver: "Archiver",
        publisher: "ResourcePublisher",
        reaper: "ResourceReaper",
        file_service: "FileService",
        *,
        allowed_url_prefixes: Sequence[str] | None = None,
        artifact_ttl_seconds: float = 300.0,
    ) -> None:
        self.registry = registry
        self.converter = converter
        self.archiver = archiver
        self.publisher = publisher
        self.reaper = reaper
        self.file_service = file_service
        self.allowed_url_prefixes = list(
            allowed_url_prefixes or DEFAULT_ALLOWED_URL_PREFIXES
        )
        self.artifact_ttl_seconds = artifact_ttl_seconds
        self._tasks: set[asyncio.Task] = set()

    @property
    def active_batches(self) -> int:
        return len(self._tasks)

    def start(self, urls: Sequence[str]) -> str:
        """Open a session and run the batch in the background.

        Must be called from a running event loop.

        Returns:
            The new session ID.
        """
        session_id, feed = self.registry.create()
        task = asyncio.create_task(self.run(list(urls), feed), name=f"batch:{session_id}")
        self._tasks.add(task)
        task.add_done_callback(self._on_batch_done)
        logger.info("Batch %s started with %d URLs", session_id, len(urls))
        return session_id

    def _on_batch_done(self, task: asyncio.Task) -> None:
        self._tasks.discard(task)
        if not task.cancelled() and task.exception() is not None:
            logger.error(
                "Batch %s crashed", task.get_name(), exc_info=task.exception()
            )

    async def run(self, urls: Sequence[str], feed: "EventFeed") -> list[Artifact]:
        """Process `urls` in order, emitting one event per outcome.

        The feed always ends with exactly one DoneEvent, even if the batch
        is cancelled or something unexpected escapes.

        Returns:
            The artifacts produced, bundle excluded.
        """
        artifacts: list[Artifact] = []
        bundle: Artifact | None = None
        try:
            for url in urls:
                artifact = await self._process_url(url, feed)
                if artifact is not None:
                    artifacts.append(artifact)

            if len(artifacts) >= MIN_FILES_FOR_BUNDLE:
                bundle = await self._bundle(artifacts, feed)
        finally:
            self._emit(feed, DoneEvent())
            feed.close()

            # Individual files are reaped even when bundled; both stay
            # downloadable on their own until the grace period ends.
            for artifact in artifacts:
                self.reaper.schedule_delete(artifact.path, after=artifact.ttl_seconds)
            if bundle is not None:
                self.reaper.schedule_delete(bundle.path, after=bundle.ttl_seconds)

        logger.info(
            "Batch finished: %d/%d converted%s",
            len(artifacts),
            len(urls),
            ", bundled" if bundle else "",
        )
        return artifacts

    async def _process_url(self, url: str, feed: "EventFeed") -> Artifact | None:
        logger.info("Processing: %s", url)
        try:
            validate_url(url, self.allowed_url_prefixes)
        except UrlValidationError as e:
            logger.warning("Rejected %s: %s", url, e)
            self._emit(feed, ErrorEvent(url=url, message=str(e)))
            return None

        work_dir: Path | None = None
        try:
            work_dir = self.file_service.allocate_work_dir()
            result = await self.converter.convert(url, work_dir)
            artifact = Artifact(
                path=result.path,
                display_name=result.display_name,
                media_type=_media_type_for(result.path.name),
                ttl_seconds=self.artifact_ttl_seconds,
            )
            download_url = self.publisher.publish(artifact, kind=ResourceKind.FILE)
        except ConversionError as e:
            logger.warning("Download error for %s: %s", url, e)
            self._fail(url, str(e), work_dir, feed)
            return None
        except OSError as e:
            logger.error("Filesystem error for %s: %s", url, e)
            self._fail(url, f"file error: {e.strerror or e}", work_dir, feed)
            return None
        except Exception as e:
            logger.exception("Unexpected conversion failure for %s: %s", url, e)
            self._fail(url, str(e) or type(e).__name__, work_dir, feed)
            return None

        self._emit(
            feed,
            FileEvent(
                title=result.display_name,
                extractor=extractor_label(result.display_name),
                thumbnail=result.thumbnail,
                download_url=download_url,
            ),
        )
        return artifact

    def _fail(self, url: str, message: str, work_dir: Path | None, feed: "EventFeed") -> None:
        if work_dir is not None:
            self.file_service.discard_work_dir(work_dir)
        self._emit(feed, ErrorEvent(url=url, message=message))

    async def _bundle(self, artifacts: list[Artifact], feed: "EventFeed") -> Artifact | None:
        dest = self.file_service.bundle_path()
        try:
            path = await self.archiver.bundle([a.path for a in artifacts], dest)
        except BundlingError as e:
            logger.error("Error creating ZIP: %s", e)
            return None
        except Exception as e:
            logger.exception("Unexpected bundling failure: %s", e)
            dest.unlink(missing_ok=True)
            return None

        bundle = Artifact(
            path=path,
            display_name=BUNDLE_DISPLAY_NAME,
            media_type=BUNDLE_MEDIA_TYPE,
            ttl_seconds=self.artifact_ttl_seconds,
        )
        download_url = self.publisher.publish(bundle, kind=ResourceKind.ZIP)
        self._emit(feed, ZipEvent(download_url=download_url))
        return bundle

    @staticmethod
    def _emit(feed: "EventFeed", event: ProgressEvent) -> None:
        if feed.closed:
            logger.warning("Dropping %s event: feed already closed", event.event_type)
            return
        feed.send(event)

    async def shutdown(self) -> None:
        """Cancel batches that are still running."""
        tasks = list(self._tasks)
        for task in tasks:
            task.cancel()
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)
        logger.info("Cancelled %d running batches", len(tasks))
