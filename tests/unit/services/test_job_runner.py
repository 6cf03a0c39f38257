"""Tests for BatchJobRunner.

Covers ordering, per-item failure isolation, the bundle rule and the
hand-off of every produced file to the reaper.
"""

import asyncio
import logging
from datetime import UTC, datetime, timedelta
from types import SimpleNamespace

import pytest

from songfetch.enums import EventType
from songfetch.models.events import DoneEvent, ErrorEvent, FileEvent, ZipEvent
from songfetch.resources.publisher import ResourcePublisher
from songfetch.resources.router import ResourceRouter
from songfetch.scheduler.reaper import ResourceReaper
from songfetch.services.archive_service import ZipArchiver
from songfetch.services.job_runner import (
    INVALID_URL_MESSAGE,
    BatchJobRunner,
    UrlValidationError,
    validate_url,
)
from songfetch.sessions.feed import EventFeed
from songfetch.sessions.registry import SessionRegistry

YT = "https://www.youtube.com/watch?v=AAA"
YT_SHORT = "https://youtu.be/BBB"
SC = "https://soundcloud.com/x/y"
SC_SHORT = "https://on.soundcloud.com/zzz"


@pytest.fixture
async def make_runner(config, file_service, fake_converter):
    """Factory building a runner plus its collaborators."""
    reapers: list[ResourceReaper] = []

    def _make(converter=None, archiver=None, files=None):
        registry = SessionRegistry()
        resources = ResourceRouter()
        reaper = ResourceReaper(default_delay=300, root=file_service.root)
        reapers.append(reaper)
        runner = BatchJobRunner(
            registry=registry,
            converter=converter or fake_converter,
            archiver=archiver or ZipArchiver(),
            publisher=ResourcePublisher(resources),
            reaper=reaper,
            file_service=files or file_service,
            allowed_url_prefixes=config.allowed_url_prefixes,
            artifact_ttl_seconds=config.artifact_ttl_seconds,
        )
        return SimpleNamespace(
            runner=runner, registry=registry, resources=resources, reaper=reaper
        )

    yield _make

    for reaper in reapers:
        await reaper.shutdown()


async def drain(feed: EventFeed) -> list:
    return [event async for event in feed]


def types(events) -> list[str]:
    return [e.event_type for e in events]


class TestValidateUrl:
    """Tests for the source allow-list."""

    @pytest.mark.parametrize("url", [YT, YT_SHORT, SC, SC_SHORT])
    def test_allowed_sources(self, url, config):
        """All four source prefixes are accepted."""
        validate_url(url, config.allowed_url_prefixes)

    @pytest.mark.parametrize(
        "url",
        [
            "not-a-url",
            "",
            "http://www.youtube.com/watch?v=AAA",
            "https://youtube.com.evil.example/",
            "https://m.soundcloud.com/x",
        ],
    )
    def test_rejected_sources(self, url, config):
        """Anything else is rejected with the user-facing message."""
        with pytest.raises(UrlValidationError, match=INVALID_URL_MESSAGE):
            validate_url(url, config.allowed_url_prefixes)


class TestRun:
    """Tests for BatchJobRunner.run."""

    async def test_mixed_batch_scenario(self, make_runner, fake_converter):
        """Invalid URL errors, valid ones convert in order, then zip, then done."""
        rt = make_runner()
        feed = EventFeed()

        await rt.runner.run([YT, "not-a-url", SC], feed)
        events = await drain(feed)

        assert types(events) == [
            EventType.FILE, EventType.ERROR, EventType.FILE, EventType.ZIP, EventType.DONE,
        ]
        assert events[1] == ErrorEvent(url="not-a-url", message=INVALID_URL_MESSAGE)
        assert events[0].title == "youtube - Track watch?v=AAA.mp3"
        assert events[2].extractor == "soundcloud"
        assert fake_converter.calls == [YT, SC]

    async def test_single_url_never_bundles(self, make_runner):
        """One successful conversion gives file then done, no zip."""
        rt = make_runner()
        feed = EventFeed()

        await rt.runner.run([YT], feed)

        assert types(await drain(feed)) == [EventType.FILE, EventType.DONE]

    async def test_all_failures_still_end_with_done(self, make_runner, make_converter):
        """A batch where nothing converts terminates with exactly one done."""
        converter = make_converter(failures={YT: "download error: boom"})
        rt = make_runner(converter=converter)
        feed = EventFeed()

        await rt.runner.run([YT, "bad"], feed)
        events = await drain(feed)

        assert types(events) == [EventType.ERROR, EventType.ERROR, EventType.DONE]
        assert events[0].message == "download error: boom"

    async def test_conversion_failure_is_isolated(self, make_runner, make_converter, file_service):
        """A failed URL does not stop later URLs, and its work dir is removed."""
        converter = make_converter(failures={YT: "metadata fetch error: gone"})
        rt = make_runner(converter=converter)
        feed = EventFeed()

        artifacts = await rt.runner.run([YT, SC], feed)
        events = await drain(feed)

        assert types(events) == [EventType.ERROR, EventType.FILE, EventType.DONE]
        assert events[0].url == YT
        assert len(artifacts) == 1
        # only the successful item's directory remains
        assert [p for p in file_service.root.iterdir() if p.is_dir()] == [artifacts[0].path.parent]

    async def test_unexpected_converter_exception_becomes_error_event(self, make_runner):
        """Any collaborator exception is contained to its URL."""

        class Exploding:
            async def convert(self, url, dest_dir):
                raise RuntimeError("kaboom")

        rt = make_runner(converter=Exploding())
        feed = EventFeed()

        await rt.runner.run([YT], feed)
        events = await drain(feed)

        assert events == [ErrorEvent(url=YT, message="kaboom"), DoneEvent()]

    async def test_work_dir_allocation_failure_is_isolated(self, make_runner, file_service, fake_converter):
        """A filesystem error for one URL is reported and the batch moves on."""

        class DiskFullOnce:
            def __init__(self, inner):
                self.inner = inner
                self.failed = False

            def allocate_work_dir(self):
                if not self.failed:
                    self.failed = True
                    raise OSError(28, "No space left on device")
                return self.inner.allocate_work_dir()

            def __getattr__(self, name):
                return getattr(self.inner, name)

        rt = make_runner(files=DiskFullOnce(file_service))
        feed = EventFeed()

        artifacts = await rt.runner.run([YT, SC], feed)
        events = await drain(feed)

        assert types(events) == [EventType.ERROR, EventType.FILE, EventType.DONE]
        assert events[0].url == YT
        assert events[0].message == "file error: No space left on device"
        assert fake_converter.calls == [SC]
        assert len(artifacts) == 1

    async def test_publish_failure_is_isolated(self, make_runner):
        """A file that cannot be published is an error for its URL only."""
        rt = make_runner()
        real_publish = rt.runner.publisher.publish
        attempts = []

        def publish_once_broken(artifact, *args, **kwargs):
            attempts.append(artifact)
            if len(attempts) == 1:
                raise ValueError("path already registered")
            return real_publish(artifact, *args, **kwargs)

        rt.runner.publisher.publish = publish_once_broken
        feed = EventFeed()

        artifacts = await rt.runner.run([YT, SC], feed)
        events = await drain(feed)

        assert types(events) == [EventType.ERROR, EventType.FILE, EventType.DONE]
        assert events[0] == ErrorEvent(url=YT, message="path already registered")
        assert not attempts[0].path.exists()
        assert [a.path for a in artifacts] == [attempts[1].path]

    async def test_extractor_is_display_name_prefix(self, make_runner):
        """The event's extractor is whatever precedes the first " - " of the label."""
        from songfetch.models.domain import ConversionResult

        class Dashed:
            async def convert(self, url, dest_dir):
                path = dest_dir / "a.mp3"
                path.write_bytes(b"ID3")
                return ConversionResult(
                    path=path,
                    title="Song",
                    extractor="generic - embed",
                    thumbnail="",
                    display_name="generic - embed - Song.mp3",
                )

        rt = make_runner(converter=Dashed())
        feed = EventFeed()

        await rt.runner.run([YT], feed)
        event = (await drain(feed))[0]

        assert event.title == "generic - embed - Song.mp3"
        assert event.extractor == "generic"

    async def test_zip_follows_last_item_and_precedes_done(self, make_runner):
        """With N >= 2 successes exactly one zip sits between items and done."""
        rt = make_runner()
        feed = EventFeed()

        await rt.runner.run([YT, YT_SHORT, SC], feed)
        events = await drain(feed)

        assert types(events).count(EventType.ZIP) == 1
        assert types(events)[-2:] == [EventType.ZIP, EventType.DONE]
        assert events[-2].download_url.startswith("/zip/")
        assert events[-2].download_url in rt.resources

    async def test_bundling_failure_omits_zip(self, make_runner, failing_archiver):
        """A failed bundle is logged and skipped; the batch still succeeds."""
        rt = make_runner(archiver=failing_archiver)
        feed = EventFeed()

        await rt.runner.run([YT, SC], feed)

        assert types(await drain(feed)) == [EventType.FILE, EventType.FILE, EventType.DONE]
        assert failing_archiver.calls == 1

    async def test_files_are_published(self, make_runner):
        """Each file event points at a registered /file/ resource."""
        rt = make_runner()
        feed = EventFeed()

        await rt.runner.run([YT, SC], feed)
        file_events = [e for e in await drain(feed) if isinstance(e, FileEvent)]

        assert len(file_events) == 2
        for event in file_events:
            assert event.download_url.startswith("/file/")
            assert event.download_url in rt.resources
        assert file_events[0].download_url != file_events[1].download_url

    async def test_every_artifact_and_bundle_scheduled_for_deletion(self, make_runner):
        """Individual files are reaped even when they were bundled."""
        rt = make_runner()
        feed = EventFeed()

        artifacts = await rt.runner.run([YT, SC], feed)

        scheduled = {d.path for d in rt.reaper.pending}
        assert {a.path for a in artifacts} <= scheduled
        assert len(scheduled) == 3
        assert any(p.suffix == ".zip" for p in scheduled)

    async def test_grace_period_counts_from_batch_end(self, make_runner, make_converter, config):
        """Slow earlier items do not shorten the lifetime of their files."""
        rt = make_runner(converter=make_converter(delay=0.05))
        feed = EventFeed()

        await rt.runner.run([YT, SC], feed)
        finished = datetime.now(UTC)

        grace = timedelta(seconds=config.artifact_ttl_seconds)
        for deletion in rt.reaper.pending:
            assert deletion.due_at <= finished + grace
            assert deletion.due_at >= finished + grace - timedelta(seconds=0.05)

    async def test_abandoned_feed_does_not_stop_batch(self, make_runner, fake_converter):
        """Nobody reading the feed does not affect conversion or cleanup."""
        rt = make_runner()
        feed = EventFeed()
        feed.abandon()

        artifacts = await rt.runner.run([YT, SC], feed)

        assert len(artifacts) == 2
        assert fake_converter.calls == [YT, SC]
        assert feed.closed
        assert len(rt.reaper.pending) == 3


class TestStart:
    """Tests for running batches in the background."""

    async def test_start_registers_session_and_runs(self, make_runner):
        """start() returns a registered session whose feed completes."""
        rt = make_runner()

        session_id = rt.runner.start([YT])

        assert session_id in rt.registry
        feed = rt.registry.attach(session_id)
        events = await asyncio.wait_for(drain(feed), timeout=5)
        assert events[-1] == DoneEvent()

    async def test_concurrent_batches_are_independent(self, make_runner, make_converter):
        """Two sessions run side by side without mixing events."""
        rt = make_runner(converter=make_converter(delay=0.01))

        first = rt.runner.start([YT, SC])
        second = rt.runner.start(["bad"])

        first_events = await asyncio.wait_for(drain(rt.registry.attach(first)), timeout=5)
        second_events = await asyncio.wait_for(drain(rt.registry.attach(second)), timeout=5)

        assert types(first_events) == [
            EventType.FILE, EventType.FILE, EventType.ZIP, EventType.DONE,
        ]
        assert types(second_events) == [EventType.ERROR, EventType.DONE]

    async def test_shutdown_cancels_and_still_terminates_feed(self, make_runner, make_converter):
        """A cancelled batch still ends its feed with done."""
        rt = make_runner(converter=make_converter(delay=10))

        session_id = rt.runner.start([YT, SC])
        feed = rt.registry.attach(session_id)
        await asyncio.sleep(0.01)
        assert rt.runner.active_batches == 1

        await rt.runner.shutdown()

        events = await asyncio.wait_for(drain(feed), timeout=1)
        assert events == [DoneEvent()]
        assert rt.runner.active_batches == 0

    async def test_crashed_batch_is_logged(self, make_runner, caplog):
        """An exception escaping a background batch is logged, not lost."""
        rt = make_runner()

        async def broken(url, feed):
            raise RuntimeError("bug")

        rt.runner._process_url = broken
        with caplog.at_level(logging.ERROR, logger="songfetch.services.job_runner"):
            session_id = rt.runner.start([YT])
            feed = rt.registry.attach(session_id)
            events = await asyncio.wait_for(drain(feed), timeout=5)
            await asyncio.sleep(0.01)

        assert events == [DoneEvent()]
        assert "crashed" in caplog.text
        assert rt.runner.active_batches == 0

    async def test_zip_event_type(self, make_runner):
        """The bundle event is a ZipEvent instance."""
        rt = make_runner()
        feed = EventFeed()

        await rt.runner.run([YT, SC], feed)

        assert any(isinstance(e, ZipEvent) for e in await drain(feed))
