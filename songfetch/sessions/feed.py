"""Closable single-producer/single-consumer event feed."""

from __future__ import annotations

import asyncio
import logging
import time
from typing import AsyncIterator

from songfetch.models.events import ProgressEvent

logger = logging.getLogger(__name__)

# End-of-stream marker placed on the queue by close()
_CLOSED = object()


class EventFeed:
    """Unbounded ordered queue between one batch and one stream.

    The producer calls send() any number of times and close() once. The
    consumer calls receive() until it returns None. A consumer that goes
    away calls abandon(); later sends are then dropped instead of piling
    up in memory.
    """

    def __init__(self) -> None:
        self._queue: asyncio.Queue[object] = asyncio.Queue()
        self._closed = False
        self._exhausted = False
        self._abandoned = False
        # monotonic time of the consumer's latest receive() call
        self.last_receive_at: float | None = None

    @property
    def closed(self) -> bool:
        return self._closed

    @property
    def exhausted(self) -> bool:
        """True once the consumer has seen end-of-stream."""
        return self._exhausted

    @property
    def abandoned(self) -> bool:
        return self._abandoned

    def send(self, event: ProgressEvent) -> None:
        """Append an event. Never blocks.

        Raises:
            RuntimeError: If the feed was already closed.
        """
        if self._closed:
            raise RuntimeError("send() on a closed feed")
        if self._abandoned:
            logger.debug("Dropping %s event: feed abandoned", event.event_type)
            return
        self._queue.put_nowait(event)

    def close(self) -> None:
        """Signal end-of-stream. Safe to call more than once."""
        if self._closed:
            return
        self._closed = True
        self._queue.put_nowait(_CLOSED)

    def abandon(self) -> None:
        """Consumer gave up: discard queued and future events."""
        self._abandoned = True
        while not self._queue.empty():
            self._queue.get_nowait()

    async def receive(self, timeout: float | None = None) -> ProgressEvent | None:
        """Wait for the next event.

        Returns:
            The next event, or None once the feed is closed and drained.

        Raises:
            asyncio.TimeoutError: If `timeout` elapses with nothing to read.
        """
        if self._exhausted:
            return None
        self.last_receive_at = time.monotonic()
        if timeout is None:
            item = await self._queue.get()
        else:
            item = await asyncio.wait_for(self._queue.get(), timeout=timeout)
        if item is _CLOSED:
            self._exhausted = True
            return None
        return item  # type: ignore[return-value]

    async def __aiter__(self) -> AsyncIterator[ProgressEvent]:
        while True:
            event = await self.receive()
            if event is None:
                return
            yield event
