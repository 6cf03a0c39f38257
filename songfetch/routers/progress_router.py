"""Server-sent progress stream for one batch session."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import AsyncIterator
from typing import TYPE_CHECKING

from fastapi import APIRouter, HTTPException, Request
from fastapi.responses import StreamingResponse

from songfetch.enums import StreamState
from songfetch.sessions.registry import (
    SessionAlreadyAttachedError,
    SessionNotFoundError,
)

if TYPE_CHECKING:
    from songfetch.sessions.feed import EventFeed
    from songfetch.sessions.registry import SessionRegistry

logger = logging.getLogger(__name__)

SSE_HEADERS = {
    "Cache-Control": "no-cache",
    "Connection": "keep-alive",
    "X-Accel-Buffering": "no",
}


class StreamingTransportError(Exception):
    """Raised when the client goes away mid-stream."""

    pass


class ProgressStream:
    """Relays one session's feed to one HTTP response.

    Moves AWAIT_SESSION -> STREAMING -> CLOSED. Whatever ends the stream
    (feed exhausted, client gone, task cancelled), the session is removed
    from the registry on the way out. The batch itself is never touched.
    """

    def __init__(
        self,
        session_id: str,
        registry: "SessionRegistry",
        request: Request,
        poll_seconds: float = 1.0,
    ) -> None:
        self.session_id = session_id
        self.registry = registry
        self.request = request
        self.poll_seconds = poll_seconds
        self.state = StreamState.AWAIT_SESSION
        self._feed: "EventFeed | None" = None

    def open(self) -> None:
        """Attach to the session's feed.

        Raises:
            SessionNotFoundError: If the session does not exist.
            SessionAlreadyAttachedError: If another stream holds it.
        """
        try:
            self._feed = self.registry.attach(self.session_id)
        except (SessionNotFoundError, SessionAlreadyAttachedError):
            self.state = StreamState.CLOSED
            raise
        self.state = StreamState.STREAMING

    async def frames(self) -> AsyncIterator[str]:
        """Yield one text frame per event until the feed ends."""
        if self._feed is None:
            raise RuntimeError("open() must succeed before streaming")
        feed = self._feed
        sent = 0
        try:
            while True:
                try:
                    event = await feed.receive(timeout=self.poll_seconds)
                except asyncio.TimeoutError:
                    if await self.request.is_disconnected():
                        raise StreamingTransportError(
                            f"client disconnected from session {self.session_id}"
                        )
                    continue
                if event is None:
                    break
                yield event.to_sse()
                sent += 1
        except StreamingTransportError as e:
            logger.warning("Progress stream ended early: %s", e)
        finally:
            if not feed.exhausted:
                feed.abandon()
            self.registry.remove(self.session_id)
            self.state = StreamState.CLOSED
            logger.info("Progress stream for %s closed after %d events", self.session_id, sent)


def create_progress_router(
    registry: "SessionRegistry",
    *,
    poll_seconds: float = 1.0,
) -> APIRouter:
    """Create progress router bound to the session registry.

    Args:
        registry: SessionRegistry holding live feeds
        poll_seconds: Disconnect-check interval while the feed is idle

    Returns:
        APIRouter with the progress stream endpoint configured
    """
    router = APIRouter(tags=["progress"])

    @router.get("/progress/{session_id}")
    async def stream_progress(session_id: str, request: Request) -> StreamingResponse:
        """Stream a session's events as text/event-stream.

        Raises:
            HTTPException: 404 if the session is unknown, 409 if another
                stream is already attached
        """
        stream = ProgressStream(session_id, registry, request, poll_seconds)
        try:
            stream.open()
        except SessionNotFoundError as e:
            raise HTTPException(status_code=404, detail=str(e))
        except SessionAlreadyAttachedError as e:
            raise HTTPException(status_code=409, detail=str(e))

        return StreamingResponse(
            stream.frames(),
            media_type="text/event-stream",
            headers=SSE_HEADERS,
        )

    return router
