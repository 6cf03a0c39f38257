"""Process-wide lookup table from session ID to its event feed."""

from __future__ import annotations

import logging
import threading
import time
from collections.abc import Callable
from dataclasses import dataclass

from songfetch.services.identity import new_id
from songfetch.sessions.feed import EventFeed

logger = logging.getLogger(__name__)


class SessionNotFoundError(Exception):
    """Raised when a session ID is unknown or already removed."""

    pass


class SessionAlreadyAttachedError(Exception):
    """Raised when a second consumer tries to attach to a session."""

    pass


@dataclass
class Session:
    """One batch submission and its live feed."""

    session_id: str
    feed: EventFeed
    created_at: float = 0.0
    attached: bool = False
    attached_at: float | None = None

    def last_activity(self) -> float:
        """Monotonic time of the latest sign of life from either side."""
        if not self.attached:
            return self.created_at
        seen = self.attached_at or self.created_at
        if self.feed.last_receive_at is not None:
            seen = max(seen, self.feed.last_receive_at)
        return seen


class SessionRegistry:
    """Guarded map of live sessions.

    The job runner owns the producer side of each feed; exactly one
    progress stream may attach as the consumer, and that consumer is the
    one that removes the session.
    """

    def __init__(self, id_factory: Callable[[], str] = new_id) -> None:
        self._id_factory = id_factory
        self._sessions: dict[str, Session] = {}
        self._lock = threading.Lock()

    def create(self) -> tuple[str, EventFeed]:
        """Register a new session with an empty feed."""
        feed = EventFeed()
        with self._lock:
            session_id = self._id_factory()
            while session_id in self._sessions:
                session_id = self._id_factory()
            self._sessions[session_id] = Session(
                session_id=session_id, feed=feed, created_at=time.monotonic()
            )
        logger.info("Session %s created", session_id)
        return session_id, feed

    def attach(self, session_id: str) -> EventFeed:
        """Claim the consumer side of a session's feed.

        Raises:
            SessionNotFoundError: If no such session exists.
            SessionAlreadyAttachedError: If another consumer holds it.
        """
        with self._lock:
            session = self._sessions.get(session_id)
            if session is None:
                raise SessionNotFoundError(f"Session {session_id} not found")
            if session.attached:
                raise SessionAlreadyAttachedError(
                    f"Session {session_id} already has a consumer"
                )
            session.attached = True
            session.attached_at = time.monotonic()
        logger.info("Session %s attached", session_id)
        return session.feed

    def remove(self, session_id: str) -> bool:
        """Drop a session. Returns False if it was already gone."""
        with self._lock:
            session = self._sessions.pop(session_id, None)
        if session is None:
            return False
        logger.info("Session %s removed", session_id)
        return True

    def expire_unclaimed(self, max_age_seconds: float) -> int:
        """Drop sessions with no sign of life for `max_age_seconds`.

        That covers sessions nobody attached to, and attached sessions
        whose consumer stopped reading without ever removing them (a
        client that dropped before its stream started). Their feeds are
        abandoned so the still-running batch stops accumulating
        events.

        Returns:
            Number of sessions dropped.
        """
        cutoff = time.monotonic() - max_age_seconds
        with self._lock:
            stale = [
                s for s in self._sessions.values()
                if s.last_activity() <= cutoff
            ]
            for session in stale:
                del self._sessions[session.session_id]

        for session in stale:
            session.feed.abandon()
            logger.warning(
                "Session %s expired (%s)",
                session.session_id,
                "consumer gone" if session.attached else "never claimed",
            )
        return len(stale)

    def __contains__(self, session_id: object) -> bool:
        with self._lock:
            return session_id in self._sessions

    def __len__(self) -> int:
        with self._lock:
            return len(self._sessions)
