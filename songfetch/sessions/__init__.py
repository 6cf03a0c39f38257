"""Session registry and event feeds."""

from songfetch.sessions.feed import EventFeed
from songfetch.sessions.registry import (
    Session,
    SessionAlreadyAttachedError,
    SessionNotFoundError,
    SessionRegistry,
)

__all__ = [
    "EventFeed",
    "Session",
    "SessionAlreadyAttachedError",
    "SessionNotFoundError",
    "SessionRegistry",
]
