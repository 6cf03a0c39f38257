"""StrEnum definitions for type-safe constants."""

from enum import StrEnum


class EventType(StrEnum):
    """Progress event types pushed over the event stream."""

    FILE = "file"
    ERROR = "error"
    ZIP = "zip"
    DONE = "done"


class ResourceKind(StrEnum):
    """Path prefixes for published download resources."""

    FILE = "file"
    ZIP = "zip"


class StreamState(StrEnum):
    """Lifecycle states of one progress stream."""

    AWAIT_SESSION = "await_session"
    STREAMING = "streaming"
    CLOSED = "closed"
