"""Progress events delivered to the streaming client.

Each event renders as a single server-sent-events frame:

    event: <type>
    data: <json>

followed by a blank line.
"""

import json
from typing import ClassVar

from songfetch.enums import EventType
from songfetch.models.base import JsonModel


class ProgressEvent(JsonModel):
    """Base class for all events carried by an event feed."""

    event_type: ClassVar[EventType]

    def data(self) -> str:
        """JSON payload for the frame's data line."""
        return self.to_json()

    def to_sse(self) -> str:
        """Render the event as one text/event-stream frame."""
        return f"event: {self.event_type}\ndata: {self.data()}\n\n"


class FileEvent(ProgressEvent):
    """One URL converted successfully and is ready for download."""

    event_type: ClassVar[EventType] = EventType.FILE

    title: str
    extractor: str
    thumbnail: str = ""
    download_url: str


class ErrorEvent(ProgressEvent):
    """One URL failed validation or conversion."""

    event_type: ClassVar[EventType] = EventType.ERROR

    url: str
    message: str


class ZipEvent(ProgressEvent):
    """A bundle of every converted file is ready for download."""

    event_type: ClassVar[EventType] = EventType.ZIP

    download_url: str

    def data(self) -> str:
        return json.dumps(self.download_url)


class DoneEvent(ProgressEvent):
    """Terminal event; always the last one in a feed."""

    event_type: ClassVar[EventType] = EventType.DONE
