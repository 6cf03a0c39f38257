"""Pydantic and dataclass models."""

from songfetch.models.base import JsonModel
from songfetch.models.domain import Artifact, ConversionResult
from songfetch.models.events import (
    DoneEvent,
    ErrorEvent,
    FileEvent,
    ProgressEvent,
    ZipEvent,
)

__all__ = [
    "Artifact",
    "ConversionResult",
    "DoneEvent",
    "ErrorEvent",
    "FileEvent",
    "JsonModel",
    "ProgressEvent",
    "ZipEvent",
]
