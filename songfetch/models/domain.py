"""Domain dataclasses shared between the services."""

from dataclasses import dataclass
from pathlib import Path


@dataclass
class ConversionResult:
    """What the conversion tool produced for one URL.

    Attributes:
        path: Local path of the audio file (filesystem-safe name).
        title: Track title as reported by the source.
        extractor: Source name as reported by the tool (e.g. "youtube").
        thumbnail: Artwork URL, empty when the source has none.
        display_name: Unsanitized "<extractor> - <title>.<ext>" label.
    """

    path: Path
    title: str
    extractor: str
    thumbnail: str
    display_name: str


@dataclass
class Artifact:
    """An on-disk file awaiting download and later deletion.

    `ttl_seconds` counts from the end of the batch that produced it.
    """

    path: Path
    display_name: str
    media_type: str = "application/octet-stream"
    ttl_seconds: float = 300.0
