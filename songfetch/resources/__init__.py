"""Dynamically registered download resources."""

from songfetch.resources.publisher import (
    ArtifactHandler,
    ResourcePublisher,
    content_disposition,
)
from songfetch.resources.router import (
    ResourceHandler,
    ResourceNotFoundError,
    ResourceRouter,
)

__all__ = [
    "ArtifactHandler",
    "ResourceHandler",
    "ResourceNotFoundError",
    "ResourcePublisher",
    "ResourceRouter",
    "content_disposition",
]
