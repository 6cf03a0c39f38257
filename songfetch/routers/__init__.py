"""HTTP routers package."""

from .download_router import (
    DownloadRequest,
    SessionResponse,
    create_download_router,
)
from .progress_router import (
    ProgressStream,
    StreamingTransportError,
    create_progress_router,
)
from .resource_router import create_resource_router

__all__ = [
    "create_download_router",
    "create_progress_router",
    "create_resource_router",
    "DownloadRequest",
    "ProgressStream",
    "SessionResponse",
    "StreamingTransportError",
]
