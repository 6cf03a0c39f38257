"""Publishing artifacts as one-off download endpoints."""

from __future__ import annotations

import logging
from collections.abc import Callable
from pathlib import Path
from urllib.parse import quote

from starlette.requests import Request
from starlette.responses import FileResponse, PlainTextResponse, Response

from songfetch.enums import ResourceKind
from songfetch.models.domain import Artifact
from songfetch.resources.router import ResourceNotFoundError, ResourceRouter
from songfetch.services.identity import new_id

logger = logging.getLogger(__name__)


def content_disposition(display_name: str) -> str:
    """Build an attachment Content-Disposition for `display_name`.

    Non-ASCII names get an ASCII fallback plus an RFC 5987 `filename*`.
    """
    name = display_name.replace("\r", " ").replace("\n", " ")
    escaped = name.replace("\\", "\\\\").replace('"', '\\"')
    if escaped.isascii():
        return f'attachment; filename="{escaped}"'
    fallback = escaped.encode("ascii", "replace").decode("ascii")
    return f"attachment; filename=\"{fallback}\"; filename*=UTF-8''{quote(name, safe='')}"


class ArtifactHandler:
    """Serves one artifact's bytes as an attachment."""

    def __init__(self, path: Path, display_name: str, media_type: str) -> None:
        self.path = path
        self.display_name = display_name
        self.media_type = media_type

    async def __call__(self, request: Request) -> Response:
        if request.method in ("HEAD", "OPTIONS"):
            return Response(status_code=200)

        try:
            with self.path.open("rb"):
                pass
        except FileNotFoundError:
            raise ResourceNotFoundError(f"{self.path.name} is no longer available")
        except OSError as e:
            logger.error("Error opening file %s: %s", self.path, e)
            return PlainTextResponse("error opening file", status_code=500)

        return FileResponse(
            self.path,
            media_type=self.media_type,
            headers={"Content-Disposition": content_disposition(self.display_name)},
        )


class ResourcePublisher:
    """Registers a fresh, unguessable download path per artifact."""

    def __init__(
        self,
        router: ResourceRouter,
        id_factory: Callable[[], str] = new_id,
    ) -> None:
        self.router = router
        self._id_factory = id_factory

    def publish(
        self,
        artifact: Artifact,
        display_name: str | None = None,
        media_type: str | None = None,
        *,
        kind: ResourceKind = ResourceKind.FILE,
    ) -> str:
        """Expose `artifact` for download.

        Args:
            artifact: The on-disk file to serve.
            display_name: Attachment filename; defaults to artifact.display_name.
            media_type: Content type; defaults to artifact.media_type.
            kind: Path prefix, "file" or "zip".

        Returns:
            The request path the artifact is now reachable at.
        """
        path = f"/{kind}/{self._id_factory()}"
        handler = ArtifactHandler(
            artifact.path,
            display_name or artifact.display_name,
            media_type or artifact.media_type,
        )
        self.router.register(path, handler)
        logger.info("Published %s as %s", artifact.path.name, path)
        return path
