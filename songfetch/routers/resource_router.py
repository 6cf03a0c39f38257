"""Download endpoints for dynamically published artifacts."""

from typing import TYPE_CHECKING

from fastapi import APIRouter, HTTPException, Request
from fastapi.responses import Response

from songfetch.enums import ResourceKind
from songfetch.resources.router import ResourceNotFoundError

if TYPE_CHECKING:
    from songfetch.resources.router import ResourceRouter


def create_resource_router(resources: "ResourceRouter") -> APIRouter:
    """Create router that dispatches /file/* and /zip/* to published handlers.

    Args:
        resources: ResourceRouter holding the runtime registrations

    Returns:
        APIRouter with download endpoints configured
    """
    router = APIRouter(tags=["resources"])

    async def _dispatch(kind: ResourceKind, resource_id: str, request: Request) -> Response:
        try:
            return await resources.dispatch(f"/{kind}/{resource_id}", request)
        except ResourceNotFoundError as e:
            raise HTTPException(status_code=404, detail=str(e))

    @router.api_route("/file/{resource_id}", methods=["GET", "HEAD"])
    async def download_file(resource_id: str, request: Request) -> Response:
        """Serve one converted audio file."""
        return await _dispatch(ResourceKind.FILE, resource_id, request)

    @router.api_route("/zip/{resource_id}", methods=["GET", "HEAD"])
    async def download_zip(resource_id: str, request: Request) -> Response:
        """Serve the bundle of a batch."""
        return await _dispatch(ResourceKind.ZIP, resource_id, request)

    return router
