"""Batch submission endpoint.

Routers handle HTTP concerns only - no business logic.
Conversion work is delegated to BatchJobRunner.
"""

from typing import TYPE_CHECKING

from fastapi import APIRouter, HTTPException, Request
from pydantic import Field, ValidationError

from songfetch.models.base import JsonModel

if TYPE_CHECKING:
    from songfetch.services.job_runner import BatchJobRunner

INVALID_REQUEST_DETAIL = "invalid request: URLs required"


class DownloadRequest(JsonModel):
    """Request model for a batch submission."""

    urls: list[str] = Field(default_factory=list)


class SessionResponse(JsonModel):
    """Response model carrying the new session's ID."""

    session_id: str


def create_download_router(job_runner: "BatchJobRunner") -> APIRouter:
    """Create download router with injected job runner.

    Args:
        job_runner: BatchJobRunner that executes submitted batches

    Returns:
        APIRouter with the submission endpoint configured
    """
    router = APIRouter(tags=["download"])

    @router.post("/download", response_model=SessionResponse)
    async def submit_download(request: Request) -> SessionResponse:
        """Start converting a batch of URLs.

        The body is parsed by hand so that any malformed payload, not only
        an empty list, is answered with 400.

        Raises:
            HTTPException: 400 if the body is malformed or has no URLs
        """
        body = await request.body()
        try:
            payload = DownloadRequest.model_validate_json(body or b"{}")
        except ValidationError:
            raise HTTPException(status_code=400, detail=INVALID_REQUEST_DETAIL)
        if not payload.urls:
            raise HTTPException(status_code=400, detail=INVALID_REQUEST_DETAIL)

        session_id = job_runner.start(payload.urls)
        return SessionResponse(session_id=session_id)

    return router
