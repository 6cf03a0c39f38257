"""Tests for the trusted-origin middleware."""

import pytest
from fastapi import FastAPI
from fastapi.responses import StreamingResponse
from fastapi.testclient import TestClient

from songfetch.middleware import TrustedOriginMiddleware

ORIGIN = "http://localhost:4444"


@pytest.fixture
def client():
    app = FastAPI()
    app.add_middleware(TrustedOriginMiddleware, allowed_origin=ORIGIN)

    @app.get("/ping")
    async def ping():
        return {"ok": True}

    @app.get("/stream")
    async def stream():
        async def chunks():
            yield "a"
            yield "b"

        return StreamingResponse(chunks(), media_type="text/plain")

    return TestClient(app)


class TestTrustedOriginMiddleware:
    """Tests for TrustedOriginMiddleware."""

    @pytest.mark.parametrize("path", ["/ping", "/download", "/file/abc", "/anything/else"])
    def test_options_always_ok_and_empty(self, client, path):
        response = client.options(path)

        assert response.status_code == 200
        assert response.content == b""
        assert response.headers["access-control-allow-origin"] == ORIGIN
        assert "POST" in response.headers["access-control-allow-methods"]
        assert response.headers["access-control-allow-headers"] == "Content-Type"

    def test_headers_added_to_responses(self, client):
        response = client.get("/ping")

        assert response.json() == {"ok": True}
        assert response.headers["access-control-allow-origin"] == ORIGIN

    def test_headers_added_to_errors(self, client):
        response = client.get("/missing")

        assert response.status_code == 404
        assert response.headers["access-control-allow-origin"] == ORIGIN

    def test_streaming_passes_through(self, client):
        response = client.get("/stream")

        assert response.text == "ab"
        assert response.headers["access-control-allow-origin"] == ORIGIN
