"""Cross-origin support for the single trusted UI origin.

Every path answers OPTIONS with an empty 200, and every response carries
the allow-origin headers. This is a plain ASGI middleware so that
streaming responses pass through unbuffered.
"""

from starlette.datastructures import MutableHeaders
from starlette.responses import Response
from starlette.types import ASGIApp, Message, Receive, Scope, Send


class TrustedOriginMiddleware:
    """Adds CORS headers for one origin and short-circuits preflights."""

    def __init__(
        self,
        app: ASGIApp,
        allowed_origin: str,
        allow_methods: tuple[str, ...] = ("GET", "POST", "OPTIONS"),
        allow_headers: tuple[str, ...] = ("Content-Type",),
    ) -> None:
        self.app = app
        self.headers = {
            "Access-Control-Allow-Origin": allowed_origin,
            "Access-Control-Allow-Methods": ", ".join(allow_methods),
            "Access-Control-Allow-Headers": ", ".join(allow_headers),
        }

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        if scope["type"] != "http":
            await self.app(scope, receive, send)
            return

        if scope["method"] == "OPTIONS":
            response = Response(status_code=200, headers=self.headers)
            await response(scope, receive, send)
            return

        async def send_with_cors(message: Message) -> None:
            if message["type"] == "http.response.start":
                headers = MutableHeaders(scope=message)
                for key, value in self.headers.items():
                    headers[key] = value
            await send(message)

        await self.app(scope, receive, send_with_cors)
