"""Runtime route table for dynamically published download resources."""

from __future__ import annotations

import logging
import threading
from collections.abc import Awaitable, Callable

from starlette.requests import Request
from starlette.responses import Response

logger = logging.getLogger(__name__)

ResourceHandler = Callable[[Request], Awaitable[Response]]


class ResourceNotFoundError(Exception):
    """Raised when nothing is published at a path, or its file is gone."""

    pass


class ResourceRouter:
    """Append-only mapping of request path to handler.

    Handlers are registered while a batch runs and are looked up on every
    incoming download request. Entries are never removed; a handler whose
    backing file has been reaped answers not-found on its own.
    """

    def __init__(self) -> None:
        self._handlers: dict[str, ResourceHandler] = {}
        self._lock = threading.Lock()

    def register(self, path: str, handler: ResourceHandler) -> None:
        """Register `handler` at `path`.

        Raises:
            ValueError: If `path` already has a handler.
        """
        with self._lock:
            if path in self._handlers:
                raise ValueError(f"Resource already registered at {path}")
            self._handlers[path] = handler
        logger.debug("Registered resource %s", path)

    def lookup(self, path: str) -> ResourceHandler | None:
        with self._lock:
            return self._handlers.get(path)

    async def dispatch(self, path: str, request: Request) -> Response:
        """Invoke the handler registered at `path`.

        Raises:
            ResourceNotFoundError: If no handler is registered there.
        """
        handler = self.lookup(path)
        if handler is None:
            raise ResourceNotFoundError(f"No resource at {path}")
        return await handler(request)

    def __contains__(self, path: object) -> bool:
        with self._lock:
            return path in self._handlers

    def __len__(self) -> int:
        with self._lock:
            return len(self._handlers)
