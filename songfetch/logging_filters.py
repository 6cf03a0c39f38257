"""Logging setup shared by `python -m songfetch` and `uvicorn songfetch.asgi:app`."""

from __future__ import annotations

import logging
import re
import sys

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"

# Matches the request line inside a formatted uvicorn access message.
_REQUEST_LINE = re.compile(r'"(?P<method>[A-Z]+) (?P<path>\S+) HTTP/[\d.]+"')


def configure_logging(level: str = "INFO") -> None:
    """Configure root logging to stdout. Safe to call multiple times."""
    logging.basicConfig(
        level=level.upper(),
        format=LOG_FORMAT,
        handlers=[logging.StreamHandler(sys.stdout)],
    )
    logging.getLogger("asyncio").setLevel(logging.WARNING)


def is_noise(method: str, path: str) -> bool:
    """True for requests not worth an access log line: preflights and health checks."""
    if method == "OPTIONS":
        return True
    return path.split("?", 1)[0] == "/health"


class SuppressNoiseAccessLog(logging.Filter):
    """Drop Uvicorn access log records for health checks and preflights.

    Uvicorn passes (client_addr, method, full_path, http_version, status)
    as record args. Records that do not have that shape are matched on
    their formatted request line instead.
    """

    def filter(self, record: logging.LogRecord) -> bool:  # noqa: A003 (filter)
        args = record.args
        if isinstance(args, tuple) and len(args) >= 3:
            return not is_noise(str(args[1]), str(args[2]))

        match = _REQUEST_LINE.search(record.getMessage())
        if match is None:
            return True
        return not is_noise(match["method"], match["path"])


def install_uvicorn_access_log_filters() -> None:
    """Attach SuppressNoiseAccessLog to `uvicorn.access` once."""
    access_logger = logging.getLogger("uvicorn.access")
    if any(isinstance(f, SuppressNoiseAccessLog) for f in access_logger.filters):
        return
    access_logger.addFilter(SuppressNoiseAccessLog())
