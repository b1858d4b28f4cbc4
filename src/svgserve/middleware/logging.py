"""
=============================================================================
ACCESS LOG MIDDLEWARE
=============================================================================

One log line per request on the "svgserve.access" logger, plus an
X-Request-ID response header to correlate client reports with log lines.

=============================================================================
FORMATS
=============================================================================

    TEXT (default, Apache-like):
    ┌─────────────────────────────────────────────────────────────────────┐
    │ 127.0.0.1 - - [16/Oct/2026:10:55:36 +0000] "GET /circle.svg"       │
    │     200 312 0.41ms                                                  │
    └─────────────────────────────────────────────────────────────────────┘

    JSON (--log-format json):
    ┌─────────────────────────────────────────────────────────────────────┐
    │ {"request_id": "a1b2c3d4", "method": "GET", "path": "/circle.svg", │
    │  "query": "", "client_ip": "127.0.0.1", "user_agent": "curl/8.5", │
    │  "status_code": 200, "content_length": 312, "duration_ms": 0.41,  │
    │  "timestamp": "16/Oct/2026:10:55:36 +0000"}                        │
    └─────────────────────────────────────────────────────────────────────┘

=============================================================================
LEVELS
=============================================================================

    2xx / 3xx / 4xx    log_level (INFO by default)
    5xx                WARNING

A 404 is an ordinary outcome for a file server, so client errors stay at
the normal level. Only server-side failures are raised.

=============================================================================
"""

import time
import json
import uuid
import logging
from typing import Optional
from dataclasses import dataclass, asdict

from .base import Middleware, NextHandler
from ..http.request import HTTPRequest
from ..http.response import HTTPResponse
from ..http.status_codes import HTTPStatus


# Namespaced so deployments can route access lines separately:
#   logging.getLogger("svgserve.access").addHandler(file_handler)
logger = logging.getLogger("svgserve.access")


def _escape(value: str) -> str:
    """Escape control characters and quotes so one request is one line."""
    return "".join(
        f"\\x{ord(c):02x}" if ord(c) < 0x20 or ord(c) == 0x7F else
        "\\\"" if c == "\"" else c
        for c in value
    )


@dataclass
class RequestLog:
    """One access log record."""

    request_id: str
    method: str
    path: str
    query: str
    client_ip: str
    user_agent: str
    status_code: int
    content_length: int
    duration_ms: float
    timestamp: str

    def to_dict(self) -> dict:
        data = asdict(self)
        data["duration_ms"] = round(self.duration_ms, 2)
        return data

    def to_text(self) -> str:
        return (
            f'{self.client_ip} - - [{self.timestamp}] '
            f'"{self.method} {_escape(self.path)}" {self.status_code} '
            f'{self.content_length} {self.duration_ms:.2f}ms'
        )


class LoggingMiddleware(Middleware):
    """
    Access logging with timing and request IDs.

    Add it first so its timing covers everything after it:

        pipeline.add(LoggingMiddleware(log_format="json"))
    """

    def __init__(
        self,
        log_format: str = "text",
        include_request_id: bool = True,
        log_level: int = logging.INFO,
        skip_paths: Optional[list] = None,
    ):
        """
        Args:
            log_format: "text" or "json".
            include_request_id: Add X-Request-ID to every response.
            log_level: Level for non-5xx lines.
            skip_paths: Request paths that are not logged.
        """
        self.log_format = log_format
        self.include_request_id = include_request_id
        self.log_level = log_level
        self.skip_paths = set(skip_paths or [])

    def __call__(self, request: HTTPRequest, next: NextHandler) -> HTTPResponse:
        request_id = str(uuid.uuid4())[:8]
        start_time = time.time()

        try:
            response = next(request)
        except Exception as e:
            duration_ms = (time.time() - start_time) * 1000
            logger.error(
                f"Request failed: {request.method} {_escape(request.path)} "
                f"- {type(e).__name__} ({duration_ms:.2f}ms)"
            )
            raise

        duration_ms = (time.time() - start_time) * 1000

        if self.include_request_id:
            response.set_header("X-Request-ID", request_id)

        if request.path in self.skip_paths:
            return response

        status = HTTPStatus(response.status)
        entry = RequestLog(
            request_id=request_id,
            method=request.method,
            path=request.path,
            query=request.query_string,
            client_ip=request.client_address[0] or "-",
            user_agent=request.user_agent or "-",
            status_code=int(status),
            content_length=len(response.body),
            duration_ms=duration_ms,
            timestamp=time.strftime("%d/%b/%Y:%H:%M:%S %z"),
        )

        level = logging.WARNING if status.is_server_error else self.log_level

        if self.log_format == "json":
            logger.log(level, json.dumps(entry.to_dict()))
        else:
            logger.log(level, entry.to_text())

        return response
