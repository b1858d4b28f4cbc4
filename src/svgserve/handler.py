"""
=============================================================================
REQUEST HANDLER
=============================================================================

Turns (method, path) into the HTTP response svgserve sends back.

=============================================================================
OUTCOMES
=============================================================================

    ┌─────────────────────────────────────────────────────────────────────┐
    │                     handle(method, path, config)                    │
    ├─────────────────────────────────────────────────────────────────────┤
    │                                                                      │
    │   method != GET ──────────────────► 405 Method Not Allowed          │
    │        │                            Allow: GET (resolver not run)   │
    │        ▼                                                             │
    │   resolve(path, config)                                              │
    │        │                                                             │
    │        ├── Redirect(to) ──────────► 307 Location: to                │
    │        │                                                             │
    │        ├── Serve(file) ─┬─ read ──► 200 image/svg+xml, raw bytes    │
    │        │                └─ OSError ► 500 Internal Server Error      │
    │        │                                                             │
    │        └── NotFound ──────────────► 404 Not Found                   │
    │                                                                      │
    └─────────────────────────────────────────────────────────────────────┘

The 500 branch covers a file that disappears or loses its permissions
between resolution and the read. Its details go to the log, never into
the response body.

=============================================================================
"""

import logging

from .config import ServerConfig
from .http.response import (
    HTTPResponse,
    svg,
    redirect,
    not_found,
    method_not_allowed,
    internal_error,
)
from .resolver import resolve, Redirect, Serve


logger = logging.getLogger(__name__)


ALLOWED_METHODS = ["GET"]


def handle(method: str, request_path: str, config: ServerConfig) -> HTTPResponse:
    """
    Produce the response for one request.

    Args:
        method: Request method token, exactly as the client sent it.
        request_path: Decoded request path (see RequestParser).
        config: The running server's configuration.

    Returns:
        A complete HTTPResponse. I/O failures are mapped to 500, so
        callers only need to guard against programming errors.
    """
    if method not in ALLOWED_METHODS:
        return method_not_allowed(ALLOWED_METHODS)

    resolution = resolve(request_path, config)

    if isinstance(resolution, Redirect):
        return redirect(resolution.to)

    if isinstance(resolution, Serve):
        return _serve_file(resolution)

    return not_found()


def _serve_file(resolution: Serve) -> HTTPResponse:
    try:
        content = resolution.file_path.read_bytes()
    except OSError as e:
        logger.error(f"Error reading SVG {resolution.file_path}: {e}")
        return internal_error()

    return svg(content)
