"""
=============================================================================
MIDDLEWARE
=============================================================================

Cross-cutting behaviour wrapped around the request handler.

Middleware:
    Base class. __call__(request, next) -> response.

MiddlewarePipeline:
    Ordered chain; wrap(handler) builds the callable the server dispatches to.

LoggingMiddleware:
    Access log on "svgserve.access" (text or JSON) and X-Request-ID.

=============================================================================
"""

from .base import Middleware, MiddlewarePipeline, NextHandler
from .logging import LoggingMiddleware, RequestLog

__all__ = [
    "Middleware",
    "MiddlewarePipeline",
    "NextHandler",

    "LoggingMiddleware",
    "RequestLog",
]
