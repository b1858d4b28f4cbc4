"""
=============================================================================
MIDDLEWARE PIPELINE
=============================================================================

Chain of responsibility around the request handler. Each middleware gets
the request and the next callable, and returns a response:

    ┌─────────────────────────────────────────────────────────────────────┐
    │                                                                      │
    │   Request ─────────────────────────────────────────────►            │
    │                                                                      │
    │   ┌──────────────┐    ┌──────────────┐    ┌──────────────────┐     │
    │   │ Middleware A │───►│ Middleware B │───►│ handle(method,   │     │
    │   │   (before)   │    │   (before)   │    │  path, config)   │     │
    │   │   (after)    │◄───│   (after)    │◄───│                  │     │
    │   └──────────────┘    └──────────────┘    └──────────────────┘     │
    │                                                                      │
    │   ◄───────────────────────────────────────────────────── Response   │
    │                                                                      │
    └─────────────────────────────────────────────────────────────────────┘

First added is outermost. A middleware may return without calling next()
to short-circuit the chain.

=============================================================================
"""

from abc import ABC, abstractmethod
from typing import Callable, List
import logging

from ..http.request import HTTPRequest
from ..http.response import HTTPResponse


logger = logging.getLogger(__name__)


NextHandler = Callable[[HTTPRequest], HTTPResponse]


class Middleware(ABC):
    """
    Base class for middleware.

        class ServerTiming(Middleware):
            def __call__(self, request, next):
                start = time.time()
                response = next(request)
                response.set_header("Server-Timing", f"total;dur={...}")
                return response
    """

    @abstractmethod
    def __call__(self, request: HTTPRequest, next: NextHandler) -> HTTPResponse:
        """Process request, normally by calling next(request), and return a response."""

    @property
    def name(self) -> str:
        return self.__class__.__name__


class MiddlewarePipeline:
    """
    Ordered list of middleware that wraps a final handler.

        pipeline = MiddlewarePipeline()
        pipeline.add(LoggingMiddleware())
        dispatch = pipeline.wrap(final_handler)
        response = dispatch(request)
    """

    def __init__(self):
        self._middleware: List[Middleware] = []

    def add(self, middleware: Middleware) -> "MiddlewarePipeline":
        """Append middleware (innermost so far). Returns self for chaining."""
        self._middleware.append(middleware)
        logger.debug(f"Added middleware: {middleware.name}")
        return self

    def use(self, *middleware: Middleware) -> "MiddlewarePipeline":
        for mw in middleware:
            self.add(mw)
        return self

    def wrap(self, handler: NextHandler) -> NextHandler:
        """
        Build the chain around handler.

        Wrapping runs in reverse so the first middleware added ends up
        outermost: [A, B, C] becomes A(B(C(handler))).
        """
        current = handler
        for middleware in reversed(self._middleware):
            current = self._create_wrapped_handler(middleware, current)
        return current

    def _create_wrapped_handler(
        self,
        middleware: Middleware,
        next_handler: NextHandler
    ) -> NextHandler:
        def wrapped(request: HTTPRequest) -> HTTPResponse:
            return middleware(request, next_handler)
        return wrapped

    def __len__(self) -> int:
        return len(self._middleware)

    def __iter__(self):
        return iter(self._middleware)
