"""
=============================================================================
HTTP PROTOCOL LAYER
=============================================================================

Everything between raw bytes and the request handler:

    ┌─────────────────────────────────────────────────────────────────────┐
    │ REQUEST (request.py)                                                │
    │   bytes → HTTPRequest(method, path, version, headers, ...)          │
    │   RequestParser raises HTTPParseError(status_code) on bad input     │
    ├─────────────────────────────────────────────────────────────────────┤
    │ RESPONSE (response.py)                                              │
    │   HTTPResponse / ResponseBuilder → bytes                            │
    │   svg(), redirect(), not_found(), method_not_allowed(), ...         │
    ├─────────────────────────────────────────────────────────────────────┤
    │ STATUS CODES (status_codes.py)                                      │
    │   HTTPStatus IntEnum with reason phrases                            │
    └─────────────────────────────────────────────────────────────────────┘

=============================================================================
"""

from .request import HTTPRequest, RequestParser, HTTPParseError, parse_request
from .response import (
    HTTPResponse,
    ResponseBuilder,
    SVG_CONTENT_TYPE,
    svg,                 # 200 OK, image/svg+xml
    redirect,            # 307 by default
    not_found,           # 404
    method_not_allowed,  # 405
    internal_error,      # 500
    error_response,      # transport errors, closes the connection
)
from .status_codes import HTTPStatus

__all__ = [
    "HTTPRequest",
    "RequestParser",
    "HTTPParseError",
    "parse_request",

    "HTTPResponse",
    "ResponseBuilder",
    "SVG_CONTENT_TYPE",
    "svg",
    "redirect",
    "not_found",
    "method_not_allowed",
    "internal_error",
    "error_response",

    "HTTPStatus",
]
