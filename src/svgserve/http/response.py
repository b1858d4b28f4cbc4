"""
=============================================================================
HTTP RESPONSE BUILDER
=============================================================================

Builds HTTP/1.1 responses and serializes them for the socket.

=============================================================================
RESPONSES SVGSERVE SENDS
=============================================================================

    ┌─────────────────────────────────────────────────────────────────────┐
    │                     THE FIVE APPLICATION RESPONSES                  │
    ├─────────────────────────────────────────────────────────────────────┤
    │                                                                      │
    │   HTTP/1.1 200 OK                   HTTP/1.1 307 Temporary Redirect │
    │   Content-Type: image/svg+xml       Location: /home                 │
    │   Content-Length: 312               Content-Length: 0               │
    │                                                                      │
    │   <svg xmlns=...>...</svg>                                          │
    │                                                                      │
    │   HTTP/1.1 404 Not Found            HTTP/1.1 405 Method Not Allowed │
    │   Content-Type: text/plain; ...     Allow: GET                      │
    │   Content-Length: 9                 Content-Length: 0               │
    │                                                                      │
    │   Not Found                                                          │
    │                                                                      │
    │   HTTP/1.1 500 Internal Server Error                                │
    │   Content-Type: text/plain; charset=utf-8                           │
    │                                                                      │
    │   Internal Server Error                                              │
    │                                                                      │
    └─────────────────────────────────────────────────────────────────────┘

Error bodies are fixed strings. Nothing derived from the filesystem or
from an exception message is ever placed in a body.

Content-Length, Date and Server are filled in by to_bytes() when the
handler did not set them.

=============================================================================
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Dict, Union
from urllib.parse import quote

from .status_codes import HTTPStatus


SVG_CONTENT_TYPE = "image/svg+xml"
TEXT_CONTENT_TYPE = "text/plain; charset=utf-8"

# Reserved and unreserved characters, plus "%" so escapes are not doubled.
LOCATION_SAFE = "/:?#[]@!$&'()*+,;=%~"


@dataclass
class HTTPResponse:
    """
    An HTTP response waiting to be written to the client.

    Handlers return these; the server adds connection headers and calls
    to_bytes().

        HTTPResponse(status=404, body=b"Not Found")
                │
                │  to_bytes()
                ▼
        b"HTTP/1.1 404 Not Found\\r\\nContent-Length: 9\\r\\n...\\r\\n\\r\\nNot Found"
    """

    status: HTTPStatus = HTTPStatus.OK
    headers: Dict[str, str] = field(default_factory=dict)
    body: bytes = b""
    version: str = "HTTP/1.1"

    @property
    def status_line(self) -> str:
        """e.g. "HTTP/1.1 200 OK"."""
        return f"{self.version} {int(self.status)} {self.status.phrase}"

    def set_header(self, name: str, value: str) -> "HTTPResponse":
        """Set a header and return self for chaining."""
        self.headers[name] = value
        return self

    def to_bytes(self, server_name: str = "svgserve") -> bytes:
        """
        Serialize the response.

        =====================================================================
        WIRE FORMAT
        =====================================================================

            HTTP/1.1 200 OK\\r\\n                 ← status line
            Content-Type: image/svg+xml\\r\\n
            Content-Length: 312\\r\\n              ← auto
            Date: Fri, 16 Oct 2026 12:00:00 GMT\\r\\n  ← auto
            Server: svgserve/1.0.0\\r\\n           ← auto
            \\r\\n
            <svg ...>                             ← body bytes, untouched

        =====================================================================

        Args:
            server_name: Value for the Server header.

        Returns:
            The complete response, ready for socket.sendall().
        """
        response_headers = dict(self.headers)

        response_headers.setdefault("Content-Length", str(len(self.body)))
        response_headers.setdefault("Date", format_http_date(datetime.now(timezone.utc)))
        response_headers.setdefault("Server", server_name)

        lines = [self.status_line]
        for name, value in response_headers.items():
            lines.append(f"{name}: {value}")
        lines.append("")

        header_bytes = "\r\n".join(lines).encode("latin-1") + b"\r\n"
        return header_bytes + self.body


class ResponseBuilder:
    """
    Fluent builder for HTTPResponse.

        response = (ResponseBuilder()
            .status(HTTPStatus.OK)
            .svg(content)
            .build())

    Every method except build() returns self.
    """

    def __init__(self):
        self._status = HTTPStatus.OK
        self._headers: Dict[str, str] = {}
        self._body = b""

    def status(self, status: HTTPStatus) -> "ResponseBuilder":
        self._status = HTTPStatus(status)
        return self

    def header(self, name: str, value: str) -> "ResponseBuilder":
        self._headers[name] = value
        return self

    def content_type(self, content_type: str) -> "ResponseBuilder":
        return self.header("Content-Type", content_type)

    def body(self, body: Union[str, bytes]) -> "ResponseBuilder":
        """Set the body; strings are encoded as UTF-8."""
        self._body = body.encode("utf-8") if isinstance(body, str) else body
        return self

    def text(self, text: str) -> "ResponseBuilder":
        """Plain text body with a UTF-8 Content-Type."""
        return self.content_type(TEXT_CONTENT_TYPE).body(text)

    def svg(self, content: bytes) -> "ResponseBuilder":
        """
        SVG body.

        The bytes are sent exactly as read from disk. The media type is
        fixed: only SVG files are ever served, so there is no extension
        lookup.
        """
        return self.content_type(SVG_CONTENT_TYPE).body(content)

    def redirect(
        self,
        location: str,
        status: HTTPStatus = HTTPStatus.TEMPORARY_REDIRECT
    ) -> "ResponseBuilder":
        """
        Redirect to location.

        =====================================================================
        REDIRECT CODES
        =====================================================================

            301 Moved Permanently   cached by browsers, method may change
            302 Found               temporary, method may change
            307 Temporary Redirect  temporary, method preserved (default)

        =====================================================================

        Characters outside US-ASCII are percent-encoded; existing %XX
        escapes are kept as they are.
        """
        self._status = HTTPStatus(status)
        self._headers["Location"] = quote(location, safe=LOCATION_SAFE)
        return self

    def close_connection(self) -> "ResponseBuilder":
        """Mark the response as the last one on this connection."""
        return self.header("Connection", "close")

    def build(self) -> HTTPResponse:
        return HTTPResponse(
            status=self._status,
            headers=self._headers,
            body=self._body,
        )


def format_http_date(dt: datetime) -> str:
    """
    Format a datetime as an HTTP-date (RFC 7231), e.g.
    "Fri, 16 Oct 2026 12:00:00 GMT". The datetime should be UTC.
    """
    days = ["Mon", "Tue", "Wed", "Thu", "Fri", "Sat", "Sun"]
    months = ["Jan", "Feb", "Mar", "Apr", "May", "Jun",
              "Jul", "Aug", "Sep", "Oct", "Nov", "Dec"]

    return (
        f"{days[dt.weekday()]}, "
        f"{dt.day:02d} {months[dt.month - 1]} {dt.year} "
        f"{dt.hour:02d}:{dt.minute:02d}:{dt.second:02d} GMT"
    )


# =============================================================================
# CONVENIENCE FUNCTIONS
# =============================================================================

def svg(content: bytes) -> HTTPResponse:
    """200 OK with an image/svg+xml body."""
    return ResponseBuilder().status(HTTPStatus.OK).svg(content).build()


def redirect(location: str, status: HTTPStatus = HTTPStatus.TEMPORARY_REDIRECT) -> HTTPResponse:
    """Redirect with an empty body."""
    return ResponseBuilder().redirect(location, status).build()


def not_found() -> HTTPResponse:
    """404 with a fixed plain-text body."""
    return ResponseBuilder().status(HTTPStatus.NOT_FOUND).text("Not Found").build()


def method_not_allowed(allowed_methods: list[str]) -> HTTPResponse:
    """405 with an Allow header and no body (RFC 7231 requires Allow)."""
    return (ResponseBuilder()
        .status(HTTPStatus.METHOD_NOT_ALLOWED)
        .header("Allow", ", ".join(allowed_methods))
        .build())


def internal_error() -> HTTPResponse:
    """500 with a fixed plain-text body."""
    return (ResponseBuilder()
        .status(HTTPStatus.INTERNAL_SERVER_ERROR)
        .text("Internal Server Error")
        .build())


def error_response(status: HTTPStatus) -> HTTPResponse:
    """
    Transport-level error (400, 408, 413, 503, 505) that ends the connection.

    The body is the reason phrase only; parser messages stay in the log.
    """
    status = HTTPStatus(status)
    return (ResponseBuilder()
        .status(status)
        .text(status.phrase)
        .close_connection()
        .build())
