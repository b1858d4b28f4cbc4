"""
=============================================================================
HTTP STATUS CODES
=============================================================================

The status codes svgserve can put on the wire, with their reason phrases.

=============================================================================
WHICH CODES AND WHERE THEY COME FROM
=============================================================================

    ┌─────────────────────────────────────────────────────────────────────┐
    │                    STATUS CODE ORIGINS                              │
    ├─────────────────────────────────────────────────────────────────────┤
    │                                                                      │
    │   REQUEST HANDLER (handler.py)                                      │
    │   ────────────────────────────                                      │
    │   200 OK                    SVG file served                         │
    │   307 Temporary Redirect    "/" → index route                       │
    │   404 Not Found             no servable file for the path           │
    │   405 Method Not Allowed    anything other than GET                 │
    │   500 Internal Server Error file vanished between resolve and read  │
    │                                                                      │
    │   TRANSPORT (server.py, request.py)                                 │
    │   ─────────────────────────────────                                 │
    │   400 Bad Request           malformed request line                  │
    │   408 Request Timeout       client connected but sent nothing       │
    │   413 Payload Too Large     request over max_request_size           │
    │   503 Service Unavailable   worker queue full                       │
    │   505 HTTP Version Not Supported                                    │
    │                                                                      │
    └─────────────────────────────────────────────────────────────────────┘

=============================================================================
"""

from enum import IntEnum


class HTTPStatus(IntEnum):
    """
    HTTP status codes and reason phrases.

    IntEnum, so members compare equal to plain integers:

        >>> HTTPStatus.NOT_FOUND == 404
        True
        >>> HTTPStatus.NOT_FOUND.phrase
        'Not Found'
    """

    # 2xx SUCCESS
    OK = 200

    # 3xx REDIRECTION
    MOVED_PERMANENTLY = 301
    FOUND = 302
    TEMPORARY_REDIRECT = 307    # Like 302 but the client must keep the method

    # 4xx CLIENT ERRORS
    BAD_REQUEST = 400
    NOT_FOUND = 404
    METHOD_NOT_ALLOWED = 405
    REQUEST_TIMEOUT = 408
    PAYLOAD_TOO_LARGE = 413

    # 5xx SERVER ERRORS
    INTERNAL_SERVER_ERROR = 500
    SERVICE_UNAVAILABLE = 503
    HTTP_VERSION_NOT_SUPPORTED = 505

    @property
    def phrase(self) -> str:
        """
        Reason phrase for the status line.

            HTTP/1.1 404 Not Found
                     ─── ─────────
                      │      └── phrase
                      └───────── code
        """
        return _STATUS_PHRASES.get(self, "Unknown")

    @property
    def is_success(self) -> bool:
        """True for 2xx."""
        return 200 <= self < 300

    @property
    def is_redirect(self) -> bool:
        """True for 3xx."""
        return 300 <= self < 400

    @property
    def is_client_error(self) -> bool:
        """True for 4xx."""
        return 400 <= self < 500

    @property
    def is_server_error(self) -> bool:
        """True for 5xx."""
        return 500 <= self < 600

    @property
    def is_error(self) -> bool:
        """True for 4xx and 5xx."""
        return self >= 400


_STATUS_PHRASES = {
    HTTPStatus.OK: "OK",

    HTTPStatus.MOVED_PERMANENTLY: "Moved Permanently",
    HTTPStatus.FOUND: "Found",
    HTTPStatus.TEMPORARY_REDIRECT: "Temporary Redirect",

    HTTPStatus.BAD_REQUEST: "Bad Request",
    HTTPStatus.NOT_FOUND: "Not Found",
    HTTPStatus.METHOD_NOT_ALLOWED: "Method Not Allowed",
    HTTPStatus.REQUEST_TIMEOUT: "Request Timeout",
    HTTPStatus.PAYLOAD_TOO_LARGE: "Payload Too Large",

    HTTPStatus.INTERNAL_SERVER_ERROR: "Internal Server Error",
    HTTPStatus.SERVICE_UNAVAILABLE: "Service Unavailable",
    HTTPStatus.HTTP_VERSION_NOT_SUPPORTED: "HTTP Version Not Supported",
}
