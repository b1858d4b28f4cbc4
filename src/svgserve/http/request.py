"""
=============================================================================
HTTP REQUEST PARSER
=============================================================================

Turns the raw bytes of one HTTP/1.x request into an HTTPRequest.

=============================================================================
WHAT THE PARSER PRODUCES
=============================================================================

    ┌─────────────────────────────────────────────────────────────────────┐
    │                     REQUEST LINE → HTTPRequest                      │
    ├─────────────────────────────────────────────────────────────────────┤
    │                                                                      │
    │    GET /icons/circle%20big.svg?v=2 HTTP/1.1\r\n                     │
    │    ─┬─ ────────────┬──────────────── ───┬────                       │
    │     │              │                    │                            │
    │   method        request-target       version                        │
    │                    │                                                 │
    │          ┌─────────┴──────────┐                                     │
    │          │                    │                                      │
    │   path (decoded)          query string                              │
    │   /icons/circle big.svg   v=2                                        │
    │                                                                      │
    └─────────────────────────────────────────────────────────────────────┘

The path handed to the rest of the server is the RequestPath: percent-
decoded, query string and fragment removed, always starting with "/".

=============================================================================
WHAT THE PARSER DOES NOT DO
=============================================================================

- It does not decide which methods are allowed. Any syntactically valid
  method token is passed through; the request handler answers 405.
- It does not reject ".." segments. Traversal is the resolver's job and
  must come back as an ordinary 404, not a 400 from the parser.
- It does not understand Transfer-Encoding: chunked. svgserve never reads
  request bodies, so Content-Length is only used to frame the message.

=============================================================================
"""

from dataclasses import dataclass, field
from typing import Dict
from urllib.parse import urlsplit, unquote
import re


class HTTPParseError(Exception):
    """
    Raised when a request cannot be parsed.

    Carries the status code the server should answer with:

        400 Bad Request                 - malformed syntax
        413 Payload Too Large           - over max_request_size
        505 HTTP Version Not Supported  - not HTTP/1.0 or HTTP/1.1
    """

    def __init__(self, message: str, status_code: int = 400):
        super().__init__(message)
        self.status_code = status_code


@dataclass
class HTTPRequest:
    """
    A parsed HTTP request.

    Header names are stored lowercase, so lookups never need to care how
    the client capitalised them.
    """

    method: str
    path: str
    version: str = "HTTP/1.1"

    headers: Dict[str, str] = field(default_factory=dict)
    query_string: str = ""
    body: bytes = b""

    client_address: tuple[str, int] = ("", 0)
    raw: bytes = field(default=b"", repr=False)

    @property
    def content_length(self) -> int:
        """Content-Length as an int, 0 when missing or invalid."""
        try:
            return int(self.headers.get("content-length", 0))
        except ValueError:
            return 0

    @property
    def host(self) -> str:
        return self.headers.get("host", "")

    @property
    def user_agent(self) -> str:
        return self.headers.get("user-agent", "")

    @property
    def is_keep_alive(self) -> bool:
        """
        Whether the connection stays open after this request.

        =====================================================================
        KEEP-ALIVE DEFAULTS
        =====================================================================

            HTTP/1.1   open unless "Connection: close"
            HTTP/1.0   closed unless "Connection: keep-alive"

        =====================================================================
        """
        connection = self.headers.get("connection", "").lower()

        if self.version == "HTTP/1.1":
            return connection != "close"
        return connection == "keep-alive"

    def get_header(self, name: str, default: str = "") -> str:
        """Case-insensitive header lookup."""
        return self.headers.get(name.lower(), default)


class RequestParser:
    """
    Parses raw request bytes into HTTPRequest objects.

    =========================================================================
    PARSING STEPS
    =========================================================================

        raw bytes
            │
            ├── 1. size check ............... > max_request_size → 413
            ├── 2. split at \\r\\n\\r\\n ........ missing → 400
            ├── 3. request line ............. malformed → 400
            │                                 bad version → 505
            ├── 4. request-target → path ..... not origin/absolute form → 400
            ├── 5. headers (lowercased, duplicates joined with ", ")
            └── 6. body framed by Content-Length
            │
            ▼
        HTTPRequest

    =========================================================================
    """

    # METHOD SP REQUEST-TARGET SP HTTP-VERSION
    REQUEST_LINE_PATTERN = re.compile(r"^([A-Z]+) ([^ ]+) (HTTP/\d\.\d)$")
    HEADER_PATTERN = re.compile(r"^([^:]+):\s*(.*)$")

    SUPPORTED_VERSIONS = ("HTTP/1.0", "HTTP/1.1")

    def __init__(self, max_request_size: int = 64 * 1024):
        self.max_request_size = max_request_size

    def parse(
        self,
        data: bytes,
        client_address: tuple[str, int] = ("", 0)
    ) -> HTTPRequest:
        """
        Parse one complete request.

        Args:
            data: Raw request bytes, as returned by Connection.read_request().
            client_address: The peer's (ip, port), kept for the access log.

        Returns:
            The parsed HTTPRequest.

        Raises:
            HTTPParseError: If the request is malformed.
        """
        if len(data) > self.max_request_size:
            raise HTTPParseError(
                f"Request too large: {len(data)} bytes",
                status_code=413,
            )

        header_end = data.find(b"\r\n\r\n")
        if header_end == -1:
            raise HTTPParseError("Incomplete request: no header terminator")

        # Header bytes are ISO-8859-1 on the wire; latin-1 never fails.
        header_section = data[:header_end].decode("latin-1")
        body = data[header_end + 4:]

        lines = header_section.split("\r\n")
        method, path, query_string, version = self._parse_request_line(lines[0])
        headers = self._parse_headers(lines[1:])

        raw_length = headers.get("content-length", "0")
        try:
            content_length = int(raw_length)
        except ValueError:
            raise HTTPParseError(f"Invalid Content-Length: {raw_length!r}")
        if content_length < 0:
            raise HTTPParseError(f"Invalid Content-Length: {raw_length!r}")

        if len(body) < content_length:
            raise HTTPParseError(
                f"Incomplete body: expected {content_length} bytes, got {len(body)}"
            )

        return HTTPRequest(
            method=method,
            path=path,
            version=version,
            headers=headers,
            query_string=query_string,
            body=body[:content_length],
            client_address=client_address,
            raw=data,
        )

    def _parse_request_line(self, line: str) -> tuple[str, str, str, str]:
        """
        Split the request line into (method, path, query_string, version).

        =====================================================================
        REQUEST-TARGET FORMS
        =====================================================================

            origin-form     /icons/circle.svg?x=1     (what browsers send)
            absolute-form   http://host/icons/circle.svg  (what proxies send)

        Anything else ("*", "icons/circle.svg") is rejected with 400.

        The query string is cut off BEFORE percent-decoding, so an encoded
        "%3F" stays part of the path instead of starting a query.

        =====================================================================
        """
        match = self.REQUEST_LINE_PATTERN.match(line)
        if not match:
            raise HTTPParseError(f"Invalid request line: {line!r}")

        method, target, version = match.groups()

        if version not in self.SUPPORTED_VERSIONS:
            raise HTTPParseError(
                f"Unsupported HTTP version: {version}",
                status_code=505,
            )

        if target.startswith(("http://", "https://")):
            split = urlsplit(target)
            raw_path, query_string = split.path or "/", split.query
        elif target.startswith("/"):
            target = target.split("#", 1)[0]
            raw_path, _, query_string = target.partition("?")
        else:
            raise HTTPParseError(f"Invalid request target: {target!r}")

        return method, unquote(raw_path), query_string, version

    def _parse_headers(self, lines: list[str]) -> Dict[str, str]:
        """
        Parse header lines into a dict keyed by lowercase name.

        Obsolete line folding (a line starting with whitespace) continues the
        previous header. Repeated headers are joined with ", " as RFC 7230
        allows. Lines without a colon are skipped.
        """
        headers: Dict[str, str] = {}
        current_name = None

        for line in lines:
            if not line:
                continue

            if line[0] in (" ", "\t"):
                if current_name is not None:
                    headers[current_name] += " " + line.strip()
                continue

            match = self.HEADER_PATTERN.match(line)
            if not match:
                continue

            name, value = match.groups()
            name = name.strip().lower()
            value = value.strip()
            current_name = name

            if name in headers:
                headers[name] += ", " + value
            else:
                headers[name] = value

        return headers


def parse_request(
    data: bytes,
    client_address: tuple[str, int] = ("", 0),
    max_size: int = 64 * 1024
) -> HTTPRequest:
    """Parse a single request with a throwaway RequestParser."""
    return RequestParser(max_request_size=max_size).parse(data, client_address)
