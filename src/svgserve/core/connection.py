"""
=============================================================================
CLIENT CONNECTION
=============================================================================

Wraps one accepted client socket: buffered request framing, timeouts,
keep-alive bookkeeping and an orderly close.

=============================================================================
FRAMING A REQUEST OUT OF A BYTE STREAM
=============================================================================

TCP does not preserve message boundaries. A single GET may arrive as

        recv() → "GET /circ"
        recv() → "le.svg HTTP/1.1\\r\\nHost: x\\r\\n\\r\\n"

or two pipelined requests may arrive in one recv(). The connection keeps
a buffer and cuts exactly one request out of it per read_request() call:

    ┌─────────────────────────────────────────────────────────────────────┐
    │   _buffer                                                            │
    │   ┌───────────────────────────────┬───────────┬───────────────────┐ │
    │   │ request line + headers        │ \\r\\n\\r\\n  │ body (Content-    │ │
    │   │                               │           │ Length bytes)     │ │
    │   └───────────────────────────────┴───────────┴───────────────────┘ │
    │   ◄──────────────── returned by read_request() ─────────────────►   │
    │                                                        leftovers stay│
    └─────────────────────────────────────────────────────────────────────┘

=============================================================================
TIMEOUTS
=============================================================================

    first request       config.timeout (30s)      expiry → TimeoutError (408)
    later requests      config.keep_alive_timeout expiry → None (quiet close)

=============================================================================
"""

import socket
import time
import logging
from enum import Enum
from dataclasses import dataclass, field
from typing import Optional
import uuid


logger = logging.getLogger(__name__)


class RequestTooLarge(ValueError):
    """The buffered request grew past max_request_size (answered with 413)."""


class ConnectionState(Enum):
    NEW = "new"
    READING = "reading"
    PROCESSING = "processing"
    WRITING = "writing"
    KEEP_ALIVE = "keep_alive"
    CLOSING = "closing"
    CLOSED = "closed"


@dataclass
class Connection:
    """
    A client connection.

    Attributes:
        socket: The accepted client socket.
        address: Peer (ip, port). IPv6 peers carry extra tuple fields,
                 only the first two are used.
        id: Short identifier used to correlate log lines.
        requests_handled: Requests read so far on this connection.
    """

    socket: socket.socket
    address: tuple

    id: str = field(default_factory=lambda: str(uuid.uuid4())[:8])
    state: ConnectionState = ConnectionState.NEW
    created_at: float = field(default_factory=time.time)
    last_activity: float = field(default_factory=time.time)
    requests_handled: int = 0

    buffer_size: int = 8192
    timeout: Optional[float] = 30.0
    keep_alive_timeout: float = 5.0
    max_request_size: int = 64 * 1024

    _buffer: bytes = field(default=b"", repr=False)

    def __post_init__(self):
        self.socket.setblocking(True)
        if self.timeout:
            self.socket.settimeout(self.timeout)

    @classmethod
    def from_config(cls, sock: socket.socket, address: tuple, config) -> "Connection":
        """Create a connection using the transport settings of a ServerConfig."""
        return cls(
            socket=sock,
            address=address,
            buffer_size=config.buffer_size,
            timeout=config.timeout,
            keep_alive_timeout=config.keep_alive_timeout,
            max_request_size=config.max_request_size,
        )

    # =========================================================================
    # PROPERTIES
    # =========================================================================

    @property
    def client_ip(self) -> str:
        return self.address[0]

    @property
    def client_port(self) -> int:
        return self.address[1]

    # =========================================================================
    # READING
    # =========================================================================

    def read_request(self) -> Optional[bytes]:
        """
        Read one complete HTTP request from the socket.

        Returns:
            The request bytes (headers, blank line and Content-Length body),
            or None if the client closed the connection or an idle
            keep-alive connection timed out.

        Raises:
            TimeoutError: The first request did not arrive in time.
            RequestTooLarge: The request exceeded max_request_size.
        """
        self.state = ConnectionState.READING
        self.last_activity = time.time()

        if self.requests_handled > 0:
            self.socket.settimeout(self.keep_alive_timeout)

        try:
            # ─────────────────────────────────────────────────────────────
            # HEADERS: read until the blank line
            # ─────────────────────────────────────────────────────────────
            while b"\r\n\r\n" not in self._buffer:
                chunk = self._recv()
                if not chunk:
                    return None

                self._buffer += chunk
                self._check_size()

            header_end = self._buffer.find(b"\r\n\r\n")
            body_start = header_end + 4

            # ─────────────────────────────────────────────────────────────
            # BODY: exactly Content-Length bytes, if any
            # ─────────────────────────────────────────────────────────────
            content_length = self._parse_content_length(self._buffer[:header_end])

            while len(self._buffer) - body_start < content_length:
                chunk = self._recv()
                if not chunk:
                    break  # closed mid-body; the parser reports it as 400

                self._buffer += chunk
                self._check_size()

            # Leftover bytes belong to the next pipelined request.
            request_end = body_start + content_length
            request_data = self._buffer[:request_end]
            self._buffer = self._buffer[request_end:]

            self.requests_handled += 1
            self.last_activity = time.time()
            self.state = ConnectionState.PROCESSING

            return request_data

        except socket.timeout:
            if self.requests_handled > 0:
                logger.debug(f"[{self.id}] Keep-alive timeout")
                return None
            raise TimeoutError("Request read timeout")

        finally:
            try:
                self.socket.settimeout(self.timeout)
            except OSError:
                pass

    def _check_size(self):
        if len(self._buffer) > self.max_request_size:
            raise RequestTooLarge(f"Request too large: {len(self._buffer)} bytes")

    def _recv(self) -> bytes:
        try:
            data = self.socket.recv(self.buffer_size)
            self.last_activity = time.time()
            return data
        except (ConnectionResetError, BrokenPipeError):
            return b""

    def _parse_content_length(self, headers: bytes) -> int:
        """
        Find Content-Length in raw header bytes, 0 if absent or malformed.

        Only used for framing. A malformed value is rejected later by the
        request parser.
        """
        try:
            header_str = headers.decode("latin-1").lower()
            for line in header_str.split("\r\n"):
                if line.startswith("content-length:"):
                    return max(0, int(line.split(":", 1)[1].strip()))
        except (ValueError, IndexError):
            pass
        return 0

    # =========================================================================
    # WRITING
    # =========================================================================

    def send_response(self, data: bytes) -> bool:
        """
        Send a serialized response with sendall().

        Returns:
            True if sent, False if the client went away.
        """
        self.state = ConnectionState.WRITING
        self.last_activity = time.time()

        try:
            self.socket.sendall(data)
            self.last_activity = time.time()
            return True
        except OSError as e:
            logger.warning(f"[{self.id}] Send failed: {e}")
            return False

    # =========================================================================
    # CLOSING
    # =========================================================================

    def close(self):
        """
        Close the connection: send FIN, drain what the client still sends,
        release the descriptor. Safe to call more than once.
        """
        if self.state == ConnectionState.CLOSED:
            return

        self.state = ConnectionState.CLOSING

        try:
            self.socket.shutdown(socket.SHUT_WR)
        except OSError:
            pass

        try:
            self.socket.settimeout(0.5)
            while self.socket.recv(1024):
                pass
        except OSError:
            pass

        try:
            self.socket.close()
        except OSError:
            pass

        self.state = ConnectionState.CLOSED
        logger.debug(
            f"[{self.id}] Connection closed after {self.requests_handled} requests "
            f"({time.time() - self.created_at:.2f}s)"
        )

    def set_keep_alive(self):
        """Mark the connection as waiting for its next request."""
        self.state = ConnectionState.KEEP_ALIVE

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()
        return False
