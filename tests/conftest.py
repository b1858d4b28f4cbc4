"""
pytest configuration and fixtures.
"""

import socket
import threading
from typing import Generator
import pytest

# Add src to path for imports
import sys
from pathlib import Path
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from svgserve import SVGServer, ServerConfig


CIRCLE_SVG = (
    b'<svg xmlns="http://www.w3.org/2000/svg" width="10" height="10">'
    b'<circle cx="5" cy="5" r="4"/></svg>'
)
ARROW_SVG = b'<svg xmlns="http://www.w3.org/2000/svg"><path d="M0 0L5 5"/></svg>'


@pytest.fixture
def svg_root(tmp_path: Path) -> Path:
    """
    A served directory with a sibling secret one level up:

        tmp_path/
            secret.txt
            root/
                circle.svg
                icons/
                    arrow.svg
    """
    root = tmp_path / "root"
    (root / "icons").mkdir(parents=True)
    (root / "circle.svg").write_bytes(CIRCLE_SVG)
    (root / "icons" / "arrow.svg").write_bytes(ARROW_SVG)
    (tmp_path / "secret.txt").write_text("top secret")
    return root


@pytest.fixture
def config(svg_root: Path) -> ServerConfig:
    """Default test configuration serving svg_root."""
    return ServerConfig(root_dir=svg_root, min_workers=2, max_workers=4, timeout=5.0)


@pytest.fixture
def sample_get_request() -> bytes:
    """Sample HTTP GET request."""
    return (
        b"GET /icons/arrow.svg?v=2&theme=dark HTTP/1.1\r\n"
        b"Host: localhost:5000\r\n"
        b"User-Agent: pytest\r\n"
        b"Accept: image/svg+xml\r\n"
        b"Connection: keep-alive\r\n"
        b"\r\n"
    )


@pytest.fixture
def free_port() -> int:
    """Get a free port for testing."""
    with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as s:
        s.bind(('127.0.0.1', 0))
        return s.getsockname()[1]


class TestServer:
    """Test server helper that runs in a background thread."""

    __test__ = False

    def __init__(self, server: SVGServer):
        self.server = server
        self.port = server.config.port
        self._thread: threading.Thread = None

    def start(self):
        """Start server in background thread."""
        self._thread = threading.Thread(target=self.server.run, daemon=True)
        self._thread.start()

        if not self.server.wait_until_ready(timeout=5.0):
            raise RuntimeError("Server failed to start")

    def stop(self):
        """Stop the server."""
        self.server.shutdown()

        if self._thread and self._thread.is_alive():
            self._thread.join(timeout=10.0)

    def request(self, raw: bytes, timeout: float = 5.0) -> bytes:
        """Send raw bytes and read until the server closes the connection."""
        with socket.create_connection(("127.0.0.1", self.port), timeout=timeout) as s:
            s.sendall(raw)
            chunks = []
            while True:
                chunk = s.recv(65536)
                if not chunk:
                    break
                chunks.append(chunk)
        return b"".join(chunks)

    def get(self, path: str, method: str = "GET") -> bytes:
        """One request with Connection: close."""
        return self.request(
            f"{method} {path} HTTP/1.1\r\n"
            f"Host: 127.0.0.1:{self.port}\r\n"
            f"Connection: close\r\n"
            f"\r\n".encode("latin-1")
        )


def split_response(raw: bytes):
    """Split a raw response into (status_code, headers, body)."""
    head, _, body = raw.partition(b"\r\n\r\n")
    lines = head.decode("latin-1").split("\r\n")
    status_code = int(lines[0].split(" ")[1])
    headers = {}
    for line in lines[1:]:
        name, _, value = line.partition(":")
        headers[name.strip().lower()] = value.strip()
    return status_code, headers, body


@pytest.fixture
def test_server(svg_root: Path, free_port: int) -> Generator[TestServer, None, None]:
    """A running server on a free port, serving svg_root."""
    server = SVGServer(ServerConfig(
        bind_address="127.0.0.1",
        port=free_port,
        root_dir=svg_root,
        min_workers=2,
        max_workers=4,
        timeout=5.0,
        keep_alive_timeout=1.0,
        log_level="WARNING",
    ))

    test_srv = TestServer(server)
    test_srv.start()

    yield test_srv

    test_srv.stop()


@pytest.fixture
def parse_response():
    """Fixture form of split_response()."""
    return split_response
