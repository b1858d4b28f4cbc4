"""
End-to-end tests against a real server on a loopback port.
"""

import socket
import threading
from pathlib import Path

import pytest

from svgserve import SVGServer, ServerConfig


def read_one_response(sock: socket.socket) -> bytes:
    """Read exactly one response framed by Content-Length."""
    data = b""
    while b"\r\n\r\n" not in data:
        chunk = sock.recv(65536)
        if not chunk:
            return data
        data += chunk

    head, _, body = data.partition(b"\r\n\r\n")
    length = 0
    for line in head.split(b"\r\n")[1:]:
        name, _, value = line.partition(b":")
        if name.strip().lower() == b"content-length":
            length = int(value.strip())

    while len(body) < length:
        chunk = sock.recv(65536)
        if not chunk:
            break
        body += chunk

    return head + b"\r\n\r\n" + body


class TestServing:
    """The main request scenarios."""

    def test_existing_svg(self, test_server, parse_response, svg_root: Path):
        """GET for an existing file returns it as image/svg+xml."""
        status, headers, body = parse_response(test_server.get("/circle.svg"))

        assert status == 200
        assert headers["content-type"] == "image/svg+xml"
        assert body == (svg_root / "circle.svg").read_bytes()
        assert int(headers["content-length"]) == len(body)

    def test_nested_svg(self, test_server, parse_response, svg_root: Path):
        """Files in subdirectories are reachable."""
        status, _, body = parse_response(test_server.get("/icons/arrow.svg"))

        assert status == 200
        assert body == (svg_root / "icons" / "arrow.svg").read_bytes()

    def test_query_string_ignored(self, test_server, parse_response, svg_root: Path):
        """The query string does not affect which file is served."""
        status, _, body = parse_response(test_server.get("/circle.svg?v=2"))

        assert status == 200
        assert body == (svg_root / "circle.svg").read_bytes()

    def test_root_redirect(self, test_server, parse_response):
        """GET / redirects to the index route."""
        status, headers, body = parse_response(test_server.get("/"))

        assert status == 307
        assert headers["location"] == "/home"
        assert body == b""

    def test_index_route_itself_is_resolved(self, test_server, parse_response):
        """The redirect target gets no special treatment."""
        status, _, _ = parse_response(test_server.get("/home"))

        assert status == 404

    @pytest.mark.parametrize("path", [
        "/../secret.txt",
        "/%2e%2e/secret.txt",
        "/icons/../../secret.txt",
    ])
    def test_traversal(self, test_server, parse_response, path: str):
        """Paths that escape the root are a plain 404."""
        status, _, body = parse_response(test_server.get(path))

        assert status == 404
        assert body == b"Not Found"
        assert b"top secret" not in body

    def test_missing_file(self, test_server, parse_response):
        """A file that does not exist is a 404."""
        status, headers, body = parse_response(test_server.get("/missing.svg"))

        assert status == 404
        assert headers["content-type"].startswith("text/plain")
        assert body == b"Not Found"

    @pytest.mark.parametrize("path", ["/icons", "/icons/"])
    def test_directory(self, test_server, parse_response, path: str):
        """Directories are not listed."""
        status, _, _ = parse_response(test_server.get(path))

        assert status == 404

    @pytest.mark.parametrize("method", ["POST", "PUT", "DELETE", "HEAD"])
    def test_method_not_allowed(self, test_server, parse_response, method: str):
        """Methods other than GET get 405 with Allow: GET."""
        status, headers, body = parse_response(test_server.get("/circle.svg", method=method))

        assert status == 405
        assert headers["allow"] == "GET"
        assert body == b""


class TestHeaders:
    """Headers every response carries."""

    @pytest.mark.parametrize("path", ["/circle.svg", "/", "/missing.svg"])
    def test_standard_headers(self, test_server, parse_response, path: str):
        status, headers, body = parse_response(test_server.get(path))

        assert headers["content-length"] == str(len(body))
        assert headers["date"].endswith("GMT")
        assert headers["server"].startswith("svgserve/")
        assert headers["connection"] == "close"
        assert "x-request-id" in headers

    def test_error_does_not_leak_root(self, test_server, svg_root: Path):
        """No response mentions where the files live."""
        raw = test_server.get("/missing.svg")

        assert str(svg_root).encode() not in raw


class TestProtocol:
    """Transport-level behaviour."""

    def test_malformed_request_line(self, test_server, parse_response):
        status, headers, _ = parse_response(test_server.request(b"NONSENSE\r\n\r\n"))

        assert status == 400
        assert headers["connection"] == "close"

    def test_unsupported_version(self, test_server, parse_response):
        raw = test_server.request(b"GET /circle.svg HTTP/2.0\r\nHost: x\r\n\r\n")
        status, _, _ = parse_response(raw)

        assert status == 505

    def test_http_10_closes(self, test_server, parse_response):
        """HTTP/1.0 without keep-alive gets one response and a close."""
        raw = test_server.request(b"GET /circle.svg HTTP/1.0\r\n\r\n")
        status, headers, _ = parse_response(raw)

        assert status == 200
        assert headers["connection"] == "close"

    def test_keep_alive(self, test_server, parse_response, svg_root: Path):
        """Two requests are served over one connection."""
        with socket.create_connection(("127.0.0.1", test_server.port), timeout=5.0) as s:
            s.sendall(b"GET /circle.svg HTTP/1.1\r\nHost: x\r\n\r\n")
            status, headers, body = parse_response(read_one_response(s))

            assert status == 200
            assert headers["connection"] == "keep-alive"
            assert body == (svg_root / "circle.svg").read_bytes()

            s.sendall(b"GET /icons/arrow.svg HTTP/1.1\r\nHost: x\r\nConnection: close\r\n\r\n")
            status, headers, body = parse_response(read_one_response(s))

            assert status == 200
            assert headers["connection"] == "close"
            assert body == (svg_root / "icons" / "arrow.svg").read_bytes()

    def test_pipelined_requests(self, test_server, parse_response):
        """Requests sent back to back are answered in order."""
        with socket.create_connection(("127.0.0.1", test_server.port), timeout=5.0) as s:
            s.sendall(
                b"GET / HTTP/1.1\r\nHost: x\r\n\r\n"
                b"GET /missing.svg HTTP/1.1\r\nHost: x\r\nConnection: close\r\n\r\n"
            )
            first, _, _ = parse_response(read_one_response(s))
            second, _, _ = parse_response(read_one_response(s))

        assert (first, second) == (307, 404)

    def test_request_too_large(self, test_server, parse_response):
        """Headers over the size limit get 413."""
        raw = (
            b"GET /circle.svg HTTP/1.1\r\n"
            b"X-Padding: " + b"a" * (70 * 1024) + b"\r\n\r\n"
        )

        status, _, _ = parse_response(test_server.request(raw))

        assert status == 413


class TestIndexRoute:
    """Redirect target configured with non-ASCII characters."""

    def test_non_ascii_index_route(self, svg_root: Path, free_port: int, parse_response):
        server = SVGServer(ServerConfig(
            port=free_port,
            root_dir=svg_root,
            index_route="/首页",
            min_workers=1,
            max_workers=2,
            log_level="WARNING",
        ))
        thread = threading.Thread(target=server.run, daemon=True)
        thread.start()
        assert server.wait_until_ready(timeout=5.0)

        try:
            with socket.create_connection(("127.0.0.1", free_port), timeout=5.0) as s:
                s.sendall(b"GET / HTTP/1.1\r\nHost: x\r\nConnection: close\r\n\r\n")
                status, headers, body = parse_response(read_one_response(s))
        finally:
            server.shutdown()
            thread.join(timeout=10.0)

        assert status == 307
        assert headers["location"] == "/%E9%A6%96%E9%A1%B5"
        assert body == b""


class TestTimeout:
    """Read timeout on the first request."""

    def test_idle_client_gets_408(self, svg_root: Path, free_port: int, parse_response):
        server = SVGServer(ServerConfig(
            port=free_port,
            root_dir=svg_root,
            min_workers=1,
            max_workers=2,
            timeout=0.5,
            log_level="WARNING",
        ))
        thread = threading.Thread(target=server.run, daemon=True)
        thread.start()
        assert server.wait_until_ready(timeout=5.0)

        try:
            with socket.create_connection(("127.0.0.1", free_port), timeout=5.0) as s:
                s.sendall(b"GET /circle.svg HTTP/1.1\r\n")
                status, headers, _ = parse_response(read_one_response(s))
        finally:
            server.shutdown()
            thread.join(timeout=10.0)

        assert status == 408
        assert headers["connection"] == "close"


class TestLifecycle:
    """Startup and shutdown."""

    def test_url_and_address(self, test_server):
        server = test_server.server

        assert server.is_running
        assert server.url == f"http://127.0.0.1:{test_server.port}"
        assert server.address == ("127.0.0.1", test_server.port)

    def test_port_in_use(self, test_server, svg_root: Path):
        """Binding an occupied port raises OSError from run()."""
        second = SVGServer(ServerConfig(
            port=test_server.port,
            root_dir=svg_root,
            log_level="WARNING",
        ))

        with pytest.raises(OSError):
            second.run()

        assert not second.is_running
