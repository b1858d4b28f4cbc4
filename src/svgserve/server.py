"""
=============================================================================
SVG SERVER
=============================================================================

Ties the transport, the HTTP layer, the middleware pipeline and the
request handler together.

=============================================================================
ARCHITECTURE
=============================================================================

    ┌─────────────────────────────────────────────────────────────────────┐
    │                                                                      │
    │                        ┌─────────────────┐                          │
    │                        │    SVGServer    │                          │
    │                        └────────┬────────┘                          │
    │            ┌────────────────────┼────────────────────┐              │
    │            ▼                    ▼                    ▼              │
    │    ┌──────────────┐    ┌──────────────┐    ┌──────────────────┐    │
    │    │ SocketServer │    │  ThreadPool  │    │ MiddlewarePipeline│   │
    │    │   accept()   │    │   workers    │    │  → handle()       │   │
    │    └──────┬───────┘    └──────┬───────┘    │  → resolve()      │   │
    │           │                   │            └──────────────────┘    │
    │           └──── Connection ───┘                                     │
    │                                                                      │
    └─────────────────────────────────────────────────────────────────────┘

=============================================================================
REQUEST LIFECYCLE
=============================================================================

    1. SocketServer accepts, wraps the socket in a Connection
    2. Connection is queued on the ThreadPool (queue full → 503, close)
    3. Worker: read_request() → RequestParser.parse()
         parse error  → 400 / 413 / 505, close
         read timeout → 408, close
    4. Middleware pipeline (access log) → handle(method, path, config)
         unexpected exception → 500, traceback in the log only
    5. Connection / Keep-Alive headers, serialize, sendall()
    6. Keep-alive → back to 3; otherwise close

=============================================================================
"""

import logging
from typing import Optional, Callable

from .config import ServerConfig
from .core import SocketServer, Connection, ThreadPool, RequestTooLarge
from .handler import handle
from .http import (
    HTTPRequest, RequestParser, HTTPParseError,
    HTTPResponse, HTTPStatus,
    internal_error, error_response,
)
from .middleware import MiddlewarePipeline, Middleware, LoggingMiddleware


logger = logging.getLogger(__name__)


class SVGServer:
    """
    HTTP/1.1 server for one directory of SVG files.

        server = SVGServer(ServerConfig(port=8080, root_dir=Path("icons")))
        server.run()  # blocks until SIGINT/SIGTERM or shutdown()

    Access logging is installed by default; further middleware can be
    added with use() before run().
    """

    def __init__(self, config: Optional[ServerConfig] = None, access_log: bool = True):
        """
        Args:
            config: Validated configuration. Defaults to ServerConfig(),
                    i.e. the current directory on 127.0.0.1:5000.
            access_log: Install LoggingMiddleware.
        """
        self.config = config or ServerConfig()

        self._socket_server = SocketServer(self.config)
        self._thread_pool = ThreadPool.from_config(self.config)
        self._parser = RequestParser(max_request_size=self.config.max_request_size)

        self._middleware = MiddlewarePipeline()
        if access_log:
            self._middleware.add(LoggingMiddleware(log_format=self.config.log_format))

        self._handler: Optional[Callable[[HTTPRequest], HTTPResponse]] = None
        self._running = False

    def use(self, middleware: Middleware) -> "SVGServer":
        """Add middleware inside the ones already installed."""
        self._middleware.add(middleware)
        return self

    @property
    def is_running(self) -> bool:
        return self._running

    @property
    def address(self):
        """(address, port) the server is bound to."""
        return self._socket_server.address

    @property
    def url(self) -> str:
        host = self.config.bind_address
        if self.config.is_ipv6:
            host = f"[{host}]"
        return f"http://{host}:{self.config.port}"

    # =========================================================================
    # LIFECYCLE
    # =========================================================================

    def run(self):
        """
        Serve until shutdown (blocking).

        Raises:
            OSError: If the listening socket cannot be bound.
        """
        self._running = True

        self._setup_logging()
        self._handler = self._middleware.wrap(self._dispatch)
        self._thread_pool.start()

        logger.info(f"Serving SVG files from {self.config.root_dir} at {self.url}")
        logger.info(f"/ redirects to {self.config.index_route}")

        try:
            self._socket_server.start(self._handle_connection)
        except KeyboardInterrupt:
            logger.info("Received keyboard interrupt")
        finally:
            self._shutdown()

    def shutdown(self):
        """Ask a running server to stop. Returns immediately."""
        self._socket_server.shutdown()

    def wait_until_ready(self, timeout: Optional[float] = None) -> bool:
        """Block until the socket is listening (for embedding and tests)."""
        return self._socket_server.wait_until_ready(timeout)

    def _setup_logging(self):
        level = getattr(logging, self.config.log_level.upper(), logging.INFO)

        logging.basicConfig(
            level=level,
            format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
            datefmt="%Y-%m-%d %H:%M:%S",
        )
        logging.getLogger("svgserve").setLevel(level)

    def _shutdown(self):
        logger.info("Shutting down server...")
        self._running = False

        logger.debug(f"Thread pool stats: {self._thread_pool.stats}")
        self._thread_pool.shutdown(wait=True, timeout=self.config.keep_alive_timeout + 1.0)

        logger.info("Server stopped")

    # =========================================================================
    # REQUEST HANDLING
    # =========================================================================

    def _dispatch(self, request: HTTPRequest) -> HTTPResponse:
        return handle(request.method, request.path, self.config)

    def _handle_connection(self, conn: Connection):
        """Runs on the accept thread: hand the connection to a worker."""
        submitted = self._thread_pool.submit(
            self._process_connection,
            args=(conn,),
            block=False,
        )

        if not submitted:
            logger.warning(f"[{conn.id}] Thread pool full, rejecting connection")
            self._send_error(conn, HTTPStatus.SERVICE_UNAVAILABLE)
            conn.close()

    def _process_connection(self, conn: Connection):
        """
        The keep-alive loop for one connection (runs on a worker thread).

        Transport errors get a bare status response and end the
        connection. Handler exceptions become a 500 and the connection
        continues as normal.
        """
        with conn:
            while self._running:
                try:
                    raw_request = conn.read_request()
                except TimeoutError:
                    self._send_error(conn, HTTPStatus.REQUEST_TIMEOUT)
                    break
                except RequestTooLarge as e:
                    logger.info(f"[{conn.id}] {e}")
                    self._send_error(conn, HTTPStatus.PAYLOAD_TOO_LARGE)
                    break
                except OSError as e:
                    logger.debug(f"[{conn.id}] Read failed: {e}")
                    break

                if raw_request is None:
                    break

                try:
                    request = self._parser.parse(raw_request, conn.address[:2])
                except HTTPParseError as e:
                    logger.info(f"[{conn.id}] Bad request from {conn.client_ip}: {e}")
                    self._send_error(conn, e.status_code)
                    break

                try:
                    response = self._handler(request)
                except Exception as e:
                    logger.exception(f"[{conn.id}] Handler error: {e}")
                    response = internal_error()

                keep_alive = (
                    request.is_keep_alive
                    and self.config.keep_alive
                    and response.headers.get("Connection") != "close"
                )

                if keep_alive:
                    response.headers.setdefault("Connection", "keep-alive")
                    response.headers.setdefault(
                        "Keep-Alive",
                        f"timeout={int(self.config.keep_alive_timeout)}"
                    )
                else:
                    response.headers["Connection"] = "close"

                if not conn.send_response(response.to_bytes(self.config.server_name)):
                    break

                if not keep_alive:
                    break

                conn.set_keep_alive()

    def _send_error(self, conn: Connection, status: HTTPStatus):
        response = error_response(status)
        conn.send_response(response.to_bytes(self.config.server_name))

