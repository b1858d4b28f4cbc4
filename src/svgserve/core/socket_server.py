"""
=============================================================================
SOCKET SERVER
=============================================================================

The listening socket and the accept loop. Knows nothing about HTTP: every
accepted client is wrapped in a Connection and handed to a callback.

=============================================================================
LIFECYCLE
=============================================================================

    ┌─────────────────────────────────────────────────────────────────────┐
    │                                                                      │
    │   start(handler)                                                     │
    │      ├──► _create_socket()   AF_INET or AF_INET6, SO_REUSEADDR,     │
    │      │                       TCP_NODELAY, 1s accept timeout          │
    │      ├──► bind((bind_address, port))    OSError → logged, re-raised │
    │      ├──► listen(backlog)                                            │
    │      ├──► _setup_signals()   SIGINT/SIGTERM → shutdown()            │
    │      └──► _accept_loop()     blocks until shutdown()                │
    │                                                                      │
    │   shutdown()   clears the running flag; the loop notices within 1s  │
    │   _cleanup()   restores signal handlers, closes the socket          │
    │                                                                      │
    └─────────────────────────────────────────────────────────────────────┘

Signal handlers can only be installed from the main thread. When the
server runs in a background thread (as it does in the test suite) the
caller is responsible for calling shutdown().

=============================================================================
"""

import socket
import signal
import logging
import threading
from typing import Optional, Callable, Tuple

from ..config import ServerConfig
from .connection import Connection


logger = logging.getLogger(__name__)


class SocketServer:
    """
    Low-level TCP server.

    Usage:
        def handle_connection(conn: Connection):
            ...

        server = SocketServer(config)
        server.start(handle_connection)  # blocks until shutdown()
    """

    def __init__(self, config: ServerConfig):
        self.config = config
        self._socket: Optional[socket.socket] = None
        self._running = False

        self._ready_event = threading.Event()

        self._original_handlers: dict = {}

    @property
    def is_running(self) -> bool:
        return self._running

    @property
    def address(self) -> Tuple[str, int]:
        """(address, port) actually bound, or the configured pair before start()."""
        if self._socket is not None:
            try:
                bound = self._socket.getsockname()
                return (bound[0], bound[1])
            except OSError:
                pass
        return (self.config.bind_address, self.config.port)

    def _create_socket(self) -> socket.socket:
        family = socket.AF_INET6 if self.config.is_ipv6 else socket.AF_INET
        sock = socket.socket(family, socket.SOCK_STREAM)

        # Restarting right after a shutdown must not fail on TIME_WAIT.
        sock.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
        sock.setsockopt(socket.IPPROTO_TCP, socket.TCP_NODELAY, 1)

        # accept() wakes up once a second to check the running flag.
        sock.settimeout(1.0)

        return sock

    def _setup_signals(self):
        if threading.current_thread() is not threading.main_thread():
            logger.debug("Not in main thread; signal handlers not installed")
            return

        def shutdown_handler(signum, frame):
            signal_name = signal.Signals(signum).name
            logger.info(f"Received {signal_name}, initiating shutdown...")
            self.shutdown()

        self._original_handlers[signal.SIGTERM] = signal.signal(signal.SIGTERM, shutdown_handler)
        self._original_handlers[signal.SIGINT] = signal.signal(signal.SIGINT, shutdown_handler)

    def _restore_signals(self):
        for sig, handler in self._original_handlers.items():
            signal.signal(sig, handler)
        self._original_handlers.clear()

    def start(self, connection_handler: Callable[[Connection], None]):
        """
        Bind, listen and accept connections until shutdown().

        Args:
            connection_handler: Called once per accepted connection, on the
                                accept thread. It must not block; the HTTP
                                server hands the connection to its pool.

        Raises:
            OSError: If the address cannot be bound (in use, no permission).
        """
        self._socket = self._create_socket()

        host, port = self.config.bind_address, self.config.port
        try:
            self._socket.bind((host, port))
        except OSError as e:
            logger.error(f"Failed to bind to {host}:{port}: {e}")
            self._socket.close()
            self._socket = None
            raise

        self._socket.listen(self.config.backlog)

        self._running = True
        self._setup_signals()

        logger.info(f"Server listening on {host}:{port}")
        self._ready_event.set()

        try:
            self._accept_loop(connection_handler)
        finally:
            self._cleanup()

    def _accept_loop(self, connection_handler: Callable[[Connection], None]):
        while self._running:
            try:
                client_socket, client_address = self._socket.accept()
            except socket.timeout:
                continue
            except OSError as e:
                if self._running:
                    logger.error(f"Accept error: {e}")
                break

            logger.debug(f"Accepted connection from {client_address[0]}:{client_address[1]}")

            conn = Connection.from_config(client_socket, client_address, self.config)
            connection_handler(conn)

    def shutdown(self):
        """Stop accepting. Idempotent and safe from any thread or a signal handler."""
        if self._running:
            logger.info("Shutting down socket server...")
        self._running = False

    def _cleanup(self):
        self._restore_signals()

        if self._socket:
            try:
                self._socket.close()
            except OSError:
                pass
            self._socket = None

        self._ready_event.clear()
        logger.info("Socket server stopped")

    def wait_until_ready(self, timeout: Optional[float] = None) -> bool:
        """Block until the socket is listening. True if it is."""
        return self._ready_event.wait(timeout)
