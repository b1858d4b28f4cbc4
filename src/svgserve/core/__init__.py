"""
=============================================================================
CORE NETWORKING
=============================================================================

    ┌─────────────────────────────────────────────────────────────────────┐
    │ SOCKET SERVER                                                        │
    │   listening socket, accept loop, SIGINT/SIGTERM → shutdown          │
    └─────────────────────────────────────────────────────────────────────┘
                                    │ one Connection per client
                                    ▼
    ┌─────────────────────────────────────────────────────────────────────┐
    │ THREAD POOL                                                          │
    │   bounded queue, min..max workers; full queue → caller sends 503    │
    └─────────────────────────────────────────────────────────────────────┘
                                    │ worker runs the connection
                                    ▼
    ┌─────────────────────────────────────────────────────────────────────┐
    │ CONNECTION                                                           │
    │   frames requests out of the byte stream, keep-alive, close         │
    └─────────────────────────────────────────────────────────────────────┘

Nothing in this package knows what is being served.

=============================================================================
"""

from .socket_server import SocketServer
from .connection import Connection, ConnectionState, RequestTooLarge
from .thread_pool import ThreadPool

__all__ = [
    "SocketServer",
    "Connection",
    "ConnectionState",
    "RequestTooLarge",
    "ThreadPool",
]
