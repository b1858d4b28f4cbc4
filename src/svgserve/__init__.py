"""
=============================================================================
SVGSERVE
=============================================================================

A small HTTP/1.1 server that exposes one directory of SVG files, read-only.

    GET /                 → 307 to the index route (default /home)
    GET /icons/arrow.svg  → 200 image/svg+xml, the file's bytes
    GET /../etc/passwd    → 404, nothing outside the root is reachable
    POST /anything        → 405, Allow: GET

=============================================================================
QUICK START
=============================================================================

    $ svgserve ./icons                      # 127.0.0.1:5000
    $ svgserve -b 0.0.0.0 -p 8080 -i /gallery ./icons

    from pathlib import Path
    from svgserve import SVGServer, ServerConfig

    config = ServerConfig(port=8080, root_dir=Path("icons"))
    SVGServer(config).run()

=============================================================================
PACKAGE LAYOUT
=============================================================================

    resolver.py     request path → Redirect / Serve / NotFound
    handler.py      (method, path) → HTTPResponse
    config.py       ServerConfig, ConfigError, environment loading
    server.py       SVGServer: transport + parser + middleware + handler
    http/           request parser, response builder, status codes
    core/           socket server, connection, thread pool
    middleware/     pipeline and access logging
    __main__.py     command line

=============================================================================
"""

__version__ = "1.0.0"

from .config import ServerConfig, ConfigError
from .resolver import resolve, Resolution, Redirect, Serve, NotFound
from .handler import handle
from .server import SVGServer

__all__ = [
    "SVGServer",
    "ServerConfig",
    "ConfigError",
    "resolve",
    "Resolution",
    "Redirect",
    "Serve",
    "NotFound",
    "handle",
    "__version__",
]
