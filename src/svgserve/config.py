"""
=============================================================================
SERVER CONFIGURATION
=============================================================================

The single configuration value of a running svgserve process.

=============================================================================
LIFECYCLE
=============================================================================

    ┌─────────────────────────────────────────────────────────────────────┐
    │                     CONFIGURATION LIFECYCLE                         │
    ├─────────────────────────────────────────────────────────────────────┤
    │                                                                      │
    │   CLI flags ──┐                                                     │
    │               ├──► ServerConfig(...) ──► validate() ──► frozen      │
    │   SVGSERVE_* ─┘         │                   │                        │
    │                         │                   └── ConfigError → exit 1│
    │                         │                                            │
    │                         └── root_dir canonicalized here, once        │
    │                                                                      │
    │   Afterwards the same instance is read by every worker thread.      │
    │   It is frozen, so no locking is needed.                            │
    │                                                                      │
    └─────────────────────────────────────────────────────────────────────┘

All validation happens in __post_init__: a ServerConfig that exists is a
valid one, and it exists before any socket is created.

=============================================================================
ENVIRONMENT VARIABLES
=============================================================================

    SVGSERVE_BIND       bind address          (default 127.0.0.1)
    SVGSERVE_PORT       port                  (default 5000)
    SVGSERVE_INDEX      index route           (default /home)
    SVGSERVE_ROOT       served directory      (default .)
    SVGSERVE_WORKERS    minimum workers       (default 4, max is 2x)
    SVGSERVE_LOG_LEVEL  logging level         (default INFO)

=============================================================================
"""

import ipaddress
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional

from . import __version__


class ConfigError(ValueError):
    """Invalid startup configuration. Fatal: the process exits non-zero."""


LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")
LOG_FORMATS = ("text", "json")


@dataclass(frozen=True)
class ServerConfig:
    """
    Configuration for svgserve.

    =========================================================================
    CONFIGURATION GROUPS
    =========================================================================

    SERVING (what the request handler reads)
    - bind_address, port, index_route, root_dir

    TRANSPORT
    - backlog, buffer_size, timeout, keep_alive, keep_alive_timeout,
      max_request_size

    THREADING
    - min_workers, max_workers, queue_size

    LOGGING
    - log_level, log_format

    =========================================================================
    """

    # ─────────────────────────────────────────────────────────────────────
    # SERVING
    # ─────────────────────────────────────────────────────────────────────

    bind_address: str = "127.0.0.1"
    """IP literal to bind to. "0.0.0.0" or "::" for all interfaces."""

    port: int = 5000

    index_route: str = "/home"
    """Where "/" redirects to. Not looked up on disk."""

    root_dir: Path = field(default_factory=lambda: Path("."))
    """
    Directory of SVG files. Replaced by its canonical absolute form during
    construction; the resolver compares every candidate against this value.
    """

    # ─────────────────────────────────────────────────────────────────────
    # TRANSPORT
    # ─────────────────────────────────────────────────────────────────────

    backlog: int = 128
    buffer_size: int = 8192

    timeout: Optional[float] = 30.0
    """Seconds to wait for the first request on a connection."""

    keep_alive: bool = True

    keep_alive_timeout: float = 5.0
    """Seconds an idle keep-alive connection is held open."""

    max_request_size: int = 64 * 1024
    """Upper bound on request bytes. GET requests are headers only."""

    # ─────────────────────────────────────────────────────────────────────
    # THREAD POOL
    # ─────────────────────────────────────────────────────────────────────

    min_workers: int = 4
    max_workers: int = 16
    queue_size: int = 100

    # ─────────────────────────────────────────────────────────────────────
    # LOGGING
    # ─────────────────────────────────────────────────────────────────────

    log_level: str = "INFO"
    log_format: str = "text"

    server_name: str = f"svgserve/{__version__}"

    def __post_init__(self):
        self.validate()
        # Frozen dataclass: the canonical root has to go in through
        # object.__setattr__.
        object.__setattr__(self, "root_dir", Path(self.root_dir).resolve())

    @classmethod
    def from_env(cls, **overrides) -> "ServerConfig":
        """
        Build a configuration from SVGSERVE_* environment variables.

        Keyword arguments win over the environment, which is how the CLI
        layers its flags on top.

        Raises:
            ConfigError: If a variable is malformed or the result is invalid.
        """
        values = {
            "bind_address": os.getenv("SVGSERVE_BIND", "127.0.0.1"),
            "port": _env_int("SVGSERVE_PORT", 5000),
            "index_route": os.getenv("SVGSERVE_INDEX", "/home"),
            "root_dir": Path(os.getenv("SVGSERVE_ROOT", ".")),
            "log_level": os.getenv("SVGSERVE_LOG_LEVEL", "INFO").upper(),
        }
        workers = _env_int("SVGSERVE_WORKERS", 4)
        values["min_workers"] = workers
        values["max_workers"] = workers * 2

        values.update({k: v for k, v in overrides.items() if v is not None})
        return cls(**values)

    def validate(self) -> None:
        """
        Check every field, raising ConfigError on the first bad one.

        Called from __post_init__, i.e. before the server binds anything.
        """
        try:
            ipaddress.ip_address(self.bind_address)
        except ValueError:
            raise ConfigError(
                f"Invalid bind address: {self.bind_address!r}. Must be an IP literal."
            )

        if isinstance(self.port, bool) or not isinstance(self.port, int):
            raise ConfigError(f"Invalid port: {self.port!r}. Must be an integer.")
        if not 0 < self.port < 65536:
            raise ConfigError(f"Invalid port: {self.port}. Must be 1-65535.")

        if not isinstance(self.index_route, str) or not self.index_route.startswith("/"):
            raise ConfigError(
                f"Invalid index route: {self.index_route!r}. Must begin with '/'."
            )
        if any(ord(c) < 0x20 or ord(c) == 0x7F for c in self.index_route):
            raise ConfigError(
                f"Invalid index route: {self.index_route!r}. Control characters are not allowed."
            )

        root = Path(self.root_dir)
        if not root.exists():
            raise ConfigError(f"SVG folder '{root}' does not exist")
        if not root.is_dir():
            raise ConfigError(f"SVG folder '{root}' is not a directory")

        if self.min_workers < 1:
            raise ConfigError("min_workers must be >= 1")
        if self.max_workers < self.min_workers:
            raise ConfigError("max_workers must be >= min_workers")
        if self.queue_size < 1:
            raise ConfigError("queue_size must be >= 1")
        if self.buffer_size < 1024:
            raise ConfigError("buffer_size must be >= 1024")
        if self.timeout is not None and self.timeout <= 0:
            raise ConfigError("timeout must be > 0")
        if self.keep_alive_timeout <= 0:
            raise ConfigError("keep_alive_timeout must be > 0")

        if self.log_level.upper() not in LOG_LEVELS:
            raise ConfigError(f"Invalid log level: {self.log_level!r}")
        if self.log_format not in LOG_FORMATS:
            raise ConfigError(f"Invalid log format: {self.log_format!r}")

    @property
    def is_ipv6(self) -> bool:
        """True when bind_address is an IPv6 literal."""
        return ipaddress.ip_address(self.bind_address).version == 6


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None:
        return default
    try:
        return int(raw)
    except ValueError:
        raise ConfigError(f"{name} must be an integer, got {raw!r}")
