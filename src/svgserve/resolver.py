"""
=============================================================================
PATH RESOLVER
=============================================================================

Maps a request path onto one of three outcomes: redirect to the index
route, serve a file from the root directory, or not found.

=============================================================================
THE ALGORITHM
=============================================================================

    ┌─────────────────────────────────────────────────────────────────────┐
    │                     resolve(request_path, config)                   │
    ├─────────────────────────────────────────────────────────────────────┤
    │                                                                      │
    │   request_path == "/" ? ──── yes ──► Redirect(config.index_route)   │
    │          │                                                           │
    │          no                                                          │
    │          ▼                                                           │
    │   candidate = root_dir / request_path.lstrip("/")                   │
    │          │                                                           │
    │          ▼                                                           │
    │   canonical = candidate.resolve()      (.., ., symlinks)            │
    │          │                    └── cannot resolve ──► NotFound        │
    │          ▼                                                           │
    │   canonical strictly inside root_dir ? ──── no ──► NotFound         │
    │          │                                                           │
    │          yes                                                         │
    │          ▼                                                           │
    │   regular file AND readable ? ──── no ──► NotFound                   │
    │          │                                                           │
    │          yes                                                         │
    │          ▼                                                           │
    │   Serve(canonical)                                                   │
    │                                                                      │
    └─────────────────────────────────────────────────────────────────────┘

Canonicalization comes first and the ancestry check second. Checking a
path for existence before resolving it would answer questions about files
outside the root ("does /etc/shadow exist?") even if the file itself is
never served.

=============================================================================
PATH TRAVERSAL EXAMPLES
=============================================================================

    root_dir = /srv/svg

    /circle.svg                 → /srv/svg/circle.svg          Serve
    /icons/../circle.svg        → /srv/svg/circle.svg          Serve
    /../secret.txt              → /srv/secret.txt              NotFound
    /icons/../../../etc/passwd  → /etc/passwd                  NotFound
    /link.svg  (→ /etc/hosts)   → /etc/hosts                   NotFound
    /icons/                     → /srv/svg/icons  (directory)  NotFound
    /%00.svg   (NUL byte)       → cannot resolve               NotFound

=============================================================================
"""

import logging
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Union

from .config import ServerConfig


logger = logging.getLogger(__name__)


# =============================================================================
# RESOLUTION VARIANTS
# =============================================================================

@dataclass(frozen=True)
class Redirect:
    """The request was for "/": send the client to the index route."""
    to: str


@dataclass(frozen=True)
class Serve:
    """
    The request maps to a readable regular file inside the root directory.

    file_path is canonical (absolute, no symlinks, no . or ..) and always
    a descendant of config.root_dir.
    """
    file_path: Path


@dataclass(frozen=True)
class NotFound:
    """
    Nothing to serve.

    Covers missing files, directories, unreadable files and every path
    that escapes the root. The variants are deliberately indistinguishable
    to the client.
    """


Resolution = Union[Redirect, Serve, NotFound]


def resolve(request_path: str, config: ServerConfig) -> Resolution:
    """
    Resolve a decoded request path against the served directory.

    Args:
        request_path: The percent-decoded path component of the request
                      URI, starting with "/". No query string.
        config: Server configuration. root_dir is already canonical.

    Returns:
        Redirect, Serve or NotFound. Never raises for any input string.
    """
    # Exact match only: "" and "//" are not the root route.
    if request_path == "/":
        logger.debug(f"Redirecting / to {config.index_route}")
        return Redirect(to=config.index_route)

    root = config.root_dir
    candidate = root / request_path.lstrip("/")

    try:
        canonical = candidate.resolve()
    except (OSError, RuntimeError, ValueError):
        # ValueError: embedded NUL byte. RuntimeError/OSError: symlink loop.
        return NotFound()

    if not is_within_root(canonical, root):
        return NotFound()

    if not _is_readable_file(canonical):
        return NotFound()

    logger.debug(f"Loading SVG at: {canonical}")
    return Serve(file_path=canonical)


def is_within_root(path: Path, root: Path) -> bool:
    """
    True if path is strictly below root.

    Both arguments must already be canonical. root itself is not "within"
    root: the directory is never a servable file.
    """
    if path == root:
        return False
    try:
        path.relative_to(root)
    except ValueError:
        return False
    return True


def _is_readable_file(path: Path) -> bool:
    try:
        return path.is_file() and os.access(path, os.R_OK)
    except (OSError, ValueError):
        return False
