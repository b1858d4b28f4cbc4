"""
=============================================================================
SVGSERVE COMMAND LINE
=============================================================================

    svgserve [-b ADDR] [-p PORT] [-i ROUTE] [PATH]
    python -m svgserve [...]

=============================================================================
EXAMPLES
=============================================================================

    # Serve the current directory on 127.0.0.1:5000
    svgserve

    # Serve ./icons on every interface, port 8080
    svgserve -b 0.0.0.0 -p 8080 ./icons

    # "/" redirects to /gallery instead of /home
    svgserve -i /gallery ./icons

=============================================================================
EXIT CODES
=============================================================================

    0   clean shutdown (Ctrl+C / SIGTERM)
    1   invalid configuration, or the address could not be bound
    2   bad command line syntax (argparse)

Flags win over SVGSERVE_* environment variables, which win over the
built-in defaults.

=============================================================================
"""

import argparse
import sys
from typing import Optional, Sequence

from . import __version__
from .config import ServerConfig, ConfigError, LOG_FORMATS
from .server import SVGServer


USAGE_GUIDE = """\
svgserve {version}: serves a directory of SVG files over HTTP

  GET /             redirects to the index route (-i, default /home)
  GET /<file>.svg   returns the file as image/svg+xml
  anything else     404 Not Found, or 405 for methods other than GET

  -b, --bind ADDR   address to listen on   (default 127.0.0.1)
  -p, --port PORT   port to listen on      (default 5000)
  -i, --index PATH  route "/" redirects to (default /home)
  PATH              directory of SVG files (default .)

  Press Ctrl+C to stop."""


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="svgserve",
        description="Serve a directory of SVG files over HTTP",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  svgserve                              # current directory on 127.0.0.1:5000
  svgserve -b 0.0.0.0 -p 8080 ./icons   # all interfaces, port 8080
  svgserve -i /gallery ./icons          # "/" redirects to /gallery
        """
    )

    # Defaults are None so that unset flags fall through to SVGSERVE_*
    # variables in ServerConfig.from_env().

    # ─────────────────────────────────────────────────────────────────────
    # SERVING
    # ─────────────────────────────────────────────────────────────────────

    parser.add_argument(
        "--bind", "-b",
        default=None,
        help="Bind address (default: 127.0.0.1)"
    )
    parser.add_argument(
        "--port", "-p",
        type=int,
        default=None,
        help="Port to listen on (default: 5000)"
    )
    parser.add_argument(
        "--index", "-i",
        default=None,
        help="Route to redirect / to (default: /home)"
    )
    parser.add_argument(
        "path",
        nargs="?",
        default=None,
        help="Directory containing the SVG files to serve (default: .)"
    )

    # ─────────────────────────────────────────────────────────────────────
    # RUNTIME
    # ─────────────────────────────────────────────────────────────────────

    parser.add_argument(
        "--workers", "-w",
        type=int,
        default=None,
        help="Number of worker threads (default: 4, max will be 2x this)"
    )
    parser.add_argument(
        "--log-level", "-l",
        type=str.upper,
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        default=None,
        help="Logging level (default: INFO)"
    )
    parser.add_argument(
        "--log-format",
        choices=list(LOG_FORMATS),
        default="text",
        help="Access log format (default: text)"
    )
    parser.add_argument(
        "--quiet", "-q",
        action="store_true",
        help="Do not print the usage guide at startup"
    )
    parser.add_argument(
        "--version", "-v",
        action="version",
        version=f"svgserve {__version__}"
    )

    return parser


def config_from_args(args: argparse.Namespace) -> ServerConfig:
    """
    Layer parsed arguments over the environment.

    Raises:
        ConfigError: If the resulting configuration is invalid.
    """
    overrides = {
        "bind_address": args.bind,
        "port": args.port,
        "index_route": args.index,
        "root_dir": args.path,
        "log_level": args.log_level,
        "log_format": args.log_format,
    }
    if args.workers is not None:
        overrides["min_workers"] = args.workers
        overrides["max_workers"] = args.workers * 2

    return ServerConfig.from_env(**overrides)


def main(argv: Optional[Sequence[str]] = None) -> int:
    """Run the server. Returns the process exit code."""
    args = build_parser().parse_args(argv)

    if not args.quiet:
        print(USAGE_GUIDE.format(version=__version__))
        print()

    try:
        config = config_from_args(args)
    except ConfigError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1

    server = SVGServer(config)

    try:
        server.run()
    except OSError as e:
        print(f"Error: could not listen on {config.bind_address}:{config.port}: {e}",
              file=sys.stderr)
        return 1

    return 0


if __name__ == "__main__":
    sys.exit(main())
