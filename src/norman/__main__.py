"""
=============================================================================
NORMAN SERVER CLI ENTRY POINT
=============================================================================

    # Four worker threads, defaults everywhere else
    python -m norman 4

    # Listen on all interfaces, deliver responses to a fixed host
    norman-server 8 --host 0.0.0.0 --response-host 10.0.0.7

    # Legacy error handling: malformed frames and failed commands are
    # logged and dropped instead of answered with an ERROR packet
    norman-server 4 --legacy-errors

The thread count is required. A missing or non-numeric count prints the
usage message and exits with status 2; an invalid configuration (such as
zero threads) exits with status 1.

=============================================================================
"""

import argparse
import sys

from . import __version__
from .config import ServerConfig
from .dispatcher import ConnectionDispatcher


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="norman-server",
        description="NORMAN remote command server",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  norman-server 4                           # 4 worker threads
  norman-server 8 --host 0.0.0.0            # Listen on all interfaces
  norman-server 4 --response-port 7676      # Clients listen on 7676
  norman-server 4 --legacy-errors           # Drop bad requests silently
        """,
    )

    parser.add_argument(
        "threads",
        type=int,
        help="Number of worker threads the server should create",
    )

    # ─────────────────────────────────────────────────────────────────────
    # NETWORK ARGUMENTS
    # ─────────────────────────────────────────────────────────────────────

    parser.add_argument(
        "--host", "-H",
        default=None,
        help="Host to bind the request port to (default: 127.0.0.1)",
    )

    parser.add_argument(
        "--port", "-p",
        type=int,
        default=None,
        help="Request port (default: 7878)",
    )

    parser.add_argument(
        "--response-host",
        default=None,
        help="Deliver responses here instead of to the requesting peer",
    )

    parser.add_argument(
        "--response-port", "-r",
        type=int,
        default=None,
        help="Port clients listen on for responses (default: 7575)",
    )

    # ─────────────────────────────────────────────────────────────────────
    # BEHAVIOR ARGUMENTS
    # ─────────────────────────────────────────────────────────────────────

    parser.add_argument(
        "--legacy-errors",
        action="store_true",
        help="Drop malformed requests and failed commands instead of "
             "answering with an ERROR packet",
    )

    parser.add_argument(
        "--log-level", "-l",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        default=None,
        help="Logging level (default: INFO)",
    )

    parser.add_argument(
        "--version", "-v",
        action="version",
        version=f"norman {__version__}",
    )

    return parser


def config_from_args(args: argparse.Namespace) -> ServerConfig:
    """
    Layer CLI arguments over the environment configuration.

    Only options actually given on the command line override NORMAN_*
    environment variables.
    """
    config = ServerConfig.from_env()
    config.workers = args.threads

    if args.host is not None:
        config.host = args.host
    if args.port is not None:
        config.port = args.port
    if args.response_host is not None:
        config.response_host = args.response_host
    if args.response_port is not None:
        config.response_port = args.response_port
    if args.legacy_errors:
        config.error_policy = "abort"
    if args.log_level is not None:
        config.log_level = args.log_level

    return config


def main(argv=None):
    """Server CLI entry point."""
    args = build_parser().parse_args(argv)

    try:
        dispatcher = ConnectionDispatcher(config_from_args(args))
    except ValueError as e:
        print(f"Problem parsing arguments: {e}", file=sys.stderr)
        sys.exit(1)

    dispatcher.print_banner()

    try:
        dispatcher.run()
    except OSError as e:
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(1)


if __name__ == "__main__":
    main()
