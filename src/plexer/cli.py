"""Command-line entry point.

Usage:
    plexer [--transport stdio|http] [--host HOST] [--port PORT] [--log-level LEVEL]

Every workspace needs its own backend running, e.g.:
    julia --project -e "using MCPRepl; MCPRepl.start!(multiplex=true)"
"""

from __future__ import annotations

import argparse
import logging
import sys

from .dispatcher import Dispatcher
from .forwarding import Forwarder
from .locator import SocketLocator
from .settings import settings


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="plexer",
        description="MCP server that forwards tool calls to per-workspace backend servers.",
        epilog=f"A backend must be running in each workspace, e.g.:\n  {settings.backend_start_hint}",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument(
        "--transport",
        choices=["stdio", "http"],
        default="stdio",
        help="Transport mode (default: stdio)",
    )
    parser.add_argument("--host", default=settings.http_host, help="Bind address for HTTP mode")
    parser.add_argument("--port", type=int, default=settings.http_port, help="Port for HTTP mode")
    parser.add_argument(
        "--log-level",
        default=settings.log_level,
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        type=str.upper,
        help="Log level (logs go to stderr)",
    )
    return parser


def configure_logging(level: str) -> None:
    # stdout carries protocol traffic in stdio mode.
    logging.basicConfig(
        stream=sys.stderr,
        level=getattr(logging, level, logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


def main(argv: list[str] | None = None) -> int:
    args = build_parser().parse_args(argv)
    configure_logging(args.log_level)

    dispatcher = Dispatcher(forwarder=Forwarder(locator=SocketLocator()))

    if args.transport == "stdio":
        from .stdio_server import run_stdio_server

        run_stdio_server(dispatcher)
        return 0

    from .http_server import run_http_server

    try:
        run_http_server(dispatcher, host=args.host, port=args.port, log_level=args.log_level)
    except KeyboardInterrupt:
        logging.getLogger(__name__).info("Shutting down HTTP server")
    return 0
