"""
Command-line entry point.

Examples:
    readwise-mcp                        # stdio transport
    readwise-mcp -t sse -p 3000         # HTTP transports (/sse, /messages, /mcp)
    readwise-mcp -t sse --debug         # verbose logging
"""

from __future__ import annotations

import argparse
import asyncio
import os
import sys
from typing import Any, Dict, List, Mapping, Optional

import structlog

from . import version
from .core.config import DEFAULT_PORT, Settings
from .core.logging import setup_logging
from .server import ReadwiseMCPServer, StartupError

logger = structlog.get_logger(__name__)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="readwise-mcp",
        description="Readwise MCP server",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=__doc__,
    )
    parser.add_argument("-p", "--port", type=int, default=None, help=f"HTTP port (default: $PORT or {DEFAULT_PORT})")
    parser.add_argument(
        "-t",
        "--transport",
        choices=["stdio", "sse"],
        default=None,
        help="Transport binding (default: stdio)",
    )
    parser.add_argument("-d", "--debug", action="store_true", help="Enable debug logging")
    parser.add_argument("-k", "--api-key", default=None, help="Readwise API key (default: $READWISE_API_KEY)")
    parser.add_argument("--version", action="version", version=f"%(prog)s {version()}")
    return parser


def resolve_port(cli_port: Optional[int], environ: Mapping[str, str]) -> int:
    """An explicit flag wins, then a valid $PORT, else the default port."""
    if cli_port is not None:
        candidate: Any = cli_port
    else:
        candidate = environ.get("PORT")
    try:
        port = int(candidate)
    except (TypeError, ValueError):
        return DEFAULT_PORT
    if not 0 <= port < 65536:
        return DEFAULT_PORT
    return port


def build_settings(args: argparse.Namespace, environ: Mapping[str, str] = os.environ) -> Settings:
    overrides: Dict[str, Any] = {"port": resolve_port(args.port, environ)}
    if args.transport:
        overrides["transport"] = args.transport
    if args.debug:
        overrides["debug"] = True
    if args.api_key:
        overrides["readwise_api_key"] = args.api_key
    return Settings(**overrides)


def install_exception_hooks(loop: Optional[asyncio.AbstractEventLoop] = None) -> None:
    """Log uncaught failures instead of letting them tear the process down."""

    def excepthook(exc_type, exc_value, exc_tb) -> None:
        logger.error(
            "Uncaught exception",
            error=str(exc_value),
            error_type=exc_type.__name__,
            exc_info=(exc_type, exc_value, exc_tb),
        )

    def loop_exception_handler(loop: asyncio.AbstractEventLoop, context: Dict[str, Any]) -> None:
        exc = context.get("exception")
        logger.error(
            "Unhandled error in event loop",
            message=context.get("message"),
            error=str(exc) if exc else None,
            exc_info=exc,
        )

    sys.excepthook = excepthook
    if loop is not None:
        loop.set_exception_handler(loop_exception_handler)


async def run(settings: Settings) -> None:
    install_exception_hooks(asyncio.get_running_loop())
    server = ReadwiseMCPServer(settings)
    await server.serve()


def main(argv: Optional[List[str]] = None) -> None:
    args = build_parser().parse_args(argv)
    settings = build_settings(args)

    # stdout is reserved for protocol lines in stdio mode
    stream = sys.stderr if settings.transport == "stdio" else sys.stdout
    setup_logging(settings.effective_log_level, stream=stream)

    logger.info(
        "Starting Readwise MCP server",
        version=settings.app_version,
        transport=settings.transport,
        port=settings.port if settings.transport == "sse" else None,
        api_key_configured=bool(settings.readwise_api_key),
    )
    if not settings.readwise_api_key:
        logger.warning("No Readwise API key configured; tool calls will fail until one is provided")

    try:
        asyncio.run(run(settings))
    except StartupError as exc:
        logger.error("Failed to start server", error=str(exc))
        sys.exit(1)
    except KeyboardInterrupt:
        logger.info("Shutting down")


if __name__ == "__main__":
    main()
