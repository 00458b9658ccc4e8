"""CLI Agent Provider application entry point.

Logging setup, server lifecycle and the main entry point.
"""

from __future__ import annotations

import asyncio
import logging
import sys

from mcp.server.stdio import stdio_server

from .config import Config, get_config
from .server import create_server

__all__ = ["run_server", "setup_logging", "main"]

logger = logging.getLogger(__name__)

LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"


async def run_server(config: Config | None = None) -> None:
    """Run the MCP server over stdio until the client disconnects."""
    config = config or get_config()
    logger.info(f"Starting CLI Agent Provider MCP Server: {config}")

    server = create_server(config=config)
    try:
        async with stdio_server() as (read_stream, write_stream):
            await server.run(
                read_stream,
                write_stream,
                server.create_initialization_options(),
            )
    except asyncio.CancelledError:
        logger.info("run_server: cancelled")
        raise
    finally:
        logger.info("run_server: stopped")


def setup_logging(config: Config) -> None:
    """Configure logging.

    Default: stderr at INFO for the cli_agent_provider namespace.
    Log debug mode: a temp file at DEBUG.
    Third-party loggers stay at WARNING either way.
    """
    handlers: list[logging.Handler] = []

    if config.log_debug and config.log_file:
        file_handler = logging.FileHandler(config.log_file, encoding="utf-8")
        file_handler.setFormatter(logging.Formatter(LOG_FORMAT))
        handlers.append(file_handler)
        log_level = logging.DEBUG
    else:
        # stdout is the MCP channel, logs must go to stderr
        stderr_handler = logging.StreamHandler(sys.stderr)
        stderr_handler.setFormatter(logging.Formatter(LOG_FORMAT))
        handlers.append(stderr_handler)
        log_level = logging.INFO

    logging.basicConfig(level=logging.WARNING, handlers=handlers, force=True)
    logging.getLogger("cli_agent_provider").setLevel(log_level)


def main() -> None:
    """Main entry point."""
    config = get_config()
    setup_logging(config)
    try:
        asyncio.run(run_server(config))
    except KeyboardInterrupt:
        logger.info("Interrupted, exiting")
        sys.exit(130)


if __name__ == "__main__":
    main()
