# SPARQL Endpoint Access Layer
# File: transports/stdio_server.py
# Version: v3

"""STDIO entrypoint for the SPARQL access MCP server.

This is the script behind the ``sparql-access-mcp`` console command.

It:

- configures logging on stderr (stdout carries the MCP protocol),
- creates a FastMCP server,
- registers the SPARQL tools, and
- runs the built-in stdio transport.
"""

from __future__ import annotations

import logging
import sys

from mcp.server.fastmcp import FastMCP

from ..config import AccessConfig
from ..tools import tasks


def _configure_logging(level_name: str) -> None:
    level = getattr(logging, level_name.upper(), None)
    if not isinstance(level, int):
        level = logging.WARNING

    logging.basicConfig(
        level=level,
        stream=sys.stderr,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


def main() -> None:
    """Synchronous entrypoint for console_scripts."""
    cfg = AccessConfig.from_env()
    _configure_logging(cfg.log_level)

    mcp = FastMCP("sparql-endpoint-access")

    # Register the SPARQL tools (query, test_connection, analyze_endpoint, …)
    tasks.register_tools(mcp)

    # Let FastMCP handle stdio + event loop setup.
    mcp.run()


if __name__ == "__main__":
    main()
