"""Jira update bridge: OAuth credential lifecycle and multi-path resolution."""

from __future__ import annotations

import argparse
import logging
import os
from importlib.metadata import PackageNotFoundError, version

try:
    __version__ = version("jira-update-bridge")
except PackageNotFoundError:  # running from a source checkout
    __version__ = "0.0.0"

logger = logging.getLogger("jira-bridge")


def main(argv: list[str] | None = None) -> None:
    """Run the bridge MCP server."""
    parser = argparse.ArgumentParser(description="Jira update bridge MCP server.")
    parser.add_argument(
        "--transport",
        choices=["stdio", "sse", "streamable-http"],
        default=os.getenv("TRANSPORT", "stdio"),
        help="MCP transport (default: stdio)",
    )
    parser.add_argument(
        "--host",
        default=os.getenv("HOST", "0.0.0.0"),
        help="Bind host for HTTP transports",
    )
    parser.add_argument(
        "--port",
        type=int,
        default=int(os.getenv("PORT", "8000")),
        help="Bind port for HTTP transports",
    )
    parser.add_argument(
        "-v",
        "--verbose",
        action="count",
        default=0,
        help="Increase verbosity (-v INFO, -vv DEBUG)",
    )
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    args = parser.parse_args(argv)

    level = {0: None, 1: "INFO"}.get(args.verbose, "DEBUG")
    from jira_bridge.utils.logging import setup_logging

    setup_logging(level)

    from jira_bridge.servers import bridge_mcp

    logger.info("Starting Jira bridge with %s transport", args.transport)
    if args.transport == "stdio":
        bridge_mcp.run(transport="stdio")
    else:
        bridge_mcp.run(transport=args.transport, host=args.host, port=args.port)


__all__ = ["__version__", "main"]
