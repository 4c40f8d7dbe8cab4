"""FastMCP server, OAuth routes and HTTP middleware for the bridge."""

from .main import bridge_mcp

__all__ = ["bridge_mcp"]
