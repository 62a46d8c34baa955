"""
qmx MCP server.

Exposes collection listing, search, document retrieval, embedding and
status as tools over stdio.
"""

from qmx.server.mcp import build_mcp_server

__all__ = ["build_mcp_server"]
