"""
Agent Deck MCP tools package.

Provides all tool registration functions for the MCP server.
"""

from mcp.server.fastmcp import FastMCP

from . import conductors
from . import daemons
from . import messages
from . import sessions
from . import status


def register_all_tools(mcp: FastMCP) -> None:
    """
    Register all tools on the MCP server.

    Args:
        mcp: The FastMCP server instance
    """
    conductors.register_tools(mcp)
    daemons.register_tools(mcp)
    messages.register_tools(mcp)
    sessions.register_tools(mcp)
    status.register_tools(mcp)


__all__ = [
    "register_all_tools",
    "conductors",
    "daemons",
    "messages",
    "sessions",
    "status",
]
