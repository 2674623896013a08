"""
Message history tools.

Provides read_messages for the bridge's message log.
"""

from datetime import datetime
from typing import TYPE_CHECKING

from mcp.server.fastmcp import Context, FastMCP
from mcp.server.session import ServerSession

from agent_deck import message_log as message_log_module

if TYPE_CHECKING:
    from ..server import AppContext

from ..utils import error_response


def register_tools(mcp: FastMCP) -> None:
    """Register message history tools on the MCP server."""

    @mcp.tool()
    async def read_messages(
        ctx: Context[ServerSession, "AppContext"],
        conductor: str | None = None,
        since: str | None = None,
        limit: int = 50,
    ) -> dict:
        """
        Read recent bridge messages and their correlated responses.

        Args:
            conductor: Only messages for this conductor
            since: ISO-8601 timestamp; only messages emitted at or after it
            limit: Maximum number of entries (most recent kept)

        Returns:
            Dict with messages (oldest first) and count
        """
        app_ctx = ctx.request_context.lifespan_context

        since_dt: datetime | None = None
        if since:
            try:
                since_dt = message_log_module.parse_timestamp(since)
            except ValueError:
                return error_response(
                    f"Invalid since timestamp: {since}",
                    hint="Use ISO-8601, e.g. 2026-01-23T10:00:00Z",
                )

        entries = message_log_module.read_entries(
            app_ctx.paths.message_log_path,
            since=since_dt,
            conductor=conductor,
            limit=limit,
        )
        return {
            "messages": [entry.to_dict() for entry in entries],
            "count": len(entries),
        }
