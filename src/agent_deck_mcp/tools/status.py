"""
Status tools.

Provides classify_snapshot and show_patterns.
"""

from typing import TYPE_CHECKING

from mcp.server.fastmcp import Context, FastMCP
from mcp.server.session import ServerSession

from agent_deck.errors import PatternError
from agent_deck.patterns import (
    default_raw_patterns,
    known_tools,
    merge_raw_patterns,
    patterns_for_tool,
    strip_ansi,
)

if TYPE_CHECKING:
    from ..server import AppContext

from ..utils import HINTS, error_response, get_session_or_error


def register_tools(mcp: FastMCP) -> None:
    """Register status tools on the MCP server."""

    @mcp.tool()
    async def classify_snapshot(
        ctx: Context[ServerSession, "AppContext"],
        snapshot: str,
        tool: str = "claude",
        session_id: str | None = None,
    ) -> dict:
        """
        Classify captured terminal text as busy, waiting, idle or unknown.

        When session_id is given, that session's tool kind is used and the
        result is recorded as the session's status.

        Args:
            snapshot: Raw pane text (ANSI escapes are stripped first)
            tool: Tool kind to classify for ("claude", "codex", "gemini",
                "opencode", "shell"). Ignored when session_id is given.
            session_id: Optional registered session to update

        Returns:
            Dict with status and the tool kind used
        """
        app_ctx = ctx.request_context.lifespan_context
        text = strip_ansi(snapshot)

        try:
            if session_id:
                session = get_session_or_error(app_ctx.registry, session_id)
                if isinstance(session, dict):
                    return session  # Error response
                status = app_ctx.registry.classify(session.id, text)
                tool = session.tool
            else:
                override = app_ctx.config.pattern_override(tool)
                status = patterns_for_tool(tool, override).classify(text)
        except PatternError as e:
            return error_response(str(e), hint=HINTS["pattern_config"], tool=tool)

        result = {"status": status.value, "tool": tool}
        if session_id:
            result["session_id"] = session_id
        return result

    @mcp.tool()
    async def show_patterns(
        ctx: Context[ServerSession, "AppContext"],
        tool: str | None = None,
    ) -> dict:
        """
        Show the effective status patterns, including config overrides.

        Args:
            tool: Only show this tool kind (default: all known tools)

        Returns:
            Dict mapping tool kind to its busy/waiting/idle pattern lists
        """
        app_ctx = ctx.request_context.lifespan_context
        tools = [tool] if tool else known_tools()

        patterns = {}
        for name in tools:
            merged = merge_raw_patterns(
                default_raw_patterns(name),
                app_ctx.config.pattern_override(name),
            )
            patterns[name] = merged.to_dict()

        return {"patterns": patterns}
