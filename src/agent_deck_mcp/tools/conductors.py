"""
Conductor tools.

Provides setup_conductor, list_conductors, get_conductor, update_conductor
and teardown_conductor.
"""

from typing import TYPE_CHECKING

from mcp.server.fastmcp import Context, FastMCP
from mcp.server.session import ServerSession

from agent_deck.conductor import ConductorMeta, ConductorNotFoundError
from agent_deck.errors import AgentDeckError, PathError, StorageError, ValidationError

if TYPE_CHECKING:
    from ..server import AppContext

from ..utils import HINTS, error_response


def conductor_error(e: AgentDeckError, name: str) -> dict:
    """Map a conductor failure to an error response with the matching hint."""
    if isinstance(e, ConductorNotFoundError):
        hint = HINTS["conductor_not_found"]
    elif isinstance(e, PathError):
        hint = HINTS["claude_md_path"]
    elif isinstance(e, ValidationError):
        hint = HINTS["conductor_name"]
    elif isinstance(e, StorageError):
        hint = HINTS["storage"]
    else:
        hint = None
    return error_response(str(e), hint=hint, name=name)


def describe_conductor(app_ctx: "AppContext", meta: ConductorMeta) -> dict:
    """Conductor metadata plus resolved file locations."""
    conductors = app_ctx.conductors
    return {
        **meta.to_dict(),
        "claude_md": str(conductors.get_conductor_claude_md_path(meta.name)),
        "shared_claude_md": str(conductors.get_shared_claude_md_path()),
        "heartbeat_script": str(app_ctx.paths.heartbeat_script_path(meta.name)),
    }


def register_tools(mcp: FastMCP) -> None:
    """Register conductor tools on the MCP server."""

    @mcp.tool()
    async def setup_conductor(
        ctx: Context[ServerSession, "AppContext"],
        name: str,
        profile: str = "",
        heartbeat_enabled: bool = True,
        description: str = "",
        claude_md_path: str = "",
    ) -> dict:
        """
        Create or refresh a conductor.

        Writes the shared and per-conductor CLAUDE.md (only if missing), the
        heartbeat script and meta.json. Re-running keeps the original
        creation time. Daemon units are generated separately with
        generate_heartbeat_units.

        Args:
            name: Conductor name (letters, digits, '.', '_', '-')
            profile: agent-deck profile to manage (default: first configured)
            heartbeat_enabled: Whether heartbeats should be scheduled
            description: Free-form description
            claude_md_path: Custom CLAUDE.md location, absolute or '~/...'

        Returns:
            The conductor record with resolved file paths
        """
        app_ctx = ctx.request_context.lifespan_context
        profile = profile or app_ctx.config.conductor.get_profiles()[0]

        try:
            meta = app_ctx.conductors.setup_conductor(
                name,
                profile=profile,
                heartbeat_enabled=heartbeat_enabled,
                description=description,
                custom_claude_md_path=claude_md_path,
            )
            return describe_conductor(app_ctx, meta)
        except AgentDeckError as e:
            return conductor_error(e, name)

    @mcp.tool()
    async def list_conductors(
        ctx: Context[ServerSession, "AppContext"],
    ) -> dict:
        """
        List all conductors on disk.

        Returns:
            Dict with conductors and count
        """
        app_ctx = ctx.request_context.lifespan_context
        conductors = app_ctx.conductors.list_conductors()
        return {
            "conductors": [meta.to_dict() for meta in conductors],
            "count": len(conductors),
        }

    @mcp.tool()
    async def get_conductor(
        ctx: Context[ServerSession, "AppContext"],
        name: str,
    ) -> dict:
        """
        Show one conductor's metadata and file locations.

        Args:
            name: Conductor name

        Returns:
            The conductor record with resolved file paths
        """
        app_ctx = ctx.request_context.lifespan_context
        try:
            meta = app_ctx.conductors.load_conductor_meta(name)
            return describe_conductor(app_ctx, meta)
        except AgentDeckError as e:
            return conductor_error(e, name)

    @mcp.tool()
    async def update_conductor(
        ctx: Context[ServerSession, "AppContext"],
        name: str,
        profile: str | None = None,
        heartbeat_enabled: bool | None = None,
        description: str | None = None,
    ) -> dict:
        """
        Change a conductor's settings. Omitted fields are left as they are.

        Args:
            name: Conductor name
            profile: New profile
            heartbeat_enabled: Enable or disable heartbeats
            description: New description

        Returns:
            The updated conductor record
        """
        app_ctx = ctx.request_context.lifespan_context
        try:
            meta = app_ctx.conductors.update_conductor(
                name,
                profile=profile,
                heartbeat_enabled=heartbeat_enabled,
                description=description,
            )
            return describe_conductor(app_ctx, meta)
        except AgentDeckError as e:
            return conductor_error(e, name)

    @mcp.tool()
    async def teardown_conductor(
        ctx: Context[ServerSession, "AppContext"],
        name: str,
    ) -> dict:
        """
        Delete a conductor's directory.

        A custom CLAUDE.md outside the conductor directory is kept. Installed
        daemon units are not removed; disable them with the service manager.

        Args:
            name: Conductor name

        Returns:
            Confirmation, or an error if the conductor does not exist
        """
        app_ctx = ctx.request_context.lifespan_context
        try:
            removed = app_ctx.conductors.teardown_conductor(name)
        except AgentDeckError as e:
            return conductor_error(e, name)

        if not removed:
            return error_response(
                f"Conductor not found: {name}",
                hint=HINTS["conductor_not_found"],
                name=name,
            )
        return {"success": True, "name": name}
