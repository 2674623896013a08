"""
Daemon tools.

Provides generate_heartbeat_units, generate_bridge_units and
bridge_daemon_hint. Units are generated (and optionally written) but never
enabled; that stays with systemctl / launchctl.
"""

from pathlib import Path
from typing import TYPE_CHECKING

from mcp.server.fastmcp import Context, FastMCP
from mcp.server.session import ServerSession

from agent_deck import daemon as daemon_module
from agent_deck.errors import AgentDeckError

if TYPE_CHECKING:
    from ..server import AppContext

from ..utils import HINTS, error_response
from .conductors import conductor_error


def unit_files_response(
    platform: daemon_module.DaemonPlatform,
    units: dict[Path, str],
    write: bool,
    hint: str,
) -> dict:
    """
    Describe generated units, writing them first when asked.

    Writes are all-or-nothing across the set (see write_unit_files).
    """
    written = set(daemon_module.write_unit_files(units)) if write else set()
    return {
        "platform": platform.platform_id,
        "files": [
            {"path": str(path), "content": content, "written": path in written}
            for path, content in units.items()
        ],
        "hint": hint,
    }


def register_tools(mcp: FastMCP) -> None:
    """Register daemon tools on the MCP server."""

    @mcp.tool()
    async def generate_heartbeat_units(
        ctx: Context[ServerSession, "AppContext"],
        name: str,
        interval_minutes: int = 0,
        write: bool = False,
    ) -> dict:
        """
        Generate the heartbeat timer for a conductor on this platform.

        systemd gets a oneshot service plus a timer; launchd gets a plist.

        Args:
            name: Conductor name (must already be set up)
            interval_minutes: Minutes between heartbeats (default: config
                value, or 15)
            write: Write the files into ~/.config/systemd/user or
                ~/Library/LaunchAgents

        Returns:
            Dict with platform, files (path, content, written) and hint
        """
        app_ctx = ctx.request_context.lifespan_context
        interval = interval_minutes
        if interval <= 0:
            interval = app_ctx.config.conductor.get_heartbeat_interval()

        platform = daemon_module.get_daemon_platform()
        try:
            meta = app_ctx.conductors.load_conductor_meta(name)
            if not meta.heartbeat_enabled:
                return error_response(
                    f"Heartbeat is disabled for conductor {name}",
                    hint="Enable it with update_conductor(heartbeat_enabled=True)",
                    name=name,
                )
            units = platform.heartbeat_units(name, interval, app_ctx.paths)
            result = unit_files_response(platform, units, write, platform.heartbeat_hint(name))
        except AgentDeckError as e:
            return conductor_error(e, name)

        result["interval_minutes"] = interval
        return result

    @mcp.tool()
    async def generate_bridge_units(
        ctx: Context[ServerSession, "AppContext"],
        write: bool = False,
    ) -> dict:
        """
        Generate the always-on bridge service for this platform.

        Args:
            write: Write the files into the service manager's user directory

        Returns:
            Dict with platform, files (path, content, written) and hint
        """
        app_ctx = ctx.request_context.lifespan_context
        platform = daemon_module.get_daemon_platform()
        try:
            units = platform.bridge_units(app_ctx.paths)
            return unit_files_response(platform, units, write, platform.bridge_hint())
        except AgentDeckError as e:
            return error_response(str(e), hint=HINTS["storage"])

    @mcp.tool()
    async def bridge_daemon_hint() -> dict:
        """
        Explain how to run the bridge daemon on this platform.

        Returns:
            Dict with platform and hint text
        """
        platform = daemon_module.get_daemon_platform()
        return {"platform": platform.platform_id, "hint": daemon_module.bridge_daemon_hint()}
