"""
Session tools.

Provides create_session, list_sessions, fork_session, resume_session,
set_conversation_id and remove_session.
"""

import logging
from typing import TYPE_CHECKING

from mcp.server.fastmcp import Context, FastMCP
from mcp.server.session import ServerSession

from agent_deck.errors import ForkError, ValidationError
from agent_deck.patterns import SessionStatus

if TYPE_CHECKING:
    from ..server import AppContext

from ..utils import HINTS, error_response, get_session_or_error

logger = logging.getLogger("agent-deck-mcp")


def register_tools(mcp: FastMCP) -> None:
    """Register session tools on the MCP server."""

    @mcp.tool()
    async def create_session(
        ctx: Context[ServerSession, "AppContext"],
        title: str,
        project_path: str,
        tool: str = "claude",
        command: str = "",
        skip_permissions: bool = False,
    ) -> dict:
        """
        Register a new agent session and return the command that starts it.

        Tools with resumable conversations (claude) get their conversation id
        assigned now, and the launch command carries it. The command is not
        run; hand it to the terminal that will host the session.

        Args:
            title: Display title for the session
            project_path: Directory the agent runs in
            tool: Tool kind ("claude", "codex", "gemini", "opencode", "shell")
            command: Launch command for shell sessions
            skip_permissions: Add the tool's skip-permissions flag

        Returns:
            The session record plus launch_command
        """
        app_ctx = ctx.request_context.lifespan_context
        if not title:
            return error_response("'title' is required")
        if not project_path:
            return error_response("'project_path' is required")

        session = app_ctx.registry.create(title, project_path, tool, command)
        launch = session.build_launch_command(dangerously_skip_permissions=skip_permissions)
        logger.info(f"Created session {session.title} ({session.id}, {session.tool})")

        return {**session.to_dict(), "launch_command": launch}

    @mcp.tool()
    async def list_sessions(
        ctx: Context[ServerSession, "AppContext"],
        status_filter: str | None = None,
        project_path: str | None = None,
    ) -> dict:
        """
        List registered sessions.

        Args:
            status_filter: Only sessions with this status
                ("idle", "busy", "waiting", "unknown")
            project_path: Only sessions in this directory

        Returns:
            Dict with sessions and count
        """
        app_ctx = ctx.request_context.lifespan_context
        registry = app_ctx.registry

        if status_filter:
            try:
                status = SessionStatus(status_filter)
            except ValueError:
                valid = ", ".join(s.value for s in SessionStatus)
                return error_response(
                    f"Invalid status_filter: {status_filter}",
                    hint=f"Use one of: {valid}",
                )
            sessions = registry.list_by_status(status)
        else:
            sessions = registry.list_all()

        if project_path:
            in_project = {s.id for s in registry.list_by_project(project_path)}
            sessions = [s for s in sessions if s.id in in_project]

        return {
            "sessions": [s.to_dict() for s in sessions],
            "count": len(sessions),
        }

    @mcp.tool()
    async def fork_session(
        ctx: Context[ServerSession, "AppContext"],
        session_id: str,
        new_title: str,
        new_path: str = "",
        skip_permissions: bool = False,
    ) -> dict:
        """
        Fork a session's conversation into a new independent session.

        The new session resumes the parent's conversation history but gets
        its own conversation id once it starts. Run the returned
        launch_command in a new terminal.

        Args:
            session_id: Parent session (id, conversation id, or title)
            new_title: Title for the forked session
            new_path: Directory for the fork (default: the parent's)
            skip_permissions: Add the tool's skip-permissions flag

        Returns:
            The forked session record plus launch_command
        """
        app_ctx = ctx.request_context.lifespan_context
        registry = app_ctx.registry
        if not new_title:
            return error_response("'new_title' is required")

        parent = get_session_or_error(registry, session_id)
        if isinstance(parent, dict):
            return parent  # Error response

        try:
            forked, command = registry.fork(
                parent.id,
                new_title,
                new_path,
                dangerously_skip_permissions=skip_permissions,
            )
        except ForkError as e:
            return error_response(
                str(e),
                hint=HINTS["fork_unsupported"],
                session_id=session_id,
            )

        return {**forked.to_dict(), "launch_command": command}

    @mcp.tool()
    async def resume_session(
        ctx: Context[ServerSession, "AppContext"],
        session_id: str,
        skip_permissions: bool = False,
    ) -> dict:
        """
        Get the command that reattaches to a session's conversation.

        Args:
            session_id: Session (id, conversation id, or title)
            skip_permissions: Add the tool's skip-permissions flag

        Returns:
            Dict with session_id and launch_command
        """
        app_ctx = ctx.request_context.lifespan_context
        session = get_session_or_error(app_ctx.registry, session_id)
        if isinstance(session, dict):
            return session  # Error response

        try:
            command = session.build_resume_command(
                dangerously_skip_permissions=skip_permissions,
            )
        except ValidationError as e:
            return error_response(str(e), hint=HINTS["fork_unsupported"])

        return {"session_id": session.id, "launch_command": command}

    @mcp.tool()
    async def set_conversation_id(
        ctx: Context[ServerSession, "AppContext"],
        session_id: str,
        conversation_id: str,
    ) -> dict:
        """
        Record a session's conversation id once it is known.

        Forked sessions start without one; call this after the forked
        process reports its new id so the session can be forked in turn.

        Args:
            session_id: Session (id or title)
            conversation_id: The tool's conversation id

        Returns:
            The updated session record
        """
        app_ctx = ctx.request_context.lifespan_context
        if not conversation_id:
            return error_response("'conversation_id' is required")

        session = get_session_or_error(app_ctx.registry, session_id)
        if isinstance(session, dict):
            return session  # Error response

        try:
            app_ctx.registry.set_conversation_id(session.id, conversation_id)
        except ValidationError as e:
            return error_response(str(e), session_id=session_id)

        return session.to_dict()

    @mcp.tool()
    async def remove_session(
        ctx: Context[ServerSession, "AppContext"],
        session_id: str,
    ) -> dict:
        """
        Stop tracking a session. Does not touch the running process.

        Args:
            session_id: Session (id, conversation id, or title)

        Returns:
            Confirmation with the removed session's id
        """
        app_ctx = ctx.request_context.lifespan_context
        session = get_session_or_error(app_ctx.registry, session_id)
        if isinstance(session, dict):
            return session  # Error response

        app_ctx.registry.remove(session.id)
        return {"success": True, "session_id": session.id, "title": session.title}
