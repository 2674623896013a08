"""
Error response helpers for MCP tools.
"""

from agent_deck.instance import Instance
from agent_deck.registry import SessionRegistry


def error_response(
    message: str,
    hint: str | None = None,
    **extra_fields,
) -> dict:
    """
    Build the dict every tool returns on failure.

    `error` always holds the message. `hint` tells the caller what to try next
    and is omitted when there is none. Extra keyword fields (session_id, name)
    identify what the failure was about.
    """
    response: dict = {"error": message}
    if hint:
        response["hint"] = hint
    return {**response, **extra_fields}


# Recovery hints shared by several tools
HINTS = {
    "session_not_found": (
        "Run list_sessions to see registered sessions. Sessions can be looked "
        "up by id, conversation id or title"
    ),
    "fork_unsupported": (
        "Only tools with resumable conversations (e.g. claude) can be forked, "
        "and the session must already have a conversation id. Use "
        "set_conversation_id once the id is known"
    ),
    "conductor_not_found": (
        "Run list_conductors to see configured conductors, or setup_conductor "
        "to create one"
    ),
    "conductor_name": (
        "Conductor names start with a letter or digit and may contain letters, "
        "digits, '.', '_' and '-' (max 64 characters)"
    ),
    "claude_md_path": (
        "Use an absolute path like '/Users/name/notes/CLAUDE.md' or one starting "
        "with '~/'"
    ),
    "pattern_config": (
        "Check the 'patterns' section of ~/.agent-deck/config.json: every entry "
        "must be a valid regular expression"
    ),
    "storage": (
        "Check that ~/.agent-deck is writable and the disk is not full"
    ),
}


def get_session_or_error(
    registry: SessionRegistry,
    session_id: str,
) -> Instance | dict:
    """
    Look up a session by instance id, conversation id or title.

    Returns the Instance, or an error response that the tool can hand back
    unchanged.
    """
    session = registry.resolve(session_id)
    if not session:
        return error_response(
            f"Session not found: {session_id}",
            hint=HINTS["session_not_found"],
        )
    return session
