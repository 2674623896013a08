"""
Agent CLI backends, keyed by tool kind.
"""

from .base import AgentCLI, join_command
from .claude import ClaudeCLI, claude_cli
from .codex import CodexCLI, codex_cli
from .generic import SimpleCLI, gemini_cli, opencode_cli, shell_cli

_BACKENDS: dict[str, AgentCLI] = {
    cli.engine_id: cli
    for cli in (claude_cli, codex_cli, gemini_cli, opencode_cli, shell_cli)
}


def get_cli_backend(tool: str) -> AgentCLI:
    """
    Return the backend for a tool kind.

    Unknown tool kinds get the generic shell backend.
    """
    return _BACKENDS.get(tool.strip().lower(), shell_cli)


def supports_session_identity(tool: str) -> bool:
    """Whether sessions of this tool kind get a pre-assigned conversation id."""
    return get_cli_backend(tool).supports_session_identity


__all__ = [
    "AgentCLI",
    "ClaudeCLI",
    "CodexCLI",
    "SimpleCLI",
    "claude_cli",
    "codex_cli",
    "gemini_cli",
    "join_command",
    "get_cli_backend",
    "opencode_cli",
    "shell_cli",
    "supports_session_identity",
]
