"""
Backends for tools without a resumable conversation identity.

Gemini and OpenCode are launched as plain commands. The shell backend is the
fallback for any tool kind agent-deck does not know about.
"""

from ..errors import ForkError
from .base import AgentCLI


class SimpleCLI(AgentCLI):
    """Tool launched by name with no identity or permission flags."""

    def __init__(self, engine_id: str, command: str, resume_flag: str | None = None) -> None:
        self._engine_id = engine_id
        self._command = command
        self._resume_flag = resume_flag

    @property
    def engine_id(self) -> str:
        return self._engine_id

    def command(self) -> str:
        return self._command

    @property
    def supports_session_identity(self) -> bool:
        return False

    @property
    def supports_resume(self) -> bool:
        return self._resume_flag is not None

    def build_args(
        self,
        *,
        session_id: str | None = None,
        resume_session_id: str | None = None,
        fork_session: bool = False,
        dangerously_skip_permissions: bool = False,
    ) -> list[str]:
        """Only resume is supported, and only when the tool has a resume flag."""
        if fork_session:
            raise ForkError(f"{self._engine_id} sessions cannot be forked")
        if resume_session_id and self._resume_flag:
            return [self._resume_flag, resume_session_id]
        return []


gemini_cli = SimpleCLI("gemini", "gemini", resume_flag="--resume")
opencode_cli = SimpleCLI("opencode", "opencode", resume_flag="--session")
shell_cli = SimpleCLI("shell", "")
