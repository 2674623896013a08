"""
Codex backend.

Codex names its own thread when it starts, so a session's conversation id is
only known once it has been observed. Resuming goes through the `resume`
subcommand; branching a thread is not possible.
"""

from ..env_vars import get_env
from ..errors import ForkError
from .base import AgentCLI

ENV_CODEX_COMMAND = "AGENT_DECK_CODEX_COMMAND"

SKIP_APPROVALS_FLAG = "--dangerously-bypass-approvals-and-sandbox"


class CodexCLI(AgentCLI):
    """Launch rules for `codex`."""

    @property
    def engine_id(self) -> str:
        return "codex"

    def command(self) -> str:
        """`codex`, unless AGENT_DECK_CODEX_COMMAND names a wrapper."""
        return get_env(ENV_CODEX_COMMAND) or "codex"

    @property
    def supports_session_identity(self) -> bool:
        return False

    @property
    def supports_resume(self) -> bool:
        return True

    def build_args(
        self,
        *,
        session_id: str | None = None,
        resume_session_id: str | None = None,
        fork_session: bool = False,
        dangerously_skip_permissions: bool = False,
    ) -> list[str]:
        """session_id is ignored; Codex picks the thread id itself."""
        if fork_session:
            raise ForkError("codex sessions cannot be forked")

        args = ["resume", resume_session_id] if resume_session_id else []
        if dangerously_skip_permissions:
            args.append(SKIP_APPROVALS_FLAG)
        return args


codex_cli = CodexCLI()
