"""
Claude Code backend.

Claude is the only tool kind whose conversation id agent-deck chooses itself,
which is what makes its sessions forkable.
"""

from ..env_vars import get_env
from ..errors import ForkError
from .base import AgentCLI

ENV_CLAUDE_COMMAND = "AGENT_DECK_CLAUDE_COMMAND"

SESSION_ID_FLAG = "--session-id"
RESUME_FLAG = "--resume"
FORK_FLAG = "--fork-session"
SKIP_PERMISSIONS_FLAG = "--dangerously-skip-permissions"


class ClaudeCLI(AgentCLI):
    """
    Launch rules for `claude`.

    Fresh:   claude --session-id <id>
    Resume:  claude --resume <id>
    Fork:    claude --resume <id> --fork-session
    """

    @property
    def engine_id(self) -> str:
        return "claude"

    def command(self) -> str:
        """`claude`, unless AGENT_DECK_CLAUDE_COMMAND names a wrapper."""
        return get_env(ENV_CLAUDE_COMMAND) or "claude"

    @property
    def supports_session_identity(self) -> bool:
        return True

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
        """
        Raises:
            ForkError: If fork_session is set without resume_session_id.
            ValueError: If session_id and resume_session_id are both set.
        """
        if session_id and resume_session_id:
            raise ValueError("session_id and resume_session_id are mutually exclusive")
        if fork_session and not resume_session_id:
            raise ForkError(f"{FORK_FLAG} requires a conversation id to resume")

        if resume_session_id:
            args = [RESUME_FLAG, resume_session_id]
            if fork_session:
                args.append(FORK_FLAG)
        elif session_id:
            args = [SESSION_ID_FLAG, session_id]
        else:
            args = []

        if dangerously_skip_permissions:
            args.append(SKIP_PERMISSIONS_FLAG)
        return args


claude_cli = ClaudeCLI()
