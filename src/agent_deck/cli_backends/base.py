"""
Capability interface shared by the agent tool backends.

A backend answers three questions for one tool kind: what executable starts
it, whether it can carry a conversation id that agent-deck picks up front,
and how a fresh, resumed or forked launch is spelled on its command line.
Sessions look the backend up by tool kind, so no code outside this package
switches on tool names.
"""

import shlex
from abc import abstractmethod
from typing import Protocol, runtime_checkable


def join_command(parts: list[str], env_vars: dict[str, str] | None = None) -> str:
    """
    Join a command and its arguments into one shell line.

    Environment assignments are prefixed in insertion order. Values that need
    quoting are quoted; plain words are left as they are.
    """
    words = [part for part in parts if part]
    if env_vars:
        words = [f"{key}={shlex.quote(value)}" for key, value in env_vars.items()] + words
    return " ".join(words)


@runtime_checkable
class AgentCLI(Protocol):
    """Launch rules for one kind of agent tool."""

    @property
    @abstractmethod
    def engine_id(self) -> str:
        """Tool kind this backend serves ("claude", "codex", "shell", ...)."""
        ...

    @abstractmethod
    def command(self) -> str:
        """
        Executable to run, possibly a wrapper from the environment.

        An empty string means the tool has no executable of its own and the
        session's stored command is used instead.
        """
        ...

    @property
    @abstractmethod
    def supports_session_identity(self) -> bool:
        """
        True when agent-deck may choose the conversation id before launch.

        Only such tools can be forked. The rest learn their id after the fact,
        if at all.
        """
        ...

    @property
    @abstractmethod
    def supports_resume(self) -> bool:
        """True when the tool can reattach to a conversation by id."""
        ...

    @abstractmethod
    def build_args(
        self,
        *,
        session_id: str | None = None,
        resume_session_id: str | None = None,
        fork_session: bool = False,
        dangerously_skip_permissions: bool = False,
    ) -> list[str]:
        """
        Arguments that follow the executable.

        `session_id` names the conversation of a fresh launch.
        `resume_session_id` reattaches to an existing one, and `fork_session`
        turns that reattachment into a branch. A launch either assigns an id
        or resumes one, never both.

        Raises:
            ForkError: If a fork is asked of a tool or request that cannot
                branch.
        """
        ...

    def build_full_command(
        self,
        *,
        session_id: str | None = None,
        resume_session_id: str | None = None,
        fork_session: bool = False,
        dangerously_skip_permissions: bool = False,
        env_vars: dict[str, str] | None = None,
    ) -> str:
        """Shell line for a launch: env assignments, executable, arguments."""
        args = self.build_args(
            session_id=session_id,
            resume_session_id=resume_session_id,
            fork_session=fork_session,
            dangerously_skip_permissions=dangerously_skip_permissions,
        )
        return join_command([self.command(), *args], env_vars)
