"""
Session instances and conversation identity.

An Instance is one agent session running in a terminal. Tools that support a
resumable conversation identity (see cli_backends) get their conversation id
assigned here, before any process is launched, so the launch command can
carry it and a later fork can resume from it.
"""

from __future__ import annotations

import logging
import os
import threading
import uuid
from dataclasses import dataclass, field
from datetime import datetime
from typing import TYPE_CHECKING, Optional

from .cli_backends import get_cli_backend
from .errors import ForkError, ValidationError
from .patterns import SessionStatus, patterns_for_tool

if TYPE_CHECKING:
    from .config import PatternOverride

logger = logging.getLogger("agent-deck.instance")


def _path_key(project_path: str) -> str:
    # "/a/b" and "/a/b/" are the same project
    return os.path.normpath(project_path) if project_path else ""


class SessionIdAllocator:
    """
    Hands out conversation ids that are unique per project path.

    Generating a candidate and recording it as taken happen under the
    project path's lock, so overlapping allocations for the same path can
    never observe or return the same id.
    """

    def __init__(self) -> None:
        self._guard = threading.Lock()
        self._locks: dict[str, threading.Lock] = {}
        self._taken: dict[str, set[str]] = {}

    def _lock_for(self, key: str) -> threading.Lock:
        with self._guard:
            lock = self._locks.get(key)
            if lock is None:
                lock = self._locks[key] = threading.Lock()
            return lock

    def allocate(self, project_path: str) -> str:
        """Generate, record and return a fresh conversation id for a path."""
        key = _path_key(project_path)
        with self._lock_for(key):
            taken = self._taken.setdefault(key, set())
            while True:
                candidate = str(uuid.uuid4())
                if candidate not in taken:
                    taken.add(candidate)
                    return candidate

    def reserve(self, project_path: str, conversation_id: str) -> None:
        """
        Record an externally observed conversation id as taken.

        Raises:
            ValidationError: If the id is already taken for this path.
        """
        key = _path_key(project_path)
        with self._lock_for(key):
            taken = self._taken.setdefault(key, set())
            if conversation_id in taken:
                raise ValidationError(
                    f"conversation id {conversation_id} is already in use for {project_path}"
                )
            taken.add(conversation_id)

    def release(self, project_path: str, conversation_id: str) -> None:
        """Forget a conversation id (no-op if it was never recorded)."""
        if not conversation_id:
            return
        key = _path_key(project_path)
        with self._lock_for(key):
            self._taken.get(key, set()).discard(conversation_id)

    def is_taken(self, project_path: str, conversation_id: str) -> bool:
        key = _path_key(project_path)
        with self._lock_for(key):
            return conversation_id in self._taken.get(key, set())


# Process-wide allocator used when callers don't supply their own
default_allocator = SessionIdAllocator()


def _generate_instance_id() -> str:
    return uuid.uuid4().hex[:8]


@dataclass
class Instance:
    """
    One agent session.

    conversation_id is the tool's resumable conversation identity. It is
    empty for tools without one, and for freshly forked sessions until the
    forked process establishes its own.
    """

    title: str
    project_path: str
    tool: str = "shell"
    conversation_id: str = ""
    id: str = field(default_factory=_generate_instance_id)
    status: SessionStatus = SessionStatus.UNKNOWN
    parent_id: Optional[str] = None
    command: str = ""  # Explicit launch command for shell sessions
    created_at: datetime = field(default_factory=datetime.now)
    last_activity: datetime = field(default_factory=datetime.now)
    allocator: SessionIdAllocator = field(
        default=default_allocator, repr=False, compare=False
    )

    @property
    def supports_session_identity(self) -> bool:
        return get_cli_backend(self.tool).supports_session_identity

    def can_fork(self) -> bool:
        """True iff the tool supports resumable identity and an id is held."""
        return self.supports_session_identity and bool(self.conversation_id)

    def build_launch_command(self, *, dangerously_skip_permissions: bool = False) -> str:
        """
        Build the command that starts this session.

        Fresh sessions of identity-aware tools carry their pre-assigned id.
        """
        cli = get_cli_backend(self.tool)
        if not cli.command():
            return self.command
        return cli.build_full_command(
            session_id=self.conversation_id or None,
            dangerously_skip_permissions=dangerously_skip_permissions,
        )

    def build_resume_command(self, *, dangerously_skip_permissions: bool = False) -> str:
        """
        Build the command that reattaches to this session's conversation.

        Raises:
            ValidationError: If the tool cannot resume, or no conversation id
                is known yet.
        """
        cli = get_cli_backend(self.tool)
        if not cli.supports_resume:
            raise ValidationError(f"{self.tool} sessions cannot be resumed")
        if not self.conversation_id:
            raise ValidationError(f"session {self.title!r} has no conversation id to resume")
        return cli.build_full_command(
            resume_session_id=self.conversation_id,
            dangerously_skip_permissions=dangerously_skip_permissions,
        )

    def create_forked_instance(
        self,
        new_title: str,
        new_path: str = "",
        *,
        dangerously_skip_permissions: bool = False,
    ) -> tuple["Instance", str]:
        """
        Fork this session's conversation into a new independent session.

        Args:
            new_title: Title of the forked session
            new_path: Project path for the fork (defaults to the parent's)
            dangerously_skip_permissions: Pass the tool's skip-permissions flag

        Returns:
            (forked instance, launch command). The fork's conversation_id is
            empty until the forked process establishes its own.

        Raises:
            ForkError: If this session cannot be forked.
        """
        if not self.can_fork():
            if not self.supports_session_identity:
                raise ForkError(f"{self.tool} sessions do not support forking")
            raise ForkError(f"session {self.title!r} has no conversation id to fork from")

        forked = Instance(
            title=new_title,
            project_path=new_path or self.project_path,
            tool=self.tool,
            parent_id=self.id,
            allocator=self.allocator,
        )
        command = get_cli_backend(self.tool).build_full_command(
            resume_session_id=self.conversation_id,
            fork_session=True,
            dangerously_skip_permissions=dangerously_skip_permissions,
        )
        logger.info(
            "Forked session %s (%s) from %s", forked.title, forked.id, self.conversation_id
        )
        return forked, command

    def set_conversation_id(self, conversation_id: str) -> None:
        """
        Record the conversation id once it has been observed.

        Raises:
            ValidationError: If another session in the same project holds it.
        """
        if conversation_id == self.conversation_id:
            return
        self.allocator.reserve(self.project_path, conversation_id)
        self.allocator.release(self.project_path, self.conversation_id)
        self.conversation_id = conversation_id

    def classify(self, snapshot: str, override: "PatternOverride | None" = None) -> SessionStatus:
        """Classify a snapshot with this tool's patterns and record the result."""
        status = patterns_for_tool(self.tool, override).classify(snapshot)
        if status != self.status:
            self.status = status
            self.update_activity()
        return status

    def update_activity(self) -> None:
        """Update the last_activity timestamp."""
        self.last_activity = datetime.now()

    def to_dict(self) -> dict:
        """Convert to dictionary for MCP tool responses."""
        return {
            "id": self.id,
            "title": self.title,
            "project_path": self.project_path,
            "tool": self.tool,
            "conversation_id": self.conversation_id or None,
            "status": self.status.value,
            "parent_id": self.parent_id,
            "can_fork": self.can_fork(),
            "created_at": self.created_at.isoformat(),
            "last_activity": self.last_activity.isoformat(),
        }


def new_instance(
    title: str,
    project_path: str,
    tool: str = "shell",
    *,
    allocator: SessionIdAllocator | None = None,
) -> Instance:
    """
    Create a session instance.

    Identity-aware tools get a conversation id allocated now, before any
    process runs; other tools start with an empty one.
    """
    alloc = allocator or default_allocator
    tool_kind = tool.strip().lower() or "shell"
    instance = Instance(
        title=title,
        project_path=project_path,
        tool=tool_kind,
        allocator=alloc,
    )
    if instance.supports_session_identity:
        instance.conversation_id = alloc.allocate(project_path)
    return instance


def new_instance_with_tool(
    title: str,
    project_path: str,
    tool: str,
    *,
    allocator: SessionIdAllocator | None = None,
) -> Instance:
    """Create a session instance for an explicit tool kind."""
    return new_instance(title, project_path, tool, allocator=allocator)


__all__ = [
    "Instance",
    "SessionIdAllocator",
    "default_allocator",
    "new_instance",
    "new_instance_with_tool",
]
