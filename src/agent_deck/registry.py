"""
Session Registry for agent-deck

Tracks session instances, their conversation identities and their last
classified status.
"""

from __future__ import annotations

import logging
import threading
from typing import TYPE_CHECKING, Optional

from .instance import Instance, SessionIdAllocator, new_instance
from .patterns import SessionStatus

if TYPE_CHECKING:
    from .config import DeckConfig

logger = logging.getLogger("agent-deck.registry")


class SessionRegistry:
    """
    Registry for managing agent session instances.

    Owns a SessionIdAllocator so that every instance it creates or forks
    draws conversation ids from the same per-path pool.
    """

    def __init__(
        self,
        allocator: SessionIdAllocator | None = None,
        config: "DeckConfig | None" = None,
    ):
        """Initialize an empty registry. `config` supplies pattern overrides."""
        self._allocator = allocator or SessionIdAllocator()
        self._config = config
        self._sessions: dict[str, Instance] = {}
        self._lock = threading.Lock()

    @property
    def allocator(self) -> SessionIdAllocator:
        return self._allocator

    def create(
        self,
        title: str,
        project_path: str,
        tool: str = "shell",
        command: str = "",
    ) -> Instance:
        """
        Create and register a new session instance.

        Args:
            title: Display title
            project_path: Directory the agent runs in
            tool: Tool kind ("claude", "codex", ...)
            command: Launch command for tools without a CLI backend (shell)

        Returns:
            The registered Instance
        """
        instance = new_instance(title, project_path, tool, allocator=self._allocator)
        instance.command = command
        self.add(instance)
        return instance

    def fork(
        self,
        identifier: str,
        new_title: str,
        new_path: str = "",
        *,
        dangerously_skip_permissions: bool = False,
    ) -> Optional[tuple[Instance, str]]:
        """
        Fork a registered session and register the fork.

        Returns:
            (forked instance, launch command), or None if the parent is unknown

        Raises:
            ForkError: If the parent cannot be forked.
        """
        parent = self.resolve(identifier)
        if parent is None:
            return None
        forked, command = parent.create_forked_instance(
            new_title,
            new_path,
            dangerously_skip_permissions=dangerously_skip_permissions,
        )
        self.add(forked)
        return forked, command

    def add(self, instance: Instance) -> Instance:
        """Register an existing instance."""
        with self._lock:
            self._sessions[instance.id] = instance
        return instance

    def get(self, session_id: str) -> Optional[Instance]:
        """Exact lookup by instance id."""
        return self._sessions.get(session_id)

    def get_by_title(self, title: str) -> Optional[Instance]:
        """Get a session by its title."""
        for session in self.list_all():
            if session.title == title:
                return session
        return None

    def resolve(self, identifier: str) -> Optional[Instance]:
        """
        Find a session from whatever the caller has at hand.

        Instance ids win over conversation ids, which win over titles. Titles
        are not unique; the first registered match is returned.
        """
        session = self.get(identifier)
        if session is not None:
            return session

        for session in self.list_all():
            if session.conversation_id and session.conversation_id == identifier:
                return session

        return self.get_by_title(identifier)

    def list_all(self) -> list[Instance]:
        """Snapshot of every tracked session, in registration order."""
        with self._lock:
            return list(self._sessions.values())

    def list_by_status(self, status: SessionStatus) -> list[Instance]:
        """Get sessions filtered by status."""
        return [s for s in self.list_all() if s.status == status]

    def list_by_project(self, project_path: str) -> list[Instance]:
        """Get sessions running in a project directory."""
        return [s for s in self.list_all() if s.project_path == project_path]

    def remove(self, session_id: str) -> Optional[Instance]:
        """
        Stop tracking a session and free its conversation id for its project.

        Returns the removed Instance, or None for an unknown id.
        """
        with self._lock:
            session = self._sessions.pop(session_id, None)
        if session is not None:
            self._allocator.release(session.project_path, session.conversation_id)
            logger.debug("Removed session %s (%s)", session.title, session.id)
        return session

    def update_status(self, session_id: str, status: SessionStatus) -> bool:
        """Store a status and bump last activity. False for an unknown id."""
        session = self.get(session_id)
        if session is not None:
            session.status = status
            session.update_activity()
            return True
        return False

    def classify(self, session_id: str, snapshot: str) -> Optional[SessionStatus]:
        """Classify a snapshot for a session, or None if the session is unknown."""
        session = self.resolve(session_id)
        if session is None:
            return None
        override = self._config.pattern_override(session.tool) if self._config else None
        return session.classify(snapshot, override)

    def set_conversation_id(self, session_id: str, conversation_id: str) -> bool:
        """
        Record an observed conversation id for a session.

        Raises:
            ValidationError: If the id is already used in the same project.
        """
        session = self.resolve(session_id)
        if session is None:
            return False
        session.set_conversation_id(conversation_id)
        return True

    def count(self) -> int:
        with self._lock:
            return len(self._sessions)

    def count_by_status(self, status: SessionStatus) -> int:
        return sum(1 for s in self.list_all() if s.status == status)

    def __len__(self) -> int:
        return self.count()

    def __contains__(self, identifier: str) -> bool:
        return self.resolve(identifier) is not None
