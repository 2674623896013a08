"""
Exception types for agent-deck.

Library code raises these; the MCP layer turns them into error responses.
"""


class AgentDeckError(Exception):
    """Base class for all agent-deck errors."""

    pass


class ValidationError(AgentDeckError, ValueError):
    """Raised when a name, setting or record fails validation."""

    pass


class PatternError(AgentDeckError):
    """Raised when a status pattern fails to compile."""

    def __init__(self, group: str, index: int, pattern: str, reason: str) -> None:
        self.group = group
        self.index = index
        self.pattern = pattern
        super().__init__(
            f"invalid {group} pattern #{index} {pattern!r}: {reason}"
        )


class ForkError(AgentDeckError):
    """Raised when forking a session that cannot be forked."""

    pass


class PathError(AgentDeckError):
    """Raised when a path is relative where an absolute one is required."""

    pass


class ConfigError(AgentDeckError):
    """Raised when configuration or a resource needed for generation is missing."""

    pass


class StorageError(AgentDeckError, OSError):
    """Raised when a filesystem operation fails."""

    pass


class HomeDirectoryError(PathError, StorageError):
    """Raised when the user's home directory cannot be determined."""

    def __init__(self, reason: str = "") -> None:
        message = "cannot determine home directory"
        if reason:
            message = f"{message}: {reason}"
        super().__init__(message)


__all__ = [
    "AgentDeckError",
    "ConfigError",
    "ForkError",
    "HomeDirectoryError",
    "PathError",
    "PatternError",
    "StorageError",
    "ValidationError",
]
