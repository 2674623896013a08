"""Shared filesystem paths for agent-deck.

All filesystem-anchored state hangs off a `DeckPaths` root so that callers
(and tests) can substitute a different home directory.
"""

from __future__ import annotations

import logging
import os
from collections.abc import Mapping
from dataclasses import dataclass
from pathlib import Path

from .errors import HomeDirectoryError, PathError

logger = logging.getLogger("agent-deck")

DATA_DIRNAME = ".agent-deck"
CONDUCTOR_DIRNAME = "conductor"
CONTEXT_DOC_FILENAME = "CLAUDE.md"
META_FILENAME = "meta.json"
HEARTBEAT_SCRIPT_FILENAME = "heartbeat.sh"
MESSAGE_LOG_FILENAME = "messages.jsonl"

ENV_DECK_HOME = "AGENT_DECK_HOME"


def resolve_home(*, env: Mapping[str, str] | None = None) -> Path:
    """Return the caller's home directory.

    Raises:
        HomeDirectoryError: If no home directory can be determined.
    """
    environ = os.environ if env is None else env
    home = environ.get("HOME")
    if home:
        return Path(home)
    try:
        return Path.home()
    except (KeyError, RuntimeError) as exc:
        raise HomeDirectoryError(str(exc)) from exc


def expand_user_path(raw: str, home: Path) -> Path:
    """Expand a leading `~` to `home` and require the result to be absolute.

    Only `~` and `~/...` are expanded; `~user` forms are left alone and then
    fail the absolute check.

    Raises:
        PathError: If the expanded path is not absolute.
    """
    value = raw.strip()
    if value == "~":
        expanded = home
    elif value.startswith("~/"):
        expanded = home / value[2:]
    else:
        expanded = Path(value)

    if not expanded.is_absolute():
        raise PathError(
            f"path must be absolute (or start with ~/): {raw!r}"
        )
    return expanded


@dataclass(frozen=True)
class DeckPaths:
    """Configuration root for everything agent-deck keeps on disk."""

    home: Path

    @classmethod
    def from_env(cls, env: Mapping[str, str] | None = None) -> "DeckPaths":
        """Build paths for the current user, honoring AGENT_DECK_HOME."""
        environ = os.environ if env is None else env
        override = environ.get(ENV_DECK_HOME)
        if override:
            logger.debug("Using %s=%s as data root", ENV_DECK_HOME, override)
            return cls(home=Path(override).expanduser())
        return cls(home=resolve_home(env=environ))

    @property
    def data_dir(self) -> Path:
        """`~/.agent-deck`."""
        return self.home / DATA_DIRNAME

    @property
    def conductor_dir(self) -> Path:
        """`~/.agent-deck/conductor`, the standard conductor directory."""
        return self.data_dir / CONDUCTOR_DIRNAME

    @property
    def config_path(self) -> Path:
        return self.data_dir / "config.json"

    @property
    def message_log_path(self) -> Path:
        return self.conductor_dir / MESSAGE_LOG_FILENAME

    def conductor_path(self, name: str) -> Path:
        """Directory holding one conductor's files."""
        return self.conductor_dir / name

    def conductor_meta_path(self, name: str) -> Path:
        return self.conductor_path(name) / META_FILENAME

    def default_conductor_claude_md_path(self, name: str) -> Path:
        return self.conductor_path(name) / CONTEXT_DOC_FILENAME

    def shared_claude_md_path(self) -> Path:
        return self.conductor_dir / CONTEXT_DOC_FILENAME

    def heartbeat_script_path(self, name: str) -> Path:
        return self.conductor_path(name) / HEARTBEAT_SCRIPT_FILENAME


def default_paths() -> DeckPaths:
    """Return the DeckPaths for the current process environment."""
    return DeckPaths.from_env()


__all__ = [
    "CONDUCTOR_DIRNAME",
    "CONTEXT_DOC_FILENAME",
    "DATA_DIRNAME",
    "DeckPaths",
    "ENV_DECK_HOME",
    "HEARTBEAT_SCRIPT_FILENAME",
    "META_FILENAME",
    "MESSAGE_LOG_FILENAME",
    "default_paths",
    "expand_user_path",
    "resolve_home",
]
