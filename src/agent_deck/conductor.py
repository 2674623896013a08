"""
Conductor registry.

A conductor is a named, persistent bridge between a messaging channel and
agent sessions. Each one lives in its own directory under the standard
conductor directory:

    ~/.agent-deck/conductor/
        CLAUDE.md              shared context document
        <name>/meta.json       ConductorMeta
        <name>/CLAUDE.md       per-conductor context document (default location)
        <name>/heartbeat.sh    script run by the heartbeat timer

The per-conductor context document can live elsewhere; its path is then
stored in meta.json, either absolute or starting with `~/`.
"""

from __future__ import annotations

import json
import logging
import re
import shlex
import shutil
import threading
from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Callable, Optional

from .errors import StorageError, ValidationError
from .fs import atomic_write_json, atomic_write_text
from .paths import DeckPaths, default_paths, expand_user_path

logger = logging.getLogger("agent-deck.conductor")

DEFAULT_PROFILE = "default"
DEFAULT_HEARTBEAT_INTERVAL = 15
MAX_CONDUCTOR_NAME_LENGTH = 64
CONDUCTOR_TITLE_PREFIX = "conductor-"

_NAME_RE = re.compile(r"[A-Za-z0-9][A-Za-z0-9._-]*")

# Setup serialization is per process, keyed by (conductor dir, name)
_setup_locks: dict[tuple[str, str], threading.Lock] = {}
_setup_locks_guard = threading.Lock()


class ConductorNotFoundError(StorageError):
    """Raised when a conductor has no metadata on disk."""

    def __init__(self, name: str) -> None:
        self.name = name
        super().__init__(f"conductor {name!r} not found")


def validate_conductor_name(name: str) -> None:
    """
    Check that a conductor name is safe to use as a directory and unit name.

    Rules: non-empty, at most 64 characters, first character alphanumeric,
    the rest alphanumeric, `.`, `-` or `_`.

    Raises:
        ValidationError: With the specific rule that failed.
    """
    if not name:
        raise ValidationError("conductor name cannot be empty")
    if len(name) > MAX_CONDUCTOR_NAME_LENGTH:
        raise ValidationError(
            f"conductor name too long ({len(name)} > {MAX_CONDUCTOR_NAME_LENGTH} characters)"
        )
    if not (name[0].isascii() and name[0].isalnum()):
        raise ValidationError(
            f"conductor name must start with a letter or digit: {name!r}"
        )
    if not _NAME_RE.fullmatch(name):
        raise ValidationError(
            "conductor name may only contain letters, digits, '.', '-' and '_': "
            f"{name!r}"
        )


def conductor_session_title(name: str) -> str:
    """Title of the agent session that backs a conductor."""
    return CONDUCTOR_TITLE_PREFIX + name


@dataclass
class ConductorSettings:
    """Global conductor settings from the config file."""

    heartbeat_interval: int = 0  # minutes; non-positive means default
    profiles: list[str] = field(default_factory=list)

    def get_heartbeat_interval(self) -> int:
        """Heartbeat interval in minutes, defaulting non-positive values to 15."""
        if self.heartbeat_interval <= 0:
            return DEFAULT_HEARTBEAT_INTERVAL
        return self.heartbeat_interval

    def get_profiles(self) -> list[str]:
        """Configured profiles, or the default profile when none are set."""
        if not self.profiles:
            return [DEFAULT_PROFILE]
        return list(self.profiles)


@dataclass
class ConductorMeta:
    """Persisted conductor metadata (meta.json)."""

    name: str
    profile: str = DEFAULT_PROFILE
    heartbeat_enabled: bool = True
    description: str = ""
    created_at: str = ""
    claude_md_path: str = ""  # Custom context document location, if any

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {
            "name": self.name,
            "profile": self.profile,
            "heartbeat_enabled": self.heartbeat_enabled,
            "description": self.description,
            "created_at": self.created_at,
        }
        if self.claude_md_path:
            data["claude_md_path"] = self.claude_md_path
        return data

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "ConductorMeta":
        """
        Build from decoded meta.json content.

        Raises:
            ValidationError: If required fields are missing or mistyped.
        """
        name = data.get("name")
        if not isinstance(name, str) or not name:
            raise ValidationError("conductor metadata is missing 'name'")
        heartbeat = data.get("heartbeat_enabled", False)
        if not isinstance(heartbeat, bool):
            raise ValidationError("'heartbeat_enabled' must be a boolean")
        return cls(
            name=name,
            profile=str(data.get("profile") or DEFAULT_PROFILE),
            heartbeat_enabled=heartbeat,
            description=str(data.get("description") or ""),
            created_at=str(data.get("created_at") or ""),
            claude_md_path=str(data.get("claude_md_path") or ""),
        )


SHARED_CLAUDE_MD_TEMPLATE = """\
# Conductor

You are a conductor: a long-running agent session that receives messages from
a chat channel through the agent-deck bridge and manages other agent sessions
on the user's behalf.

## How messages reach you

- Messages from the user arrive prefixed with the platform and sender.
- Periodic heartbeat messages ask you to check on your sessions.
- Reply concisely. Your reply is sent back to the chat channel verbatim.

## Heartbeats

On each heartbeat, check the status of the sessions in your profile. Report
sessions that are waiting for input or have failed. If nothing needs
attention, reply with `NO_ACTION`.
"""

CONDUCTOR_CLAUDE_MD_TEMPLATE = """\
# Conductor: {name}

Profile: `{profile}`

{description}

Read the shared conductor instructions in `{shared_path}` first.

Your session title is `{title}`. Sessions you manage belong to the `{profile}`
profile.
"""

HEARTBEAT_SCRIPT_TEMPLATE = """\
#!/usr/bin/env bash
# Heartbeat for agent-deck conductor __NAME__
set -euo pipefail

exec agent-deck -p __PROFILE__ session send __TITLE__ \\
  "Heartbeat: check your sessions and report anything that needs attention." \\
  --no-wait
"""


def render_conductor_claude_md(meta: ConductorMeta, shared_path: Path) -> str:
    """Render the default per-conductor context document."""
    return CONDUCTOR_CLAUDE_MD_TEMPLATE.format(
        name=meta.name,
        profile=meta.profile,
        description=meta.description or "No description provided.",
        shared_path=shared_path,
        title=conductor_session_title(meta.name),
    )


def generate_heartbeat_script(name: str, profile: str = DEFAULT_PROFILE) -> str:
    """Return the shell script the heartbeat timer runs for a conductor."""
    validate_conductor_name(name)
    return (
        HEARTBEAT_SCRIPT_TEMPLATE.replace("__NAME__", name)
        .replace("__PROFILE__", shlex.quote(profile))
        .replace("__TITLE__", shlex.quote(conductor_session_title(name)))
    )


def _utc_now() -> str:
    return datetime.now(timezone.utc).strftime("%Y-%m-%dT%H:%M:%SZ")


def _read_text_if_exists(path: Path) -> Optional[str]:
    try:
        return path.read_text(encoding="utf-8")
    except FileNotFoundError:
        return None
    except OSError as exc:
        raise StorageError(f"cannot read {path}: {exc}") from exc


class ConductorRegistry:
    """
    Conductor metadata and context documents on disk.

    Args:
        paths: Filesystem root; defaults to the current user's home.
        clock: Returns the creation timestamp string for new conductors.
    """

    def __init__(
        self,
        paths: DeckPaths | None = None,
        *,
        clock: Callable[[], str] = _utc_now,
    ) -> None:
        self.paths = paths or default_paths()
        self._clock = clock

    def _setup_lock(self, name: str) -> threading.Lock:
        key = (str(self.paths.conductor_dir), name)
        with _setup_locks_guard:
            lock = _setup_locks.get(key)
            if lock is None:
                lock = _setup_locks[key] = threading.Lock()
            return lock

    def resolve_claude_md_path(self, raw: str) -> Path:
        """Expand `~` and require an absolute path (PathError otherwise)."""
        return expand_user_path(raw, self.paths.home)

    def get_shared_claude_md_path(self) -> Path:
        """Default shared context document, independent of any conductor."""
        return self.paths.shared_claude_md_path()

    def get_conductor_claude_md_path(self, name: str) -> Path:
        """
        Resolve a conductor's context document path.

        Uses the custom path from meta.json when one is set, otherwise the
        default `<conductor dir>/<name>/CLAUDE.md`.

        Raises:
            ValidationError: Invalid conductor name.
            PathError: The stored custom path is relative.
        """
        validate_conductor_name(name)
        try:
            meta = self.load_conductor_meta(name)
        except ConductorNotFoundError:
            meta = None
        if meta is not None and meta.claude_md_path:
            return self.resolve_claude_md_path(meta.claude_md_path)
        return self.paths.default_conductor_claude_md_path(name)

    def conductor_exists(self, name: str) -> bool:
        validate_conductor_name(name)
        return self.paths.conductor_meta_path(name).exists()

    def load_conductor_meta(self, name: str) -> ConductorMeta:
        """
        Read a conductor's meta.json.

        Raises:
            ConductorNotFoundError: No metadata for this name.
            StorageError: The file cannot be read or is not valid JSON.
            ValidationError: The content is not valid conductor metadata.
        """
        validate_conductor_name(name)
        path = self.paths.conductor_meta_path(name)
        try:
            raw = path.read_text(encoding="utf-8")
        except FileNotFoundError:
            raise ConductorNotFoundError(name) from None
        except OSError as exc:
            raise StorageError(f"cannot read {path}: {exc}") from exc
        try:
            data = json.loads(raw)
        except json.JSONDecodeError as exc:
            raise StorageError(f"corrupt conductor metadata {path}: {exc}") from exc
        if not isinstance(data, dict):
            raise StorageError(f"corrupt conductor metadata {path}: not an object")
        return ConductorMeta.from_dict(data)

    def save_conductor_meta(self, meta: ConductorMeta) -> None:
        """Atomically write a conductor's meta.json."""
        validate_conductor_name(meta.name)
        atomic_write_json(self.paths.conductor_meta_path(meta.name), meta.to_dict())

    def list_conductors(self) -> list[ConductorMeta]:
        """Return metadata for every conductor on disk, sorted by name."""
        base = self.paths.conductor_dir
        if not base.is_dir():
            return []

        conductors: list[ConductorMeta] = []
        for entry in sorted(base.iterdir()):
            if not entry.is_dir() or not (entry / "meta.json").exists():
                continue
            try:
                conductors.append(self.load_conductor_meta(entry.name))
            except (ValidationError, StorageError) as exc:
                logger.warning("Skipping unreadable conductor %s: %s", entry.name, exc)
        return conductors

    def setup_conductor(
        self,
        name: str,
        profile: str = DEFAULT_PROFILE,
        heartbeat_enabled: bool = True,
        description: str = "",
        custom_claude_md_path: str = "",
    ) -> ConductorMeta:
        """
        Create (or refresh) a conductor.

        Writes the shared and per-conductor context documents if they don't
        exist yet, writes the heartbeat script, then persists meta.json.
        Re-running setup keeps the original created_at.

        Args:
            name: Conductor name (see validate_conductor_name)
            profile: agent-deck profile the conductor manages
            heartbeat_enabled: Whether heartbeat units should be installed
            description: Free-form description
            custom_claude_md_path: Absolute or `~/` path for the context
                document; empty for the default location

        Returns:
            The persisted ConductorMeta

        Raises:
            ValidationError: Invalid name.
            PathError: custom_claude_md_path is not absolute after expansion.
            StorageError: A file could not be written. Anything created by
                this call is removed again, a replaced heartbeat script gets
                its previous content back, and meta.json is left as it was.
        """
        validate_conductor_name(name)
        custom = custom_claude_md_path.strip()
        claude_md = (
            self.resolve_claude_md_path(custom)
            if custom
            else self.paths.default_conductor_claude_md_path(name)
        )

        with self._setup_lock(name):
            try:
                previous = self.load_conductor_meta(name)
            except ConductorNotFoundError:
                previous = None

            meta = ConductorMeta(
                name=name,
                profile=profile or DEFAULT_PROFILE,
                heartbeat_enabled=heartbeat_enabled,
                description=description,
                created_at=previous.created_at if previous and previous.created_at else self._clock(),
                claude_md_path=custom,
            )

            created: list[Path] = []
            conductor_path = self.paths.conductor_path(name)
            if not conductor_path.exists():
                created.append(conductor_path)
            script_path = self.paths.heartbeat_script_path(name)
            previous_script = _read_text_if_exists(script_path)
            try:
                shared = self.get_shared_claude_md_path()
                if not shared.exists():
                    atomic_write_text(shared, SHARED_CLAUDE_MD_TEMPLATE)
                    created.append(shared)
                if not claude_md.exists():
                    atomic_write_text(claude_md, render_conductor_claude_md(meta, shared))
                    created.append(claude_md)
                if previous_script is None:
                    created.append(script_path)
                atomic_write_text(
                    script_path,
                    generate_heartbeat_script(name, meta.profile),
                    mode=0o755,
                )
                self.save_conductor_meta(meta)
            except StorageError:
                if previous_script is not None:
                    self._restore_text(script_path, previous_script, mode=0o755)
                self._rollback(created)
                raise

        logger.info(
            "Set up conductor %s (profile=%s, heartbeat=%s, context=%s)",
            name,
            meta.profile,
            meta.heartbeat_enabled,
            claude_md,
        )
        return meta

    def update_conductor(
        self,
        name: str,
        *,
        profile: Optional[str] = None,
        heartbeat_enabled: Optional[bool] = None,
        description: Optional[str] = None,
    ) -> ConductorMeta:
        """Apply settings changes to an existing conductor and persist them."""
        with self._setup_lock(name):
            meta = self.load_conductor_meta(name)
            if profile is not None:
                meta.profile = profile or DEFAULT_PROFILE
            if heartbeat_enabled is not None:
                meta.heartbeat_enabled = heartbeat_enabled
            if description is not None:
                meta.description = description
            self.save_conductor_meta(meta)
        return meta

    def teardown_conductor(self, name: str) -> bool:
        """
        Remove a conductor's directory.

        A custom context document outside the directory is left in place.

        Returns:
            True if the conductor existed
        """
        validate_conductor_name(name)
        conductor_path = self.paths.conductor_path(name)
        with self._setup_lock(name):
            if not conductor_path.exists():
                return False
            try:
                shutil.rmtree(conductor_path)
            except OSError as exc:
                raise StorageError(f"cannot remove {conductor_path}: {exc}") from exc
        logger.info("Removed conductor %s", name)
        return True

    @staticmethod
    def _rollback(created: list[Path]) -> None:
        # Undo in reverse creation order; directories go last.
        for path in reversed(created):
            try:
                if path.is_dir():
                    shutil.rmtree(path)
                elif path.exists():
                    path.unlink()
            except OSError as exc:
                logger.warning("Could not roll back %s: %s", path, exc)

    @staticmethod
    def _restore_text(path: Path, text: str, *, mode: int | None = None) -> None:
        try:
            atomic_write_text(path, text, mode=mode)
        except StorageError as exc:
            logger.warning("Could not restore %s: %s", path, exc)


# Module-level API bound to the current user's home directory


def setup_conductor(
    name: str,
    profile: str = DEFAULT_PROFILE,
    heartbeat_enabled: bool = True,
    description: str = "",
    custom_claude_md_path: str = "",
) -> ConductorMeta:
    return ConductorRegistry().setup_conductor(
        name, profile, heartbeat_enabled, description, custom_claude_md_path
    )


def load_conductor_meta(name: str) -> ConductorMeta:
    return ConductorRegistry().load_conductor_meta(name)


def save_conductor_meta(meta: ConductorMeta) -> None:
    ConductorRegistry().save_conductor_meta(meta)


def get_conductor_claude_md_path(name: str) -> Path:
    return ConductorRegistry().get_conductor_claude_md_path(name)


def get_shared_claude_md_path() -> Path:
    return ConductorRegistry().get_shared_claude_md_path()


__all__ = [
    "ConductorMeta",
    "ConductorNotFoundError",
    "ConductorRegistry",
    "ConductorSettings",
    "DEFAULT_HEARTBEAT_INTERVAL",
    "DEFAULT_PROFILE",
    "conductor_session_title",
    "generate_heartbeat_script",
    "get_conductor_claude_md_path",
    "get_shared_claude_md_path",
    "load_conductor_meta",
    "save_conductor_meta",
    "setup_conductor",
    "validate_conductor_name",
]
