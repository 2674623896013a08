"""
Daemon definitions for conductor heartbeats and the bridge.

Generates systemd user units (Linux) and launchd property lists (macOS) as
text. Nothing here talks to systemctl or launchctl; installing and enabling
the generated units is the caller's job. Generation is deterministic and
idempotent, so re-running setup rewrites identical files.

Naming:
    agent-deck-conductor-heartbeat-<name>.service / .timer   (one per conductor)
    agent-deck-conductor-bridge.service                      (one for all)
    com.agentdeck.conductor-heartbeat.<name>                 (launchd label)
"""

from __future__ import annotations

import logging
import plistlib
import sys
from dataclasses import dataclass
from functools import lru_cache
from pathlib import Path

from .conductor import generate_heartbeat_script, validate_conductor_name
from .errors import ConfigError, HomeDirectoryError, StorageError, ValidationError
from .fs import atomic_write_text
from .paths import DeckPaths, resolve_home

logger = logging.getLogger("agent-deck.daemon")

HEARTBEAT_UNIT_PREFIX = "agent-deck-conductor-heartbeat-"
SYSTEMD_BRIDGE_SERVICE_NAME = "agent-deck-conductor-bridge.service"
HEARTBEAT_PLIST_PREFIX = "com.agentdeck.conductor-heartbeat."
BRIDGE_PLIST_LABEL = "com.agentdeck.conductor-bridge"
BRIDGE_SCRIPT_FILENAME = "bridge.py"
DEFAULT_PYTHON = "/usr/bin/env python3"

SYSTEMD_HEARTBEAT_TIMER_TEMPLATE = """\
[Unit]
Description=agent-deck conductor heartbeat timer (__NAME__)

[Timer]
OnBootSec=2min
OnUnitActiveSec=__INTERVAL__
AccuracySec=30s
Unit=__SERVICE__

[Install]
WantedBy=timers.target
"""

SYSTEMD_HEARTBEAT_SERVICE_TEMPLATE = """\
[Unit]
Description=agent-deck conductor heartbeat (__NAME__)

[Service]
Type=oneshot
ExecStart=/bin/bash __SCRIPT_PATH__
Environment=HOME=__HOME__
Environment=PATH=__HOME__/.local/bin:/usr/local/bin:/usr/bin:/bin
"""

SYSTEMD_BRIDGE_SERVICE_TEMPLATE = """\
[Unit]
Description=agent-deck conductor bridge
After=network-online.target
Wants=network-online.target

[Service]
Type=simple
ExecStart=__PYTHON__ __BRIDGE_SCRIPT__
Restart=always
RestartSec=10
Environment=HOME=__HOME__
Environment=PATH=__HOME__/.local/bin:/usr/local/bin:/usr/bin:/bin

[Install]
WantedBy=default.target
"""


def _fill(template: str, values: dict[str, str]) -> str:
    for key, value in values.items():
        template = template.replace(f"__{key}__", value)
    return template


def _require_interval(interval_minutes: int) -> int:
    if isinstance(interval_minutes, bool) or interval_minutes <= 0:
        raise ValidationError(f"heartbeat interval must be positive, got {interval_minutes!r}")
    return interval_minutes * 60


def _deck_paths(paths: DeckPaths | None) -> DeckPaths:
    if paths is not None:
        return paths
    try:
        return DeckPaths.from_env()
    except HomeDirectoryError as exc:
        raise ConfigError(f"cannot resolve heartbeat script path: {exc}") from exc


# =============================================================================
# Names and paths
# =============================================================================


def systemd_heartbeat_service_name(name: str) -> str:
    return f"{HEARTBEAT_UNIT_PREFIX}{name}.service"


def systemd_heartbeat_timer_name(name: str) -> str:
    return f"{HEARTBEAT_UNIT_PREFIX}{name}.timer"


def heartbeat_plist_label(name: str) -> str:
    return f"{HEARTBEAT_PLIST_PREFIX}{name}"


def systemd_user_dir(home: Path | None = None) -> Path:
    """
    `~/.config/systemd/user`.

    Raises:
        HomeDirectoryError: If the home directory cannot be determined.
    """
    return (home or resolve_home()) / ".config" / "systemd" / "user"


def systemd_bridge_service_path(home: Path | None = None) -> Path:
    return systemd_user_dir(home) / SYSTEMD_BRIDGE_SERVICE_NAME


def systemd_heartbeat_service_path(name: str, home: Path | None = None) -> Path:
    return systemd_user_dir(home) / systemd_heartbeat_service_name(name)


def systemd_heartbeat_timer_path(name: str, home: Path | None = None) -> Path:
    return systemd_user_dir(home) / systemd_heartbeat_timer_name(name)


def launch_agents_dir(home: Path | None = None) -> Path:
    """`~/Library/LaunchAgents`."""
    return (home or resolve_home()) / "Library" / "LaunchAgents"


def heartbeat_plist_path(name: str, home: Path | None = None) -> Path:
    return launch_agents_dir(home) / f"{heartbeat_plist_label(name)}.plist"


def bridge_plist_path(home: Path | None = None) -> Path:
    return launch_agents_dir(home) / f"{BRIDGE_PLIST_LABEL}.plist"


def bridge_script_path(paths: DeckPaths) -> Path:
    return paths.conductor_dir / BRIDGE_SCRIPT_FILENAME


# =============================================================================
# systemd
# =============================================================================


def generate_systemd_heartbeat_timer(name: str, interval_minutes: int) -> str:
    """
    Render the heartbeat timer unit for a conductor.

    The interval is given in minutes and written in seconds (`900s` for 15).

    Raises:
        ValidationError: Invalid name or non-positive interval.
    """
    validate_conductor_name(name)
    seconds = _require_interval(interval_minutes)
    return _fill(
        SYSTEMD_HEARTBEAT_TIMER_TEMPLATE,
        {
            "NAME": name,
            "INTERVAL": f"{seconds}s",
            "SERVICE": systemd_heartbeat_service_name(name),
        },
    )


def generate_systemd_heartbeat_service(name: str, paths: DeckPaths | None = None) -> str:
    """
    Render the one-shot heartbeat service unit for a conductor.

    Raises:
        ValidationError: Invalid name.
        ConfigError: The heartbeat script path cannot be resolved.
    """
    validate_conductor_name(name)
    deck = _deck_paths(paths)
    return _fill(
        SYSTEMD_HEARTBEAT_SERVICE_TEMPLATE,
        {
            "NAME": name,
            "SCRIPT_PATH": str(deck.heartbeat_script_path(name)),
            "HOME": str(deck.home),
        },
    )


def generate_systemd_bridge_service(
    paths: DeckPaths | None = None,
    python: str = DEFAULT_PYTHON,
) -> str:
    """Render the always-on bridge service shared by all conductors."""
    deck = _deck_paths(paths)
    return _fill(
        SYSTEMD_BRIDGE_SERVICE_TEMPLATE,
        {
            "PYTHON": python,
            "BRIDGE_SCRIPT": str(bridge_script_path(deck)),
            "HOME": str(deck.home),
        },
    )


# =============================================================================
# launchd
# =============================================================================


def generate_launchd_heartbeat_plist(
    name: str,
    interval_minutes: int,
    paths: DeckPaths | None = None,
) -> str:
    """
    Render the launchd property list equivalent of the heartbeat timer.

    Raises:
        ValidationError: Invalid name or non-positive interval.
        ConfigError: The heartbeat script path cannot be resolved.
    """
    validate_conductor_name(name)
    seconds = _require_interval(interval_minutes)
    deck = _deck_paths(paths)
    log_dir = deck.conductor_path(name)
    payload = {
        "Label": heartbeat_plist_label(name),
        "ProgramArguments": ["/bin/bash", str(deck.heartbeat_script_path(name))],
        "StartInterval": seconds,
        "RunAtLoad": False,
        "StandardOutPath": str(log_dir / "heartbeat.log"),
        "StandardErrorPath": str(log_dir / "heartbeat.err.log"),
        "EnvironmentVariables": {
            "HOME": str(deck.home),
            "PATH": f"{deck.home}/.local/bin:/opt/homebrew/bin:/usr/local/bin:/usr/bin:/bin",
        },
    }
    return plistlib.dumps(payload, sort_keys=False).decode("utf-8")


def generate_launchd_bridge_plist(
    paths: DeckPaths | None = None,
    python: str = DEFAULT_PYTHON,
) -> str:
    """Render the launchd property list for the bridge process."""
    deck = _deck_paths(paths)
    payload = {
        "Label": BRIDGE_PLIST_LABEL,
        "ProgramArguments": [*python.split(), str(bridge_script_path(deck))],
        "RunAtLoad": True,
        "KeepAlive": True,
        "StandardOutPath": str(deck.conductor_dir / "bridge.log"),
        "StandardErrorPath": str(deck.conductor_dir / "bridge.err.log"),
        "EnvironmentVariables": {"HOME": str(deck.home)},
    }
    return plistlib.dumps(payload, sort_keys=False).decode("utf-8")


# =============================================================================
# Platform strategies
# =============================================================================


@dataclass(frozen=True)
class DaemonPlatform:
    """Base strategy. Generates nothing; subclasses fill in a service manager."""

    platform_id: str = ""

    def heartbeat_units(
        self,
        name: str,
        interval_minutes: int,
        paths: DeckPaths | None = None,
    ) -> dict[Path, str]:
        """Map of target path -> unit text for a conductor's heartbeat."""
        return {}

    def bridge_units(self, paths: DeckPaths | None = None) -> dict[Path, str]:
        """Map of target path -> unit text for the bridge."""
        return {}

    def bridge_hint(self) -> str:
        return (
            "Automatic daemon setup is not supported on this platform. "
            f"Run the bridge manually: python3 ~/.agent-deck/conductor/{BRIDGE_SCRIPT_FILENAME}"
        )

    def heartbeat_hint(self, name: str) -> str:
        return (
            "Automatic heartbeat scheduling is not supported on this platform. "
            f"Run ~/.agent-deck/conductor/{name}/heartbeat.sh from cron or by hand"
        )


@dataclass(frozen=True)
class SystemdPlatform(DaemonPlatform):
    platform_id: str = "systemd"

    def heartbeat_units(self, name, interval_minutes, paths=None):
        return {
            systemd_heartbeat_service_path(name): generate_systemd_heartbeat_service(name, paths),
            systemd_heartbeat_timer_path(name): generate_systemd_heartbeat_timer(name, interval_minutes),
        }

    def bridge_units(self, paths=None):
        return {systemd_bridge_service_path(): generate_systemd_bridge_service(paths)}

    def bridge_hint(self) -> str:
        return (
            "Enable the bridge with: systemctl --user daemon-reload && "
            f"systemctl --user enable --now {SYSTEMD_BRIDGE_SERVICE_NAME}"
        )

    def heartbeat_hint(self, name: str) -> str:
        return (
            "Enable the heartbeat with: systemctl --user daemon-reload && "
            f"systemctl --user enable --now {systemd_heartbeat_timer_name(name)}"
        )


@dataclass(frozen=True)
class LaunchdPlatform(DaemonPlatform):
    platform_id: str = "launchd"

    def heartbeat_units(self, name, interval_minutes, paths=None):
        return {
            heartbeat_plist_path(name): generate_launchd_heartbeat_plist(name, interval_minutes, paths),
        }

    def bridge_units(self, paths=None):
        return {bridge_plist_path(): generate_launchd_bridge_plist(paths)}

    def bridge_hint(self) -> str:
        return (
            "Load the bridge with: launchctl load "
            f"~/Library/LaunchAgents/{BRIDGE_PLIST_LABEL}.plist"
        )

    def heartbeat_hint(self, name: str) -> str:
        return (
            "Load the heartbeat with: launchctl load "
            f"~/Library/LaunchAgents/{heartbeat_plist_label(name)}.plist"
        )


@dataclass(frozen=True)
class UnsupportedPlatform(DaemonPlatform):
    """No service manager; heartbeats and the bridge must be run by hand."""

    platform_id: str = "unsupported"


def select_daemon_platform(system: str | None = None) -> DaemonPlatform:
    """Pick the daemon strategy for a platform string (default: this host)."""
    system = sys.platform if system is None else system
    if system.startswith("linux"):
        return SystemdPlatform()
    if system == "darwin":
        return LaunchdPlatform()
    return UnsupportedPlatform()


@lru_cache(maxsize=1)
def get_daemon_platform() -> DaemonPlatform:
    """The strategy for this host, detected once per process."""
    platform = select_daemon_platform()
    logger.debug("Daemon platform: %s", platform.platform_id)
    return platform


def bridge_daemon_hint() -> str:
    """Human-readable instruction for running the bridge on this host."""
    return get_daemon_platform().bridge_hint()


def _read_unit(path: Path) -> str | None:
    try:
        return path.read_text(encoding="utf-8")
    except FileNotFoundError:
        return None
    except OSError as exc:
        raise StorageError(f"cannot read {path}: {exc}") from exc


def write_unit_file(path: Path, text: str) -> bool:
    """
    Persist generated unit text atomically.

    Returns:
        False if the file already had identical content (nothing written)
    """
    if _read_unit(path) == text:
        return False
    atomic_write_text(path, text)
    logger.info("Wrote %s", path)
    return True


def write_unit_files(units: dict[Path, str]) -> list[Path]:
    """
    Write a set of units as one change.

    When a write fails, files already written by this call get their previous
    content back (or are removed if they were new) before the StorageError
    propagates.

    Returns:
        Paths that were (re)written
    """
    written: list[tuple[Path, str | None]] = []
    try:
        for path, text in units.items():
            previous = _read_unit(path)
            if previous == text:
                continue
            atomic_write_text(path, text)
            logger.info("Wrote %s", path)
            written.append((path, previous))
    except StorageError:
        _undo_unit_writes(written)
        raise
    return [path for path, _ in written]


def _undo_unit_writes(written: list[tuple[Path, str | None]]) -> None:
    for path, previous in reversed(written):
        try:
            if previous is None:
                path.unlink(missing_ok=True)
            else:
                atomic_write_text(path, previous)
        except (OSError, StorageError) as exc:
            logger.warning("Could not roll back %s: %s", path, exc)


def write_heartbeat_units(
    name: str,
    interval_minutes: int,
    *,
    platform: DaemonPlatform | None = None,
    paths: DeckPaths | None = None,
) -> list[Path]:
    """
    Generate and write a conductor's heartbeat units.

    Every unit is rendered before anything is written, so a generation
    error leaves the disk untouched; a write error is rolled back.

    Returns:
        Paths that were (re)written
    """
    strategy = platform or get_daemon_platform()
    units = strategy.heartbeat_units(name, interval_minutes, paths)
    return write_unit_files(units)


__all__ = [
    "BRIDGE_PLIST_LABEL",
    "UnsupportedPlatform",
    "DaemonPlatform",
    "LaunchdPlatform",
    "SYSTEMD_BRIDGE_SERVICE_NAME",
    "SystemdPlatform",
    "bridge_daemon_hint",
    "generate_heartbeat_script",
    "generate_launchd_bridge_plist",
    "generate_launchd_heartbeat_plist",
    "generate_systemd_bridge_service",
    "generate_systemd_heartbeat_service",
    "generate_systemd_heartbeat_timer",
    "get_daemon_platform",
    "heartbeat_plist_label",
    "heartbeat_plist_path",
    "launch_agents_dir",
    "select_daemon_platform",
    "systemd_bridge_service_path",
    "systemd_heartbeat_service_name",
    "systemd_heartbeat_service_path",
    "systemd_heartbeat_timer_name",
    "systemd_heartbeat_timer_path",
    "systemd_user_dir",
    "write_heartbeat_units",
    "write_unit_file",
    "write_unit_files",
]
