"""
Configuration file support.

Reads `config.json` from the data directory (`~/.agent-deck`, or under
`$AGENT_DECK_HOME`):

    {
      "version": 1,
      "patterns": {
        "claude": {"extra_busy": ["^\\s*⏺ Running…"]}
      },
      "conductor": {"heartbeat_interval": 15, "profiles": ["work"]}
    }

Missing files and missing sections fall back to defaults. Malformed content
raises ConfigError so callers can decide whether to ignore it.
"""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from .conductor import ConductorSettings
from .env_vars import get_env
from .errors import ConfigError, PatternError
from .paths import DeckPaths
from .patterns import compile_patterns, default_raw_patterns, merge_raw_patterns

CONFIG_VERSION = 1
ENV_CONFIG_PATH = "AGENT_DECK_CONFIG"

_OVERRIDE_KEYS = (
    "busy",
    "waiting",
    "idle",
    "extra_busy",
    "extra_waiting",
    "extra_idle",
)


@dataclass(frozen=True)
class PatternOverride:
    """Operator override for one tool's status patterns."""

    busy: tuple[str, ...] | None = None
    waiting: tuple[str, ...] | None = None
    idle: tuple[str, ...] | None = None
    extra_busy: tuple[str, ...] = ()
    extra_waiting: tuple[str, ...] = ()
    extra_idle: tuple[str, ...] = ()


@dataclass(frozen=True)
class DeckConfig:
    """Parsed configuration file."""

    version: int = CONFIG_VERSION
    patterns: dict[str, PatternOverride] = field(default_factory=dict)
    conductor: ConductorSettings = field(default_factory=ConductorSettings)

    def pattern_override(self, tool: str) -> PatternOverride | None:
        """Return the override for a tool kind, if configured."""
        return self.patterns.get(tool.strip().lower())


def config_path(paths: DeckPaths | None = None) -> Path:
    """
    Return the config file location.

    AGENT_DECK_CONFIG wins. Otherwise the file lives in the data directory of
    `paths`, which defaults to the current environment (so AGENT_DECK_HOME
    moves it too).

    Raises:
        HomeDirectoryError: If no override is set and no home can be found.
    """
    override = get_env(ENV_CONFIG_PATH)
    if override:
        return Path(override).expanduser()
    if paths is None:
        paths = DeckPaths.from_env()
    return paths.config_path


def load_config(path: Path | None = None, *, paths: DeckPaths | None = None) -> DeckConfig:
    """
    Load the config file, returning defaults when it does not exist.

    Without an explicit `path` the location comes from config_path(paths).

    Raises:
        ConfigError: If the file is unreadable, not JSON, or has bad values.
    """
    target = path if path is not None else config_path(paths)
    if not target.exists():
        return DeckConfig()

    try:
        raw = json.loads(target.read_text(encoding="utf-8"))
    except OSError as exc:
        raise ConfigError(f"cannot read config file {target}: {exc}") from exc
    except json.JSONDecodeError as exc:
        raise ConfigError(f"config file {target} is not valid JSON: {exc}") from exc

    return parse_config(raw)


def parse_config(raw: Any) -> DeckConfig:
    """Validate a decoded config object and build a DeckConfig."""
    if not isinstance(raw, dict):
        raise ConfigError("config must be a JSON object")

    version = raw.get("version", CONFIG_VERSION)
    if not isinstance(version, int) or version > CONFIG_VERSION:
        raise ConfigError(f"unsupported config version: {version!r}")

    return DeckConfig(
        version=version,
        patterns=_parse_patterns(raw.get("patterns") or {}),
        conductor=_parse_conductor(raw.get("conductor") or {}),
    )


def _parse_patterns(raw: Any) -> dict[str, PatternOverride]:
    if not isinstance(raw, dict):
        raise ConfigError("'patterns' must be an object keyed by tool name")

    overrides: dict[str, PatternOverride] = {}
    for tool, entry in raw.items():
        if not isinstance(entry, dict):
            raise ConfigError(f"patterns.{tool} must be an object")
        unknown = set(entry) - set(_OVERRIDE_KEYS)
        if unknown:
            raise ConfigError(
                f"patterns.{tool} has unknown key(s): {', '.join(sorted(unknown))}"
            )
        values: dict[str, tuple[str, ...]] = {}
        for key, value in entry.items():
            if not isinstance(value, list) or not all(isinstance(v, str) for v in value):
                raise ConfigError(f"patterns.{tool}.{key} must be a list of strings")
            values[key] = tuple(value)

        tool_key = str(tool).strip().lower()
        override = PatternOverride(**values)
        # Bad expressions must fail here, not on the first snapshot
        try:
            compile_patterns(merge_raw_patterns(default_raw_patterns(tool_key), override))
        except PatternError as exc:
            raise ConfigError(f"patterns.{tool}: {exc}") from exc
        overrides[tool_key] = override
    return overrides


def _parse_conductor(raw: Any) -> ConductorSettings:
    if not isinstance(raw, dict):
        raise ConfigError("'conductor' must be an object")

    interval = raw.get("heartbeat_interval", 0)
    if isinstance(interval, bool) or not isinstance(interval, int):
        raise ConfigError("conductor.heartbeat_interval must be an integer")

    profiles = raw.get("profiles", [])
    if not isinstance(profiles, list) or not all(isinstance(p, str) for p in profiles):
        raise ConfigError("conductor.profiles must be a list of strings")

    return ConductorSettings(heartbeat_interval=interval, profiles=list(profiles))


__all__ = [
    "ConfigError",
    "DeckConfig",
    "PatternOverride",
    "config_path",
    "load_config",
    "parse_config",
]
