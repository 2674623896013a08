"""
Status pattern engine.

Turns per-tool raw pattern definitions into compiled matchers and classifies
captured terminal snapshots as busy, waiting, idle or unknown.

Pattern sets are data: adding support for a new tool quirk means editing the
tables below (or the operator's config file), not the classification code.

Busy matchers are anchored to a spinner glyph at the start of a line. Agent
startup banners put the same glyphs (`·`, `…`) mid-line next to logo and
box-drawing characters, and those must never read as "working".
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field
from enum import Enum
from functools import lru_cache
from typing import TYPE_CHECKING

from .errors import PatternError

if TYPE_CHECKING:
    from .config import PatternOverride

logger = logging.getLogger("agent-deck.patterns")

PATTERN_GROUPS = ("busy", "waiting", "idle")

# Claude Code's working spinner cycles through these glyphs.
CLAUDE_SPINNER_GLYPHS = "·✢✳✶✻✽"
BRAILLE_SPINNER_GLYPHS = "⠋⠙⠹⠸⠼⠴⠦⠧⠇⠏"

_ANSI_RE = re.compile(r"\x1b\][^\x07\x1b]*(?:\x07|\x1b\\)|\x1b\[[0-?]*[ -/]*[@-~]|\x1b[@-Z\\-_]")


class SessionStatus(str, Enum):
    """Classification label for a session snapshot."""

    IDLE = "idle"  # Agent is at its prompt, waiting for a new task
    BUSY = "busy"  # Agent is working
    WAITING = "waiting"  # Agent is blocked on a question or permission prompt
    UNKNOWN = "unknown"  # No pattern matched


@dataclass
class RawPatterns:
    """Uncompiled regex strings per pattern group."""

    busy: list[str] = field(default_factory=list)
    waiting: list[str] = field(default_factory=list)
    idle: list[str] = field(default_factory=list)

    def to_dict(self) -> dict[str, list[str]]:
        return {group: list(getattr(self, group)) for group in PATTERN_GROUPS}

    def copy(self) -> "RawPatterns":
        return RawPatterns(
            busy=list(self.busy),
            waiting=list(self.waiting),
            idle=list(self.idle),
        )


@dataclass(frozen=True)
class CompiledPatterns:
    """Immutable compiled rule set; safe to share across sessions and threads."""

    busy_regexps: tuple[re.Pattern[str], ...] = ()
    waiting_regexps: tuple[re.Pattern[str], ...] = ()
    idle_regexps: tuple[re.Pattern[str], ...] = ()

    def is_busy(self, snapshot: str) -> bool:
        """Return True if any busy matcher matches anywhere in the snapshot."""
        return any(regex.search(snapshot) for regex in self.busy_regexps)

    def classify(self, snapshot: str) -> SessionStatus:
        """
        Classify a terminal snapshot.

        Busy wins over every other signal: a working agent must never be
        reported idle just because banner or prompt text is also on screen.
        Waiting is checked before idle because permission dialogs render
        the prompt glyph too.

        Args:
            snapshot: ANSI-stripped pane text, possibly multi-line

        Returns:
            The status label; UNKNOWN when nothing matches
        """
        if not snapshot:
            return SessionStatus.UNKNOWN
        if self.is_busy(snapshot):
            return SessionStatus.BUSY
        if any(regex.search(snapshot) for regex in self.waiting_regexps):
            return SessionStatus.WAITING
        if any(regex.search(snapshot) for regex in self.idle_regexps):
            return SessionStatus.IDLE
        return SessionStatus.UNKNOWN


def _busy_spinner(glyphs: str) -> str:
    # Glyph first on its line, then ordinary text ending in an ellipsis.
    return rf"^[ \t]*[{glyphs}][ \t]+\w[^\n]*?(?:…|\.\.\.)"


_CLAUDE_PATTERNS = RawPatterns(
    busy=[
        _busy_spinner(CLAUDE_SPINNER_GLYPHS),
    ],
    waiting=[
        r"Do you want to (?:proceed|make this edit|create)",
        r"Yes, and don't ask again",
        r"Yes, allow all edits",
        r"^[ \t]*❯[ \t]*\d+\.[ \t]+\w",
        r"Enter to select",
    ],
    idle=[
        r"^[ \t]*[>❯](?:[ \t]|$)",
        r"^[ \t]*│[ \t]*>[ \t]",
        r"^[ \t]*✻[ \t]+\w+ for \d",
    ],
)

_CODEX_PATTERNS = RawPatterns(
    busy=[
        r"^[ \t]*[•◦][ \t]+(?:Working|Thinking)\b",
        _busy_spinner(BRAILLE_SPINNER_GLYPHS),
    ],
    waiting=[
        r"Allow command\?",
        r"Would you like to run the following command\?",
        r"\(y/n\)",
    ],
    idle=[
        r"^[ \t]*›(?:[ \t]|$)",
        r"^[ \t]*▌(?:[ \t]|$)",
    ],
)

_GEMINI_PATTERNS = RawPatterns(
    busy=[
        _busy_spinner(BRAILLE_SPINNER_GLYPHS),
        rf"^[ \t]*[{BRAILLE_SPINNER_GLYPHS}][ \t]+\w[^\n]*\(esc to cancel",
    ],
    waiting=[
        r"Allow execution",
        r"Apply this change\?",
        r"Waiting for user confirmation",
    ],
    idle=[
        r"^[ \t]*>[ \t]+Type your message",
        r"^[ \t]*>(?:[ \t]|$)",
    ],
)

_OPENCODE_PATTERNS = RawPatterns(
    busy=[
        _busy_spinner(BRAILLE_SPINNER_GLYPHS),
        rf"^[ \t]*[{BRAILLE_SPINNER_GLYPHS}■⬝][ \t]+\w",
    ],
    waiting=[
        r"Permission required",
        r"\(y/n\)",
    ],
    idle=[
        r"^[ \t]*>(?:[ \t]|$)",
        r"press enter to send",
    ],
)

_SHELL_PATTERNS = RawPatterns(
    busy=[
        _busy_spinner(BRAILLE_SPINNER_GLYPHS),
    ],
    waiting=[
        r"\([yY]/[nN]\)|\[[yY]/[nN]\]",
        r"(?i)password[^\n]*:[ \t]*$",
    ],
    idle=[
        r"[$#%❯]\s*\Z",
    ],
)

_DEFAULT_PATTERNS: dict[str, RawPatterns] = {
    "claude": _CLAUDE_PATTERNS,
    "codex": _CODEX_PATTERNS,
    "gemini": _GEMINI_PATTERNS,
    "opencode": _OPENCODE_PATTERNS,
    "shell": _SHELL_PATTERNS,
}


def known_tools() -> list[str]:
    """Tool kinds that ship built-in patterns (excluding the generic fallback)."""
    return [tool for tool in _DEFAULT_PATTERNS if tool != "shell"]


def default_raw_patterns(tool: str) -> RawPatterns:
    """
    Return the built-in patterns for a tool kind.

    Unknown tool kinds get the generic shell fallback. The result is a fresh
    copy; callers may mutate it freely.
    """
    patterns = _DEFAULT_PATTERNS.get(tool.strip().lower(), _SHELL_PATTERNS)
    return patterns.copy()


def merge_raw_patterns(base: RawPatterns, override: "PatternOverride | None") -> RawPatterns:
    """
    Apply an operator override on top of a base pattern set.

    A group set in the override replaces the base group; `extra_*` lists are
    appended after whichever group ends up in place.
    """
    merged = base.copy()
    if override is None:
        return merged
    for group in PATTERN_GROUPS:
        replacement = getattr(override, group)
        if replacement is not None:
            setattr(merged, group, list(replacement))
        extra = getattr(override, f"extra_{group}")
        if extra:
            getattr(merged, group).extend(extra)
    return merged


def compile_patterns(raw: RawPatterns) -> CompiledPatterns:
    """
    Compile a raw pattern set.

    Every expression is compiled in multiline mode so `^`/`$` anchor to each
    line of a snapshot. Compilation is all-or-nothing.

    Raises:
        PatternError: On the first expression that fails to compile.
    """
    compiled: dict[str, tuple[re.Pattern[str], ...]] = {}
    for group in PATTERN_GROUPS:
        regexps: list[re.Pattern[str]] = []
        for index, pattern in enumerate(getattr(raw, group)):
            try:
                regexps.append(re.compile(pattern, re.MULTILINE))
            except re.error as exc:
                raise PatternError(group, index, pattern, str(exc)) from exc
        compiled[group] = tuple(regexps)

    return CompiledPatterns(
        busy_regexps=compiled["busy"],
        waiting_regexps=compiled["waiting"],
        idle_regexps=compiled["idle"],
    )


@lru_cache(maxsize=64)
def patterns_for_tool(tool: str, override: "PatternOverride | None" = None) -> CompiledPatterns:
    """
    Return the shared compiled pattern set for a tool kind.

    Results are cached per (tool, override); compiled sets are immutable so
    every session of the same tool can use the same instance.
    """
    raw = merge_raw_patterns(default_raw_patterns(tool), override)
    compiled = compile_patterns(raw)
    logger.debug(
        "Compiled %d busy / %d waiting / %d idle patterns for %s",
        len(compiled.busy_regexps),
        len(compiled.waiting_regexps),
        len(compiled.idle_regexps),
        tool,
    )
    return compiled


def strip_ansi(text: str) -> str:
    """Remove ANSI escape sequences from raw pane output."""
    return _ANSI_RE.sub("", text)


def classify_snapshot(
    snapshot: str,
    tool: str = "claude",
    override: "PatternOverride | None" = None,
) -> SessionStatus:
    """Classify a snapshot with the (cached) patterns for `tool`."""
    return patterns_for_tool(tool, override).classify(snapshot)


__all__ = [
    "CompiledPatterns",
    "PATTERN_GROUPS",
    "RawPatterns",
    "SessionStatus",
    "classify_snapshot",
    "compile_patterns",
    "default_raw_patterns",
    "known_tools",
    "merge_raw_patterns",
    "patterns_for_tool",
    "strip_ansi",
]
