"""
Message history records for conductor bridges.

One JSON object per line. The emission timestamp is the correlation key
between a request and its response: the bridge appends an entry when a
message goes out, then records the reply against the same timestamp.
"""

from __future__ import annotations

import json
import logging
import os
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from pathlib import Path
from typing import Any, Optional

from .errors import StorageError, ValidationError

try:
    import fcntl
except ImportError:  # pragma: no cover - platform-specific
    fcntl = None

try:
    import msvcrt
except ImportError:  # pragma: no cover - platform-specific
    msvcrt = None

logger = logging.getLogger("agent-deck.message_log")


class MessageStatus(str, Enum):
    PENDING = "pending"
    SENT = "sent"
    COMPLETED = "completed"
    ERROR = "error"
    TIMEOUT = "timeout"


class MessageDirection(str, Enum):
    INCOMING = "incoming"
    OUTGOING = "outgoing"


_REQUIRED_FIELDS = (
    "timestamp",
    "platform",
    "direction",
    "sender",
    "recipient",
    "profile",
    "conductor",
    "message",
    "status",
)


def utc_timestamp(at: datetime | None = None) -> str:
    """ISO-8601 UTC timestamp with a trailing Z."""
    at = at or datetime.now(timezone.utc)
    if at.tzinfo is None:
        at = at.replace(tzinfo=timezone.utc)
    return at.astimezone(timezone.utc).isoformat().replace("+00:00", "Z")


def parse_timestamp(value: str) -> datetime:
    """Parse a timestamp written by utc_timestamp (or any ISO-8601 string)."""
    if value.endswith("Z"):
        value = value[:-1] + "+00:00"
    parsed = datetime.fromisoformat(value)
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


@dataclass
class MessageLogEntry:
    """One request/response exchange between a messaging platform and a conductor."""

    platform: str
    direction: MessageDirection
    sender: str
    recipient: str
    profile: str
    conductor: str
    message: str
    status: MessageStatus = MessageStatus.PENDING
    timestamp: str = field(default_factory=utc_timestamp)
    response: Optional[str] = None
    response_time_ms: Optional[int] = None
    message_id: Optional[str] = None
    thread_id: Optional[str] = None
    metadata: Optional[dict[str, Any]] = None

    def complete(
        self,
        response: str,
        at: datetime | None = None,
        status: MessageStatus = MessageStatus.COMPLETED,
    ) -> None:
        """Record the reply and how long it took relative to the emission time."""
        finished = at or datetime.now(timezone.utc)
        if finished.tzinfo is None:
            finished = finished.replace(tzinfo=timezone.utc)
        elapsed = finished - parse_timestamp(self.timestamp)
        self.response = response
        self.response_time_ms = max(0, int(elapsed.total_seconds() * 1000))
        self.status = status

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {
            "timestamp": self.timestamp,
            "platform": self.platform,
            "direction": self.direction.value,
            "sender": self.sender,
            "recipient": self.recipient,
            "profile": self.profile,
            "conductor": self.conductor,
            "message": self.message,
            "status": self.status.value,
        }
        # Optional fields are left out entirely when unset
        for key in ("response", "response_time_ms", "message_id", "thread_id", "metadata"):
            value = getattr(self, key)
            if value is not None:
                data[key] = value
        return data

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "MessageLogEntry":
        """
        Build an entry from a decoded JSON object.

        Raises:
            ValidationError: Missing fields or unknown status/direction.
        """
        missing = [key for key in _REQUIRED_FIELDS if key not in data]
        if missing:
            raise ValidationError(f"message log entry missing fields: {', '.join(missing)}")
        try:
            status = MessageStatus(data["status"])
        except ValueError:
            raise ValidationError(f"unknown message status: {data['status']!r}") from None
        try:
            direction = MessageDirection(data["direction"])
        except ValueError:
            raise ValidationError(f"unknown message direction: {data['direction']!r}") from None

        response_time_ms = data.get("response_time_ms")
        if response_time_ms is not None and (
            isinstance(response_time_ms, bool) or not isinstance(response_time_ms, int)
        ):
            raise ValidationError("response_time_ms must be an integer")
        metadata = data.get("metadata")
        if metadata is not None and not isinstance(metadata, dict):
            raise ValidationError("metadata must be an object")

        return cls(
            timestamp=str(data["timestamp"]),
            platform=str(data["platform"]),
            direction=direction,
            sender=str(data["sender"]),
            recipient=str(data["recipient"]),
            profile=str(data["profile"]),
            conductor=str(data["conductor"]),
            message=str(data["message"]),
            status=status,
            response=data.get("response"),
            response_time_ms=response_time_ms,
            message_id=data.get("message_id"),
            thread_id=data.get("thread_id"),
            metadata=metadata,
        )


def append_entry(path: Path, entry: MessageLogEntry) -> None:
    """Append a single entry to the log file."""
    append_entries(path, [entry])


def append_entries(path: Path, entries: list[MessageLogEntry]) -> None:
    """
    Append entries as one locked block.

    Raises:
        StorageError: If the log cannot be written.
    """
    if not entries:
        return

    block = "".join(json.dumps(e.to_dict(), ensure_ascii=False) + "\n" for e in entries)
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        with path.open("a", encoding="utf-8") as handle:
            _lock_file(handle)
            try:
                handle.write(block)
                handle.flush()
                os.fsync(handle.fileno())
            finally:
                _unlock_file(handle)
    except OSError as exc:
        raise StorageError(f"cannot append to {path}: {exc}") from exc


def read_entries(
    path: Path,
    *,
    since: datetime | None = None,
    conductor: str | None = None,
    limit: int = 1000,
) -> list[MessageLogEntry]:
    """
    Read the most recent entries, oldest first.

    Lines that are not valid entries are skipped with a warning.
    """
    if limit <= 0 or not path.exists():
        return []

    if since is not None and since.tzinfo is None:
        since = since.replace(tzinfo=timezone.utc)

    entries: list[MessageLogEntry] = []
    # Decoded per line so one corrupt line cannot abort the whole read
    with path.open("rb") as handle:
        for lineno, raw_line in enumerate(handle, start=1):
            if not raw_line.strip():
                continue
            try:
                line = raw_line.decode("utf-8")
                entry = MessageLogEntry.from_dict(json.loads(line))
                stamp = parse_timestamp(entry.timestamp) if since is not None else None
            except (ValueError, TypeError) as exc:
                logger.warning("Skipping malformed entry at %s:%d: %s", path, lineno, exc)
                continue
            if conductor is not None and entry.conductor != conductor:
                continue
            if stamp is not None and stamp < since:
                continue
            entries.append(entry)
            if len(entries) > limit:
                entries.pop(0)
    return entries


def find_entry(path: Path, timestamp: str) -> Optional[MessageLogEntry]:
    """Latest entry carrying the given correlation timestamp."""
    match = None
    for entry in read_entries(path, limit=1_000_000):
        if entry.timestamp == timestamp:
            match = entry
    return match


def _lock_file(handle) -> None:
    if fcntl is not None:
        fcntl.flock(handle.fileno(), fcntl.LOCK_EX)
        return
    if msvcrt is not None:  # pragma: no cover - platform-specific
        msvcrt.locking(handle.fileno(), msvcrt.LK_LOCK, 1)
        return
    raise StorageError("File locking is not supported on this platform.")


def _unlock_file(handle) -> None:
    if fcntl is not None:
        fcntl.flock(handle.fileno(), fcntl.LOCK_UN)
        return
    if msvcrt is not None:  # pragma: no cover - platform-specific
        msvcrt.locking(handle.fileno(), msvcrt.LK_UNLCK, 1)
        return
    raise StorageError("File locking is not supported on this platform.")


__all__ = [
    "MessageDirection",
    "MessageLogEntry",
    "MessageStatus",
    "append_entries",
    "append_entry",
    "find_entry",
    "parse_timestamp",
    "read_entries",
    "utc_timestamp",
]
