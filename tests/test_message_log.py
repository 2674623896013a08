"""Tests for message history records."""

from datetime import datetime, timedelta, timezone
import json
import threading

import pytest

from agent_deck import message_log
from agent_deck.errors import ValidationError
from agent_deck.message_log import (
    MessageDirection,
    MessageLogEntry,
    MessageStatus,
    append_entries,
    append_entry,
    find_entry,
    read_entries,
    utc_timestamp,
)

BASE = datetime(2026, 1, 27, 11, 40, tzinfo=timezone.utc)


def _entry(minute: int = 40, conductor: str = "sre", message: str = "status?") -> MessageLogEntry:
    return MessageLogEntry(
        platform="telegram",
        direction=MessageDirection.INCOMING,
        sender="alice",
        recipient=conductor,
        profile="default",
        conductor=conductor,
        message=message,
        timestamp=utc_timestamp(BASE.replace(minute=minute)),
    )


class TestMessageLogEntry:
    def test_timestamp_is_utc_zulu(self):
        assert utc_timestamp(BASE) == "2026-01-27T11:40:00Z"

    def test_to_dict_omits_unset_optionals(self):
        data = _entry().to_dict()
        assert data["status"] == "pending"
        assert data["direction"] == "incoming"
        for key in ("response", "response_time_ms", "message_id", "thread_id", "metadata"):
            assert key not in data

    def test_complete_records_response_time(self):
        entry = _entry()
        entry.complete("all green", at=BASE + timedelta(seconds=2, milliseconds=500))
        assert entry.status == MessageStatus.COMPLETED
        assert entry.response == "all green"
        assert entry.response_time_ms == 2500

    def test_complete_with_timeout_status(self):
        entry = _entry()
        entry.complete("", at=BASE + timedelta(minutes=5), status=MessageStatus.TIMEOUT)
        assert entry.status == MessageStatus.TIMEOUT

    def test_from_dict_round_trip(self):
        entry = _entry()
        entry.message_id = "m-1"
        entry.metadata = {"chat_id": 42}
        entry.complete("ok", at=BASE + timedelta(seconds=1))
        assert MessageLogEntry.from_dict(entry.to_dict()) == entry

    def test_from_dict_rejects_unknown_status(self):
        data = _entry().to_dict()
        data["status"] = "lost"
        with pytest.raises(ValidationError):
            MessageLogEntry.from_dict(data)

    def test_from_dict_rejects_unknown_direction(self):
        data = _entry().to_dict()
        data["direction"] = "sideways"
        with pytest.raises(ValidationError):
            MessageLogEntry.from_dict(data)

    def test_from_dict_requires_fields(self):
        with pytest.raises(ValidationError, match="conductor"):
            MessageLogEntry.from_dict({"timestamp": "x", "status": "sent"})

    def test_status_vocabulary(self):
        assert {s.value for s in MessageStatus} == {"pending", "sent", "completed", "error", "timeout"}


class TestMessageLogFile:
    def test_append_creates_file(self, tmp_path):
        path = tmp_path / "conductor" / "messages.jsonl"
        append_entry(path, _entry())
        lines = path.read_text(encoding="utf-8").splitlines()
        assert len(lines) == 1
        assert json.loads(lines[0])["sender"] == "alice"

    def test_append_entries_empty_is_noop(self, tmp_path):
        path = tmp_path / "messages.jsonl"
        append_entries(path, [])
        assert not path.exists()

    def test_read_missing_file(self, tmp_path):
        assert read_entries(tmp_path / "missing.jsonl") == []

    def test_read_filters_and_limits(self, tmp_path):
        path = tmp_path / "messages.jsonl"
        append_entries(
            path,
            [_entry(40), _entry(41, conductor="ops"), _entry(42), _entry(43)],
        )

        sre = read_entries(path, conductor="sre")
        assert [e.timestamp for e in sre] == [
            "2026-01-27T11:40:00Z",
            "2026-01-27T11:42:00Z",
            "2026-01-27T11:43:00Z",
        ]

        recent = read_entries(path, since=BASE.replace(minute=42))
        assert len(recent) == 2

        assert [e.timestamp for e in read_entries(path, limit=1)] == ["2026-01-27T11:43:00Z"]
        assert read_entries(path, limit=0) == []

    def test_read_skips_malformed_lines(self, tmp_path):
        path = tmp_path / "messages.jsonl"
        append_entry(path, _entry(40))
        with path.open("a", encoding="utf-8") as handle:
            handle.write("{not json\n")
            handle.write(json.dumps({"status": "bogus"}) + "\n")
        append_entry(path, _entry(41))

        assert len(read_entries(path)) == 2

    def test_read_skips_lines_with_invalid_utf8(self, tmp_path):
        path = tmp_path / "messages.jsonl"
        append_entry(path, _entry(40))
        with path.open("ab") as handle:
            handle.write(b'{"bad": "\xff\xfe"}\n')
        append_entry(path, _entry(41, message="café"))

        entries = read_entries(path)

        assert [e.timestamp for e in entries] == [
            utc_timestamp(BASE.replace(minute=40)),
            utc_timestamp(BASE.replace(minute=41)),
        ]
        assert entries[1].message == "café"

    def test_find_entry_returns_latest_for_timestamp(self, tmp_path):
        path = tmp_path / "messages.jsonl"
        pending = _entry(40)
        append_entry(path, pending)
        pending.complete("done", at=BASE + timedelta(seconds=3))
        append_entry(path, pending)

        found = find_entry(path, pending.timestamp)
        assert found is not None
        assert found.status == MessageStatus.COMPLETED
        assert find_entry(path, "2000-01-01T00:00:00Z") is None

    def test_concurrent_appends_do_not_interleave(self, tmp_path):
        path = tmp_path / "messages.jsonl"

        def writer(idx: int) -> None:
            for n in range(20):
                append_entry(path, _entry(message=f"w{idx}-{n}" + "x" * 200))

        threads = [threading.Thread(target=writer, args=(i,)) for i in range(4)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        lines = path.read_text(encoding="utf-8").splitlines()
        assert len(lines) == 80
        for line in lines:
            json.loads(line)

    def test_lock_helpers_round_trip(self, tmp_path):
        path = tmp_path / "messages.jsonl"
        with path.open("a", encoding="utf-8") as handle:
            message_log._lock_file(handle)
            message_log._unlock_file(handle)
