"""Tests for atomic file writes and env helpers."""

import json
import os

import pytest

from agent_deck import fs
from agent_deck.env_vars import get_env
from agent_deck.errors import StorageError


class TestAtomicWrite:
    def test_creates_parents_and_writes(self, tmp_path):
        path = tmp_path / "a" / "b" / "file.txt"
        fs.atomic_write_text(path, "hello")
        assert path.read_text(encoding="utf-8") == "hello"

    def test_sets_mode(self, tmp_path):
        path = tmp_path / "script.sh"
        fs.atomic_write_text(path, "#!/bin/sh\n", mode=0o755)
        assert os.stat(path).st_mode & 0o777 == 0o755

    def test_write_json(self, tmp_path):
        path = tmp_path / "meta.json"
        fs.atomic_write_json(path, {"name": "sre"})
        assert json.loads(path.read_text(encoding="utf-8")) == {"name": "sre"}

    def test_failure_leaves_no_temp_file(self, tmp_path, monkeypatch):
        path = tmp_path / "file.txt"

        def broken_replace(src, dst):
            raise OSError("read-only filesystem")

        monkeypatch.setattr(fs.os, "replace", broken_replace)
        with pytest.raises(StorageError):
            fs.atomic_write_text(path, "data")

        assert list(tmp_path.iterdir()) == []


class TestGetEnv:
    def test_unset_and_blank_are_none(self):
        assert get_env("X", env={}) is None
        assert get_env("X", env={"X": "   "}) is None

    def test_value_is_stripped(self):
        assert get_env("X", env={"X": " value "}) == "value"
