"""Tests for agent-deck path resolution."""

from __future__ import annotations

from pathlib import Path

import pytest

from agent_deck.errors import HomeDirectoryError, PathError, StorageError
from agent_deck.paths import (
    DATA_DIRNAME,
    ENV_DECK_HOME,
    DeckPaths,
    expand_user_path,
    resolve_home,
)


class TestResolveHome:
    def test_uses_home_env(self, tmp_path: Path) -> None:
        assert resolve_home(env={"HOME": str(tmp_path)}) == tmp_path

    def test_falls_back_to_path_home(self, tmp_path: Path, monkeypatch) -> None:
        monkeypatch.setattr(Path, "home", classmethod(lambda cls: tmp_path))
        assert resolve_home(env={}) == tmp_path

    def test_raises_when_home_unknown(self, monkeypatch) -> None:
        def no_home(cls):
            raise RuntimeError("Could not determine home directory.")

        monkeypatch.setattr(Path, "home", classmethod(no_home))
        with pytest.raises(HomeDirectoryError):
            resolve_home(env={})

    def test_home_error_is_path_and_storage_error(self) -> None:
        err = HomeDirectoryError("no passwd entry")
        assert isinstance(err, PathError)
        assert isinstance(err, StorageError)
        assert isinstance(err, OSError)
        assert "no passwd entry" in str(err)


class TestExpandUserPath:
    def test_absolute_path_unchanged(self, tmp_path: Path) -> None:
        assert expand_user_path("/opt/notes/CLAUDE.md", tmp_path) == Path("/opt/notes/CLAUDE.md")

    def test_tilde_prefix_expanded(self, tmp_path: Path) -> None:
        assert expand_user_path("~/notes/CLAUDE.md", tmp_path) == tmp_path / "notes" / "CLAUDE.md"

    def test_bare_tilde(self, tmp_path: Path) -> None:
        assert expand_user_path("~", tmp_path) == tmp_path

    def test_relative_path_rejected(self, tmp_path: Path) -> None:
        with pytest.raises(PathError, match="absolute"):
            expand_user_path("notes/CLAUDE.md", tmp_path)

    def test_other_users_home_rejected(self, tmp_path: Path) -> None:
        with pytest.raises(PathError):
            expand_user_path("~bob/CLAUDE.md", tmp_path)


class TestDeckPaths:
    def test_layout(self, tmp_path: Path) -> None:
        paths = DeckPaths(tmp_path)
        assert paths.data_dir == tmp_path / DATA_DIRNAME
        assert paths.conductor_dir == tmp_path / ".agent-deck" / "conductor"
        assert paths.conductor_meta_path("sre") == paths.conductor_dir / "sre" / "meta.json"
        assert paths.heartbeat_script_path("sre") == paths.conductor_dir / "sre" / "heartbeat.sh"
        assert str(paths.shared_claude_md_path()).endswith("conductor/CLAUDE.md")
        assert paths.message_log_path.parent == paths.conductor_dir

    def test_from_env_uses_home(self, tmp_path: Path) -> None:
        paths = DeckPaths.from_env({"HOME": str(tmp_path)})
        assert paths.home == tmp_path

    def test_from_env_deck_home_override(self, tmp_path: Path) -> None:
        override = tmp_path / "alt"
        paths = DeckPaths.from_env({"HOME": str(tmp_path), ENV_DECK_HOME: str(override)})
        assert paths.data_dir == override / DATA_DIRNAME
