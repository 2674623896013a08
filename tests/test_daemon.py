"""Tests for systemd / launchd daemon definitions."""

from __future__ import annotations

import plistlib
from pathlib import Path

import pytest

from agent_deck import daemon
from agent_deck.errors import ConfigError, HomeDirectoryError, StorageError, ValidationError
from agent_deck.paths import DeckPaths


@pytest.fixture
def paths(tmp_path: Path) -> DeckPaths:
    return DeckPaths(tmp_path)


@pytest.fixture
def home(tmp_path: Path, monkeypatch) -> Path:
    monkeypatch.setenv("HOME", str(tmp_path))
    monkeypatch.delenv("AGENT_DECK_HOME", raising=False)
    return tmp_path


class TestNames:
    def test_heartbeat_unit_names(self):
        assert daemon.systemd_heartbeat_service_name("sre") == "agent-deck-conductor-heartbeat-sre.service"
        assert daemon.systemd_heartbeat_timer_name("sre") == "agent-deck-conductor-heartbeat-sre.timer"

    def test_bridge_service_name(self):
        assert daemon.SYSTEMD_BRIDGE_SERVICE_NAME == "agent-deck-conductor-bridge.service"

    def test_plist_label(self):
        assert daemon.heartbeat_plist_label("sre") == "com.agentdeck.conductor-heartbeat.sre"


class TestPaths:
    def test_systemd_user_dir(self, home):
        assert daemon.systemd_user_dir() == home / ".config" / "systemd" / "user"

    def test_unit_paths(self, home):
        user_dir = home / ".config" / "systemd" / "user"
        assert daemon.systemd_bridge_service_path() == user_dir / "agent-deck-conductor-bridge.service"
        assert daemon.systemd_heartbeat_service_path("sre") == user_dir / "agent-deck-conductor-heartbeat-sre.service"
        assert daemon.systemd_heartbeat_timer_path("sre") == user_dir / "agent-deck-conductor-heartbeat-sre.timer"

    def test_launch_agents_paths(self, home):
        assert daemon.launch_agents_dir() == home / "Library" / "LaunchAgents"
        assert daemon.heartbeat_plist_path("sre").name == "com.agentdeck.conductor-heartbeat.sre.plist"

    def test_missing_home_raises(self, monkeypatch):
        def no_home():
            raise HomeDirectoryError("no passwd entry")

        monkeypatch.setattr(daemon, "resolve_home", no_home)
        with pytest.raises(HomeDirectoryError):
            daemon.systemd_user_dir()
        with pytest.raises(OSError):
            daemon.systemd_heartbeat_timer_path("sre")


class TestSystemdTimer:
    def test_timer_content(self):
        timer = daemon.generate_systemd_heartbeat_timer("sre", 15)
        for section in ("[Unit]", "[Timer]", "[Install]"):
            assert section in timer
        assert "OnBootSec=" in timer
        assert "OnUnitActiveSec=900s" in timer
        assert "agent-deck-conductor-heartbeat-sre.service" in timer
        assert "__" not in timer

    @pytest.mark.parametrize("minutes", [1, 5, 60])
    def test_interval_in_seconds(self, minutes):
        timer = daemon.generate_systemd_heartbeat_timer("sre", minutes)
        assert f"OnUnitActiveSec={minutes * 60}s" in timer

    def test_deterministic(self):
        assert daemon.generate_systemd_heartbeat_timer("sre", 15) == daemon.generate_systemd_heartbeat_timer("sre", 15)

    @pytest.mark.parametrize("minutes", [0, -5])
    def test_non_positive_interval_rejected(self, minutes):
        with pytest.raises(ValidationError):
            daemon.generate_systemd_heartbeat_timer("sre", minutes)

    def test_invalid_name_rejected(self):
        with pytest.raises(ValidationError):
            daemon.generate_systemd_heartbeat_timer("bad name", 15)


class TestSystemdService:
    def test_service_content(self, paths):
        service = daemon.generate_systemd_heartbeat_service("sre", paths)
        assert "Type=oneshot" in service
        assert "heartbeat.sh" in service
        assert "sre" in service
        assert str(paths.heartbeat_script_path("sre")) in service
        assert f"HOME={paths.home}" in service
        assert "__" not in service

    def test_service_uses_environment_home(self, home):
        service = daemon.generate_systemd_heartbeat_service("sre")
        assert str(home / ".agent-deck" / "conductor" / "sre" / "heartbeat.sh") in service

    def test_unresolvable_home_raises_config_error(self, monkeypatch):
        def no_home(cls, env=None):
            raise HomeDirectoryError()

        monkeypatch.setattr(DeckPaths, "from_env", classmethod(no_home))
        with pytest.raises(ConfigError):
            daemon.generate_systemd_heartbeat_service("sre")

    def test_bridge_service(self, paths):
        service = daemon.generate_systemd_bridge_service(paths)
        assert "[Install]" in service
        assert "Restart=always" in service
        assert str(paths.conductor_dir / "bridge.py") in service
        assert "__" not in service


class TestLaunchd:
    def test_heartbeat_plist(self, paths):
        text = daemon.generate_launchd_heartbeat_plist("sre", 15, paths)
        data = plistlib.loads(text.encode("utf-8"))
        assert data["Label"] == "com.agentdeck.conductor-heartbeat.sre"
        assert data["StartInterval"] == 900
        assert data["ProgramArguments"][-1] == str(paths.heartbeat_script_path("sre"))

    def test_bridge_plist(self, paths):
        data = plistlib.loads(daemon.generate_launchd_bridge_plist(paths).encode("utf-8"))
        assert data["Label"] == daemon.BRIDGE_PLIST_LABEL
        assert data["KeepAlive"] is True


class TestPlatforms:
    @pytest.mark.parametrize(
        "system, expected",
        [
            ("linux", daemon.SystemdPlatform),
            ("darwin", daemon.LaunchdPlatform),
            ("win32", daemon.UnsupportedPlatform),
            ("freebsd14", daemon.UnsupportedPlatform),
        ],
    )
    def test_select_platform(self, system, expected):
        assert isinstance(daemon.select_daemon_platform(system), expected)

    def test_host_platform_is_cached(self):
        assert daemon.get_daemon_platform() is daemon.get_daemon_platform()

    @pytest.mark.parametrize(
        "platform",
        [daemon.SystemdPlatform(), daemon.LaunchdPlatform(), daemon.UnsupportedPlatform()],
    )
    def test_bridge_hint_never_empty(self, platform):
        assert platform.bridge_hint().strip()

    def test_bridge_daemon_hint(self):
        assert daemon.bridge_daemon_hint().strip()

    def test_systemd_heartbeat_units(self, home, paths):
        units = daemon.SystemdPlatform().heartbeat_units("sre", 10, paths)
        names = sorted(path.name for path in units)
        assert names == [
            "agent-deck-conductor-heartbeat-sre.service",
            "agent-deck-conductor-heartbeat-sre.timer",
        ]

    def test_unsupported_generates_nothing(self, paths):
        assert daemon.UnsupportedPlatform().heartbeat_units("sre", 10, paths) == {}


class TestWriteUnits:
    def test_write_unit_file(self, tmp_path):
        path = tmp_path / "units" / "a.timer"
        assert daemon.write_unit_file(path, "x") is True
        assert path.read_text() == "x"
        assert daemon.write_unit_file(path, "x") is False
        assert daemon.write_unit_file(path, "y") is True

    def test_write_heartbeat_units(self, home, paths):
        written = daemon.write_heartbeat_units("sre", 15, platform=daemon.SystemdPlatform(), paths=paths)
        assert len(written) == 2
        assert all(path.exists() for path in written)
        # Regenerating identical content is a no-op
        assert daemon.write_heartbeat_units("sre", 15, platform=daemon.SystemdPlatform(), paths=paths) == []

    def test_write_unit_files_rolls_back_on_failure(self, tmp_path, monkeypatch):
        existing = tmp_path / "units" / "a.service"
        existing.parent.mkdir()
        existing.write_text("old")
        fresh = tmp_path / "units" / "b.service"
        broken = tmp_path / "units" / "c.timer"
        real_write = daemon.atomic_write_text

        def failing_write(path, text, **kwargs):
            if path == broken:
                raise StorageError("disk full")
            return real_write(path, text, **kwargs)

        monkeypatch.setattr(daemon, "atomic_write_text", failing_write)
        with pytest.raises(StorageError):
            daemon.write_unit_files({existing: "new", fresh: "b", broken: "c"})

        assert existing.read_text() == "old"
        assert not fresh.exists()
        assert not broken.exists()

    def test_write_unit_files_skips_identical(self, tmp_path):
        path = tmp_path / "a.timer"
        path.write_text("same")
        assert daemon.write_unit_files({path: "same", tmp_path / "b.timer": "b"}) == [tmp_path / "b.timer"]


class TestHeartbeatHints:
    def test_systemd_names_the_timer(self):
        hint = daemon.SystemdPlatform().heartbeat_hint("sre")
        assert "systemctl --user enable --now agent-deck-conductor-heartbeat-sre.timer" in hint

    def test_launchd_names_the_plist(self):
        hint = daemon.LaunchdPlatform().heartbeat_hint("sre")
        assert "com.agentdeck.conductor-heartbeat.sre.plist" in hint

    def test_unsupported_points_at_script(self):
        assert "conductor/sre/heartbeat.sh" in daemon.UnsupportedPlatform().heartbeat_hint("sre")
