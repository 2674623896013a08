"""Tests for SessionRegistry."""

import pytest

from agent_deck.config import DeckConfig, PatternOverride
from agent_deck.errors import ForkError, ValidationError
from agent_deck.patterns import SessionStatus
from agent_deck.registry import SessionRegistry


@pytest.fixture
def registry():
    return SessionRegistry()


class TestSessionRegistry:
    def test_create_and_get(self, registry):
        session = registry.create("worker", "/tmp/project", "claude")
        assert registry.get(session.id) is session
        assert session.id in registry
        assert len(registry) == 1

    def test_resolve_by_id_conversation_and_title(self, registry):
        session = registry.create("worker", "/tmp/project", "claude")
        assert registry.resolve(session.id) is session
        assert registry.resolve(session.conversation_id) is session
        assert registry.resolve("worker") is session
        assert registry.resolve("nope") is None

    def test_fork_registers_child(self, registry):
        parent = registry.create("parent", "/tmp/project", "claude")
        result = registry.fork("parent", "child")
        assert result is not None
        child, command = result
        assert registry.get(child.id) is child
        assert child.parent_id == parent.id
        assert "--fork-session" in command

    def test_fork_unknown_parent_returns_none(self, registry):
        assert registry.fork("ghost", "child") is None

    def test_fork_shell_session_raises(self, registry):
        registry.create("sh", "/tmp/project")
        with pytest.raises(ForkError):
            registry.fork("sh", "child")

    def test_remove_releases_conversation_id(self, registry):
        session = registry.create("worker", "/tmp/project", "claude")
        conversation_id = session.conversation_id
        assert registry.remove(session.id) is session
        assert not registry.allocator.is_taken("/tmp/project", conversation_id)
        assert registry.remove(session.id) is None

    def test_set_conversation_id_collision(self, registry):
        a = registry.create("a", "/tmp/project", "claude")
        registry.create("b", "/tmp/project", "shell")
        with pytest.raises(ValidationError):
            registry.set_conversation_id("b", a.conversation_id)

    def test_set_conversation_id_unknown_session(self, registry):
        assert registry.set_conversation_id("ghost", "x") is False

    def test_list_filters(self, registry):
        a = registry.create("a", "/tmp/one", "claude")
        registry.create("b", "/tmp/two", "claude")
        registry.update_status(a.id, SessionStatus.BUSY)

        assert registry.list_by_status(SessionStatus.BUSY) == [a]
        assert registry.count_by_status(SessionStatus.UNKNOWN) == 1
        assert registry.list_by_project("/tmp/one") == [a]

    def test_update_status_unknown_session(self, registry):
        assert registry.update_status("ghost", SessionStatus.IDLE) is False

    def test_classify_updates_status(self, registry):
        session = registry.create("a", "/tmp/project", "claude")
        assert registry.classify("a", "  ✳ Reading file…") == SessionStatus.BUSY
        assert session.status == SessionStatus.BUSY
        assert registry.classify("ghost", "x") is None

    def test_classify_uses_config_overrides(self):
        config = DeckConfig(patterns={"claude": PatternOverride(extra_idle=(r"^READY$",))})
        registry = SessionRegistry(config=config)
        registry.create("a", "/tmp/project", "claude")
        assert registry.classify("a", "READY") == SessionStatus.IDLE

    def test_create_shell_with_command(self, registry):
        session = registry.create("logs", "/tmp/project", "shell", "tail -f app.log")
        assert session.build_launch_command() == "tail -f app.log"
