"""
Unit Tests: Watch Registry

Tests:
    - Ordered fan-out per path
    - None watchers are skipped
    - Unknown paths and cleared registries drop notifications
"""

import pytest

from keeper.engine.protocol import EventType, KeeperState
from keeper.session.watches import WatchEvent, WatchRegistry


def changed(path: str) -> WatchEvent:
    return WatchEvent(EventType.CHANGED, KeeperState.CONNECTED, path)


class TestWatchEvent:
    """Tests for WatchEvent."""

    def test_from_native(self):
        event = WatchEvent.from_native(3, 3, "/a")
        assert event.type is EventType.CHANGED
        assert event.state is KeeperState.CONNECTED
        assert event.path == "/a"

    def test_from_native_unknown_values(self):
        event = WatchEvent.from_native(42, 99, "/a")
        assert event.type is EventType.NOT_WATCHING
        assert event.state is KeeperState.CLOSED


class TestWatchRegistry:
    """Tests for WatchRegistry."""

    def test_dispatch_in_registration_order(self):
        registry = WatchRegistry("node")
        seen = []
        registry.register_if_present("/a", lambda e: seen.append(("w1", e.path)))
        registry.register_if_present("/a", lambda e: seen.append(("w2", e.path)))

        assert registry.dispatch(changed("/a")) == 2
        assert seen == [("w1", "/a"), ("w2", "/a")]

    def test_none_watcher_not_registered(self):
        registry = WatchRegistry()
        assert registry.register_if_present("/a", None) is False
        assert "/a" not in registry
        assert len(registry) == 0

    def test_unknown_path_is_dropped(self):
        registry = WatchRegistry()
        seen = []
        registry.register_if_present("/a", seen.append)
        assert registry.dispatch(changed("/b")) == 0
        assert seen == []

    def test_firing_keeps_registration(self):
        registry = WatchRegistry()
        seen = []
        registry.register_if_present("/a", seen.append)
        registry.dispatch(changed("/a"))
        registry.dispatch(changed("/a"))
        assert len(seen) == 2

    def test_watcher_registering_during_dispatch(self):
        registry = WatchRegistry()
        seen = []

        def first(event):
            seen.append("first")
            registry.register_if_present("/a", lambda e: seen.append("late"))

        registry.register_if_present("/a", first)
        registry.dispatch(changed("/a"))
        assert seen == ["first"]
        assert len(registry.watchers("/a")) == 2

    def test_clear(self):
        registry = WatchRegistry("child")
        seen = []
        registry.register_if_present("/a", seen.append)
        registry.clear()
        assert registry.dispatch(changed("/a")) == 0
        assert seen == []
        assert list(registry.paths()) == []


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
