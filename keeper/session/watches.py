"""
Watch Registry: Path-Keyed Ordered Watcher Lists

A session keeps two registries:
- node watchers: registered by exists/get, fired on CREATED / DELETED / CHANGED
- child watchers: registered by get_children*, fired on CHILD (and DELETED)

Semantics:
- Watchers for the same path accumulate in insertion order.
- Entries are added only after the watched call was accepted.
- Firing does not unregister; callers re-register to keep observing.
- close() clears the registry; notifications for unknown paths are dropped.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Callable, Iterator, Optional

from keeper.engine.protocol import EventType, KeeperState

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class WatchEvent:
    """A notification delivered to a watcher or the session listener."""
    type: EventType
    state: KeeperState
    path: str

    @classmethod
    def from_native(cls, event_type: int, state: int, path: str) -> WatchEvent:
        try:
            etype = EventType(event_type)
        except ValueError:
            etype = EventType.NOT_WATCHING
        try:
            kstate = KeeperState(state)
        except ValueError:
            kstate = KeeperState.CLOSED
        return cls(type=etype, state=kstate, path=path)


Watcher = Callable[[WatchEvent], None]


class WatchRegistry:
    """
    Mapping path -> ordered list of watchers.

    Usage:
        registry = WatchRegistry("node")
        registry.register_if_present("/a", on_change)
        registry.dispatch(WatchEvent(EventType.CHANGED, KeeperState.CONNECTED, "/a"))
    """

    __slots__ = ("_kind", "_watchers")

    def __init__(self, kind: str = "node") -> None:
        self._kind = kind
        self._watchers: dict[str, list[Watcher]] = {}

    @property
    def kind(self) -> str:
        return self._kind

    def register_if_present(self, path: str, watcher: Optional[Watcher]) -> bool:
        """Append watcher for path; no-op when watcher is None."""
        if watcher is None:
            return False
        self._watchers.setdefault(path, []).append(watcher)
        return True

    def dispatch(self, event: WatchEvent) -> int:
        """
        Invoke every watcher registered for event.path, in order.

        Returns the number of watchers invoked.
        """
        watchers = self._watchers.get(event.path)
        if not watchers:
            logger.debug(
                "Dropped %s notification %s for unwatched path %s",
                self._kind, event.type.name, event.path,
            )
            return 0
        # Snapshot: a watcher may register more watchers for the same path.
        snapshot = list(watchers)
        for watcher in snapshot:
            watcher(event)
        return len(snapshot)

    def watchers(self, path: str) -> list[Watcher]:
        return list(self._watchers.get(path, ()))

    def clear(self) -> None:
        self._watchers.clear()

    def paths(self) -> Iterator[str]:
        return iter(list(self._watchers))

    def __contains__(self, path: object) -> bool:
        return path in self._watchers

    def __len__(self) -> int:
        return len(self._watchers)

    def __repr__(self) -> str:
        total = sum(len(w) for w in self._watchers.values())
        return f"WatchRegistry({self._kind!r}, paths={len(self)}, watchers={total})"
