"""
Host Event Loop Contract

The session adapter needs exactly two things from the host loop:

    async_wait(fd, events, callback, timeout_ms)
        Arm a one-shot readiness wait. callback(mask) runs at most once,
        with the observed FdEvent mask, or with FdEvent.NONE on timeout.
    cancel()
        Deregister any pending wait.

AsyncioEventWaiter implements the contract on an asyncio loop through
add_reader / add_writer / call_later.
"""

from __future__ import annotations

import asyncio
import logging
from enum import IntFlag
from typing import Callable, Optional, Protocol, runtime_checkable

from keeper.core.errors import InvariantViolation

logger = logging.getLogger(__name__)


class FdEvent(IntFlag):
    """Readiness mask."""
    NONE = 0
    READABLE = 1 << 0
    WRITABLE = 1 << 1


ReadyCallback = Callable[[int], None]


@runtime_checkable
class EventWaiter(Protocol):
    """Minimal host event loop contract."""

    @property
    def armed(self) -> bool:
        ...

    def async_wait(
        self,
        fd: int,
        events: int,
        callback: ReadyCallback,
        timeout_ms: int,
    ) -> None:
        ...

    def cancel(self) -> None:
        ...


class AsyncioEventWaiter:
    """
    One-shot readiness wait on an asyncio event loop.

    At most one wait is outstanding. The waiter disarms before invoking
    the callback, so the callback may arm the next wait.

    Usage:
        waiter = AsyncioEventWaiter(asyncio.get_running_loop())
        waiter.async_wait(fd, FdEvent.READABLE, on_ready, timeout_ms=100)
    """

    __slots__ = ("_loop", "_fd", "_events", "_callback", "_timer")

    def __init__(self, loop: Optional[asyncio.AbstractEventLoop] = None) -> None:
        self._loop = loop or asyncio.get_running_loop()
        self._fd: int = -1
        self._events: int = FdEvent.NONE
        self._callback: Optional[ReadyCallback] = None
        self._timer: Optional[asyncio.TimerHandle] = None

    @property
    def loop(self) -> asyncio.AbstractEventLoop:
        return self._loop

    @property
    def armed(self) -> bool:
        return self._callback is not None

    def async_wait(
        self,
        fd: int,
        events: int,
        callback: ReadyCallback,
        timeout_ms: int,
    ) -> None:
        if self.armed:
            raise InvariantViolation.wait_already_armed(self._fd)

        self._fd = fd
        self._events = events
        self._callback = callback

        if fd >= 0:
            if events & FdEvent.READABLE:
                self._loop.add_reader(fd, self._fire, FdEvent.READABLE)
            if events & FdEvent.WRITABLE:
                self._loop.add_writer(fd, self._fire, FdEvent.WRITABLE)
        self._timer = self._loop.call_later(
            max(timeout_ms, 0) / 1000.0, self._fire, FdEvent.NONE
        )

    def cancel(self) -> None:
        self._disarm()

    def _disarm(self) -> Optional[ReadyCallback]:
        callback = self._callback
        if self._fd >= 0:
            if self._events & FdEvent.READABLE:
                self._loop.remove_reader(self._fd)
            if self._events & FdEvent.WRITABLE:
                self._loop.remove_writer(self._fd)
        if self._timer is not None:
            self._timer.cancel()
        self._fd = -1
        self._events = FdEvent.NONE
        self._callback = None
        self._timer = None
        return callback

    def _fire(self, events: int) -> None:
        callback = self._disarm()
        if callback is None:
            logger.debug("Readiness delivered after cancel; ignored")
            return
        callback(int(events))
