"""
Unit Tests: AsyncioEventWaiter

Tests:
    - Readiness and timeout delivery
    - One outstanding wait
    - Cancellation
"""

import asyncio
import socket

import pytest

from keeper.core.errors import InvariantViolation
from keeper.session.event_loop import AsyncioEventWaiter, EventWaiter, FdEvent


class TestAsyncioEventWaiter:
    """Tests for AsyncioEventWaiter on a live loop."""

    def test_satisfies_protocol(self):
        async def scenario():
            return isinstance(AsyncioEventWaiter(), EventWaiter)

        assert asyncio.run(scenario())

    def test_readable(self):
        async def scenario():
            reader, writer = socket.socketpair()
            try:
                waiter = AsyncioEventWaiter()
                fired = asyncio.get_running_loop().create_future()
                waiter.async_wait(reader.fileno(), FdEvent.READABLE, fired.set_result, 5000)
                writer.send(b"x")
                events = await asyncio.wait_for(fired, 2)
                return events, waiter.armed
            finally:
                reader.close()
                writer.close()

        events, armed = asyncio.run(scenario())
        assert events == FdEvent.READABLE
        assert armed is False

    def test_timeout_fires_none(self):
        async def scenario():
            waiter = AsyncioEventWaiter()
            fired = asyncio.get_running_loop().create_future()
            waiter.async_wait(-1, FdEvent.NONE, fired.set_result, 10)
            return await asyncio.wait_for(fired, 2)

        assert asyncio.run(scenario()) == FdEvent.NONE

    def test_second_wait_raises(self):
        async def scenario():
            waiter = AsyncioEventWaiter()
            waiter.async_wait(-1, FdEvent.NONE, lambda events: None, 1000)
            try:
                with pytest.raises(InvariantViolation):
                    waiter.async_wait(-1, FdEvent.NONE, lambda events: None, 1000)
            finally:
                waiter.cancel()

        asyncio.run(scenario())

    def test_cancel(self):
        async def scenario():
            waiter = AsyncioEventWaiter()
            fired = []
            waiter.async_wait(-1, FdEvent.NONE, fired.append, 10)
            waiter.cancel()
            await asyncio.sleep(0.05)
            return fired, waiter.armed

        fired, armed = asyncio.run(scenario())
        assert fired == []
        assert armed is False

    def test_callback_may_rearm(self):
        async def scenario():
            waiter = AsyncioEventWaiter()
            done = asyncio.get_running_loop().create_future()
            count = []

            def on_ready(events):
                count.append(events)
                if len(count) < 3:
                    waiter.async_wait(-1, FdEvent.NONE, on_ready, 1)
                else:
                    done.set_result(len(count))

            waiter.async_wait(-1, FdEvent.NONE, on_ready, 1)
            return await asyncio.wait_for(done, 2)

        assert asyncio.run(scenario()) == 3


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
