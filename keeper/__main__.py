#!/usr/bin/env python3
"""
Keeper Client Demo

Drives a Keeper session against the in-process engine on an asyncio loop:
create, watch, update, batch and tear down.

Usage:
    python -m keeper

    # Plain-text logs at debug level
    KEEPER_LOG_JSON=false KEEPER_LOG_LEVEL=DEBUG python -m keeper
"""

from __future__ import annotations

import asyncio
import sys
from typing import Any, Callable

from keeper.core.config import KeeperConfig
from keeper.core.status import Status
from keeper.core.types import Mode, OPEN_ACL_UNSAFE, Result
from keeper.engine.memory import InMemoryEnsemble
from keeper.observability.logging import configure
from keeper.session.event_loop import AsyncioEventWaiter
from keeper.session.keeper import Keeper
from keeper.session.multi import CheckOp, CreateOp, SetOp
from keeper.session.watches import WatchEvent


def completion() -> tuple[asyncio.Future[Result[Any, Status]], Callable[[Result[Any, Status]], None]]:
    """A future plus the callback that resolves it."""
    future: asyncio.Future[Result[Any, Status]] = asyncio.get_running_loop().create_future()
    return future, future.set_result


async def demo_local_mode() -> None:
    """Run a short session against InMemoryEnsemble."""
    print("\n" + "=" * 60)
    print("Keeper Client - Local Demo")
    print("=" * 60 + "\n")

    config_result = KeeperConfig.from_env()
    if config_result.is_err():
        print(f"Configuration error: {config_result.error}")
        sys.exit(1)

    config = config_result.unwrap()

    validation = config.validate()
    if validation.is_err():
        print(f"Validation error: {validation.error}")
        sys.exit(1)

    configure(config.observability)
    print("✓ Configuration loaded and validated")
    print(f"  Hosts: {config.hosts}")
    print(f"  Session timeout: {config.session_timeout_ms}ms")

    ensemble = InMemoryEnsemble()
    events: list[WatchEvent] = []
    keeper = Keeper(
        AsyncioEventWaiter(),
        ensemble.connect,
        listener=lambda event: print(f"   session: {event.state.name}"),
        config=config,
    )
    if not keeper.open(config.hosts, config.session_timeout_ms):
        print("Open failed")
        sys.exit(1)
    print(f"✓ Session open (negotiated timeout {keeper.timeout_ms}ms)")

    print("\n--- Demo Operations ---\n")

    # 1. Create a node
    done, cb = completion()
    keeper.create("/demo", b"v1", OPEN_ACL_UNSAFE, Mode.PERSISTENT, cb)
    result = await done
    print(f"1. create /demo -> {result}")

    # 2. Read it and leave a watch
    done, cb = completion()
    keeper.get("/demo", events.append, cb)
    result = await done
    if result.is_ok():
        got = result.unwrap()
        print(f"2. get /demo -> {got.value!r} (version {got.stat.version})")

    # 3. Update; the watch fires
    done, cb = completion()
    keeper.set("/demo", b"v2", -1, cb)
    await done
    await asyncio.sleep(0.05)
    for event in events:
        print(f"3. watch: {event.type.name} {event.path}")

    # 4. Atomic batch
    done, cb = completion()
    keeper.multi([
        CheckOp("/demo", version=1),
        CreateOp("/demo/item-", b"a", mode=Mode.PERSISTENT_SEQUENTIAL),
        SetOp("/demo", b"v3"),
    ], cb)
    result = await done
    if result.is_ok():
        for slot in result.unwrap():
            print(f"4. multi slot -> {slot}")
    else:
        print(f"4. multi failed: {result.error}")

    # 5. A batch that fails leaves the tree untouched
    done, cb = completion()
    keeper.multi([CreateOp("/demo/x"), CheckOp("/demo", version=0)], cb)
    result = await done
    print(f"5. conflicting multi -> {result}; /demo/x exists: {'/demo/x' in ensemble}")

    # 6. Children
    done, cb = completion()
    keeper.get_children("/demo", None, cb)
    result = await done
    print(f"6. children of /demo -> {result.unwrap().children if result.is_ok() else result}")

    keeper.close()
    print(f"\n✓ Session closed ({keeper!r})")

    # 7. Operations after close fail synchronously
    closed: list[Result[Any, Status]] = []
    keeper.get("/demo", None, closed.append)
    print(f"7. get after close -> {closed[0]}")
    print("=" * 60 + "\n")


async def main() -> None:
    """Main entry point."""
    try:
        await demo_local_mode()
    except KeyboardInterrupt:
        print("\nInterrupted")
    except Exception as e:
        print(f"Error: {e}")
        raise


def run() -> None:
    """Synchronous entry point."""
    asyncio.run(main())


if __name__ == "__main__":
    run()
