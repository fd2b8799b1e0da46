"""
Keeper: Session / Event-Loop Adapter

Owns the native session handle and bridges the engine's poll/interest I/O
model into callback completion on a host event loop.

States:
    CLOSED        -> no native session; every operation fails INVALID_STATE
    OPEN          -> native session live, interest loop running
    UNRECOVERABLE -> native session live but expired / auth failed;
                     loop stopped, operations fail INVALID_STATE

Interest loop:
    open() ──► update_event() ──► waiter.async_wait(fd, mask, handle_event, t)
                    ▲                                   │
                    └──── if open and recoverable ◄─────┘ handle_event(mask):
                                                            process(mask)

While the session is open and recoverable exactly one wait is outstanding
after every loop callback returns.

Threading:
    Single-threaded. Every method must run on the loop thread that drives
    the EventWaiter; multi-threaded hosts marshal calls onto it
    (e.g. loop.call_soon_threadsafe). No locks are taken.
"""

from __future__ import annotations

import errno
import logging
from typing import Any, Callable, Optional, Sequence

from keeper.core.config import KeeperConfig
from keeper.core.errors import InvalidOperation, InvariantViolation, ResourceExhausted
from keeper.core.status import Status
from keeper.core.types import Acl, Mode, OPEN_ACL_UNSAFE, Result
from keeper.engine.protocol import (
    INTEREST_READ,
    INTEREST_WRITE,
    EngineFactory,
    EventType,
    KeeperState,
    NativeSession,
)
from keeper.observability.logging import StructuredLogger
from keeper.session.callbacks import CallbackLifecycle
from keeper.session.event_loop import EventWaiter, FdEvent
from keeper.session.multi import MultiBatch, Op
from keeper.session.results import (
    AddAuthResult,
    CreateResult,
    DeleteResult,
    ExistsResult,
    GetAclResult,
    GetChildrenResult,
    GetChildrenWithStatResult,
    GetResult,
    MultiResult,
    SetAclResult,
    SetResult,
)
from keeper.session.watches import Watcher, WatchEvent, WatchRegistry

logger = logging.getLogger(__name__)

Listener = Callable[[WatchEvent], None]
Callback = Callable[[Result[Any, Status]], None]


def _to_bytes(value: bytes | str) -> bytes:
    if isinstance(value, str):
        return value.encode("utf-8")
    return bytes(value)


class Keeper:
    """
    Non-blocking coordination-service client session.

    Every operation takes a completion callback receiving Ok(<result>) or
    Err(Status), invoked exactly once: synchronously when the call fails
    before reaching the engine, otherwise later from the event loop.

    Usage:
        waiter = AsyncioEventWaiter(loop)
        keeper = Keeper(waiter, ensemble.connect, listener=on_session_event)
        keeper.open("zk1:2181,zk2:2181", 5000)

        keeper.create("/app", b"v1", OPEN_ACL_UNSAFE, Mode.PERSISTENT, on_created)
        keeper.get("/app", on_change, on_data)
        ...
        keeper.close()
    """

    __slots__ = (
        "_waiter", "_engine_factory", "_listener", "_config",
        "_native", "_hosts", "_node_watchers", "_child_watchers",
        "_lifecycle", "_log",
    )

    def __init__(
        self,
        waiter: EventWaiter,
        engine_factory: EngineFactory,
        listener: Optional[Listener] = None,
        config: Optional[KeeperConfig] = None,
    ) -> None:
        self._waiter = waiter
        self._engine_factory = engine_factory
        self._listener = listener
        self._config = config or KeeperConfig()
        valid = self._config.validate()
        if valid.is_err():
            raise InvalidOperation.invalid_argument("config", self._config, valid.error)
        self._native: Optional[NativeSession] = None
        self._hosts: str = ""
        self._node_watchers = WatchRegistry("node")
        self._child_watchers = WatchRegistry("child")
        self._lifecycle = CallbackLifecycle()
        self._log = StructuredLogger(__name__)

    # -------------------------------------------------------------------------
    # Observers
    # -------------------------------------------------------------------------

    @property
    def is_open(self) -> bool:
        return self._native is not None

    @property
    def is_unrecoverable(self) -> bool:
        return self._native is not None and self._native.is_unrecoverable()

    @property
    def timeout_ms(self) -> int:
        """Negotiated session timeout; 0 when not open."""
        if self._native is None:
            return 0
        return self._native.recv_timeout()

    @property
    def hosts(self) -> str:
        return self._hosts

    @property
    def pending(self) -> int:
        """Submitted operations whose completion has not fired yet."""
        return self._lifecycle.pending

    @property
    def node_watchers(self) -> WatchRegistry:
        return self._node_watchers

    @property
    def child_watchers(self) -> WatchRegistry:
        return self._child_watchers

    # -------------------------------------------------------------------------
    # Session lifecycle
    # -------------------------------------------------------------------------

    def open(self, hosts: str, timeout_ms: int) -> bool:
        """
        Open a native session and start the interest loop.

        Returns:
            True on success; False when the engine failed to initialise
            (logged, no side effects, safe to retry).

        Raises:
            InvalidOperation: already open, or timeout_ms < 0
            ResourceExhausted: the engine ran out of memory
        """
        if self.is_open:
            raise InvalidOperation.already_open(hosts)
        if timeout_ms < 0:
            raise InvalidOperation.negative_timeout(timeout_ms)

        watcher = self._watch_session if self._listener is not None else None
        try:
            native = self._engine_factory(hosts, timeout_ms, watcher)
        except MemoryError as e:
            error = ResourceExhausted.out_of_memory(hosts, cause=e)
            self._log.critical("Keeper open: out of memory", hosts=hosts, error=error)
            raise error from e
        except OSError as e:
            if e.errno == errno.ENOMEM:
                error = ResourceExhausted.out_of_memory(hosts, cause=e)
                self._log.critical("Keeper open: out of memory", hosts=hosts, error=error)
                raise error from e
            status = Status(e.errno) if e.errno else Status.native_error(-1)
            self._log.error(f"Keeper open failed: {status}", hosts=hosts, error=e)
            return False

        self._native = native
        self._hosts = hosts
        self._log = StructuredLogger(__name__).with_extra(hosts=hosts)
        self._log.info("Keeper session opened", timeout_ms=timeout_ms)
        self._update_event()
        return True

    def close(self) -> None:
        """
        Tear down the session. Idempotent.

        Completions still queued by the engine fire (with CLOSING) while the
        native session closes; watchers and the listener are dropped.
        """
        native = self._native
        if native is None:
            return

        self._native = None
        self._listener = None
        self._node_watchers.clear()
        self._child_watchers.clear()
        self._waiter.cancel()

        pending = self._lifecycle.pending
        rc = Status(native.close())
        if not rc.is_ok:
            self._log.error(f"Keeper close: {rc}")
        self._log.info("Keeper session closed", pending=pending)
        self._hosts = ""

    def interest(self) -> tuple[Status, int, int, int]:
        """Query the engine: (status, fd, interest bits, timeout_ms)."""
        if self._native is None:
            return Status.INVALID_STATE, -1, 0, 0
        query = self._native.interest()
        return Status(query.status), query.fd, query.interest, query.timeout_ms

    def process(self, interest: int) -> Status:
        """Feed observed readiness (engine interest bits) to the engine."""
        if self._native is None:
            return Status.INVALID_STATE
        return Status(self._native.process(interest))

    # -------------------------------------------------------------------------
    # Interest loop
    # -------------------------------------------------------------------------

    def _update_event(self) -> None:
        status, fd, interest, timeout_ms = self.interest()
        if not status.is_ok:
            if status.is_bad_arguments:
                raise InvariantViolation.bad_arguments("interest query", status)
            self._log.info(
                f"Keeper interest: {status}",
                fd=fd, interest=interest, timeout_ms=timeout_ms,
            )
        if timeout_ms <= 0:
            timeout_ms = self._config.idle_interest_timeout_ms

        events = FdEvent.NONE
        if interest & INTEREST_READ:
            events |= FdEvent.READABLE
        if interest & INTEREST_WRITE:
            events |= FdEvent.WRITABLE

        self._waiter.async_wait(fd, int(events), self._handle_event, timeout_ms)

    def _handle_event(self, events: int) -> None:
        interest = 0
        if events & FdEvent.READABLE:
            interest |= INTEREST_READ
        if events & FdEvent.WRITABLE:
            interest |= INTEREST_WRITE

        try:
            status = self.process(interest)
        except Exception:
            # A completion or watcher raised; the wait must stay armed.
            self._rearm()
            raise

        if not status.is_ok:
            if status.is_bad_arguments:
                raise InvariantViolation.bad_arguments("process", status)
            self._log.debug(f"Keeper process: {status}")

        self._rearm()

    def _rearm(self) -> None:
        # A callback run by process() may have closed and reopened the
        # session, which arms its own wait.
        if self.is_open and not self.is_unrecoverable and not self._waiter.armed:
            self._update_event()

    # -------------------------------------------------------------------------
    # Notifications
    # -------------------------------------------------------------------------

    def _watch_session(self, event_type: int, state: int, path: str) -> None:
        if event_type != EventType.SESSION:
            return
        event = WatchEvent.from_native(event_type, state, path)
        if event.state == KeeperState.EXPIRED_SESSION:
            self._log.warning("Keeper session expired")
        listener = self._listener
        if listener is not None:
            listener(event)

    def _watch_node(self, event_type: int, state: int, path: str) -> None:
        if event_type == EventType.SESSION:
            return
        self._node_watchers.dispatch(WatchEvent.from_native(event_type, state, path))

    def _watch_child(self, event_type: int, state: int, path: str) -> None:
        if event_type == EventType.SESSION:
            return
        self._child_watchers.dispatch(WatchEvent.from_native(event_type, state, path))

    # -------------------------------------------------------------------------
    # Operations
    # -------------------------------------------------------------------------

    def _session_for(self, operation: str, callback: Callback) -> Optional[NativeSession]:
        """The native session, or None after failing callback with INVALID_STATE."""
        native = self._native
        if native is None or native.is_unrecoverable():
            self._lifecycle.reject(operation, callback, Status.INVALID_STATE)
            return None
        return native

    def add_auth(
        self,
        scheme: str,
        cert: bytes | str,
        callback: Callable[[Result[AddAuthResult, Status]], None],
    ) -> None:
        native = self._session_for("add_auth", callback)
        if native is None:
            return
        cert = _to_bytes(cert)
        self._lifecycle.submit(
            "add_auth", callback, AddAuthResult.decode,
            lambda completion: native.add_auth(scheme, cert, completion),
        )

    def create(
        self,
        path: str,
        value: bytes | str,
        acls: Sequence[Acl],
        mode: Mode,
        callback: Callable[[Result[CreateResult, Status]], None],
    ) -> None:
        native = self._session_for("create", callback)
        if native is None:
            return
        data = _to_bytes(value)
        acl_list = tuple(acls) if acls is not None else OPEN_ACL_UNSAFE
        self._lifecycle.submit(
            "create", callback, CreateResult.decode,
            lambda completion: native.create(path, data, acl_list, int(mode), completion),
        )

    def delete(
        self,
        path: str,
        version: int,
        callback: Callable[[Result[DeleteResult, Status]], None],
    ) -> None:
        native = self._session_for("delete", callback)
        if native is None:
            return
        self._lifecycle.submit(
            "delete", callback, DeleteResult.decode,
            lambda completion: native.delete(path, version, completion),
        )

    def exists(
        self,
        path: str,
        watcher: Optional[Watcher],
        callback: Callable[[Result[ExistsResult, Status]], None],
    ) -> None:
        native = self._session_for("exists", callback)
        if native is None:
            return
        native_watcher = self._watch_node if watcher is not None else None
        status = self._lifecycle.submit(
            "exists", callback, ExistsResult.decode,
            lambda completion: native.exists(path, native_watcher, completion),
        )
        if status.is_ok:
            self._node_watchers.register_if_present(path, watcher)

    def get(
        self,
        path: str,
        watcher: Optional[Watcher],
        callback: Callable[[Result[GetResult, Status]], None],
    ) -> None:
        native = self._session_for("get", callback)
        if native is None:
            return
        native_watcher = self._watch_node if watcher is not None else None
        status = self._lifecycle.submit(
            "get", callback, GetResult.decode,
            lambda completion: native.get(path, native_watcher, completion),
        )
        if status.is_ok:
            self._node_watchers.register_if_present(path, watcher)

    def set(
        self,
        path: str,
        value: bytes | str,
        version: int,
        callback: Callable[[Result[SetResult, Status]], None],
    ) -> None:
        native = self._session_for("set", callback)
        if native is None:
            return
        data = _to_bytes(value)
        self._lifecycle.submit(
            "set", callback, SetResult.decode,
            lambda completion: native.set(path, data, version, completion),
        )

    def get_acl(
        self,
        path: str,
        callback: Callable[[Result[GetAclResult, Status]], None],
    ) -> None:
        native = self._session_for("get_acl", callback)
        if native is None:
            return
        self._lifecycle.submit(
            "get_acl", callback, GetAclResult.decode,
            lambda completion: native.get_acl(path, completion),
        )

    def set_acl(
        self,
        path: str,
        acls: Sequence[Acl],
        version: int,
        callback: Callable[[Result[SetAclResult, Status]], None],
    ) -> None:
        native = self._session_for("set_acl", callback)
        if native is None:
            return
        acl_list = tuple(acls)
        self._lifecycle.submit(
            "set_acl", callback, SetAclResult.decode,
            lambda completion: native.set_acl(path, version, acl_list, completion),
        )

    def get_children(
        self,
        path: str,
        watcher: Optional[Watcher],
        callback: Callable[[Result[GetChildrenResult, Status]], None],
    ) -> None:
        native = self._session_for("get_children", callback)
        if native is None:
            return
        native_watcher = self._watch_child if watcher is not None else None
        status = self._lifecycle.submit(
            "get_children", callback, GetChildrenResult.decode,
            lambda completion: native.get_children(path, native_watcher, completion),
        )
        if status.is_ok:
            self._child_watchers.register_if_present(path, watcher)

    def get_children_with_stat(
        self,
        path: str,
        watcher: Optional[Watcher],
        callback: Callable[[Result[GetChildrenWithStatResult, Status]], None],
    ) -> None:
        native = self._session_for("get_children_with_stat", callback)
        if native is None:
            return
        native_watcher = self._watch_child if watcher is not None else None
        status = self._lifecycle.submit(
            "get_children_with_stat", callback, GetChildrenWithStatResult.decode,
            lambda completion: native.get_children2(path, native_watcher, completion),
        )
        if status.is_ok:
            self._child_watchers.register_if_present(path, watcher)

    def multi(
        self,
        ops: Sequence[Op],
        callback: Callable[[Result[MultiResult, Status]], None],
    ) -> None:
        """Submit ops as one atomic batch."""
        native = self._session_for("multi", callback)
        if native is None:
            return
        batch = MultiBatch(tuple(ops))
        self._lifecycle.submit(
            "multi", callback, batch.decode,
            lambda completion: native.multi(batch.native_ops, completion),
        )

    def __repr__(self) -> str:
        if self._native is None:
            state = "closed"
        elif self.is_unrecoverable:
            state = "unrecoverable"
        else:
            state = "open"
        return f"Keeper({self._hosts!r}, {state}, pending={self.pending})"
