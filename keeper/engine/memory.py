"""
In-Memory Coordination Engine: Development and Testing Implementation

Provides an in-process engine implementing the native protocol:
- InMemoryEnsemble: the shared znode tree (one per "cluster")
- InMemorySession: one client session against that tree

Design Principles:
    - Full protocol compliance for seamless swap with a real engine
    - Results computed at submission, delivered only from process()
    - A socketpair wake fd makes queued deliveries visible to the host loop
    - Engine-side watches are one-shot and deduplicated per watcher

Not a replica of the service: no wire protocol, no quorum, no ACL
enforcement. Sessions only end by close() or expire().
"""

from __future__ import annotations

import copy
import errno
import logging
import socket
import time
from collections import deque
from dataclasses import dataclass, field
from enum import Enum, auto
from typing import Any, Callable, Optional, Sequence

from keeper.core import constants as C
from keeper.core.status import StatusCode
from keeper.core.types import Acl, Stat
from keeper.observability.logging import StructuredLogger
from keeper.engine.protocol import (
    INTEREST_READ,
    Completion,
    EventType,
    InterestQuery,
    KeeperState,
    NativeOp,
    NativeWatcher,
    OpReply,
    OpType,
)

logger = logging.getLogger(__name__)

OK = int(StatusCode.OK)
FLAG_EPHEMERAL: int = 1
FLAG_SEQUENCE: int = 2


# =============================================================================
# PATH VALIDATION
# =============================================================================
def validate_path(path: str, sequential: bool = False) -> bool:
    """
    Check an absolute node path.

    A trailing slash is only legal for sequential creates, where the
    engine appends the sequence number.
    """
    if not isinstance(path, str) or not path.startswith(C.PATH_SEPARATOR):
        return False
    if "\x00" in path:
        return False
    if path == C.ROOT_PATH:
        return True
    body = path[1:]
    if sequential and body.endswith(C.PATH_SEPARATOR):
        body = body[:-1]
    elif body.endswith(C.PATH_SEPARATOR):
        return False
    for part in body.split(C.PATH_SEPARATOR):
        if part in ("", ".", ".."):
            return False
    return True


def parent_of(path: str) -> str:
    index = path.rfind(C.PATH_SEPARATOR)
    return C.ROOT_PATH if index == 0 else path[:index]


def _now_ms() -> int:
    return time.time_ns() // 1_000_000


# =============================================================================
# ZNODE
# =============================================================================
@dataclass
class ZNode:
    """Mutable node record inside the tree."""
    data: bytes = b""
    acls: tuple[Acl, ...] = ()
    czxid: int = 0
    mzxid: int = 0
    pzxid: int = 0
    ctime: int = 0
    mtime: int = 0
    version: int = 0
    cversion: int = 0
    aversion: int = 0
    ephemeral_owner: int = 0
    children: set[str] = field(default_factory=set)

    def stat(self) -> Stat:
        return Stat(
            czxid=self.czxid,
            mzxid=self.mzxid,
            ctime=self.ctime,
            mtime=self.mtime,
            version=self.version,
            cversion=self.cversion,
            aversion=self.aversion,
            ephemeral_owner=self.ephemeral_owner,
            data_length=len(self.data),
            num_children=len(self.children),
            pzxid=self.pzxid,
        )


class _WatchTable(Enum):
    DATA = auto()
    CHILD = auto()


# (table, path, event type)
_Trigger = tuple[_WatchTable, str, EventType]


class _SessionState(Enum):
    CONNECTED = auto()
    EXPIRED = auto()
    CLOSED = auto()


# =============================================================================
# ENSEMBLE
# =============================================================================
class InMemoryEnsemble:
    """
    Shared in-process znode tree.

    `connect` is an EngineFactory: pass it to Keeper.

    Usage:
        ensemble = InMemoryEnsemble()
        keeper = Keeper(waiter, ensemble.connect)
        keeper.open("memory:2181", 5000)
    """

    def __init__(
        self,
        min_session_timeout_ms: int = C.MIN_SESSION_TIMEOUT_MS,
        max_session_timeout_ms: int = C.MAX_SESSION_TIMEOUT_MS,
    ) -> None:
        self._min_timeout_ms = min_session_timeout_ms
        self._max_timeout_ms = max_session_timeout_ms
        self._nodes: dict[str, ZNode] = {C.ROOT_PATH: ZNode()}
        self._zxid = 0
        self._next_session_id = 0x1_0000_0000
        self._sessions: dict[int, InMemorySession] = {}
        self._watches: dict[_WatchTable, dict[str, list[tuple[InMemorySession, NativeWatcher]]]] = {
            _WatchTable.DATA: {},
            _WatchTable.CHILD: {},
        }

    # -------------------------------------------------------------------------
    # EngineFactory
    # -------------------------------------------------------------------------

    def connect(
        self,
        hosts: str,
        timeout_ms: int,
        watcher: Optional[NativeWatcher],
    ) -> InMemorySession:
        if not hosts or not hosts.strip():
            raise OSError(errno.EINVAL, "empty host list")
        negotiated = min(max(timeout_ms, self._min_timeout_ms), self._max_timeout_ms)
        session_id = self._next_session_id
        self._next_session_id += 1
        session = InMemorySession(self, session_id, hosts, negotiated, watcher)
        self._sessions[session_id] = session
        logger.debug("Session 0x%x connected (timeout %dms)", session_id, negotiated)
        return session

    # -------------------------------------------------------------------------
    # Inspection
    # -------------------------------------------------------------------------

    @property
    def sessions(self) -> list[InMemorySession]:
        return list(self._sessions.values())

    def __contains__(self, path: object) -> bool:
        return path in self._nodes

    def data(self, path: str) -> Optional[bytes]:
        node = self._nodes.get(path)
        return node.data if node is not None else None

    def stat(self, path: str) -> Optional[Stat]:
        node = self._nodes.get(path)
        return node.stat() if node is not None else None

    def expire(self, session: InMemorySession) -> None:
        """Expire a session as the service would after missed heartbeats."""
        session._expire()

    # -------------------------------------------------------------------------
    # Watches
    # -------------------------------------------------------------------------

    def _add_watch(
        self,
        table: _WatchTable,
        path: str,
        session: InMemorySession,
        watcher: Optional[NativeWatcher],
    ) -> None:
        if watcher is None:
            return
        entries = self._watches[table].setdefault(path, [])
        if (session, watcher) not in entries:
            entries.append((session, watcher))

    def _fire(self, triggers: Sequence[_Trigger]) -> None:
        for table, path, event_type in triggers:
            entries = self._watches[table].pop(path, [])
            for session, watcher in entries:
                session._notify(watcher, event_type, path)

    def _drop_watches(self, session: InMemorySession) -> None:
        for table in self._watches.values():
            for path in list(table):
                table[path] = [e for e in table[path] if e[0] is not session]
                if not table[path]:
                    del table[path]

    # -------------------------------------------------------------------------
    # Tree mutations (return rc, reply; append watch triggers)
    # -------------------------------------------------------------------------

    def _next_zxid(self) -> int:
        self._zxid += 1
        return self._zxid

    @staticmethod
    def _version_matches(expected: int, actual: int) -> bool:
        return expected == C.ANY_VERSION or expected == actual

    def _create(
        self,
        owner: int,
        path: str,
        data: bytes,
        acls: Sequence[Acl],
        flags: int,
        triggers: list[_Trigger],
    ) -> tuple[int, Optional[str]]:
        sequential = bool(flags & FLAG_SEQUENCE)
        if path == C.ROOT_PATH and not sequential:
            return StatusCode.NODE_EXISTS, None
        if not acls:
            return StatusCode.INVALID_ACL, None
        if path.endswith(C.PATH_SEPARATOR):
            # "/a/" + sequence: the node lands directly under "/a"
            parent_path = path[:-1] or C.ROOT_PATH
        else:
            parent_path = parent_of(path)
        parent = self._nodes.get(parent_path)
        if parent is None:
            return StatusCode.NO_NODE, None
        if parent.ephemeral_owner:
            return StatusCode.NO_CHILDREN_FOR_EPHEMERALS, None

        if sequential:
            path = f"{path}{parent.cversion:0{C.SEQUENCE_DIGITS}d}"
        if path in self._nodes:
            return StatusCode.NODE_EXISTS, None

        zxid = self._next_zxid()
        now = _now_ms()
        self._nodes[path] = ZNode(
            data=bytes(data),
            acls=tuple(acls),
            czxid=zxid,
            mzxid=zxid,
            pzxid=zxid,
            ctime=now,
            mtime=now,
            ephemeral_owner=owner if flags & FLAG_EPHEMERAL else 0,
        )
        parent.children.add(path[len(parent_path):].lstrip(C.PATH_SEPARATOR))
        parent.cversion += 1
        parent.pzxid = zxid

        triggers.append((_WatchTable.DATA, path, EventType.CREATED))
        triggers.append((_WatchTable.CHILD, parent_path, EventType.CHILD))
        return OK, path

    def _delete(self, path: str, version: int, triggers: list[_Trigger]) -> int:
        if path == C.ROOT_PATH:
            return StatusCode.BAD_ARGUMENTS
        node = self._nodes.get(path)
        if node is None:
            return StatusCode.NO_NODE
        if not self._version_matches(version, node.version):
            return StatusCode.BAD_VERSION
        if node.children:
            return StatusCode.NOT_EMPTY

        zxid = self._next_zxid()
        parent_path = parent_of(path)
        parent = self._nodes[parent_path]
        parent.children.discard(path.rsplit(C.PATH_SEPARATOR, 1)[1])
        parent.cversion += 1
        parent.pzxid = zxid
        del self._nodes[path]

        triggers.append((_WatchTable.DATA, path, EventType.DELETED))
        triggers.append((_WatchTable.CHILD, path, EventType.DELETED))
        triggers.append((_WatchTable.CHILD, parent_path, EventType.CHILD))
        return OK

    def _set(
        self,
        path: str,
        data: bytes,
        version: int,
        triggers: list[_Trigger],
    ) -> tuple[int, Optional[Stat]]:
        node = self._nodes.get(path)
        if node is None:
            return StatusCode.NO_NODE, None
        if not self._version_matches(version, node.version):
            return StatusCode.BAD_VERSION, None
        node.data = bytes(data)
        node.version += 1
        node.mzxid = self._next_zxid()
        node.mtime = _now_ms()
        triggers.append((_WatchTable.DATA, path, EventType.CHANGED))
        return OK, node.stat()

    def _set_acl(self, path: str, version: int, acls: Sequence[Acl]) -> int:
        node = self._nodes.get(path)
        if node is None:
            return StatusCode.NO_NODE
        if not acls:
            return StatusCode.INVALID_ACL
        if not self._version_matches(version, node.aversion):
            return StatusCode.BAD_VERSION
        node.acls = tuple(acls)
        node.aversion += 1
        self._next_zxid()
        return OK

    def _check(self, path: str, version: int) -> int:
        node = self._nodes.get(path)
        if node is None:
            return StatusCode.NO_NODE
        if not self._version_matches(version, node.version):
            return StatusCode.BAD_VERSION
        return OK

    def _multi(self, owner: int, ops: Sequence[NativeOp], triggers: list[_Trigger]) -> tuple[int, list[OpReply]]:
        saved_nodes = copy.deepcopy(self._nodes)
        saved_zxid = self._zxid
        pending: list[_Trigger] = []
        replies: list[OpReply] = []
        failed_rc = OK

        for op in ops:
            if failed_rc != OK:
                replies.append(OpReply(rc=StatusCode.RUNTIME_INCONSISTENCY))
                continue
            if op.type == OpType.CREATE:
                rc, created = self._create(owner, op.path, op.data, op.acls, op.flags, pending)
                replies.append(OpReply(rc=rc, path=created))
            elif op.type == OpType.DELETE:
                rc = self._delete(op.path, op.version, pending)
                replies.append(OpReply(rc=rc))
            elif op.type == OpType.SET:
                rc, stat = self._set(op.path, op.data, op.version, pending)
                replies.append(OpReply(rc=rc, stat=stat))
            elif op.type == OpType.CHECK:
                rc = self._check(op.path, op.version)
                replies.append(OpReply(rc=rc))
            else:
                rc = StatusCode.UNIMPLEMENTED
                replies.append(OpReply(rc=rc))
            if rc != OK:
                failed_rc = int(rc)

        if failed_rc != OK:
            self._nodes = saved_nodes
            self._zxid = saved_zxid
            return failed_rc, [OpReply(rc=r.rc) for r in replies]

        triggers.extend(pending)
        return OK, replies

    def _remove_ephemerals(self, session: InMemorySession) -> None:
        owned = [p for p, n in self._nodes.items() if n.ephemeral_owner == session.session_id]
        triggers: list[_Trigger] = []
        for path in owned:
            self._delete(path, C.ANY_VERSION, triggers)
        self._fire(triggers)

    def _end_session(self, session: InMemorySession) -> None:
        self._sessions.pop(session.session_id, None)
        self._drop_watches(session)
        self._remove_ephemerals(session)


# =============================================================================
# SESSION
# =============================================================================
class InMemorySession:
    """
    One client session on an InMemoryEnsemble (implements NativeSession).
    """

    def __init__(
        self,
        ensemble: InMemoryEnsemble,
        session_id: int,
        hosts: str,
        timeout_ms: int,
        watcher: Optional[NativeWatcher],
    ) -> None:
        self._ensemble = ensemble
        self._session_id = session_id
        self._hosts = hosts
        self._timeout_ms = timeout_ms
        self._watcher = watcher
        self._state = _SessionState.CONNECTED
        self._auth: list[tuple[str, bytes]] = []
        # (is_completion, fn, args)
        self._queue: deque[tuple[bool, Callable[..., None], tuple[Any, ...]]] = deque()
        self._reader, self._writer = socket.socketpair()
        self._reader.setblocking(False)
        self._writer.setblocking(False)
        self._signalled = False

        if watcher is not None:
            self._enqueue(False, watcher, (EventType.SESSION, KeeperState.CONNECTED, ""))

    @property
    def session_id(self) -> int:
        return self._session_id

    @property
    def auth(self) -> list[tuple[str, bytes]]:
        return list(self._auth)

    @property
    def queued(self) -> int:
        return len(self._queue)

    # -------------------------------------------------------------------------
    # Delivery queue
    # -------------------------------------------------------------------------

    def _enqueue(self, is_completion: bool, fn: Callable[..., None], args: tuple[Any, ...]) -> None:
        self._queue.append((is_completion, fn, args))
        if not self._signalled:
            self._writer.send(b"\x00")
            self._signalled = True

    def _complete(self, completion: Completion, rc: int, reply: Any = None) -> int:
        self._enqueue(True, completion, (int(rc), reply))
        return OK

    def _notify(self, watcher: NativeWatcher, event_type: EventType, path: str) -> None:
        if self._state is not _SessionState.CONNECTED:
            return
        self._enqueue(False, watcher, (int(event_type), int(KeeperState.CONNECTED), path))

    def _drain_wake(self) -> None:
        try:
            while self._reader.recv(4096):
                pass
        except (BlockingIOError, InterruptedError):
            pass
        self._signalled = False

    # -------------------------------------------------------------------------
    # NativeSession: lifecycle and I/O
    # -------------------------------------------------------------------------

    def close(self) -> int:
        if self._state is _SessionState.CLOSED:
            return StatusCode.INVALID_STATE
        was_connected = self._state is _SessionState.CONNECTED
        self._state = _SessionState.CLOSED

        queued, self._queue = self._queue, deque()
        for is_completion, fn, _ in queued:
            if is_completion:
                fn(int(StatusCode.CLOSING), None)

        if was_connected:
            self._ensemble._end_session(self)
        self._reader.close()
        self._writer.close()
        logger.debug("Session 0x%x closed", self._session_id)
        return OK

    def interest(self) -> InterestQuery:
        if self._state is _SessionState.CLOSED:
            return InterestQuery(status=StatusCode.INVALID_STATE)
        if self._state is _SessionState.EXPIRED and not self._queue:
            return InterestQuery(status=StatusCode.INVALID_STATE)
        return InterestQuery(
            status=OK,
            fd=self._reader.fileno(),
            interest=INTEREST_READ,
            timeout_ms=max(self._timeout_ms // C.PING_INTERVAL_DIVISOR, 1),
        )

    def process(self, interest: int) -> int:
        if self._state is _SessionState.CLOSED:
            return StatusCode.INVALID_STATE
        self._drain_wake()
        # Deliver what was queued on entry; anything queued by the callbacks
        # themselves waits for the next round.
        try:
            with StructuredLogger.context(session=f"0x{self._session_id:x}"):
                for _ in range(len(self._queue)):
                    if not self._queue:
                        break
                    _, fn, args = self._queue.popleft()
                    fn(*args)
                    if self._state is _SessionState.CLOSED:
                        break
                # An expired session gets no further rounds.
                while self._state is _SessionState.EXPIRED and self._queue:
                    _, fn, args = self._queue.popleft()
                    fn(*args)
        finally:
            if self._queue and not self._signalled and self._state is not _SessionState.CLOSED:
                self._writer.send(b"\x00")
                self._signalled = True
        return OK

    def is_unrecoverable(self) -> bool:
        return self._state is _SessionState.EXPIRED

    def recv_timeout(self) -> int:
        return self._timeout_ms

    def _expire(self) -> None:
        if self._state is not _SessionState.CONNECTED:
            return
        self._state = _SessionState.EXPIRED
        queued, self._queue = self._queue, deque()
        for is_completion, fn, _ in queued:
            if is_completion:
                self._enqueue(True, fn, (int(StatusCode.SESSION_EXPIRED), None))
        if self._watcher is not None:
            self._enqueue(False, self._watcher, (
                int(EventType.SESSION), int(KeeperState.EXPIRED_SESSION), "",
            ))
        self._ensemble._end_session(self)
        logger.debug("Session 0x%x expired", self._session_id)

    # -------------------------------------------------------------------------
    # NativeSession: submissions
    # -------------------------------------------------------------------------

    def _usable(self) -> bool:
        return self._state is _SessionState.CONNECTED

    def add_auth(self, scheme: str, cert: bytes, completion: Completion) -> int:
        if not self._usable():
            return StatusCode.INVALID_STATE
        if not scheme:
            return StatusCode.BAD_ARGUMENTS
        self._auth.append((scheme, bytes(cert)))
        return self._complete(completion, OK)

    def create(
        self,
        path: str,
        value: bytes,
        acls: Sequence[Acl],
        flags: int,
        completion: Completion,
    ) -> int:
        if not self._usable():
            return StatusCode.INVALID_STATE
        if not validate_path(path, sequential=bool(flags & FLAG_SEQUENCE)):
            return StatusCode.BAD_ARGUMENTS
        triggers: list[_Trigger] = []
        rc, created = self._ensemble._create(
            self._session_id, path, value, acls, flags, triggers
        )
        self._complete(completion, rc, created)
        self._ensemble._fire(triggers)
        return OK

    def delete(self, path: str, version: int, completion: Completion) -> int:
        if not self._usable():
            return StatusCode.INVALID_STATE
        if not validate_path(path):
            return StatusCode.BAD_ARGUMENTS
        triggers: list[_Trigger] = []
        rc = self._ensemble._delete(path, version, triggers)
        self._complete(completion, rc)
        self._ensemble._fire(triggers)
        return OK

    def exists(
        self,
        path: str,
        watcher: Optional[NativeWatcher],
        completion: Completion,
    ) -> int:
        if not self._usable():
            return StatusCode.INVALID_STATE
        if not validate_path(path):
            return StatusCode.BAD_ARGUMENTS
        # An exists watch is left even when the node is absent (creation watch).
        self._ensemble._add_watch(_WatchTable.DATA, path, self, watcher)
        stat = self._ensemble.stat(path)
        if stat is None:
            return self._complete(completion, StatusCode.NO_NODE)
        return self._complete(completion, OK, stat)

    def get(
        self,
        path: str,
        watcher: Optional[NativeWatcher],
        completion: Completion,
    ) -> int:
        if not self._usable():
            return StatusCode.INVALID_STATE
        if not validate_path(path):
            return StatusCode.BAD_ARGUMENTS
        node = self._ensemble._nodes.get(path)
        if node is None:
            return self._complete(completion, StatusCode.NO_NODE)
        self._ensemble._add_watch(_WatchTable.DATA, path, self, watcher)
        return self._complete(completion, OK, (node.data, node.stat()))

    def set(self, path: str, value: bytes, version: int, completion: Completion) -> int:
        if not self._usable():
            return StatusCode.INVALID_STATE
        if not validate_path(path):
            return StatusCode.BAD_ARGUMENTS
        triggers: list[_Trigger] = []
        rc, stat = self._ensemble._set(path, value, version, triggers)
        self._complete(completion, rc, stat)
        self._ensemble._fire(triggers)
        return OK

    def get_acl(self, path: str, completion: Completion) -> int:
        if not self._usable():
            return StatusCode.INVALID_STATE
        if not validate_path(path):
            return StatusCode.BAD_ARGUMENTS
        node = self._ensemble._nodes.get(path)
        if node is None:
            return self._complete(completion, StatusCode.NO_NODE)
        return self._complete(completion, OK, (list(node.acls), node.stat()))

    def set_acl(
        self,
        path: str,
        version: int,
        acls: Sequence[Acl],
        completion: Completion,
    ) -> int:
        if not self._usable():
            return StatusCode.INVALID_STATE
        if not validate_path(path):
            return StatusCode.BAD_ARGUMENTS
        rc = self._ensemble._set_acl(path, version, acls)
        return self._complete(completion, rc)

    def _children(
        self,
        path: str,
        watcher: Optional[NativeWatcher],
        completion: Completion,
        with_stat: bool,
    ) -> int:
        if not self._usable():
            return StatusCode.INVALID_STATE
        if not validate_path(path):
            return StatusCode.BAD_ARGUMENTS
        node = self._ensemble._nodes.get(path)
        if node is None:
            return self._complete(completion, StatusCode.NO_NODE)
        self._ensemble._add_watch(_WatchTable.CHILD, path, self, watcher)
        children = sorted(node.children)
        if with_stat:
            return self._complete(completion, OK, (children, node.stat()))
        return self._complete(completion, OK, children)

    def get_children(
        self,
        path: str,
        watcher: Optional[NativeWatcher],
        completion: Completion,
    ) -> int:
        return self._children(path, watcher, completion, with_stat=False)

    def get_children2(
        self,
        path: str,
        watcher: Optional[NativeWatcher],
        completion: Completion,
    ) -> int:
        return self._children(path, watcher, completion, with_stat=True)

    def multi(self, ops: Sequence[NativeOp], completion: Completion) -> int:
        if not self._usable():
            return StatusCode.INVALID_STATE
        for op in ops:
            sequential = op.type == OpType.CREATE and bool(op.flags & FLAG_SEQUENCE)
            if not validate_path(op.path, sequential=sequential):
                return StatusCode.BAD_ARGUMENTS
        triggers: list[_Trigger] = []
        rc, replies = self._ensemble._multi(self._session_id, ops, triggers)
        self._complete(completion, rc, replies)
        self._ensemble._fire(triggers)
        return OK

    def __repr__(self) -> str:
        return f"InMemorySession(0x{self._session_id:x}, {self._state.name.lower()})"
