"""
Native Engine Protocol: The Interface the Session Adapter Consumes

The engine owns the wire protocol and session negotiation. The adapter only
needs:

- session open (EngineFactory) and close
- interest query: which fd to watch, for what, and for how long
- process: advance the engine given the observed readiness
- one asynchronous submission per operation kind; a submission that
  returns 0 invokes its completion exactly once later, from process()
  or close()
- notifications: per-call native watchers for node/child watches and a
  session-wide watcher for session state changes

All status values are plain ints in the engine's numbering (see
keeper.core.status.StatusCode).
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import IntEnum
from typing import (
    Any,
    Callable,
    NamedTuple,
    Optional,
    Protocol,
    Sequence,
    runtime_checkable,
)

from keeper.core.types import Acl, Stat


# =============================================================================
# INTEREST BITS
# =============================================================================
INTEREST_WRITE: int = 1 << 0
INTEREST_READ: int = 1 << 1


# =============================================================================
# NOTIFICATION KINDS
# =============================================================================
class EventType(IntEnum):
    """Notification types delivered to native watchers."""
    CREATED = 1
    DELETED = 2
    CHANGED = 3
    CHILD = 4
    SESSION = -1
    NOT_WATCHING = -2


class KeeperState(IntEnum):
    """Session states reported with notifications."""
    CLOSED = 0
    CONNECTING = 1
    ASSOCIATING = 2
    CONNECTED = 3
    EXPIRED_SESSION = -112
    AUTH_FAILED = -113


# (event_type, state, path)
NativeWatcher = Callable[[int, int, str], None]

# (rc, reply); the reply shape depends on the operation kind:
#   add_auth/delete/set_acl -> None
#   create                  -> created path (str)
#   exists/set              -> Stat
#   get                     -> (bytes, Stat)
#   get_acl                 -> (list[Acl], Stat)
#   get_children            -> list[str]
#   get_children2           -> (list[str], Stat)
#   multi                   -> list[OpReply]
Completion = Callable[[int, Any], None]


class InterestQuery(NamedTuple):
    """Result of NativeSession.interest()."""
    status: int
    fd: int = -1
    interest: int = 0
    timeout_ms: int = 0


# =============================================================================
# MULTI BATCH REPRESENTATION
# =============================================================================
class OpType(IntEnum):
    """Sub-operation kinds inside a multi batch."""
    CREATE = 1
    DELETE = 2
    SET = 5
    CHECK = 13


@dataclass(frozen=True, slots=True)
class NativeOp:
    """One sub-operation of a native multi request."""
    type: OpType
    path: str
    data: bytes = b""
    acls: tuple[Acl, ...] = ()
    flags: int = 0
    version: int = -1


@dataclass(frozen=True, slots=True)
class OpReply:
    """One slot of a native multi reply."""
    rc: int
    path: Optional[str] = None
    stat: Optional[Stat] = None


# =============================================================================
# SESSION PROTOCOL
# =============================================================================
@runtime_checkable
class NativeSession(Protocol):
    """An open native session handle."""

    def close(self) -> int:
        """Tear the session down; pending completions fire before return."""
        ...

    def interest(self) -> InterestQuery:
        ...

    def process(self, interest: int) -> int:
        ...

    def is_unrecoverable(self) -> bool:
        ...

    def recv_timeout(self) -> int:
        """Negotiated session timeout in milliseconds."""
        ...

    def add_auth(self, scheme: str, cert: bytes, completion: Completion) -> int:
        ...

    def create(
        self,
        path: str,
        value: bytes,
        acls: Sequence[Acl],
        flags: int,
        completion: Completion,
    ) -> int:
        ...

    def delete(self, path: str, version: int, completion: Completion) -> int:
        ...

    def exists(
        self,
        path: str,
        watcher: Optional[NativeWatcher],
        completion: Completion,
    ) -> int:
        ...

    def get(
        self,
        path: str,
        watcher: Optional[NativeWatcher],
        completion: Completion,
    ) -> int:
        ...

    def set(self, path: str, value: bytes, version: int, completion: Completion) -> int:
        ...

    def get_acl(self, path: str, completion: Completion) -> int:
        ...

    def set_acl(
        self,
        path: str,
        version: int,
        acls: Sequence[Acl],
        completion: Completion,
    ) -> int:
        ...

    def get_children(
        self,
        path: str,
        watcher: Optional[NativeWatcher],
        completion: Completion,
    ) -> int:
        ...

    def get_children2(
        self,
        path: str,
        watcher: Optional[NativeWatcher],
        completion: Completion,
    ) -> int:
        ...

    def multi(self, ops: Sequence[NativeOp], completion: Completion) -> int:
        ...


class EngineFactory(Protocol):
    """
    Opens a native session.

    Raises:
        MemoryError: resource exhaustion (fatal for the caller)
        OSError: any other initialisation failure (errno set)
    """

    def __call__(
        self,
        hosts: str,
        timeout_ms: int,
        watcher: Optional[NativeWatcher],
    ) -> NativeSession:
        ...
