"""
Keeper: Non-Blocking Coordination-Service Client Core

Drives a native session engine from a host event loop:
- Session adapter: open/close, interest loop, event re-arming
- Callback lifecycle: exactly-once completion delivery
- Watch registry: path-keyed node and child watchers
- Multi batches: atomic create/delete/set/check sequences
- Status/Result model every operation completes with

Every operation takes a callback receiving Ok(result) or Err(Status).
Nothing blocks; completions run on the loop thread.
"""

__version__ = "1.0.0"

# =============================================================================
# PUBLIC API EXPORTS
# =============================================================================
from keeper.core.types import (
    Result,
    Ok,
    Err,
    Stat,
    Acl,
    Perm,
    Mode,
    OPEN_ACL_UNSAFE,
    READ_ACL_UNSAFE,
    CREATOR_ALL_ACL,
)
from keeper.core.status import Status, StatusCode
from keeper.core.errors import (
    KeeperError,
    InvalidOperation,
    InvariantViolation,
    ResourceExhausted,
)
from keeper.core.config import KeeperConfig

from keeper.engine import EventType, InMemoryEnsemble, KeeperState

from keeper.session import (
    AsyncioEventWaiter,
    CheckOp,
    CreateOp,
    DeleteOp,
    Keeper,
    SetOp,
    WatchEvent,
)

__all__ = [
    # Version
    "__version__",
    # Result monad
    "Result",
    "Ok",
    "Err",
    # Data model
    "Stat",
    "Acl",
    "Perm",
    "Mode",
    "OPEN_ACL_UNSAFE",
    "READ_ACL_UNSAFE",
    "CREATOR_ALL_ACL",
    # Status
    "Status",
    "StatusCode",
    # Errors
    "KeeperError",
    "InvalidOperation",
    "InvariantViolation",
    "ResourceExhausted",
    # Config
    "KeeperConfig",
    # Engine
    "EventType",
    "KeeperState",
    "InMemoryEnsemble",
    # Session
    "AsyncioEventWaiter",
    "Keeper",
    "WatchEvent",
    "CreateOp",
    "DeleteOp",
    "SetOp",
    "CheckOp",
]
