"""
Session Module: Asynchronous Dispatch Layer

Provides:
- Keeper: session lifecycle and event-loop integration
- CallbackLifecycle / CallbackWrapper: exactly-once completion delivery
- WatchRegistry: path-keyed ordered watcher lists
- Multi batch ops: CreateOp, DeleteOp, SetOp, CheckOp
- AsyncioEventWaiter: host loop adapter for asyncio

Architecture:
- One native session per Keeper
- One outstanding event-loop wait while the session is open
- Results delivered through the submitting call's callback only
"""

from keeper.session.event_loop import (
    AsyncioEventWaiter,
    EventWaiter,
    FdEvent,
)
from keeper.session.results import (
    AddAuthResult,
    CheckResult,
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
from keeper.session.callbacks import CallbackLifecycle, CallbackWrapper
from keeper.session.watches import WatchEvent, WatchRegistry
from keeper.session.multi import CheckOp, CreateOp, DeleteOp, MultiBatch, Op, SetOp
from keeper.session.keeper import Keeper

__all__ = [
    # Event loop
    "AsyncioEventWaiter",
    "EventWaiter",
    "FdEvent",
    # Results
    "AddAuthResult",
    "CheckResult",
    "CreateResult",
    "DeleteResult",
    "ExistsResult",
    "GetAclResult",
    "GetChildrenResult",
    "GetChildrenWithStatResult",
    "GetResult",
    "MultiResult",
    "SetAclResult",
    "SetResult",
    # Callbacks
    "CallbackLifecycle",
    "CallbackWrapper",
    # Watches
    "WatchEvent",
    "WatchRegistry",
    # Multi
    "CheckOp",
    "CreateOp",
    "DeleteOp",
    "MultiBatch",
    "Op",
    "SetOp",
    # Session
    "Keeper",
]
