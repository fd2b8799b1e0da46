"""
Engine Module: Native Session Protocol and In-Process Engine

Provides:
- NativeSession / EngineFactory: what the session adapter drives
- Wire-level enums: EventType, KeeperState, OpType, interest bits
- InMemoryEnsemble: in-process engine for development and tests
"""

from keeper.engine.protocol import (
    INTEREST_READ,
    INTEREST_WRITE,
    Completion,
    EngineFactory,
    EventType,
    InterestQuery,
    KeeperState,
    NativeOp,
    NativeSession,
    NativeWatcher,
    OpReply,
    OpType,
)
from keeper.engine.memory import InMemoryEnsemble, InMemorySession, validate_path

__all__ = [
    # Protocol
    "INTEREST_READ",
    "INTEREST_WRITE",
    "Completion",
    "EngineFactory",
    "EventType",
    "InterestQuery",
    "KeeperState",
    "NativeOp",
    "NativeSession",
    "NativeWatcher",
    "OpReply",
    "OpType",
    # In-memory engine
    "InMemoryEnsemble",
    "InMemorySession",
    "validate_path",
]
