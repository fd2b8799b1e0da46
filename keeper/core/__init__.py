"""
Core module: Status codes, Result types, error hierarchy, configuration.

This module provides the foundational abstractions for the client:
- Result monad every operation completes with
- Status outcome codes in the engine's numbering
- Fatal error hierarchy for programmer and invariant errors
- Configuration management with validation
"""

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
    ErrorCode,
    KeeperError,
    InvalidOperation,
    InvariantViolation,
    ResourceExhausted,
)
from keeper.core.config import KeeperConfig, ObservabilityConfig

__all__ = [
    "Result",
    "Ok",
    "Err",
    "Stat",
    "Acl",
    "Perm",
    "Mode",
    "OPEN_ACL_UNSAFE",
    "READ_ACL_UNSAFE",
    "CREATOR_ALL_ACL",
    "Status",
    "StatusCode",
    "ErrorCode",
    "KeeperError",
    "InvalidOperation",
    "InvariantViolation",
    "ResourceExhausted",
    "KeeperConfig",
    "ObservabilityConfig",
]
