"""
Fatal Error Hierarchy for the Keeper Client

Two channels carry failures out of the client:

- Status values inside Err results: session state, connectivity and
  protocol outcomes. Delivered through the operation's callback, never
  raised.
- KeeperError exceptions (this module): programmer errors, adapter
  invariant violations and resource exhaustion. Raised, never converted
  into results; there is no safe degraded mode after one of these.

Each error carries:
- Unique error code for programmatic handling
- Human-readable message for logging
- Context dict with the offending values
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Optional

from keeper.core.status import Status


# =============================================================================
# ERROR CODE ENUMERATION
# =============================================================================
class ErrorCode(Enum):
    """
    Unique error codes, grouped by class:
    - 1xxx: Programmer errors (precondition misuse)
    - 2xxx: Resource exhaustion
    - 3xxx: Adapter invariant violations
    """

    # Programmer errors (1xxx)
    SESSION_ALREADY_OPEN = 1001
    NEGATIVE_TIMEOUT = 1002
    INVALID_ARGUMENT = 1003

    # Resource exhaustion (2xxx)
    OUT_OF_MEMORY = 2001

    # Invariant violations (3xxx)
    BAD_ARGUMENTS_INTERNAL = 3001
    COMPLETION_REPEATED = 3002
    WAIT_ALREADY_ARMED = 3003
    MULTI_REPLY_MISMATCH = 3004


# =============================================================================
# BASE ERROR CLASS
# =============================================================================
@dataclass
class KeeperError(Exception):
    """
    Base class for all fatal keeper errors.
    """

    code: ErrorCode
    message: str
    cause: Optional[BaseException] = None
    context: dict[str, Any] = field(default_factory=dict)

    def __post_init__(self) -> None:
        super().__init__(self.message)

    def to_dict(self) -> dict[str, Any]:
        """Serialize error for structured logging."""
        return {
            "code": self.code.name,
            "code_value": self.code.value,
            "message": self.message,
            "context": self.context,
        }

    def __str__(self) -> str:
        return f"[{self.code.name}] {self.message}"

    def __repr__(self) -> str:
        return (
            f"{self.__class__.__name__}("
            f"code={self.code.name}, "
            f"message={self.message!r})"
        )


# =============================================================================
# PROGRAMMER ERRORS
# =============================================================================
@dataclass
class InvalidOperation(KeeperError):
    """Public API called in a state or with arguments it does not accept."""

    @classmethod
    def already_open(cls, hosts: str) -> InvalidOperation:
        return cls(
            code=ErrorCode.SESSION_ALREADY_OPEN,
            message=f"Session already open; close it before opening {hosts!r}",
            context={"hosts": hosts},
        )

    @classmethod
    def negative_timeout(cls, timeout_ms: int) -> InvalidOperation:
        return cls(
            code=ErrorCode.NEGATIVE_TIMEOUT,
            message=f"Session timeout must be >= 0, got {timeout_ms}ms",
            context={"timeout_ms": timeout_ms},
        )

    @classmethod
    def invalid_argument(cls, name: str, value: Any, reason: str) -> InvalidOperation:
        return cls(
            code=ErrorCode.INVALID_ARGUMENT,
            message=f"Invalid argument '{name}': {reason}",
            context={"name": name, "value": repr(value)[:100]},
        )


# =============================================================================
# RESOURCE EXHAUSTION
# =============================================================================
@dataclass
class ResourceExhausted(KeeperError):
    """The process cannot continue safely."""

    @classmethod
    def out_of_memory(cls, hosts: str, cause: Optional[BaseException] = None) -> ResourceExhausted:
        return cls(
            code=ErrorCode.OUT_OF_MEMORY,
            message=f"Out of memory opening session to {hosts!r}",
            cause=cause,
            context={"hosts": hosts},
        )


# =============================================================================
# INVARIANT VIOLATIONS
# =============================================================================
@dataclass
class InvariantViolation(KeeperError):
    """
    An adapter-internal invariant broke.

    These calls are never caller-supplied, so a bad-arguments status from
    them means the adapter itself is wrong.
    """

    @classmethod
    def bad_arguments(cls, stage: str, status: Status) -> InvariantViolation:
        return cls(
            code=ErrorCode.BAD_ARGUMENTS_INTERNAL,
            message=f"Engine rejected adapter-internal {stage}: {status}",
            context={"stage": stage, "status": status.code},
        )

    @classmethod
    def completion_repeated(cls, operation: str) -> InvariantViolation:
        return cls(
            code=ErrorCode.COMPLETION_REPEATED,
            message=f"Completion for '{operation}' delivered more than once",
            context={"operation": operation},
        )

    @classmethod
    def wait_already_armed(cls, fd: int) -> InvariantViolation:
        return cls(
            code=ErrorCode.WAIT_ALREADY_ARMED,
            message=f"Event wait already outstanding (fd={fd})",
            context={"fd": fd},
        )

    @classmethod
    def multi_reply_mismatch(cls, expected: int, actual: int) -> InvariantViolation:
        return cls(
            code=ErrorCode.MULTI_REPLY_MISMATCH,
            message=f"Multi reply has {actual} slots for {expected} operations",
            context={"expected": expected, "actual": actual},
        )
