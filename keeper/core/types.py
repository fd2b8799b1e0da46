"""
Core Type Definitions for the Keeper Client

Implements the Result monad every operation completes with, plus the
node-level value types shared by the session layer and the engines.

Design Principles:
- Outcomes travel as values (Ok / Err), never as exceptions
- Exactly one Result per submitted operation
- Immutable value types (frozen dataclasses with __slots__)
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import IntEnum, IntFlag
from typing import (
    Any,
    Callable,
    Generic,
    Literal,
    TypeVar,
    Union,
)

# =============================================================================
# TYPE VARIABLES FOR GENERIC CONTAINERS
# =============================================================================
T = TypeVar("T")  # Success type
E = TypeVar("E")  # Error type
U = TypeVar("U")  # Transform result type


# =============================================================================
# RESULT MONAD
# =============================================================================
@dataclass(frozen=True, slots=True)
class Ok(Generic[T]):
    """
    Success variant of Result.

    Carries the typed result of a completed operation
    (CreateResult, GetResult, ...).
    """

    value: T

    def is_ok(self) -> Literal[True]:
        return True

    def is_err(self) -> Literal[False]:
        return False

    def unwrap(self) -> T:
        """Extract the wrapped value."""
        return self.value

    def unwrap_or(self, default: T) -> T:
        """Return value, ignoring default."""
        return self.value

    def map(self, fn: Callable[[T], U]) -> Ok[U]:
        """Apply transformation to success value."""
        return Ok(fn(self.value))

    def flat_map(self, fn: Callable[[T], Result[U, E]]) -> Result[U, E]:
        """Monadic bind for chaining fallible steps."""
        return fn(self.value)

    def __repr__(self) -> str:
        return f"Ok({self.value!r})"


@dataclass(frozen=True, slots=True)
class Err(Generic[E]):
    """
    Failure variant of Result.

    In the session layer the error is always a Status.
    """

    error: E

    def is_ok(self) -> Literal[False]:
        return False

    def is_err(self) -> Literal[True]:
        return True

    def unwrap(self) -> Any:
        """
        Unwrapping a failure is a programming error.

        Raises:
            RuntimeError: Always, with the carried error
        """
        raise RuntimeError(f"Called unwrap() on Err: {self.error}")

    def unwrap_or(self, default: T) -> T:
        """Return default value on error."""
        return default

    def map(self, fn: Callable[[Any], U]) -> Err[E]:
        """No-op on error variant."""
        return self

    def flat_map(self, fn: Callable[[Any], Result[U, E]]) -> Err[E]:
        return self

    def __repr__(self) -> str:
        return f"Err({self.error!r})"


# Union type for pattern matching
Result = Union[Ok[T], Err[E]]


# =============================================================================
# NODE METADATA
# =============================================================================
@dataclass(frozen=True, slots=True)
class Stat:
    """
    Node metadata as reported by the coordination service.

    Versions are per-node counters: `version` counts data changes,
    `cversion` children changes, `aversion` ACL changes.
    """

    czxid: int = 0
    mzxid: int = 0
    ctime: int = 0
    mtime: int = 0
    version: int = 0
    cversion: int = 0
    aversion: int = 0
    ephemeral_owner: int = 0
    data_length: int = 0
    num_children: int = 0
    pzxid: int = 0

    @property
    def is_ephemeral(self) -> bool:
        return self.ephemeral_owner != 0


# =============================================================================
# ACCESS CONTROL
# =============================================================================
class Perm(IntFlag):
    """ACL permission bits."""
    READ = 1 << 0
    WRITE = 1 << 1
    CREATE = 1 << 2
    DELETE = 1 << 3
    ADMIN = 1 << 4
    ALL = READ | WRITE | CREATE | DELETE | ADMIN


@dataclass(frozen=True, slots=True)
class Acl:
    """Single access control entry: permissions granted to scheme:id."""

    perms: Perm
    scheme: str
    id: str

    def __str__(self) -> str:
        return f"{self.scheme}:{self.id}:{int(self.perms)}"


OPEN_ACL_UNSAFE: tuple[Acl, ...] = (Acl(Perm.ALL, "world", "anyone"),)
READ_ACL_UNSAFE: tuple[Acl, ...] = (Acl(Perm.READ, "world", "anyone"),)
CREATOR_ALL_ACL: tuple[Acl, ...] = (Acl(Perm.ALL, "auth", ""),)


# =============================================================================
# CREATE MODE
# =============================================================================
class Mode(IntEnum):
    """
    Node creation mode.

    Values are the engine's create flags (EPHEMERAL=1, SEQUENCE=2).
    """
    PERSISTENT = 0
    EPHEMERAL = 1
    PERSISTENT_SEQUENTIAL = 2
    EPHEMERAL_SEQUENTIAL = 3

    @property
    def is_ephemeral(self) -> bool:
        return bool(self.value & 1)

    @property
    def is_sequential(self) -> bool:
        return bool(self.value & 2)
