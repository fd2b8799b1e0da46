"""
Per-Operation Result Shapes

Every operation completes with Ok(<one of these>) or Err(Status).
Each shape knows how to decode the engine's reply payload for its
operation kind (see keeper.engine.protocol.Completion).
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Callable, Optional, TypeVar

from keeper.core.status import Status
from keeper.core.types import Acl, Err, Ok, Result, Stat

R = TypeVar("R")

# Decodes a successful native reply payload into a typed result.
Decoder = Callable[[Any], R]


@dataclass(frozen=True, slots=True)
class AddAuthResult:
    @classmethod
    def decode(cls, reply: Any) -> AddAuthResult:
        return cls()


@dataclass(frozen=True, slots=True)
class CreateResult:
    """Path of the created node (includes the sequence suffix, if any)."""
    path: str

    @classmethod
    def decode(cls, reply: Any) -> CreateResult:
        return cls(path=reply)


@dataclass(frozen=True, slots=True)
class DeleteResult:
    @classmethod
    def decode(cls, reply: Any) -> DeleteResult:
        return cls()


@dataclass(frozen=True, slots=True)
class ExistsResult:
    stat: Stat

    @classmethod
    def decode(cls, reply: Any) -> ExistsResult:
        return cls(stat=reply)


@dataclass(frozen=True, slots=True)
class GetResult:
    value: bytes
    stat: Stat

    @classmethod
    def decode(cls, reply: Any) -> GetResult:
        value, stat = reply
        return cls(value=value, stat=stat)


@dataclass(frozen=True, slots=True)
class SetResult:
    stat: Stat

    @classmethod
    def decode(cls, reply: Any) -> SetResult:
        return cls(stat=reply)


@dataclass(frozen=True, slots=True)
class GetAclResult:
    acls: tuple[Acl, ...]
    stat: Stat

    @classmethod
    def decode(cls, reply: Any) -> GetAclResult:
        acls, stat = reply
        return cls(acls=tuple(acls), stat=stat)


@dataclass(frozen=True, slots=True)
class SetAclResult:
    @classmethod
    def decode(cls, reply: Any) -> SetAclResult:
        return cls()


@dataclass(frozen=True, slots=True)
class GetChildrenResult:
    children: tuple[str, ...]

    @classmethod
    def decode(cls, reply: Any) -> GetChildrenResult:
        return cls(children=tuple(reply))


@dataclass(frozen=True, slots=True)
class GetChildrenWithStatResult:
    children: tuple[str, ...]
    stat: Stat

    @classmethod
    def decode(cls, reply: Any) -> GetChildrenWithStatResult:
        children, stat = reply
        return cls(children=tuple(children), stat=stat)


@dataclass(frozen=True, slots=True)
class CheckResult:
    """Version check inside a multi batch passed."""


@dataclass(frozen=True, slots=True)
class MultiResult:
    """
    Ordered per-sub-operation results of a committed batch.

    len(results) always equals the number of submitted operations.
    """
    results: tuple[Result[Any, Status], ...] = field(default_factory=tuple)

    def __len__(self) -> int:
        return len(self.results)

    def __iter__(self):
        return iter(self.results)

    def __getitem__(self, index: int) -> Result[Any, Status]:
        return self.results[index]


def decode_reply(rc: int, reply: Any, decoder: Optional[Decoder[R]]) -> Result[R, Status]:
    """Convert a native (rc, reply) pair into a typed Result."""
    status = Status(rc)
    if not status.is_ok:
        return Err(status)
    if decoder is None:
        return Ok(None)
    return Ok(decoder(reply))
