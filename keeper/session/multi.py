"""
Multi-Op Batch Coordinator

A batch is an ordered list of heterogeneous sub-operations committed as
one atomic unit: all commit or none do.

Each sub-operation knows two things:
- how to project itself into the engine's batch representation (NativeOp)
- how to decode its own slot of the engine's batch reply (OpReply)

On a committed batch the caller receives Ok(MultiResult) with exactly one
Result per sub-operation, in submission order. On a failed batch the
caller receives a single Err(status) and no per-operation results.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Sequence

from keeper.core import constants as C
from keeper.core.errors import InvalidOperation, InvariantViolation
from keeper.core.status import Status
from keeper.core.types import Acl, Err, Mode, Ok, OPEN_ACL_UNSAFE, Result
from keeper.engine.protocol import NativeOp, OpReply, OpType
from keeper.session.results import (
    CheckResult,
    CreateResult,
    DeleteResult,
    MultiResult,
    SetResult,
)


def _to_bytes(value: bytes | str) -> bytes:
    if isinstance(value, str):
        return value.encode("utf-8")
    return bytes(value)


class Op(ABC):
    """A sub-operation of a multi batch."""

    path: str

    @abstractmethod
    def to_native(self) -> NativeOp:
        ...

    @abstractmethod
    def decode_slot(self, reply: OpReply) -> Any:
        """Typed result for a successful slot."""
        ...

    def decode(self, reply: OpReply) -> Result[Any, Status]:
        status = Status(reply.rc)
        if not status.is_ok:
            return Err(status)
        return Ok(self.decode_slot(reply))


@dataclass(frozen=True)
class CreateOp(Op):
    path: str
    value: bytes | str = b""
    acls: Sequence[Acl] = OPEN_ACL_UNSAFE
    mode: Mode = Mode.PERSISTENT

    def to_native(self) -> NativeOp:
        return NativeOp(
            type=OpType.CREATE,
            path=self.path,
            data=_to_bytes(self.value),
            acls=tuple(self.acls),
            flags=int(self.mode),
        )

    def decode_slot(self, reply: OpReply) -> CreateResult:
        return CreateResult(path=reply.path if reply.path is not None else self.path)


@dataclass(frozen=True)
class DeleteOp(Op):
    path: str
    version: int = C.ANY_VERSION

    def to_native(self) -> NativeOp:
        return NativeOp(type=OpType.DELETE, path=self.path, version=self.version)

    def decode_slot(self, reply: OpReply) -> DeleteResult:
        return DeleteResult()


@dataclass(frozen=True)
class SetOp(Op):
    path: str
    value: bytes | str = b""
    version: int = C.ANY_VERSION

    def to_native(self) -> NativeOp:
        return NativeOp(
            type=OpType.SET,
            path=self.path,
            data=_to_bytes(self.value),
            version=self.version,
        )

    def decode_slot(self, reply: OpReply) -> SetResult:
        return SetResult(stat=reply.stat)


@dataclass(frozen=True)
class CheckOp(Op):
    """Fails the batch unless path exists at the given version."""
    path: str
    version: int = C.ANY_VERSION

    def to_native(self) -> NativeOp:
        return NativeOp(type=OpType.CHECK, path=self.path, version=self.version)

    def decode_slot(self, reply: OpReply) -> CheckResult:
        return CheckResult()


@dataclass
class MultiBatch:
    """
    One batch in flight: the ordered ops and their native projection.

    The decoder is what the callback wrapper runs on a committed batch.
    """

    ops: tuple[Op, ...]
    native_ops: list[NativeOp] = field(init=False)

    def __post_init__(self) -> None:
        self.ops = tuple(self.ops)
        for op in self.ops:
            if not isinstance(op, Op):
                raise InvalidOperation.invalid_argument("ops", op, "not a multi sub-operation")
        self.native_ops = [op.to_native() for op in self.ops]

    def __len__(self) -> int:
        return len(self.ops)

    def decode(self, replies: Sequence[OpReply]) -> MultiResult:
        if len(replies) != len(self.ops):
            raise InvariantViolation.multi_reply_mismatch(len(self.ops), len(replies))
        return MultiResult(
            results=tuple(op.decode(reply) for op, reply in zip(self.ops, replies))
        )
