"""
Operation Status: Outcome Codes for Every Keeper Call

Codes follow the coordination engine's numbering:
- 0: success
- -1 .. -99: system errors (connection loss, bad arguments, invalid state)
- <= -100: API errors (no node, bad version, session expired)
- > 0: OS errno values reported by engine initialisation

Unknown codes are kept as-is and render as native errors.
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from enum import IntEnum
from typing import ClassVar, Optional


class StatusCode(IntEnum):
    """Known engine status codes."""

    OK = 0

    # System errors
    SYSTEM_ERROR = -1
    RUNTIME_INCONSISTENCY = -2
    DATA_INCONSISTENCY = -3
    CONNECTION_LOSS = -4
    MARSHALLING_ERROR = -5
    UNIMPLEMENTED = -6
    OPERATION_TIMEOUT = -7
    BAD_ARGUMENTS = -8
    INVALID_STATE = -9

    # API errors
    API_ERROR = -100
    NO_NODE = -101
    NO_AUTH = -102
    BAD_VERSION = -103
    NO_CHILDREN_FOR_EPHEMERALS = -108
    NODE_EXISTS = -110
    NOT_EMPTY = -111
    SESSION_EXPIRED = -112
    INVALID_CALLBACK = -113
    INVALID_ACL = -114
    AUTH_FAILED = -115
    CLOSING = -116
    NOTHING = -117
    SESSION_MOVED = -118


_MESSAGES: dict[int, str] = {
    StatusCode.OK: "ok",
    StatusCode.SYSTEM_ERROR: "system error",
    StatusCode.RUNTIME_INCONSISTENCY: "run time inconsistency",
    StatusCode.DATA_INCONSISTENCY: "data inconsistency",
    StatusCode.CONNECTION_LOSS: "connection loss",
    StatusCode.MARSHALLING_ERROR: "marshalling error",
    StatusCode.UNIMPLEMENTED: "unimplemented",
    StatusCode.OPERATION_TIMEOUT: "operation timeout",
    StatusCode.BAD_ARGUMENTS: "bad arguments",
    StatusCode.INVALID_STATE: "invalid zhandle state",
    StatusCode.API_ERROR: "api error",
    StatusCode.NO_NODE: "no node",
    StatusCode.NO_AUTH: "not authenticated",
    StatusCode.BAD_VERSION: "bad version",
    StatusCode.NO_CHILDREN_FOR_EPHEMERALS: "no children for ephemerals",
    StatusCode.NODE_EXISTS: "node exists",
    StatusCode.NOT_EMPTY: "not empty",
    StatusCode.SESSION_EXPIRED: "session expired",
    StatusCode.INVALID_CALLBACK: "invalid callback",
    StatusCode.INVALID_ACL: "invalid acl",
    StatusCode.AUTH_FAILED: "authentication failed",
    StatusCode.CLOSING: "zookeeper is closing",
    StatusCode.NOTHING: "(not error) no server responses to process",
    StatusCode.SESSION_MOVED: "session moved to another server, so operation is ignored",
}


@dataclass(frozen=True, slots=True)
class Status:
    """
    Immutable outcome code.

    Equality and hashing are by code. Well-known values are exposed as
    class attributes (Status.OK, Status.INVALID_STATE, ...).

    Usage:
        s = Status(rc)
        if s.is_ok:
            ...
        logger.info("create failed: %s", s)
    """

    code: int = 0

    OK: ClassVar[Status]
    INVALID_STATE: ClassVar[Status]
    BAD_ARGUMENTS: ClassVar[Status]
    CONNECTION_LOSS: ClassVar[Status]
    SESSION_EXPIRED: ClassVar[Status]
    AUTH_FAILED: ClassVar[Status]
    CLOSING: ClassVar[Status]
    NO_NODE: ClassVar[Status]
    NODE_EXISTS: ClassVar[Status]
    NOT_EMPTY: ClassVar[Status]
    BAD_VERSION: ClassVar[Status]
    NO_CHILDREN_FOR_EPHEMERALS: ClassVar[Status]
    RUNTIME_INCONSISTENCY: ClassVar[Status]

    @classmethod
    def native_error(cls, code: int) -> Status:
        """Wrap an arbitrary engine code."""
        return cls(code)

    @property
    def known(self) -> Optional[StatusCode]:
        """The StatusCode member for this code, if any."""
        try:
            return StatusCode(self.code)
        except ValueError:
            return None

    @property
    def is_ok(self) -> bool:
        return self.code == StatusCode.OK

    @property
    def is_bad_arguments(self) -> bool:
        return self.code == StatusCode.BAD_ARGUMENTS

    @property
    def is_invalid_state(self) -> bool:
        return self.code == StatusCode.INVALID_STATE

    @property
    def is_connection_loss(self) -> bool:
        return self.code == StatusCode.CONNECTION_LOSS

    @property
    def is_unrecoverable(self) -> bool:
        """The session that produced this status can never recover."""
        return self.code in (StatusCode.SESSION_EXPIRED, StatusCode.AUTH_FAILED)

    @property
    def is_system_error(self) -> bool:
        return StatusCode.API_ERROR < self.code < 0

    @property
    def is_api_error(self) -> bool:
        return self.code <= StatusCode.API_ERROR

    @property
    def is_errno(self) -> bool:
        return self.code > 0

    @property
    def name(self) -> str:
        known = self.known
        if known is not None:
            return known.name
        if self.is_errno:
            return "ERRNO"
        return "NATIVE_ERROR"

    def __str__(self) -> str:
        message = _MESSAGES.get(self.code)
        if message is not None:
            return message
        if self.is_errno:
            return os.strerror(self.code)
        return f"native error {self.code}"

    def __repr__(self) -> str:
        return f"Status({self.name}, {self.code})"


Status.OK = Status(int(StatusCode.OK))
Status.INVALID_STATE = Status(int(StatusCode.INVALID_STATE))
Status.BAD_ARGUMENTS = Status(int(StatusCode.BAD_ARGUMENTS))
Status.CONNECTION_LOSS = Status(int(StatusCode.CONNECTION_LOSS))
Status.SESSION_EXPIRED = Status(int(StatusCode.SESSION_EXPIRED))
Status.AUTH_FAILED = Status(int(StatusCode.AUTH_FAILED))
Status.CLOSING = Status(int(StatusCode.CLOSING))
Status.NO_NODE = Status(int(StatusCode.NO_NODE))
Status.NODE_EXISTS = Status(int(StatusCode.NODE_EXISTS))
Status.NOT_EMPTY = Status(int(StatusCode.NOT_EMPTY))
Status.BAD_VERSION = Status(int(StatusCode.BAD_VERSION))
Status.NO_CHILDREN_FOR_EPHEMERALS = Status(int(StatusCode.NO_CHILDREN_FOR_EPHEMERALS))
Status.RUNTIME_INCONSISTENCY = Status(int(StatusCode.RUNTIME_INCONSISTENCY))
