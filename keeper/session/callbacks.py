"""
Callback Lifecycle Manager: Exactly-Once Completion Delivery

Every operation runs the same template:

    1. Session not open        -> callback(Err(INVALID_STATE)), no native call
    2. Wrap callback + decoder in a one-shot CallbackWrapper
    3. Submit, passing the wrapper as the completion token
    4. Submission rejected     -> callback(Err(status)), wrapper discarded
    5. Submission accepted     -> engine owns the wrapper until it invokes
                                  it exactly once; the wrapper decodes the
                                  reply and invokes the callback

Ownership:
    The wrapper is handed to the engine by reference. It holds the only
    strong reference to the user callback and drops it on completion, so
    the callback and everything it closes over is released exactly when
    the result is delivered.
"""

from __future__ import annotations

import logging
from typing import Any, Callable, Generic, Optional, TypeVar

from keeper.core.errors import InvariantViolation
from keeper.core.status import Status
from keeper.core.types import Err, Result
from keeper.session.results import Decoder, decode_reply

logger = logging.getLogger(__name__)

R = TypeVar("R")

ResultCallback = Callable[[Result[Any, Status]], None]


class CallbackWrapper(Generic[R]):
    """
    One-shot completion token for a single submitted operation.

    Invoking it a second time is an invariant violation; the user
    callback never runs twice.
    """

    __slots__ = ("_operation", "_callback", "_decoder", "_on_release", "_done")

    def __init__(
        self,
        operation: str,
        callback: Callable[[Result[R, Status]], None],
        decoder: Optional[Decoder[R]] = None,
        on_release: Optional[Callable[[], None]] = None,
    ) -> None:
        self._operation = operation
        self._callback: Optional[Callable[[Result[R, Status]], None]] = callback
        self._decoder = decoder
        self._on_release = on_release
        self._done = False

    @property
    def operation(self) -> str:
        return self._operation

    @property
    def done(self) -> bool:
        return self._done

    def __call__(self, rc: int, reply: Any = None) -> None:
        """Native completion entry point."""
        callback, decoder = self._take()
        callback(decode_reply(rc, reply, decoder))

    def fail(self, status: Status) -> None:
        """Deliver a synchronous failure and discard the wrapper."""
        callback, _ = self._take(release=False)
        callback(Err(status))

    def _take(self, release: bool = True) -> tuple[Callable[[Result[R, Status]], None], Optional[Decoder[R]]]:
        if self._done or self._callback is None:
            raise InvariantViolation.completion_repeated(self._operation)
        self._done = True
        callback, decoder = self._callback, self._decoder
        self._callback = None
        self._decoder = None
        on_release, self._on_release = self._on_release, None
        if release and on_release is not None:
            on_release()
        return callback, decoder

    def __repr__(self) -> str:
        state = "done" if self._done else "pending"
        return f"CallbackWrapper({self._operation!r}, {state})"


class CallbackLifecycle:
    """
    Runs the submission template and tracks wrappers owned by the engine.

    Usage:
        lifecycle = CallbackLifecycle()
        lifecycle.submit(
            "create", callback, CreateResult.decode,
            lambda completion: native.create(path, value, acls, flags, completion),
        )
    """

    __slots__ = ("_pending",)

    def __init__(self) -> None:
        self._pending = 0

    @property
    def pending(self) -> int:
        """Wrappers handed to the engine whose completion has not fired."""
        return self._pending

    @staticmethod
    def reject(operation: str, callback: ResultCallback, status: Status) -> Status:
        """Fail an operation before any wrapper exists."""
        logger.debug("%s rejected: %s", operation, status)
        callback(Err(status))
        return status

    def submit(
        self,
        operation: str,
        callback: Callable[[Result[R, Status]], None],
        decoder: Optional[Decoder[R]],
        submit: Callable[[CallbackWrapper[R]], int],
    ) -> Status:
        """
        Submit through the engine.

        Returns the submission status. On failure the callback has already
        run with Err(status) by the time this returns.
        """
        wrapper: CallbackWrapper[R] = CallbackWrapper(
            operation, callback, decoder, self._release
        )
        status = Status(submit(wrapper))
        if status.is_ok:
            self._pending += 1
            return status

        logger.debug("%s submission failed: %s", operation, status)
        wrapper.fail(status)
        return status

    def _release(self) -> None:
        self._pending -= 1
