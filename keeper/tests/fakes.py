"""
Test doubles: a recording EventWaiter and a scripted NativeSession.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Callable, Optional, Sequence

from keeper.core.status import StatusCode
from keeper.core.types import Acl
from keeper.engine.protocol import (
    INTEREST_READ,
    Completion,
    InterestQuery,
    NativeOp,
    NativeWatcher,
)


@dataclass
class Wait:
    fd: int
    events: int
    callback: Callable[[int], None]
    timeout_ms: int


class FakeEventWaiter:
    """Records every wait; the test fires them by hand."""

    def __init__(self) -> None:
        self.waits: list[Wait] = []
        self.cancels = 0
        self._current: Optional[Wait] = None

    @property
    def armed(self) -> bool:
        return self._current is not None

    @property
    def last(self) -> Wait:
        return self.waits[-1]

    def async_wait(self, fd: int, events: int, callback: Callable[[int], None], timeout_ms: int) -> None:
        assert self._current is None, "wait armed twice"
        wait = Wait(fd, events, callback, timeout_ms)
        self.waits.append(wait)
        self._current = wait

    def cancel(self) -> None:
        self.cancels += 1
        self._current = None

    def fire(self, events: int) -> None:
        wait = self._current
        assert wait is not None, "no wait armed"
        self._current = None
        wait.callback(events)


@dataclass
class Submission:
    kind: str
    args: tuple[Any, ...]
    completion: Completion
    watcher: Optional[NativeWatcher] = None


@dataclass
class StubSession:
    """
    Scripted NativeSession.

    submit_rc is returned by every submission; accepted submissions are
    recorded and completed by the test through complete().
    """

    hosts: str = ""
    timeout_ms: int = 0
    session_watcher: Optional[NativeWatcher] = None
    submit_rc: int = StatusCode.OK
    interest_result: InterestQuery = field(
        default_factory=lambda: InterestQuery(status=StatusCode.OK, fd=7, interest=INTEREST_READ, timeout_ms=250)
    )
    process_rc: int = StatusCode.OK
    close_rc: int = StatusCode.OK
    unrecoverable: bool = False
    submissions: list[Submission] = field(default_factory=list)
    processed: list[int] = field(default_factory=list)
    on_process: Optional[Callable[[int], None]] = None
    closed: bool = False

    # -- lifecycle ----------------------------------------------------------

    def close(self) -> int:
        self.closed = True
        for submission in self.submissions:
            if not getattr(submission.completion, "done", True):
                submission.completion(StatusCode.CLOSING, None)
        return self.close_rc

    def interest(self) -> InterestQuery:
        return self.interest_result

    def process(self, interest: int) -> int:
        self.processed.append(interest)
        if self.on_process is not None:
            self.on_process(interest)
        return self.process_rc

    def is_unrecoverable(self) -> bool:
        return self.unrecoverable

    def recv_timeout(self) -> int:
        return self.timeout_ms

    # -- submissions --------------------------------------------------------

    def _submit(self, kind: str, completion: Completion, *args: Any, watcher: Optional[NativeWatcher] = None) -> int:
        if self.submit_rc == StatusCode.OK:
            self.submissions.append(Submission(kind, args, completion, watcher))
        return self.submit_rc

    def add_auth(self, scheme: str, cert: bytes, completion: Completion) -> int:
        return self._submit("add_auth", completion, scheme, cert)

    def create(self, path: str, value: bytes, acls: Sequence[Acl], flags: int, completion: Completion) -> int:
        return self._submit("create", completion, path, value, acls, flags)

    def delete(self, path: str, version: int, completion: Completion) -> int:
        return self._submit("delete", completion, path, version)

    def exists(self, path: str, watcher: Optional[NativeWatcher], completion: Completion) -> int:
        return self._submit("exists", completion, path, watcher=watcher)

    def get(self, path: str, watcher: Optional[NativeWatcher], completion: Completion) -> int:
        return self._submit("get", completion, path, watcher=watcher)

    def set(self, path: str, value: bytes, version: int, completion: Completion) -> int:
        return self._submit("set", completion, path, value, version)

    def get_acl(self, path: str, completion: Completion) -> int:
        return self._submit("get_acl", completion, path)

    def set_acl(self, path: str, version: int, acls: Sequence[Acl], completion: Completion) -> int:
        return self._submit("set_acl", completion, path, version, acls)

    def get_children(self, path: str, watcher: Optional[NativeWatcher], completion: Completion) -> int:
        return self._submit("get_children", completion, path, watcher=watcher)

    def get_children2(self, path: str, watcher: Optional[NativeWatcher], completion: Completion) -> int:
        return self._submit("get_children2", completion, path, watcher=watcher)

    def multi(self, ops: Sequence[NativeOp], completion: Completion) -> int:
        return self._submit("multi", completion, list(ops))

    # -- test helpers -------------------------------------------------------

    @property
    def last(self) -> Submission:
        return self.submissions[-1]

    def complete(self, index: int, rc: int, reply: Any = None) -> None:
        self.submissions[index].completion(rc, reply)


class StubFactory:
    """EngineFactory that hands out StubSessions (or raises)."""

    def __init__(self, raises: Optional[BaseException] = None) -> None:
        self.raises = raises
        self.sessions: list[StubSession] = []

    @property
    def session(self) -> StubSession:
        return self.sessions[-1]

    def __call__(self, hosts: str, timeout_ms: int, watcher: Optional[NativeWatcher]) -> StubSession:
        if self.raises is not None:
            raise self.raises
        session = StubSession(hosts=hosts, timeout_ms=timeout_ms, session_watcher=watcher)
        self.sessions.append(session)
        return session


class Recorder:
    """Callback that records every result it receives."""

    def __init__(self) -> None:
        self.results: list[Any] = []

    def __call__(self, result: Any) -> None:
        self.results.append(result)

    @property
    def calls(self) -> int:
        return len(self.results)

    @property
    def only(self) -> Any:
        assert len(self.results) == 1, f"expected one result, got {self.results}"
        return self.results[0]
