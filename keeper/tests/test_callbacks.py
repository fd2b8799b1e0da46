"""
Unit Tests: Callback Lifecycle

Tests:
    - Exactly-once delivery through CallbackWrapper
    - Synchronous failure when submission is rejected
    - Pending accounting
"""

import gc
import weakref

import pytest

from keeper.core.errors import ErrorCode, InvariantViolation
from keeper.core.status import Status, StatusCode
from keeper.core.types import Err, Ok
from keeper.session.callbacks import CallbackLifecycle, CallbackWrapper
from keeper.session.results import CreateResult, decode_reply
from keeper.tests.fakes import Recorder


class TestCallbackWrapper:
    """Tests for CallbackWrapper."""

    def test_decodes_success(self):
        recorder = Recorder()
        wrapper = CallbackWrapper("create", recorder, CreateResult.decode)
        wrapper(StatusCode.OK, "/a")
        assert recorder.only == Ok(CreateResult(path="/a"))
        assert wrapper.done

    def test_failure_skips_decoder(self):
        recorder = Recorder()
        wrapper = CallbackWrapper("create", recorder, CreateResult.decode)
        wrapper(StatusCode.NODE_EXISTS, None)
        assert recorder.only == Err(Status.NODE_EXISTS)

    def test_second_completion_raises(self):
        recorder = Recorder()
        wrapper = CallbackWrapper("delete", recorder)
        wrapper(StatusCode.OK)
        with pytest.raises(InvariantViolation) as info:
            wrapper(StatusCode.OK)
        assert info.value.code is ErrorCode.COMPLETION_REPEATED
        assert recorder.calls == 1

    def test_releases_callback(self):
        class Holder:
            def __call__(self, result):
                pass

        holder = Holder()
        ref = weakref.ref(holder)
        wrapper = CallbackWrapper("delete", holder)
        del holder
        assert ref() is not None
        wrapper(StatusCode.OK)
        gc.collect()
        assert ref() is None

    def test_decode_reply_without_decoder(self):
        assert decode_reply(StatusCode.OK, None, None) == Ok(None)


class TestCallbackLifecycle:
    """Tests for the submission template."""

    def test_accepted_submission_is_pending(self):
        lifecycle = CallbackLifecycle()
        recorder = Recorder()
        tokens = []

        def submit(completion):
            tokens.append(completion)
            return StatusCode.OK

        status = lifecycle.submit("create", recorder, CreateResult.decode, submit)
        assert status.is_ok
        assert lifecycle.pending == 1
        assert recorder.calls == 0

        tokens[0](StatusCode.OK, "/x")
        assert lifecycle.pending == 0
        assert recorder.only == Ok(CreateResult(path="/x"))

    def test_rejected_submission_fails_synchronously(self):
        lifecycle = CallbackLifecycle()
        recorder = Recorder()

        status = lifecycle.submit(
            "create", recorder, CreateResult.decode,
            lambda completion: StatusCode.BAD_ARGUMENTS,
        )
        assert status == Status.BAD_ARGUMENTS
        assert recorder.only == Err(Status.BAD_ARGUMENTS)
        assert lifecycle.pending == 0

    def test_reject(self):
        recorder = Recorder()
        status = CallbackLifecycle.reject("get", recorder, Status.INVALID_STATE)
        assert status == Status.INVALID_STATE
        assert recorder.only == Err(Status.INVALID_STATE)


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
