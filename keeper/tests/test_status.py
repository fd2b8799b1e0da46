"""
Unit Tests: Status, Result and Core Types

Tests:
    - Status predicates and rendering
    - Ok / Err combinators
    - Stat, Mode and ACL value types
    - KeeperConfig loading and validation
    - KeeperError formatting
"""

import errno

import pytest

from keeper.core.config import KeeperConfig
from keeper.core.errors import ErrorCode, InvalidOperation, InvariantViolation
from keeper.core.status import Status, StatusCode
from keeper.core.types import Err, Mode, Ok, OPEN_ACL_UNSAFE, Perm, Stat


class TestStatus:
    """Tests for Status."""

    def test_default_is_ok(self):
        assert Status() == Status.OK
        assert Status().is_ok

    def test_equality_by_code(self):
        assert Status(-101) == Status.NO_NODE
        assert hash(Status(-101)) == hash(Status.NO_NODE)
        assert Status(-101) != Status(-110)

    def test_predicates(self):
        assert Status.BAD_ARGUMENTS.is_bad_arguments
        assert Status.INVALID_STATE.is_invalid_state
        assert Status.CONNECTION_LOSS.is_connection_loss
        assert not Status.NO_NODE.is_ok

    def test_unrecoverable(self):
        assert Status.SESSION_EXPIRED.is_unrecoverable
        assert Status.AUTH_FAILED.is_unrecoverable
        assert not Status.CONNECTION_LOSS.is_unrecoverable
        assert not Status.OK.is_unrecoverable

    def test_code_classes(self):
        assert Status.CONNECTION_LOSS.is_system_error
        assert not Status.CONNECTION_LOSS.is_api_error
        assert Status.NO_NODE.is_api_error
        assert Status(errno.ENOENT).is_errno
        assert not Status.OK.is_system_error

    def test_render_known(self):
        assert str(Status.OK) == "ok"
        assert str(Status.NO_NODE) == "no node"
        assert str(Status.INVALID_STATE) == "invalid zhandle state"

    def test_render_errno(self):
        import os
        assert str(Status(errno.EINVAL)) == os.strerror(errno.EINVAL)
        assert Status(errno.EINVAL).name == "ERRNO"

    def test_render_unknown_native(self):
        status = Status.native_error(-9999)
        assert str(status) == "native error -9999"
        assert status.name == "NATIVE_ERROR"
        assert status.known is None

    def test_repr(self):
        assert repr(Status.NO_NODE) == "Status(NO_NODE, -101)"

    def test_known(self):
        assert Status(-112).known is StatusCode.SESSION_EXPIRED


class TestResult:
    """Tests for the Ok / Err monad."""

    def test_ok(self):
        result = Ok(3)
        assert result.is_ok()
        assert not result.is_err()
        assert result.unwrap() == 3
        assert result.map(lambda v: v + 1) == Ok(4)
        assert result.flat_map(lambda v: Err(Status.NO_NODE)) == Err(Status.NO_NODE)

    def test_err(self):
        result = Err(Status.NO_NODE)
        assert result.is_err()
        assert result.unwrap_or(7) == 7
        assert result.map(lambda v: v + 1) is result
        with pytest.raises(RuntimeError):
            result.unwrap()


class TestTypes:
    """Tests for node-level value types."""

    def test_stat_defaults(self):
        stat = Stat()
        assert stat.version == 0
        assert not stat.is_ephemeral

    def test_stat_ephemeral(self):
        assert Stat(ephemeral_owner=0x10).is_ephemeral

    def test_mode_flags(self):
        assert Mode.EPHEMERAL_SEQUENTIAL.is_ephemeral
        assert Mode.EPHEMERAL_SEQUENTIAL.is_sequential
        assert not Mode.PERSISTENT.is_ephemeral
        assert Mode.PERSISTENT_SEQUENTIAL.is_sequential

    def test_open_acl(self):
        (acl,) = OPEN_ACL_UNSAFE
        assert acl.perms == Perm.ALL
        assert acl.scheme == "world"
        assert acl.id == "anyone"


class TestConfig:
    """Tests for KeeperConfig."""

    def test_defaults_validate(self):
        assert KeeperConfig().validate().is_ok()

    def test_from_env(self, monkeypatch):
        monkeypatch.setenv("KEEPER_HOSTS", "zk1:2181,zk2:2181")
        monkeypatch.setenv("KEEPER_SESSION_TIMEOUT_MS", "5000")
        monkeypatch.setenv("KEEPER_LOG_JSON", "false")
        config = KeeperConfig.from_env().unwrap()
        assert config.hosts == "zk1:2181,zk2:2181"
        assert config.session_timeout_ms == 5000
        assert config.observability.log_json is False

    def test_from_env_bad_number(self, monkeypatch):
        monkeypatch.setenv("KEEPER_SESSION_TIMEOUT_MS", "soon")
        result = KeeperConfig.from_env()
        assert result.is_err()
        assert "Configuration error" in result.error

    def test_validate_rejects(self):
        assert KeeperConfig(hosts=" ").validate().is_err()
        assert KeeperConfig(session_timeout_ms=-1).validate().is_err()
        assert KeeperConfig(idle_interest_timeout_ms=0).validate().is_err()


class TestErrors:
    """Tests for the fatal error hierarchy."""

    def test_format(self):
        error = InvalidOperation.negative_timeout(-5)
        assert error.code is ErrorCode.NEGATIVE_TIMEOUT
        assert str(error).startswith("[NEGATIVE_TIMEOUT]")
        assert error.to_dict()["code"] == "NEGATIVE_TIMEOUT"

    def test_invariant_carries_status(self):
        error = InvariantViolation.bad_arguments("process", Status.BAD_ARGUMENTS)
        assert "bad arguments" in error.message
        assert isinstance(error, Exception)


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
