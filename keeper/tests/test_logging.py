"""
Unit Tests: Structured Logging

Tests:
    - JSON records carry fields and session correlation
    - KeeperError payloads
    - LogLevel parsing and configuration
"""

import io
import json
import logging

import pytest

from keeper.core.config import ObservabilityConfig
from keeper.core.errors import InvalidOperation
from keeper.observability.logging import (
    JsonFormatter,
    LogLevel,
    StructuredLogger,
    configure,
)

LOGGER = "keeper.tests.logging"


@pytest.fixture
def captured():
    stream = io.StringIO()
    handler = logging.StreamHandler(stream)
    handler.setFormatter(JsonFormatter())
    target = logging.getLogger(LOGGER)
    target.addHandler(handler)
    target.setLevel(logging.DEBUG)
    target.propagate = False
    yield stream
    target.removeHandler(handler)
    target.propagate = True
    target.setLevel(logging.NOTSET)


def records(stream):
    return [json.loads(line) for line in stream.getvalue().splitlines()]


class TestStructuredLogger:
    """Tests for StructuredLogger and JsonFormatter."""

    def test_fields(self, captured):
        log = StructuredLogger(LOGGER).with_extra(hosts="zk:2181")
        log.info("Keeper session opened", timeout_ms=5000)
        (record,) = records(captured)
        assert record["message"] == "Keeper session opened"
        assert record["level"] == "INFO"
        assert record["logger"] == LOGGER
        assert record["hosts"] == "zk:2181"
        assert record["timeout_ms"] == 5000

    def test_session_context(self, captured):
        log = StructuredLogger(LOGGER)
        with StructuredLogger.context(session="0x100000000"):
            log.warning("Keeper session expired")
        log.warning("outside")
        inside, outside = records(captured)
        assert inside["session"] == "0x100000000"
        assert "session" not in outside

    def test_keeper_error_payload(self, captured):
        log = StructuredLogger(LOGGER)
        log.error("open refused", error=InvalidOperation.negative_timeout(-1))
        (record,) = records(captured)
        assert record["error"]["code"] == "NEGATIVE_TIMEOUT"

    def test_plain_exception_payload(self, captured):
        StructuredLogger(LOGGER).error("open failed", error=OSError("refused"))
        (record,) = records(captured)
        assert record["error"] == {"type": "OSError", "message": "refused"}

    def test_level_filtering(self, captured):
        logging.getLogger(LOGGER).setLevel(logging.WARNING)
        log = StructuredLogger(LOGGER)
        log.debug("hidden")
        log.error("shown")
        assert [r["message"] for r in records(captured)] == ["shown"]


class TestConfiguration:
    """Tests for LogLevel and configure()."""

    def test_parse(self):
        assert LogLevel.parse("debug") is LogLevel.DEBUG
        assert LogLevel.parse(" Warning ") is LogLevel.WARNING
        assert LogLevel.parse("nonsense") is LogLevel.INFO

    def test_configure_installs_one_handler(self):
        root = logging.getLogger()
        saved_handlers, saved_level = list(root.handlers), root.level
        try:
            stream = io.StringIO()
            handler = configure(ObservabilityConfig(log_level="ERROR", log_json=False), stream)
            assert root.handlers == [handler]
            assert root.level == logging.ERROR
            logging.getLogger("keeper.tests.configure").error("boom")
            assert "boom" in stream.getvalue()
        finally:
            root.handlers[:] = saved_handlers
            root.setLevel(saved_level)


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
