"""
Structured Logging: JSON Records Correlated by Session

Provides:
- JsonFormatter: one JSON object per record
- StructuredLogger: keyword fields instead of interpolated messages
- Session correlation: `session` and `hosts` are promoted to top-level keys
- KeeperError payloads: `error=` attaches the error's to_dict()

Records emitted while an engine delivers completions carry the id of the
session doing the delivery (see StructuredLogger.context).
"""

from __future__ import annotations

import json
import logging
import sys
from contextlib import contextmanager
from contextvars import ContextVar
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import IntEnum
from typing import TYPE_CHECKING, Any, Iterator, Optional, TextIO

if TYPE_CHECKING:
    from keeper.core.config import ObservabilityConfig


class LogLevel(IntEnum):
    """Log level enumeration."""
    DEBUG = logging.DEBUG
    INFO = logging.INFO
    WARNING = logging.WARNING
    ERROR = logging.ERROR
    CRITICAL = logging.CRITICAL

    @classmethod
    def parse(cls, name: str) -> LogLevel:
        """Level for a name such as "debug"; unknown names map to INFO."""
        return cls.__members__.get(name.strip().upper(), cls.INFO)


# Fields bound by StructuredLogger.context() for the current task/callback.
_bound_fields: ContextVar[dict[str, Any]] = ContextVar("keeper_log_fields", default={})

# Keys promoted out of the free-form fields.
_CORRELATION_KEYS = ("session", "hosts")

# Everything a stdlib LogRecord carries on its own.
_STDLIB_ATTRS = frozenset(vars(logging.LogRecord("", 0, "", 0, "", None, None))) | {
    "message", "asctime", "taskName",
}


@dataclass
class KeeperLogEntry:
    """One formatted record."""
    timestamp: str
    level: str
    logger_name: str
    message: str
    correlation: dict[str, Any] = field(default_factory=dict)
    fields: dict[str, Any] = field(default_factory=dict)
    error: Optional[dict[str, Any]] = None

    def to_json(self) -> str:
        body: dict[str, Any] = {
            "@timestamp": self.timestamp,
            "level": self.level,
            "logger": self.logger_name,
            "message": self.message,
        }
        body.update(self.correlation)
        body.update(self.fields)
        if self.error is not None:
            body["error"] = self.error
        return json.dumps(body, default=str)


class JsonFormatter(logging.Formatter):
    """Render records as KeeperLogEntry JSON lines."""

    def format(self, record: logging.LogRecord) -> str:
        fields = dict(_bound_fields.get())
        fields.update(
            (key, value) for key, value in vars(record).items()
            if key not in _STDLIB_ATTRS
        )

        correlation = {
            key: fields.pop(key) for key in _CORRELATION_KEYS
            if fields.get(key) is not None
        }
        error = fields.pop("error", None)
        if error is not None and hasattr(error, "to_dict"):
            error = error.to_dict()
        elif error is not None:
            error = {"type": type(error).__name__, "message": str(error)}
        if record.exc_info:
            fields["traceback"] = self.formatException(record.exc_info)

        return KeeperLogEntry(
            timestamp=datetime.fromtimestamp(record.created, timezone.utc).isoformat(),
            level=record.levelname,
            logger_name=record.name,
            message=record.getMessage(),
            correlation=correlation,
            fields=fields,
            error=error,
        ).to_json()


class StructuredLogger:
    """
    Thin wrapper over a stdlib logger that takes keyword fields.

    Usage:
        log = StructuredLogger(__name__).with_extra(hosts="zk1:2181")
        log.info("Keeper session opened", timeout_ms=5000)
        log.error("Keeper open failed", error=exc)

        with StructuredLogger.context(session="0x100000000"):
            deliver_completions()
    """

    __slots__ = ("_logger", "_bound")

    def __init__(self, name: str, bound: Optional[dict[str, Any]] = None) -> None:
        self._logger = logging.getLogger(name)
        self._bound: dict[str, Any] = dict(bound or {})

    @property
    def name(self) -> str:
        return self._logger.name

    def log(self, level: LogLevel, message: str, **fields: Any) -> None:
        if self._logger.isEnabledFor(level):
            # stacklevel 3: report the caller of debug()/info()/..., not this frame
            self._logger.log(level, message, extra={**self._bound, **fields}, stacklevel=3)

    def debug(self, message: str, **fields: Any) -> None:
        self.log(LogLevel.DEBUG, message, **fields)

    def info(self, message: str, **fields: Any) -> None:
        self.log(LogLevel.INFO, message, **fields)

    def warning(self, message: str, **fields: Any) -> None:
        self.log(LogLevel.WARNING, message, **fields)

    def error(self, message: str, **fields: Any) -> None:
        self.log(LogLevel.ERROR, message, **fields)

    def critical(self, message: str, **fields: Any) -> None:
        self.log(LogLevel.CRITICAL, message, **fields)

    def with_extra(self, **fields: Any) -> StructuredLogger:
        """Same logger, with fields added to every record."""
        return StructuredLogger(self._logger.name, {**self._bound, **fields})

    @staticmethod
    @contextmanager
    def context(**fields: Any) -> Iterator[None]:
        """Bind fields to every record logged inside the block."""
        token = _bound_fields.set({**_bound_fields.get(), **fields})
        try:
            yield
        finally:
            _bound_fields.reset(token)


def setup_logging(
    level: LogLevel = LogLevel.INFO,
    json_output: bool = True,
    stream: Optional[TextIO] = None,
) -> logging.Handler:
    """
    Install a single handler on the root logger.

    Args:
        level: Minimum log level
        json_output: JSON lines when True, plain text otherwise
        stream: Output stream (default: stderr)

    Returns:
        The installed handler
    """
    handler = logging.StreamHandler(stream or sys.stderr)
    handler.setLevel(level)
    if json_output:
        handler.setFormatter(JsonFormatter())
    else:
        handler.setFormatter(logging.Formatter(
            "%(asctime)s %(levelname)-8s [%(name)s] %(message)s"
        ))

    root = logging.getLogger()
    root.handlers.clear()
    root.addHandler(handler)
    root.setLevel(level)

    # The asyncio loop logs every slow callback at DEBUG.
    logging.getLogger("asyncio").setLevel(logging.WARNING)
    return handler


def configure(config: ObservabilityConfig, stream: Optional[TextIO] = None) -> logging.Handler:
    """setup_logging() driven by an ObservabilityConfig."""
    return setup_logging(
        LogLevel.parse(config.log_level),
        json_output=config.log_json,
        stream=stream,
    )
