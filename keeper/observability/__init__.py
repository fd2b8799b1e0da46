"""
Observability module: structured logging.
"""

from keeper.observability.logging import (
    JsonFormatter,
    KeeperLogEntry,
    LogLevel,
    StructuredLogger,
    configure,
    setup_logging,
)

__all__ = [
    "JsonFormatter",
    "KeeperLogEntry",
    "LogLevel",
    "StructuredLogger",
    "configure",
    "setup_logging",
]
