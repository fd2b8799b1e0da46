"""
Configuration Management for the Keeper Client

Provides validated configuration with sensible defaults.
Supports environment variable overrides (KEEPER_ prefix).

Design:
- Immutable after validation
- Fail-fast on invalid configuration
- Type-safe with dataclasses
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field

from keeper.core.types import Result, Ok, Err
from keeper.core import constants as C


_TRUE_VALUES = frozenset({"1", "true", "yes", "on"})


@dataclass(frozen=True)
class ObservabilityConfig:
    """Logging configuration."""

    log_level: str = "INFO"
    log_json: bool = True


@dataclass(frozen=True)
class KeeperConfig:
    """Root configuration for a keeper session."""

    hosts: str = C.DEFAULT_HOSTS
    session_timeout_ms: int = C.DEFAULT_SESSION_TIMEOUT_MS
    idle_interest_timeout_ms: int = C.DEFAULT_IDLE_INTEREST_TIMEOUT_MS
    observability: ObservabilityConfig = field(default_factory=ObservabilityConfig)

    @classmethod
    def from_env(cls) -> Result[KeeperConfig, str]:
        """
        Load configuration from environment variables.

        Example: KEEPER_HOSTS=zk1:2181,zk2:2181 KEEPER_SESSION_TIMEOUT_MS=5000
        """
        try:
            observability = ObservabilityConfig(
                log_level=os.getenv("KEEPER_LOG_LEVEL", "INFO").upper(),
                log_json=os.getenv("KEEPER_LOG_JSON", "true").lower() in _TRUE_VALUES,
            )
            return Ok(cls(
                hosts=os.getenv("KEEPER_HOSTS", C.DEFAULT_HOSTS),
                session_timeout_ms=int(os.getenv(
                    "KEEPER_SESSION_TIMEOUT_MS", str(C.DEFAULT_SESSION_TIMEOUT_MS))),
                idle_interest_timeout_ms=int(os.getenv(
                    "KEEPER_IDLE_TIMEOUT_MS", str(C.DEFAULT_IDLE_INTEREST_TIMEOUT_MS))),
                observability=observability,
            ))
        except (ValueError, TypeError) as e:
            return Err(f"Configuration error: {e}")

    def validate(self) -> Result[None, str]:
        """Validate configuration invariants."""
        if not self.hosts.strip():
            return Err("hosts must not be empty")
        if self.session_timeout_ms < 0:
            return Err("session_timeout_ms must be >= 0")
        if self.idle_interest_timeout_ms <= 0:
            return Err("idle_interest_timeout_ms must be > 0")
        return Ok(None)
