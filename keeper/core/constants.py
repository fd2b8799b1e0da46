"""
Client-Wide Constants for the Keeper Client

All magic numbers and configuration defaults centralized here.
"""

from typing import Final

# =============================================================================
# TIME UNITS
# =============================================================================
MS: Final[int] = 1
SECOND_MS: Final[int] = 1000

# =============================================================================
# SESSION
# =============================================================================
DEFAULT_HOSTS: Final[str] = "127.0.0.1:2181"
DEFAULT_SESSION_TIMEOUT_MS: Final[int] = 30 * SECOND_MS

# Wait timeout used when a failed interest query suggests none.
DEFAULT_IDLE_INTEREST_TIMEOUT_MS: Final[int] = 100 * MS

# =============================================================================
# NAMESPACE
# =============================================================================
PATH_SEPARATOR: Final[str] = "/"
ROOT_PATH: Final[str] = "/"
SEQUENCE_DIGITS: Final[int] = 10
ANY_VERSION: Final[int] = -1

# =============================================================================
# IN-MEMORY ENGINE
# =============================================================================
# Fraction of the negotiated timeout used as the suggested wait timeout.
PING_INTERVAL_DIVISOR: Final[int] = 3
MIN_SESSION_TIMEOUT_MS: Final[int] = 2 * SECOND_MS
MAX_SESSION_TIMEOUT_MS: Final[int] = 40 * SECOND_MS
