"""
System Constants and Enumerations

System-wide constants and enumerations used across the cache layer.

Architectural Decision: Centralized constants for maintainability
- Single source of truth for magic numbers
- Type-safe enums for state management
"""

from enum import Enum

# ============================================================================
# Stage Identifiers (for structured logging)
# ============================================================================


class Stage(str, Enum):
    """
    Processing stages used as the ``stage`` field of structured log entries.

    Format: {PREFIX}.{SEQUENCE}_{DESCRIPTIVE_NAME}
    """

    INITIALIZATION = "0.0_INITIALIZATION"
    CACHE_GET = "2.1_CACHE_GET"
    CACHE_SET = "2.2_CACHE_SET"
    CACHE_DELETE = "2.3_CACHE_DELETE"
    CACHE_FALLBACK = "2.4_CACHE_FALLBACK"
    CACHE_COMPUTE = "2.5_CACHE_COMPUTE"
    RATE_LIMITING = "3.0_RATE_LIMITING"

    REDIS_CONNECT = "REDIS.2_CONNECT"
    REDIS_DISCONNECT = "REDIS.3_DISCONNECT"
    REDIS_RECONNECT = "REDIS.4_RECONNECT"
    LOCAL_SWEEP = "LOCAL.1_SWEEP"
    MONITORING = "M_MONITORING"


# ============================================================================
# Remote Connection States
# ============================================================================


class ConnectionState(str, Enum):
    """
    Remote cache connection states.

    DISCONNECTED: No usable connection, operations raise CacheNotConnectedError
    CONNECTING: Handshake in progress
    CONNECTED: Operations are forwarded to Redis
    """

    DISCONNECTED = "disconnected"
    CONNECTING = "connecting"
    CONNECTED = "connected"


# ============================================================================
# Cache Modes and Service Status
# ============================================================================


class CacheMode(str, Enum):
    """
    Primary backend selected once at construction.

    REMOTE: Redis primary with local fallback
    LOCAL: No connection string configured, local tier only
    """

    REMOTE = "remote"
    LOCAL = "local"


class ServiceStatus(str, Enum):
    """
    CacheService status derived from the primary backend on every read.

    DEGRADED means the remote tier is unreachable and traffic is served locally.
    """

    LOCAL_ONLY = "local_only"
    CONNECTED = "connected"
    DEGRADED = "degraded"


class CacheTier(str, Enum):
    """Tier that served an operation."""

    PRIMARY = "primary"
    FALLBACK = "fallback"


# ============================================================================
# Cache Defaults
# ============================================================================

DEFAULT_TTL_SECONDS = 300
LOCAL_SWEEP_THRESHOLD = 100
RECONNECT_DELAY_SECONDS = 5.0

# ============================================================================
# Key Prefixes
# ============================================================================

CACHE_KEY_RATE_LIMIT = "ratelimit"

# ============================================================================
# HTTP Headers
# ============================================================================

HEADER_RATE_LIMIT = "X-RateLimit-Limit"
HEADER_RATE_REMAINING = "X-RateLimit-Remaining"
HEADER_RATE_RESET = "X-RateLimit-Reset"
