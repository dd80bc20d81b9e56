"""
Cache-Related Exceptions

Everything the remote tier can raise. CacheService is the only place these
are caught; callers of CacheService never see them.
"""

from dashboard_cache.core.exceptions.base import DashboardCacheError


class CacheError(DashboardCacheError):
    """Base exception for cache-related errors."""
    pass


class CacheNotConnectedError(CacheError):
    """
    Raised when the remote cache is used while its connection state is not CONNECTED.

    Common causes:
    - initialize_connection() has not completed yet
    - A connection error dropped the link and the reconnect is still pending
    """
    pass


class CacheTransportError(CacheError):
    """
    Raised when a network or protocol failure interrupts a remote operation.

    Common causes:
    - Redis server is down or restarting
    - Socket timeout
    - Transport retries exhausted
    """
    pass


class CacheSerializationError(CacheError):
    """Raised when a value cannot be encoded for, or decoded from, the remote store."""
    pass


class CacheReconnectingError(CacheError):
    """
    Informational: the transport is retrying a dropped connection.

    Reported to monitoring for visibility into connection flapping, never raised.
    """
    pass
