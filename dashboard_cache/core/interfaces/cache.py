"""
Cache Backend Protocol

The capability set shared by both cache tiers, so CacheService can treat the
primary as either backend without caring which one it got.

Architectural Decision: Protocol-based abstraction
- RedisCache and LocalCache satisfy it structurally, no inheritance required
- Tests substitute AsyncMock doubles for either tier
"""

from typing import Any, Protocol, runtime_checkable


@runtime_checkable
class CacheBackend(Protocol):
    """
    Protocol for cache tiers.

    Implementations:
    - RedisCache: Remote tier, raises when unavailable
    - LocalCache: In-process tier, never raises

    Usage:
        async def load(cache: CacheBackend, key: str) -> Any | None:
            return await cache.get(key)
    """

    async def get(self, key: str) -> Any | None:
        """
        Get value from cache.

        Args:
            key: Cache key

        Returns:
            Stored value or None if absent or expired
        """
        ...

    async def set(self, key: str, value: Any, ttl_seconds: float | None = None) -> None:
        """
        Store a value.

        Args:
            key: Cache key
            value: JSON-representable value
            ttl_seconds: Time-to-live (backend default when None)
        """
        ...

    async def delete(self, key: str) -> None:
        """
        Remove a key. Deleting a missing key is not an error.

        Args:
            key: Cache key
        """
        ...
