"""
In-Process Cache Storage

Responsibility: Volatile, zero-dependency key-value storage with per-entry TTL.

STAGE-2.L: Local (fallback) tier

This is a per-process cache, not shared across workers. It doubles as the
standalone backend when no Redis connection string is configured and as the
universal fallback when Redis is unreachable.

Implementation Details:
- Plain dict of key -> CacheEntry(value, expiry)
- Expiry is lazy: an expired entry is removed when it is next read
- Once the entry count passes the sweep threshold, every set sweeps all
  expired entries so abandoned keys cannot grow the map without bound
- No lock: all mutations happen on the event loop between suspension points
"""

import time
from collections.abc import Callable
from dataclasses import dataclass
from typing import Any

from dashboard_cache.core.config.constants import (
    DEFAULT_TTL_SECONDS,
    LOCAL_SWEEP_THRESHOLD,
    Stage,
)
from dashboard_cache.core.logging.logger import get_logger, log_stage

logger = get_logger(__name__)


@dataclass
class CacheEntry:
    """A stored value and the monotonic timestamp at which it stops being visible."""

    value: Any
    expiry: float

    def is_expired(self, now: float) -> bool:
        return now >= self.expiry


class LocalCache:
    """
    In-memory TTL cache.

    get/set/delete never raise. Values are stored by reference.
    """

    def __init__(
        self,
        sweep_threshold: int = LOCAL_SWEEP_THRESHOLD,
        default_ttl: float = DEFAULT_TTL_SECONDS,
        clock: Callable[[], float] = time.monotonic,
    ):
        """
        Args:
            sweep_threshold: Entry count above which set() sweeps expired entries
            default_ttl: TTL used when set() is called without one
            clock: Monotonic time source in seconds (injectable for tests)
        """
        self._entries: dict[str, CacheEntry] = {}
        self._sweep_threshold = sweep_threshold
        self._default_ttl = default_ttl
        self._clock = clock

    async def get(self, key: str) -> Any | None:
        """
        Get a value. Expired entries are removed and reported as absent.

        Returns:
            Stored value or None if missing or expired
        """
        entry = self._entries.get(key)
        if entry is None:
            return None

        if entry.is_expired(self._clock()):
            del self._entries[key]
            return None

        return entry.value

    async def set(self, key: str, value: Any, ttl_seconds: float | None = None) -> None:
        """
        Store a value for ttl_seconds, overwriting any existing entry.

        A non-positive TTL stores an entry that is already expired.
        """
        ttl = self._default_ttl if ttl_seconds is None else ttl_seconds
        self._entries[key] = CacheEntry(value=value, expiry=self._clock() + ttl)

        if len(self._entries) > self._sweep_threshold:
            self.sweep_expired()

    async def delete(self, key: str) -> None:
        """Remove a key. No-op if absent."""
        self._entries.pop(key, None)

    async def clear(self) -> None:
        """Drop every entry."""
        self._entries.clear()

    def sweep_expired(self) -> int:
        """
        Remove every expired entry.

        Returns:
            Number of entries removed
        """
        now = self._clock()
        expired = [key for key, entry in self._entries.items() if entry.is_expired(now)]
        for key in expired:
            del self._entries[key]

        if expired:
            log_stage(
                logger,
                Stage.LOCAL_SWEEP,
                "Swept expired local cache entries",
                level="debug",
                removed=len(expired),
                remaining=len(self._entries),
            )
        return len(expired)

    @property
    def size(self) -> int:
        """Physical entry count, including expired entries not yet swept."""
        return len(self._entries)

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, key: str) -> bool:
        entry = self._entries.get(key)
        return entry is not None and not entry.is_expired(self._clock())
