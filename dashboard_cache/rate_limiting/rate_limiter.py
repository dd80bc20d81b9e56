"""
Rate Limiter

Fixed-window request budget per client, stored through CacheService.

Algorithm:
1. Load {count, reset_time} from "ratelimit:<client_id>" (missing -> new window)
2. Start a new window if reset_time has passed
3. Increment the count
4. Reject with RateLimitExceededError once count exceeds the limit
5. Store the updated window with TTL = window length

Because CacheService falls back to the local tier, limiting keeps working while
Redis is down; counts are then per process until Redis comes back.
Concurrent requests from one client can interleave between the read and the
write, so the limit is approximate under bursts (last writer wins).
"""

import math
import time
from collections.abc import Callable
from dataclasses import dataclass

from dashboard_cache.core.config.constants import (
    CACHE_KEY_RATE_LIMIT,
    HEADER_RATE_LIMIT,
    HEADER_RATE_REMAINING,
    HEADER_RATE_RESET,
    Stage,
)
from dashboard_cache.core.config.settings import Settings, get_settings
from dashboard_cache.core.exceptions import RateLimitExceededError
from dashboard_cache.core.logging.logger import get_logger, log_stage
from dashboard_cache.infrastructure.cache.cache_service import CacheService, get_cache_service

logger = get_logger(__name__)


@dataclass(frozen=True)
class RateLimitInfo:
    """Outcome of an allowed request."""

    limit: int
    remaining: int
    reset_time: float  # epoch seconds

    def headers(self) -> dict[str, str]:
        return {
            HEADER_RATE_LIMIT: str(self.limit),
            HEADER_RATE_REMAINING: str(self.remaining),
            HEADER_RATE_RESET: str(math.ceil(self.reset_time)),
        }


class CacheRateLimiter:
    """
    Per-client fixed-window limiter on top of CacheService.

    Usage:
        limiter = CacheRateLimiter(cache)
        info = await limiter.check(client_ip)   # raises RateLimitExceededError
        response.headers.update(info.headers())
    """

    def __init__(
        self,
        cache: CacheService | None = None,
        settings: Settings | None = None,
        clock: Callable[[], float] = time.time,
    ):
        settings = settings or get_settings()
        self._cache = cache or get_cache_service()
        self._limit = settings.rate_limit.RATE_LIMIT_MAX_REQUESTS
        self._window = settings.rate_limit.RATE_LIMIT_WINDOW_SECONDS
        self._clock = clock

    @property
    def limit(self) -> int:
        return self._limit

    @property
    def window_seconds(self) -> int:
        return self._window

    @staticmethod
    def cache_key(client_id: str) -> str:
        return f"{CACHE_KEY_RATE_LIMIT}:{client_id}"

    async def check(self, client_id: str) -> RateLimitInfo:
        """
        Count one request for client_id.

        STAGE-3.1: Rate limit check

        Returns:
            RateLimitInfo for the response headers

        Raises:
            RateLimitExceededError: If the client is over its budget for this window
        """
        key = self.cache_key(client_id)
        now = self._clock()

        window = await self._cache.get(key)
        if not self._is_valid_window(window) or now > window["reset_time"]:
            window = {"count": 0, "reset_time": now + self._window}

        count = window["count"] + 1
        reset_time = window["reset_time"]

        if count > self._limit:
            log_stage(
                logger,
                Stage.RATE_LIMITING,
                "Rate limit exceeded",
                level="warning",
                client_id=client_id,
                limit=self._limit,
            )
            raise RateLimitExceededError(
                "Too many requests",
                details={
                    "client_id": client_id,
                    "limit": self._limit,
                    "remaining": 0,
                    "reset_time": reset_time,
                },
            )

        await self._cache.set(key, {"count": count, "reset_time": reset_time}, self._window)
        return RateLimitInfo(limit=self._limit, remaining=self._limit - count, reset_time=reset_time)

    async def reset(self, client_id: str) -> None:
        """Forget the current window for client_id."""
        await self._cache.delete(self.cache_key(client_id))

    @staticmethod
    def _is_valid_window(window) -> bool:
        return (
            isinstance(window, dict)
            and isinstance(window.get("count"), int)
            and isinstance(window.get("reset_time"), (int, float))
        )
