#!/usr/bin/env python3
"""
Resilient Two-Tier Cache Service

Architecture:
    CacheService (Public API: get / set / delete, never raises)
        ├── primary   RedisCache when REDIS_CONNECTION_STRING is set,
        │             otherwise the local tier itself
        ├── fallback  LocalCache (always present, shared with primary in local mode)
        └── MonitoringService (every primary failure is reported)

Every call tries the primary first. Any primary failure, including
CacheNotConnectedError while Redis is reconnecting, is reported and the same
call is replayed against the local tier. Degraded mode is therefore per call:
no flag has to be cleared once RedisCache reconnects on its own.

Trade-off: a read that falls back may miss a key that exists only in the
unreachable remote store. Availability wins over consistency here.
"""

import asyncio
import inspect
from collections.abc import Awaitable, Callable
from datetime import datetime, timezone
from typing import Any

from prometheus_client import Counter

from dashboard_cache.core.config.constants import (
    CacheMode,
    CacheTier,
    ConnectionState,
    ServiceStatus,
    Stage,
)
from dashboard_cache.core.config.settings import Settings, get_settings
from dashboard_cache.core.interfaces.cache import CacheBackend
from dashboard_cache.core.logging.logger import get_logger, log_stage
from dashboard_cache.core.observability.monitoring import MonitoringService, get_monitoring_service
from dashboard_cache.infrastructure.cache.local_cache import LocalCache
from dashboard_cache.infrastructure.cache.redis_client import RedisCache

logger = get_logger(__name__)

SERVICE_NAME = "CacheService"


# ============================================================================
# Metric Definitions
# ============================================================================

CACHE_OPERATIONS = Counter(
    'dashboard_cache_operations_total',
    'Cache operations by the tier that served them',
    ['operation', 'tier']
)

CACHE_FALLBACKS = Counter(
    'dashboard_cache_fallbacks_total',
    'Primary failures recovered by the local tier',
    ['operation']
)


class CacheService:
    """
    Single never-fails-outward cache surface over RedisCache + LocalCache.

    Usage:
        cache = await init_cache()
        await cache.set("project_data", {"a": 1}, ttl_seconds=300)
        data = await cache.get("project_data")

    Dependency injection:
        CacheService(settings=settings, monitor=monitor, primary=fake_remote)
    """

    def __init__(
        self,
        settings: Settings | None = None,
        monitor: MonitoringService | None = None,
        primary: CacheBackend | None = None,
        fallback: LocalCache | None = None,
    ):
        """
        Select the primary backend once, from configuration.

        STAGE-2.0: Cache service initialization

        Args:
            settings: Application settings (default: global settings)
            monitor: Observability collaborator (default: global monitoring service)
            primary: Explicit primary backend, bypassing configuration
            fallback: Explicit local tier

        Raises:
            ConfigurationError: If the Redis settings are unusable
        """
        settings = settings or get_settings()
        self._monitor = monitor or get_monitoring_service()
        self._default_ttl = settings.cache.CACHE_DEFAULT_TTL

        if fallback is None:
            fallback = LocalCache(
                sweep_threshold=settings.cache.CACHE_LOCAL_SWEEP_THRESHOLD,
                default_ttl=self._default_ttl,
            )
        self._fallback = fallback

        if primary is None and settings.redis.REDIS_CONNECTION_STRING:
            primary = RedisCache(settings=settings, monitor=self._monitor)

        self._primary: CacheBackend = primary if primary is not None else self._fallback
        self._mode = CacheMode.LOCAL if self._primary is self._fallback else CacheMode.REMOTE
        self._remote = self._primary if isinstance(self._primary, RedisCache) else None
        self._connect_task: asyncio.Task | None = None
        self._connect_started = False

        log_stage(
            logger,
            Stage.INITIALIZATION,
            "Cache service initialized",
            mode=self._mode.value,
            default_ttl=self._default_ttl,
        )

    # -------------------------------------------------------------------------
    # Lifecycle
    # -------------------------------------------------------------------------

    def _ensure_connecting(self) -> None:
        """Start the first remote connection in the background, once."""
        if self._remote is None or self._connect_started:
            return
        self._connect_started = True
        if self._remote.state is ConnectionState.DISCONNECTED:
            self._connect_task = asyncio.get_running_loop().create_task(
                self._remote.initialize_connection()
            )

    async def initialize(self) -> None:
        """
        Wait for the first remote connection attempt to finish.

        STAGE-2.0.1: Remote connection

        A failed attempt leaves the service degraded with a reconnect scheduled;
        it does not raise.
        """
        self._ensure_connecting()
        if self._connect_task is not None:
            await self._connect_task

    async def shutdown(self) -> None:
        """
        Close the remote tier and clear the local tier.

        STAGE-2.0.2: Cleanup cache connections
        """
        if self._connect_task is not None and not self._connect_task.done():
            self._connect_task.cancel()
        if self._remote is not None:
            await self._remote.close()
        await self._fallback.clear()

        log_stage(logger, Stage.INITIALIZATION, "Cache service shutdown")

    # -------------------------------------------------------------------------
    # State
    # -------------------------------------------------------------------------

    @property
    def mode(self) -> CacheMode:
        return self._mode

    @property
    def primary(self) -> CacheBackend:
        return self._primary

    @property
    def fallback(self) -> LocalCache:
        return self._fallback

    @property
    def status(self) -> ServiceStatus:
        """Derived from the primary on every read, never stored."""
        if self._mode is CacheMode.LOCAL:
            return ServiceStatus.LOCAL_ONLY
        if getattr(self._primary, "is_connected", False):
            return ServiceStatus.CONNECTED
        return ServiceStatus.DEGRADED

    # -------------------------------------------------------------------------
    # Core Cache Operations
    # -------------------------------------------------------------------------

    async def get(self, key: str) -> Any | None:
        """
        Get a value, falling back to the local tier on any primary failure.

        STAGE-2.1: Cache lookup

        Returns:
            Cached value or None (absent, expired, or only in an unreachable remote)
        """
        return await self._with_fallback("get", key, lambda cache: cache.get(key))

    async def set(self, key: str, value: Any, ttl_seconds: float | None = None) -> None:
        """
        Store a value. If the primary fails the value lands in the local tier.

        STAGE-2.2: Cache population

        Args:
            key: Cache key
            value: JSON-representable value
            ttl_seconds: Time-to-live (default: CACHE_DEFAULT_TTL)
        """
        ttl = self._default_ttl if ttl_seconds is None else ttl_seconds
        await self._with_fallback("set", key, lambda cache: cache.set(key, value, ttl))

    async def delete(self, key: str) -> None:
        """
        Delete a key with the same fallback rule as set.

        STAGE-2.3: Cache invalidation
        """
        await self._with_fallback("delete", key, lambda cache: cache.delete(key))

    async def get_or_compute(
        self,
        key: str,
        compute_fn: Callable[[], Any | Awaitable[Any]],
        ttl_seconds: float | None = None,
    ) -> Any:
        """
        Get from cache or compute and cache the result (cache-aside pattern).

        STAGE-2.5: Cache-aside pattern

        Args:
            key: Cache key
            compute_fn: Sync or async factory called on a miss
            ttl_seconds: Time-to-live for the computed value

        Returns:
            Cached or computed value

        Raises:
            Whatever compute_fn raises. Cache failures never surface.
        """
        cached = await self.get(key)
        if cached is not None:
            return cached

        log_stage(logger, Stage.CACHE_COMPUTE, "Computing uncached value", level="debug", key=key)
        value = compute_fn()
        if inspect.isawaitable(value):
            value = await value

        if value is not None:
            await self.set(key, value, ttl_seconds)
        return value

    async def _with_fallback(
        self,
        operation: str,
        key: str,
        call: Callable[[CacheBackend], Awaitable[Any]],
    ) -> Any:
        self._ensure_connecting()

        try:
            result = await call(self._primary)
            tier = CacheTier.PRIMARY
        except Exception as e:
            self._report_primary_failure(e, operation, key)
            result = await call(self._fallback)
            tier = CacheTier.FALLBACK

        CACHE_OPERATIONS.labels(operation=operation, tier=tier.value).inc()
        return result

    def _report_primary_failure(self, error: Exception, operation: str, key: str) -> None:
        self._monitor.track_exception(
            error, {"service": SERVICE_NAME, "operation": operation, "key": key}
        )
        CACHE_FALLBACKS.labels(operation=operation).inc()
        log_stage(
            logger,
            Stage.CACHE_FALLBACK,
            "Primary cache failed, using local fallback",
            level="warning",
            operation=operation,
            key=key,
            error=str(error),
            error_type=type(error).__name__,
        )

    # -------------------------------------------------------------------------
    # Monitoring
    # -------------------------------------------------------------------------

    def stats(self) -> dict[str, Any]:
        """Mode, derived status and local tier size."""
        return {
            "mode": self._mode.value,
            "status": self.status.value,
            "local_size": self._fallback.size,
            "remote_state": self._remote.state.value if self._remote else None,
            "reconnect_pending": self._remote.reconnect_pending if self._remote else False,
            "timestamp": datetime.now(timezone.utc).isoformat(),
        }

    async def health_check(self) -> dict[str, Any]:
        """
        Health of both tiers.

        "degraded" means requests are being served by the local tier.
        """
        status = self.status
        health: dict[str, Any] = {
            "status": "degraded" if status is ServiceStatus.DEGRADED else "healthy",
            "mode": self._mode.value,
            "local": {"status": "healthy", "size": self._fallback.size},
            "remote": None,
        }

        if self._remote is not None:
            remote_health = await self._remote.health_check()
            health["remote"] = remote_health
            if remote_health.get("status") != "healthy":
                health["status"] = "degraded"

        return health


# =============================================================================
# GLOBAL INSTANCE (SINGLETON PATTERN)
# =============================================================================

_cache_service: CacheService | None = None


def get_cache_service() -> CacheService:
    """
    Get the global cache service instance (singleton).

    Returns:
        CacheService: Global cache service instance
    """
    global _cache_service

    if _cache_service is None:
        _cache_service = CacheService()

    return _cache_service


async def init_cache() -> CacheService:
    """
    Create the global cache service and wait for its first connection attempt.

    Returns:
        CacheService: Initialized cache service
    """
    service = get_cache_service()
    await service.initialize()
    return service


async def close_cache() -> None:
    """Shutdown and drop the global cache service."""
    global _cache_service

    if _cache_service:
        await _cache_service.shutdown()
        _cache_service = None
