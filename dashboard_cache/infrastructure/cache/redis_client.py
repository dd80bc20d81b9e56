"""
Remote Cache Backed by Redis

Architecture:
    RedisCache (Public API: get / set / delete)
        ├── ConnectionState machine (DISCONNECTED → CONNECTING → CONNECTED)
        ├── Reconnect scheduler (one pending timer at most)
        └── redis.asyncio.Redis transport
                └── Retry + ReconnectBackoff (socket-level exponential backoff)

Two layers of recovery:
    - Transport: redis-py retries a dropped socket with
      min(initial * multiplier ** attempt, max) delays and gives up after
      REDIS_MAX_RETRY_ATTEMPTS, surfacing the last error.
    - RedisCache: a connection error on the live client marks the cache
      DISCONNECTED and schedules a single reconnect after
      CACHE_RECONNECT_DELAY, independent of transport exhaustion.

RedisCache never swallows operation errors: it reports them to monitoring and
re-raises. CacheService is the recovery boundary.
"""

import asyncio
from collections.abc import Callable
from typing import Any

import orjson
import redis.asyncio as redis
from redis.asyncio.retry import Retry
from redis.backoff import AbstractBackoff
from redis.exceptions import ConnectionError, RedisError, TimeoutError

from dashboard_cache.core.config.constants import ConnectionState, Stage
from dashboard_cache.core.config.settings import Settings, get_settings
from dashboard_cache.core.exceptions import (
    CacheNotConnectedError,
    CacheReconnectingError,
    CacheSerializationError,
    CacheTransportError,
    ConfigurationError,
)
from dashboard_cache.core.logging.logger import get_logger, log_stage
from dashboard_cache.core.observability.monitoring import MonitoringService, get_monitoring_service

logger = get_logger(__name__)

SERVICE_NAME = "RedisCache"

# (delay_seconds, callback) -> handle with .cancel()
Scheduler = Callable[[float, Callable[[], None]], Any]


# =============================================================================
# TRANSPORT BACKOFF
# =============================================================================


class ReconnectBackoff(AbstractBackoff):
    """
    Bounded exponential backoff for socket-level retries.

    delay(attempt) = min(initial_delay * multiplier ** attempt, max_delay),
    where attempt is 0 for the first retry.

    redis-py calls compute() once per failed attempt, right before sleeping,
    which makes it the hook for reporting "reconnecting" to monitoring.

    redis-py deep-copies the Retry (and so this backoff) into every client
    and pooled connection. Copies share on_retry, which must therefore not
    hold anything that cannot be copied, such as the owning cache.
    """

    def __init__(
        self,
        initial_delay: float,
        multiplier: float,
        max_delay: float,
        on_retry: Callable[[int, float], None] | None = None,
    ):
        self._initial_delay = initial_delay
        self._multiplier = multiplier
        self._max_delay = max_delay
        self._on_retry = on_retry

    def __deepcopy__(self, memo: dict) -> "ReconnectBackoff":
        return ReconnectBackoff(
            self._initial_delay, self._multiplier, self._max_delay, on_retry=self._on_retry
        )

    def delay_for(self, attempt: int) -> float:
        return min(self._initial_delay * self._multiplier ** attempt, self._max_delay)

    def compute(self, failures: int) -> float:
        attempt = max(failures - 1, 0)
        delay = self.delay_for(attempt)
        if self._on_retry is not None:
            self._on_retry(attempt, delay)
        return delay


def reconnecting_reporter(monitor: MonitoringService) -> Callable[[int, float], None]:
    """Build an on_retry callback that reports each transport retry to monitoring."""

    def report(attempt: int, delay: float) -> None:
        monitor.track_exception(
            CacheReconnectingError(
                "Redis reconnecting", details={"attempt": attempt, "delay_seconds": delay}
            ),
            {"service": SERVICE_NAME, "event": "reconnecting", "attempt": str(attempt)},
        )

    return report


def _call_later(delay: float, callback: Callable[[], None]) -> asyncio.TimerHandle:
    return asyncio.get_running_loop().call_later(delay, callback)


# =============================================================================
# PUBLIC API
# =============================================================================


class RedisCache:
    """
    Remote cache tier with an explicit connection state machine.

    Usage:
        cache = RedisCache()
        await cache.initialize_connection()   # never raises

        await cache.set("project_data", {"a": 1}, ttl_seconds=300)
        value = await cache.get("project_data")

    Raises on every operation while not CONNECTED (CacheNotConnectedError),
    on network failures (CacheTransportError) and on bad payloads
    (CacheSerializationError).
    """

    def __init__(
        self,
        settings: Settings | None = None,
        monitor: MonitoringService | None = None,
        client_factory: Callable[..., redis.Redis] | None = None,
        scheduler: Scheduler | None = None,
    ):
        """
        Args:
            settings: Application settings (default: global settings)
            monitor: Observability collaborator (default: global monitoring service)
            client_factory: Builds a client from (url, **kwargs); default Redis.from_url
            scheduler: Schedules the reconnect callback; default loop.call_later

        Raises:
            ConfigurationError: If REDIS_CONNECTION_STRING is not configured
        """
        settings = settings or get_settings()
        redis_settings = settings.redis

        if not redis_settings.REDIS_CONNECTION_STRING:
            raise ConfigurationError(
                "Redis connection string is not configured",
                details={"setting": "REDIS_CONNECTION_STRING"},
            )

        self._connection_string = redis_settings.REDIS_CONNECTION_STRING
        self._redis_settings = redis_settings
        self._default_ttl = settings.cache.CACHE_DEFAULT_TTL
        self._reconnect_delay = settings.cache.CACHE_RECONNECT_DELAY
        self._monitor = monitor or get_monitoring_service()
        self._client_factory = client_factory or redis.Redis.from_url
        self._scheduler = scheduler or _call_later

        self._client: redis.Redis | None = None
        self._state = ConnectionState.DISCONNECTED
        self._reconnect_handle: Any | None = None
        self._reconnect_task: asyncio.Task | None = None
        self._closed = False

        self._backoff = ReconnectBackoff(
            initial_delay=redis_settings.REDIS_INITIAL_RETRY_DELAY,
            multiplier=redis_settings.REDIS_RETRY_MULTIPLIER,
            max_delay=redis_settings.REDIS_MAX_RETRY_DELAY,
            on_retry=reconnecting_reporter(self._monitor),
        )

    # -------------------------------------------------------------------------
    # State
    # -------------------------------------------------------------------------

    @property
    def state(self) -> ConnectionState:
        return self._state

    @property
    def is_connected(self) -> bool:
        return self._state is ConnectionState.CONNECTED and self._client is not None

    @property
    def reconnect_pending(self) -> bool:
        return self._reconnect_handle is not None

    @property
    def backoff(self) -> ReconnectBackoff:
        return self._backoff

    # -------------------------------------------------------------------------
    # Connection lifecycle
    # -------------------------------------------------------------------------

    def _connection_kwargs(self) -> dict[str, Any]:
        return {
            "socket_connect_timeout": self._redis_settings.REDIS_CONNECT_TIMEOUT,
            "socket_timeout": self._redis_settings.REDIS_OPERATION_TIMEOUT,
            "retry": Retry(self._backoff, self._redis_settings.REDIS_MAX_RETRY_ATTEMPTS),
            "retry_on_error": [ConnectionError, TimeoutError],
        }

    async def initialize_connection(self) -> None:
        """
        Connect and verify with PING.

        STAGE-REDIS.2: Connection establishment

        On failure the exception is reported, the state becomes DISCONNECTED
        and one reconnect is scheduled. Never raises. Calls made while a
        handshake is already in flight, or while connected, are no-ops.
        """
        if self._closed or self._state is not ConnectionState.DISCONNECTED:
            return

        self._state = ConnectionState.CONNECTING
        log_stage(logger, Stage.REDIS_CONNECT, "Connecting to Redis", url=self._connection_string)

        previous, self._client = self._client, None
        if previous is not None:
            await self._close_client(previous)

        client = None
        try:
            client = self._client_factory(self._connection_string, **self._connection_kwargs())
            await client.ping()
        except Exception as e:
            self._report(e, operation="initialize_connection")
            if client is not None:
                await self._close_client(client)
            self._mark_disconnected(e)
            return

        if self._closed:
            await self._close_client(client)
            return

        self._client = client
        self._mark_connected()

    def _mark_connected(self) -> None:
        self._state = ConnectionState.CONNECTED
        self._backoff.reset()
        if self._reconnect_handle is not None:
            self._reconnect_handle.cancel()
            self._reconnect_handle = None

        log_stage(logger, Stage.REDIS_CONNECT, "Redis connected")
        self._monitor.track_event("redis_connected", {"service": SERVICE_NAME})

    def _mark_disconnected(self, error: BaseException) -> None:
        """Connection error: drop to DISCONNECTED and schedule a reconnect."""
        self._state = ConnectionState.DISCONNECTED
        log_stage(
            logger,
            Stage.REDIS_DISCONNECT,
            "Redis connection lost",
            level="warning",
            error=str(error),
        )
        self._schedule_reconnect()

    def _schedule_reconnect(self) -> None:
        """
        Arm the reconnect timer unless one is already pending.

        STAGE-REDIS.4: Reconnect scheduling
        """
        if self._closed or self._reconnect_handle is not None:
            return

        self._reconnect_handle = self._scheduler(self._reconnect_delay, self._fire_reconnect)
        log_stage(
            logger,
            Stage.REDIS_RECONNECT,
            "Redis reconnect scheduled",
            delay_seconds=self._reconnect_delay,
        )

    def _fire_reconnect(self) -> None:
        self._reconnect_handle = None
        if self._closed:
            return
        self._reconnect_task = asyncio.get_running_loop().create_task(self.initialize_connection())

    async def close(self) -> None:
        """
        Cancel any pending reconnect and close the client.

        STAGE-REDIS.3: Connection cleanup
        """
        self._closed = True
        if self._reconnect_handle is not None:
            self._reconnect_handle.cancel()
            self._reconnect_handle = None
        if self._reconnect_task is not None and not self._reconnect_task.done():
            self._reconnect_task.cancel()
        self._reconnect_task = None

        client, self._client = self._client, None
        if client is not None:
            await self._close_client(client)

        self._state = ConnectionState.DISCONNECTED
        log_stage(logger, Stage.REDIS_DISCONNECT, "Redis cache closed")

    async def _close_client(self, client: redis.Redis) -> None:
        try:
            await client.aclose()
        except (RedisError, OSError) as e:
            logger.debug("Error while closing Redis client", error=str(e))

    # -------------------------------------------------------------------------
    # Operations
    # -------------------------------------------------------------------------

    async def get(self, key: str) -> Any | None:
        """
        Get and decode a value.

        Returns:
            Decoded value or None if the key does not exist
        """
        client = self._require_connection("get", key)

        try:
            raw = await client.get(key)
        except Exception as e:
            raise self._transport_failure(e, "get", key, client) from e

        if raw is None:
            return None

        try:
            return orjson.loads(raw)
        except orjson.JSONDecodeError as e:
            error = CacheSerializationError.from_exception(
                e, "Stored value is not valid JSON", key=key
            )
            self._report(error, operation="get", key=key)
            raise error from e

    async def set(self, key: str, value: Any, ttl_seconds: float | None = None) -> None:
        """
        Encode and store a value with an expiry.

        A non-positive TTL removes the key, so the value is absent right away
        just as it would be in the local tier.
        """
        client = self._require_connection("set", key)
        ttl = self._default_ttl if ttl_seconds is None else ttl_seconds

        try:
            payload = orjson.dumps(value)
        except orjson.JSONEncodeError as e:
            error = CacheSerializationError.from_exception(
                e, "Value is not JSON serializable", key=key
            )
            self._report(error, operation="set", key=key)
            raise error from e

        try:
            if ttl <= 0:
                await client.delete(key)
            else:
                await client.set(key, payload, px=max(1, int(ttl * 1000)))
        except Exception as e:
            raise self._transport_failure(e, "set", key, client) from e

    async def delete(self, key: str) -> None:
        """Delete a key. Deleting a missing key is not an error."""
        client = self._require_connection("delete", key)

        try:
            await client.delete(key)
        except Exception as e:
            raise self._transport_failure(e, "delete", key, client) from e

    async def health_check(self) -> dict[str, Any]:
        """
        Connection state plus a live PING when connected.

        STAGE-REDIS.HEALTH: Redis health check
        """
        health: dict[str, Any] = {
            "status": "healthy" if self.is_connected else "unhealthy",
            "state": self._state.value,
            "reconnect_pending": self.reconnect_pending,
        }
        if not self.is_connected:
            return health

        try:
            await self._client.ping()
        except RedisError as e:
            health["status"] = "unhealthy"
            health["error"] = str(e)
        return health

    # -------------------------------------------------------------------------
    # Helpers
    # -------------------------------------------------------------------------

    def _require_connection(self, operation: str, key: str) -> redis.Redis:
        if not self.is_connected:
            raise CacheNotConnectedError(
                "Redis not connected",
                details={"operation": operation, "key": key, "state": self._state.value},
            )
        return self._client

    def _transport_failure(
        self, error: Exception, operation: str, key: str, client: redis.Redis
    ) -> CacheTransportError:
        """
        Report a failed command and wrap it in CacheTransportError.

        Only connection errors raised by the current client change state; a
        command still in flight on a replaced client must not undo a newer
        connection or handshake.
        """
        self._report(error, operation=operation, key=key)
        if (
            isinstance(error, (ConnectionError, TimeoutError))
            and client is self._client
            and self._state is ConnectionState.CONNECTED
        ):
            self._mark_disconnected(error)
        return CacheTransportError.from_exception(
            error, f"Redis {operation.upper()} failed: {error}", operation=operation, key=key
        )

    def _report(self, error: BaseException, operation: str, key: str | None = None) -> None:
        properties = {"service": SERVICE_NAME, "operation": operation}
        if key is not None:
            properties["key"] = key
        self._monitor.track_exception(error, properties)
