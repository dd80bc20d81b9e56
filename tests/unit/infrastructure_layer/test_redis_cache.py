"""
Unit Tests for RedisCache

Tests the connection state machine, reconnect scheduling, transport backoff
and the get/set/delete error contract of the remote tier.
"""

import asyncio
from unittest.mock import AsyncMock, MagicMock

import orjson
import pytest
from redis.asyncio.retry import Retry
from redis.exceptions import ConnectionError, ResponseError

from dashboard_cache.core.config.constants import ConnectionState
from dashboard_cache.core.config.settings import Settings
from dashboard_cache.core.exceptions import (
    CacheNotConnectedError,
    CacheReconnectingError,
    CacheSerializationError,
    CacheTransportError,
    ConfigurationError,
)
from dashboard_cache.infrastructure.cache.redis_client import ReconnectBackoff, RedisCache
from tests.test_fixtures.cache_factory import CacheTestFactory


@pytest.mark.unit
class TestRedisCacheConnection:
    """Connection lifecycle and reconnect scheduling."""

    def test_missing_connection_string_is_configuration_error(self, local_settings, mock_monitor):
        with pytest.raises(ConfigurationError):
            RedisCache(settings=local_settings, monitor=mock_monitor)

    def test_starts_disconnected(self, redis_cache_factory, fake_redis_client):
        cache = redis_cache_factory(fake_redis_client)

        assert cache.state is ConnectionState.DISCONNECTED
        assert cache.is_connected is False

    async def test_initialize_connects_and_pings(self, redis_cache_factory, fake_redis_client):
        cache = redis_cache_factory(fake_redis_client)

        await cache.initialize_connection()

        assert cache.state is ConnectionState.CONNECTED
        fake_redis_client.ping.assert_awaited_once()

    async def test_connect_reported_as_event(
        self, redis_cache_factory, fake_redis_client, mock_monitor
    ):
        cache = redis_cache_factory(fake_redis_client)

        await cache.initialize_connection()

        mock_monitor.track_event.assert_called_once_with(
            "redis_connected", {"service": "RedisCache"}
        )
        mock_monitor.track_exception.assert_not_called()

    async def test_client_built_with_timeouts_and_retry(
        self, redis_cache_factory, fake_redis_client, remote_settings
    ):
        cache = redis_cache_factory(fake_redis_client)

        await cache.initialize_connection()

        url, = cache._client_factory.call_args.args
        kwargs = cache._client_factory.call_args.kwargs
        assert url == remote_settings.REDIS_CONNECTION_STRING
        assert kwargs["socket_connect_timeout"] == 15.0
        assert kwargs["socket_timeout"] is None
        assert isinstance(kwargs["retry"], Retry)
        assert ConnectionError in kwargs["retry_on_error"]

    async def test_unreachable_server_schedules_one_reconnect(
        self, redis_cache_factory, mock_scheduler, mock_monitor
    ):
        """initialize_connection never raises; it leaves one reconnect pending."""
        client = CacheTestFactory.failing_redis_client()
        cache = redis_cache_factory(client)

        await cache.initialize_connection()

        assert cache.state is ConnectionState.DISCONNECTED
        assert cache.reconnect_pending is True
        assert mock_scheduler.call_count == 1
        delay, _callback = mock_scheduler.call_args.args
        assert delay == 5.0
        client.aclose.assert_awaited_once()

        error, properties = mock_monitor.track_exception.call_args.args
        assert isinstance(error, ConnectionError)
        assert properties == {"service": "RedisCache", "operation": "initialize_connection"}

    async def test_invalid_connection_string_schedules_one_reconnect(
        self, mock_monitor, mock_scheduler
    ):
        """The real client factory rejects the URL; the cache still degrades quietly."""
        settings = Settings(_env_file=None, REDIS_CONNECTION_STRING="not-a-redis-url")
        cache = RedisCache(settings=settings, monitor=mock_monitor, scheduler=mock_scheduler)

        await cache.initialize_connection()

        assert cache.state is ConnectionState.DISCONNECTED
        assert mock_scheduler.call_count == 1
        mock_monitor.track_exception.assert_called_once()

    async def test_repeated_failures_keep_single_pending_timer(
        self, redis_cache_factory, mock_scheduler
    ):
        cache = redis_cache_factory(CacheTestFactory.failing_redis_client())

        await cache.initialize_connection()
        await cache.initialize_connection()

        assert mock_scheduler.call_count == 1

    async def test_two_connection_errors_schedule_once(
        self, connected_redis_cache, fake_redis_client, mock_scheduler
    ):
        """Two in-flight commands failing together produce one reconnect timer."""

        async def drop_connection(key):
            await asyncio.sleep(0)
            raise ConnectionError("Connection reset by peer")

        fake_redis_client.get = AsyncMock(side_effect=drop_connection)

        results = await asyncio.gather(
            connected_redis_cache.get("a"),
            connected_redis_cache.get("b"),
            return_exceptions=True,
        )

        assert all(isinstance(r, CacheTransportError) for r in results)
        assert connected_redis_cache.state is ConnectionState.DISCONNECTED
        assert mock_scheduler.call_count == 1

    async def test_concurrent_initialize_is_single_handshake(
        self, redis_cache_factory, fake_redis_client
    ):
        async def slow_ping():
            await asyncio.sleep(0)
            return True

        fake_redis_client.ping = AsyncMock(side_effect=slow_ping)
        cache = redis_cache_factory(fake_redis_client)

        await asyncio.gather(cache.initialize_connection(), cache.initialize_connection())

        assert cache._client_factory.call_count == 1
        assert cache.state is ConnectionState.CONNECTED

    async def test_scheduled_reconnect_restores_connection(
        self, redis_cache_factory, fake_redis_client, mock_scheduler
    ):
        cache = redis_cache_factory(CacheTestFactory.failing_redis_client())
        await cache.initialize_connection()
        cache._client_factory.return_value = fake_redis_client

        _delay, callback = mock_scheduler.call_args.args
        callback()
        assert cache.reconnect_pending is False
        await cache._reconnect_task

        assert cache.state is ConnectionState.CONNECTED
        assert await cache.get("missing") is None

    async def test_successful_connect_cancels_pending_timer(
        self, redis_cache_factory, fake_redis_client, mock_scheduler
    ):
        cache = redis_cache_factory(CacheTestFactory.failing_redis_client())
        await cache.initialize_connection()
        pending = cache._reconnect_handle

        cache._client_factory.return_value = fake_redis_client
        await cache.initialize_connection()

        assert cache.state is ConnectionState.CONNECTED
        pending.cancel.assert_called_once()
        assert cache.reconnect_pending is False

    async def test_close_cancels_timer_and_stops_reconnecting(
        self, redis_cache_factory, mock_scheduler
    ):
        client = CacheTestFactory.failing_redis_client()
        cache = redis_cache_factory(client)
        await cache.initialize_connection()
        pending = cache._reconnect_handle

        await cache.close()
        await cache.initialize_connection()

        pending.cancel.assert_called_once()
        assert cache.state is ConnectionState.DISCONNECTED
        assert mock_scheduler.call_count == 1

    async def test_close_closes_client(self, connected_redis_cache, fake_redis_client):
        await connected_redis_cache.close()

        fake_redis_client.aclose.assert_awaited_once()
        assert connected_redis_cache.is_connected is False


@pytest.mark.unit
class TestRedisCacheOperations:
    """get/set/delete behaviour once connected (and while not)."""

    async def test_operations_raise_not_connected(
        self, redis_cache_factory, fake_redis_client, mock_monitor
    ):
        cache = redis_cache_factory(fake_redis_client)

        with pytest.raises(CacheNotConnectedError):
            await cache.get("k")
        with pytest.raises(CacheNotConnectedError):
            await cache.set("k", 1)
        with pytest.raises(CacheNotConnectedError):
            await cache.delete("k")

        fake_redis_client.get.assert_not_called()
        mock_monitor.track_exception.assert_not_called()

    async def test_set_then_get_round_trips_json(self, connected_redis_cache):
        await connected_redis_cache.set("project_data", {"a": 1}, 300)

        assert await connected_redis_cache.get("project_data") == {"a": 1}

    async def test_set_passes_ttl_in_milliseconds(self, connected_redis_cache, fake_redis_client):
        await connected_redis_cache.set("k", [1, 2], 10)

        fake_redis_client.set.assert_awaited_once_with("k", b"[1,2]", px=10_000)

    async def test_set_uses_default_ttl(self, connected_redis_cache, fake_redis_client):
        await connected_redis_cache.set("k", "v")

        assert fake_redis_client.set.call_args.kwargs["px"] == 300_000

    async def test_ttl_expiry_is_enforced_by_redis(
        self, redis_cache_factory, fake_clock
    ):
        client = CacheTestFactory.redis_client_with_data(clock=fake_clock)
        cache = redis_cache_factory(client)
        await cache.initialize_connection()

        await cache.set("project_data", {"a": 1}, 300)
        fake_clock.advance(301)

        assert await cache.get("project_data") is None

    async def test_non_positive_ttl_deletes_key(self, connected_redis_cache, fake_redis_client):
        fake_redis_client.data["k"] = b"1"

        await connected_redis_cache.set("k", 2, 0)

        fake_redis_client.set.assert_not_called()
        assert await connected_redis_cache.get("k") is None

    async def test_get_missing_key_returns_none(self, connected_redis_cache):
        assert await connected_redis_cache.get("absent") is None

    async def test_delete_twice_is_safe(self, connected_redis_cache):
        await connected_redis_cache.set("k", 1)

        await connected_redis_cache.delete("k")
        await connected_redis_cache.delete("k")

        assert await connected_redis_cache.get("k") is None

    async def test_malformed_payload_is_serialization_error(
        self, connected_redis_cache, fake_redis_client, mock_monitor
    ):
        fake_redis_client.data["broken"] = b"{not json"

        with pytest.raises(CacheSerializationError) as exc_info:
            await connected_redis_cache.get("broken")

        assert isinstance(exc_info.value.__cause__, orjson.JSONDecodeError)
        assert exc_info.value.details["key"] == "broken"
        mock_monitor.track_exception.assert_called_once()
        assert connected_redis_cache.state is ConnectionState.CONNECTED

    async def test_unserializable_value_is_serialization_error(
        self, connected_redis_cache, fake_redis_client
    ):
        with pytest.raises(CacheSerializationError):
            await connected_redis_cache.set("k", object())

        fake_redis_client.set.assert_not_called()

    async def test_connection_error_marks_disconnected(
        self, connected_redis_cache, fake_redis_client, mock_monitor, mock_scheduler
    ):
        cause = ConnectionError("Connection closed by server.")
        fake_redis_client.set = AsyncMock(side_effect=cause)

        with pytest.raises(CacheTransportError) as exc_info:
            await connected_redis_cache.set("k", 1)

        assert exc_info.value.__cause__ is cause
        assert connected_redis_cache.state is ConnectionState.DISCONNECTED
        assert mock_scheduler.call_count == 1
        error, properties = mock_monitor.track_exception.call_args.args
        assert error is cause
        assert properties == {"service": "RedisCache", "operation": "set", "key": "k"}

    async def test_command_error_keeps_connection(
        self, connected_redis_cache, fake_redis_client, mock_scheduler
    ):
        fake_redis_client.delete = AsyncMock(side_effect=ResponseError("WRONGTYPE"))

        with pytest.raises(CacheTransportError):
            await connected_redis_cache.delete("k")

        assert connected_redis_cache.state is ConnectionState.CONNECTED
        mock_scheduler.assert_not_called()

    async def test_unexpected_client_error_is_reported_and_wrapped(
        self, connected_redis_cache, fake_redis_client, mock_monitor, mock_scheduler
    ):
        """Errors outside RedisError still surface as CacheTransportError."""
        cause = TypeError("cannot pickle '_thread.RLock' object")
        fake_redis_client.get = AsyncMock(side_effect=cause)

        results = await asyncio.gather(
            *(connected_redis_cache.get(f"k{i}") for i in range(5)),
            return_exceptions=True,
        )

        assert all(isinstance(r, CacheTransportError) for r in results)
        assert all(r.__cause__ is cause for r in results)
        assert results[0].details["operation"] == "get"
        assert mock_monitor.track_exception.call_count == 5
        error, properties = mock_monitor.track_exception.call_args.args
        assert error is cause
        assert properties["service"] == "RedisCache"
        assert connected_redis_cache.state is ConnectionState.CONNECTED
        mock_scheduler.assert_not_called()

    async def test_unexpected_error_on_set_and_delete_is_wrapped(
        self, connected_redis_cache, fake_redis_client
    ):
        fake_redis_client.set = AsyncMock(side_effect=RuntimeError("boom"))
        fake_redis_client.delete = AsyncMock(side_effect=RuntimeError("boom"))

        with pytest.raises(CacheTransportError):
            await connected_redis_cache.set("k", 1)
        with pytest.raises(CacheTransportError):
            await connected_redis_cache.delete("k")

    async def test_stale_client_error_keeps_new_connection(
        self, connected_redis_cache, fake_redis_client, mock_scheduler
    ):
        """A command stuck on a replaced client must not undo the reconnect."""
        cache = connected_redis_cache
        started, release = asyncio.Event(), asyncio.Event()

        async def stalled_get(key):
            started.set()
            await release.wait()
            raise ConnectionError("Connection reset by peer")

        fake_redis_client.get = AsyncMock(side_effect=stalled_get)
        fake_redis_client.set = AsyncMock(side_effect=ConnectionError("Connection reset by peer"))
        stale_get = asyncio.create_task(cache.get("k"))
        await started.wait()

        with pytest.raises(CacheTransportError):
            await cache.set("k", 1)
        assert mock_scheduler.call_count == 1

        cache._client_factory.return_value = CacheTestFactory.redis_client_with_data()
        await cache.initialize_connection()
        assert cache.state is ConnectionState.CONNECTED

        release.set()
        with pytest.raises(CacheTransportError):
            await stale_get

        assert cache.state is ConnectionState.CONNECTED
        assert cache.reconnect_pending is False
        assert mock_scheduler.call_count == 1

    async def test_stale_client_error_during_handshake_is_ignored(
        self, connected_redis_cache, fake_redis_client, mock_scheduler
    ):
        cache = connected_redis_cache
        started, release = asyncio.Event(), asyncio.Event()
        ping_started, ping_release = asyncio.Event(), asyncio.Event()

        async def stalled_get(key):
            started.set()
            await release.wait()
            raise ConnectionError("Connection reset by peer")

        async def stalled_ping():
            ping_started.set()
            await ping_release.wait()
            return True

        fake_redis_client.get = AsyncMock(side_effect=stalled_get)
        fake_redis_client.set = AsyncMock(side_effect=ConnectionError("Connection reset by peer"))
        stale_get = asyncio.create_task(cache.get("k"))
        await started.wait()
        with pytest.raises(CacheTransportError):
            await cache.set("k", 1)

        new_client = CacheTestFactory.redis_client_with_data()
        new_client.ping = AsyncMock(side_effect=stalled_ping)
        cache._client_factory.return_value = new_client
        handshake = asyncio.create_task(cache.initialize_connection())
        await ping_started.wait()

        release.set()
        with pytest.raises(CacheTransportError):
            await stale_get
        assert cache.state is ConnectionState.CONNECTING
        assert mock_scheduler.call_count == 1

        ping_release.set()
        await handshake
        assert cache.state is ConnectionState.CONNECTED

    async def test_health_check_reports_state(self, connected_redis_cache, fake_redis_client):
        health = await connected_redis_cache.health_check()
        assert health["status"] == "healthy"
        assert health["state"] == "connected"

        fake_redis_client.ping = AsyncMock(side_effect=ConnectionError("gone"))
        health = await connected_redis_cache.health_check()
        assert health["status"] == "unhealthy"
        assert "gone" in health["error"]


@pytest.mark.unit
class TestReconnectBackoff:
    """Bounded exponential transport backoff."""

    def test_delay_grows_by_multiplier(self):
        backoff = ReconnectBackoff(initial_delay=0.1, multiplier=1.5, max_delay=5.0)

        assert backoff.delay_for(0) == pytest.approx(0.1)
        assert backoff.delay_for(1) == pytest.approx(0.15)
        assert backoff.delay_for(2) == pytest.approx(0.225)

    def test_delay_is_capped(self):
        backoff = ReconnectBackoff(initial_delay=0.1, multiplier=1.5, max_delay=5.0)

        assert backoff.delay_for(50) == 5.0

    def test_compute_is_one_based_failure_count(self):
        on_retry = MagicMock()
        backoff = ReconnectBackoff(0.1, 1.5, 5.0, on_retry=on_retry)

        assert backoff.compute(1) == pytest.approx(0.1)
        on_retry.assert_called_once_with(0, pytest.approx(0.1))

    def test_transport_retry_reported_as_reconnecting(
        self, redis_cache_factory, fake_redis_client, mock_monitor
    ):
        cache = redis_cache_factory(fake_redis_client)

        cache.backoff.compute(3)

        error, properties = mock_monitor.track_exception.call_args.args
        assert isinstance(error, CacheReconnectingError)
        assert properties["event"] == "reconnecting"
        assert properties["attempt"] == "2"
