"""
Pytest Configuration and Shared Test Fixtures

This module provides pytest configuration and reusable fixtures for all tests.
All fixtures defined here are automatically available to all test files.
"""

import os
import sys
from unittest.mock import MagicMock

import pytest

# Add project root to sys.path
sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), "..")))

from tests.test_fixtures.cache_factory import CacheTestFactory, FakeClock  # noqa: E402

REDIS_TEST_URL = "redis://:secret@localhost:6379/0"


# ============================================================================
# Pytest Configuration
# ============================================================================

# pytest-asyncio runs in auto mode (see pyproject.toml)


# ============================================================================
# Configuration Fixtures
# ============================================================================


@pytest.fixture
def remote_settings():
    """
    Real Settings with a Redis connection string and no .env file.

    Real objects instead of MagicMock(spec=Settings) because the cache
    components read the nested views (settings.redis, settings.cache).
    """
    from dashboard_cache.core.config.settings import Settings

    return Settings(
        _env_file=None,
        REDIS_CONNECTION_STRING=REDIS_TEST_URL,
        CACHE_DEFAULT_TTL=300,
        CACHE_RECONNECT_DELAY=5.0,
        CACHE_LOCAL_SWEEP_THRESHOLD=100,
        RATE_LIMIT_MAX_REQUESTS=3,
        RATE_LIMIT_WINDOW_SECONDS=900,
        ENVIRONMENT="development",
    )


@pytest.fixture
def local_settings():
    """Settings without a connection string (local-only mode)."""
    from dashboard_cache.core.config.settings import Settings

    return Settings(
        _env_file=None,
        REDIS_CONNECTION_STRING=None,
        RATE_LIMIT_MAX_REQUESTS=3,
        RATE_LIMIT_WINDOW_SECONDS=900,
    )


# ============================================================================
# Collaborator Fixtures
# ============================================================================


@pytest.fixture
def mock_monitor():
    """MonitoringService double; assert on track_exception calls."""
    from dashboard_cache.core.observability.monitoring import MonitoringService

    return MagicMock(spec=MonitoringService)


@pytest.fixture
def fake_clock():
    """Controllable time source starting at 1000.0 seconds."""
    return FakeClock()


@pytest.fixture
def mock_scheduler():
    """
    Reconnect scheduler double.

    Records (delay, callback) without running anything; each call returns a
    fresh handle so cancellation can be asserted.
    """
    return MagicMock(side_effect=lambda delay, callback: MagicMock(name="TimerHandle"))


# ============================================================================
# Redis Client Fixtures
# ============================================================================


@pytest.fixture
def fake_redis_client():
    """In-memory stand-in for redis.asyncio.Redis."""
    return CacheTestFactory.redis_client_with_data()


@pytest.fixture
def redis_cache_factory(remote_settings, mock_monitor, mock_scheduler):
    """
    Build a RedisCache whose client factory returns the given client.

    Usage:
        cache = redis_cache_factory(fake_redis_client)
        await cache.initialize_connection()
    """
    from dashboard_cache.infrastructure.cache.redis_client import RedisCache

    def _build(client, settings=None):
        return RedisCache(
            settings=settings or remote_settings,
            monitor=mock_monitor,
            client_factory=MagicMock(return_value=client),
            scheduler=mock_scheduler,
        )

    return _build


@pytest.fixture
async def connected_redis_cache(redis_cache_factory, fake_redis_client):
    """RedisCache in CONNECTED state over the in-memory client."""
    cache = redis_cache_factory(fake_redis_client)
    await cache.initialize_connection()
    return cache


# ============================================================================
# Environment-Based Integration Toggles
# ============================================================================


@pytest.fixture(scope="session")
def use_real_redis():
    """Check if real Redis should be used for integration tests."""
    return os.getenv("USE_REAL_REDIS", "0").lower() in ("1", "true", "yes")
