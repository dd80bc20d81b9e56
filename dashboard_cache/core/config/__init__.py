"""
Configuration Module

Centralized, type-safe configuration for the dashboard cache layer.

Components:
-----------
- **settings.py**: Pydantic-based configuration with environment variable loading
- **constants.py**: Enums (connection state, cache mode, stages) and defaults

Usage:
------
```python
from dashboard_cache.core.config import get_settings, ConnectionState

settings = get_settings()
url = settings.redis.REDIS_CONNECTION_STRING  # None -> local-only mode
ttl = settings.cache.CACHE_DEFAULT_TTL
```

Environment Variables:
---------------------
```bash
REDIS_CONNECTION_STRING=rediss://:secret@cache.example.net:6380/0
CACHE_DEFAULT_TTL=300
CACHE_RECONNECT_DELAY=5
RATE_LIMIT_MAX_REQUESTS=100
LOG_LEVEL=INFO
LOG_FORMAT=json
```
"""

from dashboard_cache.core.config.constants import (
    CACHE_KEY_RATE_LIMIT,
    DEFAULT_TTL_SECONDS,
    HEADER_RATE_LIMIT,
    HEADER_RATE_REMAINING,
    HEADER_RATE_RESET,
    LOCAL_SWEEP_THRESHOLD,
    RECONNECT_DELAY_SECONDS,
    CacheMode,
    CacheTier,
    ConnectionState,
    ServiceStatus,
    Stage,
)
from dashboard_cache.core.config.settings import Settings, get_settings, reload_settings

__all__ = [
    # Settings
    "Settings",
    "get_settings",
    "reload_settings",
    # Enums
    "Stage",
    "ConnectionState",
    "CacheMode",
    "ServiceStatus",
    "CacheTier",
    # Defaults
    "DEFAULT_TTL_SECONDS",
    "LOCAL_SWEEP_THRESHOLD",
    "RECONNECT_DELAY_SECONDS",
    # Keys and headers
    "CACHE_KEY_RATE_LIMIT",
    "HEADER_RATE_LIMIT",
    "HEADER_RATE_REMAINING",
    "HEADER_RATE_RESET",
]
