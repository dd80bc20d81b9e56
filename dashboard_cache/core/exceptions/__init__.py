"""
Exception Module

Structured exception hierarchy for the dashboard cache layer.

Module Structure:
-----------------
- **base.py**: DashboardCacheError base class + ConfigurationError
- **cache.py**: Remote cache exceptions (not connected, transport, serialization)
- **rate_limit.py**: Rate limiting exceptions

Usage:
------
```python
from dashboard_cache.core.exceptions import CacheNotConnectedError, ConfigurationError
```
"""

from dashboard_cache.core.exceptions.base import ConfigurationError, DashboardCacheError
from dashboard_cache.core.exceptions.cache import (
    CacheError,
    CacheNotConnectedError,
    CacheReconnectingError,
    CacheSerializationError,
    CacheTransportError,
)
from dashboard_cache.core.exceptions.rate_limit import RateLimitError, RateLimitExceededError

__all__ = [
    # Base
    "DashboardCacheError",
    "ConfigurationError",
    # Cache
    "CacheError",
    "CacheNotConnectedError",
    "CacheTransportError",
    "CacheSerializationError",
    "CacheReconnectingError",
    # Rate Limit
    "RateLimitError",
    "RateLimitExceededError",
]
