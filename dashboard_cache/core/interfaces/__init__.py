"""
Core Interfaces Module

Protocols for the pluggable pieces of the cache layer.

Components:
-----------
- **cache.py**: CacheBackend protocol implemented by RedisCache and LocalCache

Usage:
------
```python
from dashboard_cache.core.interfaces import CacheBackend

def uses_any_tier(cache: CacheBackend):
    await cache.get("project_data")
```
"""

from dashboard_cache.core.interfaces.cache import CacheBackend

__all__ = ["CacheBackend"]
