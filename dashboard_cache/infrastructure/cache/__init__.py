"""
Cache Module

Provides the two-tier cache (Redis primary + in-process fallback).
"""

from .cache_service import (
    CacheService,
    close_cache,
    get_cache_service,
    init_cache,
)
from .local_cache import CacheEntry, LocalCache
from .redis_client import ReconnectBackoff, RedisCache

__all__ = [
    "CacheService",
    "get_cache_service",
    "init_cache",
    "close_cache",
    "LocalCache",
    "CacheEntry",
    "RedisCache",
    "ReconnectBackoff",
]
