"""
Rate Limiting Module

Cache-backed, per-client request budgets.
"""

from .rate_limiter import CacheRateLimiter, RateLimitInfo

__all__ = ["CacheRateLimiter", "RateLimitInfo"]
