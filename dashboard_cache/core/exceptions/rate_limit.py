"""
Rate Limiting Exceptions
"""

from dashboard_cache.core.exceptions.base import DashboardCacheError


class RateLimitError(DashboardCacheError):
    """Base exception for rate limiting errors."""
    pass


class RateLimitExceededError(RateLimitError):
    """
    Raised when a client exceeds its request budget for the current window.

    ``details`` carries limit, remaining and reset_time so handlers can emit
    the X-RateLimit-* headers and a 429 response.
    """
    pass
