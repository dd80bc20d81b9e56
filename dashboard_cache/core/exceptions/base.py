"""
Base Exception Class

The root of the dashboard cache exception hierarchy plus ConfigurationError.
Themed exceptions live in their own modules.
"""

from typing import Any


class DashboardCacheError(Exception):
    """
    Base exception for all dashboard cache errors.

    Attributes:
        message: Error message
        details: Additional error details (dict)

    Example:
        raise CacheTransportError(
            "Redis GET failed",
            details={"key": "project_data", "original_error": "ConnectionError"},
        )
    """

    def __init__(self, message: str, details: dict[str, Any] | None = None):
        self.message = message
        self.details = (details or {}).copy()
        super().__init__(self.message)

    def to_dict(self) -> dict[str, Any]:
        """
        Convert exception to dictionary for logging/monitoring.

        Returns:
            Dict with error_type, message and details
        """
        return {
            "error_type": self.__class__.__name__,
            "message": self.message,
            "details": self.details,
        }

    def __repr__(self) -> str:
        details_str = f", details={self.details}" if self.details else ""
        return f"{self.__class__.__name__}(message='{self.message}'{details_str})"

    @classmethod
    def from_exception(
        cls,
        exc: Exception,
        message: str | None = None,
        **details
    ) -> "DashboardCacheError":
        """
        Create an error from another exception.

        Useful for wrapping redis-py exceptions with cache context.

        Example:
            >>> try:
            ...     await client.get(key)
            ... except redis.exceptions.ConnectionError as e:
            ...     raise CacheTransportError.from_exception(e, key=key) from e
        """
        error_message = message or str(exc)
        error_details = {
            "original_error": exc.__class__.__name__,
            "original_message": str(exc),
            **details
        }
        return cls(error_message, details=error_details)


class ConfigurationError(DashboardCacheError):
    """Raised when configuration is invalid or missing."""
    pass
