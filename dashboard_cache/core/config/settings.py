#!/usr/bin/env python3
"""
Centralized Configuration Module using Pydantic Settings

Type-safe, environment-based configuration for the dashboard cache layer.
Everything that tunes the remote cache connection, the local fallback tier,
the rate limiter and logging lives here.

Architectural Decision: Pydantic Settings for type safety and validation
- Environment variable loading with .env support
- Type validation at startup (fail fast on misconfiguration)
- Flat fields for env loading, nested read-only views for consumers
"""

from typing import Literal

from pydantic import Field, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from dashboard_cache.core.config.constants import (
    DEFAULT_TTL_SECONDS,
    LOCAL_SWEEP_THRESHOLD,
    RECONNECT_DELAY_SECONDS,
)


class RedisSettings(BaseSettings):
    """
    Remote cache (Redis) connection configuration.

    An unset REDIS_CONNECTION_STRING means the service runs local-only.

    Retry policy applied by the transport on socket-level reconnects:
        delay = min(INITIAL_RETRY_DELAY * RETRY_MULTIPLIER ** attempt, MAX_RETRY_DELAY)
    """

    REDIS_CONNECTION_STRING: str | None = Field(
        default=None, description="Redis URL (redis:// or rediss://); unset for local-only mode"
    )
    REDIS_CONNECT_TIMEOUT: float = Field(default=15.0, description="Connection handshake timeout in seconds")
    REDIS_OPERATION_TIMEOUT: float | None = Field(
        default=None, description="Optional per-command socket timeout in seconds"
    )
    REDIS_MAX_RETRY_ATTEMPTS: int = Field(default=10, description="Transport retries before giving up")
    REDIS_INITIAL_RETRY_DELAY: float = Field(default=0.1, description="First transport retry delay in seconds")
    REDIS_RETRY_MULTIPLIER: float = Field(default=1.5, description="Backoff growth factor")
    REDIS_MAX_RETRY_DELAY: float = Field(default=5.0, description="Upper bound for transport retry delay")

    model_config = SettingsConfigDict(env_prefix="", case_sensitive=True)


class CacheSettings(BaseSettings):
    """
    Cache behaviour configuration.

    STAGE-2: Cache TTL and fallback tier configuration
    """

    CACHE_DEFAULT_TTL: int = Field(default=DEFAULT_TTL_SECONDS, description="Default entry TTL (5 minutes)")
    CACHE_RECONNECT_DELAY: float = Field(
        default=RECONNECT_DELAY_SECONDS, description="Delay before the scheduled reconnect after a connection error"
    )
    CACHE_LOCAL_SWEEP_THRESHOLD: int = Field(
        default=LOCAL_SWEEP_THRESHOLD, description="Local entry count above which expired entries are swept"
    )

    model_config = SettingsConfigDict(env_prefix="", case_sensitive=True)


class RateLimitSettings(BaseSettings):
    """
    Cache-backed rate limiting configuration.

    STAGE-3: Rate limiting thresholds
    """

    RATE_LIMIT_MAX_REQUESTS: int = Field(default=100, description="Requests allowed per window")
    RATE_LIMIT_WINDOW_SECONDS: int = Field(default=900, description="Window length (15 minutes)")

    model_config = SettingsConfigDict(env_prefix="", case_sensitive=True)


class MonitoringSettings(BaseSettings):
    """Exception/event tracking configuration."""

    MONITORING_ENABLED: bool = Field(default=True, description="Enable exception and event tracking")

    model_config = SettingsConfigDict(env_prefix="", case_sensitive=True)


class LoggingSettings(BaseSettings):
    """
    Logging configuration for structured logging.

    STAGE-L: Logging configuration
    """

    LOG_LEVEL: str = Field(default="INFO", description="Logging level")
    LOG_FORMAT: Literal["json", "console"] = Field(default="json", description="Log output format")

    @field_validator("LOG_LEVEL")
    @classmethod
    def validate_log_level(cls, v):
        """Validate log level."""
        valid_levels = ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]
        if v.upper() not in valid_levels:
            raise ValueError(f"LOG_LEVEL must be one of {valid_levels}")
        return v.upper()

    model_config = SettingsConfigDict(env_prefix="", case_sensitive=True)


class ApplicationSettings(BaseSettings):
    """General application settings."""

    ENVIRONMENT: Literal["development", "staging", "production"] = Field(
        default="development",
        description="Application environment"
    )
    APP_NAME: str = Field(default="Project Dashboard Cache", description="Application name")
    APP_VERSION: str = Field(default="1.0.0", description="Application version")

    model_config = SettingsConfigDict(env_prefix="", case_sensitive=True)


class Settings(BaseSettings):
    """
    Main settings class that aggregates all configuration sections.

    STAGE-0: Centralized configuration initialization

    Usage:
        from dashboard_cache.core.config.settings import get_settings

        settings = get_settings()
        connection_string = settings.redis.REDIS_CONNECTION_STRING
        default_ttl = settings.cache.CACHE_DEFAULT_TTL
    """

    # Redis settings
    REDIS_CONNECTION_STRING: str | None = Field(
        default=None, description="Redis URL (redis:// or rediss://); unset for local-only mode"
    )
    REDIS_CONNECT_TIMEOUT: float = Field(default=15.0, description="Connection handshake timeout in seconds")
    REDIS_OPERATION_TIMEOUT: float | None = Field(
        default=None, description="Optional per-command socket timeout in seconds"
    )
    REDIS_MAX_RETRY_ATTEMPTS: int = Field(default=10, ge=0, description="Transport retries before giving up")
    REDIS_INITIAL_RETRY_DELAY: float = Field(default=0.1, gt=0, description="First transport retry delay")
    REDIS_RETRY_MULTIPLIER: float = Field(default=1.5, ge=1, description="Backoff growth factor")
    REDIS_MAX_RETRY_DELAY: float = Field(default=5.0, gt=0, description="Upper bound for transport retry delay")

    # Cache settings
    CACHE_DEFAULT_TTL: int = Field(default=DEFAULT_TTL_SECONDS, gt=0, description="Default entry TTL (5 minutes)")
    CACHE_RECONNECT_DELAY: float = Field(
        default=RECONNECT_DELAY_SECONDS, gt=0, description="Delay before the scheduled reconnect after a connection error"
    )
    CACHE_LOCAL_SWEEP_THRESHOLD: int = Field(
        default=LOCAL_SWEEP_THRESHOLD, ge=0, description="Local entry count above which expired entries are swept"
    )

    # Rate limiting settings
    RATE_LIMIT_MAX_REQUESTS: int = Field(default=100, gt=0, description="Requests allowed per window")
    RATE_LIMIT_WINDOW_SECONDS: int = Field(default=900, gt=0, description="Window length (15 minutes)")

    # Monitoring settings
    MONITORING_ENABLED: bool = Field(default=True, description="Enable exception and event tracking")

    # Logging settings
    LOG_LEVEL: str = Field(default="INFO", description="Logging level")
    LOG_FORMAT: Literal["json", "console"] = Field(default="json", description="Log output format")

    # Application settings
    ENVIRONMENT: Literal["development", "staging", "production"] = Field(
        default="development",
        description="Application environment"
    )
    APP_NAME: str = Field(default="Project Dashboard Cache", description="Application name")
    APP_VERSION: str = Field(default="1.0.0", description="Application version")

    @field_validator("LOG_LEVEL")
    @classmethod
    def validate_log_level(cls, v):
        """Validate log level."""
        valid_levels = ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]
        if v.upper() not in valid_levels:
            raise ValueError(f"LOG_LEVEL must be one of {valid_levels}")
        return v.upper()

    @field_validator("REDIS_CONNECTION_STRING", mode="before")
    @classmethod
    def blank_connection_string_is_unset(cls, v):
        """Treat an empty REDIS_CONNECTION_STRING as not configured."""
        if isinstance(v, str) and not v.strip():
            return None
        return v

    @model_validator(mode="after")
    def validate_retry_bounds(self):
        """The backoff cap must not be below the first delay."""
        if self.REDIS_MAX_RETRY_DELAY < self.REDIS_INITIAL_RETRY_DELAY:
            raise ValueError("REDIS_MAX_RETRY_DELAY must be >= REDIS_INITIAL_RETRY_DELAY")
        return self

    # Nested configuration views
    @property
    def redis(self) -> 'RedisSettings':
        """Get Redis settings."""
        return RedisSettings(
            REDIS_CONNECTION_STRING=self.REDIS_CONNECTION_STRING,
            REDIS_CONNECT_TIMEOUT=self.REDIS_CONNECT_TIMEOUT,
            REDIS_OPERATION_TIMEOUT=self.REDIS_OPERATION_TIMEOUT,
            REDIS_MAX_RETRY_ATTEMPTS=self.REDIS_MAX_RETRY_ATTEMPTS,
            REDIS_INITIAL_RETRY_DELAY=self.REDIS_INITIAL_RETRY_DELAY,
            REDIS_RETRY_MULTIPLIER=self.REDIS_RETRY_MULTIPLIER,
            REDIS_MAX_RETRY_DELAY=self.REDIS_MAX_RETRY_DELAY,
        )

    @property
    def cache(self) -> 'CacheSettings':
        """Get cache settings."""
        return CacheSettings(
            CACHE_DEFAULT_TTL=self.CACHE_DEFAULT_TTL,
            CACHE_RECONNECT_DELAY=self.CACHE_RECONNECT_DELAY,
            CACHE_LOCAL_SWEEP_THRESHOLD=self.CACHE_LOCAL_SWEEP_THRESHOLD,
        )

    @property
    def rate_limit(self) -> 'RateLimitSettings':
        """Get rate limit settings."""
        return RateLimitSettings(
            RATE_LIMIT_MAX_REQUESTS=self.RATE_LIMIT_MAX_REQUESTS,
            RATE_LIMIT_WINDOW_SECONDS=self.RATE_LIMIT_WINDOW_SECONDS,
        )

    @property
    def monitoring(self) -> 'MonitoringSettings':
        """Get monitoring settings."""
        return MonitoringSettings(MONITORING_ENABLED=self.MONITORING_ENABLED)

    @property
    def logging(self) -> 'LoggingSettings':
        """Get logging settings."""
        return LoggingSettings(
            LOG_LEVEL=self.LOG_LEVEL,
            LOG_FORMAT=self.LOG_FORMAT,
        )

    @property
    def app(self) -> 'ApplicationSettings':
        """Get application settings."""
        return ApplicationSettings(
            ENVIRONMENT=self.ENVIRONMENT,
            APP_NAME=self.APP_NAME,
            APP_VERSION=self.APP_VERSION,
        )

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=True,
        extra="ignore"  # Ignore extra environment variables
    )


# Global settings instance (singleton pattern)
_settings: Settings | None = None


def get_settings() -> Settings:
    """
    Get the global settings instance (singleton).

    STAGE-0.3: Settings initialization

    Returns:
        Settings: Global settings instance
    """
    global _settings

    if _settings is None:
        _settings = Settings()

    return _settings


def reload_settings() -> Settings:
    """
    Reload settings (useful for testing).

    Returns:
        Settings: New settings instance
    """
    global _settings
    _settings = Settings()
    return _settings
