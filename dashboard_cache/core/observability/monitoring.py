#!/usr/bin/env python3
"""
Monitoring Service

The observability collaborator the cache layer reports into. Every primary
failure, connection error and transport retry ends up in track_exception.

Architectural Decision: structlog + prometheus-client
- Each tracked exception is a structured log entry with its context properties
- Counters make fallback rates and connection flapping visible on dashboards
- Tracking is fire-and-forget: a broken metrics pipeline must never break a cache call
"""

from datetime import datetime, timezone

from prometheus_client import Counter

from dashboard_cache.core.config.constants import Stage
from dashboard_cache.core.config.settings import Settings, get_settings
from dashboard_cache.core.logging.logger import get_logger, log_stage

logger = get_logger(__name__)


# ============================================================================
# Metric Definitions
# ============================================================================

EXCEPTIONS_TRACKED = Counter(
    'dashboard_cache_exceptions_total',
    'Exceptions reported by cache components',
    ['service', 'operation']
)

EVENTS_TRACKED = Counter(
    'dashboard_cache_events_total',
    'Named events reported by cache components',
    ['name']
)


class MonitoringService:
    """
    Exception and event tracking for cache components.

    Usage:
        monitor = get_monitoring_service()
        monitor.track_exception(error, {"service": "RedisCache", "operation": "get", "key": key})
    """

    def __init__(self, settings: Settings | None = None):
        settings = settings or get_settings()
        self._enabled = settings.monitoring.MONITORING_ENABLED
        self._environment = settings.app.ENVIRONMENT

    @property
    def enabled(self) -> bool:
        return self._enabled

    def track_exception(self, error: BaseException, properties: dict[str, str] | None = None) -> None:
        """
        Report an exception with string context properties.

        Never raises.

        Args:
            error: The exception being reported
            properties: Context such as service, operation, event, key
        """
        if not self._enabled:
            return

        try:
            enhanced = {
                **(properties or {}),
                "error_name": error.__class__.__name__,
                "timestamp": datetime.now(timezone.utc).isoformat(),
            }
            service = enhanced.get("service", "unknown")
            operation = enhanced.get("operation") or enhanced.get("event") or "unknown"

            EXCEPTIONS_TRACKED.labels(service=service, operation=operation).inc()
            log_stage(
                logger,
                Stage.MONITORING,
                "Exception tracked",
                level="warning",
                error=str(error),
                properties=enhanced,
            )
        except Exception as e:
            logger.error("Error tracking exception", error=str(e))

    def track_event(self, name: str, properties: dict[str, str] | None = None) -> None:
        """Report a named event. Never raises."""
        if not self._enabled:
            return

        try:
            EVENTS_TRACKED.labels(name=name).inc()
            log_stage(
                logger,
                Stage.MONITORING,
                "Event tracked",
                event_name=name,
                environment=self._environment,
                properties=properties or {},
            )
        except Exception as e:
            logger.error("Error tracking event", error=str(e))


# =============================================================================
# GLOBAL INSTANCE (SINGLETON PATTERN)
# =============================================================================

_monitoring_service: MonitoringService | None = None


def get_monitoring_service() -> MonitoringService:
    """Get the global monitoring service instance (singleton)."""
    global _monitoring_service

    if _monitoring_service is None:
        _monitoring_service = MonitoringService()

    return _monitoring_service
