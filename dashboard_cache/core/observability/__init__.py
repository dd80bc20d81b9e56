from .monitoring import MonitoringService, get_monitoring_service

__all__ = ["MonitoringService", "get_monitoring_service"]
