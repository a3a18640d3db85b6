from .alert_manager import AlertManager, Thresholds
from .metrics_registry import MetricsRegistry
from .models import (
    Alert,
    AppMetrics,
    CacheMetrics,
    DatabaseMetrics,
    MonitoringSnapshot,
    SystemMetrics,
)
from .system_metrics import MetricsSampler, SystemMetricsSampler

__all__ = [
    "Alert",
    "AlertManager",
    "AppMetrics",
    "CacheMetrics",
    "DatabaseMetrics",
    "MetricsRegistry",
    "MetricsSampler",
    "MonitoringSnapshot",
    "SystemMetrics",
    "SystemMetricsSampler",
    "Thresholds",
]
