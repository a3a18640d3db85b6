"""
Monitoring data models.

A MonitoringSnapshot is produced once per monitoring tick and persisted to
Redis as JSON; Alert is the unit of the alert feed.
"""

from datetime import datetime

from pydantic import BaseModel, Field

from ethosview.core.config.constants import AlertSeverity, AlertType


class DatabaseMetrics(BaseModel):
    response_time_ms: float = 0.0
    active_connections: int = 0
    slow_queries: int = 0
    locks_count: int = 0
    reachable: bool = True


class CacheMetrics(BaseModel):
    hit_rate: float = Field(default=100.0, description="keyspace hit rate (%)")
    used_memory_mb: float = 0.0
    connected_clients: int = 0
    keys_count: int = 0


class SystemMetrics(BaseModel):
    memory_usage_percent: float = 0.0
    cpu_usage_percent: float = 0.0
    disk_usage_percent: float = 0.0
    concurrent_tasks: int = 0

    @property
    def disk_free_percent(self) -> float:
        return 100.0 - self.disk_usage_percent


class AppMetrics(BaseModel):
    requests_per_second: float = 0.0
    error_rate_percent: float = 0.0
    avg_response_time_ms: float = 0.0
    active_users: int = 0


class MonitoringSnapshot(BaseModel):
    """Point-in-time view of database, cache, process and request health."""

    database: DatabaseMetrics = Field(default_factory=DatabaseMetrics)
    cache: CacheMetrics = Field(default_factory=CacheMetrics)
    system: SystemMetrics = Field(default_factory=SystemMetrics)
    app: AppMetrics = Field(default_factory=AppMetrics)
    timestamp: datetime


class Alert(BaseModel):
    """
    A threshold breach.

    ``id`` is ``<type>_<unix seconds>``. At most one unresolved alert per type
    exists at a time.
    """

    id: str
    type: AlertType
    severity: AlertSeverity
    message: str
    value: float
    threshold: float
    timestamp: datetime
    resolved: bool = False
    resolved_at: datetime | None = None
