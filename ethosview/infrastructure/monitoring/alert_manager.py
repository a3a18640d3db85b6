#!/usr/bin/env python3
"""
Alert Manager - Threshold Evaluation and Alert Lifecycle

Architecture:
    AlertManager
        ├── MetricsSampler (injected; produces one MonitoringSnapshot per tick)
        ├── Thresholds (frozen limits, one per rule)
        ├── Alert list (in-memory source of truth, guarded by one lock)
        └── Redis mirror (alerts:active list, monitoring:current / history keys)

Alert lifecycle per type:
    none -> active (unresolved) -> resolved -> dropped (1h after resolution)

A breach only creates an alert when no unresolved alert of the same type
exists. Alerts resolve through resolve_alert() only; a metric falling back
under its threshold does not resolve anything.

Tick (check_metrics):
    1. Sample a snapshot
    2. Evaluate every rule, creating deduplicated alerts
    3. Mirror new alerts and the snapshot to Redis (best effort)
    4. Drop alerts resolved more than an hour ago (always, even on failure)

Author: System Architect
Date: 2025-12-13
"""

import threading
from collections.abc import Callable
from datetime import datetime, timedelta, timezone

from pydantic import BaseModel, ConfigDict, ValidationError

from ethosview.core.config.constants import (
    ALERT_RETENTION_SECONDS,
    ALERTS_MIRROR_MAX_LENGTH,
    MONITORING_CURRENT_TTL,
    MONITORING_HISTORY_TIMESTAMP_FORMAT,
    MONITORING_HISTORY_TTL,
    REDIS_KEY_ALERTS_ACTIVE,
    REDIS_KEY_MONITORING_CURRENT,
    REDIS_KEY_MONITORING_HISTORY,
    AlertSeverity,
    AlertType,
)
from ethosview.core.exceptions import AlertNotFoundError, CacheError, MetricsCollectionError
from ethosview.core.logging.logger import get_logger, log_stage
from ethosview.core.scheduling import PeriodicTask
from ethosview.infrastructure.cache.redis_client import RedisClient
from ethosview.infrastructure.monitoring.metrics_registry import MetricsRegistry
from ethosview.infrastructure.monitoring.models import Alert, MonitoringSnapshot
from ethosview.infrastructure.monitoring.system_metrics import MetricsSampler

logger = get_logger(__name__)

DEFAULT_HISTORY_LIMIT = 60

SEVERITY_LOG_LEVELS = {
    AlertSeverity.INFO: "info",
    AlertSeverity.WARNING: "warning",
    AlertSeverity.CRITICAL: "error",
}


class Thresholds(BaseModel):
    """Alert limits. Fixed for the lifetime of an AlertManager."""

    model_config = ConfigDict(frozen=True)

    database_response_time_ms: float = 500.0
    database_max_connections: float = 80.0
    database_max_slow_queries: int = 5
    cache_min_hit_rate: float = 80.0
    max_memory_usage_percent: float = 85.0
    max_concurrent_tasks: int = 1000
    max_error_rate_percent: float = 5.0
    max_requests_per_second: float = 1000.0
    min_disk_free_percent: float = 15.0

    @classmethod
    def from_settings(cls, monitoring) -> "Thresholds":
        """Build thresholds from a MonitoringSettings view."""
        return cls(
            database_response_time_ms=monitoring.ALERT_DB_RESPONSE_TIME_MS,
            database_max_connections=monitoring.ALERT_DB_MAX_CONNECTIONS,
            database_max_slow_queries=monitoring.ALERT_DB_MAX_SLOW_QUERIES,
            cache_min_hit_rate=monitoring.ALERT_CACHE_MIN_HIT_RATE,
            max_memory_usage_percent=monitoring.ALERT_MAX_MEMORY_PERCENT,
            max_concurrent_tasks=monitoring.ALERT_MAX_CONCURRENCY,
            max_error_rate_percent=monitoring.ALERT_MAX_ERROR_RATE,
            max_requests_per_second=monitoring.ALERT_MAX_REQUESTS_PER_SECOND,
            min_disk_free_percent=monitoring.ALERT_MIN_DISK_FREE_PERCENT,
        )


# (type, severity, message, observed value, threshold)
Breach = tuple[AlertType, AlertSeverity, str, float, float]


class AlertManager:
    """
    Periodic health evaluation with a deduplicated, self-expiring alert feed.

    Usage:
        manager = AlertManager(sampler, redis_client, Thresholds(), metrics=registry)
        manager.start_monitoring(interval=60)

        active = manager.get_active_alerts()
        manager.resolve_alert(active[0].id)

        await manager.stop_monitoring()

    Thread safety:
        Every access to the alert list goes through one lock and never awaits
        while holding it. Readers receive copies.
    """

    def __init__(
        self,
        sampler: MetricsSampler,
        redis_client: RedisClient | None = None,
        thresholds: Thresholds | None = None,
        metrics: MetricsRegistry | None = None,
        clock: Callable[[], datetime] | None = None,
    ):
        """
        Args:
            sampler: Produces the snapshot evaluated on each tick
            redis_client: Optional store for the alert/snapshot mirror
            thresholds: Alert limits (defaults when omitted)
            metrics: Optional registry whose active-alerts gauge is kept current
            clock: Returns the current UTC time (injectable for tests)
        """
        self._sampler = sampler
        self._redis = redis_client
        self.thresholds = thresholds or Thresholds()
        self._metrics = metrics
        self._clock = clock or (lambda: datetime.now(timezone.utc))

        self._lock = threading.Lock()
        self._alerts: list[Alert] = []
        self._latest: MonitoringSnapshot | None = None
        self._task: PeriodicTask | None = None

    # =========================================================================
    # Lifecycle
    # =========================================================================

    @property
    def is_monitoring(self) -> bool:
        return self._task is not None and self._task.is_running

    def start_monitoring(self, interval: float) -> PeriodicTask:
        """
        Run check_metrics every ``interval`` seconds, first tick after one interval.

        Calling this while already monitoring returns the existing task.
        """
        if self.is_monitoring:
            return self._task

        self._task = PeriodicTask(
            "alert-monitor", self.check_metrics, interval=interval, run_immediately=False
        )
        self._task.start()
        logger.info("Performance monitoring started", stage="ALERT.START", interval_seconds=interval)
        return self._task

    async def stop_monitoring(self) -> None:
        """Stop the monitoring loop. Safe to call multiple times."""
        task, self._task = self._task, None
        if task is not None:
            await task.stop()
            logger.info("Performance monitoring stopped", stage="ALERT.STOP")

    # =========================================================================
    # Tick
    # =========================================================================

    async def check_metrics(self) -> list[Alert]:
        """
        Run one monitoring tick.

        STAGE-ALERT.1

        Returns:
            Alerts created during this tick

        Raises:
            MetricsCollectionError: If the sampler cannot produce a snapshot
        """
        try:
            try:
                snapshot = await self._sampler.collect()
            except MetricsCollectionError:
                raise
            except Exception as e:
                raise MetricsCollectionError.from_exception(
                    e, message=f"Metrics sampling failed: {e}"
                ).with_context(sampler=type(self._sampler).__name__) from e

            created = self.evaluate(snapshot)
            self._latest = snapshot

            for alert in created:
                await self._store_alert(alert)
            await self._store_snapshot(snapshot)

            return created
        finally:
            self.cleanup_resolved_alerts()

    def evaluate(self, snapshot: MonitoringSnapshot) -> list[Alert]:
        """
        Compare a snapshot against the thresholds and create deduplicated alerts.

        Returns:
            Alerts created (breaches of already-alerting types are suppressed)
        """
        created = []
        for breach in self._find_breaches(snapshot):
            alert = self._create_alert(*breach)
            if alert is not None:
                created.append(alert)
        return created

    def _find_breaches(self, snapshot: MonitoringSnapshot) -> list[Breach]:
        t = self.thresholds
        db, cache, system, app = snapshot.database, snapshot.cache, snapshot.system, snapshot.app
        breaches: list[Breach] = []

        if db.response_time_ms > t.database_response_time_ms:
            breaches.append((
                AlertType.DATABASE_RESPONSE_TIME, AlertSeverity.CRITICAL,
                f"Database response time is {db.response_time_ms:.2f}ms "
                f"(threshold: {t.database_response_time_ms:.2f}ms)",
                db.response_time_ms, t.database_response_time_ms,
            ))
        if db.active_connections > t.database_max_connections:
            breaches.append((
                AlertType.DATABASE_CONNECTIONS, AlertSeverity.WARNING,
                f"High database connections: {db.active_connections} "
                f"(threshold: {t.database_max_connections:.0f})",
                float(db.active_connections), t.database_max_connections,
            ))
        if db.slow_queries > t.database_max_slow_queries:
            breaches.append((
                AlertType.QUERY_PERFORMANCE, AlertSeverity.WARNING,
                f"High number of slow queries: {db.slow_queries}",
                float(db.slow_queries), float(t.database_max_slow_queries),
            ))

        if cache.hit_rate < t.cache_min_hit_rate:
            breaches.append((
                AlertType.CACHE_HIT_RATE, AlertSeverity.WARNING,
                f"Low cache hit rate: {cache.hit_rate:.2f}% (threshold: {t.cache_min_hit_rate:.2f}%)",
                cache.hit_rate, t.cache_min_hit_rate,
            ))

        if system.memory_usage_percent > t.max_memory_usage_percent:
            breaches.append((
                AlertType.MEMORY_USAGE, AlertSeverity.CRITICAL,
                f"High memory usage: {system.memory_usage_percent:.2f}% "
                f"(threshold: {t.max_memory_usage_percent:.2f}%)",
                system.memory_usage_percent, t.max_memory_usage_percent,
            ))
        # Shares the memory_usage type, so it is suppressed while a memory alert is open
        if system.concurrent_tasks > t.max_concurrent_tasks:
            breaches.append((
                AlertType.MEMORY_USAGE, AlertSeverity.WARNING,
                f"High number of concurrent tasks: {system.concurrent_tasks}",
                float(system.concurrent_tasks), float(t.max_concurrent_tasks),
            ))
        if system.disk_free_percent < t.min_disk_free_percent:
            breaches.append((
                AlertType.DISK_SPACE, AlertSeverity.WARNING,
                f"Low disk space: {system.disk_free_percent:.2f}% free "
                f"(threshold: {t.min_disk_free_percent:.2f}%)",
                system.disk_free_percent, t.min_disk_free_percent,
            ))

        if app.error_rate_percent > t.max_error_rate_percent:
            breaches.append((
                AlertType.ERROR_RATE, AlertSeverity.CRITICAL,
                f"High error rate: {app.error_rate_percent:.2f}% "
                f"(threshold: {t.max_error_rate_percent:.2f}%)",
                app.error_rate_percent, t.max_error_rate_percent,
            ))
        if app.requests_per_second > t.max_requests_per_second:
            breaches.append((
                AlertType.REQUEST_RATE, AlertSeverity.WARNING,
                f"High request rate: {app.requests_per_second:.2f} req/s "
                f"(threshold: {t.max_requests_per_second:.2f} req/s)",
                app.requests_per_second, t.max_requests_per_second,
            ))

        return breaches

    # =========================================================================
    # Alert List
    # =========================================================================

    def _create_alert(
        self,
        alert_type: AlertType,
        severity: AlertSeverity,
        message: str,
        value: float,
        threshold: float,
    ) -> Alert | None:
        now = self._clock()
        with self._lock:
            if any(a.type == alert_type and not a.resolved for a in self._alerts):
                return None

            alert = Alert(
                id=f"{alert_type.value}_{int(now.timestamp())}",
                type=alert_type,
                severity=severity,
                message=message,
                value=value,
                threshold=threshold,
                timestamp=now,
            )
            self._alerts.append(alert)
            active = self._count_active()

        self._update_gauge(active)
        log_stage(
            logger,
            "ALERT.CREATE",
            "Alert raised",
            level=SEVERITY_LOG_LEVELS[severity],
            alert_id=alert.id,
            alert_type=alert_type.value,
            severity=severity.value,
            alert_message=message,
        )
        return alert.model_copy()

    def get_active_alerts(self) -> list[Alert]:
        """Unresolved alerts, oldest first."""
        with self._lock:
            return [a.model_copy() for a in self._alerts if not a.resolved]

    def get_all_alerts(self) -> list[Alert]:
        """Every retained alert, including resolved ones not yet dropped."""
        with self._lock:
            return [a.model_copy() for a in self._alerts]

    def resolve_alert(self, alert_id: str) -> Alert:
        """
        Mark an unresolved alert as resolved.

        Returns:
            The resolved alert

        Raises:
            AlertNotFoundError: If no unresolved alert has this id
        """
        now = self._clock()
        with self._lock:
            alert = next((a for a in self._alerts if a.id == alert_id and not a.resolved), None)
            if alert is None:
                raise AlertNotFoundError(
                    message=f"Alert {alert_id} not found or already resolved",
                    details={"alert_id": alert_id},
                )
            alert.resolved = True
            alert.resolved_at = now
            active = self._count_active()

        self._update_gauge(active)
        logger.info("Alert resolved", stage="ALERT.RESOLVE", alert_id=alert_id, alert_message=alert.message)
        return alert.model_copy()

    def cleanup_resolved_alerts(self) -> int:
        """
        Drop alerts resolved more than an hour ago. Unresolved alerts are never dropped.

        Returns:
            Number of alerts dropped
        """
        cutoff = self._clock() - timedelta(seconds=ALERT_RETENTION_SECONDS)
        with self._lock:
            before = len(self._alerts)
            self._alerts = [
                a for a in self._alerts
                if not a.resolved or a.resolved_at is None or a.resolved_at >= cutoff
            ]
            removed = before - len(self._alerts)

        if removed:
            logger.debug("Dropped expired resolved alerts", stage="ALERT.CLEANUP", removed=removed)
        return removed

    def _count_active(self) -> int:
        return sum(1 for a in self._alerts if not a.resolved)

    def _update_gauge(self, active: int) -> None:
        if self._metrics is not None:
            self._metrics.set_active_alerts(active)

    # =========================================================================
    # Snapshots
    # =========================================================================

    async def get_latest_snapshot(self) -> MonitoringSnapshot | None:
        """Most recent snapshot from this process, else the mirrored one."""
        if self._latest is not None or self._redis is None:
            return self._latest

        raw = await self._redis.get(REDIS_KEY_MONITORING_CURRENT)
        return self._parse_snapshot(REDIS_KEY_MONITORING_CURRENT, raw)

    async def get_metrics_history(self, limit: int = DEFAULT_HISTORY_LIMIT) -> list[MonitoringSnapshot]:
        """
        Persisted snapshots, newest first.

        Raises:
            CacheError: If the store is unavailable
        """
        if self._redis is None or limit <= 0:
            return []

        pattern = REDIS_KEY_MONITORING_HISTORY.format(timestamp="*")
        keys = sorted(await self._redis.scan_keys(pattern), reverse=True)[:limit]

        history = []
        for key in keys:
            snapshot = self._parse_snapshot(key, await self._redis.get(key))
            if snapshot is not None:
                history.append(snapshot)
        return history

    @staticmethod
    def _parse_snapshot(key: str, raw: str | None) -> MonitoringSnapshot | None:
        if raw is None:
            return None
        try:
            return MonitoringSnapshot.model_validate_json(raw)
        except ValidationError as e:
            logger.warning("Skipping unreadable snapshot", stage="ALERT.HISTORY", key=key, error_count=e.error_count())
            return None

    # =========================================================================
    # Redis Mirror
    # =========================================================================

    async def _store_alert(self, alert: Alert) -> None:
        if self._redis is None:
            return
        try:
            await self._redis.lpush(REDIS_KEY_ALERTS_ACTIVE, alert.model_dump_json())
            await self._redis.ltrim(REDIS_KEY_ALERTS_ACTIVE, 0, ALERTS_MIRROR_MAX_LENGTH - 1)
        except CacheError as e:
            logger.warning("Failed to mirror alert", stage="ALERT.STORE", alert_id=alert.id, error=str(e))

    async def _store_snapshot(self, snapshot: MonitoringSnapshot) -> None:
        if self._redis is None:
            return

        payload = snapshot.model_dump_json()
        history_key = REDIS_KEY_MONITORING_HISTORY.format(
            timestamp=snapshot.timestamp.strftime(MONITORING_HISTORY_TIMESTAMP_FORMAT)
        )
        try:
            await self._redis.set(REDIS_KEY_MONITORING_CURRENT, payload, ttl=MONITORING_CURRENT_TTL)
            await self._redis.set(history_key, payload, ttl=MONITORING_HISTORY_TTL)
        except CacheError as e:
            logger.warning("Failed to store monitoring snapshot", stage="ALERT.STORE", error=str(e))
