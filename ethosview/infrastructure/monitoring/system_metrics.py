"""
System Metrics Sampler

Collects one MonitoringSnapshot per monitoring tick from four sources:

    database  ping latency, pg_stat_activity / pg_locks counts (SQLAlchemy)
    cache     Redis INFO stats/memory/clients and DBSIZE
    system    psutil memory, CPU and disk usage; asyncio task count
    app       windowed request aggregates from the MetricsRegistry

A source that fails is logged and reported with neutral defaults, so one
unreachable dependency never hides the others.

Author: System Architect
Date: 2025-12-13
"""

import asyncio
import time
from collections.abc import Callable
from datetime import datetime, timezone
from typing import Protocol

import psutil

from ethosview.core.config.constants import SLOW_QUERY_SECONDS
from ethosview.core.exceptions import CacheError, DatabaseError
from ethosview.core.logging.logger import get_logger
from ethosview.infrastructure.cache.redis_client import RedisClient
from ethosview.infrastructure.database.postgres_client import DatabaseClient
from ethosview.infrastructure.monitoring.metrics_registry import MetricsRegistry
from ethosview.infrastructure.monitoring.models import (
    CacheMetrics,
    DatabaseMetrics,
    MonitoringSnapshot,
    SystemMetrics,
)

logger = get_logger(__name__)

ACTIVE_CONNECTIONS_QUERY = "SELECT count(*) FROM pg_stat_activity WHERE state = 'active'"

SLOW_QUERIES_QUERY = f"""
    SELECT COUNT(*)
    FROM pg_stat_activity
    WHERE state = 'active'
    AND query_start < NOW() - INTERVAL '{SLOW_QUERY_SECONDS} second'
"""

LOCKS_QUERY = "SELECT COUNT(*) FROM pg_locks"

BYTES_PER_MB = 1024 * 1024


class MetricsSampler(Protocol):
    """Anything that can produce a MonitoringSnapshot."""

    async def collect(self) -> MonitoringSnapshot: ...


def keyspace_hit_rate(stats: dict) -> float:
    """
    Hit rate (%) from a Redis INFO stats section.

    Returns 100.0 when the server has served no lookups yet.
    """
    hits = int(stats.get("keyspace_hits", 0) or 0)
    misses = int(stats.get("keyspace_misses", 0) or 0)
    total = hits + misses
    if total == 0:
        return 100.0
    return hits / total * 100


class SystemMetricsSampler:
    """
    Default MetricsSampler backed by real instrumentation.

    Usage:
        sampler = SystemMetricsSampler(redis_client, database_client, metrics)
        snapshot = await sampler.collect()
    """

    def __init__(
        self,
        redis_client: RedisClient,
        database_client: DatabaseClient,
        metrics: MetricsRegistry,
        disk_path: str = "/",
        clock: Callable[[], datetime] | None = None,
    ):
        self._redis = redis_client
        self._db = database_client
        self._metrics = metrics
        self._disk_path = disk_path
        self._clock = clock or (lambda: datetime.now(timezone.utc))

    async def collect(self) -> MonitoringSnapshot:
        return MonitoringSnapshot(
            database=await self.collect_database_metrics(),
            cache=await self.collect_cache_metrics(),
            system=self.collect_system_metrics(),
            app=self._metrics.snapshot(),
            timestamp=self._clock(),
        )

    async def collect_database_metrics(self) -> DatabaseMetrics:
        start = time.perf_counter()
        reachable = await self._db.ping()
        metrics = DatabaseMetrics(
            response_time_ms=(time.perf_counter() - start) * 1000,
            reachable=reachable,
        )
        if not reachable:
            return metrics

        try:
            metrics.active_connections = int(await self._db.fetch_scalar(ACTIVE_CONNECTIONS_QUERY) or 0)
            metrics.slow_queries = int(await self._db.fetch_scalar(SLOW_QUERIES_QUERY) or 0)
            metrics.locks_count = int(await self._db.fetch_scalar(LOCKS_QUERY) or 0)
        except DatabaseError as e:
            logger.warning("Database metrics collection failed", stage="MON.DB", error=str(e))

        return metrics

    async def collect_cache_metrics(self) -> CacheMetrics:
        metrics = CacheMetrics()
        try:
            stats = await self._redis.info("stats")
            memory = await self._redis.info("memory")
            clients = await self._redis.info("clients")

            metrics.hit_rate = keyspace_hit_rate(stats)
            metrics.used_memory_mb = int(memory.get("used_memory", 0) or 0) / BYTES_PER_MB
            metrics.connected_clients = int(clients.get("connected_clients", 0) or 0)
            metrics.keys_count = await self._redis.dbsize()
        except CacheError as e:
            logger.warning("Cache metrics collection failed", stage="MON.CACHE", error=str(e))

        return metrics

    def collect_system_metrics(self) -> SystemMetrics:
        metrics = SystemMetrics(concurrent_tasks=len(asyncio.all_tasks()))
        try:
            metrics.memory_usage_percent = psutil.virtual_memory().percent
            metrics.cpu_usage_percent = psutil.cpu_percent(interval=None)
            metrics.disk_usage_percent = psutil.disk_usage(self._disk_path).percent
        except (psutil.Error, OSError) as e:
            logger.warning(
                "System metrics collection failed",
                stage="MON.SYSTEM",
                disk_path=self._disk_path,
                error=str(e),
            )
            return SystemMetrics(concurrent_tasks=metrics.concurrent_tasks)

        return metrics
