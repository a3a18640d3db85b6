"""
Unit Tests for SystemMetricsSampler

Tests each metric source and that a failing source reports defaults
instead of failing the whole snapshot.
"""

from types import SimpleNamespace
from unittest.mock import AsyncMock, patch

import psutil
import pytest

from ethosview.core.exceptions import CacheConnectionError, DatabaseQueryError
from ethosview.infrastructure.monitoring import MetricsRegistry, SystemMetricsSampler
from ethosview.infrastructure.monitoring.system_metrics import (
    ACTIVE_CONNECTIONS_QUERY,
    LOCKS_QUERY,
    SLOW_QUERIES_QUERY,
    keyspace_hit_rate,
)


@pytest.fixture
def fake_psutil():
    with patch("ethosview.infrastructure.monitoring.system_metrics.psutil") as mocked:
        mocked.virtual_memory.return_value = SimpleNamespace(percent=62.5)
        mocked.cpu_percent.return_value = 17.0
        mocked.disk_usage.return_value = SimpleNamespace(percent=71.0)
        mocked.Error = psutil.Error
        yield mocked


@pytest.fixture
def sampler(redis, mock_db, clock):
    return SystemMetricsSampler(redis, mock_db, MetricsRegistry(), disk_path="/data", clock=clock)


@pytest.mark.unit
class TestKeyspaceHitRate:
    def test_no_lookups_is_full_hit_rate(self):
        assert keyspace_hit_rate({}) == 100.0

    def test_ratio(self):
        assert keyspace_hit_rate({"keyspace_hits": 3, "keyspace_misses": 1}) == 75.0


@pytest.mark.unit
class TestDatabaseMetrics:
    async def test_counts_from_queries(self, sampler, mock_db):
        counts = {ACTIVE_CONNECTIONS_QUERY: 12, SLOW_QUERIES_QUERY: 2, LOCKS_QUERY: 30}
        mock_db.fetch_scalar = AsyncMock(side_effect=lambda query, params=None: counts[query])

        metrics = await sampler.collect_database_metrics()

        assert metrics.reachable
        assert metrics.response_time_ms >= 0
        assert metrics.active_connections == 12
        assert metrics.slow_queries == 2
        assert metrics.locks_count == 30

    async def test_unreachable_database_skips_queries(self, sampler, mock_db):
        mock_db.ping = AsyncMock(return_value=False)

        metrics = await sampler.collect_database_metrics()

        assert not metrics.reachable
        mock_db.fetch_scalar.assert_not_awaited()

    async def test_query_failure_keeps_latency(self, sampler, mock_db):
        mock_db.fetch_scalar = AsyncMock(side_effect=DatabaseQueryError("permission denied for pg_stat_activity"))

        metrics = await sampler.collect_database_metrics()

        assert metrics.reachable
        assert metrics.active_connections == 0


@pytest.mark.unit
class TestCacheMetrics:
    async def test_reads_info_sections(self, sampler, redis):
        await redis.set("a", "1")
        await redis.get("a")
        await redis.get("missing")

        metrics = await sampler.collect_cache_metrics()

        assert metrics.hit_rate == 50.0
        assert metrics.used_memory_mb == 2.0
        assert metrics.connected_clients == 3
        assert metrics.keys_count == 1

    async def test_redis_failure_reports_defaults(self, sampler, redis):
        redis.info = AsyncMock(side_effect=CacheConnectionError("Connection refused"))

        metrics = await sampler.collect_cache_metrics()

        assert metrics.hit_rate == 100.0
        assert metrics.keys_count == 0


@pytest.mark.unit
class TestSystemMetrics:
    async def test_psutil_readings(self, sampler, fake_psutil):
        metrics = sampler.collect_system_metrics()

        assert metrics.memory_usage_percent == 62.5
        assert metrics.cpu_usage_percent == 17.0
        assert metrics.disk_usage_percent == 71.0
        assert metrics.disk_free_percent == 29.0
        assert metrics.concurrent_tasks >= 1
        fake_psutil.disk_usage.assert_called_once_with("/data")
        fake_psutil.cpu_percent.assert_called_once_with(interval=None)


@pytest.mark.unit
class TestCollect:
    async def test_full_snapshot(self, sampler, fake_psutil, clock):
        snapshot = await sampler.collect()

        assert snapshot.timestamp == clock()
        assert snapshot.system.memory_usage_percent == 62.5
        assert snapshot.cache.connected_clients == 3
        assert snapshot.database.reachable
        assert snapshot.app.requests_per_second == 0.0

    async def test_missing_disk_path_reports_defaults(self, redis, mock_db, clock):
        sampler = SystemMetricsSampler(
            redis, mock_db, MetricsRegistry(), disk_path="/no/such/path", clock=clock
        )

        snapshot = await sampler.collect()

        assert snapshot.system.disk_usage_percent == 0.0
        assert snapshot.system.memory_usage_percent == 0.0
        assert snapshot.system.concurrent_tasks >= 1
        assert snapshot.cache.connected_clients == 3
        assert snapshot.database.reachable

    async def test_access_denied_reports_defaults(self, sampler, fake_psutil):
        fake_psutil.virtual_memory.side_effect = psutil.AccessDenied()

        metrics = sampler.collect_system_metrics()

        assert metrics.memory_usage_percent == 0.0
        assert metrics.disk_usage_percent == 0.0
