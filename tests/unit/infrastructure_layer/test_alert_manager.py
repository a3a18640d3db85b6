"""
Unit Tests for AlertManager

Tests threshold rules, per-type deduplication, resolution, retention of
resolved alerts, the Redis mirror and the monitoring lifecycle.
"""

from unittest.mock import AsyncMock

import orjson
import pytest

from ethosview.core.config.constants import AlertSeverity, AlertType
from ethosview.core.config.settings import Settings
from ethosview.core.exceptions import AlertNotFoundError, CacheKeyError, MetricsCollectionError
from ethosview.infrastructure.monitoring import (
    AlertManager,
    AppMetrics,
    CacheMetrics,
    DatabaseMetrics,
    MetricsRegistry,
    MonitoringSnapshot,
    SystemMetrics,
    Thresholds,
)


class StaticSampler:
    """Returns a snapshot built from mutable component metrics."""

    def __init__(self, clock):
        self.clock = clock
        self.database = DatabaseMetrics(response_time_ms=12.0)
        self.cache = CacheMetrics(hit_rate=95.0)
        self.system = SystemMetrics(memory_usage_percent=40.0, disk_usage_percent=50.0, concurrent_tasks=12)
        self.app = AppMetrics(requests_per_second=3.0)
        self.calls = 0

    async def collect(self):
        self.calls += 1
        return MonitoringSnapshot(
            database=self.database,
            cache=self.cache,
            system=self.system,
            app=self.app,
            timestamp=self.clock(),
        )


@pytest.fixture
def sampler(clock):
    return StaticSampler(clock)


@pytest.fixture
def metrics():
    return MetricsRegistry()


@pytest.fixture
def manager(sampler, redis, metrics, clock):
    return AlertManager(sampler, redis, Thresholds(), metrics=metrics, clock=clock)


@pytest.mark.unit
class TestRules:
    """Test each threshold rule."""

    async def test_healthy_snapshot_raises_nothing(self, manager):
        assert await manager.check_metrics() == []
        assert manager.get_active_alerts() == []

    async def test_slow_database(self, manager, sampler, clock):
        sampler.database = DatabaseMetrics(response_time_ms=600.0)

        [alert] = await manager.check_metrics()

        assert alert.type == AlertType.DATABASE_RESPONSE_TIME
        assert alert.severity == AlertSeverity.CRITICAL
        assert alert.value == 600.0
        assert alert.threshold == 500.0
        assert alert.message == "Database response time is 600.00ms (threshold: 500.00ms)"
        assert alert.id == f"database_response_time_{int(clock().timestamp())}"
        assert not alert.resolved

    @pytest.mark.parametrize(
        "component, metrics_value, alert_type, severity",
        [
            ("database", DatabaseMetrics(active_connections=81), AlertType.DATABASE_CONNECTIONS, AlertSeverity.WARNING),
            ("database", DatabaseMetrics(slow_queries=6), AlertType.QUERY_PERFORMANCE, AlertSeverity.WARNING),
            ("cache", CacheMetrics(hit_rate=79.9), AlertType.CACHE_HIT_RATE, AlertSeverity.WARNING),
            ("system", SystemMetrics(memory_usage_percent=90.0), AlertType.MEMORY_USAGE, AlertSeverity.CRITICAL),
            ("system", SystemMetrics(concurrent_tasks=1001), AlertType.MEMORY_USAGE, AlertSeverity.WARNING),
            ("system", SystemMetrics(disk_usage_percent=90.0), AlertType.DISK_SPACE, AlertSeverity.WARNING),
            ("app", AppMetrics(error_rate_percent=7.5), AlertType.ERROR_RATE, AlertSeverity.CRITICAL),
            ("app", AppMetrics(requests_per_second=1500.0), AlertType.REQUEST_RATE, AlertSeverity.WARNING),
        ],
    )
    async def test_rule(self, manager, sampler, component, metrics_value, alert_type, severity):
        setattr(sampler, component, metrics_value)

        [alert] = await manager.check_metrics()

        assert alert.type == alert_type
        assert alert.severity == severity

    async def test_values_at_threshold_do_not_alert(self, manager, sampler):
        sampler.database = DatabaseMetrics(response_time_ms=500.0, active_connections=80, slow_queries=5)
        sampler.cache = CacheMetrics(hit_rate=80.0)
        sampler.system = SystemMetrics(memory_usage_percent=85.0, disk_usage_percent=85.0, concurrent_tasks=1000)
        sampler.app = AppMetrics(error_rate_percent=5.0, requests_per_second=1000.0)

        assert await manager.check_metrics() == []

    async def test_concurrency_rule_shares_memory_type(self, manager, sampler):
        sampler.system = SystemMetrics(memory_usage_percent=90.0, concurrent_tasks=2000)

        alerts = await manager.check_metrics()

        assert len(alerts) == 1
        assert alerts[0].severity == AlertSeverity.CRITICAL
        assert alerts[0].message.startswith("High memory usage")

    async def test_concurrency_message(self, manager, sampler):
        sampler.system = SystemMetrics(concurrent_tasks=1500)

        [alert] = await manager.check_metrics()

        assert alert.message == "High number of concurrent tasks: 1500"

    async def test_custom_thresholds(self, sampler, clock):
        manager = AlertManager(sampler, thresholds=Thresholds(database_response_time_ms=10.0), clock=clock)

        [alert] = await manager.check_metrics()

        assert alert.type == AlertType.DATABASE_RESPONSE_TIME


@pytest.mark.unit
class TestDeduplication:
    """Test that one unresolved alert per type exists."""

    async def test_sustained_breach_creates_one_alert(self, manager, sampler, clock):
        sampler.database = DatabaseMetrics(response_time_ms=600.0)

        created = []
        for _ in range(5):
            created.extend(await manager.check_metrics())
            clock.advance(60)

        assert len(created) == 1
        assert len(manager.get_active_alerts()) == 1

    async def test_new_alert_after_resolution(self, manager, sampler, clock):
        sampler.database = DatabaseMetrics(response_time_ms=600.0)
        [first] = await manager.check_metrics()

        manager.resolve_alert(first.id)
        clock.advance(60)
        [second] = await manager.check_metrics()

        assert second.id != first.id
        assert [a.id for a in manager.get_active_alerts()] == [second.id]
        assert len(manager.get_all_alerts()) == 2

    async def test_recovery_does_not_resolve(self, manager, sampler):
        sampler.database = DatabaseMetrics(response_time_ms=600.0)
        await manager.check_metrics()

        sampler.database = DatabaseMetrics(response_time_ms=5.0)
        await manager.check_metrics()

        assert len(manager.get_active_alerts()) == 1


@pytest.mark.unit
class TestResolution:
    """Test resolve_alert and retention."""

    async def test_resolve_marks_alert(self, manager, sampler, clock):
        sampler.cache = CacheMetrics(hit_rate=10.0)
        [alert] = await manager.check_metrics()
        clock.advance(30)

        resolved = manager.resolve_alert(alert.id)

        assert resolved.resolved
        assert resolved.resolved_at == clock()
        assert manager.get_active_alerts() == []

    def test_resolve_unknown_raises(self, manager):
        with pytest.raises(AlertNotFoundError) as exc_info:
            manager.resolve_alert("nope_123")

        assert exc_info.value.details["alert_id"] == "nope_123"

    async def test_resolve_twice_raises(self, manager, sampler):
        sampler.cache = CacheMetrics(hit_rate=10.0)
        [alert] = await manager.check_metrics()
        manager.resolve_alert(alert.id)

        with pytest.raises(AlertNotFoundError):
            manager.resolve_alert(alert.id)

    async def test_resolved_alert_kept_for_an_hour(self, manager, sampler, clock):
        sampler.cache = CacheMetrics(hit_rate=10.0)
        [alert] = await manager.check_metrics()
        manager.resolve_alert(alert.id)
        sampler.cache = CacheMetrics(hit_rate=99.0)

        clock.advance(3599)
        await manager.check_metrics()
        assert [a.id for a in manager.get_all_alerts()] == [alert.id]

        clock.advance(2)
        await manager.check_metrics()
        assert manager.get_all_alerts() == []

    async def test_unresolved_alerts_never_dropped(self, manager, sampler, clock):
        sampler.cache = CacheMetrics(hit_rate=10.0)
        await manager.check_metrics()

        clock.advance(48 * 3600)

        assert manager.cleanup_resolved_alerts() == 0
        assert len(manager.get_active_alerts()) == 1

    async def test_returned_alerts_are_copies(self, manager, sampler):
        sampler.cache = CacheMetrics(hit_rate=10.0)
        await manager.check_metrics()

        manager.get_active_alerts()[0].resolved = True

        assert len(manager.get_active_alerts()) == 1


@pytest.mark.unit
class TestSamplingFailure:
    async def test_sampler_error_is_wrapped(self, manager, sampler):
        sampler.collect = AsyncMock(side_effect=RuntimeError("psutil unavailable"))

        with pytest.raises(MetricsCollectionError) as exc_info:
            await manager.check_metrics()

        assert exc_info.value.details["original_error"] == "RuntimeError"
        assert exc_info.value.details["sampler"] == "StaticSampler"

    async def test_cleanup_runs_when_sampling_fails(self, manager, sampler, clock):
        sampler.cache = CacheMetrics(hit_rate=10.0)
        [alert] = await manager.check_metrics()
        manager.resolve_alert(alert.id)
        clock.advance(2 * 3600)
        sampler.collect = AsyncMock(side_effect=MetricsCollectionError("sampler down"))

        with pytest.raises(MetricsCollectionError):
            await manager.check_metrics()

        assert manager.get_all_alerts() == []


@pytest.mark.unit
class TestPersistence:
    """Test the Redis mirror."""

    async def test_alerts_pushed_to_active_list(self, manager, sampler, redis):
        sampler.database = DatabaseMetrics(response_time_ms=600.0)
        sampler.app = AppMetrics(error_rate_percent=50.0)

        await manager.check_metrics()

        stored = [orjson.loads(raw) for raw in await redis.lrange("alerts:active", 0, -1)]
        assert {a["type"] for a in stored} == {"database_response_time", "error_rate"}

    async def test_active_list_is_capped(self, manager, redis):
        for i in range(105):
            await redis.lpush("alerts:active", f"old-{i}")

        manager.evaluate(MonitoringSnapshot(cache=CacheMetrics(hit_rate=1.0), timestamp=manager._clock()))
        await manager._store_alert(manager.get_active_alerts()[0])

        stored = await redis.lrange("alerts:active", 0, -1)
        assert len(stored) == 100
        assert orjson.loads(stored[0])["type"] == "cache_hit_rate"

    async def test_snapshot_stored_as_current_and_history(self, manager, redis):
        await manager.check_metrics()

        assert await redis.ttl("monitoring:current") == 3600
        assert await redis.ttl("monitoring:history:20251213_1200") == 86400

        current = MonitoringSnapshot.model_validate_json(redis.data["monitoring:current"])
        assert current.cache.hit_rate == 95.0

    async def test_store_failure_does_not_fail_tick(self, manager, sampler, redis):
        sampler.database = DatabaseMetrics(response_time_ms=600.0)
        redis.lpush = AsyncMock(side_effect=CacheKeyError("Redis LPUSH failed"))
        redis.set = AsyncMock(side_effect=CacheKeyError("Redis SET failed"))

        created = await manager.check_metrics()

        assert len(created) == 1
        assert len(manager.get_active_alerts()) == 1

    async def test_works_without_redis(self, sampler, clock):
        manager = AlertManager(sampler, clock=clock)
        sampler.database = DatabaseMetrics(response_time_ms=600.0)

        assert len(await manager.check_metrics()) == 1
        assert await manager.get_metrics_history() == []


@pytest.mark.unit
class TestSnapshots:
    """Test latest snapshot and history reads."""

    async def test_history_newest_first(self, manager, clock):
        for _ in range(3):
            await manager.check_metrics()
            clock.advance(60)

        history = await manager.get_metrics_history()

        assert [s.timestamp.minute for s in history] == [2, 1, 0]

    async def test_history_limit(self, manager, clock):
        for _ in range(3):
            await manager.check_metrics()
            clock.advance(60)

        assert len(await manager.get_metrics_history(limit=2)) == 2
        assert await manager.get_metrics_history(limit=0) == []

    async def test_history_skips_unreadable_entries(self, manager, redis):
        await manager.check_metrics()
        await redis.set("monitoring:history:20251213_1159", "not json")

        history = await manager.get_metrics_history()

        assert len(history) == 1

    async def test_latest_snapshot_prefers_local(self, manager, sampler):
        assert await manager.get_latest_snapshot() is None

        await manager.check_metrics()

        latest = await manager.get_latest_snapshot()
        assert latest.system.concurrent_tasks == 12

    async def test_latest_snapshot_falls_back_to_redis(self, manager, redis, sampler, clock):
        await manager.check_metrics()
        fresh = AlertManager(sampler, redis, clock=clock)

        latest = await fresh.get_latest_snapshot()

        assert latest is not None
        assert latest.cache.hit_rate == 95.0


@pytest.mark.unit
class TestGaugeAndLifecycle:
    async def test_active_alert_gauge_tracks_list(self, manager, sampler, metrics):
        sampler.database = DatabaseMetrics(response_time_ms=600.0)
        sampler.cache = CacheMetrics(hit_rate=10.0)

        alerts = await manager.check_metrics()
        assert metrics.registry.get_sample_value("ethosview_active_alerts") == 2

        manager.resolve_alert(alerts[0].id)
        assert metrics.registry.get_sample_value("ethosview_active_alerts") == 1

    async def test_first_tick_waits_one_interval(self, manager, sampler):
        manager.start_monitoring(interval=3600)

        assert manager.is_monitoring
        assert sampler.calls == 0

        await manager.stop_monitoring()
        await manager.stop_monitoring()

        assert not manager.is_monitoring

    async def test_start_twice_returns_same_task(self, manager):
        first = manager.start_monitoring(interval=3600)

        assert manager.start_monitoring(interval=3600) is first
        await manager.stop_monitoring()


@pytest.mark.unit
class TestThresholds:
    def test_defaults(self):
        t = Thresholds()

        assert t.database_response_time_ms == 500.0
        assert t.cache_min_hit_rate == 80.0
        assert t.min_disk_free_percent == 15.0

    def test_from_settings(self):
        settings = Settings(ALERT_DB_RESPONSE_TIME_MS=250.0, ALERT_MAX_CONCURRENCY=50)

        t = Thresholds.from_settings(settings.monitoring)

        assert t.database_response_time_ms == 250.0
        assert t.max_concurrent_tasks == 50
        assert t.max_error_rate_percent == 5.0

    def test_frozen(self):
        from pydantic import ValidationError

        with pytest.raises(ValidationError):
            Thresholds().cache_min_hit_rate = 1.0
