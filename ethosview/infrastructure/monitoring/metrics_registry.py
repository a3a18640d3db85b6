#!/usr/bin/env python3
"""
Metrics Registry with Prometheus Integration

This module provides an explicitly constructed metrics registry with:
- Prometheus-compatible request, latency, cache and alert metrics
- Windowed request aggregates for the alert manager (req/s, error rate,
  average latency, active users)

Architectural Decision: one registry object per application, injected
- Owns a private CollectorRegistry, so tests and multiple apps in one
  process never share counters
- Whatever records or reads metrics receives the instance explicitly

Author: Senior Solution Architect
Date: 2025-12-13
"""

import threading
import time
from collections.abc import Callable

from prometheus_client import (
    CONTENT_TYPE_LATEST,
    CollectorRegistry,
    Counter,
    Gauge,
    Histogram,
    generate_latest,
)

from ethosview.core.config.constants import ACTIVE_USER_WINDOW_SECONDS
from ethosview.core.logging.logger import get_logger
from ethosview.infrastructure.monitoring.models import AppMetrics

logger = get_logger(__name__)

REQUEST_DURATION_BUCKETS = (0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0)


def status_class(status_code: int) -> str:
    """200 -> "2xx", 404 -> "4xx"."""
    return f"{status_code // 100}xx"


class MetricsRegistry:
    """
    Request and cache metrics for one application instance.

    STAGE-M: Metrics collection

    Usage:
        metrics = MetricsRegistry()

        metrics.record_request("GET", 200, 0.012, user_id="u-1")
        metrics.record_cache_lookup(hit=True)

        app_metrics = metrics.snapshot()   # window since the previous snapshot
        body = metrics.render()            # Prometheus text exposition
    """

    def __init__(self, clock: Callable[[], float] = time.monotonic):
        """
        Args:
            clock: Monotonic seconds source (injectable for tests)
        """
        self._clock = clock
        self._lock = threading.Lock()
        self.registry = CollectorRegistry()

        self._requests = Counter(
            "ethosview_http_requests_total",
            "Total number of HTTP requests",
            ["method", "status_class"],
            registry=self.registry,
        )
        self._request_duration = Histogram(
            "ethosview_http_request_duration_seconds",
            "HTTP request duration in seconds",
            ["method"],
            buckets=REQUEST_DURATION_BUCKETS,
            registry=self.registry,
        )
        self._cache_hits = Counter(
            "ethosview_cache_hits_total",
            "Advanced cache hits",
            registry=self.registry,
        )
        self._cache_misses = Counter(
            "ethosview_cache_misses_total",
            "Advanced cache misses",
            registry=self.registry,
        )
        self._active_alerts = Gauge(
            "ethosview_active_alerts",
            "Number of unresolved alerts",
            registry=self.registry,
        )

        self.total_requests = 0
        self.successful_requests = 0
        self.failed_requests = 0
        self._total_duration = 0.0

        self._window_started = clock()
        self._window_requests = 0
        self._window_errors = 0
        self._window_duration = 0.0
        self._user_last_seen: dict[str, float] = {}

        logger.info("Metrics registry initialized", stage="M.0")

    # =========================================================================
    # Request Metrics
    # =========================================================================

    def record_request(
        self,
        method: str,
        status_code: int,
        duration_seconds: float,
        user_id: str | None = None,
    ) -> None:
        """Record one completed HTTP request."""
        self._requests.labels(method=method, status_class=status_class(status_code)).inc()
        self._request_duration.labels(method=method).observe(duration_seconds)

        failed = status_code >= 400
        with self._lock:
            self.total_requests += 1
            if failed:
                self.failed_requests += 1
            else:
                self.successful_requests += 1
            self._total_duration += duration_seconds

            self._window_requests += 1
            self._window_errors += int(failed)
            self._window_duration += duration_seconds
            if user_id:
                now = self._clock()
                self._user_last_seen[user_id] = now
                self._prune_users(now)

    def _prune_users(self, now: float) -> None:
        """Forget users not seen within the active-user window. Caller holds the lock."""
        cutoff = now - ACTIVE_USER_WINDOW_SECONDS
        self._user_last_seen = {
            user: seen for user, seen in self._user_last_seen.items() if seen >= cutoff
        }

    @property
    def average_response_time_ms(self) -> float:
        """Lifetime average request latency."""
        with self._lock:
            if not self.total_requests:
                return 0.0
            return self._total_duration / self.total_requests * 1000

    # =========================================================================
    # Cache / Alert Metrics
    # =========================================================================

    def record_cache_lookup(self, hit: bool) -> None:
        if hit:
            self._cache_hits.inc()
        else:
            self._cache_misses.inc()

    def set_active_alerts(self, count: int) -> None:
        self._active_alerts.set(count)

    # =========================================================================
    # Windowed Aggregates
    # =========================================================================

    def snapshot(self) -> AppMetrics:
        """
        Request aggregates for the window since the previous snapshot.

        Starts a new window. Active users are the distinct user ids seen in the
        last five minutes, independent of the window.
        """
        now = self._clock()
        with self._lock:
            elapsed = now - self._window_started
            requests = self._window_requests
            errors = self._window_errors
            duration = self._window_duration

            self._window_started = now
            self._window_requests = 0
            self._window_errors = 0
            self._window_duration = 0.0

            self._prune_users(now)
            active_users = len(self._user_last_seen)

        return AppMetrics(
            requests_per_second=requests / elapsed if elapsed > 0 else 0.0,
            error_rate_percent=errors / requests * 100 if requests else 0.0,
            avg_response_time_ms=duration / requests * 1000 if requests else 0.0,
            active_users=active_users,
        )

    # =========================================================================
    # Export
    # =========================================================================

    def render(self) -> bytes:
        """
        Get Prometheus metrics output.

        Returns:
            bytes: Prometheus text format metrics
        """
        return generate_latest(self.registry)

    @property
    def content_type(self) -> str:
        return CONTENT_TYPE_LATEST
