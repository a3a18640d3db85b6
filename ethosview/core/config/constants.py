"""
System Constants and Enumerations

This module defines system-wide constants and enumerations used across
the caching and freshness core.

Architectural Decision: Centralized constants for maintainability
- Single source of truth for TTLs, key names and limits
- Type-safe enums for strategies, alert types and severities
- Easy to update and track changes

Author: System Architect
Date: 2025-12-05
"""

from enum import Enum

# ============================================================================
# Cache Strategies
# ============================================================================


class CacheStrategy(str, Enum):
    """
    Named TTL tiers for the advanced cache.

    The caller picks a tier by data volatility; the cache turns it into a TTL
    via STRATEGY_TTL_SECONDS.
    """

    SHORT_TERM = "short_term"
    MEDIUM_TERM = "medium_term"
    LONG_TERM = "long_term"
    DAILY = "daily"

    @property
    def ttl_seconds(self) -> int:
        """TTL in seconds for this strategy."""
        return STRATEGY_TTL_SECONDS[self]


STRATEGY_TTL_SECONDS: dict[CacheStrategy, int] = {
    CacheStrategy.SHORT_TERM: 5 * 60,
    CacheStrategy.MEDIUM_TERM: 30 * 60,
    CacheStrategy.LONG_TERM: 2 * 60 * 60,
    CacheStrategy.DAILY: 24 * 60 * 60,
}

DEFAULT_CACHE_STRATEGY = CacheStrategy.MEDIUM_TERM


# ============================================================================
# Alerting
# ============================================================================


class AlertType(str, Enum):
    """Alert categories. At most one unresolved alert per type."""

    DATABASE_RESPONSE_TIME = "database_response_time"
    DATABASE_CONNECTIONS = "database_connections"
    CACHE_HIT_RATE = "cache_hit_rate"
    MEMORY_USAGE = "memory_usage"
    ERROR_RATE = "error_rate"
    REQUEST_RATE = "request_rate"
    DISK_SPACE = "disk_space"
    QUERY_PERFORMANCE = "query_performance"


class AlertSeverity(str, Enum):
    """Alert severity levels."""

    INFO = "info"
    WARNING = "warning"
    CRITICAL = "critical"


class HealthStatus(str, Enum):
    """Health status enumeration."""

    HEALTHY = "healthy"
    DEGRADED = "degraded"
    UNHEALTHY = "unhealthy"


# ============================================================================
# Advanced Cache Keys and Limits
# ============================================================================

# Tag sets outlive the longest data TTL (Daily) so invalidation can still find members
TAG_SET_TTL_SECONDS = 25 * 60 * 60

TAG_KEY_SEGMENT = "tag"

QUERY_KEY_MAX_LENGTH = 200
QUERY_KEY_PREFIX = "query"

WARMUP_TAG = "warmup"


# ============================================================================
# Cache Warmer Keys and TTLs
# ============================================================================

WARM_KEY_COMPANIES_ALL = "cache:companies:all"
WARM_KEY_COMPANIES_BY_SECTOR = "cache:companies:sector:{sector}"
WARM_KEY_COMPANY_BY_ID = "cache:company:{company_id}"
WARM_KEY_COMPANY_BY_SYMBOL = "cache:company:symbol:{symbol}"
WARM_KEY_ESG_SCORES_ALL = "cache:esg:scores:all"
WARM_KEY_ESG_COMPANY_LATEST = "cache:esg:company:{company_id}:latest"
WARM_KEY_ESG_TOP = "cache:esg:top:{metric}"
WARM_KEY_SECTORS_ALL = "cache:sectors:all"
WARM_KEY_ANALYTICS_SUMMARY = "cache:analytics:summary"

WARM_TTL_ENTITY = 30 * 60
WARM_TTL_AGGREGATE = 15 * 60
WARM_TTL_TAXONOMY = 60 * 60
WARM_TTL_SUMMARY = 10 * 60

TOP_PERFORMERS_LIMIT = 10
TOP_PERFORMER_METRICS = ("overall", "environmental", "social", "governance")


# ============================================================================
# Alert Manager Keys and Limits
# ============================================================================

ALERT_RETENTION_SECONDS = 60 * 60

REDIS_KEY_ALERTS_ACTIVE = "alerts:active"
ALERTS_MIRROR_MAX_LENGTH = 100

REDIS_KEY_MONITORING_CURRENT = "monitoring:current"
REDIS_KEY_MONITORING_HISTORY = "monitoring:history:{timestamp}"
MONITORING_HISTORY_TIMESTAMP_FORMAT = "%Y%m%d_%H%M"
MONITORING_CURRENT_TTL = 60 * 60
MONITORING_HISTORY_TTL = 24 * 60 * 60

# A database call slower than this counts as a slow query
SLOW_QUERY_SECONDS = 1

ACTIVE_USER_WINDOW_SECONDS = 5 * 60


# ============================================================================
# HTTP Headers
# ============================================================================

HEADER_REQUEST_ID = "X-Request-ID"
HEADER_RESPONSE_TIME = "X-Response-Time"
HEADER_USER_ID = "X-User-ID"
