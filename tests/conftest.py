"""
Pytest Configuration and Shared Test Fixtures

This module provides pytest configuration and reusable fixtures for all tests.
All fixtures defined here are automatically available to all test files.
"""

import fnmatch
import os
import sys
from datetime import datetime, timedelta, timezone
from unittest.mock import AsyncMock, MagicMock

import pytest

# Add project root to sys.path
sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), "..")))


# ============================================================================
# Pytest Configuration
# ============================================================================

# pytest-asyncio runs in auto mode via pyproject.toml


# ============================================================================
# Controllable Clock
# ============================================================================


class FakeClock:
    """
    Settable UTC clock.

    Calling the instance returns the current datetime (AdvancedCache,
    AlertManager); ``monotonic()`` returns seconds for MetricsRegistry.
    """

    def __init__(self, start: datetime | None = None):
        self.now = start or datetime(2025, 12, 13, 12, 0, 0, tzinfo=timezone.utc)
        self._origin = self.now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now = self.now + timedelta(seconds=seconds)

    def monotonic(self) -> float:
        return (self.now - self._origin).total_seconds()


# ============================================================================
# In-Memory Redis
# ============================================================================


class InMemoryRedis:
    """
    In-memory stand-in for RedisClient.

    Implements the subset of the RedisClient API the core uses. Expiry is
    evaluated against the injected clock, so advancing the clock past a TTL
    makes the key disappear exactly as the real store would.
    """

    def __init__(self, clock: FakeClock):
        self.clock = clock
        self.data: dict[str, object] = {}
        self.expires_at: dict[str, datetime] = {}
        self.keyspace_hits = 0
        self.keyspace_misses = 0
        self.connected = True

    # -- internals ----------------------------------------------------------

    def _purge(self, key: str) -> None:
        deadline = self.expires_at.get(key)
        if deadline is not None and self.clock() >= deadline:
            self.data.pop(key, None)
            self.expires_at.pop(key, None)

    def _live_keys(self) -> list[str]:
        for key in list(self.data):
            self._purge(key)
        return list(self.data)

    # -- connection ---------------------------------------------------------

    async def connect(self):
        self.connected = True

    async def disconnect(self):
        self.connected = False

    async def ping(self):
        return True

    async def health_check(self):
        return {"status": "healthy", "type": "in_memory"}

    # -- strings ------------------------------------------------------------

    async def get(self, key):
        self._purge(key)
        value = self.data.get(key)
        if value is None:
            self.keyspace_misses += 1
        else:
            self.keyspace_hits += 1
        return value

    async def set(self, key, value, ttl=None):
        self.data[key] = value
        if ttl:
            self.expires_at[key] = self.clock() + timedelta(seconds=ttl)
        else:
            self.expires_at.pop(key, None)
        return True

    async def delete(self, *keys):
        deleted = 0
        for key in keys:
            self._purge(key)
            if key in self.data:
                del self.data[key]
                self.expires_at.pop(key, None)
                deleted += 1
        return deleted

    async def exists(self, *keys):
        return sum(1 for key in keys if key in self._live_keys())

    async def expire(self, key, ttl):
        self._purge(key)
        if key not in self.data:
            return False
        self.expires_at[key] = self.clock() + timedelta(seconds=ttl)
        return True

    async def ttl(self, key):
        self._purge(key)
        if key not in self.data:
            return -2
        deadline = self.expires_at.get(key)
        if deadline is None:
            return -1
        return int((deadline - self.clock()).total_seconds())

    # -- sets ---------------------------------------------------------------

    async def sadd(self, key, *members):
        self._purge(key)
        current = self.data.setdefault(key, set())
        before = len(current)
        current.update(members)
        return len(current) - before

    async def srem(self, key, *members):
        self._purge(key)
        current = self.data.get(key, set())
        removed = len(current & set(members))
        current.difference_update(members)
        if not current:
            await self.delete(key)
        return removed

    async def smembers(self, key):
        self._purge(key)
        return set(self.data.get(key, set()))

    # -- lists --------------------------------------------------------------

    async def lpush(self, key, *values):
        current = self.data.setdefault(key, [])
        for value in values:
            current.insert(0, value)
        return len(current)

    async def ltrim(self, key, start, end):
        current = self.data.get(key, [])
        self.data[key] = current[start:end + 1 if end >= 0 else None]
        return True

    async def lrange(self, key, start, end):
        current = self.data.get(key, [])
        return list(current[start:end + 1 if end >= 0 else None])

    # -- keyspace -----------------------------------------------------------

    async def scan_keys(self, pattern, count=500):
        return sorted(key for key in self._live_keys() if fnmatch.fnmatchcase(key, pattern))

    async def dbsize(self):
        return len(self._live_keys())

    async def info(self, section=None):
        sections = {
            "stats": {
                "keyspace_hits": self.keyspace_hits,
                "keyspace_misses": self.keyspace_misses,
                "expired_keys": 0,
                "evicted_keys": 0,
            },
            "memory": {
                "used_memory": 2 * 1024 * 1024,
                "used_memory_human": "2.00M",
                "used_memory_peak_human": "2.50M",
                "maxmemory": 0,
            },
            "clients": {"connected_clients": 3},
        }
        if section is None:
            merged = {}
            for values in sections.values():
                merged.update(values)
            return merged
        return sections.get(section, {})


# ============================================================================
# Fixtures
# ============================================================================


@pytest.fixture
def clock():
    """Controllable UTC clock starting at 2025-12-13 12:00:00."""
    return FakeClock()


@pytest.fixture
def redis(clock):
    """In-memory Redis bound to the test clock."""
    return InMemoryRedis(clock)


@pytest.fixture
def mock_db():
    """
    Mock DatabaseClient.

    fetch_all / fetch_scalar return empty results unless a test overrides them.
    """
    from ethosview.infrastructure.database.postgres_client import DatabaseClient

    db = AsyncMock(spec=DatabaseClient)
    db.fetch_all = AsyncMock(return_value=[])
    db.fetch_scalar = AsyncMock(return_value=0)
    db.ping = AsyncMock(return_value=True)
    return db


@pytest.fixture
def mock_settings():
    """
    Mock application settings for testing.

    Returns a MagicMock with the settings attributes the clients read.
    """
    from ethosview.core.config.settings import Settings

    settings = MagicMock(spec=Settings)

    # Redis settings
    settings.redis.REDIS_URL = None
    settings.redis.REDIS_HOST = "localhost"
    settings.redis.REDIS_PORT = 6379
    settings.redis.REDIS_DB = 0
    settings.redis.REDIS_PASSWORD = None
    settings.redis.REDIS_MAX_CONNECTIONS = 10
    settings.redis.REDIS_SOCKET_TIMEOUT = 5.0
    settings.redis.REDIS_SOCKET_CONNECT_TIMEOUT = 5.0
    settings.redis.REDIS_HEALTH_CHECK_INTERVAL = 30

    # Cache settings
    settings.cache.CACHE_PREFIX = "test"

    # App settings
    settings.app.ENVIRONMENT = "development"
    settings.app.APP_VERSION = "1.0.0-test"
    settings.app.APP_NAME = "EthosView Test"

    return settings
