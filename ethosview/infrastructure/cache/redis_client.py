"""
Redis Client with Connection Pooling

Architecture:
    RedisClient (Public API)
        ├── ConnectionManager (Connection lifecycle)
        ├── OperationExecutor (Command execution with error handling)
        └── HealthMonitor (Health checks and pool metrics)

Command surface used by the caching core:
    - Strings:  get, set (with TTL), delete, exists, expire, ttl
    - Sets:     sadd, srem, smembers          (tag sets)
    - Keyspace: scan_keys, dbsize, info       (pattern invalidation, stats)
    - Lists:    lpush, ltrim, lrange          (alert mirror)

Author: Refactored for clarity and maintainability
Date: 2025-12-13
"""

from __future__ import annotations

import time
from typing import Any

import redis.asyncio as redis
from redis.asyncio.connection import ConnectionPool
from redis.exceptions import ConnectionError, RedisError, TimeoutError

from ethosview.core.config.constants import HealthStatus
from ethosview.core.config.settings import get_settings
from ethosview.core.exceptions import CacheConnectionError, CacheKeyError
from ethosview.core.logging.logger import get_logger

logger = get_logger(__name__)


# =============================================================================
# LAYER 1: CONNECTION MANAGEMENT
# Handles connection lifecycle and pooling
# =============================================================================


class ConnectionManager:
    """
    Manages Redis connection lifecycle and pooling.

    Responsibility: Connection establishment, pooling, and cleanup.

    Pool Configuration:
    - Max connections: 10 (configurable)
    - Socket timeout: 5s
    - Health check interval: 30s
    - Retry on timeout: Enabled
    """

    def __init__(self, settings):
        """
        Initialize connection manager.

        Args:
            settings: Application settings
        """
        self._settings = settings
        self._pool: ConnectionPool | None = None
        self._client: redis.Redis | None = None
        self._is_connected = False

    def _build_pool(self) -> ConnectionPool:
        cfg = self._settings.redis
        common = {
            "max_connections": cfg.REDIS_MAX_CONNECTIONS,
            "socket_connect_timeout": cfg.REDIS_SOCKET_CONNECT_TIMEOUT,
            "socket_timeout": cfg.REDIS_SOCKET_TIMEOUT,
            "retry_on_timeout": True,
            "health_check_interval": cfg.REDIS_HEALTH_CHECK_INTERVAL,
            "decode_responses": True,  # Return strings instead of bytes
        }

        if cfg.REDIS_URL:
            return ConnectionPool.from_url(cfg.REDIS_URL, **common)

        return ConnectionPool(
            host=cfg.REDIS_HOST,
            port=cfg.REDIS_PORT,
            db=cfg.REDIS_DB,
            password=cfg.REDIS_PASSWORD,
            **common,
        )

    async def connect(self) -> redis.Redis:
        """
        Establish connection to Redis with connection pooling.

        STAGE-REDIS.2: Connection establishment

        Returns:
            redis.Redis: Connected Redis client

        Raises:
            CacheConnectionError: If connection fails
        """
        if self._is_connected and self._client:
            return self._client

        cfg = self._settings.redis
        try:
            # STAGE-REDIS.2.1: Create connection pool
            self._pool = self._build_pool()

            # STAGE-REDIS.2.2: Create Redis client with pool
            self._client = redis.Redis(connection_pool=self._pool)

            # STAGE-REDIS.2.3: Verify connection with ping
            await self._client.ping()

            self._is_connected = True

            logger.info(
                "Redis connected successfully",
                stage="REDIS.2",
                host=cfg.REDIS_HOST if not cfg.REDIS_URL else None,
                url=cfg.REDIS_URL,
                max_connections=cfg.REDIS_MAX_CONNECTIONS,
            )

            return self._client

        except (ConnectionError, TimeoutError) as e:
            logger.error("Failed to connect to Redis", stage="REDIS.2", error=str(e))
            raise CacheConnectionError(
                message=f"Failed to connect to Redis: {e}",
                details={"host": cfg.REDIS_HOST, "port": cfg.REDIS_PORT},
            ).with_suggestion(
                "Check REDIS_URL (or REDIS_HOST and REDIS_PORT) and that Redis is running"
            ) from e

    async def disconnect(self) -> None:
        """
        Close Redis connection and pool.

        STAGE-REDIS.3: Connection cleanup
        """
        if self._client:
            await self._client.aclose()

        if self._pool:
            await self._pool.disconnect()

        self._client = None
        self._pool = None
        self._is_connected = False

        logger.info("Redis disconnected", stage="REDIS.3")

    async def ping(self) -> bool:
        """
        Check Redis connection health.

        Returns:
            True if healthy, False otherwise
        """
        try:
            if self._client and self._is_connected:
                await self._client.ping()
                return True
        except (ConnectionError, TimeoutError) as e:
            logger.warning("Redis ping failed", stage="REDIS.PING", error=str(e))
        return False

    def get_client(self) -> redis.Redis | None:
        """Get the Redis client instance."""
        return self._client

    def get_pool(self) -> ConnectionPool | None:
        """Get the connection pool instance."""
        return self._pool

    def is_connected(self) -> bool:
        """Check if connected to Redis."""
        return self._is_connected


# =============================================================================
# LAYER 2: OPERATION EXECUTOR
# Executes Redis commands with error handling and logging
# =============================================================================


class OperationExecutor:
    """
    Executes Redis operations with consistent error handling.

    Error Handling Strategy:
    - Catch RedisError exceptions
    - Log error with context (stage, key, etc.)
    - Raise CacheKeyError with details, chained to the original error
    """

    def __init__(self, redis_client: redis.Redis):
        self._redis = redis_client

    # -------------------------------------------------------------------------
    # String Operations
    # -------------------------------------------------------------------------

    async def get(self, key: str) -> str | None:
        """
        Get value from Redis.

        STAGE-REDIS.GET: Redis GET operation

        Returns:
            Value or None if not found
        """
        try:
            return await self._redis.get(key)
        except RedisError as e:
            logger.error("Redis GET failed", stage="REDIS.GET", key=key, error=str(e))
            raise CacheKeyError(message=f"Redis GET failed: {e}", details={"key": key}) from e

    async def set(self, key: str, value: str, ttl: int | None = None) -> bool:
        """
        Set value in Redis.

        STAGE-REDIS.SET: Redis SET operation

        Args:
            key: Redis key
            value: Value to set
            ttl: Time-to-live in seconds (optional)

        Returns:
            True if set successfully
        """
        try:
            result = await self._redis.set(key, value, ex=ttl)
            return result is not None
        except RedisError as e:
            logger.error("Redis SET failed", stage="REDIS.SET", key=key, error=str(e))
            raise CacheKeyError(message=f"Redis SET failed: {e}", details={"key": key}) from e

    async def delete(self, *keys: str) -> int:
        """
        Delete keys from Redis.

        STAGE-REDIS.DEL: Redis DELETE operation

        Returns:
            Number of keys deleted
        """
        if not keys:
            return 0
        try:
            return await self._redis.delete(*keys)
        except RedisError as e:
            logger.error("Redis DELETE failed", stage="REDIS.DEL", keys=keys, error=str(e))
            raise CacheKeyError(message=f"Redis DELETE failed: {e}", details={"keys": keys}) from e

    async def exists(self, *keys: str) -> int:
        """Number of the given keys that exist."""
        try:
            return await self._redis.exists(*keys)
        except RedisError as e:
            logger.error("Redis EXISTS failed", stage="REDIS.EXISTS", keys=keys, error=str(e))
            raise CacheKeyError(message=f"Redis EXISTS failed: {e}", details={"keys": keys}) from e

    async def expire(self, key: str, ttl: int) -> bool:
        """Set TTL on a key."""
        try:
            return await self._redis.expire(key, ttl)
        except RedisError as e:
            logger.error("Redis EXPIRE failed", stage="REDIS.EXPIRE", key=key, error=str(e))
            raise CacheKeyError(message=f"Redis EXPIRE failed: {e}", details={"key": key}) from e

    async def ttl(self, key: str) -> int:
        """
        Get TTL of a key.

        Returns:
            TTL in seconds, -1 if no TTL, -2 if key doesn't exist
        """
        try:
            return await self._redis.ttl(key)
        except RedisError as e:
            logger.error("Redis TTL failed", stage="REDIS.TTL", key=key, error=str(e))
            raise CacheKeyError(message=f"Redis TTL failed: {e}", details={"key": key}) from e

    # -------------------------------------------------------------------------
    # Set Operations (tag sets)
    # -------------------------------------------------------------------------

    async def sadd(self, key: str, *members: str) -> int:
        """
        Add members to a set.

        Returns:
            Number of members newly added
        """
        try:
            return await self._redis.sadd(key, *members)
        except RedisError as e:
            logger.error("Redis SADD failed", stage="REDIS.SADD", key=key, error=str(e))
            raise CacheKeyError(message=f"Redis SADD failed: {e}", details={"key": key}) from e

    async def srem(self, key: str, *members: str) -> int:
        """Remove members from a set; returns the number removed."""
        if not members:
            return 0
        try:
            return await self._redis.srem(key, *members)
        except RedisError as e:
            logger.error("Redis SREM failed", stage="REDIS.SREM", key=key, error=str(e))
            raise CacheKeyError(message=f"Redis SREM failed: {e}", details={"key": key}) from e

    async def smembers(self, key: str) -> set[str]:
        """All members of a set (empty set if the key is absent)."""
        try:
            return set(await self._redis.smembers(key))
        except RedisError as e:
            logger.error("Redis SMEMBERS failed", stage="REDIS.SMEMBERS", key=key, error=str(e))
            raise CacheKeyError(message=f"Redis SMEMBERS failed: {e}", details={"key": key}) from e

    # -------------------------------------------------------------------------
    # Keyspace Operations
    # -------------------------------------------------------------------------

    async def scan_keys(self, pattern: str, count: int = 500) -> list[str]:
        """
        Enumerate keys matching a glob pattern.

        Uses incremental SCAN rather than KEYS so large keyspaces do not
        block the server.

        Args:
            pattern: Glob pattern (e.g. "ethosview:companies:*")
            count: SCAN batch hint

        Returns:
            Matching keys (deduplicated)
        """
        try:
            keys: set[str] = set()
            async for key in self._redis.scan_iter(match=pattern, count=count):
                keys.add(key)
            return sorted(keys)
        except RedisError as e:
            logger.error("Redis SCAN failed", stage="REDIS.SCAN", pattern=pattern, error=str(e))
            raise CacheKeyError(message=f"Redis SCAN failed: {e}", details={"pattern": pattern}) from e

    async def dbsize(self) -> int:
        """Number of keys in the selected database."""
        try:
            return await self._redis.dbsize()
        except RedisError as e:
            logger.error("Redis DBSIZE failed", stage="REDIS.DBSIZE", error=str(e))
            raise CacheKeyError(message=f"Redis DBSIZE failed: {e}") from e

    async def info(self, section: str | None = None) -> dict[str, Any]:
        """
        Server INFO, parsed into a dict by redis-py.

        Args:
            section: INFO section ("memory", "stats", "clients", ...) or None for default
        """
        try:
            return await self._redis.info(section) if section else await self._redis.info()
        except RedisError as e:
            logger.error("Redis INFO failed", stage="REDIS.INFO", section=section, error=str(e))
            raise CacheKeyError(message=f"Redis INFO failed: {e}", details={"section": section}) from e

    # -------------------------------------------------------------------------
    # List Operations (alert mirror)
    # -------------------------------------------------------------------------

    async def lpush(self, key: str, *values: str) -> int:
        """
        Push values to the left of a list.

        Returns:
            New list length
        """
        try:
            return await self._redis.lpush(key, *values)
        except RedisError as e:
            logger.error("Redis LPUSH failed", stage="REDIS.LPUSH", key=key, error=str(e))
            raise CacheKeyError(message=f"Redis LPUSH failed: {e}", details={"key": key}) from e

    async def ltrim(self, key: str, start: int, end: int) -> bool:
        """Trim a list to the inclusive range [start, end]."""
        try:
            return await self._redis.ltrim(key, start, end)
        except RedisError as e:
            logger.error("Redis LTRIM failed", stage="REDIS.LTRIM", key=key, error=str(e))
            raise CacheKeyError(message=f"Redis LTRIM failed: {e}", details={"key": key}) from e

    async def lrange(self, key: str, start: int, end: int) -> list[str]:
        """List elements in the inclusive range [start, end]."""
        try:
            return await self._redis.lrange(key, start, end)
        except RedisError as e:
            logger.error("Redis LRANGE failed", stage="REDIS.LRANGE", key=key, error=str(e))
            raise CacheKeyError(message=f"Redis LRANGE failed: {e}", details={"key": key}) from e


# =============================================================================
# LAYER 3: HEALTH MONITORING
# Health checks and connection pool metrics
# =============================================================================


class HealthMonitor:
    """
    Monitors Redis health and connection pool metrics.

    Metrics Tracked:
    - Connection status
    - Ping latency
    - Pool size and utilization
    - Pool exhaustion warnings (>80% utilized)
    """

    def __init__(self, connection_manager: ConnectionManager, settings):
        self._conn_mgr = connection_manager
        self._settings = settings

    async def health_check(self) -> dict[str, Any]:
        """
        Perform health check on Redis connection.

        STAGE-REDIS.HEALTH: Redis health check

        Returns:
            Dict with health status and metrics
        """
        health = {
            "status": HealthStatus.HEALTHY.value,
            "connected": self._conn_mgr.is_connected(),
            "pool_size": 0,
            "pool_in_use": 0,
            "pool_utilization_pct": 0,
            "pool_warning": False,
            "ping_latency_ms": None,
        }

        client = self._conn_mgr.get_client()
        if not client:
            health["status"] = HealthStatus.UNHEALTHY.value
            health["error"] = "Client not initialized"
            return health

        try:
            start = time.perf_counter()
            await client.ping()
            health["ping_latency_ms"] = round((time.perf_counter() - start) * 1000, 2)
        except RedisError as e:
            health["status"] = HealthStatus.UNHEALTHY.value
            health["error"] = str(e)
            return health

        pool = self._conn_mgr.get_pool()
        if pool:
            health["pool_size"] = pool.max_connections
            in_use = len(getattr(pool, "_in_use_connections", ()))
            health["pool_in_use"] = in_use

            utilization = 100.0 * in_use / pool.max_connections if pool.max_connections else 0.0
            health["pool_utilization_pct"] = round(utilization, 1)

            if utilization > 80:
                health["pool_warning"] = True
                logger.warning(
                    "Redis pool utilization high",
                    stage="REDIS.HEALTH",
                    pool_utilization=utilization,
                    max_connections=pool.max_connections,
                )

        return health


# =============================================================================
# LAYER 4: PUBLIC API
# Clean interface that coordinates all layers
# =============================================================================


class RedisClient:
    """
    Async Redis client with connection pooling and health checks.

    Usage:
        client = RedisClient()
        await client.connect()

        await client.set("key", "value", ttl=3600)
        value = await client.get("key")

        await client.sadd("ethosview:tag:companies", "ethosview:co:1")
        members = await client.smembers("ethosview:tag:companies")

        await client.disconnect()

    The client is safe to share between the advanced cache, the warmer and the
    alert manager; the pool hands each command its own connection.
    """

    def __init__(self, settings=None):
        self._settings = settings or get_settings()
        self._conn_mgr = ConnectionManager(self._settings)
        self._health_monitor = HealthMonitor(self._conn_mgr, self._settings)
        self._executor: OperationExecutor | None = None

    async def connect(self) -> None:
        """
        Establish connection to Redis with connection pooling.

        Raises:
            CacheConnectionError: If connection fails
        """
        client = await self._conn_mgr.connect()
        self._executor = OperationExecutor(client)

    async def disconnect(self) -> None:
        """Close Redis connection and pool."""
        await self._conn_mgr.disconnect()
        self._executor = None

    async def ping(self) -> bool:
        """Check Redis connection health."""
        return await self._conn_mgr.ping()

    @property
    def executor(self) -> OperationExecutor:
        """
        Executor for the connected client.

        Raises:
            CacheConnectionError: If connect() has not been called
        """
        if self._executor is None:
            raise CacheConnectionError(message="Redis client is not connected")
        return self._executor

    # -------------------------------------------------------------------------
    # Delegate to OperationExecutor
    # -------------------------------------------------------------------------

    async def get(self, key: str) -> str | None:
        """Get value from Redis."""
        return await self.executor.get(key)

    async def set(self, key: str, value: str, ttl: int | None = None) -> bool:
        """Set value in Redis."""
        return await self.executor.set(key, value, ttl)

    async def delete(self, *keys: str) -> int:
        """Delete keys from Redis."""
        return await self.executor.delete(*keys)

    async def exists(self, *keys: str) -> int:
        """Check if keys exist in Redis."""
        return await self.executor.exists(*keys)

    async def expire(self, key: str, ttl: int) -> bool:
        """Set TTL on a key."""
        return await self.executor.expire(key, ttl)

    async def ttl(self, key: str) -> int:
        """Get TTL of a key."""
        return await self.executor.ttl(key)

    async def sadd(self, key: str, *members: str) -> int:
        """Add members to a set."""
        return await self.executor.sadd(key, *members)

    async def srem(self, key: str, *members: str) -> int:
        """Remove members from a set."""
        return await self.executor.srem(key, *members)

    async def smembers(self, key: str) -> set[str]:
        """All members of a set."""
        return await self.executor.smembers(key)

    async def scan_keys(self, pattern: str, count: int = 500) -> list[str]:
        """Enumerate keys matching a glob pattern."""
        return await self.executor.scan_keys(pattern, count)

    async def dbsize(self) -> int:
        """Number of keys in the selected database."""
        return await self.executor.dbsize()

    async def info(self, section: str | None = None) -> dict[str, Any]:
        """Server INFO as a dict."""
        return await self.executor.info(section)

    async def lpush(self, key: str, *values: str) -> int:
        """Push values to the left of a list."""
        return await self.executor.lpush(key, *values)

    async def ltrim(self, key: str, start: int, end: int) -> bool:
        """Trim a list to [start, end]."""
        return await self.executor.ltrim(key, start, end)

    async def lrange(self, key: str, start: int, end: int) -> list[str]:
        """List elements in [start, end]."""
        return await self.executor.lrange(key, start, end)

    async def health_check(self) -> dict[str, Any]:
        """Perform health check on Redis connection."""
        return await self._health_monitor.health_check()


# =============================================================================
# GLOBAL INSTANCE (SINGLETON PATTERN)
# =============================================================================

_redis_client: RedisClient | None = None


def get_redis_client() -> RedisClient:
    """
    Get the global Redis client instance (singleton).

    Returns:
        RedisClient: Global Redis client instance
    """
    global _redis_client

    if _redis_client is None:
        _redis_client = RedisClient()

    return _redis_client


async def init_redis() -> RedisClient:
    """
    Initialize and connect the global Redis client.

    Returns:
        RedisClient: Connected Redis client
    """
    client = get_redis_client()
    await client.connect()
    return client


async def close_redis() -> None:
    """Close the global Redis client."""
    global _redis_client

    if _redis_client:
        await _redis_client.disconnect()
        _redis_client = None
