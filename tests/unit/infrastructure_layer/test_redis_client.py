"""
Unit Tests for RedisClient

Tests connection setup, command error wrapping and health checks against a
mocked redis.asyncio client.
"""

from typing import get_type_hints
from unittest.mock import AsyncMock, MagicMock, patch

import pytest
from redis.exceptions import ConnectionError as RedisConnectionError
from redis.exceptions import ResponseError

from ethosview.core.exceptions import CacheConnectionError, CacheKeyError
from ethosview.infrastructure.cache.redis_client import (
    ConnectionManager,
    OperationExecutor,
    RedisClient,
)

MODULE = "ethosview.infrastructure.cache.redis_client"


@pytest.fixture
def raw_client():
    """Mocked redis.asyncio.Redis."""
    return AsyncMock()


@pytest.fixture
def executor(raw_client):
    return OperationExecutor(raw_client)


@pytest.mark.unit
class TestConnection:
    """Test connection lifecycle."""

    async def test_connect_from_url(self, mock_settings):
        mock_settings.redis.REDIS_URL = "redis://cache:6379/2"
        client = AsyncMock()

        with patch(f"{MODULE}.ConnectionPool") as pool_cls, patch(f"{MODULE}.redis.Redis", return_value=client):
            manager = ConnectionManager(mock_settings)
            await manager.connect()

        pool_cls.from_url.assert_called_once()
        args, kwargs = pool_cls.from_url.call_args
        assert args == ("redis://cache:6379/2",)
        assert kwargs["decode_responses"] is True
        assert kwargs["max_connections"] == 10
        assert manager.is_connected()

    async def test_connect_from_host(self, mock_settings):
        with patch(f"{MODULE}.ConnectionPool") as pool_cls, patch(f"{MODULE}.redis.Redis", return_value=AsyncMock()):
            await ConnectionManager(mock_settings).connect()

        kwargs = pool_cls.call_args.kwargs
        assert kwargs["host"] == "localhost"
        assert kwargs["port"] == 6379

    async def test_connect_failure_raises_cache_connection_error(self, mock_settings):
        client = AsyncMock()
        client.ping.side_effect = RedisConnectionError("Connection refused")

        with patch(f"{MODULE}.ConnectionPool"), patch(f"{MODULE}.redis.Redis", return_value=client):
            manager = ConnectionManager(mock_settings)
            with pytest.raises(CacheConnectionError) as exc_info:
                await manager.connect()

        assert exc_info.value.details["port"] == 6379
        assert "REDIS_URL" in exc_info.value.details["suggestion"]
        assert not manager.is_connected()

    async def test_commands_before_connect_raise(self, mock_settings):
        client = RedisClient(settings=mock_settings)

        with pytest.raises(CacheConnectionError):
            await client.get("k")

    async def test_disconnect_releases_executor(self, mock_settings):
        with patch(f"{MODULE}.ConnectionPool", return_value=AsyncMock()), \
                patch(f"{MODULE}.redis.Redis", return_value=AsyncMock()):
            client = RedisClient(settings=mock_settings)
            await client.connect()
            await client.disconnect()

        assert not await client.ping()
        with pytest.raises(CacheConnectionError):
            _ = client.executor


@pytest.mark.unit
class TestOperationExecutor:
    """Test command delegation and error wrapping."""

    def test_smembers_annotation_is_builtin_set(self):
        assert get_type_hints(OperationExecutor.smembers)["return"] == set[str]
        assert get_type_hints(RedisClient.smembers)["return"] == set[str]

    async def test_get(self, executor, raw_client):
        raw_client.get.return_value = "value"

        assert await executor.get("k") == "value"

    async def test_set_passes_ttl_as_ex(self, executor, raw_client):
        raw_client.set.return_value = True

        assert await executor.set("k", "v", ttl=60)
        raw_client.set.assert_awaited_once_with("k", "v", ex=60)

    async def test_redis_error_wrapped(self, executor, raw_client):
        original = RedisConnectionError("reset by peer")
        raw_client.get.side_effect = original

        with pytest.raises(CacheKeyError) as exc_info:
            await executor.get("k")

        assert exc_info.value.details == {"key": "k"}
        assert exc_info.value.__cause__ is original

    async def test_delete_without_keys_is_noop(self, executor, raw_client):
        assert await executor.delete() == 0
        raw_client.delete.assert_not_awaited()

    async def test_srem_without_members_is_noop(self, executor, raw_client):
        assert await executor.srem("tag") == 0
        raw_client.srem.assert_not_awaited()

    async def test_smembers_returns_set(self, executor, raw_client):
        raw_client.smembers.return_value = ["a", "b", "a"]

        assert await executor.smembers("tag") == {"a", "b"}

    async def test_scan_keys_dedupes_and_sorts(self, executor, raw_client):
        async def scan_iter(**kwargs):
            for key in ("ethosview:b", "ethosview:a", "ethosview:b"):
                yield key

        raw_client.scan_iter = MagicMock(side_effect=scan_iter)

        keys = await executor.scan_keys("ethosview:*", count=100)

        assert keys == ["ethosview:a", "ethosview:b"]
        raw_client.scan_iter.assert_called_once_with(match="ethosview:*", count=100)

    async def test_info_section(self, executor, raw_client):
        raw_client.info.return_value = {"used_memory": 1024}

        assert await executor.info("memory") == {"used_memory": 1024}
        raw_client.info.assert_awaited_once_with("memory")

    async def test_list_errors_wrapped(self, executor, raw_client):
        raw_client.lpush.side_effect = ResponseError("WRONGTYPE")

        with pytest.raises(CacheKeyError):
            await executor.lpush("alerts:active", "{}")


@pytest.mark.unit
class TestHealthCheck:
    async def test_unhealthy_when_not_connected(self, mock_settings):
        health = await RedisClient(settings=mock_settings).health_check()

        assert health["status"] == "unhealthy"
        assert health["error"] == "Client not initialized"

    async def test_healthy_reports_pool(self, mock_settings):
        pool = MagicMock(max_connections=10, _in_use_connections={1, 2})

        with patch(f"{MODULE}.ConnectionPool", return_value=pool), \
                patch(f"{MODULE}.redis.Redis", return_value=AsyncMock()):
            client = RedisClient(settings=mock_settings)
            await client.connect()
            health = await client.health_check()

        assert health["status"] == "healthy"
        assert health["pool_size"] == 10
        assert health["pool_in_use"] == 2
        assert health["pool_utilization_pct"] == 20.0
        assert health["ping_latency_ms"] is not None
