#!/usr/bin/env python3
"""
Advanced Cache - Strategy-Tiered Read-Through Cache with Tag Invalidation

Architecture:
    AdvancedCache (Public API)
        ├── EntryCodec (CacheEntry envelope <-> JSON, typed decoding)
        ├── TagIndex (tag sets: register, enumerate, drop, prune)
        └── CacheObserver (hit/miss/set/invalidation counters)

Key layout (prefix defaults to "ethosview"):
    <prefix>:<key>        serialized CacheEntry, TTL from the strategy
    <prefix>:tag:<tag>    set of full keys carrying <tag>, TTL 25h

Every value is stored inside a CacheEntry envelope that records its own
expiry, so a read re-checks freshness even if the store TTL drifted or the
key was copied by hand.

Author: Refactored for clarity and maintainability
Date: 2025-12-13
"""

import hashlib
import inspect
from collections.abc import Callable, Iterable, Mapping
from datetime import datetime, timedelta, timezone
from functools import lru_cache
from typing import Any

from pydantic import AwareDatetime, BaseModel, Field, TypeAdapter, ValidationError
from pydantic_core import PydanticSerializationError

from ethosview.core.config.constants import (
    DEFAULT_CACHE_STRATEGY,
    QUERY_KEY_MAX_LENGTH,
    QUERY_KEY_PREFIX,
    TAG_KEY_SEGMENT,
    TAG_SET_TTL_SECONDS,
    WARMUP_TAG,
    CacheStrategy,
)
from ethosview.core.exceptions import CacheError, CacheSerializationError
from ethosview.core.logging.logger import get_logger, log_stage
from ethosview.infrastructure.cache.redis_client import RedisClient

logger = get_logger(__name__)

Producer = Callable[[], Any]
Clock = Callable[[], datetime]


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


@lru_cache(maxsize=256)
def _type_adapter(model: Any) -> TypeAdapter:
    return TypeAdapter(model)


async def _call_producer(producer: Producer) -> Any:
    """Run a plain or coroutine producer."""
    result = producer()
    if inspect.isawaitable(result):
        result = await result
    return result


# =============================================================================
# LAYER 1: ENTRY ENVELOPE
# Serialization of cached payloads
# =============================================================================


class CacheEntry(BaseModel):
    """
    Envelope stored under every advanced-cache key.

    ``version`` is derived from the creation time (``v<unix seconds>``) and is
    only informational; it plays no part in concurrency control.
    """

    data: Any = None
    created_at: AwareDatetime
    expires_at: AwareDatetime
    version: str
    tags: list[str] = Field(default_factory=list)

    def is_expired(self, now: datetime) -> bool:
        return self.expires_at <= now


class EntryCodec:
    """
    Encodes CacheEntry envelopes and decodes them back, optionally into a
    caller-supplied type.

    Any type pydantic's TypeAdapter understands works as a target:
    ``Company``, ``list[Company]``, ``dict[str, float]``, dataclasses, ...
    """

    def encode(self, entry: CacheEntry) -> str:
        """
        Raises:
            CacheSerializationError: If the payload is not JSON-serializable
        """
        try:
            return entry.model_dump_json()
        except (PydanticSerializationError, TypeError, ValueError) as e:
            raise CacheSerializationError(
                message=f"Cannot serialize cache entry: {e}",
                details={"payload_type": type(entry.data).__name__},
            ) from e

    def decode(self, raw: str) -> CacheEntry:
        """
        Raises:
            ValidationError: If the stored text is not a valid envelope
        """
        return CacheEntry.model_validate_json(raw)

    def coerce(self, data: Any, model: Any | None) -> Any:
        """
        Validate plain data into ``model`` (no-op when model is None).

        Raises:
            ValidationError: If the data does not fit the model
        """
        if model is None:
            return data
        return _type_adapter(model).validate_python(data)


# =============================================================================
# LAYER 2: OBSERVABILITY
# Hit/miss counters and stage logging
# =============================================================================


class CacheObserver:
    """
    Tracks advanced-cache counters and logs operations.

    Counters are process-local; an optional metrics registry receives the
    same hit/miss events for Prometheus export.
    """

    def __init__(self, metrics=None):
        self._metrics = metrics
        self.hits = 0
        self.misses = 0
        self.sets = 0
        self.deletes = 0
        self.invalidations = 0
        self.corrupt_entries = 0
        self.write_back_failures = 0

    def record_hit(self, key: str) -> None:
        self.hits += 1
        log_stage(logger, "CACHE.GET", "Cache hit", level="debug", key=key)
        if self._metrics is not None:
            self._metrics.record_cache_lookup(hit=True)

    def record_miss(self, key: str, reason: str = "absent") -> None:
        self.misses += 1
        log_stage(logger, "CACHE.GET", "Cache miss", level="debug", key=key, reason=reason)
        if self._metrics is not None:
            self._metrics.record_cache_lookup(hit=False)

    def record_set(self, key: str, strategy: CacheStrategy, tags: list[str]) -> None:
        self.sets += 1
        log_stage(
            logger, "CACHE.SET", "Cache set", level="debug",
            key=key, strategy=strategy.value, tags=tags,
        )

    def record_corrupt(self, key: str, error: Exception) -> None:
        self.corrupt_entries += 1
        log_stage(
            logger, "CACHE.GET", "Discarding undecodable cache entry", level="warning",
            key=key, error=str(error),
        )

    def get_stats(self) -> dict[str, Any]:
        lookups = self.hits + self.misses
        return {
            "hits": self.hits,
            "misses": self.misses,
            "hit_rate": round(self.hits / lookups, 3) if lookups else 0.0,
            "sets": self.sets,
            "deletes": self.deletes,
            "invalidations": self.invalidations,
            "corrupt_entries": self.corrupt_entries,
            "write_back_failures": self.write_back_failures,
        }


# =============================================================================
# LAYER 3: TAG INDEX
# Tag -> key-set bookkeeping
# =============================================================================


class TagIndex:
    """
    Maintains one Redis set per tag holding the full keys that carry it.

    Registration is best-effort: a failure for one tag is logged and the
    remaining tags are still attempted. Tag sets expire after 25h, longer
    than the longest strategy TTL.
    """

    def __init__(self, redis_client: RedisClient, prefix: str):
        self._redis = redis_client
        self._prefix = prefix

    def tag_key(self, tag: str) -> str:
        return f"{self._prefix}:{TAG_KEY_SEGMENT}:{tag}"

    async def register(self, full_key: str, tags: Iterable[str]) -> list[str]:
        """
        Add ``full_key`` to every tag set.

        Returns:
            Tags whose registration failed
        """
        failed: list[str] = []
        for tag in tags:
            tag_key = self.tag_key(tag)
            try:
                await self._redis.sadd(tag_key, full_key)
                await self._redis.expire(tag_key, TAG_SET_TTL_SECONDS)
            except CacheError as e:
                failed.append(tag)
                log_stage(
                    logger, "CACHE.TAG", "Tag registration failed", level="warning",
                    tag=tag, key=full_key, error=str(e),
                )
        return failed

    async def members(self, tag: str) -> set[str]:
        return await self._redis.smembers(self.tag_key(tag))

    async def drop(self, tag: str) -> None:
        await self._redis.delete(self.tag_key(tag))

    async def prune(self, tag: str) -> int:
        """
        Remove members whose keys no longer exist.

        Returns:
            Number of members removed
        """
        tag_key = self.tag_key(tag)
        stale = [key for key in await self._redis.smembers(tag_key) if not await self._redis.exists(key)]
        if not stale:
            return 0
        return await self._redis.srem(tag_key, *stale)


# =============================================================================
# LAYER 4: PUBLIC API
# =============================================================================


class AdvancedCache:
    """
    Read-through cache with strategy-based TTLs and tag/pattern invalidation.

    Usage:
        cache = AdvancedCache(redis_client, prefix="ethosview")

        await cache.set("co:1", company, CacheStrategy.MEDIUM_TERM, ["companies"])
        found, company = await cache.get("co:1", model=Company)

        scores = await cache.get_or_set(
            "esg:top:overall",
            producer=load_top_scores,
            strategy=CacheStrategy.SHORT_TERM,
            tags=["esg"],
            model=list[ESGScore],
        )

        await cache.invalidate_by_tag("companies")

    Failure semantics:
        Store errors surface as CacheError from get/set/delete/invalidate_*.
        get_or_set only logs a failed write-back and still returns the
        produced value. Producer exceptions propagate unchanged.

    Without ``model``, a hit returns the JSON-decoded payload (dicts, lists,
    scalars) while a miss in get_or_set returns the producer's own object.
    Pass ``model`` to get the same type either way.
    """

    def __init__(
        self,
        redis_client: RedisClient,
        prefix: str = "ethosview",
        metrics=None,
        clock: Clock = utc_now,
    ):
        """
        Args:
            redis_client: Connected key/value store client
            prefix: Namespace prepended to every key
            metrics: Optional MetricsRegistry receiving hit/miss events
            clock: Returns the current UTC time (injectable for tests)
        """
        self._redis = redis_client
        self._prefix = prefix
        self._clock = clock
        self._codec = EntryCodec()
        self._tags = TagIndex(redis_client, prefix)
        self._observer = CacheObserver(metrics)

    @property
    def prefix(self) -> str:
        return self._prefix

    def build_key(self, key: str) -> str:
        """Namespaced store key for ``key``."""
        return f"{self._prefix}:{key}"

    # -------------------------------------------------------------------------
    # Core Operations
    # -------------------------------------------------------------------------

    async def set(
        self,
        key: str,
        data: Any,
        strategy: CacheStrategy = DEFAULT_CACHE_STRATEGY,
        tags: Iterable[str] | None = None,
    ) -> None:
        """
        Store ``data`` under ``key`` with the strategy's TTL and register its tags.

        STAGE-CACHE.SET

        Raises:
            CacheSerializationError: If ``data`` cannot be serialized
            CacheError: If the primary write fails (tag failures are only logged)
        """
        tag_list = list(dict.fromkeys(tags or ()))
        now = self._clock()
        ttl = strategy.ttl_seconds

        entry = CacheEntry(
            data=data,
            created_at=now,
            expires_at=now + timedelta(seconds=ttl),
            version=f"v{int(now.timestamp())}",
            tags=tag_list,
        )
        payload = self._codec.encode(entry)

        full_key = self.build_key(key)
        await self._redis.set(full_key, payload, ttl=ttl)
        self._observer.record_set(key, strategy, tag_list)

        if tag_list:
            await self._tags.register(full_key, tag_list)

    async def get(self, key: str, model: Any | None = None) -> tuple[bool, Any]:
        """
        Look up ``key``.

        STAGE-CACHE.GET

        A store miss, an undecodable entry or a soft-expired entry all report a
        miss; the latter two also delete the key.

        Args:
            key: Cache key (without prefix)
            model: Optional target type for the payload

        Returns:
            (found, value); value is None on a miss

        Raises:
            CacheError: If the store is unavailable
        """
        full_key = self.build_key(key)
        raw = await self._redis.get(full_key)
        if raw is None:
            self._observer.record_miss(key)
            return False, None

        try:
            entry = self._codec.decode(raw)
            if entry.is_expired(self._clock()):
                await self._redis.delete(full_key)
                self._observer.record_miss(key, reason="expired")
                return False, None
            value = self._codec.coerce(entry.data, model)
        except ValidationError as e:
            self._observer.record_corrupt(key, e)
            await self._redis.delete(full_key)
            self._observer.record_miss(key, reason="corrupt")
            return False, None

        self._observer.record_hit(key)
        return True, value

    async def get_or_set(
        self,
        key: str,
        producer: Producer,
        strategy: CacheStrategy = DEFAULT_CACHE_STRATEGY,
        tags: Iterable[str] | None = None,
        model: Any | None = None,
    ) -> Any:
        """
        Return the cached value, or produce, store and return it.

        STAGE-CACHE.GET_OR_SET

        The producer runs at most once per call and only on a miss. It may be a
        plain function or a coroutine function.

        Raises:
            Exception: Whatever the producer raises, unchanged
            CacheSerializationError: If the produced value cannot be stored
            CacheError: If the initial lookup fails
        """
        found, value = await self.get(key, model=model)
        if found:
            return value

        produced = await _call_producer(producer)

        try:
            await self.set(key, produced, strategy, tags)
        except CacheSerializationError:
            raise
        except CacheError as e:
            self._observer.write_back_failures += 1
            log_stage(
                logger, "CACHE.GET_OR_SET", "Cache write-back failed, serving fresh value",
                level="warning", key=key, error=str(e),
            )

        return self._codec.coerce(produced, model)

    async def delete(self, key: str) -> None:
        """Remove ``key``; absent keys are not an error."""
        await self._redis.delete(self.build_key(key))
        self._observer.deletes += 1
        log_stage(logger, "CACHE.DEL", "Cache entry deleted", level="debug", key=key)

    async def refresh(
        self,
        key: str,
        data: Any,
        strategy: CacheStrategy = DEFAULT_CACHE_STRATEGY,
        tags: Iterable[str] | None = None,
    ) -> None:
        """
        Delete then set. Not atomic: a concurrent get between the two steps misses.
        """
        await self.delete(key)
        await self.set(key, data, strategy, tags)

    # -------------------------------------------------------------------------
    # Invalidation
    # -------------------------------------------------------------------------

    async def invalidate_by_tag(self, tag: str) -> int:
        """
        Delete every key registered under ``tag``, then the tag set itself.

        STAGE-CACHE.INVALIDATE_TAG

        Returns:
            Number of keys deleted (0 when the tag set is empty or absent)
        """
        members = await self._tags.members(tag)
        if not members:
            return 0

        deleted = await self._redis.delete(*members)
        await self._tags.drop(tag)

        self._observer.invalidations += 1
        log_stage(
            logger, "CACHE.INVALIDATE_TAG", "Invalidated cache entries by tag",
            tag=tag, keys=len(members), deleted=deleted,
        )
        return deleted

    async def invalidate_pattern(self, pattern: str) -> int:
        """
        Delete every key under the namespace matching a glob ``pattern``.

        STAGE-CACHE.INVALIDATE_PATTERN

        Args:
            pattern: Glob relative to the prefix, e.g. ``"companies:*"``

        Returns:
            Number of keys deleted
        """
        keys = await self._redis.scan_keys(self.build_key(pattern))
        if not keys:
            return 0

        deleted = await self._redis.delete(*keys)

        self._observer.invalidations += 1
        log_stage(
            logger, "CACHE.INVALIDATE_PATTERN", "Invalidated cache entries by pattern",
            pattern=pattern, deleted=deleted,
        )
        return deleted

    async def prune_tag(self, tag: str) -> int:
        """
        Drop tag-set members whose keys have already expired or been deleted.

        Returns:
            Number of stale members removed
        """
        removed = await self._tags.prune(tag)
        if removed:
            log_stage(logger, "CACHE.PRUNE_TAG", "Pruned stale tag members", tag=tag, removed=removed)
        return removed

    # -------------------------------------------------------------------------
    # Keys
    # -------------------------------------------------------------------------

    @staticmethod
    def build_query_key(table: str, operation: str, params: Mapping[str, Any] | None = None) -> str:
        """
        Deterministic cache key for a parametrized query.

        Parameters are sorted by name so mapping order never matters. Keys
        longer than 200 characters are replaced by an MD5 digest of the full
        key, which stays deterministic for identical inputs.

        Example:
            >>> AdvancedCache.build_query_key("companies", "list", {"sector": "Energy", "limit": 10})
            'query:companies:list:limit=10&sector=Energy'
        """
        pairs = "&".join(f"{name}={value}" for name, value in sorted((params or {}).items()))
        key = f"{QUERY_KEY_PREFIX}:{table}:{operation}:{pairs}"

        if len(key) > QUERY_KEY_MAX_LENGTH:
            digest = hashlib.md5(key.encode("utf-8")).hexdigest()
            return f"{QUERY_KEY_PREFIX}:hash:{digest}"

        return key

    # -------------------------------------------------------------------------
    # Administration
    # -------------------------------------------------------------------------

    async def get_stats(self) -> dict[str, Any]:
        """
        Store and local cache statistics.

        Raises:
            CacheError: If the store is unavailable
        """
        memory = await self._redis.info("memory")
        stats = await self._redis.info("stats")
        keys = await self._redis.scan_keys(self.build_key("*"))
        tag_prefix = self.build_key(f"{TAG_KEY_SEGMENT}:")

        return {
            "prefix": self._prefix,
            "total_keys": len(keys),
            "tag_sets": sum(1 for key in keys if key.startswith(tag_prefix)),
            "memory": {
                "used_memory": memory.get("used_memory"),
                "used_memory_human": memory.get("used_memory_human"),
                "used_memory_peak_human": memory.get("used_memory_peak_human"),
                "maxmemory": memory.get("maxmemory"),
            },
            "stats": {
                "keyspace_hits": stats.get("keyspace_hits"),
                "keyspace_misses": stats.get("keyspace_misses"),
                "expired_keys": stats.get("expired_keys"),
                "evicted_keys": stats.get("evicted_keys"),
            },
            "local": self._observer.get_stats(),
            "last_updated": self._clock().isoformat(),
        }

    @staticmethod
    def key_category(key: str) -> str:
        """Text before the first ':' (the whole key if there is none)."""
        return key.split(":", 1)[0]

    async def warmup_cache(self, producers: Mapping[str, Producer]) -> int:
        """
        Populate many keys at once with the MediumTerm strategy.

        Each key is tagged ``warmup`` plus its category. A failing producer or
        write is logged and skipped.

        Returns:
            Number of keys written
        """
        warmed = 0
        for key, producer in producers.items():
            try:
                data = await _call_producer(producer)
                await self.set(
                    key, data, CacheStrategy.MEDIUM_TERM, [WARMUP_TAG, self.key_category(key)]
                )
                warmed += 1
            except Exception as e:
                log_stage(
                    logger, "CACHE.WARMUP", "Warmup entry failed", level="warning",
                    key=key, error=str(e), error_type=type(e).__name__,
                )

        log_stage(logger, "CACHE.WARMUP", "Cache warmup complete", warmed=warmed, requested=len(producers))
        return warmed
