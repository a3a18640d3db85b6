from .advanced_cache import AdvancedCache, CacheEntry
from .cache_warmer import CacheWarmer
from .redis_client import RedisClient, close_redis, get_redis_client, init_redis

__all__ = [
    "AdvancedCache",
    "CacheEntry",
    "CacheWarmer",
    "RedisClient",
    "close_redis",
    "get_redis_client",
    "init_redis",
]
