"""
Cache-Related Exceptions

All exceptions related to the key/value cache store and the advanced cache.

Author: System Architect
Date: 2025-12-08
"""

from ethosview.core.exceptions.base import EthosViewError


class CacheError(EthosViewError):
    """Base exception for cache-related errors."""
    pass


class CacheConnectionError(CacheError):
    """
    Raised when unable to connect to the cache store (Redis).

    Common causes:
    - Redis server is down
    - Network connectivity issues
    - Incorrect REDIS_URL / host / port configuration
    - Authentication failure
    """
    pass


class CacheKeyError(CacheError):
    """
    Raised when a cache store command fails.

    Common causes:
    - Operation timeout
    - Connection dropped mid-command
    - Wrong type stored under the key (e.g. SMEMBERS on a string)
    - Memory limit exceeded
    """
    pass


class CacheSerializationError(CacheError):
    """
    Raised when a value cannot be serialized into a cache entry.

    Read-side decode failures are never raised; the entry is treated as a
    miss and deleted.
    """
    pass
