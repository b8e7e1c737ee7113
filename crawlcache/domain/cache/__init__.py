"""
Cache Domain Module

Value objects describing cache keys, expiry, and lookup outcomes, and the
store contract the orchestrator depends on.
"""

from .exceptions import CacheStoreError
from .repository_interfaces import CacheStore
from .value_objects import (
    DEFAULT_NAMESPACE,
    TTL,
    CacheError,
    CacheErrorKind,
    CacheHit,
    CacheKey,
    CacheMiss,
    CacheResult,
)

__all__ = [
    "DEFAULT_NAMESPACE",
    "TTL",
    "CacheError",
    "CacheErrorKind",
    "CacheHit",
    "CacheKey",
    "CacheMiss",
    "CacheResult",
    "CacheStore",
    "CacheStoreError",
]
