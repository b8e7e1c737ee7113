"""
Redis Infrastructure Module

Cache store backed by Redis with a bounded, idle-recycling connection pool.

This module provides:
- RedisCacheStore: get/set/delete with per-entry expiry
- RedisConnectionFactory: pool construction and lifecycle
- Exception hierarchy for store failures
"""

from .cache_store import RedisCacheStore, decode_reply
from .connection_factory import IdleRecyclingConnectionPool, RedisConnectionFactory
from .exceptions import (
    RedisConfigurationException,
    RedisConnectionException,
    RedisException,
    RedisOperationTimeoutException,
    RedisPoolExhaustedException,
)

__all__ = [
    "RedisCacheStore",
    "decode_reply",
    "IdleRecyclingConnectionPool",
    "RedisConnectionFactory",
    "RedisConfigurationException",
    "RedisConnectionException",
    "RedisException",
    "RedisOperationTimeoutException",
    "RedisPoolExhaustedException",
]
