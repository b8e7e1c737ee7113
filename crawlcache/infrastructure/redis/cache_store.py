"""
Redis Cache Store

Key-value store with per-entry expiry backing the crawl cache. Reads report
failures as ``CacheError`` results instead of raising, so callers can decide
whether to degrade; writes and deletes raise ``RedisException`` subclasses,
which are ``CacheStoreError``s.
"""

import asyncio
from typing import Any, Dict, Optional

import structlog
from opentelemetry import trace
from opentelemetry.trace import Status, StatusCode
from redis.asyncio import Redis
from redis.exceptions import ConnectionError as RedisConnectionError
from redis.exceptions import RedisError
from redis.exceptions import TimeoutError as RedisTimeoutError

from ...domain.cache import (
    TTL,
    CacheStore,
    CacheError,
    CacheErrorKind,
    CacheHit,
    CacheKey,
    CacheMiss,
    CacheResult,
)
from .connection_factory import RedisConnectionFactory
from .exceptions import (
    RedisConnectionException,
    RedisException,
    RedisOperationTimeoutException,
    RedisPoolExhaustedException,
)

logger = structlog.get_logger(__name__)
tracer = trace.get_tracer(__name__)

# redis-py's message when BlockingConnectionPool times out waiting
_POOL_EXHAUSTED_MESSAGE = "No connection available"


class RedisCacheStore(CacheStore):
    """Cache store over a pooled Redis client."""

    def __init__(self, factory: RedisConnectionFactory):
        self._factory = factory
        self._redis: Optional[Redis] = None

    @property
    def redis(self) -> Redis:
        if self._redis is None:
            self._redis = self._factory.client()
        return self._redis

    async def get(self, key: CacheKey) -> CacheResult:
        """Look up ``key``.

        Returns ``CacheHit`` with the stored bytes, ``CacheMiss`` when absent,
        or ``CacheError`` when the store could not answer.
        """
        with tracer.start_as_current_span("redis.cache.get") as span:
            span.set_attribute("cache.key", key.value)
            try:
                reply = await self.redis.get(key.value)
            except (RedisError, OSError, asyncio.TimeoutError) as e:
                error = self._map_error("get", key, e)
                span.set_status(Status(StatusCode.ERROR, error.message))
                logger.warning(
                    "cache_store_read_error",
                    key=key.value,
                    error_code=error.error_code,
                    error=error.message,
                )
                return CacheError(kind=_error_kind(error), message=error.message)

            result = decode_reply(key, reply)
            span.set_attribute("cache.hit", isinstance(result, CacheHit))
            return result

    async def set(self, key: CacheKey, value: bytes, ttl: TTL) -> None:
        """Store ``value`` under ``key`` expiring after ``ttl``; overwrites."""
        with tracer.start_as_current_span("redis.cache.set") as span:
            span.set_attribute("cache.key", key.value)
            span.set_attribute("cache.ttl_seconds", ttl.total_seconds)
            try:
                await self.redis.set(key.value, value, ex=ttl.total_seconds)
            except (RedisError, OSError, asyncio.TimeoutError) as e:
                error = self._map_error("set", key, e)
                span.set_status(Status(StatusCode.ERROR, error.message))
                raise error

    async def delete(self, key: CacheKey) -> None:
        """Remove ``key``. Deleting an absent key succeeds."""
        with tracer.start_as_current_span("redis.cache.delete") as span:
            span.set_attribute("cache.key", key.value)
            try:
                removed = await self.redis.delete(key.value)
            except (RedisError, OSError, asyncio.TimeoutError) as e:
                error = self._map_error("del", key, e)
                span.set_status(Status(StatusCode.ERROR, error.message))
                raise error
            span.set_attribute("cache.removed", int(removed or 0))

    async def ttl(self, key: CacheKey) -> Optional[int]:
        """Remaining lifetime of ``key`` in seconds, or None if it has none."""
        try:
            remaining = await self.redis.ttl(key.value)
        except (RedisError, OSError, asyncio.TimeoutError) as e:
            raise self._map_error("ttl", key, e)
        return remaining if remaining is not None and remaining >= 0 else None

    async def ping(self) -> bool:
        try:
            return bool(await self.redis.ping())
        except (RedisError, OSError, asyncio.TimeoutError) as e:
            logger.warning("cache_store_ping_failed", error=str(e))
            return False

    def pool_stats(self) -> Dict[str, Any]:
        return self._factory.get_metrics()

    async def close(self) -> None:
        if self._redis is not None:
            await self._redis.aclose()
            self._redis = None
        await self._factory.close()

    def _map_error(
        self, operation: str, key: CacheKey, error: Exception
    ) -> RedisException:
        if isinstance(error, RedisConnectionError) and _POOL_EXHAUSTED_MESSAGE in str(
            error
        ):
            return RedisPoolExhaustedException(
                max_connections=self._factory.max_connections,
                timeout_seconds=self._factory.pool_timeout,
                original_error=error,
            )
        if isinstance(error, (RedisTimeoutError, asyncio.TimeoutError)):
            return RedisOperationTimeoutException(
                operation=operation, key=key.value, original_error=error
            )
        if isinstance(error, (RedisConnectionError, OSError)):
            return RedisConnectionException(
                message=f"Redis connection failed during {operation}: {error}",
                original_error=error,
            )
        return RedisException(
            message=f"Redis {operation} failed: {error}",
            details={"operation": operation, "key": key.value},
            original_error=error,
        )


def decode_reply(key: CacheKey, reply: Any) -> CacheResult:
    """Turn a raw GET reply into a ``CacheResult``.

    Anything other than bytes or None is a store anomaly; it is logged and
    treated as a miss.
    """
    if reply is None:
        return CacheMiss()
    if isinstance(reply, (bytes, bytearray, memoryview)):
        return CacheHit(payload=bytes(reply))
    logger.error(
        "cache_store_anomaly",
        key=key.value,
        reply_type=type(reply).__name__,
    )
    return CacheMiss()


def _error_kind(error: RedisException) -> CacheErrorKind:
    if isinstance(error, RedisPoolExhaustedException):
        return CacheErrorKind.POOL_EXHAUSTED
    if isinstance(error, RedisOperationTimeoutException):
        return CacheErrorKind.TIMEOUT
    if isinstance(error, RedisConnectionException):
        return CacheErrorKind.CONNECTION
    return CacheErrorKind.UNEXPECTED
