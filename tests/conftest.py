"""
Main pytest configuration for crawlcache tests.

Provides in-memory cache store doubles, a respx-mocked origin, and a wired
orchestrator. Nothing here needs a running Redis.
"""

import os
import time
from typing import Dict, Optional, Tuple

import httpx
import pytest
import pytest_asyncio
import respx

# Set test environment variables before importing app modules
os.environ["ENVIRONMENT"] = "test"
os.environ["OTEL_ENABLED"] = "false"
os.environ["LOG_LEVEL"] = "DEBUG"
os.environ["LOG_FORMAT"] = "console"

from crawlcache.core.config import Settings  # noqa: E402
from crawlcache.domain.cache import (  # noqa: E402
    TTL,
    CacheError,
    CacheErrorKind,
    CacheHit,
    CacheKey,
    CacheMiss,
    CacheResult,
    CacheStore,
)
from crawlcache.infrastructure.redis.exceptions import (  # noqa: E402
    RedisConnectionException,
)
from crawlcache.services.fetch import FetchOrchestrator  # noqa: E402


class InMemoryCacheStore(CacheStore):
    """Cache store double honouring per-entry expiry."""

    def __init__(self):
        self.entries: Dict[str, Tuple[bytes, float]] = {}
        self.calls = {"get": 0, "set": 0, "delete": 0}

    def seed(self, key: CacheKey, value: bytes, ttl: TTL = TTL.crawled()) -> None:
        self.entries[key.value] = (value, time.monotonic() + ttl.total_seconds)

    async def get(self, key: CacheKey) -> CacheResult:
        self.calls["get"] += 1
        entry = self.entries.get(key.value)
        if entry is None:
            return CacheMiss()
        value, expires_at = entry
        if time.monotonic() >= expires_at:
            del self.entries[key.value]
            return CacheMiss()
        return CacheHit(payload=value)

    async def set(self, key: CacheKey, value: bytes, ttl: TTL) -> None:
        self.calls["set"] += 1
        self.entries[key.value] = (value, time.monotonic() + ttl.total_seconds)

    async def delete(self, key: CacheKey) -> None:
        self.calls["delete"] += 1
        self.entries.pop(key.value, None)

    async def ttl(self, key: CacheKey) -> Optional[float]:
        entry = self.entries.get(key.value)
        if entry is None:
            return None
        return entry[1] - time.monotonic()

    async def ping(self) -> bool:
        return True

    def pool_stats(self) -> dict:
        return {"initialized": True, "backend": "memory"}

    @property
    def touched(self) -> bool:
        return any(self.calls.values())


class FailingCacheStore(InMemoryCacheStore):
    """Store double whose operations can be made to fail individually."""

    def __init__(
        self,
        fail_get: bool = False,
        fail_set: bool = False,
        fail_delete: bool = False,
    ):
        super().__init__()
        self.fail_get = fail_get
        self.fail_set = fail_set
        self.fail_delete = fail_delete

    async def get(self, key: CacheKey) -> CacheResult:
        if self.fail_get:
            self.calls["get"] += 1
            return CacheError(
                kind=CacheErrorKind.CONNECTION, message="Connection refused"
            )
        return await super().get(key)

    async def set(self, key: CacheKey, value: bytes, ttl: TTL) -> None:
        if self.fail_set:
            self.calls["set"] += 1
            raise RedisConnectionException("Redis connection failed during set")
        await super().set(key, value, ttl)

    async def delete(self, key: CacheKey) -> None:
        if self.fail_delete:
            self.calls["delete"] += 1
            raise RedisConnectionException("Redis connection failed during del")
        await super().delete(key)

    async def ping(self) -> bool:
        return not (self.fail_get or self.fail_set or self.fail_delete)


@pytest.fixture
def settings() -> Settings:
    return Settings(ENVIRONMENT="test", OTEL_ENABLED=False, LOG_FORMAT="console")


@pytest.fixture
def store() -> InMemoryCacheStore:
    return InMemoryCacheStore()


@pytest.fixture
def origin():
    """Mocked origin; every outbound httpx request must match a route."""
    with respx.mock(assert_all_called=False) as router:
        yield router


@pytest_asyncio.fixture
async def http_client():
    async with httpx.AsyncClient(follow_redirects=True) as client:
        yield client


@pytest.fixture
def orchestrator(store, http_client) -> FetchOrchestrator:
    return FetchOrchestrator(store=store, http_client=http_client)


def pytest_configure(config):
    """Configure custom pytest markers."""
    config.addinivalue_line("markers", "redis: marks tests as Redis-related")
    config.addinivalue_line("markers", "integration: marks tests as integration tests")
