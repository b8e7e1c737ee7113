"""
Unit tests for the fetch orchestrator.

Covers the cache-aside paths (hit, miss, degraded read, failed write), purge,
and request validation, against an in-memory store and a mocked origin.
"""

import asyncio
import json

import httpx
import pytest

from crawlcache.domain.cache import TTL, CacheKey, CacheStoreError
from crawlcache.domain.errors import FetchError, InvalidRequestError, StoreError
from crawlcache.services.fetch import FetchOrchestrator
from tests.conftest import FailingCacheStore, InMemoryCacheStore


def body(url: str, **extra) -> bytes:
    return json.dumps({"url": url, **extra}).encode()


class TestFetch:
    """Fetch: cache lookup, origin fallback, write-back."""

    @pytest.mark.asyncio
    async def test_cache_hit_skips_origin(self, orchestrator, store, origin):
        url = "https://example.com"
        store.seed(CacheKey.crawled(url), b"hello")
        route = origin.get(url).mock(return_value=httpx.Response(200, content=b"fresh"))

        result = await orchestrator.fetch(body(url))

        assert result == b"hello"
        assert route.call_count == 0
        assert store.calls["set"] == 0

    @pytest.mark.asyncio
    async def test_cache_miss_fetches_and_populates(self, orchestrator, store, origin):
        url = "https://example.com/world"
        route = origin.get(url).mock(return_value=httpx.Response(200, content=b"world"))

        result = await orchestrator.fetch(body(url))

        assert result == b"world"
        assert route.call_count == 1
        key = CacheKey.crawled(url)
        assert store.entries[key.value][0] == b"world"
        remaining = await store.ttl(key)
        assert 0 < remaining <= 3 * 60 * 60

    @pytest.mark.asyncio
    async def test_second_fetch_is_served_from_cache(self, orchestrator, origin):
        url = "https://example.com/page"
        route = origin.get(url).mock(return_value=httpx.Response(200, content=b"page"))

        assert await orchestrator.fetch(body(url)) == b"page"
        assert await orchestrator.fetch(body(url)) == b"page"
        assert route.call_count == 1

    @pytest.mark.asyncio
    async def test_key_field_is_ignored(self, orchestrator, store, origin):
        url = "https://example.com/keyed"
        origin.get(url).mock(return_value=httpx.Response(200, content=b"keyed"))

        result = await orchestrator.fetch(body(url, key="something-else"))

        assert result == b"keyed"
        assert CacheKey.crawled(url).value in store.entries

    @pytest.mark.asyncio
    async def test_non_success_status_is_returned_and_cached(
        self, orchestrator, store, origin
    ):
        url = "https://example.com/missing"
        origin.get(url).mock(return_value=httpx.Response(404, content=b"not found"))

        result = await orchestrator.fetch(body(url))

        assert result == b"not found"
        assert store.entries[CacheKey.crawled(url).value][0] == b"not found"

    @pytest.mark.asyncio
    async def test_store_unreachable_on_read_falls_back_to_origin(
        self, http_client, origin
    ):
        failing = FailingCacheStore(fail_get=True)
        orchestrator = FetchOrchestrator(store=failing, http_client=http_client)
        url = "https://example.com/degraded"
        route = origin.get(url).mock(return_value=httpx.Response(200, content=b"ok"))

        result = await orchestrator.fetch(body(url))

        assert result == b"ok"
        assert route.call_count == 1
        assert failing.calls["set"] == 1

    @pytest.mark.asyncio
    async def test_store_write_failure_fails_the_fetch(self, http_client, origin):
        failing = FailingCacheStore(fail_set=True)
        orchestrator = FetchOrchestrator(store=failing, http_client=http_client)
        url = "https://example.com/unwritable"
        origin.get(url).mock(return_value=httpx.Response(200, content=b"body"))

        with pytest.raises(FetchError) as exc_info:
            await orchestrator.fetch(body(url))

        assert exc_info.value.message == "Redis connection failed during set"
        assert exc_info.value.status_code == 400

    @pytest.mark.asyncio
    async def test_origin_transport_error_is_fetch_error(
        self, orchestrator, store, origin
    ):
        url = "https://unreachable.example.com/"
        origin.get(url).mock(side_effect=httpx.ConnectError("connection refused"))

        with pytest.raises(FetchError) as exc_info:
            await orchestrator.fetch(body(url))

        assert "connection refused" in exc_info.value.message
        assert store.calls["set"] == 0
        assert store.entries == {}

    @pytest.mark.asyncio
    async def test_body_read_error_is_fetch_error(self, orchestrator, store, origin):
        url = "https://example.com/truncated"
        origin.get(url).mock(side_effect=httpx.ReadError("connection reset"))

        with pytest.raises(FetchError):
            await orchestrator.fetch(body(url))

        assert store.entries == {}

    @pytest.mark.asyncio
    async def test_url_without_scheme_is_fetch_error(self, orchestrator, store):
        with pytest.raises(FetchError):
            await orchestrator.fetch(body("example.com/no-scheme"))

        assert store.calls["set"] == 0

    @pytest.mark.asyncio
    async def test_custom_ttl_is_applied(self, store, http_client, origin):
        orchestrator = FetchOrchestrator(
            store=store, http_client=http_client, ttl=TTL.seconds(60)
        )
        url = "https://example.com/short"
        origin.get(url).mock(return_value=httpx.Response(200, content=b"short"))

        await orchestrator.fetch(body(url))

        remaining = await store.ttl(CacheKey.crawled(url))
        assert 0 < remaining <= 60


class TestValidation:
    """Malformed bodies are rejected before any I/O."""

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "raw",
        [b"not-json", b"", b"{}", b'{"url": 5}', b"[]", b'{"key": "only"}'],
    )
    async def test_fetch_rejects_malformed_body(self, orchestrator, store, origin, raw):
        with pytest.raises(InvalidRequestError) as exc_info:
            await orchestrator.fetch(raw)

        assert exc_info.value.status_code == 422
        assert not store.touched
        assert not origin.calls

    @pytest.mark.asyncio
    async def test_purge_rejects_malformed_body(self, orchestrator, store):
        with pytest.raises(InvalidRequestError):
            await orchestrator.purge(b"not-json")

        assert not store.touched


class TestPurge:
    """Purge: delete by URL, idempotent."""

    @pytest.mark.asyncio
    async def test_purge_removes_entry(self, orchestrator, store):
        url = "https://example.com"
        store.seed(CacheKey.crawled(url), b"hello")

        await orchestrator.purge(body(url))

        assert CacheKey.crawled(url).value not in store.entries

    @pytest.mark.asyncio
    async def test_purge_twice_succeeds(self, orchestrator, store):
        url = "https://example.com/twice"
        store.seed(CacheKey.crawled(url), b"data")

        await orchestrator.purge(body(url))
        await orchestrator.purge(body(url))

        assert store.calls["delete"] == 2
        assert store.entries == {}

    @pytest.mark.asyncio
    async def test_purge_of_uncached_url_succeeds(self, orchestrator):
        await orchestrator.purge(body("https://example.com/never-cached"))

    @pytest.mark.asyncio
    async def test_purge_store_failure_is_store_error(self, http_client):
        failing = FailingCacheStore(fail_delete=True)
        orchestrator = FetchOrchestrator(store=failing, http_client=http_client)

        with pytest.raises(StoreError) as exc_info:
            await orchestrator.purge(body("https://example.com"))

        assert exc_info.value.status_code == 400

    @pytest.mark.asyncio
    async def test_fetch_purge_fetch_hits_origin_twice(self, orchestrator, origin):
        url = "https://example.com/round-trip"
        route = origin.get(url).mock(return_value=httpx.Response(200, content=b"v"))

        await orchestrator.fetch(body(url))
        await orchestrator.purge(body(url))
        await orchestrator.fetch(body(url))

        assert route.call_count == 2


class TestNamespace:
    @pytest.mark.asyncio
    async def test_entries_live_under_configured_namespace(
        self, store, http_client, origin
    ):
        orchestrator = FetchOrchestrator(
            store=store, http_client=http_client, namespace="crawled-v2"
        )
        url = "https://example.com/ns"
        origin.get(url).mock(return_value=httpx.Response(200, content=b"ns"))

        await orchestrator.fetch(body(url))

        assert list(store.entries) == [f"crawled-v2:{url}"]


class StoreNeutralFailingStore(InMemoryCacheStore):
    async def set(self, key, value, ttl):
        raise CacheStoreError("disk full", error_code="STORE_FULL")


class TestCancellation:
    """A cancelled request abandons the origin fetch and never writes."""

    @pytest.mark.asyncio
    async def test_cancel_during_origin_fetch_propagates(
        self, orchestrator, store, origin
    ):
        url = "https://example.com/slow"
        started = asyncio.Event()

        async def slow_origin(request):
            started.set()
            await asyncio.sleep(10)
            return httpx.Response(200, content=b"late")

        origin.get(url).mock(side_effect=slow_origin)

        task = asyncio.create_task(orchestrator.fetch(body(url)))
        await asyncio.wait_for(started.wait(), timeout=1)
        task.cancel()

        with pytest.raises(asyncio.CancelledError):
            await task

        assert store.calls["set"] == 0
        assert store.entries == {}


class TestStoreContract:
    @pytest.mark.asyncio
    async def test_any_cache_store_error_fails_the_fetch(self, http_client, origin):
        orchestrator = FetchOrchestrator(
            store=StoreNeutralFailingStore(), http_client=http_client
        )
        url = "https://example.com/full"
        origin.get(url).mock(return_value=httpx.Response(200, content=b"body"))

        with pytest.raises(FetchError) as exc_info:
            await orchestrator.fetch(body(url))

        assert exc_info.value.message == "disk full"
        assert isinstance(exc_info.value.__cause__, CacheStoreError)
