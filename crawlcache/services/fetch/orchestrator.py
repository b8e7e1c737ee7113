"""
Fetch Orchestrator

Cache-aside decision logic for the crawl cache:

- Fetch: look the URL up in the cache store; on a hit return the stored bytes,
  otherwise GET the URL from its origin, store the body for the configured TTL
  and return it. A store that cannot answer the lookup is treated as a miss;
  a store that cannot accept the write fails the request.
- Purge: drop the cached body for a URL.

Concurrent misses for the same URL are not coalesced: each one fetches the
origin and writes the store, and the last write wins.
"""

import httpx
import structlog
from opentelemetry import trace
from opentelemetry.trace import Status, StatusCode

from ...domain.cache import (
    DEFAULT_NAMESPACE,
    TTL,
    CacheError,
    CacheHit,
    CacheKey,
    CacheStore,
    CacheStoreError,
)
from ...domain.errors import FetchError, StoreError
from ...models.requests import FetchRequest, PurgeRequest, parse_request

logger = structlog.get_logger(__name__)
tracer = trace.get_tracer(__name__)


class FetchOrchestrator:
    """
    Stateless request handler over an injected cache store and HTTP client.

    One instance is shared by all concurrent requests; it holds no
    per-request state.
    """

    def __init__(
        self,
        store: CacheStore,
        http_client: httpx.AsyncClient,
        ttl: TTL = TTL.crawled(),
        namespace: str = DEFAULT_NAMESPACE,
    ):
        self._store = store
        self._http_client = http_client
        self._ttl = ttl
        self._namespace = namespace

    def key_for(self, url: str) -> CacheKey:
        return CacheKey.crawled(url, namespace=self._namespace)

    async def fetch(self, body: bytes) -> bytes:
        """
        Handle a raw ``/fetch`` body.

        Raises:
            InvalidRequestError: malformed body; nothing else is touched
            FetchError: origin fetch failed or the result could not be cached
        """
        with tracer.start_as_current_span("Fetch"):
            request = _parse(body, FetchRequest)
            return await self.fetch_url(request.url)

    async def fetch_url(self, url: str) -> bytes:
        span = trace.get_current_span()
        span.set_attribute("http.url", url)
        key = self.key_for(url)

        cached = await self._store.get(key)
        if isinstance(cached, CacheHit):
            span.set_attribute("cache.hit", True)
            logger.debug("cache_hit", url=url, size=len(cached.payload))
            return cached.payload

        span.set_attribute("cache.hit", False)
        if isinstance(cached, CacheError):
            # Unreachable cache must not fail the request; go to the origin
            span.add_event(
                "cache_read_failed",
                {"cache.error_kind": cached.kind.value, "cache.error": cached.message},
            )
            logger.warning(
                "cache_read_failed",
                url=url,
                error_kind=cached.kind.value,
                error=cached.message,
            )
        else:
            logger.debug("cache_miss", url=url)

        payload = await self._fetch_origin(url)

        try:
            await self._store.set(key, payload, self._ttl)
        except CacheStoreError as e:
            span.set_status(Status(StatusCode.ERROR, e.message))
            logger.error(
                "cache_write_failed", url=url, error_code=e.error_code, error=e.message
            )
            raise FetchError(e.message, original_error=e)

        logger.info(
            "cache_populated", url=url, size=len(payload), ttl=self._ttl.total_seconds
        )
        return payload

    async def purge(self, body: bytes) -> None:
        """
        Handle a raw ``/purge`` body.

        Raises:
            InvalidRequestError: malformed body
            StoreError: the store could not delete the entry
        """
        with tracer.start_as_current_span("Purge"):
            request = _parse(body, PurgeRequest)
            await self.purge_url(request.url)

    async def purge_url(self, url: str) -> None:
        span = trace.get_current_span()
        span.set_attribute("http.url", url)
        try:
            await self._store.delete(self.key_for(url))
        except CacheStoreError as e:
            span.set_status(Status(StatusCode.ERROR, e.message))
            logger.error(
                "cache_purge_failed", url=url, error_code=e.error_code, error=e.message
            )
            raise StoreError(e.message, original_error=e)

        logger.info("cache_purged", url=url)

    async def _fetch_origin(self, url: str) -> bytes:
        """GET ``url`` once and return the full body. No retry."""
        span = trace.get_current_span()
        try:
            response = await self._http_client.get(url)
        except (httpx.HTTPError, httpx.InvalidURL) as e:
            message = str(e) or type(e).__name__
            span.set_status(Status(StatusCode.ERROR, message))
            logger.warning("origin_fetch_failed", url=url, error=message)
            raise FetchError(message, original_error=e)

        span.set_attribute("http.status_code", response.status_code)
        logger.debug(
            "origin_fetched",
            url=url,
            status_code=response.status_code,
            size=len(response.content),
        )
        return response.content


def _parse(body: bytes, model):
    with tracer.start_as_current_span("parseJSON") as span:
        try:
            return parse_request(body, model)
        except Exception as e:
            span.set_status(Status(StatusCode.ERROR, str(e)))
            raise
