"""
crawlcache - Main FastAPI Application

URL fetch cache: ``POST /fetch`` returns a cached origin body or fetches and
caches it; ``POST /purge`` drops a cached body.

The lifespan is the composition point: it builds the Redis connection pool,
the cache store, the outbound HTTP client and the orchestrator, stores them on
``app.state`` for the request handlers, and closes what it built on shutdown.
"""

from contextlib import asynccontextmanager
from typing import Optional

import httpx
import structlog
from fastapi import FastAPI, Request
from fastapi.responses import PlainTextResponse

from . import __version__
from .api.endpoints.cache import router as cache_router
from .api.endpoints.health import router as health_router
from .core.config import Settings, get_settings
from .core.correlation import CorrelationIdMiddleware
from .core.logging import configure_logging
from .core.telemetry import instrument_app, otel_manager
from .domain.cache import TTL, CacheStore
from .domain.errors import CrawlCacheError
from .infrastructure.redis import RedisCacheStore, RedisConnectionFactory
from .services.fetch import FetchOrchestrator

logger = structlog.get_logger(__name__)


def build_http_client(settings: Settings) -> httpx.AsyncClient:
    """Outbound client for origin fetches: plain GETs, redirects followed."""
    return httpx.AsyncClient(
        timeout=httpx.Timeout(settings.FETCH_TIMEOUT_SECONDS),
        follow_redirects=True,
    )


def create_app(
    settings: Optional[Settings] = None,
    store: Optional[CacheStore] = None,
    http_client: Optional[httpx.AsyncClient] = None,
) -> FastAPI:
    """
    Build the application.

    Args:
        settings: Configuration; read from the environment when omitted
        store: Cache store to use instead of a Redis-backed one
        http_client: Outbound client to use instead of a fresh one

    Injected collaborators are left open on shutdown; their owner closes them.
    """
    settings = settings or get_settings()
    configure_logging(
        settings.OTEL_SERVICE_NAME, settings.LOG_LEVEL, settings.LOG_FORMAT
    )

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        logger.info(
            "crawlcache_starting",
            version=__version__,
            environment=settings.ENVIRONMENT,
        )
        otel_manager.initialize(settings)

        owned_store = store is None
        owned_client = http_client is None
        cache_store = store or RedisCacheStore(RedisConnectionFactory.from_settings(settings))
        client = http_client or build_http_client(settings)

        app.state.store = cache_store
        app.state.orchestrator = FetchOrchestrator(
            store=cache_store,
            http_client=client,
            ttl=TTL.seconds(settings.CACHE_TTL_SECONDS),
            namespace=settings.CACHE_NAMESPACE,
        )

        if owned_store and not await cache_store.ping():
            # Lookups degrade to origin fetches; writes will fail until it is back
            logger.warning("redis_unreachable_at_startup", redis_url=settings.REDIS_URL)

        try:
            yield
        finally:
            logger.info("crawlcache_stopping")
            if owned_client:
                await client.aclose()
            if owned_store:
                await cache_store.close()
            otel_manager.shutdown()

    app = FastAPI(
        title="crawlcache",
        description="URL fetch cache backed by Redis",
        version=__version__,
        lifespan=lifespan,
    )
    app.state.settings = settings

    app.add_middleware(CorrelationIdMiddleware)
    if settings.OTEL_ENABLED:
        instrument_app(app)

    app.include_router(health_router)
    app.include_router(cache_router)

    @app.exception_handler(CrawlCacheError)
    async def crawlcache_error_handler(request: Request, exc: CrawlCacheError):
        logger.info(
            "request_failed",
            path=request.url.path,
            error_type=type(exc).__name__,
            status_code=exc.status_code,
            error=exc.message,
        )
        return PlainTextResponse(exc.message, status_code=exc.status_code)

    return app
