"""
crawlcache OpenTelemetry Instrumentation Setup

Distributed tracing for the FastAPI application, the Redis client and the
outbound HTTPX client.

This module provides:
- Resource with service name, version, environment and telemetry project
- Tracer provider with always-on sampling
- OTLP gRPC exporter behind a batch span processor
- Auto-instrumentation for FastAPI, Redis and HTTPX
- Graceful degradation when the collector or an instrumentor is unavailable
"""

from typing import Any, Optional

import structlog
from fastapi import FastAPI
from opentelemetry import baggage, context, trace
from opentelemetry.exporter.otlp.proto.grpc.trace_exporter import OTLPSpanExporter
from opentelemetry.instrumentation.fastapi import FastAPIInstrumentor
from opentelemetry.instrumentation.httpx import HTTPXClientInstrumentor
from opentelemetry.instrumentation.redis import RedisInstrumentor
from opentelemetry.sdk.resources import Resource
from opentelemetry.sdk.trace import TracerProvider
from opentelemetry.sdk.trace.export import BatchSpanProcessor, SpanExporter
from opentelemetry.sdk.trace.sampling import ALWAYS_ON

from .config import Settings

logger = structlog.get_logger(__name__)


class OpenTelemetryManager:
    """
    Manages OpenTelemetry instrumentation lifecycle.

    Handles initialization, configuration, and cleanup of the tracer provider
    and instrumentors. A failure here never prevents the service from serving.
    """

    def __init__(self):
        self._initialized = False
        self._tracer_provider: Optional[TracerProvider] = None
        self._instrumented: list = []

    @property
    def initialized(self) -> bool:
        return self._initialized

    def initialize(self, settings: Settings) -> bool:
        """
        Initialize OpenTelemetry instrumentation.

        Returns:
            True if initialization successful, False otherwise
        """
        if self._initialized:
            logger.warning("otel_already_initialized")
            return True

        if not settings.OTEL_ENABLED:
            logger.info("otel_disabled")
            return False

        try:
            resource = Resource.create(settings.resource_attributes)
            self._tracer_provider = TracerProvider(resource=resource, sampler=ALWAYS_ON)
            self._tracer_provider.add_span_processor(
                BatchSpanProcessor(
                    self._create_span_exporter(settings),
                    max_queue_size=2048,
                    max_export_batch_size=512,
                    schedule_delay_millis=5000,
                )
            )
            trace.set_tracer_provider(self._tracer_provider)

            self._setup_auto_instrumentation()

            self._initialized = True
            logger.info(
                "otel_initialized",
                service_name=settings.OTEL_SERVICE_NAME,
                service_version=settings.OTEL_SERVICE_VERSION,
                endpoint=settings.OTEL_EXPORTER_OTLP_ENDPOINT,
                instrumented=self._instrumented,
            )
            return True

        except Exception as e:
            logger.error("otel_initialization_failed", error=str(e), exc_info=True)
            return False

    def shutdown(self) -> None:
        """Flush pending spans and uninstrument libraries."""
        if not self._initialized:
            return

        try:
            for name in self._instrumented:
                if name == "Redis":
                    RedisInstrumentor().uninstrument()
                elif name == "HTTPX":
                    HTTPXClientInstrumentor().uninstrument()
            self._instrumented = []

            if self._tracer_provider:
                self._tracer_provider.shutdown()

            self._initialized = False
            logger.info("otel_shutdown_completed")

        except Exception as e:
            logger.error("otel_shutdown_failed", error=str(e), exc_info=True)

    def _create_span_exporter(self, settings: Settings) -> SpanExporter:
        endpoint = settings.OTEL_EXPORTER_OTLP_ENDPOINT
        # gRPC exporter wants host:port
        if endpoint.startswith("http://"):
            endpoint = endpoint[len("http://") :]
        return OTLPSpanExporter(endpoint=endpoint, insecure=True, timeout=30)

    def _setup_auto_instrumentation(self) -> None:
        """Set up auto-instrumentation for client libraries."""
        try:
            RedisInstrumentor().instrument()
            self._instrumented.append("Redis")
        except Exception as e:
            logger.warning("otel_instrument_failed", library="Redis", error=str(e))

        try:
            HTTPXClientInstrumentor().instrument()
            self._instrumented.append("HTTPX")
        except Exception as e:
            logger.warning("otel_instrument_failed", library="HTTPX", error=str(e))


# Process-wide manager; the tracer provider it installs is global state in OTel
otel_manager = OpenTelemetryManager()


def instrument_app(app: FastAPI) -> bool:
    """
    Attach FastAPI server instrumentation.

    Must run before the application starts, since it adds middleware. Spans are
    created through the global provider, so they are exported once
    ``otel_manager.initialize`` has installed it.
    """
    try:
        FastAPIInstrumentor.instrument_app(app, excluded_urls="health")
        return True
    except Exception as e:
        logger.warning("otel_instrument_failed", library="FastAPI", error=str(e))
        return False


def add_span_attribute(key: str, value: Any) -> None:
    """
    Add attribute to current span.

    Args:
        key: Attribute key
        value: Attribute value
    """
    span = trace.get_current_span()
    if span and span.is_recording():
        span.set_attribute(key, value)


def set_correlation_id(correlation_id: str) -> object:
    """
    Set correlation ID on the current span and in baggage.

    Returns:
        Context token to pass to ``reset_correlation_id``
    """
    add_span_attribute("correlation_id", correlation_id)
    return context.attach(baggage.set_baggage("correlation_id", correlation_id))


def reset_correlation_id(token: object) -> None:
    context.detach(token)


def get_correlation_id() -> Optional[str]:
    """Get correlation ID from the current context."""
    value = baggage.get_baggage("correlation_id")
    return str(value) if value is not None else None
