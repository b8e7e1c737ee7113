"""
Correlation ID Middleware

Correlation ID management for request tracking. Each request gets the ID sent
by the caller (if it looks sane) or a fresh UUID v4; the ID is bound to log
events and OpenTelemetry baggage and echoed back in the response headers.
Unhandled exceptions are turned into a 500 JSON response here, while the ID is
still bound, so the error body and headers carry it.
"""

import re
import uuid
from datetime import datetime, timezone
from typing import Awaitable, Callable, Optional

import structlog
from fastapi import Request
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.responses import Response
from starlette.types import ASGIApp

from .telemetry import get_correlation_id, reset_correlation_id, set_correlation_id

logger = structlog.get_logger(__name__)

_CANDIDATE_HEADERS = (
    "x-correlation-id",
    "correlation-id",
    "x-request-id",
    "request-id",
)
_VALID_ID = re.compile(r"^[a-zA-Z0-9\-_\.]{8,255}$")


class CorrelationIdMiddleware(BaseHTTPMiddleware):
    """
    Middleware for managing correlation IDs in HTTP requests.
    """

    def __init__(self, app: ASGIApp, header_name: str = "x-correlation-id"):
        super().__init__(app)
        self.header_name = header_name.lower()

    async def dispatch(
        self,
        request: Request,
        call_next: Callable[[Request], Awaitable[Response]],
    ) -> Response:
        correlation_id = self._extract_from_headers(request)
        if correlation_id is None or not _VALID_ID.match(correlation_id):
            correlation_id = str(uuid.uuid4())

        token = set_correlation_id(correlation_id)
        structlog.contextvars.bind_contextvars(correlation_id=correlation_id)

        logger.debug(
            "request_started",
            method=request.method,
            path=request.url.path,
            client_host=request.client.host if request.client else None,
        )

        try:
            try:
                response = await call_next(request)
            except Exception as exc:
                logger.error(
                    "unhandled_exception",
                    path=request.url.path,
                    method=request.method,
                    error=str(exc),
                    exc_info=exc,
                )
                response = internal_error_response()
            response.headers[self.header_name] = correlation_id
            logger.debug("request_completed", status_code=response.status_code)
            return response
        finally:
            structlog.contextvars.unbind_contextvars("correlation_id")
            reset_correlation_id(token)

    def _extract_from_headers(self, request: Request) -> Optional[str]:
        for header_name in _CANDIDATE_HEADERS:
            value = request.headers.get(header_name, "").strip()
            if value:
                return value
        return None


def internal_error_response() -> JSONResponse:
    """500 body for an unhandled exception; call while the request id is bound."""
    error_response = {
        "error": "Internal server error",
        "message": "An unexpected error occurred",
        "timestamp": datetime.now(timezone.utc).isoformat(),
    }
    correlation_id = get_correlation_id()
    if correlation_id:
        error_response["correlation_id"] = correlation_id
    return JSONResponse(status_code=500, content=error_response)
