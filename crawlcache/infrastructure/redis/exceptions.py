"""
Redis Infrastructure Exceptions

Exceptions raised by the cache store. Underlying redis-py errors are chained
as ``__cause__`` so the original context survives into logs.
"""

from typing import Any, Dict, Optional

from ...domain.cache.exceptions import CacheStoreError


class RedisException(CacheStoreError):
    """Base exception for Redis-related errors.

    All store operations raise this or its subclasses.
    """

    def __init__(
        self,
        message: str,
        error_code: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
        original_error: Optional[Exception] = None,
    ):
        super().__init__(message, error_code or "REDIS_ERROR")
        self.details = details or {}
        if original_error is not None:
            self.details.setdefault("original_error", str(original_error))
            self.details.setdefault(
                "original_error_type", type(original_error).__name__
            )
            self.__cause__ = original_error


class RedisConnectionException(RedisException):
    """Raised when Redis connection fails or is lost."""

    def __init__(
        self,
        message: str = "Redis connection failed",
        original_error: Optional[Exception] = None,
    ):
        super().__init__(
            message=message,
            error_code="REDIS_CONNECTION_ERROR",
            original_error=original_error,
        )


class RedisOperationTimeoutException(RedisException):
    """Raised when Redis operation times out."""

    def __init__(
        self,
        operation: str,
        key: Optional[str] = None,
        original_error: Optional[Exception] = None,
    ):
        details = {"operation": operation}
        if key:
            details["key"] = key

        super().__init__(
            message=f"Redis operation '{operation}' timed out",
            error_code="REDIS_TIMEOUT_ERROR",
            details=details,
            original_error=original_error,
        )


class RedisPoolExhaustedException(RedisException):
    """Raised when no pooled connection became free in time."""

    def __init__(
        self,
        max_connections: int,
        timeout_seconds: float,
        original_error: Optional[Exception] = None,
    ):
        details = {"max_connections": max_connections, "timeout_seconds": timeout_seconds}

        super().__init__(
            message=(
                f"Redis connection pool exhausted: no connection free after "
                f"{timeout_seconds}s ({max_connections} max)"
            ),
            error_code="REDIS_POOL_EXHAUSTED",
            details=details,
            original_error=original_error,
        )


class RedisConfigurationException(RedisException):
    """Raised when Redis configuration is invalid."""

    def __init__(
        self,
        message: str,
        config_key: Optional[str] = None,
        config_value: Optional[Any] = None,
        original_error: Optional[Exception] = None,
    ):
        details = {}
        if config_key:
            details["config_key"] = config_key
        if config_value is not None:
            details["config_value"] = str(config_value)

        super().__init__(
            message=message,
            error_code="REDIS_CONFIGURATION_ERROR",
            details=details,
            original_error=original_error,
        )
