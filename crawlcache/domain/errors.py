"""
Request-level errors raised by the fetch orchestrator.

Each class maps to one HTTP status at the API boundary; the message is sent to
the caller as the response body.
"""

from typing import Optional


class CrawlCacheError(Exception):
    """Base exception for failures reported to the caller."""

    status_code = 400

    def __init__(self, message: str, original_error: Optional[Exception] = None):
        self.message = message
        super().__init__(message)
        if original_error is not None:
            self.__cause__ = original_error


class InvalidRequestError(CrawlCacheError):
    """Request body could not be parsed into the expected shape."""

    status_code = 422


class StoreError(CrawlCacheError):
    """Cache store was unreachable or rejected the operation."""


class FetchError(CrawlCacheError):
    """Origin fetch failed, or its result could not be cached."""
