"""
Cache Value Objects

Immutable value objects for the crawl cache: physical keys, expiry, and the
outcome of a cache lookup.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Union

DEFAULT_NAMESPACE = "crawled"


@dataclass(frozen=True)
class CacheKey:
    """
    Immutable cache key value object.

    A key is a URL scoped to a logical namespace; the physical Redis key is
    ``<namespace>:<url>``.
    """

    namespace: str
    url: str

    def __post_init__(self) -> None:
        """Validate cache key parts."""
        if not self.namespace:
            raise ValueError("Cache namespace cannot be empty")
        if ":" in self.namespace:
            raise ValueError("Cache namespace cannot contain ':'")

    @classmethod
    def crawled(cls, url: str, namespace: str = DEFAULT_NAMESPACE) -> "CacheKey":
        """Create the key under which a fetched URL body is stored."""
        return cls(namespace=namespace, url=url)

    @property
    def value(self) -> str:
        return f"{self.namespace}:{self.url}"

    def __str__(self) -> str:
        return self.value


@dataclass(frozen=True)
class TTL:
    """
    Time To Live value object for cache expiration.
    """

    total_seconds: int

    def __post_init__(self) -> None:
        """Validate TTL value."""
        if self.total_seconds <= 0:
            raise ValueError("TTL must be positive")
        if self.total_seconds > 86400 * 365:  # Max 1 year
            raise ValueError("TTL too large (max 1 year)")

    @classmethod
    def seconds(cls, seconds: int) -> "TTL":
        return cls(seconds)

    @classmethod
    def hours(cls, hours: int) -> "TTL":
        return cls(hours * 3600)

    @classmethod
    def crawled(cls) -> "TTL":
        """Fetched bodies TTL (3 hours)."""
        return cls.hours(3)

    def __str__(self) -> str:
        return f"{self.total_seconds}s"


class CacheErrorKind(str, Enum):
    """Why a cache lookup could not produce an answer."""

    CONNECTION = "connection"
    TIMEOUT = "timeout"
    POOL_EXHAUSTED = "pool_exhausted"
    UNEXPECTED = "unexpected"


@dataclass(frozen=True)
class CacheHit:
    payload: bytes


@dataclass(frozen=True)
class CacheMiss:
    pass


@dataclass(frozen=True)
class CacheError:
    kind: CacheErrorKind
    message: str


CacheResult = Union[CacheHit, CacheMiss, CacheError]
