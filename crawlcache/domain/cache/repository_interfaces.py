"""
Cache Store Interface

Contract the fetch orchestrator relies on. Implementations own the persisted
bytes; the orchestrator only holds a reference.
"""

from abc import ABC, abstractmethod

from .value_objects import TTL, CacheKey, CacheResult


class CacheStore(ABC):
    """
    Key-value store with per-entry expiry.

    ``get`` never raises for store failures; it returns ``CacheError`` so that
    an unreachable store stays distinguishable from an absent key.
    ``set`` and ``delete`` raise ``CacheStoreError`` on failure.
    """

    @abstractmethod
    async def get(self, key: CacheKey) -> CacheResult:
        """Return the stored payload, a miss, or the reason lookup failed."""

    @abstractmethod
    async def set(self, key: CacheKey, value: bytes, ttl: TTL) -> None:
        """Store ``value`` under ``key`` for ``ttl``, replacing any prior value."""

    @abstractmethod
    async def delete(self, key: CacheKey) -> None:
        """Remove ``key``; removing an absent key is not an error."""
