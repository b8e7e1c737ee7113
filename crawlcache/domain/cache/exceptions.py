"""
Cache Store Exceptions

Store-neutral failure raised by ``CacheStore.set`` and ``CacheStore.delete``.
Backends subclass it with their own detail.
"""


class CacheStoreError(Exception):
    """A cache store could not complete a write or delete."""

    def __init__(self, message: str, error_code: str = "CACHE_STORE_ERROR"):
        self.message = message
        self.error_code = error_code
        super().__init__(message)
