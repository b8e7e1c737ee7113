"""
Redis Connection Factory

Connection management for the cache store: a bounded, blocking connection
pool that keeps a limited number of idle connections open and recycles
connections that sat idle for too long.
"""

import time
import weakref
from typing import Any, Dict, Optional

import structlog
from redis.asyncio import BlockingConnectionPool, Redis
from redis.asyncio.connection import AbstractConnection

from ...core.config import Settings
from .exceptions import RedisConfigurationException

logger = structlog.get_logger(__name__)


class IdleRecyclingConnectionPool(BlockingConnectionPool):
    """
    Blocking pool with an idle-connection budget.

    - ``max_connections`` bounds the pool; callers wait up to ``timeout``
      seconds for a free connection, then get a ``ConnectionError``.
    - At most ``max_idle`` released connections stay connected; any further
      connection is closed on release and reconnects lazily when reused.
    - A connection idle for longer than ``idle_timeout`` seconds is
      reconnected before being handed out.
    """

    def __init__(self, max_idle: int = 5, idle_timeout: float = 300.0, **kwargs):
        super().__init__(**kwargs)
        self.max_idle = max_idle
        self.idle_timeout = idle_timeout
        self._released_at: "weakref.WeakKeyDictionary[AbstractConnection, float]" = (
            weakref.WeakKeyDictionary()
        )

    async def get_connection(self, *args, **kwargs) -> AbstractConnection:
        connection = await super().get_connection(*args, **kwargs)
        released_at = self._released_at.pop(connection, None)
        if released_at is not None and time.monotonic() - released_at > self.idle_timeout:
            try:
                await connection.disconnect()
                await connection.connect()
            except BaseException:
                await self.release(connection)
                raise
            logger.debug("redis_idle_connection_recycled", idle_timeout=self.idle_timeout)
        return connection

    async def release(self, connection: AbstractConnection) -> None:
        if self.idle_connection_count() >= self.max_idle:
            await connection.disconnect()
            self._released_at.pop(connection, None)
        else:
            self._released_at[connection] = time.monotonic()
        await super().release(connection)

    def idle_connection_count(self) -> int:
        """Released connections that still hold an open socket."""
        return sum(1 for c in self._available_connections if c.is_connected)

    def stats(self) -> Dict[str, Any]:
        return {
            "max_connections": self.max_connections,
            "max_idle": self.max_idle,
            "idle_timeout": self.idle_timeout,
            "created_connections": len(self._available_connections)
            + len(self._in_use_connections),
            "in_use_connections": len(self._in_use_connections),
            "idle_connections": self.idle_connection_count(),
        }


class RedisConnectionFactory:
    """
    Factory for the cache store's Redis client.

    Owns one connection pool. Constructed at the application's composition
    point and passed to the store; there is no module-level instance.
    """

    def __init__(
        self,
        redis_url: str,
        max_connections: int = 20,
        max_idle: int = 5,
        idle_timeout: float = 300.0,
        pool_timeout: float = 5.0,
        socket_timeout: float = 5.0,
        connect_timeout: float = 5.0,
    ):
        self.redis_url = redis_url
        self.max_connections = max_connections
        self.max_idle = max_idle
        self.idle_timeout = idle_timeout
        self.pool_timeout = pool_timeout
        self.socket_timeout = socket_timeout
        self.connect_timeout = connect_timeout
        self._pool: Optional[IdleRecyclingConnectionPool] = None

    @classmethod
    def from_settings(cls, settings: Settings) -> "RedisConnectionFactory":
        return cls(
            redis_url=settings.REDIS_URL,
            max_connections=settings.REDIS_MAX_CONNECTIONS,
            max_idle=settings.REDIS_MAX_IDLE,
            idle_timeout=settings.REDIS_IDLE_TIMEOUT,
            pool_timeout=settings.REDIS_POOL_TIMEOUT,
            socket_timeout=settings.REDIS_SOCKET_TIMEOUT,
            connect_timeout=settings.REDIS_CONNECT_TIMEOUT,
        )

    @property
    def pool(self) -> IdleRecyclingConnectionPool:
        """Connection pool, created on first use. No I/O happens here."""
        if self._pool is None:
            try:
                self._pool = IdleRecyclingConnectionPool.from_url(
                    self.redis_url,
                    max_connections=self.max_connections,
                    timeout=self.pool_timeout,
                    max_idle=self.max_idle,
                    idle_timeout=self.idle_timeout,
                    socket_timeout=self.socket_timeout,
                    socket_connect_timeout=self.connect_timeout,
                    decode_responses=False,
                )
            except ValueError as e:
                raise RedisConfigurationException(
                    message=f"Invalid Redis URL: {e}",
                    config_key="REDIS_URL",
                    original_error=e,
                )
            logger.info(
                "redis_pool_created",
                max_connections=self.max_connections,
                max_idle=self.max_idle,
                idle_timeout=self.idle_timeout,
            )
        return self._pool

    def client(self) -> Redis:
        """Redis client bound to the shared pool.

        Each command borrows a connection and returns it when the reply is read.
        """
        return Redis(connection_pool=self.pool)

    async def close(self) -> None:
        """Close all pooled connections."""
        if self._pool is None:
            return
        await self._pool.disconnect()
        self._pool = None
        logger.info("redis_pool_closed")

    def get_metrics(self) -> Dict[str, Any]:
        if self._pool is None:
            return {"initialized": False}
        return {"initialized": True, **self._pool.stats()}
