"""
Redis connection - shared rate-limit counters
"""

from typing import Optional

import redis.asyncio as redis_async
from loguru import logger
from redis.asyncio.connection import ConnectionPool
from redis.exceptions import RedisError

LOG_PREFIX = "[Redis]"


class RedisClient:
    """
    Redis client wrapper.

    A failed connection leaves the client unavailable instead of raising, and
    the app starts in degraded mode (per-process rate limits).
    """

    def __init__(self, url: Optional[str], pool_size: int = 10):
        self.url = url
        self.pool_size = pool_size
        self._pool: Optional[ConnectionPool] = None
        self._client: Optional[redis_async.Redis] = None
        self._is_available = False

    async def init(self) -> None:
        """Initialize connection pool"""
        if not self.url or self._pool:
            return
        try:
            self._pool = ConnectionPool.from_url(
                self.url,
                max_connections=self.pool_size,
                decode_responses=True,
            )
            self._client = redis_async.Redis(connection_pool=self._pool)
            await self._client.ping()
            self._is_available = True
            logger.info(f"{LOG_PREFIX} Connected")
        except (RedisError, OSError) as e:
            self._is_available = False
            logger.warning(f"{LOG_PREFIX} Connection failed, rate limits stay per-process: {e}")

    async def close(self) -> None:
        if self._client:
            await self._client.aclose()
            self._client = None
        if self._pool:
            await self._pool.disconnect()
            self._pool = None
        self._is_available = False

    @property
    def client(self) -> Optional[redis_async.Redis]:
        return self._client

    def is_available(self) -> bool:
        return self._is_available

