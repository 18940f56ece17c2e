"""
Redis backend for the key-value store.
"""

from typing import Optional

import redis.asyncio as redis

from shared.logging import get_logger
from .base import KeyValueStore


class RedisStore(KeyValueStore):
    """Key-value store backed by Redis."""

    def __init__(self, redis_url: str, connect_timeout: float = 5.0, socket_timeout: float = 3.0):
        self.redis_url = redis_url
        self.connect_timeout = connect_timeout
        self.socket_timeout = socket_timeout
        self.logger = get_logger("geocoding.store.redis")
        self.redis: Optional[redis.Redis] = None

    def _client(self) -> redis.Redis:
        if self.redis is None:
            self.redis = redis.from_url(
                self.redis_url,
                encoding="utf-8",
                decode_responses=True,
                socket_connect_timeout=self.connect_timeout,
                socket_timeout=self.socket_timeout,
                retry_on_timeout=True,
                health_check_interval=30
            )
        return self.redis

    async def start(self):
        """Connect to Redis.

        A failed ping is logged but not raised: the client reconnects on the
        next command, and callers degrade while the store is down.
        """
        client = self._client()
        try:
            await client.ping()
            self.logger.info("Redis store connected", redis_url=self.redis_url)
        except Exception as e:
            self.logger.error("Redis store unreachable at startup", error=str(e))

    async def stop(self):
        """Close the Redis connection pool."""
        if self.redis:
            await self.redis.aclose()
            self.redis = None
            self.logger.info("Redis store stopped")

    async def ping(self) -> bool:
        try:
            return bool(await self._client().ping())
        except Exception as e:
            self.logger.warning("Redis ping failed", error=str(e))
            return False

    async def get(self, key: str) -> Optional[str]:
        return await self._client().get(key)

    async def set_with_ttl(self, key: str, value: str, ttl_seconds: int) -> None:
        if ttl_seconds > 0:
            await self._client().setex(key, ttl_seconds, value)
        else:
            await self._client().set(key, value)

    async def delete(self, key: str) -> None:
        await self._client().delete(key)

    async def exists(self, key: str) -> bool:
        return await self._client().exists(key) == 1
