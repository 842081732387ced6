"""
Redis caching layer for the Symptoms Service.
"""

from typing import Optional

import redis.asyncio as redis
from redis.exceptions import RedisError

from shared.logging import get_logger
from shared.errors import CacheError


class RedisCache:
    """Thin key/value client over Redis with per-key TTL.

    Every command either succeeds or raises ``CacheError``; callers decide
    how to absorb the failure.
    """

    def __init__(self, redis_url: str):
        self.redis_url = redis_url
        self.logger = get_logger("symptoms.cache.redis")
        self.redis: Optional[redis.Redis] = None

    async def start(self):
        """Start the Redis cache."""
        try:
            self.redis = redis.from_url(
                self.redis_url,
                encoding="utf-8",
                decode_responses=True,
                socket_connect_timeout=5,
                socket_timeout=5,
                health_check_interval=30
            )

            await self.redis.ping()

            self.logger.info("Redis cache started")

        except (RedisError, OSError) as e:
            # Commands raise CacheError until Redis becomes reachable.
            self.logger.warning("Redis cache unavailable at startup", error=str(e))

    async def stop(self):
        """Stop the Redis cache."""
        if self.redis is not None:
            await self.redis.aclose()
            self.redis = None
            self.logger.info("Redis cache stopped")

    def _client(self) -> redis.Redis:
        if self.redis is None:
            raise CacheError("Redis cache not started")
        return self.redis

    async def get(self, key: str) -> Optional[str]:
        """Return the cached value, or None when the key is absent or expired."""
        client = self._client()
        try:
            return await client.get(key)
        except (RedisError, OSError) as e:
            raise CacheError("Cache get failed", details={"key": key, "error": str(e)}) from e
        except UnicodeDecodeError as e:
            raise CacheError("Cache entry is not valid UTF-8", details={"key": key, "error": str(e)}) from e

    async def set(self, key: str, value: str, ttl_seconds: int) -> None:
        """Store a value that expires after ``ttl_seconds``."""
        client = self._client()
        try:
            await client.setex(key, ttl_seconds, value)
        except (RedisError, OSError) as e:
            raise CacheError("Cache set failed", details={"key": key, "error": str(e)}) from e

    async def delete(self, key: str) -> None:
        """Delete a key. Deleting an absent key is not an error."""
        client = self._client()
        try:
            await client.delete(key)
        except (RedisError, OSError) as e:
            raise CacheError("Cache delete failed", details={"key": key, "error": str(e)}) from e

    async def health_check(self) -> bool:
        """Check Redis health."""
        if self.redis is None:
            return False
        try:
            await self.redis.ping()
            return True
        except (RedisError, OSError):
            return False
