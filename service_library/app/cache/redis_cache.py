"""
Redis caching layer for Library Service.
"""

from typing import Optional, Type, TypeVar

import redis.asyncio as redis
from pydantic import BaseModel, ValidationError as ModelValidationError

from shared.logging import get_logger
from shared.errors import StoreError
from shared.metrics import MetricsCollector

from .policy import namespace_of


M = TypeVar("M", bound=BaseModel)


class RedisCache:
    """Redis cache-aside store; values are pydantic models serialized as JSON."""

    def __init__(self, redis_url: str, key_prefix: str = "library:", metrics: Optional[MetricsCollector] = None):
        self.redis_url = redis_url
        self.key_prefix = key_prefix
        self.metrics = metrics
        self.logger = get_logger("library.cache.redis")
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
                retry_on_timeout=True,
                health_check_interval=30
            )

            await self.redis.ping()

            self.logger.info("Redis cache started")

        except Exception as e:
            self.logger.error("Failed to start Redis cache", error=str(e))
            raise StoreError(f"Redis start failed: {e}")

    async def stop(self):
        """Stop the Redis cache."""
        if self.redis:
            await self.redis.aclose()
            self.logger.info("Redis cache stopped")

    async def get(self, key: str, model: Type[M]) -> Optional[M]:
        """Return the cached value for key, or None on miss or unreadable entry."""
        try:
            cached_data = await self.redis.get(self._full_key(key))
        except Exception as e:
            self.logger.error("Error reading cache", cache_key=key, error=str(e))
            self._record(key, hit=False)
            return None

        if not cached_data:
            self._record(key, hit=False)
            return None

        try:
            value = model.model_validate_json(cached_data)
        except ModelValidationError as e:
            self.logger.warning("Discarding unreadable cache entry", cache_key=key, error=str(e))
            self._record(key, hit=False)
            return None

        self.logger.debug("Cache hit", cache_key=key)
        self._record(key, hit=True)
        return value

    async def set(self, key: str, value: BaseModel, ttl_seconds: int) -> bool:
        """Cache value under key for ttl_seconds."""
        try:
            await self.redis.setex(
                self._full_key(key),
                ttl_seconds,
                value.model_dump_json()
            )

            self.logger.debug("Cached value", cache_key=key, ttl=ttl_seconds)
            return True

        except Exception as e:
            self.logger.error("Error writing cache", cache_key=key, error=str(e))
            return False

    async def remove(self, key: str) -> bool:
        """Drop key from the cache."""
        try:
            await self.redis.delete(self._full_key(key))
            self.logger.debug("Invalidated cache entry", cache_key=key)
            return True

        except Exception as e:
            self.logger.error("Error invalidating cache", cache_key=key, error=str(e))
            return False

    def _full_key(self, key: str) -> str:
        return f"{self.key_prefix}{key}"

    def _record(self, key: str, hit: bool):
        if self.metrics is None:
            return
        self.metrics.record_cache_lookup(namespace_of(key), hit)

    async def health_check(self) -> bool:
        """Check Redis health."""
        try:
            await self.redis.ping()
            return True
        except Exception:
            return False
