"""Redis epoch cache for medtopics.

Entries live under ``{prefix}{epoch}:{key}`` with a Redis TTL. The
current epoch is a shared counter at ``{prefix}epoch``; invalidation
is a single ``INCR`` visible to every process using the same Redis.
"""

import json
from typing import Any

from medtopics.infra.redis.client import RedisClient
from medtopics.interfaces.cache import MISS, CacheInterface
from medtopics.logging import get_logger

__all__ = [
    "RedisEpochCache",
]

logger = get_logger(__name__)


class RedisEpochCache(CacheInterface):
    """Redis implementation of CacheInterface.

    Values must be JSON-serialisable. Behaves as an always-miss cache
    while Redis is unavailable.
    """

    def __init__(self, redis_client: RedisClient, prefix: str | None = None) -> None:
        """Initialize the cache.

        Args:
            redis_client: Redis client instance
            prefix: Key prefix (default: the client's configured prefix)
        """
        self._redis = redis_client
        self._prefix = prefix if prefix is not None else redis_client.key_prefix

    @property
    def _epoch_key(self) -> str:
        return f"{self._prefix}epoch"

    async def current_epoch(self) -> int:
        raw = await self._redis.get(self._epoch_key)
        try:
            return int(raw) if raw is not None else 0
        except ValueError:
            logger.warning("redis_cache_corrupt_epoch", value=raw)
            return 0

    async def get(self, key: str, epoch: int | None = None) -> Any:
        if not self._redis.is_connected:
            return MISS

        if epoch is None:
            epoch = await self.current_epoch()
        cached = await self._redis.get(f"{self._prefix}{epoch}:{key}")
        if cached is None:
            return MISS

        try:
            return json.loads(cached)
        except json.JSONDecodeError:
            logger.debug("redis_cache_corrupt_entry", key=key)
            return MISS

    async def set(self, key: str, value: Any, ttl: int, epoch: int | None = None) -> None:
        if not self._redis.is_connected:
            return

        # An outdated epoch lands under a key no reader looks up again.
        if epoch is None:
            epoch = await self.current_epoch()
        await self._redis.set(f"{self._prefix}{epoch}:{key}", json.dumps(value), ex=ttl)

    async def invalidate(self) -> None:
        epoch = await self._redis.incr(self._epoch_key)
        if epoch is None:
            logger.warning(
                "cache_invalidation_failed",
                backend="redis",
                reason="Redis unavailable, entries expire by TTL",
            )
            return
        logger.info("cache_invalidated", backend="redis", epoch=epoch)
