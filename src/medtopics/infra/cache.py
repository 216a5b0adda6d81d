"""In-process epoch cache for medtopics.

Entries are tagged with the epoch their load started in. Advancing
the epoch expires every entry at once without enumerating keys.
"""

import time
from collections.abc import Callable
from typing import Any

from medtopics.interfaces.cache import MISS, CacheInterface
from medtopics.logging import get_logger

__all__ = [
    "EpochCache",
]

logger = get_logger(__name__)


class EpochCache(CacheInterface):
    """Process-local implementation of CacheInterface.

    Used when Redis is not configured or unreachable. A read is valid
    only when the entry's epoch equals the current epoch and its TTL
    has not elapsed.
    """

    def __init__(self, clock: Callable[[], float] = time.monotonic) -> None:
        """Initialize an empty cache.

        Args:
            clock: Monotonic clock in seconds, injectable for tests
        """
        self._clock = clock
        self._epoch = 0
        self._entries: dict[str, tuple[int, float, Any]] = {}

    @property
    def epoch(self) -> int:
        return self._epoch

    async def current_epoch(self) -> int:
        return self._epoch

    async def get(self, key: str, epoch: int | None = None) -> Any:
        entry = self._entries.get(key)
        if entry is None:
            return MISS
        entry_epoch, expires_at, value = entry
        if entry_epoch != self._epoch or self._clock() >= expires_at:
            del self._entries[key]
            return MISS
        if epoch is not None and epoch != entry_epoch:
            return MISS
        return value

    async def set(self, key: str, value: Any, ttl: int, epoch: int | None = None) -> None:
        if epoch is not None and epoch != self._epoch:
            logger.debug("cache_write_skipped", key=key, epoch=epoch, current=self._epoch)
            return
        self._entries[key] = (self._epoch, self._clock() + ttl, value)

    async def invalidate(self) -> None:
        self._epoch += 1
        # Entries from older epochs can never be read again.
        self._entries.clear()
        logger.info("cache_invalidated", backend="memory", epoch=self._epoch)
