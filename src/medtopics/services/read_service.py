"""Cached read access to accepted topics.

Every read path is fronted by the cache, keyed by its full parameter
tuple. Hits are kept for the positive TTL; a name lookup that finds
nothing is cached as ``None`` for the shorter negative TTL.
"""

from collections.abc import Awaitable, Callable
from typing import Any

from medtopics.interfaces.cache import MISS, CacheInterface
from medtopics.interfaces.storage import TopicReadSource
from medtopics.logging import get_logger
from medtopics.models.topic import Topic, TopicTypeSummary

__all__ = [
    "CacheKeys",
    "TopicReadService",
]

logger = get_logger(__name__)


def _norm(value: str | None) -> str:
    return value.lower() if value else ""


class CacheKeys:
    """Cache key builders; every component is lower-cased."""

    TYPES = "topics:types"

    @staticmethod
    def all(skip: int, take: int, topic_type: str | None) -> str:
        return f"topics:all:{skip}:{take}:{_norm(topic_type)}"

    @staticmethod
    def count(topic_type: str | None) -> str:
        return f"topics:count:{_norm(topic_type)}"

    @staticmethod
    def by_name(name: str) -> str:
        return f"topics:name:{name.lower()}"

    @staticmethod
    def search(query: str, skip: int, take: int, topic_type: str | None) -> str:
        return f"topics:search:{query.lower()}:{skip}:{take}:{_norm(topic_type)}"

    @staticmethod
    def search_count(query: str, topic_type: str | None) -> str:
        return f"topics:searchcount:{query.lower()}:{_norm(topic_type)}"


class TopicReadService:
    """Read repository for topics, fronted by an epoch cache.

    Cached values are JSON-compatible (topic dumps, ints, lists) so the
    same service works over the in-process and Redis caches.
    """

    def __init__(
        self,
        source: TopicReadSource,
        cache: CacheInterface,
        ttl_seconds: int = 600,
        negative_ttl_seconds: int = 120,
    ) -> None:
        """Initialize read service.

        Args:
            source: Uncached read source
            cache: Cache backend
            ttl_seconds: TTL for found results
            negative_ttl_seconds: TTL for not-found name lookups
        """
        self._source = source
        self._cache = cache
        self._ttl = ttl_seconds
        self._negative_ttl = negative_ttl_seconds

    async def _cached(
        self,
        key: str,
        load: Callable[[], Awaitable[Any]],
    ) -> Any:
        epoch = await self._cache.current_epoch()
        cached = await self._cache.get(key, epoch)
        if cached is not MISS:
            return cached
        value = await load()
        ttl = self._negative_ttl if value is None else self._ttl
        await self._cache.set(key, value, ttl, epoch)
        return value

    async def list_topics(
        self,
        skip: int = 0,
        take: int = 50,
        topic_type: str | None = None,
    ) -> list[Topic]:
        async def load() -> list[dict[str, Any]]:
            topics = await self._source.fetch_page(skip, take, topic_type)
            return [t.model_dump(mode="json") for t in topics]

        rows = await self._cached(CacheKeys.all(skip, take, topic_type), load)
        return [Topic.model_validate(row) for row in rows]

    async def count(self, topic_type: str | None = None) -> int:
        return await self._cached(
            CacheKeys.count(topic_type),
            lambda: self._source.count_topics(topic_type),
        )

    async def get_by_name(self, name: str) -> Topic | None:
        async def load() -> dict[str, Any] | None:
            topic = await self._source.find_by_name(name)
            return topic.model_dump(mode="json") if topic else None

        row = await self._cached(CacheKeys.by_name(name), load)
        return Topic.model_validate(row) if row is not None else None

    async def search(
        self,
        query: str,
        skip: int = 0,
        take: int = 50,
        topic_type: str | None = None,
    ) -> list[Topic]:
        async def load() -> list[dict[str, Any]]:
            topics = await self._source.fetch_page(skip, take, topic_type, query=query)
            return [t.model_dump(mode="json") for t in topics]

        rows = await self._cached(CacheKeys.search(query, skip, take, topic_type), load)
        return [Topic.model_validate(row) for row in rows]

    async def search_count(self, query: str, topic_type: str | None = None) -> int:
        return await self._cached(
            CacheKeys.search_count(query, topic_type),
            lambda: self._source.count_topics(topic_type, query=query),
        )

    async def distinct_types(self) -> list[TopicTypeSummary]:
        async def load() -> list[dict[str, Any]]:
            return [s.model_dump() for s in await self._source.distinct_type_counts()]

        rows = await self._cached(CacheKeys.TYPES, load)
        return [TopicTypeSummary.model_validate(row) for row in rows]

    async def invalidate_cache(self) -> None:
        """Expire every cached read immediately."""
        await self._cache.invalidate()
