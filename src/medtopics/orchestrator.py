"""MedTopics orchestrator for the topic knowledge base.

This module provides the main entry point for the medtopics package:
it wires storage, classifier, providers and the read cache into the
ingestion, refresh and read services.
"""

import asyncio
from collections.abc import Awaitable, Callable, Sequence
from datetime import datetime
from typing import Any, TypeVar

from medtopics.config import MedTopicsConfig
from medtopics.errors import NotConnectedError
from medtopics.infra.cache import EpochCache
from medtopics.infra.redis import RedisClient, RedisEpochCache
from medtopics.interfaces.cache import CacheInterface
from medtopics.interfaces.classifier import ClassifierInterface
from medtopics.interfaces.provider import DataProviderInterface
from medtopics.interfaces.storage import TopicStoreInterface
from medtopics.logging import get_logger
from medtopics.models.results import IngestionResult, RefreshResult
from medtopics.models.topic import Topic, TopicTypeSummary
from medtopics.services.backfill import BackfillService
from medtopics.services.ingestion import IngestionService
from medtopics.services.read_service import TopicReadService
from medtopics.services.refresh import RefreshService

__all__ = ["MedTopics"]

logger = get_logger(__name__)

R = TypeVar("R")


class MedTopics:
    """Main orchestrator for the medical topic knowledge base.

    Accepts implementation classes. Config is loaded from .env automatically.
    For custom implementations, set config_class = None and pass custom_config dict.

    Ingestion and refresh are single-flight per instance: a trigger that
    arrives while the same job is running is skipped and returns None.
    A trigger for the other job waits until the running one finishes.

    Example:
        async with MedTopics(
            store_class=MongoTopicStore,
            classifier_class=OpenAIClassifier,
            providers=[MedlinePlusProvider()],
        ) as mt:
            result = await mt.run_ingestion()
            topics = await mt.search("asthma")
    """

    def __init__(
        self,
        store_class: type[TopicStoreInterface],
        classifier_class: type[ClassifierInterface],
        providers: Sequence[DataProviderInterface],
        *,
        store_custom_config: dict[str, Any] | None = None,
        classifier_custom_config: dict[str, Any] | None = None,
        config: MedTopicsConfig | None = None,
        cache: CacheInterface | None = None,
        now: Callable[[], datetime] | None = None,
    ) -> None:
        """Initialize MedTopics with implementation classes.

        Args:
            store_class: Topic store implementation class
            classifier_class: Classifier implementation class
            providers: Data provider instances, queried in order
            store_custom_config: Custom config dict if store_class.config_class is None
            classifier_custom_config: Custom config dict if classifier_class.config_class is None
            config: Settings override (defaults to loading from .env)
            cache: Cache override (defaults to Redis when configured, else in-process)
            now: Clock override for the pipeline services
        """
        self._config = config or MedTopicsConfig()

        self._store_class = store_class
        self._classifier_class = classifier_class
        self._providers = list(providers)

        self._store_custom_config = store_custom_config
        self._classifier_custom_config = classifier_custom_config
        self._cache_override = cache
        self._now = now

        # Instances (created on connect)
        self._store: TopicStoreInterface | None = None
        self._classifier: ClassifierInterface | None = None
        self._redis: RedisClient | None = None
        self._cache: CacheInterface | None = None

        # Services (wired on connect)
        self._reads: TopicReadService | None = None
        self._ingestion: IngestionService | None = None
        self._refresh: RefreshService | None = None

        self._job_locks = {"ingestion": asyncio.Lock(), "refresh": asyncio.Lock()}
        # Both jobs mutate the same store, so their runs never interleave.
        self._store_lock = asyncio.Lock()
        self._connected = False

    async def _instantiate_class(
        self,
        cls: type,
        custom_config: dict[str, Any] | None,
    ) -> Any:
        """Instantiate an implementation class.

        If cls.config_class is set, instantiate config (loads from .env).
        If cls.config_class is None, use custom_config dict.
        """
        config_class = getattr(cls, "config_class", None)

        if config_class is None:
            if custom_config is None:
                raise ValueError(
                    f"{cls.__name__} has config_class=None but no custom_config provided"
                )
            return await cls.from_dict(custom_config)
        if custom_config is not None:
            return await cls.from_dict(custom_config)
        return await cls.from_config(config_class())

    async def _create_cache(self) -> CacheInterface:
        if self._cache_override is not None:
            return self._cache_override
        if self._config.redis_enabled:
            self._redis = RedisClient(self._config.redis)
            if await self._redis.connect():
                return RedisEpochCache(self._redis)
            self._redis = None
            logger.warning("redis_cache_unavailable", fallback="memory")
        return EpochCache()

    async def _connect(self) -> None:
        """Initialize connections and services."""
        if self._connected:
            return

        self._store = await self._instantiate_class(self._store_class, self._store_custom_config)
        self._classifier = await self._instantiate_class(
            self._classifier_class, self._classifier_custom_config
        )
        self._cache = await self._create_cache()

        pipeline = self._config.pipeline
        clock: dict[str, Any] = {"now": self._now} if self._now is not None else {}

        self._reads = TopicReadService(
            self._store,
            self._cache,
            ttl_seconds=pipeline.cache_ttl_seconds,
            negative_ttl_seconds=pipeline.negative_cache_ttl_seconds,
        )
        backfill = BackfillService(self._store, self._classifier)
        self._ingestion = IngestionService(
            self._providers,
            self._store,
            self._classifier,
            backfill,
            self._reads,
            settings=pipeline,
            **clock,
        )
        self._refresh = RefreshService(
            self._providers,
            self._store,
            self._classifier,
            backfill,
            self._reads,
            settings=pipeline,
            **clock,
        )

        self._connected = True
        logger.info("medtopics_connected", providers=[p.source_name for p in self._providers])

    async def _disconnect(self) -> None:
        """Close all connections."""
        if self._store and hasattr(self._store, "close"):
            await self._store.close()
        if self._classifier and hasattr(self._classifier, "close"):
            await self._classifier.close()
        if self._redis is not None:
            await self._redis.disconnect()
            self._redis = None

        self._connected = False
        logger.info("medtopics_disconnected")

    async def __aenter__(self) -> "MedTopics":
        """Async context manager entry - connects automatically."""
        await self._connect()
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: Any,
    ) -> None:
        """Async context manager exit - disconnects automatically."""
        await self._disconnect()

    def _ensure_connected(self) -> None:
        if not self._connected:
            raise NotConnectedError(
                "MedTopics not connected. Use 'async with MedTopics(...) as mt:'"
            )

    # === SCHEDULED JOBS ===

    async def _run_exclusive(self, job: str, run: Callable[[], Awaitable[R]]) -> R | None:
        lock = self._job_locks[job]
        if lock.locked():
            logger.info("job_skipped", job=job, reason="already running")
            return None
        async with lock:
            if self._store_lock.locked():
                logger.info("job_waiting", job=job, reason="another job is using the store")
            async with self._store_lock:
                assert self._store is not None
                # Each run works on its own change set.
                self._store.reset_tracking()
                try:
                    return await run()
                except asyncio.CancelledError:
                    logger.warning("job_cancelled", job=job)
                    raise
                finally:
                    self._store.reset_tracking()

    async def run_ingestion(self) -> IngestionResult | None:
        """Run one discovery pass.

        Returns:
            IngestionResult, or None if an ingestion run was already in progress
        """
        self._ensure_connected()
        assert self._ingestion is not None
        return await self._run_exclusive("ingestion", self._ingestion.ingest)

    async def run_refresh(self) -> RefreshResult | None:
        """Run one refresh sweep.

        Returns:
            RefreshResult, or None if a refresh run was already in progress
        """
        self._ensure_connected()
        assert self._refresh is not None
        return await self._run_exclusive("refresh", self._refresh.refresh_all)

    # === RETRIEVAL METHODS ===

    async def list_topics(
        self,
        skip: int = 0,
        take: int = 50,
        topic_type: str | None = None,
    ) -> list[Topic]:
        """Get a page of topics ordered by name."""
        self._ensure_connected()
        assert self._reads is not None
        return await self._reads.list_topics(skip, take, topic_type)

    async def count(self, topic_type: str | None = None) -> int:
        """Count topics, optionally of one type."""
        self._ensure_connected()
        assert self._reads is not None
        return await self._reads.count(topic_type)

    async def get_by_name(self, name: str) -> Topic | None:
        """Get a topic by name (case-insensitive)."""
        self._ensure_connected()
        assert self._reads is not None
        return await self._reads.get_by_name(name)

    async def search(
        self,
        query: str,
        skip: int = 0,
        take: int = 50,
        topic_type: str | None = None,
    ) -> list[Topic]:
        """Get a page of topics whose name contains ``query``."""
        self._ensure_connected()
        assert self._reads is not None
        return await self._reads.search(query, skip, take, topic_type)

    async def search_count(self, query: str, topic_type: str | None = None) -> int:
        """Count topics whose name contains ``query``."""
        self._ensure_connected()
        assert self._reads is not None
        return await self._reads.search_count(query, topic_type)

    async def distinct_types(self) -> list[TopicTypeSummary]:
        """Get topic types with their counts."""
        self._ensure_connected()
        assert self._reads is not None
        return await self._reads.distinct_types()

    async def invalidate_cache(self) -> None:
        """Expire every cached read."""
        self._ensure_connected()
        assert self._reads is not None
        await self._reads.invalidate_cache()
