"""Periodic refresh sweep for stored topics.

Phase 1 re-queries every provider for topics not refreshed today and
flags topics whose source fingerprint changed. Phase 2 re-extracts
flagged topics. Phase 3 fills missing categories. Network and
classifier calls fan out with bounded concurrency; their outcomes are
applied to tracked topics one at a time.
"""

import asyncio
from collections.abc import Callable, Sequence
from datetime import UTC, datetime, timedelta

from medtopics.config import PipelineSettings
from medtopics.errors import PersistenceError
from medtopics.interfaces.classifier import ClassifierInterface
from medtopics.interfaces.provider import DataProviderInterface
from medtopics.interfaces.storage import TopicStoreInterface
from medtopics.logging import bind_run_context, get_logger
from medtopics.models.provider import RawTopicData
from medtopics.models.results import RefreshResult
from medtopics.models.topic import Topic
from medtopics.services.backfill import BackfillService
from medtopics.services.read_service import TopicReadService
from medtopics.utils.concurrency import fan_out
from medtopics.utils.hashing import get_source_hash
from medtopics.utils.text import build_merged_raw_source, check_topic_quality

__all__ = [
    "RefreshService",
]

logger = get_logger(__name__)


def _utcnow() -> datetime:
    return datetime.now(UTC)


class RefreshService:
    """Keeps stored topics in step with their providers.

    Example:
        service = RefreshService(providers, store, classifier, backfill, reads)
        result = await service.refresh_all()
    """

    def __init__(
        self,
        providers: Sequence[DataProviderInterface],
        store: TopicStoreInterface,
        classifier: ClassifierInterface,
        backfill: BackfillService,
        read_service: TopicReadService,
        settings: PipelineSettings | None = None,
        now: Callable[[], datetime] = _utcnow,
    ) -> None:
        """Initialize service with dependencies.

        Args:
            providers: Data providers to re-query
            store: Tracking topic store
            classifier: Classifier used for re-extraction
            backfill: Supplies the category pass (Phase 3)
            read_service: Read side whose cache is invalidated on change
            settings: Pipeline tunables (defaults from environment)
            now: Clock returning an aware UTC datetime
        """
        self._providers = list(providers)
        self._store = store
        self._classifier = classifier
        self._backfill = backfill
        self._reads = read_service
        self._settings = settings or PipelineSettings()
        self._now = now

    async def refresh_all(self) -> RefreshResult:
        """Run all three refresh phases.

        Returns:
            RefreshResult with per-phase statistics

        Raises:
            asyncio.CancelledError: After persisting the outcomes already applied
        """
        with bind_run_context("refresh"):
            result = RefreshResult()
            try:
                await self._refresh_sources(result)
                await self._reprocess(result)
                result.categories_filled = await self._backfill.backfill_categories()
            except asyncio.CancelledError:
                result.cancelled = True
                if result.changed:
                    await asyncio.shield(self._reads.invalidate_cache())
                logger.warning(
                    "refresh_cancelled",
                    checked=result.topics_checked,
                    reprocessed=result.reprocessed,
                )
                raise

            if result.changed:
                await self._reads.invalidate_cache()

            logger.info(
                "refresh_completed",
                checked=result.topics_checked,
                sources_changed=result.sources_changed,
                reprocessed=result.reprocessed,
                still_low_quality=result.reprocess_still_low_quality,
                categorized=result.categories_filled,
                errors=len(result.errors),
            )
            return result

    # Phase 1

    async def _refresh_sources(self, result: RefreshResult) -> None:
        now = self._now()
        start_of_day = now.replace(hour=0, minute=0, second=0, microsecond=0)
        topics = await self._store.get_topics_needing_refresh(start_of_day)
        logger.info("refresh_phase_started", phase=1, topics=len(topics))

        batch = await fan_out(
            topics,
            self._fetch_all_providers,
            limit=self._settings.fetch_concurrency,
        )

        for outcome in batch:
            topic = outcome.item
            if not outcome.ok:
                result.fetch_failures += 1
                logger.warning("topic_refresh_failed", name=topic.name, error=str(outcome.error))
                continue
            if not outcome.value:
                result.fetch_failures += 1
                logger.warning("topic_refresh_no_data", name=topic.name)
                continue

            self._apply_sources(topic, outcome.value, result)
            result.topics_checked += 1
            if result.topics_checked % self._settings.refresh_flush_every == 0:
                await self._flush(result)

        await self._flush(result)
        logger.info(
            "refresh_phase_completed",
            phase=1,
            checked=result.topics_checked,
            changed=result.sources_changed,
        )
        if batch.cancelled:
            raise asyncio.CancelledError

    def _apply_sources(
        self,
        topic: Topic,
        results: Sequence[RawTopicData],
        result: RefreshResult,
    ) -> None:
        merged = build_merged_raw_source(results, self._settings.max_chars_per_source)
        new_hash = get_source_hash(results, merged)
        if topic.source_hash != new_hash:
            topic.raw_source = merged
            topic.source_hash = new_hash
            topic.needs_reprocessing = True
            result.sources_changed += 1
        elif topic.raw_source != merged:
            # Supplementary text moved but the fingerprint did not.
            topic.raw_source = merged
            result.sources_text_updated += 1
        topic.last_source_refresh = self._now()

    async def _fetch_all_providers(self, topic: Topic) -> list[RawTopicData]:
        results = await asyncio.gather(
            *(self._fetch_with_fallback(provider, topic) for provider in self._providers)
        )
        return [r for r in results if r is not None]

    async def _fetch_with_fallback(
        self,
        provider: DataProviderInterface,
        topic: Topic,
    ) -> RawTopicData | None:
        """Query by original name first, then by canonical name."""
        try:
            if topic.original_name is not None:
                found = await provider.fetch(topic.original_name)
                if found is not None:
                    return found
            if topic.original_name is None or topic.name.lower() != topic.original_name.lower():
                return await provider.fetch(topic.name)
            return None
        except Exception as e:
            logger.warning(
                "provider_fetch_failed",
                source=provider.source_name,
                name=topic.name,
                error=str(e),
            )
            return None

    # Phase 2

    async def _reprocess(self, result: RefreshResult) -> None:
        since = self._now() - timedelta(days=self._settings.reprocess_window_days)
        topics = await self._store.get_topics_needing_reprocessing(since)
        logger.info("refresh_phase_started", phase=2, topics=len(topics))

        eligible = []
        for topic in topics:
            raw = topic.raw_source
            if not raw or not raw.strip() or len(raw) < self._settings.min_source_length:
                topic.needs_reprocessing = False
                result.reprocess_skipped += 1
                logger.info("reprocess_skipped", name=topic.name, reason="source too short")
            else:
                eligible.append(topic)

        batch = await fan_out(
            eligible,
            self._reextract,
            limit=self._settings.reprocess_concurrency,
        )

        applied = 0
        for outcome in batch:
            topic = outcome.item
            if not outcome.ok:
                result.extraction_failures += 1
                logger.warning(
                    "topic_reprocess_failed",
                    name=topic.name,
                    error=str(outcome.error),
                )
                continue
            if outcome.value is None:
                topic.needs_reprocessing = False
                result.reprocess_skipped += 1
                logger.warning(
                    "reprocess_skipped",
                    name=topic.name,
                    reason="type excluded from extraction",
                    topic_type=topic.topic_type,
                )
                continue

            self._apply_extraction(topic, outcome.value, result)
            applied += 1
            if applied % self._settings.reprocess_flush_every == 0:
                await self._flush(result)

        await self._flush(result)
        logger.info(
            "refresh_phase_completed",
            phase=2,
            reprocessed=result.reprocessed,
            still_low_quality=result.reprocess_still_low_quality,
        )
        if batch.cancelled:
            raise asyncio.CancelledError

    async def _reextract(self, topic: Topic) -> Topic | None:
        await asyncio.sleep(self._settings.llm_throttle_seconds)
        return await self._classifier.extract(topic.raw_source or "", topic.topic_type, topic.name)

    def _apply_extraction(self, topic: Topic, structured: Topic, result: RefreshResult) -> None:
        if topic.name.lower() == structured.name.lower():
            topic.name = structured.name
        else:
            result.renames_rejected += 1
            logger.warning("rename_rejected", name=topic.name, proposed=structured.name)

        topic.summary = structured.summary
        topic.observations = structured.observations
        topic.factors = structured.factors
        topic.actions = structured.actions
        topic.citations = structured.citations
        topic.tags = structured.tags
        if structured.category is not None:
            topic.category = structured.category
        topic.last_updated = self._now()

        issue = check_topic_quality(topic, self._settings.min_summary_length)
        if issue:
            # Content is kept; the flag stays set so a later source change retries.
            result.reprocess_still_low_quality += 1
            logger.info("topic_still_low_quality", name=topic.name, reason=issue)
            return

        topic.needs_reprocessing = False
        topic.version += 1
        result.reprocessed += 1

    # Persistence

    async def _flush(self, result: RefreshResult) -> None:
        if not self._store.has_pending_changes():
            return
        try:
            await asyncio.shield(self._store.save())
        except PersistenceError as e:
            logger.warning("refresh_flush_failed", error=str(e))
            result.errors.append(f"flush: {e}")
            self._store.revert()
