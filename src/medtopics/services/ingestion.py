"""Discovery and ingestion pipeline for medtopics.

One ingestion pass:
1. Discover names no provider has offered before (ledger exclusion)
2. Group discoveries case-insensitively and batch-classify their types
3. Record every triage decision in the seen-topic ledger
4. Merge, extract and add accepted topics, resolving synonyms
5. Repair legacy rows, remove stale topics and fill categories
6. Invalidate the read cache when anything changed
"""

import asyncio
from collections.abc import Callable, Sequence, Set
from dataclasses import dataclass, field
from datetime import UTC, datetime, timedelta

from medtopics.config import PipelineSettings
from medtopics.errors import ExtractionError, PersistenceError
from medtopics.interfaces.classifier import ClassifierInterface
from medtopics.interfaces.provider import DataProviderInterface
from medtopics.interfaces.storage import TopicStoreInterface
from medtopics.logging import bind_run_context, get_logger
from medtopics.models.classifier import TopicClassifyInput, TypeClassification
from medtopics.models.provider import RawTopicData
from medtopics.models.results import IngestionResult
from medtopics.models.topic import SeenTopic, Topic
from medtopics.services.backfill import BackfillService
from medtopics.services.read_service import TopicReadService
from medtopics.utils.hashing import get_source_hash
from medtopics.utils.text import (
    SOURCE_DELIMITER,
    build_merged_raw_source,
    check_topic_quality,
    get_seen_status,
    to_title_case,
)

__all__ = [
    "IngestionService",
]

logger = get_logger(__name__)


def _utcnow() -> datetime:
    return datetime.now(UTC)


@dataclass
class _DiscoveredGroup:
    """All provider results for one case-insensitive name."""

    name: str
    results: list[RawTopicData] = field(default_factory=list)


@dataclass
class _RunState:
    result: IngestionResult
    accepted: set[str]
    """Lower-cased names of topics in the store or added this run."""
    pending: list[Topic] = field(default_factory=list)
    """Topics added since the last successful flush."""


class IngestionService:
    """Discovers new topic names and turns them into stored topics.

    Example:
        service = IngestionService(providers, store, classifier, backfill, reads)
        result = await service.ingest()
        print(result.topics_added)
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
            providers: Data providers, queried in order
            store: Tracking topic store with seen-topic ledger
            classifier: Classifier for triage, extraction and synonyms
            backfill: Legacy repair passes run after ingestion
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

    async def ingest(self) -> IngestionResult:
        """Run one full discovery pass.

        Returns:
            IngestionResult with per-step statistics

        Raises:
            asyncio.CancelledError: After persisting the work completed so far
        """
        with bind_run_context("ingestion"):
            result = IngestionResult()
            logger.info("ingestion_started", providers=len(self._providers))

            seen = await self._store.get_seen_topic_names()
            accepted = {name.lower() for name in await self._store.get_all_topic_names()}
            exclude = frozenset({name.lower() for name in seen} | accepted)

            groups = self._group_discoveries(await self._discover_all(exclude), accepted)
            result.discovered = len(groups)

            classification = await self._classify(groups, result)
            await self._record_decisions(groups, classification)

            state = _RunState(result=result, accepted=accepted)
            try:
                for group in groups:
                    try:
                        await self._process_group(group, classification, state)
                    except Exception as e:
                        logger.warning("topic_processing_failed", name=group.name, error=str(e))
                        result.errors.append(f"{group.name}: {e}")
            except asyncio.CancelledError:
                result.cancelled = True
                await self._flush(state)
                logger.warning("ingestion_cancelled", added=result.topics_added)
                raise
            await self._flush(state)

            await self._post_process(result)

            if result.changed:
                await self._reads.invalidate_cache()

            logger.info(
                "ingestion_completed",
                discovered=result.discovered,
                added=result.topics_added,
                merged=result.topics_merged,
                renamed=result.topics_renamed,
                stale_removed=result.stale_removed,
                flagged=result.flagged_for_reprocessing,
                errors=len(result.errors),
            )
            return result

    async def _post_process(self, result: IngestionResult) -> None:
        known_names = await self._fetch_all_known_names()

        backfill = result.backfill
        backfill.original_names_filled = await self._backfill.backfill_original_names(known_names)
        result.stale_removed = await self.remove_stale_topics(known_names)
        backfill.types_filled, backfill.non_medical_removed = (
            await self._backfill.backfill_topic_types()
        )
        backfill.categories_filled = await self._backfill.backfill_categories()

    # Discovery

    async def _discover_all(self, exclude: Set[str]) -> list[RawTopicData]:
        batches = await asyncio.gather(
            *(self._discover_from(provider, exclude) for provider in self._providers)
        )
        return [item for batch in batches for item in batch]

    async def _discover_from(
        self,
        provider: DataProviderInterface,
        exclude: Set[str],
    ) -> list[RawTopicData]:
        try:
            discovered = await provider.discover(exclude)
        except Exception as e:
            logger.warning("provider_discovery_failed", source=provider.source_name, error=str(e))
            return []
        logger.info("provider_discovered", source=provider.source_name, count=len(discovered))
        return discovered

    async def _fetch_all_known_names(self) -> set[str]:
        async def known(provider: DataProviderInterface) -> set[str]:
            try:
                return await provider.known_names()
            except Exception as e:
                logger.warning("provider_names_failed", source=provider.source_name, error=str(e))
                return set()

        name_sets = await asyncio.gather(*(known(p) for p in self._providers))
        return set().union(*name_sets)

    @staticmethod
    def _group_discoveries(
        discovered: Sequence[RawTopicData],
        accepted: Set[str],
    ) -> list[_DiscoveredGroup]:
        groups: dict[str, _DiscoveredGroup] = {}
        for item in discovered:
            key = item.topic_name.strip().lower()
            if not key or key in accepted:
                continue
            group = groups.get(key)
            if group is None:
                group = groups[key] = _DiscoveredGroup(name=item.topic_name.strip())
            group.results.append(item)
        return list(groups.values())

    # Triage

    async def _classify(
        self,
        groups: Sequence[_DiscoveredGroup],
        result: IngestionResult,
    ) -> TypeClassification:
        if not groups:
            return TypeClassification()
        try:
            classification = await self._classifier.classify_names(
                [
                    TopicClassifyInput(name=g.name, summary_snippet=g.results[0].raw_text)
                    for g in groups
                ]
            )
        except Exception as e:
            logger.warning("classification_failed", count=len(groups), error=str(e))
            result.errors.append(f"classification: {e}")
            return TypeClassification()
        result.classified = len(classification.types)
        return classification

    async def _record_decisions(
        self,
        groups: Sequence[_DiscoveredGroup],
        classification: TypeClassification,
    ) -> None:
        now = self._now()
        entries = []
        for group in groups:
            topic_type = classification.verdict_for(group.name)
            if topic_type is None:
                continue
            entries.append(
                SeenTopic(
                    name=group.name,
                    status=get_seen_status(topic_type),
                    topic_type=topic_type,
                    first_seen=now,
                )
            )
        if not entries:
            return
        try:
            added = await self._store.add_seen_topics(entries)
        except Exception as e:
            logger.warning("seen_topics_write_failed", count=len(entries), error=str(e))
            return
        logger.info("seen_topics_recorded", count=added)

    # Processing

    async def _process_group(
        self,
        group: _DiscoveredGroup,
        classification: TypeClassification,
        state: _RunState,
    ) -> None:
        result = state.result
        name = group.name
        if name.lower() in state.accepted:
            logger.debug("topic_skipped", name=name, reason="added earlier in this run")
            return

        topic_type = classification.type_for(name)
        if topic_type is None:
            if classification.is_rejected(name):
                result.skipped_non_medical += 1
                logger.debug("topic_skipped", name=name, reason="non-medical")
            elif classification.was_triaged(name):
                result.skipped_unclassifiable += 1
                logger.debug("topic_skipped", name=name, reason="unclassifiable")
            else:
                result.skipped_untriaged += 1
                logger.debug("topic_skipped", name=name, reason="not classified")
            return

        if not self._classifier.should_process(topic_type):
            result.skipped_filtered += 1
            logger.debug("topic_skipped", name=name, reason="type filtered", topic_type=topic_type)
            return

        merged = build_merged_raw_source(group.results, self._settings.max_chars_per_source)
        if len(merged) < self._settings.min_source_length:
            result.skipped_too_short += 1
            logger.debug("topic_skipped", name=name, reason="source too short", length=len(merged))
            return

        await asyncio.sleep(self._settings.llm_throttle_seconds)
        try:
            structured = await self._classifier.extract(merged, topic_type, name)
        except ExtractionError as e:
            result.extraction_failures += 1
            logger.warning("topic_extraction_failed", name=name, error=str(e))
            return

        if structured is None:
            result.skipped_filtered += 1
            return

        if structured.name.lower() in state.accepted:
            await self._resolve_synonym(group, merged, structured.name, state)
            return

        now = self._now()
        structured.original_name = name
        structured.topic_type = topic_type
        structured.raw_source = merged
        structured.source_hash = get_source_hash(group.results, merged)
        structured.last_source_refresh = now
        structured.last_updated = now
        structured.version = 1

        issue = check_topic_quality(structured, self._settings.min_summary_length)
        if issue:
            structured.needs_reprocessing = True
            result.flagged_for_reprocessing += 1
            logger.info("topic_flagged_for_reprocessing", name=structured.name, reason=issue)

        await self._store.add(structured)
        state.accepted.add(structured.name.lower())
        state.pending.append(structured)
        result.topics_added += 1
        logger.info(
            "topic_added",
            name=structured.name,
            topic_type=topic_type,
            sources=[r.source_name for r in group.results],
        )

        if len(state.pending) >= self._settings.ingest_flush_every:
            await self._flush(state)

    async def _resolve_synonym(
        self,
        group: _DiscoveredGroup,
        merged: str,
        extracted_name: str,
        state: _RunState,
    ) -> None:
        """Fold a discovery whose canonical name already exists into that topic."""
        result = state.result
        # The target may have been added earlier in this run and not flushed yet.
        await self._flush(state)

        existing = await self._store.get_by_name(extracted_name)
        if existing is None:
            logger.warning("synonym_target_missing", name=group.name, extracted=extracted_name)
            return

        comparison = await self._classifier.compare_canonical_name(group.name, existing.name)
        if comparison.is_distinct:
            result.skipped_distinct += 1
            logger.info("synonym_rejected", name=group.name, existing=existing.name)
            return

        if existing.original_name is None:
            existing.original_name = group.name

        if comparison.should_replace:
            preferred = to_title_case(comparison.preferred_name)
            owner = await self._store.get_by_name(preferred)
            if owner is None or owner.id == existing.id:
                old_name = existing.name
                existing.name = preferred
                self._append_source(existing, group.results, merged, prepend=True)
                state.accepted.add(preferred.lower())
                if await self._save(existing, state):
                    result.topics_renamed += 1
                    logger.info(
                        "topic_renamed",
                        old_name=old_name,
                        new_name=preferred,
                        discovered=group.name,
                    )
                return
            logger.info(
                "synonym_rename_conflict",
                name=existing.name,
                preferred=preferred,
                owner=owner.name,
            )

        if existing.raw_source and merged in existing.raw_source:
            logger.info("synonym_already_merged", name=group.name, existing=existing.name)
            await self._save(existing, state)
            return

        self._append_source(existing, group.results, merged, prepend=False)
        if await self._save(existing, state):
            result.topics_merged += 1
            logger.info("topic_merged", name=group.name, existing=existing.name)

    def _append_source(
        self,
        topic: Topic,
        results: Sequence[RawTopicData],
        merged: str,
        prepend: bool,
    ) -> None:
        if not topic.raw_source:
            combined = merged
        elif prepend:
            combined = merged + SOURCE_DELIMITER + topic.raw_source
        else:
            combined = topic.raw_source + SOURCE_DELIMITER + merged
        topic.raw_source = combined
        topic.source_hash = get_source_hash(results, combined)
        topic.needs_reprocessing = True
        topic.last_source_refresh = self._now()

    # Persistence

    async def _save(self, topic: Topic, state: _RunState) -> bool:
        if not self._store.has_pending_changes():
            return True
        try:
            await asyncio.shield(self._store.save())
        except PersistenceError as e:
            logger.warning("topic_save_failed", name=topic.name, error=str(e))
            state.result.errors.append(f"{topic.name}: {e}")
            self._store.revert([topic])
            return False
        return True

    async def _flush(self, state: _RunState) -> None:
        if not self._store.has_pending_changes():
            state.pending.clear()
            return
        try:
            await asyncio.shield(self._store.save())
        except PersistenceError as e:
            logger.warning("ingestion_flush_failed", pending=len(state.pending), error=str(e))
            state.result.errors.append(f"flush: {e}")
            self._store.revert()
            for topic in state.pending:
                state.accepted.discard(topic.name.lower())
            state.result.topics_added -= len(state.pending)
        state.pending.clear()

    # Stale removal

    async def remove_stale_topics(self, known_names: Set[str]) -> int:
        """Remove topics no provider lists any more, after a grace period.

        A topic is kept while its name or its original name is still
        known to some provider, or while its sources were refreshed
        within the grace period. An empty ``known_names`` means every
        provider failed, so nothing is removed.

        Args:
            known_names: Union of every provider's current topic names

        Returns:
            Number of topics removed
        """
        if not known_names:
            logger.warning("stale_removal_skipped", reason="no provider returned known names")
            return 0

        known = {name.lower() for name in known_names}
        originals = {
            name.lower(): original.lower()
            for name, original in (await self._store.get_original_name_mappings()).items()
        }
        candidates = [
            name
            for name in await self._store.get_all_topic_names()
            if name.lower() not in known and originals.get(name.lower()) not in known
        ]
        if not candidates:
            return 0

        cutoff = self._now() - timedelta(days=self._settings.stale_grace_days)
        stale = []
        within_grace = 0
        for topic in await self._store.get_by_names(candidates):
            if topic.last_source_refresh is not None and topic.last_source_refresh >= cutoff:
                within_grace += 1
            else:
                stale.append(topic)

        if within_grace:
            logger.info(
                "stale_topics_within_grace",
                count=within_grace,
                grace_days=self._settings.stale_grace_days,
            )
        if not stale:
            return 0

        logger.info("removing_stale_topics", count=len(stale), names=[t.name for t in stale])
        await self._store.remove_range(stale)
        try:
            await asyncio.shield(self._store.save())
        except PersistenceError as e:
            logger.warning("stale_removal_failed", count=len(stale), error=str(e))
            self._store.revert(stale)
            return 0
        return len(stale)
