"""Legacy-data repair passes for medtopics.

Older rows may lack an original provider name, a topic type or a
category. Each pass loads the affected topics, asks the classifier to
fill the gap and saves once. A failing pass reverts its own edits and
reports zero so the surrounding job can continue.
"""

from collections.abc import Set

from medtopics.interfaces.classifier import ClassifierInterface
from medtopics.interfaces.storage import TopicStoreInterface
from medtopics.logging import get_logger
from medtopics.models.classifier import TopicCategoryInput, TopicClassifyInput
from medtopics.models.topic import Topic
from medtopics.taxonomy import TopicType

__all__ = [
    "BackfillService",
]

logger = get_logger(__name__)


class BackfillService:
    """Fills missing original names, topic types and categories.

    Example:
        service = BackfillService(store, classifier)
        filled = await service.backfill_categories()
    """

    def __init__(
        self,
        store: TopicStoreInterface,
        classifier: ClassifierInterface,
    ) -> None:
        """Initialize service with dependencies.

        Args:
            store: Tracking topic store
            classifier: Classifier used to fill the gaps
        """
        self._store = store
        self._classifier = classifier

    async def backfill_original_names(self, known_names: Set[str]) -> int:
        """Record the provider name for topics that lack one.

        A topic whose name is itself a provider name gets that spelling
        directly. The rest are offered to the classifier together with
        the provider names no topic has claimed yet.

        Args:
            known_names: Union of every provider's current topic names

        Returns:
            Number of topics that received an original name
        """
        topics = await self._store.get_topics_without_original_name()
        if not topics:
            return 0

        known_by_lower = {name.lower(): name for name in known_names}
        try:
            remaining: list[Topic] = []
            filled = 0
            for topic in topics:
                provider_name = known_by_lower.get(topic.name.lower())
                if provider_name is not None:
                    topic.original_name = provider_name
                    filled += 1
                else:
                    remaining.append(topic)

            if remaining and known_by_lower:
                filled += await self._match_remaining(remaining, known_by_lower)

            if filled:
                await self._store.save()
        except Exception as e:
            logger.warning("backfill_failed", step="original_names", error=str(e))
            self._store.revert(topics)
            return 0

        if filled:
            logger.info("original_names_backfilled", count=filled, pending=len(topics) - filled)
        return filled

    async def _match_remaining(self, remaining: list[Topic], known_by_lower: dict[str, str]) -> int:
        claimed = {name.lower() for name in await self._store.get_all_topic_names()}
        mappings = await self._store.get_original_name_mappings()
        claimed.update(original.lower() for original in mappings.values())

        unclaimed = sorted(name for key, name in known_by_lower.items() if key not in claimed)
        if not unclaimed:
            return 0

        matches = await self._classifier.match_legacy_names(
            [topic.name for topic in remaining],
            unclaimed,
        )
        filled = 0
        for topic in remaining:
            original = matches.get(topic.name)
            if not original or original.lower() in claimed:
                continue
            # Provider spelling wins over the classifier's echo.
            topic.original_name = known_by_lower.get(original.lower(), original)
            claimed.add(original.lower())
            filled += 1
        return filled

    async def backfill_topic_types(self) -> tuple[int, int]:
        """Classify topics whose type is missing or "Other".

        Only an explicit non-medical verdict removes a topic. Topics the
        classifier could not place are kept as "Other" for a later run,
        and topics from failed batches are left untouched.

        Returns:
            Tuple of (types filled, non-medical topics removed)
        """
        unclassified = await self._store.get_unclassified_topics()
        if not unclassified:
            return 0, 0

        try:
            classification = await self._classifier.classify_names(
                [TopicClassifyInput(name=t.name, summary_snippet=t.summary) for t in unclassified]
            )

            typed = 0
            non_medical: list[Topic] = []
            for topic in unclassified:
                topic_type = classification.type_for(topic.name)
                if topic_type is not None:
                    topic.topic_type = topic_type
                    typed += 1
                elif classification.is_rejected(topic.name):
                    non_medical.append(topic)
                elif classification.was_triaged(topic.name):
                    topic.topic_type = TopicType.OTHER.value

            if non_medical:
                logger.info(
                    "removing_non_medical_topics",
                    count=len(non_medical),
                    names=[t.name for t in non_medical],
                )
                await self._store.remove_range(non_medical)

            if self._store.has_pending_changes():
                await self._store.save()
        except Exception as e:
            logger.warning("backfill_failed", step="topic_types", error=str(e))
            self._store.revert(unclassified)
            return 0, 0

        logger.info(
            "topic_types_backfilled",
            typed=typed,
            removed=len(non_medical),
            unresolved=len(unclassified) - typed - len(non_medical),
        )
        return typed, len(non_medical)

    async def backfill_categories(self) -> int:
        """Assign a category to every topic that lacks one.

        Returns:
            Number of topics that received a category
        """
        uncategorized = await self._store.get_uncategorized_topics()
        if not uncategorized:
            return 0

        try:
            categories = await self._classifier.classify_categories(
                [
                    TopicCategoryInput(
                        name=t.name,
                        topic_type=t.topic_type or TopicType.OTHER.value,
                        summary_snippet=t.summary,
                    )
                    for t in uncategorized
                ]
            )

            assigned = 0
            for topic in uncategorized:
                category = categories.get(topic.name)
                if category:
                    topic.category = category
                    assigned += 1

            if assigned:
                await self._store.save()
        except Exception as e:
            logger.warning("backfill_failed", step="categories", error=str(e))
            self._store.revert(uncategorized)
            return 0

        logger.info("categories_backfilled", count=assigned, total=len(uncategorized))
        return assigned
