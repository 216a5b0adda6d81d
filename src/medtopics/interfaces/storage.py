"""Storage interfaces for medtopics.

This module defines the Protocols for the pipeline's tracked view of
the topic store, the write-once triage ledger, and the uncached read
source behind the read service.
"""

from collections.abc import Iterable, Sequence
from datetime import datetime
from typing import ClassVar, Protocol, runtime_checkable

from medtopics.models.topic import SeenTopic, Topic, TopicTypeSummary

__all__ = [
    "SeenTopicLedger",
    "TopicQueryRepository",
    "TopicReadSource",
    "TopicStoreInterface",
    "TopicWriteRepository",
]


@runtime_checkable
class TopicQueryRepository(Protocol):
    """Targeted selection queries used by the pipeline.

    Every query returning Topic instances returns tracked instances:
    in-place edits are picked up by ``save()``. Name comparisons are
    case-insensitive.
    """

    async def get_all_topic_names(self) -> list[str]:
        """Names of every stored topic."""
        ...

    async def get_topics_needing_refresh(self, cutoff: datetime) -> list[Topic]:
        """Topics never refreshed or last refreshed before ``cutoff``.

        Args:
            cutoff: Refresh timestamps older than this are stale

        Returns:
            Tracked topics, least recently refreshed first
        """
        ...

    async def get_topics_needing_reprocessing(self, refreshed_since: datetime) -> list[Topic]:
        """Flagged topics whose source was refreshed at or after ``refreshed_since``.

        Topics with no refresh timestamp are included.
        """
        ...

    async def get_uncategorized_topics(self) -> list[Topic]:
        """Topics with no category."""
        ...

    async def get_unclassified_topics(self) -> list[Topic]:
        """Topics with no type or with the "Other" sentinel type."""
        ...

    async def get_by_name(self, name: str) -> Topic | None:
        """Get a tracked topic by name.

        Args:
            name: Topic name (case-insensitive)

        Returns:
            Tracked Topic if found, None otherwise
        """
        ...

    async def get_by_names(self, names: Iterable[str]) -> list[Topic]:
        """Get tracked topics for several names (case-insensitive)."""
        ...

    async def get_topics_without_original_name(self) -> list[Topic]:
        """Topics with no recorded provider name."""
        ...

    async def get_original_name_mappings(self) -> dict[str, str]:
        """Map of topic name to original name, for topics that have one."""
        ...


@runtime_checkable
class TopicWriteRepository(Protocol):
    """Unit-of-work mutation primitives.

    Changes are buffered until ``save()``; a failed save leaves the
    change set intact so the caller can ``revert()`` it.
    """

    async def add(self, topic: Topic) -> None:
        """Register a new topic for insertion on the next save."""
        ...

    async def remove_range(self, topics: Iterable[Topic]) -> None:
        """Register tracked topics for deletion on the next save."""
        ...

    async def save(self) -> int:
        """Flush pending inserts, updates and deletions.

        Returns:
            Number of written topics

        Raises:
            PersistenceError: If the backend rejected the change set
        """
        ...

    def has_pending_changes(self) -> bool:
        """Whether any tracked topic was added, modified or removed since the last save."""
        ...

    def revert(self, topics: Iterable[Topic] | None = None) -> None:
        """Restore tracked topics to their last-saved values.

        Args:
            topics: Topics to revert; None reverts the whole change set
        """
        ...

    def reset_tracking(self) -> None:
        """Forget every tracked topic; unsaved changes are discarded."""
        ...


@runtime_checkable
class SeenTopicLedger(Protocol):
    """Write-once ledger of triage decisions."""

    async def get_seen_topic_names(self) -> set[str]:
        """Names with a recorded decision."""
        ...

    async def add_seen_topics(self, entries: Sequence[SeenTopic]) -> int:
        """Record decisions; names already in the ledger are left untouched.

        Args:
            entries: Decisions to record

        Returns:
            Number of newly recorded names
        """
        ...


@runtime_checkable
class TopicReadSource(Protocol):
    """Untracked, uncached read queries over stored topics.

    Search is a case-insensitive substring match on the name, the type
    filter is case-insensitive, and results are ordered by name.
    """

    async def fetch_page(
        self,
        skip: int = 0,
        take: int = 50,
        topic_type: str | None = None,
        query: str | None = None,
    ) -> list[Topic]:
        """Get one page of topics.

        Args:
            skip: Number of topics to skip
            take: Maximum number of topics to return
            topic_type: Optional type filter
            query: Optional name substring

        Returns:
            Topics ordered by name
        """
        ...

    async def count_topics(
        self,
        topic_type: str | None = None,
        query: str | None = None,
    ) -> int:
        """Count topics matching the same filters as ``fetch_page``."""
        ...

    async def find_by_name(self, name: str) -> Topic | None:
        """Get a topic by name (case-insensitive), untracked."""
        ...

    async def distinct_type_counts(self) -> list[TopicTypeSummary]:
        """Count topics per non-null type, ordered by type."""
        ...


@runtime_checkable
class TopicStoreInterface(
    TopicQueryRepository,
    TopicWriteRepository,
    SeenTopicLedger,
    TopicReadSource,
    Protocol,
):
    """A complete topic store backend.

    Implementations with a settings class set ``config_class`` and are
    built through ``from_config``; custom ones set it to None and are
    built through ``from_dict``.
    """

    config_class: ClassVar[type | None] = None
