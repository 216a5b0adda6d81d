"""In-process topic store.

Keeps rows as plain dicts so tracked instances never alias stored
state. Used by tests and local runs without MongoDB.
"""

from collections.abc import Iterable, Sequence
from datetime import datetime
from typing import Any, Self

from medtopics.errors import PersistenceError
from medtopics.infra.tracking import TrackedTopicStore
from medtopics.interfaces.storage import TopicStoreInterface
from medtopics.logging import get_logger
from medtopics.models.topic import SeenTopic, Topic, TopicTypeSummary
from medtopics.taxonomy import TopicType

__all__ = [
    "InMemoryTopicStore",
]

logger = get_logger(__name__)


class InMemoryTopicStore(TrackedTopicStore, TopicStoreInterface):
    """Dict-backed implementation of TopicStoreInterface.

    Example:
        store = InMemoryTopicStore([Topic(name="Asthma", topic_type="Disease")])
        topic = await store.get_by_name("asthma")
        topic.category = "Respiratory System"
        await store.save()
    """

    config_class = None

    def __init__(
        self,
        topics: Iterable[Topic] = (),
        seen: Iterable[SeenTopic] = (),
    ) -> None:
        super().__init__()
        self._rows: dict[str, dict[str, Any]] = {}
        self._seen: dict[str, SeenTopic] = {}
        for topic in topics:
            self._rows[topic.id] = topic.model_dump()
        for entry in seen:
            self._seen.setdefault(entry.name.lower(), entry)

    @classmethod
    async def from_dict(cls, config: dict[str, Any]) -> Self:
        """Factory method for custom config dict.

        Args:
            config: Optional "topics" and "seen" lists (models or dicts)

        Returns:
            InMemoryTopicStore instance
        """
        topics = [Topic.model_validate(t) for t in config.get("topics", [])]
        seen = [SeenTopic.model_validate(s) for s in config.get("seen", [])]
        return cls(topics, seen)

    async def close(self) -> None:
        """Close resources (no-op for the in-memory store)."""
        pass

    def _load(self, rows: Iterable[dict[str, Any]]) -> list[Topic]:
        return [self._track(Topic.model_validate(row)) for row in rows]

    def _where(self, predicate) -> list[dict[str, Any]]:
        return [row for row in self._rows.values() if predicate(row)]

    # Query repository
    async def get_all_topic_names(self) -> list[str]:
        return [row["name"] for row in self._rows.values()]

    async def get_topics_needing_refresh(self, cutoff: datetime) -> list[Topic]:
        rows = self._where(
            lambda r: r["last_source_refresh"] is None or r["last_source_refresh"] < cutoff
        )
        rows.sort(key=lambda r: (r["last_source_refresh"] is not None, r["last_source_refresh"] or cutoff))
        return self._load(rows)

    async def get_topics_needing_reprocessing(self, refreshed_since: datetime) -> list[Topic]:
        return self._load(
            self._where(
                lambda r: r["needs_reprocessing"]
                and (r["last_source_refresh"] is None or r["last_source_refresh"] >= refreshed_since)
            )
        )

    async def get_uncategorized_topics(self) -> list[Topic]:
        return self._load(self._where(lambda r: r["category"] is None))

    async def get_unclassified_topics(self) -> list[Topic]:
        return self._load(
            self._where(
                lambda r: r["topic_type"] is None
                or r["topic_type"].lower() == TopicType.OTHER.lower()
            )
        )

    async def get_by_name(self, name: str) -> Topic | None:
        rows = self._where(lambda r: r["name"].lower() == name.lower())
        return self._load(rows)[0] if rows else None

    async def get_by_names(self, names: Iterable[str]) -> list[Topic]:
        wanted = {n.lower() for n in names}
        return self._load(self._where(lambda r: r["name"].lower() in wanted))

    async def get_topics_without_original_name(self) -> list[Topic]:
        return self._load(self._where(lambda r: r["original_name"] is None))

    async def get_original_name_mappings(self) -> dict[str, str]:
        return {
            row["name"]: row["original_name"]
            for row in self._rows.values()
            if row["original_name"] is not None
        }

    # Unit of work
    async def _persist(
        self,
        inserted: Sequence[Topic],
        updated: Sequence[Topic],
        deleted: Sequence[Topic],
    ) -> None:
        rows = dict(self._rows)
        for topic in deleted:
            rows.pop(topic.id, None)
        for topic in updated:
            if topic.id not in rows:
                raise PersistenceError(f"Topic {topic.id} no longer exists")
            rows[topic.id] = topic.model_dump()
        for topic in inserted:
            if topic.id in rows:
                raise PersistenceError(f"Duplicate topic id {topic.id}")
            rows[topic.id] = topic.model_dump()

        names: set[str] = set()
        for row in rows.values():
            key = row["name"].lower()
            if key in names:
                raise PersistenceError(f"Duplicate topic name '{row['name']}'")
            names.add(key)

        self._rows = rows

    # Ledger
    async def get_seen_topic_names(self) -> set[str]:
        return {entry.name for entry in self._seen.values()}

    async def add_seen_topics(self, entries: Sequence[SeenTopic]) -> int:
        added = 0
        for entry in entries:
            key = entry.name.lower()
            if key not in self._seen:
                self._seen[key] = entry
                added += 1
        return added

    def get_seen_topic(self, name: str) -> SeenTopic | None:
        return self._seen.get(name.lower())

    # Read source
    def _matching(self, topic_type: str | None, query: str | None) -> list[dict[str, Any]]:
        type_key = topic_type.lower() if topic_type and topic_type.strip() else None
        query_key = query.lower() if query else None
        rows = self._where(
            lambda r: (
                type_key is None
                or (r["topic_type"] is not None and r["topic_type"].lower() == type_key)
            )
            and (query_key is None or query_key in r["name"].lower())
        )
        rows.sort(key=lambda r: r["name"].lower())
        return rows

    async def fetch_page(
        self,
        skip: int = 0,
        take: int = 50,
        topic_type: str | None = None,
        query: str | None = None,
    ) -> list[Topic]:
        rows = self._matching(topic_type, query)[skip : skip + take]
        return [Topic.model_validate(row) for row in rows]

    async def count_topics(
        self,
        topic_type: str | None = None,
        query: str | None = None,
    ) -> int:
        return len(self._matching(topic_type, query))

    async def find_by_name(self, name: str) -> Topic | None:
        for row in self._rows.values():
            if row["name"].lower() == name.lower():
                return Topic.model_validate(row)
        return None

    async def distinct_type_counts(self) -> list[TopicTypeSummary]:
        counts: dict[str, int] = {}
        for row in self._rows.values():
            if row["topic_type"] is not None:
                counts[row["topic_type"]] = counts.get(row["topic_type"], 0) + 1
        return [TopicTypeSummary(type=t, count=c) for t, c in sorted(counts.items())]
