"""Unit-of-work change tracking shared by topic store backends.

Topics returned by queries are identity-mapped and snapshotted. The
pipeline edits them in place; ``save()`` diffs every tracked topic
against its snapshot and hands the change set to the backend in one
``_persist`` call.
"""

from abc import ABC, abstractmethod
from collections.abc import Iterable, Sequence
from typing import Any

from medtopics.errors import PersistenceError
from medtopics.logging import get_logger
from medtopics.models.topic import Topic

__all__ = [
    "TrackedTopicStore",
]

logger = get_logger(__name__)


class TrackedTopicStore(ABC):
    """Base class implementing ``add``/``remove_range``/``save``/``revert``.

    Subclasses load rows, wrap them with ``_track`` before returning
    them, and implement ``_persist``. A failed persist leaves the change
    set untouched so callers can revert it.
    """

    def __init__(self) -> None:
        self._tracked: dict[str, Topic] = {}
        self._snapshots: dict[str, dict[str, Any]] = {}
        self._added: dict[str, Topic] = {}
        self._removed: dict[str, Topic] = {}

    @abstractmethod
    async def _persist(
        self,
        inserted: Sequence[Topic],
        updated: Sequence[Topic],
        deleted: Sequence[Topic],
    ) -> None:
        """Write one change set to the backend.

        Raises:
            PersistenceError: If the change set violates a store constraint
        """

    def _track(self, topic: Topic) -> Topic:
        """Return the tracked instance for a loaded topic."""
        existing = self._tracked.get(topic.id)
        if existing is not None:
            return existing
        self._tracked[topic.id] = topic
        self._snapshots[topic.id] = topic.model_dump()
        return topic

    def _modified(self) -> list[Topic]:
        return [
            topic
            for topic_id, topic in self._tracked.items()
            if topic_id not in self._removed and topic.model_dump() != self._snapshots[topic_id]
        ]

    async def add(self, topic: Topic) -> None:
        if topic.id in self._tracked or topic.id in self._added:
            raise ValueError(f"Topic {topic.id} is already tracked")
        self._added[topic.id] = topic

    async def remove_range(self, topics: Iterable[Topic]) -> None:
        for topic in topics:
            if self._added.pop(topic.id, None) is not None:
                continue
            if topic.id not in self._tracked:
                raise ValueError(f"Topic {topic.id} is not tracked by this store")
            self._removed[topic.id] = topic

    def has_pending_changes(self) -> bool:
        return bool(self._added or self._removed or self._modified())

    async def save(self) -> int:
        inserted = list(self._added.values())
        updated = self._modified()
        deleted = list(self._removed.values())
        if not (inserted or updated or deleted):
            return 0

        try:
            await self._persist(inserted, updated, deleted)
        except PersistenceError:
            raise
        except Exception as e:
            raise PersistenceError(f"Failed to persist topic changes: {e}") from e

        for topic in (*inserted, *updated):
            self._tracked[topic.id] = topic
            self._snapshots[topic.id] = topic.model_dump()
        for topic in deleted:
            self._tracked.pop(topic.id, None)
            self._snapshots.pop(topic.id, None)
        self._added.clear()
        self._removed.clear()

        logger.debug(
            "topic_changes_saved",
            inserted=len(inserted),
            updated=len(updated),
            deleted=len(deleted),
        )
        return len(inserted) + len(updated) + len(deleted)

    def revert(self, topics: Iterable[Topic] | None = None) -> None:
        if topics is None:
            targets = list(self._tracked.values())
            self._added.clear()
            self._removed.clear()
        else:
            targets = []
            for topic in topics:
                if self._added.pop(topic.id, None) is not None:
                    continue
                self._removed.pop(topic.id, None)
                if topic.id in self._tracked:
                    targets.append(self._tracked[topic.id])

        for topic in targets:
            snapshot = self._snapshots[topic.id]
            if topic.model_dump() == snapshot:
                continue
            restored = Topic.model_validate(snapshot)
            for field_name in Topic.model_fields:
                setattr(topic, field_name, getattr(restored, field_name))

    def reset_tracking(self) -> None:
        """Forget every tracked topic and discard unsaved changes.

        Later queries load fresh instances from the backend, so rows
        changed or deleted elsewhere are seen as they are stored.
        """
        if self._added or self._removed:
            logger.warning(
                "unsaved_topic_changes_discarded",
                added=len(self._added),
                removed=len(self._removed),
            )
        self._tracked.clear()
        self._snapshots.clear()
        self._added.clear()
        self._removed.clear()
