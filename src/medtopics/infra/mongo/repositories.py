"""MongoDB repositories for medtopics.

This module provides the Motor-backed topic store. Case-insensitive
name uniqueness is enforced by a unique index on ``name_lower``; the
triage ledger is write-once through ``$setOnInsert`` upserts.
"""

import re
from collections.abc import Iterable, Sequence
from datetime import datetime
from typing import Any, Self

from pymongo import ASCENDING, DeleteOne, InsertOne, ReplaceOne, UpdateOne
from pymongo.errors import BulkWriteError, PyMongoError

from medtopics.config import MongoSettings
from medtopics.errors import PersistenceError
from medtopics.infra.mongo.client import MongoClient
from medtopics.infra.tracking import TrackedTopicStore
from medtopics.interfaces.storage import TopicStoreInterface
from medtopics.logging import get_logger
from medtopics.models.topic import SeenTopic, Topic, TopicTypeSummary
from medtopics.taxonomy import TopicType

__all__ = [
    "MongoTopicStore",
]

logger = get_logger(__name__)

_TOPIC_FIELDS = frozenset(Topic.model_fields)


class MongoTopicStore(TrackedTopicStore, TopicStoreInterface):
    """MongoDB implementation of TopicStoreInterface.

    Provides the tracked pipeline queries, the triage ledger and the
    uncached read source over the ``topics`` and ``seen_topics``
    collections.
    """

    config_class = MongoSettings

    def __init__(self, client: MongoClient) -> None:
        """Initialize repository with MongoDB client.

        Args:
            client: Connected MongoClient instance
        """
        super().__init__()
        self._client = client
        self._owns_client = False

    @classmethod
    async def from_config(cls, config: MongoSettings) -> Self:
        """Factory method for MedTopics instantiation.

        Creates a MongoClient, connects, creates indexes, and returns repository.

        Args:
            config: MongoDB settings

        Returns:
            Connected MongoTopicStore instance
        """
        client = MongoClient(config)
        await client.connect()
        await client.create_indexes()

        instance = cls(client)
        instance._owns_client = True
        return instance

    @classmethod
    async def from_dict(cls, config: dict[str, Any]) -> Self:
        """Factory method for custom config dict.

        Args:
            config: Dictionary with MongoDB settings

        Returns:
            Connected MongoTopicStore instance
        """
        settings = MongoSettings(**config)
        return await cls.from_config(settings)

    async def close(self) -> None:
        """Close owned resources."""
        if self._owns_client and self._client:
            await self._client.disconnect()

    # Query repository
    async def _find_tracked(
        self,
        filter_: dict[str, Any],
        sort: list[tuple[str, int]] | None = None,
    ) -> list[Topic]:
        cursor = self._client.topics.find(filter_)
        if sort:
            cursor = cursor.sort(sort)
        return [self._track(self._doc_to_topic(doc)) async for doc in cursor]

    async def get_all_topic_names(self) -> list[str]:
        cursor = self._client.topics.find({}, {"name": 1})
        return [doc["name"] async for doc in cursor]

    async def get_topics_needing_refresh(self, cutoff: datetime) -> list[Topic]:
        return await self._find_tracked(
            {"$or": [{"last_source_refresh": None}, {"last_source_refresh": {"$lt": cutoff}}]},
            sort=[("last_source_refresh", ASCENDING)],
        )

    async def get_topics_needing_reprocessing(self, refreshed_since: datetime) -> list[Topic]:
        return await self._find_tracked(
            {
                "needs_reprocessing": True,
                "$or": [
                    {"last_source_refresh": None},
                    {"last_source_refresh": {"$gte": refreshed_since}},
                ],
            }
        )

    async def get_uncategorized_topics(self) -> list[Topic]:
        return await self._find_tracked({"category": None})

    async def get_unclassified_topics(self) -> list[Topic]:
        return await self._find_tracked(
            {"$or": [{"topic_type": None}, {"topic_type_lower": TopicType.OTHER.lower()}]}
        )

    async def get_by_name(self, name: str) -> Topic | None:
        doc = await self._client.topics.find_one({"name_lower": name.lower()})
        return self._track(self._doc_to_topic(doc)) if doc else None

    async def get_by_names(self, names: Iterable[str]) -> list[Topic]:
        wanted = sorted({n.lower() for n in names})
        if not wanted:
            return []
        return await self._find_tracked({"name_lower": {"$in": wanted}})

    async def get_topics_without_original_name(self) -> list[Topic]:
        return await self._find_tracked({"original_name": None})

    async def get_original_name_mappings(self) -> dict[str, str]:
        cursor = self._client.topics.find(
            {"original_name": {"$ne": None}},
            {"name": 1, "original_name": 1},
        )
        return {doc["name"]: doc["original_name"] async for doc in cursor}

    # Unit of work
    async def _persist(
        self,
        inserted: Sequence[Topic],
        updated: Sequence[Topic],
        deleted: Sequence[Topic],
    ) -> None:
        # Deletes and renames go first so freed names can be reused in the same batch.
        operations: list[Any] = [DeleteOne({"id": t.id}) for t in deleted]
        operations.extend(ReplaceOne({"id": t.id}, self._topic_to_doc(t)) for t in updated)
        operations.extend(InsertOne(self._topic_to_doc(t)) for t in inserted)

        try:
            await self._client.topics.bulk_write(operations, ordered=True)
        except BulkWriteError as e:
            logger.warning(
                "topic_bulk_write_failed",
                write_errors=len(e.details.get("writeErrors", [])),
                error=str(e),
            )
            raise PersistenceError(f"Topic bulk write rejected: {e}") from e
        except PyMongoError as e:
            raise PersistenceError(f"Topic bulk write failed: {e}") from e

    # Ledger
    async def get_seen_topic_names(self) -> set[str]:
        cursor = self._client.seen_topics.find({}, {"name": 1})
        return {doc["name"] async for doc in cursor}

    async def add_seen_topics(self, entries: Sequence[SeenTopic]) -> int:
        if not entries:
            return 0
        operations = [
            UpdateOne(
                {"name_lower": entry.name.lower()},
                {"$setOnInsert": {**entry.model_dump(), "name_lower": entry.name.lower()}},
                upsert=True,
            )
            for entry in entries
        ]
        result = await self._client.seen_topics.bulk_write(operations, ordered=False)
        return result.upserted_count

    # Read source
    @staticmethod
    def _read_filter(topic_type: str | None, query: str | None) -> dict[str, Any]:
        filter_: dict[str, Any] = {}
        if topic_type and topic_type.strip():
            filter_["topic_type_lower"] = topic_type.strip().lower()
        if query:
            filter_["name"] = {"$regex": re.escape(query), "$options": "i"}
        return filter_

    async def fetch_page(
        self,
        skip: int = 0,
        take: int = 50,
        topic_type: str | None = None,
        query: str | None = None,
    ) -> list[Topic]:
        cursor = (
            self._client.topics.find(self._read_filter(topic_type, query))
            .sort("name_lower", ASCENDING)
            .skip(skip)
            .limit(take)
        )
        return [self._doc_to_topic(doc) async for doc in cursor]

    async def count_topics(
        self,
        topic_type: str | None = None,
        query: str | None = None,
    ) -> int:
        return await self._client.topics.count_documents(self._read_filter(topic_type, query))

    async def find_by_name(self, name: str) -> Topic | None:
        doc = await self._client.topics.find_one({"name_lower": name.lower()})
        return self._doc_to_topic(doc) if doc else None

    async def distinct_type_counts(self) -> list[TopicTypeSummary]:
        pipeline = [
            {"$match": {"topic_type": {"$ne": None}}},
            {"$group": {"_id": "$topic_type", "count": {"$sum": 1}}},
            {"$sort": {"_id": 1}},
        ]
        cursor = self._client.topics.aggregate(pipeline)
        return [TopicTypeSummary(type=doc["_id"], count=doc["count"]) async for doc in cursor]

    # Conversion helpers
    def _topic_to_doc(self, topic: Topic) -> dict[str, Any]:
        doc = topic.model_dump()
        doc["name_lower"] = topic.name.lower()
        doc["topic_type_lower"] = topic.topic_type.lower() if topic.topic_type else None
        return doc

    def _doc_to_topic(self, doc: dict[str, Any]) -> Topic:
        return Topic.model_validate({k: v for k, v in doc.items() if k in _TOPIC_FIELDS})
