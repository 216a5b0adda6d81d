"""Unit tests for medtopics topic stores."""

from collections.abc import Callable
from datetime import UTC, datetime, timedelta

import pytest
from mocks.mock_mongo import MockMongoClient
from pymongo import DeleteOne, InsertOne, ReplaceOne, UpdateOne
from pymongo.errors import BulkWriteError

from medtopics.errors import PersistenceError
from medtopics.infra.memory import InMemoryTopicStore
from medtopics.infra.mongo.repositories import MongoTopicStore
from medtopics.models.topic import SeenStatus, SeenTopic, Topic

NOW = datetime(2025, 6, 15, 12, 0, tzinfo=UTC)


class TestChangeTracking:
    """Tests for the unit-of-work behaviour shared by all stores."""

    @pytest.mark.asyncio
    async def test_add_and_save(self, store: InMemoryTopicStore) -> None:
        await store.add(Topic(name="Asthma"))
        assert store.has_pending_changes() is True

        saved = await store.save()

        assert saved == 1
        assert store.has_pending_changes() is False
        assert await store.get_all_topic_names() == ["Asthma"]

    @pytest.mark.asyncio
    async def test_queries_return_tracked_identity(
        self, make_topic: Callable[..., Topic]
    ) -> None:
        store = InMemoryTopicStore([make_topic("Asthma")])

        first = await store.get_by_name("asthma")
        second = await store.get_by_name("ASTHMA")

        assert first is second

    @pytest.mark.asyncio
    async def test_in_place_edits_are_flushed(self, make_topic: Callable[..., Topic]) -> None:
        store = InMemoryTopicStore([make_topic("Asthma", category=None)])
        topic = await store.get_by_name("Asthma")
        assert topic is not None

        topic.category = "Respiratory System"
        assert store.has_pending_changes() is True
        await store.save()

        stored = await store.find_by_name("Asthma")
        assert stored is not None
        assert stored.category == "Respiratory System"

    @pytest.mark.asyncio
    async def test_revert_restores_snapshot(self, make_topic: Callable[..., Topic]) -> None:
        store = InMemoryTopicStore([make_topic("Asthma")])
        topic = await store.get_by_name("Asthma")
        assert topic is not None

        topic.name = "Renamed"
        topic.observations.append("Wheeze")
        store.revert([topic])

        assert topic.name == "Asthma"
        assert topic.observations == ["Cough"]
        assert store.has_pending_changes() is False

    @pytest.mark.asyncio
    async def test_revert_all_drops_pending_adds(self, store: InMemoryTopicStore) -> None:
        await store.add(Topic(name="Asthma"))
        store.revert()

        assert store.has_pending_changes() is False
        assert await store.save() == 0
        assert await store.get_all_topic_names() == []

    @pytest.mark.asyncio
    async def test_duplicate_name_is_rejected_atomically(
        self, make_topic: Callable[..., Topic]
    ) -> None:
        store = InMemoryTopicStore([make_topic("Asthma")])
        await store.add(Topic(name="Bronchitis"))
        await store.add(Topic(name="ASTHMA"))

        with pytest.raises(PersistenceError):
            await store.save()

        # Nothing was written and the change set survives for revert.
        assert sorted(await store.get_all_topic_names()) == ["Asthma"]
        assert store.has_pending_changes() is True
        store.revert()
        assert store.has_pending_changes() is False

    @pytest.mark.asyncio
    async def test_remove_range(self, make_topic: Callable[..., Topic]) -> None:
        store = InMemoryTopicStore([make_topic("Asthma"), make_topic("Flu")])
        topic = await store.get_by_name("Flu")
        assert topic is not None

        await store.remove_range([topic])
        await store.save()

        assert await store.get_all_topic_names() == ["Asthma"]

    @pytest.mark.asyncio
    async def test_removing_pending_add_cancels_it(self, store: InMemoryTopicStore) -> None:
        topic = Topic(name="Asthma")
        await store.add(topic)
        await store.remove_range([topic])

        assert store.has_pending_changes() is False

    @pytest.mark.asyncio
    async def test_double_add_is_rejected(self, store: InMemoryTopicStore) -> None:
        topic = Topic(name="Asthma")
        await store.add(topic)
        with pytest.raises(ValueError):
            await store.add(topic)

    @pytest.mark.asyncio
    async def test_removing_untracked_topic_is_rejected(self, store: InMemoryTopicStore) -> None:
        with pytest.raises(ValueError):
            await store.remove_range([Topic(name="Ghost")])

    @pytest.mark.asyncio
    async def test_reset_tracking_forgets_loaded_topics(
        self, make_topic: Callable[..., Topic]
    ) -> None:
        store = InMemoryTopicStore([make_topic("Asthma", category=None)])
        loaded = await store.get_by_name("Asthma")
        assert loaded is not None
        loaded.category = "Respiratory System"
        await store.add(make_topic("Flu"))

        store.reset_tracking()

        assert store.has_pending_changes() is False
        assert await store.save() == 0
        reloaded = await store.get_by_name("Asthma")
        assert reloaded is not None
        assert reloaded is not loaded
        assert reloaded.category is None
        assert await store.get_by_name("Flu") is None

    @pytest.mark.asyncio
    async def test_reset_tracking_sees_rows_deleted_elsewhere(
        self, make_topic: Callable[..., Topic]
    ) -> None:
        store = InMemoryTopicStore([make_topic("Asthma")])
        other = InMemoryTopicStore()
        assert await store.get_by_name("Asthma") is not None

        # Another writer shares the same rows and deletes the topic.
        other._rows = store._rows
        doomed = await other.get_by_name("Asthma")
        assert doomed is not None
        await other.remove_range([doomed])
        await other.save()
        store._rows = other._rows
        store.reset_tracking()

        assert await store.get_by_names(["Asthma"]) == []


class TestInMemoryQueries:
    """Tests for pipeline queries on the in-memory store."""

    @pytest.mark.asyncio
    async def test_needing_refresh(self, make_topic: Callable[..., Topic]) -> None:
        cutoff = NOW.replace(hour=0)
        store = InMemoryTopicStore(
            [
                make_topic("Fresh", last_source_refresh=NOW),
                make_topic("Old", last_source_refresh=NOW - timedelta(days=3)),
                make_topic("Never", last_source_refresh=None),
            ]
        )

        topics = await store.get_topics_needing_refresh(cutoff)

        assert [t.name for t in topics] == ["Never", "Old"]

    @pytest.mark.asyncio
    async def test_needing_reprocessing_window(self, make_topic: Callable[..., Topic]) -> None:
        since = NOW - timedelta(days=2)
        store = InMemoryTopicStore(
            [
                make_topic("Recent", needs_reprocessing=True, last_source_refresh=NOW),
                make_topic(
                    "Ancient",
                    needs_reprocessing=True,
                    last_source_refresh=NOW - timedelta(days=10),
                ),
                make_topic("Clean", needs_reprocessing=False),
            ]
        )

        topics = await store.get_topics_needing_reprocessing(since)

        assert [t.name for t in topics] == ["Recent"]

    @pytest.mark.asyncio
    async def test_unclassified_includes_other(self, make_topic: Callable[..., Topic]) -> None:
        store = InMemoryTopicStore(
            [
                make_topic("Typed"),
                make_topic("Untyped", topic_type=None),
                make_topic("Sentinel", topic_type="other"),
            ]
        )

        names = {t.name for t in await store.get_unclassified_topics()}

        assert names == {"Untyped", "Sentinel"}

    @pytest.mark.asyncio
    async def test_original_name_queries(self, make_topic: Callable[..., Topic]) -> None:
        store = InMemoryTopicStore(
            [
                make_topic("High Blood Pressure", original_name="Hypertension"),
                make_topic("Legacy", original_name=None),
            ]
        )

        assert await store.get_original_name_mappings() == {
            "High Blood Pressure": "Hypertension"
        }
        assert [t.name for t in await store.get_topics_without_original_name()] == ["Legacy"]

    @pytest.mark.asyncio
    async def test_get_by_names_is_case_insensitive(
        self, make_topic: Callable[..., Topic]
    ) -> None:
        store = InMemoryTopicStore([make_topic("Asthma"), make_topic("Flu")])

        topics = await store.get_by_names(["ASTHMA", "missing"])

        assert [t.name for t in topics] == ["Asthma"]


class TestSeenTopicLedger:
    """Tests for the write-once triage ledger."""

    @pytest.mark.asyncio
    async def test_first_decision_wins(self, store: InMemoryTopicStore) -> None:
        first = SeenTopic(name="Banana", status=SeenStatus.NON_MEDICAL, topic_type="Non-Medical")
        again = SeenTopic(name="BANANA", status=SeenStatus.ACCEPTED, topic_type="Disease")

        assert await store.add_seen_topics([first]) == 1
        assert await store.add_seen_topics([again]) == 0

        entry = store.get_seen_topic("banana")
        assert entry is not None
        assert entry.status is SeenStatus.NON_MEDICAL
        assert await store.get_seen_topic_names() == {"Banana"}


class TestReadSource:
    """Tests for the uncached read paths."""

    @pytest.fixture
    def read_store(self, make_topic: Callable[..., Topic]) -> InMemoryTopicStore:
        return InMemoryTopicStore(
            [
                make_topic("bronchitis", topic_type="Disease"),
                make_topic("Asthma", topic_type="Disease"),
                make_topic("Cough", topic_type="Symptom"),
                make_topic("Legacy", topic_type=None),
            ]
        )

    @pytest.mark.asyncio
    async def test_pages_are_sorted_case_insensitively(
        self, read_store: InMemoryTopicStore
    ) -> None:
        page = await read_store.fetch_page(skip=1, take=2)
        assert [t.name for t in page] == ["bronchitis", "Cough"]

    @pytest.mark.asyncio
    async def test_type_filter_and_search(self, read_store: InMemoryTopicStore) -> None:
        diseases = await read_store.fetch_page(topic_type="disease")
        assert [t.name for t in diseases] == ["Asthma", "bronchitis"]

        assert await read_store.count_topics(query="O") == 2
        assert await read_store.count_topics(topic_type="Symptom", query="co") == 1

    @pytest.mark.asyncio
    async def test_distinct_type_counts(self, read_store: InMemoryTopicStore) -> None:
        counts = await read_store.distinct_type_counts()
        assert [(c.type, c.count) for c in counts] == [("Disease", 2), ("Symptom", 1)]

    @pytest.mark.asyncio
    async def test_read_results_are_not_tracked(self, read_store: InMemoryTopicStore) -> None:
        topic = await read_store.find_by_name("ASTHMA")
        assert topic is not None

        topic.category = "Changed"

        assert read_store.has_pending_changes() is False


class TestMongoTopicStore:
    """Tests for MongoTopicStore against a mock client."""

    @pytest.fixture
    def client(self) -> MockMongoClient:
        return MockMongoClient()

    @pytest.fixture
    def mongo_store(self, client: MockMongoClient) -> MongoTopicStore:
        return MongoTopicStore(client)  # type: ignore[arg-type]

    def _seed(self, client: MockMongoClient, store: MongoTopicStore, topic: Topic) -> None:
        client.topics.documents.append(store._topic_to_doc(topic))

    def test_documents_carry_lowercase_keys(self, mongo_store: MongoTopicStore) -> None:
        doc = mongo_store._topic_to_doc(Topic(name="Asthma", topic_type="Diagnostic Test"))
        assert doc["name_lower"] == "asthma"
        assert doc["topic_type_lower"] == "diagnostic test"

    def test_documents_round_trip_without_mongo_fields(
        self, mongo_store: MongoTopicStore
    ) -> None:
        topic = Topic(name="Asthma")
        doc = {**mongo_store._topic_to_doc(topic), "_id": "object-id"}
        assert mongo_store._doc_to_topic(doc) == topic

    def test_search_filter_escapes_regex(self) -> None:
        filter_ = MongoTopicStore._read_filter(" Disease ", "a+b")
        assert filter_ == {
            "topic_type_lower": "disease",
            "name": {"$regex": r"a\+b", "$options": "i"},
        }

    @pytest.mark.asyncio
    async def test_get_by_name_is_tracked(
        self,
        client: MockMongoClient,
        mongo_store: MongoTopicStore,
        make_topic: Callable[..., Topic],
    ) -> None:
        self._seed(client, mongo_store, make_topic("Asthma"))

        topic = await mongo_store.get_by_name("ASTHMA")

        assert topic is not None
        assert topic is await mongo_store.get_by_name("asthma")
        assert mongo_store.has_pending_changes() is False

    @pytest.mark.asyncio
    async def test_save_writes_ordered_bulk(
        self,
        client: MockMongoClient,
        mongo_store: MongoTopicStore,
        make_topic: Callable[..., Topic],
    ) -> None:
        self._seed(client, mongo_store, make_topic("Asthma"))
        self._seed(client, mongo_store, make_topic("Flu"))
        asthma = await mongo_store.get_by_name("Asthma")
        flu = await mongo_store.get_by_name("Flu")
        assert asthma is not None and flu is not None

        asthma.category = None
        await mongo_store.remove_range([flu])
        await mongo_store.add(Topic(name="Cough"))
        await mongo_store.save()

        operations, ordered = client.topics.bulk_calls[0]
        assert ordered is True
        assert [type(op) for op in operations] == [DeleteOne, ReplaceOne, InsertOne]

    @pytest.mark.asyncio
    async def test_bulk_write_error_becomes_persistence_error(
        self,
        client: MockMongoClient,
        mongo_store: MongoTopicStore,
    ) -> None:
        client.topics.bulk_error = BulkWriteError({"writeErrors": [{"code": 11000}]})
        await mongo_store.add(Topic(name="Asthma"))

        with pytest.raises(PersistenceError):
            await mongo_store.save()

        assert mongo_store.has_pending_changes() is True

    @pytest.mark.asyncio
    async def test_ledger_uses_set_on_insert(
        self,
        client: MockMongoClient,
        mongo_store: MongoTopicStore,
    ) -> None:
        client.seen_topics.upserted_count = 1
        entry = SeenTopic(name="Asthma", status=SeenStatus.ACCEPTED, topic_type="Disease")

        added = await mongo_store.add_seen_topics([entry])

        operations, ordered = client.seen_topics.bulk_calls[0]
        assert added == 1
        assert ordered is False
        assert all(isinstance(op, UpdateOne) for op in operations)

    @pytest.mark.asyncio
    async def test_empty_ledger_write_is_skipped(
        self,
        client: MockMongoClient,
        mongo_store: MongoTopicStore,
    ) -> None:
        assert await mongo_store.add_seen_topics([]) == 0
        assert client.seen_topics.bulk_calls == []
