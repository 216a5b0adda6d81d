"""Mock MongoDB client for testing."""

from typing import Any
from unittest.mock import MagicMock


def _matches(document: dict[str, Any], filter_: dict[str, Any]) -> bool:
    # Equality and $in only; other operators match everything.
    for key, expected in filter_.items():
        if key.startswith("$"):
            continue
        if isinstance(expected, dict):
            if "$in" in expected and document.get(key) not in expected["$in"]:
                return False
            continue
        if document.get(key) != expected:
            return False
    return True


class MockMongoCollection:
    """Mock MongoDB collection."""

    def __init__(self) -> None:
        self.documents: list[dict[str, Any]] = []
        self.bulk_calls: list[tuple[list[Any], bool]] = []
        self.bulk_error: Exception | None = None
        self.upserted_count = 0

    def find(
        self,
        filter_: dict[str, Any] | None = None,
        projection: dict[str, Any] | None = None,
    ) -> "MockCursor":
        docs = [d for d in self.documents if _matches(d, filter_ or {})]
        return MockCursor(docs)

    async def find_one(self, filter_: dict[str, Any]) -> dict[str, Any] | None:
        for doc in self.documents:
            if _matches(doc, filter_):
                return doc
        return None

    async def count_documents(self, filter_: dict[str, Any]) -> int:
        return sum(1 for d in self.documents if _matches(d, filter_))

    async def bulk_write(self, operations: list[Any], ordered: bool = True) -> MagicMock:
        self.bulk_calls.append((list(operations), ordered))
        if self.bulk_error is not None:
            raise self.bulk_error
        result = MagicMock()
        result.upserted_count = self.upserted_count
        return result


class MockCursor:
    """Mock MongoDB cursor."""

    def __init__(self, documents: list[dict[str, Any]]) -> None:
        self._documents = documents
        self.sorted_by: Any = None

    def sort(self, *args: Any, **kwargs: Any) -> "MockCursor":
        self.sorted_by = args
        return self

    def skip(self, n: int) -> "MockCursor":
        self._documents = self._documents[n:]
        return self

    def limit(self, n: int) -> "MockCursor":
        self._documents = self._documents[:n]
        return self

    def __aiter__(self) -> "MockCursor":
        self._index = 0
        return self

    async def __anext__(self) -> dict[str, Any]:
        if self._index >= len(self._documents):
            raise StopAsyncIteration
        doc = self._documents[self._index]
        self._index += 1
        return doc


class MockMongoClient:
    """Mock MongoDB client for testing."""

    def __init__(self) -> None:
        self._collections: dict[str, MockMongoCollection] = {}

    def __getitem__(self, name: str) -> MockMongoCollection:
        if name not in self._collections:
            self._collections[name] = MockMongoCollection()
        return self._collections[name]

    @property
    def topics(self) -> MockMongoCollection:
        return self["topics"]

    @property
    def seen_topics(self) -> MockMongoCollection:
        return self["seen_topics"]

    async def connect(self) -> None:
        pass

    async def disconnect(self) -> None:
        pass

    async def create_indexes(self) -> None:
        pass
