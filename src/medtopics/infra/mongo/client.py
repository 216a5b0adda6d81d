"""MongoDB client for medtopics.

This module provides an async MongoDB client wrapper using Motor.
"""

from typing import TYPE_CHECKING, Any

from medtopics.config import MongoSettings
from medtopics.logging import get_logger
from medtopics.utils.lazy_import import lazy_import

if TYPE_CHECKING:
    from motor.motor_asyncio import AsyncIOMotorCollection, AsyncIOMotorDatabase

__all__ = [
    "MongoClient",
]

logger = get_logger(__name__)

get_async_motor = lazy_import("motor.motor_asyncio", "AsyncIOMotorClient")


class MongoClient:
    """Async MongoDB client wrapper.

    Provides a connection manager and collection accessors
    for the medtopics MongoDB database.

    Example:
        client = MongoClient(settings)
        await client.connect()

        # Access collections
        await client.topics.find_one({"name_lower": "asthma"})

        await client.disconnect()
    """

    def __init__(self, settings: MongoSettings) -> None:
        """Initialize client with settings.

        Args:
            settings: MongoDB connection settings
        """
        self._settings = settings
        self._client = None
        self._db = None

    async def connect(self) -> None:
        """Initialize connection to MongoDB."""
        if self._client is not None:
            return
        AsyncIOMotorClient = get_async_motor()  # noqa: N806

        uri = self._settings.uri.get_secret_value()
        # tz_aware keeps refresh timestamps comparable with datetime.now(UTC)
        self._client = AsyncIOMotorClient(uri, tz_aware=True)
        self._db = self._client[self._settings.database]

        # Verify connection
        await self._client.admin.command("ping")
        logger.info(
            "connected_to_mongodb",
            database=self._settings.database,
        )

    async def disconnect(self) -> None:
        """Close connection to MongoDB."""
        if self._client:
            self._client.close()
            self._client = None
            self._db = None
            logger.info("disconnected_from_mongodb")

    @property
    def db(self) -> "AsyncIOMotorDatabase[dict[str, Any]]":
        """Get database instance.

        Raises:
            RuntimeError: If not connected
        """
        if self._db is None:
            raise RuntimeError("MongoClient not connected. Call connect() first.")
        return self._db

    def _collection(self, name: str) -> "AsyncIOMotorCollection[dict[str, Any]]":
        """Get collection with optional prefix."""
        full_name = f"{self._settings.collection_prefix}{name}"
        return self.db[full_name]

    @property
    def topics(self) -> "AsyncIOMotorCollection[dict[str, Any]]":
        """Get topics collection."""
        return self._collection("topics")

    @property
    def seen_topics(self) -> "AsyncIOMotorCollection[dict[str, Any]]":
        """Get seen_topics (triage ledger) collection."""
        return self._collection("seen_topics")

    async def create_indexes(self) -> None:
        """Create indexes for all collections."""
        # Topics indexes
        await self.topics.create_index("id", unique=True)
        await self.topics.create_index("name_lower", unique=True)
        await self.topics.create_index("topic_type_lower")
        await self.topics.create_index("last_source_refresh")
        await self.topics.create_index("needs_reprocessing")

        # Ledger indexes
        await self.seen_topics.create_index("name_lower", unique=True)

        logger.info("created_mongodb_indexes")

    async def __aenter__(self) -> "MongoClient":
        """Async context manager entry."""
        await self.connect()
        return self

    async def __aexit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        """Async context manager exit."""
        await self.disconnect()
