"""medtopics - Self-maintaining knowledge base of medical topics.

This package provides tools for:
- Discovering topic names from pluggable medical data providers
- Triaging names with an LLM classifier and remembering every decision
- Extracting structured topics and folding synonyms into one record
- Refreshing sources, re-extracting changed topics and filling gaps
- Serving reads through an epoch-invalidated cache

Example usage:
    from medtopics import MedTopics, MongoTopicStore, OpenAIClassifier

    # Simple usage - config loaded from .env automatically
    async with MedTopics(
        store_class=MongoTopicStore,
        classifier_class=OpenAIClassifier,
        providers=[MedlinePlusProvider()],
    ) as mt:
        result = await mt.run_ingestion()
        topic = await mt.get_by_name("asthma")
"""

__version__ = "0.1.0"

# Errors
from medtopics.errors import (
    ExtractionError,
    MedTopicsError,
    NotConnectedError,
    PersistenceError,
)

# Implementations
from medtopics.infra.cache import EpochCache
from medtopics.infra.llm import AnthropicClassifier, BaseLLMClassifier, OpenAIClassifier
from medtopics.infra.memory import InMemoryTopicStore
from medtopics.infra.mongo.repositories import MongoTopicStore
from medtopics.infra.redis import RedisEpochCache

# Interfaces
from medtopics.interfaces import (
    CacheInterface,
    ClassifierInterface,
    DataProviderInterface,
    TopicStoreInterface,
)
from medtopics.models import (
    IngestionResult,
    RawTopicData,
    RefreshResult,
    Topic,
    TopicTypeSummary,
)
from medtopics.orchestrator import MedTopics

__all__ = [  # noqa: RUF022
    # Orchestrator
    "MedTopics",
    "IngestionResult",
    "RefreshResult",
    # Models
    "RawTopicData",
    "Topic",
    "TopicTypeSummary",
    # Implementations
    "InMemoryTopicStore",
    "MongoTopicStore",
    "OpenAIClassifier",
    "AnthropicClassifier",
    "BaseLLMClassifier",
    "EpochCache",
    "RedisEpochCache",
    # Interfaces
    "CacheInterface",
    "ClassifierInterface",
    "DataProviderInterface",
    "TopicStoreInterface",
    # Errors
    "MedTopicsError",
    "ExtractionError",
    "PersistenceError",
    "NotConnectedError",
]
