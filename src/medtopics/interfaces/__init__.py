"""Interface contracts for medtopics.

This module exports all Protocol-based interfaces for dependency injection.
"""

from medtopics.interfaces.cache import MISS, CacheInterface
from medtopics.interfaces.classifier import ClassifierInterface
from medtopics.interfaces.provider import DataProviderInterface
from medtopics.interfaces.storage import (
    SeenTopicLedger,
    TopicQueryRepository,
    TopicReadSource,
    TopicStoreInterface,
    TopicWriteRepository,
)

__all__ = [
    "CacheInterface",
    "ClassifierInterface",
    "DataProviderInterface",
    "MISS",
    "SeenTopicLedger",
    "TopicQueryRepository",
    "TopicReadSource",
    "TopicStoreInterface",
    "TopicWriteRepository",
]
