"""Data models for medtopics."""

from medtopics.models.classifier import (
    ComparisonKind,
    NameComparison,
    TopicCategoryInput,
    TopicClassifyInput,
    TypeClassification,
)
from medtopics.models.provider import RawTopicData
from medtopics.models.results import BackfillResult, IngestionResult, RefreshResult
from medtopics.models.topic import SeenStatus, SeenTopic, Topic, TopicTypeSummary

__all__ = [
    "BackfillResult",
    "ComparisonKind",
    "IngestionResult",
    "NameComparison",
    "RawTopicData",
    "RefreshResult",
    "SeenStatus",
    "SeenTopic",
    "Topic",
    "TopicCategoryInput",
    "TopicClassifyInput",
    "TopicTypeSummary",
    "TypeClassification",
]
