"""Shared test fixtures for medtopics.

This module provides pytest fixtures used across all tests.
"""

from collections.abc import Callable
from datetime import UTC, datetime
from typing import Any

import pytest
from mocks.fake_classifier import GOOD_SUMMARY, ScriptedClassifier
from mocks.fake_providers import StaticProvider

from medtopics.config import PipelineSettings
from medtopics.infra.cache import EpochCache
from medtopics.infra.memory import InMemoryTopicStore
from medtopics.models.topic import Topic
from medtopics.services.backfill import BackfillService
from medtopics.services.ingestion import IngestionService
from medtopics.services.read_service import TopicReadService
from medtopics.services.refresh import RefreshService

NOW = datetime(2025, 6, 15, 12, 0, tzinfo=UTC)


def long_text(subject: str, length: int = 600) -> str:
    """Provider-style description of at least ``length`` characters."""
    sentence = (
        f"{subject} is a health topic described by this provider in plain language. "
        "It explains common signs, causes and the usual treatment options. "
    )
    text = sentence
    while len(text) < length:
        text += sentence
    return text.strip()


# Clock and settings
@pytest.fixture
def now() -> datetime:
    """Fixed 'current time' used by the pipeline services."""
    return NOW


@pytest.fixture
def clock(now: datetime) -> Callable[[], datetime]:
    return lambda: now


@pytest.fixture
def settings() -> PipelineSettings:
    """Pipeline settings without throttling."""
    return PipelineSettings(llm_throttle_seconds=0)


# Infrastructure fixtures
@pytest.fixture
def store() -> InMemoryTopicStore:
    return InMemoryTopicStore()


@pytest.fixture
def cache() -> EpochCache:
    return EpochCache()


@pytest.fixture
def read_service(store: InMemoryTopicStore, cache: EpochCache) -> TopicReadService:
    return TopicReadService(store, cache)


@pytest.fixture
def classifier() -> ScriptedClassifier:
    """Classifier that types Asthma, rejects Stock Market and cannot place anything else."""
    return ScriptedClassifier(
        types={"Asthma": "Disease", "Stock Market": "Non-Medical"},
        categories={"Asthma": "Respiratory System"},
    )


@pytest.fixture
def provider() -> StaticProvider:
    return StaticProvider("MedlinePlus", {"Asthma": long_text("Asthma")})


# Service fixtures
@pytest.fixture
def backfill(store: InMemoryTopicStore, classifier: ScriptedClassifier) -> BackfillService:
    return BackfillService(store, classifier)


@pytest.fixture
def ingestion(
    provider: StaticProvider,
    store: InMemoryTopicStore,
    classifier: ScriptedClassifier,
    backfill: BackfillService,
    read_service: TopicReadService,
    settings: PipelineSettings,
    clock: Callable[[], datetime],
) -> IngestionService:
    return IngestionService(
        [provider], store, classifier, backfill, read_service, settings=settings, now=clock
    )


@pytest.fixture
def refresh(
    provider: StaticProvider,
    store: InMemoryTopicStore,
    classifier: ScriptedClassifier,
    backfill: BackfillService,
    read_service: TopicReadService,
    settings: PipelineSettings,
    clock: Callable[[], datetime],
) -> RefreshService:
    return RefreshService(
        [provider], store, classifier, backfill, read_service, settings=settings, now=clock
    )


# Sample data fixtures
@pytest.fixture
def make_topic() -> Callable[..., Topic]:
    """Factory for stored topics that pass the quality gate."""

    def factory(name: str, **fields: Any) -> Topic:
        values: dict[str, Any] = {
            "name": name,
            "original_name": name,
            "summary": GOOD_SUMMARY,
            "observations": ["Cough"],
            "topic_type": "Disease",
            "category": "Respiratory System",
            "raw_source": f"[MedlinePlus]\n{long_text(name)}",
            "source_hash": "0000000000000000",
            "last_source_refresh": NOW,
        }
        values.update(fields)
        return Topic(**values)

    return factory
