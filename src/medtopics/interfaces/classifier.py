"""Classifier interface for medtopics.

This module defines the Protocol for the text-understanding capability
that triages, categorises and extracts medical topics.
"""

from collections.abc import Sequence
from typing import Protocol, runtime_checkable

from medtopics.models.classifier import (
    NameComparison,
    TopicCategoryInput,
    TopicClassifyInput,
    TypeClassification,
)
from medtopics.models.topic import Topic

__all__ = [
    "ClassifierInterface",
]


@runtime_checkable
class ClassifierInterface(Protocol):
    """Contract for topic classification and extraction.

    Implementations must sanitise their own output: results keyed by
    names not present in the input batch are dropped, and values outside
    the closed taxonomies are discarded. A failing batch yields nothing
    and the remaining batches still run.
    """

    async def classify_names(
        self,
        topics: Sequence[TopicClassifyInput],
    ) -> TypeClassification:
        """Assign a topic type to each medical name.

        Non-medical or ambiguous names are omitted from ``types`` but
        still listed in ``triaged`` when their batch completed.

        Args:
            topics: Names with short source snippets

        Returns:
            TypeClassification with accepted types and triaged names
        """
        ...

    async def classify_categories(
        self,
        topics: Sequence[TopicCategoryInput],
    ) -> dict[str, str]:
        """Assign a category to each topic.

        Mandatory type-to-category mappings override the classifier.

        Args:
            topics: Topics with their type and a short snippet

        Returns:
            Mapping of input name to category
        """
        ...

    async def extract(
        self,
        raw_text: str,
        topic_type: str | None,
        discovered_name: str | None = None,
    ) -> Topic | None:
        """Extract a structured topic from merged source text.

        Args:
            raw_text: Merged provider text
            topic_type: Type driving the field semantics
            discovered_name: Name the topic was discovered under

        Returns:
            A new unsaved Topic, or None when the type is excluded from extraction

        Raises:
            ExtractionError: If no usable topic could be produced
        """
        ...

    async def compare_canonical_name(self, candidate: str, existing: str) -> NameComparison:
        """Decide whether two names denote the same subject and which is canonical.

        Args:
            candidate: Newly discovered name
            existing: Name of the stored topic

        Returns:
            NameComparison: MERGE, REPLACE or DISTINCT
        """
        ...

    async def match_legacy_names(
        self,
        normalized_names: Sequence[str],
        candidate_names: Sequence[str],
    ) -> dict[str, str]:
        """Best-effort reverse lookup from canonical names to provider names.

        Args:
            normalized_names: Canonical topic names lacking an original name
            candidate_names: Provider names not yet claimed by any topic

        Returns:
            Partial mapping of canonical name to provider name
        """
        ...

    def should_process(self, topic_type: str | None) -> bool:
        """Whether topics of this type go through structured extraction."""
        ...
