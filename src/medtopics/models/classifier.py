"""Classifier input and output models for medtopics."""

from dataclasses import dataclass, field
from enum import StrEnum
from typing import Self

from pydantic import BaseModel

from medtopics.taxonomy import TopicType

__all__ = [
    "ComparisonKind",
    "NameComparison",
    "TopicCategoryInput",
    "TopicClassifyInput",
    "TypeClassification",
]


class TopicClassifyInput(BaseModel, frozen=True):
    """A discovered name with a short snippet of its source text."""

    name: str
    summary_snippet: str | None = None


class TopicCategoryInput(BaseModel, frozen=True):
    """A topic to categorise, with its type as a hint."""

    name: str
    topic_type: str | None = None
    summary_snippet: str | None = None


@dataclass
class TypeClassification:
    """Result of batched type classification.

    Every name from a completed batch lands in ``triaged`` and gets
    one verdict: a medical type in ``types``, an explicit non-medical
    verdict in ``rejected``, or neither, meaning the classifier could
    not decide ("Other", an invalid type or no answer at all). Names
    from failed batches appear in none of the collections.
    """

    types: dict[str, str] = field(default_factory=dict)
    rejected: set[str] = field(default_factory=set)
    triaged: set[str] = field(default_factory=set)

    def type_for(self, name: str) -> str | None:
        return self.types.get(name)

    def was_triaged(self, name: str) -> bool:
        return name in self.triaged

    def is_rejected(self, name: str) -> bool:
        return name in self.rejected

    def verdict_for(self, name: str) -> str | None:
        """Topic type to record for a name, or None if it was never triaged."""
        if name in self.types:
            return self.types[name]
        if name in self.rejected:
            return TopicType.NON_MEDICAL.value
        if name in self.triaged:
            return TopicType.OTHER.value
        return None


class ComparisonKind(StrEnum):
    """How two names that collided on the same canonical name relate."""

    MERGE = "merge"
    REPLACE = "replace"
    DISTINCT = "distinct"


@dataclass(frozen=True)
class NameComparison:
    """Outcome of comparing a candidate name against an existing topic name.

    ``preferred_name`` is None only for ``DISTINCT``.
    """

    kind: ComparisonKind
    preferred_name: str | None = None

    @classmethod
    def merge(cls, preferred_name: str) -> Self:
        return cls(ComparisonKind.MERGE, preferred_name)

    @classmethod
    def replace(cls, preferred_name: str) -> Self:
        return cls(ComparisonKind.REPLACE, preferred_name)

    @classmethod
    def distinct(cls) -> Self:
        return cls(ComparisonKind.DISTINCT)

    @property
    def is_distinct(self) -> bool:
        return self.kind is ComparisonKind.DISTINCT

    @property
    def should_replace(self) -> bool:
        return self.kind is ComparisonKind.REPLACE
