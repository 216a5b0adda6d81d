"""Topic models for medtopics.

These models represent canonical knowledge-base topics and the
write-once ledger of triage decisions.
"""

import uuid
from datetime import UTC, datetime
from enum import StrEnum

from pydantic import BaseModel, Field

__all__ = [
    "SeenStatus",
    "SeenTopic",
    "Topic",
    "TopicTypeSummary",
]

def _utcnow() -> datetime:
    return datetime.now(UTC)


class Topic(BaseModel):
    """Canonical knowledge-base record for one real-world subject.

    Topics are mutable: the pipeline loads them through a tracking
    store, edits fields in place and flushes the change set with
    ``save()``. The meaning of ``observations``/``factors``/``actions``
    depends on ``topic_type`` (e.g. for a Drug they are side effects,
    contraindications and indications).

    Attributes:
        id: Opaque immutable identity
        name: Canonical display name, unique case-insensitively
        original_name: Name a provider used before canonicalisation
        summary: Short paraphrase of the source text
        observations: Type-dependent list (signs, side effects, ...)
        factors: Type-dependent list (causes, contraindications, ...)
        actions: Type-dependent list (treatments, indications, ...)
        citations: Guidelines or bodies explicitly named in the source
        tags: Lower-cased search terms
        category: One of the fixed categories, or None until classified
        topic_type: One of the fixed types, "Other", or None
        raw_source: Merged provider text (internal)
        source_hash: Fingerprint of raw_source (internal)
        last_source_refresh: When providers were last queried (internal)
        needs_reprocessing: Source changed or last extraction was low quality
        last_updated: Last successful content change
        version: Incremented once per successful re-extraction
    """

    id: str = Field(default_factory=lambda: uuid.uuid4().hex)
    name: str
    original_name: str | None = None
    summary: str | None = None
    observations: list[str] = Field(default_factory=list)
    factors: list[str] = Field(default_factory=list)
    actions: list[str] = Field(default_factory=list)
    citations: list[str] = Field(default_factory=list)
    tags: list[str] = Field(default_factory=list)
    category: str | None = None
    topic_type: str | None = None
    raw_source: str | None = None
    source_hash: str | None = None
    last_source_refresh: datetime | None = None
    needs_reprocessing: bool = False
    last_updated: datetime = Field(default_factory=_utcnow)
    version: int = Field(default=1, ge=1)


class SeenStatus(StrEnum):
    """Outcome of triaging a discovered name."""

    ACCEPTED = "Accepted"
    NON_MEDICAL = "NonMedical"
    UNCLASSIFIABLE = "Unclassifiable"


class SeenTopic(BaseModel, frozen=True):
    """Write-once record of a classification decision for a discovered name.

    Prevents spending classifier budget on names already triaged,
    including rejected ones.
    """

    name: str
    status: SeenStatus
    topic_type: str | None = None
    first_seen: datetime = Field(default_factory=_utcnow)


class TopicTypeSummary(BaseModel, frozen=True):
    """Number of accepted topics of one type."""

    type: str
    count: int
