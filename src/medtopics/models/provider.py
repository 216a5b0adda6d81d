"""Provider-side models for medtopics."""

from pydantic import BaseModel, Field

__all__ = [
    "RawTopicData",
]


class RawTopicData(BaseModel, frozen=True):
    """One provider's evidence about one subject.

    Ephemeral: built by a provider on discovery or fetch and consumed
    by the pipeline, never persisted as-is.

    Attributes:
        topic_name: Name the provider uses for the subject
        raw_text: Unstructured provider text
        source_name: Provider label used as the section header in merged text
        groups: Optional context labels (e.g. provider categories)
        content_hash: Provider-supplied fingerprint, preferred over a computed one
    """

    topic_name: str
    raw_text: str
    source_name: str
    groups: list[str] = Field(default_factory=list)
    content_hash: str | None = None
