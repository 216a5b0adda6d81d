"""Data provider interface for medtopics.

This module defines the Protocol for external sources contributing
raw evidence about medical subjects.
"""

from collections.abc import Set
from typing import Protocol, runtime_checkable

from medtopics.models.provider import RawTopicData

__all__ = [
    "DataProviderInterface",
]


@runtime_checkable
class DataProviderInterface(Protocol):
    """Contract for one external data provider.

    All three operations must be failure tolerant on their own: a
    provider returns an empty result or None on error instead of
    raising. Callers still guard every call, since a misbehaving
    provider must never abort a run.
    """

    @property
    def source_name(self) -> str:
        """Label used in logs and as the section header in merged text."""
        ...

    async def discover(self, exclude: Set[str]) -> list[RawTopicData]:
        """Discover subjects not in the exclusion set.

        Args:
            exclude: Lower-cased names already triaged or accepted

        Returns:
            Evidence for newly discovered subjects
        """
        ...

    async def fetch(self, name: str) -> RawTopicData | None:
        """Look up a single subject by the name this provider uses.

        Args:
            name: Provider-side subject name

        Returns:
            Evidence for the subject, or None if unknown
        """
        ...

    async def known_names(self) -> set[str]:
        """Enumerate every subject name currently in the provider's index."""
        ...
