"""Exception hierarchy for medtopics."""

__all__ = [
    "ExtractionError",
    "MedTopicsError",
    "NotConnectedError",
    "PersistenceError",
]


class MedTopicsError(Exception):
    """Base class for all medtopics errors."""


class ExtractionError(MedTopicsError):
    """The classifier could not produce a structured topic from source text."""


class PersistenceError(MedTopicsError):
    """Flushing tracked changes to the store failed.

    The tracked change set is left intact so the caller can revert it.
    """


class NotConnectedError(MedTopicsError, RuntimeError):
    """The facade was used outside of its async context manager."""
