"""Hashing utilities for medtopics.

This module provides deterministic fingerprints of merged source
text. They are used for change detection only, not for security.
"""

import hashlib
from collections.abc import Iterable

from medtopics.models.provider import RawTopicData

__all__ = [
    "HASH_LENGTH",
    "compute_hash",
    "get_source_hash",
    "hash_text",
]

HASH_LENGTH = 16


def hash_text(text: str) -> str:
    """Generate SHA256 hash of text.

    Args:
        text: Input text to hash

    Returns:
        Hexadecimal SHA256 hash string
    """
    return hashlib.sha256(text.encode("utf-8")).hexdigest()


def compute_hash(text: str, length: int = HASH_LENGTH) -> str:
    """Short fingerprint of text.

    Args:
        text: Input text
        length: Number of hex characters to keep

    Returns:
        Truncated hexadecimal SHA256 digest
    """
    return hash_text(text)[:length]


def get_source_hash(results: Iterable[RawTopicData], merged_raw_source: str) -> str:
    """Fingerprint for a set of provider results.

    The first provider-supplied content hash wins; otherwise the merged
    text is hashed. This lets a provider signal "nothing changed"
    without the pipeline re-hashing large text every cycle.

    Args:
        results: Provider results in merge order
        merged_raw_source: Output of ``build_merged_raw_source`` for the same results

    Returns:
        Source fingerprint
    """
    for result in results:
        if result.content_hash is not None:
            return result.content_hash
    return compute_hash(merged_raw_source)
