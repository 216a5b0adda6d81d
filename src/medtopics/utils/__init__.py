"""Utility functions for medtopics.

This module contains internal utility functions.
"""

from medtopics.utils.concurrency import FanOut, Outcome, fan_out
from medtopics.utils.hashing import compute_hash, get_source_hash, hash_text
from medtopics.utils.text import (
    SOURCE_DELIMITER,
    build_merged_raw_source,
    check_topic_quality,
    get_seen_status,
    normalize_list,
    to_sentence_case,
    to_title_case,
    truncate_at_word,
    truncate_to_sentence,
)

__all__ = [
    "FanOut",
    "Outcome",
    "SOURCE_DELIMITER",
    "build_merged_raw_source",
    "check_topic_quality",
    "compute_hash",
    "fan_out",
    "get_seen_status",
    "get_source_hash",
    "hash_text",
    "normalize_list",
    "to_sentence_case",
    "to_title_case",
    "truncate_at_word",
    "truncate_to_sentence",
]
