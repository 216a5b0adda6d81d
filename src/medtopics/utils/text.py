"""Text helpers for merging provider evidence and gating topic quality."""

import re
from collections.abc import Callable, Iterable, Sequence

from medtopics.models.provider import RawTopicData
from medtopics.models.topic import SeenStatus, Topic
from medtopics.taxonomy import TopicType

__all__ = [
    "MAX_CHARS_PER_SOURCE",
    "MIN_SUMMARY_LENGTH",
    "SOURCE_DELIMITER",
    "build_merged_raw_source",
    "check_topic_quality",
    "get_seen_status",
    "normalize_list",
    "to_sentence_case",
    "to_title_case",
    "truncate_at_word",
    "truncate_to_sentence",
]

MAX_CHARS_PER_SOURCE = 15_000
MIN_SUMMARY_LENGTH = 80
SOURCE_DELIMITER = "\n---\n"

_WHITESPACE = re.compile(r"\s")


def truncate_at_word(text: str, limit: int) -> str:
    """Cut text to at most ``limit`` characters at a whitespace boundary.

    Falls back to a hard cut only when the first ``limit`` characters
    contain no whitespace at all.
    """
    if len(text) <= limit:
        return text
    cutoff = -1
    for match in _WHITESPACE.finditer(text, 0, limit + 1):
        cutoff = match.start()
    return text[:cutoff] if cutoff > 0 else text[:limit]


def build_merged_raw_source(
    results: Sequence[RawTopicData],
    max_chars_per_source: int = MAX_CHARS_PER_SOURCE,
) -> str:
    """Merge provider evidence into one canonical source text.

    A context line listing the group labels contributed by any provider
    comes first, followed by each provider's text under a
    ``[SourceName]`` header in input order.

    Args:
        results: Provider results for one subject
        max_chars_per_source: Per-provider character budget

    Returns:
        Merged text, sections joined by ``SOURCE_DELIMITER``
    """
    parts: list[str] = []

    groups: dict[str, str] = {}
    for result in results:
        for group in result.groups:
            if group.strip():
                groups.setdefault(group.strip().lower(), group.strip())
    if groups:
        labels = sorted(groups.values(), key=str.lower)
        parts.append(f"[Groups: {', '.join(labels)}]")

    for result in results:
        text = truncate_at_word(result.raw_text, max_chars_per_source)
        parts.append(f"[{result.source_name}]\n{text}")

    return SOURCE_DELIMITER.join(parts)


def check_topic_quality(topic: Topic, min_summary_length: int = MIN_SUMMARY_LENGTH) -> str | None:
    """Check whether a topic is good enough to go live without a retry flag.

    Args:
        topic: Extracted or re-extracted topic
        min_summary_length: Minimum summary length in characters

    Returns:
        Human-readable reason if the topic fails, None if it passes
    """
    summary = topic.summary
    if summary is None or not summary.strip() or len(summary) < min_summary_length:
        length = len(summary) if summary else 0
        return f"summary too short ({length} chars, minimum {min_summary_length})"

    if summary.strip().lower() == topic.name.strip().lower():
        return "summary just restates the topic name"

    if not (topic.observations or topic.factors or topic.actions):
        return "no observations, factors, or actions populated"

    return None


def get_seen_status(topic_type: str | None) -> SeenStatus:
    """Ledger status for a triage decision."""
    if topic_type is None or topic_type.strip().lower() == TopicType.OTHER.lower():
        return SeenStatus.UNCLASSIFIABLE
    if topic_type.strip().lower() == TopicType.NON_MEDICAL.lower():
        return SeenStatus.NON_MEDICAL
    return SeenStatus.ACCEPTED


def _is_upper_token(word: str) -> bool:
    # Abbreviations such as COPD or HIV-1 keep their casing.
    return len(word) >= 2 and all(not c.isalpha() or c.isupper() for c in word)


def _title_simple(word: str) -> str:
    if not word or _is_upper_token(word):
        return word
    if word.lower().endswith("'s") and len(word) > 2:
        base = word[:-2]
        return base[0].upper() + base[1:].lower() + "'s"
    return word[0].upper() + word[1:].lower()


def _title_word(word: str) -> str:
    if _is_upper_token(word):
        return word
    if "(" in word or ")" in word:
        return "".join(
            part if part in "()" else _title_simple(part)
            for part in re.split(r"([()])", word)
        )
    if "/" in word:
        return "/".join(_title_word(part) for part in word.split("/"))
    if "-" in word:
        return "-".join(_title_simple(part) for part in word.split("-"))
    return _title_simple(word)


def to_title_case(text: str) -> str:
    """Title-case a topic name, preserving abbreviations.

    Parenthesised, slash- and hyphen-separated parts are cased
    individually: ``"type 2 diabetes (t2d)"`` becomes
    ``"Type 2 Diabetes (T2d)"`` while ``"COPD"`` stays as is.
    """
    if not text or not text.strip():
        return text
    return " ".join(_title_word(word) for word in text.split())


def to_sentence_case(text: str) -> str:
    if not text or not text.strip():
        return text
    trimmed = text.strip()
    return trimmed[0].upper() + trimmed[1:]


def truncate_to_sentence(text: str | None, max_length: int) -> str | None:
    """Shorten text to a sentence boundary within ``max_length``.

    Falls back to the last word boundary, then to a hard cut.
    """
    if text is None or not text.strip():
        return None
    if len(text) <= max_length:
        return text.strip()

    region = text[:max_length]
    last_stop = max(region.rfind("."), region.rfind("!"), region.rfind("?"))
    if last_stop > 0:
        return region[: last_stop + 1].strip()

    last_space = region.rfind(" ")
    return region[:last_space].strip() if last_space > 0 else region.strip()


def normalize_list(items: Iterable[str], transform: Callable[[str], str]) -> list[str]:
    """Drop blanks, transform, and de-duplicate case-insensitively keeping order."""
    seen: set[str] = set()
    normalized: list[str] = []
    for item in items:
        if not isinstance(item, str) or not item.strip():
            continue
        value = transform(item.strip())
        key = value.lower()
        if key not in seen:
            seen.add(key)
            normalized.append(value)
    return normalized
