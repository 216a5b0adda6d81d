"""Shared classifier logic for LLM-backed implementations.

Subclasses provide a single primitive, ``_complete(system, user)``,
returning the model's raw text reply. Batching, JSON cleanup and
sanitising against the closed taxonomies live here so every provider
enforces the same contract.
"""

import json
import re
from abc import ABC, abstractmethod
from collections.abc import Iterator, Sequence
from typing import Any, Self, TypeVar

from medtopics.config import LLMSettings
from medtopics.errors import ExtractionError
from medtopics.infra.llm import prompts
from medtopics.interfaces.classifier import ClassifierInterface
from medtopics.logging import get_logger
from medtopics.models.classifier import (
    NameComparison,
    TopicCategoryInput,
    TopicClassifyInput,
    TypeClassification,
)
from medtopics.models.topic import Topic
from medtopics.taxonomy import (
    TopicType,
    canonical_category,
    canonical_topic_type,
    is_valid_type_category_pair,
    mandatory_category_for,
    should_process_topic_type,
)
from medtopics.utils.text import (
    normalize_list,
    to_sentence_case,
    to_title_case,
    truncate_to_sentence,
)

__all__ = [
    "BaseLLMClassifier",
    "parse_json_object",
]

logger = get_logger(__name__)

T = TypeVar("T")

DEFAULT_BATCH_SIZE = 50
DEFAULT_SNIPPET_LENGTH = 150
MAX_RAW_TEXT_SIZE = 10 * 1024 * 1024
MAX_TOPIC_NAME_LENGTH = 200
DIFFERENT_SENTINEL = "different"

_CODE_FENCE = re.compile(r"```(?:json)?", re.IGNORECASE)


def parse_json_object(reply: str | None) -> dict[str, Any]:
    """Extract a JSON object from a model reply.

    Strips code fences, keeps the outermost braces and closes a
    truncated object. Anything that still fails to parse yields ``{}``.
    """
    if not reply or not reply.strip():
        return {}

    text = _CODE_FENCE.sub("", reply).replace("`", "").strip()

    first, last = text.find("{"), text.rfind("}")
    if first >= 0 and last > first:
        text = text[first : last + 1]
    elif first >= 0:
        text = text[first:].rstrip()
        text += "}" * (text.count("{") - text.count("}"))

    try:
        parsed = json.loads(text)
    except json.JSONDecodeError:
        return {}
    return parsed if isinstance(parsed, dict) else {}


def _chunks(items: Sequence[T], size: int) -> Iterator[Sequence[T]]:
    for start in range(0, len(items), size):
        yield items[start : start + size]


def _as_str_list(value: Any) -> list[str]:
    if not isinstance(value, list):
        return []
    return [item for item in value if isinstance(item, str)]


class BaseLLMClassifier(ClassifierInterface, ABC):
    """Implements the classifier contract on top of ``_complete``.

    Batch-level failures are logged with the batch size and skipped;
    they never abort the whole call.
    """

    config_class = LLMSettings

    def __init__(
        self,
        settings: LLMSettings,
        *,
        batch_size: int = DEFAULT_BATCH_SIZE,
        max_snippet_length: int = DEFAULT_SNIPPET_LENGTH,
    ) -> None:
        """Initialize classifier.

        Args:
            settings: LLM configuration settings
            batch_size: Names per classification request
            max_snippet_length: Snippet budget per name in characters
        """
        if batch_size <= 0:
            raise ValueError("batch_size must be greater than 0")
        self._settings = settings
        self._batch_size = batch_size
        self._max_snippet_length = max_snippet_length

    @classmethod
    async def from_config(cls, config: LLMSettings) -> Self:
        """Factory method for MedTopics instantiation.

        Args:
            config: LLM settings

        Returns:
            Classifier instance
        """
        return cls(config)

    @classmethod
    async def from_dict(cls, config: dict[str, Any]) -> Self:
        """Factory method for custom config dict.

        Args:
            config: Dictionary with LLM settings

        Returns:
            Classifier instance
        """
        settings = LLMSettings(**config)
        return cls(settings)

    async def close(self) -> None:
        """Close resources (no-op by default)."""
        pass

    @abstractmethod
    async def _complete(self, system: str, user: str) -> str:
        """Send one prompt and return the raw text reply."""

    async def _complete_json(self, system: str, user: str) -> dict[str, Any]:
        return parse_json_object(await self._complete(system, user))

    def _snippets(self, texts: Sequence[str | None]) -> list[str | None]:
        return [truncate_to_sentence(text, self._max_snippet_length) for text in texts]

    def should_process(self, topic_type: str | None) -> bool:
        return should_process_topic_type(topic_type)

    async def classify_names(
        self,
        topics: Sequence[TopicClassifyInput],
    ) -> TypeClassification:
        result = TypeClassification()

        for batch in _chunks(topics, self._batch_size):
            user = prompts.format_classify_batch(
                batch, self._snippets([t.summary_snippet for t in batch])
            )
            try:
                payload = await self._complete_json(prompts.CLASSIFY_SYSTEM, user)
            except Exception as e:
                logger.warning(
                    "classifier_batch_failed",
                    operation="classify_names",
                    batch_size=len(batch),
                    error=str(e),
                )
                continue

            if not payload:
                logger.warning(
                    "classifier_batch_failed",
                    operation="classify_names",
                    batch_size=len(batch),
                    error="empty or unparseable reply",
                )
                continue

            names = {t.name.lower(): t.name for t in batch}
            answered = 0
            for key, value in payload.items():
                name = names.get(str(key).strip().lower())
                if name is None:
                    logger.debug("classifier_unknown_key_dropped", key=key)
                    continue
                answered += 1
                verdict = value.strip() if isinstance(value, str) else ""
                if verdict.lower() == TopicType.NON_MEDICAL.lower():
                    result.rejected.add(name)
                    continue
                topic_type = canonical_topic_type(verdict)
                if topic_type is None:
                    if verdict.lower() != TopicType.OTHER.lower():
                        logger.warning("invalid_topic_type_dropped", name=name, value=value)
                    continue
                result.types[name] = topic_type

            if not answered:
                logger.warning(
                    "classifier_batch_failed",
                    operation="classify_names",
                    batch_size=len(batch),
                    error="reply names none of the requested topics",
                )
                continue

            result.triaged.update(t.name for t in batch)

        logger.info(
            "topic_names_classified",
            requested=len(topics),
            triaged=len(result.triaged),
            classified=len(result.types),
            rejected=len(result.rejected),
        )
        return result

    async def classify_categories(
        self,
        topics: Sequence[TopicCategoryInput],
    ) -> dict[str, str]:
        categorized: dict[str, str] = {}

        for batch in _chunks(topics, self._batch_size):
            user = prompts.format_category_batch(
                batch, self._snippets([t.summary_snippet for t in batch])
            )
            try:
                payload = await self._complete_json(prompts.CATEGORY_SYSTEM, user)
            except Exception as e:
                logger.warning(
                    "classifier_batch_failed",
                    operation="classify_categories",
                    batch_size=len(batch),
                    error=str(e),
                )
                payload = {}
            else:
                if not payload:
                    logger.warning(
                        "classifier_batch_failed",
                        operation="classify_categories",
                        batch_size=len(batch),
                        error="empty or unparseable reply",
                    )

            inputs = {t.name.lower(): t for t in batch}
            for key, value in payload.items():
                topic = inputs.get(str(key).strip().lower())
                if topic is None:
                    continue
                category = canonical_category(value if isinstance(value, str) else None)
                if category is None:
                    logger.warning("invalid_category_dropped", name=topic.name, value=value)
                    continue
                if not is_valid_type_category_pair(topic.topic_type, category):
                    logger.warning(
                        "invalid_category_pair_dropped",
                        name=topic.name,
                        topic_type=topic.topic_type,
                        category=category,
                    )
                    continue
                categorized[topic.name] = category

            # Mandatory mappings hold whatever the model said.
            for topic in batch:
                if topic.name not in categorized:
                    mandatory = mandatory_category_for(topic.topic_type)
                    if mandatory is not None:
                        categorized[topic.name] = mandatory

        return categorized

    async def extract(
        self,
        raw_text: str,
        topic_type: str | None,
        discovered_name: str | None = None,
    ) -> Topic | None:
        if not raw_text or not raw_text.strip():
            raise ValueError("Raw text cannot be empty")
        if len(raw_text) > MAX_RAW_TEXT_SIZE:
            raise ExtractionError(f"Raw text exceeds {MAX_RAW_TEXT_SIZE} characters")
        if discovered_name is not None and len(discovered_name) > MAX_TOPIC_NAME_LENGTH:
            raise ExtractionError(f"Topic name exceeds {MAX_TOPIC_NAME_LENGTH} characters")

        if not self.should_process(topic_type):
            logger.info(
                "extraction_skipped",
                name=discovered_name,
                topic_type=topic_type,
                reason="filtered topic type",
            )
            return None

        reply = await self._complete(
            prompts.build_extract_system(topic_type, discovered_name),
            prompts.format_source(raw_text),
        )
        if not reply or not reply.strip():
            raise ExtractionError("Classifier returned an empty reply")

        payload = {str(k).lower(): v for k, v in parse_json_object(reply).items()}
        if not payload:
            raise ExtractionError("Classifier reply is not a JSON object")

        name = payload.get("name")
        if not isinstance(name, str) or not name.strip():
            raise ExtractionError("Classifier returned a topic with no name")

        summary = payload.get("summary")
        if not isinstance(summary, str) or not summary.strip():
            raise ExtractionError(f"Classifier returned topic '{name}' with no summary")

        return Topic(
            name=to_title_case(name.strip()),
            summary=to_sentence_case(summary),
            observations=normalize_list(_as_str_list(payload.get("observations")), to_sentence_case),
            factors=normalize_list(_as_str_list(payload.get("factors")), to_sentence_case),
            actions=normalize_list(_as_str_list(payload.get("actions")), to_sentence_case),
            citations=normalize_list(_as_str_list(payload.get("citations")), str.strip),
            tags=normalize_list(_as_str_list(payload.get("tags")), str.lower),
            raw_source=raw_text,
        )

    async def compare_canonical_name(self, candidate: str, existing: str) -> NameComparison:
        if not candidate or not candidate.strip():
            raise ValueError("Candidate name cannot be empty")
        if not existing or not existing.strip():
            raise ValueError("Existing name cannot be empty")

        payload = await self._complete_json(
            prompts.COMPARE_SYSTEM,
            prompts.format_comparison(candidate, existing),
        )
        preferred = payload.get("preferred")
        if not isinstance(preferred, str) or not preferred.strip():
            return NameComparison.merge(existing)

        preferred = preferred.strip()
        if preferred.lower() == DIFFERENT_SENTINEL:
            return NameComparison.distinct()

        if payload.get("replace") is True and preferred.lower() != existing.strip().lower():
            return NameComparison.replace(preferred)
        return NameComparison.merge(preferred)

    async def match_legacy_names(
        self,
        normalized_names: Sequence[str],
        candidate_names: Sequence[str],
    ) -> dict[str, str]:
        if not normalized_names or not candidate_names:
            return {}

        candidates = {c.lower(): c for c in candidate_names}
        matched: dict[str, str] = {}

        for batch in _chunks(normalized_names, self._batch_size):
            try:
                payload = await self._complete_json(
                    prompts.MATCH_SYSTEM,
                    prompts.format_match_batch(batch, candidate_names),
                )
            except Exception as e:
                logger.warning(
                    "classifier_batch_failed",
                    operation="match_legacy_names",
                    batch_size=len(batch),
                    error=str(e),
                )
                continue

            names = {n.lower(): n for n in batch}
            for key, value in payload.items():
                name = names.get(str(key).strip().lower())
                if name is None or not isinstance(value, str):
                    continue
                original = candidates.get(value.strip().lower())
                if original is None:
                    logger.debug("legacy_match_unknown_candidate", name=name, value=value)
                    continue
                matched[name] = original

        return matched
