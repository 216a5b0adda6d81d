"""Unit tests for the LLM-backed classifier."""

import json
from types import SimpleNamespace
from typing import Any
from unittest.mock import AsyncMock, MagicMock

import pytest

from medtopics.config import LLMSettings
from medtopics.errors import ExtractionError
from medtopics.infra.llm import AnthropicClassifier, BaseLLMClassifier, OpenAIClassifier
from medtopics.infra.llm.base import parse_json_object
from medtopics.models.classifier import ComparisonKind, TopicCategoryInput, TopicClassifyInput


class StubClassifier(BaseLLMClassifier):
    """Classifier replaying canned replies (strings or exceptions) in order."""

    def __init__(self, replies: list[Any], **kwargs: int) -> None:
        super().__init__(LLMSettings(), **kwargs)
        self.replies = list(replies)
        self.prompts: list[tuple[str, str]] = []

    async def _complete(self, system: str, user: str) -> str:
        self.prompts.append((system, user))
        reply = self.replies.pop(0)
        if isinstance(reply, Exception):
            raise reply
        return reply if isinstance(reply, str) else json.dumps(reply)


def _names(*names: str) -> list[TopicClassifyInput]:
    return [TopicClassifyInput(name=n) for n in names]


class TestParseJsonObject:
    """Tests for reply cleanup."""

    def test_plain_object(self) -> None:
        assert parse_json_object('{"a": 1}') == {"a": 1}

    def test_code_fences_and_chatter(self) -> None:
        reply = 'Here you go:\n```json\n{"Asthma": "Disease"}\n```\nThanks!'
        assert parse_json_object(reply) == {"Asthma": "Disease"}

    def test_truncated_object_is_closed(self) -> None:
        assert parse_json_object('{"a": {"b": 1}') == {"a": {"b": 1}}

    @pytest.mark.parametrize("reply", [None, "", "   ", "not json", "[1, 2]"])
    def test_unusable_replies(self, reply: str | None) -> None:
        assert parse_json_object(reply) == {}


class TestClassifyNames:
    """Tests for batched type classification."""

    @pytest.mark.asyncio
    async def test_valid_types_are_canonicalised(self) -> None:
        classifier = StubClassifier([{"asthma": "disease", "Banana": "non-medical"}])

        result = await classifier.classify_names(_names("Asthma", "Banana"))

        assert result.types == {"Asthma": "Disease"}
        assert result.rejected == {"Banana"}
        assert result.triaged == {"Asthma", "Banana"}

    @pytest.mark.asyncio
    async def test_other_and_invalid_types_stay_undecided(self) -> None:
        classifier = StubClassifier(
            [{"Asthma": "Fruit", "Tennis Elbow": "Other", "Invented": "Disease"}]
        )

        result = await classifier.classify_names(_names("Asthma", "Tennis Elbow", "Croup"))

        assert result.types == {}
        assert result.rejected == set()
        assert result.verdict_for("Asthma") == "Other"
        assert result.verdict_for("Tennis Elbow") == "Other"
        assert result.verdict_for("Croup") == "Other"

    @pytest.mark.asyncio
    async def test_reply_naming_no_requested_topic_fails_batch(self) -> None:
        classifier = StubClassifier([{"other": "Disease"}])

        result = await classifier.classify_names(_names("Tennis Elbow"))

        assert result.triaged == set()
        assert result.verdict_for("Tennis Elbow") is None

    @pytest.mark.asyncio
    async def test_failed_batch_is_not_triaged(self) -> None:
        classifier = StubClassifier(
            [{"A": "Disease"}, RuntimeError("rate limited"), "garbage"],
            batch_size=1,
        )

        result = await classifier.classify_names(_names("A", "B", "C"))

        assert result.types == {"A": "Disease"}
        assert result.triaged == {"A"}

    @pytest.mark.asyncio
    async def test_snippets_are_truncated(self) -> None:
        classifier = StubClassifier([{}], max_snippet_length=20)
        long_snippet = "First sentence here. Second sentence goes well past the limit."

        await classifier.classify_names(
            [TopicClassifyInput(name="Asthma", summary_snippet=long_snippet)]
        )

        _, user = classifier.prompts[0]
        assert "- Asthma: First sentence here." in user
        assert "Second" not in user

    def test_batch_size_must_be_positive(self) -> None:
        with pytest.raises(ValueError):
            StubClassifier([], batch_size=0)


class TestClassifyCategories:
    """Tests for batched category classification."""

    @pytest.mark.asyncio
    async def test_invalid_pairs_fall_back_to_mandatory(self) -> None:
        classifier = StubClassifier(
            [{"Ibuprofen": "Neoplasms", "Asthma": "respiratory system", "Flu": "Bogus"}]
        )

        result = await classifier.classify_categories(
            [
                TopicCategoryInput(name="Ibuprofen", topic_type="Drug"),
                TopicCategoryInput(name="Asthma", topic_type="Disease"),
                TopicCategoryInput(name="Flu", topic_type="Disease"),
            ]
        )

        assert result == {
            "Ibuprofen": "Drugs & Medications",
            "Asthma": "Respiratory System",
        }

    @pytest.mark.asyncio
    async def test_failed_batch_still_fills_mandatory(self) -> None:
        classifier = StubClassifier([RuntimeError("timeout")])

        result = await classifier.classify_categories(
            [
                TopicCategoryInput(name="MMR", topic_type="Vaccine"),
                TopicCategoryInput(name="Asthma", topic_type="Disease"),
            ]
        )

        assert result == {"MMR": "Preventive Care & Screening"}


class TestExtract:
    """Tests for structured extraction."""

    REPLY = {
        "Name": "asthma",
        "summary": "a chronic disease of the airways that makes breathing difficult at times.",
        "observations": ["wheezing", "Wheezing", ""],
        "factors": ["allergens", 7],
        "actions": "not a list",
        "citations": [" NICE "],
        "tags": ["Lungs"],
    }

    @pytest.mark.asyncio
    async def test_reply_is_normalised(self) -> None:
        classifier = StubClassifier([self.REPLY])

        topic = await classifier.extract("source text", "Disease", "asthma")

        assert topic is not None
        assert topic.name == "Asthma"
        assert topic.summary.startswith("A chronic")
        assert topic.observations == ["Wheezing"]
        assert topic.factors == ["Allergens"]
        assert topic.actions == []
        assert topic.citations == ["NICE"]
        assert topic.tags == ["lungs"]
        assert topic.category is None

    @pytest.mark.asyncio
    async def test_type_instructions_reach_the_prompt(self) -> None:
        classifier = StubClassifier([self.REPLY])

        await classifier.extract("source text", "Symptom", "cough")

        system, user = classifier.prompts[0]
        assert '"cough"' in system
        assert user.endswith("source text")

    @pytest.mark.asyncio
    async def test_filtered_type_returns_none_without_calling(self) -> None:
        classifier = StubClassifier([])

        assert await classifier.extract("source text", "Drug", "Ibuprofen") is None
        assert classifier.prompts == []

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "reply",
        ["", "not json", {"summary": "no name here"}, {"name": "Asthma", "summary": " "}],
    )
    async def test_unusable_reply_raises(self, reply: Any) -> None:
        classifier = StubClassifier([reply])

        with pytest.raises(ExtractionError):
            await classifier.extract("source text", "Disease", "Asthma")

    @pytest.mark.asyncio
    async def test_input_validation(self) -> None:
        classifier = StubClassifier([])

        with pytest.raises(ValueError):
            await classifier.extract("   ", "Disease")
        with pytest.raises(ExtractionError):
            await classifier.extract("text", "Disease", "x" * 201)


class TestCompareCanonicalName:
    """Tests for synonym comparison."""

    @pytest.mark.asyncio
    async def test_different_means_distinct(self) -> None:
        classifier = StubClassifier([{"preferred": "DIFFERENT"}])

        result = await classifier.compare_canonical_name("Type 1 Diabetes", "Type 2 Diabetes")

        assert result.kind is ComparisonKind.DISTINCT

    @pytest.mark.asyncio
    async def test_replace(self) -> None:
        classifier = StubClassifier([{"preferred": "Hypertension", "replace": True}])

        result = await classifier.compare_canonical_name("Hypertension", "High Blood Pressure")

        assert result.should_replace is True
        assert result.preferred_name == "Hypertension"

    @pytest.mark.asyncio
    async def test_replace_with_existing_name_is_merge(self) -> None:
        classifier = StubClassifier([{"preferred": "high blood pressure", "replace": True}])

        result = await classifier.compare_canonical_name("HBP", "High Blood Pressure")

        assert result.kind is ComparisonKind.MERGE

    @pytest.mark.asyncio
    async def test_unparseable_reply_keeps_existing(self) -> None:
        classifier = StubClassifier(["nonsense"])

        result = await classifier.compare_canonical_name("HBP", "High Blood Pressure")

        assert result.kind is ComparisonKind.MERGE
        assert result.preferred_name == "High Blood Pressure"

    @pytest.mark.asyncio
    async def test_blank_names_are_rejected(self) -> None:
        classifier = StubClassifier([])
        with pytest.raises(ValueError):
            await classifier.compare_canonical_name(" ", "Asthma")


class TestMatchLegacyNames:
    """Tests for reverse lookup of provider names."""

    @pytest.mark.asyncio
    async def test_only_known_candidates_are_returned(self) -> None:
        classifier = StubClassifier(
            [{"High Blood Pressure": "hypertension", "Flu": "Made Up"}]
        )

        result = await classifier.match_legacy_names(
            ["High Blood Pressure", "Flu"], ["Hypertension", "Influenza"]
        )

        assert result == {"High Blood Pressure": "Hypertension"}

    @pytest.mark.asyncio
    async def test_empty_inputs_skip_the_call(self) -> None:
        classifier = StubClassifier([])
        assert await classifier.match_legacy_names([], ["Hypertension"]) == {}
        assert await classifier.match_legacy_names(["Flu"], []) == {}


class TestProviders:
    """Tests for the concrete SDK-backed classifiers."""

    @pytest.mark.asyncio
    async def test_openai_uses_json_mode(self) -> None:
        classifier = OpenAIClassifier(LLMSettings(api_key="sk-test"))
        reply = SimpleNamespace(
            choices=[SimpleNamespace(message=SimpleNamespace(content='{"Asthma": "Disease"}'))]
        )
        classifier._client = MagicMock()
        classifier._client.chat.completions.create = AsyncMock(return_value=reply)

        result = await classifier.classify_names(_names("Asthma"))

        assert result.types == {"Asthma": "Disease"}
        kwargs = classifier._client.chat.completions.create.call_args.kwargs
        assert kwargs["model"] == "gpt-4o"
        assert kwargs["response_format"] == {"type": "json_object"}

    @pytest.mark.asyncio
    async def test_anthropic_joins_text_blocks(self) -> None:
        classifier = AnthropicClassifier(LLMSettings(api_key="sk-test", model="custom-model"))
        reply = SimpleNamespace(
            content=[
                SimpleNamespace(type="text", text='{"Asthma": '),
                SimpleNamespace(type="text", text='"Disease"}'),
            ]
        )
        classifier._client = MagicMock()
        classifier._client.messages.create = AsyncMock(return_value=reply)

        result = await classifier.classify_names(_names("Asthma"))

        assert result.types == {"Asthma": "Disease"}
        kwargs = classifier._client.messages.create.call_args.kwargs
        assert kwargs["model"] == "custom-model"
        assert "system" in kwargs

    @pytest.mark.asyncio
    async def test_from_dict(self) -> None:
        classifier = await OpenAIClassifier.from_dict({"api_key": "sk-test", "model": "gpt-test"})
        assert classifier._model == "gpt-test"
