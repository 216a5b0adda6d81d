"""LLM classifier implementations for medtopics."""

from medtopics.infra.llm.anthropic_provider import AnthropicClassifier
from medtopics.infra.llm.base import BaseLLMClassifier
from medtopics.infra.llm.openai_provider import OpenAIClassifier

__all__ = ["AnthropicClassifier", "BaseLLMClassifier", "OpenAIClassifier"]
