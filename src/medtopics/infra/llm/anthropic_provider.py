"""Anthropic classifier for medtopics.

This module provides the Anthropic implementation of the classifier
interface. Anthropic has no JSON mode, so replies rely on the shared
JSON cleanup in BaseLLMClassifier.
"""

from anthropic import AsyncAnthropic

from medtopics.config import LLMSettings
from medtopics.infra.llm.base import BaseLLMClassifier
from medtopics.logging import get_logger

__all__ = [
    "AnthropicClassifier",
]

logger = get_logger(__name__)

DEFAULT_MODEL = "claude-sonnet-4-20250514"


class AnthropicClassifier(BaseLLMClassifier):
    """Anthropic implementation of ClassifierInterface.

    Uses the messages API with the prompt's instructions as the system prompt.
    """

    def __init__(self, settings: LLMSettings, **kwargs: int) -> None:
        """Initialize Anthropic classifier.

        Args:
            settings: LLM configuration settings
            **kwargs: Batching options forwarded to BaseLLMClassifier
        """
        super().__init__(settings, **kwargs)
        api_key = settings.api_key.get_secret_value() if settings.api_key else None
        self._client = AsyncAnthropic(api_key=api_key)
        self._model = settings.model or DEFAULT_MODEL

    async def close(self) -> None:
        """Close the underlying HTTP client."""
        await self._client.close()

    async def _complete(self, system: str, user: str) -> str:
        response = await self._client.messages.create(
            model=self._model,
            max_tokens=self._settings.max_tokens,
            temperature=self._settings.temperature,
            system=system,
            messages=[{"role": "user", "content": user}],
        )
        content = "".join(
            block.text for block in response.content if getattr(block, "type", None) == "text"
        )
        logger.debug("anthropic_completion", model=self._model, reply_chars=len(content))
        return content
