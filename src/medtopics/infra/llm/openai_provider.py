"""OpenAI classifier for medtopics.

This module provides the OpenAI implementation of the classifier interface.
"""

from openai import AsyncOpenAI

from medtopics.config import LLMSettings
from medtopics.infra.llm.base import BaseLLMClassifier
from medtopics.logging import get_logger

__all__ = [
    "OpenAIClassifier",
]

logger = get_logger(__name__)

DEFAULT_MODEL = "gpt-4o"


class OpenAIClassifier(BaseLLMClassifier):
    """OpenAI implementation of ClassifierInterface.

    Uses chat completions in JSON mode for every classifier call.
    """

    def __init__(self, settings: LLMSettings, **kwargs: int) -> None:
        """Initialize OpenAI classifier.

        Args:
            settings: LLM configuration settings
            **kwargs: Batching options forwarded to BaseLLMClassifier
        """
        super().__init__(settings, **kwargs)
        api_key = settings.api_key.get_secret_value() if settings.api_key else None
        self._client = AsyncOpenAI(api_key=api_key)
        self._model = settings.model or DEFAULT_MODEL

    async def close(self) -> None:
        """Close the underlying HTTP client."""
        await self._client.close()

    async def _complete(self, system: str, user: str) -> str:
        response = await self._client.chat.completions.create(
            model=self._model,
            messages=[
                {"role": "system", "content": system},
                {"role": "user", "content": user},
            ],
            response_format={"type": "json_object"},
            temperature=self._settings.temperature,
            max_tokens=self._settings.max_tokens,
        )
        content = response.choices[0].message.content or ""
        logger.debug("openai_completion", model=self._model, reply_chars=len(content))
        return content
