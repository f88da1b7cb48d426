"""
Text completion services used for query parsing and narrative synthesis.
"""

import logging
from abc import ABC, abstractmethod
from typing import Optional

from openai import AsyncOpenAI

from chainscope.config import settings

logger = logging.getLogger(__name__)


class CompletionService(ABC):
    """Black-box completion: system prompt and user prompt in, text out."""

    @abstractmethod
    async def complete(self, system_prompt: str, user_prompt: str) -> str:
        """Return the model's text response."""
        pass

    async def aclose(self) -> None:
        return None


class OpenAICompletionService(CompletionService):
    """
    OpenAI chat completion provider.
    Requires OPENAI_API_KEY; OPENAI_BASE_URL selects a compatible router.
    """

    def __init__(
        self,
        model: Optional[str] = None,
        api_key: Optional[str] = None,
        base_url: Optional[str] = None,
        temperature: float = 0.2,
    ):
        self.model = model or settings.openai_model
        self.temperature = temperature
        self.client = AsyncOpenAI(
            api_key=api_key or settings.openai_api_key,
            base_url=base_url or settings.openai_base_url,
        )
        logger.info(f"Initialized OpenAI completions: {self.model}")

    async def complete(self, system_prompt: str, user_prompt: str) -> str:
        response = await self.client.chat.completions.create(
            model=self.model,
            messages=[
                {"role": "system", "content": system_prompt},
                {"role": "user", "content": user_prompt},
            ],
            temperature=self.temperature,
        )
        return response.choices[0].message.content or ""

    async def aclose(self) -> None:
        await self.client.close()


def get_completion_service() -> Optional[CompletionService]:
    """
    Factory function for the configured completion service.

    Returns:
        An OpenAI-backed service, or None when running in mock mode
        (tools then use their deterministic fallbacks).
    """
    if settings.use_mock_llm:
        return None

    if not settings.openai_api_key:
        logger.warning("OpenAI API key not set, using mock completions")
        return None

    return OpenAICompletionService()
