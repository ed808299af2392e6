"""Unified LLM client — tries OpenAI first, falls back to Anthropic."""

import logging

import anthropic
from openai import AsyncOpenAI

from tripscout.config import Settings

logger = logging.getLogger(__name__)


class LLMClient:
    """Async LLM client with OpenAI primary + Anthropic fallback."""

    def __init__(self, settings: Settings):
        self.settings = settings
        self._openai = None
        self._anthropic = None

        if settings.openai_api_key:
            self._openai = AsyncOpenAI(api_key=settings.openai_api_key)
        if settings.anthropic_api_key:
            self._anthropic = anthropic.AsyncAnthropic(api_key=settings.anthropic_api_key)

    @property
    def is_configured(self) -> bool:
        return self._openai is not None or self._anthropic is not None

    async def complete(
        self,
        system: str,
        user: str,
        *,
        max_tokens: int = 1500,
        temperature: float = 0.7,
    ) -> str:
        """Get a completion from the best available LLM.

        Raises:
            RuntimeError if no provider is configured or every provider fails.
        """
        errors = []
        chat_messages = [{"role": "user", "content": user}]

        if self._openai:
            try:
                response = await self._openai.chat.completions.create(
                    model=self.settings.openai_model,
                    max_tokens=max_tokens,
                    temperature=temperature,
                    messages=[{"role": "system", "content": system}] + chat_messages,
                )
                return (response.choices[0].message.content or "").strip()
            except Exception as e:
                errors.append(f"OpenAI: {e}")
                logger.warning(f"OpenAI failed, trying Anthropic: {e}")

        if self._anthropic:
            try:
                response = await self._anthropic.messages.create(
                    model=self.settings.anthropic_model,
                    max_tokens=max_tokens,
                    temperature=temperature,
                    system=system,
                    messages=chat_messages,
                )
                return response.content[0].text.strip()
            except Exception as e:
                errors.append(f"Anthropic: {e}")
                logger.warning(f"Anthropic also failed: {e}")

        if not errors:
            raise RuntimeError("No LLM provider configured")
        raise RuntimeError(f"All LLM providers failed: {'; '.join(errors)}")
