"""LLM completion client supporting OpenAI and Mistral providers."""

import logging

from openai import AsyncOpenAI, OpenAIError

from lucalendar.config import get_settings
from lucalendar.core.errors import LLMProviderError

logger = logging.getLogger(__name__)
settings = get_settings()

# Mistral's API is OpenAI-compatible, just different base URL
_PROVIDER_CONFIG = {
    "openai": {
        "base_url": None,  # default OpenAI
        "api_key": settings.openai_api_key,
    },
    "mistral": {
        "base_url": "https://api.mistral.ai/v1",
        "api_key": settings.mistral_api_key,
    },
}


class LLMCompletionClient:
    """Single-turn chat completion (system prompt + user text -> text)."""

    def __init__(self, provider: str | None = None, model: str | None = None) -> None:
        self.provider = provider or settings.llm_provider
        if self.provider not in _PROVIDER_CONFIG:
            logger.warning(f"Unknown LLM provider '{self.provider}', using mistral")
            self.provider = "mistral"

        config = _PROVIDER_CONFIG[self.provider]
        self.model = model or settings.llm_model
        self._api_key = config["api_key"]
        self.client = (
            AsyncOpenAI(api_key=self._api_key, base_url=config["base_url"]) if self._api_key else None
        )

    async def complete(
        self,
        system_prompt: str,
        user_text: str,
        *,
        temperature: float | None = None,
        max_tokens: int | None = None,
        top_p: float | None = None,
    ) -> str:
        """
        Run one completion and return the raw text.

        Raises:
            LLMProviderError: provider not configured, API failure or empty completion
        """
        if self.client is None:
            raise LLMProviderError(f"{self.provider.upper()}_API_KEY is not configured")

        try:
            response = await self.client.chat.completions.create(
                model=self.model,
                messages=[
                    {"role": "system", "content": system_prompt},
                    {"role": "user", "content": user_text},
                ],
                temperature=settings.llm_temperature if temperature is None else temperature,
                max_tokens=max_tokens or settings.llm_max_tokens,
                top_p=settings.llm_top_p if top_p is None else top_p,
            )
        except OpenAIError as e:
            logger.error("LLM request failed (%s): %s", self.provider, e)
            raise LLMProviderError(f"LLM request failed: {e}") from e

        if not response.choices:
            raise LLMProviderError("LLM returned no choices")

        content = response.choices[0].message.content or ""
        if not content.strip():
            raise LLMProviderError("LLM returned an empty completion")

        logger.debug("LLM raw response: %s", content)
        return content
