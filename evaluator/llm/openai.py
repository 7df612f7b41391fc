"""OpenAI and OpenAI-compatible (OpenRouter) LLM providers."""

import logging
import os
from typing import Any

from evaluator.llm.base import DEFAULT_SYSTEM_PROMPT, LLMProvider

logger = logging.getLogger(__name__)

_OPENROUTER_BASE_URL = "https://openrouter.ai/api/v1"


class OpenAIProvider(LLMProvider):
    """LLM provider using the OpenAI chat completions API."""

    base_url: str | None = None

    @property
    def provider_id(self) -> str:
        return "openai"

    @property
    def default_model(self) -> str:
        return "gpt-4o-mini"

    @property
    def env_var(self) -> str:
        return "OPENAI_API_KEY"

    def _base_url(self) -> str | None:
        return self.base_url or os.environ.get("OPENAI_BASE_URL") or None

    def complete(
        self,
        prompt: str,
        model: str | None = None,
        *,
        system: str | None = None,
        temperature: float | None = None,
        json_mode: bool = False,
    ) -> str:
        api_key = os.environ.get(self.env_var)
        if not api_key:
            msg = f"{self.env_var} environment variable is required"
            raise ValueError(msg)

        try:
            import openai
        except ImportError:
            msg = (
                "openai is required for this provider. "
                "Install with: pip install 'candidate-evaluator[openai]'"
            )
            raise ImportError(msg) from None

        client = openai.OpenAI(api_key=api_key, base_url=self._base_url())
        use_model = model or self.default_model
        use_system = system if system is not None else DEFAULT_SYSTEM_PROMPT

        kwargs: dict[str, Any] = {}
        if temperature is not None:
            kwargs["temperature"] = temperature
        if json_mode:
            kwargs["response_format"] = {"type": "json_object"}

        logger.info("Sending prompt to %s (%s)...", self.provider_id, use_model)
        response = client.chat.completions.create(
            model=use_model,
            messages=[
                {"role": "system", "content": use_system},
                {"role": "user", "content": prompt},
            ],
            **kwargs,
        )

        return response.choices[0].message.content  # type: ignore[no-any-return]


class OpenRouterProvider(OpenAIProvider):
    """OpenRouter through its OpenAI-compatible endpoint."""

    base_url = _OPENROUTER_BASE_URL

    @property
    def provider_id(self) -> str:
        return "openrouter"

    @property
    def default_model(self) -> str:
        return "mistralai/mistral-small-3.2-24b-instruct:free"

    @property
    def env_var(self) -> str:
        return "OPENROUTER_API_KEY"
