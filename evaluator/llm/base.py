"""Abstract base class for LLM providers and shared response parsing."""

import json
import re
from abc import ABC, abstractmethod
from typing import Any

from evaluator.core.errors import SchemaValidationError

DEFAULT_SYSTEM_PROMPT = "Respond ONLY with a valid JSON object. No markdown, no explanation."

_FENCE_OPEN = re.compile(r"^```(?:json)?\s*\n?")
_FENCE_CLOSE = re.compile(r"\n?```\s*$")


def parse_json_response(raw_text: str | None) -> dict[str, Any]:
    """Parse an LLM reply into a JSON object.

    Handles markdown-wrapped JSON (```json ... ```) and plain JSON.
    Raises SchemaValidationError on an empty, non-JSON or non-object reply.
    """
    if not raw_text or not raw_text.strip():
        msg = "LLM response did not contain any content"
        raise SchemaValidationError(msg)

    cleaned = _FENCE_OPEN.sub("", raw_text.strip())
    cleaned = _FENCE_CLOSE.sub("", cleaned)

    try:
        data = json.loads(cleaned)
    except json.JSONDecodeError as e:
        msg = f"Failed to parse LLM response as JSON: {e}"
        raise SchemaValidationError(msg) from e

    if not isinstance(data, dict):
        msg = f"LLM response must be a JSON object, got {type(data).__name__}"
        raise SchemaValidationError(msg)
    return data


class LLMProvider(ABC):
    """Base class that every LLM provider must implement."""

    @property
    @abstractmethod
    def provider_id(self) -> str:
        """Unique identifier for this provider (e.g. 'anthropic')."""

    @abstractmethod
    def complete(
        self,
        prompt: str,
        model: str | None = None,
        *,
        system: str | None = None,
        temperature: float | None = None,
        json_mode: bool = False,
    ) -> str:
        """Send a prompt to the LLM and return raw response text.

        Args:
            prompt: User message content.
            model: Override the provider's default model. None uses default.
            system: Override the system prompt. None falls back to DEFAULT_SYSTEM_PROMPT.
            temperature: Sampling temperature. None uses the provider default.
            json_mode: Ask the provider for a JSON object reply where supported.

        Returns:
            Raw text response from the LLM (expected to be JSON).
        """

    @property
    @abstractmethod
    def default_model(self) -> str:
        """The default model ID used when no override is specified."""

    @property
    @abstractmethod
    def env_var(self) -> str | None:
        """Environment variable name for the API key, or None if not needed."""
