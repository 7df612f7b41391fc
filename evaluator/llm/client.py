"""Structured completions: prompt kind + JSON payload in, JSON object out."""

import asyncio
import json
import logging
from typing import Any, Protocol

from evaluator.core.config import LLMConfig, RetryConfig
from evaluator.llm import get_provider
from evaluator.llm.base import LLMProvider, parse_json_response
from evaluator.llm.prompts import PROMPTS, PromptKind
from evaluator.pipeline.retry import execute, log_retry, should_retry_provider_error

logger = logging.getLogger(__name__)


class ModelClient(Protocol):
    """What the evaluation pipeline needs from a model provider."""

    async def complete(self, kind: PromptKind, payload: dict[str, Any]) -> dict[str, Any]: ...


def build_user_input(payload: dict[str, Any]) -> str:
    return json.dumps(payload, indent=2, ensure_ascii=False)


class StructuredCompletionClient:
    """Sends one structured completion through the retry executor.

    Blocking SDK calls run in a worker thread. Only the provider call is
    retried; a reply that is not a JSON object fails straight away.
    """

    def __init__(
        self,
        provider: LLMProvider,
        *,
        model: str | None = None,
        temperature: float | None = 0.2,
        retry: RetryConfig | None = None,
    ) -> None:
        self.provider = provider
        self.model = model
        self.temperature = temperature
        self.retry = retry or RetryConfig()

    @classmethod
    def from_config(cls, llm: LLMConfig, retry: RetryConfig) -> "StructuredCompletionClient":
        return cls(
            get_provider(llm.provider),
            model=llm.model,
            temperature=llm.temperature,
            retry=retry,
        )

    async def complete(self, kind: PromptKind, payload: dict[str, Any]) -> dict[str, Any]:
        kind = PromptKind(kind)
        system = PROMPTS[kind]
        user_input = build_user_input(payload)

        async def call(attempt: int) -> str:
            if attempt > 1:
                logger.debug("%s attempt %d", kind.value, attempt)
            return await asyncio.to_thread(
                self.provider.complete,
                user_input,
                self.model,
                system=system,
                temperature=self.temperature,
                json_mode=True,
            )

        raw = await execute(
            call,
            **self.retry.model_dump(),
            should_retry=should_retry_provider_error,
            on_retry=log_retry(f"{kind.value} completion"),
        )
        return parse_json_response(raw)
