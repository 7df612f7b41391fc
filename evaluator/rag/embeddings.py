"""Text embedding generation for the vector retrieval strategy."""

import asyncio
import logging
import os
from abc import ABC, abstractmethod
from collections.abc import Sequence

from evaluator.core.config import RetryConfig
from evaluator.pipeline.retry import execute, log_retry, should_retry_provider_error

logger = logging.getLogger(__name__)

_API_KEY_VARS = ("EMBEDDINGS_API_KEY", "OPENAI_API_KEY")


class Embedder(ABC):
    """Turns texts into vectors, one per input, in input order."""

    @abstractmethod
    async def embed(self, texts: Sequence[str]) -> list[list[float]]:
        """Embed ``texts``. An empty input returns an empty list."""


def batched(items: Sequence[str], size: int) -> list[list[str]]:
    return [list(items[i : i + size]) for i in range(0, len(items), size)]


class OpenAIEmbedder(Embedder):
    """Embeddings through the OpenAI API, in batches with retry per batch."""

    def __init__(
        self,
        model: str = "text-embedding-3-large",
        batch_size: int = 64,
        retry: RetryConfig | None = None,
    ) -> None:
        self.model = model
        self.batch_size = max(1, batch_size)
        self.retry = retry or RetryConfig()
        self._client = None

    def _get_client(self):  # type: ignore[no-untyped-def]
        if self._client is not None:
            return self._client

        api_key = next((os.environ[v] for v in _API_KEY_VARS if os.environ.get(v)), None)
        if not api_key:
            msg = (
                "No API key configured for embeddings. "
                f"Set one of: {', '.join(_API_KEY_VARS)}"
            )
            raise ValueError(msg)

        try:
            import openai
        except ImportError:
            msg = (
                "openai is required for embeddings. "
                "Install with: pip install 'candidate-evaluator[vector]'"
            )
            raise ImportError(msg) from None

        self._client = openai.OpenAI(
            api_key=api_key,
            base_url=os.environ.get("EMBEDDINGS_BASE_URL") or None,
        )
        return self._client

    async def embed(self, texts: Sequence[str]) -> list[list[float]]:
        if not texts:
            return []

        client = self._get_client()
        vectors: list[list[float]] = []
        for batch in batched(texts, self.batch_size):

            async def request(attempt: int, batch: list[str] = batch):  # type: ignore[no-untyped-def]
                if attempt > 1:
                    logger.debug("Embedding request attempt %d", attempt)
                return await asyncio.to_thread(
                    client.embeddings.create, model=self.model, input=batch
                )

            response = await execute(
                request,
                **self.retry.model_dump(),
                should_retry=should_retry_provider_error,
                on_retry=log_retry("embedding request"),
            )
            vectors.extend(list(item.embedding) for item in response.data)

        logger.debug("Embedded %d text(s) with %s", len(texts), self.model)
        return vectors
