"""Abstract retrieval index and the factory that picks a strategy from settings."""

import logging
from abc import ABC, abstractmethod
from collections.abc import Sequence

from evaluator.core.config import Settings
from evaluator.core.schemas import Chunk, Namespace, RetrievedChunk

logger = logging.getLogger(__name__)

DEFAULT_TOP_K = 3


class RetrievalIndex(ABC):
    """Base class that every retrieval strategy must implement.

    Queries are always scoped to one namespace.
    """

    @property
    @abstractmethod
    def strategy(self) -> str:
        """Short name of the strategy (e.g. 'lexical')."""

    @abstractmethod
    async def upsert(self, namespace: Namespace, chunks: Sequence[Chunk]) -> None:
        """Store ``chunks`` under ``namespace``, replacing any with the same id."""

    @abstractmethod
    async def query(
        self,
        namespace: Namespace,
        query_text: str,
        top_k: int = DEFAULT_TOP_K,
    ) -> list[RetrievedChunk]:
        """Return at most ``top_k`` chunks from ``namespace``, best first."""


def check_namespace(namespace: Namespace, chunks: Sequence[Chunk]) -> None:
    """Reject chunks tagged with a namespace other than the target one."""
    namespace = Namespace(namespace)
    for chunk in chunks:
        if chunk.namespace != namespace:
            msg = (
                f"Chunk '{chunk.id}' belongs to namespace '{chunk.namespace.value}', "
                f"not '{namespace.value}'"
            )
            raise ValueError(msg)


def build_index(settings: Settings) -> RetrievalIndex:
    """Create the retrieval index selected by ``settings.retrieval.backend``.

    The lexical index is seeded from the JSONL corpus; the vector index
    reads from the persisted vector store.
    """
    backend = settings.retrieval.backend

    if backend == "lexical":
        from evaluator.rag.corpus import load_corpus
        from evaluator.rag.lexical import LexicalIndex

        index = LexicalIndex()
        index.seed(load_corpus(settings.storage.corpus_path))
        return index

    if backend == "vector":
        from evaluator.rag.embeddings import OpenAIEmbedder
        from evaluator.rag.vector import QdrantBackend, VectorIndex

        embedder = OpenAIEmbedder(
            model=settings.retrieval.embedding_model,
            batch_size=settings.retrieval.embedding_batch_size,
            retry=settings.retry,
        )
        store = QdrantBackend(
            collection=settings.retrieval.collection,
            url=settings.retrieval.qdrant_url,
            path=settings.retrieval.qdrant_path,
        )
        return VectorIndex(store, embedder)

    msg = f"Unknown retrieval backend '{backend}'. Available: lexical, vector"
    raise ValueError(msg)
