"""In-memory bag-of-words retrieval."""

import logging
import re
from collections.abc import Iterable, Sequence

from evaluator.core.schemas import Chunk, Namespace, RetrievedChunk
from evaluator.rag.index import DEFAULT_TOP_K, RetrievalIndex, check_namespace

logger = logging.getLogger(__name__)

_TOKEN = re.compile(r"[a-z0-9]+")


def lexical_tokens(text: str) -> set[str]:
    """Case-folded alphanumeric tokens of ``text``."""
    return set(_TOKEN.findall(text.casefold()))


class LexicalIndex(RetrievalIndex):
    """Scores chunks by how many distinct query tokens they contain.

    Ties keep insertion order. Chunks with no overlap still rank, after
    every chunk that matched.
    """

    def __init__(self) -> None:
        self._chunks: dict[Namespace, dict[str, Chunk]] = {ns: {} for ns in Namespace}
        self._tokens: dict[Namespace, dict[str, set[str]]] = {ns: {} for ns in Namespace}

    @property
    def strategy(self) -> str:
        return "lexical"

    def seed(self, chunks: Iterable[Chunk]) -> None:
        """Load chunks of any namespace, e.g. from the JSONL corpus."""
        count = 0
        for chunk in chunks:
            self._store(chunk)
            count += 1
        logger.info("Lexical index seeded with %d chunk(s)", count)

    def count(self, namespace: Namespace) -> int:
        return len(self._chunks[Namespace(namespace)])

    async def upsert(self, namespace: Namespace, chunks: Sequence[Chunk]) -> None:
        check_namespace(namespace, chunks)
        for chunk in chunks:
            self._store(chunk)
        logger.debug("Upserted %d chunk(s) into '%s'", len(chunks), Namespace(namespace).value)

    async def query(
        self,
        namespace: Namespace,
        query_text: str,
        top_k: int = DEFAULT_TOP_K,
    ) -> list[RetrievedChunk]:
        namespace = Namespace(namespace)
        query_tokens = lexical_tokens(query_text)
        if not query_tokens or top_k <= 0:
            return []

        token_sets = self._tokens[namespace]
        scored = [
            (len(query_tokens & token_sets[chunk.id]), chunk)
            for chunk in self._chunks[namespace].values()
        ]
        # sorted() is stable, so equal scores keep insertion order
        ranked = sorted(scored, key=lambda pair: pair[0], reverse=True)[:top_k]
        return [
            RetrievedChunk(**chunk.model_dump(), score=float(score))
            for score, chunk in ranked
        ]

    def _store(self, chunk: Chunk) -> None:
        self._chunks[chunk.namespace][chunk.id] = chunk
        self._tokens[chunk.namespace][chunk.id] = lexical_tokens(chunk.content)
