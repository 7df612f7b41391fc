"""Vector-store backed retrieval.

Chunk content is embedded once at upsert time. Queries embed the query text
and ask the store for the nearest chunks inside one namespace.
"""

import asyncio
import logging
import math
import uuid
from abc import ABC, abstractmethod
from collections.abc import Sequence
from dataclasses import dataclass, field
from typing import Any

from evaluator.core.schemas import Chunk, MetadataValue, Namespace, RetrievedChunk
from evaluator.rag.embeddings import Embedder
from evaluator.rag.index import DEFAULT_TOP_K, RetrievalIndex, check_namespace

logger = logging.getLogger(__name__)


@dataclass
class VectorHits:
    """Parallel lists returned by a nearest-neighbour query."""

    ids: list[str] = field(default_factory=list)
    texts: list[str] = field(default_factory=list)
    metadatas: list[dict[str, MetadataValue]] = field(default_factory=list)
    distances: list[float] = field(default_factory=list)


class VectorBackend(ABC):
    """Minimal vector store capability the index depends on."""

    @abstractmethod
    def upsert(
        self,
        ids: Sequence[str],
        texts: Sequence[str],
        metadatas: Sequence[dict[str, MetadataValue]],
        vectors: Sequence[Sequence[float]],
    ) -> None:
        """Insert or replace records by id. Metadata always carries ``namespace``."""

    @abstractmethod
    def query(self, vector: Sequence[float], top_k: int, namespace: str) -> VectorHits:
        """Return up to ``top_k`` nearest records whose namespace matches."""


def distance_to_score(distance: float | None) -> float:
    """Map a distance to a similarity in ``(0, 1]``; distance 0 scores 1."""
    if distance is None or math.isnan(distance):
        return 0.0
    return 1.0 / (1.0 + max(distance, 0.0))


def normalize_metadata(namespace: Namespace, metadata: dict[str, Any]) -> dict[str, MetadataValue]:
    """Keep scalar metadata only and stamp the namespace."""
    clean: dict[str, MetadataValue] = {"namespace": namespace.value}
    for key, value in metadata.items():
        if key != "namespace" and isinstance(value, (str, int, float, bool)):
            clean[key] = value
    return clean


class VectorIndex(RetrievalIndex):
    """Retrieval index over a :class:`VectorBackend` and an :class:`Embedder`."""

    def __init__(self, backend: VectorBackend, embedder: Embedder) -> None:
        self._backend = backend
        self._embedder = embedder

    @property
    def strategy(self) -> str:
        return "vector"

    async def upsert(self, namespace: Namespace, chunks: Sequence[Chunk]) -> None:
        namespace = Namespace(namespace)
        check_namespace(namespace, chunks)
        if not chunks:
            return

        texts = [c.content for c in chunks]
        vectors = await self._embedder.embed(texts)
        if len(vectors) != len(chunks):
            msg = f"Embedder returned {len(vectors)} vector(s) for {len(chunks)} chunk(s)"
            raise ValueError(msg)

        await asyncio.to_thread(
            self._backend.upsert,
            [c.id for c in chunks],
            texts,
            [normalize_metadata(namespace, dict(c.metadata)) for c in chunks],
            vectors,
        )
        logger.info("Upserted %d chunk(s) into '%s'", len(chunks), namespace.value)

    async def query(
        self,
        namespace: Namespace,
        query_text: str,
        top_k: int = DEFAULT_TOP_K,
    ) -> list[RetrievedChunk]:
        namespace = Namespace(namespace)
        if not query_text.strip() or top_k <= 0:
            return []

        [vector] = await self._embedder.embed([query_text])
        hits = await asyncio.to_thread(self._backend.query, vector, top_k, namespace.value)

        results: list[RetrievedChunk] = []
        for i, chunk_id in enumerate(hits.ids):
            metadata = dict(hits.metadatas[i]) if i < len(hits.metadatas) else {}
            if metadata.pop("namespace", namespace.value) != namespace.value:
                logger.warning("Dropping chunk '%s' returned outside '%s'", chunk_id, namespace.value)
                continue
            distance = hits.distances[i] if i < len(hits.distances) else None
            results.append(
                RetrievedChunk(
                    id=chunk_id,
                    namespace=namespace,
                    content=hits.texts[i] if i < len(hits.texts) else "",
                    metadata=metadata,
                    score=distance_to_score(distance),
                )
            )

        results.sort(key=lambda r: r.score, reverse=True)
        return results[:top_k]


class QdrantBackend(VectorBackend):
    """Qdrant collection using cosine distance and a namespace payload filter.

    Connects to ``url`` when given, otherwise to local storage at ``path``
    (``":memory:"`` for a throwaway store).
    """

    def __init__(
        self,
        collection: str = "ground-truth",
        url: str | None = None,
        path: str | None = None,
    ) -> None:
        try:
            from qdrant_client import QdrantClient
            from qdrant_client.http import models
        except ImportError:
            msg = (
                "qdrant-client is required for the vector backend. "
                "Install with: pip install 'candidate-evaluator[vector]'"
            )
            raise ImportError(msg) from None

        self.collection = collection
        self.models = models
        if url:
            self.client = QdrantClient(url=url)
        elif path in (None, ":memory:"):
            self.client = QdrantClient(location=":memory:")
        else:
            self.client = QdrantClient(path=path)

    @staticmethod
    def point_id(chunk_id: str) -> str:
        # Qdrant ids must be unsigned ints or UUIDs
        return str(uuid.uuid5(uuid.NAMESPACE_URL, chunk_id))

    def _ensure_collection(self, dim: int) -> None:
        if self.client.collection_exists(self.collection):
            return
        self.client.create_collection(
            collection_name=self.collection,
            vectors_config=self.models.VectorParams(size=dim, distance=self.models.Distance.COSINE),
        )
        logger.info("Created Qdrant collection '%s' (dim=%d)", self.collection, dim)

    def upsert(
        self,
        ids: Sequence[str],
        texts: Sequence[str],
        metadatas: Sequence[dict[str, MetadataValue]],
        vectors: Sequence[Sequence[float]],
    ) -> None:
        if not ids:
            return
        self._ensure_collection(len(vectors[0]))
        points = [
            self.models.PointStruct(
                id=self.point_id(chunk_id),
                vector=list(vector),
                payload={**metadata, "chunk_id": chunk_id, "content": text},
            )
            for chunk_id, text, metadata, vector in zip(ids, texts, metadatas, vectors)
        ]
        self.client.upsert(collection_name=self.collection, points=points)

    def query(self, vector: Sequence[float], top_k: int, namespace: str) -> VectorHits:
        hits = VectorHits()
        if not self.client.collection_exists(self.collection):
            return hits

        response = self.client.query_points(
            collection_name=self.collection,
            query=list(vector),
            limit=top_k,
            query_filter=self.models.Filter(
                must=[
                    self.models.FieldCondition(
                        key="namespace",
                        match=self.models.MatchValue(value=namespace),
                    )
                ]
            ),
            with_payload=True,
        )
        for point in getattr(response, "points", response):
            payload = dict(point.payload or {})
            hits.ids.append(str(payload.pop("chunk_id", point.id)))
            hits.texts.append(str(payload.pop("content", "")))
            hits.metadatas.append(payload)
            # cosine similarity -> cosine distance
            hits.distances.append(1.0 - float(point.score))
        return hits
