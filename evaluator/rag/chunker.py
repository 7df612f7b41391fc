"""Split document text into overlapping token windows."""

import re
from collections.abc import Mapping

from evaluator.core.schemas import Chunk, MetadataValue, Namespace

CHUNK_SIZE = 1000
CHUNK_OVERLAP = 200
MIN_CHUNK_SIZE = 200

_WHITESPACE = re.compile(r"\s+")
_NON_ALNUM = re.compile(r"[^a-zA-Z0-9]+")


def tokenize(text: str) -> list[str]:
    """Collapse whitespace and split on spaces. Tokens are words, not BPE units."""
    collapsed = _WHITESPACE.sub(" ", text).strip()
    return [t for t in collapsed.split(" ") if t]


def sanitize_source_id(source_id: str) -> str:
    return _NON_ALNUM.sub("_", source_id).lower() or "doc"


def window_ranges(
    token_count: int,
    chunk_size: int = CHUNK_SIZE,
    chunk_overlap: int = CHUNK_OVERLAP,
) -> list[tuple[int, int]]:
    """Return ``(start, end)`` windows covering ``[0, token_count)``.

    The last window always ends at ``token_count``.
    """
    if token_count <= 0:
        return []

    stride = max(1, chunk_size - chunk_overlap)
    ranges: list[tuple[int, int]] = []
    start = 0
    while start < token_count:
        end = min(token_count, start + chunk_size)
        ranges.append((start, end))
        if end >= token_count:
            break
        start += stride
    return ranges


def chunk_text(
    namespace: Namespace,
    source_id: str,
    text: str,
    *,
    chunk_size: int = CHUNK_SIZE,
    chunk_overlap: int = CHUNK_OVERLAP,
    min_chunk_size: int = MIN_CHUNK_SIZE,
    metadata: Mapping[str, MetadataValue] | None = None,
) -> list[Chunk]:
    """Chunk ``text`` into namespace-tagged windows with deterministic ids.

    Windows shorter than ``min_chunk_size`` are dropped, except the terminal
    window, so a document's tail is never lost.
    """
    tokens = tokenize(text)
    kept = [
        (start, end)
        for start, end in window_ranges(len(tokens), chunk_size, chunk_overlap)
        if end - start >= min_chunk_size or end == len(tokens)
    ]
    base_id = sanitize_source_id(source_id)

    chunks: list[Chunk] = []
    for index, (start, end) in enumerate(kept):
        chunk_metadata: dict[str, MetadataValue] = {
            "source_file": source_id,
            "token_start": start,
            "token_end": end,
            "token_count": end - start,
        }
        if metadata:
            chunk_metadata.update(metadata)
        chunks.append(
            Chunk(
                id=f"{namespace.value}_{base_id}_{index + 1}",
                namespace=namespace,
                content=" ".join(tokens[start:end]),
                metadata=chunk_metadata,
            )
        )
    return chunks
