"""Ground-truth corpus: JSONL persistence and PDF ingestion."""

import json
import logging
from collections import defaultdict
from collections.abc import Callable, Iterable
from pathlib import Path

from pydantic import ValidationError

from evaluator.core.config import ChunkingConfig
from evaluator.core.schemas import Chunk, Namespace, ParsedPdf
from evaluator.pipeline.pdf import parse_pdf
from evaluator.rag.chunker import chunk_text
from evaluator.rag.index import RetrievalIndex

logger = logging.getLogger(__name__)

# Checked in order; "project" wins over "cv" for e.g. "cv_project_rubric.pdf"
_FILENAME_HINTS: list[tuple[str, Namespace]] = [
    ("job", Namespace.JOB_DESCRIPTION),
    ("brief", Namespace.CASE_STUDY_BRIEF),
    ("project", Namespace.PROJECT_RUBRIC),
    ("cv", Namespace.CV_RUBRIC),
]


def infer_namespace(filename: str | Path) -> Namespace:
    """Guess a document's namespace from keywords in its file name."""
    name = Path(filename).stem.lower()
    for hint, namespace in _FILENAME_HINTS:
        if hint in name:
            return namespace
    msg = (
        f"Unable to infer namespace for {filename}. "
        "Expected the file name to include job, brief, project, or cv."
    )
    raise ValueError(msg)


def write_corpus(path: str | Path, chunks: Iterable[Chunk]) -> int:
    """Write chunks as one JSON object per line. Returns the number written."""
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    count = 0
    with path.open("w", encoding="utf-8") as fh:
        for chunk in chunks:
            fh.write(chunk.model_dump_json() + "\n")
            count += 1
    return count


def load_corpus(path: str | Path) -> list[Chunk]:
    """Read a JSONL corpus. A missing file is an empty corpus."""
    path = Path(path)
    if not path.exists():
        logger.warning("Corpus file not found: %s (retrieval context will be empty)", path)
        return []

    chunks: list[Chunk] = []
    with path.open(encoding="utf-8") as fh:
        for line_no, line in enumerate(fh, start=1):
            if not line.strip():
                continue
            try:
                chunks.append(Chunk.model_validate(json.loads(line)))
            except (json.JSONDecodeError, ValidationError):
                logger.warning("Skipping malformed corpus line %d in %s", line_no, path)
    return chunks


def chunk_pdf(
    pdf_path: Path,
    chunking: ChunkingConfig,
    parse: Callable[[Path], ParsedPdf] = parse_pdf,
) -> list[Chunk]:
    """Parse and chunk one ground-truth PDF into its inferred namespace."""
    namespace = infer_namespace(pdf_path)
    parsed = parse(pdf_path)
    return chunk_text(
        namespace,
        pdf_path.name,
        parsed.text,
        chunk_size=chunking.chunk_size,
        chunk_overlap=chunking.chunk_overlap,
        min_chunk_size=chunking.min_chunk_size,
        metadata={"page_count": parsed.page_count},
    )


async def ingest_directory(
    docs_dir: str | Path,
    corpus_path: str | Path,
    index: RetrievalIndex,
    chunking: ChunkingConfig | None = None,
    parse: Callable[[Path], ParsedPdf] = parse_pdf,
) -> list[Chunk]:
    """Chunk every PDF in ``docs_dir``, write the corpus and upsert into ``index``.

    Returns the chunks written. Nothing is written when no PDFs are found.
    """
    docs_dir = Path(docs_dir)
    if not docs_dir.is_dir():
        msg = f"Docs directory not found: {docs_dir}. Add PDFs before running ingest."
        raise FileNotFoundError(msg)

    chunking = chunking or ChunkingConfig()
    pdf_paths = sorted(p for p in docs_dir.iterdir() if p.is_file() and p.suffix.lower() == ".pdf")
    if not pdf_paths:
        logger.warning("No PDF files found in %s. Nothing to ingest.", docs_dir)
        return []

    logger.info("Found %d PDF file(s). Extracting text...", len(pdf_paths))
    all_chunks: list[Chunk] = []
    for pdf_path in pdf_paths:
        chunks = chunk_pdf(pdf_path, chunking, parse)
        if not chunks:
            logger.warning("No chunks generated for %s", pdf_path.name)
        all_chunks.extend(chunks)

    if not all_chunks:
        logger.warning("No chunks generated from PDFs. Skipping write.")
        return []

    written = write_corpus(corpus_path, all_chunks)
    logger.info("Wrote %d chunk(s) to %s", written, corpus_path)

    by_namespace: dict[Namespace, list[Chunk]] = defaultdict(list)
    for chunk in all_chunks:
        by_namespace[chunk.namespace].append(chunk)
    for namespace, chunks in by_namespace.items():
        await index.upsert(namespace, chunks)

    return all_chunks
