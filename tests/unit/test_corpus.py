"""Tests for corpus persistence and directory ingestion."""

from pathlib import Path

import pytest

from evaluator.core.config import ChunkingConfig
from evaluator.core.schemas import Chunk, Namespace, ParsedPdf
from evaluator.rag.corpus import infer_namespace, ingest_directory, load_corpus, write_corpus
from evaluator.rag.lexical import LexicalIndex


def _fake_parse(path: Path) -> ParsedPdf:
    return ParsedPdf(text=path.read_text(encoding="utf-8"), page_count=1)


class TestInferNamespace:
    @pytest.mark.parametrize(
        ("filename", "expected"),
        [
            ("Job Description.pdf", Namespace.JOB_DESCRIPTION),
            ("case_study_brief.pdf", Namespace.CASE_STUDY_BRIEF),
            ("Project Scoring Rubric.pdf", Namespace.PROJECT_RUBRIC),
            ("CV Rubric.pdf", Namespace.CV_RUBRIC),
            ("cv_project_rubric.pdf", Namespace.PROJECT_RUBRIC),
        ],
    )
    def test_keywords(self, filename: str, expected: Namespace) -> None:
        assert infer_namespace(filename) is expected

    def test_unknown_rejected(self) -> None:
        with pytest.raises(ValueError, match="Unable to infer namespace"):
            infer_namespace("notes.pdf")


class TestCorpusFile:
    def test_round_trip(self, tmp_path: Path) -> None:
        chunks = [
            Chunk(id="a", namespace=Namespace.CV_RUBRIC, content="x", metadata={"page_count": 1}),
            Chunk(id="b", namespace=Namespace.JOB_DESCRIPTION, content="y"),
        ]
        path = tmp_path / "data" / "corpus.jsonl"
        assert write_corpus(path, chunks) == 2
        assert load_corpus(path) == chunks

    def test_missing_file_is_empty(self, tmp_path: Path) -> None:
        assert load_corpus(tmp_path / "absent.jsonl") == []

    def test_malformed_lines_skipped(self, tmp_path: Path) -> None:
        good = Chunk(id="a", namespace=Namespace.CV_RUBRIC, content="x")
        path = tmp_path / "corpus.jsonl"
        path.write_text(
            "{not json\n"
            + good.model_dump_json()
            + "\n\n"
            + '{"id": "b", "namespace": "resume", "content": "x"}\n',
            encoding="utf-8",
        )
        assert load_corpus(path) == [good]


class TestIngestDirectory:
    async def test_writes_corpus_and_fills_index(self, tmp_path: Path) -> None:
        docs = tmp_path / "docs"
        docs.mkdir()
        (docs / "job_description.pdf").write_text("backend engineer python", encoding="utf-8")
        (docs / "cv_rubric.pdf").write_text("assess technical skills", encoding="utf-8")
        (docs / "readme.txt").write_text("ignored", encoding="utf-8")
        corpus = tmp_path / "corpus.jsonl"
        index = LexicalIndex()

        chunks = await ingest_directory(docs, corpus, index, ChunkingConfig(), parse=_fake_parse)

        assert {c.namespace for c in chunks} == {Namespace.JOB_DESCRIPTION, Namespace.CV_RUBRIC}
        assert load_corpus(corpus) == chunks
        assert index.count(Namespace.JOB_DESCRIPTION) == 1
        assert index.count(Namespace.CV_RUBRIC) == 1
        assert chunks[0].metadata["page_count"] == 1

    async def test_reingest_is_idempotent(self, tmp_path: Path) -> None:
        docs = tmp_path / "docs"
        docs.mkdir()
        (docs / "job.pdf").write_text("backend engineer", encoding="utf-8")
        index = LexicalIndex()
        first = await ingest_directory(docs, tmp_path / "c.jsonl", index, parse=_fake_parse)
        second = await ingest_directory(docs, tmp_path / "c.jsonl", index, parse=_fake_parse)
        assert first == second
        assert index.count(Namespace.JOB_DESCRIPTION) == len(first)

    async def test_missing_directory(self, tmp_path: Path) -> None:
        with pytest.raises(FileNotFoundError, match="Docs directory not found"):
            await ingest_directory(tmp_path / "nope", tmp_path / "c.jsonl", LexicalIndex())

    async def test_no_pdfs_writes_nothing(self, tmp_path: Path) -> None:
        corpus = tmp_path / "c.jsonl"
        assert await ingest_directory(tmp_path, corpus, LexicalIndex(), parse=_fake_parse) == []
        assert not corpus.exists()

    async def test_unrecognised_pdf_name_raises(self, tmp_path: Path) -> None:
        (tmp_path / "notes.pdf").write_text("x", encoding="utf-8")
        with pytest.raises(ValueError):
            await ingest_directory(tmp_path, tmp_path / "c.jsonl", LexicalIndex(), parse=_fake_parse)
