"""Tests for the job state machine and the uploaded-file store."""

from pathlib import Path
from unittest.mock import patch

import pytest

from evaluator.core.errors import InvalidTransitionError, JobNotFoundError
from evaluator.core.schemas import EvaluationResult, FileRecord, JobStatus
from evaluator.pipeline.jobs import FileStore, JobRegistry


def _result() -> EvaluationResult:
    return EvaluationResult(
        cv_match_rate=0.8,
        cv_feedback="good",
        project_score=0.6,
        project_feedback="fine",
        overall_summary="hire",
    )


@pytest.fixture
def db_path(tmp_path: Path) -> Path:
    return tmp_path / "evaluator.db"


@pytest.fixture
def registry(db_path: Path) -> JobRegistry:
    registry = JobRegistry.open(db_path)
    yield registry  # type: ignore[misc]
    registry.close()


class TestLifecycle:
    def test_create_is_queued(self, registry: JobRegistry) -> None:
        job = registry.create_job()
        assert job.status is JobStatus.QUEUED
        assert registry.get_job(job.id) == job
        assert len(registry) == 1

    def test_ids_unique(self, registry: JobRegistry) -> None:
        ids = {registry.create_job().id for _ in range(20)}
        assert len(ids) == 20

    def test_happy_path(self, registry: JobRegistry) -> None:
        job = registry.create_job()
        assert registry.mark_processing(job.id).status is JobStatus.PROCESSING
        done = registry.complete(job.id, _result())
        assert done.status is JobStatus.COMPLETED
        assert done.result == _result()
        assert done.error is None

    def test_fail_from_processing(self, registry: JobRegistry) -> None:
        job = registry.create_job()
        registry.mark_processing(job.id)
        failed = registry.fail(job.id, "provider down")
        assert failed.status is JobStatus.FAILED
        assert failed.error == "provider down"
        assert failed.result is None

    def test_fail_from_queued(self, registry: JobRegistry) -> None:
        job = registry.create_job()
        assert registry.fail(job.id, "boom").status is JobStatus.FAILED

    def test_empty_error_gets_default(self, registry: JobRegistry) -> None:
        job = registry.create_job()
        assert registry.fail(job.id, "").error == "Unknown error"

    def test_unknown_job(self, registry: JobRegistry) -> None:
        assert registry.get_job("missing") is None
        with pytest.raises(JobNotFoundError, match="Job not found: missing"):
            registry.mark_processing("missing")


class TestTransitions:
    def test_cannot_complete_from_queued(self, registry: JobRegistry) -> None:
        job = registry.create_job()
        with pytest.raises(InvalidTransitionError, match="cannot move from queued to completed"):
            registry.complete(job.id, _result())

    def test_terminal_states_are_final(self, registry: JobRegistry) -> None:
        job = registry.create_job()
        registry.mark_processing(job.id)
        registry.complete(job.id, _result())
        with pytest.raises(InvalidTransitionError):
            registry.fail(job.id, "late failure")
        with pytest.raises(InvalidTransitionError):
            registry.mark_processing(job.id)
        assert registry.get_job(job.id).status is JobStatus.COMPLETED  # type: ignore[union-attr]

    def test_failed_is_final(self, registry: JobRegistry) -> None:
        job = registry.create_job()
        registry.fail(job.id, "boom")
        with pytest.raises(InvalidTransitionError):
            registry.mark_processing(job.id)


class TestPersistence:
    def test_reopen_restores_jobs(self, db_path: Path) -> None:
        first = JobRegistry.open(db_path)
        queued = first.create_job()
        done = first.create_job()
        first.mark_processing(done.id)
        first.complete(done.id, _result())
        first.close()

        second = JobRegistry.open(db_path)
        try:
            assert second.get_job(queued.id).status is JobStatus.QUEUED  # type: ignore[union-attr]
            assert second.get_job(done.id).result == _result()  # type: ignore[union-attr]
        finally:
            second.close()

    def test_failed_write_leaves_memory_untouched(self, registry: JobRegistry) -> None:
        job = registry.create_job()
        with (
            patch("evaluator.pipeline.jobs.replace_jobs", side_effect=OSError("disk full")),
            pytest.raises(OSError),
        ):
            registry.mark_processing(job.id)
        assert registry.get_job(job.id).status is JobStatus.QUEUED  # type: ignore[union-attr]

    def test_fail_interrupted(self, db_path: Path) -> None:
        first = JobRegistry.open(db_path)
        queued = first.create_job()
        running = first.create_job()
        first.mark_processing(running.id)
        finished = first.create_job()
        first.mark_processing(finished.id)
        first.complete(finished.id, _result())
        first.close()

        second = JobRegistry.open(db_path)
        try:
            failed = second.fail_interrupted()
            assert {j.id for j in failed} == {queued.id, running.id}
            assert second.get_job(running.id).error == "Interrupted by service restart"  # type: ignore[union-attr]
            assert second.get_job(finished.id).status is JobStatus.COMPLETED  # type: ignore[union-attr]
            assert second.fail_interrupted() == []
        finally:
            second.close()


class TestFileStore:
    def test_save_and_resolve(self, db_path: Path) -> None:
        store = FileStore.open(db_path)
        record = FileRecord(id="cv_1", name="cv.pdf", path="/uploads/cv.pdf")
        store.save(record)
        assert store.get("cv_1") == record
        assert store.resolve("cv_1") == "/uploads/cv.pdf"
        assert store.resolve("unknown") is None
        store.close()

    def test_survives_reopen(self, db_path: Path) -> None:
        store = FileStore.open(db_path)
        store.save(FileRecord(id="pr_1", name="report.pdf", path="/uploads/report.pdf"))
        store.close()

        reopened = FileStore.open(db_path)
        assert reopened.resolve("pr_1") == "/uploads/report.pdf"
        reopened.close()

    def test_shares_database_with_registry(self, db_path: Path, registry: JobRegistry) -> None:
        store = FileStore.open(db_path)
        store.save(FileRecord(id="cv_1", name="cv.pdf", path="/x"))
        registry.create_job()
        assert store.resolve("cv_1") == "/x"
        store.close()
