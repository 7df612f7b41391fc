"""Job registry state machine and the uploaded-file store.

Both stores hold their records in memory and rewrite the full collection to
SQLite on every change. A write that fails leaves the in-memory map untouched.

Job lifecycle::

    queued -> processing -> completed | failed
    queued -> failed            (job failed before it started)
"""

import logging
import sqlite3
import threading
import uuid
from pathlib import Path

from evaluator.core.db import init_db, load_files, load_jobs, replace_files, replace_jobs
from evaluator.core.errors import InvalidTransitionError, JobNotFoundError
from evaluator.core.schemas import EvaluationResult, FileRecord, Job, JobStatus

logger = logging.getLogger(__name__)

_ALLOWED_TRANSITIONS: dict[JobStatus, set[JobStatus]] = {
    JobStatus.QUEUED: {JobStatus.PROCESSING, JobStatus.FAILED},
    JobStatus.PROCESSING: {JobStatus.COMPLETED, JobStatus.FAILED},
    JobStatus.COMPLETED: set(),
    JobStatus.FAILED: set(),
}


class JobRegistry:
    """Tracks evaluation jobs through their lifecycle.

    Usage::

        registry = JobRegistry.open("data/evaluator.db")
        job = registry.create_job()
        registry.mark_processing(job.id)
        registry.complete(job.id, result)
        registry.get_job(job.id)
    """

    def __init__(self, conn: sqlite3.Connection) -> None:
        self._conn = conn
        self._lock = threading.Lock()
        self._jobs: dict[str, Job] = {job.id: job for job in load_jobs(conn)}
        logger.debug("Loaded %d job(s) from storage", len(self._jobs))

    @classmethod
    def open(cls, path: str | Path) -> "JobRegistry":
        return cls(init_db(path))

    def close(self) -> None:
        self._conn.close()

    def __len__(self) -> int:
        return len(self._jobs)

    def get_job(self, job_id: str) -> Job | None:
        """Return the job, or None when the id is unknown."""
        return self._jobs.get(job_id)

    def create_job(self) -> Job:
        """Allocate a new queued job and persist it."""
        job = Job(id=str(uuid.uuid4()), status=JobStatus.QUEUED)
        with self._lock:
            self._commit(job)
        logger.info("Job %s queued", job.id)
        return job

    def mark_processing(self, job_id: str) -> Job:
        return self._transition(job_id, JobStatus.PROCESSING)

    def complete(self, job_id: str, result: EvaluationResult) -> Job:
        return self._transition(job_id, JobStatus.COMPLETED, result=result)

    def fail(self, job_id: str, error: str) -> Job:
        return self._transition(job_id, JobStatus.FAILED, error=error or "Unknown error")

    def fail_interrupted(self, reason: str = "Interrupted by service restart") -> list[Job]:
        """Fail every non-terminal job left over from a previous process.

        Job inputs are not persisted, so such jobs can never resume.
        """
        stale = [job.id for job in self._jobs.values() if not job.status.is_terminal]
        failed = [self.fail(job_id, reason) for job_id in stale]
        if failed:
            logger.warning("Marked %d interrupted job(s) as failed", len(failed))
        return failed

    def _transition(
        self,
        job_id: str,
        status: JobStatus,
        *,
        result: EvaluationResult | None = None,
        error: str | None = None,
    ) -> Job:
        with self._lock:
            current = self._jobs.get(job_id)
            if current is None:
                raise JobNotFoundError(job_id)
            if status not in _ALLOWED_TRANSITIONS[current.status]:
                msg = f"Job {job_id} cannot move from {current.status.value} to {status.value}"
                raise InvalidTransitionError(msg)

            updated = Job(id=job_id, status=status, result=result, error=error)
            self._commit(updated)

        logger.info("Job %s %s", job_id, status.value)
        return updated

    def _commit(self, job: Job) -> None:
        # Caller holds the lock
        staged = {**self._jobs, job.id: job}
        replace_jobs(self._conn, list(staged.values()))
        self._jobs = staged


class FileStore:
    """Uploaded file records, resolvable by id."""

    def __init__(self, conn: sqlite3.Connection) -> None:
        self._conn = conn
        self._lock = threading.Lock()
        self._files: dict[str, FileRecord] = {r.id: r for r in load_files(conn)}

    @classmethod
    def open(cls, path: str | Path) -> "FileStore":
        return cls(init_db(path))

    def close(self) -> None:
        self._conn.close()

    def save(self, record: FileRecord) -> None:
        with self._lock:
            staged = {**self._files, record.id: record}
            replace_files(self._conn, list(staged.values()))
            self._files = staged
        logger.debug("Stored file %s (%s)", record.id, record.name)

    def get(self, file_id: str) -> FileRecord | None:
        return self._files.get(file_id)

    def resolve(self, file_id: str) -> str | None:
        """Absolute path for ``file_id``, or None if unknown."""
        record = self._files.get(file_id)
        return record.path if record is not None else None
