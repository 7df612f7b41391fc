"""Background execution of evaluation jobs.

``submit`` returns as soon as the job is queued; the evaluation runs as a
detached asyncio task whose error boundary always writes a terminal status.
"""

import asyncio
import logging
from collections.abc import Callable
from pathlib import Path

from evaluator.core.errors import MissingFilesError
from evaluator.core.schemas import EvaluationRequest, Job, ParsedPdf
from evaluator.pipeline.evaluation import EvaluationPipeline
from evaluator.pipeline.jobs import FileStore, JobRegistry
from evaluator.pipeline.pdf import parse_pdf
from evaluator.pipeline.retry import describe_error

logger = logging.getLogger(__name__)


class JobRunner:
    """Spawns one task per job and tracks it until it finishes.

    There is no cancellation: once started a job runs to completed or failed.
    """

    def __init__(
        self,
        registry: JobRegistry,
        files: FileStore,
        pipeline: EvaluationPipeline,
        parse: Callable[[str | Path], ParsedPdf] = parse_pdf,
    ) -> None:
        self.registry = registry
        self.files = files
        self.pipeline = pipeline
        self.parse = parse
        self._tasks: set[asyncio.Task[Job]] = set()

    @property
    def pending(self) -> int:
        return len(self._tasks)

    def submit(self, request: EvaluationRequest) -> Job:
        """Queue a job and start it in the background. Must run inside the event loop."""
        job = self.registry.create_job()
        loop = asyncio.get_running_loop()
        task = loop.create_task(self.run(job.id, request), name=f"evaluate-{job.id}")
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return job

    async def run(self, job_id: str, request: EvaluationRequest) -> Job:
        """Drive one job to a terminal state. Never raises for pipeline errors."""
        try:
            self.registry.mark_processing(job_id)
            cv_path, project_path = self._resolve_files(request)
            cv_doc, project_doc = await asyncio.gather(
                asyncio.to_thread(self.parse, cv_path),
                asyncio.to_thread(self.parse, project_path),
            )
            result = await self.pipeline.evaluate(request.job_title, cv_doc.text, project_doc.text)
        except Exception as exc:
            logger.error("Job %s failed: %s", job_id, describe_error(exc), exc_info=True)
            return self._fail(job_id, describe_error(exc))

        try:
            return self.registry.complete(job_id, result)
        except Exception as exc:
            logger.error("Job %s could not be completed", job_id, exc_info=True)
            return self._fail(job_id, describe_error(exc))

    async def drain(self) -> None:
        """Wait for every outstanding job task."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

    def _resolve_files(self, request: EvaluationRequest) -> tuple[str, str]:
        cv_path = self.files.resolve(request.cv_file_id)
        project_path = self.files.resolve(request.project_file_id)

        missing: dict[str, str] = {}
        if cv_path is None:
            missing["cv_file_id"] = request.cv_file_id
        if project_path is None:
            missing["project_file_id"] = request.project_file_id
        if missing:
            raise MissingFilesError(missing)
        return cv_path, project_path  # type: ignore[return-value]

    def _fail(self, job_id: str, error: str) -> Job:
        try:
            return self.registry.fail(job_id, error)
        except Exception:
            # Terminal or unknown job: nothing left to record
            logger.exception("Could not mark job %s as failed", job_id)
            job = self.registry.get_job(job_id)
            if job is None:
                raise
            return job
