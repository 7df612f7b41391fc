"""FastAPI application: upload, evaluate, and poll results."""

import json
import logging
import re
import time
import uuid
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from pathlib import Path
from typing import Any

from fastapi import FastAPI, File, Request, UploadFile
from fastapi.responses import JSONResponse
from pydantic import ValidationError

from evaluator.core.config import Settings
from evaluator.core.schemas import EvaluationRequest, FileRecord, JobStatus
from evaluator.llm.client import StructuredCompletionClient
from evaluator.pipeline.evaluation import EvaluationPipeline
from evaluator.pipeline.jobs import FileStore, JobRegistry
from evaluator.pipeline.runner import JobRunner
from evaluator.rag.index import build_index

logger = logging.getLogger(__name__)

_UNSAFE_FILENAME = re.compile(r"[^A-Za-z0-9._-]")


def _validation_errors(error: ValidationError) -> list[dict[str, Any]]:
    return [
        {
            "path": ".".join(str(p) for p in err["loc"]) or None,
            "message": err["msg"],
        }
        for err in error.errors()
    ]


def _stored_name(original: str) -> str:
    safe = _UNSAFE_FILENAME.sub("_", Path(original).name) or "upload.pdf"
    return f"{int(time.time() * 1000)}-{uuid.uuid4().hex[:8]}-{safe}"


def create_app(
    registry: JobRegistry,
    files: FileStore,
    runner: JobRunner,
    upload_dir: str | Path,
    lifespan: Any = None,
) -> FastAPI:
    """Build the API around already-constructed stores and runner."""
    upload_dir = Path(upload_dir)
    app = FastAPI(title="Candidate Evaluator", lifespan=lifespan)

    @app.get("/health")
    async def health() -> dict[str, str]:
        return {"status": "ok"}

    @app.post("/upload")
    async def upload(
        cv: UploadFile | None = File(None),
        project_report: UploadFile | None = File(None),
    ) -> JSONResponse:
        if cv is None or project_report is None:
            return JSONResponse(
                status_code=400,
                content={"error": "Both cv and project_report files are required."},
            )

        upload_dir.mkdir(parents=True, exist_ok=True)
        stored: list[dict[str, str]] = []
        for prefix, part in (("cv", cv), ("pr", project_report)):
            name = part.filename or f"{prefix}.pdf"
            path = (upload_dir / _stored_name(name)).resolve()
            path.write_bytes(await part.read())
            record = FileRecord(id=f"{prefix}_{uuid.uuid4()}", name=name, path=str(path))
            files.save(record)
            stored.append({"id": record.id, "name": record.name})

        logger.info("Uploaded %s", ", ".join(f["id"] for f in stored))
        return JSONResponse(content={"files": stored})

    @app.post("/evaluate")
    async def evaluate(request: Request) -> JSONResponse:
        try:
            body = await request.json()
        except (json.JSONDecodeError, UnicodeDecodeError):
            return JSONResponse(
                status_code=400,
                content={"errors": [{"path": None, "message": "Request body must be valid JSON"}]},
            )

        try:
            payload = EvaluationRequest.model_validate(body)
        except ValidationError as e:
            return JSONResponse(status_code=400, content={"errors": _validation_errors(e)})

        job = runner.submit(payload)
        return JSONResponse(status_code=202, content={"id": job.id, "status": job.status.value})

    @app.get("/result/{job_id}")
    async def result(job_id: str) -> JSONResponse:
        job = registry.get_job(job_id)
        if job is None:
            return JSONResponse(status_code=404, content={"error": "Job not found"})

        content: dict[str, Any] = {"id": job.id, "status": job.status.value}
        if job.status is JobStatus.COMPLETED and job.result is not None:
            content["result"] = job.result.model_dump()
        elif job.status is JobStatus.FAILED:
            content["error"] = job.error
        return JSONResponse(content=content)

    return app


def create_app_from_settings(settings: Settings) -> FastAPI:
    """Wire stores, index, model client and runner from settings."""
    registry = JobRegistry.open(settings.storage.database)
    files = FileStore.open(settings.storage.database)
    index = build_index(settings)
    model = StructuredCompletionClient.from_config(settings.llm, settings.retry)
    pipeline = EvaluationPipeline(index, model, top_k=settings.retrieval.top_k)
    runner = JobRunner(registry, files, pipeline)

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        registry.fail_interrupted()
        logger.info(
            "Serving with %s retrieval and %s provider (%d job(s) on record)",
            index.strategy, settings.llm.provider, len(registry),
        )
        yield
        if runner.pending:
            logger.info("Waiting for %d running job(s)...", runner.pending)
        await runner.drain()
        registry.close()
        files.close()

    return create_app(registry, files, runner, settings.storage.upload_dir, lifespan=lifespan)
