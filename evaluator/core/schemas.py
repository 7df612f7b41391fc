"""Core data models for the candidate evaluator."""

from enum import Enum
from typing import Union

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

MetadataValue = Union[str, int, float, bool]


class Namespace(str, Enum):
    """Closed set of ground-truth document categories that scope retrieval."""

    JOB_DESCRIPTION = "job_description"
    CASE_STUDY_BRIEF = "case_study_brief"
    CV_RUBRIC = "cv_rubric"
    PROJECT_RUBRIC = "project_rubric"


class Chunk(BaseModel):
    """A bounded slice of a source document, the unit of retrieval."""

    model_config = ConfigDict(frozen=True)

    id: str
    namespace: Namespace
    content: str
    metadata: dict[str, MetadataValue] = Field(default_factory=dict)


class RetrievedChunk(Chunk):
    """A chunk returned by a query, paired with its relevance score."""

    score: float = Field(default=0.0, ge=0.0)


class JobStatus(str, Enum):
    QUEUED = "queued"
    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"

    @property
    def is_terminal(self) -> bool:
        return self in (JobStatus.COMPLETED, JobStatus.FAILED)


class EvaluationResult(BaseModel):
    """Final structured evaluation attached to a completed job."""

    model_config = ConfigDict(frozen=True)

    cv_match_rate: float = Field(ge=0.0, le=1.0)
    cv_feedback: str
    project_score: float = Field(ge=0.0, le=1.0)
    project_feedback: str
    overall_summary: str


class Job(BaseModel):
    """One asynchronous evaluation request.

    Frozen: the registry replaces the whole record on every transition.
    """

    model_config = ConfigDict(frozen=True)

    id: str
    status: JobStatus = JobStatus.QUEUED
    result: EvaluationResult | None = None
    error: str | None = None

    @model_validator(mode="after")
    def result_and_error_match_status(self) -> "Job":
        if (self.result is not None) != (self.status is JobStatus.COMPLETED):
            msg = f"result must be set exactly when status is completed (status={self.status.value})"
            raise ValueError(msg)
        if (self.error is not None) != (self.status is JobStatus.FAILED):
            msg = f"error must be set exactly when status is failed (status={self.status.value})"
            raise ValueError(msg)
        return self


class FileRecord(BaseModel):
    """An uploaded file and where it was stored."""

    model_config = ConfigDict(frozen=True)

    id: str
    name: str
    path: str


class EvaluationRequest(BaseModel):
    """Body of a job submission."""

    job_title: str = Field(min_length=1)
    cv_file_id: str = Field(min_length=1)
    project_file_id: str = Field(min_length=1)

    @field_validator("job_title", "cv_file_id", "project_file_id")
    @classmethod
    def not_blank(cls, v: str) -> str:
        if not v.strip():
            msg = "must not be empty"
            raise ValueError(msg)
        return v.strip()


class ParsedPdf(BaseModel):
    """Plain text extracted from a PDF."""

    text: str
    page_count: int = Field(default=0, ge=0)


# ---------------------------------------------------------------------------
# Structured model responses
# ---------------------------------------------------------------------------


class CvEvaluationResponse(BaseModel):
    model_config = ConfigDict(strict=True)

    cv_match_rate: float
    cv_feedback: str


class ProjectEvaluationResponse(BaseModel):
    model_config = ConfigDict(strict=True)

    project_score: float
    project_feedback: str


class SynthesisResponse(BaseModel):
    model_config = ConfigDict(strict=True)

    overall_summary: str
