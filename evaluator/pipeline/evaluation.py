"""Evaluation pipeline: retrieval, two scoring calls, then synthesis.

Data flow:
  1. Retrieve CV context (job_description, cv_rubric) and project context
     (case_study_brief, project_rubric) concurrently
  2. Evaluate CV and project report concurrently, validating and clamping
  3. Synthesize an overall summary from both evaluations
"""

import asyncio
import logging
import math
from dataclasses import dataclass
from typing import Any, TypeVar

from pydantic import BaseModel, ValidationError

from evaluator.core.errors import SchemaValidationError
from evaluator.core.schemas import (
    CvEvaluationResponse,
    EvaluationResult,
    Namespace,
    ProjectEvaluationResponse,
    RetrievedChunk,
    SynthesisResponse,
)
from evaluator.llm.client import ModelClient
from evaluator.llm.prompts import PromptKind
from evaluator.rag.index import DEFAULT_TOP_K, RetrievalIndex

logger = logging.getLogger(__name__)

ResponseT = TypeVar("ResponseT", bound=BaseModel)

# Order matters: it is the order the context appears in the prompt
CV_CONTEXT_NAMESPACES = (Namespace.JOB_DESCRIPTION, Namespace.CV_RUBRIC)
PROJECT_CONTEXT_NAMESPACES = (Namespace.CASE_STUDY_BRIEF, Namespace.PROJECT_RUBRIC)


def clamp_score(value: float) -> float:
    """Clamp into [0, 1] rounded to two decimals; non-finite values become 0."""
    try:
        number = float(value)
    except (TypeError, ValueError):
        return 0.0
    if not math.isfinite(number):
        return 0.0
    return round(min(max(number, 0.0), 1.0), 2)


def validate_response(kind: PromptKind, schema: type[ResponseT], data: dict[str, Any]) -> ResponseT:
    """Convert an untyped model reply into ``schema`` or raise SchemaValidationError."""
    try:
        return schema.model_validate(data)
    except ValidationError as e:
        fields = ", ".join(".".join(str(p) for p in err["loc"]) or "<root>" for err in e.errors())
        msg = f"{kind.value} response failed schema validation ({fields})"
        raise SchemaValidationError(msg) from e


@dataclass(frozen=True)
class CvEvaluation:
    match_rate: float
    feedback: str


@dataclass(frozen=True)
class ProjectEvaluation:
    score: float
    feedback: str


class EvaluationPipeline:
    """Runs one evaluation against a retrieval index and a model client.

    Holds no per-job state, so one instance serves concurrent jobs.
    """

    def __init__(
        self,
        index: RetrievalIndex,
        model: ModelClient,
        top_k: int = DEFAULT_TOP_K,
    ) -> None:
        self.index = index
        self.model = model
        self.top_k = top_k

    async def retrieve_context(
        self,
        query: str,
        namespaces: tuple[Namespace, ...],
    ) -> list[RetrievedChunk]:
        """Top-K chunks per namespace, concatenated in ``namespaces`` order."""
        per_namespace = await asyncio.gather(
            *(self.index.query(ns, query, self.top_k) for ns in namespaces)
        )
        return [chunk for chunks in per_namespace for chunk in chunks]

    async def evaluate_cv(
        self,
        job_title: str,
        cv_text: str,
        context: list[RetrievedChunk],
    ) -> CvEvaluation:
        raw = await self.model.complete(
            PromptKind.CV_EVALUATION,
            {
                "jobTitle": job_title,
                "cvText": cv_text,
                "context": [c.content for c in context],
            },
        )
        parsed = validate_response(PromptKind.CV_EVALUATION, CvEvaluationResponse, raw)
        return CvEvaluation(match_rate=clamp_score(parsed.cv_match_rate), feedback=parsed.cv_feedback)

    async def evaluate_project(
        self,
        project_text: str,
        context: list[RetrievedChunk],
    ) -> ProjectEvaluation:
        raw = await self.model.complete(
            PromptKind.PROJECT_EVALUATION,
            {
                "projectText": project_text,
                "context": [c.content for c in context],
            },
        )
        parsed = validate_response(PromptKind.PROJECT_EVALUATION, ProjectEvaluationResponse, raw)
        return ProjectEvaluation(score=clamp_score(parsed.project_score), feedback=parsed.project_feedback)

    async def synthesize(
        self,
        job_title: str,
        cv: CvEvaluation,
        project: ProjectEvaluation,
    ) -> str:
        raw = await self.model.complete(
            PromptKind.SYNTHESIS,
            {
                "jobTitle": job_title,
                "cvMatchRate": cv.match_rate,
                "cvFeedback": cv.feedback,
                "projectScore": project.score,
                "projectFeedback": project.feedback,
            },
        )
        return validate_response(PromptKind.SYNTHESIS, SynthesisResponse, raw).overall_summary

    async def evaluate(self, job_title: str, cv_text: str, project_text: str) -> EvaluationResult:
        """Run the full evaluation and return the combined result."""
        cv_context, project_context = await asyncio.gather(
            self.retrieve_context(job_title, CV_CONTEXT_NAMESPACES),
            self.retrieve_context(job_title, PROJECT_CONTEXT_NAMESPACES),
        )
        logger.info(
            "Retrieved %d CV and %d project context chunk(s) for '%s'",
            len(cv_context), len(project_context), job_title,
        )

        cv, project = await asyncio.gather(
            self.evaluate_cv(job_title, cv_text, cv_context),
            self.evaluate_project(project_text, project_context),
        )
        summary = await self.synthesize(job_title, cv, project)

        return EvaluationResult(
            cv_match_rate=cv.match_rate,
            cv_feedback=cv.feedback,
            project_score=project.score,
            project_feedback=project.feedback,
            overall_summary=summary,
        )
