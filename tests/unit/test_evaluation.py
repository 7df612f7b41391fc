"""Tests for the evaluation pipeline with a scripted model client."""

import math
from typing import Any

import pytest

from evaluator.core.errors import SchemaValidationError
from evaluator.core.schemas import Chunk, Namespace
from evaluator.llm.prompts import PromptKind
from evaluator.pipeline.evaluation import (
    CV_CONTEXT_NAMESPACES,
    CvEvaluation,
    EvaluationPipeline,
    ProjectEvaluation,
    clamp_score,
)
from evaluator.rag.lexical import LexicalIndex


class ScriptedModel:
    """Returns a canned reply per prompt kind and records every call."""

    def __init__(self, replies: dict[PromptKind, dict[str, Any]]) -> None:
        self.replies = replies
        self.calls: list[tuple[PromptKind, dict[str, Any]]] = []

    async def complete(self, kind: PromptKind, payload: dict[str, Any]) -> dict[str, Any]:
        self.calls.append((kind, payload))
        return self.replies[kind]

    def payload(self, kind: PromptKind) -> dict[str, Any]:
        return next(p for k, p in self.calls if k is kind)


def _replies(cv_rate: Any = 0.8, project_score: Any = 0.7) -> dict[PromptKind, dict[str, Any]]:
    return {
        PromptKind.CV_EVALUATION: {"cv_match_rate": cv_rate, "cv_feedback": "Strong backend work."},
        PromptKind.PROJECT_EVALUATION: {"project_score": project_score, "project_feedback": "Solid."},
        PromptKind.SYNTHESIS: {"overall_summary": "Recommend for interview."},
    }


@pytest.fixture
def index() -> LexicalIndex:
    index = LexicalIndex()
    index.seed([
        Chunk(id="jd", namespace=Namespace.JOB_DESCRIPTION, content="Backend engineer with Python"),
        Chunk(id="cvr", namespace=Namespace.CV_RUBRIC, content="Backend experience rubric"),
        Chunk(id="brief", namespace=Namespace.CASE_STUDY_BRIEF, content="Build a backend service"),
        Chunk(id="pr", namespace=Namespace.PROJECT_RUBRIC, content="Backend code quality"),
    ])
    return index


class TestClampScore:
    @pytest.mark.parametrize(
        ("value", "expected"),
        [
            (0.823, 0.82),
            (1.7, 1.0),
            (-0.3, 0.0),
            (math.inf, 0.0),
            (-math.inf, 0.0),
            (math.nan, 0.0),
            ("0.5", 0.5),
            ("high", 0.0),
            (None, 0.0),
        ],
    )
    def test_clamp(self, value: Any, expected: float) -> None:
        assert clamp_score(value) == expected


class TestEvaluate:
    async def test_full_result(self, index: LexicalIndex) -> None:
        model = ScriptedModel(_replies())
        pipeline = EvaluationPipeline(index, model)

        result = await pipeline.evaluate("Backend Engineer", "cv text", "project text")

        assert result.cv_match_rate == 0.8
        assert result.cv_feedback == "Strong backend work."
        assert result.project_score == 0.7
        assert result.project_feedback == "Solid."
        assert result.overall_summary == "Recommend for interview."

    async def test_context_order_per_prompt(self, index: LexicalIndex) -> None:
        model = ScriptedModel(_replies())
        await EvaluationPipeline(index, model).evaluate("Backend Engineer", "cv", "project")

        cv_payload = model.payload(PromptKind.CV_EVALUATION)
        assert cv_payload["jobTitle"] == "Backend Engineer"
        assert cv_payload["cvText"] == "cv"
        assert cv_payload["context"] == ["Backend engineer with Python", "Backend experience rubric"]

        project_payload = model.payload(PromptKind.PROJECT_EVALUATION)
        assert project_payload["projectText"] == "project"
        assert project_payload["context"] == ["Build a backend service", "Backend code quality"]

    async def test_synthesis_sees_clamped_scores(self, index: LexicalIndex) -> None:
        model = ScriptedModel(_replies(cv_rate=1.4, project_score=-2))
        result = await EvaluationPipeline(index, model).evaluate("Backend Engineer", "cv", "p")

        assert result.cv_match_rate == 1.0
        assert result.project_score == 0.0
        synthesis = model.payload(PromptKind.SYNTHESIS)
        assert synthesis == {
            "jobTitle": "Backend Engineer",
            "cvMatchRate": 1.0,
            "cvFeedback": "Strong backend work.",
            "projectScore": 0.0,
            "projectFeedback": "Solid.",
        }

    async def test_non_finite_scores_become_zero(self, index: LexicalIndex) -> None:
        model = ScriptedModel(_replies(cv_rate=math.inf, project_score=math.nan))
        result = await EvaluationPipeline(index, model).evaluate("Backend Engineer", "cv", "p")
        assert result.cv_match_rate == 0.0
        assert result.project_score == 0.0

    async def test_calls_each_prompt_once(self, index: LexicalIndex) -> None:
        model = ScriptedModel(_replies())
        await EvaluationPipeline(index, model).evaluate("Backend Engineer", "cv", "p")
        assert sorted(k.value for k, _ in model.calls) == [
            "cv_evaluation",
            "project_evaluation",
            "synthesis",
        ]
        assert model.calls[-1][0] is PromptKind.SYNTHESIS

    async def test_empty_index_gives_empty_context(self) -> None:
        model = ScriptedModel(_replies())
        await EvaluationPipeline(LexicalIndex(), model).evaluate("Backend Engineer", "cv", "p")
        assert model.payload(PromptKind.CV_EVALUATION)["context"] == []


class TestSchemaFailures:
    async def test_missing_field(self, index: LexicalIndex) -> None:
        replies = _replies()
        replies[PromptKind.CV_EVALUATION] = {"cv_feedback": "no score"}
        pipeline = EvaluationPipeline(index, ScriptedModel(replies))
        with pytest.raises(SchemaValidationError, match="cv_evaluation response failed schema validation"):
            await pipeline.evaluate("Backend Engineer", "cv", "p")

    async def test_non_numeric_score(self, index: LexicalIndex) -> None:
        replies = _replies(project_score="excellent")
        pipeline = EvaluationPipeline(index, ScriptedModel(replies))
        with pytest.raises(SchemaValidationError, match="project_score"):
            await pipeline.evaluate("Backend Engineer", "cv", "p")

    @pytest.mark.parametrize("cv_rate", [True, "0.9"])
    async def test_score_not_coerced(self, index: LexicalIndex, cv_rate: Any) -> None:
        pipeline = EvaluationPipeline(index, ScriptedModel(_replies(cv_rate=cv_rate)))
        with pytest.raises(SchemaValidationError, match="cv_match_rate"):
            await pipeline.evaluate("Backend Engineer", "cv", "p")

    async def test_integer_score_accepted(self, index: LexicalIndex) -> None:
        result = await EvaluationPipeline(index, ScriptedModel(_replies(cv_rate=1))).evaluate(
            "Backend Engineer", "cv", "p"
        )
        assert result.cv_match_rate == 1.0

    async def test_non_string_feedback(self, index: LexicalIndex) -> None:
        replies = _replies()
        replies[PromptKind.PROJECT_EVALUATION] = {"project_score": 0.5, "project_feedback": 7}
        pipeline = EvaluationPipeline(index, ScriptedModel(replies))
        with pytest.raises(SchemaValidationError, match="project_feedback"):
            await pipeline.evaluate("Backend Engineer", "cv", "p")

    async def test_synthesis_missing_summary(self, index: LexicalIndex) -> None:
        model = ScriptedModel(_replies())
        model.replies[PromptKind.SYNTHESIS] = {"summary": "wrong key"}
        pipeline = EvaluationPipeline(index, model)
        with pytest.raises(SchemaValidationError):
            await pipeline.synthesize(
                "Backend Engineer",
                CvEvaluation(match_rate=0.5, feedback="a"),
                ProjectEvaluation(score=0.5, feedback="b"),
            )


class TestRetrieveContext:
    async def test_top_k_per_namespace(self) -> None:
        index = LexicalIndex()
        index.seed(
            [Chunk(id=f"jd{i}", namespace=Namespace.JOB_DESCRIPTION, content="engineer") for i in range(5)]
            + [Chunk(id=f"cv{i}", namespace=Namespace.CV_RUBRIC, content="engineer") for i in range(5)]
        )
        pipeline = EvaluationPipeline(index, ScriptedModel({}), top_k=2)
        context = await pipeline.retrieve_context("engineer", CV_CONTEXT_NAMESPACES)
        assert [c.id for c in context] == ["jd0", "jd1", "cv0", "cv1"]
