"""Exception hierarchy for the evaluation core."""


class EvaluatorError(Exception):
    """Base class for errors raised by the evaluator."""


class SchemaValidationError(EvaluatorError, ValueError):
    """A model response did not match the expected structured shape."""


class MissingFilesError(EvaluatorError):
    """One or more file ids did not resolve to a stored file."""

    def __init__(self, missing: dict[str, str]) -> None:
        self.missing = missing
        detail = ", ".join(f"{field}={file_id}" for field, file_id in missing.items())
        super().__init__(f"Missing files: {detail}")


class JobNotFoundError(EvaluatorError, KeyError):
    """No job with the given id exists in the registry."""

    def __init__(self, job_id: str) -> None:
        self.job_id = job_id
        super().__init__(job_id)

    def __str__(self) -> str:
        return f"Job not found: {self.job_id}"


class InvalidTransitionError(EvaluatorError):
    """A job transition was requested that its lifecycle does not allow."""
