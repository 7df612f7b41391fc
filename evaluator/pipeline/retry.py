"""Retry-with-backoff executor shared by embedding and completion calls.

Usage::

    response = await execute(
        lambda attempt: call_provider(),
        max_attempts=5,
        should_retry=should_retry_provider_error,
        on_retry=log_retry("completion"),
    )
"""

import asyncio
import logging
import random
from collections.abc import Awaitable, Callable
from typing import Any, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")

ShouldRetry = Callable[[BaseException, int], bool]
OnRetry = Callable[[BaseException, int, float], Any]

# 4xx statuses that are worth another attempt
_RETRIABLE_CLIENT_STATUSES = {408, 409, 429}

_QUOTA_CODES = {"insufficient_quota", "quota_exceeded", "billing_hard_limit_reached"}
_QUOTA_PHRASES = (
    "insufficient_quota",
    "exceeded your current quota",
    "quota exceeded",
    "quota exhausted",
)


def compute_delay(
    attempt: int,
    initial_delay: float,
    max_delay: float,
    factor: float,
) -> float:
    """Backoff before the attempt after ``attempt`` (1-based), capped at ``max_delay``."""
    return min(initial_delay * factor ** (attempt - 1), max_delay)


async def execute(
    action: Callable[[int], Awaitable[T]],
    *,
    max_attempts: int = 5,
    initial_delay: float = 0.5,
    max_delay: float = 30.0,
    factor: float = 2.0,
    jitter: bool = True,
    should_retry: ShouldRetry | None = None,
    on_retry: OnRetry | None = None,
    sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
) -> T:
    """Await ``action(attempt)`` until it succeeds or retries run out.

    The last error propagates unchanged once ``max_attempts`` is reached, or
    immediately when ``should_retry`` returns False. With ``jitter`` the wait
    is drawn uniformly from ``[delay / 2, delay]``. Errors raised by
    ``on_retry`` are logged and ignored.
    """
    attempt = 0
    while True:
        attempt += 1
        try:
            return await action(attempt)
        except Exception as error:
            if attempt >= max_attempts:
                raise
            if should_retry is not None and not should_retry(error, attempt):
                raise

            delay = compute_delay(attempt, initial_delay, max_delay, factor)
            if jitter:
                delay = random.uniform(delay / 2, delay)

            if on_retry is not None:
                try:
                    on_retry(error, attempt, delay)
                except Exception:
                    logger.warning("Retry observer raised; ignoring", exc_info=True)

            await sleep(delay)


# ---------------------------------------------------------------------------
# Provider error classification
# ---------------------------------------------------------------------------


def _status_code(error: BaseException) -> int | None:
    for attr in ("status_code", "status", "code"):
        value = getattr(error, attr, None)
        if isinstance(value, int) and not isinstance(value, bool):
            return value
    response = getattr(error, "response", None)
    value = getattr(response, "status_code", None)
    if isinstance(value, int) and not isinstance(value, bool):
        return value
    return None


def _provider_code(error: BaseException) -> str | None:
    for attr in ("code", "type", "status"):
        value = getattr(error, attr, None)
        if isinstance(value, str) and value:
            return value

    body = getattr(error, "body", None)
    if isinstance(body, dict):
        detail = body.get("error", body)
        if isinstance(detail, dict):
            for key in ("code", "type", "status"):
                value = detail.get(key)
                if isinstance(value, str) and value:
                    return value
    return None


def _message(error: BaseException) -> str:
    message = getattr(error, "message", None)
    if isinstance(message, str) and message:
        return message
    return str(error)


def is_quota_exhausted(error: BaseException) -> bool:
    """True when the provider reports an exhausted quota rather than a rate limit."""
    code = (_provider_code(error) or "").lower()
    if code in _QUOTA_CODES:
        return True
    text = _message(error).lower()
    if any(phrase in text for phrase in _QUOTA_PHRASES):
        return True
    if "quota" in text:
        return code == "resource_exhausted" or _status_code(error) == 429
    return False


def should_retry_provider_error(error: BaseException, attempt: int) -> bool:
    """Retry predicate for model and embedding calls.

    Retries network failures, timeouts, 5xx and rate limiting. Never
    retries configuration errors, quota exhaustion, or other 4xx.
    """
    if isinstance(error, (ValueError, TypeError, ImportError)):
        return False
    if is_quota_exhausted(error):
        return False

    status = _status_code(error)
    if status is None:
        return True
    if 400 <= status < 500:
        return status in _RETRIABLE_CLIENT_STATUSES
    return True


def describe_error(error: BaseException) -> str:
    """One-line summary of ``error`` with status and provider code when known."""
    parts: list[str] = []
    status = _status_code(error)
    if status is not None:
        parts.append(f"status {status}")
    code = _provider_code(error)
    if code:
        parts.append(f"code {code}")
    message = _message(error) or type(error).__name__
    if parts:
        return f"{message} ({', '.join(parts)})"
    return message


def log_retry(label: str) -> OnRetry:
    """Build an ``on_retry`` observer that logs a warning for ``label``."""

    def observer(error: BaseException, attempt: int, delay: float) -> None:
        logger.warning(
            "Retrying %s after attempt %d in %.2fs: %s",
            label, attempt, delay, describe_error(error),
        )

    return observer
