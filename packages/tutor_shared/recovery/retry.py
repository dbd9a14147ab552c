"""Exponential backoff retry executor for asyncio operations.

The executor never raises for operation failures: it returns a ``Result``
carrying either the operation's value or the last normalized error. Task
cancellation (``asyncio.CancelledError``) is not an operation failure and
always propagates.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass
from typing import Awaitable, Callable, TypeVar

from packages.tutor_shared.config import RetrySettings
from packages.tutor_shared.errors import (
    RETRYABLE_STATUS_CODES,
    APIError,
    BaseError,
    ErrorResult,
    ErrorSeverity,
    NetworkError,
    Result,
    SuccessResult,
    codes,
    to_base_error,
)
from packages.tutor_shared.logging import fields, get_logger, log_context

T = TypeVar("T")

Sleeper = Callable[[float], Awaitable[None]]
ShouldRetry = Callable[[BaseError, int], bool]

logger = get_logger(__name__)


def default_should_retry(error: BaseError, attempt: int) -> bool:
    """Retry throttled/unavailable API calls and network failures, three times at most."""
    if isinstance(error, APIError):
        return error.status_code in RETRYABLE_STATUS_CODES and attempt < 3
    if isinstance(error, NetworkError):
        return attempt < 3
    return False


def always_retry(error: BaseError, attempt: int) -> bool:
    """Retry every failure until attempts run out."""
    return True


@dataclass(frozen=True)
class RetryPolicy:
    """Backoff parameters and retry predicate for one call site."""

    max_retries: int
    initial_delay_ms: float
    max_delay_ms: float
    backoff_multiplier: float
    should_retry: ShouldRetry = default_should_retry

    @staticmethod
    def from_settings(
        settings: RetrySettings, *, should_retry: ShouldRetry = default_should_retry
    ) -> "RetryPolicy":
        """Build a retry policy from configured defaults."""
        return RetryPolicy(
            max_retries=settings.max_retries,
            initial_delay_ms=settings.initial_delay_ms,
            max_delay_ms=settings.max_delay_ms,
            backoff_multiplier=settings.backoff_multiplier,
            should_retry=should_retry,
        )


DEFAULT_RETRY_POLICY = RetryPolicy(
    max_retries=3,
    initial_delay_ms=1000,
    max_delay_ms=30000,
    backoff_multiplier=2,
    should_retry=default_should_retry,
)


def compute_backoff_delay_ms(policy: RetryPolicy, attempt: int) -> float:
    """Return the delay after a failed ``attempt`` (0-based), capped at the maximum."""
    if attempt < 0:
        raise ValueError("attempt must be >= 0.")
    return min(
        policy.initial_delay_ms * policy.backoff_multiplier**attempt,
        policy.max_delay_ms,
    )


async def retry(
    operation: Callable[[], Awaitable[T]],
    policy: RetryPolicy = DEFAULT_RETRY_POLICY,
    *,
    sleeper: Sleeper = asyncio.sleep,
    cancel_event: asyncio.Event | None = None,
) -> Result[T]:
    """Run ``operation`` until it succeeds, the policy gives up, or attempts run out.

    Args:
        operation: Zero-argument coroutine factory; called once per attempt.
        policy: Backoff parameters and retry predicate.
        sleeper: Awaitable sleep taking seconds; ``asyncio.sleep`` by default.
        cancel_event: Optional event; once set, no further attempt is made and
            a pending delay is cut short.

    Returns:
        ``SuccessResult`` with the operation value, or ``ErrorResult`` with the
        last normalized error (``MAX_RETRIES_EXCEEDED`` when no attempt ran,
        ``RETRY_CANCELLED`` when stopped through ``cancel_event``).
    """
    last_error: BaseError | None = None

    for attempt in range(policy.max_retries):
        if cancel_event is not None and cancel_event.is_set():
            return ErrorResult(error=_cancelled_error(last_error))

        try:
            data = await operation()
        except Exception as exc:
            last_error = to_base_error(exc)
        else:
            return SuccessResult(data=data)

        if not policy.should_retry(last_error, attempt):
            break

        delay_ms = compute_backoff_delay_ms(policy, attempt)
        with log_context(
            {
                fields.RETRY_ATTEMPT: attempt + 1,
                fields.RETRY_MAX_RETRIES: policy.max_retries,
                fields.RETRY_DELAY_MS: delay_ms,
                fields.ERROR_CODE: last_error.code,
                fields.ERROR_CATEGORY: last_error.category.value,
            }
        ):
            logger.warning(
                f"Retrying after {delay_ms:g}ms (attempt {attempt + 1}/{policy.max_retries})"
            )

        if await _pause(delay_ms / 1000, sleeper=sleeper, cancel_event=cancel_event):
            return ErrorResult(error=_cancelled_error(last_error))

    if last_error is None:
        last_error = BaseError(
            message="Max retries exceeded",
            code=codes.MAX_RETRIES_EXCEEDED,
        )
    return ErrorResult(error=last_error)


async def _pause(
    seconds: float, *, sleeper: Sleeper, cancel_event: asyncio.Event | None
) -> bool:
    """Sleep for ``seconds``; return True when ``cancel_event`` fired instead."""
    if cancel_event is None:
        await sleeper(seconds)
        return False

    sleep_task = asyncio.ensure_future(sleeper(seconds))
    cancel_task = asyncio.ensure_future(cancel_event.wait())
    try:
        await asyncio.wait({sleep_task, cancel_task}, return_when=asyncio.FIRST_COMPLETED)
    finally:
        for task in (sleep_task, cancel_task):
            if not task.done():
                task.cancel()
    return cancel_event.is_set()


def _cancelled_error(last_error: BaseError | None) -> BaseError:
    return BaseError(
        message="Retry cancelled",
        code=codes.RETRY_CANCELLED,
        severity=ErrorSeverity.LOW,
        cause=last_error,
    )
