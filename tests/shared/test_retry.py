"""Unit tests for the exponential backoff retry executor."""

from __future__ import annotations

import asyncio
import logging

import pytest

from packages.tutor_shared.config import RetrySettings
from packages.tutor_shared.errors import (
    APIError,
    ErrorSeverity,
    NetworkError,
    ValidationError,
    codes,
)
from packages.tutor_shared.logging import log_context
from packages.tutor_shared.recovery import (
    DEFAULT_RETRY_POLICY,
    RetryPolicy,
    always_retry,
    compute_backoff_delay_ms,
    default_should_retry,
    retry,
)


class _FakeSleeper:
    """Record requested sleeps without waiting."""

    def __init__(self) -> None:
        self.calls: list[float] = []

    async def __call__(self, seconds: float) -> None:
        self.calls.append(seconds)


class _Operation:
    """Fail with the given exceptions in order, then return ``value``."""

    def __init__(self, failures: list[Exception], value: object = "ok") -> None:
        self._failures = list(failures)
        self._value = value
        self.calls = 0

    async def __call__(self) -> object:
        self.calls += 1
        if self._failures:
            raise self._failures.pop(0)
        return self._value


def _policy(**overrides: object) -> RetryPolicy:
    values: dict[str, object] = {
        "max_retries": 3,
        "initial_delay_ms": 1000,
        "max_delay_ms": 30000,
        "backoff_multiplier": 2,
        "should_retry": always_retry,
    }
    values.update(overrides)
    return RetryPolicy(**values)  # type: ignore[arg-type]


def test_first_attempt_success_does_not_sleep() -> None:
    """A successful operation runs once with no delay."""
    sleeper = _FakeSleeper()
    operation = _Operation([], value={"reply": "hola"})

    result = asyncio.run(retry(operation, _policy(), sleeper=sleeper))

    assert result.success is True
    assert result.data == {"reply": "hola"}
    assert operation.calls == 1
    assert sleeper.calls == []


def test_retry_recovers_after_transient_failures() -> None:
    """Two network failures then success should sleep 1s then 2s."""
    sleeper = _FakeSleeper()
    operation = _Operation([ConnectionError("a"), ConnectionError("b")])

    result = asyncio.run(retry(operation, _policy(), sleeper=sleeper))

    assert result.success is True
    assert result.data == "ok"
    assert operation.calls == 3
    assert sleeper.calls == [1.0, 2.0]


def test_exhausted_attempts_return_last_error_after_final_delay() -> None:
    """Every retryable failure waits, including the last, before giving up."""
    sleeper = _FakeSleeper()
    operation = _Operation([ConnectionError("a"), ConnectionError("b"), ConnectionError("c")])

    result = asyncio.run(retry(operation, _policy(), sleeper=sleeper))

    assert result.success is False
    assert isinstance(result.error, NetworkError)
    assert result.error.message == "c"
    assert operation.calls == 3
    assert sleeper.calls == [1.0, 2.0, 4.0]


def test_should_retry_false_stops_immediately() -> None:
    """A rejected retry returns the first error without sleeping."""
    sleeper = _FakeSleeper()
    operation = _Operation([ValueError("bad input")])

    result = asyncio.run(
        retry(operation, _policy(should_retry=default_should_retry), sleeper=sleeper)
    )

    assert result.success is False
    assert isinstance(result.error, ValidationError)
    assert operation.calls == 1
    assert sleeper.calls == []


def test_zero_max_retries_never_calls_operation() -> None:
    """With no attempts allowed the executor reports max retries exceeded."""
    sleeper = _FakeSleeper()
    operation = _Operation([])

    result = asyncio.run(retry(operation, _policy(max_retries=0), sleeper=sleeper))

    assert result.success is False
    assert result.error.message == "Max retries exceeded"
    assert result.error.code == codes.MAX_RETRIES_EXCEEDED
    assert operation.calls == 0


def test_delays_are_capped_by_max_delay() -> None:
    """Backoff grows geometrically but never beyond the ceiling."""
    sleeper = _FakeSleeper()
    operation = _Operation([ConnectionError("x")] * 5)

    asyncio.run(
        retry(
            operation,
            _policy(max_retries=5, initial_delay_ms=1000, max_delay_ms=3000),
            sleeper=sleeper,
        )
    )

    assert sleeper.calls == [1.0, 2.0, 3.0, 3.0, 3.0]


def test_compute_backoff_delay_ms() -> None:
    """Delay after attempt n is initial * multiplier**n, capped."""
    assert compute_backoff_delay_ms(DEFAULT_RETRY_POLICY, 0) == 1000
    assert compute_backoff_delay_ms(DEFAULT_RETRY_POLICY, 3) == 8000
    assert compute_backoff_delay_ms(DEFAULT_RETRY_POLICY, 10) == 30000
    with pytest.raises(ValueError):
        compute_backoff_delay_ms(DEFAULT_RETRY_POLICY, -1)


def test_default_should_retry_predicate() -> None:
    """Only retryable API statuses and network errors retry, three times at most."""
    assert default_should_retry(APIError(message="x", status_code=503), 0) is True
    assert default_should_retry(APIError(message="x", status_code=503), 3) is False
    assert default_should_retry(APIError(message="x", status_code=400), 0) is False
    assert default_should_retry(NetworkError(message="x"), 2) is True
    assert default_should_retry(ValidationError(message="x"), 0) is False


def test_set_cancel_event_stops_before_first_attempt() -> None:
    """A pre-set cancel event should return a cancelled result immediately."""
    operation = _Operation([])

    async def _run() -> object:
        event = asyncio.Event()
        event.set()
        return await retry(operation, _policy(), cancel_event=event)

    result = asyncio.run(_run())

    assert result.success is False
    assert result.error.code == codes.RETRY_CANCELLED
    assert result.error.severity is ErrorSeverity.LOW
    assert operation.calls == 0


def test_cancel_event_interrupts_pending_delay() -> None:
    """Setting the event during a backoff delay ends the retry loop."""
    operation = _Operation([ConnectionError("down")] * 3)

    async def _slow_sleeper(seconds: float) -> None:
        await asyncio.sleep(60)

    async def _run() -> object:
        event = asyncio.Event()
        task = asyncio.create_task(
            retry(operation, _policy(), sleeper=_slow_sleeper, cancel_event=event)
        )
        await asyncio.sleep(0.01)
        event.set()
        return await asyncio.wait_for(task, timeout=5)

    result = asyncio.run(_run())

    assert result.success is False
    assert result.error.code == codes.RETRY_CANCELLED
    assert isinstance(result.error.cause, NetworkError)
    assert operation.calls == 1


def test_task_cancellation_propagates() -> None:
    """Cancelling the surrounding task is not swallowed into a result."""

    async def _never_finishes() -> None:
        await asyncio.sleep(60)

    async def _run() -> None:
        task = asyncio.create_task(retry(_never_finishes, _policy()))
        await asyncio.sleep(0.01)
        task.cancel()
        await task

    with pytest.raises(asyncio.CancelledError):
        asyncio.run(_run())


def test_retry_logs_warning_per_delay(caplog: pytest.LogCaptureFixture) -> None:
    """Each scheduled retry should emit one warning with attempt numbers."""
    operation = _Operation([ConnectionError("down")])

    with caplog.at_level(logging.WARNING, logger="packages.tutor_shared.recovery.retry"):
        asyncio.run(retry(operation, _policy(), sleeper=_FakeSleeper()))

    messages = [record.getMessage() for record in caplog.records]
    assert messages == ["Retrying after 1000ms (attempt 1/3)"]


def test_retry_policy_from_settings() -> None:
    """Configured retry settings should map onto a policy."""
    policy = RetryPolicy.from_settings(
        RetrySettings(max_retries=5, initial_delay_ms=250, max_delay_ms=4000)
    )

    assert policy.max_retries == 5
    assert policy.initial_delay_ms == 250
    assert policy.max_delay_ms == 4000
    assert policy.should_retry is default_should_retry


def test_backoff_schedule_matches_attempt_count() -> None:
    """An always-failing operation sleeps once per retryable failure."""
    sleeper = _FakeSleeper()
    operation = _Operation([RuntimeError("x")] * 3)

    asyncio.run(
        retry(
            operation,
            _policy(initial_delay_ms=100, backoff_multiplier=2),
            sleeper=sleeper,
        )
    )

    assert sleeper.calls == [0.1, 0.2, 0.4]


def test_api_errors_raised_inside_log_context_are_retried() -> None:
    """Taxonomy errors keep their type through context managers, so 503s retry."""
    sleeper = _FakeSleeper()
    calls: list[int] = []

    async def _operation() -> str:
        calls.append(1)
        if len(calls) == 1:
            with log_context({"endpoint": "/api/chat"}):
                raise APIError(message="busy", status_code=503)
        return "ok"

    result = asyncio.run(
        retry(_operation, _policy(should_retry=default_should_retry), sleeper=sleeper)
    )

    assert result.success is True
    assert len(calls) == 2
    assert sleeper.calls == [1.0]
