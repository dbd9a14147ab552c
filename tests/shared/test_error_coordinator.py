"""Unit tests for the error coordinator."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Iterator
from datetime import UTC, datetime

import pytest

from packages.tutor_shared.errors import (
    APIError,
    AudioError,
    BaseError,
    ErrorCategory,
    ErrorSeverity,
    FileError,
    NetworkError,
)
from packages.tutor_shared.logging import get_context
from packages.tutor_shared.recovery import (
    ErrorContext,
    ErrorCoordinator,
    RecoveryAction,
    RecoveryResult,
    RetryPolicy,
    always_retry,
)


class _ContextCapture(logging.Handler):
    """Collect each record with the logging context bound at emit time."""

    def __init__(self) -> None:
        super().__init__(level=logging.DEBUG)
        self.entries: list[tuple[logging.LogRecord, dict[str, str]]] = []

    def emit(self, record: logging.LogRecord) -> None:
        self.entries.append((record, get_context()))


@pytest.fixture
def capture() -> Iterator[_ContextCapture]:
    handler = _ContextCapture()
    logger = logging.getLogger("tests.error_coordinator")
    logger.setLevel(logging.DEBUG)
    logger.propagate = False
    logger.addHandler(handler)
    yield handler
    logger.removeHandler(handler)


def _coordinator(**kwargs: object) -> ErrorCoordinator:
    return ErrorCoordinator(logger=logging.getLogger("tests.error_coordinator"), **kwargs)


def test_handle_returns_error_result_with_normalized_error() -> None:
    """handle should normalize and wrap the value in an ErrorResult."""
    result = _coordinator().handle({"status": 503, "message": "Service unavailable"})

    assert result.success is False
    assert isinstance(result.error, APIError)
    assert result.error.status_code == 503


def test_handle_uses_hint_only_without_structural_signal() -> None:
    """The category hint applies to otherwise unclassifiable values."""
    coordinator = _coordinator()

    hinted = coordinator.handle(RuntimeError("mic died"), ErrorCategory.AUDIO)
    structural = coordinator.handle(ConnectionError("down"), ErrorCategory.AUDIO)

    assert isinstance(hinted.error, AudioError)
    assert isinstance(structural.error, NetworkError)


def test_handle_is_idempotent_for_base_errors() -> None:
    """Handling an already-normalized error keeps the same instance."""
    error = FileError(message="too big")

    assert _coordinator().handle(error).error is error


def test_listeners_receive_errors_in_registration_order() -> None:
    """Every listener sees the same error, in order."""
    coordinator = _coordinator()
    seen: list[tuple[str, BaseError]] = []
    coordinator.on_error(lambda error: seen.append(("first", error)))
    coordinator.on_error(lambda error: seen.append(("second", error)))

    result = coordinator.handle(ValueError("bad"))

    assert [name for name, _ in seen] == ["first", "second"]
    assert all(error is result.error for _, error in seen)


def test_failing_listener_does_not_block_others(capture: _ContextCapture) -> None:
    """A raising listener is logged and the rest still run."""
    coordinator = _coordinator()
    seen: list[BaseError] = []

    def _broken(error: BaseError) -> None:
        raise RuntimeError("listener bug")

    coordinator.on_error(_broken)
    coordinator.on_error(seen.append)

    result = coordinator.handle(ValueError("bad"))

    assert seen == [result.error]
    messages = [record.getMessage() for record, _ in capture.entries]
    assert "Error in error listener" in messages


def test_unsubscribe_stops_delivery_and_is_safe_twice() -> None:
    """Unsubscribing removes only that listener and may be repeated."""
    coordinator = _coordinator()
    seen: list[str] = []
    unsubscribe = coordinator.on_error(lambda error: seen.append("a"))
    coordinator.on_error(lambda error: seen.append("b"))

    unsubscribe()
    unsubscribe()
    coordinator.handle(ValueError("bad"))

    assert seen == ["b"]


def test_clear_listeners_removes_everything() -> None:
    """clear_listeners drops all subscriptions."""
    coordinator = _coordinator()
    seen: list[BaseError] = []
    coordinator.on_error(seen.append)

    coordinator.clear_listeners()
    coordinator.handle(ValueError("bad"))

    assert seen == []


@pytest.mark.parametrize(
    ("severity", "level", "message"),
    [
        (ErrorSeverity.LOW, logging.DEBUG, "Low severity error"),
        (ErrorSeverity.MEDIUM, logging.WARNING, "Medium severity error"),
        (ErrorSeverity.HIGH, logging.ERROR, "High severity error"),
        (ErrorSeverity.CRITICAL, logging.ERROR, "Critical error"),
    ],
)
def test_handle_logs_by_severity(
    capture: _ContextCapture, severity: ErrorSeverity, level: int, message: str
) -> None:
    """Severity selects the log level and message."""
    _coordinator().handle(BaseError(message="oops", severity=severity))

    record, context = capture.entries[0]
    assert record.levelno == level
    assert record.getMessage() == message
    assert context["error_message"] == "oops"
    assert context["error_severity"] == severity.value


def test_handle_logs_context_but_never_the_cause(capture: _ContextCapture) -> None:
    """Log fields carry the session context and error identity only."""
    coordinator = _coordinator(context={"user_id": "learner-7", "lesson": "verbs"})
    coordinator.update_context(endpoint="/api/chat", method="POST")
    secret = RuntimeError("api-key=sk-secret")

    coordinator.handle(BaseError(message="Chat failed", code="CHAT", cause=secret))

    _, context = capture.entries[0]
    assert context["user_id"] == "learner-7"
    assert context["endpoint"] == "/api/chat"
    assert context["method"] == "POST"
    assert context["metadata.lesson"] == "verbs"
    assert context["error_code"] == "CHAT"
    assert context["error_category"] == "unknown"
    assert all("sk-secret" not in value for value in context.values())


def test_handle_debug_logs_recovery_strategy(capture: _ContextCapture) -> None:
    """The recommended recovery is logged at debug level after handling."""
    _coordinator().handle(APIError(message="busy", status_code=503))

    record, context = capture.entries[-1]
    assert record.levelno == logging.DEBUG
    assert record.getMessage() == "Error recovery strategy"
    assert context["recovery_action"] == "retry"
    assert context["recovery_delay_ms"] == "3000"


def test_get_recovery_strategy_follows_policy_table() -> None:
    """API statuses select retry, fallback or notify."""
    coordinator = _coordinator()

    assert coordinator.get_recovery_strategy(
        APIError(message="x", status_code=503)
    ) == RecoveryResult(True, RecoveryAction.RETRY, 3000)
    assert coordinator.get_recovery_strategy(
        APIError(message="x", status_code=401)
    ) == RecoveryResult(True, RecoveryAction.FALLBACK)
    assert coordinator.get_recovery_strategy(
        APIError(message="x", status_code=400)
    ) == RecoveryResult(False, RecoveryAction.NOTIFY)


def test_register_recovery_strategy_overrides_default() -> None:
    """A registered policy replaces the built-in one for its category."""
    coordinator = _coordinator()
    coordinator.register_recovery_strategy(
        ErrorCategory.FILE,
        lambda error: RecoveryResult(True, RecoveryAction.RETRY, 1500),
    )

    result = coordinator.get_recovery_strategy(FileError(message="upload failed"))

    assert result == RecoveryResult(True, RecoveryAction.RETRY, 1500)


def test_policies_passed_at_construction_override_defaults() -> None:
    """Constructor policies are registered over the defaults."""
    coordinator = _coordinator(
        policies={ErrorCategory.UNKNOWN: lambda error: RecoveryResult(False, RecoveryAction.ABORT)}
    )

    assert coordinator.get_recovery_strategy(BaseError(message="x")).action is (
        RecoveryAction.ABORT
    )


def test_raising_policy_does_not_escape_handle(capture: _ContextCapture) -> None:
    """A broken policy is logged; handle still returns a result."""
    coordinator = _coordinator()

    def _broken(error: BaseError) -> RecoveryResult:
        raise RuntimeError("policy bug")

    coordinator.register_recovery_strategy(ErrorCategory.STORAGE, _broken)

    result = coordinator.handle({"message": "full", "reason": "QUOTA_EXCEEDED"})

    assert result.error.category is ErrorCategory.STORAGE
    assert "Recovery policy failed" in [record.getMessage() for record, _ in capture.entries]


def test_update_context_merges_shallowly() -> None:
    """Known fields update in place and other keys land in metadata."""
    coordinator = _coordinator(context=ErrorContext(session_id="s-1"))

    coordinator.update_context({"user_id": "u-1"}, level="B1")
    coordinator.update_context(user_id="u-2")
    context = coordinator.get_context()

    assert context.session_id == "s-1"
    assert context.user_id == "u-2"
    assert context.metadata == {"level": "B1"}


def test_get_context_returns_copy() -> None:
    """Mutating the returned context does not change the coordinator."""
    coordinator = _coordinator()

    snapshot = coordinator.get_context()
    snapshot.metadata["leak"] = True
    snapshot.user_id = "someone"

    assert coordinator.get_context().metadata == {}
    assert coordinator.get_context().user_id is None


def test_update_context_parses_iso_timestamp(capture: _ContextCapture) -> None:
    """An ISO 8601 timestamp string is stored as a datetime and logs cleanly."""
    coordinator = _coordinator()

    coordinator.update_context(timestamp="2026-10-19T08:30:00+00:00")
    result = coordinator.handle(APIError(message="busy", status_code=503))

    assert result.error.category is ErrorCategory.API
    assert coordinator.get_context().timestamp == datetime(2026, 10, 19, 8, 30, tzinfo=UTC)
    _, context = capture.entries[0]
    assert context["context_timestamp"] == "2026-10-19T08:30:00+00:00"


def test_update_context_treats_none_metadata_as_empty(capture: _ContextCapture) -> None:
    """Clearing metadata with None still lets later keys and handle work."""
    coordinator = _coordinator(context={"lesson": "verbs"})

    coordinator.update_context(metadata=None)
    coordinator.update_context(level="B1")
    result = coordinator.handle(NetworkError(message="offline"))

    assert result.error.category is ErrorCategory.NETWORK
    assert coordinator.get_context().metadata == {"level": "B1"}
    _, context = capture.entries[0]
    assert context["metadata.level"] == "B1"
    assert "metadata.lesson" not in context


def test_update_context_rejects_malformed_fields() -> None:
    """Unusable timestamp or metadata values fail at update time and change nothing."""
    coordinator = _coordinator(context={"user_id": "u-1"})
    before = coordinator.get_context()

    with pytest.raises(TypeError):
        coordinator.update_context(timestamp=1_700_000_000, user_id="u-2")
    with pytest.raises(TypeError):
        coordinator.update_context(metadata=["not", "a", "mapping"])

    after = coordinator.get_context()
    assert after.user_id == "u-1"
    assert after.timestamp == before.timestamp
    coordinator.handle(BaseError(message="still fine"))


def test_constructor_accepts_context_with_none_metadata() -> None:
    """An ErrorContext built with metadata=None is normalized on construction."""
    coordinator = _coordinator(context=ErrorContext(user_id="u-1", metadata=None))  # type: ignore[arg-type]

    coordinator.update_context(level="A2")

    assert coordinator.get_context().metadata == {"level": "A2"}
    coordinator.handle(BaseError(message="ok"))


def test_get_recovery_strategy_is_repeatable() -> None:
    """Asking twice for the same error yields the same recommendation."""
    coordinator = _coordinator()
    error = APIError(message="busy", status_code=503)

    first = coordinator.get_recovery_strategy(error)
    second = coordinator.get_recovery_strategy(error)

    assert first == second
    assert first == RecoveryResult(can_recover=True, action=RecoveryAction.RETRY, delay=3000)


@pytest.mark.parametrize(
    ("status", "expected"),
    [
        (503, RecoveryResult(can_recover=True, action=RecoveryAction.RETRY, delay=3000)),
        (429, RecoveryResult(can_recover=True, action=RecoveryAction.RETRY, delay=3000)),
        (401, RecoveryResult(can_recover=True, action=RecoveryAction.FALLBACK)),
        (400, RecoveryResult(can_recover=False, action=RecoveryAction.NOTIFY)),
        (500, RecoveryResult(can_recover=False, action=RecoveryAction.NOTIFY)),
    ],
)
def test_handled_status_payload_drives_recovery(status: int, expected: RecoveryResult) -> None:
    """A raw status payload goes through handle and maps to the API policy."""
    coordinator = _coordinator()

    result = coordinator.handle({"statusCode": status, "message": "request failed"})

    assert isinstance(result.error, APIError)
    assert result.error.status_code == status
    assert coordinator.get_recovery_strategy(result.error) == expected


def test_coordinator_retry_uses_default_policy() -> None:
    """The coordinator's retry delegates to the executor with its policy."""
    sleeps: list[float] = []
    calls: list[int] = []

    async def _sleeper(seconds: float) -> None:
        sleeps.append(seconds)

    async def _operation() -> str:
        calls.append(1)
        if len(calls) < 2:
            raise ConnectionError("down")
        return "done"

    coordinator = _coordinator(
        retry_policy=RetryPolicy(
            max_retries=2,
            initial_delay_ms=10,
            max_delay_ms=100,
            backoff_multiplier=2,
            should_retry=always_retry,
        )
    )

    result = asyncio.run(coordinator.retry(_operation, sleeper=_sleeper))

    assert result.success is True
    assert result.data == "done"
    assert sleeps == [0.01]
