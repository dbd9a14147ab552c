"""Error coordinator: normalization, logging, listeners and recovery advice.

``ErrorCoordinator.handle`` is safe to call from any ``except`` block: it never
raises and never acts on the recovery recommendation. Callers ask for the
recommendation with ``get_recovery_strategy`` and decide what to do.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field, fields as dataclass_fields, replace
from datetime import UTC, datetime
from typing import Any, Awaitable, Callable, Mapping, TypeVar

from packages.tutor_shared.errors import (
    BaseError,
    ErrorCategory,
    ErrorResult,
    ErrorSeverity,
    Result,
    to_base_error,
)
from packages.tutor_shared.logging import fields, get_logger, log_context

from .policy import RecoveryPolicy, RecoveryPolicyTable, RecoveryResult
from .retry import DEFAULT_RETRY_POLICY, RetryPolicy, retry

T = TypeVar("T")

ErrorListener = Callable[[BaseError], None]

_SEVERITY_LOG: dict[ErrorSeverity, tuple[int, str]] = {
    ErrorSeverity.LOW: (logging.DEBUG, "Low severity error"),
    ErrorSeverity.MEDIUM: (logging.WARNING, "Medium severity error"),
    ErrorSeverity.HIGH: (logging.ERROR, "High severity error"),
    ErrorSeverity.CRITICAL: (logging.ERROR, "Critical error"),
}


def _utc_now() -> datetime:
    return datetime.now(UTC)


@dataclass
class ErrorContext:
    """Session-scoped fields attached to every error log line."""

    timestamp: datetime = field(default_factory=_utc_now)
    endpoint: str | None = None
    method: str | None = None
    user_id: str | None = None
    session_id: str | None = None
    metadata: dict[str, Any] = field(default_factory=dict)

    def to_log_fields(self) -> dict[str, object]:
        """Flatten the context into structured logging fields."""
        output: dict[str, object] = {
            fields.CONTEXT_TIMESTAMP: self.timestamp.isoformat(),
            fields.ENDPOINT: self.endpoint,
            fields.METHOD: self.method,
            fields.USER_ID: self.user_id,
            fields.SESSION_ID: self.session_id,
        }
        for key, value in self.metadata.items():
            output[f"{fields.METADATA_PREFIX}{key}"] = value
        return output


_CONTEXT_FIELDS = frozenset(item.name for item in dataclass_fields(ErrorContext))


def _coerce_timestamp(value: object) -> datetime:
    if value is None:
        return _utc_now()
    if isinstance(value, datetime):
        return value
    if isinstance(value, str):
        return datetime.fromisoformat(value)
    raise TypeError(f"timestamp must be a datetime or ISO 8601 string, got {type(value).__name__}")


def _coerce_metadata(value: object) -> dict[str, Any]:
    if value is None:
        return {}
    if isinstance(value, Mapping):
        return {str(key): item for key, item in value.items()}
    raise TypeError(f"metadata must be a mapping, got {type(value).__name__}")


def _unchanged(value: object) -> Any:
    return value


_CONTEXT_COERCERS: dict[str, Callable[[object], Any]] = {
    "timestamp": _coerce_timestamp,
    "metadata": _coerce_metadata,
}


class ErrorCoordinator:
    """Owns the recovery policy table, the error context and error listeners."""

    def __init__(
        self,
        context: ErrorContext | Mapping[str, Any] | None = None,
        *,
        logger: logging.Logger | None = None,
        policies: Mapping[ErrorCategory, RecoveryPolicy] | None = None,
        retry_policy: RetryPolicy = DEFAULT_RETRY_POLICY,
    ) -> None:
        self._context = ErrorContext()
        if isinstance(context, ErrorContext):
            context = {name: getattr(context, name) for name in _CONTEXT_FIELDS}
        self.update_context(context or {})
        self._logger = logger or get_logger(__name__)
        self._policies = RecoveryPolicyTable(policies)
        self._retry_policy = retry_policy
        self._listeners: list[ErrorListener] = []

    def handle(
        self, value: object, category_hint: ErrorCategory | str | None = None
    ) -> ErrorResult:
        """Normalize, log and broadcast one failure; return it as an ``ErrorResult``."""
        error = to_base_error(value, category_hint)
        self._log_error(error)
        self._notify_listeners(error)
        try:
            recovery = self.get_recovery_strategy(error)
        except Exception:
            self._logger.exception("Recovery policy failed")
        else:
            with log_context(
                {
                    fields.ERROR_CODE: error.code,
                    fields.RECOVERY_ACTION: recovery.action.value,
                    fields.RECOVERY_CAN_RECOVER: recovery.can_recover,
                    fields.RECOVERY_DELAY_MS: recovery.delay,
                }
            ):
                self._logger.debug("Error recovery strategy")
        return ErrorResult(error=error)

    def get_recovery_strategy(self, error: BaseError) -> RecoveryResult:
        """Return the recommended recovery for ``error`` without side effects."""
        return self._policies.recommend(error)

    def register_recovery_strategy(
        self, category: ErrorCategory | str, policy: RecoveryPolicy
    ) -> None:
        """Replace the recovery policy for one category."""
        self._policies.register(category, policy)

    async def retry(
        self,
        operation: Callable[[], Awaitable[T]],
        policy: RetryPolicy | None = None,
        **kwargs: Any,
    ) -> Result[T]:
        """Run ``operation`` through the retry executor with this coordinator's default policy."""
        return await retry(operation, policy or self._retry_policy, **kwargs)

    def on_error(self, listener: ErrorListener) -> Callable[[], None]:
        """Register ``listener`` for every handled error; return an unsubscribe callable."""
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def clear_listeners(self) -> None:
        """Remove every registered listener."""
        self._listeners.clear()

    def update_context(self, values: Mapping[str, Any] | None = None, **updates: Any) -> None:
        """Shallow-merge known context fields; other keys go to ``metadata``.

        ``timestamp`` accepts a ``datetime`` or an ISO 8601 string and
        ``metadata`` a mapping, with ``None`` resetting either one. Other values
        raise ``TypeError`` here so ``handle`` never meets a malformed context.
        """
        merged = {**(values or {}), **updates}
        known = {
            key: _CONTEXT_COERCERS.get(key, _unchanged)(value)
            for key, value in merged.items()
            if key in _CONTEXT_FIELDS
        }
        for key, value in known.items():
            setattr(self._context, key, value)
        for key, value in merged.items():
            if key not in _CONTEXT_FIELDS:
                self._context.metadata[key] = value

    def get_context(self) -> ErrorContext:
        """Return a copy of the live context."""
        return replace(self._context, metadata=dict(self._context.metadata))

    def _log_error(self, error: BaseError) -> None:
        level, message = _SEVERITY_LOG.get(error.severity, _SEVERITY_LOG[ErrorSeverity.MEDIUM])
        payload = self._context.to_log_fields()
        payload.update(
            {
                fields.ERROR_CODE: error.code,
                fields.ERROR_MESSAGE: error.message,
                fields.ERROR_CATEGORY: error.category.value,
                fields.ERROR_SEVERITY: error.severity.value,
            }
        )
        with log_context(payload):
            self._logger.log(level, message)

    def _notify_listeners(self, error: BaseError) -> None:
        for listener in tuple(self._listeners):
            try:
                listener(error)
            except Exception:
                self._logger.exception("Error in error listener")
