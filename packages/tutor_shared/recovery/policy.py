"""Recovery policy table: category -> recommended recovery action.

Policies only recommend. Executing a retry, a fallback screen or an abort is
always the caller's job.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Callable, Mapping

from packages.tutor_shared.errors import (
    RETRYABLE_STATUS_CODES,
    APIError,
    APIErrorCode,
    BaseError,
    ErrorCategory,
    coerce_category,
)


class RecoveryAction(str, Enum):
    """Response a caller is advised to take for a handled error."""

    RETRY = "retry"
    FALLBACK = "fallback"
    NOTIFY = "notify"
    ABORT = "abort"


@dataclass(frozen=True)
class RecoveryResult:
    """Recommended recovery for one error; ``delay`` is in milliseconds."""

    can_recover: bool
    action: RecoveryAction
    delay: int | None = None


RecoveryPolicy = Callable[[BaseError], RecoveryResult]


def _retry_after(delay: int) -> RecoveryPolicy:
    def policy(error: BaseError) -> RecoveryResult:
        return RecoveryResult(can_recover=True, action=RecoveryAction.RETRY, delay=delay)

    return policy


def _fixed(can_recover: bool, action: RecoveryAction) -> RecoveryPolicy:
    def policy(error: BaseError) -> RecoveryResult:
        return RecoveryResult(can_recover=can_recover, action=action)

    return policy


def api_policy(error: BaseError) -> RecoveryResult:
    """Retry throttling/gateway statuses, fall back on 401, otherwise notify."""
    if isinstance(error, APIError):
        if error.status_code in RETRYABLE_STATUS_CODES:
            return RecoveryResult(can_recover=True, action=RecoveryAction.RETRY, delay=3000)
        if error.status_code == APIErrorCode.UNAUTHORIZED:
            return RecoveryResult(can_recover=True, action=RecoveryAction.FALLBACK)
    return RecoveryResult(can_recover=False, action=RecoveryAction.NOTIFY)


NO_POLICY_RESULT = RecoveryResult(can_recover=False, action=RecoveryAction.NOTIFY)


def default_policies() -> dict[ErrorCategory, RecoveryPolicy]:
    """Return a fresh copy of the built-in policy for every known category."""
    return {
        ErrorCategory.NETWORK: _retry_after(2000),
        ErrorCategory.API: api_policy,
        ErrorCategory.VALIDATION: _fixed(False, RecoveryAction.ABORT),
        ErrorCategory.AUTH: _fixed(True, RecoveryAction.FALLBACK),
        ErrorCategory.FILE: _fixed(False, RecoveryAction.NOTIFY),
        ErrorCategory.AUDIO: _retry_after(1000),
        ErrorCategory.TTS: _retry_after(2000),
        ErrorCategory.STORAGE: _fixed(False, RecoveryAction.NOTIFY),
    }


class RecoveryPolicyTable:
    """Mutable mapping of error category to recovery policy function."""

    def __init__(self, policies: Mapping[ErrorCategory, RecoveryPolicy] | None = None) -> None:
        self._policies: dict[ErrorCategory, RecoveryPolicy] = default_policies()
        for category, policy in (policies or {}).items():
            self.register(category, policy)

    def register(self, category: ErrorCategory | str, policy: RecoveryPolicy) -> None:
        """Replace the policy for ``category``; the last registration wins."""
        resolved = coerce_category(category)
        if resolved is None:
            raise ValueError(f"unknown error category: {category!r}")
        self._policies[resolved] = policy

    def resolve(self, category: ErrorCategory) -> RecoveryPolicy:
        """Return the policy for ``category`` or the notify-only fallback."""
        policy = self._policies.get(category)
        if policy is None:
            return _fixed(NO_POLICY_RESULT.can_recover, NO_POLICY_RESULT.action)
        return policy

    def recommend(self, error: BaseError) -> RecoveryResult:
        """Evaluate the policy registered for ``error.category``."""
        return self.resolve(error.category)(error)

    def categories(self) -> tuple[ErrorCategory, ...]:
        """Return categories that currently have a registered policy."""
        return tuple(self._policies)
