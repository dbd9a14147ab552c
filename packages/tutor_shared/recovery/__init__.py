"""Public error recovery API: policies, retry executor, coordinator."""

from .coordinator import ErrorContext, ErrorCoordinator, ErrorListener
from .journal import ErrorJournal, ErrorJournalEntry
from .policy import (
    NO_POLICY_RESULT,
    RecoveryAction,
    RecoveryPolicy,
    RecoveryPolicyTable,
    RecoveryResult,
    api_policy,
    default_policies,
)
from .retry import (
    DEFAULT_RETRY_POLICY,
    RetryPolicy,
    always_retry,
    compute_backoff_delay_ms,
    default_should_retry,
    retry,
)
from .runtime import (
    get_global_error_handler,
    initialize_error_handler,
    reset_error_handler,
    setup_global_error_handlers,
)

__all__ = [
    "DEFAULT_RETRY_POLICY",
    "ErrorContext",
    "ErrorCoordinator",
    "ErrorJournal",
    "ErrorJournalEntry",
    "ErrorListener",
    "NO_POLICY_RESULT",
    "RecoveryAction",
    "RecoveryPolicy",
    "RecoveryPolicyTable",
    "RecoveryResult",
    "RetryPolicy",
    "always_retry",
    "api_policy",
    "compute_backoff_delay_ms",
    "default_policies",
    "default_should_retry",
    "get_global_error_handler",
    "initialize_error_handler",
    "reset_error_handler",
    "retry",
    "setup_global_error_handlers",
]
