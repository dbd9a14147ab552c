"""Canonical logging field names for the tutoring application.

Centralized so the error coordinator, the journal and any future log shipper
agree on one key set.
"""

TIMESTAMP = "timestamp"
LEVEL = "level"
LOGGER = "logger"
MESSAGE = "message"
EVENT = "event"

# Common service-level fields.
SERVICE = "service"
ENVIRONMENT = "environment"

# Error coordinator context fields.
CONTEXT_TIMESTAMP = "context_timestamp"
ENDPOINT = "endpoint"
METHOD = "method"
USER_ID = "user_id"
SESSION_ID = "session_id"
METADATA_PREFIX = "metadata."

# Normalized error fields.
ERROR_CODE = "error_code"
ERROR_MESSAGE = "error_message"
ERROR_CATEGORY = "error_category"
ERROR_SEVERITY = "error_severity"

# Recovery fields.
RECOVERY_ACTION = "recovery_action"
RECOVERY_CAN_RECOVER = "recovery_can_recover"
RECOVERY_DELAY_MS = "recovery_delay_ms"
RETRY_ATTEMPT = "retry_attempt"
RETRY_MAX_RETRIES = "retry_max_retries"
RETRY_DELAY_MS = "retry_delay_ms"
