"""Shared error code constants.

String codes are stable machine-readable identifiers per category. API errors
use their numeric HTTP status as the code instead, see ``APIErrorCode``.
"""

from __future__ import annotations

from enum import IntEnum


class APIErrorCode(IntEnum):
    """Numeric status codes understood by the API recovery policy."""

    # 4xx client errors
    BAD_REQUEST = 400
    UNAUTHORIZED = 401
    FORBIDDEN = 403
    NOT_FOUND = 404
    CONFLICT = 409
    VALIDATION_ERROR = 422
    TOO_MANY_REQUESTS = 429

    # 5xx server errors
    INTERNAL_SERVER_ERROR = 500
    NOT_IMPLEMENTED = 501
    BAD_GATEWAY = 502
    SERVICE_UNAVAILABLE = 503
    GATEWAY_TIMEOUT = 504

    # Transport-level pseudo statuses
    NETWORK_ERROR = 0
    TIMEOUT = -1
    CANCELLED = -2


RETRYABLE_STATUS_CODES = frozenset(
    {
        APIErrorCode.TOO_MANY_REQUESTS,
        APIErrorCode.BAD_GATEWAY,
        APIErrorCode.SERVICE_UNAVAILABLE,
        APIErrorCode.GATEWAY_TIMEOUT,
    }
)

# Category defaults
NETWORK_ERROR = "NETWORK_ERROR"
API_ERROR = "API_ERROR"
VALIDATION_ERROR = "VALIDATION_ERROR"
AUTH_ERROR = "AUTH_ERROR"
FILE_ERROR = "FILE_ERROR"
AUDIO_ERROR = "AUDIO_ERROR"
TTS_ERROR = "TTS_ERROR"
STORAGE_ERROR = "STORAGE_ERROR"
UNKNOWN_ERROR = "UNKNOWN_ERROR"

# Retry executor
MAX_RETRIES_EXCEEDED = "MAX_RETRIES_EXCEEDED"
RETRY_CANCELLED = "RETRY_CANCELLED"

# HTTP client
INVALID_JSON = "INVALID_JSON"
TIMEOUT = "TIMEOUT"
