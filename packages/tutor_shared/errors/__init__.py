"""Public shared error API for the tutoring application."""

from . import codes
from .codes import RETRYABLE_STATUS_CODES, APIErrorCode
from .normalize import coerce_category, to_base_error
from .result import (
    ErrorResult,
    Result,
    SuccessResult,
    create_error_result,
    create_success_result,
    is_error,
    is_success,
)
from .templates import ERROR_TEMPLATES, user_message
from .types import (
    ERROR_TYPES,
    APIError,
    AudioError,
    AudioReason,
    AuthError,
    AuthReason,
    BaseError,
    ErrorCategory,
    ErrorSeverity,
    FileError,
    FileReason,
    NetworkError,
    StorageError,
    StorageReason,
    TTSError,
    TTSReason,
    ValidationError,
    is_api_error,
    is_audio_error,
    is_auth_error,
    is_file_error,
    is_network_error,
    is_storage_error,
    is_tts_error,
    is_validation_error,
)

__all__ = [
    "APIError",
    "APIErrorCode",
    "AudioError",
    "AudioReason",
    "AuthError",
    "AuthReason",
    "BaseError",
    "ERROR_TEMPLATES",
    "ERROR_TYPES",
    "ErrorCategory",
    "ErrorResult",
    "ErrorSeverity",
    "FileError",
    "FileReason",
    "NetworkError",
    "RETRYABLE_STATUS_CODES",
    "Result",
    "StorageError",
    "StorageReason",
    "SuccessResult",
    "TTSError",
    "TTSReason",
    "ValidationError",
    "codes",
    "coerce_category",
    "create_error_result",
    "create_success_result",
    "is_api_error",
    "is_audio_error",
    "is_auth_error",
    "is_error",
    "is_file_error",
    "is_network_error",
    "is_storage_error",
    "is_success",
    "is_tts_error",
    "is_validation_error",
    "to_base_error",
    "user_message",
]
