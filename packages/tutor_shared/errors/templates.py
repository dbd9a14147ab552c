"""User-facing message templates for normalized errors."""

from __future__ import annotations

from . import codes
from .codes import APIErrorCode
from .types import (
    APIError,
    AudioError,
    BaseError,
    ErrorCategory,
    FileError,
    FileReason,
    NetworkError,
    TTSError,
)

ERROR_TEMPLATES: dict[str, str] = {
    "NETWORK": "Network error. Please check your internet connection.",
    "TIMEOUT": "Request timeout. Please try again.",
    "NOT_FOUND": "Resource not found.",
    "UNAUTHORIZED": "Unauthorized access. Please log in.",
    "FORBIDDEN": "Access forbidden.",
    "INVALID_REQUEST": "Invalid request data.",
    "SERVER_ERROR": "Server error. Please try again later.",
    "FILE_TOO_LARGE": "File size {size} exceeds maximum {max_size}.",
    "INVALID_FILE_TYPE": "File type {mime_type} is not supported.",
    "MICROPHONE_ERROR": "Microphone is not available or permission denied.",
    "TTS_ERROR": "Text-to-speech failed. Please try again.",
}

_STATUS_TEMPLATES: dict[int, str] = {
    APIErrorCode.BAD_REQUEST: "INVALID_REQUEST",
    APIErrorCode.UNAUTHORIZED: "UNAUTHORIZED",
    APIErrorCode.FORBIDDEN: "FORBIDDEN",
    APIErrorCode.NOT_FOUND: "NOT_FOUND",
    APIErrorCode.VALIDATION_ERROR: "INVALID_REQUEST",
}


def format_size(num_bytes: int | None) -> str:
    """Render a byte count with a binary unit suffix."""
    if num_bytes is None:
        return "unknown"
    size = float(num_bytes)
    for unit in ("B", "KB", "MB"):
        if size < 1024:
            return f"{size:.0f} {unit}" if unit == "B" else f"{size:.1f} {unit}"
        size /= 1024
    return f"{size:.1f} GB"


def user_message(error: BaseError) -> str:
    """Return the message a learner should see for ``error``."""
    if isinstance(error, NetworkError):
        if error.code == codes.TIMEOUT:
            return ERROR_TEMPLATES["TIMEOUT"]
        return ERROR_TEMPLATES["NETWORK"]

    if isinstance(error, APIError) and error.status_code is not None:
        if error.status_code == APIErrorCode.TIMEOUT:
            return ERROR_TEMPLATES["TIMEOUT"]
        key = _STATUS_TEMPLATES.get(error.status_code)
        if key is not None:
            return ERROR_TEMPLATES[key]
        if error.status_code >= 500:
            return ERROR_TEMPLATES["SERVER_ERROR"]

    if isinstance(error, FileError):
        if error.reason is FileReason.FILE_TOO_LARGE:
            return ERROR_TEMPLATES["FILE_TOO_LARGE"].format(
                size=format_size(error.file_size),
                max_size=format_size(error.max_size),
            )
        if error.reason is FileReason.INVALID_FORMAT:
            return ERROR_TEMPLATES["INVALID_FILE_TYPE"].format(
                mime_type=error.mime_type or "unknown"
            )

    if isinstance(error, AudioError):
        return ERROR_TEMPLATES["MICROPHONE_ERROR"]

    if isinstance(error, TTSError):
        return ERROR_TEMPLATES["TTS_ERROR"]

    if error.category is ErrorCategory.VALIDATION and not error.message:
        return ERROR_TEMPLATES["INVALID_REQUEST"]

    return error.message
