"""Canonical error taxonomy for the tutoring application.

Every failure that reaches the recovery layer is represented by ``BaseError``
or one of its category variants. The variant class is the tag: its
``category`` is fixed by the class and cannot be passed in, so consumers
branch on ``isinstance`` (or the ``is_*_error`` predicates) rather than on
ad-hoc attribute probing.
"""

from __future__ import annotations

from dataclasses import FrozenInstanceError, dataclass, field
from datetime import UTC, datetime
from enum import Enum
from typing import Any, Mapping

from . import codes


class ErrorCategory(str, Enum):
    """Origin of a failure."""

    NETWORK = "network"
    API = "api"
    VALIDATION = "validation"
    AUTH = "auth"
    FILE = "file"
    AUDIO = "audio"
    TTS = "tts"
    STORAGE = "storage"
    UNKNOWN = "unknown"


class ErrorSeverity(str, Enum):
    """Ordered severity scale; selects the log level of a handled error."""

    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"

    @property
    def rank(self) -> int:
        """Return the position of this severity on the scale."""
        return list(type(self)).index(self)

    def __lt__(self, other: object) -> bool:
        if not isinstance(other, ErrorSeverity):
            return NotImplemented
        return self.rank < other.rank

    def __le__(self, other: object) -> bool:
        if not isinstance(other, ErrorSeverity):
            return NotImplemented
        return self.rank <= other.rank

    def __gt__(self, other: object) -> bool:
        if not isinstance(other, ErrorSeverity):
            return NotImplemented
        return self.rank > other.rank

    def __ge__(self, other: object) -> bool:
        if not isinstance(other, ErrorSeverity):
            return NotImplemented
        return self.rank >= other.rank


class AuthReason(str, Enum):
    INVALID_CREDENTIALS = "INVALID_CREDENTIALS"
    EXPIRED_TOKEN = "EXPIRED_TOKEN"
    NO_PERMISSION = "NO_PERMISSION"
    SESSION_EXPIRED = "SESSION_EXPIRED"


class FileReason(str, Enum):
    FILE_TOO_LARGE = "FILE_TOO_LARGE"
    INVALID_FORMAT = "INVALID_FORMAT"
    READ_FAILED = "READ_FAILED"
    PARSE_FAILED = "PARSE_FAILED"
    UPLOAD_FAILED = "UPLOAD_FAILED"


class AudioReason(str, Enum):
    MICROPHONE_NOT_AVAILABLE = "MICROPHONE_NOT_AVAILABLE"
    PERMISSION_DENIED = "PERMISSION_DENIED"
    RECORDING_FAILED = "RECORDING_FAILED"
    PROCESSING_FAILED = "PROCESSING_FAILED"
    DEVICE_NOT_FOUND = "DEVICE_NOT_FOUND"


class TTSReason(str, Enum):
    GENERATION_FAILED = "GENERATION_FAILED"
    UNSUPPORTED_LANGUAGE = "UNSUPPORTED_LANGUAGE"
    AUDIO_PLAY_FAILED = "AUDIO_PLAY_FAILED"
    VOICE_NOT_FOUND = "VOICE_NOT_FOUND"


class StorageReason(str, Enum):
    QUOTA_EXCEEDED = "QUOTA_EXCEEDED"
    ITEM_NOT_FOUND = "ITEM_NOT_FOUND"
    WRITE_FAILED = "WRITE_FAILED"
    READ_FAILED = "READ_FAILED"
    CLEAR_FAILED = "CLEAR_FAILED"


_DEFAULT_CODES: dict[ErrorCategory, str] = {
    ErrorCategory.NETWORK: codes.NETWORK_ERROR,
    ErrorCategory.API: codes.API_ERROR,
    ErrorCategory.VALIDATION: codes.VALIDATION_ERROR,
    ErrorCategory.AUTH: codes.AUTH_ERROR,
    ErrorCategory.FILE: codes.FILE_ERROR,
    ErrorCategory.AUDIO: codes.AUDIO_ERROR,
    ErrorCategory.TTS: codes.TTS_ERROR,
    ErrorCategory.STORAGE: codes.STORAGE_ERROR,
    ErrorCategory.UNKNOWN: codes.UNKNOWN_ERROR,
}


def _utc_now() -> datetime:
    return datetime.now(UTC)


@dataclass(eq=False)
class BaseError(Exception):
    """Normalized failure record shared by every recovery component.

    ``cause`` keeps the original raised value for debugging only; it is never
    inspected after normalization and never written to logs.

    Fields are read-only once constructed. Dunder attributes stay writable so
    the interpreter and ``contextlib`` can attach tracebacks and chaining.
    """

    message: str
    code: str | int | None = None
    category: ErrorCategory = ErrorCategory.UNKNOWN
    severity: ErrorSeverity = ErrorSeverity.MEDIUM
    cause: object | None = None
    timestamp: datetime = field(default_factory=_utc_now)
    context: Mapping[str, Any] = field(default_factory=dict)

    def __post_init__(self) -> None:
        if self.code is None:
            self.code = self._default_code()
        object.__setattr__(self, "_sealed", True)

    def __setattr__(self, name: str, value: object) -> None:
        if name.startswith("__") or not getattr(self, "_sealed", False):
            super().__setattr__(name, value)
            return
        raise FrozenInstanceError(f"cannot assign to field {name!r}")

    def __delattr__(self, name: str) -> None:
        if name.startswith("__"):
            super().__delattr__(name)
            return
        raise FrozenInstanceError(f"cannot delete field {name!r}")

    def __str__(self) -> str:
        """Return the human-readable error message."""
        return self.message

    def _default_code(self) -> str | int:
        return _DEFAULT_CODES[self.category]


@dataclass(eq=False, kw_only=True)
class NetworkError(BaseError):
    """Transport failure before a usable response was received."""

    category: ErrorCategory = field(default=ErrorCategory.NETWORK, init=False)
    status_code: int | None = None
    endpoint: str | None = None


@dataclass(eq=False, kw_only=True)
class APIError(BaseError):
    """Remote API answered with a failing HTTP status."""

    category: ErrorCategory = field(default=ErrorCategory.API, init=False)
    status_code: int | None = None
    endpoint: str | None = None
    method: str | None = None
    response_body: Any = None
    retryable: bool = False
    retry_count: int = 0

    def _default_code(self) -> str | int:
        if self.status_code is None:
            return codes.API_ERROR
        return int(self.status_code)


@dataclass(eq=False, kw_only=True)
class ValidationError(BaseError):
    """Input rejected before any side effect took place."""

    category: ErrorCategory = field(default=ErrorCategory.VALIDATION, init=False)
    field: str | None = None
    value: Any = None
    constraints: tuple[str, ...] = ()


@dataclass(eq=False, kw_only=True)
class AuthError(BaseError):
    category: ErrorCategory = field(default=ErrorCategory.AUTH, init=False)
    reason: AuthReason | None = None


@dataclass(eq=False, kw_only=True)
class FileError(BaseError):
    category: ErrorCategory = field(default=ErrorCategory.FILE, init=False)
    reason: FileReason | None = None
    file_name: str | None = None
    file_size: int | None = None
    max_size: int | None = None
    mime_type: str | None = None


@dataclass(eq=False, kw_only=True)
class AudioError(BaseError):
    category: ErrorCategory = field(default=ErrorCategory.AUDIO, init=False)
    reason: AudioReason | None = None
    device_id: str | None = None


@dataclass(eq=False, kw_only=True)
class TTSError(BaseError):
    category: ErrorCategory = field(default=ErrorCategory.TTS, init=False)
    reason: TTSReason | None = None
    voice: str | None = None
    language: str | None = None


@dataclass(eq=False, kw_only=True)
class StorageError(BaseError):
    category: ErrorCategory = field(default=ErrorCategory.STORAGE, init=False)
    reason: StorageReason | None = None
    key: str | None = None


ERROR_TYPES: Mapping[ErrorCategory, type[BaseError]] = {
    ErrorCategory.NETWORK: NetworkError,
    ErrorCategory.API: APIError,
    ErrorCategory.VALIDATION: ValidationError,
    ErrorCategory.AUTH: AuthError,
    ErrorCategory.FILE: FileError,
    ErrorCategory.AUDIO: AudioError,
    ErrorCategory.TTS: TTSError,
    ErrorCategory.STORAGE: StorageError,
    ErrorCategory.UNKNOWN: BaseError,
}


def is_network_error(value: object) -> bool:
    """Return True when ``value`` is a normalized network error."""
    return isinstance(value, NetworkError)


def is_api_error(value: object) -> bool:
    """Return True when ``value`` is a normalized API error."""
    return isinstance(value, APIError)


def is_validation_error(value: object) -> bool:
    """Return True when ``value`` is a normalized validation error."""
    return isinstance(value, ValidationError)


def is_auth_error(value: object) -> bool:
    """Return True when ``value`` is a normalized authentication error."""
    return isinstance(value, AuthError)


def is_file_error(value: object) -> bool:
    """Return True when ``value`` is a normalized file error."""
    return isinstance(value, FileError)


def is_audio_error(value: object) -> bool:
    """Return True when ``value`` is a normalized audio capture error."""
    return isinstance(value, AudioError)


def is_tts_error(value: object) -> bool:
    """Return True when ``value`` is a normalized speech synthesis error."""
    return isinstance(value, TTSError)


def is_storage_error(value: object) -> bool:
    """Return True when ``value`` is a normalized storage error."""
    return isinstance(value, StorageError)
