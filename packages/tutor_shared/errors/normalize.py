"""Normalization of arbitrary raised values into the shared error taxonomy.

Classification runs in a fixed priority order over structural signals (API >
Network > Validation > Auth > File > Audio > TTS > Storage). A caller hint is
used only when no structural signal fired; weak type-based guesses come after
the hint and ``UNKNOWN`` is the last resort. ``to_base_error`` never raises.
"""

from __future__ import annotations

import dataclasses
from enum import Enum
from typing import Any, Callable, Mapping

import httpx
import pydantic

from . import codes
from .types import (
    ERROR_TYPES,
    AudioReason,
    AuthReason,
    BaseError,
    ErrorCategory,
    ErrorSeverity,
    FileReason,
    StorageReason,
    TTSReason,
)

_MISSING = object()
_UNKNOWN_MESSAGE = "Unknown error"
_BASE_FIELDS = frozenset(item.name for item in dataclasses.fields(BaseError))
_REASONS: dict[ErrorCategory, type[Enum]] = {
    ErrorCategory.AUTH: AuthReason,
    ErrorCategory.FILE: FileReason,
    ErrorCategory.AUDIO: AudioReason,
    ErrorCategory.TTS: TTSReason,
    ErrorCategory.STORAGE: StorageReason,
}


def to_base_error(value: object, hint: ErrorCategory | str | None = None) -> BaseError:
    """Normalize any raised value into a ``BaseError`` variant.

    ``BaseError`` instances are returned unchanged. Values that already carry
    ``category``, ``severity`` and ``code`` are rebuilt as the matching
    variant. Everything else is classified structurally, then by ``hint``,
    then by exception type.
    """
    if isinstance(value, BaseError):
        return value
    try:
        return _normalize(value, coerce_category(hint))
    except Exception:
        return BaseError(message=_safe_text(value), cause=value)


def coerce_category(raw: object) -> ErrorCategory | None:
    """Return the ``ErrorCategory`` named by ``raw`` (value or member name)."""
    if raw is None or isinstance(raw, ErrorCategory):
        return raw
    if isinstance(raw, str):
        try:
            return ErrorCategory(raw.strip().lower())
        except ValueError:
            return None
    return None


def _normalize(value: object, hint: ErrorCategory | None) -> BaseError:
    status_code = _status_code(value)

    category = _declared_category(value)
    if category is None:
        category = _structural_category(value, status_code)
    if category is None:
        category = hint
    if category is None:
        category = _weak_category(value)

    error_type = ERROR_TYPES[category]
    kwargs: dict[str, Any] = {
        "message": _message(value),
        "code": _code(value),
        "severity": _severity(value),
        "cause": value,
        "context": _context(value),
    }
    kwargs.update(_variant_fields(error_type, value, category, status_code))
    return error_type(**kwargs)


def _declared_category(value: object) -> ErrorCategory | None:
    """Return the category of a value that already has the BaseError shape."""
    raw_category = _read(value, "category")
    if raw_category is _MISSING or _read(value, "code") is _MISSING:
        return None
    if _coerce_severity(_read(value, "severity")) is None:
        return None
    return coerce_category(raw_category)


def _structural_category(
    value: object, status_code: int | None
) -> ErrorCategory | None:
    for category, probe in _PROBES:
        if probe(value, status_code):
            return category
    return None


def _looks_like_api(value: object, status_code: int | None) -> bool:
    return status_code is not None and status_code != 0


def _looks_like_network(value: object, status_code: int | None) -> bool:
    if status_code == 0:
        return True
    return isinstance(value, (ConnectionError, TimeoutError, httpx.TransportError))


def _looks_like_validation(value: object, status_code: int | None) -> bool:
    if isinstance(value, pydantic.ValidationError):
        return True
    return any(
        isinstance(_read(value, name), (list, tuple))
        for name in ("constraints", "field_errors", "fieldErrors")
    )


def _reason_probe(
    category: ErrorCategory, *marker_fields: str
) -> Callable[[object, int | None], bool]:
    def probe(value: object, status_code: int | None) -> bool:
        if _coerce_reason(category, _read(value, "reason")) is not None:
            return True
        return any(_read(value, name) is not _MISSING for name in marker_fields)

    return probe


_PROBES: tuple[tuple[ErrorCategory, Callable[[object, int | None], bool]], ...] = (
    (ErrorCategory.API, _looks_like_api),
    (ErrorCategory.NETWORK, _looks_like_network),
    (ErrorCategory.VALIDATION, _looks_like_validation),
    (ErrorCategory.AUTH, _reason_probe(ErrorCategory.AUTH)),
    (
        ErrorCategory.FILE,
        _reason_probe(ErrorCategory.FILE, "file_name", "fileName", "mime_type", "mimeType"),
    ),
    (ErrorCategory.AUDIO, _reason_probe(ErrorCategory.AUDIO, "device_id", "deviceId")),
    (ErrorCategory.TTS, _reason_probe(ErrorCategory.TTS, "voice")),
    (ErrorCategory.STORAGE, _reason_probe(ErrorCategory.STORAGE)),
)


def _weak_category(value: object) -> ErrorCategory:
    if isinstance(value, ValueError):
        return ErrorCategory.VALIDATION
    if isinstance(value, PermissionError):
        return ErrorCategory.AUTH
    if isinstance(value, OSError):
        return ErrorCategory.FILE
    return ErrorCategory.UNKNOWN


def _variant_fields(
    error_type: type[BaseError],
    value: object,
    category: ErrorCategory,
    status_code: int | None,
) -> dict[str, Any]:
    """Collect category-specific fields present on ``value``."""
    output: dict[str, Any] = {}
    for item in dataclasses.fields(error_type):
        if item.name in _BASE_FIELDS or not item.init:
            continue
        raw = _read(value, item.name, _camel(item.name))
        if raw is _MISSING:
            continue
        if item.name == "reason":
            raw = _coerce_reason(category, raw)
        elif item.name == "constraints":
            raw = tuple(str(entry) for entry in raw) if isinstance(raw, (list, tuple)) else ()
        output[item.name] = raw

    if "status_code" in {item.name for item in dataclasses.fields(error_type)}:
        output["status_code"] = status_code
    if isinstance(value, httpx.HTTPStatusError):
        output.update(_http_status_fields(value))
    elif isinstance(value, httpx.TransportError):
        endpoint = _request_url(value)
        if endpoint is not None:
            output["endpoint"] = endpoint
    if isinstance(value, pydantic.ValidationError):
        output.update(_pydantic_fields(value))
    return output


def _http_status_fields(exc: httpx.HTTPStatusError) -> dict[str, Any]:
    response = exc.response
    status_code = response.status_code
    return {
        "endpoint": str(exc.request.url),
        "method": exc.request.method,
        "response_body": response.text,
        "retryable": status_code in codes.RETRYABLE_STATUS_CODES or status_code >= 500,
    }


def _pydantic_fields(exc: pydantic.ValidationError) -> dict[str, Any]:
    details = exc.errors()
    constraints = tuple(str(item.get("msg", "")) for item in details)
    field_name = None
    if details:
        field_name = ".".join(str(part) for part in details[0].get("loc", ()))
    return {"field": field_name or None, "constraints": constraints}


def _request_url(exc: httpx.TransportError) -> str | None:
    try:
        return str(exc.request.url)
    except RuntimeError:
        return None


def _status_code(value: object) -> int | None:
    if isinstance(value, httpx.HTTPStatusError):
        return value.response.status_code
    raw = _read(value, "status_code", "statusCode", "status")
    if isinstance(raw, bool):
        return None
    if isinstance(raw, int):
        return int(raw)
    if isinstance(raw, str) and raw.strip().lstrip("-").isdigit():
        return int(raw.strip())
    return None


def _message(value: object) -> str:
    raw = _read(value, "message")
    if isinstance(raw, str) and raw:
        return raw
    return _safe_text(value)


def _code(value: object) -> str | int | None:
    raw = _read(value, "code")
    if isinstance(raw, bool):
        return None
    if isinstance(raw, (str, int)) and raw != "":
        return raw
    return None


def _severity(value: object) -> ErrorSeverity:
    return _coerce_severity(_read(value, "severity")) or ErrorSeverity.MEDIUM


def _coerce_severity(raw: object) -> ErrorSeverity | None:
    if isinstance(raw, ErrorSeverity):
        return raw
    if isinstance(raw, str):
        try:
            return ErrorSeverity(raw.strip().lower())
        except ValueError:
            return None
    return None


def _coerce_reason(category: ErrorCategory, raw: object) -> Enum | None:
    reasons = _REASONS.get(category)
    if reasons is None or raw is _MISSING or raw is None:
        return None
    if isinstance(raw, reasons):
        return raw
    try:
        return reasons(str(getattr(raw, "value", raw)))
    except ValueError:
        return None


def _context(value: object) -> dict[str, Any]:
    raw = _read(value, "context")
    if isinstance(raw, Mapping):
        return dict(raw)
    return {}


def _read(value: object, *names: str) -> Any:
    """Return the first present key (mappings) or attribute (objects)."""
    if value is None or isinstance(value, (str, bytes, int, float, bool)):
        return _MISSING
    for name in names:
        if isinstance(value, Mapping):
            if name in value:
                return value[name]
            continue
        found = getattr(value, name, _MISSING)
        if found is not _MISSING:
            return found
    return _MISSING


def _camel(name: str) -> str:
    head, *rest = name.split("_")
    return head + "".join(part.title() for part in rest)


def _safe_text(value: object) -> str:
    if value is None:
        return _UNKNOWN_MESSAGE
    try:
        text = str(value)
    except Exception:
        return _UNKNOWN_MESSAGE
    if text:
        return text
    if isinstance(value, BaseException):
        return type(value).__name__
    return _UNKNOWN_MESSAGE
