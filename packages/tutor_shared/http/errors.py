"""Map httpx failures onto the shared error taxonomy."""

from __future__ import annotations

from typing import Any

import httpx

from packages.tutor_shared.errors import (
    RETRYABLE_STATUS_CODES,
    APIError,
    APIErrorCode,
    ErrorSeverity,
    NetworkError,
    codes,
)


def response_text(response: httpx.Response) -> str:
    """Return response text without raising secondary decode errors."""
    try:
        return response.text
    except Exception:
        return ""


def _response_body(response: httpx.Response) -> Any:
    """Return the decoded JSON body when possible, else the raw text."""
    try:
        return response.json()
    except ValueError:
        return response_text(response)


def _server_message(body: Any) -> str | None:
    """Extract ``error.message`` or ``message`` from a JSON error body."""
    if not isinstance(body, dict):
        return None
    nested = body.get("error")
    if isinstance(nested, dict) and isinstance(nested.get("message"), str):
        return nested["message"]
    if isinstance(nested, str) and nested:
        return nested
    message = body.get("message")
    if isinstance(message, str) and message:
        return message
    return None


def request_error(exc: httpx.RequestError, *, method: str, url: str) -> NetworkError:
    """Build a ``NetworkError`` for one transport-level failure."""
    request = exc.request if _has_request(exc) else None
    request_url = str(request.url) if request is not None else url
    request_method = request.method if request is not None else method.upper()
    timed_out = isinstance(exc, httpx.TimeoutException)
    return NetworkError(
        message=(
            f"Request timed out for {request_method} {request_url}"
            if timed_out
            else f"HTTP request failed for {request_method} {request_url}"
        ),
        code=codes.TIMEOUT if timed_out else codes.NETWORK_ERROR,
        severity=ErrorSeverity.HIGH,
        cause=exc,
        status_code=APIErrorCode.NETWORK_ERROR,
        endpoint=request_url,
        context={"method": request_method},
    )


def status_error(response: httpx.Response) -> APIError:
    """Build an ``APIError`` from one non-success HTTP response."""
    status_code = response.status_code
    method = response.request.method
    url = str(response.request.url)
    body = _response_body(response)
    retryable = status_code in RETRYABLE_STATUS_CODES or status_code >= 500
    return APIError(
        message=_server_message(body) or f"HTTP {status_code} for {method} {url}",
        severity=ErrorSeverity.HIGH if status_code >= 500 else ErrorSeverity.MEDIUM,
        status_code=status_code,
        endpoint=url,
        method=method,
        response_body=body,
        retryable=retryable,
    )


def json_decode_error(response: httpx.Response, exc: ValueError) -> APIError:
    """Build an ``APIError`` for a success response whose body is not JSON."""
    method = response.request.method
    url = str(response.request.url)
    return APIError(
        message=f"Invalid JSON response for {method} {url}",
        code=codes.INVALID_JSON,
        cause=exc,
        status_code=response.status_code,
        endpoint=url,
        method=method,
        response_body=response_text(response),
        retryable=False,
    )


def _has_request(exc: httpx.RequestError) -> bool:
    # ``RequestError.request`` raises when the error was built without one.
    try:
        exc.request
    except RuntimeError:
        return False
    return True
