"""Typed success/failure results for fallible operations."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Generic, Literal, TypeVar, Union

from .normalize import to_base_error
from .types import BaseError, ErrorCategory

T = TypeVar("T")


@dataclass(frozen=True)
class SuccessResult(Generic[T]):
    """Successful outcome carrying the operation's value."""

    data: T
    success: Literal[True] = True


@dataclass(frozen=True)
class ErrorResult:
    """Failed outcome carrying the normalized error."""

    error: BaseError
    success: Literal[False] = False


Result = Union[SuccessResult[T], ErrorResult]


def is_success(result: object) -> bool:
    """Return True when ``result`` is a successful result."""
    return isinstance(result, SuccessResult)


def is_error(result: object) -> bool:
    """Return True when ``result`` is a failed result."""
    return isinstance(result, ErrorResult)


def create_success_result(data: T) -> SuccessResult[T]:
    """Wrap one value in a successful result."""
    return SuccessResult(data=data)


def create_error_result(
    value: object, category: ErrorCategory | None = None
) -> ErrorResult:
    """Normalize ``value`` and wrap it in a failed result."""
    return ErrorResult(error=to_base_error(value, category))
