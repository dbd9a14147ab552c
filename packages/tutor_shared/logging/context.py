"""Structured logging context carried on a ``ContextVar``.

The error coordinator binds session and error fields here right before it
logs, so every handler sees them without threading extra arguments through
call sites. Each asyncio task inherits a copy of the context it was created
in.
"""

from __future__ import annotations

from contextlib import contextmanager
from contextvars import ContextVar
from typing import Iterator, Mapping

_LOG_CONTEXT: ContextVar[dict[str, str]] = ContextVar("tutor_log_context", default={})


def _stringified(values: Mapping[str, object]) -> dict[str, str]:
    """Return ``values`` as strings, dropping ``None`` entries."""
    return {str(key): str(value) for key, value in values.items() if value is not None}


def get_context() -> dict[str, str]:
    """Return a copy of the fields bound in the current context."""
    return dict(_LOG_CONTEXT.get())


def bind_context(**values: object) -> None:
    """Merge ``values`` into the current context; ``None`` values are skipped."""
    updates = _stringified(values)
    if updates:
        _LOG_CONTEXT.set({**_LOG_CONTEXT.get(), **updates})


def clear_context(*keys: str) -> None:
    """Drop ``keys`` from the current context, or everything when none are given."""
    if not keys:
        _LOG_CONTEXT.set({})
        return
    _LOG_CONTEXT.set({key: value for key, value in _LOG_CONTEXT.get().items() if key not in keys})


@contextmanager
def log_context(values: Mapping[str, object] | None = None, **extra: object) -> Iterator[None]:
    """Bind fields for the duration of a ``with`` block, then restore the old context."""
    token = _LOG_CONTEXT.set({**_LOG_CONTEXT.get(), **_stringified({**(values or {}), **extra})})
    try:
        yield
    finally:
        _LOG_CONTEXT.reset(token)
