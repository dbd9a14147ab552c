"""Stdout logging setup for the tutoring application.

Records go to stdout either as one JSON object per line or as plain text with
the bound context appended as ``key=value`` pairs.
"""

from __future__ import annotations

import json
import logging
import sys
from datetime import UTC, datetime
from typing import Any

from . import fields
from .context import bind_context, get_context

_PLAIN_FORMAT = "%(asctime)s %(levelname)s %(name)s %(message)s"
_PLAIN_DATE_FORMAT = "%Y-%m-%dT%H:%M:%S%z"


class ContextFilter(logging.Filter):
    """Attach a snapshot of the bound logging context to each record."""

    def filter(self, record: logging.LogRecord) -> bool:
        """Store the current context on ``record``; never drops a record."""
        record.context = get_context()
        return True


def _record_context(record: logging.LogRecord) -> dict[str, str]:
    context = getattr(record, "context", None)
    return context if isinstance(context, dict) else {}


class JsonFormatter(logging.Formatter):
    """One JSON object per record; bound context never overrides core keys."""

    def format(self, record: logging.LogRecord) -> str:
        """Render ``record`` as compact JSON with its context fields."""
        payload: dict[str, Any] = {
            **_record_context(record),
            fields.TIMESTAMP: datetime.fromtimestamp(record.created, UTC).isoformat(),
            fields.LEVEL: record.levelname,
            fields.LOGGER: record.name,
            fields.MESSAGE: record.getMessage(),
        }
        if record.exc_info:
            payload["exception"] = self.formatException(record.exc_info)
        return json.dumps(payload, default=str, separators=(",", ":"))


class PlainFormatter(logging.Formatter):
    """Readable single-line format for local development."""

    def __init__(self) -> None:
        """Use the shared plain format and ISO date format."""
        super().__init__(fmt=_PLAIN_FORMAT, datefmt=_PLAIN_DATE_FORMAT)

    def format(self, record: logging.LogRecord) -> str:
        """Render the standard line followed by sorted ``key=value`` context pairs."""
        line = super().format(record)
        context = _record_context(record)
        if context:
            pairs = " ".join(f"{key}={context[key]}" for key in sorted(context))
            line = f"{line} {pairs}"
        return line


def configure_logging(
    *,
    level: str = "INFO",
    json_output: bool = True,
    service: str | None = None,
    environment: str | None = None,
) -> None:
    """Install a single stdout handler on the root logger.

    Calling this again replaces the handler rather than adding a second one.
    ``service`` and ``environment`` are bound into the logging context.
    """
    handler = logging.StreamHandler(stream=sys.stdout)
    handler.addFilter(ContextFilter())
    handler.setFormatter(JsonFormatter() if json_output else PlainFormatter())

    root = logging.getLogger()
    root.handlers[:] = [handler]
    root.setLevel(level.upper())

    bind_context(**{fields.SERVICE: service, fields.ENVIRONMENT: environment})


def get_logger(name: str | None = None) -> logging.Logger:
    """Return the stdlib logger for ``name``."""
    return logging.getLogger(name)
