"""Bounded in-memory journal of handled errors for one session."""

from __future__ import annotations

from collections import deque
from dataclasses import dataclass, field
from datetime import UTC, datetime
from types import MappingProxyType
from typing import TYPE_CHECKING, Any, Callable, Mapping
from uuid import uuid4

from packages.tutor_shared.config import RecoverySettings
from packages.tutor_shared.errors import BaseError, ErrorCategory, ErrorSeverity

if TYPE_CHECKING:
    from .coordinator import ErrorCoordinator


@dataclass(frozen=True)
class ErrorJournalEntry:
    """One recorded error, detached from the error object itself."""

    id: str
    timestamp: datetime
    message: str
    severity: ErrorSeverity
    category: ErrorCategory
    code: str | int
    session_id: str
    context: Mapping[str, Any] = field(default_factory=dict)
    user_id: str | None = None


def _new_id(prefix: str) -> str:
    return f"{prefix}_{uuid4().hex}"


class ErrorJournal:
    """Keep the most recent ``max_entries`` handled errors, oldest dropped first."""

    def __init__(self, max_entries: int = 100, session_id: str | None = None) -> None:
        if max_entries <= 0:
            raise ValueError("max_entries must be > 0.")
        self._entries: deque[ErrorJournalEntry] = deque(maxlen=max_entries)
        self.session_id = session_id or _new_id("session")

    @classmethod
    def from_settings(
        cls, settings: RecoverySettings, session_id: str | None = None
    ) -> ErrorJournal:
        """Build a journal sized by ``settings.journal_max_entries``."""
        return cls(max_entries=settings.journal_max_entries, session_id=session_id)

    @property
    def max_entries(self) -> int:
        """Capacity of the journal."""
        return self._entries.maxlen or 0

    def record(
        self, error: BaseError, context: Mapping[str, Any] | None = None
    ) -> ErrorJournalEntry:
        """Append ``error`` to the journal and return the stored entry."""
        merged = {**(context or {}), **error.context}
        entry = ErrorJournalEntry(
            id=_new_id("log"),
            timestamp=datetime.now(UTC),
            message=error.message,
            severity=error.severity,
            category=error.category,
            code=error.code,
            session_id=self.session_id,
            context=MappingProxyType(merged),
            user_id=_optional_str(merged.get("user_id")),
        )
        self._entries.append(entry)
        return entry

    def entries(self, **filters: Any) -> list[ErrorJournalEntry]:
        """Return entries, oldest first, whose attributes equal every filter value."""
        return [
            entry
            for entry in self._entries
            if all(getattr(entry, key, None) == value for key, value in filters.items())
        ]

    def by_severity(self, severity: ErrorSeverity) -> list[ErrorJournalEntry]:
        """Return entries recorded at exactly ``severity``."""
        return self.entries(severity=severity)

    def by_category(self, category: ErrorCategory) -> list[ErrorJournalEntry]:
        """Return entries recorded under ``category``."""
        return self.entries(category=category)

    def clear(self) -> None:
        """Drop every recorded entry."""
        self._entries.clear()

    def __len__(self) -> int:
        """Number of entries currently held."""
        return len(self._entries)

    def attach(self, coordinator: "ErrorCoordinator") -> Callable[[], None]:
        """Record every error ``coordinator`` handles; return the unsubscribe callable."""

        def listener(error: BaseError) -> None:
            snapshot = coordinator.get_context()
            self.record(error, {"user_id": snapshot.user_id, **snapshot.metadata})

        return coordinator.on_error(listener)


def _optional_str(value: object) -> str | None:
    if value is None:
        return None
    return str(value)
