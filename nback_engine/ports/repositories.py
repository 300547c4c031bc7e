"""
Repository Ports.

Contracts for the persistence capabilities the training core consumes.
Adapters (IndexedDB, SQL, remote sync) live outside this package; the
in-memory adapters in nback_engine.ports.memory implement every port for
tests and the CLI.
"""

from __future__ import annotations

from collections.abc import Callable, Sequence
from datetime import datetime
from typing import TYPE_CHECKING, Any, Protocol

from pydantic import BaseModel, Field, field_validator

from nback_engine.analytics.events import AnalyticsEvent, EventCategory
from nback_engine.core.levels import LEVELS, get_starter_levels
from nback_engine.core.values import to_local_naive

if TYPE_CHECKING:
    from nback_engine.training.domain_events import DomainEvent
    from nback_engine.training.session import SessionResult


def _starter_level_ids() -> list[str]:
    return [level.id for level in get_starter_levels(LEVELS)]


class UserProgress(BaseModel):
    """Singleton progress record for the training user."""

    current_level: str = "position-1"
    unlocked_levels: list[str] = Field(default_factory=_starter_level_ids)
    total_sessions: int = 0
    total_time: float = 0.0  # ms
    current_streak: int = 0
    longest_streak: int = 0
    last_session_date: datetime | None = None

    @field_validator("last_session_date")
    @classmethod
    def _local_session_date(cls, value: datetime | None) -> datetime | None:
        return None if value is None else to_local_naive(value)


def create_default_progress() -> UserProgress:
    """Progress for a new user: starter levels unlocked, nothing played."""
    return UserProgress()


# =============================================================================
# Ports
# =============================================================================


class SessionRepository(Protocol):
    """Stores SessionResult snapshots."""

    def save(self, session: SessionResult) -> None: ...

    def find_by_id(self, session_id: str) -> SessionResult | None: ...

    def find_by_level(self, level_id: str) -> list[SessionResult]: ...

    def find_recent(self, limit: int) -> list[SessionResult]:
        """Most recent sessions first."""
        ...

    def find_by_date_range(self, start: datetime, end: datetime) -> list[SessionResult]: ...

    def find_all(self) -> list[SessionResult]:
        """Every session, oldest first."""
        ...

    def count(self) -> int: ...

    def clear(self) -> None: ...


class ProgressRepository(Protocol):
    """Reads and writes the singleton UserProgress."""

    def get(self) -> UserProgress: ...

    def save(self, progress: UserProgress) -> None: ...

    def reset(self) -> None: ...

    def update_field(self, field: str, value: Any) -> None: ...

    def unlock_level(self, level_id: str) -> None:
        """Idempotent: unlocking an unlocked level changes nothing."""
        ...

    def is_level_unlocked(self, level_id: str) -> bool: ...

    def update_streak(self, now: datetime | None = None) -> int:
        """Advance the day streak for a session at `now` and return it."""
        ...


class AnalyticsRepository(Protocol):
    """Append-only interaction log."""

    def track_event(self, event: AnalyticsEvent) -> None: ...

    def track_events(self, events: Sequence[AnalyticsEvent]) -> None: ...

    def get_events_by_category(self, category: EventCategory) -> list[AnalyticsEvent]: ...

    def get_events_by_session(self, session_id: str) -> list[AnalyticsEvent]: ...

    def get_events_by_type(self, event_type: str) -> list[AnalyticsEvent]: ...

    def get_recent_events(self, limit: int) -> list[AnalyticsEvent]: ...

    def get_events_since(self, since: datetime) -> list[AnalyticsEvent]: ...

    def get_all_events(self) -> list[AnalyticsEvent]: ...

    def get_event_count(self) -> int: ...

    def clear(self) -> None: ...

    def clear_older_than(self, cutoff: datetime) -> int:
        """Delete events before cutoff and return how many were removed."""
        ...


class EventBus(Protocol):
    """Synchronous publish/subscribe for domain events."""

    def publish(self, event: DomainEvent) -> None: ...

    def subscribe(
        self,
        event_type: str,
        handler: Callable[[DomainEvent], None],
    ) -> Callable[[], None]:
        """Register a handler and return a function that unregisters it."""
        ...
