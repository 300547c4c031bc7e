"""
In-memory adapters for every repository port.

Backed by plain lists and dicts. Not thread-safe and not persistent; used by
the test suite and the CLI.
"""

from __future__ import annotations

from collections import defaultdict
from collections.abc import Callable, Sequence
from datetime import datetime
from typing import Any

from loguru import logger

from nback_engine.analytics.events import AnalyticsEvent, EventCategory
from nback_engine.ports.repositories import UserProgress, create_default_progress
from nback_engine.training.domain_events import DomainEvent
from nback_engine.training.progression import ProgressionService
from nback_engine.training.session import SessionResult


class InMemorySessionRepository:
    def __init__(self, sessions: Sequence[SessionResult] = ()):
        self._sessions: dict[str, SessionResult] = {}
        for session in sessions:
            self.save(session)

    def save(self, session: SessionResult) -> None:
        self._sessions[session.session_id] = session

    def find_by_id(self, session_id: str) -> SessionResult | None:
        return self._sessions.get(session_id)

    def find_by_level(self, level_id: str) -> list[SessionResult]:
        return [s for s in self.find_all() if s.level_id == level_id]

    def find_recent(self, limit: int) -> list[SessionResult]:
        return sorted(self._sessions.values(), key=lambda s: s.timestamp, reverse=True)[:limit]

    def find_by_date_range(self, start: datetime, end: datetime) -> list[SessionResult]:
        return [s for s in self.find_all() if start <= s.timestamp <= end]

    def find_all(self) -> list[SessionResult]:
        return sorted(self._sessions.values(), key=lambda s: s.timestamp)

    def count(self) -> int:
        return len(self._sessions)

    def clear(self) -> None:
        self._sessions.clear()


class InMemoryProgressRepository:
    def __init__(
        self,
        progress: UserProgress | None = None,
        progression: ProgressionService | None = None,
    ):
        self._progress = progress or create_default_progress()
        self._progression = progression or ProgressionService()

    def get(self) -> UserProgress:
        return self._progress.model_copy(deep=True)

    def save(self, progress: UserProgress) -> None:
        self._progress = progress.model_copy(deep=True)

    def reset(self) -> None:
        self._progress = create_default_progress()

    def update_field(self, field: str, value: Any) -> None:
        if field not in UserProgress.model_fields:
            raise KeyError(f"Unknown progress field: {field}")
        self._progress = UserProgress.model_validate(
            {**self._progress.model_dump(), field: value}
        )

    def unlock_level(self, level_id: str) -> None:
        if level_id in self._progress.unlocked_levels:
            return
        self._progress = self._progress.model_copy(
            update={"unlocked_levels": [*self._progress.unlocked_levels, level_id]}
        )
        logger.debug(f"Unlocked level {level_id}")

    def is_level_unlocked(self, level_id: str) -> bool:
        return level_id in self._progress.unlocked_levels

    def update_streak(self, now: datetime | None = None) -> int:
        self._progress = self._progression.update_streak(self._progress, now or datetime.now())
        return self._progress.current_streak


class InMemoryAnalyticsRepository:
    def __init__(self, events: Sequence[AnalyticsEvent] = ()):
        self._events: list[AnalyticsEvent] = list(events)

    def track_event(self, event: AnalyticsEvent) -> None:
        self._events.append(event)

    def track_events(self, events: Sequence[AnalyticsEvent]) -> None:
        self._events.extend(events)

    def get_events_by_category(self, category: EventCategory) -> list[AnalyticsEvent]:
        return [e for e in self._events if e.category == category]

    def get_events_by_session(self, session_id: str) -> list[AnalyticsEvent]:
        return [e for e in self._events if e.session_id == session_id]

    def get_events_by_type(self, event_type: str) -> list[AnalyticsEvent]:
        return [e for e in self._events if e.type == event_type]

    def get_recent_events(self, limit: int) -> list[AnalyticsEvent]:
        return sorted(self._events, key=lambda e: e.timestamp, reverse=True)[:limit]

    def get_events_since(self, since: datetime) -> list[AnalyticsEvent]:
        return [e for e in self._events if e.timestamp >= since]

    def get_all_events(self) -> list[AnalyticsEvent]:
        return list(self._events)

    def get_event_count(self) -> int:
        return len(self._events)

    def clear(self) -> None:
        self._events.clear()

    def clear_older_than(self, cutoff: datetime) -> int:
        kept = [e for e in self._events if e.timestamp >= cutoff]
        removed = len(self._events) - len(kept)
        self._events = kept
        return removed


class InMemoryEventBus:
    """Delivers each published event synchronously to its type's handlers."""

    def __init__(self):
        self._handlers: dict[str, list[Callable[[DomainEvent], None]]] = defaultdict(list)

    def publish(self, event: DomainEvent) -> None:
        for handler in list(self._handlers.get(event.type, ())):
            handler(event)

    def subscribe(
        self,
        event_type: str,
        handler: Callable[[DomainEvent], None],
    ) -> Callable[[], None]:
        self._handlers[event_type].append(handler)

        def unsubscribe() -> None:
            handlers = self._handlers.get(event_type, [])
            if handler in handlers:
                handlers.remove(handler)

        return unsubscribe
