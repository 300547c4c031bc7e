"""
Domain Events.

Facts the training aggregate emits after a state change. Published on an
EventBus; subscribers are keyed by the event's type string.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime

SESSION_STARTED = "SESSION_STARTED"
SESSION_COMPLETED = "SESSION_COMPLETED"
TRIAL_COMPLETED = "TRIAL_COMPLETED"
LEVEL_UNLOCKED = "LEVEL_UNLOCKED"


@dataclass(frozen=True)
class DomainEvent:
    """Base event. aggregate_id is the session id (or level id for unlocks)."""

    aggregate_id: str
    timestamp: datetime = field(default_factory=datetime.now, kw_only=True)

    @property
    def type(self) -> str:
        raise NotImplementedError


@dataclass(frozen=True)
class SessionStarted(DomainEvent):
    level_id: str

    @property
    def type(self) -> str:
        return SESSION_STARTED


@dataclass(frozen=True)
class SessionCompleted(DomainEvent):
    level_id: str
    accuracy: float
    duration: float  # ms

    @property
    def type(self) -> str:
        return SESSION_COMPLETED


@dataclass(frozen=True)
class TrialCompleted(DomainEvent):
    trial_id: int
    correct: bool

    @property
    def type(self) -> str:
        return TRIAL_COMPLETED


@dataclass(frozen=True)
class LevelUnlocked(DomainEvent):
    level_id: str

    @property
    def type(self) -> str:
        return LEVEL_UNLOCKED
