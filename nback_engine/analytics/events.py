"""
Analytics Events.

Interaction log records consumed by the profile analyzer and written through
an AnalyticsRepository. Each event type belongs to exactly one category; the
factories below build correctly categorized events with snake_case payloads.
"""

from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import Any, Literal

from pydantic import BaseModel, Field, field_validator

from nback_engine.core.modes import TrainingMode
from nback_engine.core.values import to_local_naive


class EventCategory(str, Enum):
    SESSION = "session"
    TRIAL = "trial"
    NAVIGATION = "navigation"
    INTERACTION = "interaction"
    SETTINGS = "settings"
    HELP = "help"
    PERFORMANCE = "performance"
    ENGAGEMENT = "engagement"


class EventType(str, Enum):
    # Session
    SESSION_STARTED = "SESSION_STARTED"
    SESSION_COMPLETED = "SESSION_COMPLETED"
    SESSION_ABANDONED = "SESSION_ABANDONED"
    SESSION_PAUSED = "SESSION_PAUSED"
    SESSION_RESUMED = "SESSION_RESUMED"
    # Trial
    TRIAL_COMPLETED = "TRIAL_COMPLETED"
    # Navigation / interaction / settings
    PAGE_VIEWED = "PAGE_VIEWED"
    BUTTON_CLICKED = "BUTTON_CLICKED"
    LEVEL_SELECTED = "LEVEL_SELECTED"
    SETTING_CHANGED = "SETTING_CHANGED"
    # Help
    HELP_VIEWED = "HELP_VIEWED"
    TOUR_STEP_VIEWED = "TOUR_STEP_VIEWED"
    TOUR_COMPLETED = "TOUR_COMPLETED"
    # Performance
    LEVEL_PROGRESS = "LEVEL_PROGRESS"
    LEVEL_UNLOCKED = "LEVEL_UNLOCKED"
    # Engagement
    APP_OPENED = "APP_OPENED"
    STREAK_MILESTONE = "STREAK_MILESTONE"


EVENT_CATEGORIES: dict[EventType, EventCategory] = {
    EventType.SESSION_STARTED: EventCategory.SESSION,
    EventType.SESSION_COMPLETED: EventCategory.SESSION,
    EventType.SESSION_ABANDONED: EventCategory.SESSION,
    EventType.SESSION_PAUSED: EventCategory.SESSION,
    EventType.SESSION_RESUMED: EventCategory.SESSION,
    EventType.TRIAL_COMPLETED: EventCategory.TRIAL,
    EventType.PAGE_VIEWED: EventCategory.NAVIGATION,
    EventType.BUTTON_CLICKED: EventCategory.INTERACTION,
    EventType.LEVEL_SELECTED: EventCategory.INTERACTION,
    EventType.SETTING_CHANGED: EventCategory.SETTINGS,
    EventType.HELP_VIEWED: EventCategory.HELP,
    EventType.TOUR_STEP_VIEWED: EventCategory.HELP,
    EventType.TOUR_COMPLETED: EventCategory.HELP,
    EventType.LEVEL_PROGRESS: EventCategory.PERFORMANCE,
    EventType.LEVEL_UNLOCKED: EventCategory.PERFORMANCE,
    EventType.APP_OPENED: EventCategory.ENGAGEMENT,
    EventType.STREAK_MILESTONE: EventCategory.ENGAGEMENT,
}

STREAK_MILESTONES: tuple[int, ...] = (7, 14, 30, 60, 100)

AbandonReason = Literal["user_quit", "navigation", "error"]


class AnalyticsEvent(BaseModel):
    """A single interaction log record."""

    type: str
    category: EventCategory
    session_id: str | None = None
    timestamp: datetime = Field(default_factory=datetime.now)
    payload: dict[str, Any] = Field(default_factory=dict)

    @field_validator("timestamp")
    @classmethod
    def _local_timestamp(cls, value: datetime) -> datetime:
        return to_local_naive(value)


def create_event(
    event_type: EventType,
    payload: dict[str, Any],
    session_id: str | None = None,
    timestamp: datetime | None = None,
) -> AnalyticsEvent:
    """Build an event with the category its type belongs to."""
    return AnalyticsEvent(
        type=event_type.value,
        category=EVENT_CATEGORIES[event_type],
        session_id=session_id,
        timestamp=timestamp or datetime.now(),
        payload=payload,
    )


# =============================================================================
# Session Events
# =============================================================================


def session_started_event(
    session_id: str,
    level_id: str,
    n_back: int,
    mode: TrainingMode,
    trial_count: int,
    timestamp: datetime | None = None,
) -> AnalyticsEvent:
    return create_event(
        EventType.SESSION_STARTED,
        {
            "session_id": session_id,
            "level_id": level_id,
            "n_back": n_back,
            "mode": TrainingMode.parse(mode).value,
            "trial_count": trial_count,
        },
        session_id=session_id,
        timestamp=timestamp,
    )


def session_completed_event(
    session_id: str,
    level_id: str,
    n_back: int,
    mode: TrainingMode,
    duration: float,
    accuracy: float,
    position_accuracy: float,
    audio_accuracy: float,
    d_prime_position: float,
    d_prime_audio: float,
    timestamp: datetime | None = None,
) -> AnalyticsEvent:
    return create_event(
        EventType.SESSION_COMPLETED,
        {
            "session_id": session_id,
            "level_id": level_id,
            "n_back": n_back,
            "mode": TrainingMode.parse(mode).value,
            "duration": duration,
            "accuracy": accuracy,
            "position_accuracy": position_accuracy,
            "audio_accuracy": audio_accuracy,
            "d_prime_position": d_prime_position,
            "d_prime_audio": d_prime_audio,
        },
        session_id=session_id,
        timestamp=timestamp,
    )


def session_abandoned_event(
    session_id: str,
    completed_trials: int,
    total_trials: int,
    reason: AbandonReason = "user_quit",
    timestamp: datetime | None = None,
) -> AnalyticsEvent:
    return create_event(
        EventType.SESSION_ABANDONED,
        {
            "session_id": session_id,
            "completed_trials": completed_trials,
            "total_trials": total_trials,
            "reason": reason,
        },
        session_id=session_id,
        timestamp=timestamp,
    )


def session_paused_event(
    session_id: str, trial_index: int, timestamp: datetime | None = None
) -> AnalyticsEvent:
    return create_event(
        EventType.SESSION_PAUSED,
        {"session_id": session_id, "trial_index": trial_index},
        session_id=session_id,
        timestamp=timestamp,
    )


def session_resumed_event(
    session_id: str,
    trial_index: int,
    pause_duration: float,
    timestamp: datetime | None = None,
) -> AnalyticsEvent:
    return create_event(
        EventType.SESSION_RESUMED,
        {"session_id": session_id, "trial_index": trial_index, "pause_duration": pause_duration},
        session_id=session_id,
        timestamp=timestamp,
    )


def trial_completed_event(
    session_id: str,
    trial_index: int,
    position_correct: bool | None,
    audio_correct: bool | None,
    position_response_time: float | None,
    audio_response_time: float | None,
    was_position_match: bool,
    was_audio_match: bool,
    timestamp: datetime | None = None,
) -> AnalyticsEvent:
    return create_event(
        EventType.TRIAL_COMPLETED,
        {
            "session_id": session_id,
            "trial_index": trial_index,
            "position_correct": position_correct,
            "audio_correct": audio_correct,
            "position_response_time": position_response_time,
            "audio_response_time": audio_response_time,
            "was_position_match": was_position_match,
            "was_audio_match": was_audio_match,
        },
        session_id=session_id,
        timestamp=timestamp,
    )


# =============================================================================
# Navigation / Interaction / Settings
# =============================================================================


def page_viewed_event(
    page: str,
    referrer: str | None = None,
    time_on_previous_page: float | None = None,
    timestamp: datetime | None = None,
) -> AnalyticsEvent:
    return create_event(
        EventType.PAGE_VIEWED,
        {"page": page, "referrer": referrer, "time_on_previous_page": time_on_previous_page},
        timestamp=timestamp,
    )


def button_clicked_event(
    button_id: str, context: str, timestamp: datetime | None = None
) -> AnalyticsEvent:
    return create_event(
        EventType.BUTTON_CLICKED,
        {"button_id": button_id, "context": context},
        timestamp=timestamp,
    )


def level_selected_event(
    level_id: str,
    previous_level_id: str | None = None,
    timestamp: datetime | None = None,
) -> AnalyticsEvent:
    return create_event(
        EventType.LEVEL_SELECTED,
        {"level_id": level_id, "previous_level_id": previous_level_id},
        timestamp=timestamp,
    )


def setting_changed_event(
    setting: str, old_value: Any, new_value: Any, timestamp: datetime | None = None
) -> AnalyticsEvent:
    return create_event(
        EventType.SETTING_CHANGED,
        {"setting": setting, "old_value": old_value, "new_value": new_value},
        timestamp=timestamp,
    )


# =============================================================================
# Help Events
# =============================================================================


def help_viewed_event(
    help_id: str,
    context: str,
    duration: float,
    timestamp: datetime | None = None,
) -> AnalyticsEvent:
    return create_event(
        EventType.HELP_VIEWED,
        {"help_id": help_id, "context": context, "duration": duration},
        timestamp=timestamp,
    )


def tour_step_viewed_event(
    step_index: int, step_id: str, total_steps: int, timestamp: datetime | None = None
) -> AnalyticsEvent:
    return create_event(
        EventType.TOUR_STEP_VIEWED,
        {"step_index": step_index, "step_id": step_id, "total_steps": total_steps},
        timestamp=timestamp,
    )


def tour_completed_event(
    total_steps: int,
    completed_steps: int,
    skipped: bool = False,
    timestamp: datetime | None = None,
) -> AnalyticsEvent:
    return create_event(
        EventType.TOUR_COMPLETED,
        {"total_steps": total_steps, "completed_steps": completed_steps, "skipped": skipped},
        timestamp=timestamp,
    )


# =============================================================================
# Performance / Engagement
# =============================================================================


def level_progress_event(
    level_id: str,
    new_best_accuracy: float,
    previous_best_accuracy: float | None,
    total_attempts: int,
    timestamp: datetime | None = None,
) -> AnalyticsEvent:
    return create_event(
        EventType.LEVEL_PROGRESS,
        {
            "level_id": level_id,
            "new_best_accuracy": new_best_accuracy,
            "previous_best_accuracy": previous_best_accuracy,
            "total_attempts": total_attempts,
        },
        timestamp=timestamp,
    )


def level_unlocked_event(
    level_id: str,
    unlocked_by: str,
    accuracy: float,
    timestamp: datetime | None = None,
) -> AnalyticsEvent:
    return create_event(
        EventType.LEVEL_UNLOCKED,
        {"level_id": level_id, "unlocked_by": unlocked_by, "accuracy": accuracy},
        timestamp=timestamp,
    )


def app_opened_event(
    days_since_last_visit: int | None,
    current_streak: int,
    total_sessions: int,
    timestamp: datetime | None = None,
) -> AnalyticsEvent:
    return create_event(
        EventType.APP_OPENED,
        {
            "days_since_last_visit": days_since_last_visit,
            "current_streak": current_streak,
            "total_sessions": total_sessions,
        },
        timestamp=timestamp,
    )


def streak_milestone_event(
    streak_days: int, milestone: int, timestamp: datetime | None = None
) -> AnalyticsEvent:
    """Raises ValueError for a milestone outside STREAK_MILESTONES."""
    if milestone not in STREAK_MILESTONES:
        raise ValueError(f"Unknown streak milestone: {milestone}")
    return create_event(
        EventType.STREAK_MILESTONE,
        {"streak_days": streak_days, "milestone": milestone},
        timestamp=timestamp,
    )
