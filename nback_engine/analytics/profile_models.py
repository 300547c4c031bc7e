"""
Profile data models.

UserBehavioralProfile is the full aggregate produced by ProfileAnalyzer;
UserProfile is the simplified view used for personalized feedback.
Both are recomputed on demand and never stored as mutable state.
"""

from __future__ import annotations

from dataclasses import asdict, dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any

from nback_engine.core.modes import TrainingMode

# =============================================================================
# Classifications
# =============================================================================


class Trend(str, Enum):
    IMPROVING = "improving"
    STABLE = "stable"
    DECLINING = "declining"


class ResponseTimeTrend(str, Enum):
    FASTER = "faster"
    STABLE = "stable"
    SLOWER = "slower"


class ProgressionRate(str, Enum):
    FAST = "fast"
    NORMAL = "normal"
    SLOW = "slow"


class TimeOfDay(str, Enum):
    MORNING = "morning"  # 05-12
    AFTERNOON = "afternoon"  # 12-17
    EVENING = "evening"  # 17-21
    NIGHT = "night"


class HelpTrend(str, Enum):
    INCREASING = "increasing"
    STABLE = "stable"
    DECREASING = "decreasing"


class ChurnRisk(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


class ErrorPatternType(str, Enum):
    POSITION_MISS = "position_miss"
    AUDIO_MISS = "audio_miss"
    POSITION_FALSE_ALARM = "position_false_alarm"
    AUDIO_FALSE_ALARM = "audio_false_alarm"


class FatigueSeverity(str, Enum):
    MILD = "mild"
    MODERATE = "moderate"
    SEVERE = "severe"


class Modality(str, Enum):
    POSITION = "position"
    AUDIO = "audio"
    BALANCED = "balanced"


# =============================================================================
# Behavioral Profile
# =============================================================================


@dataclass(frozen=True)
class ErrorPattern:
    type: ErrorPatternType
    frequency: float  # share of all trials in the window
    context: str


@dataclass(frozen=True)
class FatigueIndicator:
    type: str  # accuracy_drop
    typical_onset: int  # trial index where the drop starts
    severity: FatigueSeverity


@dataclass(frozen=True)
class PerformanceProfile:
    average_accuracy: float = 0.0
    accuracy_trend: Trend = Trend.STABLE
    average_response_time: float = 0.0
    response_time_trend: ResponseTimeTrend = ResponseTimeTrend.STABLE
    position_strength: float = 0.5
    audio_strength: float = 0.5
    common_error_patterns: tuple[ErrorPattern, ...] = ()
    fatigue_indicators: tuple[FatigueIndicator, ...] = ()


@dataclass(frozen=True)
class LearningProfile:
    current_level: str
    progression_rate: ProgressionRate
    levels_completed: int
    average_attempts_per_level: float
    plateau_detected: bool
    plateau_duration: int | None  # days
    recommended_next_level: str | None


@dataclass(frozen=True)
class EngagementProfile:
    total_sessions: int
    sessions_this_week: int
    average_sessions_per_week: float
    preferred_time_of_day: TimeOfDay | None
    average_session_duration: float  # ms
    current_streak: int
    longest_streak: int
    last_session_date: datetime | None
    days_since_last_session: int | None


@dataclass(frozen=True)
class HelpSeekingProfile:
    popover_view_count: int = 0
    average_popover_duration: float = 0.0
    tour_completed: bool = False
    frequently_viewed_help: tuple[str, ...] = ()
    help_view_trend: HelpTrend = HelpTrend.STABLE


@dataclass(frozen=True)
class ProfileInsights:
    strengths: tuple[str, ...]
    areas_for_improvement: tuple[str, ...]
    motivational_factors: tuple[str, ...]
    risk_of_churn: ChurnRisk
    suggested_interventions: tuple[str, ...]


@dataclass(frozen=True)
class UserBehavioralProfile:
    """Comprehensive behavioral profile for personalized feedback."""

    performance: PerformanceProfile
    learning: LearningProfile
    engagement: EngagementProfile
    help_seeking: HelpSeekingProfile
    insights: ProfileInsights
    profile_generated_at: datetime
    data_point_count: int

    def to_dict(self) -> dict[str, Any]:
        """Convert to a JSON-ready dictionary."""
        return _jsonable(asdict(self))


def _jsonable(value: Any) -> Any:
    if isinstance(value, dict):
        return {k: _jsonable(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [_jsonable(v) for v in value]
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, datetime):
        return value.isoformat()
    return value


# =============================================================================
# Simplified User Profile
# =============================================================================


@dataclass(frozen=True)
class TrainingPreferences:
    preferred_time_of_day: TimeOfDay | None = None
    average_session_duration: float = 0.0
    preferred_mode: TrainingMode | None = None
    sessions_per_week: float = 0.0


@dataclass(frozen=True)
class PerformanceTrends:
    overall_trend: Trend = Trend.STABLE
    position_trend: Trend = Trend.STABLE
    audio_trend: Trend = Trend.STABLE
    recent_accuracies: tuple[float, ...] = ()


@dataclass(frozen=True)
class StrengthsWeaknesses:
    stronger_modality: Modality = Modality.BALANCED
    consistently_struggles_at: int | None = None
    consistently_excels_at: int | None = None


@dataclass(frozen=True)
class BehavioralPatterns:
    responds_quickly_to_position: bool = False
    responds_quickly_to_audio: bool = False
    tends_to_press_match_too_often: bool = False
    tends_to_press_match_too_rarely: bool = False
    performs_better_early_in_session: bool = False
    performs_better_late_in_session: bool = False


@dataclass(frozen=True)
class UserProfile:
    id: str
    current_level: int
    total_sessions: int = 0
    total_training_time: float = 0.0
    current_streak: int = 0
    longest_streak: int = 0
    preferences: TrainingPreferences = field(default_factory=TrainingPreferences)
    trends: PerformanceTrends = field(default_factory=PerformanceTrends)
    strengths_weaknesses: StrengthsWeaknesses = field(default_factory=StrengthsWeaknesses)
    behavioral_patterns: BehavioralPatterns = field(default_factory=BehavioralPatterns)
    last_updated: datetime = field(default_factory=datetime.now)


def create_initial_user_profile(profile_id: str) -> UserProfile:
    """Profile for a user with no history."""
    return UserProfile(id=profile_id, current_level=1)


def generate_profile_summary(profile: UserProfile) -> str:
    """Plain-text summary of a profile, one fact per line."""
    lines = [
        f"Current N-back level: {profile.current_level}",
        f"Total sessions: {profile.total_sessions}",
        f"Training streak: {profile.current_streak} days",
    ]

    if profile.trends.overall_trend is not Trend.STABLE:
        lines.append(f"Performance trend: {profile.trends.overall_trend.value}")

    if profile.strengths_weaknesses.stronger_modality is not Modality.BALANCED:
        lines.append(f"Stronger at: {profile.strengths_weaknesses.stronger_modality.value} tasks")

    if profile.behavioral_patterns.tends_to_press_match_too_often:
        lines.append("Tendency: Over-reports matches (false alarms)")
    elif profile.behavioral_patterns.tends_to_press_match_too_rarely:
        lines.append("Tendency: Under-reports matches (misses)")

    if profile.preferences.preferred_time_of_day is not None:
        lines.append(f"Prefers training: {profile.preferences.preferred_time_of_day.value}")

    return "\n".join(lines)
