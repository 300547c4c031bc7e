"""
Analytics Module - Scoring, interaction events and behavioral profiling.

Components:
- scoring_service: Signal detection scoring (uncorrected and log-linear corrected)
- events: AnalyticsEvent model and typed factories
- profile_analyzer: Behavioral profile aggregation
- profile_models: Profile dataclasses and classifications
"""

from nback_engine.analytics.events import (
    AnalyticsEvent,
    EventCategory,
    EventType,
    create_event,
    help_viewed_event,
    session_abandoned_event,
    session_completed_event,
    session_started_event,
    tour_completed_event,
)
from nback_engine.analytics.profile_analyzer import (
    ProfileAnalyzer,
    build_behavioral_profile,
    build_user_profile,
)
from nback_engine.analytics.profile_models import (
    UserBehavioralProfile,
    UserProfile,
    create_initial_user_profile,
    generate_profile_summary,
)
from nback_engine.analytics.scoring_service import (
    DualTrialResult,
    PerformanceLevel,
    ScoringService,
    SessionScoringResult,
    TrialResult,
    create_scoring_service,
)

__all__ = [
    # Scoring
    "DualTrialResult",
    "PerformanceLevel",
    "ScoringService",
    "SessionScoringResult",
    "TrialResult",
    "create_scoring_service",
    # Events
    "AnalyticsEvent",
    "EventCategory",
    "EventType",
    "create_event",
    "help_viewed_event",
    "session_abandoned_event",
    "session_completed_event",
    "session_started_event",
    "tour_completed_event",
    # Profiles
    "ProfileAnalyzer",
    "UserBehavioralProfile",
    "UserProfile",
    "build_behavioral_profile",
    "build_user_profile",
    "create_initial_user_profile",
    "generate_profile_summary",
]
