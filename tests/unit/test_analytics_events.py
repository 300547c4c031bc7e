"""
Unit tests for analytics event factories.
"""

from datetime import datetime, timezone

import pytest

from nback_engine.analytics.events import (
    EVENT_CATEGORIES,
    AnalyticsEvent,
    EventCategory,
    EventType,
    help_viewed_event,
    level_unlocked_event,
    session_abandoned_event,
    session_completed_event,
    session_started_event,
    streak_milestone_event,
    tour_completed_event,
    trial_completed_event,
)
from nback_engine.core.modes import TrainingMode

AT = datetime(2024, 3, 6, 9, 0)


class TestEventCategories:
    def test_every_type_has_a_category(self):
        assert set(EVENT_CATEGORIES) == set(EventType)

    @pytest.mark.parametrize(
        "event_type, category",
        [
            (EventType.SESSION_ABANDONED, EventCategory.SESSION),
            (EventType.TRIAL_COMPLETED, EventCategory.TRIAL),
            (EventType.TOUR_COMPLETED, EventCategory.HELP),
            (EventType.LEVEL_UNLOCKED, EventCategory.PERFORMANCE),
            (EventType.STREAK_MILESTONE, EventCategory.ENGAGEMENT),
        ],
    )
    def test_category_mapping(self, event_type, category):
        assert EVENT_CATEGORIES[event_type] is category


class TestSessionEvents:
    def test_session_started(self):
        event = session_started_event("s-1", "dual-2", 2, TrainingMode.DUAL, 20, timestamp=AT)

        assert event.type == "SESSION_STARTED"
        assert event.category is EventCategory.SESSION
        assert event.session_id == "s-1"
        assert event.timestamp == AT
        assert event.payload["mode"] == "dual"
        assert event.payload["trial_count"] == 20

    def test_session_completed_payload(self):
        event = session_completed_event(
            "s-1", "dual-2", 2, "dual", 60_000.0, 82.5, 85.0, 80.0, 2.1, 1.7
        )
        assert event.payload["accuracy"] == 82.5
        assert event.payload["d_prime_audio"] == 1.7

    def test_session_abandoned_defaults_to_user_quit(self):
        event = session_abandoned_event("s-1", 5, 20)
        assert event.payload["reason"] == "user_quit"
        assert event.payload["completed_trials"] == 5

    def test_trial_completed(self):
        event = trial_completed_event("s-1", 3, True, None, 420.0, None, True, False)
        assert event.category is EventCategory.TRIAL
        assert event.payload["trial_index"] == 3
        assert event.payload["audio_correct"] is None


class TestOtherEvents:
    def test_help_viewed_has_no_session(self):
        event = help_viewed_event("what-is-nback", "level-select", 12_000.0)
        assert event.session_id is None
        assert event.payload == {
            "help_id": "what-is-nback",
            "context": "level-select",
            "duration": 12_000.0,
        }

    def test_tour_completed_not_skipped_by_default(self):
        assert tour_completed_event(5, 5).payload["skipped"] is False

    def test_level_unlocked(self):
        event = level_unlocked_event("position-2", "position-1", 90.0)
        assert event.payload["unlocked_by"] == "position-1"

    @pytest.mark.parametrize("milestone", [7, 14, 30, 60, 100])
    def test_streak_milestones(self, milestone):
        event = streak_milestone_event(milestone, milestone)
        assert event.category is EventCategory.ENGAGEMENT

    def test_unknown_streak_milestone_rejected(self):
        with pytest.raises(ValueError):
            streak_milestone_event(8, 8)


class TestSerialization:
    def test_json_round_trip(self):
        event = session_started_event("s-1", "position-1", 1, "position-only", 20, timestamp=AT)
        restored = AnalyticsEvent.model_validate_json(event.model_dump_json())
        assert restored == event

    def test_zoned_timestamp_loaded_as_local_time(self):
        event = AnalyticsEvent.model_validate(
            {
                "type": "HELP_VIEWED",
                "category": "help",
                "timestamp": "2024-03-05T09:00:00+00:00",
            }
        )
        expected = datetime(2024, 3, 5, 9, 0, tzinfo=timezone.utc).astimezone().replace(tzinfo=None)
        assert event.timestamp.tzinfo is None
        assert event.timestamp == expected
