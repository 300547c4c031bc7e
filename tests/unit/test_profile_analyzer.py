"""
Unit tests for the behavioral profile analyzer.

Every analysis gets an explicit reference time so results do not depend on
the wall clock.
"""

import json
from datetime import datetime, timedelta, timezone

import pytest

from nback_engine.analytics.events import (
    AnalyticsEvent,
    EventType,
    create_event,
    help_viewed_event,
    tour_completed_event,
)
from nback_engine.analytics.profile_analyzer import (
    ProfileAnalyzer,
    build_behavioral_profile,
    build_user_profile,
    classify_response_time_trend,
    classify_trend,
    time_of_day,
    trial_accuracy,
)
from nback_engine.analytics.profile_models import (
    ChurnRisk,
    ErrorPatternType,
    FatigueSeverity,
    HelpTrend,
    Modality,
    ProgressionRate,
    ResponseTimeTrend,
    TimeOfDay,
    Trend,
    create_initial_user_profile,
    generate_profile_summary,
)
from nback_engine.core.stats import PerformanceStats
from nback_engine.ports.repositories import UserProgress
from nback_engine.training.trial import Trial

NOW = datetime(2024, 3, 6, 9, 30)


@pytest.fixture
def analyzer():
    return ProfileAnalyzer()


def answered_trials(position_responses):
    """Non-match position trials answered with the given responses (True = false alarm)."""
    return tuple(
        Trial.create(i, i % 9, "C", False, False).record_position_response(response, 500.0)
        for i, response in enumerate(position_responses)
    )


def progress_at(days_ago=None, **kwargs):
    last = NOW - timedelta(days=days_ago) if days_ago is not None else None
    return UserProgress(last_session_date=last, **kwargs)


class TestTrendHelpers:
    @pytest.mark.parametrize(
        "values, expected",
        [
            ([60, 60, 70, 80], Trend.IMPROVING),
            ([90, 70, 60], Trend.DECLINING),
            ([80, 80, 70], Trend.STABLE),  # exactly -5 is not a decline
            ([50, 90], Trend.STABLE),  # too few values
            ([], Trend.STABLE),
        ],
    )
    def test_classify_trend(self, values, expected):
        assert classify_trend(values) is expected

    def test_rising_latency_is_slower(self):
        assert classify_response_time_trend([400, 400, 600, 600]) is ResponseTimeTrend.SLOWER
        assert classify_response_time_trend([600, 600, 400, 400]) is ResponseTimeTrend.FASTER

    @pytest.mark.parametrize(
        "hour, expected",
        [
            (4, TimeOfDay.NIGHT),
            (5, TimeOfDay.MORNING),
            (12, TimeOfDay.AFTERNOON),
            (17, TimeOfDay.EVENING),
            (21, TimeOfDay.NIGHT),
        ],
    )
    def test_time_of_day(self, hour, expected):
        assert time_of_day(hour) is expected

    def test_trial_accuracy_ignores_unanswered_non_matches(self):
        assert trial_accuracy([Trial.create(0, 0, "C", False, False)]) == 0.0
        trials = answered_trials([False, True])
        assert trial_accuracy(trials) == 50.0


class TestPerformance:
    def test_empty_history_defaults(self, analyzer):
        profile = analyzer.analyze_performance([])
        assert profile.average_accuracy == 0.0
        assert profile.position_strength == 0.5
        assert profile.audio_strength == 0.5

    def test_uses_recent_window(self, analyzer, daily_sessions):
        sessions = daily_sessions([10] * 5 + [70] * 10)
        profile = analyzer.analyze_performance(sessions)
        assert profile.average_accuracy == 70.0
        assert profile.position_strength == pytest.approx(0.7)

    def test_severe_fatigue_and_false_alarm_pattern(self, analyzer, make_session_result):
        session = make_session_result(trials=answered_trials([False] * 10 + [True] * 10))
        profile = analyzer.analyze_performance([session])

        [fatigue] = profile.fatigue_indicators
        assert fatigue.type == "accuracy_drop"
        assert fatigue.typical_onset == 10
        assert fatigue.severity is FatigueSeverity.SEVERE

        [pattern] = profile.common_error_patterns
        assert pattern.type is ErrorPatternType.POSITION_FALSE_ALARM
        assert pattern.frequency == pytest.approx(0.5)

    def test_moderate_fatigue(self, analyzer, make_session_result):
        responses = [False] * 10 + [False] * 8 + [True] * 2
        session = make_session_result(trials=answered_trials(responses))
        [fatigue] = analyzer.detect_fatigue([session])
        assert fatigue.severity is FatigueSeverity.MODERATE

    def test_short_sessions_are_not_checked_for_fatigue(self, analyzer, make_session_result):
        session = make_session_result(trials=answered_trials([False] * 4 + [True] * 5))
        assert analyzer.detect_fatigue([session]) == []

    def test_miss_pattern(self, analyzer, make_session_result):
        trials = tuple(Trial.create(i, i % 9, "C", i % 2 == 0, False) for i in range(10))
        patterns = analyzer.find_error_patterns([make_session_result(trials=trials)])
        assert [p.type for p in patterns] == [ErrorPatternType.POSITION_MISS]

    def test_response_times_from_both_modalities(self, analyzer, make_session_result):
        trial = (
            Trial.create(0, 0, "C", True, True)
            .record_position_response(True, 300.0)
            .record_audio_response(True, 500.0)
        )
        session = make_session_result(trials=(trial,))
        assert analyzer.extract_response_times([session]) == [300.0, 500.0]


class TestLearning:
    def test_plateau_detected(self, analyzer, daily_sessions):
        sessions = daily_sessions([70, 71, 69, 70, 72, 70, 71, 69, 70, 71])
        assert analyzer.detect_plateau(sessions) == (True, 9)

    def test_no_plateau_with_too_few_sessions(self, analyzer, daily_sessions):
        assert analyzer.detect_plateau(daily_sessions([70] * 9)) == (False, None)

    def test_no_plateau_at_mastery(self, analyzer, daily_sessions):
        assert analyzer.detect_plateau(daily_sessions([85] * 10)) == (False, None)

    def test_no_plateau_when_accuracy_varies(self, analyzer, daily_sessions):
        assert analyzer.detect_plateau(daily_sessions([50, 70] * 5)) == (False, None)

    @pytest.mark.parametrize(
        "count, unlocked, expected",
        [
            (4, 2, ProgressionRate.NORMAL),
            (5, 2, ProgressionRate.FAST),
            (20, 2, ProgressionRate.SLOW),
            (10, 2, ProgressionRate.NORMAL),
        ],
    )
    def test_progression_rate(self, analyzer, daily_sessions, count, unlocked, expected):
        progress = UserProgress(unlocked_levels=["position-1", "audio-1", "position-2"][:unlocked])
        sessions = daily_sessions([70] * count)
        assert analyzer.progression_rate(sessions, progress) is expected

    def test_recommend_next_level(self, analyzer, daily_sessions):
        progress = UserProgress(current_level="position-2")
        assert analyzer.recommend_next_level(daily_sessions([85] * 5), progress) == "position-3"
        assert analyzer.recommend_next_level(daily_sessions([70] * 5), progress) is None
        assert analyzer.recommend_next_level([], progress) is None

    def test_recommendation_capped_at_nine(self, analyzer, daily_sessions):
        progress = UserProgress(current_level="dual-9")
        assert analyzer.recommend_next_level(daily_sessions([95] * 5), progress) is None

    def test_analyze_learning(self, analyzer, daily_sessions):
        progress = UserProgress(
            current_level="position-2",
            unlocked_levels=["position-1", "audio-1", "position-2"],
        )
        sessions = daily_sessions([85] * 4) + daily_sessions(
            [90, 90], end=datetime(2024, 3, 1), level_id="position-1"
        )
        learning = analyzer.analyze_learning(sorted(sessions, key=lambda s: s.timestamp), progress)

        assert learning.current_level == "position-2"
        assert learning.levels_completed == 1
        assert learning.average_attempts_per_level == 3.0
        assert learning.recommended_next_level == "position-3"


class TestEngagement:
    def test_engagement_metrics(self, analyzer, daily_sessions):
        sessions = daily_sessions([70] * 10)
        progress = progress_at(days_ago=1, current_streak=3, longest_streak=5)
        engagement = analyzer.analyze_engagement(sessions, progress, NOW)

        assert engagement.total_sessions == 10
        assert engagement.sessions_this_week == 6
        assert engagement.average_sessions_per_week == pytest.approx(10 / (9 / 7))
        assert engagement.preferred_time_of_day is TimeOfDay.MORNING
        assert engagement.average_session_duration == 60_000.0
        assert engagement.days_since_last_session == 1
        assert engagement.longest_streak == 5

    def test_weekly_average_floors_span_at_one_week(self, analyzer, daily_sessions):
        assert analyzer.weekly_average(daily_sessions([70] * 3)) == 3.0
        assert analyzer.weekly_average([]) == 0.0

    @pytest.mark.parametrize(
        "hours, expected",
        [
            ([9, 14, 14, 20], TimeOfDay.AFTERNOON),
            ([9, 14], TimeOfDay.MORNING),
            ([22, 23, 9], TimeOfDay.NIGHT),
            ([], None),
        ],
    )
    def test_preferred_time_of_day(self, analyzer, hours, expected):
        assert analyzer.preferred_time_of_day(hours) == expected

    def test_never_trained(self, analyzer):
        engagement = analyzer.analyze_engagement([], progress_at(), NOW)
        assert engagement.days_since_last_session is None
        assert engagement.preferred_time_of_day is None

    def test_utc_last_session_date_from_json(self):
        progress = UserProgress.model_validate({"last_session_date": "2024-03-05T09:00:00Z"})
        expected = datetime(2024, 3, 5, 9, 0, tzinfo=timezone.utc).astimezone().replace(tzinfo=None)

        engagement = build_behavioral_profile([], progress, [], NOW).engagement

        assert engagement.last_session_date == expected
        assert engagement.days_since_last_session == (NOW - expected).days

    def test_aware_reference_time(self, daily_sessions):
        profile = build_behavioral_profile(
            daily_sessions([70] * 3), progress_at(days_ago=1), [], NOW.astimezone()
        )
        assert profile.engagement.days_since_last_session == 1


class TestHelpSeeking:
    def _views(self, offsets_days):
        start = datetime(2024, 3, 1)
        return [
            help_viewed_event("h", "home", 1000.0, timestamp=start + timedelta(days=d))
            for d in offsets_days
        ]

    def test_counts_durations_and_tour(self, analyzer):
        events = [
            help_viewed_event("d-prime", "results", 1000.0),
            help_viewed_event("d-prime", "results", 3000.0),
            help_viewed_event("streaks", "home", 2000.0),
            tour_completed_event(5, 5),
        ]
        profile = analyzer.analyze_help_seeking(events)

        assert profile.popover_view_count == 3
        assert profile.average_popover_duration == 2000.0
        assert profile.tour_completed is True
        assert profile.frequently_viewed_help == ("d-prime", "streaks")

    def test_non_numeric_duration_counts_as_zero(self, analyzer):
        event = create_event(EventType.HELP_VIEWED, {"help_id": "x", "duration": "long"})
        profile = analyzer.analyze_help_seeking([event, help_viewed_event("x", "home", 400.0)])
        assert profile.average_popover_duration == 200.0

    def test_frequent_help_keeps_top_five(self, analyzer):
        events = [help_viewed_event(f"h{i}", "home", 1.0) for i in range(7)]
        assert len(analyzer.frequent_help(events)) == 5

    @pytest.mark.parametrize(
        "offsets",
        [
            [0, 0.1, 0.2, 0.3, 10],
            [0, 9, 9.5, 9.8, 10],
            [10, 0, 5, 2, 7, 1],
            [2] * 6,
        ],
    )
    def test_help_trend_compares_list_halves(self, analyzer, offsets):
        # halves of n sorted events hold n//2 and n - n//2 views
        assert analyzer.help_trend(self._views(offsets)) is HelpTrend.STABLE

    def test_help_trend_needs_five_events(self, analyzer):
        assert analyzer.help_trend(self._views([0, 9, 9.5, 10])) is HelpTrend.STABLE

    def test_help_trend_sorts_json_and_local_events_together(self, analyzer):
        loaded = [
            AnalyticsEvent.model_validate(
                {
                    "type": "HELP_VIEWED",
                    "category": "help",
                    "timestamp": f"2024-03-0{day}T09:00:00+00:00",
                    "payload": {"help_id": "h", "duration": 100.0},
                }
            )
            for day in (1, 2, 3)
        ]
        events = loaded + self._views([0.5, 1.5])
        assert analyzer.help_trend(events) is HelpTrend.STABLE


class TestInsights:
    @pytest.mark.parametrize(
        "days_ago, accuracy, expected",
        [
            (None, 90, ChurnRisk.HIGH),
            (15, 90, ChurnRisk.HIGH),
            (14, 90, ChurnRisk.MEDIUM),
            (7, 90, ChurnRisk.MEDIUM),
            (6, 40, ChurnRisk.MEDIUM),
            (2, 70, ChurnRisk.LOW),
        ],
    )
    def test_churn_risk(self, analyzer, daily_sessions, days_ago, accuracy, expected):
        sessions = daily_sessions([accuracy] * 5)
        assert analyzer.assess_churn_risk(sessions, progress_at(days_ago), NOW) is expected

    def test_modality_strength_insights(self, analyzer, make_session_result):
        sessions = [
            make_session_result(
                f"s-{i}", combined_accuracy=85.0, position_accuracy=95.0, audio_accuracy=75.0
            )
            for i in range(3)
        ]
        insights = analyzer.generate_insights(sessions, progress_at(1, current_streak=8), NOW)

        assert insights.strengths == ("Consistently high accuracy", "Strong spatial working memory")
        assert insights.areas_for_improvement == ("Practice audio-only tasks to balance skills",)
        assert len(insights.motivational_factors) == 1

    def test_low_accuracy_suggests_easier_level(self, analyzer, daily_sessions):
        insights = analyzer.generate_insights(daily_sessions([45] * 3), progress_at(1), NOW)
        assert "Offer to reduce difficulty" in insights.suggested_interventions

    def test_lost_streak_reminder(self, analyzer):
        progress = progress_at(3, current_streak=0, total_sessions=6)
        insights = analyzer.generate_insights([], progress, NOW)
        assert insights.suggested_interventions == ("Send reminder to maintain streak",)


class TestProfiles:
    def test_behavioral_profile(self, daily_sessions):
        sessions = list(reversed(daily_sessions([60, 65, 80, 85])))
        events = [help_viewed_event("d-prime", "results", 1000.0, timestamp=NOW)]
        progress = progress_at(1, current_level="position-2", current_streak=4)

        profile = build_behavioral_profile(sessions, progress, events, now=NOW)

        assert profile.data_point_count == 5
        assert profile.profile_generated_at == NOW
        assert profile.performance.accuracy_trend is Trend.IMPROVING
        assert profile.insights.risk_of_churn is ChurnRisk.LOW
        assert profile.help_seeking.popover_view_count == 1

        data = profile.to_dict()
        json.dumps(data)
        assert data["performance"]["accuracy_trend"] == "improving"

    def test_user_profile_and_summary(self, make_session_result):
        sessions = [
            make_session_result(
                f"s-{i}",
                timestamp=datetime(2024, 3, 1 + i, 19, 0),
                combined_accuracy=70.0,
                position_stats=PerformanceStats(accuracy=80.0, false_alarm_rate=0.5, hit_rate=1.0),
                audio_stats=PerformanceStats(accuracy=50.0, false_alarm_rate=0.5, hit_rate=1.0),
            )
            for i in range(3)
        ]
        progress = progress_at(2, current_level="position-2", total_sessions=3, current_streak=2)

        profile = build_user_profile(sessions, progress, [], now=NOW)

        assert profile.current_level == 2
        assert profile.total_sessions == 3
        assert profile.strengths_weaknesses.stronger_modality is Modality.POSITION
        assert profile.behavioral_patterns.tends_to_press_match_too_often
        assert not profile.behavioral_patterns.tends_to_press_match_too_rarely
        assert profile.preferences.preferred_time_of_day is TimeOfDay.EVENING
        assert profile.trends.recent_accuracies == (70.0, 70.0, 70.0)

        summary = generate_profile_summary(profile)
        assert summary.splitlines()[0] == "Current N-back level: 2"
        assert "Stronger at: position tasks" in summary
        assert "Tendency: Over-reports matches (false alarms)" in summary
        assert "Prefers training: evening" in summary

    def test_initial_profile_summary(self):
        summary = generate_profile_summary(create_initial_user_profile("u-1"))
        assert summary == "Current N-back level: 1\nTotal sessions: 0\nTraining streak: 0 days"
