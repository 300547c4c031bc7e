"""
Behavioral Profile Analyzer.

Aggregates session history, progress and interaction events into a
UserBehavioralProfile:

1. Performance - accuracy and response-time trends, modality strength,
   error patterns, in-session fatigue
2. Learning - progression rate, plateau, next-level recommendation
3. Engagement - weekly volume, preferred time of day, streaks
4. Help-seeking - help views, tour completion, help trend
5. Insights - strengths, improvements, churn risk, interventions

Every analysis is a pure function of its inputs. The reference time `now`
is injected so results are reproducible.
"""

from __future__ import annotations

from collections import Counter
from collections.abc import Sequence
from datetime import datetime, timedelta
from statistics import fmean, pvariance
from typing import TYPE_CHECKING

from loguru import logger

from nback_engine.analytics.events import AnalyticsEvent, EventCategory, EventType
from nback_engine.analytics.profile_models import (
    BehavioralPatterns,
    ChurnRisk,
    EngagementProfile,
    ErrorPattern,
    ErrorPatternType,
    FatigueIndicator,
    FatigueSeverity,
    HelpSeekingProfile,
    HelpTrend,
    LearningProfile,
    Modality,
    PerformanceProfile,
    PerformanceTrends,
    ProfileInsights,
    ProgressionRate,
    ResponseTimeTrend,
    StrengthsWeaknesses,
    TimeOfDay,
    TrainingPreferences,
    Trend,
    UserBehavioralProfile,
    UserProfile,
)
from nback_engine.core.constants import MAX_N_BACK_LEVEL
from nback_engine.core.levels import LEVELS, get_starter_levels, split_level_id
from nback_engine.core.values import to_local_naive
from nback_engine.training.trial import Trial

if TYPE_CHECKING:
    from nback_engine.ports.repositories import UserProgress
    from nback_engine.training.session import SessionResult


# Thresholds for profile classification
THRESHOLDS = {
    # Trends (percentage points between window halves)
    "trend_delta": 5,
    "trend_min_values": 3,

    # Error patterns (share of all trials in the window)
    "miss_rate": 0.15,
    "false_alarm_rate": 0.10,

    # Fatigue (first-half minus second-half trial accuracy)
    "fatigue_min_trials": 10,
    "fatigue_drop": 15,
    "fatigue_severe_drop": 25,

    # Progression (sessions per unlocked level)
    "progression_min_sessions": 5,
    "fast_sessions_per_level": 3,
    "slow_sessions_per_level": 8,

    # Plateau
    "plateau_window": 10,
    "plateau_max_variance": 5,
    "plateau_max_accuracy": 80,

    # Recommendation and insights
    "advance_accuracy": 80,
    "high_accuracy": 80,
    "low_accuracy": 60,
    "modality_gap": 10,
    "streak_motivation_days": 7,
    "lost_streak_min_sessions": 5,

    # Churn
    "churn_high_days": 14,
    "churn_medium_days": 7,
    "churn_low_accuracy": 50,

    # Help trend
    "help_min_events": 5,
    "help_increase_ratio": 1.5,
    "help_decrease_ratio": 0.5,
    "frequent_help_count": 5,

    # Simplified profile
    "stronger_modality_gap": 0.1,
    "tendency_rate": 0.3,
    "half_session_delta": 5,
    "quick_response_ms": 1000,
}

_DAY = timedelta(days=1)
_WEEK = timedelta(days=7)


def _mean(values: Sequence[float]) -> float:
    return fmean(values) if values else 0.0


def _whole_days(delta: timedelta) -> int:
    return int(delta.total_seconds() // _DAY.total_seconds())


def classify_trend(values: Sequence[float]) -> Trend:
    """Compare the mean of the second half of values against the first half."""
    if len(values) < THRESHOLDS["trend_min_values"]:
        return Trend.STABLE

    middle = len(values) // 2
    diff = _mean(values[middle:]) - _mean(values[:middle])

    if diff > THRESHOLDS["trend_delta"]:
        return Trend.IMPROVING
    if diff < -THRESHOLDS["trend_delta"]:
        return Trend.DECLINING
    return Trend.STABLE


def classify_response_time_trend(values: Sequence[float]) -> ResponseTimeTrend:
    """Rising latencies mean slower responses."""
    trend = classify_trend(values)
    if trend is Trend.DECLINING:
        return ResponseTimeTrend.FASTER
    if trend is Trend.IMPROVING:
        return ResponseTimeTrend.SLOWER
    return ResponseTimeTrend.STABLE


def trial_accuracy(trials: Sequence[Trial]) -> float:
    """
    Percentage of correct decisions across both modalities.

    A modality counts on a trial when it was answered or was a match;
    unanswered non-matches are ignored.
    """
    correct = 0
    total = 0
    for trial in trials:
        if trial.user_position_response is not None or trial.is_position_match:
            total += 1
            if trial.user_position_response == trial.is_position_match:
                correct += 1
        if trial.user_audio_response is not None or trial.is_audio_match:
            total += 1
            if trial.user_audio_response == trial.is_audio_match:
                correct += 1
    return correct / total * 100 if total > 0 else 0.0


def _half_accuracies(trials: Sequence[Trial]) -> tuple[float, float]:
    middle = len(trials) // 2
    return trial_accuracy(trials[:middle]), trial_accuracy(trials[middle:])


def time_of_day(hour: int) -> TimeOfDay:
    if 5 <= hour < 12:
        return TimeOfDay.MORNING
    if 12 <= hour < 17:
        return TimeOfDay.AFTERNOON
    if 17 <= hour < 21:
        return TimeOfDay.EVENING
    return TimeOfDay.NIGHT


class ProfileAnalyzer:
    """
    Builds behavioral profiles from session history and analytics events.

    Sessions may arrive in any order; they are sorted by timestamp before
    windowing, so "recent" always means the latest sessions.
    """

    def __init__(self, recent_window: int = 10, recommendation_window: int = 5):
        self.recent_window = recent_window
        self.recommendation_window = recommendation_window

    # ========================================================================
    # Entry points
    # ========================================================================

    def build_behavioral_profile(
        self,
        sessions: Sequence[SessionResult],
        progress: UserProgress,
        events: Sequence[AnalyticsEvent],
        now: datetime | None = None,
    ) -> UserBehavioralProfile:
        now = to_local_naive(now) if now else datetime.now()
        history = sorted(sessions, key=lambda s: s.timestamp)

        profile = UserBehavioralProfile(
            performance=self.analyze_performance(history),
            learning=self.analyze_learning(history, progress),
            engagement=self.analyze_engagement(history, progress, now),
            help_seeking=self.analyze_help_seeking(events),
            insights=self.generate_insights(history, progress, now),
            profile_generated_at=now,
            data_point_count=len(history) + len(events),
        )

        logger.debug(
            f"Behavioral profile: {profile.data_point_count} data points, "
            f"trend={profile.performance.accuracy_trend.value}, "
            f"churn={profile.insights.risk_of_churn.value}"
        )
        return profile

    def build_user_profile(
        self,
        sessions: Sequence[SessionResult],
        progress: UserProgress,
        events: Sequence[AnalyticsEvent],
        now: datetime | None = None,
        profile_id: str = "user-profile",
    ) -> UserProfile:
        """Simplified profile derived from the behavioral one."""
        now = to_local_naive(now) if now else datetime.now()
        history = sorted(sessions, key=lambda s: s.timestamp)
        behavioral = self.build_behavioral_profile(history, progress, events, now)
        performance = behavioral.performance
        quick = performance.average_response_time < THRESHOLDS["quick_response_ms"]
        early_better, late_better = self._count_half_session_bias(history)
        _, n_back = split_level_id(progress.current_level)

        return UserProfile(
            id=profile_id,
            current_level=n_back,
            total_sessions=progress.total_sessions,
            total_training_time=progress.total_time,
            current_streak=progress.current_streak,
            longest_streak=progress.longest_streak,
            preferences=TrainingPreferences(
                preferred_time_of_day=behavioral.engagement.preferred_time_of_day,
                average_session_duration=behavioral.engagement.average_session_duration,
                preferred_mode=None,
                sessions_per_week=behavioral.engagement.average_sessions_per_week,
            ),
            trends=PerformanceTrends(
                overall_trend=performance.accuracy_trend,
                position_trend=performance.accuracy_trend,
                audio_trend=performance.accuracy_trend,
                recent_accuracies=tuple(
                    s.combined_accuracy for s in history[-self.recent_window :]
                ),
            ),
            strengths_weaknesses=StrengthsWeaknesses(
                stronger_modality=self._stronger_modality(
                    performance.position_strength, performance.audio_strength
                ),
            ),
            behavioral_patterns=BehavioralPatterns(
                responds_quickly_to_position=quick,
                responds_quickly_to_audio=quick,
                tends_to_press_match_too_often=self._has_false_alarm_tendency(history),
                tends_to_press_match_too_rarely=self._has_miss_tendency(history),
                performs_better_early_in_session=early_better > late_better,
                performs_better_late_in_session=late_better > early_better,
            ),
            last_updated=now,
        )

    # ========================================================================
    # Performance Analysis
    # ========================================================================

    def analyze_performance(self, sessions: Sequence[SessionResult]) -> PerformanceProfile:
        if not sessions:
            return PerformanceProfile()

        recent = sessions[-self.recent_window :]
        accuracies = [s.combined_accuracy for s in recent]
        response_times = self.extract_response_times(recent)

        return PerformanceProfile(
            average_accuracy=_mean(accuracies),
            accuracy_trend=classify_trend(accuracies),
            average_response_time=_mean(response_times),
            response_time_trend=classify_response_time_trend(response_times),
            position_strength=_mean([s.position_stats.accuracy for s in recent]) / 100,
            audio_strength=_mean([s.audio_stats.accuracy for s in recent]) / 100,
            common_error_patterns=tuple(self.find_error_patterns(recent)),
            fatigue_indicators=tuple(self.detect_fatigue(recent)),
        )

    @staticmethod
    def extract_response_times(sessions: Sequence[SessionResult]) -> list[float]:
        times: list[float] = []
        for session in sessions:
            for trial in session.trials:
                if trial.position_response_time is not None:
                    times.append(trial.position_response_time)
                if trial.audio_response_time is not None:
                    times.append(trial.audio_response_time)
        return times

    def find_error_patterns(self, sessions: Sequence[SessionResult]) -> list[ErrorPattern]:
        """Flag miss rates above 15% and false-alarm rates above 10% of all trials."""
        counts: Counter[ErrorPatternType] = Counter()
        total_trials = 0

        for session in sessions:
            for trial in session.trials:
                total_trials += 1
                position_pressed = trial.user_position_response is True
                audio_pressed = trial.user_audio_response is True
                if trial.is_position_match and not position_pressed:
                    counts[ErrorPatternType.POSITION_MISS] += 1
                if trial.is_audio_match and not audio_pressed:
                    counts[ErrorPatternType.AUDIO_MISS] += 1
                if not trial.is_position_match and position_pressed:
                    counts[ErrorPatternType.POSITION_FALSE_ALARM] += 1
                if not trial.is_audio_match and audio_pressed:
                    counts[ErrorPatternType.AUDIO_FALSE_ALARM] += 1

        if total_trials == 0:
            return []

        rules = (
            (ErrorPatternType.POSITION_MISS, THRESHOLDS["miss_rate"],
             "Frequently missing position matches"),
            (ErrorPatternType.AUDIO_MISS, THRESHOLDS["miss_rate"],
             "Frequently missing audio matches"),
            (ErrorPatternType.POSITION_FALSE_ALARM, THRESHOLDS["false_alarm_rate"],
             "Frequent false alarms on position"),
            (ErrorPatternType.AUDIO_FALSE_ALARM, THRESHOLDS["false_alarm_rate"],
             "Frequent false alarms on audio"),
        )

        patterns = []
        for pattern_type, threshold, context in rules:
            frequency = counts[pattern_type] / total_trials
            if frequency > threshold:
                patterns.append(ErrorPattern(pattern_type, frequency, context))
        return patterns

    def detect_fatigue(self, sessions: Sequence[SessionResult]) -> list[FatigueIndicator]:
        indicators = []
        for session in sessions:
            trials = session.trials
            if len(trials) < THRESHOLDS["fatigue_min_trials"]:
                continue

            first, second = _half_accuracies(trials)
            drop = first - second
            if drop > THRESHOLDS["fatigue_drop"]:
                severity = (
                    FatigueSeverity.SEVERE
                    if drop > THRESHOLDS["fatigue_severe_drop"]
                    else FatigueSeverity.MODERATE
                )
                indicators.append(
                    FatigueIndicator(
                        type="accuracy_drop",
                        typical_onset=len(trials) // 2,
                        severity=severity,
                    )
                )
        return indicators

    # ========================================================================
    # Learning Analysis
    # ========================================================================

    def analyze_learning(
        self,
        sessions: Sequence[SessionResult],
        progress: UserProgress,
    ) -> LearningProfile:
        attempts = Counter(s.level_id for s in sessions)
        starter_ids = {level.id for level in get_starter_levels(LEVELS)}
        plateau_detected, plateau_duration = self.detect_plateau(sessions)

        return LearningProfile(
            current_level=progress.current_level,
            progression_rate=self.progression_rate(sessions, progress),
            levels_completed=sum(
                1 for level_id in set(progress.unlocked_levels) if level_id not in starter_ids
            ),
            average_attempts_per_level=_mean(list(attempts.values())),
            plateau_detected=plateau_detected,
            plateau_duration=plateau_duration,
            recommended_next_level=self.recommend_next_level(sessions, progress),
        )

    @staticmethod
    def progression_rate(
        sessions: Sequence[SessionResult],
        progress: UserProgress,
    ) -> ProgressionRate:
        if len(sessions) < THRESHOLDS["progression_min_sessions"]:
            return ProgressionRate.NORMAL

        sessions_per_level = len(sessions) / max(1, len(progress.unlocked_levels))
        if sessions_per_level < THRESHOLDS["fast_sessions_per_level"]:
            return ProgressionRate.FAST
        if sessions_per_level > THRESHOLDS["slow_sessions_per_level"]:
            return ProgressionRate.SLOW
        return ProgressionRate.NORMAL

    @staticmethod
    def detect_plateau(sessions: Sequence[SessionResult]) -> tuple[bool, int | None]:
        """
        Plateau: flat (variance < 5) and sub-mastery (mean < 80) accuracy
        over the last 10 sessions.

        Returns:
            (detected, duration in whole days between the first and last of
            those sessions)
        """
        window = THRESHOLDS["plateau_window"]
        if len(sessions) < window:
            return False, None

        recent = sessions[-window:]
        accuracies = [s.combined_accuracy for s in recent]
        if (
            pvariance(accuracies) < THRESHOLDS["plateau_max_variance"]
            and fmean(accuracies) < THRESHOLDS["plateau_max_accuracy"]
        ):
            return True, _whole_days(recent[-1].timestamp - recent[0].timestamp)
        return False, None

    def recommend_next_level(
        self,
        sessions: Sequence[SessionResult],
        progress: UserProgress,
    ) -> str | None:
        """Next n-back within the current family once recent accuracy is >= 80."""
        if not sessions:
            return None

        recent = sessions[-self.recommendation_window :]
        if _mean([s.combined_accuracy for s in recent]) < THRESHOLDS["advance_accuracy"]:
            return None

        family, n_back = split_level_id(progress.current_level)
        if family is None or n_back >= MAX_N_BACK_LEVEL:
            return None
        return f"{family}-{n_back + 1}"

    # ========================================================================
    # Engagement Analysis
    # ========================================================================

    def analyze_engagement(
        self,
        sessions: Sequence[SessionResult],
        progress: UserProgress,
        now: datetime,
    ) -> EngagementProfile:
        week_ago = now - _WEEK
        last_session = progress.last_session_date

        return EngagementProfile(
            total_sessions=len(sessions),
            sessions_this_week=sum(1 for s in sessions if s.timestamp > week_ago),
            average_sessions_per_week=self.weekly_average(sessions),
            preferred_time_of_day=self.preferred_time_of_day([s.timestamp.hour for s in sessions]),
            average_session_duration=_mean([s.duration for s in sessions]),
            current_streak=progress.current_streak,
            longest_streak=progress.longest_streak,
            last_session_date=last_session,
            days_since_last_session=(
                _whole_days(now - last_session) if last_session is not None else None
            ),
        )

    @staticmethod
    def weekly_average(sessions: Sequence[SessionResult]) -> float:
        if not sessions:
            return 0.0
        span = sessions[-1].timestamp - sessions[0].timestamp
        weeks = max(1.0, span / _WEEK)
        return len(sessions) / weeks

    @staticmethod
    def preferred_time_of_day(hours: Sequence[int]) -> TimeOfDay | None:
        """Majority bucket; ties go to the earlier bucket in the day."""
        if not hours:
            return None
        buckets = {bucket: 0 for bucket in TimeOfDay}
        for hour in hours:
            buckets[time_of_day(hour)] += 1
        return max(buckets, key=buckets.__getitem__)

    # ========================================================================
    # Help-Seeking Analysis
    # ========================================================================

    def analyze_help_seeking(self, events: Sequence[AnalyticsEvent]) -> HelpSeekingProfile:
        help_events = [e for e in events if e.category == EventCategory.HELP]
        views = [e for e in help_events if e.type == EventType.HELP_VIEWED.value]

        durations = []
        for event in views:
            duration = event.payload.get("duration")
            is_number = isinstance(duration, (int, float)) and not isinstance(duration, bool)
            durations.append(float(duration) if is_number else 0.0)

        return HelpSeekingProfile(
            popover_view_count=len(views),
            average_popover_duration=_mean(durations),
            tour_completed=any(e.type == EventType.TOUR_COMPLETED.value for e in help_events),
            frequently_viewed_help=tuple(self.frequent_help(views)),
            help_view_trend=self.help_trend(views),
        )

    @staticmethod
    def frequent_help(events: Sequence[AnalyticsEvent]) -> list[str]:
        """Most viewed help ids, at most 5, most frequent first."""
        counts: Counter[str] = Counter()
        for event in events:
            help_id = event.payload.get("help_id")
            if isinstance(help_id, str) and help_id:
                counts[help_id] += 1
        return [help_id for help_id, _ in counts.most_common(THRESHOLDS["frequent_help_count"])]

    @staticmethod
    def help_trend(events: Sequence[AnalyticsEvent]) -> HelpTrend:
        """
        Compare the first and second halves of the chronologically sorted events.

        Needs at least 5 events.
        """
        if len(events) < THRESHOLDS["help_min_events"]:
            return HelpTrend.STABLE

        ordered = sorted(events, key=lambda e: e.timestamp)
        half = len(ordered) // 2
        first = len(ordered[:half])
        second = len(ordered[half:])

        if second > first * THRESHOLDS["help_increase_ratio"]:
            return HelpTrend.INCREASING
        if second < first * THRESHOLDS["help_decrease_ratio"]:
            return HelpTrend.DECREASING
        return HelpTrend.STABLE

    # ========================================================================
    # Insights
    # ========================================================================

    def generate_insights(
        self,
        sessions: Sequence[SessionResult],
        progress: UserProgress,
        now: datetime,
    ) -> ProfileInsights:
        strengths: list[str] = []
        improvements: list[str] = []
        motivational: list[str] = []
        interventions: list[str] = []

        if sessions:
            recent = sessions[-self.recent_window :]
            average = _mean([s.combined_accuracy for s in recent])
            position_avg = _mean([s.position_stats.accuracy for s in recent])
            audio_avg = _mean([s.audio_stats.accuracy for s in recent])

            if average >= THRESHOLDS["high_accuracy"]:
                strengths.append("Consistently high accuracy")

            if position_avg > audio_avg + THRESHOLDS["modality_gap"]:
                strengths.append("Strong spatial working memory")
                improvements.append("Practice audio-only tasks to balance skills")
            elif audio_avg > position_avg + THRESHOLDS["modality_gap"]:
                strengths.append("Strong auditory working memory")
                improvements.append("Practice position-only tasks to balance skills")

            if progress.current_streak >= THRESHOLDS["streak_motivation_days"]:
                motivational.append("Amazing consistency! Your streak shows dedication.")

            if average < THRESHOLDS["low_accuracy"]:
                improvements.append("Consider practicing at a lower n-back level")
                interventions.append("Offer to reduce difficulty")

        if (
            progress.current_streak == 0
            and progress.total_sessions > THRESHOLDS["lost_streak_min_sessions"]
        ):
            interventions.append("Send reminder to maintain streak")

        return ProfileInsights(
            strengths=tuple(strengths),
            areas_for_improvement=tuple(improvements),
            motivational_factors=tuple(motivational),
            risk_of_churn=self.assess_churn_risk(sessions, progress, now),
            suggested_interventions=tuple(interventions),
        )

    def assess_churn_risk(
        self,
        sessions: Sequence[SessionResult],
        progress: UserProgress,
        now: datetime,
    ) -> ChurnRisk:
        """
        high:   never trained, or more than 14 days idle
        medium: 7-14 days idle, or recent accuracy below 50
        low:    otherwise
        """
        if progress.last_session_date is None:
            return ChurnRisk.HIGH

        idle_days = _whole_days(now - progress.last_session_date)
        if idle_days > THRESHOLDS["churn_high_days"]:
            return ChurnRisk.HIGH
        if idle_days >= THRESHOLDS["churn_medium_days"]:
            return ChurnRisk.MEDIUM

        recent = sessions[-self.recommendation_window :]
        if recent and _mean([s.combined_accuracy for s in recent]) < THRESHOLDS["churn_low_accuracy"]:
            return ChurnRisk.MEDIUM

        return ChurnRisk.LOW

    # ========================================================================
    # Simplified-profile helpers
    # ========================================================================

    @staticmethod
    def _stronger_modality(position_strength: float, audio_strength: float) -> Modality:
        diff = position_strength - audio_strength
        if diff > THRESHOLDS["stronger_modality_gap"]:
            return Modality.POSITION
        if diff < -THRESHOLDS["stronger_modality_gap"]:
            return Modality.AUDIO
        return Modality.BALANCED

    def _has_false_alarm_tendency(self, sessions: Sequence[SessionResult]) -> bool:
        if not sessions:
            return False
        recent = sessions[-self.recommendation_window :]
        rate = _mean(
            [(s.position_stats.false_alarm_rate + s.audio_stats.false_alarm_rate) / 2 for s in recent]
        )
        return rate > THRESHOLDS["tendency_rate"]

    def _has_miss_tendency(self, sessions: Sequence[SessionResult]) -> bool:
        if not sessions:
            return False
        recent = sessions[-self.recommendation_window :]
        rate = _mean(
            [((1 - s.position_stats.hit_rate) + (1 - s.audio_stats.hit_rate)) / 2 for s in recent]
        )
        return rate > THRESHOLDS["tendency_rate"]

    def _count_half_session_bias(self, sessions: Sequence[SessionResult]) -> tuple[int, int]:
        """(sessions with a better first half, sessions with a better second half)"""
        early_better = 0
        late_better = 0
        delta = THRESHOLDS["half_session_delta"]
        for session in sessions[-self.recommendation_window :]:
            if len(session.trials) < THRESHOLDS["fatigue_min_trials"]:
                continue
            first, second = _half_accuracies(session.trials)
            if first > second + delta:
                early_better += 1
            elif second > first + delta:
                late_better += 1
        return early_better, late_better


_default_analyzer = ProfileAnalyzer()


def build_behavioral_profile(
    sessions: Sequence[SessionResult],
    progress: UserProgress,
    events: Sequence[AnalyticsEvent],
    now: datetime | None = None,
) -> UserBehavioralProfile:
    return _default_analyzer.build_behavioral_profile(sessions, progress, events, now)


def build_user_profile(
    sessions: Sequence[SessionResult],
    progress: UserProgress,
    events: Sequence[AnalyticsEvent],
    now: datetime | None = None,
) -> UserProfile:
    return _default_analyzer.build_user_profile(sessions, progress, events, now)
