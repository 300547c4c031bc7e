"""
Training Workflow.

Wires the training core to its ports for one user:

    start_session -> record_response / advance ... -> complete_session
                                                   -> abandon_session

Completing a session persists the result, updates totals and the streak,
unlocks levels whose criteria are now met, publishes domain events and
records analytics events. Only one session runs at a time.
"""

from __future__ import annotations

import uuid
from collections.abc import Callable
from dataclasses import dataclass
from datetime import datetime

from loguru import logger

from config import Settings, get_settings
from nback_engine.analytics.events import (
    STREAK_MILESTONES,
    AbandonReason,
    level_progress_event,
    level_unlocked_event,
    session_abandoned_event,
    session_completed_event,
    session_started_event,
    streak_milestone_event,
    trial_completed_event,
)
from nback_engine.analytics.profile_analyzer import ProfileAnalyzer
from nback_engine.analytics.profile_models import UserBehavioralProfile
from nback_engine.analytics.scoring_service import (
    PerformanceLevel,
    ScoringService,
    SessionScoringResult,
)
from nback_engine.core.errors import (
    LevelLockedError,
    NoActiveSessionError,
    SessionAlreadyActiveError,
)
from nback_engine.core.levels import build_level_progress, require_level
from nback_engine.ports.repositories import (
    AnalyticsRepository,
    EventBus,
    ProgressRepository,
    SessionRepository,
)
from nback_engine.training.domain_events import (
    LevelUnlocked,
    SessionCompleted,
    SessionStarted,
    TrialCompleted,
)
from nback_engine.training.progression import ProgressionService
from nback_engine.training.sequence_generator import SequenceConfig, SequenceGenerator
from nback_engine.training.session import (
    Clock,
    Session,
    SessionConfig,
    SessionResult,
    create_session,
    system_clock_ms,
)
from nback_engine.workflow.recommendations import Recommendation, RecommendationEngine


@dataclass(frozen=True)
class SessionOutcome:
    """Everything the presentation layer shows after a session."""

    result: SessionResult
    scoring: SessionScoringResult
    performance_level: PerformanceLevel
    meets_advancement: bool
    unlocked_levels: tuple[str, ...]
    current_streak: int

    @property
    def accuracy(self) -> float:
        return self.result.combined_accuracy

    @property
    def d_prime(self) -> float:
        return self.scoring.combined_d_prime

    @property
    def level_up(self) -> bool:
        return bool(self.unlocked_levels)


class TrainingWorkflow:
    """Runs training sessions against the repository ports."""

    def __init__(
        self,
        sessions: SessionRepository,
        progress: ProgressRepository,
        analytics: AnalyticsRepository,
        event_bus: EventBus,
        settings: Settings | None = None,
        clock: Clock | None = None,
        generator: SequenceGenerator | None = None,
        scoring: ScoringService | None = None,
        progression: ProgressionService | None = None,
        analyzer: ProfileAnalyzer | None = None,
        recommender: RecommendationEngine | None = None,
        id_factory: Callable[[], str] | None = None,
    ):
        self.sessions = sessions
        self.progress = progress
        self.analytics = analytics
        self.event_bus = event_bus
        self.settings = settings or get_settings()
        self.clock = clock or system_clock_ms
        self.generator = generator or SequenceGenerator()
        self.scoring = scoring or ScoringService()
        self.thresholds = self.settings.get_progression_config()
        self.progression = progression or ProgressionService(
            min_accuracy=self.thresholds["min_accuracy"]
        )
        self.analyzer = analyzer or ProfileAnalyzer(
            recent_window=self.settings.profile_recent_window,
            recommendation_window=self.settings.profile_recommendation_window,
        )
        self.recommender = recommender or RecommendationEngine()
        self.id_factory = id_factory or (lambda: uuid.uuid4().hex)
        self._active: Session | None = None

    # ========================================================================
    # Session lifecycle
    # ========================================================================

    @property
    def active_session(self) -> Session | None:
        return self._active

    def _now(self) -> datetime:
        return datetime.fromtimestamp(self.clock() / 1000)

    def _require_active(self) -> Session:
        if self._active is None:
            raise NoActiveSessionError("No training session is running")
        return self._active

    def start_session(self, level_id: str, seed: int | None = None) -> Session:
        """
        Generate a sequence for the level and start a session on it.

        Raises:
            UnknownLevelError: level_id is not configured
            LevelLockedError: level is configured but not unlocked
            SessionAlreadyActiveError: another session is still running
        """
        if self._active is not None:
            raise SessionAlreadyActiveError(
                f"Session {self._active.session_id} is still running"
            )

        level = require_level(level_id)
        if not self.progress.is_level_unlocked(level.id):
            raise LevelLockedError(f"Level {level.id} is locked")

        sequence_defaults = self.settings.get_sequence_config()
        generated = self.generator.generate(
            SequenceConfig(
                n_back=level.n_back,
                trial_count=sequence_defaults["trial_count"],
                mode=level.mode,
                position_match_probability=sequence_defaults["position_match_probability"],
                audio_match_probability=sequence_defaults["audio_match_probability"],
                seed=seed,
            )
        )

        session_id = self.id_factory()
        config = SessionConfig(
            level_id=level.id,
            n_back=level.n_back,
            mode=level.mode,
            trial_count=len(generated),
            trial_duration_ms=sequence_defaults["trial_duration_ms"],
        )
        session = create_session(session_id, config, generated, clock=self.clock)
        session.start()
        self._active = session

        self.event_bus.publish(SessionStarted(session_id, level_id=level.id, timestamp=self._now()))
        self.analytics.track_event(
            session_started_event(
                session_id=session_id,
                level_id=level.id,
                n_back=level.n_back,
                mode=level.mode,
                trial_count=config.trial_count,
                timestamp=self._now(),
            )
        )
        logger.info(f"Started session {session_id} on {level.id} ({config.trial_count} trials)")
        return session

    def record_response(self, position: bool | None = None, audio: bool | None = None) -> None:
        """Record button presses for the current trial. None leaves a modality untouched."""
        session = self._require_active()
        if position is not None:
            session.record_position_response(position)
        if audio is not None:
            session.record_audio_response(audio)

    def advance(self) -> bool:
        """
        Close the current trial and move to the next one.

        Returns:
            True if another trial follows, False once the sequence is exhausted
        """
        session = self._require_active()
        trial = session.get_current_trial()
        if trial is not None:
            mode = session.config.mode
            position_correct = trial.is_position_correct() if mode.includes_position else None
            audio_correct = trial.is_audio_correct() if mode.includes_audio else None
            correct = all(c for c in (position_correct, audio_correct) if c is not None)

            self.event_bus.publish(
                TrialCompleted(
                    session.session_id,
                    trial_id=trial.id,
                    correct=correct,
                    timestamp=self._now(),
                )
            )
            self.analytics.track_event(
                trial_completed_event(
                    session_id=session.session_id,
                    trial_index=trial.id,
                    position_correct=position_correct,
                    audio_correct=audio_correct,
                    position_response_time=trial.position_response_time,
                    audio_response_time=trial.audio_response_time,
                    was_position_match=trial.is_position_match,
                    was_audio_match=trial.is_audio_match,
                    timestamp=self._now(),
                )
            )
        return session.advance_to_next_trial()

    def complete_session(self) -> SessionOutcome:
        """Finish the running session and apply its effects to progress."""
        session = self._require_active()
        result = session.complete()
        now = self._now()
        scoring = self.scoring.score_trials(result.trials, result.mode)

        previous_sessions = self.sessions.find_by_level(result.level_id)
        previous_best = max(
            (s.combined_accuracy for s in previous_sessions if s.completed), default=None
        )
        self.sessions.save(result)

        progress = self.progress.get()
        previous_streak = progress.current_streak
        progress = self.progression.record_session(progress, result, now)
        self.progress.save(progress)

        unlocked = self.progression.newly_unlocked_levels(progress, self.sessions.find_all())
        for level_id in unlocked:
            self._unlock(level_id, now)

        self.event_bus.publish(
            SessionCompleted(
                result.session_id,
                level_id=result.level_id,
                accuracy=result.combined_accuracy,
                duration=result.duration,
                timestamp=now,
            )
        )
        self.analytics.track_event(
            session_completed_event(
                session_id=result.session_id,
                level_id=result.level_id,
                n_back=result.n_back,
                mode=result.mode,
                duration=result.duration,
                accuracy=result.combined_accuracy,
                position_accuracy=result.position_stats.accuracy,
                audio_accuracy=result.audio_stats.accuracy,
                d_prime_position=scoring.position_stats.d_prime,
                d_prime_audio=scoring.audio_stats.d_prime,
                timestamp=now,
            )
        )
        if previous_best is None or result.combined_accuracy > previous_best:
            self.analytics.track_event(
                level_progress_event(
                    level_id=result.level_id,
                    new_best_accuracy=result.combined_accuracy,
                    previous_best_accuracy=previous_best,
                    total_attempts=len(previous_sessions) + 1,
                    timestamp=now,
                )
            )
        streak = progress.current_streak
        if streak != previous_streak and streak in STREAK_MILESTONES:
            self.analytics.track_event(streak_milestone_event(streak, streak, timestamp=now))

        self._active = None

        outcome = SessionOutcome(
            result=result,
            scoring=scoring,
            performance_level=self.scoring.get_performance_level(scoring.combined_d_prime),
            meets_advancement=self.scoring.meets_advancement_criteria(
                scoring.combined_d_prime, self.thresholds["dprime_threshold"]
            ),
            unlocked_levels=tuple(unlocked),
            current_streak=streak,
        )
        logger.info(
            f"Completed session {result.session_id}: accuracy={outcome.accuracy:.1f}%, "
            f"d'={outcome.d_prime:.2f} ({outcome.performance_level.value})"
        )
        return outcome

    def _unlock(self, level_id: str, now: datetime) -> None:
        level = require_level(level_id)
        self.progress.unlock_level(level_id)

        unlocked_by = level.unlock_criteria.required_level if level.unlock_criteria else ""
        level_progress = build_level_progress(self.sessions.find_all())
        accuracy = level_progress[unlocked_by].best_accuracy if unlocked_by in level_progress else 0.0

        self.event_bus.publish(LevelUnlocked(level_id, level_id=level_id, timestamp=now))
        self.analytics.track_event(
            level_unlocked_event(level_id, unlocked_by=unlocked_by, accuracy=accuracy, timestamp=now)
        )
        logger.info(f"Unlocked level {level_id}")

    def abandon_session(self, reason: AbandonReason = "user_quit") -> None:
        """Discard the running session without scoring it."""
        session = self._require_active()
        self.analytics.track_event(
            session_abandoned_event(
                session_id=session.session_id,
                completed_trials=min(session.current_trial_index, len(session.get_trials())),
                total_trials=len(session.get_trials()),
                reason=reason,
                timestamp=self._now(),
            )
        )
        self._active = None
        logger.info(f"Abandoned session {session.session_id} ({reason})")

    # ========================================================================
    # Profile
    # ========================================================================

    def build_profile(self, now: datetime | None = None) -> UserBehavioralProfile:
        return self.analyzer.build_behavioral_profile(
            self.sessions.find_all(),
            self.progress.get(),
            self.analytics.get_all_events(),
            now=now or self._now(),
        )

    def recommend(self, now: datetime | None = None) -> Recommendation:
        return self.recommender.recommend(self.build_profile(now), self.progress.get())
