"""
Training Session.

A Session owns the ordered trial sequence for one run of a level and the
cursor into it. It is mutable during play; complete() freezes a
SessionResult snapshot.

Lifecycle:
    create_session() -> start() -> record_*_response() -> advance_to_next_trial()
    ... -> complete()

A Session must be driven by a single owner (the UI timer loop). Callers that
embed it in a threaded context serialize access per session. Abandoning a
session is simply never calling complete().
"""

from __future__ import annotations

import time
from collections.abc import Callable, Iterable
from dataclasses import dataclass
from datetime import datetime
from typing import Any

from loguru import logger

from nback_engine.core.modes import TrainingMode
from nback_engine.core.stats import (
    PerformanceRawCounts,
    PerformanceStats,
    create_empty_performance_stats,
    create_performance_stats,
)
from nback_engine.core.values import create_nback_level, parse_timestamp
from nback_engine.training.sequence_generator import GeneratedTrial
from nback_engine.training.trial import ResponseCategory, Trial

Clock = Callable[[], float]


def system_clock_ms() -> float:
    """Wall-clock time in epoch milliseconds."""
    return time.time() * 1000


# =============================================================================
# Data Models
# =============================================================================


@dataclass(frozen=True)
class SessionConfig:
    """Configuration for creating a session."""

    level_id: str
    n_back: int
    mode: TrainingMode
    trial_count: int
    trial_duration_ms: int

    def __post_init__(self):
        create_nback_level(self.n_back)
        object.__setattr__(self, "mode", TrainingMode.parse(self.mode))


@dataclass(frozen=True)
class SessionProgress:
    current: int
    total: int
    percentage: float


@dataclass(frozen=True)
class SessionResult:
    """
    Immutable snapshot of a finished (or in-flight) session.

    This is the unit handed to the session repository and consumed by the
    profile analyzer.
    """

    session_id: str
    level_id: str
    mode: TrainingMode
    n_back: int
    timestamp: datetime
    duration: float  # ms
    trials: tuple[Trial, ...]
    position_stats: PerformanceStats
    audio_stats: PerformanceStats
    combined_accuracy: float
    completed: bool

    @property
    def combined_d_prime(self) -> float:
        return self.mode.combine(self.position_stats.d_prime, self.audio_stats.d_prime)

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        return {
            "session_id": self.session_id,
            "level_id": self.level_id,
            "mode": self.mode.value,
            "n_back": self.n_back,
            "timestamp": self.timestamp.isoformat(),
            "duration": self.duration,
            "trials": [t.to_dict() for t in self.trials],
            "position_stats": self.position_stats.to_dict(),
            "audio_stats": self.audio_stats.to_dict(),
            "combined_accuracy": self.combined_accuracy,
            "completed": self.completed,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> SessionResult:
        """Create from dictionary."""
        return cls(
            session_id=data["session_id"],
            level_id=data["level_id"],
            mode=TrainingMode.parse(data["mode"]),
            n_back=create_nback_level(data["n_back"]),
            timestamp=parse_timestamp(data["timestamp"]),
            duration=data.get("duration", 0),
            trials=tuple(Trial.from_dict(t) for t in data.get("trials", [])),
            position_stats=PerformanceStats.from_dict(data["position_stats"]),
            audio_stats=PerformanceStats.from_dict(data["audio_stats"]),
            combined_accuracy=data["combined_accuracy"],
            completed=data.get("completed", True),
        )


# =============================================================================
# Scoring helpers
# =============================================================================


def count_outcomes(trials: Iterable[Trial], modality: str) -> PerformanceRawCounts:
    """
    Tally signal-detection outcomes for one modality ("position" or "audio").
    """
    counts = PerformanceRawCounts()
    for trial in trials:
        if modality == "position":
            category = trial.position_category
            latency = trial.position_response_time
        else:
            category = trial.audio_category
            latency = trial.audio_response_time

        if category is ResponseCategory.HIT:
            counts.hits += 1
        elif category is ResponseCategory.MISS:
            counts.misses += 1
        elif category is ResponseCategory.FALSE_ALARM:
            counts.false_alarms += 1
        else:
            counts.correct_rejections += 1

        if latency is not None:
            counts.response_times.append(latency)
    return counts


# =============================================================================
# Session
# =============================================================================


class Session:
    """
    Manages training session state.

    Trials are replaced by index rather than mutated in place; stats are
    recomputed from the trial log on every call, never cached.
    """

    def __init__(
        self,
        session_id: str,
        config: SessionConfig,
        trials: list[Trial],
        clock: Clock | None = None,
    ):
        self.session_id = session_id
        self.config = config
        self._trials: list[Trial] = list(trials)
        self._clock = clock or system_clock_ms
        self._current_index = 0
        self.start_time: float | None = None
        self.end_time: float | None = None
        self._completed = False

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def start(self) -> None:
        """Start the session and stamp onset of the first stimulus."""
        self.start_time = self._clock()
        self.stamp_stimulus_onset(self.start_time)
        logger.debug(f"Session {self.session_id} started ({len(self._trials)} trials)")

    def get_current_trial(self) -> Trial | None:
        """Current trial, or None once the cursor is past the end."""
        if self._current_index >= len(self._trials):
            return None
        return self._trials[self._current_index]

    @property
    def current_trial_index(self) -> int:
        return self._current_index

    def stamp_stimulus_onset(self, timestamp_ms: float | None = None) -> None:
        """
        Re-stamp onset of the current trial (e.g. after resuming from pause).

        Latency is measured against whatever onset is stamped here.
        """
        trial = self.get_current_trial()
        if trial is None:
            return
        ts = self._clock() if timestamp_ms is None else timestamp_ms
        self._trials[self._current_index] = trial.with_stimulus_timestamp(ts)

    def record_position_response(self, response: bool) -> None:
        """Record a position response on the current trial. No-op past the end."""
        trial = self.get_current_trial()
        if trial is None:
            return
        self._trials[self._current_index] = trial.record_position_response(
            response, self._clock()
        )

    def record_audio_response(self, response: bool) -> None:
        """Record an audio response on the current trial. No-op past the end."""
        trial = self.get_current_trial()
        if trial is None:
            return
        self._trials[self._current_index] = trial.record_audio_response(response, self._clock())

    def advance_to_next_trial(self) -> bool:
        """
        Move the cursor forward.

        Returns:
            True if there are more trials, False if the sequence is exhausted
        """
        if self._current_index < len(self._trials):
            self._current_index += 1
        has_more = self._current_index < len(self._trials)
        if has_more:
            self.stamp_stimulus_onset()
        return has_more

    def get_progress(self) -> SessionProgress:
        total = len(self._trials)
        percentage = (self._current_index / total) * 100 if total > 0 else 0.0
        return SessionProgress(current=self._current_index + 1, total=total, percentage=percentage)

    def is_session_complete(self) -> bool:
        return self._completed or self._current_index >= len(self._trials)

    @property
    def completed(self) -> bool:
        return self._completed

    def get_trials(self) -> tuple[Trial, ...]:
        return tuple(self._trials)

    # ------------------------------------------------------------------
    # Results
    # ------------------------------------------------------------------

    def complete(self) -> SessionResult:
        """
        Complete the session and return its results.

        end_time and the completed flag are frozen on the first call; later
        calls recompute the same stats from the same trial log.
        """
        if not self._completed:
            self.end_time = self._clock()
            self._completed = True
            logger.debug(f"Session {self.session_id} completed")
        return self.to_result()

    def to_result(self) -> SessionResult:
        """Snapshot the current state without completing the session."""
        position_stats = self._calculate_stats("position")
        audio_stats = self._calculate_stats("audio")
        combined_accuracy = self.config.mode.combine(position_stats.accuracy, audio_stats.accuracy)

        if self.start_time is not None:
            end = self.end_time if self.end_time is not None else self._clock()
            duration = end - self.start_time
        else:
            duration = 0.0

        reference_ms = self.start_time if self.start_time is not None else (
            self.end_time if self.end_time is not None else self._clock()
        )

        return SessionResult(
            session_id=self.session_id,
            level_id=self.config.level_id,
            mode=self.config.mode,
            n_back=self.config.n_back,
            timestamp=datetime.fromtimestamp(reference_ms / 1000),
            duration=duration,
            trials=tuple(self._trials),
            position_stats=position_stats,
            audio_stats=audio_stats,
            combined_accuracy=combined_accuracy,
            completed=self._completed,
        )

    def _calculate_stats(self, modality: str) -> PerformanceStats:
        mode = self.config.mode
        if modality == "position" and not mode.includes_position:
            return create_empty_performance_stats()
        if modality == "audio" and not mode.includes_audio:
            return create_empty_performance_stats()
        return create_performance_stats(count_outcomes(self._trials, modality))


def create_session(
    session_id: str,
    config: SessionConfig,
    generated: Iterable[GeneratedTrial],
    clock: Clock | None = None,
) -> Session:
    """Build a Session from generator output, stamping each trial with the current time."""
    clock = clock or system_clock_ms
    now = clock()
    trials = [
        Trial.create(
            id=i,
            position=g.position,
            audio_letter=g.audio_letter,
            is_position_match=g.is_position_match,
            is_audio_match=g.is_audio_match,
            stimulus_timestamp=now,
        )
        for i, g in enumerate(generated)
    ]
    return Session(session_id, config, trials, clock=clock)
