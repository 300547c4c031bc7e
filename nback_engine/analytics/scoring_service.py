"""
Signal-Detection Scoring.

Calculates performance metrics including accuracy and d-prime.

Two scoring paths exist side by side:
- Uncorrected (calculate_stats): rates straight from counts, d' from
  z-scores clamped to [0.001, 0.999], unrounded. Session.complete() uses
  the same rule.
- Corrected (calculate_stats_with_correction): log-linear correction
  (count + 0.5) / (total + 1), rates clamped to [0.01, 0.99] for the
  z-transform, d' rounded to 2 decimals. Used for progression decisions.

Accuracy is always computed from uncorrected counts.

Performance tiers (d'):
    < 1.0  poor
    < 2.0  fair
    < 3.0  good
    else   excellent
"""

from __future__ import annotations

from collections.abc import Iterable, Sequence
from dataclasses import dataclass
from enum import Enum

from loguru import logger

from nback_engine.core.constants import DEFAULT_DPRIME_THRESHOLD
from nback_engine.core.modes import TrainingMode
from nback_engine.core.stats import (
    PerformanceRawCounts,
    PerformanceStats,
    accuracy_from_counts,
    clamp,
    create_empty_performance_stats,
    create_performance_stats,
    inverse_normal_cdf,
    mean_response_time,
)
from nback_engine.training.trial import ResponseCategory, Trial

CORRECTED_RATE_MIN = 0.01
CORRECTED_RATE_MAX = 0.99


# =============================================================================
# Data Models
# =============================================================================


class PerformanceLevel(str, Enum):
    POOR = "poor"
    FAIR = "fair"
    GOOD = "good"
    EXCELLENT = "excellent"


@dataclass(frozen=True)
class TrialResult:
    """One modality of one trial, reduced to what scoring needs."""

    is_match: bool
    user_response: bool | None
    response_time: float | None = None


@dataclass(frozen=True)
class DualTrialResult:
    position: TrialResult
    audio: TrialResult


@dataclass(frozen=True)
class SessionScoringResult:
    """Per-modality stats plus the mode-weighted combination."""

    position_stats: PerformanceStats
    audio_stats: PerformanceStats
    combined_accuracy: float
    combined_d_prime: float


def position_results(trials: Iterable[Trial]) -> list[TrialResult]:
    return [
        TrialResult(t.is_position_match, t.user_position_response, t.position_response_time)
        for t in trials
    ]


def audio_results(trials: Iterable[Trial]) -> list[TrialResult]:
    return [
        TrialResult(t.is_audio_match, t.user_audio_response, t.audio_response_time)
        for t in trials
    ]


def _tally(trials: Iterable[TrialResult]) -> PerformanceRawCounts:
    counts = PerformanceRawCounts()
    for trial in trials:
        category = ResponseCategory.classify(trial.is_match, trial.user_response)
        if category is ResponseCategory.HIT:
            counts.hits += 1
        elif category is ResponseCategory.MISS:
            counts.misses += 1
        elif category is ResponseCategory.FALSE_ALARM:
            counts.false_alarms += 1
        else:
            counts.correct_rejections += 1

        if trial.response_time is not None:
            counts.response_times.append(trial.response_time)
    return counts


# =============================================================================
# Scoring Service
# =============================================================================


class ScoringService:
    """
    Calculates performance statistics from trial results.

    Stateless: every method is a pure function of its arguments.
    """

    def calculate_stats(self, trials: Sequence[TrialResult]) -> PerformanceStats:
        """Uncorrected stats. Empty input yields empty stats."""
        if not trials:
            return create_empty_performance_stats()
        return create_performance_stats(_tally(trials))

    def calculate_stats_with_correction(self, trials: Sequence[TrialResult]) -> PerformanceStats:
        """
        Stats with log-linear correction for extreme rates.

        A modality with no signal (or no noise) trials gets a neutral
        rate of 0.5 on that side.
        """
        if not trials:
            return create_empty_performance_stats()

        counts = _tally(trials)
        hit_rate = (
            (counts.hits + 0.5) / (counts.signal_trials + 1) if counts.signal_trials > 0 else 0.5
        )
        false_alarm_rate = (
            (counts.false_alarms + 0.5) / (counts.noise_trials + 1)
            if counts.noise_trials > 0
            else 0.5
        )

        return PerformanceStats(
            hits=counts.hits,
            misses=counts.misses,
            false_alarms=counts.false_alarms,
            correct_rejections=counts.correct_rejections,
            hit_rate=hit_rate,
            false_alarm_rate=false_alarm_rate,
            d_prime=self.calculate_d_prime(hit_rate, false_alarm_rate),
            accuracy=accuracy_from_counts(counts),
            avg_response_time=mean_response_time(counts.response_times),
        )

    def calculate_d_prime(self, hit_rate: float, false_alarm_rate: float) -> float:
        """
        d' = Z(hit_rate) - Z(false_alarm_rate), rates clamped to [0.01, 0.99].

        Rounded to 2 decimals.
        """
        z_hit = inverse_normal_cdf(clamp(hit_rate, CORRECTED_RATE_MIN, CORRECTED_RATE_MAX))
        z_fa = inverse_normal_cdf(clamp(false_alarm_rate, CORRECTED_RATE_MIN, CORRECTED_RATE_MAX))
        return round(z_hit - z_fa, 2)

    def calculate_session_result(
        self,
        position_trials: Sequence[TrialResult],
        audio_trials: Sequence[TrialResult],
        mode: TrainingMode | str,
    ) -> SessionScoringResult:
        """
        Score both modalities with correction and combine them by mode.

        Single modes report that modality verbatim; dual averages accuracy
        and d' separately.
        """
        mode = TrainingMode.parse(mode)
        position_stats = self.calculate_stats_with_correction(position_trials)
        audio_stats = self.calculate_stats_with_correction(audio_trials)

        result = SessionScoringResult(
            position_stats=position_stats,
            audio_stats=audio_stats,
            combined_accuracy=mode.combine(position_stats.accuracy, audio_stats.accuracy),
            combined_d_prime=mode.combine(position_stats.d_prime, audio_stats.d_prime),
        )
        logger.debug(
            f"Scored {mode.value} session: accuracy={result.combined_accuracy:.1f}, "
            f"d'={result.combined_d_prime:.2f}"
        )
        return result

    def calculate_dual_session_result(
        self,
        trials: Sequence[DualTrialResult],
        mode: TrainingMode | str,
    ) -> SessionScoringResult:
        return self.calculate_session_result(
            [t.position for t in trials],
            [t.audio for t in trials],
            mode,
        )

    def score_trials(
        self,
        trials: Sequence[Trial],
        mode: TrainingMode | str,
    ) -> SessionScoringResult:
        """Corrected session scoring straight from a session's trial log."""
        return self.calculate_session_result(position_results(trials), audio_results(trials), mode)

    def get_performance_level(self, d_prime: float) -> PerformanceLevel:
        if d_prime < 1:
            return PerformanceLevel.POOR
        if d_prime < 2:
            return PerformanceLevel.FAIR
        if d_prime < 3:
            return PerformanceLevel.GOOD
        return PerformanceLevel.EXCELLENT

    def meets_advancement_criteria(
        self,
        d_prime: float,
        threshold: float = DEFAULT_DPRIME_THRESHOLD,
    ) -> bool:
        return d_prime >= threshold


def create_scoring_service() -> ScoringService:
    return ScoringService()
