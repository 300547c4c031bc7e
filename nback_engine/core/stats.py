"""
Performance Statistics.

Signal detection theory metrics for a set of trials in one modality:

    hit rate         = hits / (hits + misses)
    false alarm rate = false_alarms / (false_alarms + correct_rejections)
    d'               = Z(hit rate) - Z(false alarm rate)

Stats are never stored independently of their raw counts. Every
PerformanceStats value is produced from PerformanceRawCounts by
create_performance_stats(), so derived rates cannot drift from the counts.

Z is the inverse standard normal CDF, computed with Acklam's rational
approximation (absolute error ~1.15e-9).
"""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from typing import Any

# =============================================================================
# Inverse normal CDF (Acklam)
# =============================================================================

_A = (
    -3.969683028665376e01,
    2.209460984245205e02,
    -2.759285104469687e02,
    1.383577518672690e02,
    -3.066479806614716e01,
    2.506628277459239e00,
)
_B = (
    -5.447609879822406e01,
    1.615858368580409e02,
    -1.556989798598866e02,
    6.680131188771972e01,
    -1.328068155288572e01,
)
_C = (
    -7.784894002430293e-03,
    -3.223964580411365e-01,
    -2.400758277161838e00,
    -2.549732539343734e00,
    4.374664141464968e00,
    2.938163982698783e00,
)
_D = (
    7.784695709041462e-03,
    3.224671290700398e-01,
    2.445134137142996e00,
    3.754408661907416e00,
)

P_LOW = 0.02425
P_HIGH = 1 - P_LOW

# Uncorrected z-scores clamp here to keep d' finite
Z_CLAMP_MIN = 0.001
Z_CLAMP_MAX = 0.999


def inverse_normal_cdf(p: float) -> float:
    """
    Inverse of the standard normal CDF (probit).

    Args:
        p: Probability strictly between 0 and 1

    Returns:
        z such that Phi(z) == p

    Raises:
        ValueError: if p is outside the open interval (0, 1)
    """
    if not 0.0 < p < 1.0:
        raise ValueError(f"Probability must be in (0, 1), got {p}")

    if p < P_LOW:
        q = math.sqrt(-2 * math.log(p))
        return (((((_C[0] * q + _C[1]) * q + _C[2]) * q + _C[3]) * q + _C[4]) * q + _C[5]) / (
            (((_D[0] * q + _D[1]) * q + _D[2]) * q + _D[3]) * q + 1
        )

    if p <= P_HIGH:
        q = p - 0.5
        r = q * q
        return (
            (((((_A[0] * r + _A[1]) * r + _A[2]) * r + _A[3]) * r + _A[4]) * r + _A[5]) * q
        ) / (((((_B[0] * r + _B[1]) * r + _B[2]) * r + _B[3]) * r + _B[4]) * r + 1)

    q = math.sqrt(-2 * math.log(1 - p))
    return -(((((_C[0] * q + _C[1]) * q + _C[2]) * q + _C[3]) * q + _C[4]) * q + _C[5]) / (
        (((_D[0] * q + _D[1]) * q + _D[2]) * q + _D[3]) * q + 1
    )


def clamp(value: float, lower: float, upper: float) -> float:
    return max(lower, min(upper, value))


def z_score(p: float) -> float:
    """Z-transform a rate, clamped to [0.001, 0.999] so 0 and 1 stay finite."""
    return inverse_normal_cdf(clamp(p, Z_CLAMP_MIN, Z_CLAMP_MAX))


# =============================================================================
# Data Models
# =============================================================================


@dataclass
class PerformanceRawCounts:
    """Outcome tallies for one modality, plus every recorded latency (ms)."""

    hits: int = 0
    misses: int = 0
    false_alarms: int = 0
    correct_rejections: int = 0
    response_times: list[float] = field(default_factory=list)

    @property
    def signal_trials(self) -> int:
        return self.hits + self.misses

    @property
    def noise_trials(self) -> int:
        return self.false_alarms + self.correct_rejections

    @property
    def total(self) -> int:
        return self.signal_trials + self.noise_trials


@dataclass(frozen=True)
class PerformanceStats:
    """
    Performance metrics for a session or trial set.

    Attributes:
        hits: Correct match identifications
        misses: Matches the user did not claim
        false_alarms: Match claims on non-match trials
        correct_rejections: Non-matches correctly left alone
        hit_rate: hits / signal trials
        false_alarm_rate: false_alarms / noise trials
        d_prime: Sensitivity from signal detection theory
        accuracy: (hits + correct_rejections) / total * 100
        avg_response_time: Mean latency in ms, None if nothing was timed
    """

    hits: int = 0
    misses: int = 0
    false_alarms: int = 0
    correct_rejections: int = 0
    hit_rate: float = 0.0
    false_alarm_rate: float = 0.0
    d_prime: float = 0.0
    accuracy: float = 0.0
    avg_response_time: float | None = None

    @property
    def total_trials(self) -> int:
        return self.hits + self.misses + self.false_alarms + self.correct_rejections

    def to_dict(self) -> dict[str, Any]:
        return {
            "hits": self.hits,
            "misses": self.misses,
            "false_alarms": self.false_alarms,
            "correct_rejections": self.correct_rejections,
            "hit_rate": self.hit_rate,
            "false_alarm_rate": self.false_alarm_rate,
            "d_prime": self.d_prime,
            "accuracy": self.accuracy,
            "avg_response_time": self.avg_response_time,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> PerformanceStats:
        return cls(**data)


def mean_response_time(response_times: list[float]) -> float | None:
    if not response_times:
        return None
    return sum(response_times) / len(response_times)


def accuracy_from_counts(counts: PerformanceRawCounts) -> float:
    """Percentage of correct decisions, using uncorrected counts."""
    if counts.total == 0:
        return 0.0
    return (counts.hits + counts.correct_rejections) / counts.total * 100


def create_performance_stats(counts: PerformanceRawCounts) -> PerformanceStats:
    """
    Derive uncorrected stats from raw counts.

    Rates default to 0 when their denominator is empty (never NaN); d' uses
    clamped z-scores and is left unrounded.
    """
    hit_rate = counts.hits / counts.signal_trials if counts.signal_trials > 0 else 0.0
    false_alarm_rate = (
        counts.false_alarms / counts.noise_trials if counts.noise_trials > 0 else 0.0
    )

    return PerformanceStats(
        hits=counts.hits,
        misses=counts.misses,
        false_alarms=counts.false_alarms,
        correct_rejections=counts.correct_rejections,
        hit_rate=hit_rate,
        false_alarm_rate=false_alarm_rate,
        d_prime=z_score(hit_rate) - z_score(false_alarm_rate),
        accuracy=accuracy_from_counts(counts),
        avg_response_time=mean_response_time(counts.response_times),
    )


def create_empty_performance_stats() -> PerformanceStats:
    """Zeroed stats for an unscored modality or an empty trial set."""
    return PerformanceStats()
