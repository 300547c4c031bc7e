"""
Recommendation Engine.

Turns a behavioral profile into a concrete next step: which level to play
and why. Only levels present in the level configuration and already
unlocked are ever suggested.
"""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass
from enum import Enum

from loguru import logger

from nback_engine.analytics.profile_models import FatigueSeverity, UserBehavioralProfile
from nback_engine.core.levels import LEVELS, LevelConfig, get_level_by_id, split_level_id
from nback_engine.ports.repositories import UserProgress

LOW_ACCURACY = 60.0


class RecommendationKind(str, Enum):
    ADVANCE = "advance"
    STAY = "stay"
    STEP_DOWN = "step_down"
    SWITCH_MODE = "switch_mode"
    TAKE_BREAK = "take_break"


@dataclass(frozen=True)
class Recommendation:
    kind: RecommendationKind
    level_id: str
    message: str


class RecommendationEngine:
    """Suggests the next level from a profile and the unlocked level set."""

    def __init__(self, levels: Iterable[LevelConfig] = LEVELS):
        self.levels = tuple(levels)

    def recommend(
        self,
        profile: UserBehavioralProfile,
        progress: UserProgress,
    ) -> Recommendation:
        recommendation = self._recommend(profile, progress)
        logger.debug(
            f"Recommendation: {recommendation.kind.value} -> {recommendation.level_id}"
        )
        return recommendation

    def _recommend(
        self,
        profile: UserBehavioralProfile,
        progress: UserProgress,
    ) -> Recommendation:
        current = progress.current_level
        performance = profile.performance
        learning = profile.learning

        if any(f.severity is FatigueSeverity.SEVERE for f in performance.fatigue_indicators):
            return Recommendation(
                RecommendationKind.TAKE_BREAK,
                current,
                "Accuracy drops sharply late in your sessions. Try shorter sessions or a break.",
            )

        next_level = learning.recommended_next_level
        if next_level is not None and self._is_playable(next_level, progress):
            return Recommendation(
                RecommendationKind.ADVANCE,
                next_level,
                f"Recent accuracy is strong. Move up to {self._name(next_level)}.",
            )

        if performance.average_accuracy < LOW_ACCURACY and profile.engagement.total_sessions > 0:
            easier = self._easier_level(current, progress)
            if easier is not None:
                return Recommendation(
                    RecommendationKind.STEP_DOWN,
                    easier,
                    f"Build confidence at {self._name(easier)} before returning.",
                )

        if learning.plateau_detected:
            alternative = self._alternative_mode(current, progress)
            if alternative is not None:
                return Recommendation(
                    RecommendationKind.SWITCH_MODE,
                    alternative,
                    f"Scores have levelled off. Mix in {self._name(alternative)} for variety.",
                )

        if next_level is not None:
            message = f"Keep practicing {self._name(current)} to unlock the next level."
        else:
            message = f"Keep practicing {self._name(current)}."
        return Recommendation(RecommendationKind.STAY, current, message)

    # ------------------------------------------------------------------

    def _is_playable(self, level_id: str, progress: UserProgress) -> bool:
        return (
            get_level_by_id(level_id, self.levels) is not None
            and level_id in progress.unlocked_levels
        )

    def _name(self, level_id: str) -> str:
        level = get_level_by_id(level_id, self.levels)
        return level.name if level is not None else level_id

    def _easier_level(self, level_id: str, progress: UserProgress) -> str | None:
        family, n_back = split_level_id(level_id)
        if family is None or n_back <= 1:
            return None
        candidate = f"{family}-{n_back - 1}"
        return candidate if self._is_playable(candidate, progress) else None

    def _alternative_mode(self, level_id: str, progress: UserProgress) -> str | None:
        family, n_back = split_level_id(level_id)
        for level in self.levels:
            other_family, other_n = split_level_id(level.id)
            if other_family != family and other_n == n_back and self._is_playable(level.id, progress):
                return level.id
        return None
