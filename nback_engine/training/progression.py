"""
Progression Service.

Pure rules applied to UserProgress after a session completes:
- Totals (session count, training time)
- Daily streak (same day unchanged, consecutive day +1, gap resets to 1)
- Level unlocks from the best accuracy per prerequisite level

The service never touches a repository. The workflow loads progress, calls
these rules and saves the returned copy.
"""

from __future__ import annotations

from collections.abc import Iterable
from datetime import date, datetime, timedelta
from typing import TYPE_CHECKING

from loguru import logger

from nback_engine.core.constants import MIN_ACCURACY_FOR_PROGRESSION
from nback_engine.core.levels import (
    LEVELS,
    LevelConfig,
    build_level_progress,
    evaluate_unlocked_levels,
)

if TYPE_CHECKING:
    from nback_engine.ports.repositories import UserProgress
    from nback_engine.training.session import SessionResult


def _as_date(value: datetime | date) -> date:
    return value.date() if isinstance(value, datetime) else value


class ProgressionService:
    """Applies streak, totals and unlock rules to a UserProgress snapshot."""

    def __init__(
        self,
        min_accuracy: float = MIN_ACCURACY_FOR_PROGRESSION,
        levels: Iterable[LevelConfig] = LEVELS,
    ):
        self.min_accuracy = min_accuracy
        self.levels = tuple(levels)

    def update_streak(self, progress: UserProgress, now: datetime) -> UserProgress:
        """
        Return progress with the streak advanced for a session at `now`.

        Calendar days are compared, not 24-hour windows.
        """
        today = _as_date(now)
        streak = progress.current_streak

        if progress.last_session_date is None:
            streak = 1
        else:
            last = _as_date(progress.last_session_date)
            if last + timedelta(days=1) == today:
                streak += 1
            elif last != today:
                streak = 1

        return progress.model_copy(
            update={
                "current_streak": streak,
                "longest_streak": max(progress.longest_streak, streak),
                "last_session_date": now,
            }
        )

    def record_session(
        self,
        progress: UserProgress,
        result: SessionResult,
        now: datetime,
    ) -> UserProgress:
        """Add a completed session to the totals and streak."""
        updated = progress.model_copy(
            update={
                "current_level": result.level_id,
                "total_sessions": progress.total_sessions + 1,
                "total_time": progress.total_time + result.duration,
            }
        )
        return self.update_streak(updated, now)

    def newly_unlocked_levels(
        self,
        progress: UserProgress,
        sessions: Iterable[SessionResult],
    ) -> list[str]:
        """Ids of levels whose criteria are met but which are not yet unlocked."""
        level_progress = build_level_progress(sessions, progress.unlocked_levels)
        eligible = evaluate_unlocked_levels(level_progress, self.levels)
        unlocked = set(progress.unlocked_levels)
        new_levels = [level_id for level_id in eligible if level_id not in unlocked]
        if new_levels:
            logger.debug(f"Unlock criteria met for: {', '.join(new_levels)}")
        return new_levels

    def is_passing(self, accuracy: float) -> bool:
        """Whether a session accuracy (0-100) counts towards progression."""
        return accuracy >= self.min_accuracy
