"""
Level Configuration and Unlock Rules.

Levels are static configuration: an ordered list of descriptors, each with an
id, display name, N-back distance, mode and an optional unlock rule. A level
is unlocked iff it has no rule, or the required level's best recorded
accuracy meets the rule's threshold.

Level ids follow "<family>-<n>" (position-2, audio-1, dual-3).
"""

from __future__ import annotations

import re
from collections.abc import Iterable, Mapping
from dataclasses import dataclass
from datetime import datetime
from typing import TYPE_CHECKING

from nback_engine.core.constants import MAX_N_BACK_LEVEL, MIN_N_BACK_LEVEL
from nback_engine.core.errors import UnknownLevelError
from nback_engine.core.modes import TrainingMode
from nback_engine.core.values import create_nback_level

if TYPE_CHECKING:
    from nback_engine.training.session import SessionResult

LEVEL_FAMILIES = ("position", "audio", "dual")

_LEVEL_NUMBER = re.compile(r"(\d+)")


@dataclass(frozen=True)
class UnlockCriteria:
    """Gate on a prerequisite level's best accuracy (0-100)."""

    required_level: str
    min_accuracy: float


@dataclass(frozen=True)
class LevelConfig:
    """A training level descriptor."""

    id: str
    name: str
    n_back: int
    mode: TrainingMode
    description: str = ""
    unlock_criteria: UnlockCriteria | None = None

    def __post_init__(self):
        create_nback_level(self.n_back)

    @property
    def requires_unlock(self) -> bool:
        return self.unlock_criteria is not None


@dataclass(frozen=True)
class LevelProgress:
    """User progress on a specific level."""

    level_id: str
    best_accuracy: float = 0.0
    total_sessions: int = 0
    last_played_at: datetime | None = None
    unlocked: bool = False


LEVELS: tuple[LevelConfig, ...] = (
    # Single position
    LevelConfig(
        id="position-1",
        name="1-Back Position",
        n_back=1,
        mode=TrainingMode.POSITION_ONLY,
        description="Match positions from 1 step ago",
    ),
    LevelConfig(
        id="position-2",
        name="2-Back Position",
        n_back=2,
        mode=TrainingMode.POSITION_ONLY,
        description="Match positions from 2 steps ago",
        unlock_criteria=UnlockCriteria("position-1", 80),
    ),
    # Single audio
    LevelConfig(
        id="audio-1",
        name="1-Back Audio",
        n_back=1,
        mode=TrainingMode.AUDIO_ONLY,
        description="Match letters from 1 step ago",
    ),
    LevelConfig(
        id="audio-2",
        name="2-Back Audio",
        n_back=2,
        mode=TrainingMode.AUDIO_ONLY,
        description="Match letters from 2 steps ago",
        unlock_criteria=UnlockCriteria("audio-1", 80),
    ),
    # Dual
    LevelConfig(
        id="dual-2",
        name="Dual 2-Back",
        n_back=2,
        mode=TrainingMode.DUAL,
        description="Match both position and audio from 2 steps ago",
        unlock_criteria=UnlockCriteria("position-2", 75),
    ),
    LevelConfig(
        id="dual-3",
        name="Dual 3-Back",
        n_back=3,
        mode=TrainingMode.DUAL,
        description="Match both position and audio from 3 steps ago",
        unlock_criteria=UnlockCriteria("dual-2", 80),
    ),
)


def get_level_by_id(level_id: str, levels: Iterable[LevelConfig] = LEVELS) -> LevelConfig | None:
    for level in levels:
        if level.id == level_id:
            return level
    return None


def require_level(level_id: str, levels: Iterable[LevelConfig] = LEVELS) -> LevelConfig:
    """Like get_level_by_id, but raises UnknownLevelError when missing."""
    level = get_level_by_id(level_id, levels)
    if level is None:
        raise UnknownLevelError(f"Unknown level: {level_id}")
    return level


def get_starter_levels(levels: Iterable[LevelConfig] = LEVELS) -> list[LevelConfig]:
    """Levels without unlock criteria (available from the start)."""
    return [level for level in levels if not level.requires_unlock]


def is_level_unlock_criteria_met(
    level: LevelConfig,
    level_progresses: Mapping[str, LevelProgress],
) -> bool:
    """
    Check whether a level's unlock rule is satisfied.

    Args:
        level: The level to check
        level_progresses: Progress records keyed by level id

    Returns:
        True when there is no rule, False when the required level has never
        been played, otherwise best_accuracy >= min_accuracy.
    """
    criteria = level.unlock_criteria
    if criteria is None:
        return True

    required = level_progresses.get(criteria.required_level)
    if required is None:
        return False

    return required.best_accuracy >= criteria.min_accuracy


def build_level_progress(
    sessions: Iterable[SessionResult],
    unlocked_levels: Iterable[str] = (),
) -> dict[str, LevelProgress]:
    """
    Fold session history into per-level progress records.

    Only completed sessions count towards best accuracy. Levels listed in
    unlocked_levels get a record even if never played.
    """
    best: dict[str, float] = {}
    counts: dict[str, int] = {}
    last_played: dict[str, datetime] = {}

    for session in sessions:
        if not session.completed:
            continue
        level_id = session.level_id
        best[level_id] = max(best.get(level_id, 0.0), session.combined_accuracy)
        counts[level_id] = counts.get(level_id, 0) + 1
        previous = last_played.get(level_id)
        if previous is None or session.timestamp > previous:
            last_played[level_id] = session.timestamp

    unlocked = set(unlocked_levels)
    progress: dict[str, LevelProgress] = {}
    for level_id in set(best) | unlocked:
        progress[level_id] = LevelProgress(
            level_id=level_id,
            best_accuracy=best.get(level_id, 0.0),
            total_sessions=counts.get(level_id, 0),
            last_played_at=last_played.get(level_id),
            unlocked=level_id in unlocked,
        )
    return progress


def evaluate_unlocked_levels(
    level_progresses: Mapping[str, LevelProgress],
    levels: Iterable[LevelConfig] = LEVELS,
) -> list[str]:
    """Ids of every level whose unlock rule is currently met, in config order."""
    return [
        level.id for level in levels if is_level_unlock_criteria_met(level, level_progresses)
    ]


def split_level_id(level_id: str) -> tuple[str | None, int]:
    """
    Split a level id into (family, n_back).

    The family is the first known family name contained in the id (None if
    there is none). The n-back is the first number in the id, falling back to
    1 when missing or outside [1, 9].
    """
    family = next((f for f in LEVEL_FAMILIES if f in level_id), None)

    match = _LEVEL_NUMBER.search(level_id)
    n_back = MIN_N_BACK_LEVEL
    if match:
        number = int(match.group(1))
        if MIN_N_BACK_LEVEL <= number <= MAX_N_BACK_LEVEL:
            n_back = number
    return family, n_back
