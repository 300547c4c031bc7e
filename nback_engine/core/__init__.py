"""
Core Module - Shared value objects, statistics and level configuration.

Components:
- constants: Grid size, audio alphabet, defaults
- errors: Construction-time validation errors
- modes: TrainingMode (position-only, audio-only, dual)
- values: NBackLevel validation, grid Position, timestamp normalization
- stats: PerformanceStats and the inverse normal CDF
- levels: Level descriptors and unlock evaluation

Design Principle:
training/ and analytics/ import from core/ rather than re-deriving these
concepts.
"""

from nback_engine.core.constants import (
    AUDIO_LETTERS,
    GRID_SIZE,
    MAX_N_BACK_LEVEL,
    MIN_N_BACK_LEVEL,
    TOTAL_POSITIONS,
)
from nback_engine.core.errors import (
    InvalidNBackLevelError,
    InvalidPositionError,
    InvalidTrainingModeError,
    LevelLockedError,
    NBackEngineError,
    NoActiveSessionError,
    SessionAlreadyActiveError,
    UnknownLevelError,
)
from nback_engine.core.levels import (
    LEVELS,
    LevelConfig,
    LevelProgress,
    UnlockCriteria,
    build_level_progress,
    evaluate_unlocked_levels,
    get_level_by_id,
    get_starter_levels,
    is_level_unlock_criteria_met,
)
from nback_engine.core.modes import TRAINING_MODES, TrainingMode
from nback_engine.core.stats import (
    PerformanceRawCounts,
    PerformanceStats,
    create_empty_performance_stats,
    create_performance_stats,
    inverse_normal_cdf,
)
from nback_engine.core.values import (
    Position,
    create_nback_level,
    is_valid_nback_level,
    parse_timestamp,
    to_local_naive,
)

__all__ = [
    # Constants
    "AUDIO_LETTERS",
    "GRID_SIZE",
    "MAX_N_BACK_LEVEL",
    "MIN_N_BACK_LEVEL",
    "TOTAL_POSITIONS",
    # Errors
    "NBackEngineError",
    "InvalidNBackLevelError",
    "InvalidPositionError",
    "InvalidTrainingModeError",
    "LevelLockedError",
    "NoActiveSessionError",
    "SessionAlreadyActiveError",
    "UnknownLevelError",
    # Values
    "TRAINING_MODES",
    "TrainingMode",
    "Position",
    "create_nback_level",
    "is_valid_nback_level",
    "parse_timestamp",
    "to_local_naive",
    # Stats
    "PerformanceRawCounts",
    "PerformanceStats",
    "create_performance_stats",
    "create_empty_performance_stats",
    "inverse_normal_cdf",
    # Levels
    "LEVELS",
    "LevelConfig",
    "LevelProgress",
    "UnlockCriteria",
    "build_level_progress",
    "evaluate_unlocked_levels",
    "get_level_by_id",
    "get_starter_levels",
    "is_level_unlock_criteria_met",
]
