"""
Value objects for the training grid and N-back difficulty.

Both validate at construction: an invalid level or position would silently
corrupt every downstream statistic, so they fail immediately instead.

Timestamps entering from JSON are normalized to naive local time so they
compare with the ones the engine stamps itself.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime

from nback_engine.core.constants import (
    GRID_SIZE,
    MAX_N_BACK_LEVEL,
    MIN_N_BACK_LEVEL,
    TOTAL_POSITIONS,
)
from nback_engine.core.errors import InvalidNBackLevelError, InvalidPositionError


def is_valid_nback_level(value: object) -> bool:
    """Check whether a value is an integer N-back level in [1, 9]."""
    if isinstance(value, bool) or not isinstance(value, int):
        return False
    return MIN_N_BACK_LEVEL <= value <= MAX_N_BACK_LEVEL


def create_nback_level(value: object) -> int:
    """
    Validate and return an N-back level.

    Raises:
        InvalidNBackLevelError: if value is not an int in [1, 9]
    """
    if not is_valid_nback_level(value):
        raise InvalidNBackLevelError(
            f"Invalid N-back level: {value!r}. "
            f"Must be between {MIN_N_BACK_LEVEL} and {MAX_N_BACK_LEVEL}."
        )
    return value  # type: ignore[return-value]


def is_valid_position_index(value: object) -> bool:
    if isinstance(value, bool) or not isinstance(value, int):
        return False
    return 0 <= value < TOTAL_POSITIONS


@dataclass(frozen=True)
class Position:
    """A cell of the 3x3 grid. Equality is index equality."""

    index: int

    def __post_init__(self):
        if not is_valid_position_index(self.index):
            raise InvalidPositionError(
                f"Invalid position index: {self.index!r}. "
                f"Must be between 0 and {TOTAL_POSITIONS - 1}."
            )

    @property
    def row(self) -> int:
        return self.index // GRID_SIZE

    @property
    def col(self) -> int:
        return self.index % GRID_SIZE

    @classmethod
    def from_index(cls, index: int) -> Position:
        return cls(index)

    @classmethod
    def from_coords(cls, row: int, col: int) -> Position:
        """Create a Position from row/column coordinates."""
        if not (0 <= row < GRID_SIZE and 0 <= col < GRID_SIZE):
            raise InvalidPositionError(f"Invalid position coordinates: ({row}, {col})")
        return cls(row * GRID_SIZE + col)


def all_position_indices() -> tuple[int, ...]:
    return tuple(range(TOTAL_POSITIONS))


# =============================================================================
# Timestamps
# =============================================================================


def to_local_naive(value: datetime) -> datetime:
    """Aware timestamps are converted to local time, then the zone is dropped."""
    if value.tzinfo is None:
        return value
    return value.astimezone().replace(tzinfo=None)


def parse_timestamp(value: str | datetime) -> datetime:
    """Parse an ISO 8601 string (``Z`` suffix allowed) to naive local time."""
    if isinstance(value, str):
        if value.endswith("Z"):
            value = value[:-1] + "+00:00"
        value = datetime.fromisoformat(value)
    return to_local_naive(value)
