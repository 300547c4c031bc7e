"""
Training Modes

Defines which modality (or modalities) produce matches and are scored:
1. Position Only - spatial grid matches
2. Audio Only - spoken letter matches
3. Dual - both streams tracked simultaneously
"""

from __future__ import annotations

from enum import Enum

from nback_engine.core.errors import InvalidTrainingModeError


class TrainingMode(str, Enum):
    """Training mode for a level or session."""

    POSITION_ONLY = "position-only"
    AUDIO_ONLY = "audio-only"
    DUAL = "dual"

    @classmethod
    def parse(cls, value: str | TrainingMode) -> TrainingMode:
        """
        Convert a raw string into a TrainingMode.

        Raises:
            InvalidTrainingModeError: if the value is not a known mode
        """
        if isinstance(value, cls):
            return value
        try:
            return cls(value)
        except ValueError:
            valid = ", ".join(m.value for m in TRAINING_MODES)
            raise InvalidTrainingModeError(
                f"Invalid training mode: {value!r}. Must be one of: {valid}."
            ) from None

    @property
    def includes_position(self) -> bool:
        return self in (TrainingMode.POSITION_ONLY, TrainingMode.DUAL)

    @property
    def includes_audio(self) -> bool:
        return self in (TrainingMode.AUDIO_ONLY, TrainingMode.DUAL)

    @property
    def display_name(self) -> str:
        """Human-readable name."""
        return {
            TrainingMode.POSITION_ONLY: "Position Only",
            TrainingMode.AUDIO_ONLY: "Audio Only",
            TrainingMode.DUAL: "Dual N-Back",
        }[self]

    def combine(self, position_value: float, audio_value: float) -> float:
        """Mode-weighted combination: single modes pass through, dual averages."""
        if self is TrainingMode.POSITION_ONLY:
            return position_value
        if self is TrainingMode.AUDIO_ONLY:
            return audio_value
        return (position_value + audio_value) / 2


TRAINING_MODES: tuple[TrainingMode, ...] = tuple(TrainingMode)
