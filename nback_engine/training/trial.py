"""
Trial entity.

A Trial is an immutable snapshot. Recording a response returns a new Trial
that replaces the old one at its index in the owning session.
"""

from __future__ import annotations

from dataclasses import asdict, dataclass, replace
from enum import Enum
from typing import Any

from nback_engine.core.values import Position


class ResponseCategory(str, Enum):
    """Signal detection outcome of one modality on one trial."""

    HIT = "hit"
    MISS = "miss"
    FALSE_ALARM = "false_alarm"
    CORRECT_REJECTION = "correct_rejection"

    @classmethod
    def classify(cls, is_match: bool, response: bool | None) -> ResponseCategory:
        """
        Categorize a trial outcome.

        Only an explicit True counts as a response; None (never pressed)
        is treated as "not responded", not as an error.
        """
        responded = response is True
        if is_match:
            return cls.HIT if responded else cls.MISS
        return cls.FALSE_ALARM if responded else cls.CORRECT_REJECTION


@dataclass(frozen=True)
class Trial:
    """
    A single trial in a training session.

    Attributes:
        id: Index of the trial within its session
        position: Grid index (0-8)
        audio_letter: Spoken letter
        is_position_match / is_audio_match: Lag-N match flags from the generator
        user_position_response / user_audio_response: None until recorded
        position_response_time / audio_response_time: Latency in ms, set with the response
        stimulus_timestamp: Stimulus onset (epoch ms)
    """

    id: int
    position: int
    audio_letter: str
    is_position_match: bool
    is_audio_match: bool
    user_position_response: bool | None = None
    user_audio_response: bool | None = None
    position_response_time: float | None = None
    audio_response_time: float | None = None
    stimulus_timestamp: float = 0.0

    def __post_init__(self):
        Position(self.position)

    @classmethod
    def create(
        cls,
        id: int,
        position: int,
        audio_letter: str,
        is_position_match: bool,
        is_audio_match: bool,
        stimulus_timestamp: float = 0.0,
    ) -> Trial:
        return cls(
            id=id,
            position=position,
            audio_letter=audio_letter,
            is_position_match=is_position_match,
            is_audio_match=is_audio_match,
            stimulus_timestamp=stimulus_timestamp,
        )

    # ------------------------------------------------------------------
    # Responses
    # ------------------------------------------------------------------

    def record_position_response(self, response: bool, now_ms: float) -> Trial:
        """Return a copy with the position response and its latency set (first call wins)."""
        if self.user_position_response is not None:
            return self
        return replace(
            self,
            user_position_response=response,
            position_response_time=now_ms - self.stimulus_timestamp,
        )

    def record_audio_response(self, response: bool, now_ms: float) -> Trial:
        """Return a copy with the audio response and its latency set (first call wins)."""
        if self.user_audio_response is not None:
            return self
        return replace(
            self,
            user_audio_response=response,
            audio_response_time=now_ms - self.stimulus_timestamp,
        )

    def with_stimulus_timestamp(self, timestamp_ms: float) -> Trial:
        return replace(self, stimulus_timestamp=timestamp_ms)

    # ------------------------------------------------------------------
    # Scoring helpers
    # ------------------------------------------------------------------

    @property
    def position_category(self) -> ResponseCategory:
        return ResponseCategory.classify(self.is_position_match, self.user_position_response)

    @property
    def audio_category(self) -> ResponseCategory:
        return ResponseCategory.classify(self.is_audio_match, self.user_audio_response)

    def is_position_correct(self) -> bool:
        return self.position_category in (ResponseCategory.HIT, ResponseCategory.CORRECT_REJECTION)

    def is_audio_correct(self) -> bool:
        return self.audio_category in (ResponseCategory.HIT, ResponseCategory.CORRECT_REJECTION)

    def has_response(self) -> bool:
        return self.user_position_response is not None or self.user_audio_response is not None

    # ------------------------------------------------------------------
    # Serialization
    # ------------------------------------------------------------------

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Trial:
        return cls(**data)
