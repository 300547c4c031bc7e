"""
Sequence Generator.

Builds the stimulus stream for a session: one (position, letter) pair per
trial, with lag-N match flags for each modality.

Constraints:
- No matches in the first N trials (nothing N steps back yet)
- No two consecutive matches in the same modality (runs make the task
  guessable)
- Non-match stimuli never repeat the value from N trials back, so every
  lag-N repeat in the stream is a flagged match

Randomness comes from an injected source: a zero-argument callable returning
a float in [0, 1). A seed selects the deterministic Mulberry32 source; no
seed falls back to random.random.
"""

from __future__ import annotations

import random
from collections.abc import Callable, Sequence
from dataclasses import dataclass

from loguru import logger

from nback_engine.core.constants import AUDIO_LETTERS, DEFAULT_MATCH_PROBABILITY, TOTAL_POSITIONS
from nback_engine.core.modes import TrainingMode
from nback_engine.core.values import create_nback_level

RandomSource = Callable[[], float]

_MASK32 = 0xFFFFFFFF


def _imul(a: int, b: int) -> int:
    """32-bit multiply, low word only."""
    return (a * b) & _MASK32


def mulberry32(seed: int) -> RandomSource:
    """
    Create a seeded Mulberry32 source.

    A given seed always yields the same stream of floats in [0, 1).
    """
    state = seed & _MASK32

    def next_float() -> float:
        nonlocal state
        state = (state + 0x6D2B79F5) & _MASK32
        t = _imul(state ^ (state >> 15), 1 | state)
        t = ((t + _imul(t ^ (t >> 7), 61 | t)) & _MASK32) ^ t
        return ((t ^ (t >> 14)) & _MASK32) / 4294967296

    return next_float


def create_random_source(seed: int | None = None) -> RandomSource:
    if seed is None:
        return random.random
    return mulberry32(seed)


@dataclass(frozen=True)
class SequenceConfig:
    """Configuration for sequence generation."""

    n_back: int
    trial_count: int
    mode: TrainingMode
    position_match_probability: float = DEFAULT_MATCH_PROBABILITY
    audio_match_probability: float = DEFAULT_MATCH_PROBABILITY
    seed: int | None = None


@dataclass(frozen=True)
class GeneratedTrial:
    """One element of a generated sequence. Never mutated."""

    position: int
    audio_letter: str
    is_position_match: bool
    is_audio_match: bool


class SequenceGenerator:
    """
    Generates training sequences with controlled match probabilities.

    Pure apart from the random source: no I/O, no shared state between calls.
    """

    LETTERS: tuple[str, ...] = AUDIO_LETTERS
    GRID_SIZE: int = TOTAL_POSITIONS

    def generate(
        self,
        config: SequenceConfig,
        random_source: RandomSource | None = None,
    ) -> list[GeneratedTrial]:
        """
        Generate a sequence of trials.

        Args:
            config: Sequence parameters
            random_source: Overrides the seed-derived source when given

        Returns:
            Exactly config.trial_count trials

        Raises:
            InvalidNBackLevelError: n_back outside [1, 9]
            ValueError: negative trial count or probability outside [0, 1]
        """
        n_back = create_nback_level(config.n_back)
        mode = TrainingMode.parse(config.mode)
        if config.trial_count < 0:
            raise ValueError(f"trial_count must be >= 0, got {config.trial_count}")
        for name in ("position_match_probability", "audio_match_probability"):
            value = getattr(config, name)
            if not 0.0 <= value <= 1.0:
                raise ValueError(f"{name} must be in [0.0, 1.0], got {value}")

        rng = random_source or create_random_source(config.seed)

        trials: list[GeneratedTrial] = []
        positions: list[int] = []
        letters: list[str] = []

        for i in range(config.trial_count):
            can_be_match = i >= n_back
            previous = trials[-1] if trials else None

            should_match_position = (
                can_be_match
                and mode.includes_position
                and rng() < config.position_match_probability
                and not (previous is not None and previous.is_position_match)
            )
            should_match_audio = (
                can_be_match
                and mode.includes_audio
                and rng() < config.audio_match_probability
                and not (previous is not None and previous.is_audio_match)
            )

            lag_position = positions[i - n_back] if can_be_match else None
            lag_letter = letters[i - n_back] if can_be_match else None

            if should_match_position:
                position = lag_position
            else:
                position = self._random_excluding(range(self.GRID_SIZE), lag_position, rng)

            if should_match_audio:
                letter = lag_letter
            else:
                letter = self._random_excluding(self.LETTERS, lag_letter, rng)

            positions.append(position)
            letters.append(letter)
            trials.append(
                GeneratedTrial(
                    position=position,
                    audio_letter=letter,
                    is_position_match=should_match_position,
                    is_audio_match=should_match_audio,
                )
            )

        logger.debug(
            f"Generated {len(trials)} trials (n={n_back}, mode={mode.value}, "
            f"seed={config.seed}): "
            f"{sum(t.is_position_match for t in trials)} position / "
            f"{sum(t.is_audio_match for t in trials)} audio matches"
        )
        return trials

    @staticmethod
    def _random_excluding(choices: Sequence, exclude: object, rng: RandomSource):
        """Draw uniformly from choices, resampling while the draw equals exclude."""
        while True:
            value = choices[int(rng() * len(choices))]
            if value != exclude:
                return value

    @classmethod
    def available_letters(cls) -> tuple[str, ...]:
        return cls.LETTERS

    @classmethod
    def grid_size(cls) -> int:
        return cls.GRID_SIZE


def generate(
    n_back: int,
    trial_count: int,
    mode: TrainingMode | str,
    position_match_probability: float = DEFAULT_MATCH_PROBABILITY,
    audio_match_probability: float = DEFAULT_MATCH_PROBABILITY,
    seed: int | None = None,
) -> list[GeneratedTrial]:
    """Functional entry point for SequenceGenerator.generate()."""
    config = SequenceConfig(
        n_back=n_back,
        trial_count=trial_count,
        mode=TrainingMode.parse(mode),
        position_match_probability=position_match_probability,
        audio_match_probability=audio_match_probability,
        seed=seed,
    )
    return SequenceGenerator().generate(config)
