"""
Unit tests for the sequence generator.

Properties checked over a spread of levels, modes and seeds rather than
one fixed sequence.
"""

import pytest

from nback_engine.core.constants import AUDIO_LETTERS
from nback_engine.core.errors import InvalidNBackLevelError, InvalidTrainingModeError
from nback_engine.core.modes import TrainingMode
from nback_engine.training.sequence_generator import (
    SequenceConfig,
    SequenceGenerator,
    generate,
    mulberry32,
)

CASES = [
    (n_back, mode, seed)
    for n_back in (1, 2, 3, 5)
    for mode in TrainingMode
    for seed in (1, 42, 2024)
]


class TestMulberry32:
    def test_same_seed_same_stream(self):
        a, b = mulberry32(7), mulberry32(7)
        assert [a() for _ in range(20)] == [b() for _ in range(20)]

    def test_different_seeds_differ(self):
        a, b = mulberry32(1), mulberry32(2)
        assert [a() for _ in range(5)] != [b() for _ in range(5)]

    def test_values_in_unit_interval(self):
        rng = mulberry32(123)
        values = [rng() for _ in range(1000)]
        assert all(0.0 <= v < 1.0 for v in values)

    def test_seed_is_reduced_to_32_bits(self):
        a, b = mulberry32(2**32 + 5), mulberry32(5)
        assert a() == b()


class TestGenerateProperties:
    @pytest.mark.parametrize("n_back, mode, seed", CASES)
    def test_length_and_no_early_matches(self, n_back, mode, seed):
        trials = generate(n_back, 30, mode, seed=seed)

        assert len(trials) == 30
        for trial in trials[:n_back]:
            assert not trial.is_position_match
            assert not trial.is_audio_match

    @pytest.mark.parametrize("n_back, mode, seed", CASES)
    def test_no_consecutive_matches(self, n_back, mode, seed):
        trials = generate(n_back, 40, mode, 0.9, 0.9, seed=seed)

        for prev, cur in zip(trials, trials[1:]):
            assert not (prev.is_position_match and cur.is_position_match)
            assert not (prev.is_audio_match and cur.is_audio_match)

    @pytest.mark.parametrize("n_back, mode, seed", CASES)
    def test_match_flags_agree_with_stimuli(self, n_back, mode, seed):
        trials = generate(n_back, 40, mode, seed=seed)

        for i in range(n_back, len(trials)):
            lag = trials[i - n_back]
            assert trials[i].is_position_match == (trials[i].position == lag.position)
            assert trials[i].is_audio_match == (trials[i].audio_letter == lag.audio_letter)

    @pytest.mark.parametrize("n_back, mode, seed", CASES)
    def test_excluded_modality_never_matches(self, n_back, mode, seed):
        trials = generate(n_back, 30, mode, 1.0, 1.0, seed=seed)

        if not mode.includes_position:
            assert not any(t.is_position_match for t in trials)
        if not mode.includes_audio:
            assert not any(t.is_audio_match for t in trials)

    def test_stimuli_in_range(self):
        trials = generate(2, 50, TrainingMode.DUAL, seed=9)
        assert all(0 <= t.position <= 8 for t in trials)
        assert all(t.audio_letter in AUDIO_LETTERS for t in trials)

    def test_seeded_generation_is_deterministic(self):
        first = generate(3, 25, TrainingMode.DUAL, seed=99)
        second = generate(3, 25, TrainingMode.DUAL, seed=99)
        assert first == second

    def test_unseeded_generation_varies(self):
        sequences = {tuple(generate(2, 20, TrainingMode.DUAL)) for _ in range(5)}
        assert len(sequences) > 1

    def test_zero_probability_yields_no_matches(self):
        trials = generate(1, 30, TrainingMode.DUAL, 0.0, 0.0, seed=3)
        assert not any(t.is_position_match or t.is_audio_match for t in trials)

    def test_high_probability_alternates_matches(self):
        trials = generate(1, 21, TrainingMode.POSITION_ONLY, 1.0, 0.0, seed=3)
        flags = [t.is_position_match for t in trials]
        assert flags == [False] + [i % 2 == 1 for i in range(1, 21)]

    def test_empty_sequence(self):
        assert generate(2, 0, TrainingMode.DUAL, seed=1) == []


class TestGenerateValidation:
    @pytest.mark.parametrize("n_back", [0, 10])
    def test_invalid_n_back(self, n_back):
        with pytest.raises(InvalidNBackLevelError):
            generate(n_back, 10, TrainingMode.DUAL)

    def test_invalid_mode(self):
        with pytest.raises(InvalidTrainingModeError):
            generate(2, 10, "triple")

    def test_negative_trial_count(self):
        with pytest.raises(ValueError):
            generate(2, -1, TrainingMode.DUAL)

    @pytest.mark.parametrize("probability", [-0.1, 1.1])
    def test_probability_out_of_range(self, probability):
        with pytest.raises(ValueError):
            generate(2, 10, TrainingMode.DUAL, position_match_probability=probability)


class TestSequenceGenerator:
    def test_injected_random_source_overrides_seed(self):
        generator = SequenceGenerator()
        config = SequenceConfig(n_back=2, trial_count=10, mode=TrainingMode.DUAL, seed=1)

        with_source = generator.generate(config, random_source=mulberry32(77))
        expected = generator.generate(
            SequenceConfig(n_back=2, trial_count=10, mode=TrainingMode.DUAL, seed=77)
        )
        assert with_source == expected

    def test_class_helpers(self):
        assert SequenceGenerator.available_letters() == ("C", "H", "K", "L", "Q", "R", "S", "T")
        assert SequenceGenerator.grid_size() == 9
