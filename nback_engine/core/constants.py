"""
Engine-wide constants.

Static configuration shared by the generator, the session model and the
analyzers. Loaded once at import time and never mutated.
"""

from __future__ import annotations

# Grid
GRID_SIZE = 3
TOTAL_POSITIONS = GRID_SIZE * GRID_SIZE

# N-back range
MIN_N_BACK_LEVEL = 1
MAX_N_BACK_LEVEL = 9

# Phonetically distinct when spoken: no B/D, C/E, F/S, M/N or P/B pairs
AUDIO_LETTERS: tuple[str, ...] = ("C", "H", "K", "L", "Q", "R", "S", "T")

# Session defaults (see config.Settings for overridable values)
DEFAULT_TRIAL_DURATION_MS = 3000
DEFAULT_TRIALS_PER_SESSION = 20
DEFAULT_MATCH_PROBABILITY = 0.3
MIN_ACCURACY_FOR_PROGRESSION = 80.0
DEFAULT_DPRIME_THRESHOLD = 2.0

MS_PER_DAY = 24 * 60 * 60 * 1000
