"""
Engine exceptions.

Only construction-time validation raises. Everything else in the engine is a
total function with a sensible default (empty stats, no-op recording).
"""

from __future__ import annotations


class NBackEngineError(Exception):
    """Base class for engine errors."""
    pass


class InvalidNBackLevelError(NBackEngineError, ValueError):
    """Raised when an N-back level falls outside [1, 9]."""
    pass


class InvalidPositionError(NBackEngineError, ValueError):
    """Raised when a grid position index or coordinate is out of range."""
    pass


class InvalidTrainingModeError(NBackEngineError, ValueError):
    """Raised when a training mode string is not recognised."""
    pass


class UnknownLevelError(NBackEngineError, LookupError):
    """Raised when a level id is not present in the level configuration."""
    pass


class NoActiveSessionError(NBackEngineError, RuntimeError):
    """Raised by the workflow when an operation needs a running session."""
    pass


class LevelLockedError(NBackEngineError, PermissionError):
    """Raised when starting a session on a level that is not unlocked yet."""
    pass


class SessionAlreadyActiveError(NBackEngineError, RuntimeError):
    """Raised when starting a session while another one is still running."""
    pass
