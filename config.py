"""
Configuration settings for the n-back training engine.

Uses Pydantic Settings for environment variable management with .env file support.
"""
from __future__ import annotations

from functools import lru_cache
from typing import Any, Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # ========================================
    # Session Defaults
    # ========================================
    default_trials_per_session: int = Field(
        default=20,
        ge=1,
        description="Number of trials generated for a new session",
    )
    default_trial_duration_ms: int = Field(
        default=3000,
        ge=500,
        description="Stimulus-to-stimulus interval handed to the presentation layer",
    )

    # ========================================
    # Sequence Generation
    # ========================================
    position_match_probability: float = Field(
        default=0.3,
        ge=0.0,
        le=1.0,
        description="Chance that an eligible trial becomes a position match",
    )
    audio_match_probability: float = Field(
        default=0.3,
        ge=0.0,
        le=1.0,
        description="Chance that an eligible trial becomes an audio match",
    )

    # ========================================
    # Progression
    # ========================================
    min_accuracy_for_progression: float = Field(
        default=80.0,
        description="Accuracy (0-100) treated as a passing session",
    )
    advancement_dprime_threshold: float = Field(
        default=2.0,
        description="Corrected d-prime required to advance",
    )

    # ========================================
    # Profile Analysis
    # ========================================
    profile_recent_window: int = Field(
        default=10,
        ge=1,
        description="Sessions considered for trends, plateau and error patterns",
    )
    profile_recommendation_window: int = Field(
        default=5,
        ge=1,
        description="Sessions averaged for next-level recommendation and churn",
    )

    # ========================================
    # Logging
    # ========================================
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = Field(
        default="INFO",
        description="Logging verbosity level",
    )
    log_file: str | None = Field(
        default=None,
        description="Log file path (None for stderr only)",
    )

    # ========================================
    # Helper Methods
    # ========================================
    def get_sequence_config(self) -> dict[str, Any]:
        """Get sequence generation defaults as a dictionary."""
        return {
            "trial_count": self.default_trials_per_session,
            "trial_duration_ms": self.default_trial_duration_ms,
            "position_match_probability": self.position_match_probability,
            "audio_match_probability": self.audio_match_probability,
        }

    def get_progression_config(self) -> dict[str, float]:
        """Get progression thresholds."""
        return {
            "min_accuracy": self.min_accuracy_for_progression,
            "dprime_threshold": self.advancement_dprime_threshold,
        }


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
