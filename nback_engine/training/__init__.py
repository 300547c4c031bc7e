"""
Training Module - Sequence generation and the trial/session model.

Components:
- sequence_generator: Seeded lag-N stimulus streams
- trial: Immutable Trial snapshots and response categories
- session: Session entity and SessionResult
- domain_events: Events published by the training workflow
- progression: Streak, totals and unlock rules
"""

from nback_engine.training.domain_events import (
    DomainEvent,
    LevelUnlocked,
    SessionCompleted,
    SessionStarted,
    TrialCompleted,
)
from nback_engine.training.progression import ProgressionService
from nback_engine.training.sequence_generator import (
    GeneratedTrial,
    SequenceConfig,
    SequenceGenerator,
    create_random_source,
    generate,
    mulberry32,
)
from nback_engine.training.session import (
    Session,
    SessionConfig,
    SessionProgress,
    SessionResult,
    create_session,
)
from nback_engine.training.trial import ResponseCategory, Trial

__all__ = [
    # Generation
    "GeneratedTrial",
    "SequenceConfig",
    "SequenceGenerator",
    "create_random_source",
    "generate",
    "mulberry32",
    # Session model
    "ResponseCategory",
    "Trial",
    "Session",
    "SessionConfig",
    "SessionProgress",
    "SessionResult",
    "create_session",
    # Events
    "DomainEvent",
    "LevelUnlocked",
    "SessionCompleted",
    "SessionStarted",
    "TrialCompleted",
    # Progression
    "ProgressionService",
]
