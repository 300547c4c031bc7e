"""
Ports Module - Repository contracts and in-memory adapters.
"""

from nback_engine.ports.memory import (
    InMemoryAnalyticsRepository,
    InMemoryEventBus,
    InMemoryProgressRepository,
    InMemorySessionRepository,
)
from nback_engine.ports.repositories import (
    AnalyticsRepository,
    EventBus,
    ProgressRepository,
    SessionRepository,
    UserProgress,
    create_default_progress,
)

__all__ = [
    "AnalyticsRepository",
    "EventBus",
    "ProgressRepository",
    "SessionRepository",
    "UserProgress",
    "create_default_progress",
    "InMemoryAnalyticsRepository",
    "InMemoryEventBus",
    "InMemoryProgressRepository",
    "InMemorySessionRepository",
]
