"""
Workflow Module - Use cases that wire the training core to its ports.

Components:
- training_workflow: Start, respond, advance, complete or abandon a session
- recommendations: Next-level suggestions from a behavioral profile
"""

from nback_engine.workflow.recommendations import (
    Recommendation,
    RecommendationEngine,
    RecommendationKind,
)
from nback_engine.workflow.training_workflow import SessionOutcome, TrainingWorkflow

__all__ = [
    "Recommendation",
    "RecommendationEngine",
    "RecommendationKind",
    "SessionOutcome",
    "TrainingWorkflow",
]
