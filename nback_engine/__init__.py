"""
N-back training engine.

Sequence generation, trial/session tracking, signal-detection scoring and
behavioral profiling for (dual) N-back working-memory training.

Packages:
- core: Value objects, statistics, level configuration
- training: Sequence generator, trials, sessions, progression
- analytics: Scoring, analytics events, profile analyzer
- ports: Repository contracts and in-memory adapters
- workflow: Session use cases and recommendations
- cli: Developer command line
"""

__version__ = "0.1.0"
