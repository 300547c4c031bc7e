"""
Pytest Configuration and Fixtures.

This file configures pytest and provides shared fixtures for all tests.
"""
import pytest
import sys
from datetime import datetime, timedelta
from pathlib import Path

# Add project root to path
PROJECT_ROOT = Path(__file__).parent.parent
sys.path.insert(0, str(PROJECT_ROOT))

from nback_engine.core.modes import TrainingMode  # noqa: E402
from nback_engine.core.stats import PerformanceStats  # noqa: E402
from nback_engine.training.session import SessionResult  # noqa: E402
from nback_engine.training.trial import Trial  # noqa: E402


def pytest_configure(config):
    """Configure pytest markers."""
    config.addinivalue_line("markers", "unit: Unit tests")
    config.addinivalue_line("markers", "integration: Workflow tests over in-memory adapters")
    config.addinivalue_line("markers", "smoke: Smoke tests for CLI commands")
    config.addinivalue_line("markers", "slow: Slow tests")


def pytest_collection_modifyitems(config, items):
    """Automatically mark tests based on their location."""
    for item in items:
        # Mark based on test file location
        if "unit" in str(item.fspath):
            item.add_marker(pytest.mark.unit)
        elif "integration" in str(item.fspath):
            item.add_marker(pytest.mark.integration)
        elif "smoke" in str(item.fspath):
            item.add_marker(pytest.mark.smoke)


class FakeClock:
    """Millisecond clock advanced by hand."""

    def __init__(self, start: datetime):
        self.now_ms = start.timestamp() * 1000

    def __call__(self) -> float:
        return self.now_ms

    def advance(self, ms: float) -> None:
        self.now_ms += ms


@pytest.fixture(scope="session")
def project_root():
    """Return the project root directory."""
    return PROJECT_ROOT


@pytest.fixture
def base_time():
    """A fixed local reference time (Wednesday morning)."""
    return datetime(2024, 3, 6, 9, 30)


@pytest.fixture
def clock(base_time):
    return FakeClock(base_time)


def build_session_result(
    session_id: str = "s-1",
    level_id: str = "position-2",
    timestamp: datetime | None = None,
    combined_accuracy: float = 70.0,
    position_accuracy: float | None = None,
    audio_accuracy: float | None = None,
    mode: TrainingMode = TrainingMode.POSITION_ONLY,
    n_back: int = 2,
    duration: float = 60_000.0,
    trials: tuple[Trial, ...] = (),
    position_stats: PerformanceStats | None = None,
    audio_stats: PerformanceStats | None = None,
) -> SessionResult:
    """Hand-built SessionResult for analyzer and repository tests."""
    if position_stats is None:
        position_stats = PerformanceStats(
            accuracy=combined_accuracy if position_accuracy is None else position_accuracy
        )
    if audio_stats is None:
        audio_stats = PerformanceStats(accuracy=0.0 if audio_accuracy is None else audio_accuracy)
    return SessionResult(
        session_id=session_id,
        level_id=level_id,
        mode=mode,
        n_back=n_back,
        timestamp=timestamp or datetime(2024, 3, 1, 9, 0),
        duration=duration,
        trials=trials,
        position_stats=position_stats,
        audio_stats=audio_stats,
        combined_accuracy=combined_accuracy,
        completed=True,
    )


@pytest.fixture
def make_session_result():
    """Factory fixture for SessionResult values."""
    return build_session_result


@pytest.fixture
def daily_sessions(make_session_result):
    """Factory: one session per day ending the day before `end`, given accuracies."""

    def _build(accuracies, end=datetime(2024, 3, 6, 9, 0), level_id="position-2"):
        count = len(accuracies)
        return [
            make_session_result(
                session_id=f"s-{i}",
                level_id=level_id,
                timestamp=end - timedelta(days=count - i),
                combined_accuracy=accuracy,
            )
            for i, accuracy in enumerate(accuracies)
        ]

    return _build
