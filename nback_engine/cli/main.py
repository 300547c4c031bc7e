"""
Typer CLI for the n-back training engine.

Commands:
    nback preview           - Show a generated stimulus sequence
    nback simulate <level>  - Run a session with a synthetic responder
    nback levels            - Show unlock status from a session history file
    nback profile           - Build a behavioral profile from JSON files

Usage:
    nback --help
    nback preview --n-back 2 --trials 20 --mode dual --seed 42
    nback simulate position-1 --skill 0.9 --seed 7 --output history.json
    nback levels --history history.json
    nback profile --history history.json --events events.json
"""

from __future__ import annotations

import json
import sys
from datetime import datetime
from pathlib import Path
from typing import Optional

import typer
from loguru import logger
from rich import print as rprint
from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from config import get_settings
from nback_engine.analytics.events import AnalyticsEvent
from nback_engine.analytics.profile_analyzer import ProfileAnalyzer
from nback_engine.analytics.profile_models import generate_profile_summary
from nback_engine.core.errors import NBackEngineError
from nback_engine.core.levels import (
    LEVELS,
    build_level_progress,
    is_level_unlock_criteria_met,
)
from nback_engine.core.modes import TRAINING_MODES, TrainingMode
from nback_engine.core.stats import PerformanceStats
from nback_engine.core.values import Position
from nback_engine.ports.memory import (
    InMemoryAnalyticsRepository,
    InMemoryEventBus,
    InMemoryProgressRepository,
    InMemorySessionRepository,
)
from nback_engine.ports.repositories import UserProgress, create_default_progress
from nback_engine.training.sequence_generator import generate, mulberry32
from nback_engine.training.session import SessionResult
from nback_engine.workflow.training_workflow import TrainingWorkflow

console = Console()

MODE_CHOICES = ", ".join(mode.value for mode in TRAINING_MODES)

app = typer.Typer(
    name="nback",
    help="Dual N-back training engine: sequences, scoring and behavioral profiles",
    no_args_is_help=True,
)


# =============================================================================
# Helpers
# =============================================================================


def _fail(message: str) -> None:
    rprint(f"[red]Error:[/red] {message}")
    raise typer.Exit(code=1)


def _load_json(path: Path) -> object:
    try:
        return json.loads(path.read_text(encoding="utf-8"))
    except FileNotFoundError:
        _fail(f"File not found: {path}")
    except json.JSONDecodeError as e:
        _fail(f"Invalid JSON in {path}: {e}")


def _load_history(path: Path | None) -> list[SessionResult]:
    if path is None:
        return []
    data = _load_json(path)
    if not isinstance(data, list):
        _fail(f"{path} must contain a JSON list of sessions")
    return [SessionResult.from_dict(item) for item in data]


def _load_events(path: Path | None) -> list[AnalyticsEvent]:
    if path is None:
        return []
    data = _load_json(path)
    if not isinstance(data, list):
        _fail(f"{path} must contain a JSON list of events")
    return [AnalyticsEvent.model_validate(item) for item in data]


def _load_progress(path: Path | None, history: list[SessionResult]) -> UserProgress:
    if path is not None:
        return UserProgress.model_validate(_load_json(path))

    progress = create_default_progress()
    if not history:
        return progress
    latest = max(history, key=lambda s: s.timestamp)
    return progress.model_copy(
        update={
            "current_level": latest.level_id,
            "total_sessions": len(history),
            "total_time": sum(s.duration for s in history),
            "last_session_date": latest.timestamp,
        }
    )


def _format_position(index: int) -> str:
    position = Position(index)
    return f"{index} ({position.row},{position.col})"


def _stats_row(label: str, stats: PerformanceStats) -> list[str]:
    avg_rt = f"{stats.avg_response_time:.0f}" if stats.avg_response_time is not None else "-"
    return [
        label,
        str(stats.hits),
        str(stats.misses),
        str(stats.false_alarms),
        str(stats.correct_rejections),
        f"{stats.hit_rate:.2f}",
        f"{stats.false_alarm_rate:.2f}",
        f"{stats.d_prime:.2f}",
        f"{stats.accuracy:.1f}%",
        avg_rt,
    ]


class _SimulatedClock:
    """Millisecond clock that only moves when told to."""

    def __init__(self, start_ms: float):
        self.now_ms = start_ms

    def __call__(self) -> float:
        return self.now_ms

    def tick(self, ms: float) -> None:
        self.now_ms += ms


# =============================================================================
# Commands
# =============================================================================


@app.command("preview")
def preview(
    n_back: int = typer.Option(2, "--n-back", "-n", help="N-back distance (1-9)"),
    trials: int = typer.Option(20, "--trials", "-t", help="Number of trials"),
    mode: str = typer.Option("dual", "--mode", "-m", help=f"One of: {MODE_CHOICES}"),
    seed: Optional[int] = typer.Option(None, "--seed", "-s", help="Seed for a reproducible sequence"),
) -> None:
    """
    Show a generated stimulus sequence.
    """
    try:
        sequence = generate(n_back, trials, TrainingMode.parse(mode), seed=seed)
    except (NBackEngineError, ValueError) as e:
        _fail(str(e))

    table = Table(title=f"{n_back}-Back Sequence ({mode})")
    table.add_column("#", justify="right", style="dim")
    table.add_column("Position")
    table.add_column("Letter")
    table.add_column("Pos Match", justify="center")
    table.add_column("Audio Match", justify="center")

    for i, trial in enumerate(sequence):
        table.add_row(
            str(i),
            _format_position(trial.position),
            trial.audio_letter,
            "[green]YES[/green]" if trial.is_position_match else "",
            "[green]YES[/green]" if trial.is_audio_match else "",
        )

    console.print(table)
    position_matches = sum(t.is_position_match for t in sequence)
    audio_matches = sum(t.is_audio_match for t in sequence)
    rprint(f"\nMatches: position={position_matches} audio={audio_matches}")


@app.command("simulate")
def simulate(
    level_id: str = typer.Argument(..., help="Level id, e.g. position-1 or dual-2"),
    skill: float = typer.Option(0.9, "--skill", help="Chance of a correct decision per modality"),
    seed: Optional[int] = typer.Option(None, "--seed", "-s", help="Seed for sequence and responder"),
    latency_ms: float = typer.Option(650.0, "--latency", help="Simulated response latency (ms)"),
    output: Optional[Path] = typer.Option(
        None, "--output", "-o", help="Append the session result to this JSON history file"
    ),
) -> None:
    """
    Run a full session on a level with a synthetic responder.

    Prints uncorrected and corrected stats, the performance tier and whether
    the session meets the advancement criteria.
    """
    if not 0.0 <= skill <= 1.0:
        _fail("--skill must be between 0 and 1")

    history = _load_history(output) if output is not None and output.exists() else []
    progress = _load_progress(None, history)
    progress = progress.model_copy(update={"unlocked_levels": [level.id for level in LEVELS]})

    clock = _SimulatedClock(datetime.now().timestamp() * 1000)
    workflow = TrainingWorkflow(
        sessions=InMemorySessionRepository(history),
        progress=InMemoryProgressRepository(progress),
        analytics=InMemoryAnalyticsRepository(),
        event_bus=InMemoryEventBus(),
        clock=clock,
    )

    try:
        session = workflow.start_session(level_id, seed=seed)
    except (NBackEngineError, ValueError) as e:
        _fail(str(e))

    responder = mulberry32(seed + 1) if seed is not None else mulberry32(int(clock() % 2**32))
    mode = session.config.mode
    trial_duration = session.config.trial_duration_ms

    while True:
        trial = session.get_current_trial()
        if trial is None:
            break
        clock.tick(latency_ms)
        position = None
        audio = None
        if mode.includes_position:
            correct = responder() < skill
            pressed = trial.is_position_match if correct else not trial.is_position_match
            position = True if pressed else None
        if mode.includes_audio:
            correct = responder() < skill
            pressed = trial.is_audio_match if correct else not trial.is_audio_match
            audio = True if pressed else None
        workflow.record_response(position=position, audio=audio)
        clock.tick(max(0.0, trial_duration - latency_ms))
        if not workflow.advance():
            break

    outcome = workflow.complete_session()
    result = outcome.result

    table = Table(title=f"Session {result.session_id[:8]} on {result.level_id}")
    for column in ("Scoring", "Hit", "Miss", "FA", "CR", "HR", "FAR", "d'", "Acc", "RT"):
        table.add_column(column, justify="right" if column != "Scoring" else "left")
    if mode.includes_position:
        table.add_row(*_stats_row("position", result.position_stats))
        table.add_row(*_stats_row("position (corr.)", outcome.scoring.position_stats))
    if mode.includes_audio:
        table.add_row(*_stats_row("audio", result.audio_stats))
        table.add_row(*_stats_row("audio (corr.)", outcome.scoring.audio_stats))
    console.print(table)

    verdict = "[green]yes[/green]" if outcome.meets_advancement else "[yellow]no[/yellow]"
    console.print(
        Panel(
            f"Accuracy: {outcome.accuracy:.1f}%\n"
            f"Corrected d': {outcome.d_prime:.2f} ({outcome.performance_level.value})\n"
            f"Meets advancement: {verdict}",
            title="[bold]Result[/bold]",
            border_style="blue",
        )
    )

    if output is not None:
        history.append(result)
        output.write_text(
            json.dumps([s.to_dict() for s in history], indent=2), encoding="utf-8"
        )
        rprint(f"[dim]Saved {len(history)} session(s) to {output}[/dim]")


@app.command("levels")
def levels(
    history: Optional[Path] = typer.Option(
        None, "--history", help="JSON list of session results"
    ),
) -> None:
    """
    Show every level with its unlock rule and current status.
    """
    sessions = _load_history(history)
    progress_by_level = build_level_progress(sessions)

    table = Table(title="Levels")
    table.add_column("Level")
    table.add_column("Mode")
    table.add_column("N", justify="right")
    table.add_column("Requires")
    table.add_column("Best", justify="right")
    table.add_column("Status")

    for level in LEVELS:
        record = progress_by_level.get(level.id)
        criteria = level.unlock_criteria
        requires = f"{criteria.required_level} >= {criteria.min_accuracy:.0f}%" if criteria else "-"
        unlocked = is_level_unlock_criteria_met(level, progress_by_level)
        table.add_row(
            level.id,
            level.mode.display_name,
            str(level.n_back),
            requires,
            f"{record.best_accuracy:.1f}%" if record else "-",
            "[green]unlocked[/green]" if unlocked else "[red]locked[/red]",
        )

    console.print(table)


@app.command("profile")
def profile(
    history: Optional[Path] = typer.Option(None, "--history", help="JSON list of session results"),
    progress_file: Optional[Path] = typer.Option(None, "--progress", help="UserProgress JSON"),
    events: Optional[Path] = typer.Option(None, "--events", help="JSON list of analytics events"),
    as_json: bool = typer.Option(False, "--json", help="Print the full profile as JSON"),
) -> None:
    """
    Build a behavioral profile from session history and analytics events.
    """
    settings = get_settings()
    sessions = _load_history(history)
    event_log = _load_events(events)
    progress = _load_progress(progress_file, sessions)

    analyzer = ProfileAnalyzer(
        recent_window=settings.profile_recent_window,
        recommendation_window=settings.profile_recommendation_window,
    )
    now = datetime.now()
    behavioral = analyzer.build_behavioral_profile(sessions, progress, event_log, now=now)

    if as_json:
        print(json.dumps(behavioral.to_dict(), indent=2))
        return

    user_profile = analyzer.build_user_profile(sessions, progress, event_log, now=now)
    console.print(Panel(generate_profile_summary(user_profile), title="[bold]Profile[/bold]"))

    perf = behavioral.performance
    learning = behavioral.learning
    insights = behavioral.insights

    table = Table(show_header=False)
    table.add_column("Metric", style="cyan")
    table.add_column("Value")
    table.add_row("Average accuracy", f"{perf.average_accuracy:.1f}%")
    table.add_row("Accuracy trend", perf.accuracy_trend.value)
    table.add_row("Response time trend", perf.response_time_trend.value)
    table.add_row("Position / audio strength", f"{perf.position_strength:.2f} / {perf.audio_strength:.2f}")
    table.add_row("Progression rate", learning.progression_rate.value)
    table.add_row("Plateau", "yes" if learning.plateau_detected else "no")
    table.add_row("Recommended next level", learning.recommended_next_level or "-")
    table.add_row("Churn risk", insights.risk_of_churn.value)
    console.print(table)

    for title, items in (
        ("Strengths", insights.strengths),
        ("Areas for improvement", insights.areas_for_improvement),
        ("Interventions", insights.suggested_interventions),
    ):
        if items:
            rprint(f"\n[bold]{title}[/bold]")
            for item in items:
                rprint(f"  - {item}")


# =============================================================================
# Entry Point
# =============================================================================


def main() -> None:
    """CLI entry point."""
    settings = get_settings()

    logger.remove()
    logger.add(
        sys.stderr,
        level=settings.log_level,
        format="<dim>{time:HH:mm:ss}</dim> | <level>{level: <8}</level> | {message}",
    )
    if settings.log_file:
        logger.add(settings.log_file, level="DEBUG", rotation="10 MB")

    app()


if __name__ == "__main__":
    main()
