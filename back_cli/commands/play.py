"""Run a guided exercise session."""

from __future__ import annotations

import logging
import threading
from contextlib import nullcontext
from pathlib import Path
from typing import Any, Dict, List, Optional

import typer
from rich.console import Group
from rich.live import Live
from rich.panel import Panel
from rich.progress_bar import ProgressBar
from rich.table import Table

from back_cli.commands.common import (
    build_audio_port,
    get_state,
    history_store,
    print_error,
    print_json_payload,
    resolve_catalog,
)
from back_cli.core.clock import ManualClock, ThreadingClock
from back_cli.core.config import ConfigError, engine_options_from_config
from back_cli.core.engine import SessionEngine
from back_cli.core.history import HistoryError
from back_cli.core.models import SessionSnapshot, SessionStage, SessionSummary
from back_cli.core.state import CLIState
from back_cli.utils.formatting import (
    format_clock,
    format_progress,
    format_rep,
    phase_label,
    stage_label,
)

logger = logging.getLogger(__name__)

POLL_SECONDS = 0.2
SUMMARY_WAIT_SECONDS = 5.0


def render_snapshot(snapshot: SessionSnapshot, first_reps: int = 0) -> Panel:
    """Rich renderable for the live session card."""
    exercise = snapshot.current_exercise
    title = exercise.title if exercise else "Warm-up"
    upcoming = snapshot.upcoming_exercise.title if snapshot.upcoming_exercise else "—"

    grid = Table.grid(padding=(0, 2))
    grid.add_column(style="bold")
    grid.add_column()
    grid.add_row("Phase", f"{phase_label(snapshot.phase)}  {format_clock(snapshot.phase_remaining)}")
    grid.add_row("Rep", format_rep(snapshot, first_reps))
    grid.add_row("Elapsed", format_clock(snapshot.total_elapsed_seconds))
    grid.add_row("Next", upcoming)
    if snapshot.spoken_prompt:
        grid.add_row("Prompt", snapshot.spoken_prompt)

    bar = ProgressBar(total=1.0, completed=snapshot.progress)
    return Panel(
        Group(grid, bar),
        title=f"{title} [{stage_label(snapshot.stage)}]",
        subtitle=format_progress(snapshot.progress),
    )


def run_simulation(engine: SessionEngine, clock: ManualClock) -> SessionStage:
    """Drive the engine to completion without waiting on the wall clock."""
    limit = engine.options.prepare_seconds + sum(item.nominal_seconds for item in engine.exercises)
    limit = (limit + len(engine.exercises) + 10) * 10

    engine.start()
    while engine.stage is not SessionStage.completed and clock.ticks < limit:
        if engine.stage is SessionStage.waiting_for_next_exercise:
            engine.start()
            continue
        clock.advance()
    return engine.stage


def _prompt_after_interrupt(engine: SessionEngine) -> bool:
    """Ask what to do after Ctrl+C. Returns False when the session should end."""
    choice = typer.prompt("Paused. [r]esume, [s]kip or [q]uit", default="r").strip().lower()
    if choice.startswith("q"):
        engine.stop()
        return False
    if choice.startswith("s"):
        engine.skip()
        if engine.stage is SessionStage.paused:
            engine.start()
        return True
    engine.start()
    return True


def run_live(engine: SessionEngine, state: CLIState, delivered: threading.Event) -> SessionStage:
    """Run on the wall clock, rendering until the session completes or is stopped.

    ``delivered`` is set by the summary consumer. The stage flips to completed
    just before the summary is handed over on the clock thread, so a completed
    stage alone does not end the loop.
    """
    first_reps = engine.exercises[0].reps
    use_live = state.interactive
    last_phase: Dict[str, Any] = {}

    def _plain_listener(snapshot: SessionSnapshot) -> None:
        key = (snapshot.stage, snapshot.phase, snapshot.current_exercise_index, snapshot.current_rep)
        if last_phase.get("key") == key:
            return
        last_phase["key"] = key
        title = snapshot.current_exercise.title if snapshot.current_exercise else ""
        typer.echo(
            f"{snapshot.stage.value}\t{snapshot.phase.value}\t{title}\t"
            f"{format_rep(snapshot, first_reps)}\t{snapshot.total_elapsed_seconds}"
        )

    unsubscribe = engine.subscribe(_plain_listener) if state.plain_output else None
    live = Live(render_snapshot(engine.snapshot(), first_reps), console=state.console, refresh_per_second=4)
    live_ctx = live if use_live else nullcontext()

    engine.start()
    try:
        with live_ctx:
            while True:
                try:
                    snapshot = engine.snapshot()
                    if use_live:
                        live.update(render_snapshot(snapshot, first_reps))
                    if delivered.is_set() or snapshot.stage is SessionStage.idle:
                        break
                    if snapshot.stage is SessionStage.completed:
                        if not delivered.wait(SUMMARY_WAIT_SECONDS):
                            logger.warning("Session completed but no summary arrived")
                        break
                    if snapshot.stage is SessionStage.waiting_for_next_exercise:
                        if use_live:
                            live.stop()
                        title = snapshot.current_exercise.title if snapshot.current_exercise else "next exercise"
                        if typer.confirm(f"Start {title}?", default=True):
                            engine.start()
                        else:
                            engine.stop()
                        if use_live:
                            live.start()
                        continue
                    delivered.wait(POLL_SECONDS)
                except KeyboardInterrupt:
                    engine.pause()
                    if use_live:
                        live.stop()
                    keep_going = _prompt_after_interrupt(engine)
                    if use_live:
                        live.start()
                    if not keep_going:
                        break
    finally:
        if unsubscribe is not None:
            unsubscribe()
    return engine.stage


def _summary_payload(summary: Optional[SessionSummary], record_id: Optional[str], stage: SessionStage) -> Dict[str, Any]:
    return {
        "status": "completed" if stage is SessionStage.completed else "stopped",
        "summary": summary.to_dict() if summary else None,
        "saved": record_id is not None,
        "record_id": record_id,
    }


def play_command(
    ctx: typer.Context,
    catalog: Optional[Path] = typer.Option(None, help="YAML/JSON exercise catalog"),
    autoplay: Optional[bool] = typer.Option(
        None,
        "--autoplay/--no-autoplay",
        help="Start the next exercise automatically",
    ),
    prepare: Optional[int] = typer.Option(None, "--prepare", min=0, help="Get-ready countdown in seconds (0 disables)"),
    silent: bool = typer.Option(False, "--silent", help="Mute audio prompts"),
    mode: Optional[str] = typer.Option(None, "--mode", help="Audio prompts: auto|recordings|speech"),
    simulate: bool = typer.Option(False, "--simulate", help="Run instantly on a simulated clock without audio"),
    save: bool = typer.Option(True, "--save/--no-save", help="Record the finished session in history"),
) -> None:
    """Play a guided session."""
    state = get_state(ctx)
    exercises = resolve_catalog(state, catalog)

    try:
        options = engine_options_from_config(state.config, autoplay=autoplay, prepare_seconds=prepare)
    except ConfigError as exc:
        print_error(state, f"Config error: {exc}")
        raise typer.Exit(code=2)

    audio = build_audio_port(state, mode=mode, silent=silent or None, simulate=simulate)
    clock = ManualClock() if simulate else ThreadingClock()
    summaries: List[SessionSummary] = []
    delivered = threading.Event()

    def _collect(summary: SessionSummary) -> None:
        summaries.append(summary)
        delivered.set()

    engine = SessionEngine(
        exercises,
        audio=audio,
        clock=clock,
        options=options,
        on_session_complete=_collect,
    )
    try:
        if simulate:
            stage = run_simulation(engine, clock)
        else:
            stage = run_live(engine, state, delivered)
    finally:
        engine.close()

    summary = summaries[0] if summaries else None
    record_id: Optional[str] = None
    if summary is not None and save:
        try:
            record_id = history_store(state).append(summary).id
        except HistoryError as exc:
            print_error(state, f"History error: {exc}")
            raise typer.Exit(code=1)

    payload = _summary_payload(summary, record_id, stage)
    if state.json_output:
        print_json_payload(state, payload)
        return

    if state.plain_output:
        typer.echo(f"status\t{payload['status']}")
        if summary is not None:
            typer.echo(f"exercises\t{summary.exercise_count}")
            typer.echo(f"total_reps\t{summary.total_reps}")
            typer.echo(f"duration_seconds\t{int(round(summary.duration_seconds))}")
        if record_id:
            typer.echo(f"record_id\t{record_id}")
        return

    if summary is None:
        state.console.print("Session stopped")
        return
    state.console.print(
        f"Session complete: {summary.exercise_count} exercises, {summary.total_reps} reps "
        f"in {format_clock(summary.duration_seconds)}"
    )
    if record_id:
        state.console.print(f"Saved to history ({record_id})")
