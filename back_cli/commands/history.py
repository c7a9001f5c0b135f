"""Session history and analytics commands."""

from __future__ import annotations

from datetime import datetime
from pathlib import Path
from typing import Optional

import typer
from rich.table import Table

from back_cli.commands.common import get_state, history_store, print_error, print_json_payload
from back_cli.core.analysis import build_analytics
from back_cli.core.constants import AVERAGE_WINDOW_DAYS, DAY_BOUNDARY_HOUR
from back_cli.core.history import HistoryError
from back_cli.core.state import CLIState
from back_cli.exporters.csv_export import write_history_csv
from back_cli.exporters.json_export import write_history_json
from back_cli.utils.formatting import format_duration

app = typer.Typer(help="Recorded sessions")


def _load_records(state: CLIState):
    try:
        return history_store(state).load()
    except HistoryError as exc:
        print_error(state, f"History error: {exc}")
        raise typer.Exit(code=1)


def _format_started(value: datetime) -> str:
    return value.astimezone().strftime("%Y-%m-%d %H:%M")


@app.command("list")
def list_command(
    ctx: typer.Context,
    limit: int = typer.Option(20, min=1, help="Show at most N sessions"),
) -> None:
    """List recorded sessions, newest first."""
    state = get_state(ctx)
    records = _load_records(state)[:limit]

    if state.json_output:
        print_json_payload(state, {"sessions": [record.to_dict() for record in records]})
        return

    if state.plain_output:
        for record in records:
            typer.echo(
                f"{record.id}\t{record.started_at.isoformat()}\t"
                f"{int(round(record.duration_seconds))}\t{record.total_reps}"
            )
        return

    if not records:
        state.console.print("No sessions recorded yet")
        return

    table = Table(title=f"Sessions ({len(records)} shown)")
    table.add_column("Started")
    table.add_column("Duration", justify="right")
    table.add_column("Exercises", justify="right")
    table.add_column("Reps", justify="right")
    table.add_column("Autoplay")
    for record in records:
        table.add_row(
            _format_started(record.started_at),
            format_duration(record.duration_seconds),
            str(record.exercise_count),
            str(record.total_reps),
            "yes" if record.autoplay_enabled else "no",
        )
    state.console.print(table)


@app.command("export")
def export_command(
    ctx: typer.Context,
    output_format: str = typer.Option("json", "--format", help="Export format: json|csv"),
    output_file: Optional[Path] = typer.Option(None, "--output", help="Output file"),
) -> None:
    """Export recorded sessions as JSON or CSV."""
    state = get_state(ctx)
    if output_format not in {"json", "csv"}:
        raise typer.BadParameter("--format must be json|csv")

    records = _load_records(state)
    path = output_file or Path(f"sessions.{output_format}")
    if output_format == "csv":
        count = write_history_csv(path, records)
    else:
        count = write_history_json(path, records)

    result = {"status": "exported", "format": output_format, "path": str(path), "count": count}
    if state.json_output:
        print_json_payload(state, result)
        return

    if state.plain_output:
        for key in ("status", "format", "path", "count"):
            typer.echo(f"{key}\t{result[key]}")
        return

    state.console.print(f"Exported {count} sessions as {output_format} to {path}")


@app.command("clear")
def clear_command(
    ctx: typer.Context,
    force: bool = typer.Option(False, "--force", help="Skip confirmation prompt"),
) -> None:
    """Delete all recorded sessions."""
    state = get_state(ctx)
    if not force:
        confirmed = typer.confirm("Delete all recorded sessions?", default=False)
        if not confirmed:
            raise typer.Exit(code=0)

    try:
        removed = history_store(state).clear()
    except HistoryError as exc:
        print_error(state, f"History error: {exc}")
        raise typer.Exit(code=1)

    if state.json_output:
        print_json_payload(state, {"status": "cleared", "removed": removed})
        return
    if state.plain_output:
        typer.echo("status\tcleared")
        typer.echo(f"removed\t{removed}")
        return
    state.console.print(f"Removed {removed} sessions")


def stats_command(ctx: typer.Context) -> None:
    """Show streaks and time spent."""
    state = get_state(ctx)
    records = _load_records(state)
    analytics_cfg = state.section("analytics")
    summary = build_analytics(
        records,
        day_boundary_hour=int(analytics_cfg.get("day_boundary_hour", DAY_BOUNDARY_HOUR)),
        window_days=int(analytics_cfg.get("window_days", AVERAGE_WINDOW_DAYS)),
    )

    if summary is None:
        if state.json_output:
            print_json_payload(state, {"sessions": 0, "analytics": None})
        elif state.plain_output:
            typer.echo("sessions\t0")
        else:
            state.console.print("Start a session to unlock your streaks and timing insights.")
        return

    if state.json_output:
        print_json_payload(state, {"sessions": len(records), "analytics": summary.to_dict()})
        return

    rows = [
        ("Sessions today", str(summary.sessions_today)),
        ("Current streak", summary.current_streak_description),
        ("Longest streak", summary.longest_streak_description),
        ("Time spent today", summary.time_spent_today_description),
        (f"{summary.window_days}-day daily average", summary.daily_average_description),
        ("Last session", summary.last_session_description),
    ]

    if state.plain_output:
        for key, value in summary.to_dict().items():
            typer.echo(f"{key}\t{value}")
        return

    table = Table(title="Progress")
    table.add_column("Metric")
    table.add_column("Value", justify="right")
    for label, value in rows:
        table.add_row(label, value)
    state.console.print(table)
