"""Show the exercise catalog."""

from __future__ import annotations

from pathlib import Path
from typing import Optional

import typer
from rich.table import Table

from back_cli.commands.common import get_state, print_json_payload, resolve_catalog
from back_cli.utils.formatting import format_duration


def catalog_command(
    ctx: typer.Context,
    catalog: Optional[Path] = typer.Option(None, help="YAML/JSON exercise catalog"),
) -> None:
    """List exercises in session order."""
    state = get_state(ctx)
    exercises = resolve_catalog(state, catalog)
    total_reps = sum(item.reps for item in exercises)
    nominal = sum(item.nominal_seconds for item in exercises)

    if state.json_output:
        print_json_payload(
            state,
            {
                "exercises": [item.to_dict() for item in exercises],
                "total_reps": total_reps,
                "nominal_seconds": nominal,
            },
        )
        return

    if state.plain_output:
        typer.echo("index\ttitle\thold\trest\treps\tcooldown\tdouble_hold")
        for index, item in enumerate(exercises, 1):
            typer.echo(
                f"{index}\t{item.title}\t{item.hold_duration}\t{item.rest_duration}\t"
                f"{item.reps}\t{item.post_exercise_rest}\t{str(item.double_hold).lower()}"
            )
        return

    table = Table(title=f"Exercises ({len(exercises)} total)")
    table.add_column("#", justify="right")
    table.add_column("Exercise")
    table.add_column("Hold", justify="right")
    table.add_column("Rest", justify="right")
    table.add_column("Reps", justify="right")
    table.add_column("Cooldown", justify="right")
    for index, item in enumerate(exercises, 1):
        hold = f"{item.hold_duration}s" + (" x2" if item.double_hold else "")
        table.add_row(
            str(index),
            item.title,
            hold,
            f"{item.rest_duration}s",
            str(item.reps),
            f"{item.post_exercise_rest}s",
        )
    state.console.print(table)
    state.console.print(f"Total reps: {total_reps}  Nominal time: {format_duration(nominal)}")
