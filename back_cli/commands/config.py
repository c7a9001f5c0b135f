"""Inspect and edit the config file."""

from __future__ import annotations

import typer

from back_cli.commands.common import get_state, print_error, print_json_payload
from back_cli.core.config import ConfigError, save_config, set_config_value

app = typer.Typer(help="Show or change settings")


@app.command("show")
def show_command(ctx: typer.Context) -> None:
    """Print the effective configuration."""
    state = get_state(ctx)
    if state.json_output or not state.plain_output:
        print_json_payload(state, {"path": str(state.config_path), "config": state.config})
        return
    for section in state.config:
        for key, value in state.section(section).items():
            typer.echo(f"{section}.{key}\t{value}")


@app.command("set")
def set_command(
    ctx: typer.Context,
    key: str = typer.Argument(..., help="Dotted key, e.g. session.autoplay"),
    value: str = typer.Argument(..., help="New value"),
) -> None:
    """Persist one setting to the config file."""
    state = get_state(ctx)
    try:
        updated = set_config_value(state.config, key, value)
    except ConfigError as exc:
        print_error(state, f"Config error: {exc}")
        raise typer.Exit(code=2)

    path = save_config(updated, state.config_path)
    section, name = key.split(".", 1)
    new_value = updated[section][name]
    state.config = updated

    if state.json_output:
        print_json_payload(state, {"status": "saved", "path": str(path), "key": key, "value": new_value})
        return
    if state.plain_output:
        typer.echo("status\tsaved")
        typer.echo(f"{key}\t{new_value}")
        return
    state.console.print(f"Set {key} = {new_value!r} in {path}")
