"""Shared command helpers."""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any, List, Optional

import typer

from back_cli.core.audio import AudioPromptMode, NullAudioPort, PromptPlayer
from back_cli.core.config import resolve_catalog_path, resolve_history_path, resolve_prompts_dir
from back_cli.core.history import HistoryStore
from back_cli.core.models import CatalogError, ExerciseDefinition
from back_cli.core.state import CLIState
from back_cli.utils.parsing import default_catalog, load_catalog


def get_state(ctx: typer.Context) -> CLIState:
    """Extract validated CLI state from Typer context."""
    state = ctx.obj
    if not isinstance(state, CLIState):
        raise typer.Exit(code=2)
    return state


def print_json_payload(state: CLIState, payload: Any) -> None:
    """Print JSON payload with plain-mode fallback for piping."""
    if state.plain_output:
        typer.echo(json.dumps(payload, separators=(",", ":")))
        return
    state.console.print_json(data=payload)


def print_error(state: CLIState, message: str) -> None:
    if state.json_output:
        print_json_payload(state, {"status": "error", "message": message})
    elif state.plain_output:
        typer.echo("status\terror")
        typer.echo(f"message\t{message}")
    else:
        state.console.print(f"[red]{message}[/red]")


def resolve_catalog(state: CLIState, explicit: Optional[Path] = None) -> List[ExerciseDefinition]:
    """Catalog from --catalog, then config, then the built-in exercises."""
    path = resolve_catalog_path(state.config, explicit=explicit)
    try:
        return load_catalog(path) if path is not None else default_catalog()
    except CatalogError as exc:
        print_error(state, f"Catalog error: {exc}")
        raise typer.Exit(code=2)


def build_audio_port(
    state: CLIState,
    mode: Optional[str] = None,
    silent: Optional[bool] = None,
    simulate: bool = False,
):
    """Audio port configured from the ``audio`` section with CLI overrides."""
    if simulate:
        return NullAudioPort()

    audio_cfg = state.section("audio")
    raw_mode = mode or audio_cfg.get("mode", "auto")
    try:
        prompt_mode = AudioPromptMode(raw_mode)
    except ValueError:
        raise typer.BadParameter("--mode must be auto|recordings|speech")

    return PromptPlayer(
        prompts_dir=resolve_prompts_dir(state.config),
        mode=prompt_mode,
        silent=bool(audio_cfg.get("silent", False)) if silent is None else silent,
        player_command=audio_cfg.get("player_command") or None,
        speech_command=audio_cfg.get("speech_command") or None,
    )


def history_store(state: CLIState, explicit: Optional[Path] = None) -> HistoryStore:
    return HistoryStore(resolve_history_path(state.config, explicit=explicit))
