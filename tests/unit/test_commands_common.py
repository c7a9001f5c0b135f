from __future__ import annotations

import json
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Optional

import pytest
import typer
from rich.console import Console

from back_cli.commands.common import (
    build_audio_port,
    get_state,
    history_store,
    print_error,
    resolve_catalog,
)
from back_cli.core.audio import AudioPromptMode, NullAudioPort, PromptPlayer
from back_cli.core.config import load_config
from back_cli.core.state import CLIState


@dataclass
class FakeContext:
    obj: Any


def _state(config: Optional[Dict[str, Any]] = None, json_output: bool = False, plain_output: bool = True) -> CLIState:
    return CLIState(
        json_output=json_output,
        plain_output=plain_output,
        verbose=False,
        quiet=False,
        config_path=Path("/tmp/config.toml"),
        config=config if config is not None else load_config(Path("/nonexistent/config.toml")),
        console=Console(record=True),
    )


def test_get_state_returns_cli_state() -> None:
    state = _state()
    assert get_state(FakeContext(obj=state)) is state


def test_get_state_raises_on_invalid_obj() -> None:
    with pytest.raises(typer.Exit):
        get_state(FakeContext(obj={"not": "state"}))


def test_resolve_catalog_defaults_to_builtin() -> None:
    catalog = resolve_catalog(_state({"catalog": {"file": ""}}))
    assert catalog[0].title == "Single Knee-to-Chest"


def test_resolve_catalog_prefers_explicit_file(write_temp_json) -> None:
    path = write_temp_json("mine.json", [{"title": "Bridge", "hold": 12}])
    state = _state({"catalog": {"file": "/does/not/matter.yaml"}})
    assert [item.title for item in resolve_catalog(state, path)] == ["Bridge"]


def test_resolve_catalog_error_exits_with_code_2(tmp_path: Path, capsys: pytest.CaptureFixture) -> None:
    state = _state({"catalog": {"file": str(tmp_path / "missing.yaml")}})
    with pytest.raises(typer.Exit) as exc_info:
        resolve_catalog(state)
    assert exc_info.value.exit_code == 2
    assert "message\tCatalog error" in capsys.readouterr().out


def test_print_error_json(capsys: pytest.CaptureFixture) -> None:
    print_error(_state(json_output=True, plain_output=False), "nope")
    # Rich may wrap JSON, so only check the keys it must contain.
    out = capsys.readouterr().out
    assert '"status": "error"' in out
    assert '"message": "nope"' in out


def test_print_error_json_plain_fallback(capsys: pytest.CaptureFixture) -> None:
    state = _state(json_output=True, plain_output=True)
    print_error(state, "nope")
    assert json.loads(capsys.readouterr().out) == {"status": "error", "message": "nope"}


def test_build_audio_port_simulate_is_null() -> None:
    assert isinstance(build_audio_port(_state(), simulate=True), NullAudioPort)


def test_build_audio_port_from_config(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
    monkeypatch.setenv("BACK_PROMPTS_DIR", str(tmp_path / "clips"))
    config = load_config(Path("/nonexistent/config.toml"))
    config["audio"].update({"mode": "recordings", "silent": True, "player_command": "play-it", "speech_command": "talk"})

    port = build_audio_port(_state(config))
    assert isinstance(port, PromptPlayer)
    assert port.mode is AudioPromptMode.recordings
    assert port.silent is True
    assert port.player_command == ["play-it"]
    assert port.speech_command == ["talk"]
    assert port.prompts_dir == (tmp_path / "clips").resolve()

    port = build_audio_port(_state(config), mode="speech", silent=False)
    assert port.mode is AudioPromptMode.speech
    assert port.silent is False


def test_build_audio_port_rejects_unknown_mode() -> None:
    with pytest.raises(typer.BadParameter):
        build_audio_port(_state(), mode="loud")


def test_history_store_uses_explicit_path(tmp_path: Path) -> None:
    store = history_store(_state(), explicit=tmp_path / "h.json")
    assert store.path == (tmp_path / "h.json").resolve()


def test_state_interactive_and_sections() -> None:
    assert not _state().interactive
    assert _state(plain_output=False).interactive
    state = _state({"audio": {"mode": "speech"}, "broken": "x"})
    assert state.section("audio") == {"mode": "speech"}
    assert state.section("broken") == {}
    assert state.section("missing") == {}
