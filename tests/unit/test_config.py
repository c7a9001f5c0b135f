from __future__ import annotations

import json
from pathlib import Path
from typing import Any, Dict

import pytest

from back_cli.core.config import (
    ConfigError,
    _deep_merge,
    default_config_path,
    default_data_dir,
    engine_options_from_config,
    expand_path,
    load_config,
    resolve_catalog_path,
    resolve_history_path,
    resolve_prompts_dir,
    save_config,
    set_config_value,
)


def test_deep_merge_nested_dicts() -> None:
    base = {"a": {"b": 1, "c": 2}, "x": 3}
    override = {"a": {"b": 9}, "y": 4}
    merged = _deep_merge(base, override)
    assert merged == {"a": {"b": 9, "c": 2}, "x": 3, "y": 4}
    assert base["a"]["b"] == 1


def test_expand_path_expands_home_and_env(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
    monkeypatch.setenv("BACK_TMP_PATH", str(tmp_path))
    expanded = expand_path("$BACK_TMP_PATH/config.toml")
    assert expanded == (tmp_path / "config.toml").resolve()


def test_default_config_path_uses_env(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
    path = tmp_path / "custom.toml"
    monkeypatch.setenv("BACK_CONFIG_FILE", str(path))
    assert default_config_path() == path.resolve()


def test_default_data_dir_uses_env(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
    path = tmp_path / "back-data"
    monkeypatch.setenv("BACK_DATA_DIR", str(path))
    assert default_data_dir() == path.resolve()


def test_load_config_missing_file_returns_defaults(tmp_path: Path) -> None:
    cfg = load_config(tmp_path / "missing.toml")
    assert cfg["session"]["prepare_seconds"] == 10
    assert cfg["session"]["autoplay"] is True
    assert cfg["audio"]["mode"] == "auto"
    assert cfg["history"]["store"].endswith("history.json")
    assert cfg["analytics"]["day_boundary_hour"] == 4


def test_load_config_from_json(tmp_path: Path) -> None:
    path = tmp_path / "config.json"
    path.write_text(json.dumps({"session": {"prepare_seconds": 3}, "audio": {"mode": "speech"}}))
    cfg = load_config(path)
    assert cfg["session"]["prepare_seconds"] == 3
    assert cfg["session"]["autoplay"] is True
    assert cfg["audio"]["mode"] == "speech"


def test_load_config_from_toml(tmp_path: Path) -> None:
    path = tmp_path / "config.toml"
    path.write_text(
        """
[session]
autoplay = false

[analytics]
window_days = 7
""".strip()
        + "\n"
    )
    cfg = load_config(path)
    assert cfg["session"]["autoplay"] is False
    assert cfg["analytics"]["window_days"] == 7


def test_load_config_invalid_json_raises(tmp_path: Path) -> None:
    path = tmp_path / "broken.json"
    path.write_text("{broken")
    with pytest.raises(ConfigError):
        load_config(path)


def test_load_config_invalid_toml_raises(tmp_path: Path) -> None:
    path = tmp_path / "broken.toml"
    path.write_text("[session\nautoplay = true")
    with pytest.raises(ConfigError):
        load_config(path)


def test_save_config_json(tmp_path: Path) -> None:
    payload: Dict[str, Any] = {"session": {"prepare_seconds": 7}}
    path = save_config(payload, tmp_path / "config.json")
    assert json.loads(path.read_text())["session"]["prepare_seconds"] == 7


def test_save_config_toml_and_reload(tmp_path: Path) -> None:
    payload: Dict[str, Any] = {"session": {"autoplay": False}, "audio": {"player_command": 'mpg123 -q "x"'}}
    path = save_config(payload, tmp_path / "nested" / "config.toml")
    cfg = load_config(path)
    assert cfg["session"]["autoplay"] is False
    assert cfg["audio"]["player_command"] == 'mpg123 -q "x"'


@pytest.mark.parametrize(
    ("key", "raw", "expected"),
    [
        ("session.autoplay", "off", False),
        ("session.prepare_seconds", "5", 5),
        ("audio.mode", "speech", "speech"),
        ("analytics.window_days", "14", 14),
    ],
)
def test_set_config_value_coerces_to_default_type(key: str, raw: str, expected: Any) -> None:
    cfg = load_config(Path("/nonexistent/config.toml"))
    updated = set_config_value(cfg, key, raw)
    section, name = key.split(".")
    assert updated[section][name] == expected
    assert cfg is not updated


@pytest.mark.parametrize(
    ("key", "raw"),
    [
        ("session", "1"),
        ("session.unknown", "1"),
        ("nope.autoplay", "1"),
        ("session.autoplay", "maybe"),
        ("session.prepare_seconds", "ten"),
    ],
)
def test_set_config_value_rejects_bad_input(key: str, raw: str) -> None:
    with pytest.raises(ConfigError):
        set_config_value({}, key, raw)


def test_resolve_history_path_prefers_explicit_then_env(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
    cfg = {"history": {"store": str(tmp_path / "from-config.json")}}
    monkeypatch.delenv("BACK_HISTORY_FILE", raising=False)
    assert resolve_history_path(cfg) == (tmp_path / "from-config.json").resolve()

    monkeypatch.setenv("BACK_HISTORY_FILE", str(tmp_path / "from-env.json"))
    assert resolve_history_path(cfg) == (tmp_path / "from-env.json").resolve()
    assert resolve_history_path(cfg, explicit=tmp_path / "cli.json") == (tmp_path / "cli.json").resolve()


def test_resolve_prompts_dir_default_uses_data_dir(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
    monkeypatch.delenv("BACK_PROMPTS_DIR", raising=False)
    monkeypatch.setenv("BACK_DATA_DIR", str(tmp_path / "xdg"))
    assert resolve_prompts_dir({"audio": {}}) == (tmp_path / "xdg" / "prompts").resolve()


def test_resolve_catalog_path_empty_means_builtin(tmp_path: Path) -> None:
    assert resolve_catalog_path({"catalog": {"file": ""}}) is None
    cfg = {"catalog": {"file": str(tmp_path / "mine.yaml")}}
    assert resolve_catalog_path(cfg) == (tmp_path / "mine.yaml").resolve()


def test_engine_options_from_config_with_overrides() -> None:
    cfg = {"session": {"prepare_seconds": 4, "autoplay": False, "count_cues_gate": True}}
    options = engine_options_from_config(cfg, autoplay=None, prepare_seconds=0)
    assert options.prepare_seconds == 0
    assert options.autoplay is False
    assert options.allow_skip is True
    assert options.count_cues_gate is True


def test_engine_options_reject_negative_prepare() -> None:
    with pytest.raises(ConfigError):
        engine_options_from_config({"session": {"prepare_seconds": -1}})
