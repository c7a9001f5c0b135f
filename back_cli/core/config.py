"""Configuration loading and persistence."""

from __future__ import annotations

import copy
import json
import os
from pathlib import Path
from typing import Any, Dict, Optional

try:  # Python 3.11+
    import tomllib  # type: ignore[attr-defined]
except ModuleNotFoundError:  # Python 3.9-3.10
    import tomli as tomllib  # type: ignore[no-redef]

from back_cli.core.constants import (
    AVERAGE_WINDOW_DAYS,
    DAY_BOUNDARY_HOUR,
    DEFAULT_PREPARE_SECONDS,
)
from back_cli.core.models import EngineOptions


class ConfigError(RuntimeError):
    """Raised when config file parsing fails."""


def _deep_merge(base: Dict[str, Any], override: Dict[str, Any]) -> Dict[str, Any]:
    merged = copy.deepcopy(base)
    for key, value in override.items():
        if isinstance(value, dict) and isinstance(merged.get(key), dict):
            merged[key] = _deep_merge(merged[key], value)
        else:
            merged[key] = value
    return merged


def expand_path(path_str: str) -> Path:
    """Expand user/env vars and return absolute path."""
    return Path(os.path.expandvars(path_str)).expanduser().resolve()


def default_data_dir() -> Path:
    """Resolve XDG-style data directory with env override."""
    raw = os.getenv("BACK_DATA_DIR", "~/.local/share/back")
    return expand_path(raw)


def default_config_path() -> Path:
    """Get default config file path."""
    raw = os.getenv("BACK_CONFIG_FILE", "~/.config/back/config.toml")
    return expand_path(raw)


def _default_config() -> Dict[str, Any]:
    data_dir = default_data_dir()
    return {
        "session": {
            "prepare_seconds": DEFAULT_PREPARE_SECONDS,
            "autoplay": True,
            "allow_skip": True,
            "count_cues_gate": False,
        },
        "audio": {
            "mode": "auto",
            "prompts_dir": str(data_dir / "prompts"),
            "silent": False,
            "player_command": "",
            "speech_command": "",
        },
        "history": {
            "store": str(data_dir / "history.json"),
        },
        "catalog": {
            "file": "",
        },
        "analytics": {
            "day_boundary_hour": DAY_BOUNDARY_HOUR,
            "window_days": AVERAGE_WINDOW_DAYS,
        },
    }


DEFAULT_CONFIG: Dict[str, Any] = _default_config()


def _read_config(path: Path) -> Dict[str, Any]:
    suffix = path.suffix.lower()
    text = path.read_text()
    try:
        if suffix in {".toml", ""}:
            loaded = tomllib.loads(text)
        else:
            loaded = json.loads(text)
    except json.JSONDecodeError as exc:
        raise ConfigError(f"Invalid JSON in config file {path}: {exc}") from exc
    except Exception as exc:
        if suffix in {".toml", ""}:
            raise ConfigError(f"Invalid TOML in config file {path}: {exc}") from exc
        raise ConfigError(f"Failed to parse config file {path}: {exc}") from exc

    if not isinstance(loaded, dict):
        raise ConfigError(f"Config file {path} must contain an object/table at the root")
    return loaded


def load_config(path: Optional[Path] = None) -> Dict[str, Any]:
    """Load configuration from disk, merged with defaults."""
    cfg_path = path or default_config_path()
    cfg = _default_config()
    if cfg_path.exists():
        cfg = _deep_merge(cfg, _read_config(cfg_path))
    return cfg


def _toml_literal(value: Any) -> str:
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, (int, float)):
        return str(value)
    if isinstance(value, str):
        escaped = value.replace("\\", "\\\\").replace('"', '\\"')
        return f'"{escaped}"'
    if isinstance(value, list):
        items = ", ".join(_toml_literal(item) for item in value if item is not None)
        return f"[{items}]"
    raise TypeError(f"Unsupported TOML value type: {type(value)!r}")


def _dict_to_toml(data: Dict[str, Any], prefix: Optional[str] = None) -> str:
    lines = []
    plain_keys = []
    nested_keys = []

    for key, value in data.items():
        if value is None:
            continue
        if isinstance(value, dict):
            nested_keys.append((key, value))
        else:
            plain_keys.append((key, value))

    if prefix is not None:
        lines.append(f"[{prefix}]")

    for key, value in plain_keys:
        lines.append(f"{key} = {_toml_literal(value)}")

    if plain_keys and nested_keys:
        lines.append("")

    for index, (key, value) in enumerate(nested_keys):
        table_name = key if prefix is None else f"{prefix}.{key}"
        lines.append(_dict_to_toml(value, prefix=table_name))
        if index != len(nested_keys) - 1:
            lines.append("")

    return "\n".join(lines)


def save_config(config: Dict[str, Any], path: Optional[Path] = None) -> Path:
    """Save configuration to disk as TOML (default) or JSON."""
    cfg_path = path or default_config_path()
    cfg_path.parent.mkdir(parents=True, exist_ok=True)

    if cfg_path.suffix.lower() == ".json":
        cfg_path.write_text(json.dumps(config, indent=2) + "\n")
        return cfg_path

    cfg_path.write_text(_dict_to_toml(config).strip() + "\n")
    return cfg_path


def _coerce_value(raw: str, current: Any) -> Any:
    if isinstance(current, bool):
        lowered = raw.strip().lower()
        if lowered in {"1", "true", "yes", "on"}:
            return True
        if lowered in {"0", "false", "no", "off"}:
            return False
        raise ConfigError(f"Expected a boolean, got {raw!r}")
    if isinstance(current, int):
        try:
            return int(raw)
        except ValueError as exc:
            raise ConfigError(f"Expected an integer, got {raw!r}") from exc
    if isinstance(current, float):
        try:
            return float(raw)
        except ValueError as exc:
            raise ConfigError(f"Expected a number, got {raw!r}") from exc
    return raw


def set_config_value(config: Dict[str, Any], dotted_key: str, raw: str) -> Dict[str, Any]:
    """Return a copy of ``config`` with ``section.key`` set from a CLI string.

    The value is coerced to the type of the built-in default for that key.
    """
    parts = [part for part in dotted_key.split(".") if part]
    if len(parts) != 2:
        raise ConfigError(f"Config key must look like section.key, got {dotted_key!r}")
    section, key = parts
    defaults = _default_config()
    if section not in defaults or key not in defaults[section]:
        raise ConfigError(f"Unknown config key {dotted_key!r}")

    updated = copy.deepcopy(config)
    updated.setdefault(section, {})[key] = _coerce_value(raw, defaults[section][key])
    return updated


def resolve_history_path(config: Dict[str, Any], explicit: Optional[Path] = None) -> Path:
    """Resolve history store path with CLI override first."""
    if explicit is not None:
        return explicit.expanduser().resolve()
    raw = os.getenv("BACK_HISTORY_FILE") or config.get("history", {}).get("store")
    if not raw:
        raw = str(default_data_dir() / "history.json")
    return expand_path(raw)


def resolve_prompts_dir(config: Dict[str, Any]) -> Path:
    """Resolve the recorded prompts directory from env/config."""
    raw = os.getenv("BACK_PROMPTS_DIR") or config.get("audio", {}).get("prompts_dir")
    if not raw:
        raw = str(default_data_dir() / "prompts")
    return expand_path(raw)


def resolve_catalog_path(config: Dict[str, Any], explicit: Optional[Path] = None) -> Optional[Path]:
    """Catalog file from the CLI or config; None means the built-in catalog."""
    if explicit is not None:
        return explicit.expanduser().resolve()
    raw = config.get("catalog", {}).get("file")
    return expand_path(raw) if raw else None


def engine_options_from_config(config: Dict[str, Any], **overrides: Any) -> EngineOptions:
    """Build engine options from the ``session`` section; None overrides are ignored."""
    session_cfg = config.get("session", {})
    values = {
        "prepare_seconds": int(session_cfg.get("prepare_seconds", DEFAULT_PREPARE_SECONDS)),
        "autoplay": bool(session_cfg.get("autoplay", True)),
        "allow_skip": bool(session_cfg.get("allow_skip", True)),
        "count_cues_gate": bool(session_cfg.get("count_cues_gate", False)),
    }
    values.update({key: value for key, value in overrides.items() if value is not None})
    if values["prepare_seconds"] < 0:
        raise ConfigError("session.prepare_seconds must be >= 0")
    return EngineOptions(**values)
