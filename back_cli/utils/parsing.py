"""Parsing helpers for exercise catalog files."""

from __future__ import annotations

import json
import re
from pathlib import Path
from typing import Any, Dict, List, Optional

import yaml

from back_cli.core.constants import DEFAULT_CATALOG
from back_cli.core.models import CatalogError, ExerciseDefinition

_SECONDS_RE = re.compile(r"^(\d+)\s*(s|sec|secs|seconds?)?$")

FIELD_ALIASES = {
    "hold_duration": ("hold_duration", "hold"),
    "rest_duration": ("rest_duration", "rest"),
    "post_exercise_rest": ("post_exercise_rest", "cooldown", "post_rest"),
}


def parse_seconds(value: Any) -> int:
    """Parse 10, "10", "10s", "1:30" or "1:02:03" into whole seconds."""
    if isinstance(value, bool):
        raise CatalogError(f"Invalid duration: {value!r}")
    if isinstance(value, int):
        return value
    if isinstance(value, float) and value.is_integer():
        return int(value)

    raw = str(value).strip().lower()
    match = _SECONDS_RE.match(raw)
    if match:
        return int(match.group(1))

    parts = raw.split(":")
    if len(parts) in (2, 3) and all(part.isdigit() for part in parts):
        numbers = [int(part) for part in parts]
        if len(numbers) == 2:
            return numbers[0] * 60 + numbers[1]
        return numbers[0] * 3600 + numbers[1] * 60 + numbers[2]

    raise CatalogError(f"Invalid duration: {value!r}")


def _pick(item: Dict[str, Any], names: tuple, default: Optional[Any] = None) -> Any:
    for name in names:
        if name in item:
            return item[name]
    return default


def exercise_from_dict(item: Dict[str, Any]) -> ExerciseDefinition:
    """Build and validate one exercise from a catalog entry."""
    if not isinstance(item, dict):
        raise CatalogError(f"Catalog entries must be mappings, got {item!r}")
    title = item.get("title") or item.get("name")
    if not title:
        raise CatalogError(f"Catalog entry is missing a title: {item!r}")

    hold = _pick(item, FIELD_ALIASES["hold_duration"])
    if hold is None:
        raise CatalogError(f"{title}: hold duration is required")
    try:
        reps = int(item.get("reps", 1))
    except (TypeError, ValueError) as exc:
        raise CatalogError(f"{title}: reps must be an integer") from exc

    double_hold = item.get("double_hold", False)
    if not isinstance(double_hold, bool):
        raise CatalogError(f"{title}: double_hold must be true or false, got {double_hold!r}")

    return ExerciseDefinition(
        title=str(title),
        hold_duration=parse_seconds(hold),
        rest_duration=parse_seconds(_pick(item, FIELD_ALIASES["rest_duration"], 0)),
        reps=reps,
        post_exercise_rest=parse_seconds(_pick(item, FIELD_ALIASES["post_exercise_rest"], 0)),
        double_hold=double_hold,
    ).validate()


def catalog_from_data(data: Any) -> List[ExerciseDefinition]:
    entries = data.get("exercises") if isinstance(data, dict) else data
    if not isinstance(entries, list):
        raise CatalogError("Catalog must be a list or contain an 'exercises' list")
    catalog = [exercise_from_dict(item) for item in entries]
    if not catalog:
        raise CatalogError("Catalog must contain at least one exercise")
    return catalog


def load_catalog(path: Path) -> List[ExerciseDefinition]:
    """Load a YAML or JSON catalog file."""
    if not path.exists():
        raise CatalogError(f"Catalog file not found: {path}")
    text = path.read_text()
    try:
        if path.suffix.lower() == ".json":
            data = json.loads(text)
        else:
            data = yaml.safe_load(text)
    except (json.JSONDecodeError, yaml.YAMLError) as exc:
        raise CatalogError(f"Could not parse catalog {path}: {exc}") from exc
    return catalog_from_data(data)


def default_catalog() -> List[ExerciseDefinition]:
    return catalog_from_data(DEFAULT_CATALOG)
