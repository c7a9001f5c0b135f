"""JSON writers for history and session output."""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any, Iterable


def write_json(path: Path, payload: Any) -> Path:
    """Write payload as pretty JSON, creating parent folders, and return path."""
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(json.dumps(payload, indent=2, default=str) + "\n")
    return path


def write_history_json(path: Path, records: Iterable[Any]) -> int:
    """Export records (anything with ``to_dict``) as a JSON list; returns the count."""
    rows = [record.to_dict() for record in records]
    write_json(path, rows)
    return len(rows)
