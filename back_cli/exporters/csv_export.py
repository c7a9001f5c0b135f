"""CSV export of session history."""

from __future__ import annotations

import csv
from pathlib import Path
from typing import Iterable

from back_cli.core.history import SessionRecord

FIELDS = [
    "id",
    "started_at",
    "ended_at",
    "duration_seconds",
    "exercise_count",
    "total_reps",
    "autoplay_enabled",
]


def write_history_csv(path: Path, records: Iterable[SessionRecord]) -> int:
    path.parent.mkdir(parents=True, exist_ok=True)
    count = 0
    with path.open("w", newline="") as handle:
        writer = csv.DictWriter(handle, fieldnames=FIELDS)
        writer.writeheader()
        for record in records:
            row = record.to_dict()
            row["duration_seconds"] = int(round(record.duration_seconds))
            writer.writerow(row)
            count += 1
    return count
