"""Completed-session records persisted as a JSON document."""

from __future__ import annotations

import json
import logging
import uuid
from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, List

from back_cli.core.models import SessionSummary
from back_cli.exporters.json_export import write_json

logger = logging.getLogger(__name__)


class HistoryError(RuntimeError):
    """Raised when the history store cannot be read."""


def _aware(value: datetime) -> datetime:
    """Naive timestamps are local time."""
    return value.astimezone() if value.tzinfo is None else value


@dataclass
class SessionRecord:
    """One finished session."""

    started_at: datetime
    ended_at: datetime
    exercise_count: int
    total_reps: int
    autoplay_enabled: bool
    id: str = field(default_factory=lambda: uuid.uuid4().hex)

    def __post_init__(self) -> None:
        self.started_at = _aware(self.started_at)
        self.ended_at = _aware(self.ended_at)

    @property
    def duration_seconds(self) -> float:
        return max((self.ended_at - self.started_at).total_seconds(), 0.0)

    @classmethod
    def from_summary(cls, summary: SessionSummary) -> "SessionRecord":
        return cls(
            started_at=summary.start,
            ended_at=summary.end,
            exercise_count=summary.exercise_count,
            total_reps=summary.total_reps,
            autoplay_enabled=summary.autoplay_enabled,
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "started_at": self.started_at.isoformat(),
            "ended_at": self.ended_at.isoformat(),
            "exercise_count": self.exercise_count,
            "total_reps": self.total_reps,
            "autoplay_enabled": self.autoplay_enabled,
        }

    @classmethod
    def from_dict(cls, payload: Dict[str, Any]) -> "SessionRecord":
        try:
            return cls(
                id=str(payload["id"]),
                started_at=datetime.fromisoformat(payload["started_at"]),
                ended_at=datetime.fromisoformat(payload["ended_at"]),
                exercise_count=int(payload["exercise_count"]),
                total_reps=int(payload["total_reps"]),
                autoplay_enabled=bool(payload.get("autoplay_enabled", True)),
            )
        except (KeyError, TypeError, ValueError) as exc:
            raise HistoryError(f"Invalid session record {payload!r}: {exc}") from exc


class HistoryStore:
    """File-backed list of session records, newest first when loaded."""

    def __init__(self, path: Path) -> None:
        self.path = path

    def load(self) -> List[SessionRecord]:
        if not self.path.exists():
            return []
        try:
            payload = json.loads(self.path.read_text() or "{}")
        except json.JSONDecodeError as exc:
            raise HistoryError(f"Invalid JSON in history file {self.path}: {exc}") from exc

        items = payload.get("sessions", []) if isinstance(payload, dict) else payload
        if not isinstance(items, list):
            raise HistoryError(f"History file {self.path} must contain a list of sessions")

        records = [SessionRecord.from_dict(item) for item in items]
        records.sort(key=lambda record: record.started_at, reverse=True)
        return records

    def save(self, records: List[SessionRecord]) -> Path:
        ordered = sorted(records, key=lambda record: record.started_at)
        return write_json(self.path, {"sessions": [record.to_dict() for record in ordered]})

    def append(self, summary: SessionSummary) -> SessionRecord:
        record = SessionRecord.from_summary(summary)
        records = self.load()
        records.append(record)
        self.save(records)
        logger.debug("Recorded session %s in %s", record.id, self.path)
        return record

    def clear(self) -> int:
        """Remove all records; returns how many were removed."""
        count = len(self.load())
        if self.path.exists():
            self.path.unlink()
        return count
