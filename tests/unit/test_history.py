from __future__ import annotations

import csv
import json
from datetime import datetime, timedelta, timezone
from pathlib import Path

import pytest

from back_cli.core.analysis import build_analytics
from back_cli.core.history import HistoryError, HistoryStore, SessionRecord
from back_cli.core.models import SessionSummary
from back_cli.exporters.csv_export import write_history_csv
from back_cli.exporters.json_export import write_history_json

START = datetime(2026, 3, 2, 9, 0, tzinfo=timezone.utc)


def _summary(offset_days: int = 0, minutes: int = 12) -> SessionSummary:
    start = START + timedelta(days=offset_days)
    return SessionSummary(
        start=start,
        end=start + timedelta(minutes=minutes),
        exercise_count=4,
        total_reps=40,
        autoplay_enabled=True,
    )


def test_missing_file_loads_empty(tmp_path: Path) -> None:
    assert HistoryStore(tmp_path / "none.json").load() == []


def test_append_persists_and_loads_newest_first(tmp_path: Path) -> None:
    store = HistoryStore(tmp_path / "data" / "history.json")
    first = store.append(_summary(0))
    second = store.append(_summary(1, minutes=5))

    records = store.load()
    assert [record.id for record in records] == [second.id, first.id]
    assert records[0].duration_seconds == 300
    assert records[1].total_reps == 40

    payload = json.loads(store.path.read_text())
    assert [item["id"] for item in payload["sessions"]] == [first.id, second.id]


def test_load_accepts_bare_list(tmp_path: Path) -> None:
    record = SessionRecord.from_summary(_summary())
    path = tmp_path / "history.json"
    path.write_text(json.dumps([record.to_dict()]))
    loaded = HistoryStore(path).load()
    assert loaded[0].id == record.id
    assert loaded[0].started_at == START


def test_invalid_json_raises(tmp_path: Path) -> None:
    path = tmp_path / "history.json"
    path.write_text("{nope")
    with pytest.raises(HistoryError):
        HistoryStore(path).load()


def test_invalid_record_raises(tmp_path: Path) -> None:
    path = tmp_path / "history.json"
    path.write_text(json.dumps({"sessions": [{"id": "x", "started_at": "yesterday"}]}))
    with pytest.raises(HistoryError):
        HistoryStore(path).load()


def test_sessions_must_be_list(tmp_path: Path) -> None:
    path = tmp_path / "history.json"
    path.write_text(json.dumps({"sessions": {"a": 1}}))
    with pytest.raises(HistoryError):
        HistoryStore(path).load()


def test_clear_returns_count_and_removes_file(tmp_path: Path) -> None:
    store = HistoryStore(tmp_path / "history.json")
    store.append(_summary(0))
    store.append(_summary(1))
    assert store.clear() == 2
    assert not store.path.exists()
    assert store.clear() == 0


def test_negative_duration_clamped() -> None:
    record = SessionRecord(
        started_at=START,
        ended_at=START - timedelta(seconds=5),
        exercise_count=1,
        total_reps=1,
        autoplay_enabled=False,
    )
    assert record.duration_seconds == 0.0


def test_export_json_and_csv(tmp_path: Path) -> None:
    records = [SessionRecord.from_summary(_summary(0)), SessionRecord.from_summary(_summary(1, minutes=1))]

    json_path = tmp_path / "out" / "sessions.json"
    assert write_history_json(json_path, records) == 2
    rows = json.loads(json_path.read_text())
    assert rows[0]["total_reps"] == 40

    csv_path = tmp_path / "out" / "sessions.csv"
    assert write_history_csv(csv_path, records) == 2
    with csv_path.open() as handle:
        parsed = list(csv.DictReader(handle))
    assert parsed[0]["duration_seconds"] == "720"
    assert parsed[1]["duration_seconds"] == "60"
    assert parsed[0]["autoplay_enabled"] == "True"


def _raw_record(record_id: str, started: str, ended: str) -> dict:
    return {
        "id": record_id,
        "started_at": started,
        "ended_at": ended,
        "exercise_count": 2,
        "total_reps": 10,
        "autoplay_enabled": True,
    }


def test_mixed_naive_and_aware_timestamps_load(tmp_path: Path) -> None:
    path = tmp_path / "history.json"
    path.write_text(
        json.dumps(
            {
                "sessions": [
                    _raw_record("naive", "2026-10-10T08:00:00", "2026-10-10T08:10:00"),
                    _raw_record("aware", "2026-10-11T08:00:00+02:00", "2026-10-11T08:05:00+02:00"),
                ]
            }
        )
    )
    store = HistoryStore(path)
    records = store.load()
    assert [record.id for record in records] == ["aware", "naive"]
    assert all(record.started_at.tzinfo is not None for record in records)
    assert records[1].duration_seconds == 600

    store.save(records)
    assert len(store.load()) == 2

    now = datetime(2026, 10, 11, 12, 0, tzinfo=timezone.utc)
    analytics = build_analytics(records, now=now)
    assert analytics is not None
    assert analytics.last_session_seconds == 300


def test_naive_record_is_read_as_local_time() -> None:
    record = SessionRecord(
        started_at=datetime(2026, 10, 10, 8, 0),
        ended_at=datetime(2026, 10, 10, 8, 12),
        exercise_count=1,
        total_reps=3,
        autoplay_enabled=False,
    )
    assert record.started_at.tzinfo is not None
    assert record.ended_at.tzinfo is not None
    assert record.started_at.replace(tzinfo=None) == datetime(2026, 10, 10, 8, 0)
    assert record.duration_seconds == 720
