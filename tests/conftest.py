from __future__ import annotations

import json
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Any, Callable, Iterable, List, Optional

import pytest
from typer.testing import CliRunner

from back_cli.core.clock import ManualClock
from back_cli.core.cues import AudioCue, CueKind
from back_cli.core.engine import SessionEngine
from back_cli.core.models import EngineOptions, ExerciseDefinition, SessionSummary


class FakeAudio:
    """Scripted audio port: every cue reports busy for ``busy_polls`` polls."""

    def __init__(self, busy_polls: int = 0, prompts: Iterable[str] = ()) -> None:
        self.silent = False
        self.busy_polls = busy_polls
        self.prompts = set(prompts)
        self.played: List[AudioCue] = []
        self.stops = 0
        self.closed = False
        self._remaining = 0

    def play(self, cue: AudioCue) -> None:
        self.played.append(cue)
        self._remaining = 0 if self.silent else self.busy_polls

    def stop(self) -> None:
        self.stops += 1
        self._remaining = 0

    def is_busy(self) -> bool:
        if self._remaining > 0:
            self._remaining -= 1
            return True
        return False

    def has_prompt(self, cue: AudioCue) -> bool:
        return any(name in self.prompts for name in cue.candidate_resource_names)

    def close(self) -> None:
        self.closed = True

    def kinds(self, kind: CueKind) -> List[AudioCue]:
        return [cue for cue in self.played if cue.kind is kind]


class SteppingNow:
    """Deterministic wall clock that moves forward one minute per call."""

    def __init__(self, start: Optional[datetime] = None) -> None:
        self.current = start or datetime(2026, 3, 2, 9, 0, tzinfo=timezone.utc)

    def __call__(self) -> datetime:
        value = self.current
        self.current = self.current + timedelta(minutes=1)
        return value


@pytest.fixture()
def runner() -> CliRunner:
    return CliRunner()


@pytest.fixture()
def audio() -> FakeAudio:
    return FakeAudio()


@pytest.fixture()
def clock() -> ManualClock:
    return ManualClock()


@pytest.fixture()
def summaries() -> List[SessionSummary]:
    return []


@pytest.fixture()
def make_engine(audio: FakeAudio, clock: ManualClock, summaries: List[SessionSummary]):
    def _make(
        catalog: List[ExerciseDefinition],
        port: Any = None,
        on_complete: Optional[Callable[[SessionSummary], None]] = None,
        **options: Any,
    ) -> SessionEngine:
        options.setdefault("prepare_seconds", 0)
        return SessionEngine(
            catalog,
            audio=port or audio,
            clock=clock,
            options=EngineOptions(**options),
            on_session_complete=on_complete or summaries.append,
            now=SteppingNow(),
        )

    return _make


@pytest.fixture()
def two_rep_exercise() -> ExerciseDefinition:
    return ExerciseDefinition(title="Knee Hug", hold_duration=5, rest_duration=3, reps=2, post_exercise_rest=0)


@pytest.fixture()
def single_rep_pair() -> List[ExerciseDefinition]:
    return [
        ExerciseDefinition(title="Left", hold_duration=5, rest_duration=0, reps=1, post_exercise_rest=0),
        ExerciseDefinition(title="Right", hold_duration=5, rest_duration=0, reps=1, post_exercise_rest=0),
    ]


@pytest.fixture()
def isolated_env(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> Path:
    """Point config, data and history at a temp dir."""
    monkeypatch.setenv("BACK_CONFIG_FILE", str(tmp_path / "config.toml"))
    monkeypatch.setenv("BACK_DATA_DIR", str(tmp_path / "data"))
    monkeypatch.setenv("BACK_HISTORY_FILE", str(tmp_path / "data" / "history.json"))
    monkeypatch.setenv("BACK_PROMPTS_DIR", str(tmp_path / "prompts"))
    return tmp_path


@pytest.fixture()
def write_temp_json(tmp_path: Path):
    def _write(name: str, payload: Any) -> Path:
        path = tmp_path / name
        path.write_text(json.dumps(payload, indent=2) + "\n")
        return path

    return _write


@pytest.fixture()
def write_temp_text(tmp_path: Path):
    def _write(name: str, content: str) -> Path:
        path = tmp_path / name
        path.write_text(content.strip() + "\n")
        return path

    return _write


@pytest.fixture()
def fake_audio_cls():
    return FakeAudio
