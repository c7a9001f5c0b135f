"""Data models shared by the engine, the CLI and the history store."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Any, Dict, Optional

from back_cli.core.constants import DEFAULT_PREPARE_SECONDS, DEFAULT_TICK_SECONDS


class CatalogError(ValueError):
    """Raised when an exercise catalog is empty or malformed."""


class SessionStage(str, Enum):
    idle = "idle"
    running = "running"
    paused = "paused"
    waiting_for_next_exercise = "waiting_for_next_exercise"
    completed = "completed"


class ExercisePhase(str, Enum):
    idle = "idle"
    prepare = "prepare"
    hold = "hold"
    rest = "rest"
    cooldown = "cooldown"


@dataclass(frozen=True)
class ExerciseDefinition:
    """One entry of the session catalog. Durations are whole seconds."""

    title: str
    hold_duration: int
    rest_duration: int
    reps: int
    post_exercise_rest: int = 0
    double_hold: bool = False

    def validate(self) -> "ExerciseDefinition":
        if not self.title.strip():
            raise CatalogError("Exercise title must not be empty")
        for name in ("hold_duration", "rest_duration", "post_exercise_rest"):
            if getattr(self, name) < 0:
                raise CatalogError(f"{self.title}: {name} must be >= 0")
        if self.reps < 1:
            raise CatalogError(f"{self.title}: reps must be >= 1")
        return self

    def to_dict(self) -> Dict[str, Any]:
        return {
            "title": self.title,
            "hold_duration": self.hold_duration,
            "rest_duration": self.rest_duration,
            "reps": self.reps,
            "post_exercise_rest": self.post_exercise_rest,
            "double_hold": self.double_hold,
        }

    @property
    def nominal_seconds(self) -> int:
        """Planned duration ignoring cue playback time."""
        halves = 2 if self.double_hold else 1
        per_rep = (self.hold_duration + self.rest_duration) * halves
        return per_rep * self.reps + self.post_exercise_rest


@dataclass(frozen=True)
class EngineOptions:
    """Feature switches for one engine instance.

    ``prepare_seconds`` of 0 disables the pre-session countdown and the first
    ``start()`` goes straight into the first hold. ``count_cues_gate`` makes
    spoken count tracks suspend the clock like every other cue.
    """

    prepare_seconds: int = DEFAULT_PREPARE_SECONDS
    autoplay: bool = True
    allow_skip: bool = True
    count_cues_gate: bool = False
    tick_seconds: float = DEFAULT_TICK_SECONDS


@dataclass(frozen=True)
class SessionSummary:
    """Emitted once when a session finishes."""

    start: datetime
    end: datetime
    exercise_count: int
    total_reps: int
    autoplay_enabled: bool

    @property
    def duration_seconds(self) -> float:
        return max((self.end - self.start).total_seconds(), 0.0)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "start": self.start.isoformat(),
            "end": self.end.isoformat(),
            "exercise_count": self.exercise_count,
            "total_reps": self.total_reps,
            "autoplay_enabled": self.autoplay_enabled,
            "duration_seconds": round(self.duration_seconds, 3),
        }


@dataclass(frozen=True)
class SessionSnapshot:
    """Read-only view of the engine published to observers."""

    stage: SessionStage
    phase: ExercisePhase
    current_exercise_index: Optional[int]
    current_rep: int
    completed_reps: int
    total_required_reps: int
    total_elapsed_seconds: int
    phase_elapsed_seconds: int
    phase_remaining: int
    progress: float
    current_exercise: Optional[ExerciseDefinition]
    upcoming_exercise: Optional[ExerciseDefinition]
    spoken_prompt: str
    audio_gated: bool
    silent_mode: bool
    autoplay_enabled: bool

    def to_dict(self) -> Dict[str, Any]:
        return {
            "stage": self.stage.value,
            "phase": self.phase.value,
            "current_exercise_index": self.current_exercise_index,
            "current_rep": self.current_rep,
            "completed_reps": self.completed_reps,
            "total_required_reps": self.total_required_reps,
            "total_elapsed_seconds": self.total_elapsed_seconds,
            "phase_elapsed_seconds": self.phase_elapsed_seconds,
            "phase_remaining": self.phase_remaining,
            "progress": self.progress,
            "current_exercise": self.current_exercise.to_dict() if self.current_exercise else None,
            "upcoming_exercise": self.upcoming_exercise.to_dict() if self.upcoming_exercise else None,
            "spoken_prompt": self.spoken_prompt,
            "audio_gated": self.audio_gated,
            "silent_mode": self.silent_mode,
            "autoplay_enabled": self.autoplay_enabled,
        }
