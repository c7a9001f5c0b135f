"""Formatting helpers used by the live display and reports."""

from __future__ import annotations

from typing import Optional

from back_cli.core.constants import PHASE_LABELS, STAGE_LABELS
from back_cli.core.models import ExercisePhase, SessionSnapshot, SessionStage


def format_clock(seconds: Optional[float]) -> str:
    """Format elapsed seconds as MM:SS; minutes are not wrapped into hours."""
    if not seconds or seconds <= 0:
        return "00:00"
    total = int(seconds)
    m, s = divmod(total, 60)
    return f"{m:02d}:{s:02d}"


def format_duration(seconds: Optional[float]) -> str:
    """Format a duration as MM:SS, or HH:MM:SS once it reaches an hour."""
    total = int(round(max(seconds or 0.0, 0.0)))
    h, rem = divmod(total, 3600)
    m, s = divmod(rem, 60)
    if h:
        return f"{h:02d}:{m:02d}:{s:02d}"
    return f"{m:02d}:{s:02d}"


def format_rep(snapshot: SessionSnapshot, first_reps: int = 0) -> str:
    if snapshot.stage is SessionStage.idle:
        return "–"
    target = snapshot.current_exercise.reps if snapshot.current_exercise else first_reps
    return f"{max(snapshot.current_rep, 0)}/{target}"


def phase_label(phase: ExercisePhase) -> str:
    return PHASE_LABELS.get(phase.value, phase.value.title())


def stage_label(stage: SessionStage) -> str:
    return STAGE_LABELS.get(stage.value, stage.value.title())


def format_progress(progress: float) -> str:
    return f"{max(min(progress, 1.0), 0.0) * 100:.0f}%"
