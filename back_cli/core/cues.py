"""Symbolic audio cues passed from the engine to the audio port."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import List, Optional


class CueKind(str, Enum):
    """Every cue an audio port understands.

    The engine emits a subset (count, rep_complete, exercise_intro, cooldown,
    session_complete, resume, paused, ready_for_exercise). ``rest``,
    ``rep_start``, ``exercise_complete`` and ``custom`` complete the prompt
    vocabulary so recorded prompt packs and other callers can address every
    clip the player knows how to find.
    """

    count = "count"
    rest = "rest"
    rep_start = "rep_start"
    rep_complete = "rep_complete"
    exercise_intro = "exercise_intro"
    exercise_complete = "exercise_complete"
    cooldown = "cooldown"
    session_complete = "session_complete"
    resume = "resume"
    paused = "paused"
    ready_for_exercise = "ready_for_exercise"
    custom = "custom"


@dataclass(frozen=True)
class AudioCue:
    """A cue kind plus the payload that kind carries.

    Use the named constructors rather than filling the fields directly;
    ``index`` is always the zero-based catalog position.
    """

    kind: CueKind
    number: Optional[int] = None
    index: Optional[int] = None
    title: str = ""
    text: str = ""
    resource: Optional[str] = None

    @classmethod
    def count(cls, number: int) -> "AudioCue":
        return cls(CueKind.count, number=number)

    @classmethod
    def rest(cls) -> "AudioCue":
        return cls(CueKind.rest)

    @classmethod
    def rep_start(cls, number: int) -> "AudioCue":
        return cls(CueKind.rep_start, number=number)

    @classmethod
    def rep_complete(cls, number: int) -> "AudioCue":
        return cls(CueKind.rep_complete, number=number)

    @classmethod
    def exercise_intro(cls, index: int, title: str) -> "AudioCue":
        return cls(CueKind.exercise_intro, index=index, title=title)

    @classmethod
    def exercise_complete(cls, index: int) -> "AudioCue":
        return cls(CueKind.exercise_complete, index=index)

    @classmethod
    def cooldown(cls) -> "AudioCue":
        return cls(CueKind.cooldown)

    @classmethod
    def session_complete(cls) -> "AudioCue":
        return cls(CueKind.session_complete)

    @classmethod
    def resume(cls) -> "AudioCue":
        return cls(CueKind.resume)

    @classmethod
    def paused(cls) -> "AudioCue":
        return cls(CueKind.paused)

    @classmethod
    def ready_for_exercise(cls, number: int) -> "AudioCue":
        return cls(CueKind.ready_for_exercise, number=number)

    @classmethod
    def custom(cls, text: str, resource: Optional[str] = None) -> "AudioCue":
        return cls(CueKind.custom, text=text, resource=resource)

    @property
    def is_count(self) -> bool:
        return self.kind is CueKind.count

    @property
    def spoken_text(self) -> str:
        kind = self.kind
        if kind is CueKind.count:
            return str(self.number)
        if kind is CueKind.rest:
            return "Rest"
        if kind is CueKind.rep_start:
            return f"Rep {self.number} start"
        if kind is CueKind.rep_complete:
            return f"Rep {self.number} complete"
        if kind is CueKind.exercise_intro:
            return f"Exercise {(self.index or 0) + 1}: {self.title}"
        if kind is CueKind.exercise_complete:
            return f"Exercise {(self.index or 0) + 1} done"
        if kind is CueKind.cooldown:
            return "Cooldown"
        if kind is CueKind.session_complete:
            return "Session complete"
        if kind is CueKind.resume:
            return "Resuming"
        if kind is CueKind.paused:
            return "Paused"
        if kind is CueKind.ready_for_exercise:
            return f"Tap start when ready for exercise {self.number}"
        return self.text

    @property
    def candidate_resource_names(self) -> List[str]:
        """Base filenames (no extension) to try for a recorded prompt, best first."""
        kind = self.kind
        if kind is CueKind.count:
            return [f"count_{self.number}"]
        if kind is CueKind.rep_start:
            return [f"rep_{self.number}_start", "rep_start"]
        if kind is CueKind.rep_complete:
            return [f"rep_{self.number}_complete", "rep_complete"]
        if kind is CueKind.exercise_intro:
            return [f"exercise_{(self.index or 0) + 1}", "exercise_start"]
        if kind is CueKind.ready_for_exercise:
            return ["ready_next_exercise"]
        if kind is CueKind.custom:
            return [self.resource] if self.resource else []
        return [kind.value]
