"""Session state machine and timing engine.

The engine walks a fixed catalog of exercises. Each exercise is a series of
repetitions; each repetition is a hold phase optionally followed by a rest
phase, and the exercise may end with a cooldown. A single repeating tick
(one second by default) advances the phase counters.

Audio cues are fire-and-forget. While a non-count cue is playing the tick
still fires but elapsed time does not advance, so a phase never runs out in
the middle of a spoken line.

All state changes happen under one lock, from either a command or a tick.
The completion callback and then the observers are called after the lock is
released; ``close()`` waits for a delivery that is already under way, and
nothing is delivered once it returns.
"""

from __future__ import annotations

import logging
import threading
from contextlib import contextmanager
from datetime import datetime
from typing import Callable, Iterable, Iterator, List, Optional, Tuple

from back_cli.core.audio import AudioPort
from back_cli.core.clock import ThreadingClock, TickHandle
from back_cli.core.constants import COUNT_SEQUENCE_LENGTHS
from back_cli.core.cues import AudioCue
from back_cli.core.models import (
    CatalogError,
    EngineOptions,
    ExerciseDefinition,
    ExercisePhase,
    SessionSnapshot,
    SessionStage,
    SessionSummary,
)

logger = logging.getLogger(__name__)

Listener = Callable[[SessionSnapshot], None]
SummaryConsumer = Callable[[SessionSummary], None]


def _local_now() -> datetime:
    return datetime.now().astimezone()


class SessionEngine:
    """Drives one guided session at a time over an immutable catalog."""

    def __init__(
        self,
        catalog: Iterable[ExerciseDefinition],
        audio: AudioPort,
        clock=None,
        options: Optional[EngineOptions] = None,
        on_session_complete: Optional[SummaryConsumer] = None,
        now: Optional[Callable[[], datetime]] = None,
    ) -> None:
        exercises: Tuple[ExerciseDefinition, ...] = tuple(item.validate() for item in catalog)
        if not exercises:
            raise CatalogError("Exercise catalog must contain at least one exercise")

        self.exercises = exercises
        self.audio = audio
        self.clock = clock or ThreadingClock()
        self.options = options or EngineOptions()
        self.on_session_complete = on_session_complete
        self._now = now or _local_now

        self._lock = threading.RLock()
        self._delivered = threading.Condition(self._lock)
        self._in_flight = 0
        self._local = threading.local()
        self._listeners: List[Listener] = []
        self._timer: Optional[TickHandle] = None
        self._closed = False
        self._pending_summary: Optional[SessionSummary] = None

        self._autoplay = self.options.autoplay
        self._silent = bool(getattr(audio, "silent", False))

        self._stage = SessionStage.idle
        self._phase = ExercisePhase.idle
        self._current_exercise_index: Optional[int] = None
        self._current_rep = 0
        self._completed_reps = 0
        self._total_elapsed = 0
        self._phase_elapsed = 0
        self._session_start: Optional[datetime] = None
        self._spoken_prompt = ""
        self._pause_while_audio = False
        self._sequence_counting_active = False
        self._pending_sequence_count: Optional[int] = None
        self._half_rep_pending = False

    # ------------------------------------------------------------------
    # Commands

    def start(self) -> None:
        with self._mutating():
            if self._closed:
                return
            stage = self._stage
            if stage in (SessionStage.idle, SessionStage.completed):
                self._reset()
                self._begin_session()
            elif stage is SessionStage.paused:
                self._resume_timer()
                self._set_stage(SessionStage.running)
                self._play_cue(AudioCue.resume())
            elif stage is SessionStage.waiting_for_next_exercise:
                if self._current_exercise_index is not None:
                    self._begin_exercise(self._current_exercise_index)
                else:
                    self._begin_session()
            else:
                logger.debug("start() ignored while %s", stage.value)

    def pause(self) -> None:
        with self._mutating():
            if self._closed or self._stage is not SessionStage.running:
                logger.debug("pause() ignored while %s", self._stage.value)
                return
            self._cancel_timer()
            self._set_stage(SessionStage.paused)
            self._play_cue(AudioCue.paused())

    def stop(self) -> None:
        """Abandon the session. No summary is emitted."""
        with self._mutating():
            if self._closed:
                return
            self._cancel_timer()
            self._reset()

    def skip(self) -> None:
        """Jump to the next rep, or to the next exercise when no reps remain.

        The skipped rep is not counted as completed. A pending first half of a
        double-hold rep is discarded.
        """
        with self._mutating():
            if self._closed or not self.options.allow_skip:
                return
            if self._stage not in (SessionStage.running, SessionStage.paused):
                logger.debug("skip() ignored while %s", self._stage.value)
                return

            self.audio.stop()
            self._pause_while_audio = False
            self._sequence_counting_active = False
            self._pending_sequence_count = None

            if self._phase is ExercisePhase.prepare:
                self._begin_exercise(0)
                return

            index = self._current_exercise_index
            exercise = self._exercise_at(index)
            if index is None or exercise is None:
                return

            self._half_rep_pending = False
            if self._current_rep < exercise.reps:
                self._current_rep += 1
                self._set_phase(ExercisePhase.hold)
                return
            self._advance_to_next_exercise(index)

    def tick(self, handle: Optional[TickHandle] = None) -> None:
        """Advance the session by one tick.

        Ticks delivered through a handle the engine no longer owns are dropped.
        """
        with self._mutating():
            if self._closed:
                return
            if handle is not None and (handle is not self._timer or not handle.active):
                return
            self._tick()

    def set_autoplay(self, enabled: bool) -> None:
        with self._mutating():
            self._autoplay = bool(enabled)

    def set_silent_mode(self, enabled: bool) -> None:
        """Mute cue content. Timing is unchanged; a muted port is never busy."""
        with self._mutating():
            self._silent = bool(enabled)
            self.audio.silent = self._silent
            if self._silent:
                self.audio.stop()
                self._pause_while_audio = False

    def close(self) -> None:
        """Cancel the clock and release the audio port. Idempotent.

        A summary or snapshot delivery already running on another thread is
        allowed to finish before this returns.
        """
        with self._lock:
            if self._closed:
                return
            self._closed = True
            self._cancel_timer()
            self.audio.stop()
            self.audio.close()
            self._listeners.clear()
            self._pending_summary = None
            # Closing from inside a listener must not wait on itself.
            if not getattr(self._local, "depth", 0):
                self._delivered.wait_for(lambda: self._in_flight == 0)

    def __enter__(self) -> "SessionEngine":
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()

    # ------------------------------------------------------------------
    # Observation

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        """Register ``listener`` for snapshots; returns an unsubscribe function."""
        with self._lock:
            self._listeners.append(listener)

        def _unsubscribe() -> None:
            with self._lock:
                if listener in self._listeners:
                    self._listeners.remove(listener)

        return _unsubscribe

    def snapshot(self) -> SessionSnapshot:
        with self._lock:
            return self._snapshot()

    @property
    def stage(self) -> SessionStage:
        return self._stage

    @property
    def phase(self) -> ExercisePhase:
        return self._phase

    @property
    def current_exercise_index(self) -> Optional[int]:
        return self._current_exercise_index

    @property
    def current_rep(self) -> int:
        return self._current_rep

    @property
    def completed_reps(self) -> int:
        return self._completed_reps

    @property
    def total_elapsed_seconds(self) -> int:
        return self._total_elapsed

    @property
    def phase_elapsed_seconds(self) -> int:
        return self._phase_elapsed

    @property
    def spoken_prompt(self) -> str:
        return self._spoken_prompt

    @property
    def autoplay_enabled(self) -> bool:
        return self._autoplay

    @property
    def silent_mode(self) -> bool:
        return self._silent

    @property
    def is_audio_gated(self) -> bool:
        return self._pause_while_audio

    @property
    def session_start(self) -> Optional[datetime]:
        return self._session_start

    @property
    def is_closed(self) -> bool:
        return self._closed

    @property
    def total_required_reps(self) -> int:
        return sum(exercise.reps for exercise in self.exercises)

    @property
    def progress(self) -> float:
        total = self.total_required_reps
        if total <= 0:
            return 0.0
        return self._completed_reps / total

    @property
    def current_exercise(self) -> Optional[ExerciseDefinition]:
        return self._exercise_at(self._current_exercise_index)

    @property
    def upcoming_exercise(self) -> Optional[ExerciseDefinition]:
        if self._current_exercise_index is None:
            return self.exercises[0]
        return self._exercise_at(self._current_exercise_index + 1)

    @property
    def phase_remaining(self) -> int:
        return max(self._phase_duration(self._phase) - self._phase_elapsed, 0)

    # ------------------------------------------------------------------
    # Internals; callers hold the lock.

    @contextmanager
    def _mutating(self) -> Iterator[None]:
        with self._lock:
            yield
            if self._closed:
                return
            summary, self._pending_summary = self._pending_summary, None
            listeners = list(self._listeners)
            snapshot = self._snapshot()
            self._in_flight += 1
        try:
            self._emit(snapshot, listeners, summary)
        finally:
            with self._lock:
                self._in_flight -= 1
                self._delivered.notify_all()

    def _emit(
        self,
        snapshot: SessionSnapshot,
        listeners: List[Listener],
        summary: Optional[SessionSummary],
    ) -> None:
        depth = getattr(self._local, "depth", 0)
        self._local.depth = depth + 1
        try:
            if summary is not None and self.on_session_complete is not None:
                try:
                    self.on_session_complete(summary)
                except Exception:
                    logger.exception("Session summary consumer failed")
            for listener in listeners:
                if self._closed:
                    break
                try:
                    listener(snapshot)
                except Exception:
                    logger.exception("Session listener failed")
        finally:
            self._local.depth = depth

    def _snapshot(self) -> SessionSnapshot:
        return SessionSnapshot(
            stage=self._stage,
            phase=self._phase,
            current_exercise_index=self._current_exercise_index,
            current_rep=self._current_rep,
            completed_reps=self._completed_reps,
            total_required_reps=self.total_required_reps,
            total_elapsed_seconds=self._total_elapsed,
            phase_elapsed_seconds=self._phase_elapsed,
            phase_remaining=self.phase_remaining,
            progress=self.progress,
            current_exercise=self.current_exercise,
            upcoming_exercise=self.upcoming_exercise,
            spoken_prompt=self._spoken_prompt,
            audio_gated=self._pause_while_audio,
            silent_mode=self._silent,
            autoplay_enabled=self._autoplay,
        )

    def _exercise_at(self, index: Optional[int]) -> Optional[ExerciseDefinition]:
        if index is None or not 0 <= index < len(self.exercises):
            return None
        return self.exercises[index]

    def _phase_duration(self, phase: ExercisePhase) -> int:
        if phase is ExercisePhase.prepare:
            return self.options.prepare_seconds
        exercise = self.current_exercise
        if exercise is None:
            return 0
        if phase is ExercisePhase.hold:
            return exercise.hold_duration
        if phase is ExercisePhase.rest:
            return exercise.rest_duration
        if phase is ExercisePhase.cooldown:
            return exercise.post_exercise_rest
        return 0

    def _set_stage(self, stage: SessionStage) -> None:
        if stage is not self._stage:
            logger.debug("Stage %s -> %s", self._stage.value, stage.value)
        self._stage = stage

    def _reset(self) -> None:
        self.audio.stop()
        self._set_stage(SessionStage.idle)
        self._phase = ExercisePhase.idle
        self._current_exercise_index = None
        self._current_rep = 0
        self._completed_reps = 0
        self._total_elapsed = 0
        self._phase_elapsed = 0
        self._session_start = None
        self._spoken_prompt = ""
        self._pending_sequence_count = None
        self._sequence_counting_active = False
        self._pause_while_audio = False
        self._half_rep_pending = False

    def _begin_session(self) -> None:
        self._session_start = self._now()
        self._set_stage(SessionStage.running)
        self._completed_reps = 0
        self._total_elapsed = 0
        if self.options.prepare_seconds <= 0:
            self._begin_exercise(0)
            return
        self._set_phase(ExercisePhase.prepare)
        self._start_timer()

    def _begin_exercise(self, index: int) -> None:
        exercise = self._exercise_at(index)
        if exercise is None:
            self._finish_session()
            return
        self._set_stage(SessionStage.running)
        self._current_exercise_index = index
        self._current_rep = 1
        self._half_rep_pending = False
        self._set_phase(ExercisePhase.hold)
        self._play_cue(AudioCue.exercise_intro(index, exercise.title))
        self._start_timer()

    def _set_phase(self, phase: ExercisePhase) -> None:
        self._phase = phase
        self._phase_elapsed = 0
        self._configure_phase_audio(phase)
        self._announce_phase_start()

    def _configure_phase_audio(self, phase: ExercisePhase) -> None:
        self._sequence_counting_active = False
        self._pending_sequence_count = None
        exercise = self.current_exercise
        if phase is not ExercisePhase.hold or exercise is None:
            return
        for length in COUNT_SEQUENCE_LENGTHS:
            if exercise.hold_duration >= length and self.audio.has_prompt(AudioCue.count(length)):
                self._pending_sequence_count = length
                return

    def _announce_phase_start(self) -> None:
        exercise = self.current_exercise
        phase = self._phase
        if phase is ExercisePhase.prepare:
            self._spoken_prompt = f"Get ready {self.options.prepare_seconds}s"
        elif phase is ExercisePhase.hold and exercise is not None:
            self._spoken_prompt = f"Hold for {exercise.hold_duration}s"
        elif phase is ExercisePhase.rest and exercise is not None and exercise.rest_duration > 0:
            self._spoken_prompt = f"Rest {exercise.rest_duration}s"
        elif phase is ExercisePhase.cooldown and exercise is not None and exercise.post_exercise_rest > 0:
            self._spoken_prompt = f"Cooldown {exercise.post_exercise_rest}s"
        else:
            self._spoken_prompt = ""

    def _start_timer(self) -> None:
        self._cancel_timer()
        self._timer = self.clock.schedule(self.options.tick_seconds, self.tick)

    def _resume_timer(self) -> None:
        if self._timer is None or not self._timer.active:
            self._start_timer()

    def _cancel_timer(self) -> None:
        timer, self._timer = self._timer, None
        if timer is not None:
            timer.cancel()

    def _tick(self) -> None:
        if self._stage is not SessionStage.running:
            return

        if self._pause_while_audio:
            if not self._silent and self.audio.is_busy():
                return
            self._pause_while_audio = False

        self._total_elapsed += 1
        self._phase_elapsed += 1

        phase = self._phase
        if phase is ExercisePhase.prepare:
            if self._phase_elapsed >= self.options.prepare_seconds:
                self._begin_exercise(0)
        elif phase is ExercisePhase.hold:
            self._start_sequence_counting_if_needed()
            exercise = self.current_exercise
            if exercise is not None and self._phase_elapsed >= exercise.hold_duration:
                self._transition_to_rest()
        elif phase is ExercisePhase.rest:
            exercise = self.current_exercise
            if exercise is None or self._phase_elapsed >= exercise.rest_duration:
                self._complete_rep()
        elif phase is ExercisePhase.cooldown:
            exercise = self.current_exercise
            if exercise is not None and self._phase_elapsed >= exercise.post_exercise_rest:
                self._advance_to_next_exercise(self._current_exercise_index or 0)

    def _start_sequence_counting_if_needed(self) -> None:
        # Fires at most once per hold, as soon as the port is free.
        if self._sequence_counting_active or self._pending_sequence_count is None:
            return
        if self.audio.is_busy():
            return
        length = self._pending_sequence_count
        self._sequence_counting_active = True
        self._pending_sequence_count = None
        self._play_cue(AudioCue.count(length))

    def _transition_to_rest(self) -> None:
        exercise = self.current_exercise
        if exercise is not None and exercise.rest_duration > 0:
            self._set_phase(ExercisePhase.rest)
        else:
            self._complete_rep()

    def _complete_rep(self) -> None:
        exercise = self.current_exercise
        if exercise is None:
            return

        if exercise.double_hold and not self._half_rep_pending:
            self._half_rep_pending = True
            self._set_phase(ExercisePhase.hold)
            return

        self._half_rep_pending = False
        self._completed_reps += 1
        self._play_cue(AudioCue.rep_complete(self._current_rep))

        if self._current_rep >= exercise.reps:
            self._finish_exercise()
        else:
            self._current_rep += 1
            self._set_phase(ExercisePhase.hold)

    def _finish_exercise(self) -> None:
        index = self._current_exercise_index
        exercise = self._exercise_at(index)
        if index is None or exercise is None:
            return
        self._half_rep_pending = False
        if exercise.post_exercise_rest > 0:
            self._set_phase(ExercisePhase.cooldown)
            self._play_cue(AudioCue.cooldown())
            return
        self._advance_to_next_exercise(index)

    def _advance_to_next_exercise(self, index: int) -> None:
        next_index = index + 1
        if self._exercise_at(next_index) is None:
            self._finish_session()
            return
        if self._autoplay:
            self._begin_exercise(next_index)
            return

        self._cancel_timer()
        self._current_exercise_index = next_index
        self._current_rep = 0
        self._set_stage(SessionStage.waiting_for_next_exercise)
        self._set_phase(ExercisePhase.idle)
        cue = AudioCue.ready_for_exercise(next_index + 1)
        self._spoken_prompt = cue.spoken_text
        self._play_cue(cue)

    def _finish_session(self) -> None:
        self._cancel_timer()
        self._set_stage(SessionStage.completed)
        self._phase = ExercisePhase.idle
        self._phase_elapsed = 0
        self._pending_sequence_count = None
        self._sequence_counting_active = False
        self._half_rep_pending = False
        self._spoken_prompt = "Session complete"
        self._play_cue(AudioCue.session_complete())

        start, self._session_start = self._session_start, None
        if start is None:
            return
        self._pending_summary = SessionSummary(
            start=start,
            end=self._now(),
            exercise_count=len(self.exercises),
            total_reps=self.total_required_reps,
            autoplay_enabled=self._autoplay,
        )
        logger.debug("Session finished after %s ticks", self._total_elapsed)

    def _play_cue(self, cue: AudioCue) -> None:
        if cue.is_count:
            if not self.audio.has_prompt(cue):
                return
            if self.options.count_cues_gate:
                self._pause_while_audio = True
        else:
            self._pause_while_audio = True
        self.audio.play(cue)
