"""Audio prompt playback: recorded clips first, speech synthesis as fallback.

Clips are looked up by the cue's candidate names under a prompts directory,
e.g. ``<prompts_dir>/count_10.mp3`` or ``<prompts_dir>/AudioPrompts/rest.wav``.
Playback is fire-and-forget through an external player process so the clock
thread never blocks; ``is_busy`` polls that process.
"""

from __future__ import annotations

import logging
import shlex
import shutil
import subprocess
from enum import Enum
from pathlib import Path
from typing import Dict, List, Optional, Protocol, Sequence, Set, Tuple

from back_cli.core.constants import (
    AUDIO_EXTENSIONS,
    PLAYER_COMMANDS,
    PROMPTS_SUBDIRECTORY,
    SPEECH_COMMANDS,
)
from back_cli.core.cues import AudioCue

logger = logging.getLogger(__name__)


class AudioPromptMode(str, Enum):
    auto = "auto"
    recordings = "recordings"
    speech = "speech"

    @property
    def title(self) -> str:
        return {"auto": "Auto", "recordings": "Recorded", "speech": "System"}[self.value]

    @property
    def description(self) -> str:
        return {
            "auto": "Use recordings when available",
            "recordings": "Use only custom recordings",
            "speech": "Use built-in speech",
        }[self.value]


class AudioPort(Protocol):
    silent: bool

    def play(self, cue: AudioCue) -> None: ...

    def stop(self) -> None: ...

    def is_busy(self) -> bool: ...

    def has_prompt(self, cue: AudioCue) -> bool: ...

    def close(self) -> None: ...


class NullAudioPort:
    """Port that never produces sound and is never busy."""

    def __init__(self) -> None:
        self.silent = True
        self.played: List[AudioCue] = []

    def play(self, cue: AudioCue) -> None:
        self.played.append(cue)

    def stop(self) -> None:
        return None

    def is_busy(self) -> bool:
        return False

    def has_prompt(self, cue: AudioCue) -> bool:
        return False

    def close(self) -> None:
        return None


def detect_command(candidates: Sequence[Tuple[str, ...]]) -> Optional[List[str]]:
    """Return the first candidate whose executable is on PATH."""
    for candidate in candidates:
        if shutil.which(candidate[0]):
            return list(candidate)
    return None


def _split_command(raw: Optional[str]) -> Optional[List[str]]:
    if not raw:
        return None
    parts = shlex.split(raw)
    return parts or None


class PromptPlayer:
    """Audio port backed by external player and speech processes."""

    def __init__(
        self,
        prompts_dir: Optional[Path] = None,
        mode: AudioPromptMode = AudioPromptMode.auto,
        silent: bool = False,
        player_command: Optional[str] = None,
        speech_command: Optional[str] = None,
    ) -> None:
        self.prompts_dir = prompts_dir
        self._mode = AudioPromptMode(mode)
        self.silent = silent
        self.player_command = _split_command(player_command) or detect_command(PLAYER_COMMANDS)
        self.speech_command = _split_command(speech_command) or detect_command(SPEECH_COMMANDS)
        self._resolved: Dict[str, Path] = {}
        self._missing_logged: Set[str] = set()
        self._process: Optional[subprocess.Popen] = None

    @property
    def mode(self) -> AudioPromptMode:
        return self._mode

    @mode.setter
    def mode(self, value: AudioPromptMode) -> None:
        self._mode = AudioPromptMode(value)
        self.stop()

    def play(self, cue: AudioCue) -> None:
        self.stop()
        if self.silent:
            return

        if self._mode is not AudioPromptMode.speech:
            path = self.resource_path(cue)
            if path is not None and self.player_command:
                self._launch([*self.player_command, str(path)])
                return
            if self._mode is AudioPromptMode.recordings:
                return

        self._speak(cue.spoken_text)

    def stop(self) -> None:
        process, self._process = self._process, None
        if process is None or process.poll() is not None:
            return
        try:
            process.terminate()
        except OSError as exc:
            logger.debug("Could not terminate prompt process: %s", exc)

    def is_busy(self) -> bool:
        if self.silent or self._process is None:
            return False
        return self._process.poll() is None

    def has_prompt(self, cue: AudioCue) -> bool:
        if self._mode is AudioPromptMode.speech:
            return False
        return self.resource_path(cue) is not None

    def close(self) -> None:
        self.stop()
        self._resolved.clear()

    def resource_path(self, cue: AudioCue) -> Optional[Path]:
        """Locate the recorded clip for ``cue``; results are cached per file name."""
        names = cue.candidate_resource_names
        if not names or self.prompts_dir is None or not self.prompts_dir.is_dir():
            return None

        for name in names:
            for ext in AUDIO_EXTENSIONS:
                filename = f"{name}.{ext}"
                cached = self._resolved.get(filename)
                if cached is not None:
                    return cached
                found = self._find(self.prompts_dir, filename)
                if found is not None:
                    self._resolved[filename] = found
                    return found

        key = names[0]
        if key not in self._missing_logged:
            self._missing_logged.add(key)
            logger.info("Missing recording for cue: %s", key)
        return None

    @staticmethod
    def _find(root: Path, filename: str) -> Optional[Path]:
        for candidate in (root / filename, root / PROMPTS_SUBDIRECTORY / filename):
            if candidate.is_file():
                return candidate
        for candidate in sorted(root.rglob(filename)):
            if candidate.is_file():
                return candidate
        return None

    def _speak(self, text: str) -> None:
        if not text or not self.speech_command:
            return
        self._launch([*self.speech_command, text])

    def _launch(self, command: List[str]) -> None:
        try:
            self._process = subprocess.Popen(
                command,
                stdin=subprocess.DEVNULL,
                stdout=subprocess.DEVNULL,
                stderr=subprocess.DEVNULL,
            )
        except OSError as exc:
            self._process = None
            logger.warning("Could not start audio prompt %r: %s", command[0], exc)
