"""Static constants and defaults for the session player."""

from __future__ import annotations

DEFAULT_PREPARE_SECONDS = 10
DEFAULT_TICK_SECONDS = 1.0

# Count tracks are looked up longest first when a hold begins.
COUNT_SEQUENCE_LENGTHS = (10, 5)

DEFAULT_CATALOG = [
    {
        "title": "Single Knee-to-Chest",
        "hold": 5,
        "rest": 3,
        "reps": 10,
        "cooldown": 10,
        "double_hold": True,
    },
    {"title": "Double Knee-to-Chest", "hold": 10, "rest": 3, "reps": 10, "cooldown": 10},
    {"title": "Hamstring Stretch (Left)", "hold": 10, "rest": 3, "reps": 10, "cooldown": 10},
    {"title": "Hamstring Stretch (Right)", "hold": 10, "rest": 3, "reps": 10, "cooldown": 0},
]

AUDIO_EXTENSIONS = ("m4a", "mp3", "wav", "caf", "aif", "aiff")
PROMPTS_SUBDIRECTORY = "AudioPrompts"

# Candidate players, tried in order when no command is configured.
PLAYER_COMMANDS = (
    ("afplay",),
    ("mpg123", "-q"),
    ("ffplay", "-nodisp", "-autoexit", "-loglevel", "quiet"),
    ("aplay", "-q"),
)
SPEECH_COMMANDS = (
    ("say",),
    ("espeak-ng",),
    ("espeak",),
)

DAY_BOUNDARY_HOUR = 4
AVERAGE_WINDOW_DAYS = 30

PHASE_LABELS = {
    "idle": "Ready",
    "prepare": "Get ready",
    "hold": "Hold",
    "rest": "Rest",
    "cooldown": "Cooldown",
}

STAGE_LABELS = {
    "idle": "Idle",
    "running": "Running",
    "paused": "Paused",
    "waiting_for_next_exercise": "Waiting",
    "completed": "Completed",
}
