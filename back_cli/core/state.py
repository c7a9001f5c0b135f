"""Per-invocation state shared with commands through ``ctx.obj``."""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict

from rich.console import Console


@dataclass
class CLIState:
    """Output mode, verbosity and the merged config for one ``back`` run."""

    json_output: bool
    plain_output: bool
    verbose: bool
    quiet: bool
    config_path: Path
    config: Dict[str, Any]
    console: Console

    @property
    def interactive(self) -> bool:
        """True when the live display and prompts should be rendered."""
        return not (self.json_output or self.plain_output or self.quiet)

    def section(self, name: str) -> Dict[str, Any]:
        value = self.config.get(name)
        return value if isinstance(value, dict) else {}
