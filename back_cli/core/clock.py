"""Periodic tick sources for the session engine."""

from __future__ import annotations

import logging
import threading
from typing import Callable, List, Optional

logger = logging.getLogger(__name__)

TickCallback = Callable[["TickHandle"], None]


class TickHandle:
    """Owned registration of a repeating callback.

    The callback receives the handle so the receiver can reject ticks from a
    registration it has already replaced.
    """

    def __init__(self, interval: float, callback: TickCallback) -> None:
        self.interval = interval
        self.callback = callback
        self._cancelled = threading.Event()

    @property
    def active(self) -> bool:
        return not self._cancelled.is_set()

    def cancel(self) -> None:
        self._cancelled.set()

    def wait(self, timeout: Optional[float] = None) -> bool:
        """Block until cancelled or ``timeout`` elapses; True when cancelled."""
        return self._cancelled.wait(timeout)


class ThreadingClock:
    """Wall-clock ticks, one daemon thread per registration."""

    def __init__(self, name: str = "back-clock") -> None:
        self.name = name

    def schedule(self, interval: float, callback: TickCallback) -> TickHandle:
        handle = TickHandle(interval, callback)
        thread = threading.Thread(
            target=self._run,
            args=(handle,),
            name=self.name,
            daemon=True,
        )
        thread.start()
        return handle

    @staticmethod
    def _run(handle: TickHandle) -> None:
        while not handle.wait(handle.interval):
            try:
                handle.callback(handle)
            except Exception:
                logger.exception("Tick callback failed; stopping clock")
                handle.cancel()


class ManualClock:
    """Clock advanced explicitly by the caller. Used by tests and simulations."""

    def __init__(self) -> None:
        self._handles: List[TickHandle] = []
        self.ticks = 0

    def schedule(self, interval: float, callback: TickCallback) -> TickHandle:
        handle = TickHandle(interval, callback)
        self._handles.append(handle)
        return handle

    @property
    def active_handles(self) -> List[TickHandle]:
        self._handles = [handle for handle in self._handles if handle.active]
        return list(self._handles)

    def advance(self, ticks: int = 1) -> None:
        """Fire every active registration ``ticks`` times."""
        for _ in range(ticks):
            self.ticks += 1
            for handle in self.active_handles:
                if handle.active:
                    handle.callback(handle)
