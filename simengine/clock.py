# /// script
# requires-python = ">=3.12"
# dependencies = []
# ///
"""Simulated time.

The clock never moves on its own.  In discrete-event mode time jumps only
through ``advance``/``set_time``; in fixed-step mode each ``tick`` also adds
the default step.  Time is a ``timedelta`` measured from the start of the run.
"""

from __future__ import annotations

import threading
from dataclasses import dataclass
from datetime import timedelta
from enum import Enum


class ClockMode(str, Enum):
    DISCRETE_EVENT = "DISCRETE_EVENT"
    FIXED_STEP = "FIXED_STEP"


@dataclass(frozen=True)
class ClockSnapshot:
    time: timedelta
    tick_count: int


class SimulationClock:
    """Monotonic simulated clock with snapshot/restore."""

    def __init__(self, mode: ClockMode = ClockMode.DISCRETE_EVENT,
                 default_step: timedelta | None = None):
        self.mode = mode
        self.default_step = default_step if default_step is not None else timedelta(seconds=1)
        self._lock = threading.Lock()
        self._current_time = timedelta(0)
        self._tick_count = 0

    @property
    def current_time(self) -> timedelta:
        with self._lock:
            return self._current_time

    @property
    def tick_count(self) -> int:
        with self._lock:
            return self._tick_count

    def advance(self, delta: timedelta) -> None:
        """Move time forward by *delta* and count one tick."""
        if delta < timedelta(0):
            raise ValueError(f"Cannot advance time backwards (delta={delta})")
        with self._lock:
            self._current_time += delta
            self._tick_count += 1

    def set_time(self, time: timedelta) -> None:
        with self._lock:
            if time < self._current_time:
                raise ValueError(
                    f"Cannot set time backwards: current={self._current_time}, requested={time}"
                )
            self._current_time = time

    def tick(self) -> None:
        with self._lock:
            self._tick_count += 1
            if self.mode == ClockMode.FIXED_STEP:
                self._current_time += self.default_step

    def reset(self) -> None:
        with self._lock:
            self._current_time = timedelta(0)
            self._tick_count = 0

    def create_snapshot(self) -> ClockSnapshot:
        with self._lock:
            return ClockSnapshot(self._current_time, self._tick_count)

    def restore_snapshot(self, snapshot: ClockSnapshot) -> None:
        with self._lock:
            self._current_time = snapshot.time
            self._tick_count = snapshot.tick_count
