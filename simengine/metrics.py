# /// script
# requires-python = ">=3.12"
# dependencies = []
# ///
"""Per-run counters and timing."""

from __future__ import annotations

import threading
import time
import uuid
from datetime import datetime, timedelta, timezone
from enum import Enum

from simengine.events import EventHandler, SimulationEvent


class SimulationStatus(str, Enum):
    NOT_STARTED = "NOT_STARTED"
    RUNNING = "RUNNING"
    PAUSED = "PAUSED"
    COMPLETED = "COMPLETED"
    STOPPED = "STOPPED"
    ERROR = "ERROR"


class SimulationMetrics:
    """Step/event/snapshot/error counts plus wall-clock and simulated time."""

    def __init__(self, run_id: uuid.UUID):
        self.run_id = run_id
        self.status = SimulationStatus.NOT_STARTED
        self.start_time: datetime | None = None
        self.end_time: datetime | None = None
        self.simulation_time = timedelta(0)
        self._lock = threading.Lock()
        self._started_at: float | None = None
        self._stopped_at: float | None = None
        self._step_count = 0
        self._event_count = 0
        self._snapshot_count = 0
        self._error_count = 0

    @property
    def step_count(self) -> int:
        with self._lock:
            return self._step_count

    @property
    def event_count(self) -> int:
        with self._lock:
            return self._event_count

    @property
    def snapshot_count(self) -> int:
        with self._lock:
            return self._snapshot_count

    @property
    def error_count(self) -> int:
        with self._lock:
            return self._error_count

    @property
    def wall_clock_elapsed(self) -> float:
        """Seconds of real time between start and stop (or now)."""
        if self._started_at is None:
            return 0.0
        end = self._stopped_at if self._stopped_at is not None else time.perf_counter()
        return end - self._started_at

    @property
    def steps_per_second(self) -> float:
        elapsed = self.wall_clock_elapsed
        return self.step_count / elapsed if elapsed > 0 else 0.0

    @property
    def time_ratio(self) -> float:
        """Simulated seconds per wall-clock second."""
        elapsed = self.wall_clock_elapsed
        return self.simulation_time.total_seconds() / elapsed if elapsed > 0 else 0.0

    def start(self) -> None:
        self.start_time = datetime.now(timezone.utc)
        self.status = SimulationStatus.RUNNING
        self._started_at = time.perf_counter()

    def stop(self, final_status: SimulationStatus, simulation_time: timedelta) -> None:
        self._stopped_at = time.perf_counter()
        self.end_time = datetime.now(timezone.utc)
        self.simulation_time = simulation_time
        self.status = final_status

    def record_step(self) -> None:
        with self._lock:
            self._step_count += 1

    def record_event(self) -> None:
        with self._lock:
            self._event_count += 1

    def record_snapshot(self) -> None:
        with self._lock:
            self._snapshot_count += 1

    def record_error(self) -> None:
        with self._lock:
            self._error_count += 1

    def to_dict(self) -> dict:
        return {
            "run_id": str(self.run_id),
            "status": self.status.value,
            "steps": self.step_count,
            "events": self.event_count,
            "snapshots": self.snapshot_count,
            "errors": self.error_count,
            "simulation_seconds": self.simulation_time.total_seconds(),
            "wall_clock_seconds": round(self.wall_clock_elapsed, 6),
            "steps_per_second": round(self.steps_per_second, 2),
        }


class MetricsEventHandler(EventHandler):
    """Counts every published event into a ``SimulationMetrics``."""

    def __init__(self, metrics: SimulationMetrics):
        self._metrics = metrics

    def handle(self, event: SimulationEvent) -> None:
        self._metrics.record_event()
