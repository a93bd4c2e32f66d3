# /// script
# requires-python = ">=3.12"
# dependencies = ["pydantic>=2.0"]
# ///
"""What a simulation model sees of its run.

``SimulationContext`` bundles the per-run services (random source, clock,
event scheduler, snapshot manager, parameters, pause/stop control).  It is
immutable: the orchestrator hands each model its own copy built with
``with_parameters`` rather than wrapping one context in another.
"""

from __future__ import annotations

import dataclasses
import threading
import uuid
from dataclasses import dataclass, field
from enum import Enum
from typing import TYPE_CHECKING, Any, Iterator, Mapping, Protocol, runtime_checkable

from simengine.clock import SimulationClock
from simengine.events import EventScheduler
from simengine.random_source import RandomSource
from simengine.state import InMemoryStateManager

if TYPE_CHECKING:
    from simengine.metrics import SimulationMetrics


class StepResult(str, Enum):
    CONTINUE = "CONTINUE"
    COMPLETED = "COMPLETED"
    PAUSED = "PAUSED"
    ERROR = "ERROR"


@runtime_checkable
class SimulationModel(Protocol):
    """Contract every steppable model implements."""
    name: str
    version: str

    def initialize(self, context: SimulationContext) -> None: ...

    def step(self) -> StepResult: ...

    @property
    def is_complete(self) -> bool: ...

    def dispose(self) -> None: ...


# ---------------------------------------------------------------------------
# Key/value stores
# ---------------------------------------------------------------------------

class SimulationParameters:
    """Thread-safe parameter bag."""

    def __init__(self, values: Mapping[str, Any] | None = None):
        self._lock = threading.Lock()
        self._values: dict[str, Any] = dict(values or {})

    def set(self, key: str, value: Any) -> None:
        with self._lock:
            self._values[key] = value

    def get(self, key: str) -> Any:
        """Return the value for *key*; ``KeyError`` if it was never set."""
        with self._lock:
            if key not in self._values:
                raise KeyError(f"Parameter '{key}' not set")
            return self._values[key]

    def try_get(self, key: str) -> tuple[bool, Any]:
        with self._lock:
            if key in self._values:
                return True, self._values[key]
            return False, None

    def get_or_default(self, key: str, default: Any = None) -> Any:
        with self._lock:
            return self._values.get(key, default)

    def contains(self, key: str) -> bool:
        with self._lock:
            return key in self._values

    def keys(self) -> list[str]:
        with self._lock:
            return list(self._values)

    def to_dict(self) -> dict[str, Any]:
        with self._lock:
            return dict(self._values)

    def copy(self) -> SimulationParameters:
        return SimulationParameters(self.to_dict())

    def merged(self, overrides: Mapping[str, Any] | None) -> SimulationParameters:
        """New bag holding these values with *overrides* layered on top."""
        values = self.to_dict()
        values.update(overrides or {})
        return SimulationParameters(values)

    def __contains__(self, key: str) -> bool:
        return self.contains(key)

    def __len__(self) -> int:
        with self._lock:
            return len(self._values)


class SharedContext:
    """Cross-model key/value store owned by one orchestrator."""

    def __init__(self):
        self._lock = threading.Lock()
        self._values: dict[str, Any] = {}

    def set(self, key: str, value: Any) -> None:
        with self._lock:
            self._values[key] = value

    def get(self, key: str, default: Any = None) -> Any:
        with self._lock:
            return self._values.get(key, default)

    def remove(self, key: str) -> bool:
        with self._lock:
            if key not in self._values:
                return False
            del self._values[key]
            return True

    def clear(self) -> None:
        with self._lock:
            self._values.clear()

    def items(self) -> Iterator[tuple[str, Any]]:
        with self._lock:
            return iter(list(self._values.items()))

    def __contains__(self, key: str) -> bool:
        with self._lock:
            return key in self._values

    def __len__(self) -> int:
        with self._lock:
            return len(self._values)


# ---------------------------------------------------------------------------
# Pause / stop
# ---------------------------------------------------------------------------

class RunControl:
    """Cooperative pause/stop flags polled between steps."""

    def __init__(self):
        self._pause = threading.Event()
        self._stop = threading.Event()

    @property
    def pause_requested(self) -> bool:
        return self._pause.is_set()

    @property
    def stop_requested(self) -> bool:
        return self._stop.is_set()

    def request_pause(self) -> None:
        self._pause.set()

    def request_stop(self) -> None:
        self._stop.set()

    def resume(self) -> None:
        self._pause.clear()


# ---------------------------------------------------------------------------
# Context
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class SimulationContext:
    run_id: uuid.UUID
    random: RandomSource
    clock: SimulationClock
    events: EventScheduler
    state: InMemoryStateManager
    parameters: SimulationParameters = field(default_factory=SimulationParameters)
    shared: SharedContext | None = None
    metrics: SimulationMetrics | None = None
    control: RunControl = field(default_factory=RunControl)

    @property
    def pause_requested(self) -> bool:
        return self.control.pause_requested

    @property
    def stop_requested(self) -> bool:
        return self.control.stop_requested

    def request_pause(self) -> None:
        self.control.request_pause()

    def request_stop(self) -> None:
        self.control.request_stop()

    def with_parameters(self, parameters: SimulationParameters,
                        shared: SharedContext | None = None) -> SimulationContext:
        """Copy of this context with its own parameters and shared store."""
        return dataclasses.replace(
            self, parameters=parameters,
            shared=shared if shared is not None else self.shared,
        )
