# /// script
# requires-python = ">=3.12"
# dependencies = []
# ///
"""Event scheduler: an append-only, sequenced log with synchronous fan-out.

Domain code publishes immutable ``SimulationEvent`` records.  The scheduler
stamps each one with the next sequence number and the current simulated
time, appends it to the log, then hands it to every registered handler
whose type filter matches.  A failing handler is logged and skipped; it
never reaches the publisher or the handlers after it.

Usage::

    scheduler = EventScheduler()
    scheduler.register_handler(CallbackHandler(print, {"baseball.run.scored"}))
    scheduler.publish(RunScoredEvent(...))
"""

from __future__ import annotations

import dataclasses
import logging
import threading
from dataclasses import dataclass
from datetime import timedelta
from typing import Callable, ClassVar, Iterable, TypeVar

logger = logging.getLogger(__name__)

E = TypeVar("E", bound="SimulationEvent")


# ---------------------------------------------------------------------------
# Event base
# ---------------------------------------------------------------------------

@dataclass(frozen=True, kw_only=True)
class SimulationEvent:
    """Base record for everything that goes through the scheduler.

    ``sequence`` and ``timestamp`` are assigned at publish time; whatever
    the caller passes in is overwritten.
    """
    event_type: ClassVar[str] = "simulation.event"

    sequence: int = 0
    timestamp: timedelta = timedelta(0)


# ---------------------------------------------------------------------------
# Handlers
# ---------------------------------------------------------------------------

class EventHandler:
    """Receives published events.

    ``event_types`` is the set of type tags the handler wants; ``None`` or
    an empty set means every event.  ``handle`` runs inline with publish, so
    it must not block.
    """
    event_types: frozenset[str] | None = None

    def handle(self, event: SimulationEvent) -> None:
        raise NotImplementedError

    def accepts(self, event: SimulationEvent) -> bool:
        return not self.event_types or event.event_type in self.event_types


class CallbackHandler(EventHandler):
    """Adapts a plain callable into an ``EventHandler``."""

    def __init__(self, callback: Callable[[SimulationEvent], None],
                 event_types: Iterable[str] | None = None):
        self._callback = callback
        self.event_types = frozenset(event_types) if event_types else None

    def handle(self, event: SimulationEvent) -> None:
        self._callback(event)

    def __repr__(self) -> str:
        name = getattr(self._callback, "__name__", repr(self._callback))
        return f"CallbackHandler({name})"


# ---------------------------------------------------------------------------
# Scheduler
# ---------------------------------------------------------------------------

class EventScheduler:
    """Assigns sequence numbers and timestamps, logs, and dispatches events."""

    def __init__(self, debug_mode: bool = False):
        self.debug_mode = debug_mode
        self._lock = threading.Lock()
        self._handlers: list[EventHandler] = []
        self._log: list[SimulationEvent] = []
        self._sequence = 0
        self._current_time = timedelta(0)

    # -- handlers ----------------------------------------------------------

    def register_handler(self, handler: EventHandler) -> None:
        with self._lock:
            self._handlers.append(handler)

    def unregister_handler(self, handler: EventHandler) -> None:
        with self._lock:
            if handler in self._handlers:
                self._handlers.remove(handler)

    # -- time --------------------------------------------------------------

    @property
    def current_time(self) -> timedelta:
        with self._lock:
            return self._current_time

    def advance_time(self, delta: timedelta) -> None:
        with self._lock:
            self._current_time += delta

    def set_time(self, time: timedelta) -> None:
        with self._lock:
            self._current_time = time

    # -- publish -----------------------------------------------------------

    def publish(self, event: E) -> E:
        """Stamp, log and dispatch *event*; return the stamped copy."""
        with self._lock:
            self._sequence += 1
            stamped = dataclasses.replace(
                event, sequence=self._sequence, timestamp=self._current_time
            )
            self._log.append(stamped)
            handlers = list(self._handlers)

        if self.debug_mode:
            logger.debug("#%04d @%s | %s", stamped.sequence, stamped.timestamp,
                         stamped.event_type)

        self._dispatch(stamped, handlers)
        return stamped

    def _dispatch(self, event: SimulationEvent, handlers: list[EventHandler]) -> None:
        for handler in handlers:
            if not handler.accepts(event):
                continue
            if self.debug_mode:
                logger.debug("  -> dispatching to %r", handler)
            try:
                handler.handle(event)
            except Exception as exc:
                logger.error("Event handler %r failed on %s #%d: %s",
                             handler, event.event_type, event.sequence, exc)

    # -- log access --------------------------------------------------------

    @property
    def event_log(self) -> tuple[SimulationEvent, ...]:
        with self._lock:
            return tuple(self._log)

    def get_events(self, event_cls: type[E] | None = None) -> list[E]:
        """Return logged events, optionally only instances of *event_cls*."""
        with self._lock:
            if event_cls is None:
                return list(self._log)
            return [e for e in self._log if isinstance(e, event_cls)]

    def filter_events(self, predicate: Callable[[SimulationEvent], bool]) -> list[SimulationEvent]:
        with self._lock:
            return [e for e in self._log if predicate(e)]

    def clear_log(self) -> None:
        """Empty the log; sequence numbering and time carry on."""
        with self._lock:
            self._log.clear()

    def reset(self) -> None:
        """Empty the log and restart sequence numbering and time from zero."""
        with self._lock:
            self._log.clear()
            self._sequence = 0
            self._current_time = timedelta(0)
