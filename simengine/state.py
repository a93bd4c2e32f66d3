# /// script
# requires-python = ">=3.12"
# dependencies = ["pydantic>=2.0"]
# ///
"""In-memory snapshot manager.

A snapshot is a JSON copy of an arbitrary state object (dataclass, pydantic
model, or plain containers) plus metadata about when it was taken.  The
whole table can be exported to bytes and imported back into a fresh
manager.
"""

from __future__ import annotations

import importlib
import json
import logging
import threading
import uuid
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Any, Callable

from pydantic import BaseModel, Field, TypeAdapter

from simengine.clock import SimulationClock

logger = logging.getLogger(__name__)


class SnapshotMetadata(BaseModel):
    name: str
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    tick_count: int = Field(default=0, ge=0)
    simulation_time: timedelta = timedelta(0)
    state_type: str = Field(default="", description="module:qualname of the snapshotted object")


@dataclass
class _Snapshot:
    metadata: SnapshotMetadata
    payload: bytes


def _type_path(cls: type) -> str:
    return f"{cls.__module__}:{cls.__qualname__}"


def _resolve_type(path: str) -> type | None:
    module_name, _, qualname = path.partition(":")
    if not module_name or not qualname:
        return None
    try:
        obj: Any = importlib.import_module(module_name)
        for part in qualname.split("."):
            obj = getattr(obj, part)
    except (ImportError, AttributeError):
        return None
    return obj if isinstance(obj, type) else None


class InMemoryStateManager:
    """Named snapshots held in memory, serialised through pydantic."""

    def __init__(self, clock_provider: Callable[[], SimulationClock] | None = None,
                 on_snapshot: Callable[[SnapshotMetadata], None] | None = None):
        self._clock_provider = clock_provider
        self._on_snapshot = on_snapshot
        self._lock = threading.Lock()
        self._snapshots: dict[str, _Snapshot] = {}

    def create_snapshot(self, state: Any, name: str | None = None) -> SnapshotMetadata:
        """Serialise *state* under *name* (generated when omitted)."""
        if state is None:
            raise ValueError("Cannot snapshot a None state")
        name = name or f"snapshot-{uuid.uuid4().hex[:8]}"
        tick_count, sim_time = 0, timedelta(0)
        if self._clock_provider is not None:
            clock = self._clock_provider()
            tick_count, sim_time = clock.tick_count, clock.current_time

        cls = type(state)
        payload = TypeAdapter(cls).dump_json(state)
        metadata = SnapshotMetadata(
            name=name,
            tick_count=tick_count,
            simulation_time=sim_time,
            state_type=_type_path(cls),
        )
        with self._lock:
            self._snapshots[name] = _Snapshot(metadata, payload)
        if self._on_snapshot is not None:
            self._on_snapshot(metadata)
        return metadata

    def get_snapshot(self, name: str, cls: type | None = None) -> Any:
        """Deserialise snapshot *name*; ``None`` when it does not exist.

        *cls* defaults to the type recorded when the snapshot was taken.
        """
        with self._lock:
            snap = self._snapshots.get(name)
        if snap is None:
            return None
        target = cls or _resolve_type(snap.metadata.state_type)
        if target is None:
            return json.loads(snap.payload)
        return TypeAdapter(target).validate_json(snap.payload)

    def get_metadata(self, name: str) -> SnapshotMetadata | None:
        with self._lock:
            snap = self._snapshots.get(name)
        return snap.metadata if snap else None

    def has_snapshot(self, name: str) -> bool:
        with self._lock:
            return name in self._snapshots

    def list_snapshots(self) -> list[SnapshotMetadata]:
        with self._lock:
            return sorted((s.metadata for s in self._snapshots.values()),
                          key=lambda m: m.created_at)

    def delete_snapshot(self, name: str) -> bool:
        with self._lock:
            return self._snapshots.pop(name, None) is not None

    def clear_snapshots(self) -> None:
        with self._lock:
            self._snapshots.clear()

    # -- export / import ---------------------------------------------------

    def export_snapshots(self) -> bytes:
        with self._lock:
            table = [
                {
                    "metadata": snap.metadata.model_dump(mode="json"),
                    "payload": snap.payload.decode("utf-8"),
                }
                for snap in self._snapshots.values()
            ]
        return json.dumps(table).encode("utf-8")

    def import_snapshots(self, data: bytes) -> int:
        """Load an exported table, replacing same-named snapshots.

        Returns the number of snapshots imported.
        """
        table = json.loads(data)
        imported = 0
        with self._lock:
            for entry in table:
                metadata = SnapshotMetadata.model_validate(entry["metadata"])
                self._snapshots[metadata.name] = _Snapshot(
                    metadata, entry["payload"].encode("utf-8")
                )
                imported += 1
        logger.debug("Imported %d snapshots", imported)
        return imported
