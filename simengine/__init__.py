# /// script
# requires-python = ">=3.12"
# dependencies = ["pydantic>=2.0"]
# ///
"""Deterministic, seedable simulation engine: clock, events, orchestration, runner."""

from simengine.clock import ClockMode, ClockSnapshot, SimulationClock
from simengine.context import (
    RunControl,
    SharedContext,
    SimulationContext,
    SimulationModel,
    SimulationParameters,
    StepResult,
)
from simengine.events import CallbackHandler, EventHandler, EventScheduler, SimulationEvent
from simengine.metrics import MetricsEventHandler, SimulationMetrics, SimulationStatus
from simengine.orchestrator import (
    BarrierInfo,
    ModelOptions,
    ModelRegistration,
    ModelState,
    ModelStepInfo,
    OrchestratedSimulation,
    OrchestratorError,
    OrchestratorState,
    SimulationOrchestrator,
)
from simengine.random_source import (
    RandomSource,
    RandomSourceExhaustedError,
    ReplayRandomSource,
    SeedableRandomSource,
)
from simengine.runner import RunnerOptions, SimulationResult, SimulationRunner, generate_seeds
from simengine.state import InMemoryStateManager, SnapshotMetadata

__all__ = [
    "BarrierInfo",
    "CallbackHandler",
    "ClockMode",
    "ClockSnapshot",
    "EventHandler",
    "EventScheduler",
    "InMemoryStateManager",
    "MetricsEventHandler",
    "ModelOptions",
    "ModelRegistration",
    "ModelState",
    "ModelStepInfo",
    "OrchestratedSimulation",
    "OrchestratorError",
    "OrchestratorState",
    "RandomSource",
    "RandomSourceExhaustedError",
    "ReplayRandomSource",
    "RunControl",
    "RunnerOptions",
    "SeedableRandomSource",
    "SharedContext",
    "SimulationClock",
    "SimulationContext",
    "SimulationEvent",
    "SimulationMetrics",
    "SimulationModel",
    "SimulationOrchestrator",
    "SimulationParameters",
    "SimulationResult",
    "SimulationRunner",
    "SimulationStatus",
    "StepResult",
    "SnapshotMetadata",
    "generate_seeds",
]
