"""tick-sub - A real-time submarine damage-control simulation core."""

from tick_sub.config import SimConfig
from tick_sub.difficulty import DEFAULT_DIFFICULTY, PRESETS, DifficultyPreset, get_preset
from tick_sub.engine import Engine
from tick_sub.entities import Crew, Extinguishing, Healing, IDLE, Idle, Repairing, Role, Task
from tick_sub.events import ActiveEvent, EventScheduler, EventType
from tick_sub.persistence import JsonFileStore, KeyValueStore, MemoryStore
from tick_sub.signals import SignalBus
from tick_sub.simulation import Simulation
from tick_sub.state import Outcome, SimState, new_state
from tick_sub.types import (
    CrewUnavailable,
    InsufficientSupplies,
    RoleRestricted,
    SnapshotError,
    TaskBlocked,
    TickContext,
    UnknownEntity,
    ValidationRejection,
)
from tick_sub.upgrades import UPGRADES, Offer, UpgradeDef, upgrade_cost

__all__ = [
    "Simulation",
    "SimConfig",
    "SimState",
    "new_state",
    "Outcome",
    "Engine",
    "TickContext",
    "SignalBus",
    "DifficultyPreset",
    "PRESETS",
    "DEFAULT_DIFFICULTY",
    "get_preset",
    "Crew",
    "Task",
    "Role",
    "Idle",
    "IDLE",
    "Repairing",
    "Healing",
    "Extinguishing",
    "ActiveEvent",
    "EventType",
    "EventScheduler",
    "UpgradeDef",
    "UPGRADES",
    "Offer",
    "upgrade_cost",
    "KeyValueStore",
    "JsonFileStore",
    "MemoryStore",
    "ValidationRejection",
    "InsufficientSupplies",
    "RoleRestricted",
    "CrewUnavailable",
    "TaskBlocked",
    "UnknownEntity",
    "SnapshotError",
]
