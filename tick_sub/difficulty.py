"""Difficulty presets: the static table of tunable constants."""
from __future__ import annotations

from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Mapping


@dataclass(frozen=True)
class DifficultyPreset:
    """Immutable bundle of difficulty-dependent constants.

    Attributes:
        name: Display name, also the persisted identifier.
        damage_multiplier: Scales every source of crew damage.
        start_supplies: Supplies granted on a fresh game or reset.
        event_delay_min_ms: Lower bound of the delay before the next event.
        event_delay_max_ms: Upper bound of the delay before the next event.
        task_time_mult: Scales every task's effective repair time.
        event_weights: Spawn weight per event type value (e.g. ``"fire"``).
        fire_spread_rate: Per-second chance that a fire spreads (0 disables).
    """

    name: str
    damage_multiplier: float
    start_supplies: int
    event_delay_min_ms: int
    event_delay_max_ms: int
    task_time_mult: float
    event_weights: Mapping[str, float] = field(default_factory=dict)
    fire_spread_rate: float = 0.0

    def __post_init__(self) -> None:
        if not self.name:
            raise ValueError("DifficultyPreset name must be non-empty")
        if self.damage_multiplier < 0:
            raise ValueError(
                f"damage_multiplier must be >= 0, got {self.damage_multiplier}"
            )
        if self.start_supplies < 0:
            raise ValueError(f"start_supplies must be >= 0, got {self.start_supplies}")
        if self.event_delay_min_ms > self.event_delay_max_ms:
            raise ValueError("event_delay_min_ms must not exceed event_delay_max_ms")
        if self.task_time_mult <= 0:
            raise ValueError(f"task_time_mult must be > 0, got {self.task_time_mult}")
        object.__setattr__(
            self, "event_weights", MappingProxyType(dict(self.event_weights))
        )

    def weight(self, event_type: str) -> float:
        """Spawn weight for an event type. Missing types weigh 1, negatives 0."""
        return max(0.0, float(self.event_weights.get(event_type, 1.0)))

    def describe(self) -> str:
        return (
            f"Damage x{self.damage_multiplier}, "
            f"Start supplies: {self.start_supplies}, "
            f"Event cadence: {round(self.event_delay_min_ms / 1000)}"
            f"-{round(self.event_delay_max_ms / 1000)}s"
        )


DEFAULT_DIFFICULTY = "Normal"

PRESETS: dict[str, DifficultyPreset] = {
    "Easy": DifficultyPreset(
        name="Easy",
        damage_multiplier=0.8,
        start_supplies=90,
        event_delay_min_ms=25000,
        event_delay_max_ms=45000,
        task_time_mult=0.9,
        event_weights={
            "hull_breach": 0.5, "fire": 0.9, "electrical": 0.9,
            "supply_cache": 1.5, "calm_waters": 1.2,
        },
    ),
    "Normal": DifficultyPreset(
        name="Normal",
        damage_multiplier=1.0,
        start_supplies=50,
        event_delay_min_ms=15000,
        event_delay_max_ms=35000,
        task_time_mult=1.0,
        event_weights={
            "hull_breach": 0.8, "fire": 1.0, "electrical": 1.0,
            "supply_cache": 1.0, "calm_waters": 1.0,
        },
    ),
    "Hard": DifficultyPreset(
        name="Hard",
        damage_multiplier=1.6,
        start_supplies=30,
        event_delay_min_ms=8000,
        event_delay_max_ms=20000,
        task_time_mult=1.1,
        event_weights={
            "hull_breach": 1.4, "fire": 1.6, "electrical": 1.4,
            "supply_cache": 0.6, "calm_waters": 0.6,
        },
        fire_spread_rate=0.04,
    ),
    "Nightmare": DifficultyPreset(
        name="Nightmare",
        damage_multiplier=2.6,
        start_supplies=20,
        event_delay_min_ms=5000,
        event_delay_max_ms=12000,
        task_time_mult=1.2,
        event_weights={
            "hull_breach": 2.0, "fire": 2.2, "electrical": 1.8,
            "supply_cache": 0.4, "calm_waters": 0.3,
        },
        fire_spread_rate=0.08,
    ),
}


def get_preset(name: str) -> DifficultyPreset:
    """Look up a preset by name. Raises KeyError if unknown."""
    if name not in PRESETS:
        raise KeyError(name)
    return PRESETS[name]


def preset_names() -> list[str]:
    return list(PRESETS)
