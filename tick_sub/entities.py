"""Crew and Task records, crew engagement, and the static roster."""
from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Union


class Role(str, Enum):
    CAPTAIN = "Captain"
    XO = "XO"
    ENGINEER = "Engineer"
    MEDIC = "Medic"


# --- Engagement ---


@dataclass(frozen=True)
class Idle:
    pass


@dataclass(frozen=True)
class Repairing:
    task_id: str


@dataclass(frozen=True)
class Healing:
    crew_id: str


@dataclass(frozen=True)
class Extinguishing:
    task_id: str


Engagement = Union[Idle, Repairing, Healing, Extinguishing]

IDLE = Idle()


# --- Records ---


@dataclass
class Crew:
    """A crew member. Derived stats are owned by ``upgrades.recompute_stats``."""

    id: str
    name: str
    role: Role
    health: float
    max_health: float = 100.0
    engagement: Engagement = IDLE
    repair_speed_mult: float = 1.0
    damage_reduction: float = 0.0
    heal_rate: float = 0.0
    fire_suppression: float = 0.0
    upgrades: dict[str, int] = field(default_factory=dict)

    @property
    def alive(self) -> bool:
        return self.health > 0

    @property
    def idle(self) -> bool:
        return isinstance(self.engagement, Idle)

    @property
    def wounded(self) -> bool:
        return self.alive and self.health < self.max_health

    @property
    def health_fraction(self) -> float:
        if self.max_health <= 0:
            return 0.0
        return self.health / self.max_health

    @property
    def heal_target(self) -> str | None:
        if isinstance(self.engagement, Healing):
            return self.engagement.crew_id
        return None

    def level(self, upgrade_key: str) -> int:
        return self.upgrades.get(upgrade_key, 0)


@dataclass
class Task:
    """A repairable ship system.

    ``progress`` is measured in effective seconds against
    ``base_time * task_time_mult`` of the current difficulty.
    """

    id: str
    title: str
    base_time: float
    base_damage_per_sec: float
    progress: float = 0.0
    assigned: str | None = None
    complete: bool = False
    event_damage_mult: float = 1.0
    event_speed_mult: float = 1.0
    events: list[str] = field(default_factory=list)
    extinguisher: str | None = None

    def target_time(self, task_time_mult: float) -> float:
        return self.base_time * task_time_mult

    def fraction_done(self, task_time_mult: float) -> float:
        target = self.target_time(task_time_mult)
        if target <= 0:
            return 1.0
        return min(1.0, self.progress / target)


# --- Static roster ---


def default_crew() -> list[Crew]:
    return [
        Crew(id="capt", name="Anthony (Capt)", role=Role.CAPTAIN, health=100.0),
        Crew(id="xo", name="John (XO)", role=Role.XO, health=100.0),
        Crew(id="eo", name="Gabe (EO)", role=Role.ENGINEER, health=90.0),
        Crew(id="med", name="Rin (Medic)", role=Role.MEDIC, health=100.0),
    ]


def default_tasks() -> list[Task]:
    return [
        Task(id="hull", title="Hull Breach", base_time=57.0,
             base_damage_per_sec=1.5, progress=20.0),
        Task(id="flood", title="Flooding", base_time=24.0, base_damage_per_sec=1.0),
        Task(id="reactor", title="Reactor Room", base_time=16.0,
             base_damage_per_sec=6.5),
        Task(id="command", title="Command Systems", base_time=14.0,
             base_damage_per_sec=5.0),
        Task(id="sonar", title="Sonar Array", base_time=12.0,
             base_damage_per_sec=3.5),
        Task(id="comms", title="Communications", base_time=10.0,
             base_damage_per_sec=2.5),
    ]
