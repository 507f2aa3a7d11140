"""SimState - the explicit mutable simulation state."""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from enum import Enum

from tick_sub.difficulty import DEFAULT_DIFFICULTY, DifficultyPreset, get_preset
from tick_sub.entities import (
    IDLE,
    Crew,
    Engagement,
    Extinguishing,
    Repairing,
    Role,
    Task,
    default_crew,
    default_tasks,
)
from tick_sub.events.types import ActiveEvent, EventType
from tick_sub.upgrades import blank_levels, recompute_stats

logger = logging.getLogger(__name__)


class Outcome(str, Enum):
    VICTORY = "victory"
    DEFEAT = "defeat"


@dataclass
class SimState:
    difficulty: DifficultyPreset
    supplies: int
    crew: list[Crew]
    tasks: list[Task]
    active_events: list[ActiveEvent] = field(default_factory=list)
    event_counter: int = 0
    outcome: Outcome | None = None
    dirty: bool = False

    # --- Lookups ---

    def find_crew(self, crew_id: str | None) -> Crew | None:
        for c in self.crew:
            if c.id == crew_id:
                return c
        return None

    def find_task(self, task_id: str | None) -> Task | None:
        for t in self.tasks:
            if t.id == task_id:
                return t
        return None

    def find_event(self, event_id: str) -> ActiveEvent | None:
        for ev in self.active_events:
            if ev.id == event_id:
                return ev
        return None

    def crew_with_role(self, role: Role) -> Crew | None:
        for c in self.crew:
            if c.role is role:
                return c
        return None

    def living_crew(self) -> list[Crew]:
        return [c for c in self.crew if c.alive]

    def events_on(self, task_id: str, event_type: EventType | None = None) -> list[ActiveEvent]:
        return [
            ev for ev in self.active_events
            if ev.target == task_id and (event_type is None or ev.type is event_type)
        ]

    def on_fire(self, task_id: str) -> bool:
        return any(
            ev.target == task_id and ev.type is EventType.FIRE
            for ev in self.active_events
        )

    def target_time(self, task: Task) -> float:
        return task.target_time(self.difficulty.task_time_mult)

    # --- Engagement bookkeeping ---

    def release(self, crew: Crew) -> None:
        """Drop whatever ``crew`` is doing and clear the other side of it."""
        engagement = crew.engagement
        if isinstance(engagement, Repairing):
            task = self.find_task(engagement.task_id)
            if task is not None and task.assigned == crew.id:
                task.assigned = None
        elif isinstance(engagement, Extinguishing):
            task = self.find_task(engagement.task_id)
            if task is not None and task.extinguisher == crew.id:
                task.extinguisher = None
        crew.engagement = IDLE

    def engage(self, crew: Crew, engagement: Engagement) -> None:
        self.release(crew)
        crew.engagement = engagement
        if isinstance(engagement, Repairing):
            task = self.find_task(engagement.task_id)
            if task is not None:
                task.assigned = crew.id
        elif isinstance(engagement, Extinguishing):
            task = self.find_task(engagement.task_id)
            if task is not None:
                task.extinguisher = crew.id
        self.dirty = True

    def injure(self, crew: Crew, amount: float) -> bool:
        """Apply damage, flooring health at 0. Returns True if this killed them."""
        if not crew.alive or amount <= 0:
            return False
        crew.health = max(0.0, crew.health - amount)
        self.dirty = True
        if crew.health <= 0:
            crew.health = 0.0
            self.release(crew)
            logger.info("%s died", crew.name)
            return True
        return False


def new_state(difficulty: str = DEFAULT_DIFFICULTY) -> SimState:
    """Fresh state for ``difficulty`` from the static roster and task set."""
    preset = get_preset(difficulty)
    crew = default_crew()
    for c in crew:
        c.upgrades = blank_levels()
        recompute_stats(c)
    return SimState(
        difficulty=preset,
        supplies=preset.start_supplies,
        crew=crew,
        tasks=default_tasks(),
    )
