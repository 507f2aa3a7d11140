"""Event strategies and the registry keyed by EventType."""
from __future__ import annotations

import logging
import random as _random_mod
from typing import TYPE_CHECKING, Any

from tick_sub.entities import IDLE, Extinguishing
from tick_sub.events.types import ActiveEvent, EventStrategy, EventType
from tick_sub.signals import CREW_DIED
from tick_sub.upgrades import round_half_up

if TYPE_CHECKING:
    from tick_sub.entities import Task
    from tick_sub.signals import SignalBus
    from tick_sub.state import SimState

logger = logging.getLogger(__name__)

FIRE_INTENSITY = 100.0

# Drawn uniformly when every configured weight is zero.
FALLBACK_TYPES = (EventType.SUPPLY_CACHE, EventType.FIRE, EventType.ELECTRICAL)


def recompute_task_multipliers(state: SimState, task: Task) -> None:
    """Rebuild a task's event multipliers from the events still targeting it."""
    damage = 1.0
    speed = 1.0
    ids: list[str] = []
    for ev in state.events_on(task.id):
        strategy = REGISTRY.get(ev.type)
        if strategy is None:
            continue
        damage *= strategy.damage_mult
        speed *= strategy.speed_mult
        ids.append(ev.id)
    task.event_damage_mult = damage
    task.event_speed_mult = speed
    task.events = ids


def global_damage_modifier(state: SimState) -> float:
    total = 0.0
    for ev in state.active_events:
        strategy = REGISTRY.get(ev.type)
        if strategy is not None:
            total += strategy.global_damage_modifier
    return total


class TaskEventStrategy(EventStrategy):
    """Event that targets one task and changes its multipliers."""

    needs_target = True

    def _task(self, state: SimState, event: ActiveEvent) -> Task | None:
        task = state.find_task(event.target)
        if task is None:
            logger.warning("%s %s targets unknown task %r", self.name, event.id, event.target)
        return task

    def apply(self, state: SimState, event: ActiveEvent) -> None:
        task = self._task(state, event)
        if task is not None:
            recompute_task_multipliers(state, task)

    def revert(self, state: SimState, event: ActiveEvent) -> None:
        task = self._task(state, event)
        if task is not None:
            recompute_task_multipliers(state, task)

    def _title(self, state: SimState, event: ActiveEvent) -> str:
        task = state.find_task(event.target)
        return task.title if task is not None else str(event.target)


class HullBreach(EventStrategy):
    type = EventType.HULL_BREACH
    name = "Hull Breach"
    description = (
        "A hull breach sprays debris: all crew take a burst of damage and "
        "extra pressure damage for a short time."
    )
    duration = 12.0
    global_damage_modifier = 0.6

    def trigger(
        self,
        state: SimState,
        event: ActiveEvent,
        rng: _random_mod.Random,
        bus: SignalBus,
    ) -> None:
        for crew in state.living_crew():
            burst = 6 + rng.random() * 8
            if state.injure(crew, burst):
                bus.publish(CREW_DIED, id=crew.id, name=crew.name)
        bus.notice("Hull Breach - immediate damage and pressure!")

    def ended_text(self, state: SimState, event: ActiveEvent) -> str:
        return "Hull breach sealed."


class Fire(TaskEventStrategy):
    type = EventType.FIRE
    name = "Fire"
    description = (
        "A fire has broken out. Repairs on the system stop until a crew "
        "member puts it out."
    )
    duration = 30.0
    damage_mult = 1.6
    speed_mult = 0.6

    def initial_meta(self) -> dict[str, Any]:
        return {"fire_health": FIRE_INTENSITY, "fire_max": FIRE_INTENSITY}

    def trigger(
        self,
        state: SimState,
        event: ActiveEvent,
        rng: _random_mod.Random,
        bus: SignalBus,
    ) -> None:
        bus.notice(f"Fire in {self._title(state, event)}! Send someone to fight it.")

    def revert(self, state: SimState, event: ActiveEvent) -> None:
        super().revert(state, event)
        task = state.find_task(event.target)
        if task is None or state.on_fire(task.id) or task.extinguisher is None:
            return
        crew = state.find_crew(task.extinguisher)
        if crew is not None and crew.engagement == Extinguishing(task.id):
            crew.engagement = IDLE
        task.extinguisher = None

    def ended_text(self, state: SimState, event: ActiveEvent) -> str:
        return f"{self._title(state, event)} fire is out."


class ElectricalSurge(TaskEventStrategy):
    type = EventType.ELECTRICAL
    name = "Electrical Surge"
    description = "Repairs on the system become more dangerous and slightly slower."
    duration = 10.0
    damage_mult = 1.5
    speed_mult = 0.85

    def trigger(
        self,
        state: SimState,
        event: ActiveEvent,
        rng: _random_mod.Random,
        bus: SignalBus,
    ) -> None:
        bus.notice(f"{self._title(state, event)} electrical surge! Repair danger increased.")

    def ended_text(self, state: SimState, event: ActiveEvent) -> str:
        return f"{self._title(state, event)} electrical surge ended."


class SupplyCache(EventStrategy):
    type = EventType.SUPPLY_CACHE
    name = "Supply Cache"
    description = "A hidden cache is found: immediate supply bonus."
    duration = 0.0

    def trigger(
        self,
        state: SimState,
        event: ActiveEvent,
        rng: _random_mod.Random,
        bus: SignalBus,
    ) -> None:
        reward = 18 + round_half_up(rng.random() * 24)
        state.supplies += reward
        event.meta["reward"] = reward
        bus.notice(f"Supply cache found! +{reward} supplies.")


class CalmWaters(EventStrategy):
    type = EventType.CALM_WATERS
    name = "Calm Waters"
    description = "A temporary lull: damage taken is reduced for a short time."
    duration = 12.0
    global_damage_modifier = -0.3

    def trigger(
        self,
        state: SimState,
        event: ActiveEvent,
        rng: _random_mod.Random,
        bus: SignalBus,
    ) -> None:
        bus.notice("Calm waters: damage reduced temporarily.")

    def ended_text(self, state: SimState, event: ActiveEvent) -> str:
        return "Calm waters ended."


REGISTRY: dict[EventType, EventStrategy] = {
    s.type: s
    for s in (HullBreach(), Fire(), ElectricalSurge(), SupplyCache(), CalmWaters())
}


def get_strategy(event_type: EventType) -> EventStrategy:
    """Look up a strategy. Raises KeyError if the type is not registered."""
    return REGISTRY[event_type]
