"""System factories for the per-tick simulation steps.

Each factory returns a ``(state, ctx) -> None`` callable. ``Simulation``
registers them in this order:

1. Repair - progress, damage, deaths and completions on assigned tasks
2. Firefighting - crew knocking down fires, taking counter-damage
3. Auto-heal - an idle Medic with the module picks a patient
4. Heal - Medics treat their patients
5. Expiry - events past their duration are reverted
6. Fire spread - fires jump to other systems on harder presets
7. Outcome - victory or defeat halts the loop
"""
from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Callable

from tick_sub.entities import IDLE, Crew, Extinguishing, Healing, Repairing, Role, Task
from tick_sub.events.registry import FIRE_INTENSITY, global_damage_modifier
from tick_sub.events.types import EventType
from tick_sub.signals import CREW_DIED, DEFEAT, TASK_COMPLETED, VICTORY
from tick_sub.state import Outcome
from tick_sub.upgrades import round_half_up

if TYPE_CHECKING:
    from tick_sub.events.scheduler import EventScheduler
    from tick_sub.events.types import ActiveEvent
    from tick_sub.signals import SignalBus
    from tick_sub.state import SimState
    from tick_sub.types import TickContext

logger = logging.getLogger(__name__)

REWARD_FLOOR = 12
REWARD_PER_SECOND = 6
EXTINGUISH_POWER = 12.0  # fire intensity removed per second at speed 1.0
FIRE_COUNTER_DAMAGE = 4.0  # HP per second at full intensity
FIRE_SPREAD_MIN_AGE = 2.0
_FULL_HEALTH_EPSILON = 1e-4

_System = Callable[["SimState", "TickContext"], None]


def task_reward(target_time: float) -> int:
    return max(REWARD_FLOOR, round_half_up(target_time * REWARD_PER_SECOND))


def _report_death(bus: SignalBus, crew: Crew, doing: str) -> None:
    bus.publish(CREW_DIED, id=crew.id, name=crew.name)
    bus.notice(f"{crew.name} died {doing}.")


def complete_task(state: SimState, task: Task, bus: SignalBus) -> int:
    """Mark ``task`` complete, pay the reward, and free its assignee."""
    target = state.target_time(task)
    reward = task_reward(target)
    task.complete = True
    task.progress = target
    state.supplies += reward
    assignee = state.find_crew(task.assigned)
    if assignee is not None and assignee.engagement == Repairing(task.id):
        assignee.engagement = IDLE
    task.assigned = None
    state.dirty = True
    bus.publish(TASK_COMPLETED, id=task.id, title=task.title, reward=reward)
    bus.notice(f"{task.title} repaired!")
    return reward


def make_repair_system(bus: SignalBus) -> _System:
    def repair_system(state: SimState, ctx: TickContext) -> None:
        scale = max(0.0, 1.0 + global_damage_modifier(state))
        damage_mult = state.difficulty.damage_multiplier
        for task in state.tasks:
            if task.complete or task.assigned is None:
                continue
            crew = state.find_crew(task.assigned)
            if crew is None or not crew.alive or crew.engagement != Repairing(task.id):
                logger.warning("Unassigning stale crew %r from %s", task.assigned, task.id)
                task.assigned = None
                state.dirty = True
                continue
            if state.on_fire(task.id):
                continue

            task.progress += ctx.dt * crew.repair_speed_mult * task.event_speed_mult
            damage = (
                task.base_damage_per_sec
                * task.event_damage_mult
                * damage_mult
                * ctx.dt
                * scale
                * (1 - crew.damage_reduction)
            )
            if state.injure(crew, damage):
                _report_death(bus, crew, f"repairing {task.title}")
            state.dirty = True

            if task.progress >= state.target_time(task):
                complete_task(state, task, bus)

    return repair_system


def make_firefighting_system(scheduler: EventScheduler, bus: SignalBus) -> _System:
    def firefighting_system(state: SimState, ctx: TickContext) -> None:
        for crew in state.crew:
            engagement = crew.engagement
            if not isinstance(engagement, Extinguishing):
                continue
            task = state.find_task(engagement.task_id)
            fires = state.events_on(engagement.task_id, EventType.FIRE)
            if not crew.alive or task is None or not fires:
                logger.warning("Releasing %s from stale firefighting on %r",
                               crew.id, engagement.task_id)
                state.release(crew)
                state.dirty = True
                continue
            task.extinguisher = crew.id
            try:
                _fight_fire(state, scheduler, bus, crew, task, fires[0], ctx.dt)
            except Exception:
                logger.exception("Firefighting by %s on %s failed", crew.id, task.id)
                state.release(crew)
                state.dirty = True

    return firefighting_system


def _fight_fire(
    state: SimState,
    scheduler: EventScheduler,
    bus: SignalBus,
    crew: Crew,
    task: Task,
    fire: ActiveEvent,
    dt: float,
) -> None:
    fire_max = float(fire.meta.get("fire_max") or FIRE_INTENSITY)
    intensity = float(fire.meta.get("fire_health", fire_max))
    intensity = max(0.0, intensity - EXTINGUISH_POWER * crew.repair_speed_mult * dt)
    fire.meta["fire_health"] = intensity

    damage = (
        FIRE_COUNTER_DAMAGE
        * (intensity / fire_max)
        * state.difficulty.damage_multiplier
        * dt
        * (1 - crew.damage_reduction)
    )
    if state.injure(crew, damage):
        _report_death(bus, crew, f"fighting the fire in {task.title}")
    state.dirty = True

    if intensity <= 0:
        scheduler.remove(state, fire.id, forced=True)
        if crew.engagement == Extinguishing(task.id):
            state.release(crew)


def make_auto_heal_system(bus: SignalBus) -> _System:
    def auto_heal_system(state: SimState, ctx: TickContext) -> None:
        medic = state.crew_with_role(Role.MEDIC)
        if medic is None or not medic.alive or not medic.idle:
            return
        level = medic.level("auto_heal")
        if level < 1:
            return
        allow_self = level >= 2
        candidates = [
            c for c in state.crew
            if c.wounded and c.idle and (c.id != medic.id or allow_self)
        ]
        if not candidates:
            return
        patient = min(candidates, key=lambda c: c.health_fraction)
        state.engage(medic, Healing(patient.id))
        if patient.id == medic.id:
            bus.notice("Medic auto-healing themself")
        else:
            bus.notice(f"Medic auto-healing {patient.name}")

    return auto_heal_system


def make_heal_system(bus: SignalBus) -> _System:
    def heal_system(state: SimState, ctx: TickContext) -> None:
        for healer in state.crew:
            patient_id = healer.heal_target
            if patient_id is None:
                continue
            patient = state.find_crew(patient_id)
            if patient is None or not healer.alive:
                logger.warning("Dropping stale heal %s -> %r", healer.id, patient_id)
                state.release(healer)
                state.dirty = True
                continue
            if not patient.alive:
                state.release(healer)
                state.dirty = True
                continue
            if patient.health < patient.max_health:
                patient.health = min(patient.max_health, patient.health + healer.heal_rate * ctx.dt)
                state.dirty = True
            if patient.health >= patient.max_health - _FULL_HEALTH_EPSILON:
                patient.health = patient.max_health
                state.release(healer)
                state.dirty = True
                bus.notice(f"{patient.name} healed to full.")

    return heal_system


def make_expiry_system(scheduler: EventScheduler) -> _System:
    def expiry_system(state: SimState, ctx: TickContext) -> None:
        scheduler.expire(state, ctx.now)

    return expiry_system


def make_fire_spread_system(scheduler: EventScheduler, bus: SignalBus) -> _System:
    def fire_spread_system(state: SimState, ctx: TickContext) -> None:
        rate = state.difficulty.fire_spread_rate
        if rate <= 0:
            return
        xo = state.crew_with_role(Role.XO)
        suppression = xo.fire_suppression if xo is not None and xo.alive else 0.0
        chance = rate * ctx.dt * (1 - suppression)
        fires = [ev for ev in state.active_events if ev.type is EventType.FIRE]
        for fire in fires:
            if fire.age(ctx.now) <= FIRE_SPREAD_MIN_AGE:
                continue
            if ctx.random.random() >= chance:
                continue
            candidates = [
                t for t in state.tasks if not t.complete and not state.on_fire(t.id)
            ]
            if not candidates:
                return
            target = ctx.random.choice(candidates)
            source = state.find_task(fire.target)
            origin = source.title if source is not None else "another system"
            bus.notice(f"Fire spread from {origin} to {target.title}!")
            scheduler.spawn(state, EventType.FIRE, target.id, ctx.now, ctx.random)

    return fire_spread_system


def make_outcome_system(bus: SignalBus) -> _System:
    def outcome_system(state: SimState, ctx: TickContext) -> None:
        if state.outcome is not None:
            return
        if all(t.complete for t in state.tasks):
            state.outcome = Outcome.VICTORY
            bus.publish(VICTORY, supplies=state.supplies, difficulty=state.difficulty.name)
            bus.notice("YOU SURFACED - VICTORY")
        elif not state.living_crew():
            state.outcome = Outcome.DEFEAT
            bus.publish(DEFEAT, difficulty=state.difficulty.name)
            bus.notice("All hands lost.")
        else:
            return
        logger.info("Simulation ended: %s", state.outcome.value)
        state.dirty = True
        ctx.request_stop()

    return outcome_system
