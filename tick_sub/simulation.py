"""Simulation - the command surface that owns state, engine, and timers.

A UI (or a test) talks only to ``Simulation``. Commands are validated and
applied immediately; the engine advances everything else by elapsed time.
"""
from __future__ import annotations

import copy
import logging
import random as _random_mod
import time
from typing import Any, Callable

from tick_sub import persistence
from tick_sub.commands import (
    AssignCrew,
    Extinguish,
    PurchaseUpgrade,
    QuickAssign,
    RecallExtinguisher,
    RequestHeal,
    UnassignTask,
    make_router,
)
from tick_sub.config import SimConfig
from tick_sub.difficulty import DEFAULT_DIFFICULTY, PRESETS, DifficultyPreset
from tick_sub.engine import Engine
from tick_sub.entities import Crew, Task
from tick_sub.events.scheduler import EventScheduler
from tick_sub.events.types import ActiveEvent
from tick_sub.persistence import KeyValueStore
from tick_sub.signals import STATE_CHANGED, SignalBus
from tick_sub.state import Outcome, SimState, new_state
from tick_sub.systems import (
    make_auto_heal_system,
    make_expiry_system,
    make_fire_spread_system,
    make_firefighting_system,
    make_heal_system,
    make_outcome_system,
    make_repair_system,
)
from tick_sub.types import TickContext
from tick_sub.upgrades import Offer, offers

logger = logging.getLogger(__name__)

_NEXT_EVENT = "next_event"
_INSTANT_PREFIX = "instant:"


class Simulation:
    def __init__(
        self,
        difficulty: str = DEFAULT_DIFFICULTY,
        store: KeyValueStore | None = None,
        config: SimConfig | None = None,
        seed: int | None = None,
        time_fn: Callable[[], float] = time.time,
        sleep_fn: Callable[[float], None] = time.sleep,
        autoload: bool = False,
    ) -> None:
        self._config = config if config is not None else SimConfig()
        self._store = store
        self._time_fn = time_fn
        self._state = new_state(difficulty)
        self._bus = SignalBus()
        self._scheduler = EventScheduler(self._bus)
        self._router = make_router(self._bus)
        self._engine = Engine(
            self._state,
            config=self._config,
            seed=seed,
            time_fn=time_fn,
            sleep_fn=sleep_fn,
        )
        self._last_save = time_fn()

        # Registration order is tick order.
        self._engine.add_system(make_repair_system(self._bus))
        self._engine.add_system(make_firefighting_system(self._scheduler, self._bus))
        self._engine.add_system(make_auto_heal_system(self._bus))
        self._engine.add_system(make_heal_system(self._bus))
        self._engine.add_system(make_expiry_system(self._scheduler))
        self._engine.add_system(make_fire_spread_system(self._scheduler, self._bus))
        self._engine.add_system(make_outcome_system(self._bus))
        self._engine.add_system(self._after_tick)

        self._engine.on_start(self._on_start)
        self._engine.on_stop(self._on_stop)

        if autoload:
            self.load()

    # --- Read-only views ---

    @property
    def state(self) -> SimState:
        """The live state. Callers outside the core should prefer the copies."""
        return self._state

    @property
    def engine(self) -> Engine:
        return self._engine

    @property
    def bus(self) -> SignalBus:
        return self._bus

    @property
    def scheduler(self) -> EventScheduler:
        return self._scheduler

    @property
    def config(self) -> SimConfig:
        return self._config

    @property
    def crew(self) -> list[Crew]:
        return copy.deepcopy(self._state.crew)

    @property
    def tasks(self) -> list[Task]:
        return copy.deepcopy(self._state.tasks)

    @property
    def active_events(self) -> list[ActiveEvent]:
        return copy.deepcopy(self._state.active_events)

    @property
    def supplies(self) -> int:
        return self._state.supplies

    @property
    def difficulty(self) -> DifficultyPreset:
        return self._state.difficulty

    @property
    def outcome(self) -> Outcome | None:
        return self._state.outcome

    @property
    def running(self) -> bool:
        return self._engine.running

    def offers(self, crew_id: str) -> list[Offer]:
        crew = self._state.find_crew(crew_id)
        if crew is None:
            return []
        return offers(crew)

    def available_crew(self) -> list[Crew]:
        """Living crew with nothing to do."""
        return [copy.deepcopy(c) for c in self._state.crew if c.alive and c.idle]

    # --- Signals ---

    def subscribe(self, signal_name: str, handler: Callable[[str, dict[str, Any]], None]) -> None:
        self._bus.subscribe(signal_name, handler)

    def unsubscribe(self, signal_name: str, handler: Callable[[str, dict[str, Any]], None]) -> None:
        self._bus.unsubscribe(signal_name, handler)

    # --- Commands ---

    def assign_crew_to_task(self, crew_id: str | None, task_id: str) -> bool:
        return self._command(AssignCrew(crew_id=crew_id, task_id=task_id))

    def unassign_task(self, task_id: str) -> bool:
        return self._command(UnassignTask(task_id=task_id))

    def quick_assign(self, task_id: str) -> bool:
        return self._command(QuickAssign(task_id=task_id))

    def request_heal(self, target_id: str) -> bool:
        return self._command(RequestHeal(target_id=target_id))

    def extinguish(self, crew_id: str, task_id: str) -> bool:
        return self._command(Extinguish(crew_id=crew_id, task_id=task_id))

    def recall_extinguisher(self, task_id: str) -> bool:
        return self._command(RecallExtinguisher(task_id=task_id))

    def purchase_upgrade(self, crew_id: str, upgrade_key: str) -> bool:
        return self._command(PurchaseUpgrade(crew_id=crew_id, upgrade_key=upgrade_key))

    def apply_difficulty(self, name: str) -> bool:
        """Switch presets. Task progress keeps its completed fraction."""
        preset = PRESETS.get(name)
        if preset is None:
            logger.info("Rejected unknown difficulty %r", name)
            self._bus.notice(f"Unknown difficulty {name!r}.", reason="unknown_entity")
            self._bus.flush()
            return False
        state = self._state
        old_mult = state.difficulty.task_time_mult
        state.difficulty = preset
        for task in state.tasks:
            target = state.target_time(task)
            if task.complete:
                task.progress = target
            else:
                fraction = task.progress / task.target_time(old_mult)
                task.progress = min(target, max(0.0, fraction * target))
        if self._engine.running:
            self._arm_next_event()
        state.dirty = True
        logger.info("Difficulty set to %s", preset.name)
        self._bus.notice(f"Difficulty: {preset.name}. {preset.describe()}")
        self._publish_changes()
        self.save()
        return True

    def reset_progress(self) -> None:
        """Forget the saved game and start over on the current difficulty."""
        if self._store is not None:
            persistence.clear(self._store, self._config.save_key)
        self._engine.timers.cancel_all()
        fresh = new_state(self._state.difficulty.name)
        state = self._state
        state.supplies = fresh.supplies
        state.crew = fresh.crew
        state.tasks = fresh.tasks
        state.active_events = fresh.active_events
        state.event_counter = 0
        state.outcome = None
        state.dirty = True
        if self._engine.running:
            self._arm_next_event()
        logger.info("Progress reset (%s)", state.difficulty.name)
        self._bus.notice("Progress reset.")
        self._publish_changes()
        self.save()

    def spawn_random_event(self) -> ActiveEvent | None:
        """Spawn an event right now, outside the normal cadence."""
        event = self._spawn(self._time_fn(), self._engine.random)
        self._publish_changes()
        return copy.deepcopy(event) if event is not None else None

    # --- Persistence ---

    def save(self) -> bool:
        if self._store is None:
            return False
        self._last_save = self._time_fn()
        return persistence.save(self._state, self._store, self._config.save_key)

    def load(self) -> bool:
        if self._store is None:
            return False
        loaded = persistence.load(
            self._state, self._store, self._config.save_key, self._scheduler
        )
        if loaded:
            self._state.outcome = None
            self._publish_changes()
        return loaded

    # --- Lifecycle ---

    def start(self) -> None:
        self._engine.start()

    def stop(self) -> None:
        self._engine.stop()

    def step(self, dt: float | None = None) -> TickContext:
        return self._engine.step(dt)

    def run(self, n: int, dt: float | None = None) -> None:
        self._engine.run(n, dt)

    def run_forever(self) -> None:
        self._engine.run_forever()

    # --- Internal ---

    def _command(self, cmd: Any) -> bool:
        accepted = self._router.dispatch(cmd, self._state)
        self._publish_changes()
        if accepted:
            self.save()
        return accepted

    def _publish_changes(self) -> None:
        if self._state.dirty:
            self._state.dirty = False
            self._bus.publish(STATE_CHANGED)
        self._bus.flush()

    def _after_tick(self, state: SimState, ctx: TickContext) -> None:
        if state.dirty and ctx.now - self._last_save >= self._config.autosave_interval:
            self.save()
        self._publish_changes()

    def _on_start(self) -> None:
        # Instantaneous events whose removal timer was cancelled by a stop.
        for event in list(self._state.active_events):
            if event.duration <= 0:
                self._scheduler.remove(self._state, event.id)
        self._arm_next_event()
        self._publish_changes()

    def _on_stop(self) -> None:
        self.save()
        self._publish_changes()

    def _arm_next_event(self) -> None:
        delay = self._scheduler.next_delay(self._state.difficulty, self._engine.random)
        self._engine.timers.call_later(_NEXT_EVENT, delay, self._on_next_event)
        logger.debug("Next event in %.1fs", delay)

    def _on_next_event(self, ctx: TickContext) -> None:
        if self._state.outcome is not None:
            return
        self._spawn(ctx.now, ctx.random)
        self._arm_next_event()

    def _spawn(self, now: float, rng: _random_mod.Random) -> ActiveEvent | None:
        event = self._scheduler.spawn_random(self._state, now, rng)
        if event is not None and event.duration <= 0:
            self._engine.timers.call_later(
                _INSTANT_PREFIX + event.id,
                self._config.instant_event_linger,
                lambda ctx, event_id=event.id: self._scheduler.remove(self._state, event_id),
            )
        return event
