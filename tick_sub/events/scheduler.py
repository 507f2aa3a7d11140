"""EventScheduler - spawning, removal, and expiry of simulation events."""
from __future__ import annotations

import logging
import random as _random_mod
from typing import TYPE_CHECKING

from tick_sub.events.registry import FALLBACK_TYPES, REGISTRY
from tick_sub.events.types import ActiveEvent, EventStrategy, EventType
from tick_sub.signals import EVENT_ENDED, EVENT_STARTED

if TYPE_CHECKING:
    from tick_sub.difficulty import DifficultyPreset
    from tick_sub.signals import SignalBus
    from tick_sub.state import SimState

logger = logging.getLogger(__name__)


class EventScheduler:
    """Creates and retires events on a ``SimState``.

    Holds no event state of its own: live events are ``state.active_events``.
    Strategy failures are logged and never escape.
    """

    def __init__(
        self,
        bus: SignalBus,
        registry: dict[EventType, EventStrategy] | None = None,
    ) -> None:
        self._bus = bus
        self._registry = registry if registry is not None else REGISTRY

    # --- Queries ---

    def strategy(self, event_type: EventType) -> EventStrategy | None:
        return self._registry.get(event_type)

    def types(self) -> list[EventType]:
        return list(self._registry)

    # --- Random draws ---

    def pick_type(
        self, preset: DifficultyPreset, rng: _random_mod.Random
    ) -> EventType:
        """Weighted draw over the preset's weights, in registry order."""
        types = self.types()
        weights = [preset.weight(t.value) for t in types]
        if not types or sum(weights) <= 0:
            return rng.choice(FALLBACK_TYPES)
        return rng.choices(types, weights=weights)[0]

    def next_delay(
        self, preset: DifficultyPreset, rng: _random_mod.Random
    ) -> float:
        """Seconds until the next random event."""
        return rng.uniform(preset.event_delay_min_ms, preset.event_delay_max_ms) / 1000.0

    # --- Spawning ---

    def spawn_random(
        self, state: SimState, now: float, rng: _random_mod.Random
    ) -> ActiveEvent | None:
        event_type = self.pick_type(state.difficulty, rng)
        strategy = self.strategy(event_type)
        target: str | None = None
        if strategy is not None and strategy.needs_target:
            candidates = [t for t in state.tasks if not t.complete]
            if not candidates:
                return self.spawn(state, EventType.SUPPLY_CACHE, None, now, rng)
            target = rng.choice(candidates).id
        return self.spawn(state, event_type, target, now, rng)

    def spawn(
        self,
        state: SimState,
        event_type: EventType,
        target: str | None,
        now: float,
        rng: _random_mod.Random,
    ) -> ActiveEvent | None:
        strategy = self.strategy(event_type)
        if strategy is None:
            logger.warning("No strategy registered for %r", event_type)
            return None

        event = ActiveEvent(
            id=self._next_id(state, now),
            type=event_type,
            target=target,
            started_at=now,
            duration=strategy.duration,
            meta=strategy.initial_meta(),
        )
        state.active_events.append(event)
        try:
            strategy.apply(state, event)
            strategy.trigger(state, event, rng, self._bus)
        except Exception:
            logger.exception("Applying %s %s failed", event_type.value, event.id)
        state.dirty = True
        self._bus.publish(
            EVENT_STARTED, id=event.id, type=event_type.value, target=target
        )
        logger.debug("Spawned %s %s target=%s", event_type.value, event.id, target)
        return event

    def reapply(self, state: SimState, event: ActiveEvent) -> bool:
        """Re-install a restored event's derived effects without re-triggering."""
        strategy = self.strategy(event.type)
        if strategy is None:
            return False
        state.active_events.append(event)
        try:
            strategy.apply(state, event)
        except Exception:
            logger.exception("Re-applying %s %s failed", event.type.value, event.id)
        return True

    # --- Removal ---

    def remove(
        self, state: SimState, event_id: str, forced: bool = False
    ) -> ActiveEvent | None:
        event = state.find_event(event_id)
        if event is None:
            return None
        state.active_events.remove(event)
        strategy = self.strategy(event.type)
        text = ""
        if strategy is not None:
            try:
                strategy.revert(state, event)
                text = strategy.ended_text(state, event)
            except Exception:
                logger.exception("Reverting %s %s failed", event.type.value, event.id)
        state.dirty = True
        self._bus.publish(
            EVENT_ENDED,
            id=event.id,
            type=event.type.value,
            target=event.target,
            forced=forced,
        )
        if text:
            self._bus.notice(text)
        return event

    def expire(self, state: SimState, now: float) -> list[ActiveEvent]:
        """Remove every event whose duration has elapsed."""
        expired: list[ActiveEvent] = []
        for event in list(state.active_events):
            if event.expired(now):
                removed = self.remove(state, event.id)
                if removed is not None:
                    expired.append(removed)
        return expired

    def clear(self, state: SimState) -> None:
        """Drop every event without reverting (the caller rebuilds tasks)."""
        state.active_events.clear()

    # --- Internal ---

    def _next_id(self, state: SimState, now: float) -> str:
        while True:
            state.event_counter += 1
            event_id = f"evt_{state.event_counter}_{int(now * 1000)}"
            if state.find_event(event_id) is None:
                return event_id
