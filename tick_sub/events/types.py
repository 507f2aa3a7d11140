"""Core data types for simulation events."""
from __future__ import annotations

import random as _random_mod
from dataclasses import dataclass, field
from enum import Enum
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from tick_sub.signals import SignalBus
    from tick_sub.state import SimState


class EventType(str, Enum):
    HULL_BREACH = "hull_breach"
    FIRE = "fire"
    ELECTRICAL = "electrical"
    SUPPLY_CACHE = "supply_cache"
    CALM_WATERS = "calm_waters"


@dataclass
class ActiveEvent:
    """Runtime state of a live event. Serializable."""

    id: str
    type: EventType
    target: str | None
    started_at: float
    duration: float  # seconds, 0 = instantaneous
    meta: dict[str, Any] = field(default_factory=dict)

    def age(self, now: float) -> float:
        return now - self.started_at

    def expired(self, now: float) -> bool:
        return self.duration > 0 and self.age(now) >= self.duration

    def remaining(self, now: float) -> float:
        if self.duration <= 0:
            return 0.0
        return max(0.0, self.duration - self.age(now))


class EventStrategy:
    """Behaviour of one event type. Not serialized.

    ``trigger`` runs once when the event spawns (bursts, grants).
    ``apply`` installs the derived effects and is re-run when a snapshot is
    loaded, so it must not grant anything. ``revert`` removes them.
    """

    type: EventType
    name: str = ""
    description: str = ""
    duration: float = 0.0
    needs_target: bool = False
    damage_mult: float = 1.0  # per-task damage factor while active
    speed_mult: float = 1.0  # per-task repair speed factor while active
    global_damage_modifier: float = 0.0  # added to the global damage sum

    def initial_meta(self) -> dict[str, Any]:
        return {}

    def trigger(
        self,
        state: SimState,
        event: ActiveEvent,
        rng: _random_mod.Random,
        bus: SignalBus,
    ) -> None:
        pass

    def apply(self, state: SimState, event: ActiveEvent) -> None:
        pass

    def revert(self, state: SimState, event: ActiveEvent) -> None:
        pass

    def ended_text(self, state: SimState, event: ActiveEvent) -> str:
        """Notice published when the event ends. Empty for none."""
        return ""
