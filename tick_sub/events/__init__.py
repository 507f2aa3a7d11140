"""Transient hazards and bonuses: definitions, registry, and scheduling."""
from tick_sub.events.registry import (
    FALLBACK_TYPES,
    FIRE_INTENSITY,
    REGISTRY,
    get_strategy,
    global_damage_modifier,
    recompute_task_multipliers,
)
from tick_sub.events.scheduler import EventScheduler
from tick_sub.events.types import ActiveEvent, EventStrategy, EventType

__all__ = [
    "ActiveEvent",
    "EventStrategy",
    "EventType",
    "EventScheduler",
    "REGISTRY",
    "FALLBACK_TYPES",
    "FIRE_INTENSITY",
    "get_strategy",
    "global_damage_modifier",
    "recompute_task_multipliers",
]
