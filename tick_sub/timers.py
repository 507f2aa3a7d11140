"""Named one-shot wall-clock timers, cancellable as a group."""
from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Callable

from tick_sub.types import TickContext

logger = logging.getLogger(__name__)

TimerCallback = Callable[[TickContext], None]


@dataclass
class Timer:
    """One-shot timer. Fires once ``due`` is reached, then is dropped."""

    name: str
    due: float
    callback: TimerCallback


class TimerGroup:
    """Holds at most one timer per name; arming a name replaces it."""

    def __init__(self, time_fn: Callable[[], float]) -> None:
        self._time_fn = time_fn
        self._timers: dict[str, Timer] = {}

    def call_later(self, name: str, delay: float, callback: TimerCallback) -> Timer:
        timer = Timer(name=name, due=self._time_fn() + max(0.0, delay), callback=callback)
        self._timers[name] = timer
        return timer

    def cancel(self, name: str) -> bool:
        return self._timers.pop(name, None) is not None

    def cancel_all(self) -> None:
        self._timers.clear()

    def has(self, name: str) -> bool:
        return name in self._timers

    def names(self) -> list[str]:
        return list(self._timers)

    def due_in(self, name: str) -> float | None:
        timer = self._timers.get(name)
        if timer is None:
            return None
        return max(0.0, timer.due - self._time_fn())

    def poll(self, ctx: TickContext) -> list[str]:
        """Fire every due timer in due order. Returns the names fired."""
        due = sorted(
            (t for t in self._timers.values() if t.due <= ctx.now),
            key=lambda t: t.due,
        )
        fired: list[str] = []
        for timer in due:
            # A callback may have cancelled or re-armed this name.
            if self._timers.get(timer.name) is not timer:
                continue
            del self._timers[timer.name]
            try:
                timer.callback(ctx)
            except Exception:
                logger.exception("Timer %r failed", timer.name)
            fired.append(timer.name)
        return fired

    def __len__(self) -> int:
        return len(self._timers)
