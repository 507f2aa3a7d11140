"""Clock - wall-clock delta measurement for the tick loop."""
from __future__ import annotations

import random
from typing import Callable

from tick_sub.types import TickContext


class Clock:
    def __init__(self, time_fn: Callable[[], float], max_step: float = 0.5) -> None:
        if max_step <= 0:
            raise ValueError("max_step must be positive")
        self._time_fn = time_fn
        self._max_step = max_step
        self._last = time_fn()
        self._tick_number = 0

    @property
    def max_step(self) -> float:
        return self._max_step

    @property
    def tick_number(self) -> int:
        return self._tick_number

    def now(self) -> float:
        return self._time_fn()

    def clamp(self, dt: float) -> float:
        return min(self._max_step, max(0.0, dt))

    def advance(self, dt: float | None = None) -> float:
        """Start a new tick and return its clamped delta time.

        With ``dt`` omitted, the delta is the wall time since the previous
        tick (or since ``reset``).
        """
        now = self._time_fn()
        if dt is None:
            dt = now - self._last
        self._last = now
        self._tick_number += 1
        return self.clamp(dt)

    def context(
        self, dt: float, stop_fn: Callable[[], None], rng: random.Random
    ) -> TickContext:
        return TickContext(
            tick_number=self._tick_number,
            dt=dt,
            now=self._time_fn(),
            request_stop=stop_fn,
            random=rng,
        )

    def reset(self) -> None:
        """Forget time spent while stopped."""
        self._last = self._time_fn()
