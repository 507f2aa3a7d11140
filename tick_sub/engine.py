"""Engine - wall-clock loop, systems, timers, and lifecycle hooks."""

from __future__ import annotations

import logging
import os
import random
import time
from typing import TYPE_CHECKING, Callable

from tick_sub.clock import Clock
from tick_sub.config import SimConfig
from tick_sub.timers import TimerGroup
from tick_sub.types import System, TickContext

if TYPE_CHECKING:
    from tick_sub.state import SimState

logger = logging.getLogger(__name__)


class Engine:
    def __init__(
        self,
        state: SimState,
        config: SimConfig | None = None,
        seed: int | None = None,
        time_fn: Callable[[], float] = time.time,
        sleep_fn: Callable[[float], None] = time.sleep,
    ) -> None:
        self._state = state
        self._config = config if config is not None else SimConfig()
        self._time_fn = time_fn
        self._sleep_fn = sleep_fn
        self._clock = Clock(time_fn, self._config.max_step)
        self._timers = TimerGroup(time_fn)
        self._systems: list[System] = []
        self._start_hooks: list[Callable[[], None]] = []
        self._stop_hooks: list[Callable[[], None]] = []
        self._running = False
        self._stop_requested = False

        if seed is None:
            seed = int.from_bytes(os.urandom(8))
        self._seed = seed
        self._rng = random.Random(seed)

    @property
    def state(self) -> SimState:
        return self._state

    @property
    def clock(self) -> Clock:
        return self._clock

    @property
    def timers(self) -> TimerGroup:
        return self._timers

    @property
    def seed(self) -> int:
        return self._seed

    @property
    def random(self) -> random.Random:
        return self._rng

    @property
    def running(self) -> bool:
        return self._running

    def add_system(self, system: System) -> None:
        self._systems.append(system)

    def on_start(self, hook: Callable[[], None]) -> None:
        self._start_hooks.append(hook)

    def on_stop(self, hook: Callable[[], None]) -> None:
        self._stop_hooks.append(hook)

    def context(self, dt: float = 0.0) -> TickContext:
        """A context for work done outside a tick (commands, debug hooks)."""
        return self._clock.context(dt, self._request_stop, self._rng)

    def _request_stop(self) -> None:
        self._stop_requested = True

    def start(self) -> None:
        if self._running:
            return
        self._running = True
        self._stop_requested = False
        self._clock.reset()
        for hook in self._start_hooks:
            hook()
        logger.info("Engine started (interval %.3fs)", self._config.tick_interval)

    def stop(self) -> None:
        if not self._running:
            return
        self._running = False
        self._timers.cancel_all()
        for hook in self._stop_hooks:
            hook()
        logger.info("Engine stopped at tick %d", self._clock.tick_number)

    def step(self, dt: float | None = None) -> TickContext:
        """Advance one tick. ``dt`` defaults to wall time since the last tick."""
        dt = self._clock.advance(dt)
        ctx = self._clock.context(dt, self._request_stop, self._rng)
        self._timers.poll(ctx)
        for system in self._systems:
            try:
                system(self._state, ctx)
            except Exception:
                logger.exception("System %s failed on tick %d", _name(system), ctx.tick_number)
        if self._stop_requested:
            self._stop_requested = False
            self.stop()
        return ctx

    def run(self, n: int, dt: float | None = None) -> None:
        self.start()
        for _ in range(n):
            self.step(dt)
            if not self._running:
                break
        self.stop()

    def run_forever(self) -> None:
        self.start()
        interval = self._config.tick_interval
        while self._running:
            started = self._time_fn()
            self.step()
            if not self._running:
                break
            sleep_time = interval - (self._time_fn() - started)
            if sleep_time > 0:
                self._sleep_fn(sleep_time)
        self.stop()


def _name(system: System) -> str:
    return getattr(system, "__name__", repr(system))
