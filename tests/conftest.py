from __future__ import annotations

import pytest

from tick_sub.persistence import MemoryStore
from tick_sub.simulation import Simulation


class FakeTime:
    """Manually advanced wall clock. ``sleep`` advances it too."""

    def __init__(self, start: float = 1000.0) -> None:
        self.now = start
        self.slept: list[float] = []

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds

    def sleep(self, seconds: float) -> None:
        self.slept.append(seconds)
        self.now += seconds


@pytest.fixture
def clock() -> FakeTime:
    return FakeTime()


@pytest.fixture
def store() -> MemoryStore:
    return MemoryStore()


@pytest.fixture
def sim(clock: FakeTime, store: MemoryStore) -> Simulation:
    return Simulation(store=store, seed=42, time_fn=clock, sleep_fn=clock.sleep)


def tick(sim: Simulation, clock: FakeTime, dt: float = 0.5, n: int = 1) -> None:
    """Advance the fake clock and the simulation together."""
    for _ in range(n):
        clock.advance(dt)
        sim.step(dt)


class Recorder:
    """Collects every signal delivered to it."""

    def __init__(self) -> None:
        self.received: list[tuple[str, dict]] = []

    def __call__(self, name: str, data: dict) -> None:
        self.received.append((name, dict(data)))

    def names(self) -> list[str]:
        return [name for name, _ in self.received]

    def of(self, name: str) -> list[dict]:
        return [data for n, data in self.received if n == name]

    def texts(self) -> list[str]:
        return [data["text"] for data in self.of("notice")]
