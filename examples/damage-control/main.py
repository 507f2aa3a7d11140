"""Damage Control - headless tick-sub demo.

A scripted watch officer plays the submarine: sends crew to fires first,
then to the most dangerous open repairs, keeps the Medic busy, and spends
supplies on upgrades. Signals are printed as they arrive.

Run:
    python main.py
    python main.py --difficulty Hard --seed 7 --minutes 10
    python main.py --save-dir ./saves --realtime
"""
from __future__ import annotations

import argparse
import logging
import sys
import time
from typing import Any

from tick_sub import JsonFileStore, Outcome, Role, SimConfig, Simulation
from tick_sub.difficulty import preset_names
from tick_sub.signals import (
    CREW_DIED,
    DEFEAT,
    EVENT_ENDED,
    EVENT_STARTED,
    NOTICE,
    TASK_COMPLETED,
    VICTORY,
)

BUY_ORDER = ("engineer", "speed", "armor", "auto_heal", "med", "suppression", "drills")
REPAIR_MIN_HEALTH = 35.0


class VirtualClock:
    """Wall clock that only moves when the demo advances it."""

    def __init__(self) -> None:
        self.now = 0.0

    def __call__(self) -> float:
        return self.now

    def sleep(self, seconds: float) -> None:
        self.now += seconds


def parse_args() -> argparse.Namespace:
    p = argparse.ArgumentParser(description="Damage Control - tick-sub headless demo")
    p.add_argument("--difficulty", choices=preset_names(), default="Normal")
    p.add_argument("--seed", type=int, default=42, help="Random seed (default: 42)")
    p.add_argument("--minutes", type=float, default=15.0,
                   help="Simulated minutes before giving up (default: 15)")
    p.add_argument("--save-dir", default=None, help="Persist to this directory")
    p.add_argument("--realtime", action="store_true",
                   help="Run against the real wall clock instead of simulated time")
    p.add_argument("-v", "--verbose", action="store_true")
    return p.parse_args()


def print_signal(name: str, data: dict[str, Any]) -> None:
    if name == NOTICE:
        print(f"  > {data['text']}")
    elif name == TASK_COMPLETED:
        print(f"  + {data['title']} repaired (+{data['reward']} supplies)")
    elif name == CREW_DIED:
        print(f"  x {data['name']} is dead")
    elif name == EVENT_STARTED:
        target = f" on {data['target']}" if data["target"] else ""
        print(f"  ! {data['type']}{target}")
    elif name == EVENT_ENDED and data["forced"]:
        print(f"  - {data['type']} dealt with")


def watch_officer(sim: Simulation) -> None:
    """One round of orders. Every order goes through the public commands."""
    state = sim.state

    for task in state.tasks:
        if task.complete or not state.on_fire(task.id) or task.extinguisher:
            continue
        idle = sim.available_crew()
        if idle:
            best = max(idle, key=lambda c: c.health)
            sim.extinguish(best.id, task.id)

    open_tasks = sorted(
        (t for t in state.tasks
         if not t.complete and t.assigned is None and not state.on_fire(t.id)),
        key=lambda t: t.base_damage_per_sec,
        reverse=True,
    )
    for crew in sim.available_crew():
        if crew.role is Role.MEDIC or crew.health < REPAIR_MIN_HEALTH or not open_tasks:
            continue
        sim.assign_crew_to_task(crew.id, open_tasks.pop(0).id)

    medic = state.crew_with_role(Role.MEDIC)
    if medic is not None and medic.alive and medic.idle:
        wounded = [c for c in state.crew if c.wounded and c.id != medic.id]
        if wounded:
            sim.request_heal(min(wounded, key=lambda c: c.health_fraction).id)

    for key in BUY_ORDER:
        for crew in state.living_crew():
            offer = next((o for o in sim.offers(crew.id) if o.upgrade.key == key), None)
            if offer is not None and offer.cost <= sim.supplies and offer.level < 3:
                sim.purchase_upgrade(crew.id, key)


def main() -> None:
    args = parse_args()
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    config = SimConfig()
    store = JsonFileStore(args.save_dir) if args.save_dir else None
    clock = VirtualClock()
    time_fn = time.time if args.realtime else clock
    sleep = time.sleep if args.realtime else clock.sleep
    sim = Simulation(args.difficulty, store=store, config=config, seed=args.seed,
                     time_fn=time_fn, sleep_fn=sleep, autoload=store is not None)

    for name in (NOTICE, TASK_COMPLETED, CREW_DIED, EVENT_STARTED, EVENT_ENDED):
        sim.subscribe(name, print_signal)
    sim.subscribe(VICTORY, lambda _, data: print(f"\nVICTORY with {data['supplies']} supplies"))
    sim.subscribe(DEFEAT, lambda _, data: print("\nDEFEAT: all hands lost"))

    print(f"Difficulty: {sim.difficulty.name} - {sim.difficulty.describe()}")
    ticks = int(args.minutes * 60 / config.tick_interval)
    sim.start()
    try:
        for _ in range(ticks):
            watch_officer(sim)
            sleep(config.tick_interval)
            sim.step()
            if not sim.running:
                break
    except KeyboardInterrupt:
        print("\nInterrupted")
    finally:
        sim.stop()

    done = sum(t.complete for t in sim.state.tasks)
    print(f"\nRepaired {done}/{len(sim.state.tasks)} systems, {sim.supplies} supplies left")
    for crew in sim.state.crew:
        status = f"{crew.health:5.1f} HP" if crew.alive else " dead"
        print(f"  {crew.name:<16} {status}")
    sys.exit(0 if sim.outcome is Outcome.VICTORY else 1)


if __name__ == "__main__":
    main()
