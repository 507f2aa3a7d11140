"""Tests for tick_sub.systems - the per-tick simulation steps."""
from __future__ import annotations

import random

import pytest

from tick_sub.events import EventScheduler, EventType
from tick_sub.signals import CREW_DIED, DEFEAT, TASK_COMPLETED, VICTORY, SignalBus
from tick_sub.state import Outcome, new_state
from tick_sub.systems import (
    make_fire_spread_system,
    make_outcome_system,
    task_reward,
)
from tick_sub.types import TickContext
from tick_sub.upgrades import recompute_stats

from conftest import Recorder, tick


def _ctx(dt: float = 1.0, now: float = 100.0, rng: random.Random | None = None,
         stops: list | None = None) -> TickContext:
    return TickContext(
        tick_number=1,
        dt=dt,
        now=now,
        request_stop=(lambda: stops.append(True)) if stops is not None else (lambda: None),
        random=rng if rng is not None else random.Random(0),
    )


class _Fixed(random.Random):
    """Random whose ``random()`` always returns the same value."""

    def __init__(self, value: float) -> None:
        super().__init__(0)
        self.value = value

    def random(self) -> float:
        return self.value


class TestRepair:
    def test_engineer_on_reactor(self, sim, clock) -> None:
        assert sim.assign_crew_to_task("eo", "reactor")
        tick(sim, clock, dt=0.5, n=2)
        reactor = sim.state.find_task("reactor")
        eo = sim.state.find_crew("eo")
        assert reactor.progress == pytest.approx(1.0)
        assert eo.health == pytest.approx(90.0 - 6.5)

    def test_large_dt_is_clamped(self, sim, clock) -> None:
        sim.assign_crew_to_task("eo", "reactor")
        tick(sim, clock, dt=3.0)
        assert sim.state.find_task("reactor").progress == pytest.approx(0.5)

    def test_completion_reward(self, sim, clock) -> None:
        recorder = Recorder()
        sim.subscribe(TASK_COMPLETED, recorder)
        comms = sim.state.find_task("comms")
        comms.progress = 9.9
        sim.assign_crew_to_task("capt", "comms")
        tick(sim, clock)
        assert comms.complete
        assert comms.progress == 10.0
        assert comms.assigned is None
        assert sim.state.find_crew("capt").idle
        assert sim.supplies == 50 + 60
        assert recorder.of(TASK_COMPLETED) == [
            {"id": "comms", "title": "Communications", "reward": 60}
        ]

    def test_reward_floor(self) -> None:
        assert task_reward(1.0) == 12
        assert task_reward(10.0) == 60
        assert task_reward(16.5) == 99

    def test_death_aborts_repair(self, sim, clock) -> None:
        recorder = Recorder()
        sim.subscribe(CREW_DIED, recorder)
        capt = sim.state.find_crew("capt")
        capt.health = 1.0
        sim.assign_crew_to_task("capt", "reactor")
        tick(sim, clock)
        reactor = sim.state.find_task("reactor")
        assert capt.health == 0.0
        assert capt.idle
        assert reactor.assigned is None
        assert reactor.progress == pytest.approx(0.5)
        assert recorder.of(CREW_DIED) == [{"id": "capt", "name": "Anthony (Capt)"}]

    def test_global_modifiers_scale_damage(self, sim, clock) -> None:
        sim.scheduler.spawn(sim.state, EventType.HULL_BREACH, None, clock(), random.Random(1))
        eo = sim.state.find_crew("eo")
        eo.health = 90.0
        sim.assign_crew_to_task("eo", "comms")
        tick(sim, clock)
        assert eo.health == pytest.approx(90.0 - 2.5 * 0.5 * 1.6)

    def test_armor_reduces_damage(self, sim, clock) -> None:
        xo = sim.state.find_crew("xo")
        xo.upgrades["armor"] = 5
        recompute_stats(xo)
        sim.assign_crew_to_task("xo", "command")
        tick(sim, clock)
        assert xo.health == pytest.approx(100.0 - 5.0 * 0.5 * 0.6)

    def test_stale_assignment_is_dropped(self, sim, clock) -> None:
        sonar = sim.state.find_task("sonar")
        sonar.assigned = "ghost"
        tick(sim, clock)
        assert sonar.assigned is None
        assert sonar.progress == 0.0


class TestFirefighting:
    def _ignite(self, sim, clock, task_id: str = "reactor"):
        return sim.scheduler.spawn(sim.state, EventType.FIRE, task_id, clock(), random.Random(1))

    def test_fire_blocks_repair_progress(self, sim, clock) -> None:
        sim.assign_crew_to_task("eo", "reactor")
        self._ignite(sim, clock)
        tick(sim, clock)
        assert sim.state.find_task("reactor").progress == 0.0
        assert sim.state.find_crew("eo").health == 90.0

    def test_crew_puts_out_fire(self, sim, clock) -> None:
        fire = self._ignite(sim, clock)
        assert sim.extinguish("capt", "reactor")
        tick(sim, clock)
        assert fire.meta["fire_health"] == pytest.approx(94.0)
        capt = sim.state.find_crew("capt")
        assert capt.health == pytest.approx(100.0 - 4.0 * 0.94 * 0.5)

        for _ in range(20):
            if not sim.state.on_fire("reactor"):
                break
            tick(sim, clock)
        reactor = sim.state.find_task("reactor")
        assert not sim.state.on_fire("reactor")
        assert capt.alive and capt.idle
        assert reactor.extinguisher is None
        assert reactor.event_damage_mult == 1.0
        assert reactor.event_speed_mult == 1.0

    def test_broken_fire_does_not_stall_other_firefighters(self, sim, clock) -> None:
        broken = self._ignite(sim, clock, "sonar")
        healthy = self._ignite(sim, clock, "comms")
        assert sim.extinguish("capt", "sonar")
        assert sim.extinguish("xo", "comms")
        broken.meta["fire_health"] = "hot"

        tick(sim, clock, n=2)
        assert healthy.meta["fire_health"] == pytest.approx(100.0 - 12.0 * 1.0)
        assert sim.state.find_crew("capt").idle
        assert sim.state.find_task("sonar").extinguisher is None
        assert sim.state.find_task("comms").extinguisher == "xo"

    def test_faster_crew_fights_faster(self, sim, clock) -> None:
        fire = self._ignite(sim, clock)
        eo = sim.state.find_crew("eo")
        eo.upgrades["engineer"] = 4
        recompute_stats(eo)
        sim.extinguish("eo", "reactor")
        tick(sim, clock)
        assert fire.meta["fire_health"] == pytest.approx(100.0 - 12.0 * 2.0 * 0.5)

    def test_death_frees_extinguisher_slot(self, sim, clock) -> None:
        self._ignite(sim, clock)
        xo = sim.state.find_crew("xo")
        xo.health = 0.5
        sim.extinguish("xo", "reactor")
        tick(sim, clock)
        assert not xo.alive
        assert xo.idle
        assert sim.state.find_task("reactor").extinguisher is None
        assert sim.state.on_fire("reactor")

    def test_expired_fire_frees_crew(self, sim, clock) -> None:
        self._ignite(sim, clock)
        sim.extinguish("capt", "reactor")
        clock.advance(30.0)
        sim.step(0.5)
        assert not sim.state.on_fire("reactor")
        assert sim.state.find_task("reactor").extinguisher is None
        assert sim.state.find_crew("capt").idle


class TestFireSpread:
    def _setup(self, difficulty: str = "Hard"):
        state = new_state(difficulty)
        bus = SignalBus()
        scheduler = EventScheduler(bus)
        return state, scheduler, make_fire_spread_system(scheduler, bus)

    def test_old_fire_spreads(self) -> None:
        state, scheduler, system = self._setup()
        scheduler.spawn(state, EventType.FIRE, "hull", 0.0, random.Random(1))
        system(state, _ctx(dt=1.0, now=3.0, rng=_Fixed(0.0)))
        fires = [e for e in state.active_events if e.type is EventType.FIRE]
        assert len(fires) == 2
        assert fires[1].target != "hull"

    def test_young_fire_does_not_spread(self) -> None:
        state, scheduler, system = self._setup()
        scheduler.spawn(state, EventType.FIRE, "hull", 0.0, random.Random(1))
        system(state, _ctx(dt=1.0, now=1.5, rng=_Fixed(0.0)))
        assert len(state.active_events) == 1

    def test_normal_never_spreads(self) -> None:
        state, scheduler, system = self._setup("Normal")
        scheduler.spawn(state, EventType.FIRE, "hull", 0.0, random.Random(1))
        system(state, _ctx(dt=1.0, now=10.0, rng=_Fixed(0.0)))
        assert len(state.active_events) == 1

    def test_xo_suppression_cuts_chance(self) -> None:
        state, scheduler, system = self._setup()
        scheduler.spawn(state, EventType.FIRE, "hull", 0.0, random.Random(1))
        xo = state.find_crew("xo")
        xo.upgrades["suppression"] = 6
        recompute_stats(xo)
        system(state, _ctx(dt=1.0, now=5.0, rng=_Fixed(0.01)))
        assert len(state.active_events) == 1

        xo.health = 0.0
        system(state, _ctx(dt=1.0, now=5.0, rng=_Fixed(0.01)))
        assert len(state.active_events) == 2

    def test_no_spread_when_everything_burns(self) -> None:
        state, scheduler, system = self._setup("Nightmare")
        for task in state.tasks:
            scheduler.spawn(state, EventType.FIRE, task.id, 0.0, random.Random(1))
        system(state, _ctx(dt=1.0, now=5.0, rng=_Fixed(0.0)))
        assert len(state.active_events) == len(state.tasks)


class TestHealing:
    def test_manual_heal(self, sim, clock) -> None:
        xo = sim.state.find_crew("xo")
        xo.health = 50.0
        assert sim.request_heal("xo")
        tick(sim, clock)
        assert xo.health == pytest.approx(51.0)

    def test_heal_to_full_releases_medic(self, sim, clock) -> None:
        recorder = Recorder()
        sim.subscribe("notice", recorder)
        xo = sim.state.find_crew("xo")
        xo.health = 99.5
        sim.request_heal("xo")
        tick(sim, clock)
        assert xo.health == 100.0
        assert sim.state.find_crew("med").idle
        assert "John (XO) healed to full." in recorder.texts()

    def test_dead_patient_releases_medic(self, sim, clock) -> None:
        sim.request_heal("eo")
        sim.state.find_crew("eo").health = 0.0
        tick(sim, clock)
        assert sim.state.find_crew("med").idle

    def test_auto_heal_picks_lowest_fraction(self, sim, clock) -> None:
        med = sim.state.find_crew("med")
        med.upgrades["auto_heal"] = 1
        sim.state.find_crew("xo").health = 50.0
        sim.state.find_crew("capt").health = 80.0
        tick(sim, clock)
        assert med.heal_target == "xo"
        assert sim.state.find_crew("xo").health == pytest.approx(51.0)

    def test_auto_heal_skips_busy_crew(self, sim, clock) -> None:
        med = sim.state.find_crew("med")
        med.upgrades["auto_heal"] = 1
        sim.state.find_crew("xo").health = 50.0
        sim.assign_crew_to_task("xo", "flood")
        tick(sim, clock)
        assert med.heal_target == "eo"

    def test_self_heal_needs_level_two(self, sim, clock) -> None:
        med = sim.state.find_crew("med")
        med.health = 40.0
        sim.state.find_crew("eo").health = 100.0
        med.upgrades["auto_heal"] = 1
        tick(sim, clock)
        assert med.idle

        med.upgrades["auto_heal"] = 2
        tick(sim, clock)
        assert med.heal_target == "med"
        assert med.health == pytest.approx(41.0)

    def test_no_auto_heal_without_module(self, sim, clock) -> None:
        sim.state.find_crew("xo").health = 10.0
        tick(sim, clock)
        assert sim.state.find_crew("med").idle


class TestOutcome:
    def test_victory_halts_loop(self, sim, clock) -> None:
        recorder = Recorder()
        sim.subscribe(VICTORY, recorder)
        sim.start()
        for task in sim.state.tasks:
            if task.id != "comms":
                task.complete = True
                task.progress = sim.state.target_time(task)
        sim.state.find_task("comms").progress = 9.9
        sim.assign_crew_to_task("capt", "comms")
        tick(sim, clock)
        assert sim.outcome is Outcome.VICTORY
        assert not sim.running
        assert recorder.of(VICTORY) == [{"supplies": 110, "difficulty": "Normal"}]
        assert len(sim.engine.timers) == 0

    def test_all_dead_is_defeat(self, sim, clock) -> None:
        recorder = Recorder()
        sim.subscribe(DEFEAT, recorder)
        sim.start()
        for crew in sim.state.crew:
            crew.health = 0.0
        tick(sim, clock)
        assert sim.outcome is Outcome.DEFEAT
        assert not sim.running
        assert recorder.of(DEFEAT) == [{"difficulty": "Normal"}]

    def test_outcome_decided_once(self) -> None:
        state = new_state()
        bus = SignalBus()
        system = make_outcome_system(bus)
        for task in state.tasks:
            task.complete = True
        stops: list = []
        system(state, _ctx(stops=stops))
        system(state, _ctx(stops=stops))
        assert state.outcome is Outcome.VICTORY
        assert stops == [True]
        assert bus.pending().count(VICTORY) == 1

    def test_running_game_has_no_outcome(self) -> None:
        state = new_state("Easy")
        stops: list = []
        make_outcome_system(SignalBus())(state, _ctx(stops=stops))
        assert state.outcome is None
        assert stops == []
