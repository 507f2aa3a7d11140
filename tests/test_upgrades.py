"""Tests for tick_sub.upgrades - costs, derived stats, and purchasing."""
from __future__ import annotations

import pytest

from tick_sub.entities import Role
from tick_sub.state import new_state
from tick_sub.types import CrewUnavailable, InsufficientSupplies, RoleRestricted, UnknownEntity
from tick_sub.upgrades import (
    UPGRADES,
    offers,
    purchase,
    recompute_stats,
    round_half_up,
    upgrade_cost,
)


class TestCost:
    def test_first_level_costs_base(self) -> None:
        assert upgrade_cost("speed", 0) == 20
        assert upgrade_cost("drills", 0) == 60

    def test_growth_rounds_half_up(self) -> None:
        assert upgrade_cost("speed", 1) == 30
        assert upgrade_cost("speed", 2) == 45
        assert upgrade_cost("armor", 1) == 38  # 37.5
        assert round_half_up(2.5) == 3

    @pytest.mark.parametrize("key", list(UPGRADES))
    def test_cost_strictly_increases(self, key: str) -> None:
        costs = [upgrade_cost(key, level) for level in range(12)]
        assert all(b > a for a, b in zip(costs, costs[1:]))

    def test_unknown_key(self) -> None:
        with pytest.raises(KeyError):
            upgrade_cost("jetpack", 0)


class TestRecompute:
    def test_idempotent(self) -> None:
        state = new_state()
        eo = state.find_crew("eo")
        eo.upgrades.update(speed=2, armor=3, engineer=1, drills=1)
        recompute_stats(eo)
        first = (eo.repair_speed_mult, eo.damage_reduction, eo.heal_rate)
        recompute_stats(eo)
        assert (eo.repair_speed_mult, eo.damage_reduction, eo.heal_rate) == first
        assert eo.repair_speed_mult == pytest.approx(1.0 + 0.2 + 0.25 + 0.05)
        assert eo.damage_reduction == pytest.approx(0.24)

    def test_engineer_bonus_only_for_engineer(self) -> None:
        state = new_state()
        capt = state.find_crew("capt")
        capt.upgrades["engineer"] = 2
        recompute_stats(capt)
        assert capt.repair_speed_mult == 1.0

    def test_damage_reduction_capped(self) -> None:
        state = new_state()
        xo = state.find_crew("xo")
        xo.upgrades["armor"] = 20
        recompute_stats(xo)
        assert xo.damage_reduction == 0.9

    def test_medic_heal_rate(self) -> None:
        state = new_state()
        med = state.find_crew("med")
        med.upgrades["med"] = 2
        recompute_stats(med)
        assert med.heal_rate == pytest.approx(4.0)

    def test_xo_fire_suppression(self) -> None:
        state = new_state()
        xo = state.find_crew("xo")
        xo.upgrades["suppression"] = 2
        recompute_stats(xo)
        assert xo.fire_suppression == pytest.approx(0.3)


class TestPurchase:
    def test_speed_upgrade(self) -> None:
        state = new_state()
        cost = purchase(state, "capt", "speed")
        capt = state.find_crew("capt")
        assert cost == 20
        assert state.supplies == 30
        assert capt.level("speed") == 1
        assert capt.repair_speed_mult == pytest.approx(1.10)

    def test_second_level_costs_more(self) -> None:
        state = new_state()
        state.supplies = 100
        purchase(state, "xo", "speed")
        assert purchase(state, "xo", "speed") == 30
        assert state.supplies == 50

    def test_insufficient_supplies_leaves_state(self) -> None:
        state = new_state()
        state.supplies = 10
        with pytest.raises(InsufficientSupplies) as info:
            purchase(state, "capt", "speed")
        assert info.value.needed == 20
        assert info.value.available == 10
        assert state.supplies == 10
        assert state.find_crew("capt").level("speed") == 0

    def test_role_restricted(self) -> None:
        state = new_state()
        with pytest.raises(RoleRestricted):
            purchase(state, "capt", "med")
        assert state.supplies == 50

    def test_dead_crew_cannot_buy(self) -> None:
        state = new_state()
        state.find_crew("xo").health = 0.0
        with pytest.raises(CrewUnavailable):
            purchase(state, "xo", "speed")

    def test_unknown_crew_and_upgrade(self) -> None:
        state = new_state()
        with pytest.raises(UnknownEntity):
            purchase(state, "cook", "speed")
        with pytest.raises(UnknownEntity):
            purchase(state, "capt", "jetpack")

    def test_applies_to_all(self) -> None:
        state = new_state()
        state.supplies = 100
        purchase(state, "capt", "drills")
        assert state.supplies == 40
        for crew in state.crew:
            assert crew.level("drills") == 1
            assert crew.repair_speed_mult == pytest.approx(1.05)


class TestOffers:
    def test_captain_sees_shared_upgrades_only(self) -> None:
        state = new_state()
        keys = [o.upgrade.key for o in offers(state.find_crew("capt"))]
        assert keys == ["speed", "armor", "drills"]

    def test_medic_offers_include_medical(self) -> None:
        state = new_state()
        keys = {o.upgrade.key for o in offers(state.find_crew("med"))}
        assert {"med", "auto_heal"} <= keys
        assert "engineer" not in keys

    def test_offer_reports_next_cost(self) -> None:
        state = new_state()
        eo = state.find_crew("eo")
        eo.upgrades["engineer"] = 1
        offer = next(o for o in offers(eo) if o.upgrade.key == "engineer")
        assert offer.level == 1
        assert offer.cost == upgrade_cost("engineer", 1)

    def test_role_allows(self) -> None:
        assert UPGRADES["suppression"].allows(Role.XO)
        assert not UPGRADES["suppression"].allows(Role.MEDIC)
        assert UPGRADES["speed"].allows(Role.MEDIC)
