"""Upgrade catalog, cost curve, derived crew stats, and purchasing."""
from __future__ import annotations

import math
from dataclasses import dataclass
from typing import TYPE_CHECKING

from tick_sub.entities import Crew, Role
from tick_sub.types import CrewUnavailable, InsufficientSupplies, RoleRestricted, UnknownEntity

if TYPE_CHECKING:
    from tick_sub.state import SimState

COST_GROWTH = 1.5
MEDIC_BASE_HEAL = 2.0  # HP per second before upgrades
MAX_DAMAGE_REDUCTION = 0.9
MAX_FIRE_SUPPRESSION = 0.9


@dataclass(frozen=True)
class UpgradeDef:
    """Immutable upgrade definition.

    Attributes:
        key: Identifier used in per-crew level maps and snapshots.
        name: Display name.
        description: Player-facing effect summary.
        cost_base: Cost of the first level.
        effect_per_level: Stat contribution of each level.
        roles: Roles allowed to own this upgrade (empty means every role).
        applies_to_all: A purchase raises every crew member's level.
    """

    key: str
    name: str
    description: str
    cost_base: int
    effect_per_level: float
    roles: frozenset[Role] = frozenset()
    applies_to_all: bool = False

    def __post_init__(self) -> None:
        if not self.key:
            raise ValueError("UpgradeDef key must be non-empty")
        if self.cost_base <= 0:
            raise ValueError(f"cost_base must be > 0, got {self.cost_base}")

    def allows(self, role: Role) -> bool:
        return not self.roles or role in self.roles


@dataclass(frozen=True)
class Offer:
    upgrade: UpgradeDef
    level: int
    cost: int


UPGRADES: dict[str, UpgradeDef] = {
    u.key: u
    for u in (
        UpgradeDef(
            key="speed",
            name="Tool Kit",
            description="Increase repair speed by 10% per level.",
            cost_base=20,
            effect_per_level=0.10,
        ),
        UpgradeDef(
            key="armor",
            name="Reinforced Suit",
            description="Reduce damage taken while working by 8% per level.",
            cost_base=25,
            effect_per_level=0.08,
        ),
        UpgradeDef(
            key="med",
            name="Med Training",
            description="Increase healing rate by +50% of base per level.",
            cost_base=30,
            effect_per_level=0.5,
            roles=frozenset({Role.MEDIC}),
        ),
        UpgradeDef(
            key="auto_heal",
            name="Auto-Heal Module",
            description=(
                "An idle Medic automatically heals idle wounded crew. "
                "Level 2 lets the Medic treat themself."
            ),
            cost_base=40,
            effect_per_level=0.0,
            roles=frozenset({Role.MEDIC}),
        ),
        UpgradeDef(
            key="engineer",
            name="Field Expertise",
            description="+25% repair speed per level, stacks with Tool Kit.",
            cost_base=35,
            effect_per_level=0.25,
            roles=frozenset({Role.ENGINEER}),
        ),
        UpgradeDef(
            key="suppression",
            name="Fire Suppression Drills",
            description="Cut the chance of fire spreading by 15% per level.",
            cost_base=30,
            effect_per_level=0.15,
            roles=frozenset({Role.XO}),
        ),
        UpgradeDef(
            key="drills",
            name="Damage Control Drills",
            description="+5% repair speed per level for the whole crew.",
            cost_base=60,
            effect_per_level=0.05,
            applies_to_all=True,
        ),
    )
}


def round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


def blank_levels() -> dict[str, int]:
    return {key: 0 for key in UPGRADES}


def get_upgrade(key: str) -> UpgradeDef:
    """Look up an upgrade. Raises KeyError if unknown."""
    if key not in UPGRADES:
        raise KeyError(key)
    return UPGRADES[key]


def upgrade_cost(key: str, level: int) -> int:
    """Cost of buying the level after ``level``."""
    if level < 0:
        raise ValueError(f"level must be >= 0, got {level}")
    return round_half_up(get_upgrade(key).cost_base * COST_GROWTH ** level)


def offers(crew: Crew) -> list[Offer]:
    """Upgrades shown to ``crew``, in catalog order."""
    return [
        Offer(upgrade=u, level=crew.level(u.key), cost=upgrade_cost(u.key, crew.level(u.key)))
        for u in UPGRADES.values()
        if u.allows(crew.role)
    ]


def recompute_stats(crew: Crew) -> None:
    """Reset derived stats to baseline and re-sum every owned level."""
    speed = 1.0 + crew.level("speed") * UPGRADES["speed"].effect_per_level
    speed += crew.level("drills") * UPGRADES["drills"].effect_per_level
    if crew.role is Role.ENGINEER:
        speed += crew.level("engineer") * UPGRADES["engineer"].effect_per_level
    crew.repair_speed_mult = speed

    crew.damage_reduction = min(
        MAX_DAMAGE_REDUCTION, crew.level("armor") * UPGRADES["armor"].effect_per_level
    )

    if crew.role is Role.MEDIC:
        crew.heal_rate = MEDIC_BASE_HEAL * (
            1 + crew.level("med") * UPGRADES["med"].effect_per_level
        )
    else:
        crew.heal_rate = 0.0

    if crew.role is Role.XO:
        crew.fire_suppression = min(
            MAX_FIRE_SUPPRESSION,
            crew.level("suppression") * UPGRADES["suppression"].effect_per_level,
        )
    else:
        crew.fire_suppression = 0.0


def purchase(state: SimState, crew_id: str, key: str) -> int:
    """Buy the next level of ``key`` for ``crew_id``. Returns the cost paid.

    Raises a ``ValidationRejection`` subclass and leaves the state untouched
    when the purchase is not allowed.
    """
    crew = state.find_crew(crew_id)
    if crew is None:
        raise UnknownEntity(f"No crew member {crew_id!r}.")
    upgrade = UPGRADES.get(key)
    if upgrade is None:
        raise UnknownEntity(f"No upgrade {key!r}.")
    if not crew.alive:
        raise CrewUnavailable(f"{crew.name} is dead and cannot be upgraded.")
    if not upgrade.allows(crew.role):
        raise RoleRestricted(key, crew.role.value)

    cost = upgrade_cost(key, crew.level(key))
    if state.supplies < cost:
        raise InsufficientSupplies(cost, state.supplies)

    state.supplies -= cost
    recipients = state.crew if upgrade.applies_to_all else [crew]
    for member in recipients:
        member.upgrades[key] = member.level(key) + 1
        recompute_stats(member)
    return cost
