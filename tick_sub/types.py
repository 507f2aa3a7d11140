"""Shared types, tick context, and the rejection taxonomy."""

from __future__ import annotations

import random as _random
from dataclasses import dataclass
from typing import TYPE_CHECKING, Callable


@dataclass(frozen=True, slots=True)
class TickContext:
    tick_number: int
    dt: float
    now: float
    request_stop: Callable[[], None]
    random: _random.Random


class ValidationRejection(Exception):
    """A command whose preconditions do not hold. The command is a no-op."""

    code = "rejected"


class InsufficientSupplies(ValidationRejection):
    code = "insufficient_supplies"

    def __init__(self, needed: int, available: int) -> None:
        self.needed = needed
        self.available = available
        super().__init__(
            f"Not enough supplies. You need {needed} supplies (have {available})."
        )


class RoleRestricted(ValidationRejection):
    code = "role_restricted"

    def __init__(self, upgrade_key: str, role: str) -> None:
        self.upgrade_key = upgrade_key
        self.role = role
        super().__init__(f"Upgrade {upgrade_key!r} is not available to the {role}.")


class CrewUnavailable(ValidationRejection):
    """Crew member is dead, busy, or otherwise cannot take the job."""

    code = "crew_unavailable"


class TaskBlocked(ValidationRejection):
    """Task is on fire, complete, or has no fire to fight."""

    code = "task_blocked"


class UnknownEntity(ValidationRejection):
    code = "unknown_entity"


class SnapshotError(Exception):
    """Raised when persisted data cannot be parsed into a snapshot."""


if TYPE_CHECKING:
    from tick_sub.state import SimState

System = Callable[["SimState", TickContext], None]
