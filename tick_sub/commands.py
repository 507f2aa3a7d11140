"""Player commands, their handlers, and the router that runs them.

Commands are frozen dataclasses. A handler re-checks every precondition
against the live state when it runs and raises a ``ValidationRejection``
before mutating anything if one fails.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Callable

from tick_sub.entities import Extinguishing, Healing, Repairing, Role
from tick_sub.types import CrewUnavailable, TaskBlocked, UnknownEntity, ValidationRejection
from tick_sub.upgrades import purchase

if TYPE_CHECKING:
    from tick_sub.entities import Crew, Task
    from tick_sub.signals import SignalBus
    from tick_sub.state import SimState

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class AssignCrew:
    crew_id: str | None
    task_id: str


@dataclass(frozen=True)
class UnassignTask:
    task_id: str


@dataclass(frozen=True)
class QuickAssign:
    """Send the healthiest idle crew member to a task."""

    task_id: str


@dataclass(frozen=True)
class RequestHeal:
    target_id: str


@dataclass(frozen=True)
class Extinguish:
    crew_id: str
    task_id: str


@dataclass(frozen=True)
class RecallExtinguisher:
    task_id: str


@dataclass(frozen=True)
class PurchaseUpgrade:
    crew_id: str
    upgrade_key: str


# --- Lookups ---


def _task(state: SimState, task_id: str) -> Task:
    task = state.find_task(task_id)
    if task is None:
        raise UnknownEntity(f"No task {task_id!r}.")
    return task


def _crew(state: SimState, crew_id: str) -> Crew:
    crew = state.find_crew(crew_id)
    if crew is None:
        raise UnknownEntity(f"No crew member {crew_id!r}.")
    return crew


def _clear_assignment(state: SimState, task: Task) -> None:
    previous = state.find_crew(task.assigned)
    if previous is not None and previous.engagement == Repairing(task.id):
        state.release(previous)
    task.assigned = None


# --- Handlers ---


def assign_crew(cmd: AssignCrew, state: SimState) -> None:
    task = _task(state, cmd.task_id)
    if cmd.crew_id is None:
        _clear_assignment(state, task)
        return
    crew = _crew(state, cmd.crew_id)
    if not crew.alive:
        raise CrewUnavailable(f"{crew.name} is dead and cannot be assigned.")
    if task.complete:
        raise TaskBlocked(f"{task.title} is already repaired.")
    if state.on_fire(task.id):
        raise TaskBlocked(f"{task.title} is on fire. Put the fire out first.")
    if task.assigned == crew.id and crew.engagement == Repairing(task.id):
        return
    _clear_assignment(state, task)
    state.engage(crew, Repairing(task.id))


def unassign_task(cmd: UnassignTask, state: SimState) -> None:
    _clear_assignment(state, _task(state, cmd.task_id))


def quick_assign(cmd: QuickAssign, state: SimState) -> None:
    _task(state, cmd.task_id)
    candidates = [c for c in state.crew if c.alive and c.idle]
    if not candidates:
        raise CrewUnavailable("No available crew alive to assign.")
    healthiest = max(candidates, key=lambda c: c.health)
    assign_crew(AssignCrew(crew_id=healthiest.id, task_id=cmd.task_id), state)


def request_heal(cmd: RequestHeal, state: SimState) -> None:
    medic = state.crew_with_role(Role.MEDIC)
    if medic is None:
        raise CrewUnavailable("No medic present.")
    if not medic.alive:
        raise CrewUnavailable("Medic is dead and cannot heal.")
    target = _crew(state, cmd.target_id)
    if medic.heal_target == target.id:
        state.release(medic)
        return
    if not target.alive:
        raise CrewUnavailable(f"{target.name} is beyond help.")
    state.engage(medic, Healing(target.id))


def extinguish(cmd: Extinguish, state: SimState) -> None:
    task = _task(state, cmd.task_id)
    crew = _crew(state, cmd.crew_id)
    if not crew.alive:
        raise CrewUnavailable(f"{crew.name} is dead and cannot fight fires.")
    if not state.on_fire(task.id):
        raise TaskBlocked(f"There is no fire in {task.title}.")
    if task.extinguisher == crew.id:
        return
    if task.extinguisher is not None:
        holder = state.find_crew(task.extinguisher)
        name = holder.name if holder is not None else task.extinguisher
        raise TaskBlocked(f"{name} is already fighting the fire in {task.title}.")
    if not crew.idle:
        raise CrewUnavailable(f"{crew.name} is busy.")
    state.engage(crew, Extinguishing(task.id))


def recall_extinguisher(cmd: RecallExtinguisher, state: SimState) -> None:
    task = _task(state, cmd.task_id)
    if task.extinguisher is None:
        raise TaskBlocked(f"No one is fighting a fire in {task.title}.")
    crew = state.find_crew(task.extinguisher)
    if crew is not None and crew.engagement == Extinguishing(task.id):
        state.release(crew)
    task.extinguisher = None


def purchase_upgrade(cmd: PurchaseUpgrade, state: SimState) -> None:
    purchase(state, cmd.crew_id, cmd.upgrade_key)


# --- Router ---


class CommandRouter:
    """Runs commands against a state, one typed handler per command class."""

    def __init__(self, bus: SignalBus) -> None:
        self._bus = bus
        self._handlers: dict[type[Any], Callable[[Any, SimState], None]] = {}

    def handle(
        self,
        cmd_type: type[Any],
        handler: Callable[[Any, SimState], None],
    ) -> None:
        """Register a handler for a command type. Later calls overwrite."""
        self._handlers[cmd_type] = handler

    def dispatch(self, cmd: Any, state: SimState) -> bool:
        """Run ``cmd`` now. Returns False, with a notice, if it was rejected.

        Raises ``TypeError`` if no handler is registered for the command.
        """
        handler = self._handlers.get(type(cmd))
        if handler is None:
            raise TypeError(f"No handler registered for {type(cmd).__qualname__}")
        try:
            handler(cmd, state)
        except ValidationRejection as exc:
            logger.info("Rejected %r: %s", cmd, exc)
            self._bus.notice(str(exc), reason=exc.code)
            return False
        state.dirty = True
        return True


def make_router(bus: SignalBus) -> CommandRouter:
    router = CommandRouter(bus)
    router.handle(AssignCrew, assign_crew)
    router.handle(UnassignTask, unassign_task)
    router.handle(QuickAssign, quick_assign)
    router.handle(RequestHeal, request_heal)
    router.handle(Extinguish, extinguish)
    router.handle(RecallExtinguisher, recall_extinguisher)
    router.handle(PurchaseUpgrade, purchase_upgrade)
    return router
