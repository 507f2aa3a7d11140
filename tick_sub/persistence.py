"""Persistence - snapshot/restore of SimState to a key-value store.

Only canonical state is written: difficulty, supplies, upgrade levels, task
progress, firefighter slots, and live events. Task multipliers are derived;
restoring re-runs each event's ``apply`` instead of trusting stored numbers.
"""
from __future__ import annotations

import copy
import json
import logging
import os
import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import TYPE_CHECKING, Any, Protocol

from tick_sub.difficulty import DEFAULT_DIFFICULTY, PRESETS, DifficultyPreset
from tick_sub.entities import Extinguishing
from tick_sub.events.registry import FIRE_INTENSITY, recompute_task_multipliers
from tick_sub.events.types import ActiveEvent, EventType
from tick_sub.types import SnapshotError
from tick_sub.upgrades import UPGRADES, blank_levels, recompute_stats

if TYPE_CHECKING:
    from tick_sub.events.scheduler import EventScheduler
    from tick_sub.state import SimState

logger = logging.getLogger(__name__)

_SNAPSHOT_VERSION = 1
_KEY_RE = re.compile(r"^[A-Za-z0-9_.-]+$")


# --- Stores ---


class KeyValueStore(Protocol):
    """Durable string storage addressed by key."""

    def get(self, key: str) -> str | None: ...

    def set(self, key: str, value: str) -> None: ...

    def delete(self, key: str) -> None: ...


class MemoryStore:
    """Process-local store, for tests and throwaway sessions."""

    def __init__(self) -> None:
        self._data: dict[str, str] = {}

    def get(self, key: str) -> str | None:
        return self._data.get(key)

    def set(self, key: str, value: str) -> None:
        self._data[key] = value

    def delete(self, key: str) -> None:
        self._data.pop(key, None)

    def __contains__(self, key: str) -> bool:
        return key in self._data


class JsonFileStore:
    """One ``<key>.json`` file per key inside ``directory``.

    Writes go to a temporary file that replaces the target, so a crash never
    leaves a half-written blob behind.
    """

    def __init__(self, directory: str | os.PathLike[str]) -> None:
        self._directory = Path(directory)

    @property
    def directory(self) -> Path:
        return self._directory

    def _path(self, key: str) -> Path:
        if not _KEY_RE.match(key):
            raise ValueError(f"Invalid store key {key!r}")
        return self._directory / f"{key}.json"

    def get(self, key: str) -> str | None:
        path = self._path(key)
        if not path.exists():
            return None
        return path.read_text(encoding="utf-8")

    def set(self, key: str, value: str) -> None:
        path = self._path(key)
        self._directory.mkdir(parents=True, exist_ok=True)
        tmp = path.with_suffix(".json.tmp")
        tmp.write_text(value, encoding="utf-8")
        os.replace(tmp, path)

    def delete(self, key: str) -> None:
        self._path(key).unlink(missing_ok=True)


# --- Snapshot ---


def snapshot(state: SimState) -> dict[str, Any]:
    return {
        "version": _SNAPSHOT_VERSION,
        "difficulty": state.difficulty.name,
        "supplies": state.supplies,
        "crew": [{"id": c.id, "upgrades": dict(c.upgrades)} for c in state.crew],
        "tasks": [
            {
                "id": t.id,
                "progress": t.progress,
                "complete": t.complete,
                "extinguisher": t.extinguisher,
            }
            for t in state.tasks
        ],
        "activeEvents": [
            {
                "id": ev.id,
                "type": ev.type.value,
                "target": ev.target,
                "startedAt": ev.started_at,
                "duration": ev.duration,
                "meta": copy.deepcopy(ev.meta),
            }
            for ev in state.active_events
            if ev.duration > 0
        ],
    }


def save(state: SimState, store: KeyValueStore, key: str) -> bool:
    """Write a snapshot. Storage failures are logged and return False."""
    try:
        store.set(key, json.dumps(snapshot(state)))
    except (OSError, TypeError, ValueError):
        logger.warning("Save failed", exc_info=True)
        return False
    return True


def clear(store: KeyValueStore, key: str) -> bool:
    try:
        store.delete(key)
    except (OSError, ValueError):
        logger.warning("Could not clear saved state", exc_info=True)
        return False
    return True


# --- Parsing ---


@dataclass
class TaskRecord:
    id: str
    progress: float
    complete: bool
    extinguisher: str | None = None


@dataclass
class ParsedSnapshot:
    """A fully validated snapshot, ready to apply."""

    difficulty: DifficultyPreset | None = None
    supplies: int | None = None
    crew: dict[str, dict[str, int]] = field(default_factory=dict)
    tasks: list[TaskRecord] = field(default_factory=list)
    events: list[ActiveEvent] = field(default_factory=list)


def _number(value: Any, what: str) -> float:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise SnapshotError(f"{what} must be a number, got {value!r}")
    return float(value)


def _bool(value: Any, what: str) -> bool:
    if not isinstance(value, bool):
        raise SnapshotError(f"{what} must be true or false, got {value!r}")
    return value


def _list(data: dict[str, Any], key: str) -> list[Any]:
    value = data.get(key, [])
    if not isinstance(value, list):
        raise SnapshotError(f"{key} must be a list")
    return value


def _entry(item: Any, what: str) -> dict[str, Any]:
    if not isinstance(item, dict) or not isinstance(item.get("id"), str):
        raise SnapshotError(f"Malformed {what} entry: {item!r}")
    return item


def _fire_meta(meta: dict[str, Any], event_id: str) -> None:
    """Check fire intensity fields in place; clamp health into [0, max]."""
    fire_max = _number(meta.get("fire_max", FIRE_INTENSITY), f"fire_max of {event_id!r}")
    if fire_max <= 0:
        raise SnapshotError(f"fire_max of {event_id!r} must be positive, got {fire_max}")
    health = _number(meta.get("fire_health", fire_max), f"fire_health of {event_id!r}")
    meta["fire_max"] = fire_max
    meta["fire_health"] = min(fire_max, max(0.0, health))


def parse(raw: str) -> ParsedSnapshot:
    """Validate a persisted blob. Raises SnapshotError if it is malformed."""
    try:
        data = json.loads(raw)
    except ValueError as exc:
        raise SnapshotError(f"Not valid JSON: {exc}") from exc
    if not isinstance(data, dict):
        raise SnapshotError("Snapshot must be a JSON object")
    version = data.get("version", _SNAPSHOT_VERSION)
    if version != _SNAPSHOT_VERSION:
        raise SnapshotError(
            f"Unsupported snapshot version {version!r}, expected {_SNAPSHOT_VERSION}"
        )

    parsed = ParsedSnapshot()

    name = data.get("difficulty")
    if name is not None:
        if name in PRESETS:
            parsed.difficulty = PRESETS[name]
        else:
            logger.warning("Unknown difficulty %r, using %s", name, DEFAULT_DIFFICULTY)
            parsed.difficulty = PRESETS[DEFAULT_DIFFICULTY]

    if "supplies" in data:
        supplies = _number(data["supplies"], "supplies")
        if supplies < 0 or not supplies.is_integer():
            raise SnapshotError(f"supplies must be a non-negative integer, got {supplies}")
        parsed.supplies = int(supplies)

    for item in _list(data, "crew"):
        entry = _entry(item, "crew")
        upgrades = entry.get("upgrades", {})
        if not isinstance(upgrades, dict):
            raise SnapshotError(f"Malformed upgrades for {entry['id']!r}")
        levels: dict[str, int] = {}
        for key, level in upgrades.items():
            if key not in UPGRADES:
                logger.info("Ignoring unknown upgrade %r", key)
                continue
            value = _number(level, f"upgrade level {key}")
            if value < 0 or not value.is_integer():
                raise SnapshotError(f"Bad level {level!r} for upgrade {key!r}")
            levels[key] = int(value)
        parsed.crew[entry["id"]] = levels

    for item in _list(data, "tasks"):
        entry = _entry(item, "task")
        extinguisher = entry.get("extinguisher")
        if extinguisher is not None and not isinstance(extinguisher, str):
            raise SnapshotError(f"Malformed extinguisher for {entry['id']!r}")
        parsed.tasks.append(
            TaskRecord(
                id=entry["id"],
                progress=max(0.0, _number(entry.get("progress", 0), "progress")),
                complete=_bool(entry.get("complete", False), "complete"),
                extinguisher=extinguisher,
            )
        )

    for item in _list(data, "activeEvents"):
        entry = _entry(item, "event")
        try:
            event_type = EventType(entry.get("type"))
        except ValueError:
            logger.info("Skipping event of unknown type %r", entry.get("type"))
            continue
        target = entry.get("target")
        if target is not None and not isinstance(target, str):
            raise SnapshotError(f"Malformed target for event {entry['id']!r}")
        meta = entry.get("meta", {})
        if not isinstance(meta, dict):
            raise SnapshotError(f"Malformed meta for event {entry['id']!r}")
        meta = copy.deepcopy(meta)
        if event_type is EventType.FIRE:
            _fire_meta(meta, entry["id"])
        parsed.events.append(
            ActiveEvent(
                id=entry["id"],
                type=event_type,
                target=target,
                started_at=_number(entry.get("startedAt"), "startedAt"),
                duration=max(0.0, _number(entry.get("duration", 0), "duration")),
                meta=meta,
            )
        )

    return parsed


# --- Restore ---


def apply_snapshot(
    state: SimState, parsed: ParsedSnapshot, scheduler: EventScheduler
) -> None:
    if parsed.difficulty is not None:
        state.difficulty = parsed.difficulty
    state.supplies = (
        parsed.supplies if parsed.supplies is not None else state.difficulty.start_supplies
    )

    for crew_id, levels in parsed.crew.items():
        crew = state.find_crew(crew_id)
        if crew is None:
            logger.info("Ignoring saved upgrades for unknown crew %r", crew_id)
            continue
        crew.upgrades = blank_levels()
        crew.upgrades.update(levels)
        recompute_stats(crew)

    for record in parsed.tasks:
        task = state.find_task(record.id)
        if task is None:
            logger.info("Ignoring saved progress for unknown task %r", record.id)
            continue
        target = state.target_time(task)
        task.complete = record.complete
        task.progress = target if task.complete else min(record.progress, target)
        if task.complete:
            assignee = state.find_crew(task.assigned)
            if assignee is not None:
                state.release(assignee)
            task.assigned = None

    state.active_events.clear()
    for task in state.tasks:
        task.extinguisher = None
        recompute_task_multipliers(state, task)
    for event in parsed.events:
        if event.duration <= 0 or state.find_event(event.id) is not None:
            continue
        strategy = scheduler.strategy(event.type)
        if strategy is not None and strategy.needs_target:
            task = state.find_task(event.target)
            if task is None or task.complete:
                logger.info("Dropping %s %s on unavailable task %r",
                            event.type.value, event.id, event.target)
                continue
        scheduler.reapply(state, event)

    for record in parsed.tasks:
        if record.extinguisher is None:
            continue
        crew = state.find_crew(record.extinguisher)
        if crew is None or not crew.alive or not state.on_fire(record.id):
            logger.info("Dropping stale firefighter %r on %r", record.extinguisher, record.id)
            continue
        state.engage(crew, Extinguishing(record.id))

    state.dirty = True


def load(
    state: SimState, store: KeyValueStore, key: str, scheduler: EventScheduler
) -> bool:
    """Restore from ``store``. Missing or malformed data leaves ``state`` as is."""
    try:
        raw = store.get(key)
    except (OSError, ValueError):
        logger.warning("Could not read saved state", exc_info=True)
        return False
    if raw is None:
        return False
    try:
        parsed = parse(raw)
    except SnapshotError as exc:
        logger.warning("Ignoring malformed saved state: %s", exc)
        return False
    apply_snapshot(state, parsed, scheduler)
    logger.info("Loaded saved state (%s, %d supplies)", state.difficulty.name, state.supplies)
    return True
