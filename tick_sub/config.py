"""Runtime configuration dataclass."""
from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True)
class SimConfig:
    """Immutable cadence and storage settings for a simulation.

    Attributes:
        tick_interval: Seconds between steps of ``Engine.run_forever``.
        max_step: Upper bound on the delta time of a single step, so a stall
            never turns into one huge catch-up step.
        autosave_interval: Minimum seconds between automatic snapshots.
        instant_event_linger: Seconds an instantaneous event stays listed
            before it removes itself.
        save_key: Key of the persisted blob in the key-value store.
    """

    tick_interval: float = 0.12
    max_step: float = 0.5
    autosave_interval: float = 2.0
    instant_event_linger: float = 0.5
    save_key: str = "sub_demo_state_v1"

    def __post_init__(self) -> None:
        if self.tick_interval <= 0:
            raise ValueError(f"tick_interval must be > 0, got {self.tick_interval}")
        if self.max_step <= 0:
            raise ValueError(f"max_step must be > 0, got {self.max_step}")
        if self.autosave_interval < 0:
            raise ValueError(
                f"autosave_interval must be >= 0, got {self.autosave_interval}"
            )
        if not self.save_key:
            raise ValueError("save_key must be non-empty")
