"""Tests for tick_sub.difficulty - preset table and lookups."""
from __future__ import annotations

import pytest

from tick_sub.difficulty import (
    DEFAULT_DIFFICULTY,
    PRESETS,
    DifficultyPreset,
    get_preset,
    preset_names,
)


class TestPresets:
    def test_four_presets_in_order(self) -> None:
        assert preset_names() == ["Easy", "Normal", "Hard", "Nightmare"]
        assert DEFAULT_DIFFICULTY == "Normal"

    def test_normal_values(self) -> None:
        normal = get_preset("Normal")
        assert normal.damage_multiplier == 1.0
        assert normal.start_supplies == 50
        assert normal.event_delay_min_ms == 15000
        assert normal.event_delay_max_ms == 35000
        assert normal.task_time_mult == 1.0
        assert normal.fire_spread_rate == 0.0

    def test_fire_spreads_only_on_hard_presets(self) -> None:
        assert PRESETS["Easy"].fire_spread_rate == 0.0
        assert PRESETS["Hard"].fire_spread_rate > 0.0
        assert PRESETS["Nightmare"].fire_spread_rate > PRESETS["Hard"].fire_spread_rate

    def test_harder_presets_hurt_more(self) -> None:
        mults = [PRESETS[name].damage_multiplier for name in preset_names()]
        assert mults == sorted(mults)

    def test_unknown_preset_raises(self) -> None:
        with pytest.raises(KeyError):
            get_preset("Impossible")

    def test_describe(self) -> None:
        text = get_preset("Hard").describe()
        assert "Damage x1.6" in text
        assert "Start supplies: 30" in text
        assert "8-20s" in text


class TestWeights:
    def test_missing_type_weighs_one(self) -> None:
        preset = DifficultyPreset(
            name="Custom", damage_multiplier=1.0, start_supplies=0,
            event_delay_min_ms=0, event_delay_max_ms=0, task_time_mult=1.0,
        )
        assert preset.weight("fire") == 1.0

    def test_negative_weight_treated_as_zero(self) -> None:
        preset = DifficultyPreset(
            name="Custom", damage_multiplier=1.0, start_supplies=0,
            event_delay_min_ms=0, event_delay_max_ms=0, task_time_mult=1.0,
            event_weights={"fire": -2.0},
        )
        assert preset.weight("fire") == 0.0

    def test_weights_are_read_only(self) -> None:
        with pytest.raises(TypeError):
            PRESETS["Normal"].event_weights["fire"] = 5.0  # type: ignore[index]


class TestValidation:
    def test_rejects_inverted_delay_bounds(self) -> None:
        with pytest.raises(ValueError):
            DifficultyPreset(
                name="Bad", damage_multiplier=1.0, start_supplies=0,
                event_delay_min_ms=10, event_delay_max_ms=5, task_time_mult=1.0,
            )

    def test_rejects_non_positive_task_time(self) -> None:
        with pytest.raises(ValueError):
            DifficultyPreset(
                name="Bad", damage_multiplier=1.0, start_supplies=0,
                event_delay_min_ms=0, event_delay_max_ms=0, task_time_mult=0.0,
            )
