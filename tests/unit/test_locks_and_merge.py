"""Tests for musebox.core.locks and musebox.core.merge.

Tests cover:
- Lock toggling idempotence and the global toggle.
- Persistence helpers (to_list / from_list).
- reset_to_defaults keeping locked fields.
- apply_style never touching the prompt and honouring locks.
- randomize_config keeping locked fields and drawing valid values.
"""

from __future__ import annotations

import random

import pytest

from musebox.core.fields import ALL_FIELDS, FIELD_REGISTRY, ConfigField, parse_field
from musebox.core.locks import LockSet
from musebox.core.merge import apply_style, randomize_config, reset_to_defaults
from musebox.core.models import (
    MAX_SEED,
    AspectRatio,
    GenerationConfig,
    Lighting,
    ModelId,
    StyleConfig,
    StylePreset,
)

# ---------------------------------------------------------------------------
# Lock set.
# ---------------------------------------------------------------------------


class TestLockSet:
    @pytest.mark.parametrize("field", list(ConfigField))
    def test_double_toggle_restores_membership(self, field):
        locks = LockSet()
        assert locks.toggle(field) is True
        assert locks.toggle(field) is False
        assert not locks.is_locked(field)

    def test_toggle_accepts_wire_id_and_attr_name(self):
        locks = LockSet()
        locks.toggle("modelId")
        assert locks.is_locked("model_id")
        assert ConfigField.MODEL_ID in locks

    def test_unknown_field_raises(self):
        with pytest.raises(KeyError):
            LockSet().toggle("sharpness")

    def test_toggle_all_locks_everything_when_empty(self):
        locks = LockSet()
        locks.toggle_all()
        assert len(locks) == len(ALL_FIELDS)

    def test_toggle_all_clears_when_any_locked(self):
        locks = LockSet(["seed"])
        locks.toggle_all()
        assert len(locks) == 0

    def test_lock_all_then_unlock_all(self):
        locks = LockSet()
        locks.lock_all()
        assert locks.is_locked("prompt") and locks.is_locked("seed")
        locks.unlock_all()
        assert locks.to_list() == []

    def test_list_round_trip_skips_unknown(self):
        locks = LockSet.from_list(["seed", "lighting", "bogus"])
        assert locks.to_list() == ["lighting", "seed"]
        assert LockSet.from_list(locks.to_list()) == locks

    def test_contains_unknown_is_false(self):
        assert "bogus" not in LockSet(["seed"])


class TestParseField:
    def test_every_field_has_registry_entry(self):
        assert set(FIELD_REGISTRY) == set(ConfigField)

    def test_parse_returns_same_member(self):
        assert parse_field(ConfigField.LENS) is ConfigField.LENS
        assert parse_field("focalLength") is ConfigField.FOCAL_LENGTH
        assert parse_field("focal_length") is ConfigField.FOCAL_LENGTH


# ---------------------------------------------------------------------------
# Reset.
# ---------------------------------------------------------------------------


class TestResetToDefaults:
    def test_no_locks_yields_defaults(self, sample_config):
        assert reset_to_defaults(sample_config, LockSet()) == GenerationConfig()

    def test_locked_model_survives(self, sample_config):
        result = reset_to_defaults(sample_config, LockSet(["modelId"]))
        assert result.model_id is ModelId.PRO_IMAGE
        assert result == GenerationConfig(model_id=ModelId.PRO_IMAGE)

    def test_locked_prompt_survives(self, sample_config):
        result = reset_to_defaults(sample_config, LockSet(["prompt", "seed"]))
        assert result.prompt == sample_config.prompt
        assert result.seed == 42
        assert result.global_style == ""


# ---------------------------------------------------------------------------
# Style application.
# ---------------------------------------------------------------------------


class TestApplyStyle:
    def test_prompt_is_never_changed(self, sample_config):
        preset = StylePreset(name="p", config=StyleConfig(global_style="neon"))
        result = apply_style(preset, sample_config, LockSet())
        assert result.prompt == sample_config.prompt
        assert result.global_style == "neon"

    def test_prompt_key_in_preset_data_is_ignored(self, sample_config):
        style = StyleConfig.model_validate({"prompt": "hijack", "lighting": "Neon"})
        result = apply_style(style, sample_config, LockSet())
        assert result.prompt == sample_config.prompt
        assert result.lighting is Lighting.NEON

    def test_only_present_fields_are_written(self, sample_config):
        style = StyleConfig(aspect_ratio=AspectRatio.PORTRAIT_9_16)
        result = apply_style(style, sample_config, LockSet())
        assert result.aspect_ratio is AspectRatio.PORTRAIT_9_16
        assert result.global_style == "watercolor"
        assert result.seed == 42

    def test_locked_fields_are_kept(self, sample_config):
        style = StyleConfig(global_style="neon", model_id=ModelId.IMAGEN)
        result = apply_style(style, sample_config, LockSet(["globalStyle"]))
        assert result.global_style == "watercolor"
        assert result.model_id is ModelId.IMAGEN

    def test_explicit_none_clears_nullable_field(self, sample_config):
        style = StyleConfig(seed=None)
        assert "seed" in style.present_fields()
        assert apply_style(style, sample_config, LockSet()).seed is None

    def test_explicit_none_skips_required_field(self, sample_config):
        style = StyleConfig(model_id=None)
        assert apply_style(style, sample_config, LockSet()).model_id is ModelId.PRO_IMAGE


# ---------------------------------------------------------------------------
# Randomization.
# ---------------------------------------------------------------------------


class TestRandomizeConfig:
    def test_locked_fields_kept(self, sample_config):
        locks = LockSet(["prompt", "modelId", "seed"])
        for seed in range(20):
            result = randomize_config(sample_config, locks, rng=random.Random(seed))
            assert result.prompt == sample_config.prompt
            assert result.model_id is ModelId.PRO_IMAGE
            assert result.seed == 42

    def test_all_locked_is_identity(self, sample_config):
        locks = LockSet(ALL_FIELDS)
        assert randomize_config(sample_config, locks, rng=random.Random(1)) == sample_config

    def test_draws_are_valid(self):
        for seed in range(30):
            result = randomize_config(GenerationConfig(), LockSet(), rng=random.Random(seed))
            assert result.has_prompt()
            assert 0 <= result.seed <= MAX_SEED

    def test_presence_zero_clears_optional_fields(self, sample_config):
        result = randomize_config(
            sample_config,
            LockSet(),
            rng=random.Random(4),
            presence_probability=0.0,
            reference_pool=["data:image/png;base64,AAAA"],
        )
        assert result.global_style == ""
        assert result.negative_prompt == ""
        assert result.style_reference_image is None

    def test_presence_one_fills_optional_fields(self):
        pool = ["data:image/png;base64,AAAA"]
        result = randomize_config(
            GenerationConfig(),
            LockSet(),
            rng=random.Random(4),
            presence_probability=1.0,
            reference_pool=pool,
        )
        assert result.global_style
        assert result.negative_prompt
        assert result.style_reference_image == pool[0]

    def test_same_rng_seed_is_reproducible(self):
        first = randomize_config(GenerationConfig(), LockSet(), rng=random.Random(99))
        second = randomize_config(GenerationConfig(), LockSet(), rng=random.Random(99))
        assert first == second
