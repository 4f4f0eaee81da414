"""Unit tests for MuseBox data models."""

from __future__ import annotations

import pydantic
import pytest

from musebox.core.models import (
    MAX_SEED,
    AspectRatio,
    GeneratedArtifact,
    GenerationConfig,
    ModelId,
    StoryboardScene,
    StyleConfig,
    StylePreset,
)


class TestGenerationConfig:
    """Tests for GenerationConfig."""

    def test_default_values(self):
        cfg = GenerationConfig()
        assert cfg.prompt == ""
        assert cfg.model_id is ModelId.FLASH_IMAGE
        assert cfg.aspect_ratio is AspectRatio.SQUARE
        assert cfg.seed is None

    def test_wire_keys_are_camel_case(self):
        wire = GenerationConfig(negative_prompt="blur").to_wire()
        assert wire["negativePrompt"] == "blur"
        assert wire["modelId"] == "gemini-2.5-flash-image"
        assert "negative_prompt" not in wire

    def test_accepts_wire_keys(self):
        cfg = GenerationConfig.model_validate({"globalStyle": "ink", "aspectRatio": "16:9"})
        assert cfg.global_style == "ink"
        assert cfg.aspect_ratio is AspectRatio.LANDSCAPE_16_9

    def test_is_frozen(self):
        with pytest.raises(pydantic.ValidationError):
            GenerationConfig().prompt = "changed"

    def test_with_updates_validates(self):
        cfg = GenerationConfig(prompt="a")
        assert cfg.with_updates(seed=MAX_SEED).seed == MAX_SEED
        with pytest.raises(pydantic.ValidationError):
            cfg.with_updates(seed=MAX_SEED + 1)
        assert cfg.seed is None

    @pytest.mark.parametrize("prompt, expected", [("", False), ("  \n", False), ("a", True)])
    def test_has_prompt(self, prompt, expected):
        assert GenerationConfig(prompt=prompt).has_prompt() is expected


class TestStyleConfig:
    def test_from_config_drops_prompt_only(self, sample_config):
        style = StyleConfig.from_config(sample_config)
        fields = style.present_fields()
        assert "prompt" not in fields
        assert fields["global_style"] == "watercolor"
        assert len(fields) == len(GenerationConfig.model_fields) - 1

    def test_absent_and_cleared_are_distinct(self):
        style = StyleConfig.model_validate({"seed": None})
        assert style.present_fields() == {"seed": None}
        assert StyleConfig().present_fields() == {}

    def test_preset_wire_omits_absent_fields(self):
        preset = StylePreset(id="p", name="Wide", config=StyleConfig(aspect_ratio="16:9"))
        assert preset.to_wire() == {"id": "p", "name": "Wide", "config": {"aspectRatio": "16:9"}}


class TestArtifactAndScene:
    def test_artifact_wire_aliases(self, sample_artifact):
        wire = sample_artifact.to_wire()
        assert wire["prompt"] == sample_artifact.source_prompt
        assert wire["config"]["prompt"] == "a lighthouse at dusk"
        assert "timestamp" in wire
        assert GeneratedArtifact.model_validate(wire) == sample_artifact

    def test_artifact_ids_are_unique(self, sample_config):
        first = GeneratedArtifact(url="u", config=sample_config)
        second = GeneratedArtifact(url="u", config=sample_config)
        assert first.id != second.id

    def test_scene_image_url_alias(self):
        scene = StoryboardScene.model_validate({"imageUrl": "data:x", "script": "s"})
        assert scene.image_ref == "data:x"
        assert scene.to_wire()["imageUrl"] == "data:x"
