"""Static registry of configuration fields.

Each :class:`GenerationConfig` field is described once here: its wire
identifier (the key used in lock sets and JSON), its default, its value
domain, and how the randomizer draws a fresh value for it.  The lock set,
the merge operations and the randomizer all consult this table instead of
special-casing individual fields.

Field identifiers are the camelCase wire keys (``"modelId"``,
``"negativePrompt"`` ...), which keeps persisted lock sets readable and
compatible with project files.
"""

from __future__ import annotations

import random
from collections.abc import Callable, Sequence
from dataclasses import dataclass
from enum import Enum
from typing import Any

from .models import (
    MAX_SEED,
    AspectRatio,
    FocalLength,
    GenerationConfig,
    Lens,
    Lighting,
    ModelId,
    Perspective,
    Resolution,
)


class ConfigField(str, Enum):
    """Identifiers of every configuration field."""

    PROMPT = "prompt"
    NEGATIVE_PROMPT = "negativePrompt"
    GLOBAL_STYLE = "globalStyle"
    STYLE_REFERENCE_IMAGE = "styleReferenceImage"
    SEED = "seed"
    MODEL_ID = "modelId"
    ASPECT_RATIO = "aspectRatio"
    RESOLUTION = "resolution"
    PERSPECTIVE = "perspective"
    LIGHTING = "lighting"
    LENS = "lens"
    FOCAL_LENGTH = "focalLength"


# ---------------------------------------------------------------------------
# Curated pools for the randomizer.
# ---------------------------------------------------------------------------

SUBJECT_POOL: tuple[str, ...] = (
    "a lighthouse on a basalt cliff during a storm",
    "an overgrown greenhouse inside an abandoned train station",
    "a street food market under paper lanterns",
    "a clockwork fox sleeping on a pile of books",
    "a desert caravan crossing salt flats at dusk",
    "a floating island with waterfalls spilling into clouds",
    "an astronaut tending a rooftop garden",
    "a quiet ramen shop on a rainy night",
    "a glass cathedral built inside a glacier",
    "a fisherman mending nets on a wooden pier",
    "a retro-futuristic diner on the moon",
    "a herd of wild horses running through fog",
)

STYLE_POOL: tuple[str, ...] = (
    "cyberpunk",
    "oil painting",
    "minimalist",
    "watercolor",
    "art nouveau",
    "studio ghibli inspired",
    "35mm film photograph",
    "low poly 3D render",
    "ukiyo-e woodblock print",
    "charcoal sketch",
    "vaporwave",
    "hyperrealistic",
)

NEGATIVE_POOL: tuple[str, ...] = (
    "blur",
    "text, watermark",
    "extra limbs",
    "people",
    "oversaturated colors",
    "low resolution, jpeg artifacts",
    "frames, borders",
    "cartoonish proportions",
)


@dataclass(frozen=True)
class DrawContext:
    """Inputs available to a field's draw function."""

    rng: random.Random
    presence_probability: float
    reference_pool: Sequence[str] = ()

    def present(self) -> bool:
        """Decide whether an optional field is included in this draw."""
        return self.rng.random() < self.presence_probability


@dataclass(frozen=True)
class FieldSpec:
    """Registry entry for one configuration field.

    Attributes:
        field: Wire identifier of the field.
        attr: Attribute name on :class:`GenerationConfig`.
        default: Value used by reset-to-default.
        domain: Finite value set for enumerated fields, else ``None``.
        draw: Produces a random value for the randomizer.
        nullable: Whether ``None`` is a legal configuration value.
    """

    field: ConfigField
    attr: str
    default: Any
    domain: tuple[Any, ...] | None
    draw: Callable[[DrawContext], Any]
    nullable: bool = False


def _choice_from(domain: Sequence[Any]) -> Callable[[DrawContext], Any]:
    return lambda ctx: ctx.rng.choice(list(domain))


def _optional_choice_from(pool: Sequence[str]) -> Callable[[DrawContext], Any]:
    return lambda ctx: ctx.rng.choice(list(pool)) if ctx.present() else ""


def _draw_reference_image(ctx: DrawContext) -> str | None:
    if not ctx.reference_pool or not ctx.present():
        return None
    return ctx.rng.choice(list(ctx.reference_pool))


def _draw_seed(ctx: DrawContext) -> int:
    return ctx.rng.randint(0, MAX_SEED)


def _build_registry() -> dict[ConfigField, FieldSpec]:
    defaults = GenerationConfig()

    def enum_spec(field: ConfigField, attr: str, enum_cls: type[Enum]) -> FieldSpec:
        domain = tuple(enum_cls)
        return FieldSpec(field, attr, getattr(defaults, attr), domain, _choice_from(domain))

    specs = [
        FieldSpec(ConfigField.PROMPT, "prompt", defaults.prompt, None, _choice_from(SUBJECT_POOL)),
        FieldSpec(
            ConfigField.NEGATIVE_PROMPT,
            "negative_prompt",
            defaults.negative_prompt,
            None,
            _optional_choice_from(NEGATIVE_POOL),
            nullable=True,
        ),
        FieldSpec(
            ConfigField.GLOBAL_STYLE,
            "global_style",
            defaults.global_style,
            None,
            _optional_choice_from(STYLE_POOL),
            nullable=True,
        ),
        FieldSpec(
            ConfigField.STYLE_REFERENCE_IMAGE,
            "style_reference_image",
            defaults.style_reference_image,
            None,
            _draw_reference_image,
            nullable=True,
        ),
        FieldSpec(ConfigField.SEED, "seed", defaults.seed, None, _draw_seed, nullable=True),
        enum_spec(ConfigField.MODEL_ID, "model_id", ModelId),
        enum_spec(ConfigField.ASPECT_RATIO, "aspect_ratio", AspectRatio),
        enum_spec(ConfigField.RESOLUTION, "resolution", Resolution),
        enum_spec(ConfigField.PERSPECTIVE, "perspective", Perspective),
        enum_spec(ConfigField.LIGHTING, "lighting", Lighting),
        enum_spec(ConfigField.LENS, "lens", Lens),
        enum_spec(ConfigField.FOCAL_LENGTH, "focal_length", FocalLength),
    ]
    return {spec.field: spec for spec in specs}


FIELD_REGISTRY: dict[ConfigField, FieldSpec] = _build_registry()
ALL_FIELDS: frozenset[ConfigField] = frozenset(FIELD_REGISTRY)
_BY_ATTR: dict[str, FieldSpec] = {spec.attr: spec for spec in FIELD_REGISTRY.values()}


def parse_field(value: str | ConfigField) -> ConfigField:
    """Resolve a wire identifier or attribute name to a :class:`ConfigField`.

    Raises:
        KeyError: If *value* names no configuration field.
    """
    if isinstance(value, ConfigField):
        return value
    try:
        return ConfigField(value)
    except ValueError:
        pass
    if value in _BY_ATTR:
        return _BY_ATTR[value].field
    known = ", ".join(f.value for f in ConfigField)
    raise KeyError(f"Unknown configuration field '{value}'. Known fields: {known}")


def spec_for_attr(attr: str) -> FieldSpec:
    """Return the registry entry for a :class:`GenerationConfig` attribute name."""
    return _BY_ATTR[attr]
