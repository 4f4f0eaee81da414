"""Merge operations that consult the lock set.

Three operations overwrite the active configuration, each with its own
policy:

reset_to_defaults
    Every field reverts to its default unless locked.
apply_style
    Every field present in a style preset overwrites the active value
    unless locked.  ``prompt`` is never written by a preset.
randomize_config
    Every unlocked field receives a freshly drawn value.

All three return a new :class:`GenerationConfig`; the input is untouched.
"""

from __future__ import annotations

import logging
import random
from collections.abc import Sequence

from .fields import FIELD_REGISTRY, ConfigField, DrawContext, spec_for_attr
from .locks import LockSet
from .models import GenerationConfig, StyleConfig, StylePreset

logger = logging.getLogger(__name__)


def reset_to_defaults(current: GenerationConfig, locks: LockSet) -> GenerationConfig:
    """Return the default configuration, carrying over locked fields from *current*."""
    values = {}
    for field, spec in FIELD_REGISTRY.items():
        if field in locks:
            values[spec.attr] = getattr(current, spec.attr)
        else:
            values[spec.attr] = spec.default
    return GenerationConfig.model_validate(values)


def apply_style(
    style: StylePreset | StyleConfig,
    active: GenerationConfig,
    locks: LockSet,
) -> GenerationConfig:
    """Merge a style preset into *active*, honouring the lock set.

    Only fields explicitly present in the preset are written.  A field that
    is present with ``None`` clears the active value when the field is
    nullable, and is skipped otherwise.

    Args:
        style: Preset (or its partial configuration) to apply.
        active: Configuration being edited.
        locks: Fields that must keep their current value.

    Returns:
        The merged configuration.  ``prompt`` always equals ``active.prompt``.
    """
    style_config = style.config if isinstance(style, StylePreset) else style
    updates = {}

    for attr, value in style_config.present_fields().items():
        spec = spec_for_attr(attr)
        if spec.field is ConfigField.PROMPT:
            continue
        if spec.field in locks:
            continue
        if value is None and not spec.nullable:
            continue
        updates[attr] = value

    # Written last so nothing above can displace the prompt.
    updates["prompt"] = active.prompt
    return active.with_updates(**updates)


def randomize_config(
    current: GenerationConfig,
    locks: LockSet,
    *,
    rng: random.Random | None = None,
    presence_probability: float = 0.5,
    reference_pool: Sequence[str] = (),
) -> GenerationConfig:
    """Draw a new configuration for every unlocked field.

    Args:
        current: Configuration whose locked fields are kept.
        locks: Fields that keep their current value.
        rng: Random source (a fresh ``random.Random`` when omitted).
        presence_probability: Chance that an optional text or image field is
            filled rather than cleared.
        reference_pool: Candidate reference images (typically history URLs).

    Returns:
        The freshly drawn configuration.
    """
    ctx = DrawContext(
        rng=rng or random.Random(),
        presence_probability=presence_probability,
        reference_pool=tuple(reference_pool),
    )
    values = {}
    for field, spec in FIELD_REGISTRY.items():
        if field in locks:
            values[spec.attr] = getattr(current, spec.attr)
        else:
            values[spec.attr] = spec.draw(ctx)

    drawn = GenerationConfig.model_validate(values)
    logger.debug("Randomized configuration with %d locked fields.", len(locks))
    return drawn
