"""Prompt compilation and request-shape selection.

:func:`compile_config` turns a :class:`GenerationConfig` into the single
natural-language prompt sent to the remote model, plus a model-specific
request shape.  It is pure and deterministic: identical input always yields
an identical :class:`CompiledRequest`.

Clause Order
------------
Clauses are applied strictly in this order, each only when its source field
is set:

1. ``{prompt}``
2. ``, style: {global_style}``
3. ``{perspective} shot of `` is *prepended* to everything so far
4. ``, {lighting} lighting``
5. ``, shot with {lens} lens``
6. ``, focal length {focal_length}``
7. ``. Do not include: {negative_prompt}`` (always last)

Example::

    >>> cfg = GenerationConfig(
    ...     prompt="X",
    ...     perspective=Perspective.AERIAL_VIEW,
    ...     lighting=Lighting.NEON,
    ...     negative_prompt="blur",
    ... )
    >>> compile_config(cfg).final_prompt
    'Aerial View shot of X, Neon lighting. Do not include: blur'

Request Shapes
--------------
==================  ===========================  ==========================
Model family        Shape                        Notes
==================  ===========================  ==========================
``IMAGEN``          :class:`ImageBatchRequest`   no reference image, no seed
``DRAFT_SVG``       :class:`SvgDraftRequest`     text model asked for SVG
everything else     :class:`MultimodalRequest`   ``image_size`` only on Pro
==================  ===========================  ==========================
"""

from __future__ import annotations

import base64
import binascii
import re
from dataclasses import dataclass

from .models import NONE_OPTION, GenerationConfig, ModelId, PREMIUM_MODEL

_DATA_URI_RE = re.compile(r"^data:(image/[a-z0-9.+-]+);base64,(.+)$", re.IGNORECASE | re.DOTALL)

SVG_INSTRUCTION_TEMPLATE = (
    'Generate a simple, minimalist SVG code representing this scene: "{prompt}". '
    "Use simple shapes and flat colors. The SVG should be abstract and artistic. "
    "Return ONLY the raw SVG code starting with <svg and ending with </svg>. "
    "Do not wrap it in markdown code blocks."
)
SVG_REFERENCE_PREFIX = "Using the attached image as a visual reference, "


@dataclass(frozen=True)
class ReferenceImage:
    """Inline image attached to a request as an auxiliary input."""

    mime_type: str
    data: str  # base64 payload without the data-URI header


@dataclass(frozen=True)
class ImageBatchRequest:
    """Imagen-style batch request: prompt, count and aspect ratio only."""

    model: str
    prompt: str
    aspect_ratio: str
    number_of_images: int = 1
    output_mime_type: str = "image/jpeg"

    kind = "image_batch"


@dataclass(frozen=True)
class SvgDraftRequest:
    """Text-generation request instructing the model to emit raw SVG markup."""

    model: str
    instruction: str
    reference_image: ReferenceImage | None = None
    seed: int | None = None

    kind = "svg_draft"


@dataclass(frozen=True)
class MultimodalRequest:
    """Default image-generation request (reference image leads the parts)."""

    model: str
    prompt: str
    aspect_ratio: str
    image_size: str | None = None
    reference_image: ReferenceImage | None = None
    seed: int | None = None

    kind = "multimodal"


ModelRequest = ImageBatchRequest | SvgDraftRequest | MultimodalRequest


@dataclass(frozen=True)
class CompiledRequest:
    """Output of :func:`compile_config`."""

    final_prompt: str
    request: ModelRequest


def parse_data_uri(uri: str | None) -> ReferenceImage | None:
    """Split an ``data:image/...;base64,`` URI into mime type and payload.

    Returns ``None`` for anything that is not a base64 image data URI, including
    payloads that do not decode; such references are dropped rather than
    treated as errors.
    """
    if not uri:
        return None
    match = _DATA_URI_RE.match(uri.strip())
    if not match:
        return None
    data = "".join(match.group(2).split())
    try:
        base64.b64decode(data, validate=True)
    except binascii.Error:
        return None
    return ReferenceImage(mime_type=match.group(1).lower(), data=data)


def _is_set(value: object) -> bool:
    # Enum members compare equal to their string value.
    return value is not None and value != NONE_OPTION


def build_prompt_text(config: GenerationConfig) -> str:
    """Assemble the final prompt string from the configuration's clauses."""
    text = config.prompt

    if config.global_style and config.global_style.strip():
        text = f"{text}, style: {config.global_style}"

    if _is_set(config.perspective):
        text = f"{config.perspective.value} shot of {text}"

    if _is_set(config.lighting):
        text = f"{text}, {config.lighting.value} lighting"

    if _is_set(config.lens):
        text = f"{text}, shot with {config.lens.value} lens"

    if _is_set(config.focal_length):
        text = f"{text}, focal length {config.focal_length.value}"

    if config.negative_prompt and config.negative_prompt.strip():
        text = f"{text}. Do not include: {config.negative_prompt}"

    return text


def build_svg_instruction(final_prompt: str, with_reference: bool) -> str:
    """Fill the SVG instruction template, acknowledging a reference image if any."""
    instruction = SVG_INSTRUCTION_TEMPLATE.format(prompt=final_prompt)
    if with_reference:
        return SVG_REFERENCE_PREFIX + instruction
    return instruction


def select_request(config: GenerationConfig, final_prompt: str) -> ModelRequest:
    """Map the configuration's model family to its request shape."""
    model = config.model_id

    if model is ModelId.IMAGEN:
        return ImageBatchRequest(
            model=model.value,
            prompt=final_prompt,
            aspect_ratio=config.aspect_ratio.value,
        )

    reference = parse_data_uri(config.style_reference_image)

    if model is ModelId.DRAFT_SVG:
        return SvgDraftRequest(
            model=model.value,
            instruction=build_svg_instruction(final_prompt, reference is not None),
            reference_image=reference,
            seed=config.seed,
        )

    return MultimodalRequest(
        model=model.value,
        prompt=final_prompt,
        aspect_ratio=config.aspect_ratio.value,
        image_size=config.resolution.value if model is PREMIUM_MODEL else None,
        reference_image=reference,
        seed=config.seed,
    )


def compile_config(config: GenerationConfig) -> CompiledRequest:
    """Compile *config* into its final prompt and request shape."""
    final_prompt = build_prompt_text(config)
    return CompiledRequest(final_prompt=final_prompt, request=select_request(config, final_prompt))
