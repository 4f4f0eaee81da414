"""Data models for MuseBox generation requests and project state.

Every model serialises to the camelCase wire format used by project files,
the style-book export and the HTTP API (``modelId``, ``negativePrompt``,
``lastConfig`` ...).  Python code uses the snake_case attribute names.

Models
------
GenerationConfig
    One complete generation request.  Frozen: edits produce a new instance,
    so a snapshot handed to the dispatcher can never change underneath it.
StyleConfig
    Partial configuration stored in a style preset.  Which fields are
    present is tracked through ``model_fields_set``, so "absent" and
    "explicitly cleared" (present with ``None``) stay distinguishable.
GeneratedArtifact
    One successful generation result with its configuration snapshot.
StylePreset
    Named, prompt-less StyleConfig.
StoryboardScene
    One storyboard entry (optional image reference + free-text script).
Project
    Aggregate root owning history, storyboard and the last configuration.
"""

from __future__ import annotations

import time
import uuid
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_serializer
from pydantic.alias_generators import to_camel

MAX_SEED = 2**32 - 1
NONE_OPTION = "None"
DEFAULT_PROJECT_NAME = "Untitled Project"
PROJECT_FORMAT_VERSION = "1.0.0"


def now_ms() -> int:
    """Current wall-clock time as integer milliseconds since the epoch."""
    return int(time.time() * 1000)


def new_id() -> str:
    """Return a fresh UUID4 string."""
    return str(uuid.uuid4())


# ---------------------------------------------------------------------------
# Enumerations.
# ---------------------------------------------------------------------------


class ModelId(str, Enum):
    """Remote model identifiers (values are the service's model names)."""

    FLASH_IMAGE = "gemini-2.5-flash-image"
    PRO_IMAGE = "gemini-3-pro-image-preview"
    IMAGEN = "imagen-4.0-generate-001"
    DRAFT_SVG = "gemini-2.0-flash-exp"


MODEL_LABELS: dict[ModelId, str] = {
    ModelId.FLASH_IMAGE: "Gemini 2.5 Flash Image",
    ModelId.PRO_IMAGE: "Gemini 3 Pro Image",
    ModelId.IMAGEN: "Imagen 4",
    ModelId.DRAFT_SVG: "Draft (SVG)",
}

# The premium tier falls back to the base tier on permission denial.
BASE_MODEL = ModelId.FLASH_IMAGE
PREMIUM_MODEL = ModelId.PRO_IMAGE


class AspectRatio(str, Enum):
    SQUARE = "1:1"
    LANDSCAPE_4_3 = "4:3"
    LANDSCAPE_16_9 = "16:9"
    PORTRAIT_3_4 = "3:4"
    PORTRAIT_9_16 = "9:16"


class Resolution(str, Enum):
    """Output size; only honoured by the premium image model."""

    RES_1K = "1K"
    RES_2K = "2K"
    RES_4K = "4K"


class Perspective(str, Enum):
    NONE = NONE_OPTION
    CLOSE_UP = "Close-up"
    WIDE_ANGLE = "Wide Angle"
    AERIAL_VIEW = "Aerial View"
    LOW_ANGLE = "Low Angle"
    EYE_LEVEL = "Eye Level"
    MACRO = "Macro"
    ISOMETRIC = "Isometric"


class Lighting(str, Enum):
    NONE = NONE_OPTION
    NATURAL = "Natural"
    GOLDEN_HOUR = "Golden Hour"
    STUDIO = "Studio"
    NEON = "Neon"
    CINEMATIC = "Cinematic"
    BACKLIT = "Backlit"
    VOLUMETRIC = "Volumetric"
    LOW_KEY = "Low Key"


class Lens(str, Enum):
    NONE = NONE_OPTION
    WIDE_ANGLE = "Wide-angle"
    TELEPHOTO = "Telephoto"
    FISHEYE = "Fisheye"
    MACRO = "Macro"
    ANAMORPHIC = "Anamorphic"
    TILT_SHIFT = "Tilt-shift"
    PRIME = "Prime"


class FocalLength(str, Enum):
    NONE = NONE_OPTION
    MM_14 = "14mm"
    MM_24 = "24mm"
    MM_35 = "35mm"
    MM_50 = "50mm"
    MM_85 = "85mm"
    MM_135 = "135mm"
    MM_200 = "200mm"


class _WireModel(BaseModel):
    """Base for models serialised with camelCase keys."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        extra="ignore",
        protected_namespaces=(),
    )

    def to_wire(self) -> dict[str, Any]:
        """Dump to a JSON-compatible dict using the camelCase wire keys."""
        return self.model_dump(mode="json", by_alias=True)


# ---------------------------------------------------------------------------
# Configuration.
# ---------------------------------------------------------------------------


class GenerationConfig(_WireModel):
    """The structured description of one generation request.

    Attributes:
        prompt: Main subject text.  Must be non-blank before a live
            generate (demo generations skip that check).
        negative_prompt: Things the image must not contain.
        global_style: Free-text style applied on top of the prompt.
        style_reference_image: ``data:image/...;base64,...`` URI used as a
            visual reference (ignored by the Imagen family).
        seed: Optional 32-bit unsigned seed hint.
        model_id: Target remote model.
        aspect_ratio: Output aspect ratio.
        resolution: Output size.  Only meaningful for ``PRO_IMAGE``.
        perspective: Camera perspective, ``None`` sentinel to omit.
        lighting: Lighting setup, ``None`` sentinel to omit.
        lens: Lens type, ``None`` sentinel to omit.
        focal_length: Focal length, ``None`` sentinel to omit.
    """

    model_config = ConfigDict(frozen=True)

    prompt: str = ""
    negative_prompt: str | None = ""
    global_style: str | None = ""
    style_reference_image: str | None = None
    seed: int | None = Field(default=None, ge=0, le=MAX_SEED)
    model_id: ModelId = ModelId.FLASH_IMAGE
    aspect_ratio: AspectRatio = AspectRatio.SQUARE
    resolution: Resolution = Resolution.RES_1K
    perspective: Perspective = Perspective.NONE
    lighting: Lighting = Lighting.NONE
    lens: Lens = Lens.NONE
    focal_length: FocalLength = FocalLength.NONE

    def has_prompt(self) -> bool:
        """Whether the prompt contains any non-whitespace text."""
        return bool(self.prompt and self.prompt.strip())

    def with_updates(self, **updates: Any) -> GenerationConfig:
        """Return a validated copy with the given attributes replaced.

        Raises:
            pydantic.ValidationError: If an updated value is invalid.
        """
        return GenerationConfig.model_validate({**self.model_dump(), **updates})


class StyleConfig(_WireModel):
    """Partial configuration stored by a style preset.

    There is deliberately no ``prompt`` field; a ``prompt`` key in incoming
    data is dropped by ``extra="ignore"``.
    """

    model_config = ConfigDict(frozen=True)

    negative_prompt: str | None = None
    global_style: str | None = None
    style_reference_image: str | None = None
    seed: int | None = Field(default=None, ge=0, le=MAX_SEED)
    model_id: ModelId | None = None
    aspect_ratio: AspectRatio | None = None
    resolution: Resolution | None = None
    perspective: Perspective | None = None
    lighting: Lighting | None = None
    lens: Lens | None = None
    focal_length: FocalLength | None = None

    @classmethod
    def from_config(cls, config: GenerationConfig) -> StyleConfig:
        """Build a preset config carrying every field of *config* except the prompt."""
        return cls.model_validate(config.model_dump(exclude={"prompt"}))

    def present_fields(self) -> dict[str, Any]:
        """Attribute name -> value for every field explicitly present."""
        return {name: getattr(self, name) for name in self.model_fields_set}

    def to_wire(self) -> dict[str, Any]:
        return self.model_dump(mode="json", by_alias=True, exclude_unset=True)


# ---------------------------------------------------------------------------
# Artifacts, presets, scenes and the project aggregate.
# ---------------------------------------------------------------------------


class GeneratedArtifact(_WireModel):
    """One successfully produced image with its generating configuration.

    Wire keys follow the project-file format: ``prompt`` for the source
    prompt, ``config`` for the snapshot and ``timestamp`` for creation time.
    """

    model_config = ConfigDict(frozen=True)

    id: str = Field(default_factory=new_id)
    url: str
    source_prompt: str = Field(default="", alias="prompt")
    config_snapshot: GenerationConfig = Field(alias="config")
    created_at: int = Field(default_factory=now_ms, alias="timestamp")
    model_used: ModelId | None = None
    is_mock: bool = False


class StylePreset(_WireModel):
    """A saved, prompt-less subset of a configuration."""

    id: str = Field(default_factory=new_id)
    name: str
    config: StyleConfig

    @field_serializer("config")
    def _serialize_config(self, value: StyleConfig) -> dict[str, Any]:
        # Absent fields stay absent in the wire format.
        return value.to_wire()


class StoryboardScene(_WireModel):
    """One storyboard entry.

    Attributes:
        id: Scene identifier.
        name: Optional display name; exports fall back to a positional label.
        script: Free-text note for the scene.
        image_ref: Image reference (data URI or URL).  Wire key ``imageUrl``.
        image_id: Id of the history artifact the image came from, if any.
    """

    id: str = Field(default_factory=new_id)
    name: str | None = None
    script: str = ""
    image_ref: str | None = Field(default=None, alias="imageUrl")
    image_id: str | None = None


class Project(_WireModel):
    """The aggregate root: history, storyboard and the last configuration."""

    name: str = DEFAULT_PROJECT_NAME
    version: str = PROJECT_FORMAT_VERSION
    created: int = Field(default_factory=now_ms)
    last_modified: int = Field(default_factory=now_ms)
    history: list[GeneratedArtifact] = Field(default_factory=list)
    storyboard: list[StoryboardScene] = Field(default_factory=list)
    last_config: GenerationConfig = Field(default_factory=GenerationConfig)

    def find_artifact(self, artifact_id: str) -> GeneratedArtifact | None:
        """Return the history entry with *artifact_id*, or ``None``."""
        return next((a for a in self.history if a.id == artifact_id), None)

    def touch(self) -> None:
        """Stamp the project as modified now."""
        self.last_modified = now_ms()
