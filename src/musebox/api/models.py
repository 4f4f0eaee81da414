"""Pydantic request models for the MuseBox API.

These models define the JSON schema for the endpoints that take a body.
FastAPI uses them for request validation and OpenAPI documentation.
Response bodies are the camelCase wire dictionaries produced by the core
models, so no response models are declared here.

Models
------
GenerateRequest
    Payload for ``POST /api/generate``.
LockValueRequest
    Payload for ``POST /api/studio/locks/{field}/apply``.
CompileRequest
    Payload for ``POST /api/prompt/compile``.
SaveStyleRequest
    Payload for ``POST /api/styles``.
SceneCreateRequest / SceneUpdateRequest / SceneImageRequest
    Storyboard payloads.
RenameProjectRequest
    Payload for ``PATCH /api/project``.
CredentialsRequest
    Payload for ``POST /api/credentials``.
"""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class _Body(BaseModel):
    """Accept both camelCase and snake_case keys."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class GenerateRequest(_Body):
    """Request body for ``POST /api/generate``.

    Attributes:
        demo: Force the demo/mock path for this call.  A demo call is
            dispatched even with an empty prompt.
    """

    demo: bool = False


class LockValueRequest(_Body):
    """Copy a value (usually from a history artifact) into a field and toggle its lock."""

    value: Any = None


class CompileRequest(_Body):
    """Request body for ``POST /api/prompt/compile``.

    Attributes:
        config: Partial configuration (camelCase keys) overlaid on the active
            configuration before compiling.  Empty means "compile the active
            configuration as is".
    """

    config: dict[str, Any] = Field(default_factory=dict)


class SaveStyleRequest(_Body):
    """Request body for ``POST /api/styles``.

    Attributes:
        name: Display name (not required to be unique).
        artifact_id: History entry to take the configuration from.  Defaults
            to the current artifact.
    """

    name: str = Field(..., min_length=1, max_length=200)
    artifact_id: str | None = None


class SceneCreateRequest(_Body):
    """Request body for ``POST /api/storyboard``."""

    artifact_id: str | None = None
    image_url: str | None = None
    script: str = ""
    name: str | None = None


class SceneUpdateRequest(_Body):
    """Request body for ``PATCH /api/storyboard/{scene_id}``.

    Only the fields present in the body are changed; send ``null`` to clear
    the name.
    """

    name: str | None = None
    script: str | None = None


class SceneImageRequest(_Body):
    """Request body for ``POST /api/storyboard/{scene_id}/image``."""

    artifact_id: str


class RenameProjectRequest(_Body):
    name: str = Field(..., min_length=1, max_length=200)


class CredentialsRequest(_Body):
    """Request body for ``POST /api/credentials``.

    Attributes:
        api_key: New key.  ``null`` or blank switches to demo mode.
    """

    api_key: str | None = None
