"""MuseBox Studio — FastAPI Application.

This module is the single entry point for the web application.  It defines
the FastAPI ``app`` instance, all REST API routes, and the ``main()`` CLI
function that launches the uvicorn server.

Architecture
------------
- **State** lives in one :class:`~musebox.core.studio.Studio` created in the
  lifespan handler and stored on ``app.state.studio``.  Route handlers are
  thin: they translate HTTP to a studio method and back.
- **Generation** goes through the studio's
  :class:`~musebox.core.dispatcher.RequestDispatcher` (remote model or demo
  gallery).
- **Persistence** is handled by the studio (three session JSON files in
  ``config.data_dir``); project files, style books and storyboards are
  exported as downloads.

Error Mapping
-------------
====================  ======  =============================================
Exception             Status  Body
====================  ======  =============================================
ValidationError       400     ``{"detail": {kind, message, guidance}}``
MalformedProjectFile  422     ``{"detail": {kind, message, guidance}}``
GenerationError       502     ``{"detail": {kind, message, guidance, ...}}``
unknown id            404     ``{"detail": "..."}``
====================  ======  =============================================

Endpoints
---------
========  ==================================  ================================
Method    Path                                Purpose
========  ==================================  ================================
GET       ``/api/config``                     Models, enum domains, defaults
GET       ``/api/studio``                     Studio state summary
GET       ``/api/studio/config``              Active configuration
PATCH     ``/api/studio/config``              Edit configuration fields
POST      ``/api/studio/locks/toggle-all``    Clear all locks or lock all
POST      ``/api/studio/locks/{field}``       Toggle one lock
POST      ``/api/studio/locks/{field}/apply`` Set a field and toggle its lock
POST      ``/api/generate``                   Dispatch the active configuration
POST      ``/api/spawn``                      Randomize unlocked fields + dispatch
POST      ``/api/prompt/compile``             Preview the compiled prompt
GET       ``/api/history``                    History, newest first
POST      ``/api/history/{id}/select``        Make an artifact current
DELETE    ``/api/history/{id}``               Delete an artifact
GET/POST  ``/api/styles``                     List / save style presets
POST      ``/api/styles/{id}/apply``          Merge a preset into the config
DELETE    ``/api/styles/{id}``                Delete a preset
GET       ``/api/styles/export``              Style book JSON download
GET/POST  ``/api/storyboard``                 List / add scenes
PATCH     ``/api/storyboard/{id}``            Edit name or script
DELETE    ``/api/storyboard/{id}``            Delete a scene
POST      ``/api/storyboard/{id}/image``      Attach a history image
DELETE    ``/api/storyboard/{id}/image``      Detach the image
GET       ``/api/storyboard/export.json``     Storyboard data download
GET       ``/api/storyboard/export.pdf``      Storyboard document download
GET       ``/api/project``                    Project summary
PATCH     ``/api/project``                    Rename the project
POST      ``/api/project/new``                New project (locks honoured)
GET       ``/api/project/export``             Project file download
POST      ``/api/project/load``               Replace project from a file
POST      ``/api/credentials``                Set API key, reconfirm access
========  ==================================  ================================

Usage
-----
CLI (installed entry point)::

    musebox

Direct invocation::

    python -m musebox.api.main
"""

from __future__ import annotations

import json
import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from typing import Any

from fastapi import Body, FastAPI, HTTPException, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, Response

from musebox import __version__
from musebox.api.models import (
    CompileRequest,
    CredentialsRequest,
    GenerateRequest,
    LockValueRequest,
    RenameProjectRequest,
    SaveStyleRequest,
    SceneCreateRequest,
    SceneImageRequest,
    SceneUpdateRequest,
)
from musebox.core.config import config
from musebox.core.dispatcher import DispatchOutcome
from musebox.core.errors import ErrorKind, StudioError
from musebox.core.fields import ALL_FIELDS
from musebox.core.models import (
    BASE_MODEL,
    MODEL_LABELS,
    PREMIUM_MODEL,
    AspectRatio,
    FocalLength,
    GenerationConfig,
    Lens,
    Lighting,
    ModelId,
    Perspective,
    Resolution,
)
from musebox.core.project_store import slugify
from musebox.core.prompt_compiler import compile_config
from musebox.core.studio import Studio

logger = logging.getLogger(__name__)

_STATUS_BY_KIND: dict[ErrorKind, int] = {
    ErrorKind.VALIDATION: 400,
    ErrorKind.MALFORMED_PROJECT_FILE: 422,
    ErrorKind.PERMISSION_DENIED: 502,
    ErrorKind.NO_PAYLOAD: 502,
    ErrorKind.TRANSPORT_OTHER: 502,
}

# ---------------------------------------------------------------------------
# Application lifecycle — studio setup.
# ---------------------------------------------------------------------------


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Manage application startup and shutdown lifecycle.

    On startup:
        Creates the :class:`Studio` from the global configuration (loading
        the persisted session) unless one was already installed on
        ``app.state`` (tests install their own).

    Args:
        app: The FastAPI application instance.

    Yields:
        Control back to the application for the duration of its lifetime.
    """
    # --- Startup -----------------------------------------------------------
    if getattr(app.state, "studio", None) is None:
        app.state.studio = Studio(config)
    studio: Studio = app.state.studio
    logger.info(
        "Studio started (live=%s, data_dir=%s).",
        studio.dispatcher.live_available,
        studio.store.data_dir,
    )

    yield  # Application runs here.

    # --- Shutdown ----------------------------------------------------------
    logger.info("Studio stopped.")


# ---------------------------------------------------------------------------
# FastAPI application instance.
# ---------------------------------------------------------------------------
app = FastAPI(
    title="MuseBox Studio",
    description="Compose, dispatch and curate image-generation requests.",
    version=__version__,
    lifespan=lifespan,
)

# Allow cross-origin requests so a frontend can be served from a different
# port during development.
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(StudioError)
async def studio_error_handler(request: Request, exc: StudioError) -> JSONResponse:
    """Render a :class:`StudioError` as ``{"detail": {kind, message, guidance}}``."""
    return JSONResponse(
        status_code=_STATUS_BY_KIND.get(exc.kind, 500),
        content={"detail": exc.to_dict()},
    )


# ---------------------------------------------------------------------------
# Helpers.
# ---------------------------------------------------------------------------


def _studio() -> Studio:
    return app.state.studio


def _not_found(exc: KeyError) -> HTTPException:
    return HTTPException(status_code=404, detail=str(exc.args[0]) if exc.args else "Not found")


def _download(content: str | bytes, media_type: str, filename: str) -> Response:
    return Response(
        content=content,
        media_type=media_type,
        headers={"Content-Disposition": f'attachment; filename="{filename}"'},
    )


def _outcome_payload(studio: Studio, outcome: DispatchOutcome) -> dict[str, Any]:
    artifact = outcome.artifact
    return {
        "success": True,
        "artifact": artifact.to_wire(),
        "compiledPrompt": compile_config(artifact.config_snapshot).final_prompt,
        "notice": outcome.notice,
        "substituted": outcome.substituted,
        "config": studio.state.config.to_wire(),
    }


# ---------------------------------------------------------------------------
# Configuration and locks.
# ---------------------------------------------------------------------------


@app.get("/api/config")
async def get_config() -> dict:
    """Return static application metadata for the frontend.

    The response includes the version, the model catalogue (with the base
    and premium tiers marked), every enum domain, the default configuration,
    the lockable field ids and whether generations will be mocked.
    """
    studio = _studio()
    return {
        "version": __version__,
        "models": [
            {
                "id": model.value,
                "label": MODEL_LABELS[model],
                "isBase": model is BASE_MODEL,
                "isPremium": model is PREMIUM_MODEL,
            }
            for model in ModelId
        ],
        "aspectRatios": [v.value for v in AspectRatio],
        "resolutions": [v.value for v in Resolution],
        "perspectives": [v.value for v in Perspective],
        "lightings": [v.value for v in Lighting],
        "lenses": [v.value for v in Lens],
        "focalLengths": [v.value for v in FocalLength],
        "defaults": GenerationConfig().to_wire(),
        "fields": sorted(f.value for f in ALL_FIELDS),
        "demoMode": not studio.dispatcher.live_available,
    }


@app.get("/api/studio")
async def get_studio() -> dict:
    return _studio().snapshot()


@app.get("/api/studio/config")
async def get_studio_config() -> dict:
    return _studio().state.config.to_wire()


@app.patch("/api/studio/config")
async def patch_studio_config(updates: dict[str, Any] = Body(...)) -> dict:
    """Overwrite the given configuration fields (camelCase keys).

    Raises:
        ValidationError: 400 for unknown fields or invalid values.
    """
    return _studio().update_config(updates).to_wire()


# Registered before ``/{field}`` so "toggle-all" is not taken as a field id.
@app.post("/api/studio/locks/toggle-all")
async def toggle_all_locks() -> dict:
    return {"lockedKeys": _studio().toggle_all_locks()}


@app.post("/api/studio/locks/{field}")
async def toggle_lock(field: str) -> dict:
    studio = _studio()
    locked = studio.toggle_lock(field)
    return {"field": field, "locked": locked, "lockedKeys": studio.state.locks.to_list()}


@app.post("/api/studio/locks/{field}/apply")
async def apply_and_lock(field: str, req: LockValueRequest) -> dict:
    studio = _studio()
    locked = studio.apply_and_lock(field, req.value)
    return {
        "field": field,
        "locked": locked,
        "lockedKeys": studio.state.locks.to_list(),
        "config": studio.state.config.to_wire(),
    }


@app.post("/api/prompt/compile")
async def compile_prompt(req: CompileRequest) -> dict:
    """Preview the compiled prompt and request shape without generating."""
    compiled = _studio().compile_preview(req.config)
    return {
        "compiledPrompt": compiled.final_prompt,
        "requestKind": compiled.request.kind,
        "model": compiled.request.model,
    }


# ---------------------------------------------------------------------------
# Generation.
# ---------------------------------------------------------------------------


@app.post("/api/generate")
async def generate(req: GenerateRequest) -> dict:
    """Dispatch the active configuration.

    On success the artifact is prepended to the history and becomes
    current.  ``notice`` carries informational notes (demo result, or the
    model that was used after a premium fallback).

    Raises:
        ValidationError: 400 for an empty prompt (non-demo).
        GenerationError: 502 when the remote call fails.
    """
    studio = _studio()
    outcome = await studio.generate(demo=req.demo)
    return _outcome_payload(studio, outcome)


@app.post("/api/spawn")
async def spawn() -> dict:
    """Randomize every unlocked field and dispatch immediately."""
    studio = _studio()
    outcome = await studio.spawn_random()
    return _outcome_payload(studio, outcome)


@app.post("/api/credentials")
async def set_credentials(req: CredentialsRequest) -> dict:
    studio = _studio()
    studio.set_credentials(req.api_key)
    return {
        "liveAvailable": studio.dispatcher.live_available,
        "credentialsVerified": studio.dispatcher.credentials_verified,
    }


# ---------------------------------------------------------------------------
# History.
# ---------------------------------------------------------------------------


@app.get("/api/history")
async def get_history() -> dict:
    studio = _studio()
    return {
        "currentArtifactId": studio.state.current_artifact_id,
        "items": [artifact.to_wire() for artifact in studio.state.project.history],
    }


@app.post("/api/history/{artifact_id}/select")
async def select_artifact(artifact_id: str) -> dict:
    try:
        artifact = _studio().select_artifact(artifact_id)
    except KeyError as exc:
        raise _not_found(exc) from exc
    return artifact.to_wire()


@app.delete("/api/history/{artifact_id}")
async def delete_artifact(artifact_id: str) -> dict:
    try:
        _studio().delete_artifact(artifact_id)
    except KeyError as exc:
        raise _not_found(exc) from exc
    return {"success": True, "deleted": artifact_id}


# ---------------------------------------------------------------------------
# Style book.
# ---------------------------------------------------------------------------


@app.get("/api/styles")
async def list_styles() -> list:
    return _studio().state.style_book.to_wire()


@app.post("/api/styles")
async def save_style(req: SaveStyleRequest) -> dict:
    """Save the configuration of an artifact (default: current) as a preset."""
    try:
        preset = _studio().save_style(req.name, req.artifact_id)
    except KeyError as exc:
        raise _not_found(exc) from exc
    return preset.to_wire()


@app.get("/api/styles/export")
async def export_styles() -> Response:
    return _download(
        _studio().state.style_book.export_json(),
        "application/json",
        "musebox-style-book.json",
    )


@app.post("/api/styles/{preset_id}/apply")
async def apply_style(preset_id: str) -> dict:
    try:
        config_after = _studio().apply_style(preset_id)
    except KeyError as exc:
        raise _not_found(exc) from exc
    return config_after.to_wire()


@app.delete("/api/styles/{preset_id}")
async def delete_style(preset_id: str) -> dict:
    try:
        _studio().delete_style(preset_id)
    except KeyError as exc:
        raise _not_found(exc) from exc
    return {"success": True, "deleted": preset_id}


# ---------------------------------------------------------------------------
# Storyboard.
# ---------------------------------------------------------------------------


@app.get("/api/storyboard")
async def list_scenes() -> list:
    return [scene.to_wire() for scene in _studio().state.project.storyboard]


@app.get("/api/storyboard/export.json")
async def export_storyboard_json() -> Response:
    studio = _studio()
    data = studio.export_storyboard_json()
    return _download(
        json.dumps(data, indent=2),
        "application/json",
        f"{slugify(studio.state.project.name)}-storyboard.json",
    )


@app.get("/api/storyboard/export.pdf")
async def export_storyboard_pdf() -> Response:
    studio = _studio()
    return _download(
        studio.export_storyboard_pdf(),
        "application/pdf",
        f"{slugify(studio.state.project.name)}-storyboard.pdf",
    )


@app.post("/api/storyboard")
async def add_scene(req: SceneCreateRequest) -> dict:
    try:
        scene = _studio().add_scene(
            artifact_id=req.artifact_id,
            image_ref=req.image_url,
            script=req.script,
            name=req.name,
        )
    except KeyError as exc:
        raise _not_found(exc) from exc
    return scene.to_wire()


@app.patch("/api/storyboard/{scene_id}")
async def update_scene(scene_id: str, req: SceneUpdateRequest) -> dict:
    """Change only the fields present in the body."""
    fields = {name: getattr(req, name) for name in req.model_fields_set}
    if fields.get("script") is None:
        fields.pop("script", None)
    try:
        scene = _studio().update_scene(scene_id, **fields)
    except KeyError as exc:
        raise _not_found(exc) from exc
    return scene.to_wire()


@app.delete("/api/storyboard/{scene_id}")
async def delete_scene(scene_id: str) -> dict:
    try:
        _studio().delete_scene(scene_id)
    except KeyError as exc:
        raise _not_found(exc) from exc
    return {"success": True, "deleted": scene_id}


@app.post("/api/storyboard/{scene_id}/image")
async def attach_scene_image(scene_id: str, req: SceneImageRequest) -> dict:
    try:
        scene = _studio().attach_scene_image(scene_id, req.artifact_id)
    except KeyError as exc:
        raise _not_found(exc) from exc
    return scene.to_wire()


@app.delete("/api/storyboard/{scene_id}/image")
async def detach_scene_image(scene_id: str) -> dict:
    try:
        scene = _studio().detach_scene_image(scene_id)
    except KeyError as exc:
        raise _not_found(exc) from exc
    return scene.to_wire()


# ---------------------------------------------------------------------------
# Project.
# ---------------------------------------------------------------------------


@app.get("/api/project")
async def get_project() -> dict:
    project = _studio().state.project
    return {
        "name": project.name,
        "version": project.version,
        "created": project.created,
        "lastModified": project.last_modified,
        "historyCount": len(project.history),
        "storyboardCount": len(project.storyboard),
    }


@app.patch("/api/project")
async def rename_project(req: RenameProjectRequest) -> dict:
    project = _studio().rename_project(req.name)
    return {"name": project.name}


@app.post("/api/project/new")
async def new_project() -> dict:
    """Start a new project: empty history and storyboard, locked fields kept."""
    studio = _studio()
    project = studio.new_project()
    return {"name": project.name, "config": studio.state.config.to_wire()}


@app.get("/api/project/export")
async def export_project(name: str | None = None) -> Response:
    """Download the current project file (optionally saving under *name*)."""
    filename, document = _studio().export_project(name)
    return _download(json.dumps(document, indent=2), "application/json", filename)


@app.post("/api/project/load")
async def load_project(request: Request) -> dict:
    """Replace the current project with the project file sent as the body.

    Raises:
        MalformedProjectFile: 422 when the body is not a valid project file;
            the current project is left untouched.
    """
    studio = _studio()
    project = studio.load_project(await request.body())
    return {
        "name": project.name,
        "historyCount": len(project.history),
        "storyboardCount": len(project.storyboard),
        "currentArtifactId": studio.state.current_artifact_id,
        "config": studio.state.config.to_wire(),
    }


# ---------------------------------------------------------------------------
# CLI entry point.
# ---------------------------------------------------------------------------


def main() -> None:
    """Launch the uvicorn ASGI server.

    Reads host, port and log level from :data:`~musebox.core.config.config`
    (``MUSEBOX_SERVER_HOST``, ``MUSEBOX_SERVER_PORT``, ``MUSEBOX_LOG_LEVEL``).
    Defaults to ``0.0.0.0:7860``.

    This function is registered as the ``musebox`` console script in
    ``pyproject.toml``.
    """
    import uvicorn

    logging.basicConfig(
        level=config.log_level.upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    uvicorn.run(
        "musebox.api.main:app",
        host=config.server_host,
        port=config.server_port,
        reload=False,
    )


if __name__ == "__main__":
    main()
