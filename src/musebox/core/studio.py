"""Studio service: the use cases behind every user action.

:class:`StudioState` is the explicit aggregate holding everything the user
is working on (current project, lock set, style book, current artifact).
:class:`Studio` owns one state instance together with the dispatcher and
the session store, and exposes one method per user action.  The FastAPI
layer holds a single :class:`Studio` on ``app.state``; nothing here is a
module-level singleton.

Every mutation persists the affected session key(s) straight away.  Those
writes are independent and fire-and-forget (see
:class:`~musebox.core.project_store.SessionStore`).
"""

from __future__ import annotations

import logging
import random
from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any

from pydantic import ValidationError as PydanticValidationError

from .config import MuseboxConfig
from .dispatcher import DispatchOutcome, RequestDispatcher, validate_for_dispatch
from .errors import StudioError, ValidationError
from .fields import FIELD_REGISTRY, ConfigField, parse_field
from .locks import LockSet
from .merge import randomize_config, reset_to_defaults
from .models import (
    DEFAULT_PROJECT_NAME,
    GeneratedArtifact,
    GenerationConfig,
    Project,
    StoryboardScene,
    StylePreset,
)
from .pdf_export import render_storyboard_pdf
from .project_store import (
    SessionStore,
    parse_project_file,
    project_filename,
    project_from_document,
    project_to_document,
)
from .prompt_compiler import CompiledRequest, compile_config, parse_data_uri
from .storyboard import Storyboard
from .style_book import StyleBook

logger = logging.getLogger(__name__)


@dataclass
class StudioState:
    """Everything the user is currently working on.

    The active configuration is the project's ``last_config``, so the
    project always autosaves with the configuration on screen.
    """

    project: Project
    locks: LockSet
    style_book: StyleBook
    current_artifact_id: str | None = None
    is_generating: bool = False
    last_notice: str | None = None
    last_error: dict[str, Any] | None = None

    @property
    def config(self) -> GenerationConfig:
        return self.project.last_config

    @config.setter
    def config(self, value: GenerationConfig) -> None:
        self.project.last_config = value

    @property
    def current_artifact(self) -> GeneratedArtifact | None:
        if self.current_artifact_id is None:
            return None
        return self.project.find_artifact(self.current_artifact_id)


def _describe_validation(exc: PydanticValidationError) -> str:
    error = exc.errors()[0]
    location = ".".join(str(part) for part in error.get("loc", ())) or "value"
    return f"Invalid value for '{location}': {error.get('msg', 'invalid')}"


class Studio:
    """Use-case facade over the studio state.

    Args:
        settings: Application configuration.
        store: Session persistence (defaults to one in ``settings.data_dir``).
        dispatcher: Generation dispatcher (defaults to a live/demo dispatcher
            built from *settings*).
        rng: Random source shared by random spawn and the demo gallery.
    """

    def __init__(
        self,
        settings: MuseboxConfig,
        *,
        store: SessionStore | None = None,
        dispatcher: RequestDispatcher | None = None,
        rng: random.Random | None = None,
    ) -> None:
        self.settings = settings
        self._rng = rng or random.Random()
        self.store = store or SessionStore(settings.data_dir)
        self.dispatcher = dispatcher or RequestDispatcher(settings, rng=self._rng)

        # Each key loads independently; a bad file only resets its own key.
        project = self.store.load_project()
        self.state = StudioState(
            project=project,
            locks=self.store.load_locks(),
            style_book=self.store.load_style_book(),
            current_artifact_id=project.history[0].id if project.history else None,
        )
        logger.info(
            "Studio ready: project '%s' with %d artifacts, %d locks, %d styles.",
            project.name,
            len(project.history),
            len(self.state.locks),
            len(self.state.style_book),
        )

    # ------------------------------------------------------------------
    # Persistence
    # ------------------------------------------------------------------

    def _persist_project(self) -> None:
        self.state.project.touch()
        self.store.save_project(self.state.project)

    def _persist_locks(self) -> None:
        self.store.save_locks(self.state.locks)

    def _persist_style_book(self) -> None:
        self.store.save_style_book(self.state.style_book)

    def _set_config(self, config: GenerationConfig) -> GenerationConfig:
        self.state.config = config
        self._persist_project()
        return config

    # ------------------------------------------------------------------
    # Configuration and locks
    # ------------------------------------------------------------------

    @staticmethod
    def _field(name: str | ConfigField) -> ConfigField:
        try:
            return parse_field(name)
        except KeyError as exc:
            raise ValidationError(exc.args[0]) from exc

    def _merged_config(self, updates: Mapping[str, Any]) -> GenerationConfig:
        normalized = {
            FIELD_REGISTRY[self._field(key)].attr: value for key, value in updates.items()
        }
        try:
            config = self.state.config.with_updates(**normalized)
        except PydanticValidationError as exc:
            raise ValidationError(_describe_validation(exc)) from exc
        reference = normalized.get("style_reference_image")
        if reference and parse_data_uri(reference) is None:
            raise ValidationError("Reference image must be a base64-encoded image data URI.")
        return config

    def update_config(self, updates: Mapping[str, Any]) -> GenerationConfig:
        """Overwrite the given fields (wire ids or attribute names).

        Raises:
            ValidationError: If a field is unknown or a value is invalid.
        """
        return self._set_config(self._merged_config(updates))

    def toggle_lock(self, field: str | ConfigField) -> bool:
        locked = self.state.locks.toggle(self._field(field))
        self._persist_locks()
        return locked

    def toggle_all_locks(self) -> list[str]:
        self.state.locks.toggle_all()
        self._persist_locks()
        return self.state.locks.to_list()

    def apply_and_lock(self, field: str | ConfigField, value: Any) -> bool:
        """Copy *value* into *field* (typically from an artifact) and toggle its lock."""
        key = self._field(field)
        self.update_config({key.value: value})
        return self.toggle_lock(key)

    def compile_preview(self, updates: Mapping[str, Any] | None = None) -> CompiledRequest:
        """Compile the active configuration, overlaid with *updates*, without saving it."""
        return compile_config(self._merged_config(updates or {}))

    # ------------------------------------------------------------------
    # Generation
    # ------------------------------------------------------------------

    async def generate(self, demo: bool = False) -> DispatchOutcome:
        """Dispatch the active configuration and record the result.

        Raises:
            ValidationError: If the prompt is blank (non-demo), a call is
                already running, or premium credentials are unconfirmed.
            GenerationError: If the remote call failed.
        """
        snapshot = self.state.config
        validate_for_dispatch(snapshot, demo)
        return await self._run(snapshot, demo)

    async def spawn_random(self) -> DispatchOutcome:
        """Randomize every unlocked field, then dispatch the result at once."""
        if self.state.is_generating:
            raise ValidationError("A generation is already in progress.")
        config = randomize_config(
            self.state.config,
            self.state.locks,
            rng=self._rng,
            presence_probability=self.settings.random_presence_probability,
            reference_pool=self._reference_pool(),
        )
        self._set_config(config)
        validate_for_dispatch(config)
        return await self._run(config, False)

    def _reference_pool(self) -> list[str]:
        pool = []
        for artifact in self.state.project.history:
            reference = parse_data_uri(artifact.url)
            if reference is not None and reference.mime_type != "image/svg+xml":
                pool.append(artifact.url)
        return pool

    async def _run(self, snapshot: GenerationConfig, demo: bool) -> DispatchOutcome:
        if self.state.is_generating:
            raise ValidationError("A generation is already in progress.")

        self.state.is_generating = True
        self.state.last_error = None
        self.state.last_notice = None
        try:
            outcome = await self.dispatcher.dispatch(snapshot, demo_override=demo)
        except StudioError as exc:
            self.state.last_error = exc.to_dict()
            raise
        finally:
            self.state.is_generating = False

        self.state.project.history.insert(0, outcome.artifact)
        self.state.current_artifact_id = outcome.artifact.id
        self.state.last_notice = outcome.notice
        self._persist_project()
        logger.info(
            "Recorded artifact %s from '%s'%s.",
            outcome.artifact.id,
            outcome.artifact.model_used.value if outcome.artifact.model_used else "unknown",
            " (mock)" if outcome.artifact.is_mock else "",
        )
        return outcome

    def set_credentials(self, api_key: str | None) -> None:
        """Install a new API key and reconfirm premium access."""
        self.dispatcher.reconfigure(api_key)

    # ------------------------------------------------------------------
    # History
    # ------------------------------------------------------------------

    def get_artifact(self, artifact_id: str) -> GeneratedArtifact:
        """Raises ``KeyError`` if *artifact_id* is not in the history."""
        artifact = self.state.project.find_artifact(artifact_id)
        if artifact is None:
            raise KeyError(f"Artifact '{artifact_id}' not found")
        return artifact

    def select_artifact(self, artifact_id: str) -> GeneratedArtifact:
        artifact = self.get_artifact(artifact_id)
        self.state.current_artifact_id = artifact.id
        return artifact

    def delete_artifact(self, artifact_id: str) -> None:
        artifact = self.get_artifact(artifact_id)
        self.state.project.history.remove(artifact)
        if self.state.current_artifact_id == artifact_id:
            self.state.current_artifact_id = None
        self._persist_project()

    # ------------------------------------------------------------------
    # Project lifecycle
    # ------------------------------------------------------------------

    def new_project(self) -> Project:
        """Start over: empty history and storyboard, defaults except locked fields."""
        config = reset_to_defaults(self.state.config, self.state.locks)
        self.state.project = Project(name=DEFAULT_PROJECT_NAME, last_config=config)
        self.state.current_artifact_id = None
        self.state.last_error = None
        self.state.last_notice = None
        self._persist_project()
        return self.state.project

    def rename_project(self, name: str) -> Project:
        if not name.strip():
            raise ValidationError("Project name cannot be empty.")
        self.state.project.name = name.strip()
        self._persist_project()
        return self.state.project

    def load_project(self, document: Any) -> Project:
        """Replace the current project with a loaded project document.

        Args:
            document: Parsed project document, or the raw file content.

        Raises:
            MalformedProjectFile: If the document is invalid; the current
                project is left untouched.
        """
        if isinstance(document, (str, bytes)):
            project = parse_project_file(document)
        else:
            project = project_from_document(document)
        self.state.project = project
        self.state.current_artifact_id = project.history[0].id if project.history else None
        self.state.last_error = None
        self._persist_project()
        logger.info("Loaded project '%s' (%d artifacts).", project.name, len(project.history))
        return project

    def export_project(self, name: str | None = None) -> tuple[str, dict[str, Any]]:
        """Return ``(filename, document)`` for the current project.

        A non-blank *name* renames the project first, as saving under a new
        name does.
        """
        if name and name.strip():
            self.rename_project(name)
        project = self.state.project
        return project_filename(project.name), project_to_document(project)

    # ------------------------------------------------------------------
    # Style book
    # ------------------------------------------------------------------

    def save_style(self, name: str, artifact_id: str | None = None) -> StylePreset:
        """Save a preset from *artifact_id*, or from the current artifact.

        Raises:
            ValidationError: If no artifact is given and none is current.
            KeyError: If *artifact_id* is unknown.
        """
        if artifact_id is not None:
            artifact = self.get_artifact(artifact_id)
        else:
            artifact = self.state.current_artifact
        if artifact is None:
            raise ValidationError("Select an image before saving its style.")
        preset = self.state.style_book.save(name, artifact)
        self._persist_style_book()
        return preset

    def apply_style(self, preset_id: str) -> GenerationConfig:
        config = self.state.style_book.apply(preset_id, self.state.config, self.state.locks)
        return self._set_config(config)

    def delete_style(self, preset_id: str) -> None:
        if not self.state.style_book.delete(preset_id):
            raise KeyError(f"Style preset '{preset_id}' not found")
        self._persist_style_book()

    # ------------------------------------------------------------------
    # Storyboard
    # ------------------------------------------------------------------

    @property
    def storyboard(self) -> Storyboard:
        return Storyboard(self.state.project.storyboard)

    def add_scene(
        self,
        *,
        artifact_id: str | None = None,
        image_ref: str | None = None,
        script: str = "",
        name: str | None = None,
    ) -> StoryboardScene:
        """Append a scene, seeded from a history artifact or a raw image reference."""
        image_id = None
        if artifact_id is not None:
            artifact = self.get_artifact(artifact_id)
            image_ref, image_id = artifact.url, artifact.id
        scene = self.storyboard.add_scene(image_ref, image_id=image_id, script=script, name=name)
        self._persist_project()
        return scene

    def update_scene(self, scene_id: str, **fields: Any) -> StoryboardScene:
        scene = self.storyboard.update_scene(scene_id, **fields)
        self._persist_project()
        return scene

    def attach_scene_image(self, scene_id: str, artifact_id: str) -> StoryboardScene:
        artifact = self.get_artifact(artifact_id)
        scene = self.storyboard.attach_image(scene_id, artifact.url, artifact.id)
        self._persist_project()
        return scene

    def detach_scene_image(self, scene_id: str) -> StoryboardScene:
        scene = self.storyboard.detach_image(scene_id)
        self._persist_project()
        return scene

    def delete_scene(self, scene_id: str) -> None:
        self.storyboard.delete_scene(scene_id)
        self._persist_project()

    def export_storyboard_json(self) -> dict[str, Any]:
        return self.storyboard.export_data(self.state.project.name)

    def export_storyboard_pdf(self) -> bytes:
        return render_storyboard_pdf(self.state.project.name, self.state.project.storyboard)

    # ------------------------------------------------------------------
    # Snapshot
    # ------------------------------------------------------------------

    def snapshot(self) -> dict[str, Any]:
        """Serialisable summary of the studio state for API responses."""
        state = self.state
        return {
            "projectName": state.project.name,
            "config": state.config.to_wire(),
            "lockedKeys": state.locks.to_list(),
            "currentArtifactId": state.current_artifact_id,
            "isGenerating": state.is_generating,
            "lastNotice": state.last_notice,
            "lastError": state.last_error,
            "liveAvailable": self.dispatcher.live_available,
            "credentialsVerified": self.dispatcher.credentials_verified,
            "historyCount": len(state.project.history),
            "storyboardCount": len(state.project.storyboard),
            "styleCount": len(state.style_book),
        }
