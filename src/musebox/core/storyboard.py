"""Storyboard: ordered scenes pairing an optional image with a script note."""

from __future__ import annotations

import json
import logging
from collections.abc import Iterator
from typing import Any

from .models import GeneratedArtifact, StoryboardScene, now_ms

logger = logging.getLogger(__name__)

_EDITABLE = frozenset({"name", "script", "image_ref", "image_id"})


def scene_label(scene: StoryboardScene, index: int) -> str:
    """Display label: the scene name, else ``SCENE 01`` style by position."""
    if scene.name and scene.name.strip():
        return scene.name.strip()
    return f"SCENE {index + 1:02d}"


class Storyboard:
    """Mutable, ordered list of :class:`StoryboardScene`.

    The list is shared with the owning :class:`~musebox.core.models.Project`,
    so edits here are edits to the project.
    """

    def __init__(self, scenes: list[StoryboardScene]) -> None:
        self._scenes = scenes

    @property
    def scenes(self) -> list[StoryboardScene]:
        return self._scenes

    def get(self, scene_id: str) -> StoryboardScene:
        """Return the scene with *scene_id*.

        Raises:
            KeyError: If there is no such scene.
        """
        for scene in self._scenes:
            if scene.id == scene_id:
                return scene
        raise KeyError(f"Scene '{scene_id}' not found")

    def add_scene(
        self,
        image_ref: str | None = None,
        *,
        image_id: str | None = None,
        script: str = "",
        name: str | None = None,
    ) -> StoryboardScene:
        """Append a scene, optionally seeded with an image, and return it."""
        scene = StoryboardScene(name=name, script=script, image_ref=image_ref, image_id=image_id)
        self._scenes.append(scene)
        logger.debug("Added storyboard scene %s (image=%s).", scene.id, image_ref is not None)
        return scene

    def add_artifact(self, artifact: GeneratedArtifact) -> StoryboardScene:
        return self.add_scene(artifact.url, image_id=artifact.id)

    def update_scene(self, scene_id: str, **fields: Any) -> StoryboardScene:
        """Overwrite the given scene fields in place.

        Raises:
            KeyError: If the scene is unknown.
            ValueError: If a field name is not editable.
        """
        unknown = set(fields) - _EDITABLE
        if unknown:
            raise ValueError(f"Cannot update scene fields: {', '.join(sorted(unknown))}")
        scene = self.get(scene_id)
        for key, value in fields.items():
            setattr(scene, key, value)
        return scene

    def attach_image(
        self, scene_id: str, image_ref: str, image_id: str | None = None
    ) -> StoryboardScene:
        return self.update_scene(scene_id, image_ref=image_ref, image_id=image_id)

    def detach_image(self, scene_id: str) -> StoryboardScene:
        return self.update_scene(scene_id, image_ref=None, image_id=None)

    def delete_scene(self, scene_id: str) -> None:
        """Remove a scene at any position.

        Raises:
            KeyError: If the scene is unknown.
        """
        self._scenes.remove(self.get(scene_id))

    def export_data(self, project_name: str) -> dict[str, Any]:
        """Raw-data export: ``{projectName, exportedAt, storyboard}``."""
        return {
            "projectName": project_name,
            "exportedAt": now_ms(),
            "storyboard": [scene.to_wire() for scene in self._scenes],
        }

    def export_json(self, project_name: str) -> str:
        return json.dumps(self.export_data(project_name), indent=2)

    def __len__(self) -> int:
        return len(self._scenes)

    def __iter__(self) -> Iterator[StoryboardScene]:
        return iter(self._scenes)
