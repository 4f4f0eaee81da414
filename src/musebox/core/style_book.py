"""Style book: named, prompt-less configuration presets.

Presets are created from a generated artifact's configuration snapshot with
the prompt stripped, and merged back into the active configuration through
:func:`musebox.core.merge.apply_style`.  Names are not unique; presets are
told apart by id only.
"""

from __future__ import annotations

import json
import logging
from collections.abc import Iterable, Iterator
from typing import Any

from .locks import LockSet
from .merge import apply_style
from .models import GeneratedArtifact, GenerationConfig, StyleConfig, StylePreset

logger = logging.getLogger(__name__)


class StyleBook:
    """Ordered collection of :class:`StylePreset` in creation order."""

    def __init__(self, presets: Iterable[StylePreset] = ()) -> None:
        self._presets: list[StylePreset] = list(presets)

    def save(self, name: str, artifact: GeneratedArtifact) -> StylePreset:
        """Store the artifact's configuration, minus its prompt, as a new preset."""
        preset = StylePreset(
            name=name.strip() or "Untitled Style",
            config=StyleConfig.from_config(artifact.config_snapshot),
        )
        self._presets.append(preset)
        logger.info("Saved style preset '%s' (%s).", preset.name, preset.id)
        return preset

    def get(self, preset_id: str) -> StylePreset | None:
        return next((p for p in self._presets if p.id == preset_id), None)

    def apply(
        self,
        preset: StylePreset | str,
        active: GenerationConfig,
        locks: LockSet,
    ) -> GenerationConfig:
        """Merge *preset* (or the preset with that id) into *active*.

        Raises:
            KeyError: If a preset id is given and not found.
        """
        if isinstance(preset, str):
            found = self.get(preset)
            if found is None:
                raise KeyError(f"Style preset '{preset}' not found")
            preset = found
        return apply_style(preset, active, locks)

    def delete(self, preset_id: str) -> bool:
        """Remove a preset.  Returns ``False`` if no preset had that id."""
        before = len(self._presets)
        self._presets = [p for p in self._presets if p.id != preset_id]
        return len(self._presets) != before

    def list(self) -> list[StylePreset]:
        return list(self._presets)

    def to_wire(self) -> list[dict[str, Any]]:
        """JSON array of presets, as persisted and exported."""
        return [preset.to_wire() for preset in self._presets]

    def export_json(self) -> str:
        return json.dumps(self.to_wire(), indent=2)

    @classmethod
    def from_wire(cls, data: Any) -> StyleBook:
        """Rebuild a style book, skipping entries that fail validation."""
        if not isinstance(data, list):
            logger.warning("Style book data is not a list; starting empty.")
            return cls()
        presets = []
        for entry in data:
            try:
                presets.append(StylePreset.model_validate(entry))
            except ValueError as exc:
                logger.warning("Skipping invalid style preset: %s", exc)
        return cls(presets)

    def __len__(self) -> int:
        return len(self._presets)

    def __iter__(self) -> Iterator[StylePreset]:
        return iter(self._presets)
