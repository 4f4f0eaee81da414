"""Project file codec and persisted session state.

Project Files
-------------
A project file is a JSON document::

    {
      "name": "...", "version": "1.0.0",
      "created": 1700000000000, "lastModified": 1700000000000,
      "history": [ {id, url, prompt, config, timestamp, ...}, ... ],
      "storyboard": [ {id, name, script, imageUrl, imageId}, ... ],
      "lastConfig": { ...GenerationConfig... }
    }

Loading rejects a document without a ``history`` array.  A missing
``storyboard`` is an empty one, and ``lastConfig`` is merged onto the
default configuration so files written before a field existed still load.

Session State
-------------
:class:`SessionStore` keeps three independent JSON files in the data
directory, one per key.  Each one loads on its own: a missing or corrupt
file yields that key's default without affecting the others.  Writes are
fire-and-forget; failures are logged and never raised to the caller.
"""

from __future__ import annotations

import json
import logging
import re
from pathlib import Path
from typing import Any

from pydantic import ValidationError as PydanticValidationError

from .errors import MalformedProjectFile
from .locks import LockSet
from .models import (
    PROJECT_FORMAT_VERSION,
    GeneratedArtifact,
    GenerationConfig,
    Project,
    StoryboardScene,
    now_ms,
)
from .style_book import StyleBook

logger = logging.getLogger(__name__)

PROJECT_FILE_SUFFIX = ".musebox.json"
IMPORTED_PROJECT_NAME = "Imported Project"

CURRENT_PROJECT_FILE = "current_project.json"
LOCKED_KEYS_FILE = "locked_keys.json"
STYLE_BOOK_FILE = "style_book.json"


# ---------------------------------------------------------------------------
# Project document codec.
# ---------------------------------------------------------------------------


def project_to_document(project: Project) -> dict[str, Any]:
    """Serialise *project* to the project-file document."""
    document = project.to_wire()
    document["version"] = PROJECT_FORMAT_VERSION
    return document


def project_from_document(document: Any) -> Project:
    """Parse a project-file document.

    Raises:
        MalformedProjectFile: If the document has no ``history`` array or an
            entry cannot be parsed.
    """
    if not isinstance(document, dict):
        raise MalformedProjectFile("Invalid project file: expected a JSON object.")
    history = document.get("history")
    if not isinstance(history, list):
        raise MalformedProjectFile("Invalid project file: missing history.")

    storyboard = document.get("storyboard") or []
    if not isinstance(storyboard, list):
        raise MalformedProjectFile("Invalid project file: storyboard must be a list.")

    last_config = document.get("lastConfig") or {}
    if not isinstance(last_config, dict):
        raise MalformedProjectFile("Invalid project file: lastConfig must be an object.")

    now = now_ms()
    try:
        return Project(
            name=document.get("name") or IMPORTED_PROJECT_NAME,
            version=str(document.get("version") or PROJECT_FORMAT_VERSION),
            created=document.get("created") or now,
            last_modified=document.get("lastModified") or now,
            history=[GeneratedArtifact.model_validate(entry) for entry in history],
            storyboard=[StoryboardScene.model_validate(scene) for scene in storyboard],
            last_config=GenerationConfig.model_validate(
                {**GenerationConfig().to_wire(), **last_config}
            ),
        )
    except PydanticValidationError as exc:
        raise MalformedProjectFile(
            f"Invalid project file: {exc.error_count()} invalid entries."
        ) from exc


def parse_project_file(content: str | bytes) -> Project:
    """Parse raw project-file text.

    Raises:
        MalformedProjectFile: If the text is not JSON or not a valid project.
    """
    try:
        document = json.loads(content)
    except ValueError as exc:
        raise MalformedProjectFile("Invalid project file: not valid JSON.") from exc
    return project_from_document(document)


def slugify(name: str) -> str:
    """Lower-case *name* with whitespace runs replaced by hyphens."""
    return re.sub(r"\s+", "-", name.strip()).lower() or "untitled-project"


def project_filename(name: str) -> str:
    """Download filename for a project, e.g. ``my-film.musebox.json``."""
    return f"{slugify(name)}{PROJECT_FILE_SUFFIX}"


# ---------------------------------------------------------------------------
# Session persistence.
# ---------------------------------------------------------------------------


def _load_json(path: Path) -> Any:
    """Read a JSON file, returning ``None`` if it is missing or unreadable."""
    if not path.exists():
        return None
    try:
        with open(path, encoding="utf-8") as handle:
            return json.load(handle)
    except (OSError, ValueError) as exc:
        logger.warning("Could not read %s: %s", path.name, exc)
        return None


def _save_json(path: Path, data: Any) -> None:
    tmp_path = path.with_suffix(path.suffix + ".tmp")
    with open(tmp_path, "w", encoding="utf-8") as handle:
        json.dump(data, handle, indent=2)
    tmp_path.replace(path)


class SessionStore:
    """File-backed persistence for the current project, lock set and style book.

    Args:
        data_dir: Directory holding the session files (created if missing).
    """

    def __init__(self, data_dir: Path) -> None:
        self.data_dir = Path(data_dir)
        self.data_dir.mkdir(parents=True, exist_ok=True)

    @property
    def project_path(self) -> Path:
        return self.data_dir / CURRENT_PROJECT_FILE

    @property
    def locks_path(self) -> Path:
        return self.data_dir / LOCKED_KEYS_FILE

    @property
    def style_book_path(self) -> Path:
        return self.data_dir / STYLE_BOOK_FILE

    # -- Loading ------------------------------------------------------------

    def load_project(self) -> Project:
        data = _load_json(self.project_path)
        if data is None:
            return Project()
        try:
            return project_from_document(data)
        except MalformedProjectFile as exc:
            logger.warning("Ignoring saved project: %s", exc.message)
            return Project()

    def load_locks(self) -> LockSet:
        data = _load_json(self.locks_path)
        if not isinstance(data, list):
            return LockSet()
        return LockSet.from_list(str(value) for value in data)

    def load_style_book(self) -> StyleBook:
        data = _load_json(self.style_book_path)
        if data is None:
            return StyleBook()
        return StyleBook.from_wire(data)

    # -- Saving (fire-and-forget) -------------------------------------------

    def save_project(self, project: Project) -> None:
        self._write(self.project_path, project_to_document(project))

    def save_locks(self, locks: LockSet) -> None:
        self._write(self.locks_path, locks.to_list())

    def save_style_book(self, style_book: StyleBook) -> None:
        self._write(self.style_book_path, style_book.to_wire())

    def _write(self, path: Path, data: Any) -> None:
        try:
            _save_json(path, data)
        except (OSError, TypeError, ValueError):
            logger.exception("Failed to persist %s", path.name)
