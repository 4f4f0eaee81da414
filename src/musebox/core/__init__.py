"""Core functionality for the MuseBox studio.

Architecture Overview
---------------------
The core package is layered leaves first:

1. **Configuration Layer** (config.py):
   - Environment-based settings using Pydantic Settings
   - All settings prefixed with MUSEBOX_ in .env files

2. **Domain Model** (models.py, fields.py):
   - GenerationConfig and the project aggregate (Pydantic, camelCase wire keys)
   - Static field registry consulted by locks, merges and the randomizer

3. **Request Orchestration** (prompt_compiler.py, transports.py, dispatcher.py):
   - Deterministic prompt compilation and request-shape selection
   - google-genai transports registered per request shape
   - Demo gate, failure classification (errors.py) and premium fallback

4. **Curation** (locks.py, merge.py, style_book.py, storyboard.py):
   - Lock set and the three lock-aware merge operations
   - Style presets and the storyboard with JSON / PDF export

5. **Session** (project_store.py, studio.py):
   - Project file codec and independent per-key session persistence
   - Studio service exposing one method per user action

Usage Example
-------------
::

    from musebox.core import Studio, config

    studio = Studio(config)
    studio.update_config({"prompt": "a lighthouse at dusk", "lighting": "Golden Hour"})
    outcome = await studio.generate()
"""

from musebox.core.config import MuseboxConfig, config
from musebox.core.dispatcher import DispatchOutcome, RequestDispatcher
from musebox.core.errors import (
    ErrorKind,
    GenerationError,
    MalformedProjectFile,
    StudioError,
    ValidationError,
)
from musebox.core.locks import LockSet
from musebox.core.studio import Studio, StudioState
from musebox.core.transports import TransportBase, transport_registry

__all__ = [
    "DispatchOutcome",
    "ErrorKind",
    "GenerationError",
    "LockSet",
    "MalformedProjectFile",
    "MuseboxConfig",
    "RequestDispatcher",
    "Studio",
    "StudioError",
    "StudioState",
    "TransportBase",
    "ValidationError",
    "config",
    "transport_registry",
]
