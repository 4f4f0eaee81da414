"""MuseBox - prompt studio for composing, dispatching and curating image generations."""

__version__ = "0.3.0"

from musebox.core.config import MuseboxConfig, config
from musebox.core.dispatcher import DispatchOutcome, RequestDispatcher
from musebox.core.models import GenerationConfig, ModelId
from musebox.core.prompt_compiler import compile_config
from musebox.core.studio import Studio

__all__ = [
    "DispatchOutcome",
    "GenerationConfig",
    "ModelId",
    "MuseboxConfig",
    "RequestDispatcher",
    "Studio",
    "compile_config",
    "config",
]
