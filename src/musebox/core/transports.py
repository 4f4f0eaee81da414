"""Transports that submit compiled requests to the remote generation service.

Each request shape produced by :mod:`musebox.core.prompt_compiler` has one
transport class.  Transports are registered in :data:`transport_registry`
and share a single ``google-genai`` client.

Transport Pattern
-----------------
Every transport:
- Converts its request shape to SDK calls (``client.aio.models``)
- Extracts the image payload and returns it as a ``data:`` URI
- Raises :class:`GenerationError` (``NO_PAYLOAD``) when a successful
  response carries no image
- Converts SDK and network failures into :class:`TransportError`, leaving
  classification to the dispatcher

Usage Example
-------------
::

    >>> from musebox.core.transports import create_client, transport_registry
    >>> client = create_client(config)
    >>> transport = transport_registry.instantiate(compiled.request, client)
    >>> url = await transport.submit(compiled.request)
"""

from __future__ import annotations

import base64
import logging
import re
from abc import ABC, abstractmethod
from typing import Any

import httpx
from google import genai
from google.genai import errors as genai_errors
from google.genai import types

from .config import MuseboxConfig
from .errors import ErrorKind, GenerationError, TransportError
from .prompt_compiler import (
    ImageBatchRequest,
    ModelRequest,
    MultimodalRequest,
    ReferenceImage,
    SvgDraftRequest,
)

logger = logging.getLogger(__name__)

_SVG_RE = re.compile(r"<svg[\s\S]*?</svg>")


def create_client(config: MuseboxConfig) -> genai.Client:
    """Build the SDK client from the configured API key and timeout."""
    return genai.Client(
        api_key=config.api_key,
        http_options=types.HttpOptions(timeout=config.request_timeout_ms),
    )


def to_data_uri(data: bytes, mime_type: str) -> str:
    """Encode raw bytes as a base64 ``data:`` URI."""
    return f"data:{mime_type};base64,{base64.b64encode(data).decode('ascii')}"


def _reference_part(reference: ReferenceImage) -> types.Part:
    return types.Part.from_bytes(
        data=base64.b64decode(reference.data),
        mime_type=reference.mime_type,
    )


class TransportBase(ABC):
    """Abstract base class for all transports.

    Attributes
    ----------
    name : str
        Human-readable transport name (used in logs)
    request_type : type
        Request shape this transport accepts
    client : genai.Client
        Shared SDK client
    """

    name: str = "Base Transport"
    request_type: type = object

    def __init__(self, client: genai.Client) -> None:
        self.client = client

    async def submit(self, request: ModelRequest) -> str:
        """Submit *request* and return the resulting image as a data URI.

        Raises
        ------
        TransportError
            If the service or the network reports a failure
        GenerationError
            If the response carries no extractable payload (``NO_PAYLOAD``)
        """
        logger.info("Submitting %s request to '%s'.", request.kind, request.model)
        try:
            return await self._submit(request)
        except genai_errors.APIError as exc:
            raise TransportError(
                exc.message or str(exc),
                status_code=exc.code,
                status=exc.status,
                body=exc.details,
            ) from exc
        except httpx.HTTPError as exc:
            raise TransportError(f"Network error: {exc}") from exc
        except ValueError as exc:
            raise TransportError(f"Unreadable request or response: {exc}") from exc

    @abstractmethod
    async def _submit(self, request: Any) -> str:
        """Transport-specific SDK call and payload extraction."""


class ImageBatchTransport(TransportBase):
    """Imagen family: ``generate_images`` with a single output image."""

    name = "Image Batch"
    request_type = ImageBatchRequest

    async def _submit(self, request: ImageBatchRequest) -> str:
        response = await self.client.aio.models.generate_images(
            model=request.model,
            prompt=request.prompt,
            config=types.GenerateImagesConfig(
                number_of_images=request.number_of_images,
                output_mime_type=request.output_mime_type,
                aspect_ratio=request.aspect_ratio,
            ),
        )

        generated = response.generated_images or []
        image = generated[0].image if generated else None
        if image is None or not image.image_bytes:
            raise GenerationError(
                ErrorKind.NO_PAYLOAD,
                "No image data returned from Imagen.",
                model_id=request.model,
            )
        return to_data_uri(image.image_bytes, request.output_mime_type)


class MultimodalImageTransport(TransportBase):
    """Default image family: ``generate_content`` returning inline image data."""

    name = "Multimodal Image"
    request_type = MultimodalRequest

    async def _submit(self, request: MultimodalRequest) -> str:
        parts: list[types.Part] = []
        if request.reference_image is not None:
            parts.append(_reference_part(request.reference_image))
        parts.append(types.Part.from_text(text=request.prompt))

        response = await self.client.aio.models.generate_content(
            model=request.model,
            contents=[types.Content(role="user", parts=parts)],
            config=types.GenerateContentConfig(
                response_modalities=["TEXT", "IMAGE"],
                image_config=types.ImageConfig(
                    aspect_ratio=request.aspect_ratio,
                    image_size=request.image_size,
                ),
                seed=request.seed,
            ),
        )

        candidates = response.candidates or []
        content = candidates[0].content if candidates else None
        if content is None or not content.parts:
            raise GenerationError(
                ErrorKind.NO_PAYLOAD,
                "No content parts returned.",
                model_id=request.model,
            )

        for part in content.parts:
            if part.inline_data is not None and part.inline_data.data:
                mime_type = part.inline_data.mime_type or "image/png"
                return to_data_uri(part.inline_data.data, mime_type)

        raise GenerationError(
            ErrorKind.NO_PAYLOAD,
            "No image inline data found in response.",
            model_id=request.model,
        )


class SvgDraftTransport(TransportBase):
    """Draft family: text model asked for raw SVG, returned as an SVG data URI."""

    name = "SVG Draft"
    request_type = SvgDraftRequest

    async def _submit(self, request: SvgDraftRequest) -> str:
        parts: list[types.Part] = []
        if request.reference_image is not None:
            parts.append(_reference_part(request.reference_image))
        parts.append(types.Part.from_text(text=request.instruction))

        response = await self.client.aio.models.generate_content(
            model=request.model,
            contents=[types.Content(role="user", parts=parts)],
            config=types.GenerateContentConfig(seed=request.seed),
        )

        match = _SVG_RE.search(response.text or "")
        if not match:
            raise GenerationError(
                ErrorKind.NO_PAYLOAD,
                "Model generated text but no valid SVG found for placeholder.",
                model_id=request.model,
            )
        return to_data_uri(match.group(0).encode("utf-8"), "image/svg+xml")


class TransportRegistry:
    """Registry mapping request shapes to transport classes.

    Follows the same register / instantiate pattern as the other registries
    in the codebase: classes are registered once at import time and
    instantiated per client.
    """

    def __init__(self) -> None:
        self._transports: dict[type, type[TransportBase]] = {}

    def register(self, transport_class: type[TransportBase]) -> None:
        request_type = transport_class.request_type
        if request_type in self._transports:
            logger.warning(
                "Transport for '%s' is already registered, overwriting", request_type.__name__
            )
        self._transports[request_type] = transport_class
        logger.debug("Registered transport: %s", transport_class.name)

    def get_transport_class(self, request: ModelRequest) -> type[TransportBase]:
        """Return the transport class for *request*.

        Raises
        ------
        KeyError
            If no transport handles the request's type
        """
        try:
            return self._transports[type(request)]
        except KeyError:
            raise KeyError(f"No transport registered for {type(request).__name__}") from None

    def instantiate(self, request: ModelRequest, client: genai.Client) -> TransportBase:
        return self.get_transport_class(request)(client)

    def list_available(self) -> list[str]:
        return [cls.name for cls in self._transports.values()]


# Global transport registry instance
transport_registry = TransportRegistry()
transport_registry.register(ImageBatchTransport)
transport_registry.register(MultimodalImageTransport)
transport_registry.register(SvgDraftTransport)
