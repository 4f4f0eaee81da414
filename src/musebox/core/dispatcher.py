"""Request dispatcher: demo gate, live submission, failure handling.

:class:`RequestDispatcher` executes one generation call per
:meth:`~RequestDispatcher.dispatch`.  It never touches project state; the
caller appends the returned artifact to history.

Dispatch Flow
-------------
1. **Demo gate** — with ``demo_override`` set, demo mode configured, or no
   API key, wait ``demo_delay_seconds`` and return a placeholder from the
   fixed mock gallery.  The remote service is never contacted.
2. **Credential gate** — after an unresolved permission denial the premium
   model is refused locally until credentials are reconfirmed.
3. **Live gate** — compile the configuration, submit it through the
   matching transport and await exactly one response.
4. **Failure handling** — classify the failure.  A permission denial on the
   premium model triggers exactly one fallback call on the base model
   (when ``premium_fallback`` is enabled).  Nothing else is retried.

The configuration passed to :meth:`dispatch` is frozen, so the artifact is
always stamped with the snapshot the call was started with, whatever
happens to the live configuration meanwhile.
"""

from __future__ import annotations

import asyncio
import logging
import random
from collections.abc import Callable
from dataclasses import dataclass
from typing import Any

from .config import MuseboxConfig
from .errors import (
    ErrorKind,
    GenerationError,
    TransportError,
    ValidationError,
    classify_failure,
)
from .mock_gallery import pick_mock_image
from .models import (
    BASE_MODEL,
    MODEL_LABELS,
    PREMIUM_MODEL,
    GeneratedArtifact,
    GenerationConfig,
    ModelId,
)
from .prompt_compiler import compile_config
from .transports import create_client, transport_registry

logger = logging.getLogger(__name__)

CREDENTIALS_UNCONFIRMED_MESSAGE = (
    "Your API key was denied access to {model}. Reconfigure your credentials "
    "before using this model again."
)


@dataclass(frozen=True)
class DispatchOutcome:
    """Successful dispatch result.

    Attributes:
        artifact: The produced artifact, stamped with the dispatched snapshot.
        notice: Informational note for the user (fallback or demo), if any.
    """

    artifact: GeneratedArtifact
    notice: str | None = None

    @property
    def substituted(self) -> bool:
        """Whether the artifact was produced by a different model than requested."""
        return self.artifact.model_used is not self.artifact.config_snapshot.model_id


def validate_for_dispatch(config: GenerationConfig, demo_override: bool = False) -> None:
    """Reject configurations that must not be dispatched.

    Raises:
        ValidationError: If the prompt is blank and this is not a demo call.
    """
    if not demo_override and not config.has_prompt():
        raise ValidationError("Please enter a prompt before generating.")


class RequestDispatcher:
    """Executes generation calls against the remote service or the mock gallery.

    Attributes:
        credentials_verified: ``False`` after a permission denial was
            surfaced; premium requests are refused until
            :meth:`confirm_credentials` or :meth:`reconfigure` is called.
    """

    def __init__(
        self,
        config: MuseboxConfig,
        *,
        client_factory: Callable[[MuseboxConfig], Any] = create_client,
        rng: random.Random | None = None,
    ) -> None:
        self._config = config
        self._client_factory = client_factory
        self._client: Any = None
        self._rng = rng or random.Random()
        self.credentials_verified = True

    # -- Credentials --------------------------------------------------------

    @property
    def live_available(self) -> bool:
        """Whether live calls are possible (key configured, demo mode off)."""
        return self._config.has_credentials and not self._config.demo_mode

    def reconfigure(self, api_key: str | None) -> None:
        """Replace the API key, drop the cached client and reconfirm credentials."""
        self._config = self._config.model_copy(update={"api_key": api_key})
        self._client = None
        self.credentials_verified = True
        logger.info("Credentials reconfigured (live=%s).", self.live_available)

    def confirm_credentials(self) -> None:
        self.credentials_verified = True

    def _get_client(self) -> Any:
        if self._client is None:
            self._client = self._client_factory(self._config)
        return self._client

    # -- Dispatch -----------------------------------------------------------

    async def dispatch(
        self, config: GenerationConfig, demo_override: bool = False
    ) -> DispatchOutcome:
        """Run one generation call for *config*.

        Args:
            config: Frozen configuration snapshot to generate from.
            demo_override: Force the demo/mock path for this call.

        Returns:
            :class:`DispatchOutcome` with the new artifact.

        Raises:
            ValidationError: If the premium model is requested while
                credentials are unconfirmed.
            GenerationError: If the call (and any fallback) failed.
        """
        if demo_override or not self.live_available:
            return await self._dispatch_mock(config)

        if config.model_id is PREMIUM_MODEL and not self.credentials_verified:
            raise ValidationError(
                CREDENTIALS_UNCONFIRMED_MESSAGE.format(model=MODEL_LABELS[PREMIUM_MODEL])
            )

        try:
            url = await self._submit(config, config.model_id)
        except TransportError as exc:
            error = classify_failure(exc, model_id=config.model_id.value)
            logger.warning(
                "Generation on '%s' failed (%s): %s",
                config.model_id.value,
                error.kind.value,
                error.message,
            )
            if (
                error.kind is ErrorKind.PERMISSION_DENIED
                and config.model_id is PREMIUM_MODEL
                and self._config.premium_fallback
            ):
                return await self._dispatch_fallback(config, error)
            if error.kind is ErrorKind.PERMISSION_DENIED:
                self.credentials_verified = False
            raise error from exc

        return DispatchOutcome(artifact=self._make_artifact(config, url, config.model_id))

    async def _submit(self, config: GenerationConfig, model_id: ModelId) -> str:
        if model_id is not config.model_id:
            config = config.with_updates(model_id=model_id)
        compiled = compile_config(config)
        transport = transport_registry.instantiate(compiled.request, self._get_client())
        return await transport.submit(compiled.request)

    async def _dispatch_fallback(
        self, config: GenerationConfig, original: GenerationError
    ) -> DispatchOutcome:
        logger.warning(
            "Permission denied for %s. Attempting fallback to %s.",
            MODEL_LABELS[config.model_id],
            MODEL_LABELS[BASE_MODEL],
        )
        try:
            url = await self._submit(config, BASE_MODEL)
        except (TransportError, GenerationError) as exc:
            logger.error("Fallback to '%s' failed: %s", BASE_MODEL.value, exc)
            self.credentials_verified = False
            raise GenerationError(
                ErrorKind.PERMISSION_DENIED,
                f"{original.message} Fallback to {MODEL_LABELS[BASE_MODEL]} also failed.",
                status_code=original.status_code,
                model_id=original.model_id,
            ) from exc

        notice = (
            f"{MODEL_LABELS[config.model_id]} is not available for your API key; "
            f"generated with {MODEL_LABELS[BASE_MODEL]} instead."
        )
        return DispatchOutcome(
            artifact=self._make_artifact(config, url, BASE_MODEL),
            notice=notice,
        )

    async def _dispatch_mock(self, config: GenerationConfig) -> DispatchOutcome:
        logger.info(
            "Demo mode: substituting mock result for '%s' (%.1fs delay).",
            config.model_id.value,
            self._config.demo_delay_seconds,
        )
        await asyncio.sleep(self._config.demo_delay_seconds)
        url = pick_mock_image(self._rng)
        artifact = self._make_artifact(config, url, config.model_id, is_mock=True)
        return DispatchOutcome(
            artifact=artifact,
            notice="Demo result: no live backend was contacted.",
        )

    @staticmethod
    def _make_artifact(
        config: GenerationConfig,
        url: str,
        model_used: ModelId,
        *,
        is_mock: bool = False,
    ) -> GeneratedArtifact:
        return GeneratedArtifact(
            url=url,
            source_prompt=config.prompt,
            config_snapshot=config,
            model_used=model_used,
            is_mock=is_mock,
        )
