"""Error taxonomy and failure classification.

Every failure the studio reports carries a structured :class:`ErrorKind`.
Transports raise :class:`TransportError` at the SDK boundary; the dispatcher
turns it into a :class:`GenerationError` through :func:`classify_failure`,
which is the only place that inspects error prose.

Taxonomy
--------
=========================  =================================================
Kind                       Meaning
=========================  =================================================
``VALIDATION``             Request rejected locally (e.g. empty prompt)
``PERMISSION_DENIED``      403 / PERMISSION_DENIED from the remote service
``NO_PAYLOAD``             Successful response without image or SVG data
``MALFORMED_PROJECT_FILE`` Project document without a ``history`` array
``TRANSPORT_OTHER``        Anything else (quota, safety filter, network)
=========================  =================================================

User-facing troubleshooting tips are chosen from :data:`GUIDANCE_TABLE`.
"""

from __future__ import annotations

import json
import re
from enum import Enum
from typing import Any


class ErrorKind(str, Enum):
    VALIDATION = "validation"
    PERMISSION_DENIED = "permission_denied"
    NO_PAYLOAD = "no_payload"
    MALFORMED_PROJECT_FILE = "malformed_project_file"
    TRANSPORT_OTHER = "transport_other"


class FailureCategory(str, Enum):
    """Guidance category for a surfaced error."""

    QUOTA = "quota"
    SAFETY = "safety"
    CREDENTIALS = "credentials"
    GENERIC = "generic"


GUIDANCE_TEXT: dict[FailureCategory, str] = {
    FailureCategory.QUOTA: (
        "You may have exceeded your API quota. Please check your billing status "
        "or wait a moment before trying again."
    ),
    FailureCategory.SAFETY: (
        "The prompt may have triggered safety filters. Try adjusting your prompt or "
        "negative prompt to be less explicit, or try a different model."
    ),
    FailureCategory.CREDENTIALS: (
        "There seems to be an issue with your API key. Please check your configuration "
        "and ensure the key is valid and has access to the selected model."
    ),
    FailureCategory.GENERIC: (
        "Try simplifying your prompt, switching models, or checking your internet connection."
    ),
}

# Ordered: the first row whose substrings match the lower-cased message wins.
GUIDANCE_TABLE: tuple[tuple[tuple[str, ...], FailureCategory], ...] = (
    (("quota", "429", "resource_exhausted"), FailureCategory.QUOTA),
    (("safety", "blocked", "harmful"), FailureCategory.SAFETY),
    (("key", "401", "403", "permission denied"), FailureCategory.CREDENTIALS),
)

_EMBEDDED_JSON_RE = re.compile(r"\{[\s\S]*\}")


# ---------------------------------------------------------------------------
# Exceptions.
# ---------------------------------------------------------------------------


class StudioError(Exception):
    """Base class for every error surfaced to the user."""

    kind: ErrorKind = ErrorKind.TRANSPORT_OTHER

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message

    @property
    def guidance(self) -> str | None:
        return None

    def to_dict(self) -> dict[str, Any]:
        return {"kind": self.kind.value, "message": self.message, "guidance": self.guidance}


class ValidationError(StudioError):
    """User-friendly validation error; the request is not dispatched."""

    kind = ErrorKind.VALIDATION


class MalformedProjectFile(StudioError):
    """A project document could not be loaded; in-memory state is untouched."""

    kind = ErrorKind.MALFORMED_PROJECT_FILE


class GenerationError(StudioError):
    """A remote generation call failed.

    Attributes:
        kind: Structured failure kind.
        status_code: Numeric status reported by the service, if any.
        model_id: Model the failing request targeted.
        category: Guidance category derived from the message.
    """

    def __init__(
        self,
        kind: ErrorKind,
        message: str,
        *,
        status_code: int | None = None,
        model_id: str | None = None,
    ) -> None:
        super().__init__(message)
        self.kind = kind
        self.status_code = status_code
        self.model_id = model_id

    @property
    def category(self) -> FailureCategory:
        if self.kind is ErrorKind.PERMISSION_DENIED:
            return FailureCategory.CREDENTIALS
        return categorize_message(self.message)

    @property
    def guidance(self) -> str:
        return GUIDANCE_TEXT[self.category]

    def to_dict(self) -> dict[str, Any]:
        data = super().to_dict()
        data["status_code"] = self.status_code
        data["model_id"] = self.model_id
        data["category"] = self.category.value
        return data


class TransportError(Exception):
    """Raw failure reported by the remote service or the network.

    Attributes:
        message: Error text as reported.
        status_code: HTTP-style status code, if known.
        status: Symbolic status (e.g. ``"PERMISSION_DENIED"``), if known.
        body: Structured error body, if the service returned one.
    """

    def __init__(
        self,
        message: str,
        *,
        status_code: int | None = None,
        status: str | None = None,
        body: Any = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.status_code = status_code
        self.status = status
        self.body = body


# ---------------------------------------------------------------------------
# Classification.
# ---------------------------------------------------------------------------


def categorize_message(message: str) -> FailureCategory:
    """Pick the guidance category for an error message via :data:`GUIDANCE_TABLE`."""
    lowered = message.lower()
    for needles, category in GUIDANCE_TABLE:
        if any(needle in lowered for needle in needles):
            return category
    return FailureCategory.GENERIC


def _nested_error(error: TransportError) -> dict[str, Any] | None:
    """Extract the ``{"error": {...}}`` object from the body or the message text."""
    candidates: list[Any] = []
    if isinstance(error.body, dict):
        candidates.append(error.body)
    match = _EMBEDDED_JSON_RE.search(error.message or "")
    if match:
        try:
            candidates.append(json.loads(match.group(0)))
        except ValueError:
            pass

    for candidate in candidates:
        if isinstance(candidate, dict) and isinstance(candidate.get("error"), dict):
            return candidate["error"]
    return None


def classify_failure(error: TransportError, model_id: str | None = None) -> GenerationError:
    """Turn a raw transport failure into a structured :class:`GenerationError`.

    Permission denial is recognised from a 403 status (on the error or in an
    embedded error body), a ``PERMISSION_DENIED`` status, or the phrase
    "permission denied" in the message.  Everything else is
    ``TRANSPORT_OTHER`` with the most specific message available.
    """
    message = error.message or "Unknown error occurred"
    status_code = error.status_code
    permission_denied = False

    nested = _nested_error(error)
    if nested is not None:
        if nested.get("message"):
            message = str(nested["message"])
        if isinstance(nested.get("code"), int) and status_code is None:
            status_code = nested["code"]
        if nested.get("code") == 403 or nested.get("status") == "PERMISSION_DENIED":
            permission_denied = True

    if (
        status_code == 403
        or error.status == "PERMISSION_DENIED"
        or "403" in message
        or "permission denied" in message.lower()
    ):
        permission_denied = True

    if permission_denied:
        return GenerationError(
            ErrorKind.PERMISSION_DENIED,
            f"Permission Denied: Your API key does not have access to the model '{model_id}'.",
            status_code=status_code,
            model_id=model_id,
        )

    return GenerationError(
        ErrorKind.TRANSPORT_OTHER,
        message,
        status_code=status_code,
        model_id=model_id,
    )
