"""Tests for musebox.core.errors — failure classification and guidance.

Tests cover:
- Permission denial detected from status codes, nested bodies and prose.
- Nested error messages surfacing for other failures.
- The ordered guidance table.
"""

from __future__ import annotations

import json

import pytest

from musebox.core.errors import (
    GUIDANCE_TEXT,
    ErrorKind,
    FailureCategory,
    GenerationError,
    MalformedProjectFile,
    TransportError,
    ValidationError,
    categorize_message,
    classify_failure,
)


class TestClassifyFailure:
    def test_status_code_403(self):
        error = classify_failure(TransportError("Forbidden", status_code=403), "pro-model")
        assert error.kind is ErrorKind.PERMISSION_DENIED
        assert "'pro-model'" in error.message
        assert error.status_code == 403

    def test_symbolic_status(self):
        error = classify_failure(TransportError("nope", status="PERMISSION_DENIED"))
        assert error.kind is ErrorKind.PERMISSION_DENIED

    def test_nested_body_in_message(self):
        body = {"error": {"code": 403, "message": "denied", "status": "PERMISSION_DENIED"}}
        error = classify_failure(TransportError(f"Request failed: {json.dumps(body)}"))
        assert error.kind is ErrorKind.PERMISSION_DENIED
        assert error.status_code == 403

    def test_nested_body_object(self):
        body = {"error": {"code": 403, "message": "denied"}}
        error = classify_failure(TransportError("failed", body=body))
        assert error.kind is ErrorKind.PERMISSION_DENIED

    def test_phrase_in_message(self):
        error = classify_failure(TransportError("The caller has Permission Denied for this"))
        assert error.kind is ErrorKind.PERMISSION_DENIED

    def test_other_failure_uses_nested_message(self):
        body = {"error": {"code": 429, "message": "Resource has been exhausted (quota)."}}
        error = classify_failure(TransportError("HTTP 429", body=body), "m")
        assert error.kind is ErrorKind.TRANSPORT_OTHER
        assert error.message == "Resource has been exhausted (quota)."
        assert error.category is FailureCategory.QUOTA

    def test_unparseable_embedded_json_is_ignored(self):
        error = classify_failure(TransportError("bad {not json}"))
        assert error.kind is ErrorKind.TRANSPORT_OTHER
        assert error.message == "bad {not json}"

    def test_empty_message_has_fallback_text(self):
        assert classify_failure(TransportError("")).message == "Unknown error occurred"


class TestGuidance:
    @pytest.mark.parametrize(
        "message, category",
        [
            ("Quota exceeded for project", FailureCategory.QUOTA),
            ("HTTP 429 Too Many Requests", FailureCategory.QUOTA),
            ("RESOURCE_EXHAUSTED", FailureCategory.QUOTA),
            ("Response blocked by safety filters", FailureCategory.SAFETY),
            ("harmful content", FailureCategory.SAFETY),
            ("API key not valid", FailureCategory.CREDENTIALS),
            ("401 Unauthorized", FailureCategory.CREDENTIALS),
            ("connection reset by peer", FailureCategory.GENERIC),
        ],
    )
    def test_categorize_message(self, message, category):
        assert categorize_message(message) is category

    def test_first_matching_row_wins(self):
        assert categorize_message("quota blocked") is FailureCategory.QUOTA

    def test_permission_denied_always_gets_credential_guidance(self):
        error = GenerationError(ErrorKind.PERMISSION_DENIED, "quota and more")
        assert error.guidance == GUIDANCE_TEXT[FailureCategory.CREDENTIALS]

    def test_generation_error_to_dict(self):
        data = GenerationError(ErrorKind.NO_PAYLOAD, "empty", model_id="m").to_dict()
        assert data["kind"] == "no_payload"
        assert data["model_id"] == "m"
        assert data["guidance"] == GUIDANCE_TEXT[FailureCategory.GENERIC]

    def test_local_errors_have_no_guidance(self):
        assert ValidationError("x").to_dict() == {
            "kind": "validation",
            "message": "x",
            "guidance": None,
        }
        assert MalformedProjectFile("y").kind is ErrorKind.MALFORMED_PROJECT_FILE
