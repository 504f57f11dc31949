"""Tests for structured request error classification."""

from types import SimpleNamespace

import pytest
from pydantic import BaseModel, ValidationError

from review_analyst.execution.error_classifier import (
    ErrorKind,
    ErrorMeta,
    classify_error,
    get_error_message,
    get_numeric_error_code,
    get_transient_error_code,
    has_retryable_status,
)
from review_analyst.execution.errors import (
    ConcurrencyBusyError,
    RequestCancelledError,
    RequestValidationError,
    SchemaValidationError,
    UpstreamTimeoutError,
)


class ProviderError(Exception):
    """Provider-shaped exception carrying a status attribute."""

    def __init__(self, message, **fields):
        super().__init__(message)
        for key, value in fields.items():
            setattr(self, key, value)


class ExplodingError(Exception):
    """Exception whose status attribute raises on access."""

    @property
    def status(self):
        raise RuntimeError("boom")


class TestClassifyErrorPrecedence:
    """Test cases for the ordered classification rules."""

    def test_rate_limit_message_is_retryable_upstream(self):
        meta = classify_error(Exception("429 rate limit exceeded"))
        assert meta == ErrorMeta(ErrorKind.UPSTREAM, True)

    def test_explicit_message_overrides_derived_message(self):
        meta = classify_error(Exception("opaque"), "429 rate limit exceeded")
        assert meta.kind is ErrorKind.UPSTREAM
        assert meta.retryable is True

    def test_schema_validation_error_type(self):
        meta = classify_error(SchemaValidationError("field missing"))
        assert meta == ErrorMeta(ErrorKind.VALIDATION, False)

    def test_request_validation_error_type(self):
        meta = classify_error(RequestValidationError("prompt must be a non-empty string"))
        assert meta == ErrorMeta(ErrorKind.VALIDATION, False)

    def test_pydantic_validation_error_type(self):
        class Finding(BaseModel):
            severity: int

        with pytest.raises(ValidationError) as exc_info:
            Finding.model_validate({"severity": "high"})

        assert classify_error(exc_info.value).kind is ErrorKind.VALIDATION

    def test_validation_wording_wins_over_status_code(self):
        error = ProviderError("validation failed upstream", status=503)
        meta = classify_error(error)
        assert meta.kind is ErrorKind.VALIDATION
        assert meta.retryable is False

    def test_cancelled_wording(self):
        assert classify_error(RequestCancelledError()).kind is ErrorKind.CANCELLED
        assert classify_error("Operation canceled by user").kind is ErrorKind.CANCELLED

    def test_cancellation_error_without_wording(self):
        meta = classify_error(RequestCancelledError("client disconnected"))
        assert meta == ErrorMeta(ErrorKind.CANCELLED, False)

    def test_cancelled_wins_over_timeout(self):
        meta = classify_error("request cancelled after timeout")
        assert meta == ErrorMeta(ErrorKind.CANCELLED, False)

    def test_timeout_is_retryable(self):
        meta = classify_error(UpstreamTimeoutError(60_000))
        assert meta == ErrorMeta(ErrorKind.TIMEOUT, True)

    def test_deadline_reason_classifies_as_timeout(self):
        meta = classify_error(
            RequestCancelledError("Structured request timed out after 5,000ms.")
        )
        assert meta.kind is ErrorKind.TIMEOUT

    def test_budget_wording(self):
        message = "diff exceeds max allowed size (130,000 chars > 120,000 chars)"
        assert classify_error(message) == ErrorMeta(ErrorKind.BUDGET, False)
        assert classify_error("Input too large").kind is ErrorKind.BUDGET
        assert (
            classify_error("Combined context size 9 chars exceeds limit of 1 chars.").kind
            is ErrorKind.BUDGET
        )

    def test_busy_wording(self):
        meta = classify_error(ConcurrencyBusyError(10, 2_000))
        assert meta == ErrorMeta(ErrorKind.BUSY, True)

    def test_numeric_status_attribute(self):
        meta = classify_error(ProviderError("Service hiccup", status=503))
        assert meta == ErrorMeta(ErrorKind.UPSTREAM, True)

    def test_string_status_attribute(self):
        meta = classify_error(ProviderError("Service hiccup", code="unavailable"))
        assert meta == ErrorMeta(ErrorKind.UPSTREAM, True)

    def test_nested_error_mapping(self):
        error = ProviderError("Service hiccup", error={"status": "RESOURCE_EXHAUSTED"})
        assert classify_error(error).kind is ErrorKind.UPSTREAM

    def test_mapping_error(self):
        error = {"message": "Service hiccup", "error": {"code": 500}}
        assert classify_error(error) == ErrorMeta(ErrorKind.UPSTREAM, True)

    def test_non_retryable_status_falls_through_to_internal(self):
        meta = classify_error(ProviderError("Permission denied", status=403))
        assert meta == ErrorMeta(ErrorKind.INTERNAL, False)

    @pytest.mark.parametrize(
        "message",
        [
            "502 Bad Gateway",
            "model is overloaded",
            "quota exhausted for project",
            "ECONNRESET while reading",
            "Model produced invalid JSON: Expecting value",
            "temporary failure in name resolution",
        ],
    )
    def test_generic_upstream_wording(self, message):
        assert classify_error(message) == ErrorMeta(ErrorKind.UPSTREAM, True)

    def test_unknown_error_is_internal(self):
        meta = classify_error(KeyError("missing"))
        assert meta == ErrorMeta(ErrorKind.INTERNAL, False)

    def test_empty_response_body_is_internal(self):
        meta = classify_error("Gemini returned an empty response body.")
        assert meta.kind is ErrorKind.INTERNAL


class TestStatusCodeProbing:
    """Test cases for status code extraction helpers."""

    def test_numeric_code_from_attribute(self):
        assert get_numeric_error_code(SimpleNamespace(status_code=429)) == 429

    def test_numeric_code_from_digit_string(self):
        assert get_numeric_error_code({"statusCode": " 504 "}) == 504

    def test_numeric_code_prefers_direct_over_nested(self):
        error = {"status": 500, "error": {"status": 429}}
        assert get_numeric_error_code(error) == 500

    def test_numeric_code_ignores_booleans(self):
        assert get_numeric_error_code({"status": True}) is None

    def test_transient_code_skips_digit_strings(self):
        error = {"code": "503", "status": "unavailable"}
        assert get_transient_error_code(error) == "UNAVAILABLE"

    def test_transient_code_from_nested_status_text(self):
        error = SimpleNamespace(error=SimpleNamespace(statusText="deadline_exceeded"))
        assert get_transient_error_code(error) == "DEADLINE_EXCEEDED"

    def test_probing_never_raises(self):
        error = ExplodingError("bad property")
        assert get_numeric_error_code(error) is None
        assert has_retryable_status(error) is False

    def test_primitives_have_no_status(self):
        assert get_numeric_error_code("503") is None
        assert get_numeric_error_code(None) is None
        assert has_retryable_status(42) is False


class TestGetErrorMessage:
    """Test cases for message extraction."""

    def test_string(self):
        assert get_error_message("plain") == "plain"

    def test_exception(self):
        assert get_error_message(ValueError("bad value")) == "bad value"

    def test_exception_without_message_uses_class_name(self):
        assert get_error_message(TimeoutError()) == "TimeoutError"

    def test_mapping_message(self):
        assert get_error_message({"message": "from mapping"}) == "from mapping"

    def test_fallback_repr(self):
        assert get_error_message(42) == "42"
