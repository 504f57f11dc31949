"""Error classification for structured upstream requests.

Maps any failure raised while serving a request onto a stable
``(kind, retryable)`` pair. The precedence order is part of the contract:

1. schema/request validation failures (by type or message)
2. cancellation wording, or a RequestCancelledError whose reason is not a
   deadline
3. timeout wording
4. input budget wording
5. concurrency-gate busy wording
6. transient provider status codes, probed on the error and then on its
   nested ``error`` object
7. generic retryable upstream wording
8. everything else is internal and not retried
"""

import re
from collections.abc import Mapping
from dataclasses import dataclass
from enum import Enum
from typing import Any, Optional, Sequence

from pydantic import ValidationError as PydanticValidationError

from .errors import (
    RequestCancelledError,
    RequestValidationError,
    SchemaValidationError,
)


class ErrorKind(str, Enum):
    """Stable failure taxonomy reported to callers."""

    VALIDATION = "validation"
    BUDGET = "budget"
    UPSTREAM = "upstream"
    TIMEOUT = "timeout"
    CANCELLED = "cancelled"
    BUSY = "busy"
    INTERNAL = "internal"


@dataclass(frozen=True)
class ErrorMeta:
    """Classification of a single failure."""

    kind: ErrorKind
    retryable: bool


VALIDATION_ERROR_PATTERN = re.compile(r"validation", re.IGNORECASE)
CANCELLED_ERROR_PATTERN = re.compile(r"cancelled|canceled", re.IGNORECASE)
TIMEOUT_ERROR_PATTERN = re.compile(r"timed out|timeout", re.IGNORECASE)
BUDGET_ERROR_PATTERN = re.compile(
    r"exceeds limit|max allowed size|input too large", re.IGNORECASE
)
BUSY_ERROR_PATTERN = re.compile(r"too many concurrent", re.IGNORECASE)

# Matches transient upstream provider failures that are typically safe to retry
RETRYABLE_UPSTREAM_ERROR_PATTERN = re.compile(
    r"(429|500|502|503|504|rate.?limit|quota|overload|unavailable|gateway"
    r"|timeout|timed.out|connection|reset|econn|enotfound|temporary|transient"
    r"|invalid.json)",
    re.IGNORECASE,
)

RETRYABLE_NUMERIC_CODES = frozenset({429, 500, 502, 503, 504})
RETRYABLE_TRANSIENT_CODES = frozenset(
    {"RESOURCE_EXHAUSTED", "UNAVAILABLE", "DEADLINE_EXCEEDED", "INTERNAL", "ABORTED"}
)

# Probed in order; attribute names for exceptions, keys for mappings
NUMERIC_ERROR_KEYS = ("status", "status_code", "statusCode", "code")
TRANSIENT_ERROR_KEYS = ("code", "status", "status_text", "statusText")
NESTED_ERROR_KEY = "error"

VALIDATION_META = ErrorMeta(ErrorKind.VALIDATION, False)
CANCELLED_META = ErrorMeta(ErrorKind.CANCELLED, False)
BUDGET_META = ErrorMeta(ErrorKind.BUDGET, False)
UPSTREAM_META = ErrorMeta(ErrorKind.UPSTREAM, True)
INTERNAL_META = ErrorMeta(ErrorKind.INTERNAL, False)

_MESSAGE_CLASSIFIERS = (
    (TIMEOUT_ERROR_PATTERN, ErrorMeta(ErrorKind.TIMEOUT, True)),
    (BUDGET_ERROR_PATTERN, BUDGET_META),
    (BUSY_ERROR_PATTERN, ErrorMeta(ErrorKind.BUSY, True)),
)

_DIGITS_ONLY_PATTERN = re.compile(r"^\d+$")


def _lookup(source: Any, key: str) -> Any:
    if isinstance(source, Mapping):
        return source.get(key)
    try:
        return getattr(source, key, None)
    except Exception:  # noqa: BLE001 - misbehaving properties count as a miss
        return None


def _to_numeric_code(candidate: Any) -> Optional[int]:
    if isinstance(candidate, bool):
        return None
    if isinstance(candidate, int):
        return candidate
    if isinstance(candidate, str) and _DIGITS_ONLY_PATTERN.match(candidate.strip()):
        return int(candidate.strip())
    return None


def _to_upper_string_code(candidate: Any) -> Optional[str]:
    if not isinstance(candidate, str):
        return None
    normalized = candidate.strip().upper()
    return normalized or None


def _probe_sources(error: Any) -> Sequence[Any]:
    if error is None or isinstance(error, (str, bytes, int, float, bool)):
        return ()
    nested = _lookup(error, NESTED_ERROR_KEY)
    if nested is None or isinstance(nested, (str, bytes, int, float, bool)):
        return (error,)
    return (error, nested)


def get_numeric_error_code(error: Any) -> Optional[int]:
    """Extract a numeric status code from a provider-shaped error.

    Checks ``NUMERIC_ERROR_KEYS`` on the error itself, then on its nested
    ``error`` object. Digit-only strings count as numeric. Returns None on a
    miss and never raises.
    """
    for source in _probe_sources(error):
        for key in NUMERIC_ERROR_KEYS:
            code = _to_numeric_code(_lookup(source, key))
            if code is not None:
                return code
    return None


def get_transient_error_code(error: Any) -> Optional[str]:
    """Extract an upper-cased string status (e.g. ``UNAVAILABLE``), or None."""
    for source in _probe_sources(error):
        for key in TRANSIENT_ERROR_KEYS:
            code = _to_upper_string_code(_lookup(source, key))
            if code is not None and not _DIGITS_ONLY_PATTERN.match(code):
                return code
    return None


def has_retryable_status(error: Any) -> bool:
    """True when the error carries a known transient numeric or string code."""
    numeric_code = get_numeric_error_code(error)
    if numeric_code is not None and numeric_code in RETRYABLE_NUMERIC_CODES:
        return True

    transient_code = get_transient_error_code(error)
    return transient_code is not None and transient_code in RETRYABLE_TRANSIENT_CODES


def get_error_message(error: Any) -> str:
    """Best-effort human-readable message for any raised or returned failure."""
    if isinstance(error, str):
        return error
    if isinstance(error, BaseException):
        message = str(error)
        return message if message else type(error).__name__
    if isinstance(error, Mapping):
        message = error.get("message")
        if isinstance(message, str):
            return message
    message = getattr(error, "message", None)
    if isinstance(message, str):
        return message
    return repr(error)


def is_validation_failure(error: Any) -> bool:
    """True for schema or request validation failure objects."""
    return isinstance(
        error, (SchemaValidationError, RequestValidationError, PydanticValidationError)
    )


def is_cancellation(error: Any, message: str) -> bool:
    """True for cancellation wording, or a cancellation without a timeout reason."""
    if CANCELLED_ERROR_PATTERN.search(message):
        return True
    if not isinstance(error, RequestCancelledError):
        return False
    return not TIMEOUT_ERROR_PATTERN.search(message)


def classify_error(error: Any, message: Optional[str] = None) -> ErrorMeta:
    """
    Classify a failure into a stable error kind.

    Args:
        error: The raw failure (exception, mapping, or any provider object)
        message: Message to match against; derived from ``error`` when omitted

    Returns:
        ErrorMeta with the kind and whether an internal retry is allowed
    """
    if message is None:
        message = get_error_message(error)

    if is_validation_failure(error) or VALIDATION_ERROR_PATTERN.search(message):
        return VALIDATION_META

    if is_cancellation(error, message):
        return CANCELLED_META

    for pattern, meta in _MESSAGE_CLASSIFIERS:
        if pattern.search(message):
            return meta

    if has_retryable_status(error):
        return UPSTREAM_META

    if RETRYABLE_UPSTREAM_ERROR_PATTERN.search(message):
        return UPSTREAM_META

    return INTERNAL_META
