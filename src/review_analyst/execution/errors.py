"""Exceptions raised inside the structured execution core.

Every exception here is converted into a classified ``ToolError`` by the
executor; none of them escapes ``StructuredRequestExecutor.execute``.
"""

from typing import List, Optional, Sequence


class StructuredRequestError(Exception):
    """Base exception for structured request failures."""

    pass


class RequestValidationError(StructuredRequestError):
    """The request failed structural pre-checks before any slot was taken."""

    def __init__(self, reason: str):
        super().__init__(f"Request validation failed: {reason}")
        self.reason = reason


class RequestCancelledError(StructuredRequestError):
    """A cancellation token fired while the call was suspended.

    The message is the token's reason, so a deadline-driven cancellation
    classifies as a timeout rather than an explicit cancellation.
    """

    def __init__(self, message: str = "Request was cancelled."):
        super().__init__(message)


class ConcurrencyBusyError(StructuredRequestError):
    """No concurrency slot became free within the wait timeout."""

    def __init__(self, limit: int, wait_timeout_ms: int):
        super().__init__(
            f"Too many concurrent Gemini calls (limit: {limit:,}). "
            f"No slot freed up within {wait_timeout_ms:,}ms; try again later."
        )
        self.limit = limit
        self.wait_timeout_ms = wait_timeout_ms


class UpstreamTimeoutError(StructuredRequestError):
    """A single upstream attempt exceeded its timeout."""

    def __init__(self, timeout_ms: int):
        super().__init__(f"Gemini request timed out after {timeout_ms:,}ms.")
        self.timeout_ms = timeout_ms


class UpstreamExhaustedError(StructuredRequestError):
    """All transport attempts failed; wraps the last underlying failure."""

    def __init__(self, attempts: int, last_exception: BaseException, message: str):
        noun = "attempt" if attempts == 1 else "attempts"
        super().__init__(f"Gemini request failed after {attempts} {noun}: {message}")
        self.attempts = attempts
        self.last_exception = last_exception


class SchemaValidationError(StructuredRequestError):
    """The model output did not conform to the response schema."""

    def __init__(self, summary: str, issues: Optional[Sequence[str]] = None):
        super().__init__(f"Schema validation failed: {summary}")
        self.summary = summary
        self.issues: List[str] = list(issues or [])
