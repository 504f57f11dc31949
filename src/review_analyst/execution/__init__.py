"""Shared execution core for structured upstream requests."""

from .budget import (
    INPUT_TOO_LARGE_CODE,
    BudgetLimits,
    compute_context_size,
    context_budget_error,
    diff_budget_error,
    exceeds_context_budget,
    exceeds_diff_budget,
    exceeds_file_budget,
    file_budget_error,
    validate_context_budget,
    validate_diff_budget,
    validate_file_budget,
)
from .cancellation import CancellationToken, run_cancellable, sleep_with_cancellation
from .concurrency import ConcurrencyLimiter
from .error_classifier import ErrorKind, ErrorMeta, classify_error, get_error_message
from .errors import (
    ConcurrencyBusyError,
    RequestCancelledError,
    RequestValidationError,
    SchemaValidationError,
    StructuredRequestError,
    UpstreamExhaustedError,
    UpstreamTimeoutError,
)
from .executor import StructuredRequestExecutor, execute_structured_request
from .models import ExecutionResult, PromptParts, StructuredRequest, ToolError
from .progress import TaskPhase, TaskProgress, ProgressTracker
from .runtime import ExecutionRuntime

__all__ = [
    "INPUT_TOO_LARGE_CODE",
    "BudgetLimits",
    "CancellationToken",
    "ConcurrencyBusyError",
    "ConcurrencyLimiter",
    "ErrorKind",
    "ErrorMeta",
    "ExecutionResult",
    "ExecutionRuntime",
    "ProgressTracker",
    "PromptParts",
    "RequestCancelledError",
    "RequestValidationError",
    "SchemaValidationError",
    "StructuredRequest",
    "StructuredRequestError",
    "StructuredRequestExecutor",
    "TaskPhase",
    "TaskProgress",
    "ToolError",
    "UpstreamExhaustedError",
    "UpstreamTimeoutError",
    "classify_error",
    "compute_context_size",
    "context_budget_error",
    "diff_budget_error",
    "exceeds_context_budget",
    "exceeds_diff_budget",
    "exceeds_file_budget",
    "execute_structured_request",
    "file_budget_error",
    "get_error_message",
    "run_cancellable",
    "sleep_with_cancellation",
    "validate_context_budget",
    "validate_diff_budget",
    "validate_file_budget",
]
