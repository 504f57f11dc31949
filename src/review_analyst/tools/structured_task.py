"""Declarative structured tool tasks.

A ``StructuredToolTask`` describes one review tool: which cached input it
needs, how to build its prompt, which pydantic model its result must satisfy,
and how to present the outcome. ``run_structured_tool`` turns a task plus tool
input into a ``StructuredRequest``, runs it on the shared runtime and wraps
the outcome in a tool response.
"""

from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional, Sequence

from pydantic import BaseModel

from review_analyst.execution.budget import (
    validate_context_budget,
    validate_diff_budget,
    validate_file_budget,
)
from review_analyst.execution.cancellation import CancellationToken
from review_analyst.execution.error_classifier import VALIDATION_META
from review_analyst.execution.models import (
    PreflightCheck,
    PromptParts,
    StructuredRequest,
    ToolError,
)
from review_analyst.execution.progress import LogSink, ProgressSink
from review_analyst.execution.runtime import ExecutionRuntime
from review_analyst.utils.logger import get_logger

from .tool_response import create_error_tool_response, create_tool_response

logger = get_logger(__name__)

NO_DIFF_CODE = "E_NO_DIFF"
NO_FILE_CODE = "E_NO_FILE"

NO_DIFF_MESSAGE = (
    "No diff cached. You must call the generate_diff tool before using any "
    "review tool. Run generate_diff with mode=\"unstaged\" or mode=\"staged\" to "
    "capture the current branch changes, then retry this tool."
)
NO_FILE_MESSAGE = (
    "No file cached. You must call the load_file tool before using any file "
    "analysis tool. Run load_file with the absolute path to the file, then "
    "retry this tool."
)


@dataclass(frozen=True)
class ToolExecutionContext:
    """Cached inputs visible to one tool call."""

    diff: Optional[str] = None
    file_path: Optional[str] = None
    file_content: Optional[str] = None
    files: Sequence[str] = ()


def no_diff_error() -> ToolError:
    return ToolError.from_meta(NO_DIFF_CODE, NO_DIFF_MESSAGE, VALIDATION_META)


def no_file_error() -> ToolError:
    return ToolError.from_meta(NO_FILE_CODE, NO_FILE_MESSAGE, VALIDATION_META)


@dataclass
class StructuredToolTask:
    """
    Per-tool configuration for a structured review call.

    Attributes:
        name: Tool name used in progress messages and logs
        error_code: Stable code returned on failure (e.g. ``E_INSPECT_QUALITY``)
        result_model: Pydantic model the model output must satisfy
        build_prompt: Builds prompt parts from tool input and context
        validate_input: Extra input check; return a ToolError to reject
        requires_diff: Reject with E_NO_DIFF when no diff is cached
        requires_file: Reject with E_NO_FILE when no file is cached
        schema_repair_retries: Overrides SCHEMA_REPAIR_RETRIES
        response_schema: Explicit JSON schema sent upstream
        format_output: Human-readable text for the tool response
        progress_context: Short description of the input for progress messages
        format_outcome: Completion suffix (e.g. ``"3 findings"``)
        transform_result: Post-processing of the validated result
    """

    name: str
    error_code: str
    result_model: Any
    build_prompt: Callable[[Any, ToolExecutionContext], PromptParts]
    validate_input: Optional[
        Callable[[Any, ToolExecutionContext], Optional[ToolError]]
    ] = None
    requires_diff: bool = False
    requires_file: bool = False
    schema_repair_retries: Optional[int] = None
    response_schema: Optional[Dict[str, Any]] = None
    model: Optional[str] = None
    timeout_ms: Optional[int] = None
    temperature: Optional[float] = None
    max_output_tokens: Optional[int] = None
    thinking_level: Optional[str] = None
    deterministic_json: bool = False
    format_output: Optional[Callable[[Any], str]] = None
    progress_context: Optional[Callable[[Any], str]] = None
    format_outcome: Optional[Callable[[Any], str]] = None
    transform_result: Optional[
        Callable[[Any, Any, ToolExecutionContext], Any]
    ] = None
    extra_checks: List[PreflightCheck] = field(default_factory=list)


def build_preflight_checks(
    task: StructuredToolTask,
    tool_input: Any,
    context: ToolExecutionContext,
    runtime: ExecutionRuntime,
) -> List[PreflightCheck]:
    """Presence checks, then budgets, then the task's own input validation."""
    limits = runtime.budgets
    checks: List[PreflightCheck] = []

    if task.requires_diff:
        checks.append(lambda: no_diff_error() if context.diff is None else None)
        checks.append(lambda: validate_diff_budget(context.diff or "", limits))

    if task.requires_file:
        checks.append(lambda: no_file_error() if context.file_content is None else None)
        checks.append(lambda: validate_file_budget(context.file_content or "", limits))

    if context.files:
        checks.append(
            lambda: validate_context_budget(context.diff or "", context.files, limits)
        )

    if task.validate_input is not None:
        validate = task.validate_input
        checks.append(lambda: validate(tool_input, context))

    checks.extend(task.extra_checks)
    return checks


def _dump_result(value: Any) -> Any:
    if isinstance(value, BaseModel):
        return value.model_dump(mode="json")
    return value


async def run_structured_tool(
    task: StructuredToolTask,
    tool_input: Any,
    runtime: ExecutionRuntime,
    context: Optional[ToolExecutionContext] = None,
    cancellation_token: Optional[CancellationToken] = None,
    progress_sink: Optional[ProgressSink] = None,
    log_sink: Optional[LogSink] = None,
) -> Dict[str, Any]:
    """
    Execute ``task`` for ``tool_input`` and return a tool response.

    Returns:
        ``{"content": [...], "structuredContent": {"ok": True, "result": ...}}``
        on success, or an ``isError`` response with the classified error
    """
    context = context or ToolExecutionContext()

    transform = None
    if task.transform_result is not None:
        task_transform = task.transform_result

        def transform(value: Any) -> Any:
            return task_transform(tool_input, value, context)

    request = StructuredRequest(
        response_schema=task.result_model,
        response_schema_hint=task.response_schema,
        model=task.model,
        timeout_ms=task.timeout_ms,
        temperature=task.temperature,
        max_output_tokens=task.max_output_tokens,
        thinking_level=task.thinking_level,
        schema_repair_retries=task.schema_repair_retries,
        deterministic_json=task.deterministic_json,
        error_code=task.error_code,
        tool_name=task.name,
        progress_context=(
            task.progress_context(tool_input) if task.progress_context else None
        ),
        preflight_checks=tuple(build_preflight_checks(task, tool_input, context, runtime)),
        prompt_builder=lambda: task.build_prompt(tool_input, context),
        transform_result=transform,
        format_outcome=task.format_outcome,
        cancellation_token=cancellation_token,
        progress_sink=progress_sink,
        log_sink=log_sink,
    )

    result = await runtime.executor().execute(request)

    if not result.ok:
        error = result.error
        logger.info(f"{task.name} failed with {error.code}: {error.message}")
        return create_error_tool_response(
            error.code, error.message, result=error.details, meta=error.meta
        )

    text = task.format_output(result.value) if task.format_output else None
    return create_tool_response({"ok": True, "result": _dump_result(result.value)}, text)
