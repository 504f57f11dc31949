"""Tool-facing helpers built on the execution core.

Example usage:
    from review_analyst.execution import ExecutionRuntime, PromptParts
    from review_analyst.tools import StructuredToolTask, ToolExecutionContext, run_structured_tool

    task = StructuredToolTask(
        name="generate_review_summary",
        error_code="E_REVIEW_SUMMARY",
        result_model=ReviewSummary,
        build_prompt=lambda tool_input, ctx: PromptParts(f"Summarize:\\n{ctx.diff}"),
        requires_diff=True,
    )
    response = await run_structured_tool(
        task, {}, ExecutionRuntime(), ToolExecutionContext(diff=diff_text)
    )
"""

from .structured_task import (
    NO_DIFF_CODE,
    NO_FILE_CODE,
    StructuredToolTask,
    ToolExecutionContext,
    build_preflight_checks,
    no_diff_error,
    no_file_error,
    run_structured_tool,
)
from .tool_response import create_error_tool_response, create_tool_response

__all__ = [
    "NO_DIFF_CODE",
    "NO_FILE_CODE",
    "StructuredToolTask",
    "ToolExecutionContext",
    "build_preflight_checks",
    "create_error_tool_response",
    "create_tool_response",
    "no_diff_error",
    "no_file_error",
    "run_structured_tool",
]
