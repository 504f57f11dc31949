"""Request and result types for the structured execution core."""

from dataclasses import dataclass, field
from typing import Any, Callable, Dict, Optional, Tuple

from .cancellation import CancellationToken
from .error_classifier import ErrorKind, ErrorMeta
from .progress import LogSink, ProgressSink

DEFAULT_ERROR_CODE = "E_STRUCTURED_REQUEST"


@dataclass(frozen=True)
class ToolError:
    """Classified failure returned to tool callers."""

    code: str
    message: str
    kind: ErrorKind
    retryable: bool
    details: Optional[Dict[str, Any]] = None

    @classmethod
    def from_meta(
        cls,
        code: str,
        message: str,
        meta: ErrorMeta,
        details: Optional[Dict[str, Any]] = None,
    ) -> "ToolError":
        return cls(
            code=code,
            message=message,
            kind=meta.kind,
            retryable=meta.retryable,
            details=details,
        )

    @property
    def meta(self) -> ErrorMeta:
        return ErrorMeta(self.kind, self.retryable)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "code": self.code,
            "message": self.message,
            "kind": self.kind.value,
            "retryable": self.retryable,
        }


@dataclass(frozen=True)
class PromptParts:
    """Prompt produced by a tool's prompt builder."""

    prompt: str
    system_instruction: Optional[str] = None


PreflightCheck = Callable[[], Optional[ToolError]]
PromptBuilder = Callable[[], PromptParts]


@dataclass(frozen=True)
class StructuredRequest:
    """
    A single structured-generation request. Never mutated after submission.

    Attributes:
        prompt: User prompt; may be empty when ``prompt_builder`` is given
        response_schema: Type validated with pydantic (a model class or any
            TypeAdapter-compatible type)
        system_instruction: Optional system instruction
        response_schema_hint: JSON schema sent upstream; derived from
            ``response_schema`` when omitted
        model: Gemini model name; settings default when omitted
        max_retries: Transport retries; settings default when omitted
        timeout_ms: Timeout per upstream attempt
        deadline_ms: Timeout for the whole call, including queueing
        schema_repair_retries: Repair re-invocations; settings default when omitted
        deterministic_json: Ask for stable key names/ordering on repair
        error_code: Stable code reported on failure
        tool_name: Name used in progress messages and logs
        progress_context: Short description shown in progress messages
        preflight_checks: Cheap checks run before a slot is taken; each
            returns a ToolError to reject the request
        prompt_builder: Builds the prompt after pre-flight checks pass
        transform_result: Applied to the validated value while finalizing
        format_outcome: Short outcome suffix for the completion progress message
    """

    response_schema: Any
    prompt: str = ""
    system_instruction: Optional[str] = None
    response_schema_hint: Optional[Dict[str, Any]] = None
    model: Optional[str] = None
    max_retries: Optional[int] = None
    timeout_ms: Optional[int] = None
    deadline_ms: Optional[int] = None
    temperature: Optional[float] = None
    max_output_tokens: Optional[int] = None
    thinking_level: Optional[str] = None
    schema_repair_retries: Optional[int] = None
    deterministic_json: bool = False
    error_code: str = DEFAULT_ERROR_CODE
    tool_name: str = "structured_request"
    progress_context: Optional[str] = None
    preflight_checks: Tuple[PreflightCheck, ...] = field(default_factory=tuple)
    prompt_builder: Optional[PromptBuilder] = None
    transform_result: Optional[Callable[[Any], Any]] = None
    format_outcome: Optional[Callable[[Any], str]] = None
    cancellation_token: Optional[CancellationToken] = None
    progress_sink: Optional[ProgressSink] = None
    log_sink: Optional[LogSink] = None


@dataclass(frozen=True)
class ExecutionResult:
    """Outcome of ``StructuredRequestExecutor.execute``."""

    ok: bool
    value: Any = None
    error: Optional[ToolError] = None

    @classmethod
    def success(cls, value: Any) -> "ExecutionResult":
        return cls(ok=True, value=value)

    @classmethod
    def failure(cls, error: ToolError) -> "ExecutionResult":
        return cls(ok=False, error=error)

    def to_dict(self) -> Dict[str, Any]:
        if self.ok:
            return {"ok": True, "value": self.value}
        assert self.error is not None
        return {"ok": False, "error": self.error.to_dict()}
