"""Structured request executor.

Runs one ``StructuredRequest`` through the fixed lifecycle:

    STARTING -> VALIDATING_INPUT -> BUILDING_PROMPT -> (slot) -> CALLING_MODEL
    -> VALIDATING_RESPONSE -> FINALIZING -> (release) -> DONE

Transport failures are classified and retried with jittered backoff; schema
mismatches are repaired by re-invoking the model with the validation feedback.
Every failure leaves ``execute()`` as a classified ``ToolError``.
"""

import asyncio
import inspect
import random
import re
import time
import uuid
from typing import TYPE_CHECKING, Any, Awaitable, Callable, Dict, Optional

from review_analyst.ai_providers.base import (
    THINKING_LEVELS,
    GenerationRequest,
    StructuredGenerationProvider,
)
from review_analyst.ai_providers.factory import get_default_timeout_ms
from review_analyst.schemas.validation import (
    PydanticSchemaValidator,
    SchemaValidator,
    build_response_schema,
)
from review_analyst.utils.logger import (
    bind_request_context,
    clear_request_context,
    get_logger,
)
from review_analyst.utils.retry import (
    DEFAULT_BACKOFF,
    BackoffPolicy,
    calculate_delay,
    can_retry,
)

from .cancellation import CancellationToken, run_cancellable, sleep_with_cancellation
from .concurrency import ConcurrencyLimiter
from .error_classifier import (
    VALIDATION_META,
    ErrorKind,
    classify_error,
    get_error_message,
)
from .errors import (
    RequestCancelledError,
    RequestValidationError,
    SchemaValidationError,
    UpstreamExhaustedError,
)
from .models import ExecutionResult, PromptParts, StructuredRequest, ToolError
from .progress import (
    ProgressTracker,
    TaskPhase,
    call_sink_safely,
    create_failure_status_message,
)

if TYPE_CHECKING:
    from review_analyst.config.settings import CoreSettings

    from .runtime import ExecutionRuntime

logger = get_logger(__name__)

MIN_SCHEMA_REPAIR_ERROR_CHARS = 200
SCHEMA_REPAIR_PREFIX = "CRITICAL: The previous response failed schema validation."
DETERMINISTIC_JSON_REPAIR_NOTE = (
    "Deterministic JSON mode: keep key names exactly as schema-defined "
    "and preserve stable field ordering."
)

MIN_TEMPERATURE = 0.0
MAX_TEMPERATURE = 2.0

_WHITESPACE_PATTERN = re.compile(r"\s+")

SleepFunc = Callable[[int, Optional[CancellationToken]], Awaitable[None]]


def summarize_schema_validation_error(error_message: str, max_chars: int) -> str:
    """Compact validation feedback so it fits into a repair prompt."""
    limit = max(MIN_SCHEMA_REPAIR_ERROR_CHARS, max_chars)
    compact = _WHITESPACE_PATTERN.sub(" ", error_message).strip()
    if len(compact) <= limit:
        return compact
    return f"{compact[: limit - 3]}..."


def create_schema_repair_prompt(
    prompt: str, summary: str, deterministic_json: bool = False
) -> str:
    """Prepend validation feedback to the original prompt."""
    note = f"\n{DETERMINISTIC_JSON_REPAIR_NOTE}" if deterministic_json else ""
    return f"{SCHEMA_REPAIR_PREFIX} Error: {summary}{note}\n\n{prompt}"


def _deadline_reason(deadline_ms: int) -> str:
    return f"Structured request timed out after {deadline_ms:,}ms."


class StructuredRequestExecutor:
    """Executes structured requests against one provider behind one limiter."""

    def __init__(
        self,
        provider: StructuredGenerationProvider,
        limiter: ConcurrencyLimiter,
        settings: "CoreSettings",
        validator: Optional[SchemaValidator] = None,
        backoff: BackoffPolicy = DEFAULT_BACKOFF,
        rng: Optional[random.Random] = None,
        sleep: SleepFunc = sleep_with_cancellation,
    ):
        self.provider = provider
        self.limiter = limiter
        self.settings = settings
        self.validator = validator or PydanticSchemaValidator()
        self.backoff = backoff
        self.rng = rng
        self._sleep = sleep

    async def execute(self, request: StructuredRequest) -> ExecutionResult:
        """
        Run ``request`` to completion.

        Never raises for request failures; only the cancellation of the
        awaiting task itself propagates.

        Returns:
            ExecutionResult with the validated value or a classified ToolError
        """
        model = request.model or self.settings.gemini_model
        bind_request_context(uuid.uuid4().hex[:12], model)

        tracker = ProgressTracker(
            request.progress_sink, request.tool_name, request.progress_context
        )
        token = CancellationToken.linked(request.cancellation_token)
        deadline = self._arm_deadline(token, request.deadline_ms)
        holds_slot = False

        try:
            await tracker.start()

            await tracker.advance(TaskPhase.VALIDATING_INPUT)
            self._check_request(request)
            for check in request.preflight_checks:
                rejection = check()
                if rejection is not None:
                    logger.info(
                        f"Request rejected before execution: {rejection.message}",
                        code=rejection.code,
                    )
                    return await self._finish_with_error(tracker, rejection)

            await tracker.advance(TaskPhase.BUILDING_PROMPT)
            parts = await self._build_prompt(request)

            await self.limiter.acquire(token)
            holds_slot = True
            await self._emit(
                request,
                "info",
                "gemini_queue_acquired",
                active=self.limiter.active,
                limit=self.limiter.limit,
            )

            await tracker.advance(TaskPhase.CALLING_MODEL)
            value = await self._generate_validated(request, parts, model, token, tracker)

            await tracker.advance(TaskPhase.FINALIZING)
            if request.transform_result is not None:
                value = request.transform_result(value)
            outcome = (
                request.format_outcome(value) if request.format_outcome else "completed"
            )
            self.limiter.release()
            holds_slot = False
            await tracker.complete(outcome)
            return ExecutionResult.success(value)

        except Exception as e:
            if holds_slot:
                self.limiter.release()
                holds_slot = False
            error = self._to_tool_error(request, e)
            if error.kind is ErrorKind.INTERNAL:
                logger.error(f"Structured request failed: {error.message}", exc_info=True)
            else:
                logger.warning(
                    f"Structured request failed: {error.message}",
                    kind=error.kind.value,
                    retryable=error.retryable,
                )
            return await self._finish_with_error(tracker, error)

        finally:
            if holds_slot:
                self.limiter.release()
            if deadline is not None:
                deadline.cancel()
            token.detach()
            clear_request_context()

    # --- lifecycle steps ---

    def _arm_deadline(
        self, token: CancellationToken, deadline_ms: Optional[int]
    ) -> Optional[asyncio.TimerHandle]:
        if deadline_ms is None or deadline_ms <= 0:
            return None
        loop = asyncio.get_running_loop()
        return loop.call_later(
            deadline_ms / 1000, token.cancel, _deadline_reason(deadline_ms)
        )

    def _check_request(self, request: StructuredRequest) -> None:
        if request.response_schema is None:
            raise RequestValidationError("response_schema is required")
        if not request.prompt.strip() and request.prompt_builder is None:
            raise RequestValidationError("prompt must be a non-empty string")
        if request.max_retries is not None and request.max_retries < 0:
            raise RequestValidationError("max_retries must be >= 0")
        if request.schema_repair_retries is not None and request.schema_repair_retries < 0:
            raise RequestValidationError("schema_repair_retries must be >= 0")
        if request.timeout_ms is not None and request.timeout_ms <= 0:
            raise RequestValidationError("timeout_ms must be > 0")
        if request.deadline_ms is not None and request.deadline_ms <= 0:
            raise RequestValidationError("deadline_ms must be > 0")
        if request.max_output_tokens is not None and request.max_output_tokens <= 0:
            raise RequestValidationError("max_output_tokens must be > 0")
        if request.temperature is not None and not (
            MIN_TEMPERATURE <= request.temperature <= MAX_TEMPERATURE
        ):
            raise RequestValidationError(
                f"temperature must be between {MIN_TEMPERATURE} and {MAX_TEMPERATURE}"
            )
        if (
            request.thinking_level is not None
            and request.thinking_level.lower() not in THINKING_LEVELS
        ):
            raise RequestValidationError(
                f"thinking_level must be one of {', '.join(THINKING_LEVELS)}"
            )

    async def _build_prompt(self, request: StructuredRequest) -> PromptParts:
        if request.prompt_builder is None:
            return PromptParts(request.prompt, request.system_instruction)

        parts = request.prompt_builder()
        if inspect.isawaitable(parts):
            parts = await parts
        if not parts.prompt.strip():
            raise RequestValidationError("prompt builder produced an empty prompt")
        if parts.system_instruction is None and request.system_instruction:
            return PromptParts(parts.prompt, request.system_instruction)
        return parts

    async def _generate_validated(
        self,
        request: StructuredRequest,
        parts: PromptParts,
        model: str,
        token: CancellationToken,
        tracker: ProgressTracker,
    ) -> Any:
        response_schema = build_response_schema(
            request.response_schema, request.response_schema_hint
        )
        repair_budget = (
            request.schema_repair_retries
            if request.schema_repair_retries is not None
            else self.settings.schema_repair_retries
        )

        raw = await self._generate_with_retries(
            request, self._generation(request, parts, parts.prompt, model, response_schema), token
        )
        await tracker.advance(TaskPhase.VALIDATING_RESPONSE)

        repairs = 0
        while True:
            outcome = self.validator.validate(raw, request.response_schema)
            if outcome.ok:
                return outcome.value

            summary = summarize_schema_validation_error(
                "; ".join(outcome.issues), self.settings.schema_repair_error_chars
            )
            if repairs >= repair_budget:
                raise SchemaValidationError(summary, outcome.issues)

            repairs += 1
            await self._emit(
                request,
                "warning",
                "schema_validation_failed",
                repair_attempt=repairs,
                repair_budget=repair_budget,
                error=summary,
            )

            repair_prompt = create_schema_repair_prompt(
                parts.prompt, summary, request.deterministic_json
            )
            try:
                raw = await self._generate_with_retries(
                    request,
                    self._generation(request, parts, repair_prompt, model, response_schema),
                    token,
                )
            except RequestCancelledError:
                raise
            except Exception as e:
                # The schema mismatch is the more useful failure to report
                logger.warning(f"Schema repair call failed: {get_error_message(e)}")
                raise SchemaValidationError(summary, outcome.issues) from e

    def _default_timeout_ms(self, model: str) -> int:
        # An explicit REQUEST_TIMEOUT_MS beats the per-model preset
        if "request_timeout_ms" in self.settings.model_fields_set:
            return self.settings.request_timeout_ms
        return get_default_timeout_ms(model)

    def _generation(
        self,
        request: StructuredRequest,
        parts: PromptParts,
        prompt: str,
        model: str,
        response_schema: Dict[str, Any],
    ) -> GenerationRequest:
        return GenerationRequest(
            prompt=prompt,
            response_schema=response_schema,
            model=model,
            system_instruction=parts.system_instruction,
            temperature=request.temperature,
            max_output_tokens=request.max_output_tokens,
            thinking_level=request.thinking_level,
        )

    async def _generate_with_retries(
        self,
        request: StructuredRequest,
        generation: GenerationRequest,
        token: CancellationToken,
    ) -> Any:
        """Call the provider, retrying classified-retryable failures."""
        max_retries = (
            request.max_retries
            if request.max_retries is not None
            else self.settings.max_retries
        )
        timeout_ms = request.timeout_ms or self._default_timeout_ms(generation.model)
        attempt = 0

        while True:
            token.raise_if_cancelled()
            started_at = time.monotonic()
            try:
                raw = await run_cancellable(
                    self.provider.generate(generation), token, timeout_ms
                )
            except RequestCancelledError:
                raise
            except Exception as e:
                if token.cancelled:
                    raise RequestCancelledError(token.reason) from e

                message = get_error_message(e)
                meta = classify_error(e, message)
                if not can_retry(attempt, max_retries, meta):
                    await self._emit(
                        request,
                        "error",
                        "gemini_failure",
                        attempt=attempt + 1,
                        kind=meta.kind.value,
                        error=message,
                    )
                    if meta.retryable:
                        raise UpstreamExhaustedError(attempt + 1, e, message) from e
                    raise

                delay_ms = calculate_delay(attempt, self.backoff, self.rng)
                attempt += 1
                await self._emit(
                    request,
                    "warning",
                    "gemini_retry",
                    attempt=attempt,
                    max_retries=max_retries,
                    delay_ms=delay_ms,
                    error=message,
                )
                await self._sleep(delay_ms, token)
                continue

            await self._emit(
                request,
                "info",
                "gemini_call",
                attempt=attempt + 1,
                model=generation.model,
                duration_ms=round((time.monotonic() - started_at) * 1000),
            )
            return raw

    # --- reporting ---

    async def _emit(
        self, request: StructuredRequest, level: str, event: str, **details: Any
    ) -> None:
        getattr(logger, level)(event, tool=request.tool_name, **details)
        await call_sink_safely(
            request.log_sink, level, {"event": event, "details": details}
        )

    def _to_tool_error(self, request: StructuredRequest, error: Exception) -> ToolError:
        message = get_error_message(error)
        if isinstance(error, UpstreamExhaustedError):
            meta = classify_error(error.last_exception, message)
        elif isinstance(error, RequestValidationError):
            meta = VALIDATION_META
        else:
            meta = classify_error(error, message)

        details = None
        if isinstance(error, SchemaValidationError):
            details = {"issues": error.issues}
        return ToolError.from_meta(request.error_code, message, meta, details)

    async def _finish_with_error(
        self, tracker: ProgressTracker, error: ToolError
    ) -> ExecutionResult:
        outcome = "cancelled" if error.kind is ErrorKind.CANCELLED else "failed"
        await tracker.complete(create_failure_status_message(outcome, error.message))
        return ExecutionResult.failure(error)


async def execute_structured_request(
    request: StructuredRequest, runtime: "ExecutionRuntime"
) -> Dict[str, Any]:
    """Run ``request`` on the runtime's executor and return the dict form."""
    result = await runtime.executor().execute(request)
    return result.to_dict()
