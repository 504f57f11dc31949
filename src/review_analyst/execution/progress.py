"""Lifecycle phases and progress reporting for structured requests."""

import inspect
import re
from dataclasses import dataclass
from enum import IntEnum
from typing import Any, Awaitable, Callable, Optional, Union

from review_analyst.utils.logger import get_logger

logger = get_logger(__name__)

DEFAULT_PROGRESS_CONTEXT = "request"
MAX_PROGRESS_CONTEXT_CHARS = 80

_WHITESPACE_PATTERN = re.compile(r"\s+")


class TaskPhase(IntEnum):
    """Fixed lifecycle of a structured request, in emission order."""

    STARTING = 0
    VALIDATING_INPUT = 1
    BUILDING_PROMPT = 2
    CALLING_MODEL = 3
    VALIDATING_RESPONSE = 4
    FINALIZING = 5
    DONE = 6


TASK_PROGRESS_TOTAL = int(TaskPhase.DONE)

PHASE_MESSAGES = {
    TaskPhase.STARTING: "Initializing...",
    TaskPhase.VALIDATING_INPUT: "Validating request parameters...",
    TaskPhase.BUILDING_PROMPT: "Constructing analysis context...",
    TaskPhase.CALLING_MODEL: "Querying Gemini model...",
    TaskPhase.VALIDATING_RESPONSE: "Verifying output structure...",
    TaskPhase.FINALIZING: "Processing results...",
    TaskPhase.DONE: "completed",
}


@dataclass(frozen=True)
class TaskProgress:
    """A single progress notification."""

    phase: TaskPhase
    message: str

    @property
    def current(self) -> int:
        return int(self.phase)

    @property
    def total(self) -> int:
        return TASK_PROGRESS_TOTAL


ProgressSink = Callable[[TaskPhase, str], Union[None, Awaitable[None]]]
LogSink = Callable[[str, Any], Union[None, Awaitable[None]]]


async def call_sink_safely(sink: Optional[Callable[..., Any]], *args: Any) -> None:
    """Invoke a sync or async sink; its failures never reach the caller."""
    if sink is None:
        return
    try:
        result = sink(*args)
        if inspect.isawaitable(result):
            await result
    except Exception as e:
        logger.debug(f"Ignoring sink failure: {e}")


def normalize_progress_context(context: Optional[str]) -> str:
    """Collapse whitespace and cap the context shown in progress messages."""
    compact = _WHITESPACE_PATTERN.sub(" ", context or "").strip()
    if not compact:
        return DEFAULT_PROGRESS_CONTEXT
    if len(compact) <= MAX_PROGRESS_CONTEXT_CHARS:
        return compact
    return f"{compact[: MAX_PROGRESS_CONTEXT_CHARS - 3]}..."


def format_progress_message(tool_name: str, context: str, metadata: str) -> str:
    return f"{tool_name}: {context} [{metadata}]"


def create_failure_status_message(outcome: str, error_message: str) -> str:
    """Status line for a failed or cancelled call."""
    if outcome == "cancelled":
        return f"cancelled: {error_message}"
    return error_message


class ProgressTracker:
    """Drives the phase sequence of one call and forwards it to a sink.

    Phases only move forward: a request to emit a phase at or below the last
    emitted one is dropped, so each transition reaches the sink at most once.
    """

    def __init__(
        self,
        sink: Optional[ProgressSink] = None,
        tool_name: str = "structured_request",
        context: Optional[str] = None,
    ):
        self._sink = sink
        self.tool_name = tool_name
        self.context = normalize_progress_context(context)
        self._phase: Optional[TaskPhase] = None

    @property
    def phase(self) -> Optional[TaskPhase]:
        """Last phase emitted, or None before ``start()``."""
        return self._phase

    async def start(self) -> None:
        await self.advance(TaskPhase.STARTING)

    async def advance(self, phase: TaskPhase, message: Optional[str] = None) -> bool:
        """
        Move to ``phase`` and notify the sink.

        Returns:
            True if the transition was emitted, False if it was not forward
        """
        if self._phase is not None and phase <= self._phase:
            logger.debug(
                f"Ignoring non-forward progress transition {self._phase.name} -> {phase.name}"
            )
            return False

        self._phase = phase
        text = format_progress_message(
            self.tool_name, self.context, message or PHASE_MESSAGES[phase]
        )
        await call_sink_safely(self._sink, phase, text)
        return True

    async def complete(self, outcome: str = "completed") -> bool:
        """Emit the terminal ``DONE`` phase with an outcome suffix."""
        return await self.advance(TaskPhase.DONE, outcome)
