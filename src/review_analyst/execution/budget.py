"""Pre-flight size budgets for diffs, files and combined context.

Each resource kind has a predicate, an error builder, and a ``validate_*``
helper combining the two. Budget errors are never retried.
"""

from dataclasses import dataclass
from typing import TYPE_CHECKING, Iterable, Optional

from .error_classifier import BUDGET_META
from .models import ToolError

if TYPE_CHECKING:
    from review_analyst.config.settings import CoreSettings

INPUT_TOO_LARGE_CODE = "E_INPUT_TOO_LARGE"

DEFAULT_MAX_DIFF_CHARS = 120_000
DEFAULT_MAX_CONTEXT_CHARS = 500_000
DEFAULT_MAX_FILE_CHARS = 120_000


@dataclass(frozen=True)
class BudgetLimits:
    """Character ceilings, read once from settings."""

    max_diff_chars: int = DEFAULT_MAX_DIFF_CHARS
    max_context_chars: int = DEFAULT_MAX_CONTEXT_CHARS
    max_file_chars: int = DEFAULT_MAX_FILE_CHARS

    @classmethod
    def from_settings(cls, settings: "CoreSettings") -> "BudgetLimits":
        return cls(
            max_diff_chars=settings.max_diff_chars,
            max_context_chars=settings.max_context_chars,
            max_file_chars=settings.max_file_chars,
        )


def _budget_error(message: str, provided_chars: int, max_chars: int) -> ToolError:
    return ToolError.from_meta(
        INPUT_TOO_LARGE_CODE,
        message,
        BUDGET_META,
        details={"providedChars": provided_chars, "maxChars": max_chars},
    )


# --- Diff budget ---


def exceeds_diff_budget(diff: str, limits: BudgetLimits) -> bool:
    return len(diff) > limits.max_diff_chars


def diff_budget_error(provided_chars: int, limits: BudgetLimits) -> ToolError:
    max_chars = limits.max_diff_chars
    return _budget_error(
        f"diff exceeds max allowed size ({provided_chars:,} chars > {max_chars:,} chars)",
        provided_chars,
        max_chars,
    )


def validate_diff_budget(diff: str, limits: BudgetLimits) -> Optional[ToolError]:
    if not exceeds_diff_budget(diff, limits):
        return None
    return diff_budget_error(len(diff), limits)


# --- File budget ---


def exceeds_file_budget(content: str, limits: BudgetLimits) -> bool:
    return len(content) > limits.max_file_chars


def file_budget_error(provided_chars: int, limits: BudgetLimits) -> ToolError:
    max_chars = limits.max_file_chars
    return _budget_error(
        f"File exceeds max allowed size ({provided_chars:,} chars > {max_chars:,} chars)",
        provided_chars,
        max_chars,
    )


def validate_file_budget(content: str, limits: BudgetLimits) -> Optional[ToolError]:
    if not exceeds_file_budget(content, limits):
        return None
    return file_budget_error(len(content), limits)


# --- Combined context budget ---


def compute_context_size(diff: str, files: Optional[Iterable[str]] = None) -> int:
    """Diff length plus the length of every attached file's content."""
    return len(diff) + sum(len(content) for content in files or ())


def exceeds_context_budget(size: int, limits: BudgetLimits) -> bool:
    return size > limits.max_context_chars


def context_budget_error(provided_chars: int, limits: BudgetLimits) -> ToolError:
    max_chars = limits.max_context_chars
    return _budget_error(
        f"Combined context size {provided_chars:,} chars exceeds limit of {max_chars:,} chars.",
        provided_chars,
        max_chars,
    )


def validate_context_budget(
    diff: str, files: Optional[Iterable[str]], limits: BudgetLimits
) -> Optional[ToolError]:
    size = compute_context_size(diff, files)
    if not exceeds_context_budget(size, limits):
        return None
    return context_budget_error(size, limits)
