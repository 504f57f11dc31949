"""Exponential backoff for retrying upstream structured-generation calls.

Delays are expressed in milliseconds. The policy constants are fixed: a 300ms
base doubled per attempt, clamped to 5s, with up to 20% additive jitter that
can never push the delay past the ceiling.
"""

import math
import random
from dataclasses import dataclass
from typing import TYPE_CHECKING, Optional

if TYPE_CHECKING:
    from review_analyst.execution.error_classifier import ErrorMeta

RETRY_DELAY_BASE_MS = 300
RETRY_DELAY_MAX_MS = 5_000
RETRY_JITTER_RATIO = 0.2


@dataclass(frozen=True)
class BackoffPolicy:
    """Backoff parameters for retry delays.

    Attributes:
        base_ms: Delay before the first retry, before jitter
        max_ms: Ceiling applied before and after jitter
        jitter_ratio: Upper bound of the jitter window relative to the delay
    """

    base_ms: int = RETRY_DELAY_BASE_MS
    max_ms: int = RETRY_DELAY_MAX_MS
    jitter_ratio: float = RETRY_JITTER_RATIO


DEFAULT_BACKOFF = BackoffPolicy()


def calculate_delay(
    attempt: int,
    policy: BackoffPolicy = DEFAULT_BACKOFF,
    rng: Optional[random.Random] = None,
) -> int:
    """
    Calculate the delay before retrying after a failed attempt.

    Args:
        attempt: The attempt that just failed (0-based, 0 = the initial call)
        policy: Backoff parameters
        rng: Random source for jitter; pass a seeded instance for determinism

    Returns:
        Delay in milliseconds, never above ``policy.max_ms``
    """
    attempt = max(0, attempt)
    exponential_delay = policy.base_ms * (2**attempt)
    bounded_delay = min(policy.max_ms, exponential_delay)

    jitter_window = max(1, math.ceil(bounded_delay * policy.jitter_ratio))
    source = rng or random
    jitter = source.randrange(jitter_window)  # nosec B311 - jitter, not crypto

    return min(policy.max_ms, bounded_delay + jitter)


def can_retry(attempt: int, max_retries: int, meta: "ErrorMeta") -> bool:
    """Return True when a classified failure at ``attempt`` may be retried."""
    return meta.retryable and attempt < max_retries


def get_attempt_count(max_retries: int) -> int:
    """Total number of calls made when every retry is used."""
    return max_retries + 1
