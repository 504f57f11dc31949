"""Utility modules for the review analyst."""

from review_analyst.utils.logger import get_logger, setup_logging
from review_analyst.utils.retry import (
    DEFAULT_BACKOFF,
    RETRY_DELAY_BASE_MS,
    RETRY_DELAY_MAX_MS,
    RETRY_JITTER_RATIO,
    BackoffPolicy,
    calculate_delay,
    can_retry,
    get_attempt_count,
)

__all__ = [
    "BackoffPolicy",
    "DEFAULT_BACKOFF",
    "RETRY_DELAY_BASE_MS",
    "RETRY_DELAY_MAX_MS",
    "RETRY_JITTER_RATIO",
    "calculate_delay",
    "can_retry",
    "get_attempt_count",
    "get_logger",
    "setup_logging",
]
