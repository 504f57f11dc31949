"""Configuration management for the review analyst."""

import logging
from typing import Any, Optional

from pydantic import AliasChoices, Field, ValidationInfo, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

# Use standard logging for settings module to avoid circular imports
logger = logging.getLogger(__name__)

DEFAULT_MODEL = "gemini-2.5-flash"

_SENSITIVE_FIELD_NAMES: frozenset = frozenset({"gemini_api_key"})

SAFETY_THRESHOLDS: frozenset = frozenset(
    {"BLOCK_NONE", "BLOCK_ONLY_HIGH", "BLOCK_MEDIUM_AND_ABOVE", "BLOCK_LOW_AND_ABOVE"}
)

# Integer settings that must be positive; anything else falls back to the default
_POSITIVE_INT_FIELDS = (
    "max_concurrent_requests",
    "request_wait_timeout_ms",
    "schema_repair_error_chars",
    "request_timeout_ms",
    "max_diff_chars",
    "max_context_chars",
    "max_file_chars",
)

# Retry counters where zero is meaningful (no retries)
_NON_NEGATIVE_INT_FIELDS = ("max_retries", "schema_repair_retries")


def _parse_int(value: Any) -> Optional[int]:
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, str):
        normalized = value.strip()
        if not normalized:
            return None
        try:
            return int(normalized, 10)
        except ValueError:
            return None
    return None


class CoreSettings(BaseSettings):
    """Environment-derived settings for the structured execution core.

    Read once per process through ``load_settings()`` and shared by reference
    through ``ExecutionRuntime``.
    """

    model_config = SettingsConfigDict(extra="ignore", populate_by_name=True)

    _SENSITIVE_FIELDS: frozenset = _SENSITIVE_FIELD_NAMES

    def __repr__(self) -> str:
        """Return a representation with sensitive fields masked."""
        field_strs = []
        for field_name in type(self).model_fields:
            value = getattr(self, field_name, None)
            if field_name in self._SENSITIVE_FIELDS:
                masked = f"<{len(str(value))} chars>" if value else "None"
                field_strs.append(f"{field_name}={masked!r}")
            else:
                field_strs.append(f"{field_name}={value!r}")
        return f"{self.__class__.__name__}({', '.join(field_strs)})"

    def __str__(self) -> str:
        """Return a string representation with sensitive fields masked."""
        return self.__repr__()

    # Gemini configuration
    gemini_api_key: Optional[str] = Field(
        None, validation_alias=AliasChoices("GEMINI_API_KEY", "GOOGLE_API_KEY")
    )
    gemini_model: str = Field(DEFAULT_MODEL, validation_alias="GEMINI_MODEL")
    gemini_harm_block_threshold: str = Field(
        "BLOCK_NONE",
        validation_alias="GEMINI_HARM_BLOCK_THRESHOLD",
        description="Safety threshold applied to every harm category",
    )

    # Concurrency gate
    max_concurrent_requests: int = Field(
        10,
        validation_alias=AliasChoices("MAX_CONCURRENT_REQUESTS", "MAX_CONCURRENT_CALLS"),
        description="Maximum simultaneous upstream calls",
    )
    request_wait_timeout_ms: int = Field(
        2_000,
        validation_alias=AliasChoices(
            "REQUEST_WAIT_TIMEOUT_MS", "MAX_CONCURRENT_CALLS_WAIT_MS"
        ),
        description="How long a queued call waits for a slot before failing as busy",
    )

    # Retry and repair
    max_retries: int = Field(
        1,
        validation_alias="MAX_RETRIES",
        description="Default transport-level retries per upstream call",
    )
    schema_repair_retries: int = Field(
        1,
        validation_alias=AliasChoices("SCHEMA_REPAIR_RETRIES", "GEMINI_SCHEMA_RETRIES"),
        description="Re-invocations with validation feedback after a schema mismatch",
    )
    schema_repair_error_chars: int = Field(
        1_500,
        validation_alias=AliasChoices(
            "MAX_SCHEMA_REPAIR_ERROR_CHARS", "MAX_SCHEMA_RETRY_ERROR_CHARS"
        ),
        description="Maximum characters of validation feedback sent in a repair prompt",
    )
    request_timeout_ms: int = Field(
        60_000,
        validation_alias="REQUEST_TIMEOUT_MS",
        description="Default timeout for a single upstream attempt",
    )

    # Input budgets
    max_diff_chars: int = Field(120_000, validation_alias="MAX_DIFF_CHARS")
    max_context_chars: int = Field(500_000, validation_alias="MAX_CONTEXT_CHARS")
    max_file_chars: int = Field(120_000, validation_alias="MAX_FILE_CHARS")

    # Logging configuration
    log_level: str = Field(
        "INFO",
        validation_alias="LOG_LEVEL",
        pattern="^(DEBUG|INFO|WARNING|ERROR|CRITICAL)$",
    )
    json_logs: bool = Field(False, validation_alias="JSON_LOGS")

    @field_validator(*_POSITIVE_INT_FIELDS, mode="before")
    @classmethod
    def validate_positive_int(cls, value: Any, info: ValidationInfo) -> int:
        """Fall back to the field default for non-positive or unparsable values."""
        default = cls.model_fields[info.field_name].default
        parsed = _parse_int(value)
        if parsed is None or parsed <= 0:
            if value is not None:
                logger.warning(
                    f"Invalid value {value!r} for {info.field_name}; using default {default}"
                )
            return default
        return parsed

    @field_validator(*_NON_NEGATIVE_INT_FIELDS, mode="before")
    @classmethod
    def validate_retry_count(cls, value: Any, info: ValidationInfo) -> int:
        """Retry counters accept zero; negatives and garbage use the default."""
        default = cls.model_fields[info.field_name].default
        parsed = _parse_int(value)
        if parsed is None or parsed < 0:
            logger.warning(
                f"Invalid value {value!r} for {info.field_name}; using default {default}"
            )
            return default
        return parsed

    @field_validator("gemini_harm_block_threshold", mode="before")
    @classmethod
    def validate_harm_block_threshold(cls, value: Any) -> str:
        """Normalize the safety threshold; unknown names fall back to BLOCK_NONE."""
        if value is None:
            return "BLOCK_NONE"
        normalized = str(value).strip().upper()
        if normalized not in SAFETY_THRESHOLDS:
            logger.warning(
                f"Invalid GEMINI_HARM_BLOCK_THRESHOLD '{value}'. Falling back to 'BLOCK_NONE'."
            )
            return "BLOCK_NONE"
        return normalized

    @field_validator("log_level", mode="before")
    @classmethod
    def normalize_log_level(cls, value: Any) -> Any:
        """Accept lowercase level names."""
        return value.upper() if isinstance(value, str) else value


# Alias for callers that import Settings
Settings = CoreSettings


def load_settings(**overrides: Any) -> CoreSettings:
    """Load settings from environment variables.

    Keyword overrides take precedence over the environment and are intended
    for tests and embedding applications.
    """
    return CoreSettings(**overrides)
