"""Upstream structured-generation providers."""

from .base import (
    GenerationRequest,
    InvalidModelResponseError,
    ProviderError,
    StructuredGenerationProvider,
)
from .factory import FLASH_MODEL, PRO_MODEL, create_provider, get_default_timeout_ms
from .gemini import GeminiProvider

__all__ = [
    "FLASH_MODEL",
    "GeminiProvider",
    "GenerationRequest",
    "InvalidModelResponseError",
    "PRO_MODEL",
    "ProviderError",
    "StructuredGenerationProvider",
    "create_provider",
    "get_default_timeout_ms",
]
