"""Upstream structured-generation provider interface."""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Dict, Optional

from review_analyst.utils.logger import get_logger

logger = get_logger(__name__)

DEFAULT_TEMPERATURE = 0.2
DEFAULT_MAX_OUTPUT_TOKENS = 16_384

THINKING_LEVELS = ("minimal", "low", "medium", "high")


@dataclass(frozen=True)
class GenerationRequest:
    """One upstream call, as seen by a provider."""

    prompt: str
    response_schema: Dict[str, Any]
    model: str
    system_instruction: Optional[str] = None
    temperature: Optional[float] = None
    max_output_tokens: Optional[int] = None
    thinking_level: Optional[str] = None


class ProviderError(Exception):
    """Base exception for provider errors."""

    pass


class InvalidModelResponseError(ProviderError):
    """The response body was empty or not valid JSON."""

    pass


class StructuredGenerationProvider(ABC):
    """Turns a prompt into a JSON value shaped by a response schema.

    Implementations raise provider-shaped errors (exceptions carrying
    ``code``/``status`` fields or descriptive messages); the executor
    classifies them. Timeouts and cancellation are applied by the caller.
    """

    def __init__(self, config: Dict[str, Any]):
        self.config = config

    @abstractmethod
    async def initialize(self) -> None:
        """Initialize the provider connection."""
        pass

    @abstractmethod
    async def generate(self, request: GenerationRequest) -> Any:
        """Return the parsed JSON produced for ``request``."""
        pass

    async def shutdown(self) -> None:
        """Cleanup provider resources."""
        pass
