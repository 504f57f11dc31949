"""Process-wide execution runtime.

Owns the objects that must be shared by every tool call in a process: the
settings snapshot, the concurrency limiter, the budget limits and the
upstream provider.
"""

from typing import Optional

from review_analyst.ai_providers.base import StructuredGenerationProvider
from review_analyst.ai_providers.factory import create_provider
from review_analyst.config.settings import CoreSettings, load_settings
from review_analyst.schemas.validation import SchemaValidator
from review_analyst.utils.logger import get_logger

from .budget import BudgetLimits
from .concurrency import ConcurrencyLimiter
from .executor import StructuredRequestExecutor

logger = get_logger(__name__)


class ExecutionRuntime:
    """Shared configuration and resources for structured requests."""

    def __init__(
        self,
        settings: Optional[CoreSettings] = None,
        provider: Optional[StructuredGenerationProvider] = None,
        validator: Optional[SchemaValidator] = None,
    ):
        self._provider = provider
        self._validator = validator
        self._configure(settings or load_settings())

    def _configure(self, settings: CoreSettings) -> None:
        self.settings = settings
        self.limiter = ConcurrencyLimiter(
            settings.max_concurrent_requests, settings.request_wait_timeout_ms
        )
        self.budgets = BudgetLimits.from_settings(settings)
        logger.debug(
            f"Execution runtime configured (limit {settings.max_concurrent_requests}, "
            f"wait {settings.request_wait_timeout_ms}ms, model {settings.gemini_model})"
        )

    @property
    def provider(self) -> StructuredGenerationProvider:
        """Upstream provider, created from settings on first use."""
        if self._provider is None:
            self._provider = create_provider(self.settings)
        return self._provider

    def executor(self) -> StructuredRequestExecutor:
        return StructuredRequestExecutor(
            self.provider, self.limiter, self.settings, validator=self._validator
        )

    def reload(self, settings: Optional[CoreSettings] = None) -> None:
        """
        Re-read settings and rebuild the limiter and budgets.

        Raises:
            RuntimeError: Calls are still holding or waiting for slots
        """
        if self.limiter.active or self.limiter.pending_count:
            raise RuntimeError(
                "Cannot reload execution runtime while requests are in flight"
            )
        self._configure(settings or load_settings())

    async def shutdown(self) -> None:
        if self._provider is not None:
            await self._provider.shutdown()
