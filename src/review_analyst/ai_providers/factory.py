"""Provider factory and model presets."""

from typing import TYPE_CHECKING, Any, Dict

from review_analyst.utils.logger import get_logger

from .base import StructuredGenerationProvider
from .gemini import GeminiProvider

if TYPE_CHECKING:
    from review_analyst.config.settings import CoreSettings

logger = get_logger(__name__)

# Fast, cost-effective model for summarization and light analysis
FLASH_MODEL = "gemini-2.5-flash"

# High-capability model for deep reasoning and quality inspection
PRO_MODEL = "gemini-2.5-pro"

DEFAULT_TIMEOUT_MS = 60_000

# Pro thinks longer than Flash
DEFAULT_TIMEOUT_PRO_MS = 120_000

MODEL_TIMEOUTS_MS = {
    FLASH_MODEL: DEFAULT_TIMEOUT_MS,
    PRO_MODEL: DEFAULT_TIMEOUT_PRO_MS,
}


def get_default_timeout_ms(model: str) -> int:
    """Per-attempt timeout suggested for a model."""
    return MODEL_TIMEOUTS_MS.get(model, DEFAULT_TIMEOUT_MS)


def get_provider_config(settings: "CoreSettings") -> Dict[str, Any]:
    """Build provider config from settings."""
    return {
        "api_key": settings.gemini_api_key,
        "model_id": settings.gemini_model,
        "safety_threshold": settings.gemini_harm_block_threshold,
    }


def create_provider(settings: "CoreSettings") -> StructuredGenerationProvider:
    """Create the upstream provider configured by ``settings``."""
    config = get_provider_config(settings)
    logger.info(f"Creating Gemini provider with model {config['model_id']}")
    return GeminiProvider(config)
