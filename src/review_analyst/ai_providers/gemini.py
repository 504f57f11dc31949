"""Gemini structured-output provider using the google.genai unified SDK."""

import json
import time
from typing import Any, Dict, List, Optional

from google import genai

from review_analyst.utils.logger import get_logger

from .base import (
    DEFAULT_MAX_OUTPUT_TOKENS,
    DEFAULT_TEMPERATURE,
    GenerationRequest,
    InvalidModelResponseError,
    ProviderError,
    StructuredGenerationProvider,
)

logger = get_logger(__name__)

DEFAULT_SAFETY_THRESHOLD = "BLOCK_NONE"

SAFETY_CATEGORIES = (
    "HARM_CATEGORY_HATE_SPEECH",
    "HARM_CATEGORY_DANGEROUS_CONTENT",
    "HARM_CATEGORY_HARASSMENT",
    "HARM_CATEGORY_SEXUALLY_EXPLICIT",
)


def get_safety_settings(threshold: str) -> List[Dict[str, str]]:
    """Apply one threshold to every harm category."""
    return [
        {"category": category, "threshold": threshold} for category in SAFETY_CATEGORIES
    ]


def parse_structured_response(response_text: Optional[str]) -> Any:
    """Decode the JSON body of a structured-output response."""
    if not response_text:
        raise InvalidModelResponseError("Gemini returned an empty response body.")
    try:
        return json.loads(response_text)
    except json.JSONDecodeError as e:
        raise InvalidModelResponseError(f"Model produced invalid JSON: {e}") from e


def _extract_usage(response: Any) -> Dict[str, Any]:
    usage = getattr(response, "usage_metadata", None)
    if usage is None:
        return {}
    return {
        "prompt_tokens": getattr(usage, "prompt_token_count", None),
        "output_tokens": getattr(usage, "candidates_token_count", None),
        "thinking_tokens": getattr(usage, "thoughts_token_count", None),
        "total_tokens": getattr(usage, "total_token_count", None),
    }


class GeminiProvider(StructuredGenerationProvider):
    """Structured JSON generation against the Gemini API."""

    def __init__(self, config: Dict[str, Any], client: Optional[Any] = None):
        super().__init__(config)
        self.client: Optional[Any] = client

    @property
    def safety_threshold(self) -> str:
        return self.config.get("safety_threshold") or DEFAULT_SAFETY_THRESHOLD

    async def initialize(self) -> None:
        """Create the SDK client. Fails when no API key is configured."""
        if self.client is not None:
            return

        api_key = self.config.get("api_key")
        if not api_key:
            raise ProviderError("Missing GEMINI_API_KEY or GOOGLE_API_KEY.")

        self.client = genai.Client(api_key=api_key)
        logger.info(
            f"Initialized Gemini provider (default model: {self.config.get('model_id')}, "
            f"safety threshold: {self.safety_threshold})"
        )

    def build_generation_config(self, request: GenerationRequest) -> Dict[str, Any]:
        """Translate a GenerationRequest into a GenerateContentConfig dict."""
        config: Dict[str, Any] = {
            "temperature": (
                request.temperature
                if request.temperature is not None
                else DEFAULT_TEMPERATURE
            ),
            "max_output_tokens": request.max_output_tokens or DEFAULT_MAX_OUTPUT_TOKENS,
            "response_mime_type": "application/json",
            "response_json_schema": request.response_schema,
            "safety_settings": get_safety_settings(self.safety_threshold),
        }
        if request.system_instruction:
            config["system_instruction"] = request.system_instruction
        if request.thinking_level:
            config["thinking_config"] = {
                "thinking_level": request.thinking_level.upper()
            }
        return config

    async def generate(self, request: GenerationRequest) -> Any:
        """Call Gemini and return the decoded JSON body."""
        if self.client is None:
            await self.initialize()

        started_at = time.monotonic()
        response = await self.client.aio.models.generate_content(
            model=request.model,
            contents=request.prompt,
            config=self.build_generation_config(request),
        )
        latency_ms = round((time.monotonic() - started_at) * 1000)

        usage = _extract_usage(response)
        logger.info(f"Gemini call completed in {latency_ms}ms", usage=usage)

        return parse_structured_response(getattr(response, "text", None))

    async def shutdown(self) -> None:
        """Close the async transport if the SDK exposes one."""
        if self.client is None:
            return
        aclose = getattr(self.client.aio, "aclose", None)
        if aclose is not None:
            await aclose()
        self.client = None
