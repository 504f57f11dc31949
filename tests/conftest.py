"""Pytest configuration and shared fixtures."""

import sys
from pathlib import Path

import pytest

# Add src directory to Python path for tests
src_path = Path(__file__).parent.parent / "src"
sys.path.insert(0, str(src_path))

from review_analyst.config.settings import CoreSettings  # noqa: E402

ENV_VARS = (
    "MAX_CONCURRENT_REQUESTS",
    "MAX_CONCURRENT_CALLS",
    "REQUEST_WAIT_TIMEOUT_MS",
    "MAX_CONCURRENT_CALLS_WAIT_MS",
    "MAX_RETRIES",
    "SCHEMA_REPAIR_RETRIES",
    "GEMINI_SCHEMA_RETRIES",
    "MAX_SCHEMA_REPAIR_ERROR_CHARS",
    "MAX_SCHEMA_RETRY_ERROR_CHARS",
    "REQUEST_TIMEOUT_MS",
    "MAX_DIFF_CHARS",
    "MAX_CONTEXT_CHARS",
    "MAX_FILE_CHARS",
    "GEMINI_MODEL",
    "GEMINI_API_KEY",
    "GOOGLE_API_KEY",
    "GEMINI_HARM_BLOCK_THRESHOLD",
)


@pytest.fixture(autouse=True)
def setup_test_environment(monkeypatch):
    """Isolate tests from the host environment."""
    for key in ENV_VARS:
        monkeypatch.delenv(key, raising=False)

    test_env = {
        "LOG_LEVEL": "DEBUG",
        "JSON_LOGS": "false",
    }
    for key, value in test_env.items():
        monkeypatch.setenv(key, value)


@pytest.fixture
def test_settings():
    """Settings with small, deterministic limits."""
    return CoreSettings(
        gemini_api_key="test-key",
        max_concurrent_requests=2,
        request_wait_timeout_ms=200,
        max_retries=2,
        schema_repair_retries=1,
        request_timeout_ms=1_000,
    )
