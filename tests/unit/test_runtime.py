"""Tests for the process-wide execution runtime."""

import asyncio
from unittest.mock import AsyncMock, Mock, patch

import pytest

from review_analyst.config.settings import CoreSettings
from review_analyst.execution.budget import BudgetLimits
from review_analyst.execution.executor import StructuredRequestExecutor
from review_analyst.execution.runtime import ExecutionRuntime


class TestExecutionRuntime:
    """Test cases for runtime construction and reload."""

    def test_builds_limiter_and_budgets(self, test_settings):
        runtime = ExecutionRuntime(test_settings, provider=Mock())

        assert runtime.settings is test_settings
        assert runtime.limiter.limit == 2
        assert runtime.limiter.wait_timeout_ms == 200
        assert runtime.budgets == BudgetLimits.from_settings(test_settings)

    def test_loads_settings_from_environment(self, monkeypatch):
        monkeypatch.setenv("MAX_CONCURRENT_REQUESTS", "7")
        runtime = ExecutionRuntime(provider=Mock())
        assert runtime.limiter.limit == 7

    def test_provider_created_lazily(self, test_settings):
        with patch("review_analyst.execution.runtime.create_provider") as create:
            runtime = ExecutionRuntime(test_settings)
            create.assert_not_called()

            provider = runtime.provider
            assert runtime.provider is provider

        create.assert_called_once_with(test_settings)

    def test_executor_shares_limiter(self, test_settings):
        provider = Mock()
        runtime = ExecutionRuntime(test_settings, provider=provider)
        executor = runtime.executor()

        assert isinstance(executor, StructuredRequestExecutor)
        assert executor.limiter is runtime.limiter
        assert executor.provider is provider
        assert runtime.executor().limiter is executor.limiter

    def test_reload_rebuilds_limiter(self, test_settings):
        runtime = ExecutionRuntime(test_settings, provider=Mock())
        old_limiter = runtime.limiter

        runtime.reload(CoreSettings(max_concurrent_requests=5, max_diff_chars=50))

        assert runtime.limiter is not old_limiter
        assert runtime.limiter.limit == 5
        assert runtime.budgets.max_diff_chars == 50

    @pytest.mark.asyncio
    async def test_reload_refused_while_slots_held(self, test_settings):
        runtime = ExecutionRuntime(test_settings, provider=Mock())
        await runtime.limiter.acquire()

        with pytest.raises(RuntimeError, match="in flight"):
            runtime.reload()

        runtime.limiter.release()
        runtime.reload(test_settings)

    @pytest.mark.asyncio
    async def test_reload_refused_while_waiters_queued(self, test_settings):
        runtime = ExecutionRuntime(test_settings, provider=Mock())
        limiter = runtime.limiter
        await limiter.acquire()
        await limiter.acquire()
        waiter = asyncio.create_task(limiter.acquire())
        await asyncio.sleep(0)
        assert limiter.pending_count == 1

        with pytest.raises(RuntimeError):
            runtime.reload(test_settings)

        limiter.release()
        await waiter
        limiter.release()
        limiter.release()
        assert limiter.active == 0
        runtime.reload(test_settings)

    @pytest.mark.asyncio
    async def test_shutdown_closes_provider(self, test_settings):
        provider = Mock()
        provider.shutdown = AsyncMock()
        runtime = ExecutionRuntime(test_settings, provider=provider)

        await runtime.shutdown()
        provider.shutdown.assert_awaited_once()
