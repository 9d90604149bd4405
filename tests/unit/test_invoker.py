"""Tests for ModelInvoker."""

from unittest.mock import AsyncMock

import pytest

from genplan.config.settings import CoreSettings
from genplan.execution.errors import ErrorKind, GenerationError
from genplan.execution.invoker import ModelInvoker


class TestModelInvoker:
    @pytest.mark.asyncio
    async def test_rate_limited_twice_then_success(self, no_sleep):
        request_fn = AsyncMock(
            side_effect=[Exception("429 quota"), Exception("429 quota"), {"ok": True}]
        )
        result = await ModelInvoker().invoke(request_fn, "Asset Generation")

        assert result.ok
        assert result.value == {"ok": True}
        assert no_sleep == [2.0, 4.0]
        assert request_fn.await_count == 3

    @pytest.mark.asyncio
    async def test_rate_limited_every_attempt(self, no_sleep):
        request_fn = AsyncMock(side_effect=Exception("RESOURCE_EXHAUSTED"))
        result = await ModelInvoker().invoke(request_fn, "Asset Generation")

        assert not result.ok
        assert result.kind is ErrorKind.RATE_LIMITED
        assert "Asset Generation" in result.error.message
        assert request_fn.await_count == 3
        assert no_sleep == [2.0, 4.0]

    @pytest.mark.asyncio
    async def test_other_errors_are_not_retried(self, no_sleep):
        request_fn = AsyncMock(side_effect=Exception("API key not valid"))
        result = await ModelInvoker().invoke(request_fn, "Chat")

        assert result.kind is ErrorKind.INVALID_CREDENTIAL
        assert request_fn.await_count == 1
        assert no_sleep == []

    @pytest.mark.asyncio
    async def test_call_raises_generation_error(self, no_sleep):
        request_fn = AsyncMock(side_effect=RuntimeError("boom"))
        with pytest.raises(GenerationError) as exc_info:
            await ModelInvoker().call(request_fn, "Image Editing")
        assert exc_info.value.kind is ErrorKind.UNKNOWN

    @pytest.mark.asyncio
    async def test_call_returns_value(self):
        assert await ModelInvoker().call(AsyncMock(return_value=42), "x") == 42

    def test_from_settings(self):
        settings = CoreSettings(RETRY_MAX_ATTEMPTS=5, RETRY_INITIAL_DELAY=1.5)
        invoker = ModelInvoker.from_settings(settings)
        assert invoker.retry_config.max_attempts == 5
        assert invoker.retry_config.initial_delay == 1.5
        assert invoker.retry_config.backoff_factor == 2.0
