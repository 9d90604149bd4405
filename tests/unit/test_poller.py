"""Tests for OperationPoller."""

import pytest

from conftest import FakeProvider
from genplan.ai_providers.base import OperationHandle
from genplan.config.settings import CoreSettings
from genplan.execution.errors import ErrorKind, GenerationError
from genplan.execution.poller import OperationPoller

PENDING = OperationHandle(name="operations/1")
DONE = OperationHandle(name="operations/1", done=True, result_uri="https://files/video.mp4")


class TestOperationPoller:
    @pytest.mark.asyncio
    async def test_polls_at_fixed_interval_then_downloads(self, no_sleep):
        provider = FakeProvider()
        provider.operations = [PENDING, PENDING, DONE]

        content = await OperationPoller(provider).run_until_done(PENDING)

        assert content == b"video-bytes"
        assert no_sleep == [10.0, 10.0, 10.0]
        assert provider.downloads == ["https://files/video.mp4"]

    @pytest.mark.asyncio
    async def test_already_done_handle_is_not_polled(self, no_sleep):
        provider = FakeProvider()
        assert await OperationPoller(provider).run_until_done(DONE) == b"video-bytes"
        assert no_sleep == []

    @pytest.mark.asyncio
    async def test_custom_poll_fn(self, no_sleep):
        seen = []

        async def poll(handle):
            seen.append(handle.name)
            return DONE

        await OperationPoller(FakeProvider()).run_until_done(PENDING, poll_fn=poll)
        assert seen == ["operations/1"]

    @pytest.mark.asyncio
    async def test_done_without_uri_fails(self, no_sleep):
        provider = FakeProvider()
        provider.operations = [OperationHandle(name="operations/1", done=True)]

        with pytest.raises(GenerationError) as exc_info:
            await OperationPoller(provider).run_until_done(PENDING, context="Text-to-Video Generation")

        assert exc_info.value.kind is ErrorKind.EMPTY_RESPONSE
        assert "failed to produce a download link" in str(exc_info.value)
        assert provider.downloads == []

    @pytest.mark.asyncio
    async def test_service_reported_error(self, no_sleep):
        provider = FakeProvider()
        provider.operations = [
            OperationHandle(name="operations/1", done=True, error="Video generation was blocked")
        ]
        with pytest.raises(GenerationError) as exc_info:
            await OperationPoller(provider).run_until_done(PENDING)
        assert exc_info.value.kind is ErrorKind.UNKNOWN
        assert "Video generation was blocked" in str(exc_info.value)

    @pytest.mark.asyncio
    async def test_rate_limited_poll_is_retried(self, no_sleep):
        provider = FakeProvider()
        provider.operations = [Exception("429 Too Many Requests"), DONE]

        await OperationPoller(provider).run_until_done(PENDING)

        # poll interval, then one retry backoff
        assert no_sleep == [10.0, 2.0]

    @pytest.mark.asyncio
    async def test_poll_failure_after_retries_propagates(self, no_sleep):
        provider = FakeProvider()
        provider.operations = [Exception("Requested entity was not found.")]

        with pytest.raises(GenerationError) as exc_info:
            await OperationPoller(provider).run_until_done(PENDING, context="Video Generation")

        assert exc_info.value.kind is ErrorKind.INVALID_CREDENTIAL
        assert "Video Generation (Polling)" in str(exc_info.value)

    @pytest.mark.asyncio
    async def test_max_attempts_times_out(self, no_sleep):
        provider = FakeProvider()
        provider.operations = [PENDING, PENDING, PENDING]

        with pytest.raises(GenerationError) as exc_info:
            await OperationPoller(provider, max_attempts=2).run_until_done(PENDING)

        assert exc_info.value.kind is ErrorKind.TIMED_OUT
        assert len(provider.operations) == 1

    def test_from_settings(self):
        settings = CoreSettings(POLL_INTERVAL_SECONDS=0.5, POLL_MAX_ATTEMPTS=30)
        poller = OperationPoller.from_settings(FakeProvider(), settings)
        assert poller.interval_seconds == 0.5
        assert poller.max_attempts == 30

    def test_unbounded_by_default(self):
        assert OperationPoller(FakeProvider()).max_attempts is None

    def test_invalid_max_attempts(self):
        with pytest.raises(ValueError):
            OperationPoller(FakeProvider(), max_attempts=0)
