"""Pytest configuration and shared fixtures."""

import logging
import sys
from pathlib import Path
from typing import Any, List, Optional, Tuple

import pytest
import structlog

# Add src directory to Python path for tests
src_path = Path(__file__).parent.parent / "src"
sys.path.insert(0, str(src_path))

from genplan.ai_providers.base import (  # noqa: E402
    Attachment,
    BaseProvider,
    FinishReason,
    GenerationRequest,
    GenerationResponse,
    ModelTier,
    OperationHandle,
)

GENPLAN_ENV_VARS = [
    "GEMINI_API_KEY",
    "API_KEY",
    "AI_MODEL_PRO",
    "AI_MODEL_FLASH",
    "AI_MODEL_IMAGEN",
    "AI_MODEL_SPEECH",
    "DEFAULT_MAX_OUTPUT_TOKENS",
    "DEFAULT_THINKING_BUDGET",
    "RETRY_MAX_ATTEMPTS",
    "RETRY_INITIAL_DELAY",
    "RETRY_BACKOFF_FACTOR",
    "POLL_INTERVAL_SECONDS",
    "POLL_MAX_ATTEMPTS",
]


@pytest.fixture(autouse=True)
def setup_test_environment(monkeypatch):
    """Setup test environment variables."""
    for key in GENPLAN_ENV_VARS:
        monkeypatch.delenv(key, raising=False)
    monkeypatch.setenv("LOG_LEVEL", "DEBUG")
    monkeypatch.setenv("JSON_LOGS", "false")


@pytest.fixture(autouse=True)
def reset_logging():
    """Undo logging configured by CLI runs; it binds to the captured streams."""
    yield
    structlog.reset_defaults()
    root_logger = logging.getLogger()
    root_logger.handlers.clear()
    root_logger.setLevel(logging.WARNING)


def make_response(
    text: Optional[str],
    finish_reason: Optional[FinishReason] = FinishReason.COMPLETE,
    candidate_count: int = 1,
    **kwargs: Any,
) -> GenerationResponse:
    """Build a GenerationResponse the way the provider would."""
    return GenerationResponse(
        text=text, finish_reason=finish_reason, candidate_count=candidate_count, **kwargs
    )


class FakeProvider(BaseProvider):
    """In-memory provider returning scripted outcomes.

    Each scripted item is either a value to return or an exception to raise.
    """

    def __init__(self, responses: Optional[List[Any]] = None):
        super().__init__({"api_key": "test-key", "models": {tier.value: tier.value for tier in ModelTier}})
        self.responses = list(responses or [])
        self.requests: List[GenerationRequest] = []
        self.operations: List[Any] = []
        self.downloads: List[str] = []
        self.download_content = b"video-bytes"
        self.chat_messages: List[str] = []
        self.video_calls: List[dict] = []
        self.image_calls: List[dict] = []
        self.image_results: List[Any] = []

    def _next(self, queue: List[Any]) -> Any:
        if not queue:
            raise AssertionError("FakeProvider ran out of scripted responses")
        item = queue.pop(0)
        if isinstance(item, BaseException):
            raise item
        return item

    async def initialize(self) -> None:
        pass

    async def shutdown(self) -> None:
        pass

    async def generate(self, request: GenerationRequest) -> GenerationResponse:
        self.requests.append(request)
        return self._next(self.responses)

    async def generate_images(
        self, prompt: str, aspect_ratio: str = "1:1", count: int = 1
    ) -> Tuple[Attachment, ...]:
        self.image_calls.append({"prompt": prompt, "aspect_ratio": aspect_ratio, "count": count})
        if self.image_results:
            return self._next(self.image_results)
        return (Attachment.from_bytes(b"jpeg-bytes", "image/jpeg"),)

    async def start_video_generation(
        self,
        prompt: str,
        image: Optional[Attachment] = None,
        aspect_ratio: str = "16:9",
        resolution: str = "720p",
    ) -> OperationHandle:
        self.video_calls.append(
            {"prompt": prompt, "image": image, "aspect_ratio": aspect_ratio, "resolution": resolution}
        )
        return OperationHandle(name="operations/video-1")

    async def refresh_operation(self, handle: OperationHandle) -> OperationHandle:
        return self._next(self.operations)

    async def download(self, uri: str) -> bytes:
        self.downloads.append(uri)
        return self.download_content

    async def create_chat(self, system_instruction: str, tier: ModelTier) -> Any:
        return {"system_instruction": system_instruction, "tier": tier}

    async def send_chat_message(self, chat: Any, message: str) -> GenerationResponse:
        self.chat_messages.append(message)
        return self._next(self.responses)


@pytest.fixture
def fake_provider():
    return FakeProvider()


@pytest.fixture
def no_sleep(monkeypatch):
    """Replace asyncio.sleep in retry and polling code, recording requested delays."""
    delays: List[float] = []

    async def _sleep(delay, *args, **kwargs):
        delays.append(delay)

    # Both modules share the asyncio module object
    monkeypatch.setattr("genplan.utils.retry.asyncio.sleep", _sleep)
    return delays
