"""Single model call execution with rate-limit retry."""

from typing import Any, Awaitable, Callable, Optional, TypeVar

from genplan.config.settings import CoreSettings
from genplan.utils.logger import get_logger
from genplan.utils.retry import RetryConfig, retry_async

from .error_classifier import classify, is_rate_limit_error
from .errors import Failure, Result, Success

logger = get_logger(__name__)

T = TypeVar("T")


class ModelInvoker:
    """Runs one service call, retrying only quota/rate-limit failures.

    ``request_fn`` is a zero-argument coroutine factory that is called again,
    unchanged, for every attempt. Any other failure is classified immediately
    and returned without retrying.
    """

    def __init__(self, retry_config: Optional[RetryConfig] = None):
        self.retry_config = retry_config or RetryConfig()

    @classmethod
    def from_settings(cls, settings: CoreSettings) -> "ModelInvoker":
        return cls(
            RetryConfig(
                max_attempts=settings.retry_max_attempts,
                initial_delay=settings.retry_initial_delay,
                backoff_factor=settings.retry_backoff_factor,
            )
        )

    async def invoke(
        self, request_fn: Callable[[], Awaitable[T]], context: str
    ) -> Result[T]:
        try:
            value = await retry_async(
                request_fn,
                config=self.retry_config,
                context_name=context,
                is_retryable=is_rate_limit_error,
            )
        except Exception as e:
            error = classify(e, context)
            logger.error(f"{context} failed ({error.kind.value}): {error.message}")
            return Failure(error)
        return Success(value)

    async def call(self, request_fn: Callable[[], Awaitable[Any]], context: str) -> Any:
        """Like ``invoke`` but raises ``GenerationError`` on failure."""
        result = await self.invoke(request_fn, context)
        return result.unwrap()
