"""Deterministic exponential retry for async model calls.

Only failures accepted by the caller-supplied ``is_retryable`` predicate are
retried; everything else is re-raised on the spot. Delays double after every
attempt with no jitter and no overall time limit, so a given configuration
always produces the same sleep schedule.
"""

import asyncio
import time
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Optional

from genplan.utils.logger import get_logger

logger = get_logger(__name__)


@dataclass(frozen=True)
class RetryConfig:
    """Configuration for retry behavior with exponential backoff.

    Attributes:
        max_attempts: Total number of attempts, including the first call (default: 3)
        initial_delay: Delay before the first retry in seconds (default: 2.0)
        backoff_factor: Multiplier applied to the delay after each retry (default: 2.0)
    """

    max_attempts: int = 3
    initial_delay: float = 2.0
    backoff_factor: float = 2.0

    def __post_init__(self):
        if self.max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")
        if self.initial_delay < 0:
            raise ValueError("initial_delay must not be negative")


class RetryExhaustedError(Exception):
    """Raised when every attempt failed without leaving an exception to re-raise."""

    def __init__(
        self, message: str, attempts: int, last_exception: Optional[Exception] = None
    ):
        super().__init__(message)
        self.attempts = attempts
        self.last_exception = last_exception


def calculate_delay(attempt: int, config: RetryConfig) -> float:
    """
    Calculate the sleep before an attempt.

    Args:
        attempt: 0-based attempt number (0 = the initial call, which never waits)
        config: Retry configuration

    Returns:
        Delay in seconds
    """
    if attempt <= 0:
        return 0
    return config.initial_delay * (config.backoff_factor ** (attempt - 1))


def _never_retry(exception: Exception) -> bool:
    return False


async def retry_async(
    func: Callable[[], Awaitable[Any]],
    config: Optional[RetryConfig] = None,
    context_name: str = "operation",
    is_retryable: Optional[Callable[[Exception], bool]] = None,
) -> Any:
    """
    Call ``func`` until it succeeds, a non-retryable error occurs, or attempts run out.

    Args:
        func: Zero-argument coroutine factory, re-invoked verbatim on every attempt
        config: Retry configuration (uses defaults if not provided)
        context_name: Name of the operation for logging
        is_retryable: Predicate deciding whether an exception is transient

    Returns:
        The result of the successful call

    Raises:
        Exception: The non-retryable exception, or the last exception once
            attempts are exhausted
    """
    if config is None:
        config = RetryConfig()
    if is_retryable is None:
        is_retryable = _never_retry

    last_exception: Optional[Exception] = None
    retry_start_time = time.monotonic()

    for attempt in range(config.max_attempts):
        if attempt > 0:
            delay = calculate_delay(attempt, config)
            logger.info(
                f"Retrying {context_name} (attempt {attempt + 1}/{config.max_attempts}) "
                f"after {delay:.2f}s delay"
            )
            await asyncio.sleep(delay)

        try:
            result = await func()
        except Exception as e:
            last_exception = e

            if attempt == config.max_attempts - 1:
                total_elapsed = time.monotonic() - retry_start_time
                logger.error(
                    f"Final attempt for {context_name} failed after {config.max_attempts} "
                    f"attempts (total {total_elapsed:.2f}s): {e}"
                )
                break

            if is_retryable(e):
                logger.warning(
                    f"Attempt {attempt + 1} for {context_name} failed, will retry: {e}"
                )
                continue

            logger.error(f"Non-retryable error in {context_name}: {e}")
            raise

        if attempt > 0:
            logger.info(
                f"Successfully retried {context_name} after {attempt} retries "
                f"(total {time.monotonic() - retry_start_time:.2f}s)"
            )
        return result

    if last_exception is not None:
        raise last_exception
    raise RetryExhaustedError(
        f"All {config.max_attempts} attempts failed for {context_name}",
        attempts=config.max_attempts,
    )
