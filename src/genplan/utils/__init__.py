"""Utility modules for genplan."""

from genplan.utils.logger import get_logger, setup_logging
from genplan.utils.retry import (
    RetryConfig,
    RetryExhaustedError,
    calculate_delay,
    retry_async,
)
from genplan.utils.substitution import render_placeholders

__all__ = [
    "RetryConfig",
    "RetryExhaustedError",
    "retry_async",
    "calculate_delay",
    "get_logger",
    "setup_logging",
    "render_placeholders",
]
