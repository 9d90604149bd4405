"""Polling loop for asynchronous generation jobs (e.g. video)."""

import asyncio
from typing import Awaitable, Callable, Optional

from genplan.ai_providers.base import BaseProvider, OperationHandle
from genplan.config.settings import CoreSettings
from genplan.utils.logger import get_logger

from .errors import ErrorKind, GenerationError
from .invoker import ModelInvoker

logger = get_logger(__name__)

PollFn = Callable[[OperationHandle], Awaitable[OperationHandle]]

DEFAULT_POLL_INTERVAL = 10.0


class OperationPoller:
    """Refreshes an operation handle at a fixed interval until the job is done.

    Each refresh goes through the invoker, so a rate-limited poll is retried
    with the usual backoff; once those retries are exhausted the loop fails.
    ``max_attempts`` is unset by default, which polls until the service
    reports completion.
    """

    def __init__(
        self,
        provider: BaseProvider,
        invoker: Optional[ModelInvoker] = None,
        interval_seconds: float = DEFAULT_POLL_INTERVAL,
        max_attempts: Optional[int] = None,
    ):
        if interval_seconds < 0:
            raise ValueError("interval_seconds must be >= 0")
        if max_attempts is not None and max_attempts < 1:
            raise ValueError("max_attempts must be >= 1 when set")
        self.provider = provider
        self.invoker = invoker or ModelInvoker()
        self.interval_seconds = interval_seconds
        self.max_attempts = max_attempts

    @classmethod
    def from_settings(
        cls, provider: BaseProvider, settings: CoreSettings, invoker: Optional[ModelInvoker] = None
    ) -> "OperationPoller":
        return cls(
            provider,
            invoker or ModelInvoker.from_settings(settings),
            interval_seconds=settings.poll_interval_seconds,
            max_attempts=settings.poll_max_attempts,
        )

    async def wait_for(
        self,
        handle: OperationHandle,
        poll_fn: Optional[PollFn] = None,
        context: str = "Video Generation",
    ) -> OperationHandle:
        """Poll until ``handle`` reports done and return the final handle."""
        poll = poll_fn or self.provider.refresh_operation
        polls = 0

        while not handle.done:
            if self.max_attempts is not None and polls >= self.max_attempts:
                logger.error(f"{context}: operation {handle.name} still running after {polls} polls")
                raise GenerationError.of(
                    ErrorKind.TIMED_OUT,
                    f"{context} did not finish after {polls} status checks. "
                    "The job may still complete on the service side; please try again later.",
                    context=context,
                )
            await asyncio.sleep(self.interval_seconds)
            polls += 1
            current = handle
            handle = await self.invoker.call(lambda: poll(current), f"{context} (Polling)")
            logger.debug(f"{context}: poll {polls} done={handle.done}")

        return handle

    async def run_until_done(
        self,
        handle: OperationHandle,
        poll_fn: Optional[PollFn] = None,
        context: str = "Video Generation",
    ) -> bytes:
        """
        Poll an operation to completion and fetch its result.

        Args:
            handle: Handle returned when the job was started
            poll_fn: Refresh function; defaults to the provider's ``refresh_operation``
            context: Label used in progress logs and error messages

        Returns:
            The generated resource as raw bytes

        Raises:
            GenerationError: If a poll fails after retries, the service reports
                an error, the job produced no output or the poll cap was reached
        """
        final = await self.wait_for(handle, poll_fn, context)

        if final.error:
            raise GenerationError.of(
                ErrorKind.UNKNOWN,
                f"An error occurred during {context}: {final.error}",
                context=context,
            )
        if not final.result_uri:
            raise GenerationError.of(
                ErrorKind.EMPTY_RESPONSE,
                f"{context} failed to produce a download link.",
                context=context,
            )

        logger.info(f"{context}: operation {final.name} complete, downloading result")
        uri = final.result_uri
        return await self.invoker.call(lambda: self.provider.download(uri), f"{context} (Download)")
