"""
Retrying fetch wrapper.

Wraps a SourceFetcher with bounded exponential backoff (1s, 2s, 4s, ...).
Backoff sleeps are plain asyncio sleeps, so cancelling the task or hitting
a run timeout interrupts the wait instead of triggering another attempt.
"""

import asyncio
from typing import Awaitable, Callable, Optional

import structlog
from tenacity import (
    AsyncRetrying,
    RetryCallState,
    RetryError,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from newswire.exceptions import SourceFetchError, TransientFetchError
from newswire.models.domain import NewsSource, RawArticle
from newswire.sources.base import SourceFetcher

logger = structlog.get_logger(__name__)

Sleep = Callable[[float], Awaitable[None]]


class RetryingFetcher:
    """
    Retries transient fetch failures with exponential backoff.

    Only TransientFetchError is retried. ConfigurationError and any other
    exception propagate on the first attempt.
    """

    def __init__(
        self,
        fetcher: SourceFetcher,
        max_retries: int = 3,
        base_delay: float = 1.0,
        max_delay: Optional[float] = None,
        sleep: Sleep = asyncio.sleep,
    ):
        """
        Args:
            fetcher: The fetcher to wrap
            max_retries: Additional attempts after the first one
            base_delay: Delay before the first retry, in seconds
            max_delay: Cap on a single backoff delay (None = uncapped)
            sleep: Coroutine used for backoff sleeps
        """
        self.fetcher = fetcher
        self.max_retries = max_retries
        self.base_delay = base_delay
        self.max_delay = max_delay
        self._sleep = sleep

    @property
    def max_attempts(self) -> int:
        return self.max_retries + 1

    def _log_retry(self, source: NewsSource) -> Callable[[RetryCallState], None]:
        def before_sleep(state: RetryCallState) -> None:
            error = state.outcome.exception() if state.outcome else None
            logger.warning(
                "Fetch attempt failed, retrying",
                source=source.name,
                kind=source.kind.value,
                attempt=state.attempt_number,
                max_attempts=self.max_attempts,
                retry_in_seconds=state.next_action.sleep if state.next_action else None,
                error=str(error),
            )

        return before_sleep

    async def fetch(self, source: NewsSource) -> list[RawArticle]:
        """
        Fetch with retries.

        Raises:
            SourceFetchError: after all attempts failed with transient errors
            ConfigurationError: immediately, without retrying
            asyncio.CancelledError: if cancelled during a fetch or a backoff sleep
        """
        retrying = AsyncRetrying(
            stop=stop_after_attempt(self.max_attempts),
            wait=wait_exponential(
                multiplier=self.base_delay,
                min=0,
                max=self.max_delay if self.max_delay is not None else float("inf"),
            ),
            retry=retry_if_exception_type(TransientFetchError),
            before_sleep=self._log_retry(source),
            sleep=self._sleep,
            reraise=False,
        )

        try:
            async for attempt in retrying:
                with attempt:
                    return await self.fetcher.fetch(source)
        except RetryError as e:
            last_attempt = e.last_attempt
            last_error = last_attempt.exception()
            raise SourceFetchError(
                source_name=source.name,
                kind=source.kind.value,
                attempts=last_attempt.attempt_number,
                last_error=last_error,
            ) from last_error

        # AsyncRetrying always returns or raises above
        raise AssertionError("unreachable")
