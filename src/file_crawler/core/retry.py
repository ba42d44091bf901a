"""Bounded retry with exponential backoff and a per-call timeout."""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import TypeVar

from tenacity import (
    AsyncRetrying,
    RetryCallState,
    retry_if_exception,
    stop_after_attempt,
    wait_exponential,
)

from file_crawler.config import Settings
from file_crawler.core.exceptions import is_retryable
from file_crawler.core.logging import get_logger

logger = get_logger(__name__)

T = TypeVar("T")


@dataclass(frozen=True, slots=True)
class RetryPolicy:
    """Retry schedule for one call site.

    Attributes:
        max_attempts: Total attempts including the first one.
        initial_backoff: Seconds before the first retry; doubles per attempt.
        max_backoff: Upper bound for a single wait.
        timeout: Seconds allowed for each attempt, or None for no limit.
    """

    max_attempts: int = 3
    initial_backoff: float = 0.5
    max_backoff: float = 8.0
    timeout: float | None = None

    @classmethod
    def from_settings(cls, settings: Settings, *, timeout: float | None) -> RetryPolicy:
        return cls(
            max_attempts=settings.retry_max_attempts,
            initial_backoff=settings.retry_initial_backoff,
            max_backoff=settings.retry_max_backoff,
            timeout=timeout,
        )

    async def run(self, operation: Callable[[], Awaitable[T]], *, describe: str) -> T:
        """Run ``operation`` until it succeeds, fails permanently or attempts run out.

        Only timeouts and errors carrying ``retryable=True`` are retried. The last
        error is re-raised unchanged.
        """
        retrying = AsyncRetrying(
            stop=stop_after_attempt(max(1, self.max_attempts)),
            wait=wait_exponential(multiplier=self.initial_backoff, max=self.max_backoff),
            retry=retry_if_exception(is_retryable),
            before_sleep=self._log_retry(describe),
            reraise=True,
        )
        return await retrying(self._attempt, operation)

    async def _attempt(self, operation: Callable[[], Awaitable[T]]) -> T:
        if self.timeout is None:
            return await operation()
        return await asyncio.wait_for(operation(), timeout=self.timeout)

    @staticmethod
    def _log_retry(describe: str) -> Callable[[RetryCallState], None]:
        def _before_sleep(state: RetryCallState) -> None:
            exc = state.outcome.exception() if state.outcome else None
            logger.warning(
                "%s failed (attempt %s): %s; retrying",
                describe,
                state.attempt_number,
                exc or "timeout",
            )

        return _before_sleep
