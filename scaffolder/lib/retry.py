"""
Retry policy for remote calls.

One policy object (attempt budget, backoff function, retryable predicate)
applied uniformly at every call site instead of ad hoc retry loops.
"""

import asyncio
from dataclasses import dataclass
from typing import Awaitable, Callable

from scaffolder.lib.clients import RemoteError


def linear_backoff(attempt: int, base_delay: float) -> float:
    """Delay before the next attempt: base * attempt (1s, 2s, 3s...)."""
    return base_delay * attempt


def is_retryable_error(error: BaseException) -> bool:
    """Trust the collaborator's classification; anything else is transient."""
    if isinstance(error, RemoteError):
        return error.retryable
    return True


class RetryExhausted(Exception):
    """All attempts failed, or the error was not retryable."""

    def __init__(self, last_error: BaseException, attempts: int):
        self.last_error = last_error
        self.attempts = attempts
        super().__init__(str(last_error) or type(last_error).__name__)


@dataclass
class RetryPolicy:
    max_attempts: int = 3
    base_delay_seconds: float = 1.0
    backoff: Callable[[int, float], float] = linear_backoff
    is_retryable: Callable[[BaseException], bool] = is_retryable_error

    def delay_for(self, attempt: int) -> float:
        return self.backoff(attempt, self.base_delay_seconds)

    async def run(
        self,
        call: Callable[[], Awaitable],
        timeout: float | None = None,
        on_retry: Callable[[int, BaseException], None] | None = None,
    ):
        """Await call() until it succeeds or the budget is spent.

        Args:
            call: Zero-argument factory returning a fresh awaitable per attempt
            timeout: Per-attempt ceiling in seconds; a timeout counts as retryable
            on_retry: Optional callback(attempt, error) before each backoff sleep

        Raises:
            RetryExhausted: carrying the last error and the attempts made
        """
        attempts = max(1, self.max_attempts)
        for attempt in range(1, attempts + 1):
            try:
                if timeout:
                    return await asyncio.wait_for(call(), timeout)
                return await call()
            except Exception as e:
                if attempt >= attempts or not self.is_retryable(e):
                    raise RetryExhausted(e, attempt) from e
                if on_retry:
                    on_retry(attempt, e)
                await asyncio.sleep(self.delay_for(attempt))
