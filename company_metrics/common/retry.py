"""
Retry policy for navigation and network calls.

Wraps tenacity so every caller shares one declarative policy object instead
of nesting try/except blocks. Auth redirects, throttling and access denial
are never retried: repeating them only deepens the rate-limit hole.
"""

import logging
from dataclasses import dataclass, field, replace
from typing import Awaitable, Callable, Optional, Tuple, Type, TypeVar

from tenacity import (
    AsyncRetrying,
    RetryCallState,
    retry_if_exception,
    stop_after_attempt,
    wait_exponential,
)

from company_metrics.common.error_handling import (
    AuthRequiredError,
    UpstreamBlockedError,
    UpstreamThrottledError,
)

logger = logging.getLogger(__name__)

T = TypeVar("T")

NON_RETRYABLE: Tuple[Type[BaseException], ...] = (
    AuthRequiredError,
    UpstreamThrottledError,
    UpstreamBlockedError,
)


@dataclass(frozen=True)
class RetryPolicy:
    """
    Bounded retry with exponential backoff.

    Attributes:
        max_attempts: Total tries including the first one
        backoff_seconds: Base wait; attempt n waits backoff * 2**(n-1)
        max_backoff_seconds: Upper bound for a single wait
        non_retryable: Exception types re-raised immediately
        retryable: Optional extra predicate; when set, only matching errors retry
    """
    max_attempts: int = 3
    backoff_seconds: float = 2.0
    max_backoff_seconds: float = 15.0
    non_retryable: Tuple[Type[BaseException], ...] = field(default=NON_RETRYABLE)
    retryable: Optional[Callable[[BaseException], bool]] = None

    def with_predicate(self, predicate: Callable[[BaseException], bool]) -> "RetryPolicy":
        """Copy of this policy that only retries errors matching predicate."""
        return replace(self, retryable=predicate)

    def backoff_schedule(self) -> Tuple[float, ...]:
        """Waits between consecutive attempts, for logging/tests."""
        return tuple(
            min(self.backoff_seconds * (2 ** i), self.max_backoff_seconds)
            for i in range(max(self.max_attempts - 1, 0))
        )

    def _should_retry(self, exc: BaseException) -> bool:
        if not isinstance(exc, Exception) or isinstance(exc, self.non_retryable):
            return False
        return self.retryable(exc) if self.retryable else True

    def _log_retry(self, retry_state: RetryCallState) -> None:
        exc = retry_state.outcome.exception() if retry_state.outcome else None
        logger.debug(
            f"Attempt {retry_state.attempt_number}/{self.max_attempts} failed ({exc}); retrying"
        )

    async def run(self, func: Callable[[], Awaitable[T]]) -> T:
        """
        Await func() under this policy; the last exception is re-raised.

        Usage:
            policy = RetryPolicy(max_attempts=3, backoff_seconds=1.0)
            html = await policy.run(lambda: client.fetch_text(url))
        """
        retrying = AsyncRetrying(
            stop=stop_after_attempt(max(self.max_attempts, 1)),
            wait=wait_exponential(
                multiplier=self.backoff_seconds,
                min=0,
                max=self.max_backoff_seconds,
            ),
            retry=retry_if_exception(self._should_retry),
            before_sleep=self._log_retry,
            reraise=True,
        )
        result = None
        async for attempt in retrying:
            with attempt:
                result = await func()
        return result


def no_retry() -> RetryPolicy:
    """Single-attempt policy."""
    return RetryPolicy(max_attempts=1, backoff_seconds=0.0)
