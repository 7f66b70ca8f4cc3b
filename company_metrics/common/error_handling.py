"""
Centralized error handling for the company metrics resolver.

Defines the exception hierarchy shared by every strategy and the
append-only attempt log used for diagnostics and cascade decisions.
"""

import logging
import threading
import time
from contextlib import contextmanager
from dataclasses import dataclass, field
from typing import Generator, List, Optional

from company_metrics.common.types import ResolutionAttempt

logger = logging.getLogger(__name__)


class CompanyMetricsError(Exception):
    """Base exception for resolver errors."""
    pass


class InvalidReferenceError(CompanyMetricsError, ValueError):
    """Raised when a company reference is malformed or not a LinkedIn URL."""
    pass


class OrganizationNotResolvedError(CompanyMetricsError):
    """Raised when every organization-ID lookup step failed."""

    def __init__(self, reference: str, errors: List[str]):
        self.reference = reference
        self.errors = list(errors)
        super().__init__(
            f"Could not resolve organization ID for {reference}. "
            f"Attempts: {'; '.join(self.errors) or 'none'}"
        )


class StrategyError(CompanyMetricsError):
    """Raised when an acquisition strategy cannot produce data."""
    pass


class AuthRequiredError(StrategyError):
    """Raised when LinkedIn redirects to a login or challenge page."""
    pass


class ParseFailure(StrategyError):
    """Raised when no pattern matched the expected shape."""
    pass


class StructuredQueryError(StrategyError):
    """Raised when a structured query returns a top-level error collection."""
    pass


class UpstreamError(StrategyError):
    """Base class for transport-level failures."""
    pass


class UpstreamTimeoutError(UpstreamError):
    """Raised when a call exceeds its own timeout or the overall deadline."""
    pass


class UpstreamHTTPError(UpstreamError):
    """Raised on a non-success HTTP status."""

    def __init__(self, status_code: int, url: str, message: Optional[str] = None):
        self.status_code = status_code
        self.url = url
        super().__init__(message or f"HTTP {status_code} for {url}")


class UpstreamThrottledError(UpstreamHTTPError):
    """Raised when LinkedIn rate limits the request (HTTP 429)."""
    pass


class UpstreamBlockedError(UpstreamHTTPError):
    """Raised when LinkedIn denies access (HTTP 403 / 999)."""
    pass


# Errors that end a metric's cascade instead of moving to the next strategy
SHORT_CIRCUIT_ERRORS = (UpstreamThrottledError, UpstreamBlockedError)


def describe_error(exc: BaseException) -> str:
    """Human-readable one-liner for the attempt log."""
    message = str(exc).strip()
    name = type(exc).__name__
    if not message:
        return name
    return f"{name}: {message}"


@dataclass
class AttemptTimer:
    """Timer utility for tracking attempt latency."""

    start_time: float = field(default_factory=time.perf_counter)
    end_time: Optional[float] = None

    @property
    def latency_ms(self) -> int:
        end = self.end_time if self.end_time is not None else time.perf_counter()
        return int((end - self.start_time) * 1000)

    def stop(self) -> int:
        self.end_time = time.perf_counter()
        return self.latency_ms


class AttemptLog:
    """
    Append-only log of resolution attempts.

    Appends are guarded by a lock so concurrent metric cascades never lose
    entries. Entries are never removed or modified.
    """

    def __init__(self):
        self._attempts: List[ResolutionAttempt] = []
        self._lock = threading.Lock()

    def __len__(self) -> int:
        with self._lock:
            return len(self._attempts)

    def append(self, attempt: ResolutionAttempt) -> None:
        with self._lock:
            self._attempts.append(attempt)

    def record_success(
        self,
        strategy: str,
        latency_ms: int,
        metric: Optional[str] = None,
        operation: Optional[str] = None,
    ) -> None:
        self.append(ResolutionAttempt(
            strategy=strategy,
            succeeded=True,
            latency_ms=latency_ms,
            metric=metric,
            operation=operation,
        ))

    def record_failure(
        self,
        strategy: str,
        error: BaseException,
        latency_ms: int,
        metric: Optional[str] = None,
        operation: Optional[str] = None,
    ) -> None:
        self.append(ResolutionAttempt(
            strategy=strategy,
            succeeded=False,
            error_message=describe_error(error),
            latency_ms=latency_ms,
            metric=metric,
            operation=operation,
        ))

    def snapshot(self) -> List[ResolutionAttempt]:
        """Copy of the attempts recorded so far, in append order."""
        with self._lock:
            return list(self._attempts)

    def failures(self, strategy: Optional[str] = None) -> List[ResolutionAttempt]:
        return [
            a for a in self.snapshot()
            if not a.succeeded and (strategy is None or a.strategy == strategy)
        ]

    def summary(self) -> dict:
        attempts = self.snapshot()
        return {
            "total": len(attempts),
            "succeeded": sum(1 for a in attempts if a.succeeded),
            "failed": sum(1 for a in attempts if not a.succeeded),
        }

    @contextmanager
    def track(
        self,
        strategy: str,
        metric: Optional[str] = None,
        operation: Optional[str] = None,
    ) -> Generator[AttemptTimer, None, None]:
        """
        Record the enclosed block as one attempt.

        Success is recorded when the block exits normally; an exception is
        recorded as a failure and re-raised for the caller to handle.

        Usage:
            with attempt_log.track("semi_structured", "job_count", "jobs-search"):
                payload = await client.fetch_json(url)
        """
        timer = AttemptTimer()
        try:
            yield timer
        except BaseException as exc:
            self.record_failure(strategy, exc, timer.stop(), metric, operation)
            raise
        else:
            self.record_success(strategy, timer.stop(), metric, operation)
