"""
Composed call deadlines.

Every network call carries its own timeout; a resolution may also carry an
overall deadline from the caller. The effective timeout of a call is the
smaller of the two, and an exhausted overall deadline fails the call before
it is sent.
"""

import time
from dataclasses import dataclass, field
from typing import Optional

from company_metrics.common.error_handling import UpstreamTimeoutError


@dataclass
class Deadline:
    """Overall deadline measured on the monotonic clock."""
    seconds: Optional[float] = None
    started_at: float = field(default_factory=time.monotonic)

    @classmethod
    def none(cls) -> "Deadline":
        return cls(seconds=None)

    @property
    def remaining(self) -> Optional[float]:
        """Seconds left, or None when unbounded."""
        if self.seconds is None:
            return None
        return max(0.0, self.seconds - (time.monotonic() - self.started_at))

    @property
    def expired(self) -> bool:
        remaining = self.remaining
        return remaining is not None and remaining <= 0

    def call_timeout(self, per_call: float, operation: str = "call") -> float:
        """
        Effective timeout for one call.

        Raises:
            UpstreamTimeoutError: If the overall deadline is already exhausted
        """
        remaining = self.remaining
        if remaining is None:
            return per_call
        if remaining <= 0:
            raise UpstreamTimeoutError(f"Overall deadline of {self.seconds}s exhausted before {operation}")
        return min(per_call, remaining)
