"""
Human-cadence pacing between upstream calls.

LinkedIn throttles bursty clients, so every semi-structured and rendered
call is preceded by a randomized pause regardless of prior success. Delays
are uniform within [min, max] plus gaussian jitter, clamped to the bounds.
"""

import asyncio
import logging
import random
from typing import Optional

logger = logging.getLogger(__name__)


class Pacer:
    """Awaitable randomized delays."""

    def __init__(
        self,
        min_delay: float = 1.0,
        max_delay: float = 3.0,
        jitter: float = 0.25,
        rng: Optional[random.Random] = None,
    ):
        """
        Args:
            min_delay: Lower bound in seconds (0 disables pacing)
            max_delay: Upper bound in seconds
            jitter: Standard deviation of the gaussian jitter
            rng: Random source (injectable for tests)
        """
        if max_delay < min_delay:
            min_delay, max_delay = max_delay, min_delay
        self.min_delay = max(0.0, min_delay)
        self.max_delay = max(0.0, max_delay)
        self.jitter = jitter
        self._rng = rng or random.Random()
        self.total_waited = 0.0
        self.pauses = 0

    @property
    def enabled(self) -> bool:
        return self.max_delay > 0

    def next_delay(self) -> float:
        """Draw the next delay in seconds."""
        if not self.enabled:
            return 0.0
        base = self._rng.uniform(self.min_delay, self.max_delay)
        if self.jitter:
            base += self._rng.gauss(0, self.jitter)
        return min(max(base, self.min_delay), self.max_delay)

    async def pause(self, reason: str = "") -> float:
        """Sleep for the next delay; returns the seconds waited."""
        delay = self.next_delay()
        self.pauses += 1
        if delay <= 0:
            return 0.0
        logger.debug(f"Pacing {delay:.2f}s {reason}".rstrip())
        await asyncio.sleep(delay)
        self.total_waited += delay
        return delay


def no_pacing() -> Pacer:
    """Pacer that never sleeps."""
    return Pacer(min_delay=0.0, max_delay=0.0, jitter=0.0)
