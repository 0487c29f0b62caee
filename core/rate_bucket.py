"""
Token bucket gating outbound upstream calls.

Refill is computed lazily on every `allow()` from the elapsed time, so no
background timer is needed. `allow()` has no await point: under asyncio the
refill-check-decrement sequence runs as one step relative to other tasks.
"""

from __future__ import annotations

import logging
import time
from typing import Callable, Optional

logger = logging.getLogger("rate_bucket")


class RateBucket:
    """Continuous token bucket with an injectable clock (seconds)."""

    def __init__(
        self,
        capacity: float = 20.0,
        refill_per_minute: float = 20.0,
        clock: Optional[Callable[[], float]] = None,
    ):
        if capacity <= 0:
            raise ValueError("capacity must be positive")
        if refill_per_minute < 0:
            raise ValueError("refill_per_minute must be >= 0")
        self.capacity = float(capacity)
        self.refill_per_minute = float(refill_per_minute)
        self._clock = clock or time.monotonic
        self.tokens = float(capacity)
        self.last_refill = self._clock()

    def _refill(self) -> None:
        now = self._clock()
        elapsed_min = max(0.0, now - self.last_refill) / 60.0
        self.tokens = min(self.capacity, self.tokens + elapsed_min * self.refill_per_minute)
        self.last_refill = now

    def available(self) -> float:
        """Tokens available right now (refills first)."""
        self._refill()
        return self.tokens

    def allow(self) -> bool:
        self._refill()
        if self.tokens < 1:
            logger.warning(f"Rate bucket empty ({self.tokens:.2f} tokens)")
            return False
        self.tokens -= 1
        return True
