"""In-memory fixed-window rate limiter.

Notes:
- Per-process only: running multiple workers multiplies the effective limit.
- Thread-safe: uses the base class lock around shared state.
"""

from __future__ import annotations

import time
from typing import Callable

from minimal_api.adapters.rate_limit.base import ReplenishingRateLimiter


class FixedWindowRateLimiter(ReplenishingRateLimiter):
    """Rate limiter allowing ``permit_limit`` permits per fixed time window.

    The window starts when the limiter is created and rolls over on exact
    multiples of ``window_seconds`` from there. On rollover the counter is
    reset and queued callers are served before any new caller.
    """

    def __init__(
        self,
        *,
        name: str,
        permit_limit: int,
        window_seconds: float,
        queue_limit: int = 0,
        auto_replenishment: bool = True,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        """Initialize the fixed-window limiter.

        Args:
            name: Policy name this limiter enforces.
            permit_limit: Maximum number of permits per window.
            window_seconds: Size of the window in seconds.
            queue_limit: Maximum queued permits (0 disables queueing).
            auto_replenishment: Roll windows over lazily based on the clock.
            clock: Monotonic time source in seconds.

        Raises:
            ValueError: If any limit or the window is invalid.
        """
        if permit_limit < 1:
            raise ValueError("permit_limit must be >= 1")
        if window_seconds <= 0:
            raise ValueError("window_seconds must be > 0")

        super().__init__(
            name=name,
            queue_limit=queue_limit,
            replenishment_period=window_seconds,
            auto_replenishment=auto_replenishment,
            clock=clock,
        )
        self._permit_limit = permit_limit
        self._count = 0

    @property
    def permit_limit(self) -> int:
        return self._permit_limit

    @property
    def window_seconds(self) -> float:
        return self._replenishment_period

    def _available_locked(self) -> int:
        return self._permit_limit - self._count

    def _take_locked(self, permit_count: int) -> None:
        self._count += permit_count

    def _give_back_locked(self, permit_count: int, epoch: int) -> None:
        # Only the window that issued the permits may take them back
        if epoch == self._epoch:
            self._count = max(0, self._count - permit_count)

    def _replenish_steps_locked(self, steps: int) -> None:
        self._count = 0
