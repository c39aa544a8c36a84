"""In-memory sliding-window rate limiter.

The window is split into ``segments_per_window`` equal segments. Each
segment remembers how many permits it issued, and the sum over the trailing
window counts against the limit. A burst at the end of one window therefore
keeps counting after the boundary until its segment slides out, which a
fixed window would forget all at once.
"""

from __future__ import annotations

import time
from collections import deque
from typing import Callable

from minimal_api.adapters.rate_limit.base import ReplenishingRateLimiter


class SlidingWindowRateLimiter(ReplenishingRateLimiter):
    """Rate limiter counting permits over a segmented sliding window."""

    def __init__(
        self,
        *,
        name: str,
        permit_limit: int,
        window_seconds: float,
        segments_per_window: int,
        queue_limit: int = 0,
        auto_replenishment: bool = True,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        if permit_limit < 1:
            raise ValueError("permit_limit must be >= 1")
        if window_seconds <= 0:
            raise ValueError("window_seconds must be > 0")
        if segments_per_window < 1:
            raise ValueError("segments_per_window must be >= 1")

        super().__init__(
            name=name,
            queue_limit=queue_limit,
            replenishment_period=window_seconds / segments_per_window,
            auto_replenishment=auto_replenishment,
            clock=clock,
        )
        self._permit_limit = permit_limit
        self._window_seconds = window_seconds
        # Oldest segment on the left, current segment on the right
        self._segments: deque[int] = deque([0] * segments_per_window)
        # Sequence number of the newest segment; grows by one per slide
        self._newest_segment = 0
        self._available = permit_limit

    @property
    def permit_limit(self) -> int:
        return self._permit_limit

    @property
    def window_seconds(self) -> float:
        return self._window_seconds

    @property
    def segments_per_window(self) -> int:
        return len(self._segments)

    def segment_counts(self) -> list[int]:
        """Permits issued per segment, oldest first."""
        with self._lock:
            self._refresh_locked()
            return list(self._segments)

    def _available_locked(self) -> int:
        return self._available

    def _take_locked(self, permit_count: int) -> None:
        self._available -= permit_count
        self._segments[-1] += permit_count

    def _grant_epoch_locked(self) -> int:
        return self._newest_segment

    def _give_back_locked(self, permit_count: int, epoch: int) -> None:
        # Only the issuing segment may take the permits back, and only while it
        # is still inside the window; once evicted it already returned them
        age = self._newest_segment - epoch
        if age >= len(self._segments):
            return
        index = len(self._segments) - 1 - age
        taken = min(self._segments[index], permit_count)
        self._segments[index] -= taken
        self._available += taken

    def _replenish_steps_locked(self, steps: int) -> None:
        self._newest_segment += steps
        for _ in range(min(steps, len(self._segments))):
            self._available += self._segments.popleft()
            self._segments.append(0)
