"""In-memory concurrency limiter.

Limits how many leases are held at the same time. There is no time
dimension: capacity only returns when a lease is released.
"""

from __future__ import annotations

import time
from functools import partial
from typing import Callable

from minimal_api.adapters.rate_limit.base import AbstractRateLimiter, RateLimitLease


class ConcurrencyLimiter(AbstractRateLimiter):
    """Semaphore-like limiter with a bounded oldest-first queue."""

    def __init__(
        self,
        *,
        name: str,
        permit_limit: int,
        queue_limit: int = 0,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        if permit_limit < 1:
            raise ValueError("permit_limit must be >= 1")

        super().__init__(name=name, queue_limit=queue_limit, clock=clock)
        self._permit_limit = permit_limit
        self._available = permit_limit

    @property
    def permit_limit(self) -> int:
        return self._permit_limit

    def _available_locked(self) -> int:
        return self._available

    def _take_locked(self, permit_count: int) -> None:
        self._available -= permit_count

    def _give_back_locked(self, permit_count: int, epoch: int) -> None:
        self._available += permit_count

    def _lease_for(self, permit_count: int) -> RateLimitLease:
        return RateLimitLease(
            True,
            permit_count=permit_count,
            on_release=partial(self._release, permit_count),
        )

    def _release(self, permit_count: int) -> None:
        with self._lock:
            self._available += permit_count
            self._process_queue_locked()
