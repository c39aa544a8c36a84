"""In-memory token-bucket rate limiter."""

from __future__ import annotations

import time
from typing import Callable

from minimal_api.adapters.rate_limit.base import ReplenishingRateLimiter


class TokenBucketRateLimiter(ReplenishingRateLimiter):
    """Rate limiter drawing permits from a bucket of tokens.

    The bucket starts full. Every ``replenishment_period_seconds`` it gains
    ``tokens_per_period`` tokens, never exceeding ``token_limit``. Elapsed
    periods are caught up on access, so no background timer is needed to
    keep the count correct.
    """

    def __init__(
        self,
        *,
        name: str,
        token_limit: int,
        replenishment_period_seconds: float,
        tokens_per_period: int,
        queue_limit: int = 0,
        auto_replenishment: bool = True,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        if token_limit < 1:
            raise ValueError("token_limit must be >= 1")
        if tokens_per_period < 1:
            raise ValueError("tokens_per_period must be >= 1")

        super().__init__(
            name=name,
            queue_limit=queue_limit,
            replenishment_period=replenishment_period_seconds,
            auto_replenishment=auto_replenishment,
            clock=clock,
        )
        self._token_limit = token_limit
        self._tokens_per_period = tokens_per_period
        self._tokens = token_limit

    @property
    def permit_limit(self) -> int:
        return self._token_limit

    @property
    def tokens_per_period(self) -> int:
        return self._tokens_per_period

    def _available_locked(self) -> int:
        return self._tokens

    def _take_locked(self, permit_count: int) -> None:
        self._tokens -= permit_count

    def _give_back_locked(self, permit_count: int, epoch: int) -> None:
        self._tokens = min(self._token_limit, self._tokens + permit_count)

    def _replenish_steps_locked(self, steps: int) -> None:
        self._tokens = min(self._token_limit, self._tokens + steps * self._tokens_per_period)
