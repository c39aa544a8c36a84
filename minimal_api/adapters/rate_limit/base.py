"""Rate limiter interfaces and shared queueing machinery.

The API depends on these abstractions (not the concrete algorithms) so a
policy can switch between fixed window, sliding window, token bucket and
concurrency limiting without changes to the HTTP layer.

Every limiter:
- guards its own state with a per-instance lock (no global lock),
- decides and mutates under that lock so permits can never be over-issued,
- queues waiters oldest-first as ``asyncio.Future`` objects, bounded by
  ``queue_limit``; queued callers are always served before new callers.
"""

from __future__ import annotations

import asyncio
import logging
import math
import threading
import time
from abc import ABC, abstractmethod
from collections import deque
from dataclasses import dataclass
from typing import Any, Callable

logger = logging.getLogger(__name__)


class RateLimitConfigError(Exception):
    """Raised when the policy registry is misconfigured (fatal at startup)."""

    def __init__(self, name: str, message: str) -> None:
        super().__init__(message)
        self.name = name


class DuplicatePolicyError(RateLimitConfigError):
    """Raised when registering a policy name that already exists."""

    def __init__(self, name: str) -> None:
        super().__init__(name, f"Rate limiting policy '{name}' is already registered")


class UnknownPolicyError(RateLimitConfigError):
    """Raised when resolving a policy name that was never registered."""

    def __init__(self, name: str) -> None:
        super().__init__(name, f"Rate limiting policy '{name}' is not registered")


class AcquisitionCancelledError(Exception):
    """Raised when a queued acquisition times out before being granted."""


@dataclass(frozen=True)
class RateLimiterStatistics:
    """Point-in-time snapshot of a limiter.

    Attributes:
        permit_limit: Ceiling on outstanding permits.
        available_permits: Permits that could be granted right now.
        outstanding_permits: Permits currently counted against the limit.
        queued_count: Permits waiting in the queue.
        total_successful_leases: Leases granted since creation.
        total_failed_leases: Leases rejected since creation.
    """

    permit_limit: int
    available_permits: int
    outstanding_permits: int
    queued_count: int
    total_successful_leases: int
    total_failed_leases: int


class RateLimitLease:
    """Outcome of an acquisition attempt.

    A granted lease (``is_acquired``) holds ``permit_count`` permits until it
    is released. Release is idempotent and may happen from any thread; use it
    as a context manager to scope the permit to a block.
    """

    __slots__ = (
        "_is_acquired",
        "permit_count",
        "retry_after",
        "reason",
        "_on_release",
        "_released",
        "_release_lock",
    )

    def __init__(
        self,
        is_acquired: bool,
        *,
        permit_count: int = 0,
        retry_after: float | None = None,
        reason: str | None = None,
        on_release: Callable[[], None] | None = None,
    ) -> None:
        self._is_acquired = is_acquired
        self.permit_count = permit_count
        self.retry_after = retry_after
        self.reason = reason
        self._on_release = on_release
        self._released = False
        self._release_lock = threading.Lock()

    @property
    def is_acquired(self) -> bool:
        return self._is_acquired

    @property
    def released(self) -> bool:
        return self._released

    def release(self) -> None:
        """Return the held permits to the limiter (no-op when rejected)."""
        with self._release_lock:
            if self._released:
                return
            self._released = True
        if self._on_release is not None:
            self._on_release()

    def __enter__(self) -> RateLimitLease:
        return self

    def __exit__(self, *exc_info: Any) -> None:
        self.release()

    async def __aenter__(self) -> RateLimitLease:
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        self.release()

    def __repr__(self) -> str:  # pragma: no cover - representation only
        return (
            f"RateLimitLease(is_acquired={self._is_acquired}, permit_count={self.permit_count}, "
            f"retry_after={self.retry_after}, reason={self.reason!r}, released={self._released})"
        )


@dataclass(eq=False)
class _Waiter:
    permit_count: int
    future: asyncio.Future
    granted: bool = False
    dropped: bool = False
    epoch: int = 0


def _resolve_waiter(future: asyncio.Future, lease: RateLimitLease) -> None:
    if not future.done():
        future.set_result(lease)


class AbstractRateLimiter(ABC):
    """Base class for all limiter algorithms.

    Subclasses describe *capacity* (how many permits are available, how to
    take and give them back); this class owns the admission decision, the
    bounded oldest-first queue and cancellation.
    """

    def __init__(
        self,
        *,
        name: str,
        queue_limit: int,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        if queue_limit < 0:
            raise ValueError("queue_limit must be >= 0")

        self.name = name
        self._queue_limit = queue_limit
        self._clock = clock
        self._lock = threading.RLock()
        self._queue: deque[_Waiter] = deque()
        self._queued_permits = 0
        self._successful = 0
        self._failed = 0
        # Incremented whenever time-based capacity is replenished
        self._epoch = 0

    @property
    @abstractmethod
    def permit_limit(self) -> int:
        """Maximum number of outstanding permits."""

    @property
    def queue_limit(self) -> int:
        return self._queue_limit

    @abstractmethod
    def _available_locked(self) -> int:
        """Permits that could be granted now. Caller holds the lock."""

    @abstractmethod
    def _take_locked(self, permit_count: int) -> None:
        """Consume permits for a grant. Caller holds the lock."""

    @abstractmethod
    def _give_back_locked(self, permit_count: int, epoch: int) -> None:
        """Undo a grant that was never delivered. Caller holds the lock."""

    def _replenish_locked(self, now: float) -> bool:
        """Catch up time-based capacity; return True when anything changed."""
        return False

    def _retry_after_locked(self, now: float) -> float | None:
        """Seconds until capacity may return, when the algorithm knows it."""
        return None

    def _schedule_wakeup_locked(self, loop: asyncio.AbstractEventLoop) -> None:
        """Arrange for queued waiters to be re-examined (time-based limiters)."""

    def _cancel_wakeup_locked(self) -> None:
        """Drop any pending wake-up once the queue is empty."""

    def _grant_epoch_locked(self) -> int:
        """Tag recorded on a queued grant and handed back to ``_give_back_locked``."""
        return self._epoch

    def _lease_for(self, permit_count: int) -> RateLimitLease:
        return RateLimitLease(True, permit_count=permit_count)

    def _check_permit_count(self, permit_count: int) -> None:
        if permit_count < 1:
            raise ValueError("permit_count must be >= 1")
        if permit_count > self.permit_limit:
            raise ValueError(
                f"permit_count {permit_count} exceeds the permit limit of {self.permit_limit}"
            )

    def _refresh_locked(self) -> None:
        if self._replenish_locked(self._clock()):
            self._epoch += 1
            self._process_queue_locked()

    def _can_grant_now_locked(self, permit_count: int) -> bool:
        return not self._queue and self._available_locked() >= permit_count

    def _grant_locked(self, permit_count: int) -> RateLimitLease:
        self._take_locked(permit_count)
        self._successful += 1
        return self._lease_for(permit_count)

    def _reject_locked(self, permit_count: int, reason: str) -> RateLimitLease:
        self._failed += 1
        retry_after = self._retry_after_locked(self._clock())
        return RateLimitLease(
            False,
            permit_count=permit_count,
            retry_after=retry_after,
            reason=reason,
        )

    def _process_queue_locked(self) -> None:
        """Grant queued waiters oldest-first while capacity allows."""
        while self._queue:
            waiter = self._queue[0]
            if waiter.future.done():
                # Cancelled; its task will observe ``dropped`` when it unwinds
                self._queue.popleft()
                self._queued_permits -= waiter.permit_count
                waiter.dropped = True
                continue
            if self._available_locked() < waiter.permit_count:
                break

            self._queue.popleft()
            self._queued_permits -= waiter.permit_count
            lease = self._grant_locked(waiter.permit_count)
            waiter.granted = True
            waiter.epoch = self._grant_epoch_locked()
            waiter.future.get_loop().call_soon_threadsafe(_resolve_waiter, waiter.future, lease)

        if not self._queue:
            self._cancel_wakeup_locked()

    def _abandon(self, waiter: _Waiter) -> None:
        """Remove a cancelled waiter, returning permits it was granted."""
        with self._lock:
            self._refresh_locked()
            if waiter.granted:
                self._give_back_locked(waiter.permit_count, waiter.epoch)
                self._successful -= 1
            elif not waiter.dropped:
                self._queue.remove(waiter)
                self._queued_permits -= waiter.permit_count
            self._process_queue_locked()

        logger.debug(
            "rate_limit.acquire_cancelled",
            extra={"policy": self.name, "permit_count": waiter.permit_count},
        )

    def attempt_acquire(self, permit_count: int = 1) -> RateLimitLease:
        """Try to acquire permits without waiting.

        Args:
            permit_count: Permits requested (default 1).

        Returns:
            A granted lease, or a rejected one when capacity is exhausted or
            older callers are already queued.

        Raises:
            ValueError: If permit_count is below 1 or above the permit limit.
        """
        self._check_permit_count(permit_count)

        with self._lock:
            self._refresh_locked()
            if self._can_grant_now_locked(permit_count):
                return self._grant_locked(permit_count)
            return self._reject_locked(permit_count, reason="permit_limit_exceeded")

    async def acquire(
        self,
        permit_count: int = 1,
        *,
        timeout: float | None = None,
    ) -> RateLimitLease:
        """Acquire permits, waiting in the queue when allowed.

        Args:
            permit_count: Permits requested (default 1).
            timeout: Maximum seconds to wait in the queue (None waits forever).

        Returns:
            A granted lease, or a rejected one when the queue is full.

        Raises:
            ValueError: If permit_count is below 1 or above the permit limit.
            AcquisitionCancelledError: If the timeout elapses while queued.
            asyncio.CancelledError: If the calling task is cancelled while queued.
        """
        self._check_permit_count(permit_count)
        loop = asyncio.get_running_loop()

        with self._lock:
            self._refresh_locked()
            if self._can_grant_now_locked(permit_count):
                return self._grant_locked(permit_count)

            if self._queued_permits + permit_count > self._queue_limit:
                return self._reject_locked(permit_count, reason="queue_limit_exceeded")

            waiter = _Waiter(permit_count=permit_count, future=loop.create_future())
            self._queue.append(waiter)
            self._queued_permits += permit_count
            queued = self._queued_permits
            self._schedule_wakeup_locked(loop)

        logger.debug(
            "rate_limit.queued",
            extra={"policy": self.name, "permit_count": permit_count, "queued": queued},
        )

        try:
            if timeout is None:
                return await waiter.future
            return await asyncio.wait_for(waiter.future, timeout)
        except asyncio.TimeoutError:
            self._abandon(waiter)
            raise AcquisitionCancelledError(
                f"Timed out after {timeout}s waiting for policy '{self.name}'"
            ) from None
        except asyncio.CancelledError:
            self._abandon(waiter)
            raise

    def get_statistics(self) -> RateLimiterStatistics:
        """Return a snapshot of the limiter's counters."""
        with self._lock:
            self._refresh_locked()
            available = self._available_locked()
            return RateLimiterStatistics(
                permit_limit=self.permit_limit,
                available_permits=available,
                outstanding_permits=self.permit_limit - available,
                queued_count=self._queued_permits,
                total_successful_leases=self._successful,
                total_failed_leases=self._failed,
            )


class ReplenishingRateLimiter(AbstractRateLimiter):
    """Base for limiters whose capacity returns over time.

    Capacity is replenished in discrete steps of ``replenishment_period``
    seconds. With ``auto_replenishment`` the elapsed steps are caught up
    lazily on every access, and a single wake-up is scheduled on the event
    loop while callers are queued. Without it, only ``try_replenish()``
    advances the limiter, one step per call.
    """

    def __init__(
        self,
        *,
        name: str,
        queue_limit: int,
        replenishment_period: float,
        auto_replenishment: bool = True,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        if replenishment_period <= 0:
            raise ValueError("replenishment period must be > 0")

        super().__init__(name=name, queue_limit=queue_limit, clock=clock)
        self._replenishment_period = replenishment_period
        self._auto_replenishment = auto_replenishment
        self._last_replenish = clock()
        self._wakeup_handle: asyncio.TimerHandle | None = None

    @property
    def auto_replenishment(self) -> bool:
        return self._auto_replenishment

    @abstractmethod
    def _replenish_steps_locked(self, steps: int) -> None:
        """Apply ``steps`` whole replenishment periods. Caller holds the lock."""

    def _replenish_locked(self, now: float) -> bool:
        if not self._auto_replenishment:
            return False

        elapsed = now - self._last_replenish
        if elapsed < self._replenishment_period:
            return False

        steps = int(elapsed // self._replenishment_period)
        # Advance by whole periods so boundaries never drift
        self._last_replenish += steps * self._replenishment_period
        self._replenish_steps_locked(steps)
        return True

    def _retry_after_locked(self, now: float) -> float | None:
        if not self._auto_replenishment:
            return None
        remaining = self._last_replenish + self._replenishment_period - now
        return float(max(1, math.ceil(remaining)))

    def try_replenish(self) -> bool:
        """Replenish capacity now.

        With auto replenishment this only catches up elapsed periods; without
        it, exactly one period's worth of capacity is added.

        Returns:
            True if capacity was replenished.
        """
        with self._lock:
            if self._auto_replenishment:
                changed = self._replenish_locked(self._clock())
            else:
                self._last_replenish = self._clock()
                self._replenish_steps_locked(1)
                changed = True

            if changed:
                self._epoch += 1
                self._process_queue_locked()
            return changed

    def _schedule_wakeup_locked(self, loop: asyncio.AbstractEventLoop) -> None:
        if not self._auto_replenishment or self._wakeup_handle is not None:
            return
        delay = max(0.0, self._last_replenish + self._replenishment_period - self._clock())
        self._wakeup_handle = loop.call_later(delay, self._on_wakeup, loop)

    def _cancel_wakeup_locked(self) -> None:
        if self._wakeup_handle is not None:
            self._wakeup_handle.cancel()
            self._wakeup_handle = None

    def _on_wakeup(self, loop: asyncio.AbstractEventLoop) -> None:
        with self._lock:
            self._wakeup_handle = None
            self._refresh_locked()
            if self._queue:
                self._schedule_wakeup_locked(loop)
