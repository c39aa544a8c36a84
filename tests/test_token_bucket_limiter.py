"""Unit tests for the token-bucket rate limiter."""

import asyncio

import pytest

from minimal_api.adapters.rate_limit import TokenBucketRateLimiter


def _bucket(clock, **overrides) -> TokenBucketRateLimiter:
    params = {
        "name": "tb",
        "token_limit": 10,
        "replenishment_period_seconds": 20,
        "tokens_per_period": 4,
        "clock": clock,
    }
    params.update(overrides)
    return TokenBucketRateLimiter(**params)


def test_starts_full_and_refills_per_period(clock) -> None:
    limiter = _bucket(clock)

    for _ in range(10):
        assert limiter.attempt_acquire().is_acquired

    rejected = limiter.attempt_acquire()
    assert rejected.is_acquired is False
    assert rejected.retry_after == 20

    clock.advance(20)
    assert limiter.get_statistics().available_permits == 4
    for _ in range(4):
        assert limiter.attempt_acquire().is_acquired
    assert limiter.attempt_acquire().is_acquired is False


def test_refill_is_capped_at_token_limit(clock) -> None:
    limiter = _bucket(clock)
    for _ in range(10):
        limiter.attempt_acquire()

    clock.advance(200)

    assert limiter.get_statistics().available_permits == 10


def test_partial_period_adds_nothing_and_keeps_schedule(clock) -> None:
    limiter = _bucket(clock)
    for _ in range(10):
        limiter.attempt_acquire()

    clock.advance(19)
    assert limiter.get_statistics().available_permits == 0

    clock.advance(1)
    assert limiter.get_statistics().available_permits == 4

    # Next refill is at t=40 regardless of when tokens were read
    clock.advance(19)
    assert limiter.get_statistics().available_permits == 4
    clock.advance(1)
    assert limiter.get_statistics().available_permits == 8


def test_multi_token_requests(clock) -> None:
    limiter = _bucket(clock)

    assert limiter.attempt_acquire(7).is_acquired
    assert limiter.attempt_acquire(4).is_acquired is False
    assert limiter.attempt_acquire(3).is_acquired

    with pytest.raises(ValueError):
        limiter.attempt_acquire(11)


def test_without_auto_replenishment_only_explicit_calls_refill(clock) -> None:
    limiter = _bucket(clock, auto_replenishment=False)
    for _ in range(10):
        limiter.attempt_acquire()

    clock.advance(100)
    assert limiter.attempt_acquire().is_acquired is False

    assert limiter.try_replenish() is True
    assert limiter.get_statistics().available_permits == 4


def test_auto_replenishment_try_replenish_reports_changes(clock) -> None:
    limiter = _bucket(clock)
    limiter.attempt_acquire()

    assert limiter.try_replenish() is False
    clock.advance(20)
    assert limiter.try_replenish() is True


@pytest.mark.asyncio
async def test_queued_requests_granted_after_refill(clock) -> None:
    limiter = _bucket(clock, queue_limit=3)
    for _ in range(10):
        assert (await limiter.acquire()).is_acquired

    waiters = [asyncio.create_task(limiter.acquire()) for _ in range(3)]
    await asyncio.sleep(0)
    assert limiter.get_statistics().queued_count == 3
    assert (await limiter.acquire()).is_acquired is False

    clock.advance(20)
    limiter.try_replenish()

    leases = await asyncio.wait_for(asyncio.gather(*waiters), 1)
    assert all(lease.is_acquired for lease in leases)
    assert limiter.get_statistics().available_permits == 1


@pytest.mark.asyncio
async def test_queued_caller_is_served_by_the_wakeup_timer() -> None:
    limiter = TokenBucketRateLimiter(
        name="tb",
        token_limit=1,
        replenishment_period_seconds=0.2,
        tokens_per_period=1,
        queue_limit=1,
    )
    assert limiter.attempt_acquire().is_acquired

    loop = asyncio.get_running_loop()
    started = loop.time()
    # No further calls: only the scheduled wake-up can grant this caller
    lease = await asyncio.wait_for(limiter.acquire(), 2)

    assert lease.is_acquired
    assert loop.time() - started < 1
    assert limiter.get_statistics().queued_count == 0
