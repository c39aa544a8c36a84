"""Process-wide registry mapping policy names to limiter instances.

The registry is filled once at startup and only read afterwards, so lookups
take no lock. Each policy gets exactly one limiter; resolving a name twice
returns the same instance and therefore the same shared state.
"""

from __future__ import annotations

import logging
import time
from typing import Callable, Iterable, Iterator

from minimal_api.adapters.rate_limit.base import (
    AbstractRateLimiter,
    DuplicatePolicyError,
    RateLimiterStatistics,
    UnknownPolicyError,
)
from minimal_api.adapters.rate_limit.concurrency import ConcurrencyLimiter
from minimal_api.adapters.rate_limit.fixed_window import FixedWindowRateLimiter
from minimal_api.adapters.rate_limit.sliding_window import SlidingWindowRateLimiter
from minimal_api.adapters.rate_limit.token_bucket import TokenBucketRateLimiter
from minimal_api.schemas.policy import (
    ConcurrencyPolicy,
    FixedWindowPolicy,
    PolicyConfig,
    SlidingWindowPolicy,
    TokenBucketPolicy,
)

logger = logging.getLogger(__name__)


def create_limiter(
    policy: PolicyConfig,
    *,
    clock: Callable[[], float] = time.monotonic,
) -> AbstractRateLimiter:
    """Build the limiter implementing a policy.

    Args:
        policy: Validated policy configuration.
        clock: Monotonic time source shared by time-based limiters.

    Returns:
        A fresh limiter instance for the policy.

    Raises:
        TypeError: If the policy type is not supported.
    """

    if isinstance(policy, FixedWindowPolicy):
        return FixedWindowRateLimiter(
            name=policy.name,
            permit_limit=policy.permit_limit,
            window_seconds=policy.window_seconds,
            queue_limit=policy.queue_limit,
            auto_replenishment=policy.auto_replenishment,
            clock=clock,
        )
    if isinstance(policy, SlidingWindowPolicy):
        return SlidingWindowRateLimiter(
            name=policy.name,
            permit_limit=policy.permit_limit,
            window_seconds=policy.window_seconds,
            segments_per_window=policy.segments_per_window,
            queue_limit=policy.queue_limit,
            auto_replenishment=policy.auto_replenishment,
            clock=clock,
        )
    if isinstance(policy, TokenBucketPolicy):
        return TokenBucketRateLimiter(
            name=policy.name,
            token_limit=policy.token_limit,
            replenishment_period_seconds=policy.replenishment_period_seconds,
            tokens_per_period=policy.tokens_per_period,
            queue_limit=policy.queue_limit,
            auto_replenishment=policy.auto_replenishment,
            clock=clock,
        )
    if isinstance(policy, ConcurrencyPolicy):
        return ConcurrencyLimiter(
            name=policy.name,
            permit_limit=policy.permit_limit,
            queue_limit=policy.queue_limit,
            clock=clock,
        )
    raise TypeError(f"Unsupported rate limiting policy: {type(policy).__name__}")


class PolicyRegistry:
    """Named rate limiting policies and their limiter instances."""

    def __init__(self, *, clock: Callable[[], float] = time.monotonic) -> None:
        self._clock = clock
        self._policies: dict[str, PolicyConfig] = {}
        self._limiters: dict[str, AbstractRateLimiter] = {}

    def __contains__(self, name: object) -> bool:
        return name in self._limiters

    def __iter__(self) -> Iterator[str]:
        return iter(self._limiters)

    def __len__(self) -> int:
        return len(self._limiters)

    def register(self, policy: PolicyConfig) -> AbstractRateLimiter:
        """Register a policy and create its limiter.

        Raises:
            DuplicatePolicyError: If a policy with the same name exists.
        """
        if policy.name in self._limiters:
            raise DuplicatePolicyError(policy.name)

        limiter = create_limiter(policy, clock=self._clock)
        self._policies[policy.name] = policy
        self._limiters[policy.name] = limiter

        logger.info(
            "rate_limit.policy_registered",
            extra={
                "policy": policy.name,
                "kind": policy.kind,
                "permit_limit": limiter.permit_limit,
                "queue_limit": policy.queue_limit,
            },
        )
        return limiter

    def resolve(self, name: str) -> AbstractRateLimiter:
        """Return the limiter for a policy name.

        Raises:
            UnknownPolicyError: If no policy with that name is registered.
        """
        try:
            return self._limiters[name]
        except KeyError:
            raise UnknownPolicyError(name) from None

    def policy(self, name: str) -> PolicyConfig:
        try:
            return self._policies[name]
        except KeyError:
            raise UnknownPolicyError(name) from None

    def names(self) -> list[str]:
        return list(self._limiters)

    def statistics(self) -> dict[str, RateLimiterStatistics]:
        return {name: limiter.get_statistics() for name, limiter in self._limiters.items()}


def build_policy_registry(
    policies: Iterable[PolicyConfig],
    *,
    clock: Callable[[], float] = time.monotonic,
) -> PolicyRegistry:
    """Create a registry holding every policy in ``policies``.

    Raises:
        DuplicatePolicyError: If two policies share a name.
    """

    registry = PolicyRegistry(clock=clock)
    for policy in policies:
        registry.register(policy)
    return registry
