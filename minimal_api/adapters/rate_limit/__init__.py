"""Rate limiting adapters.

In-memory, per-process implementations of four admission-control
algorithms behind a shared interface, plus the registry that maps policy
names to limiter instances.
"""

from minimal_api.adapters.rate_limit.base import (
    AbstractRateLimiter,
    AcquisitionCancelledError,
    DuplicatePolicyError,
    RateLimitConfigError,
    RateLimiterStatistics,
    RateLimitLease,
    UnknownPolicyError,
)
from minimal_api.adapters.rate_limit.concurrency import ConcurrencyLimiter
from minimal_api.adapters.rate_limit.fixed_window import FixedWindowRateLimiter
from minimal_api.adapters.rate_limit.registry import (
    PolicyRegistry,
    build_policy_registry,
    create_limiter,
)
from minimal_api.adapters.rate_limit.sliding_window import SlidingWindowRateLimiter
from minimal_api.adapters.rate_limit.token_bucket import TokenBucketRateLimiter

__all__ = [
    "AbstractRateLimiter",
    "AcquisitionCancelledError",
    "ConcurrencyLimiter",
    "DuplicatePolicyError",
    "FixedWindowRateLimiter",
    "PolicyRegistry",
    "RateLimitConfigError",
    "RateLimitLease",
    "RateLimiterStatistics",
    "SlidingWindowRateLimiter",
    "TokenBucketRateLimiter",
    "UnknownPolicyError",
    "build_policy_registry",
    "create_limiter",
]
