"""Rate limiting dependency for FastAPI routes.

This module wires the limiter adapters into the HTTP layer.

Design goals:
- Minimal coupling: routes depend on a dependency built from a resolved
  limiter, never on a concrete algorithm.
- Fail fast: policies are resolved when routers are constructed, so a route
  naming an unregistered policy stops the app from starting.
- Rejections are outcomes, not errors: a rejected lease becomes HTTP 429
  and the route handler never runs.
"""

from __future__ import annotations

import logging
from typing import AsyncIterator, Callable

from fastapi import HTTPException, Request, status

from minimal_api.adapters.rate_limit import AbstractRateLimiter, PolicyRegistry, RateLimitLease
from minimal_api.core.config import RateLimitSettings

logger = logging.getLogger(__name__)


def _build_throttle_headers(limiter: AbstractRateLimiter, lease: RateLimitLease) -> dict[str, str]:
    """Build the informational headers sent with a 429 response."""

    stats = limiter.get_statistics()
    headers = {
        "X-RateLimit-Policy": limiter.name,
        "X-RateLimit-Limit": str(stats.permit_limit),
        "X-RateLimit-Remaining": str(stats.available_permits),
    }
    if lease.retry_after is not None:
        headers["Retry-After"] = str(int(lease.retry_after))
    return headers


def require_rate_limiting(
    registry: PolicyRegistry,
    policy_name: str,
    rate_limit_settings: RateLimitSettings,
) -> Callable[[Request], AsyncIterator[None]]:
    """Create a dependency enforcing a named policy.

    The lease is held for the duration of the request and released when the
    dependency exits, which is what returns capacity to concurrency limits.

    Args:
        registry: Registry holding the policy.
        policy_name: Name of the policy to enforce.
        rate_limit_settings: Rate limiting settings (enable flag, headers).

    Returns:
        An async generator dependency for ``Depends(...)``.

    Raises:
        UnknownPolicyError: If ``policy_name`` is not registered.
    """

    limiter = registry.resolve(policy_name)

    async def enforce_rate_limit(request: Request) -> AsyncIterator[None]:
        """FastAPI dependency enforcing the policy.

        Raises:
            HTTPException: 429 Too Many Requests when the policy rejects.
        """

        if not rate_limit_settings.enabled:
            yield
            return

        lease = await limiter.acquire()
        if not lease.is_acquired:
            logger.warning(
                "rate_limit.rejected",
                extra={
                    "policy": policy_name,
                    "reason": lease.reason,
                    "retry_after_s": lease.retry_after,
                    "route": request.url.path,
                },
            )
            headers = (
                _build_throttle_headers(limiter, lease)
                if rate_limit_settings.include_headers
                else None
            )
            raise HTTPException(
                status_code=status.HTTP_429_TOO_MANY_REQUESTS,
                detail="Rate limit exceeded. Try again later.",
                headers=headers,
            )

        logger.info(
            "rate_limit.granted",
            extra={"policy": policy_name, "route": request.url.path},
        )
        try:
            yield
        finally:
            lease.release()

    return enforce_rate_limit
