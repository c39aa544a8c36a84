from __future__ import annotations

from fastapi import APIRouter

from minimal_api.adapters.rate_limit import PolicyRegistry
from minimal_api.schemas.rate_limit import RateLimitPolicyStats


def create_rate_limit_router(registry: PolicyRegistry) -> APIRouter:
    """Build the router exposing rate limiting statistics."""

    router = APIRouter(tags=["Rate limits"])

    @router.get("/rate-limits", response_model=list[RateLimitPolicyStats])
    def list_rate_limits() -> list[RateLimitPolicyStats]:
        """Return a statistics snapshot of every registered policy.

        Reading statistics never consumes permits.
        """

        snapshots = []
        for name, stats in registry.statistics().items():
            policy = registry.policy(name)
            snapshots.append(
                RateLimitPolicyStats(
                    name=name,
                    kind=policy.kind,
                    permit_limit=stats.permit_limit,
                    queue_limit=policy.queue_limit,
                    available_permits=stats.available_permits,
                    outstanding_permits=stats.outstanding_permits,
                    queued_count=stats.queued_count,
                    total_successful_leases=stats.total_successful_leases,
                    total_failed_leases=stats.total_failed_leases,
                )
            )
        return snapshots

    return router
