"""Pydantic schemas for rate limiting statistics responses."""

from __future__ import annotations

from pydantic import BaseModel, Field


class RateLimitPolicyStats(BaseModel):
    """Snapshot of one rate limiting policy."""

    name: str = Field(..., description="Policy name.")
    kind: str = Field(..., description="Algorithm: fixed_window, sliding_window, token_bucket or concurrency.")
    permit_limit: int = Field(..., description="Ceiling on outstanding permits.")
    queue_limit: int = Field(..., description="Maximum queued permits.")
    available_permits: int
    outstanding_permits: int
    queued_count: int
    total_successful_leases: int
    total_failed_leases: int
