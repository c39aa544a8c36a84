"""Pydantic schemas for rate limiting policy configuration.

Each policy selects one limiter algorithm and its parameters. Policies are
frozen once built; the ``kind`` field discriminates the variants so a policy
list can be loaded from JSON (e.g. the RATE_LIMIT_POLICIES env var).
"""

from __future__ import annotations

from typing import Annotated, Literal, Union

from pydantic import BaseModel, ConfigDict, Field


class _BasePolicy(BaseModel):
    """Attributes shared by every policy variant."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    name: str = Field(..., min_length=1, description="Unique policy name.")
    queue_limit: int = Field(
        0,
        ge=0,
        description="Maximum number of permits that may wait in the queue.",
    )
    queue_order: Literal["oldest_first"] = Field(
        "oldest_first",
        description="Queue processing order. Only oldest-first is supported.",
    )


class FixedWindowPolicy(_BasePolicy):
    kind: Literal["fixed_window"] = "fixed_window"
    permit_limit: int = Field(..., ge=1, description="Maximum permits per window.")
    window_seconds: float = Field(..., gt=0, description="Window length in seconds.")
    auto_replenishment: bool = Field(
        True,
        description="Roll windows over automatically; otherwise only try_replenish() does.",
    )


class SlidingWindowPolicy(_BasePolicy):
    kind: Literal["sliding_window"] = "sliding_window"
    permit_limit: int = Field(..., ge=1, description="Maximum permits per sliding window.")
    window_seconds: float = Field(..., gt=0, description="Window length in seconds.")
    segments_per_window: int = Field(
        ..., ge=1, description="Number of equal segments the window is divided into."
    )
    auto_replenishment: bool = True


class TokenBucketPolicy(_BasePolicy):
    kind: Literal["token_bucket"] = "token_bucket"
    token_limit: int = Field(..., ge=1, description="Bucket capacity.")
    replenishment_period_seconds: float = Field(
        ..., gt=0, description="Interval between replenishments in seconds."
    )
    tokens_per_period: int = Field(..., ge=1, description="Tokens added per period.")
    auto_replenishment: bool = True

    @property
    def permit_limit(self) -> int:
        return self.token_limit


class ConcurrencyPolicy(_BasePolicy):
    kind: Literal["concurrency"] = "concurrency"
    permit_limit: int = Field(
        ..., ge=1, description="Maximum simultaneously held leases."
    )


PolicyConfig = Annotated[
    Union[FixedWindowPolicy, SlidingWindowPolicy, TokenBucketPolicy, ConcurrencyPolicy],
    Field(discriminator="kind"),
]


def default_policies() -> list[PolicyConfig]:
    """Return the policies registered by default at startup."""

    return [
        FixedWindowPolicy(
            name="myfixedwindowlimit",
            permit_limit=5,
            window_seconds=10,
            queue_limit=2,
        ),
        SlidingWindowPolicy(
            name="myslidingwindowlimit",
            permit_limit=4,
            window_seconds=20,
            segments_per_window=4,
            queue_limit=0,
        ),
        TokenBucketPolicy(
            name="mytokenbucketlimit",
            token_limit=10,
            replenishment_period_seconds=20,
            tokens_per_period=4,
            auto_replenishment=True,
            queue_limit=3,
        ),
        ConcurrencyPolicy(
            name="myconcurrencylimit",
            permit_limit=10,
            queue_limit=2,
        ),
    ]
