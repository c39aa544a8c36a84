from __future__ import annotations

from fastapi import APIRouter, Request

router = APIRouter(tags=["Health"])


@router.get("/health")
def health_check(request: Request) -> dict:
    """Health check endpoint.

    Reports ok once the app has been built, which implies every rate
    limiting policy was registered and resolved at startup.

    Returns:
        dict: ``status`` plus the number of registered policies.
    """

    registry = request.app.state.registry
    return {"status": "ok", "rate_limit_policies": len(registry)}
