from __future__ import annotations

from minimal_api.api.routes.health import router as health_router
from minimal_api.api.routes.hello import create_hello_router
from minimal_api.api.routes.person import create_person_router
from minimal_api.api.routes.rate_limits import create_rate_limit_router

__all__ = [
    "create_hello_router",
    "create_person_router",
    "create_rate_limit_router",
    "health_router",
]
