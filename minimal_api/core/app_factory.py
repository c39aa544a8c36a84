from __future__ import annotations

"""Application factory for the FastAPI app.

Builds every collaborator explicitly (policy registry, person repository,
output cache) and passes them to the routers, so tests can create isolated
apps with their own settings and clock.
"""

import logging
import time
from typing import Callable

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from minimal_api.adapters.rate_limit import build_policy_registry
from minimal_api.api.routes import (
    create_hello_router,
    create_person_router,
    create_rate_limit_router,
    health_router,
)
from minimal_api.core.config import Settings, settings as default_settings
from minimal_api.core.exception_handlers import setup_exception_handlers
from minimal_api.core.logging import configure_logging
from minimal_api.core.middleware import (
    build_request_id_middleware,
    build_request_logging_middleware,
)
from minimal_api.core.openapi import apply_openapi_customizations
from minimal_api.services.person_repository import PersonRepository
from minimal_api.utils.output_cache import OutputCache

logger = logging.getLogger(__name__)


def create_app(
    app_settings: Settings | None = None,
    *,
    repository: PersonRepository | None = None,
    clock: Callable[[], float] = time.monotonic,
) -> FastAPI:
    """Create and configure the FastAPI application instance.

    Args:
        app_settings: Settings to build from (defaults to the global settings).
        repository: Person store to serve (defaults to a freshly seeded one).
        clock: Monotonic time source for the rate limiters.

    Returns:
        Configured app with middleware, handlers, routers and docs.

    Raises:
        RateLimitConfigError: If policies clash or a route names an unknown
            policy. The app is never built in that case.
    """
    cfg = app_settings or default_settings

    # Logging first so subsequent init logs are formatted as desired
    configure_logging(cfg.log)

    registry = build_policy_registry(cfg.rate_limit.policies, clock=clock)
    repository = repository if repository is not None else PersonRepository()
    cache = OutputCache(max_entries=cfg.cache.max_entries) if cfg.cache.enabled else None

    docs_enabled = cfg.docs_enabled
    app = FastAPI(
        title="Minimal API",
        description=(
            "CRUD endpoints over an in-memory person store, with CORS, output "
            "caching, request logging and named rate limiting policies "
            "(fixed window, sliding window, token bucket, concurrency)."
        ),
        version="0.1.0",
        debug=cfg.app.debug,
        docs_url="/docs" if docs_enabled else None,
        redoc_url="/redoc" if docs_enabled else None,
        openapi_url="/openapi.json" if docs_enabled else None,
    )
    app.state.settings = cfg
    app.state.registry = registry
    app.state.repository = repository
    app.state.cache = cache

    # Middleware: the last one added runs first
    app.middleware("http")(build_request_logging_middleware(cfg.log))
    app.middleware("http")(build_request_id_middleware(cfg.log))
    app.add_middleware(
        CORSMiddleware,
        allow_origins=cfg.app.cors_allow_origins,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # Exception handlers
    setup_exception_handlers(app)

    # Routers
    app.include_router(create_hello_router(cache=cache))
    app.include_router(
        create_person_router(
            repository=repository,
            registry=registry,
            cache=cache,
            settings=cfg,
        )
    )
    app.include_router(create_rate_limit_router(registry))
    app.include_router(health_router)

    if docs_enabled:
        apply_openapi_customizations(app)

    logger.info(
        "app.configured",
        extra={
            "app_env": cfg.app_env,
            "policies": registry.names(),
            "cache_enabled": cache is not None,
            "docs_enabled": docs_enabled,
        },
    )
    return app
