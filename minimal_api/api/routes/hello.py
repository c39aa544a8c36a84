from __future__ import annotations

from fastapi import APIRouter, Response
from fastapi.responses import PlainTextResponse

from minimal_api.core.output_caching import serve_cached
from minimal_api.utils.output_cache import OutputCache, build_cache_key, get_cache_policy

HELLO_PATH = "/hello-minimal-api"
HELLO_MESSAGE = "Hello Minimal Api!!!"
OPTIONS_MESSAGE = "This is a OPTIONS call to minimal api"


def create_hello_router(*, cache: OutputCache | None) -> APIRouter:
    """Build the hello router; GET responses are cached for 30 seconds."""

    router = APIRouter(tags=["Hello"], default_response_class=PlainTextResponse)
    hello_cache_policy = get_cache_policy("Expire30")
    hello_cache_key = build_cache_key(hello_cache_policy, HELLO_PATH)

    @router.get(HELLO_PATH)
    def hello_get(response: Response) -> str:
        return serve_cached(
            cache,
            hello_cache_policy,
            hello_cache_key,
            lambda: HELLO_MESSAGE,
            response,
            response_class=PlainTextResponse,
        )

    @router.api_route(HELLO_PATH, methods=["POST", "PUT", "DELETE"])
    def hello() -> str:
        return HELLO_MESSAGE

    @router.options(HELLO_PATH)
    def hello_options() -> str:
        return OPTIONS_MESSAGE

    return router
