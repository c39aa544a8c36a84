"""Serve route responses through the output cache.

Routes hand over a cache policy, a key and a function producing the
response content. Cached content is replayed with ``X-Cache: HIT``; fresh
content is stored and marked ``X-Cache: MISS``.
"""

from __future__ import annotations

from typing import Any, Callable

from fastapi import Response
from fastapi.responses import JSONResponse

from minimal_api.utils.output_cache import CachePolicy, OutputCache

CACHE_HEADER = "X-Cache"


def serve_cached(
    cache: OutputCache | None,
    policy: CachePolicy,
    key: str,
    produce: Callable[[], Any],
    response: Response,
    *,
    response_class: type[Response] = JSONResponse,
) -> Any:
    """Return cached content for ``key``, or produce and cache it.

    Args:
        cache: Output cache, or None when caching is disabled.
        policy: Policy giving the TTL and tags of the entry.
        key: Cache key from ``build_cache_key``.
        produce: Builds the response content; exceptions propagate and
            nothing is cached.
        response: The route's response, used to add the MISS header.
        response_class: Response type used to replay a cached entry.

    Returns:
        A ready response on a hit, otherwise the produced content.
    """

    if cache is None:
        return produce()

    cached = cache.get(key)
    if cached is not None:
        return response_class(content=cached, headers={CACHE_HEADER: "HIT"})

    # Taken before producing so a concurrent write's eviction wins
    generation = cache.generation(policy)
    content = produce()
    cache.set(key, content, policy, generation=generation)
    response.headers[CACHE_HEADER] = "MISS"
    return content
