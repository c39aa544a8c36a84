"""In-memory output cache with TTL, LRU eviction and tag invalidation.

Responses are cached under a key derived from the cache policy, the request
path and the route values the policy varies by. Each entry carries the tags
of its policy so writes can invalidate every dependent response at once
(e.g. creating a person evicts everything tagged ``person``).
"""

from __future__ import annotations

import logging
import threading
import time
from collections import OrderedDict
from dataclasses import dataclass, field
from hashlib import sha256
from typing import Any, Mapping

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CachePolicy:
    """How long a response is cached, what it varies by and how it is tagged."""

    name: str
    expire_seconds: float
    tags: frozenset[str] = frozenset()
    vary_by_route_values: tuple[str, ...] = ()


BASE_POLICY = CachePolicy(name="base", expire_seconds=100, tags=frozenset({"person"}))

CACHE_POLICIES: dict[str, CachePolicy] = {
    "Expire20": CachePolicy(name="Expire20", expire_seconds=20),
    "Expire30": CachePolicy(name="Expire30", expire_seconds=30),
    "VaryByRouteParam": CachePolicy(
        name="VaryByRouteParam",
        expire_seconds=30,
        tags=frozenset({"person"}),
        vary_by_route_values=("id",),
    ),
}


def get_cache_policy(name: str | None) -> CachePolicy:
    """Return a named cache policy, or the base policy when ``name`` is None.

    Raises:
        KeyError: If no policy with that name exists.
    """

    if name is None:
        return BASE_POLICY
    return CACHE_POLICIES[name]


@dataclass
class CacheItem:
    """Container for cached values with expiration metadata."""

    value: Any
    expires_at: float
    tags: frozenset[str] = field(default_factory=frozenset)


class OutputCache:
    """Thread-safe, in-memory response cache.

    Attributes:
        max_entries: Maximum number of cached items (None for unlimited).
    """

    def __init__(self, max_entries: int | None = 1024) -> None:
        self._max_entries = max_entries
        self._store: OrderedDict[str, CacheItem] = OrderedDict()
        self._lock = threading.RLock()
        self._hits = 0
        self._misses = 0
        self._evictions = 0
        # Bumped by evict_by_tag so fills that started before an eviction are dropped
        self._tag_generations: dict[str, int] = {}

    def __repr__(self) -> str:  # pragma: no cover - representation only
        return (
            f"OutputCache(max_entries={self._max_entries}, size={len(self._store)}, "
            f"hits={self._hits}, misses={self._misses}, evictions={self._evictions})"
        )

    def get(self, key: str) -> Any | None:
        """Retrieve a cached value if it exists and is not expired.

        Args:
            key: Cache key.

        Returns:
            Cached value or None if not found/expired.
        """

        with self._lock:
            item = self._store.get(key)
            if not item:
                self._misses += 1
                logger.debug("cache.miss", extra={"cache_key": key[:16], "reason": "not_found"})
                return None

            if self._is_expired(item):
                self._evict_single(key)
                self._misses += 1
                logger.debug("cache.miss", extra={"cache_key": key[:16], "reason": "expired"})
                return None

            self._hits += 1
            self._store.move_to_end(key)  # mark as recently used
            logger.debug("cache.hit", extra={"cache_key": key[:16]})
            return item.value

    def generation(self, policy: CachePolicy) -> int:
        """Return a token that changes whenever one of the policy's tags is evicted."""

        with self._lock:
            return self._generation_locked(policy)

    def set(
        self,
        key: str,
        value: Any,
        policy: CachePolicy,
        *,
        generation: int | None = None,
    ) -> bool:
        """Store a value using the policy's TTL and tags, evicting as needed.

        Args:
            key: Cache key.
            value: Value to cache.
            policy: Policy giving the TTL and tags.
            generation: Result of ``generation(policy)`` taken before the value
                was produced. When a tag was evicted since, the value may be
                stale and is not stored.

        Returns:
            True if the value was stored.
        """

        with self._lock:
            if generation is not None and generation != self._generation_locked(policy):
                logger.debug(
                    "cache.set_skipped",
                    extra={"cache_key": key[:16], "cache_policy": policy.name, "reason": "evicted"},
                )
                return False

            self._evict_expired_locked()
            self._store[key] = CacheItem(
                value=value,
                expires_at=time.time() + policy.expire_seconds,
                tags=policy.tags,
            )
            self._store.move_to_end(key)
            self._evict_if_over_capacity_locked()

            logger.debug(
                "cache.set",
                extra={
                    "cache_key": key[:16],
                    "cache_policy": policy.name,
                    "size": len(self._store),
                    "ttl_s": policy.expire_seconds,
                },
            )
            return True

    def evict_by_tag(self, tag: str) -> int:
        """Remove every entry carrying ``tag``.

        Returns:
            Number of entries removed.
        """

        with self._lock:
            self._tag_generations[tag] = self._tag_generations.get(tag, 0) + 1
            tagged = [k for k, item in self._store.items() if tag in item.tags]
            for key in tagged:
                self._evict_single(key)

        logger.info("cache.evicted_by_tag", extra={"tag": tag, "evicted": len(tagged)})
        return len(tagged)

    def clear(self) -> None:
        """Remove all cached entries and reset counters."""

        with self._lock:
            self._store.clear()
            self._hits = 0
            self._misses = 0
            self._evictions = 0

    def stats(self) -> dict[str, int | None]:
        """Return lightweight cache metrics without exposing values."""

        with self._lock:
            return {
                "max_entries": self._max_entries,
                "entries": len(self._store),
                "hits": self._hits,
                "misses": self._misses,
                "evictions": self._evictions,
            }

    def _generation_locked(self, policy: CachePolicy) -> int:
        return sum(self._tag_generations.get(tag, 0) for tag in policy.tags)

    def _evict_single(self, key: str) -> None:
        if key in self._store:
            self._store.pop(key, None)
            self._evictions += 1

    def _evict_expired_locked(self) -> None:
        now = time.time()
        expired_keys = [k for k, item in self._store.items() if item.expires_at <= now]
        for key in expired_keys:
            self._evict_single(key)

    def _evict_if_over_capacity_locked(self) -> None:
        if self._max_entries is None:
            return

        while len(self._store) > self._max_entries:
            # popitem(last=False) removes the least recently used entry
            self._store.popitem(last=False)
            self._evictions += 1

    def _is_expired(self, item: CacheItem) -> bool:
        return time.time() > item.expires_at


def build_cache_key(
    policy: CachePolicy,
    path: str,
    route_values: Mapping[str, Any] | None = None,
) -> str:
    """Build a stable cache key for a request under a policy.

    Only the route values named by ``policy.vary_by_route_values`` take part
    in the key; the path is always included.

    Returns:
        Hex-encoded SHA-256 digest string.
    """

    hasher = sha256()
    hasher.update(policy.name.encode())
    hasher.update(b"\0")
    hasher.update(path.encode())
    values = route_values or {}
    for name in policy.vary_by_route_values:
        hasher.update(b"\0")
        hasher.update(f"{name}={values.get(name)}".encode())
    return hasher.hexdigest()
