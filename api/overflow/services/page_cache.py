"""Rendered page cache with on-demand revalidation, backed by Redis.

Each route path owns one Redis hash (key "page:{path}"). Hash fields are the
query strings of the cached variants, values are the rendered HTML. Mutating
actions revalidate every route whose rendering they change (the caller's
path plus the listings, tag pages and profiles that show the data), which
drops each hash so the next request for any variant re-renders.

Key format: page:{path}  e.g. page:/community, page:/question/<uuid>
"""

from typing import Optional
from urllib.parse import urlsplit

import redis.asyncio as aioredis
import structlog

from overflow.metrics import page_cache_events

log = structlog.get_logger(__name__)

KEY_PREFIX = "page:"

HOME_ROUTE = "/"
COMMUNITY_ROUTE = "/community"
TAGS_ROUTE = "/tags"


def tag_route(tag_id) -> str:
    return f"{TAGS_ROUTE}/{tag_id}"


def profile_route(clerk_id: str) -> str:
    return f"/profile/{clerk_id}"


def route_key(path: str) -> str:
    """Normalize a path (query and trailing slash stripped) to its cache key."""
    route = urlsplit(path).path or "/"
    if len(route) > 1:
        route = route.rstrip("/")
    return f"{KEY_PREFIX}{route}"


class PageCache:
    def __init__(self, redis_client: aioredis.Redis, ttl_seconds: int) -> None:
        self._redis = redis_client
        self._ttl = ttl_seconds

    async def get(self, path: str, query: str = "") -> Optional[str]:
        html = await self._redis.hget(route_key(path), query)
        page_cache_events.labels(event="hit" if html is not None else "miss").inc()
        return html

    async def set(self, path: str, query: str, html: str) -> None:
        key = route_key(path)
        await self._redis.hset(key, query, html)
        await self._redis.expire(key, self._ttl)

    async def revalidate_path(self, path: str) -> None:
        """Discard every cached variant of the route so it re-renders on next request."""
        key = route_key(path)
        await self._redis.delete(key)
        page_cache_events.labels(event="revalidate").inc()
        log.info("page_revalidated", route=key[len(KEY_PREFIX):])


async def revalidate(cache: Optional[PageCache], *paths: Optional[str]) -> None:
    """Revalidate each non-empty path once, in order, when a cache is wired in."""
    if cache is None:
        return
    seen: set[str] = set()
    for path in paths:
        if not path or route_key(path) in seen:
            continue
        seen.add(route_key(path))
        await cache.revalidate_path(path)
