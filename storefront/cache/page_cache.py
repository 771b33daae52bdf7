"""
Rendered-response cache for storefront reads.

Entries are keyed by request path and carry tags, so a write can drop
pages either by tag ("products") or by path. Path revalidation comes in
two granularities:

    page    only the exact path
    layout  the path and everything below it ("/" drops every page)
"""
from typing import Any, Iterable, Optional

from storefront.cache.ttl_cache import TTLCache

PAGE = "page"
LAYOUT = "layout"

_PREFIX = "page:"


def normalize_path(path: str) -> str:
    if not path.startswith("/"):
        path = "/" + path
    if len(path) > 1:
        path = path.rstrip("/")
    return path


class PageCache:
    def __init__(self, store: Optional[TTLCache] = None):
        self.store = store if store is not None else TTLCache(ttl_seconds=3600)

    def get(self, path: str) -> Optional[Any]:
        return self.store.get(_PREFIX + normalize_path(path))

    def put(self, path: str, payload: Any, tags: Iterable[str] = (), ttl: Optional[float] = None) -> None:
        self.store.set(_PREFIX + normalize_path(path), payload, ttl=ttl, tags=tags)

    def revalidate_tag(self, tag: str) -> int:
        return self.store.invalidate_tag(tag)

    def revalidate_path(self, path: str, kind: str = PAGE) -> int:
        if kind not in (PAGE, LAYOUT):
            raise ValueError(f"Unknown revalidation type: {kind!r}")
        target = normalize_path(path)

        def matches(key) -> bool:
            if not isinstance(key, str) or not key.startswith(_PREFIX):
                return False
            cached = key[len(_PREFIX):]
            if cached == target:
                return True
            if kind == LAYOUT:
                return target == "/" or cached.startswith(target + "/")
            return False

        return self.store.invalidate_where(matches)
