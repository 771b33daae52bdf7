"""
Bounded in-process TTL cache with tag-based invalidation.

Instances are passed explicitly to the services that use them; nothing in
the service relies on a process-wide cache. The clock is injectable so
tests can advance time without sleeping.

Expiry is checked lazily on read. Once `max_entries` is exceeded the least
recently used entry is evicted. An invalidation that matches a key whose
load is still in flight marks that load stale: waiters still receive the
value, but it is not stored.
"""
import asyncio
import time
from collections import OrderedDict
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Dict, FrozenSet, Hashable, Iterable, Optional, Set


@dataclass
class _Entry:
    value: Any
    expires_at: float
    tags: FrozenSet[str] = field(default_factory=frozenset)


class TTLCache:
    def __init__(
        self,
        ttl_seconds: float = 300,
        max_entries: int = 512,
        clock: Callable[[], float] = time.monotonic,
    ):
        if max_entries < 1:
            raise ValueError("max_entries must be at least 1")
        self.ttl_seconds = ttl_seconds
        self.max_entries = max_entries
        self.clock = clock
        self._entries: "OrderedDict[Hashable, _Entry]" = OrderedDict()
        self._inflight: Dict[Hashable, asyncio.Future] = {}
        self._inflight_tags: Dict[Hashable, FrozenSet[str]] = {}
        self._stale: Set[Hashable] = set()
        self.stats = {"hits": 0, "misses": 0, "sets": 0, "evictions": 0, "invalidations": 0}

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, key: Hashable) -> bool:
        return self._live(key) is not None

    def _live(self, key: Hashable) -> Optional[_Entry]:
        entry = self._entries.get(key)
        if entry is None:
            return None
        if entry.expires_at <= self.clock():
            del self._entries[key]
            return None
        return entry

    def get(self, key: Hashable, default: Any = None) -> Any:
        entry = self._live(key)
        if entry is None:
            self.stats["misses"] += 1
            return default
        self._entries.move_to_end(key)
        self.stats["hits"] += 1
        return entry.value

    def set(
        self,
        key: Hashable,
        value: Any,
        ttl: Optional[float] = None,
        tags: Iterable[str] = (),
    ) -> None:
        ttl = self.ttl_seconds if ttl is None else ttl
        self._entries[key] = _Entry(value, self.clock() + ttl, frozenset(tags))
        self._entries.move_to_end(key)
        self.stats["sets"] += 1
        while len(self._entries) > self.max_entries:
            self._entries.popitem(last=False)
            self.stats["evictions"] += 1

    def delete(self, key: Hashable) -> bool:
        if key in self._inflight:
            self._stale.add(key)
        return self._entries.pop(key, None) is not None

    def invalidate_where(self, predicate: Callable[[Hashable], bool]) -> int:
        """Drop every entry whose key satisfies `predicate`. Returns the count."""
        self._stale.update(k for k in self._inflight if predicate(k))
        doomed = [k for k in self._entries if predicate(k)]
        for k in doomed:
            del self._entries[k]
        self.stats["invalidations"] += len(doomed)
        return len(doomed)

    def invalidate_tag(self, tag: str) -> int:
        self._stale.update(k for k, t in self._inflight_tags.items() if tag in t)
        doomed = [k for k, e in self._entries.items() if tag in e.tags]
        for k in doomed:
            del self._entries[k]
        self.stats["invalidations"] += len(doomed)
        return len(doomed)

    def clear(self) -> None:
        self._stale.update(self._inflight)
        self._entries.clear()

    async def get_or_load(
        self,
        key: Hashable,
        loader: Callable[[], Awaitable[Any]],
        ttl: Optional[float] = None,
        tags: Iterable[str] = (),
    ) -> Any:
        """
        Return the cached value for `key`, loading it once if absent.

        Concurrent callers for the same key share a single in-flight load.
        A load that raises is not cached; every waiter sees the exception. A
        load invalidated before it finishes is returned but not cached.
        """
        entry = self._live(key)
        if entry is not None:
            self._entries.move_to_end(key)
            self.stats["hits"] += 1
            return entry.value

        pending = self._inflight.get(key)
        if pending is not None:
            return await asyncio.shield(pending)

        self.stats["misses"] += 1
        future = asyncio.get_running_loop().create_future()
        tags = frozenset(tags)
        self._inflight[key] = future
        self._inflight_tags[key] = tags
        try:
            value = await loader()
        except Exception as exc:
            future.set_exception(exc)
            # Mark retrieved so an unawaited future does not warn.
            future.exception()
            raise
        except BaseException:
            future.cancel()
            raise
        else:
            if key not in self._stale:
                self.set(key, value, ttl=ttl, tags=tags)
            future.set_result(value)
            return value
        finally:
            self._inflight.pop(key, None)
            self._inflight_tags.pop(key, None)
            self._stale.discard(key)
