"""
LRU cache with TTL and size accounting, and the adapter exposing it.

LRUCache bounds its contents three ways:
- max: maximum number of entries
- max_size: maximum total size, as computed by `size_fn`
- ttl: seconds an entry stays fresh (per-entry override on `set`)

On insert, least-recently-used entries are evicted until both bounds hold.
An entry larger than max_size on its own is rejected. Expired entries are
removed when read. With `allow_stale=True` expired entries keep being served
until they are overwritten, evicted or dropped by `purge_expired`.

The cache is safe to share between threads and between tasks.

Usage:
    cache = LRUCache(max=500, max_size=5000, ttl=300)
    cache.set("user-findOne-abc", {"id": "1"})
    cache.get("user-findOne-abc")

    adapter = CacheAdapter(cache)
    await adapter.create({"data": {"key": "k", "value": "v"}})
"""

from __future__ import annotations

import json
import logging
import threading
import time
from collections import OrderedDict
from collections.abc import Callable, Iterator
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

from ..errors import BadRequestError, NotFoundError
from ..query import apply_find_many, matches
from .base import Args, BaseAdapter

if TYPE_CHECKING:
    from ..context import OperationContext

logger = logging.getLogger(__name__)

DEFAULT_TTL = 300.0
DEFAULT_MAX = 500
DEFAULT_MAX_SIZE = 5000

_MISSING = object()


def json_size(key: str, value: Any) -> int:
    """Byte size of the UTF-8 key plus the JSON-encoded value."""
    key_size = len(key.encode("utf-8")) if key else 0
    if value is None:
        return key_size
    return key_size + len(json.dumps(value, default=str).encode("utf-8"))


@dataclass
class CacheEntry:
    """A single cached value with its bookkeeping."""

    key: str
    value: Any
    inserted_at: float
    size: int
    ttl: float | None = None

    def is_expired(self, now: float) -> bool:
        return self.ttl is not None and self.ttl > 0 and now - self.inserted_at > self.ttl


class LRUCache:
    """
    Thread-safe LRU cache with TTL expiry and a total size bound.

    Args:
        max: Maximum entry count (None for unbounded)
        max_size: Maximum total size (None for unbounded)
        ttl: Default time-to-live in seconds (None or 0 for no expiry)
        size_fn: Computes an entry's size from (key, value)
        allow_stale: Keep serving expired entries until they are overwritten,
            evicted or purged
        clock: Monotonic time source, injectable for tests
    """

    def __init__(
        self,
        max: int | None = DEFAULT_MAX,
        max_size: int | None = DEFAULT_MAX_SIZE,
        ttl: float | None = DEFAULT_TTL,
        size_fn: Callable[[str, Any], int] = json_size,
        allow_stale: bool = False,
        clock: Callable[[], float] = time.monotonic,
    ):
        if max is not None and max <= 0:
            raise ValueError("max must be positive")
        if max_size is not None and max_size <= 0:
            raise ValueError("max_size must be positive")

        self.max = max
        self.max_size = max_size
        self.ttl = ttl
        self.size_fn = size_fn
        self.allow_stale = allow_stale
        self._clock = clock
        self._entries: OrderedDict[str, CacheEntry] = OrderedDict()
        self._total_size = 0
        self._lock = threading.Lock()

    # -------------------------------------------------------------------------
    # Reads
    # -------------------------------------------------------------------------

    def get(self, key: str, default: Any = None) -> Any:
        """Return the value for `key`, marking it most recently used."""
        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                return default
            if not self._live(entry, self._clock()):
                self._remove(key)
                return default
            self._entries.move_to_end(key)
            return entry.value

    def peek(self, key: str, default: Any = None) -> Any:
        """Return the value for `key` without updating recency."""
        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                return default
            if not self._live(entry, self._clock()):
                return default
            return entry.value

    def has(self, key: str) -> bool:
        """True if `key` is present and servable. Does not update recency."""
        with self._lock:
            entry = self._entries.get(key)
            return entry is not None and self._live(entry, self._clock())

    def __contains__(self, key: str) -> bool:
        return self.has(key)

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    @property
    def total_size(self) -> int:
        with self._lock:
            return self._total_size

    def keys(self) -> list[str]:
        """Servable keys, most recently used last."""
        return [key for key, _ in self.items()]

    def items(self) -> list[tuple[str, Any]]:
        """Servable (key, value) pairs, most recently used last."""
        with self._lock:
            now = self._clock()
            return [
                (key, entry.value)
                for key, entry in self._entries.items()
                if self._live(entry, now)
            ]

    def __iter__(self) -> Iterator[str]:
        return iter(self.keys())

    # -------------------------------------------------------------------------
    # Writes
    # -------------------------------------------------------------------------

    def set(self, key: str, value: Any, ttl: float | None = None) -> bool:
        """
        Insert or replace an entry.

        Args:
            key: Cache key
            value: Value to store
            ttl: Per-entry TTL in seconds, overriding the default

        Returns:
            False if the entry alone exceeds max_size and was not stored
        """
        size = self.size_fn(key, value)
        if self.max_size is not None and size > self.max_size:
            logger.debug(f"[lru_cache] Rejected '{key}': size {size} exceeds max_size {self.max_size}")
            with self._lock:
                self._remove(key)
            return False

        entry = CacheEntry(
            key=key,
            value=value,
            inserted_at=self._clock(),
            size=size,
            ttl=self.ttl if ttl is None else ttl,
        )

        with self._lock:
            self._remove(key)
            self._entries[key] = entry
            self._total_size += size
            self._evict()
        return True

    def delete(self, key: str) -> bool:
        with self._lock:
            return self._remove(key) is not None

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()
            self._total_size = 0

    def purge_expired(self) -> int:
        """Drop every expired entry. Returns the number removed."""
        with self._lock:
            now = self._clock()
            expired = [key for key, entry in self._entries.items() if entry.is_expired(now)]
            for key in expired:
                self._remove(key)
            return len(expired)

    # -------------------------------------------------------------------------
    # Internals (caller holds the lock)
    # -------------------------------------------------------------------------

    def _live(self, entry: CacheEntry, now: float) -> bool:
        return self.allow_stale or not entry.is_expired(now)

    def _remove(self, key: str) -> CacheEntry | None:
        entry = self._entries.pop(key, None)
        if entry is not None:
            self._total_size -= entry.size
        return entry

    def _evict(self) -> None:
        while self._entries and (
            (self.max is not None and len(self._entries) > self.max)
            or (self.max_size is not None and self._total_size > self.max_size)
        ):
            key, entry = self._entries.popitem(last=False)
            self._total_size -= entry.size
            logger.debug(f"[lru_cache] Evicted '{key}' (size={entry.size})")

    def __repr__(self) -> str:
        return (
            f"LRUCache(entries={len(self._entries)}, size={self._total_size}, "
            f"max={self.max}, max_size={self.max_size}, ttl={self.ttl})"
        )


# =============================================================================
# Cache Adapter
# =============================================================================


class CacheAdapter(BaseAdapter):
    """
    Exposes an LRUCache as an entity of {key, value} records.

    Lookups by key go straight to the cache. Other where clauses are
    evaluated against every fresh entry with the shared matcher.
    """

    def __init__(self, cache: LRUCache | None = None, **cache_options: Any):
        self.cache = cache if cache is not None else LRUCache(**cache_options)

    @property
    def name(self) -> str:
        return "cache"

    def _records(self) -> list[dict[str, Any]]:
        return [{"key": key, "value": value} for key, value in self.cache.items()]

    def _store(self, key: str, value: Any, ttl: float | None) -> None:
        if not self.cache.set(key, value, ttl=ttl):
            raise BadRequestError(f"Entry '{key}' exceeds max_size", entity="cache")

    def _key_of(self, where: dict[str, Any] | None) -> str | None:
        key = (where or {}).get("key")
        return key if isinstance(key, str) else None

    async def find_one(self, args: Args, ctx: OperationContext | None = None) -> dict | None:
        where = args.get("where") or {}
        key = self._key_of(where)
        if key is not None:
            value = self.cache.get(key, _MISSING)
            if value is _MISSING:
                return None
            record = {"key": key, "value": value}
            return record if matches(record, where) else None

        for record in self._records():
            if matches(record, where):
                return record
        return None

    async def find_many(self, args: Args | None = None, ctx: OperationContext | None = None) -> list[dict]:
        args = args or {}
        return apply_find_many(
            self._records(),
            where=args.get("where"),
            order_by=args.get("order_by"),
            offset=args.get("offset"),
            limit=args.get("limit"),
        )

    async def create(self, args: Args, ctx: OperationContext | None = None) -> dict:
        data = args.get("data") or {}
        key = data.get("key")
        if not key or "value" not in data or data["value"] is None:
            raise BadRequestError("Key and value are required", entity="cache")
        self._store(key, data["value"], data.get("ttl"))
        return {"key": key, "value": data["value"]}

    async def create_many(self, args: Args, ctx: OperationContext | None = None) -> list[dict]:
        return [await self.create({"data": item}, ctx) for item in args.get("data") or []]

    async def update(self, args: Args, ctx: OperationContext | None = None) -> dict:
        existing = await self.find_one(args, ctx)
        if existing is None:
            raise NotFoundError(f"No cache entry matches {args.get('where')}", entity="cache")
        data = args.get("data") or {}
        value = data.get("value", existing["value"])
        self._store(existing["key"], value, data.get("ttl"))
        return {"key": existing["key"], "value": value}

    async def upsert(self, args: Args, ctx: OperationContext | None = None) -> dict:
        if await self.find_one({"where": args.get("where")}, ctx) is not None:
            return await self.update({"where": args.get("where"), "data": args.get("update")}, ctx)
        return await self.create({"data": args.get("create")}, ctx)

    async def delete(self, args: Args, ctx: OperationContext | None = None) -> bool:
        where = args.get("where") or {}
        key = self._key_of(where)
        if key is not None and set(where) == {"key"}:
            return self.cache.delete(key)

        removed = False
        for record in self._records():
            if matches(record, where):
                removed = self.cache.delete(record["key"]) or removed
        return removed
