"""
Result caching as a middleware.

Caches results of the operations enabled in an entity's `cache` config,
keyed by entity, operation and a digest of the arguments:

    "{entity}-{operation}-{md5(args)}"

Writes to an entity drop that entity's cached entries, so reads never
observe data older than the last write made through this router. Results are
copied in and out of the cache, so callers may mutate what they receive.
"""

from __future__ import annotations

import copy
import hashlib
import json
import logging
from typing import TYPE_CHECKING, Any

from ..adapters.cache import LRUCache
from ..context import Operation
from .base import CallNext, Middleware

if TYPE_CHECKING:
    from ..context import OperationContext

logger = logging.getLogger(__name__)

_MISS = object()


def cache_key(entity: str, operation: str, args: Any) -> str:
    """Deterministic cache key for one call."""
    encoded = json.dumps(args, sort_keys=True, default=str) if args else ""
    digest = hashlib.md5(encoded.encode("utf-8")).hexdigest()
    return f"{entity}-{operation}-{digest}"


def key_entity(key: str) -> str:
    """Entity part of a key built by `cache_key`."""
    # operation names and digests never contain "-"; entity names may
    return key.rsplit("-", 2)[0]


class CacheMiddleware(Middleware):
    """
    Serve configured operations from an LRUCache.

    Args:
        cache: Cache shared by every entity
        invalidate_on_write: Drop an entity's entries after a write to it
    """

    def __init__(self, cache: LRUCache | None = None, invalidate_on_write: bool = True):
        self.cache = cache if cache is not None else LRUCache()
        self.invalidate_on_write = invalidate_on_write

    @property
    def name(self) -> str:
        return "CacheMiddleware"

    async def handle(self, ctx: OperationContext, call_next: CallNext) -> Any:
        config = ctx.entity_config
        operation = ctx.operation_name

        op_config = config.cache_for(operation) if config is not None else None
        if op_config is None:
            result = await call_next()
            if self.invalidate_on_write and self._is_write(ctx):
                self._invalidate(ctx.entity)
            return result

        key = cache_key(ctx.entity, operation, {"source": ctx.source, **ctx.args})
        cached = self.cache.get(key, _MISS)
        if cached is not _MISS:
            logger.debug(f"[cache] Hit {key}")
            return copy.deepcopy(cached)

        result = await call_next()
        self.cache.set(key, copy.deepcopy(result), ttl=op_config.ttl)
        logger.debug(f"[cache] Stored {key}")
        return result

    def _is_write(self, ctx: OperationContext) -> bool:
        operation = Operation.parse(ctx.operation)
        return operation is not None and operation.is_write

    def _invalidate(self, entity: str) -> None:
        dropped = 0
        for key in self.cache.keys():
            if key_entity(key) == entity:
                dropped += self.cache.delete(key)
        if dropped:
            logger.debug(f"[cache] Invalidated {dropped} entries for '{entity}'")
