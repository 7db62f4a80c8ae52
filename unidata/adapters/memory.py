"""
In-memory adapters.

MemoryAdapter keeps records in a list of dicts and evaluates queries with the
shared matcher and sort/paginate engine. MockAdapter adds an optional
simulated latency for demos and tests.

Records are copied on the way in and on the way out, so callers never hold
references into the adapter's store.
"""

from __future__ import annotations

import asyncio
import logging
from typing import TYPE_CHECKING, Any

from ..errors import BadRequestError, NotFoundError
from ..query import apply_find_many, matches
from .base import Args, BaseAdapter
from .upsert import perform_upsert, perform_upsert_many

if TYPE_CHECKING:
    from ..context import OperationContext

logger = logging.getLogger(__name__)


class MemoryAdapter(BaseAdapter):
    """
    List-backed adapter implementing every built-in operation.

    Example:
        adapter = MemoryAdapter(data=[{"id": "1", "name": "Ada"}])
        user = await adapter.find_one({"where": {"id": "1"}})
    """

    def __init__(self, data: list[dict[str, Any]] | None = None):
        self._data: list[dict[str, Any]] = [dict(item) for item in data or []]

    async def _before(self) -> None:
        """Hook for subclasses run before every operation."""
        return None

    async def find_many(self, args: Args | None = None, ctx: OperationContext | None = None) -> list[dict]:
        await self._before()
        args = args or {}
        items = apply_find_many(
            self._data,
            where=args.get("where"),
            order_by=args.get("order_by"),
            offset=args.get("offset"),
            limit=args.get("limit"),
        )
        return [dict(item) for item in items]

    async def find_one(self, args: Args, ctx: OperationContext | None = None) -> dict | None:
        await self._before()
        where = args.get("where")
        for item in self._data:
            if matches(item, where):
                return dict(item)
        return None

    async def create(self, args: Args, ctx: OperationContext | None = None) -> dict:
        await self._before()
        data = args.get("data")
        if not isinstance(data, dict):
            raise BadRequestError("create requires a data mapping")
        item = dict(data)
        self._data.append(item)
        return dict(item)

    async def create_many(self, args: Args, ctx: OperationContext | None = None) -> list[dict]:
        await self._before()
        items = [dict(item) for item in args.get("data") or []]
        self._data.extend(items)
        return [dict(item) for item in items]

    async def update(self, args: Args, ctx: OperationContext | None = None) -> dict:
        await self._before()
        where = args.get("where")
        for index, item in enumerate(self._data):
            if matches(item, where):
                updated = {**item, **(args.get("data") or {})}
                self._data[index] = updated
                return dict(updated)
        raise NotFoundError(f"No record matches {where}", source=self.name)

    async def update_many(self, args: Args, ctx: OperationContext | None = None) -> list[dict]:
        await self._before()
        where = args.get("where")
        data = args.get("data") or {}
        updated: list[dict] = []
        for index, item in enumerate(self._data):
            if matches(item, where):
                self._data[index] = {**item, **data}
                updated.append(dict(self._data[index]))
        return updated

    async def delete(self, args: Args, ctx: OperationContext | None = None) -> bool:
        await self._before()
        where = args.get("where")
        before = len(self._data)
        self._data = [item for item in self._data if not matches(item, where)]
        removed = before - len(self._data)
        if removed:
            logger.debug(f"[{self.name}] Deleted {removed} records matching {where}")
        return removed > 0

    async def upsert(self, args: Args, ctx: OperationContext | None = None) -> dict:
        return await perform_upsert(args, self.find_one, self.update, self.create)

    async def upsert_many(self, args: Args, ctx: OperationContext | None = None) -> list[dict]:
        return await perform_upsert_many(args, self.find_one, self.update, self.create)

    def __len__(self) -> int:
        return len(self._data)


class MockAdapter(MemoryAdapter):
    """
    MemoryAdapter with simulated latency.

    Args:
        data: Initial records
        delay: Seconds to sleep before each operation
    """

    def __init__(self, data: list[dict[str, Any]] | None = None, delay: float = 0.0):
        super().__init__(data)
        self.delay = delay

    async def _before(self) -> None:
        if self.delay > 0:
            await asyncio.sleep(self.delay)
