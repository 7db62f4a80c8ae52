"""
Adapter interface for unidata.

An adapter implements the data operations for one storage backend. The
router calls adapter methods by name, so a backend only implements what it
supports: every method of BaseAdapter raises NotImplementedOperationError
until overridden.

Design Principle:
    Adapters are plain async objects. They receive the operation arguments
    as a dict and the OperationContext of the call, and return plain data.
    Cross-cutting concerns (auth, caching, logging) live in middlewares.

Usage:
    class UserAdapter(BaseAdapter):
        async def find_one(self, args, ctx=None):
            return await db.users.find_one(args["where"])

        async def find_many(self, args, ctx=None):
            return await db.users.find(args.get("where") or {})
"""

from __future__ import annotations

from abc import ABC
from typing import TYPE_CHECKING, Any, Callable, TypeVar

from ..errors import NotImplementedOperationError

if TYPE_CHECKING:
    from ..context import OperationContext

F = TypeVar("F", bound=Callable[..., Any])

Args = dict[str, Any]


def unimplemented(method: F) -> F:
    """Mark a base method as a stub so the router can detect overrides."""
    method.__unimplemented__ = True  # type: ignore[attr-defined]
    return method


def implements(adapter: Any, method_name: str) -> bool:
    """True if the adapter provides a real implementation of `method_name`."""
    method = getattr(adapter, method_name, None)
    if method is None or not callable(method):
        return False
    return not getattr(method, "__unimplemented__", False)


def default_source_name(adapter: Any) -> str:
    """
    Derive a source name from an adapter (or adapter class) name.

    "MemoryAdapter" -> "memory", "PostgresAdapter" -> "postgres".
    """
    cls = adapter if isinstance(adapter, type) else type(adapter)
    name = cls.__name__.lower()
    if name.endswith("adapter") and len(name) > len("adapter"):
        name = name[: -len("adapter")]
    return name


class BaseAdapter(ABC):
    """
    Base class for data adapters.

    Subclasses override the operations their backend supports. `upsert` and
    `upsert_many` fall back to a find-then-write combinator in the router
    when not overridden.
    """

    @property
    def name(self) -> str:
        """Source name this adapter is registered under by default."""
        return default_source_name(self)

    def _unsupported(self, operation: str) -> NotImplementedOperationError:
        return NotImplementedOperationError(
            f"{type(self).__name__} does not implement {operation}",
            source=self.name,
        )

    @unimplemented
    async def find_one(self, args: Args, ctx: OperationContext | None = None) -> Any:
        raise self._unsupported("findOne")

    @unimplemented
    async def find_many(self, args: Args, ctx: OperationContext | None = None) -> list[Any]:
        raise self._unsupported("findMany")

    @unimplemented
    async def create(self, args: Args, ctx: OperationContext | None = None) -> Any:
        raise self._unsupported("create")

    @unimplemented
    async def create_many(self, args: Args, ctx: OperationContext | None = None) -> list[Any]:
        raise self._unsupported("createMany")

    @unimplemented
    async def update(self, args: Args, ctx: OperationContext | None = None) -> Any:
        raise self._unsupported("update")

    @unimplemented
    async def update_many(self, args: Args, ctx: OperationContext | None = None) -> list[Any]:
        raise self._unsupported("updateMany")

    @unimplemented
    async def delete(self, args: Args, ctx: OperationContext | None = None) -> bool:
        raise self._unsupported("delete")

    @unimplemented
    async def upsert(self, args: Args, ctx: OperationContext | None = None) -> Any:
        raise self._unsupported("upsert")

    @unimplemented
    async def upsert_many(self, args: Args, ctx: OperationContext | None = None) -> list[Any]:
        raise self._unsupported("upsertMany")

    @unimplemented
    async def call(self, args: Args, ctx: OperationContext | None = None) -> Any:
        raise self._unsupported("call")

    def __repr__(self) -> str:
        return f"{type(self).__name__}(source={self.name!r})"
