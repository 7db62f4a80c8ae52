"""
Middleware pipeline for unidata.

Middlewares wrap every operation in onion order: the first registered
middleware is entered first and exited last.

    use(A); use(B); use(C)
    -> A enter, B enter, C enter, core, C exit, B exit, A exit

A middleware receives the OperationContext and a `call_next` coroutine
function. It may:
- mutate ctx.args / ctx.metadata before calling next
- short-circuit by returning without calling next
- transform the value returned by next
- catch and convert errors raised further in
- call next more than once (retry)

Per-entity exclusion lists are applied when a chain is built. Chains are
cached per exclusion set and rebuilt only when the middleware list changes.

Usage:
    manager = MiddlewareManager()

    @middleware(name="Timing")
    async def timing(ctx, call_next):
        result = await call_next()
        ctx.metadata["elapsed_ms"] = ctx.elapsed_ms
        return result

    manager.use(timing)
    result = await manager.execute(ctx, core)
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from collections.abc import Awaitable, Callable, Iterable
from typing import TYPE_CHECKING, Any

from ..context import entity_name
from ..errors import ConfigurationError

if TYPE_CHECKING:
    from ..context import OperationContext

logger = logging.getLogger(__name__)

CallNext = Callable[[], Awaitable[Any]]
Core = Callable[["OperationContext"], Awaitable[Any]]
MiddlewareFn = Callable[["OperationContext", CallNext], Awaitable[Any]]


class Middleware(ABC):
    """
    Base class for middlewares.

    Subclasses must implement:
    - name: Unique middleware identifier, used by entity `exclude` lists
    - handle(): The wrapping logic
    """

    #: Entities that must be registered for this middleware to work
    required_entities: tuple[str, ...] = ()

    @property
    @abstractmethod
    def name(self) -> str:
        """Unique name for this middleware."""
        ...

    @abstractmethod
    async def handle(self, ctx: OperationContext, call_next: CallNext) -> Any:
        """
        Run around the rest of the chain.

        Args:
            ctx: Operation context, shared with every other layer
            call_next: Invokes the next middleware, or the adapter at the end

        Returns:
            The operation result
        """
        ...

    def __repr__(self) -> str:
        return f"{type(self).__name__}(name={self.name!r})"


class FunctionMiddleware(Middleware):
    """Middleware wrapping a plain `async fn(ctx, call_next)`."""

    def __init__(
        self,
        fn: MiddlewareFn,
        name: str | None = None,
        required_entities: Iterable[str] = (),
    ):
        self._fn = fn
        self._name = name or getattr(fn, "__name__", "middleware")
        self.required_entities = tuple(required_entities)

    @property
    def name(self) -> str:
        return self._name

    async def handle(self, ctx: OperationContext, call_next: CallNext) -> Any:
        return await self._fn(ctx, call_next)


def middleware(
    name: str | None = None,
    required_entities: Iterable[str] = (),
) -> Callable[[MiddlewareFn], FunctionMiddleware]:
    """Decorator turning an async function into a FunctionMiddleware."""

    def decorator(fn: MiddlewareFn) -> FunctionMiddleware:
        return FunctionMiddleware(fn, name=name, required_entities=required_entities)

    return decorator


class MiddlewareChain:
    """
    An immutable, ordered middleware list bound to a core callable at run time.
    """

    def __init__(self, middlewares: Iterable[Middleware] = ()):
        self._middlewares: tuple[Middleware, ...] = tuple(middlewares)

    @property
    def names(self) -> list[str]:
        return [m.name for m in self._middlewares]

    async def execute(self, ctx: OperationContext, core: Core) -> Any:
        """
        Run the chain around `core`.

        Each layer's return value is stored in ctx.result as the chain
        unwinds, so the outermost result is what the caller receives.
        """
        middlewares = self._middlewares

        async def dispatch(index: int) -> Any:
            if index == len(middlewares):
                result = await core(ctx)
            else:
                current = middlewares[index]

                async def call_next() -> Any:
                    return await dispatch(index + 1)

                result = await current.handle(ctx, call_next)
            ctx.result = result
            return result

        return await dispatch(0)

    def __len__(self) -> int:
        return len(self._middlewares)

    def __iter__(self):
        return iter(self._middlewares)

    def __repr__(self) -> str:
        return f"MiddlewareChain({' -> '.join(self.names) or 'core'})"


class MiddlewareManager:
    """
    Ordered, process-wide middleware list with per-exclusion chain caching.
    """

    def __init__(self, middlewares: Iterable[Middleware] = ()):
        self._middlewares: list[Middleware] = []
        self._chains: dict[frozenset[str], MiddlewareChain] = {}
        for m in middlewares:
            self.use(m)

    def use(self, mw: Middleware | MiddlewareFn) -> MiddlewareManager:
        """
        Append a middleware. Plain async functions are wrapped.

        Raises:
            ValueError: If a middleware with the same name is registered
        """
        if not isinstance(mw, Middleware):
            mw = FunctionMiddleware(mw)
        if mw.name in self.names():
            raise ValueError(f"Middleware '{mw.name}' already registered. Remove it first.")
        self._middlewares.append(mw)
        self._chains.clear()
        logger.debug(f"[middleware] Registered middleware: {mw.name}")
        return self

    def remove(self, name: str) -> bool:
        for index, mw in enumerate(self._middlewares):
            if mw.name == name:
                del self._middlewares[index]
                self._chains.clear()
                logger.debug(f"[middleware] Removed middleware: {name}")
                return True
        return False

    def clear(self) -> None:
        self._middlewares.clear()
        self._chains.clear()

    def names(self) -> list[str]:
        return [m.name for m in self._middlewares]

    def get(self, name: str) -> Middleware | None:
        for mw in self._middlewares:
            if mw.name == name:
                return mw
        return None

    def chain_for(self, exclude: Iterable[str] = ()) -> MiddlewareChain:
        """Chain of every middleware whose name is not excluded (cached)."""
        key = frozenset(exclude)
        chain = self._chains.get(key)
        if chain is None:
            chain = MiddlewareChain(m for m in self._middlewares if m.name not in key)
            self._chains[key] = chain
        return chain

    async def execute(self, ctx: OperationContext, core: Core, exclude: Iterable[str] = ()) -> Any:
        return await self.chain_for(exclude).execute(ctx, core)

    def validate_requirements(self, known_entities: Iterable[str]) -> None:
        """
        Check that every middleware's required entities are registered.

        Raises:
            ConfigurationError: Listing each middleware and its missing entities
        """
        known = {entity_name(e) for e in known_entities}
        problems: dict[str, list[str]] = {}
        for mw in self._middlewares:
            missing = [e for e in mw.required_entities if entity_name(e) not in known]
            if missing:
                problems[mw.name] = missing
        if problems:
            details = "; ".join(f"{name} requires {missing}" for name, missing in problems.items())
            raise ConfigurationError(f"Middleware requirements not met: {details}")

    def __len__(self) -> int:
        return len(self._middlewares)

    def __contains__(self, name: str) -> bool:
        return name in self.names()

    def __repr__(self) -> str:
        return f"MiddlewareManager(middlewares={self.names()})"
