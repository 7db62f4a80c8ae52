"""
Lifecycle hooks as a middleware.

HookBuilder collects before/after callbacks for create, update and delete
(plus before_any/after_any) and compiles them into a single middleware.

Execution order for one call:
    before_any hooks -> operation-specific before hooks -> next()
    -> operation-specific after hooks -> after_any hooks

After hooks run only when next() succeeded. Hooks observe and may mutate
args, but never change control flow unless they raise.

Operation groups:
    create hooks fire for create and createMany
    update hooks fire for update, updateMany and upsert
    delete hooks fire for delete

Usage:
    audit = (
        HookBuilder()
        .before_create(lambda args, result, hc: args["data"].setdefault("created_by", "system"))
        .after_any(record_audit)
        .build(name="AuditHooks")
    )
    manager.use(audit)
"""

from __future__ import annotations

import inspect
import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, Union

from ..context import Operation
from .base import CallNext, Middleware

if TYPE_CHECKING:
    from ..context import OperationContext

logger = logging.getLogger(__name__)


@dataclass
class HookContext:
    """What a hook sees besides args and result."""

    operation: str
    entity: str
    source: str | None = None
    adapter: Any = None
    metadata: dict[str, Any] = field(default_factory=dict)


HookFunction = Callable[[dict, Any, HookContext], Union[Awaitable[None], None]]

HOOK_TYPES: tuple[str, ...] = (
    "before_create",
    "after_create",
    "before_update",
    "after_update",
    "before_delete",
    "after_delete",
    "before_any",
    "after_any",
)

_GROUPS: dict[str, str] = {
    Operation.CREATE.value: "create",
    Operation.CREATE_MANY.value: "create",
    Operation.UPDATE.value: "update",
    Operation.UPDATE_MANY.value: "update",
    Operation.UPSERT.value: "update",
    Operation.DELETE.value: "delete",
}


class HookManager:
    """Holds registered hooks by type and runs them in registration order."""

    def __init__(self) -> None:
        self._hooks: dict[str, list[HookFunction]] = {t: [] for t in HOOK_TYPES}

    def add(self, hook_type: str, hook: HookFunction) -> None:
        if hook_type not in self._hooks:
            raise ValueError(f"Unknown hook type '{hook_type}'. Valid types: {list(HOOK_TYPES)}")
        self._hooks[hook_type].append(hook)

    def hooks(self, hook_type: str) -> list[HookFunction]:
        return list(self._hooks[hook_type])

    def clear(self) -> None:
        for hooks in self._hooks.values():
            hooks.clear()

    def clear_type(self, hook_type: str) -> None:
        self._hooks[hook_type].clear()

    async def _run(self, hook_type: str, args: dict, result: Any, hc: HookContext) -> None:
        for hook in self._hooks[hook_type]:
            outcome = hook(args, result, hc)
            if inspect.isawaitable(outcome):
                await outcome

    async def execute_before(self, args: dict, hc: HookContext) -> None:
        await self._run("before_any", args, None, hc)
        group = _GROUPS.get(hc.operation)
        if group:
            await self._run(f"before_{group}", args, None, hc)

    async def execute_after(self, args: dict, result: Any, hc: HookContext) -> None:
        group = _GROUPS.get(hc.operation)
        if group:
            await self._run(f"after_{group}", args, result, hc)
        await self._run("after_any", args, result, hc)

    def __len__(self) -> int:
        return sum(len(hooks) for hooks in self._hooks.values())


class HookMiddleware(Middleware):
    """Middleware running a HookManager around each call."""

    def __init__(self, hooks: HookManager, name: str = "HookMiddleware"):
        self.hooks = hooks
        self._name = name

    @property
    def name(self) -> str:
        return self._name

    async def handle(self, ctx: OperationContext, call_next: CallNext) -> Any:
        hc = HookContext(
            operation=ctx.operation_name,
            entity=ctx.entity,
            source=ctx.source,
            adapter=ctx.adapter,
            metadata=ctx.metadata,
        )
        await self.hooks.execute_before(ctx.args, hc)
        result = await call_next()
        await self.hooks.execute_after(ctx.args, result, hc)
        return result


class HookBuilder:
    """
    Fluent builder producing a HookMiddleware.

    Every registration method returns the builder.
    """

    def __init__(self) -> None:
        self._manager = HookManager()

    def before_create(self, hook: HookFunction) -> HookBuilder:
        self._manager.add("before_create", hook)
        return self

    def after_create(self, hook: HookFunction) -> HookBuilder:
        self._manager.add("after_create", hook)
        return self

    def before_update(self, hook: HookFunction) -> HookBuilder:
        self._manager.add("before_update", hook)
        return self

    def after_update(self, hook: HookFunction) -> HookBuilder:
        self._manager.add("after_update", hook)
        return self

    def before_delete(self, hook: HookFunction) -> HookBuilder:
        self._manager.add("before_delete", hook)
        return self

    def after_delete(self, hook: HookFunction) -> HookBuilder:
        self._manager.add("after_delete", hook)
        return self

    def before_any(self, hook: HookFunction) -> HookBuilder:
        self._manager.add("before_any", hook)
        return self

    def after_any(self, hook: HookFunction) -> HookBuilder:
        self._manager.add("after_any", hook)
        return self

    def build(self, name: str = "HookMiddleware") -> HookMiddleware:
        logger.debug(f"[hooks] Built {name} with {len(self._manager)} hooks")
        return HookMiddleware(self._manager, name=name)
