"""
Permission checks as a middleware.

Each operation is guarded by the allow_api_* rules of its entity config:

    findOne, findMany        -> read, crud
    create, createMany       -> create, crud
    update, updateMany       -> update, crud
    upsert, upsertMany       -> update, create, crud
    delete                   -> delete, crud

Decision procedure:
1. No applicable rule configured: allowed
2. Any applicable rule is True or Allow.everyone: allowed
3. No user: UnauthorizedError
4. First rule that grants access wins; otherwise ForbiddenError

Rules:
    True / False            fixed decision
    "admin"                 user has the role
    ["admin", "editor"]     user has any of the roles
    fn(user)                checked before the operation runs
    fn(user, data)          checked on the operation's result (runs it first)

Usage:
    manager.use(AuthMiddleware(get_user=lambda ctx: ctx.metadata.get("user")))
"""

from __future__ import annotations

import inspect
import logging
from collections.abc import Awaitable, Callable
from typing import TYPE_CHECKING, Any, Union

from ..errors import ForbiddenError, UnauthorizedError
from ..query import get_field
from .base import CallNext, Middleware

if TYPE_CHECKING:
    from ..context import OperationContext

logger = logging.getLogger(__name__)

GetUser = Callable[["OperationContext"], Union[Any, Awaitable[Any]]]

PERMISSIONS: dict[str, tuple[str, ...]] = {
    "findOne": ("read", "crud"),
    "findMany": ("read", "crud"),
    "create": ("create", "crud"),
    "createMany": ("create", "crud"),
    "update": ("update", "crud"),
    "updateMany": ("update", "crud"),
    "upsert": ("update", "create", "crud"),
    "upsertMany": ("update", "create", "crud"),
    "delete": ("delete", "crud"),
}

_NOT_RUN = object()


def _roles(user: Any) -> list[str]:
    return list(get_field(user, "roles") or []) if user is not None else []


class Allow:
    """Ready-made permission rules."""

    @staticmethod
    def everyone(user: Any = None) -> bool:
        return True

    @staticmethod
    def authenticated(user: Any = None) -> bool:
        return user is not None

    @staticmethod
    def has_role(role: str) -> Callable[[Any], bool]:
        def check(user: Any) -> bool:
            return role in _roles(user)

        return check

    @staticmethod
    def has_any_role(roles: list[str]) -> Callable[[Any], bool]:
        def check(user: Any) -> bool:
            return any(role in roles for role in _roles(user))

        return check


def _arity(fn: Callable[..., Any]) -> int:
    try:
        params = inspect.signature(fn).parameters.values()
    except (TypeError, ValueError):
        return 1
    return sum(
        1 for p in params if p.kind in (p.POSITIONAL_ONLY, p.POSITIONAL_OR_KEYWORD) and p.default is p.empty
    )


async def _maybe_await(value: Any) -> Any:
    if inspect.isawaitable(value):
        return await value
    return value


class AuthMiddleware(Middleware):
    """
    Enforce entity permission rules.

    Args:
        get_user: Returns the current user for a call (sync or async).
            Defaults to ctx.user. The resolved user is stored on ctx.user.
    """

    def __init__(self, get_user: GetUser | None = None):
        self.get_user = get_user

    @property
    def name(self) -> str:
        return "AuthMiddleware"

    async def handle(self, ctx: OperationContext, call_next: CallNext) -> Any:
        config = ctx.entity_config
        if config is None:
            return await call_next()

        if self.get_user is not None:
            ctx.user = await _maybe_await(self.get_user(ctx))

        scopes = PERMISSIONS.get(ctx.operation_name, ())
        rules = config.permission_rules(*scopes)
        if not rules:
            return await call_next()

        if any(rule is True or rule is Allow.everyone for rule in rules):
            return await call_next()

        if ctx.user is None:
            raise UnauthorizedError("Unauthorized", entity=ctx.entity, source=ctx.source)

        data: Any = _NOT_RUN
        for rule in rules:
            if callable(rule) and _arity(rule) >= 2:
                if data is _NOT_RUN:
                    data = await call_next()
                if await self._evaluate(rule, ctx.user, data):
                    return data
                continue
            if await self._evaluate(rule, ctx.user):
                return data if data is not _NOT_RUN else await call_next()

        logger.info(f"[auth] Denied {ctx.operation_name} on '{ctx.entity}' for user {get_field(ctx.user, 'id')}")
        raise ForbiddenError("Access denied: Insufficient permissions", entity=ctx.entity, source=ctx.source)

    async def _evaluate(self, rule: Any, user: Any, *data: Any) -> bool:
        if isinstance(rule, bool):
            return rule
        if isinstance(rule, str):
            return Allow.has_role(rule)(user)
        if isinstance(rule, (list, tuple, set, frozenset)):
            return Allow.has_any_role(list(rule))(user)
        if callable(rule):
            try:
                return bool(await _maybe_await(rule(user, *data)))
            except Exception as e:
                logger.warning(f"[auth] Permission rule {rule!r} raised {type(e).__name__}: {e}")
                return False
        return False
