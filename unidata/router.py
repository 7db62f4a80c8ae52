"""
Operation router.

The dispatch core of unidata. For every call the router:
1. normalises the entity reference and attaches its EntityConfig
2. resolves the source (explicit, entity config default, registry default)
3. resolves the adapter for (entity, source)
4. runs the middleware chain for the entity (minus its `exclude` list)
5. invokes the adapter method named by the operation at the chain's core
6. attaches `include` relations to the result

Missing `upsert` / `upsert_many` implementations fall back to the upsert
combinator; any other missing operation raises NotImplementedOperationError.
Names that are not built-in operations dispatch to a public adapter method
of the same name.

Usage:
    router = OperationRouter(adapters, schemas, middleware, entity_configs)

    user = await router.find_one("user", where={"id": "1"})
    posts = await router.repo("post", source="db").find_many(where={"user_id": "1"})

    result = await router.execute(OperationContext(
        entity="user",
        operation=Operation.FIND_ONE,
        args={"where": {"id": "1"}},
    ))
"""

from __future__ import annotations

import logging
from collections.abc import Mapping
from typing import TYPE_CHECKING, Any

from .adapters.base import implements
from .adapters.upsert import perform_upsert, perform_upsert_many
from .config import EntityConfig
from .context import EntityRef, Operation, OperationContext, entity_name
from .errors import BadRequestError, NotImplementedOperationError
from .middleware.base import MiddlewareManager
from .query import get_field
from .registry.adapters import AdapterRegistry
from .registry.schema import SchemaRegistry
from .relations import RelationBatch, Resolver, resolve_includes

if TYPE_CHECKING:
    from .adapters.base import BaseAdapter

logger = logging.getLogger(__name__)


# =============================================================================
# Argument validation
# =============================================================================

_REQUIRED_MAPPINGS: dict[Operation, tuple[str, ...]] = {
    Operation.FIND_ONE: ("where",),
    Operation.UPDATE: ("where", "data"),
    Operation.UPDATE_MANY: ("data",),
    Operation.DELETE: ("where",),
    Operation.UPSERT: ("where", "update", "create"),
    Operation.CREATE: ("data",),
}

_REQUIRED_LISTS: dict[Operation, str] = {
    Operation.CREATE_MANY: "data",
    Operation.UPSERT_MANY: "data",
}

_OPTIONAL_MAPPINGS = ("where", "order_by")


def validate_args(operation: Operation, args: Mapping[str, Any]) -> None:
    """
    Check the shape of a built-in operation's arguments.

    Raises:
        BadRequestError: Naming the first missing or malformed argument
    """
    for name in _REQUIRED_MAPPINGS.get(operation, ()):
        if not isinstance(args.get(name), Mapping):
            raise BadRequestError(f"{operation.value} requires '{name}' as a mapping")

    list_arg = _REQUIRED_LISTS.get(operation)
    if list_arg and not isinstance(args.get(list_arg), list):
        raise BadRequestError(f"{operation.value} requires '{list_arg}' as a list")

    for name in _OPTIONAL_MAPPINGS:
        if args.get(name) is not None and not isinstance(args[name], Mapping):
            raise BadRequestError(f"'{name}' must be a mapping")

    for name in ("limit", "offset"):
        value = args.get(name)
        if value is not None and (isinstance(value, bool) or not isinstance(value, int)):
            raise BadRequestError(f"'{name}' must be an integer")


# =============================================================================
# Router
# =============================================================================


class OperationRouter:
    """
    Resolves entity/source to an adapter and runs operations through the
    middleware pipeline.

    Args:
        adapters: Adapter bindings
        schemas: Entity descriptors (for introspection)
        middleware: Process-wide middleware list
        entity_configs: EntityConfig (or plain dict) per entity name
    """

    def __init__(
        self,
        adapters: AdapterRegistry | None = None,
        schemas: SchemaRegistry | None = None,
        middleware: MiddlewareManager | None = None,
        entity_configs: Mapping[str, EntityConfig | Mapping[str, Any]] | None = None,
    ):
        self.adapters = adapters if adapters is not None else AdapterRegistry()
        self.schemas = schemas if schemas is not None else SchemaRegistry()
        self.middleware = middleware if middleware is not None else MiddlewareManager()
        self._entity_configs: dict[str, EntityConfig] = {}
        for name, config in (entity_configs or {}).items():
            self.configure_entity(name, config)

    # -------------------------------------------------------------------------
    # Configuration
    # -------------------------------------------------------------------------

    def configure_entity(self, entity: EntityRef, config: EntityConfig | Mapping[str, Any]) -> EntityConfig:
        if not isinstance(config, EntityConfig):
            config = EntityConfig(**config)
        name = entity_name(entity)
        self._entity_configs[name] = config
        if config.default_source:
            self.adapters.set_default(name, config.default_source)
        return config

    def entity_config(self, entity: EntityRef) -> EntityConfig | None:
        return self._entity_configs.get(entity_name(entity))

    @property
    def entity_configs(self) -> dict[str, EntityConfig]:
        return dict(self._entity_configs)

    def get_schemas(self) -> dict[str, dict[str, Any]]:
        return self.schemas.get_schemas()

    def get_sources(self) -> dict[str, list[str]]:
        return self.schemas.get_sources()

    # -------------------------------------------------------------------------
    # Resolution
    # -------------------------------------------------------------------------

    def resolve(self, entity: EntityRef, source: str | None = None) -> tuple[str, BaseAdapter]:
        """
        Resolve the (source, adapter) serving a call.

        Raises:
            NoAdapterError: If the entity has no source or no adapter on it
        """
        name = entity_name(entity)
        if not source:
            config = self._entity_configs.get(name)
            if config is not None and config.default_source:
                source = config.default_source
        source = self.adapters.resolve_source(name, source)
        return source, self.adapters.resolve(name, source)

    # -------------------------------------------------------------------------
    # Execution
    # -------------------------------------------------------------------------

    async def execute(self, ctx: OperationContext) -> Any:
        """
        Run one operation described by an OperationContext.

        Returns:
            The adapter result as transformed by the middleware chain, with
            any `include` relations attached
        """
        ctx.entity = entity_name(ctx.entity)
        operation = Operation.parse(ctx.operation)
        if operation is not None:
            ctx.operation = operation

        ctx.entity_config = self._entity_configs.get(ctx.entity)
        ctx.source, ctx.adapter = self.resolve(ctx.entity, ctx.source)

        include = ctx.args.pop("include", None)
        if operation is not None and operation is not Operation.CALL:
            validate_args(operation, ctx.args)

        exclude = ctx.entity_config.exclude if ctx.entity_config is not None else ()
        result = await self.middleware.execute(ctx, self._invoke, exclude)

        if include:
            result = await resolve_includes(result, include)
            ctx.result = result
        return result

    async def _invoke(self, ctx: OperationContext) -> Any:
        adapter = ctx.adapter
        operation = ctx.operation

        if not isinstance(operation, Operation):
            return await self._invoke_custom(ctx, operation)

        if implements(adapter, operation.method):
            return await getattr(adapter, operation.method)(ctx.args, ctx)

        if operation in (Operation.UPSERT, Operation.UPSERT_MANY):
            combinator = perform_upsert if operation is Operation.UPSERT else perform_upsert_many
            logger.debug(f"[router] {type(adapter).__name__} has no native {operation.value}, using combinator")
            return await combinator(
                ctx.args,
                lambda args: adapter.find_one(args, ctx),
                lambda args: adapter.update(args, ctx),
                lambda args: adapter.create(args, ctx),
            )

        raise NotImplementedOperationError(
            f"{type(adapter).__name__} does not implement {operation.value}",
            entity=ctx.entity,
            source=ctx.source,
        )

    async def _invoke_custom(self, ctx: OperationContext, method_name: str) -> Any:
        method = None
        if method_name and not method_name.startswith("_"):
            method = getattr(ctx.adapter, method_name, None)
        if method is None or not callable(method) or not implements(ctx.adapter, method_name):
            raise NotImplementedOperationError(
                f"{type(ctx.adapter).__name__} has no method '{method_name}'",
                entity=ctx.entity,
                source=ctx.source,
            )
        return await method(ctx.args, ctx)

    # -------------------------------------------------------------------------
    # Convenience API
    # -------------------------------------------------------------------------

    async def run(
        self,
        entity: EntityRef,
        operation: Operation | str,
        args: Mapping[str, Any] | None = None,
        *,
        source: str | None = None,
        metadata: Mapping[str, Any] | None = None,
        user: Any = None,
        transport: str | None = None,
    ) -> Any:
        """Build an OperationContext and execute it."""
        ctx = OperationContext(
            entity=entity_name(entity),
            operation=operation,
            args={k: v for k, v in (args or {}).items() if v is not None},
            source=source,
            metadata=dict(metadata or {}),
            transport=transport,
            user=user,
        )
        return await self.execute(ctx)

    async def find_one(self, entity: EntityRef, where: Mapping[str, Any], *, include=None, **options: Any) -> Any:
        return await self.run(entity, Operation.FIND_ONE, {"where": where, "include": include}, **options)

    async def find_many(
        self,
        entity: EntityRef,
        where: Mapping[str, Any] | None = None,
        *,
        order_by: Mapping[str, str] | None = None,
        limit: int | None = None,
        offset: int | None = None,
        include=None,
        **options: Any,
    ) -> list[Any]:
        args = {"where": where, "order_by": order_by, "limit": limit, "offset": offset, "include": include}
        return await self.run(entity, Operation.FIND_MANY, args, **options)

    async def create(self, entity: EntityRef, data: Mapping[str, Any], **options: Any) -> Any:
        return await self.run(entity, Operation.CREATE, {"data": data}, **options)

    async def create_many(self, entity: EntityRef, data: list[Mapping[str, Any]], **options: Any) -> list[Any]:
        return await self.run(entity, Operation.CREATE_MANY, {"data": data}, **options)

    async def update(self, entity: EntityRef, where: Mapping[str, Any], data: Mapping[str, Any], **options: Any) -> Any:
        return await self.run(entity, Operation.UPDATE, {"where": where, "data": data}, **options)

    async def update_many(
        self, entity: EntityRef, where: Mapping[str, Any] | None, data: Mapping[str, Any], **options: Any
    ) -> list[Any]:
        return await self.run(entity, Operation.UPDATE_MANY, {"where": where, "data": data}, **options)

    async def delete(self, entity: EntityRef, where: Mapping[str, Any], **options: Any) -> bool:
        return await self.run(entity, Operation.DELETE, {"where": where}, **options)

    async def upsert(
        self,
        entity: EntityRef,
        where: Mapping[str, Any],
        update: Mapping[str, Any],
        create: Mapping[str, Any],
        **options: Any,
    ) -> Any:
        args = {"where": where, "update": update, "create": create}
        return await self.run(entity, Operation.UPSERT, args, **options)

    async def upsert_many(
        self, entity: EntityRef, data: list[Mapping[str, Any]], target: str, **options: Any
    ) -> list[Any]:
        args = {"data": data, "on_conflict_do_update": {"target": target}}
        return await self.run(entity, Operation.UPSERT_MANY, args, **options)

    async def call(self, entity: EntityRef, args: Mapping[str, Any] | None = None, **options: Any) -> Any:
        return await self.run(entity, Operation.CALL, args, **options)

    async def call_method(
        self, entity: EntityRef, method: str, args: Mapping[str, Any] | None = None, **options: Any
    ) -> Any:
        """Invoke a custom adapter method through the middleware chain."""
        return await self.run(entity, method, args, **options)

    def repo(
        self,
        entity: EntityRef,
        source: str | None = None,
        *,
        metadata: Mapping[str, Any] | None = None,
        user: Any = None,
    ) -> Repository:
        return Repository(self, entity, source=source, metadata=metadata, user=user)

    def __repr__(self) -> str:
        return (
            f"OperationRouter(bindings={len(self.adapters)}, "
            f"entities={len(self.schemas)}, middleware={self.middleware.names()})"
        )


# =============================================================================
# Repository facade
# =============================================================================


class Repository:
    """
    Entity-scoped view of a router with a fixed source and request metadata.

    Example:
        users = router.repo("user", source="memory")
        await users.create({"id": "1", "name": "Ada"})
        ada = await users.find_one({"id": "1"})
    """

    def __init__(
        self,
        router: OperationRouter,
        entity: EntityRef,
        source: str | None = None,
        metadata: Mapping[str, Any] | None = None,
        user: Any = None,
    ):
        self.router = router
        self.entity = entity_name(entity)
        self.source = source
        self.metadata = dict(metadata or {})
        self.user = user

    def _options(self) -> dict[str, Any]:
        return {"source": self.source, "metadata": self.metadata, "user": self.user}

    async def find_one(self, where: Mapping[str, Any], include=None) -> Any:
        return await self.router.find_one(self.entity, where, include=include, **self._options())

    async def find_many(
        self,
        where: Mapping[str, Any] | None = None,
        order_by: Mapping[str, str] | None = None,
        limit: int | None = None,
        offset: int | None = None,
        include=None,
    ) -> list[Any]:
        return await self.router.find_many(
            self.entity,
            where,
            order_by=order_by,
            limit=limit,
            offset=offset,
            include=include,
            **self._options(),
        )

    async def create(self, data: Mapping[str, Any]) -> Any:
        return await self.router.create(self.entity, data, **self._options())

    async def create_many(self, data: list[Mapping[str, Any]]) -> list[Any]:
        return await self.router.create_many(self.entity, data, **self._options())

    async def update(self, where: Mapping[str, Any], data: Mapping[str, Any]) -> Any:
        return await self.router.update(self.entity, where, data, **self._options())

    async def update_many(self, where: Mapping[str, Any] | None, data: Mapping[str, Any]) -> list[Any]:
        return await self.router.update_many(self.entity, where, data, **self._options())

    async def delete(self, where: Mapping[str, Any]) -> bool:
        return await self.router.delete(self.entity, where, **self._options())

    async def upsert(self, where: Mapping[str, Any], update: Mapping[str, Any], create: Mapping[str, Any]) -> Any:
        return await self.router.upsert(self.entity, where, update, create, **self._options())

    async def upsert_many(self, data: list[Mapping[str, Any]], target: str) -> list[Any]:
        return await self.router.upsert_many(self.entity, data, target, **self._options())

    async def call(self, args: Mapping[str, Any] | None = None) -> Any:
        return await self.router.call(self.entity, args, **self._options())

    async def call_method(self, method: str, args: Mapping[str, Any] | None = None) -> Any:
        return await self.router.call_method(self.entity, method, args, **self._options())

    def joined(
        self,
        local_field: str,
        foreign_field: str,
        *,
        many: bool = True,
        where: Mapping[str, Any] | None = None,
    ) -> Resolver:
        """
        Build an include resolver fetching this entity for a batch.

        One find_many with `{foreign_field: {"$in": [local values]}}` is
        issued per batch; matches are correlated per primary record.
        """

        async def resolve(records: list[Any]) -> RelationBatch:
            values: list[Any] = []
            for record in records:
                value = get_field(record, local_field)
                if value is not None and value not in values:
                    values.append(value)
            if not values:
                return RelationBatch([], local_field, foreign_field, many)
            items = await self.find_many(where={**(where or {}), foreign_field: {"$in": values}})
            return RelationBatch(items, local_field, foreign_field, many)

        return resolve

    def __repr__(self) -> str:
        return f"Repository(entity={self.entity!r}, source={self.source!r})"
