"""
Entity schema registry.

Entities are described once at startup by EntityDescriptor objects, built
either with the fluent EntitySchemaBuilder or by reflecting a pydantic model
with `descriptor_from_model`. Descriptors are metadata only: they feed
introspection and never validate data at runtime.

The registry also backs the reserved `_schema` pseudo-entity, queryable like
any other entity through SchemaAdapter:

    await router.find_many("_schema", source="_global", where={"name": "user"})

Usage:
    user = (
        EntitySchemaBuilder("user")
        .string("id")
        .string("name", description="Display name")
        .array("posts", target="post", optional=True)
        .build()
    )

    schemas = SchemaRegistry()
    schemas.register(user, sources=["memory"])
    schemas.get_schemas()["user"]
    # {"type": "object", "properties": {...}, "required": ["id", "name"]}
"""

from __future__ import annotations

import logging
import types
from collections.abc import Iterable
from dataclasses import dataclass
from datetime import date, datetime
from enum import Enum
from typing import TYPE_CHECKING, Any, Union, get_args, get_origin

from pydantic import BaseModel

from ..adapters.base import Args, BaseAdapter
from ..context import EntityRef, entity_name, simplify_entity_name
from ..query import apply_find_many, matches

if TYPE_CHECKING:
    from ..context import OperationContext

logger = logging.getLogger(__name__)

SCHEMA_ENTITY = "_schema"
DATA_ENTITY = "_data"
GLOBAL_SOURCE = "_global"


# =============================================================================
# Descriptors
# =============================================================================


class FieldKind(str, Enum):
    """Kinds of entity fields."""

    STRING = "string"
    NUMBER = "number"
    BOOLEAN = "boolean"
    DATE = "date"
    RECORD = "record"
    ARRAY = "array"
    ACTION = "action"


@dataclass(frozen=True)
class FieldDescriptor:
    """
    Metadata for one entity field.

    `target` names the related entity of an array or record field. It may be
    a name, a descriptor, a class, or a zero-argument callable returning one
    of those (for forward references).
    """

    name: str
    kind: FieldKind
    optional: bool = False
    description: str | None = None
    target: Any = None
    params: dict[str, Any] | None = None
    returns: Any = None

    @property
    def target_name(self) -> str | None:
        if self.target is None:
            return None
        target = self.target
        if callable(target) and not isinstance(target, type):
            target = target()
        return entity_name(target)

    def to_schema(self) -> dict[str, Any]:
        target = self.target_name
        if self.kind is FieldKind.ARRAY:
            prop: dict[str, Any] = {"type": "array", "items": {"type": target or "string"}}
        elif self.kind is FieldKind.RECORD and target:
            prop = {"type": target}
        elif self.kind is FieldKind.DATE:
            prop = {"type": "string"}
        else:
            prop = {"type": self.kind.value}

        if self.kind is FieldKind.ACTION:
            if self.params is not None:
                prop["params"] = self.params
            if self.returns is not None:
                prop["returns"] = self.returns

        if self.description:
            prop["description"] = self.description
        return prop


@dataclass(frozen=True)
class EntityDescriptor:
    """Immutable description of an entity and its fields."""

    name: str
    fields: tuple[FieldDescriptor, ...] = ()
    description: str | None = None

    def __post_init__(self) -> None:
        names = [f.name for f in self.fields]
        duplicates = {n for n in names if names.count(n) > 1}
        if duplicates:
            raise ValueError(f"Entity '{self.name}' has duplicate fields: {sorted(duplicates)}")

    @property
    def key(self) -> str:
        """Normalised entity name used by registries."""
        return simplify_entity_name(self.name)

    def field(self, name: str) -> FieldDescriptor | None:
        for f in self.fields:
            if f.name == name:
                return f
        return None

    def to_schema(self) -> dict[str, Any]:
        """Render as a JSON-schema style object."""
        return {
            "type": "object",
            "properties": {f.name: f.to_schema() for f in self.fields},
            "required": [f.name for f in self.fields if not f.optional],
        }


class EntitySchemaBuilder:
    """
    Fluent builder for EntityDescriptor.

    Each field method appends one field and returns the builder.
    """

    def __init__(self, name: EntityRef, description: str | None = None):
        self._name = name if isinstance(name, str) else entity_name(name)
        self._description = description
        self._fields: list[FieldDescriptor] = []

    def field(self, name: str, kind: FieldKind | str, **options: Any) -> EntitySchemaBuilder:
        self._fields.append(FieldDescriptor(name=name, kind=FieldKind(kind), **options))
        return self

    def string(self, name: str, *, optional: bool = False, description: str | None = None) -> EntitySchemaBuilder:
        return self.field(name, FieldKind.STRING, optional=optional, description=description)

    def number(self, name: str, *, optional: bool = False, description: str | None = None) -> EntitySchemaBuilder:
        return self.field(name, FieldKind.NUMBER, optional=optional, description=description)

    def boolean(self, name: str, *, optional: bool = False, description: str | None = None) -> EntitySchemaBuilder:
        return self.field(name, FieldKind.BOOLEAN, optional=optional, description=description)

    def date(self, name: str, *, optional: bool = False, description: str | None = None) -> EntitySchemaBuilder:
        return self.field(name, FieldKind.DATE, optional=optional, description=description)

    def array(
        self,
        name: str,
        target: Any = None,
        *,
        optional: bool = False,
        description: str | None = None,
    ) -> EntitySchemaBuilder:
        return self.field(name, FieldKind.ARRAY, target=target, optional=optional, description=description)

    def record(
        self,
        name: str,
        target: Any = None,
        *,
        optional: bool = False,
        description: str | None = None,
    ) -> EntitySchemaBuilder:
        return self.field(name, FieldKind.RECORD, target=target, optional=optional, description=description)

    def action(
        self,
        name: str,
        *,
        params: dict[str, Any] | None = None,
        returns: Any = None,
        description: str | None = None,
    ) -> EntitySchemaBuilder:
        return self.field(
            name,
            FieldKind.ACTION,
            params=params,
            returns=returns,
            optional=True,
            description=description,
        )

    def build(self) -> EntityDescriptor:
        return EntityDescriptor(
            name=self._name,
            fields=tuple(self._fields),
            description=self._description,
        )


# =============================================================================
# Reflection from pydantic models
# =============================================================================

_SCALAR_KINDS: dict[type, FieldKind] = {
    str: FieldKind.STRING,
    int: FieldKind.NUMBER,
    float: FieldKind.NUMBER,
    bool: FieldKind.BOOLEAN,
    datetime: FieldKind.DATE,
    date: FieldKind.DATE,
}


def _strip_optional(annotation: Any) -> tuple[Any, bool]:
    origin = get_origin(annotation)
    if origin is Union or origin is types.UnionType:
        args = [a for a in get_args(annotation) if a is not type(None)]
        nullable = len(args) < len(get_args(annotation))
        if len(args) == 1:
            return args[0], nullable
        return annotation, nullable
    return annotation, False


def _kind_for(annotation: Any) -> tuple[FieldKind, Any]:
    origin = get_origin(annotation)
    if origin in (list, tuple, set, frozenset):
        args = get_args(annotation)
        inner = args[0] if args else None
        if isinstance(inner, type) and issubclass(inner, BaseModel):
            return FieldKind.ARRAY, inner
        return FieldKind.ARRAY, None
    if origin is dict or annotation is dict:
        return FieldKind.RECORD, None
    if isinstance(annotation, type):
        if issubclass(annotation, BaseModel):
            return FieldKind.RECORD, annotation
        if issubclass(annotation, bool):
            return FieldKind.BOOLEAN, None
        for scalar, kind in _SCALAR_KINDS.items():
            if issubclass(annotation, scalar):
                return kind, None
        if issubclass(annotation, Enum):
            return FieldKind.STRING, None
    return FieldKind.STRING, None


def descriptor_from_model(
    model: type[BaseModel],
    name: str | None = None,
    description: str | None = None,
) -> EntityDescriptor:
    """
    Build an EntityDescriptor by reflecting a pydantic model.

    Optional fields are those typed `X | None` or having a default.
    Nested models become record/array fields targeting the nested entity.

    Args:
        model: pydantic model class
        name: Entity name (defaults to the class name)
        description: Entity description (defaults to the class docstring)
    """
    fields: list[FieldDescriptor] = []
    for field_name, info in model.model_fields.items():
        annotation, nullable = _strip_optional(info.annotation)
        kind, target = _kind_for(annotation)
        fields.append(
            FieldDescriptor(
                name=field_name,
                kind=kind,
                optional=nullable or not info.is_required(),
                description=info.description,
                target=target,
            )
        )

    doc = (model.__doc__ or "").strip()
    return EntityDescriptor(
        name=name or model.__name__,
        fields=tuple(fields),
        description=description or (doc.splitlines()[0] if doc else None),
    )


# =============================================================================
# Registry
# =============================================================================


class SchemaRegistry:
    """
    Registry of entity descriptors and the sources serving each entity.

    Registration is last-write-wins: registering a descriptor under an
    existing name replaces the previous one.
    """

    def __init__(self) -> None:
        self._descriptors: dict[str, EntityDescriptor] = {}
        self._sources: dict[str, list[str]] = {}

    def register(self, descriptor: EntityDescriptor, sources: Iterable[str] = ()) -> None:
        key = descriptor.key
        if key in self._descriptors:
            logger.info(f"[schema_registry] Replacing descriptor for entity: {key}")
        self._descriptors[key] = descriptor
        for source in sources:
            self.add_source(key, source)
        logger.debug(f"[schema_registry] Registered entity: {key}")

    def register_model(self, model: type[BaseModel], sources: Iterable[str] = (), **options: Any) -> EntityDescriptor:
        """Reflect a pydantic model and register the result."""
        descriptor = descriptor_from_model(model, **options)
        self.register(descriptor, sources)
        return descriptor

    def add_source(self, entity: EntityRef, source: str) -> None:
        key = entity_name(entity)
        sources = self._sources.setdefault(key, [])
        if source not in sources:
            sources.append(source)

    def get_descriptor(self, entity: EntityRef) -> EntityDescriptor | None:
        return self._descriptors.get(entity_name(entity))

    def get_schemas(self) -> dict[str, dict[str, Any]]:
        """Schema dict for every registered entity, keyed by entity name."""
        return {key: descriptor.to_schema() for key, descriptor in self._descriptors.items()}

    def get_sources(self) -> dict[str, list[str]]:
        """Sources serving each entity, in registration order."""
        return {key: list(sources) for key, sources in self._sources.items()}

    def sources_for(self, entity: EntityRef) -> list[str]:
        return list(self._sources.get(entity_name(entity), []))

    def names(self) -> list[str]:
        return list(self._descriptors.keys())

    def __len__(self) -> int:
        return len(self._descriptors)

    def __contains__(self, entity: EntityRef) -> bool:
        return entity_name(entity) in self._descriptors

    def __repr__(self) -> str:
        return f"SchemaRegistry(entities={self.names()})"


# =============================================================================
# Schema pseudo-entity
# =============================================================================


class SchemaAdapter(BaseAdapter):
    """
    Read-only adapter serving the `_schema` pseudo-entity.

    Each record is {"name", "schema", "sources"} for one registered entity.
    Where clauses use the full matcher, so {"name": {"$in": [...]}} works.
    """

    def __init__(self, schemas: SchemaRegistry):
        self._schemas = schemas

    @property
    def name(self) -> str:
        return GLOBAL_SOURCE

    def _records(self) -> list[dict[str, Any]]:
        sources = self._schemas.get_sources()
        return [
            {"name": name, "schema": schema, "sources": sources.get(name, [])}
            for name, schema in self._schemas.get_schemas().items()
        ]

    def _normalise(self, where: dict[str, Any] | None) -> dict[str, Any] | None:
        if where and isinstance(where.get("name"), str):
            return {**where, "name": simplify_entity_name(where["name"])}
        return where

    async def find_many(self, args: Args | None = None, ctx: OperationContext | None = None) -> list[dict]:
        args = args or {}
        return apply_find_many(
            self._records(),
            where=self._normalise(args.get("where")),
            order_by=args.get("order_by"),
            offset=args.get("offset"),
            limit=args.get("limit"),
        )

    async def find_one(self, args: Args, ctx: OperationContext | None = None) -> dict | None:
        where = self._normalise(args.get("where"))
        for record in self._records():
            if matches(record, where):
                return record
        return None


def schema_entity_descriptor() -> EntityDescriptor:
    """Descriptor of the `_schema` pseudo-entity itself."""
    return (
        EntitySchemaBuilder(SCHEMA_ENTITY, description="Registered entity schemas")
        .string("name", description="Entity name")
        .record("schema", description="JSON-schema style description")
        .array("sources", description="Sources serving the entity")
        .build()
    )


def data_entity_descriptor() -> EntityDescriptor:
    """Descriptor of the `_data` key/value pseudo-entity."""
    return (
        EntitySchemaBuilder(DATA_ENTITY, description="Process-wide key/value store")
        .string("key")
        .record("value")
        .build()
    )

