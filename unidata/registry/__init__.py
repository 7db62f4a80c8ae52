"""
Registries for unidata.

- AdapterRegistry: (entity, source) -> adapter bindings and resolution
- SchemaRegistry: entity descriptors and the `_schema` pseudo-entity
"""

from .adapters import AdapterRegistry, GlobalAdapter, SourceBinding
from .schema import (
    DATA_ENTITY,
    GLOBAL_SOURCE,
    SCHEMA_ENTITY,
    EntityDescriptor,
    EntitySchemaBuilder,
    FieldDescriptor,
    FieldKind,
    SchemaAdapter,
    SchemaRegistry,
    descriptor_from_model,
)

__all__ = [
    "DATA_ENTITY",
    "GLOBAL_SOURCE",
    "SCHEMA_ENTITY",
    "AdapterRegistry",
    "EntityDescriptor",
    "EntitySchemaBuilder",
    "FieldDescriptor",
    "FieldKind",
    "GlobalAdapter",
    "SchemaAdapter",
    "SchemaRegistry",
    "SourceBinding",
    "descriptor_from_model",
]
