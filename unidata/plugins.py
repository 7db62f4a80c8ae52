"""
Plugins bundle entities and the adapters serving them.

A plugin is plain data consumed once by `build_router()`:

    blog = Plugin(
        name="blog",
        entities=[user_descriptor, PostModel],
        adapters=[
            AdapterRegistration("user", "memory", MemoryAdapter()),
            AdapterRegistration("post", "memory", MemoryAdapter()),
        ],
    )

Entities may be EntityDescriptor objects or pydantic model classes (reflected
with `descriptor_from_model`).
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

from pydantic import BaseModel

from .adapters.memory import MemoryAdapter
from .registry.schema import (
    DATA_ENTITY,
    GLOBAL_SOURCE,
    SCHEMA_ENTITY,
    EntityDescriptor,
    SchemaAdapter,
    data_entity_descriptor,
    descriptor_from_model,
    schema_entity_descriptor,
)

if TYPE_CHECKING:
    from .adapters.base import BaseAdapter
    from .registry.schema import SchemaRegistry


@dataclass(frozen=True)
class AdapterRegistration:
    """Binds one adapter to an (entity, source) pair."""

    entity: str
    source: str
    adapter: BaseAdapter


@dataclass
class Plugin:
    """A named bundle of entities and adapter registrations."""

    name: str
    entities: list[Any] = field(default_factory=list)
    adapters: list[AdapterRegistration] = field(default_factory=list)

    def descriptors(self) -> list[EntityDescriptor]:
        """Entities as descriptors, reflecting pydantic models."""
        result = []
        for entity in self.entities:
            if isinstance(entity, EntityDescriptor):
                result.append(entity)
            elif isinstance(entity, type) and issubclass(entity, BaseModel):
                result.append(descriptor_from_model(entity))
            else:
                raise TypeError(
                    f"Plugin '{self.name}' entity must be an EntityDescriptor or pydantic model, got {entity!r}"
                )
        return result


def builtin_plugin(schemas: SchemaRegistry) -> Plugin:
    """
    Plugin serving the reserved pseudo-entities on source `_global`:
    `_schema` (registry introspection) and `_data` (key/value store).
    """
    return Plugin(
        name="builtin",
        entities=[schema_entity_descriptor(), data_entity_descriptor()],
        adapters=[
            AdapterRegistration(SCHEMA_ENTITY, GLOBAL_SOURCE, SchemaAdapter(schemas)),
            AdapterRegistration(DATA_ENTITY, GLOBAL_SOURCE, MemoryAdapter()),
        ],
    )
