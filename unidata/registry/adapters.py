"""
Adapter registry.

Maps (entity, source) pairs to adapter instances and resolves the adapter
for a call.

Resolution order for `resolve(entity, source)`:
1. An explicit source bound for the entity
2. With no source given, the entity's default source
3. With an unknown source, global adapter factories in registration order;
   the first whose source matches is instantiated for the entity and kept
4. Otherwise NoAdapterError

Design Principle:
    Registries are built at startup and passed by reference. There is no
    process-wide singleton, so tests and multiple routers never share state.

Usage:
    registry = AdapterRegistry()
    registry.register("user", "memory", MemoryAdapter())
    registry.set_default("user", "memory")

    adapter = registry.resolve("user")           # memory
    adapter = registry.resolve("UserEntity", "memory")
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Iterable
from dataclasses import dataclass
from typing import TYPE_CHECKING

from ..context import EntityRef, entity_name
from ..errors import NoAdapterError

if TYPE_CHECKING:
    from ..adapters.base import BaseAdapter

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SourceBinding:
    """One registered (entity, source) -> adapter binding."""

    entity: str
    source: str
    adapter: BaseAdapter

    @property
    def key(self) -> str:
        return f"{self.entity}:{self.source}"


@dataclass(frozen=True)
class GlobalAdapter:
    """
    Fallback adapter factory serving a source for many entities.

    The factory is called with the entity name the first time the entity is
    requested on this source. `entities=None` serves every entity.
    """

    source: str
    factory: Callable[[str], BaseAdapter]
    entities: frozenset[str] | None = None

    def serves(self, entity: str) -> bool:
        return self.entities is None or entity in self.entities


class AdapterRegistry:
    """Registry of adapter bindings per entity and source."""

    def __init__(self) -> None:
        self._bindings: dict[tuple[str, str], SourceBinding] = {}
        self._defaults: dict[str, str] = {}
        self._globals: list[GlobalAdapter] = []

    # -------------------------------------------------------------------------
    # Registration
    # -------------------------------------------------------------------------

    def register(self, entity: EntityRef, source: str, adapter: BaseAdapter) -> SourceBinding:
        """
        Bind an adapter to an (entity, source) pair.

        Re-registering a pair replaces the previous binding wholesale.
        """
        if not source:
            raise ValueError("source must be a non-empty string")
        name = entity_name(entity)
        binding = SourceBinding(entity=name, source=source, adapter=adapter)
        if (name, source) in self._bindings:
            logger.info(f"[adapter_registry] Replacing adapter for {binding.key}")
        self._bindings[(name, source)] = binding
        logger.debug(f"[adapter_registry] Registered {type(adapter).__name__} for {binding.key}")
        return binding

    def unregister(self, entity: EntityRef, source: str) -> bool:
        name = entity_name(entity)
        if self._bindings.pop((name, source), None) is None:
            return False
        if self._defaults.get(name) == source:
            del self._defaults[name]
        logger.info(f"[adapter_registry] Unregistered {name}:{source}")
        return True

    def set_default(self, entity: EntityRef, source: str) -> None:
        """Set the source used when a call names no source."""
        self._defaults[entity_name(entity)] = source

    def register_global(
        self,
        source: str,
        factory: Callable[[str], BaseAdapter],
        entities: Iterable[EntityRef] | None = None,
    ) -> GlobalAdapter:
        """Add a fallback factory. Earlier registrations take precedence."""
        served = frozenset(entity_name(e) for e in entities) if entities is not None else None
        entry = GlobalAdapter(source=source, factory=factory, entities=served)
        self._globals.append(entry)
        logger.debug(f"[adapter_registry] Registered global adapter for source '{source}'")
        return entry

    # -------------------------------------------------------------------------
    # Lookup
    # -------------------------------------------------------------------------

    def default_source(self, entity: EntityRef) -> str | None:
        return self._defaults.get(entity_name(entity))

    def get(self, entity: EntityRef, source: str) -> BaseAdapter | None:
        """Adapter bound to (entity, source), or None. Ignores globals."""
        binding = self._bindings.get((entity_name(entity), source))
        return binding.adapter if binding else None

    def resolve_source(self, entity: EntityRef, source: str | None = None) -> str:
        """
        Pick the source for a call.

        Raises:
            NoAdapterError: If no source is given and the entity has no default
        """
        name = entity_name(entity)
        if source:
            return source
        default = self._defaults.get(name)
        if default:
            return default
        raise NoAdapterError(f"No source given and no default source for '{name}'", entity=name)

    def resolve(self, entity: EntityRef, source: str | None = None) -> BaseAdapter:
        """
        Resolve the adapter for a call.

        Raises:
            NoAdapterError: If nothing serves the entity on the chosen source
        """
        name = entity_name(entity)
        source = self.resolve_source(name, source)

        binding = self._bindings.get((name, source))
        if binding is not None:
            return binding.adapter

        for entry in self._globals:
            if entry.source == source and entry.serves(name):
                adapter = entry.factory(name)
                self.register(name, source, adapter)
                logger.info(f"[adapter_registry] Instantiated global adapter for {name}:{source}")
                return adapter

        available = self.sources_for(name)
        raise NoAdapterError(
            f"Unknown source '{source}' for entity '{name}'. Available sources: {available}",
            entity=name,
            source=source,
        )

    def sources_for(self, entity: EntityRef) -> list[str]:
        name = entity_name(entity)
        return [source for (e, source) in self._bindings if e == name]

    def entities(self) -> list[str]:
        seen: dict[str, None] = {}
        for entity, _ in self._bindings:
            seen.setdefault(entity, None)
        return list(seen)

    def bindings(self) -> list[SourceBinding]:
        return list(self._bindings.values())

    def __len__(self) -> int:
        return len(self._bindings)

    def __contains__(self, key: tuple[str, str]) -> bool:
        entity, source = key
        return (entity_name(entity), source) in self._bindings

    def __repr__(self) -> str:
        return f"AdapterRegistry(bindings={[b.key for b in self._bindings.values()]})"
