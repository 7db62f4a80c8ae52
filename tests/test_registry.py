"""
Tests for the adapter registry.
"""

import pytest

from unidata.adapters import MemoryAdapter
from unidata.errors import NoAdapterError
from unidata.registry import AdapterRegistry


class TestAdapterRegistry:
    """Tests for AdapterRegistry registration and resolution."""

    def test_register_and_get(self):
        registry = AdapterRegistry()
        adapter = MemoryAdapter()
        registry.register("user", "memory", adapter)

        assert registry.get("user", "memory") is adapter
        assert registry.get("user", "other") is None
        assert ("user", "memory") in registry
        assert len(registry) == 1

    def test_names_are_normalised(self):
        registry = AdapterRegistry()
        adapter = MemoryAdapter()
        registry.register("UserEntity", "memory", adapter)

        assert registry.resolve("user", "memory") is adapter
        assert registry.resolve("User", "memory") is adapter

    def test_reregister_replaces(self):
        registry = AdapterRegistry()
        first, second = MemoryAdapter(), MemoryAdapter()
        registry.register("user", "memory", first)
        registry.register("user", "memory", second)

        assert registry.resolve("user", "memory") is second
        assert len(registry) == 1

    def test_empty_source_rejected(self):
        with pytest.raises(ValueError):
            AdapterRegistry().register("user", "", MemoryAdapter())

    def test_default_source(self):
        registry = AdapterRegistry()
        adapter = MemoryAdapter()
        registry.register("user", "memory", adapter)
        registry.set_default("user", "memory")

        assert registry.default_source("user") == "memory"
        assert registry.resolve("user") is adapter

    def test_no_source_and_no_default(self):
        registry = AdapterRegistry()
        registry.register("user", "memory", MemoryAdapter())

        with pytest.raises(NoAdapterError, match="no default source"):
            registry.resolve("user")

    def test_unknown_source_lists_available(self):
        registry = AdapterRegistry()
        registry.register("user", "memory", MemoryAdapter())
        registry.register("user", "db", MemoryAdapter())

        with pytest.raises(NoAdapterError) as exc_info:
            registry.resolve("user", "redis")
        assert "memory" in str(exc_info.value)
        assert "db" in str(exc_info.value)
        assert exc_info.value.status_code == 404

    def test_global_factory_instantiated_once(self):
        registry = AdapterRegistry()
        created = []

        def factory(entity):
            created.append(entity)
            return MemoryAdapter()

        registry.register_global("mock", factory)
        first = registry.resolve("user", "mock")
        second = registry.resolve("user", "mock")

        assert first is second
        assert created == ["user"]
        assert registry.sources_for("user") == ["mock"]

    def test_global_factory_respects_entities(self):
        registry = AdapterRegistry()
        registry.register_global("mock", lambda entity: MemoryAdapter(), entities=["post"])

        assert registry.resolve("post", "mock") is not None
        with pytest.raises(NoAdapterError):
            registry.resolve("user", "mock")

    def test_explicit_binding_beats_global(self):
        registry = AdapterRegistry()
        bound = MemoryAdapter()
        registry.register("user", "mock", bound)
        registry.register_global("mock", lambda entity: MemoryAdapter())

        assert registry.resolve("user", "mock") is bound

    def test_first_global_wins(self):
        registry = AdapterRegistry()
        first, second = MemoryAdapter(), MemoryAdapter()
        registry.register_global("mock", lambda entity: first)
        registry.register_global("mock", lambda entity: second)

        assert registry.resolve("user", "mock") is first

    def test_unregister_clears_default(self):
        registry = AdapterRegistry()
        registry.register("user", "memory", MemoryAdapter())
        registry.set_default("user", "memory")

        assert registry.unregister("user", "memory") is True
        assert registry.default_source("user") is None
        assert registry.unregister("user", "memory") is False

    def test_entities_and_bindings(self):
        registry = AdapterRegistry()
        registry.register("user", "memory", MemoryAdapter())
        registry.register("user", "db", MemoryAdapter())
        registry.register("post", "memory", MemoryAdapter())

        assert registry.entities() == ["user", "post"]
        assert [b.key for b in registry.bindings()] == ["user:memory", "user:db", "post:memory"]
