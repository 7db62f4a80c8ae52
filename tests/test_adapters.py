"""
Tests for the adapter interface and the in-memory adapters.

Tests cover:
- BaseAdapter stubs and override detection
- MemoryAdapter CRUD semantics
- MockAdapter latency
"""

import asyncio
import time

import pytest

from unidata.adapters import BaseAdapter, MemoryAdapter, MockAdapter
from unidata.adapters.base import default_source_name, implements
from unidata.errors import BadRequestError, ErrorKind, NotFoundError, NotImplementedOperationError

# =============================================================================
# BaseAdapter
# =============================================================================


class ReadOnlyAdapter(BaseAdapter):
    async def find_one(self, args, ctx=None):
        return {"id": "1"}


class TestBaseAdapter:
    """Tests for BaseAdapter defaults."""

    @pytest.mark.asyncio
    async def test_unimplemented_raises(self):
        adapter = ReadOnlyAdapter()
        with pytest.raises(NotImplementedOperationError) as exc_info:
            await adapter.create({"data": {}})
        assert exc_info.value.kind is ErrorKind.NOT_IMPLEMENTED
        assert exc_info.value.status_code == 501

    def test_implements_detects_overrides(self):
        adapter = ReadOnlyAdapter()
        assert implements(adapter, "find_one")
        assert not implements(adapter, "find_many")
        assert not implements(adapter, "does_not_exist")

    def test_default_source_name(self):
        assert default_source_name(MemoryAdapter()) == "memory"
        assert default_source_name(ReadOnlyAdapter) == "readonly"
        assert MockAdapter().name == "mock"

    def test_repr(self):
        assert repr(MemoryAdapter()) == "MemoryAdapter(source='memory')"


# =============================================================================
# MemoryAdapter
# =============================================================================


class TestMemoryAdapter:
    """Tests for MemoryAdapter."""

    @pytest.fixture
    def adapter(self, sample_users):
        return MemoryAdapter(sample_users)

    @pytest.mark.asyncio
    async def test_find_one(self, adapter):
        user = await adapter.find_one({"where": {"id": "2"}})
        assert user["name"] == "Brian"

    @pytest.mark.asyncio
    async def test_find_one_missing_returns_none(self, adapter):
        assert await adapter.find_one({"where": {"id": "99"}}) is None

    @pytest.mark.asyncio
    async def test_find_many_with_query(self, adapter):
        users = await adapter.find_many(
            {"where": {"role": "viewer"}, "order_by": {"name": "asc"}, "limit": 1}
        )
        assert [u["id"] for u in users] == ["4"]

    @pytest.mark.asyncio
    async def test_find_many_without_args(self, adapter):
        assert len(await adapter.find_many()) == 4

    @pytest.mark.asyncio
    async def test_returned_records_are_copies(self, adapter):
        user = await adapter.find_one({"where": {"id": "1"}})
        user["name"] = "changed"
        again = await adapter.find_one({"where": {"id": "1"}})
        assert again["name"] == "Ada"

    @pytest.mark.asyncio
    async def test_input_data_is_copied(self, sample_users):
        adapter = MemoryAdapter(sample_users)
        sample_users[0]["name"] = "changed"
        user = await adapter.find_one({"where": {"id": "1"}})
        assert user["name"] == "Ada"

    @pytest.mark.asyncio
    async def test_create(self, adapter):
        created = await adapter.create({"data": {"id": "5", "name": "Eve"}})
        assert created == {"id": "5", "name": "Eve"}
        assert len(adapter) == 5

    @pytest.mark.asyncio
    async def test_create_requires_mapping(self, adapter):
        with pytest.raises(BadRequestError):
            await adapter.create({"data": None})

    @pytest.mark.asyncio
    async def test_create_many(self, adapter):
        created = await adapter.create_many({"data": [{"id": "5"}, {"id": "6"}]})
        assert [c["id"] for c in created] == ["5", "6"]
        assert len(adapter) == 6

    @pytest.mark.asyncio
    async def test_update_first_match(self, adapter):
        updated = await adapter.update({"where": {"role": "viewer"}, "data": {"role": "editor"}})
        assert updated["id"] == "3"
        assert updated["role"] == "editor"
        remaining = await adapter.find_many({"where": {"role": "viewer"}})
        assert [u["id"] for u in remaining] == ["4"]

    @pytest.mark.asyncio
    async def test_update_missing_raises(self, adapter):
        with pytest.raises(NotFoundError):
            await adapter.update({"where": {"id": "99"}, "data": {"name": "x"}})

    @pytest.mark.asyncio
    async def test_update_many(self, adapter):
        updated = await adapter.update_many({"where": {"active": True}, "data": {"active": False}})
        assert len(updated) == 3
        assert await adapter.find_many({"where": {"active": True}}) == []

    @pytest.mark.asyncio
    async def test_delete(self, adapter):
        assert await adapter.delete({"where": {"role": "viewer"}}) is True
        assert len(adapter) == 2
        assert await adapter.delete({"where": {"role": "viewer"}}) is False

    @pytest.mark.asyncio
    async def test_upsert_updates_existing(self, adapter):
        result = await adapter.upsert(
            {"where": {"id": "1"}, "update": {"name": "Ada L."}, "create": {"id": "1", "name": "new"}}
        )
        assert result["name"] == "Ada L."
        assert len(adapter) == 4

    @pytest.mark.asyncio
    async def test_upsert_creates_missing(self, adapter):
        result = await adapter.upsert(
            {"where": {"id": "9"}, "update": {"name": "x"}, "create": {"id": "9", "name": "Nine"}}
        )
        assert result == {"id": "9", "name": "Nine"}
        assert len(adapter) == 5

    @pytest.mark.asyncio
    async def test_call_not_implemented(self, adapter):
        with pytest.raises(NotImplementedOperationError):
            await adapter.call({})


# =============================================================================
# MockAdapter
# =============================================================================


class TestMockAdapter:
    """Tests for MockAdapter latency."""

    @pytest.mark.asyncio
    async def test_delay_applied(self):
        adapter = MockAdapter([{"id": "1"}], delay=0.05)
        start = time.perf_counter()
        await adapter.find_one({"where": {"id": "1"}})
        assert time.perf_counter() - start >= 0.04

    @pytest.mark.asyncio
    async def test_concurrent_calls_overlap(self):
        adapter = MockAdapter([{"id": "1"}], delay=0.05)
        start = time.perf_counter()
        await asyncio.gather(*(adapter.find_many() for _ in range(5)))
        assert time.perf_counter() - start < 0.2
