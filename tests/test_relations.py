"""
Tests for batched include resolution.
"""

import asyncio
from unittest.mock import AsyncMock

import pytest

from unidata.adapters import MemoryAdapter
from unidata.relations import RelationBatch, resolve_includes


class CountingAdapter(MemoryAdapter):
    def __init__(self, data=None):
        super().__init__(data)
        self.queries = []

    async def find_many(self, args=None, ctx=None):
        self.queries.append((args or {}).get("where"))
        return await super().find_many(args, ctx)


class TestRelationBatch:
    def test_many(self, sample_posts):
        batch = RelationBatch(sample_posts, local_field="id", foreign_field="user_id")
        assert [p["id"] for p in batch.for_record({"id": "1"})] == ["p1", "p2"]
        assert batch.for_record({"id": "4"}) == []

    def test_single(self, sample_users):
        batch = RelationBatch(sample_users, local_field="user_id", foreign_field="id", many=False)
        assert batch.for_record({"user_id": "2"})["name"] == "Brian"
        assert batch.for_record({"user_id": "x"}) is None


class TestResolveIncludes:
    """Tests for resolve_includes."""

    @pytest.mark.asyncio
    async def test_no_include_returns_input(self, sample_users):
        assert await resolve_includes(sample_users, None) is sample_users
        assert await resolve_includes(None, {"x": lambda records: 1}) is None
        assert await resolve_includes([], {"x": lambda records: 1}) == []

    @pytest.mark.asyncio
    async def test_resolver_receives_whole_batch(self, sample_users):
        batches = []

        def count(records):
            batches.append(len(records))
            return len(records)

        result = await resolve_includes(sample_users, {"total": count})
        assert batches == [4]
        assert all(user["total"] == 4 for user in result)

    @pytest.mark.asyncio
    async def test_async_resolver_awaited_once(self, sample_users):
        resolver = AsyncMock(return_value={"count": 4})
        result = await resolve_includes(sample_users, {"stats": resolver})

        resolver.assert_awaited_once_with(sample_users)
        assert result[2]["stats"] == {"count": 4}

    @pytest.mark.asyncio
    async def test_records_are_copied(self, sample_users):
        result = await resolve_includes(sample_users, {"flag": lambda records: True})
        assert "flag" in result[0]
        assert "flag" not in sample_users[0]

    @pytest.mark.asyncio
    async def test_single_record_shape(self, sample_users):
        result = await resolve_includes(sample_users[0], {"flag": lambda records: True})
        assert isinstance(result, dict)
        assert result["flag"] is True

    @pytest.mark.asyncio
    async def test_attribute_objects_updated_in_place(self):
        class Record:
            def __init__(self, id):
                self.id = id

        records = [Record("1"), Record("2")]
        batch = RelationBatch([{"owner": "1", "n": 1}], local_field="id", foreign_field="owner")
        result = await resolve_includes(records, {"items": lambda recs: batch})
        assert result[0] is records[0]
        assert records[0].items == [{"owner": "1", "n": 1}]
        assert records[1].items == []

    @pytest.mark.asyncio
    async def test_resolvers_run_concurrently(self, sample_users):
        async def slow(records):
            await asyncio.sleep(0.05)
            return "done"

        loop = asyncio.get_running_loop()
        start = loop.time()
        await resolve_includes(sample_users, {"a": slow, "b": slow, "c": slow})
        assert loop.time() - start < 0.14

    @pytest.mark.asyncio
    async def test_errors_propagate(self, sample_users):
        async def broken(records):
            raise RuntimeError("relation failed")

        with pytest.raises(RuntimeError, match="relation failed"):
            await resolve_includes(sample_users, {"x": broken})


class TestJoinedResolver:
    """Tests for Repository.joined through the router."""

    @pytest.fixture
    def posts_adapter(self, sample_posts):
        return CountingAdapter(sample_posts)

    @pytest.fixture
    def joined_router(self, router, posts_adapter):
        router.adapters.register("post", "memory", posts_adapter)
        return router

    @pytest.mark.asyncio
    async def test_one_query_per_relation(self, joined_router, posts_adapter):
        posts = joined_router.repo("post").joined(local_field="id", foreign_field="user_id")
        users = await joined_router.find_many("user", order_by={"id": "asc"}, include={"posts": posts})

        assert len(posts_adapter.queries) == 1
        assert posts_adapter.queries[0] == {"user_id": {"$in": ["1", "2", "3", "4"]}}
        assert [len(u["posts"]) for u in users] == [2, 1, 0, 0]

    @pytest.mark.asyncio
    async def test_belongs_to(self, joined_router):
        author = joined_router.repo("user").joined(local_field="user_id", foreign_field="id", many=False)
        posts = await joined_router.find_many("post", include={"author": author})
        assert [p["author"]["name"] for p in posts] == ["Ada", "Ada", "Brian"]

    @pytest.mark.asyncio
    async def test_find_one_include(self, joined_router):
        posts = joined_router.repo("post").joined(local_field="id", foreign_field="user_id")
        user = await joined_router.find_one("user", {"id": "2"}, include={"posts": posts})
        assert [p["title"] for p in user["posts"]] == ["Layouts"]

    @pytest.mark.asyncio
    async def test_extra_where(self, joined_router):
        posts = joined_router.repo("post").joined(
            local_field="id", foreign_field="user_id", where={"title": {"startsWith": "E"}}
        )
        user = await joined_router.find_one("user", {"id": "1"}, include={"posts": posts})
        assert [p["id"] for p in user["posts"]] == ["p1"]

    @pytest.mark.asyncio
    async def test_no_local_values_skips_query(self, joined_router, posts_adapter):
        posts = joined_router.repo("post").joined(local_field="missing", foreign_field="user_id")
        users = await joined_router.find_many("user", include={"posts": posts})
        assert posts_adapter.queries == []
        assert all(u["posts"] == [] for u in users)
