"""
Tests for permission rules and AuthMiddleware.
"""

import pytest

from unidata import build_router
from unidata.errors import ErrorKind, ForbiddenError, NotImplementedOperationError, UnauthorizedError
from unidata.middleware import Allow, AuthMiddleware

ADMIN = {"id": "1", "roles": ["admin"]}
EDITOR = {"id": "2", "roles": ["editor"]}
VIEWER = {"id": "3", "roles": []}


def make_router(blog_plugin, **config):
    return build_router(
        plugins=[blog_plugin],
        middlewares=[AuthMiddleware(get_user=lambda ctx: ctx.metadata.get("user"))],
        entity_configs={"user": {"default_source": "memory", **config}},
    )


class TestAllow:
    """Tests for the Allow helpers."""

    def test_everyone(self):
        assert Allow.everyone(None) is True

    def test_authenticated(self):
        assert Allow.authenticated(VIEWER) is True
        assert Allow.authenticated(None) is False

    def test_has_role(self):
        assert Allow.has_role("admin")(ADMIN) is True
        assert Allow.has_role("admin")(EDITOR) is False
        assert Allow.has_role("admin")(None) is False

    def test_has_any_role(self):
        check = Allow.has_any_role(["admin", "editor"])
        assert check(EDITOR) is True
        assert check(VIEWER) is False


class TestAuthMiddleware:
    """Tests for AuthMiddleware decisions."""

    @pytest.mark.asyncio
    async def test_no_rules_allows(self, blog_plugin):
        router = make_router(blog_plugin)
        assert len(await router.find_many("user")) == 4

    @pytest.mark.asyncio
    async def test_entity_without_config_allows(self, blog_plugin):
        router = make_router(blog_plugin, allow_api_crud=False)
        assert len(await router.find_many("post", source="memory")) == 3

    @pytest.mark.asyncio
    async def test_true_allows_anonymous(self, blog_plugin):
        router = make_router(blog_plugin, allow_api_read=True)
        assert await router.find_one("user", {"id": "1"}) is not None

    @pytest.mark.asyncio
    async def test_everyone_allows_anonymous(self, blog_plugin):
        router = make_router(blog_plugin, allow_api_read=Allow.everyone)
        assert await router.find_one("user", {"id": "1"}) is not None

    @pytest.mark.asyncio
    async def test_missing_user_unauthorized(self, blog_plugin):
        router = make_router(blog_plugin, allow_api_read=Allow.authenticated)
        with pytest.raises(UnauthorizedError) as exc_info:
            await router.find_many("user")
        assert exc_info.value.kind is ErrorKind.UNAUTHORIZED
        assert exc_info.value.status_code == 401

    @pytest.mark.asyncio
    async def test_role_rule(self, blog_plugin):
        router = make_router(blog_plugin, allow_api_delete="admin")

        with pytest.raises(ForbiddenError) as exc_info:
            await router.delete("user", {"id": "2"}, metadata={"user": EDITOR})
        assert exc_info.value.status_code == 403

        assert await router.delete("user", {"id": "2"}, metadata={"user": ADMIN}) is True

    @pytest.mark.asyncio
    async def test_role_list_rule(self, blog_plugin):
        router = make_router(blog_plugin, allow_api_create=["admin", "editor"])
        created = await router.create("user", {"id": "9"}, metadata={"user": EDITOR})
        assert created["id"] == "9"
        with pytest.raises(ForbiddenError):
            await router.create("user", {"id": "10"}, metadata={"user": VIEWER})

    @pytest.mark.asyncio
    async def test_crud_rule_covers_writes(self, blog_plugin):
        router = make_router(blog_plugin, allow_api_crud="admin")
        with pytest.raises(ForbiddenError):
            await router.update("user", {"id": "1"}, {"name": "x"}, metadata={"user": EDITOR})

    @pytest.mark.asyncio
    async def test_first_granting_rule_wins(self, blog_plugin):
        # update permits; crud would deny
        router = make_router(blog_plugin, allow_api_update="editor", allow_api_crud="admin")
        updated = await router.update("user", {"id": "1"}, {"name": "x"}, metadata={"user": EDITOR})
        assert updated["name"] == "x"

    @pytest.mark.asyncio
    async def test_upsert_accepts_create_or_update(self, blog_plugin):
        router = make_router(blog_plugin, allow_api_create="editor")
        result = await router.upsert(
            "user", {"id": "9"}, {"name": "x"}, {"id": "9", "name": "new"}, metadata={"user": EDITOR}
        )
        assert result["name"] == "new"

    @pytest.mark.asyncio
    async def test_data_rule_checks_result(self, blog_plugin):
        def own_record(user, data):
            return data is not None and data["id"] == user["id"]

        router = make_router(blog_plugin, allow_api_read=own_record)

        own = await router.find_one("user", {"id": "1"}, metadata={"user": ADMIN})
        assert own["name"] == "Ada"
        with pytest.raises(ForbiddenError):
            await router.find_one("user", {"id": "2"}, metadata={"user": ADMIN})

    @pytest.mark.asyncio
    async def test_async_rule(self, blog_plugin):
        async def is_admin(user):
            return "admin" in user["roles"]

        router = make_router(blog_plugin, allow_api_read=is_admin)
        assert len(await router.find_many("user", metadata={"user": ADMIN})) == 4
        with pytest.raises(ForbiddenError):
            await router.find_many("user", metadata={"user": VIEWER})

    @pytest.mark.asyncio
    async def test_raising_rule_denies(self, blog_plugin):
        def broken(user):
            raise KeyError("roles")

        router = make_router(blog_plugin, allow_api_read=broken)
        with pytest.raises(ForbiddenError):
            await router.find_many("user", metadata={"user": ADMIN})

    @pytest.mark.asyncio
    async def test_user_from_context(self, blog_plugin):
        router = build_router(
            plugins=[blog_plugin],
            middlewares=[AuthMiddleware()],
            entity_configs={"user": {"default_source": "memory", "allow_api_read": "admin"}},
        )
        assert len(await router.find_many("user", user=ADMIN)) == 4
        with pytest.raises(UnauthorizedError):
            await router.find_many("user")

    @pytest.mark.asyncio
    async def test_custom_operation_without_rules_passes(self, blog_plugin):
        router = make_router(blog_plugin, allow_api_crud="admin")
        # call has no permission scope, so no rule applies
        with pytest.raises(NotImplementedOperationError):
            await router.call("user", {})
