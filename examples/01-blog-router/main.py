"""
Blog Router Example

This example demonstrates the basic data-access pattern:
1. Describe entities and bind them to adapters in a plugin
2. Build a router with a middleware
3. Run queries with a batched join

Run: python -m examples.01-blog-router.main
"""

import asyncio

from pydantic import BaseModel

from unidata import (
    AdapterRegistration,
    EntitySchemaBuilder,
    HookBuilder,
    LoggingMiddleware,
    MemoryAdapter,
    Plugin,
    build_router,
    configure_logging,
)

# =============================================================================
# Entities
# =============================================================================

user_entity = (
    EntitySchemaBuilder("user", description="Blog author")
    .string("id")
    .string("name")
    .array("posts", target="post", optional=True)
    .build()
)


class Post(BaseModel):
    """A blog post."""

    id: str
    user_id: str
    title: str


blog = Plugin(
    name="blog",
    entities=[user_entity, Post],
    adapters=[
        AdapterRegistration("user", "memory", MemoryAdapter([{"id": "1", "name": "Ada"}, {"id": "2", "name": "Brian"}])),
        AdapterRegistration("post", "memory", MemoryAdapter()),
    ],
)

# =============================================================================
# Hooks
# =============================================================================


def default_title(args, result, hc):
    items = args["data"] if isinstance(args["data"], list) else [args["data"]]
    for item in items:
        item.setdefault("title", "Untitled")


stamp_posts = (
    HookBuilder()
    .before_create(default_title)
    .build(name="StampPosts")
)


# =============================================================================
# Main
# =============================================================================


async def main():
    configure_logging()

    router = build_router(
        plugins=[blog],
        middlewares=[LoggingMiddleware(), stamp_posts],
        entity_configs={
            "user": {"default_source": "memory"},
            "post": {"default_source": "memory", "exclude": ["LoggingMiddleware"]},
        },
    )
    print(f"Router: {router}")
    print()

    posts = router.repo("post")
    await posts.create_many([{"id": "p1", "user_id": "1", "title": "Engines"}, {"id": "p2", "user_id": "2"}])
    await posts.create({"id": "p3", "user_id": "1"})

    users = await router.find_many(
        "user",
        order_by={"name": "asc"},
        include={"posts": posts.joined(local_field="id", foreign_field="user_id")},
    )
    for user in users:
        titles = ", ".join(p["title"] for p in user["posts"])
        print(f"{user['name']}: {titles}")
    print()

    schema = await router.find_one("_schema", {"name": "post"})
    print(f"Post schema: {schema['schema']}")


if __name__ == "__main__":
    asyncio.run(main())
