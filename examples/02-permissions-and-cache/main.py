"""
Permissions and Cache Example

This example demonstrates the stock middlewares:
1. AuthMiddleware with role and ownership rules
2. CacheMiddleware with per-operation TTLs
3. RetryMiddleware around a flaky adapter

Run: python -m examples.02-permissions-and-cache.main
"""

import asyncio
import random

from unidata import (
    AdapterRegistration,
    Allow,
    AuthMiddleware,
    CacheMiddleware,
    ForbiddenError,
    InternalError,
    LRUCache,
    MemoryAdapter,
    Plugin,
    RetryMiddleware,
    RetryPolicy,
    build_router,
)
from unidata.middleware import ExponentialBackoff

# =============================================================================
# Adapters
# =============================================================================


class FlakyAdapter(MemoryAdapter):
    """MemoryAdapter failing one read in three."""

    async def find_many(self, args=None, ctx=None):
        if random.random() < 0.3:
            raise InternalError("replica unavailable", source=self.name)
        return await super().find_many(args, ctx)


def own_document(user, data):
    return data is not None and data.get("owner") == user["id"]


# =============================================================================
# Main
# =============================================================================


async def main():
    documents = FlakyAdapter(
        [
            {"id": "d1", "owner": "u1", "title": "Roadmap"},
            {"id": "d2", "owner": "u2", "title": "Budget"},
        ]
    )

    router = build_router(
        plugins=[Plugin("docs", adapters=[AdapterRegistration("document", "memory", documents)])],
        middlewares=[
            AuthMiddleware(get_user=lambda ctx: ctx.metadata.get("user")),
            CacheMiddleware(LRUCache(max=100, ttl=60)),
            RetryMiddleware(RetryPolicy(max_attempts=5, backoff=ExponentialBackoff(base=0.05))),
        ],
        entity_configs={
            "document": {
                "default_source": "memory",
                "cache": {"findMany": "10s"},
                "allow_api_read": Allow.authenticated,
                "allow_api_delete": "admin",
            },
        },
    )

    alice = {"id": "u1", "roles": []}
    admin = {"id": "u0", "roles": ["admin"]}

    docs = await router.find_many("document", metadata={"user": alice})
    print(f"Alice sees {len(docs)} documents")

    try:
        await router.delete("document", {"id": "d2"}, metadata={"user": alice})
    except ForbiddenError as e:
        print(f"Alice cannot delete: {e}")

    deleted = await router.delete("document", {"id": "d2"}, metadata={"user": admin})
    print(f"Admin deleted d2: {deleted}")

    router.configure_entity(
        "document",
        {"default_source": "memory", "allow_api_read": own_document},
    )
    try:
        await router.find_one("document", {"id": "d1"}, metadata={"user": {"id": "u2", "roles": []}})
    except ForbiddenError as e:
        print(f"Ownership check: {e}")


if __name__ == "__main__":
    asyncio.run(main())
