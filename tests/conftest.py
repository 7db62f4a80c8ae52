"""
Pytest configuration and fixtures for unidata tests.
"""

import sys
from pathlib import Path

import pytest

# Add the repository root to path for imports
# This allows `from unidata.router import ...` to work
repo_root = Path(__file__).parent.parent
if str(repo_root) not in sys.path:
    sys.path.insert(0, str(repo_root))

from unidata import AdapterRegistration, EntitySchemaBuilder, MemoryAdapter, Plugin, build_router  # noqa: E402


@pytest.fixture
def sample_users():
    """Sample user records for testing."""
    return [
        {"id": "1", "name": "Ada", "age": 36, "role": "admin", "active": True},
        {"id": "2", "name": "Brian", "age": 28, "role": "editor", "active": True},
        {"id": "3", "name": "carol", "age": 41, "role": "viewer", "active": False},
        {"id": "4", "name": "Dan", "age": None, "role": "viewer", "active": True},
    ]


@pytest.fixture
def sample_posts():
    """Sample post records for testing."""
    return [
        {"id": "p1", "user_id": "1", "title": "Engines"},
        {"id": "p2", "user_id": "1", "title": "Notes"},
        {"id": "p3", "user_id": "2", "title": "Layouts"},
    ]


@pytest.fixture
def user_descriptor():
    return (
        EntitySchemaBuilder("user")
        .string("id")
        .string("name")
        .number("age", optional=True)
        .array("posts", target="post", optional=True)
        .build()
    )


@pytest.fixture
def post_descriptor():
    return EntitySchemaBuilder("post").string("id").string("user_id").string("title").build()


@pytest.fixture
def blog_plugin(sample_users, sample_posts, user_descriptor, post_descriptor):
    """Plugin with users and posts in memory."""
    return Plugin(
        name="blog",
        entities=[user_descriptor, post_descriptor],
        adapters=[
            AdapterRegistration("user", "memory", MemoryAdapter(sample_users)),
            AdapterRegistration("post", "memory", MemoryAdapter(sample_posts)),
        ],
    )


@pytest.fixture
def router(blog_plugin):
    """Router over the blog plugin with memory as default source."""
    return build_router(
        plugins=[blog_plugin],
        entity_configs={
            "user": {"default_source": "memory"},
            "post": {"default_source": "memory"},
        },
    )
