"""
unidata: a multi-source data-access layer.

Clients address logical entities ("user", "post") without knowing which
backend stores them. The router resolves each entity/source pair to an
adapter, runs the call through an onion-style middleware pipeline and
returns the result, optionally enriched with batched cross-entity joins.

Quick start:
    from unidata import AdapterRegistration, MemoryAdapter, Plugin, build_router

    router = build_router(
        plugins=[Plugin("app", adapters=[AdapterRegistration("user", "memory", MemoryAdapter())])],
        entity_configs={"user": {"default_source": "memory"}},
    )
    await router.create("user", {"id": "1", "name": "Ada"})
    await router.find_one("user", where={"id": "1"})
"""

from unidata.adapters import (
    BaseAdapter,
    CacheAdapter,
    LRUCache,
    MemoryAdapter,
    MockAdapter,
    RemoteAdapter,
    perform_upsert,
    perform_upsert_many,
)
from unidata.bootstrap import build_router, configure_logging
from unidata.config import EntityConfig, OperationCacheConfig, Settings, load_settings
from unidata.context import EntityRef, Operation, OperationContext, entity_name, simplify_entity_name
from unidata.errors import (
    BadRequestError,
    ConfigurationError,
    DataAccessError,
    ErrorKind,
    ForbiddenError,
    InternalError,
    NoAdapterError,
    NotFoundError,
    NotImplementedOperationError,
    UnauthorizedError,
)
from unidata.middleware import (
    Allow,
    AuthMiddleware,
    CacheMiddleware,
    HookBuilder,
    LoggingMiddleware,
    Middleware,
    MiddlewareManager,
    RetryMiddleware,
    RetryPolicy,
)
from unidata.plugins import AdapterRegistration, Plugin
from unidata.query import apply_find_many, matches, paginate, sort_records
from unidata.registry import (
    AdapterRegistry,
    EntityDescriptor,
    EntitySchemaBuilder,
    FieldKind,
    GlobalAdapter,
    SchemaRegistry,
    descriptor_from_model,
)
from unidata.relations import RelationBatch, resolve_includes
from unidata.router import OperationRouter, Repository

__version__ = "0.1.0"

__all__ = [
    # Core
    "OperationRouter",
    "Repository",
    "OperationContext",
    "Operation",
    "EntityRef",
    "entity_name",
    "simplify_entity_name",
    "build_router",
    "configure_logging",
    # Adapters
    "BaseAdapter",
    "MemoryAdapter",
    "MockAdapter",
    "CacheAdapter",
    "RemoteAdapter",
    "LRUCache",
    "perform_upsert",
    "perform_upsert_many",
    # Registries
    "AdapterRegistry",
    "GlobalAdapter",
    "SchemaRegistry",
    "EntityDescriptor",
    "EntitySchemaBuilder",
    "FieldKind",
    "descriptor_from_model",
    "Plugin",
    "AdapterRegistration",
    # Middleware
    "Middleware",
    "MiddlewareManager",
    "HookBuilder",
    "LoggingMiddleware",
    "AuthMiddleware",
    "Allow",
    "CacheMiddleware",
    "RetryMiddleware",
    "RetryPolicy",
    # Query
    "matches",
    "sort_records",
    "paginate",
    "apply_find_many",
    # Relations
    "RelationBatch",
    "resolve_includes",
    # Config
    "EntityConfig",
    "OperationCacheConfig",
    "Settings",
    "load_settings",
    # Errors
    "ErrorKind",
    "DataAccessError",
    "BadRequestError",
    "NotFoundError",
    "NoAdapterError",
    "NotImplementedOperationError",
    "UnauthorizedError",
    "ForbiddenError",
    "InternalError",
    "ConfigurationError",
]
