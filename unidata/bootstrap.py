"""
Startup routine for unidata.

`build_router()` constructs the registries explicitly, loads plugins (plus
the builtin `_schema`/`_data` plugin), wires global adapters, applies entity
configuration and validates middleware requirements. Nothing is stored in
module globals, so independent routers can coexist in one process.

Usage:
    configure_logging()

    router = build_router(
        plugins=[blog_plugin],
        middlewares=[LoggingMiddleware(), AuthMiddleware(get_user=current_user)],
        entity_configs={"user": {"default_source": "memory"}},
        global_adapters=[MockAdapter],
    )
"""

from __future__ import annotations

import logging
from collections.abc import Iterable, Mapping
from typing import Any

from .adapters.base import BaseAdapter, default_source_name
from .config import EntityConfig, Settings, load_settings
from .errors import ConfigurationError
from .middleware.base import Middleware, MiddlewareManager
from .plugins import Plugin, builtin_plugin
from .registry.adapters import AdapterRegistry, GlobalAdapter
from .registry.schema import GLOBAL_SOURCE, SchemaRegistry
from .router import OperationRouter

logger = logging.getLogger(__name__)

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


def configure_logging(settings: Settings | None = None) -> None:
    """Configure root logging from settings (DEBUG when settings.debug)."""
    settings = settings or load_settings()
    level = logging.DEBUG if settings.debug else getattr(logging, settings.log_level, logging.INFO)
    logging.basicConfig(level=level, format=LOG_FORMAT)


def _as_global(entry: GlobalAdapter | type[BaseAdapter]) -> GlobalAdapter:
    if isinstance(entry, GlobalAdapter):
        return entry
    if isinstance(entry, type) and issubclass(entry, BaseAdapter):
        adapter_cls = entry
        source = default_source_name(adapter_cls)
        return GlobalAdapter(source=source, factory=lambda entity: adapter_cls())
    raise ConfigurationError(f"Global adapter must be a GlobalAdapter or BaseAdapter subclass, got {entry!r}")


def build_router(
    plugins: Iterable[Plugin] = (),
    middlewares: Iterable[Middleware] = (),
    entity_configs: Mapping[str, EntityConfig | Mapping[str, Any]] | None = None,
    global_adapters: Iterable[GlobalAdapter | type[BaseAdapter]] = (),
) -> OperationRouter:
    """
    Build a fully wired OperationRouter.

    Args:
        plugins: Entity/adapter bundles
        middlewares: Process-wide middlewares, in entry order
        entity_configs: Per-entity configuration
        global_adapters: Fallback adapters serving a source for every entity

    Raises:
        ConfigurationError: If a middleware requires an unregistered entity,
            or a global adapter entry is invalid
    """
    schemas = SchemaRegistry()
    adapters = AdapterRegistry()

    builtin = builtin_plugin(schemas)
    for plugin in [*plugins, builtin]:
        for descriptor in plugin.descriptors():
            schemas.register(descriptor)
        for registration in plugin.adapters:
            adapters.register(registration.entity, registration.source, registration.adapter)
            schemas.add_source(registration.entity, registration.source)
        if plugin.adapters:
            names = ", ".join(
                f"{type(r.adapter).__name__}({r.entity}:{r.source})" for r in plugin.adapters
            )
            logger.info(f"[bootstrap] Plugin '{plugin.name}' registered adapters: {names}")

    for registration in builtin.adapters:
        adapters.set_default(registration.entity, GLOBAL_SOURCE)

    user_entities = [name for name in schemas.names() if not name.startswith("_")]
    for entry in global_adapters:
        global_adapter = _as_global(entry)
        adapters.register_global(global_adapter.source, global_adapter.factory, global_adapter.entities)
        for name in user_entities:
            if global_adapter.serves(name):
                schemas.add_source(name, global_adapter.source)
        logger.info(f"[bootstrap] Registered global adapter for source '{global_adapter.source}'")

    manager = MiddlewareManager(middlewares)
    manager.validate_requirements([*schemas.names(), *adapters.entities()])
    if len(manager):
        logger.info(f"[bootstrap] Registered middlewares: {', '.join(manager.names())}")

    router = OperationRouter(adapters, schemas, manager, entity_configs)
    logger.info(f"[bootstrap] Router ready: {router!r}")
    return router
