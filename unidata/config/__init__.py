"""
Configuration for unidata.

- EntityConfig: per-entity defaults, middleware exclusions, cache and permissions
- Settings: process settings read from UNIDATA_* environment variables
"""

from __future__ import annotations

import os
from functools import lru_cache

from .schemas import EntityConfig, OperationCacheConfig, Settings, parse_duration

ENV_PREFIX = "UNIDATA_"


def _env(name: str, default: str) -> str:
    return os.getenv(f"{ENV_PREFIX}{name}", default)


@lru_cache()
def load_settings() -> Settings:
    """
    Get process settings from the environment.

    Uses lru_cache so the environment is read once per process.
    """
    return Settings(
        service_name=_env("SERVICE_NAME", "unidata"),
        environment=_env("ENVIRONMENT", "development"),
        debug=_env("DEBUG", "false").lower() == "true",
        log_level=_env("LOG_LEVEL", "INFO"),
        cache_ttl=_env("CACHE_TTL", "300"),
        cache_max_entries=int(_env("CACHE_MAX_ENTRIES", "500")),
        cache_max_size=int(_env("CACHE_MAX_SIZE", "5000")),
        remote_timeout=float(_env("REMOTE_TIMEOUT", "5")),
    )


__all__ = [
    "ENV_PREFIX",
    "EntityConfig",
    "OperationCacheConfig",
    "Settings",
    "load_settings",
    "parse_duration",
]
