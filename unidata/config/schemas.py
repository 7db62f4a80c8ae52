"""
Configuration schemas for unidata.

Pydantic models for per-entity configuration and process settings.

Entity configuration is keyed by entity name and consulted by the router
(default source, middleware exclusions) and by middlewares (cache TTLs,
permission rules):

    entity_configs = {
        "user": EntityConfig(
            default_source="memory",
            exclude=["LoggingMiddleware"],
            cache={"findMany": {"ttl": "30s"}},
            allow_api_read=True,
            allow_api_delete="admin",
        ),
    }
"""

from __future__ import annotations

import re
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator

_DURATION = re.compile(r"^\s*(\d+(?:\.\d+)?)\s*(ms|s|m|h|d)?\s*$")
_UNIT_SECONDS = {"ms": 0.001, "s": 1.0, "m": 60.0, "h": 3600.0, "d": 86400.0}


def parse_duration(value: Any) -> float | None:
    """
    Convert a duration to seconds.

    Accepts numbers (seconds) and strings like "500ms", "30s", "5m", "1h",
    "1d". A bare numeric string is seconds. None passes through.

    Raises:
        ValueError: For unparseable values or negative numbers
    """
    if value is None:
        return None
    if isinstance(value, bool):
        raise ValueError(f"Invalid duration: {value!r}")
    if isinstance(value, (int, float)):
        if value < 0:
            raise ValueError(f"Duration must be non-negative: {value}")
        return float(value)
    if isinstance(value, str):
        match = _DURATION.match(value)
        if match:
            amount, unit = match.groups()
            return float(amount) * _UNIT_SECONDS[unit or "s"]
    raise ValueError(f"Invalid duration: {value!r}")


class OperationCacheConfig(BaseModel):
    """Cache settings for one operation of one entity."""

    enabled: bool = Field(True, description="Whether results are cached")
    ttl: float | None = Field(None, description="Seconds, or a duration string such as '30s'")

    @field_validator("ttl", mode="before")
    @classmethod
    def _parse_ttl(cls, value: Any) -> float | None:
        return parse_duration(value)


class EntityConfig(BaseModel):
    """
    Per-entity configuration.

    Permission rules (allow_api_*) accept:
    - True/False
    - a role name, or a list of role names
    - a callable taking (user) or (user, data) and returning bool
    """

    model_config = ConfigDict(arbitrary_types_allowed=True, extra="allow")

    default_source: str | None = Field(None, description="Source used when a call names none")
    exclude: list[str] = Field(default_factory=list, description="Middleware names skipped for this entity")
    cache: dict[str, OperationCacheConfig] = Field(
        default_factory=dict, description="Cache settings keyed by operation wire name"
    )
    fields: dict[str, dict[str, Any]] = Field(
        default_factory=dict, description="Free-form per-field settings for middlewares"
    )

    allow_api_crud: Any = None
    allow_api_read: Any = None
    allow_api_create: Any = None
    allow_api_update: Any = None
    allow_api_delete: Any = None

    @field_validator("cache", mode="before")
    @classmethod
    def _expand_cache(cls, value: Any) -> Any:
        # {"findMany": True} and {"findMany": "30s"} are shorthand
        if not isinstance(value, dict):
            return value
        expanded: dict[str, Any] = {}
        for operation, config in value.items():
            if isinstance(config, bool):
                expanded[operation] = {"enabled": config}
            elif isinstance(config, (int, float, str)):
                expanded[operation] = {"ttl": config}
            else:
                expanded[operation] = config
        return expanded

    def cache_for(self, operation: str) -> OperationCacheConfig | None:
        config = self.cache.get(operation)
        if config is None or not config.enabled:
            return None
        return config

    def permission_rules(self, *names: str) -> list[Any]:
        """Configured rules among allow_api_<name>, in the order given."""
        rules = []
        for name in names:
            rule = getattr(self, f"allow_api_{name}", None)
            if rule is not None:
                rules.append(rule)
        return rules


class Settings(BaseModel):
    """
    Process settings.

    Built from UNIDATA_* environment variables by `load_settings()`.
    """

    service_name: str = "unidata"
    environment: str = "development"
    debug: bool = False
    log_level: str = "INFO"

    # Defaults for the shared LRU cache
    cache_ttl: float = Field(300.0, description="Default cache TTL in seconds")
    cache_max_entries: int = Field(500, ge=1)
    cache_max_size: int = Field(5000, ge=1)

    # Remote adapter defaults
    remote_timeout: float = Field(5.0, gt=0)

    @field_validator("cache_ttl", mode="before")
    @classmethod
    def _parse_cache_ttl(cls, value: Any) -> float:
        parsed = parse_duration(value)
        return 0.0 if parsed is None else parsed

    @field_validator("log_level")
    @classmethod
    def _upper_level(cls, value: str) -> str:
        return value.upper()
