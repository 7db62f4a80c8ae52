"""
Operation context for unidata.

An OperationContext is created for every call that enters the router and is
passed by reference through every middleware. Middlewares may mutate `args`
and `metadata` before calling the next layer, and may replace `result` on the
way back out.

Entity references:
    Callers address an entity either by name ("user", "UserEntity") or by
    handing over a descriptor or model class. Both forms collapse to the same
    normalised name at the router boundary via `entity_name()`.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Union
from uuid import UUID, uuid4


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


# =============================================================================
# Operations
# =============================================================================


class Operation(str, Enum):
    """Built-in data operations, valued by their wire names."""

    FIND_ONE = "findOne"
    FIND_MANY = "findMany"
    CREATE = "create"
    CREATE_MANY = "createMany"
    UPDATE = "update"
    UPDATE_MANY = "updateMany"
    DELETE = "delete"
    UPSERT = "upsert"
    UPSERT_MANY = "upsertMany"
    CALL = "call"

    @property
    def method(self) -> str:
        """Adapter method name implementing this operation."""
        return _METHOD_NAMES[self]

    @property
    def is_read(self) -> bool:
        return self in (Operation.FIND_ONE, Operation.FIND_MANY)

    @property
    def is_write(self) -> bool:
        return self not in (Operation.FIND_ONE, Operation.FIND_MANY, Operation.CALL)

    @classmethod
    def parse(cls, value: str | Operation) -> Operation | None:
        """
        Look up an operation by wire name or adapter method name.

        Returns None for custom method names.
        """
        if isinstance(value, Operation):
            return value
        try:
            return cls(value)
        except ValueError:
            return _BY_METHOD.get(value)


_METHOD_NAMES: dict[Operation, str] = {
    Operation.FIND_ONE: "find_one",
    Operation.FIND_MANY: "find_many",
    Operation.CREATE: "create",
    Operation.CREATE_MANY: "create_many",
    Operation.UPDATE: "update",
    Operation.UPDATE_MANY: "update_many",
    Operation.DELETE: "delete",
    Operation.UPSERT: "upsert",
    Operation.UPSERT_MANY: "upsert_many",
    Operation.CALL: "call",
}

_BY_METHOD: dict[str, Operation] = {method: op for op, method in _METHOD_NAMES.items()}


def operation_name(operation: Operation | str) -> str:
    """Wire name of an operation; custom names pass through unchanged."""
    return operation.value if isinstance(operation, Operation) else operation


# =============================================================================
# Entity references
# =============================================================================

# A bare name, an EntityDescriptor, or a class (pydantic model, dataclass)
EntityRef = Union[str, Any]


def simplify_entity_name(name: str) -> str:
    """
    Normalise an entity name.

    Strips a trailing "Entity" suffix and lower-cases the rest, so
    "UserEntity", "User" and "user" all address the same entity.
    """
    if name.endswith("Entity") and len(name) > len("Entity"):
        name = name[: -len("Entity")]
    return name.lower()


def entity_name(ref: EntityRef) -> str:
    """
    Resolve an EntityRef to its normalised name.

    Raises:
        TypeError: If the reference has no usable name
    """
    if isinstance(ref, str):
        return simplify_entity_name(ref)
    if isinstance(ref, type):
        return simplify_entity_name(ref.__name__)
    name = getattr(ref, "name", None)
    if isinstance(name, str) and name:
        return simplify_entity_name(name)
    raise TypeError(f"Cannot resolve entity name from {ref!r}")


# =============================================================================
# Operation context
# =============================================================================


@dataclass
class OperationContext:
    """
    Per-call state threaded through the middleware pipeline.

    Attributes:
        entity: Normalised entity name
        source: Resolved source name (filled in by the router when omitted)
        operation: Built-in Operation or a custom adapter method name
        args: Operation arguments (where, data, order_by, limit, offset, ...)
        metadata: Free-form request data for middlewares (user, headers, ...)
        transport: Name of the transport that created the call, if any
        user: Authenticated principal, if known
        entity_config: EntityConfig of the entity, attached by the router
        adapter: Resolved adapter, attached by the router
        result: Result slot, set once the core has run
    """

    entity: str
    operation: Operation | str
    args: dict[str, Any] = field(default_factory=dict)
    source: str | None = None
    metadata: dict[str, Any] = field(default_factory=dict)
    transport: str | None = None
    user: Any = None
    entity_config: Any = None
    adapter: Any = None
    result: Any = None

    execution_id: UUID = field(default_factory=uuid4)
    started_at: datetime = field(default_factory=_utc_now)

    @property
    def operation_name(self) -> str:
        return operation_name(self.operation)

    @property
    def elapsed_ms(self) -> float:
        """Milliseconds since the call entered the router."""
        delta = datetime.now(timezone.utc) - self.started_at
        return delta.total_seconds() * 1000

    def to_log_dict(self) -> dict[str, Any]:
        return {
            "execution_id": str(self.execution_id),
            "entity": self.entity,
            "source": self.source,
            "operation": self.operation_name,
            "transport": self.transport,
            "elapsed_ms": self.elapsed_ms,
        }
