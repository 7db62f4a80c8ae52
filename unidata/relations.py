"""
Join resolver.

Attaches related data to the records of a primary fetch. `include` maps a
field name to a resolver that receives the WHOLE batch of primary records,
so each relation costs one lookup instead of one per record:

    users = await router.find_many(
        "user",
        include={
            "posts": router.repo("post").joined(local_field="id", foreign_field="user_id"),
            "stats": lambda users: compute_stats(users),
        },
    )

Correlation:
    A resolver returning a RelationBatch is matched per record on
    local_field == foreign_field. Any other value is attached to every
    record unchanged.

Resolvers for different fields run concurrently. Resolver errors propagate
to the caller.
"""

from __future__ import annotations

import asyncio
import inspect
import logging
from collections.abc import Awaitable, Callable, Mapping
from dataclasses import dataclass, field
from typing import Any, Union

from .query import get_field

logger = logging.getLogger(__name__)

Resolver = Callable[[list[Any]], Union[Awaitable[Any], Any]]


@dataclass
class RelationBatch:
    """
    Related records fetched for a batch, with the fields correlating them.

    Attributes:
        items: Related records
        local_field: Field on the primary record
        foreign_field: Field on the related record
        many: Attach a list of matches (True) or the first match (False)
    """

    items: list[Any] = field(default_factory=list)
    local_field: str = "id"
    foreign_field: str = "id"
    many: bool = True

    def for_record(self, record: Any) -> Any:
        local = get_field(record, self.local_field)
        matched = [item for item in self.items if get_field(item, self.foreign_field) == local]
        if self.many:
            return matched
        return matched[0] if matched else None


def _attach(record: Any, name: str, value: Any) -> Any:
    if isinstance(record, Mapping):
        return {**record, name: value}
    setattr(record, name, value)
    return record


async def _run(resolver: Resolver, records: list[Any]) -> Any:
    outcome = resolver(records)
    if inspect.isawaitable(outcome):
        outcome = await outcome
    return outcome


async def resolve_includes(records: Any, include: Mapping[str, Resolver] | None) -> Any:
    """
    Attach every included relation to a single record or a list of records.

    Mapping records are copied before attachment; attribute objects are
    updated in place.

    Args:
        records: Primary result (record, list of records, or None)
        include: Field name -> resolver(batch)

    Returns:
        The primary result with relations attached, in the same shape
    """
    if not include or records is None:
        return records

    single = not isinstance(records, list)
    batch = [records] if single else list(records)
    if not batch:
        return records

    names = list(include.keys())
    results = await asyncio.gather(*(_run(include[name], batch) for name in names))
    logger.debug(f"[relations] Resolved {names} for {len(batch)} records")

    for name, related in zip(names, results):
        if isinstance(related, RelationBatch):
            batch = [_attach(record, name, related.for_record(record)) for record in batch]
        else:
            batch = [_attach(record, name, related) for record in batch]

    return batch[0] if single else batch
