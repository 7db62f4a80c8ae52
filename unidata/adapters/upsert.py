"""
Upsert combinator.

Builds upsert and upsert-many out of an adapter's find_one, update and
create. Adapters that cannot upsert natively get these through the router.

Concurrency:
    The combinator is find-then-write and NOT atomic. Two concurrent upserts
    on the same key can both observe "missing" and both create. Backends
    that need atomic upserts must override `upsert` themselves.
"""

from __future__ import annotations

import logging
from collections.abc import Awaitable, Callable
from typing import Any

from ..errors import BadRequestError

logger = logging.getLogger(__name__)

Operation = Callable[[dict[str, Any]], Awaitable[Any]]


def conflict_target(args: dict[str, Any]) -> str:
    """
    Read the conflict key of an upsert-many call.

    Accepts `on_conflict_do_update={"target": "id"}` or the wire spelling
    `onConflictDoUpdate`.

    Raises:
        BadRequestError: If no target is given
    """
    conflict = args.get("on_conflict_do_update") or args.get("onConflictDoUpdate") or {}
    target = conflict.get("target") if isinstance(conflict, dict) else None
    if not target or not isinstance(target, str):
        raise BadRequestError("upsertMany requires on_conflict_do_update.target")
    return target


async def perform_upsert(
    args: dict[str, Any],
    find_one: Operation,
    update: Operation,
    create: Operation,
) -> Any:
    """
    Update the record matching `args["where"]` or create a new one.

    Args:
        args: {"where": ..., "update": ..., "create": ...}
        find_one: Adapter find_one
        update: Adapter update
        create: Adapter create

    Returns:
        The updated or created record
    """
    where = args.get("where")
    existing = await find_one({"where": where})

    if existing is not None:
        return await update({"where": where, "data": args.get("update")})
    return await create({"data": args.get("create")})


async def perform_upsert_many(
    args: dict[str, Any],
    find_one: Operation,
    update: Operation,
    create: Operation,
) -> list[Any]:
    """
    Upsert each item of `args["data"]` on the conflict target field.

    Items with a truthy value for the target are upserted on
    `{target: value}`; items without one are created. Items are processed
    sequentially in input order.
    """
    target = conflict_target(args)
    results: list[Any] = []

    for item in args.get("data") or []:
        key = item.get(target)
        if key:
            result = await perform_upsert(
                {"where": {target: key}, "update": item, "create": item},
                find_one,
                update,
                create,
            )
        else:
            result = await create({"data": item})
        results.append(result)

    logger.debug(f"[upsert] upsertMany on '{target}' processed {len(results)} items")
    return results
