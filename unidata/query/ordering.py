"""
Sorting, pagination and find-many processing for in-process adapters.

Usage:
    items = apply_find_many(
        records,
        where={"active": True},
        order_by={"age": "desc", "name": "asc"},
        offset=10,
        limit=5,
    )
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping, Sequence
from functools import cmp_to_key
from typing import Any, TypeVar

from .matcher import get_field, matches

T = TypeVar("T")

ASC = "asc"
DESC = "desc"


def _compare(a: Any, b: Any) -> int:
    if a is None or b is None:
        if a is None and b is None:
            return 0
        return -1 if a is None else 1
    try:
        if a < b:
            return -1
        if a > b:
            return 1
    except TypeError:
        pass
    return 0


def sort_records(items: Iterable[T], order_by: Mapping[str, str] | None) -> list[T]:
    """
    Sort records by one or more fields.

    Fields are tie-breakers in mapping order. The sort is stable, so records
    equal on every key keep their input order. Values that cannot be compared
    count as equal; None sorts first in ascending order.

    Raises:
        ValueError: If a direction is not "asc" or "desc"
    """
    result = list(items)
    if not order_by:
        return result

    keys: list[tuple[str, int]] = []
    for field_name, direction in order_by.items():
        direction = str(direction).lower()
        if direction not in (ASC, DESC):
            raise ValueError(f"Invalid sort direction for '{field_name}': {direction}")
        keys.append((field_name, -1 if direction == DESC else 1))

    def compare(a: T, b: T) -> int:
        for field_name, sign in keys:
            result = _compare(get_field(a, field_name), get_field(b, field_name))
            if result:
                return sign * result
        return 0

    return sorted(result, key=cmp_to_key(compare))


def paginate(items: Sequence[T], offset: int | None = None, limit: int | None = None) -> list[T]:
    """
    Slice items to [offset, offset + limit).

    Zero, None and negative values leave that bound unconstrained.
    """
    result = list(items)
    if offset and offset > 0:
        result = result[offset:]
    if limit and limit > 0:
        result = result[:limit]
    return result


def apply_find_many(
    items: Iterable[T],
    where: Mapping[str, Any] | None = None,
    order_by: Mapping[str, str] | None = None,
    offset: int | None = None,
    limit: int | None = None,
) -> list[T]:
    """Filter, sort and paginate, returning a new list."""
    result = [item for item in items if matches(item, where)]
    if order_by:
        result = sort_records(result, order_by)
    return paginate(result, offset, limit)
