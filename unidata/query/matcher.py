"""
Where-condition matcher.

Evaluates a where clause against a single record. A clause maps field names
to either a literal (equality) or an operator mapping:

    {"age": {"$gte": 18, "$lt": 65}, "name": {"contains": "an", "mode": "insensitive"}}

All fields must match, and all operators on one field must match. Records may
be plain mappings or attribute objects such as pydantic models.

Comparisons across incompatible types (e.g. None > 3) evaluate to False
instead of raising. Booleans never equal or order against numbers, so
{"flag": True} does not match a record whose flag is 1.
"""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any, Callable

COMPARISON_OPERATORS: tuple[str, ...] = ("$eq", "$ne", "$gt", "$gte", "$lt", "$lte", "$in", "$nin")
STRING_OPERATORS: tuple[str, ...] = ("contains", "startsWith", "endsWith")
OPERATOR_KEYS = frozenset(COMPARISON_OPERATORS + STRING_OPERATORS + ("not", "mode"))

INSENSITIVE = "insensitive"


def get_field(record: Any, key: str) -> Any:
    """Read a field from a mapping or an attribute object; missing is None."""
    if isinstance(record, Mapping):
        return record.get(key)
    return getattr(record, key, None)


def is_operator_mapping(value: Any) -> bool:
    """True if the value is a mapping using at least one recognised operator."""
    return isinstance(value, Mapping) and any(key in OPERATOR_KEYS for key in value)


def matches(record: Any, where: Mapping[str, Any] | None) -> bool:
    """
    Check whether a record satisfies a where clause.

    Args:
        record: Mapping or object to test
        where: Where clause; None or empty matches everything

    Returns:
        True if every field condition holds
    """
    if not where:
        return True
    return all(
        _matches_field(get_field(record, key), condition) for key, condition in where.items()
    )


def _matches_field(value: Any, condition: Any) -> bool:
    if is_operator_mapping(condition):
        return _matches_operators(value, condition)
    return _equal(value, condition)


def _matches_operators(value: Any, ops: Mapping[str, Any]) -> bool:
    for op in COMPARISON_OPERATORS:
        if op in ops and not _safe(lambda: _COMPARATORS[op](value, ops[op])):
            return False

    insensitive = ops.get("mode") == INSENSITIVE

    if any(op in ops for op in STRING_OPERATORS):
        if not isinstance(value, str):
            return False
        subject = value.lower() if insensitive else value
        for op in STRING_OPERATORS:
            if op not in ops:
                continue
            needle = ops[op]
            if not isinstance(needle, str):
                return False
            if insensitive:
                needle = needle.lower()
            if not _STRING_TESTS[op](subject, needle):
                return False

    if "not" in ops and not _matches_not(value, ops["not"], insensitive):
        return False

    return True


def _matches_not(value: Any, negated: Any, insensitive: bool) -> bool:
    # not: None reads as "is not null"
    if negated is None:
        return value is not None
    if isinstance(value, str) and isinstance(negated, str) and insensitive:
        return value.lower() != negated.lower()
    return not _equal(value, negated)


def _safe(test: Callable[[], Any]) -> bool:
    try:
        return bool(test())
    except TypeError:
        return False


def _mixed_bool(a: Any, b: Any) -> bool:
    return isinstance(a, bool) != isinstance(b, bool)


def _equal(a: Any, b: Any) -> bool:
    if _mixed_bool(a, b):
        return False
    return _safe(lambda: a == b)


def _ordered(test: Callable[[Any, Any], Any]) -> Callable[[Any, Any], bool]:
    def compare(a: Any, b: Any) -> bool:
        if _mixed_bool(a, b):
            raise TypeError("bool is not ordered against other types")
        return test(a, b)

    return compare


def _contains(collection: Any, value: Any) -> bool:
    if isinstance(collection, (str, bytes)) or not hasattr(collection, "__iter__"):
        raise TypeError("$in/$nin expects a collection")
    return any(_equal(value, item) for item in collection)


_COMPARATORS: dict[str, Callable[[Any, Any], bool]] = {
    "$eq": _equal,
    "$ne": lambda a, b: not _equal(a, b),
    "$gt": _ordered(lambda a, b: a > b),
    "$gte": _ordered(lambda a, b: a >= b),
    "$lt": _ordered(lambda a, b: a < b),
    "$lte": _ordered(lambda a, b: a <= b),
    "$in": lambda a, b: _contains(b, a),
    "$nin": lambda a, b: not _contains(b, a),
}

_STRING_TESTS: dict[str, Callable[[str, str], bool]] = {
    "contains": lambda s, n: n in s,
    "startsWith": lambda s, n: s.startswith(n),
    "endsWith": lambda s, n: s.endswith(n),
}
