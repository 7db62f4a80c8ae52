"""
Query evaluation for in-process adapters.

Provides the where-condition matcher and the sort/paginate engine shared by
the memory, mock and cache adapters.
"""

from .matcher import OPERATOR_KEYS, get_field, is_operator_mapping, matches
from .ordering import apply_find_many, paginate, sort_records

__all__ = [
    "OPERATOR_KEYS",
    "apply_find_many",
    "get_field",
    "is_operator_mapping",
    "matches",
    "paginate",
    "sort_records",
]
