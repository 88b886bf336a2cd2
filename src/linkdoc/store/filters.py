"""
Filter compilation for the SQLite document store.

Filters are mappings of ``field__lookup`` keys to values, Django style:

    {"age__gte": 18, "status__in": ["active", "pending"], "name": "Alice"}

All conditions are ANDed. ``_id`` addresses the document identifier; any
other field is read from the JSON body with ``json_extract``. Dotted names
reach into nested objects (``address.city``).
"""

from __future__ import annotations

import re
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from collections.abc import Iterable, Mapping

LOOKUPS = frozenset({"exact", "in", "gt", "gte", "lt", "lte", "ne", "like", "isnull"})

_COMPARISONS = {"gt": ">", "gte": ">=", "lt": "<", "lte": "<="}

_FIELD_RE = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*(\.[A-Za-z_][A-Za-z0-9_]*)*$")

ID_FIELD = "_id"


def parse_filter_key(key: str) -> tuple[str, str]:
    """
    Split a filter key into field name and lookup.

    An unknown suffix is treated as part of the field name, so
    ``user__status`` is an exact match on the field ``user__status``.

    Args:
        key: Filter key, e.g. ``"age__gte"``

    Returns:
        Tuple of (field, lookup)
    """
    field, sep, lookup = key.rpartition("__")
    if sep and field and lookup in LOOKUPS:
        return field, lookup
    return key, "exact"


def column_for(field: str) -> str:
    """
    Return the SQL expression reading a field.

    Raises:
        ValueError: If the field name is not a plain (dotted) identifier
    """
    if field == ID_FIELD:
        return "id"
    if not _FIELD_RE.match(field):
        msg = f"Invalid field name: {field!r}"
        raise ValueError(msg)
    return f"json_extract(data, '$.{field}')"


def build_filter_condition(field: str, lookup: str, value: Any) -> tuple[str, list[Any]]:
    """
    Build one SQL condition.

    Args:
        field: Field name
        lookup: One of :data:`LOOKUPS`
        value: Value to compare against

    Returns:
        Tuple of (SQL condition, parameters)
    """
    column = column_for(field)

    if lookup == "exact":
        if value is None:
            return f"{column} IS NULL", []
        return f"{column} = ?", [value]

    if lookup == "ne":
        if value is None:
            return f"{column} IS NOT NULL", []
        return f"({column} IS NULL OR {column} != ?)", [value]

    if lookup in _COMPARISONS:
        return f"{column} {_COMPARISONS[lookup]} ?", [value]

    if lookup == "in":
        values = list(value)
        if not values:
            # Nothing can match an empty set
            return "0 = 1", []
        placeholders = ", ".join("?" for _ in values)
        return f"{column} IN ({placeholders})", values

    if lookup == "like":
        return f"{column} LIKE ?", [value]

    if lookup == "isnull":
        return (f"{column} IS NULL" if value else f"{column} IS NOT NULL"), []

    msg = f"Unknown lookup: {lookup!r}"
    raise ValueError(msg)


def build_where(filters: Mapping[str, Any] | None) -> tuple[str, list[Any]]:
    """
    Build a WHERE clause from a filter mapping.

    Returns:
        Tuple of (clause, parameters); the clause is empty for no filters
    """
    if not filters:
        return "", []

    conditions = []
    params: list[Any] = []
    for key, value in filters.items():
        field, lookup = parse_filter_key(key)
        condition, condition_params = build_filter_condition(field, lookup, value)
        conditions.append(condition)
        params.extend(condition_params)

    return "WHERE " + " AND ".join(conditions), params


def build_order_by(keys: Iterable[str]) -> str:
    """
    Build an ORDER BY clause from sort keys.

    ``"age"`` sorts ascending, ``"-age"`` descending. The identifier is
    always appended as a final tie-breaker so results are deterministic.
    """
    terms = []
    for key in keys:
        descending = key.startswith("-")
        field = key[1:] if descending or key.startswith("+") else key
        terms.append(f"{column_for(field)} {'DESC' if descending else 'ASC'}")

    if "id ASC" not in terms and "id DESC" not in terms:
        terms.append("id ASC")
    return "ORDER BY " + ", ".join(terms)
