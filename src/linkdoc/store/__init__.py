"""
linkdoc storage driver: a JSON document store on top of SQLite.

The ODM layer only relies on :class:`Collection` (find, insert, update,
remove, count) and on :class:`NotFound` as the not-found signal.
"""

from __future__ import annotations

from .database import Collection, Database, NotFound
from .filters import (
    LOOKUPS,
    build_filter_condition,
    build_order_by,
    build_where,
    parse_filter_key,
)

__all__ = [
    "LOOKUPS",
    "Collection",
    "Database",
    "NotFound",
    "build_filter_condition",
    "build_order_by",
    "build_where",
    "parse_filter_key",
]
