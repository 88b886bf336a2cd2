"""
SQLite JSON document store.

Each collection is a table of ``(id INTEGER PRIMARY KEY AUTOINCREMENT, data
TEXT)`` rows holding one JSON document per row. Indexed fields get an
expression index on ``json_extract`` so equality and range lookups on them
avoid a full scan.

    db = Database("app.db")
    users = db.collection("users", indexed_fields=["email"])
    user_id = users.insert({"name": "Alice", "email": "alice@example.com"})
    users.find({"email": "alice@example.com"})
    db.close()

A single connection is shared by all collections and guarded by a
re-entrant lock, so a Database may be used from several threads.
"""

from __future__ import annotations

import json
import logging
import re
import sqlite3
import threading
from typing import TYPE_CHECKING, Any

from .filters import build_order_by, build_where, column_for

if TYPE_CHECKING:
    from collections.abc import Iterable, Mapping
    from pathlib import Path

logger = logging.getLogger(__name__)

_NAME_RE = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*$")

Row = tuple[int, dict[str, Any]]


class NotFound(LookupError):  # noqa: N818
    """No document matched. Internal to linkdoc, never surfaced by the ODM."""


class Collection:
    """
    A named set of JSON documents.

    Attributes:
        name: Collection (table) name
        indexed_fields: Fields with an expression index
    """

    def __init__(self, db: Database, name: str, indexed_fields: Iterable[str] = ()):
        if not _NAME_RE.match(name):
            msg = f"Invalid collection name: {name!r}"
            raise ValueError(msg)
        self.db = db
        self.name = name
        self.indexed_fields: list[str] = []
        self._create_table()
        for field in indexed_fields:
            self.create_index(field)

    def _create_table(self) -> None:
        with self.db.lock:
            self.db.connection.execute(
                f'CREATE TABLE IF NOT EXISTS "{self.name}" '
                "(id INTEGER PRIMARY KEY AUTOINCREMENT, data TEXT NOT NULL)"
            )

    def create_index(self, field: str) -> None:
        """Create an expression index on a JSON field (idempotent)."""
        column = column_for(field)
        if field in self.indexed_fields or column == "id":
            return
        index_name = f"idx_{self.name}_{field.replace('.', '_')}"
        with self.db.lock:
            self.db.connection.execute(
                f'CREATE INDEX IF NOT EXISTS "{index_name}" ON "{self.name}" ({column})'
            )
        self.indexed_fields.append(field)

    def insert(self, data: Mapping[str, Any]) -> int:
        """
        Insert a document.

        Returns:
            The new document identifier
        """
        with self.db.lock:
            cursor = self.db.connection.execute(
                f'INSERT INTO "{self.name}" (data) VALUES (?)', (json.dumps(data),)
            )
            doc_id = cursor.lastrowid
        logger.debug("Inserted %s/%s", self.name, doc_id)
        return doc_id

    def update(self, doc_id: int, data: Mapping[str, Any]) -> bool:
        """
        Replace the body of a document.

        Returns:
            True if a document was updated
        """
        with self.db.lock:
            cursor = self.db.connection.execute(
                f'UPDATE "{self.name}" SET data = ? WHERE id = ?',
                (json.dumps(data), doc_id),
            )
        return cursor.rowcount > 0

    def remove(self, doc_id: int) -> bool:
        """
        Delete a document.

        Returns:
            True if a document was deleted
        """
        with self.db.lock:
            cursor = self.db.connection.execute(
                f'DELETE FROM "{self.name}" WHERE id = ?', (doc_id,)
            )
        return cursor.rowcount > 0

    def find(
        self,
        filters: Mapping[str, Any] | None = None,
        *,
        sort: Iterable[str] = (),
        limit: int | None = None,
        skip: int = 0,
    ) -> list[Row]:
        """
        Find documents.

        Args:
            filters: Lookup mapping (see :mod:`linkdoc.store.filters`)
            sort: Sort keys, ``"-field"`` for descending
            limit: Maximum number of documents, None for no limit
            skip: Number of documents to skip

        Returns:
            List of (identifier, document) tuples
        """
        where, params = build_where(filters)
        sql = f'SELECT id, data FROM "{self.name}" {where} {build_order_by(sort)}'
        if limit is not None or skip:
            sql += " LIMIT ? OFFSET ?"
            params.extend([-1 if limit is None else limit, skip])

        with self.db.lock:
            rows = self.db.connection.execute(sql, params).fetchall()
        return [(row[0], json.loads(row[1])) for row in rows]

    def find_one(
        self,
        filters: Mapping[str, Any] | None = None,
        *,
        sort: Iterable[str] = (),
        skip: int = 0,
    ) -> Row:
        """
        Find the first matching document.

        Raises:
            NotFound: If nothing matches
        """
        rows = self.find(filters, sort=sort, limit=1, skip=skip)
        if not rows:
            msg = f"No document in {self.name} matches {dict(filters or {})!r}"
            raise NotFound(msg)
        return rows[0]

    def get(self, doc_id: int) -> Row:
        """
        Get a document by identifier.

        Raises:
            NotFound: If the document does not exist
        """
        return self.find_one({"_id": doc_id})

    def count(self, filters: Mapping[str, Any] | None = None) -> int:
        where, params = build_where(filters)
        with self.db.lock:
            row = self.db.connection.execute(
                f'SELECT COUNT(*) FROM "{self.name}" {where}', params
            ).fetchone()
        return row[0]

    def purge(self) -> int:
        """Delete every document. Returns the number deleted."""
        with self.db.lock:
            cursor = self.db.connection.execute(f'DELETE FROM "{self.name}"')
        return cursor.rowcount

    def __repr__(self) -> str:
        return f"Collection({self.name!r})"


class Database:
    """
    SQLite-backed document database.

    Args:
        path: Database file path, or ``":memory:"``
        wal: Enable WAL journal mode (ignored for in-memory databases)
    """

    def __init__(self, path: str | Path, *, wal: bool = True):
        self.path = str(path)
        self.lock = threading.RLock()
        self.connection = sqlite3.connect(
            self.path, check_same_thread=False, isolation_level=None
        )
        if wal and self.path != ":memory:":
            self.connection.execute("PRAGMA journal_mode=WAL")
        self._collections: dict[str, Collection] = {}
        logger.debug("Opened database %s", self.path)

    def collection(self, name: str, indexed_fields: Iterable[str] | None = None) -> Collection:
        """
        Get or create a collection.

        Repeated calls return the same instance; new indexed fields are
        added to an existing collection.
        """
        with self.lock:
            coll = self._collections.get(name)
            if coll is None:
                coll = Collection(self, name, indexed_fields or ())
                self._collections[name] = coll
            else:
                for field in indexed_fields or ():
                    coll.create_index(field)
        return coll

    def __getitem__(self, name: str) -> Collection:
        return self.collection(name)

    def collections(self) -> list[str]:
        """List collection names present in the database file."""
        with self.lock:
            rows = self.connection.execute(
                "SELECT name FROM sqlite_master WHERE type = 'table' "
                "AND name NOT LIKE 'sqlite_%' ORDER BY name"
            ).fetchall()
        return [row[0] for row in rows]

    def close(self) -> None:
        with self.lock:
            self.connection.close()
        logger.debug("Closed database %s", self.path)

    def __enter__(self) -> Database:
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    def __repr__(self) -> str:
        return f"Database({self.path!r})"
