"""
Chainable queries.

    users.find(active=True).sort("-age").limit(10).populate("friends").all()

A :class:`Query` accumulates a filter mapping, sort keys, a limit, an
offset and populate requests; nothing touches the store until a terminal
method (:meth:`Query.one`, :meth:`Query.all`, :meth:`Query.exec`,
:meth:`Query.count`, iteration) runs.

Execution decodes the matching records, fires ``on_result`` on each, then
runs every populate request once over the whole result set, in the order
they were requested.
"""

from __future__ import annotations

import copy
import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

from .populate import populate
from .store import NotFound

if TYPE_CHECKING:
    from collections.abc import Iterator

    from .document import Document
    from .model import Model

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class PopulateRequest:
    """
    One relation to resolve after a query runs.

    Attributes:
        relation: Relation field name on the queried model
        query: Optional refining query on the target model
    """

    relation: str
    query: Query | None = None


class Query:
    """
    Query builder bound to a model.

    Args:
        model: Model to query
        filters: Initial lookup mapping
    """

    def __init__(self, model: Model, filters: dict[str, Any] | None = None):
        self.model = model
        self.filters: dict[str, Any] = dict(filters or {})
        self.sort_keys: list[str] = []
        self.limit_value: int | None = None
        self.skip_value = 0
        self.populate_requests: list[PopulateRequest] = []

    # Builders

    def where(self, **lookups: Any) -> Query:
        """Add lookups to the filter (later values replace earlier ones)."""
        self.filters.update(lookups)
        return self

    def sort(self, *keys: str) -> Query:
        """Append sort keys; ``"-field"`` sorts descending."""
        self.sort_keys.extend(keys)
        return self

    def limit(self, n: int) -> Query:
        if n < 0:
            msg = f"limit must be >= 0, got {n}"
            raise ValueError(msg)
        self.limit_value = n
        return self

    def skip(self, n: int) -> Query:
        if n < 0:
            msg = f"skip must be >= 0, got {n}"
            raise ValueError(msg)
        self.skip_value = n
        return self

    def page(self, number: int, per_page: int) -> Query:
        """Select one page of results (pages are numbered from 1)."""
        if number < 1:
            msg = f"page numbers start at 1, got {number}"
            raise ValueError(msg)
        return self.skip((number - 1) * per_page).limit(per_page)

    def populate(self, *relations: str, query: Query | None = None) -> Query:
        """
        Request relations to be resolved after the query runs.

        Args:
            *relations: Relation field names
            query: Refining query on the target model (filter, sort,
                   limit). Requires exactly one relation. In this batch
                   form the limit bounds the whole lookup, not each
                   document; use ``Document.populate_query`` for
                   per-document limits.
        """
        if query is not None and len(relations) != 1:
            msg = "A refining query applies to exactly one relation"
            raise ValueError(msg)
        self.populate_requests.extend(PopulateRequest(r, query) for r in relations)
        return self

    def clone(self) -> Query:
        """Return an independent copy of this query."""
        other = copy.copy(self)
        other.filters = dict(self.filters)
        other.sort_keys = list(self.sort_keys)
        other.populate_requests = list(self.populate_requests)
        return other

    # Execution

    def _limit(self, *, use_default: bool) -> int | None:
        if self.limit_value is not None or not use_default:
            return self.limit_value
        return self.model.registry.default_limit

    def _fetch(self, *, use_default_limit: bool = True) -> list[Document]:
        """Run the query and materialize the results, without populating."""
        collection = self.model.collection
        rows = collection.find(
            self.filters,
            sort=self.sort_keys,
            limit=self._limit(use_default=use_default_limit),
            skip=self.skip_value,
        )
        logger.debug(
            "Query %s %r sort=%r limit=%r skip=%r: %d result(s)",
            self.model.name,
            self.filters,
            self.sort_keys,
            self.limit_value,
            self.skip_value,
            len(rows),
        )
        return [self.model._materialize(doc_id, data) for doc_id, data in rows]

    def _populate(self, documents: list[Document]) -> None:
        for request in self.populate_requests:
            populate(documents, request.relation, request.query)

    def one(self) -> Document:
        """
        Return the first matching document.

        When nothing matches, the result is a zero-value document whose
        ``is_valid()`` is False; no error is raised. A query limited to zero
        results always gives that zero-value document.
        """
        if self.limit_value == 0:
            return self.model._empty()
        try:
            doc_id, data = self.model.collection.find_one(
                self.filters, sort=self.sort_keys, skip=self.skip_value
            )
        except NotFound:
            logger.debug("Query %s %r: not found", self.model.name, self.filters)
            return self.model._empty()

        doc = self.model._materialize(doc_id, data)
        self._populate([doc])
        return doc

    def all(self) -> list[Document]:
        """Return all matching documents (possibly none)."""
        documents = self._fetch()
        if documents:
            self._populate(documents)
        return documents

    def exec(self, *, many: bool = True) -> Document | list[Document]:
        """Run the query for a list (``many=True``) or a single document."""
        return self.all() if many else self.one()

    def count(self) -> int:
        """Count matching documents (ignores sort, limit and skip)."""
        return self.model.collection.count(self.filters)

    def __iter__(self) -> Iterator[Document]:
        return iter(self.all())

    def __repr__(self) -> str:
        return (
            f"Query({self.model.name}, filters={self.filters!r}, "
            f"sort={self.sort_keys!r}, limit={self.limit_value!r}, "
            f"skip={self.skip_value!r}, populate={[r.relation for r in self.populate_requests]!r})"
        )
