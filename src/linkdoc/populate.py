"""
Relation population.

Two entry points:

:func:`populate`
    Batch form, used by ``Query.populate()``. Collects the identifiers held
    by a relation field across all source documents, fetches every target
    in **one** lookup (``_id__in`` plus the optional refining query), and
    attaches the matches to each source document. Broken references are
    dropped silently. A limit on the refining query bounds the whole lookup.

:func:`populate_document`
    Single-document form, used by ``Document.populate()`` and
    ``Document.populate_query()``. Runs the refining query scoped to one
    document's identifiers, so sort and limit apply per relationship
    ("this user's 5 oldest friends").

Resolved values are stored on the source document under the relation name
and read back with ``Document.populated()``. A to-one relation whose
identifier does not resolve is left unpopulated.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

from .errors import PopulateError
from .ids import DocId, is_id

if TYPE_CHECKING:
    from collections.abc import Sequence

    from .document import Document
    from .model import Model
    from .query import Query
    from .registry import FieldDescriptor

logger = logging.getLogger(__name__)


def _relation_of(documents: Sequence[Document], relation: str) -> FieldDescriptor:
    """
    Resolve a relation name against every document's schema.

    Raises:
        PopulateError: If a document is unbound, does not declare the
                       relation, or declares it with another shape
    """
    found: FieldDescriptor | None = None
    for doc in documents:
        model = doc._model
        if model is None:
            msg = f"{type(doc).__name__} document is not bound to a model"
            raise PopulateError(msg)
        descriptor = model.schema.relation(relation)
        if descriptor is None:
            msg = f"{model.name} has no relation named {relation!r}"
            raise PopulateError(msg)
        if found is None:
            found = descriptor
        elif (descriptor.many, descriptor.target) != (found.many, found.target):
            msg = (
                f"Relation {relation!r} is declared differently across the "
                f"documents being populated"
            )
            raise PopulateError(msg)
    if found is None:
        msg = f"No documents to resolve {relation!r} on"
        raise PopulateError(msg)
    return found


def _target_model(source: Model, descriptor: FieldDescriptor, query: Query | None) -> Model:
    try:
        target = source.registry.model(descriptor.target)
    except KeyError:
        msg = (
            f"Relation {source.name}.{descriptor.name} targets "
            f"{descriptor.target!r}, which is not registered"
        )
        raise PopulateError(msg) from None

    if query is not None and query.model is not target:
        msg = (
            f"Refining query for {source.name}.{descriptor.name} must be on "
            f"{target.name}, not {query.model.name}"
        )
        raise PopulateError(msg)
    return target


def _ids_of(doc: Document, descriptor: FieldDescriptor) -> list[DocId]:
    """Identifiers held by a relation field, in declaration order."""
    value = getattr(doc, descriptor.name, None)
    if value is None:
        return []
    if descriptor.many:
        return [v for v in value if is_id(v)]
    return [value] if is_id(value) else []


def _lookup(target: Model, ids: list[DocId], query: Query | None) -> Query:
    """Build the ``_id__in`` lookup, merged with a refining query."""
    lookup = query.clone() if query is not None else target.find()

    restricted = lookup.filters.get("_id__in")
    if restricted is not None:
        allowed = set(restricted)
        ids = [i for i in ids if i in allowed]
    lookup.filters["_id__in"] = ids
    return lookup


def _resolve(lookup: Query) -> list[Document]:
    """Run a lookup once, with the lookup's own populate requests applied."""
    resolved = lookup._fetch(use_default_limit=False)
    if resolved:
        lookup._populate(resolved)
    return resolved


def _unique(ids: list[DocId]) -> list[DocId]:
    return list(dict.fromkeys(ids))


def populate(documents: Sequence[Document], relation: str, query: Query | None = None) -> None:
    """
    Resolve one relation across many documents with a single lookup.

    Args:
        documents: Source documents, all of the same model
        relation: Relation field name
        query: Optional refining query on the target model

    Raises:
        PopulateError: If the relation is unknown, declared inconsistently,
                       or targets an unregistered model
    """
    documents = [doc for doc in documents if doc.is_valid()]
    if not documents:
        return

    descriptor = _relation_of(documents, relation)
    source = documents[0]._model
    target = _target_model(source, descriptor, query)

    per_document = [_ids_of(doc, descriptor) for doc in documents]
    wanted = _unique([i for ids in per_document for i in ids])

    by_id: dict[Any, Document] = {}
    if wanted:
        resolved = _resolve(_lookup(target, wanted, query))
        by_id = {doc._id: doc for doc in resolved}
        logger.debug(
            "Populated %s.%s for %d document(s): %d of %d target(s) resolved",
            source.name,
            relation,
            len(documents),
            len(by_id),
            len(wanted),
        )

    for doc, ids in zip(documents, per_document, strict=True):
        if descriptor.many:
            doc._set_populated(relation, [by_id[i] for i in ids if i in by_id])
        elif ids and ids[0] in by_id:
            doc._set_populated(relation, by_id[ids[0]])
        else:
            doc._unset_populated(relation)


def populate_document(doc: Document, relation: str, query: Query | None = None) -> Any:
    """
    Resolve one relation of one document through a scoped query.

    Without a sort in ``query``, to-many results follow the order of the
    document's identifiers, duplicates included, and the query's skip and
    limit are applied to that sequence. With a sort, results follow the
    query's order. Either way the limit bounds this document's results.

    Returns:
        The resolved document, the list of resolved documents, or None for
        an unresolved to-one relation

    Raises:
        PopulateError: If the relation is unknown or targets an
                       unregistered model
    """
    descriptor = _relation_of([doc], relation)
    target = _target_model(doc._model, descriptor, query)
    ids = _ids_of(doc, descriptor)

    lookup = _lookup(target, _unique(ids), query)
    if not ids:
        resolved = []
    elif descriptor.many and not lookup.sort_keys:
        resolved = _resolve_in_order(lookup, ids)
    else:
        resolved = _resolve(lookup)
    logger.debug(
        "Populated %s %s.%s: %d of %d target(s) resolved",
        doc._model.name,
        doc._id,
        relation,
        len(resolved),
        len(ids),
    )

    if not descriptor.many:
        if resolved:
            doc._set_populated(relation, resolved[0])
            return resolved[0]
        doc._unset_populated(relation)
        return None

    doc._set_populated(relation, resolved)
    return resolved


def _resolve_in_order(lookup: Query, ids: list[DocId]) -> list[Document]:
    """
    Run an unsorted lookup, lay the matches out in ``ids`` order, then page.

    Skip and limit count positions in the identifier sequence, so they are
    taken off the lookup and applied after the reordering.
    """
    skip, limit = lookup.skip_value, lookup.limit_value
    lookup.skip_value, lookup.limit_value = 0, None

    by_id = {target_doc._id: target_doc for target_doc in lookup._fetch(use_default_limit=False)}
    ordered = [by_id[i] for i in ids if i in by_id]
    ordered = ordered[skip:] if limit is None else ordered[skip : skip + limit]
    if ordered:
        lookup._populate(ordered)
    return ordered
