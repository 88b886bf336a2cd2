"""
Model handles.

A :class:`Model` is what :meth:`Registry.register` returns. It ties a
Document subclass to its collection and is the entry point for queries and
writes:

    users = registry.register(User, "users")

    alice = users.new(name="Alice", email="alice@example.com").save()
    same = users.find_by_id(alice._id).one()
    adults = users.find(age__gte=18).sort("-age").limit(10).all()
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

from .document import Document, empty_document, materialize, run_hook
from .ids import DocId, parse_id
from .query import Query

if TYPE_CHECKING:
    from .registry import Registry, SchemaDescriptor
    from .store import Collection

logger = logging.getLogger(__name__)


class Model:
    """
    Handle on a registered model type.

    Attributes:
        registry: Registry the model belongs to
        schema: Schema descriptor built at registration
        collection: Store collection holding the documents
    """

    def __init__(self, registry: Registry, schema: SchemaDescriptor, collection: Collection):
        self.registry = registry
        self.schema = schema
        self.collection = collection

    @property
    def name(self) -> str:
        return self.schema.name

    @property
    def model_type(self) -> type[Document]:
        return self.schema.model_type

    # Queries

    def find(self, filters: dict[str, Any] | None = None, **lookups: Any) -> Query:
        """
        Start a query.

        Args:
            filters: Lookup mapping, e.g. ``{"age__gte": 18}``
            **lookups: More lookups, merged into ``filters``
        """
        return Query(self, {**(filters or {}), **lookups})

    def find_by_id(self, value: DocId | int | str) -> Query:
        """
        Start a query for one document by identifier.

        Raises:
            MalformedIdentifierError: If ``value`` is not a valid identifier
        """
        return Query(self, {"_id": parse_id(value)})

    def count(self, filters: dict[str, Any] | None = None, **lookups: Any) -> int:
        return self.collection.count({**(filters or {}), **lookups})

    # Documents

    def new(self, *args: Any, **kwargs: Any) -> Document:
        """Construct an unsaved document bound to this model."""
        doc = self.model_type(*args, **kwargs)
        doc._model = self
        return doc

    def _check(self, doc: Document) -> None:
        if not isinstance(doc, self.model_type):
            msg = f"{self.name} cannot handle {type(doc).__name__} documents"
            raise TypeError(msg)
        if doc._model is None:
            doc._model = self
        elif doc._model is not self:
            msg = f"Document is bound to model {doc._model.name}, not {self.name}"
            raise TypeError(msg)

    def save(self, doc: Document) -> Document:
        """
        Insert or update a document.

        Raises:
            HookError: If ``on_create`` or ``pre_save`` fails (nothing is
                       written) or ``post_save`` fails (after the write)
        """
        self._check(doc)
        inserting = doc._id is None

        if inserting and not doc._on_create_fired:
            run_hook(doc, "on_create")
            doc._on_create_fired = True
        run_hook(doc, "pre_save")

        data = doc.to_dict()
        if inserting:
            doc._id = DocId(self.collection.insert(data))
        elif not self.collection.update(doc._id, data):
            msg = f"{self.name} {doc._id} no longer exists"
            raise RuntimeError(msg)
        doc._valid = True
        logger.debug("Saved %s %s", self.name, doc._id)

        run_hook(doc, "post_save")
        return doc

    def remove(self, doc: Document) -> bool:
        """
        Delete a document.

        The document is left unsaved either way, so saving it again is a
        fresh insert that fires ``on_create``. ``post_remove`` only fires when
        a record was actually deleted.

        Returns:
            True if a record was deleted

        Raises:
            RuntimeError: If the document was never saved
            HookError: If ``pre_remove`` fails (nothing is deleted) or
                       ``post_remove`` fails (after the delete)
        """
        self._check(doc)
        if doc._id is None:
            msg = "Cannot remove unsaved document"
            raise RuntimeError(msg)

        run_hook(doc, "pre_remove")
        removed = self.collection.remove(doc._id)
        logger.debug("Removed %s %s (found=%s)", self.name, doc._id, removed)
        doc._id = None
        doc._valid = False
        doc._on_create_fired = False
        if removed:
            run_hook(doc, "post_remove")
        return removed

    # Lifecycle

    def _materialize(self, doc_id: int, data: dict[str, Any]) -> Document:
        return materialize(self, doc_id, data)

    def _empty(self) -> Document:
        return empty_document(self)

    def __repr__(self) -> str:
        return f"Model({self.name!r}, collection={self.schema.collection!r})"
