"""
linkdoc documents and their lifecycle.

Models are dataclasses deriving from :class:`Document`:

    @dataclass
    class User(Document):
        class Meta:
            indexed_fields = ["email"]

        name: str
        email: str
        friends: list[DocId] = ref("User", many=True)

        def pre_save(self):
            self.email = self.email.lower()

Besides its dataclass fields, every document carries bookkeeping that is
never persisted: its identifier, whether it is backed by a stored record,
the owning model, its virtuals and the relations resolved by populate.

Lifecycle hooks are optional methods, detected once at registration:

- load: decode, then ``on_result``
- insert: ``on_create``, ``pre_save``, write, ``post_save``
- update: ``pre_save``, write, ``post_save``
- remove: ``pre_remove``, delete, ``post_remove``

A hook that raises aborts the operation before any later step runs.
"""

from __future__ import annotations

import dataclasses
import logging
from typing import TYPE_CHECKING, Any, ClassVar, TypeVar

import cattrs

from .errors import HookError, PopulateError
from .ids import DocId
from .virtuals import Virtuals

if TYPE_CHECKING:
    from .model import Model
    from .query import Query
    from .registry import FieldDescriptor

logger = logging.getLogger(__name__)

D = TypeVar("D", bound="Document")


class Document:
    """
    Base class for linkdoc models.

    Subclasses must be dataclasses. The bookkeeping attributes below are
    plain instance attributes, not dataclass fields, so they take no part
    in ``__init__``, ``__eq__`` or ``__repr__``.
    """

    _converter: ClassVar[cattrs.Converter] = cattrs.Converter()

    # Must stay unannotated: get_type_hints() on subclasses walks this class
    _id = None
    _valid = False
    _model = None
    _on_create_fired = False

    # Per-instance containers, created on first use

    @property
    def virtuals(self) -> Virtuals:
        """The document's private, never persisted key/value store."""
        store = self.__dict__.get("_virtuals")
        if store is None:
            store = self.__dict__["_virtuals"] = Virtuals()
        return store

    @property
    def _populated(self) -> dict[str, Any]:
        resolved = self.__dict__.get("_populated_relations")
        if resolved is None:
            resolved = self.__dict__["_populated_relations"] = {}
        return resolved

    def is_valid(self) -> bool:
        """True iff the document is backed by a stored record."""
        return self._valid

    # Serialization

    def to_dict(self) -> dict[str, Any]:
        """Persisted fields only: no identifier, virtuals or populated values."""
        return self._converter.unstructure(self)

    @classmethod
    def _from_dict(cls: type[D], data: dict[str, Any], doc_id: int | None = None) -> D:
        """
        Build a document from stored data.

        Raises:
            ValueError: If the data cannot be structured into the model
        """
        try:
            doc = cls._converter.structure(data, cls)
        except (cattrs.BaseValidationError, TypeError, ValueError, KeyError) as e:
            msg = f"Failed to deserialize document {cls.__name__}({doc_id}): {e}"
            raise ValueError(msg) from e
        doc._id = DocId(doc_id) if doc_id is not None else None
        return doc

    # Virtuals convenience

    def set_virtual(self, key: str, value: Any) -> None:
        self.virtuals.set(key, value)

    def get_virtual(self, key: str, *default: Any) -> Any:
        return self.virtuals.get(key, *default)

    # Persistence

    def _require_model(self) -> Model:
        if self._model is None:
            msg = (
                f"{type(self).__name__} is not bound to a model. "
                "Save it through Model.save() or create it with Model.new()."
            )
            raise RuntimeError(msg)
        return self._model

    def save(self: D) -> D:
        """Insert or update the document. Returns the document."""
        self._require_model().save(self)
        return self

    def remove(self) -> bool:
        """Delete the document. Returns True if a record was deleted."""
        return self._require_model().remove(self)

    # Relations

    def _relation(self, relation: str) -> FieldDescriptor:
        descriptor = self._require_model().schema.relation(relation)
        if descriptor is None:
            msg = f"{type(self).__name__} has no relation named {relation!r}"
            raise PopulateError(msg)
        return descriptor

    def populate(self: D, *relations: str) -> D:
        """
        Resolve relations of this document, each with its own lookup.

        Returns:
            The document, for chaining
        """
        from .populate import populate_document  # noqa: PLC0415

        for relation in relations:
            populate_document(self, relation)
        return self

    def populate_query(self, relation: str, query: Query | None = None) -> Any:
        """
        Resolve one relation through a refining query on the target model.

        The query runs scoped to this document's identifiers, so its sort
        and limit apply to this relationship only:

            user.populate_query("friends", users.find().sort("age").limit(5))

        Returns:
            The resolved document or list of documents (None when a to-one
            reference does not resolve)
        """
        from .populate import populate_document  # noqa: PLC0415

        return populate_document(self, relation, query)

    def is_populated(self, relation: str) -> bool:
        return relation in self._populated

    def populated(self, relation: str) -> Any:
        """
        Return the value resolved for a relation.

        Raises:
            PopulateError: If the relation is not declared, or was not
                           resolved on this document
        """
        self._relation(relation)
        try:
            return self._populated[relation]
        except KeyError:
            msg = f"Relation {relation!r} of {type(self).__name__} is not populated"
            raise PopulateError(msg) from None

    def populated_one(self, relation: str) -> Document:
        """Like :meth:`populated`, for to-one relations only."""
        if self._relation(relation).many:
            msg = f"Relation {relation!r} is to-many; use populated_many()"
            raise PopulateError(msg)
        return self.populated(relation)

    def populated_many(self, relation: str) -> list[Document]:
        """Like :meth:`populated`, for to-many relations only."""
        if not self._relation(relation).many:
            msg = f"Relation {relation!r} is to-one; use populated_one()"
            raise PopulateError(msg)
        return self.populated(relation)

    def _set_populated(self, relation: str, value: Any) -> None:
        self._populated[relation] = value

    def _unset_populated(self, relation: str) -> None:
        self._populated.pop(relation, None)


# Lifecycle manager


def run_hook(doc: Document, hook: str) -> None:
    """
    Invoke a lifecycle hook if the document's model implements it.

    Raises:
        HookError: If the hook raises. A HookError raised by the hook is
                   propagated as is; anything else is wrapped.
    """
    model = doc._model
    function = model.schema.hooks.get(hook) if model is not None else None
    if function is None:
        return

    try:
        function(doc)
    except HookError:
        logger.debug("Hook %s.%s refused the operation", model.name, hook)
        raise
    except Exception as e:
        logger.debug("Hook %s.%s raised %r", model.name, hook, e)
        raise HookError(hook, original=e) from e


def materialize(model: Model, doc_id: int, data: dict[str, Any]) -> Document:
    """
    Turn a stored record into a valid, bound document and fire ``on_result``.
    """
    doc = model.model_type._from_dict(data, doc_id)
    doc._valid = True
    doc._model = model
    run_hook(doc, "on_result")
    return doc


def empty_document(model: Model) -> Document:
    """
    Build the zero-value document returned when nothing was found.

    Fields get their declared default, or None. ``__init__`` is not called,
    so required fields do not have to be supplied and no hook runs.
    """
    model_type = model.model_type
    doc = model_type.__new__(model_type)
    for dc_field in dataclasses.fields(model_type):
        if dc_field.default is not dataclasses.MISSING:
            value = dc_field.default
        elif dc_field.default_factory is not dataclasses.MISSING:
            value = dc_field.default_factory()
        else:
            value = None
        object.__setattr__(doc, dc_field.name, value)
    doc._valid = False
    doc._model = model
    return doc
