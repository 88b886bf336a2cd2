"""
linkdoc model registry.

A :class:`Registry` is created once at startup, bound to a
:class:`~linkdoc.store.Database`, and every model is registered against it
before queries start:

    registry = Registry(Database("app.db"))
    users = registry.register(User, "users")
    posts = registry.register(Post, "posts")

Registration inspects the model's dataclass fields, turns ``ref()`` fields
into :class:`FieldDescriptor` entries, detects which lifecycle hooks the
model implements, and returns a :class:`~linkdoc.model.Model` handle.
Relation targets are looked up by model name only when a relation is
populated, so models may be registered in any order.

Registration is meant to happen before the registry is used concurrently.
Reads and writes of the registry maps are serialized by a lock anyway.
"""

from __future__ import annotations

import dataclasses
import logging
import threading
import types
import typing
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, Union

from .document import Document
from .errors import RegistrationError
from .fields import get_ref
from .ids import DocId
from .model import Model

if TYPE_CHECKING:
    from collections.abc import Callable, Iterator, Mapping

    from .store import Database

logger = logging.getLogger(__name__)

#: Lifecycle hook method names, in no particular order
HOOKS = ("on_create", "pre_save", "post_save", "pre_remove", "post_remove", "on_result")


@dataclass(frozen=True)
class FieldDescriptor:
    """
    A relationship field of a registered model.

    Attributes:
        name: Dataclass field name holding the identifier(s)
        target: Name of the referenced model
        many: True for a list of identifiers, False for a single one
    """

    name: str
    target: str
    many: bool


@dataclass(frozen=True)
class SchemaDescriptor:
    """
    Everything linkdoc knows about a registered model type.

    Attributes:
        model_type: The Document subclass
        name: Model name used as relation target
        collection: Collection name
        fields: Relationship fields, in declaration order
        hooks: Implemented lifecycle hooks by name
    """

    model_type: type[Document]
    name: str
    collection: str
    fields: tuple[FieldDescriptor, ...] = ()
    hooks: Mapping[str, Callable[[Document], Any]] = field(default_factory=dict)

    def relation(self, name: str) -> FieldDescriptor | None:
        """Return the relationship field with the given name, if declared."""
        for descriptor in self.fields:
            if descriptor.name == name:
                return descriptor
        return None

    @property
    def relations(self) -> list[str]:
        return [descriptor.name for descriptor in self.fields]


def _is_id_type(annotation: Any) -> bool:
    return annotation is DocId or annotation is int


def _strip_optional(annotation: Any) -> Any:
    """Turn ``X | None`` into ``X``; leave anything else untouched."""
    origin = typing.get_origin(annotation)
    if origin is Union or origin is types.UnionType:
        args = [arg for arg in typing.get_args(annotation) if arg is not type(None)]
        if len(args) == 1:
            return args[0]
    return annotation


def infer_cardinality(annotation: Any) -> bool | None:
    """
    Infer relation cardinality from a field annotation.

    Returns:
        False for ``DocId``/``int`` (optionally ``| None``), True for
        ``list[DocId]``/``list[int]``, None for any other shape
    """
    annotation = _strip_optional(annotation)
    if _is_id_type(annotation):
        return False
    if typing.get_origin(annotation) is list:
        args = typing.get_args(annotation)
        if len(args) == 1 and _is_id_type(args[0]):
            return True
    return None


def detect_hooks(model_type: type) -> dict[str, Callable[[Document], Any]]:
    """Return the lifecycle hooks a model type implements."""
    hooks = {}
    for name in HOOKS:
        function = getattr(model_type, name, None)
        if callable(function):
            hooks[name] = function
    return hooks


def build_schema(model_type: type, collection_name: str) -> SchemaDescriptor:
    """
    Build the schema descriptor of a model type.

    Raises:
        RegistrationError: If the type or one of its relation fields is invalid
    """
    if not (isinstance(model_type, type) and issubclass(model_type, Document)):
        msg = f"{model_type!r} is not a Document subclass"
        raise RegistrationError(msg)
    if not dataclasses.is_dataclass(model_type):
        msg = f"{model_type.__name__} must be a dataclass"
        raise RegistrationError(msg)

    try:
        hints = typing.get_type_hints(model_type)
    except NameError as e:
        msg = f"Cannot resolve annotations of {model_type.__name__}: {e}"
        raise RegistrationError(msg) from e

    descriptors = []
    for dc_field in dataclasses.fields(model_type):
        marker = get_ref(dc_field.metadata)
        if marker is None:
            continue

        where = f"{model_type.__name__}.{dc_field.name}"
        if not marker.target:
            msg = f"{where}: relation target name is empty"
            raise RegistrationError(msg)

        hint = hints.get(dc_field.name)
        many = infer_cardinality(hint)
        if many is None:
            msg = (
                f"{where}: relation fields must be annotated DocId, "
                f"DocId | None or list[DocId], not {hint!r}"
            )
            raise RegistrationError(msg)
        if marker.many is not None and marker.many != many:
            declared = "to-many" if marker.many else "to-one"
            msg = f"{where}: declared {declared} but annotated {hint!r}"
            raise RegistrationError(msg)
        if many and dc_field.default is None:
            msg = f"{where}: to-many relations default to a list; declare them with many=True"
            raise RegistrationError(msg)
        if not many and dc_field.default is None and _strip_optional(hint) is hint:
            msg = f"{where}: to-one relations defaulting to None must be annotated DocId | None"
            raise RegistrationError(msg)

        descriptors.append(FieldDescriptor(dc_field.name, marker.target, many))

    return SchemaDescriptor(
        model_type=model_type,
        name=model_type.__name__,
        collection=collection_name,
        fields=tuple(descriptors),
        hooks=detect_hooks(model_type),
    )


class Registry:
    """
    Registered models of one database.

    Args:
        database: Store the models' collections live in
        default_limit: Limit applied to ``Query.all()`` when the query sets
                       none (populate lookups are never limited by it)
    """

    def __init__(self, database: Database, *, default_limit: int | None = None):
        self.database = database
        self.default_limit = default_limit
        self._lock = threading.RLock()
        self._by_type: dict[type, Model] = {}
        self._by_name: dict[str, Model] = {}
        self._by_collection: dict[str, Model] = {}

    def register(
        self,
        schema: type[Document] | Document,
        collection_name: str,
        *,
        indexed_fields: list[str] | None = None,
    ) -> Model:
        """
        Register a model type.

        Args:
            schema: Document subclass, or an instance of one (only its type
                    is inspected)
            collection_name: Non-empty collection name
            indexed_fields: Fields to index; defaults to ``Meta.indexed_fields``

        Returns:
            The model handle

        Raises:
            RegistrationError: If the schema is invalid, the name is empty,
                               or the type or collection is already registered
        """
        model_type = schema if isinstance(schema, type) else type(schema)

        if not isinstance(collection_name, str) or not collection_name.strip():
            msg = f"Collection name for {getattr(model_type, '__name__', model_type)!r} is empty"
            raise RegistrationError(msg)

        descriptor = build_schema(model_type, collection_name)

        if indexed_fields is None:
            meta = getattr(model_type, "Meta", None)
            indexed_fields = list(getattr(meta, "indexed_fields", []))

        with self._lock:
            if model_type in self._by_type:
                msg = f"{descriptor.name} is already registered"
                raise RegistrationError(msg)
            if descriptor.name in self._by_name:
                msg = f"Another model named {descriptor.name} is already registered"
                raise RegistrationError(msg)
            if collection_name in self._by_collection:
                other = self._by_collection[collection_name].name
                msg = f"Collection {collection_name!r} is already bound to {other}"
                raise RegistrationError(msg)

            try:
                collection = self.database.collection(collection_name, indexed_fields)
            except ValueError as e:
                raise RegistrationError(str(e)) from e

            model = Model(self, descriptor, collection)
            self._by_type[model_type] = model
            self._by_name[descriptor.name] = model
            self._by_collection[collection_name] = model

        logger.debug(
            "Registered %s on %r (relations=%s, hooks=%s)",
            descriptor.name,
            collection_name,
            descriptor.relations,
            sorted(descriptor.hooks),
        )
        return model

    def model(self, key: str | type) -> Model:
        """
        Look up a model by name or type.

        Raises:
            KeyError: If no such model is registered
        """
        with self._lock:
            found = self._by_name.get(key) if isinstance(key, str) else self._by_type.get(key)
        if found is None:
            name = key if isinstance(key, str) else getattr(key, "__name__", key)
            msg = f"Model {name!r} is not registered"
            raise KeyError(msg)
        return found

    def schema(self, key: str | type) -> SchemaDescriptor:
        return self.model(key).schema

    def names(self) -> list[str]:
        with self._lock:
            return list(self._by_name)

    def models(self) -> list[Model]:
        with self._lock:
            return list(self._by_name.values())

    def __contains__(self, key: object) -> bool:
        with self._lock:
            if isinstance(key, str):
                return key in self._by_name
            return key in self._by_type

    def __iter__(self) -> Iterator[Model]:
        return iter(self.models())

    def __len__(self) -> int:
        with self._lock:
            return len(self._by_type)
