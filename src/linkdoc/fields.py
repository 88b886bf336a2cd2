"""
linkdoc relationship fields

Relationship fields are ordinary dataclass fields holding identifiers of
documents in another collection, marked with :func:`ref`:
- ``DocId | None``: to-one reference (single identifier)
- ``list[DocId]``: to-many reference (ordered identifiers)

Example:
    from dataclasses import dataclass

    from linkdoc import DocId, Document, ref

    @dataclass
    class User(Document):
        name: str
        best_friend: DocId | None = ref("User")
        friends: list[DocId] = ref("User", many=True)

    registry.register(User, "users")

    # Resolve friends of every matched user in a single extra lookup
    for user in users.find(name__like="A%").populate("friends").all():
        print([f.name for f in user.populated("friends")])

The target is a model *name*; it is resolved against the registry when a
relation is populated, so models may be registered in any order.
"""

from __future__ import annotations

import dataclasses
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from collections.abc import Mapping

#: Key under which the relation marker is stored in ``Field.metadata``
METADATA_KEY = "linkdoc.ref"


@dataclass(frozen=True)
class Ref:
    """
    Relationship marker stored in a dataclass field's metadata.

    Attributes:
        target: Name of the referenced model class
        many: Declared cardinality, or None to infer it from the annotation
    """

    target: str
    many: bool | None = None


def ref(target: str | type, *, many: bool | None = None, **kwargs: Any) -> Any:
    """
    Declare a relationship field.

    Args:
        target: Referenced model name, or the model class itself
        many: Optional explicit cardinality. When given, it must agree with
              the field annotation or registration fails.
        **kwargs: Forwarded to :func:`dataclasses.field` (``repr``,
                  ``compare``, ``default``...)

    Returns:
        A dataclass field. To-one fields default to ``None``; to-many
        fields default to an empty list, unless a default is supplied.
    """
    name = target if isinstance(target, str) else target.__name__
    metadata = dict(kwargs.pop("metadata", None) or {})
    metadata[METADATA_KEY] = Ref(name, many)

    if "default" not in kwargs and "default_factory" not in kwargs:
        if many:
            kwargs["default_factory"] = list
        else:
            # list annotations without many=True are rejected at registration
            kwargs["default"] = None

    return dataclasses.field(metadata=metadata, **kwargs)


def get_ref(metadata: Mapping[str, Any]) -> Ref | None:
    """Return the relation marker of a field, if any."""
    marker = metadata.get(METADATA_KEY)
    if marker is None or isinstance(marker, Ref):
        return marker
    msg = f"Invalid relation marker: {marker!r}"
    raise TypeError(msg)
