"""
Document identifiers.

Identifiers are the positive integers assigned by the store on insert.
``DocId`` is used in model annotations to mark identifier-typed fields:

    @dataclass
    class Post(Document):
        title: str
        author: DocId | None = ref("User")
        tags: list[DocId] = ref("Tag", many=True)
"""

from __future__ import annotations

from typing import NewType

from .errors import MalformedIdentifierError

DocId = NewType("DocId", int)


def parse_id(value: object) -> DocId:
    """
    Parse an identifier given in canonical or string form.

    Args:
        value: ``DocId``/``int`` or its decimal string representation

    Returns:
        The identifier

    Raises:
        MalformedIdentifierError: If the value is not a valid identifier
    """
    # bool is an int subclass, but True is not an identifier
    if isinstance(value, bool):
        raise MalformedIdentifierError(value)

    if isinstance(value, int):
        number = value
    elif isinstance(value, str):
        text = value.strip()
        if not text.isdigit() or not text.isascii():
            raise MalformedIdentifierError(value)
        number = int(text)
    else:
        raise MalformedIdentifierError(value)

    if number <= 0:
        raise MalformedIdentifierError(value)
    return DocId(number)


def is_id(value: object) -> bool:
    """Check whether a value is usable as an identifier without parsing."""
    return isinstance(value, int) and not isinstance(value, bool) and value > 0
