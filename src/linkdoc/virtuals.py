"""
Per-document ephemeral values ("virtuals").

Every document owns one :class:`Virtuals` store. Values put there are never
written to the database and never shared with another document; a document
reloaded from the store starts with an empty one. Typical use is to stash
values derived in an ``on_result`` hook:

    @dataclass
    class User(Document):
        first: str
        last: str

        def on_result(self):
            self.virtuals.set("full_name", f"{self.first} {self.last}")

    user = users.find_by_id(1).one()
    user.virtuals.get_str("full_name")
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, TypeVar

from .errors import VirtualTypeError

if TYPE_CHECKING:
    from collections.abc import Iterator

    from .document import Document

T = TypeVar("T")

_MISSING: Any = object()


class Virtuals:
    """Key/value store attached to a single document instance."""

    __slots__ = ("_values",)

    def __init__(self):
        self._values: dict[str, Any] = {}

    def set(self, key: str, value: Any) -> None:
        """Store a value, replacing any previous value for the key."""
        self._values[key] = value

    def get(self, key: str, default: Any = _MISSING) -> Any:
        """
        Get a value.

        Args:
            key: Virtual name
            default: Returned when the key is absent

        Raises:
            KeyError: If the key is absent and no default was given
        """
        try:
            return self._values[key]
        except KeyError:
            if default is _MISSING:
                raise
            return default

    def has(self, key: str) -> bool:
        return key in self._values

    def delete(self, key: str) -> None:
        """Remove a key if present."""
        self._values.pop(key, None)

    def clear(self) -> None:
        self._values.clear()

    def keys(self) -> list[str]:
        return list(self._values)

    def get_typed(self, key: str, type_: type[T]) -> T:
        """
        Get a value and assert its type.

        Args:
            key: Virtual name
            type_: Expected type (``isinstance`` check)

        Raises:
            KeyError: If the key is absent
            VirtualTypeError: If the stored value is not a ``type_``
        """
        value = self._values[key]
        # bool is an int subclass; an int accessor must not accept True
        if isinstance(value, bool) and type_ in (int, float):
            ok = False
        else:
            ok = isinstance(value, type_)
        if not ok:
            msg = (
                f"Virtual '{key}' holds {type(value).__name__}, "
                f"not {type_.__name__}"
            )
            raise VirtualTypeError(msg)
        return value

    def get_str(self, key: str) -> str:
        return self.get_typed(key, str)

    def get_int(self, key: str) -> int:
        return self.get_typed(key, int)

    def get_float(self, key: str) -> float:
        # ints are accepted where a float is requested
        value = self._values[key]
        if isinstance(value, int) and not isinstance(value, bool):
            return float(value)
        return self.get_typed(key, float)

    def get_bool(self, key: str) -> bool:
        return self.get_typed(key, bool)

    def get_list(self, key: str) -> list:
        return self.get_typed(key, list)

    def get_dict(self, key: str) -> dict:
        return self.get_typed(key, dict)

    def get_document(self, key: str) -> Document:
        from .document import Document  # noqa: PLC0415

        return self.get_typed(key, Document)

    def __contains__(self, key: object) -> bool:
        return key in self._values

    def __len__(self) -> int:
        return len(self._values)

    def __iter__(self) -> Iterator[str]:
        return iter(self._values)

    def __repr__(self) -> str:
        return f"Virtuals({self._values!r})"
