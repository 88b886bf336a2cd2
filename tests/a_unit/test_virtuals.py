"""Tests for the per-document virtuals store."""

from __future__ import annotations

import pytest

from linkdoc import Virtuals, VirtualTypeError


@pytest.fixture
def store():
    return Virtuals()


class TestBasics:
    """Set, get, overwrite, delete."""

    def test_set_get_identity(self, store):
        value = object()
        store.set("k", value)

        assert store.get("k") is value

    def test_overwrite(self, store):
        store.set("k", 1)
        store.set("k", "two")

        assert store.get("k") == "two"
        assert len(store) == 1

    def test_missing_raises(self, store):
        with pytest.raises(KeyError):
            store.get("missing")

    def test_missing_with_default(self, store):
        assert store.get("missing", None) is None
        assert store.get("missing", 0) == 0

    def test_absent_is_not_zero(self, store):
        assert not store.has("n")
        assert "n" not in store

        store.set("n", 0)

        assert store.has("n")
        assert "n" in store

    def test_delete_and_clear(self, store):
        store.set("a", 1)
        store.set("b", 2)

        store.delete("a")
        store.delete("never-set")
        assert store.keys() == ["b"]

        store.clear()
        assert len(store) == 0

    def test_iteration(self, store):
        store.set("a", 1)
        store.set("b", 2)

        assert list(store) == ["a", "b"]


class TestTypedAccessors:
    """Typed getters assert the stored type."""

    def test_typed_ok(self, store):
        store.set("s", "text")
        store.set("i", 3)
        store.set("f", 1.5)
        store.set("b", False)
        store.set("l", [1])
        store.set("d", {"x": 1})

        assert store.get_str("s") == "text"
        assert store.get_int("i") == 3
        assert store.get_float("f") == 1.5
        assert store.get_bool("b") is False
        assert store.get_list("l") == [1]
        assert store.get_dict("d") == {"x": 1}

    def test_int_promoted_to_float(self, store):
        store.set("n", 2)

        assert store.get_float("n") == 2.0

    def test_wrong_type(self, store):
        store.set("s", "text")

        with pytest.raises(VirtualTypeError, match="holds str, not int"):
            store.get_int("s")

    def test_bool_is_not_int(self, store):
        store.set("flag", True)

        with pytest.raises(VirtualTypeError):
            store.get_int("flag")
        with pytest.raises(VirtualTypeError):
            store.get_float("flag")

    def test_wrong_type_is_type_error(self, store):
        store.set("n", 1)

        with pytest.raises(TypeError):
            store.get_str("n")

    def test_get_typed_custom(self, store):
        store.set("t", (1, 2))

        assert store.get_typed("t", tuple) == (1, 2)
        with pytest.raises(VirtualTypeError):
            store.get_typed("t", list)

    def test_typed_missing(self, store):
        with pytest.raises(KeyError):
            store.get_str("missing")

    def test_get_document(self, store):
        store.set("not-a-doc", {"name": "x"})

        with pytest.raises(VirtualTypeError, match="not Document"):
            store.get_document("not-a-doc")
