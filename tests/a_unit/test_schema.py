"""Tests for schema inspection (no database)."""

from __future__ import annotations

from dataclasses import dataclass, fields
from typing import Optional

import pytest

from linkdoc import DocId, Document, ref
from linkdoc.fields import METADATA_KEY, Ref, get_ref
from linkdoc.registry import build_schema, detect_hooks, infer_cardinality


@dataclass
class Node(Document):
    label: str
    parent: DocId | None = ref("Node")
    children: list[DocId] = ref("Node", many=True)

    def on_result(self):
        pass

    def post_remove(self):
        pass


class TestInferCardinality:
    """Tests for infer_cardinality."""

    @pytest.mark.parametrize("annotation", [DocId, int, DocId | None, Optional[int]])  # noqa: UP007
    def test_to_one(self, annotation):
        assert infer_cardinality(annotation) is False

    @pytest.mark.parametrize("annotation", [list[DocId], list[int], list[DocId] | None])
    def test_to_many(self, annotation):
        assert infer_cardinality(annotation) is True

    @pytest.mark.parametrize(
        "annotation", [str, list, list[str], dict[str, DocId], tuple[DocId], DocId | str, None]
    )
    def test_unsupported(self, annotation):
        assert infer_cardinality(annotation) is None


class TestRefField:
    """Tests for the ref() field helper."""

    def test_metadata(self):
        by_name = {f.name: f for f in fields(Node)}

        assert get_ref(by_name["parent"].metadata) == Ref("Node")
        assert get_ref(by_name["children"].metadata) == Ref("Node", many=True)
        assert get_ref(by_name["label"].metadata) is None

    def test_defaults(self):
        node = Node(label="root")

        assert node.parent is None
        assert node.children == []
        assert node.children is not Node(label="other").children

    def test_target_as_class(self):
        @dataclass
        class Leaf(Document):
            node: DocId | None = ref(Node)

        marker = get_ref(fields(Leaf)[0].metadata)
        assert marker.target == "Node"

    def test_extra_metadata_kept(self):
        @dataclass
        class Tagged(Document):
            node: DocId | None = ref("Node", metadata={"doc": "parent node"})

        metadata = fields(Tagged)[0].metadata
        assert metadata["doc"] == "parent node"
        assert isinstance(metadata[METADATA_KEY], Ref)

    def test_invalid_marker(self):
        with pytest.raises(TypeError, match="Invalid relation marker"):
            get_ref({METADATA_KEY: "Node"})


class TestBuildSchema:
    """Tests for build_schema and detect_hooks."""

    def test_descriptor(self):
        schema = build_schema(Node, "nodes")

        assert schema.model_type is Node
        assert schema.collection == "nodes"
        assert [(f.name, f.target, f.many) for f in schema.fields] == [
            ("parent", "Node", False),
            ("children", "Node", True),
        ]

    def test_hooks(self):
        assert set(detect_hooks(Node)) == {"on_result", "post_remove"}
        assert detect_hooks(Document) == {}
