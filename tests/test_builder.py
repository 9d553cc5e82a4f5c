"""Tests for GraphModelBuilder."""

import copy
import json

import pytest

from hierviz.builder import GraphModelBuilder, build_model, detect_shape, infer_label
from hierviz.errors import EmptyInput, InvalidShape
from hierviz.models import PayloadShape
from hierviz.validation import IssueSeverity


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


class TestInferLabel:
    @pytest.mark.parametrize("value,label", [
        ('"hello"', "String"),
        ("true", "Boolean"),
        ("false", "Boolean"),
        ("null", "Null"),
        ("", "Null"),
        ("42", "Number"),
        ("-3.5e2", "Number"),
        ("hello", "Value"),
        (None, "Object"),
    ])
    def test_labels(self, value, label):
        assert infer_label(value) == label


class TestDetectShape:
    def test_shapes(self):
        assert detect_shape({"nodes": [], "links": []}) == PayloadShape.GRAPH
        assert detect_shape({"nodes": [], "edges": []}) == PayloadShape.GRAPH
        assert detect_shape({"name": "r", "children": []}) == PayloadShape.TREE
        assert detect_shape({"name": "r", "value": "1"}) == PayloadShape.TREE
        assert detect_shape({"foo": 1}) is None


# ---------------------------------------------------------------------------
# nodes+links payloads
# ---------------------------------------------------------------------------


class TestGraphPayload:
    def test_builds_model(self, graph_payload):
        model = build_model(graph_payload)
        assert len(model) == 5
        assert len(model.edges) == 4
        assert model.root_id == "1"
        assert model.source_shape == PayloadShape.GRAPH
        assert [n.id for n in model.children_of("3")] == ["4", "5"]
        assert model.node("2").display_name == "name"

    def test_payload_not_mutated(self, graph_payload):
        before = copy.deepcopy(graph_payload)
        build_model(graph_payload)
        assert graph_payload == before

    def test_json_string_payload(self, graph_payload):
        model = build_model(json.dumps(graph_payload))
        assert len(model) == 5

    def test_legacy_edges_key(self, graph_payload):
        payload = {"nodes": graph_payload["nodes"], "edges": graph_payload["links"]}
        assert len(build_model(payload).edges) == 4

    def test_dangling_link_dropped(self, dangling_payload):
        model = build_model(dangling_payload)
        assert [n.id for n in model.nodes] == ["1"]
        assert model.edges == ()
        assert [i.severity for i in model.issues] == [IssueSeverity.WARNING]

    def test_dangling_link_strict(self, dangling_payload):
        with pytest.raises(InvalidShape, match="non-existent node: 99"):
            GraphModelBuilder(strict=True).build(dangling_payload)

    def test_self_loop_and_duplicate_dropped(self, graph_payload):
        graph_payload["links"] += [{"source": "2", "target": "2"}, {"source": "1", "target": "2"}]
        model = build_model(graph_payload)
        assert len(model.edges) == 4
        assert len(model.issues) == 2

    def test_hierarchy_derived_from_links(self):
        payload = {
            "nodes": [{"id": "a"}, {"id": "b"}, {"id": "c"}],
            "links": [{"source": "a", "target": "b"}, {"source": "b", "target": "c"}],
        }
        model = build_model(payload)
        assert model.root_id == "a"
        assert [model.node(i).depth for i in "abc"] == [0, 1, 2]
        assert model.node("c").parent_id == "b"
        assert model.node("b").is_leaf is False
        assert model.node("c").is_leaf is True

    def test_single_bare_node(self):
        model = build_model({"nodes": [{"id": 1}], "links": []})
        assert model.root.depth == 0
        assert model.root.is_leaf is True

    def test_explicit_null_parent_stays_root(self):
        payload = {
            "nodes": [{"id": "a", "parent": None}, {"id": "b", "parent": "a"}, {"id": "c"}],
            "links": [
                {"source": "a", "target": "b"},
                {"source": "b", "target": "c"},
                {"source": "c", "target": "a"},
            ],
        }
        model = build_model(payload)
        assert model.root_id == "a"
        assert model.node("a").parent_id is None
        assert model.node("c").parent_id == "b"
        assert [model.node(i).depth for i in "abc"] == [0, 1, 2]


class TestGraphPayloadErrors:
    def test_duplicate_ids(self, graph_payload):
        graph_payload["nodes"].append(dict(graph_payload["nodes"][1]))
        with pytest.raises(InvalidShape, match="Duplicate node id: 2") as exc:
            build_model(graph_payload)
        assert any(i.severity == IssueSeverity.ERROR for i in exc.value.issues)

    def test_missing_parent(self, graph_payload):
        graph_payload["nodes"][1]["parent"] = "42"
        with pytest.raises(InvalidShape, match="non-existent parent: 42"):
            build_model(graph_payload)

    def test_two_roots(self, graph_payload):
        graph_payload["nodes"][1]["parent"] = None
        graph_payload["nodes"][1]["depth"] = 0
        graph_payload["links"] = graph_payload["links"][1:]
        with pytest.raises(InvalidShape, match="exactly one root"):
            build_model(graph_payload)

    def test_depth_mismatch(self, graph_payload):
        graph_payload["nodes"][3]["depth"] = 5
        with pytest.raises(InvalidShape, match="expected 2"):
            build_model(graph_payload)

    def test_error_count_in_message(self, graph_payload):
        graph_payload["nodes"][3]["depth"] = 5
        graph_payload["nodes"][4]["depth"] = 5
        with pytest.raises(InvalidShape, match=r"\(and 1 more\)"):
            build_model(graph_payload)

    def test_cycle_without_root(self):
        payload = {
            "nodes": [{"id": "a"}, {"id": "b"}],
            "links": [{"source": "a", "target": "b"}, {"source": "b", "target": "a"}],
        }
        with pytest.raises(InvalidShape):
            build_model(payload)

    def test_bad_node_field(self):
        with pytest.raises(InvalidShape, match="Invalid node or link"):
            build_model({"nodes": [{"id": "1", "depth": "deep"}], "links": []})


# ---------------------------------------------------------------------------
# name/children payloads
# ---------------------------------------------------------------------------


class TestTreePayload:
    def test_four_node_example(self, tree_payload):
        model = build_model(tree_payload)
        assert [n.id for n in model.nodes] == ["1", "2", "3", "4"]
        assert [n.key for n in model.nodes] == ["root", "a", "b", "c"]
        assert model.source_shape == PayloadShape.TREE

        root, a, b, c = model.nodes
        assert root.value == "2 items"
        assert a.is_leaf and a.value == "1" and a.label == "Number"
        assert not b.is_leaf and b.value == "1 items" and b.label == "Object"
        assert c.is_leaf and c.value == '"x"' and c.label == "String"
        assert [n.depth for n in model.nodes] == [0, 1, 1, 2]
        assert c.parent_id == "3"
        assert [(e.source_id, e.target_id) for e in model.edges] == [("1", "2"), ("1", "3"), ("3", "4")]

    def test_array_label(self):
        model = build_model({"name": "root", "children": [
            {"name": "0", "value": "1"}, {"name": "1", "value": "2"},
        ]})
        assert model.root.label == "Array"

    def test_leaf_root(self):
        model = build_model({"name": "root", "value": "true"})
        assert len(model) == 1
        assert model.root.label == "Boolean"

    def test_null_leaf(self):
        model = build_model({"name": "root", "children": [
            {"name": "a", "value": None}, {"name": "b", "value": 1},
        ]})
        _, a, b = model.nodes
        assert a.is_leaf and a.value == "null" and a.label == "Null"
        assert b.is_leaf and b.value == "1" and b.label == "Number"

    def test_value_and_children(self):
        with pytest.raises(InvalidShape, match="Invalid tree"):
            build_model({"name": "root", "value": "1", "children": []})

    def test_nested_node_missing_both(self, tree_payload):
        tree_payload["children"][1]["children"][0].pop("value")
        with pytest.raises(InvalidShape):
            build_model(tree_payload)


# ---------------------------------------------------------------------------
# Decoding
# ---------------------------------------------------------------------------


class TestDecoding:
    @pytest.mark.parametrize("payload", [None, "", "   ", {}, b""])
    def test_empty(self, payload):
        with pytest.raises(EmptyInput):
            build_model(payload)

    def test_no_nodes(self):
        with pytest.raises(EmptyInput):
            build_model({"nodes": [], "links": []})

    def test_invalid_json(self):
        with pytest.raises(InvalidShape, match="not valid JSON"):
            build_model("{nodes: ")

    def test_non_object(self):
        with pytest.raises(InvalidShape, match="must be an object"):
            build_model([1, 2, 3])

    def test_unknown_shape(self):
        with pytest.raises(InvalidShape, match="neither"):
            build_model({"foo": "bar"})

    def test_nodes_not_a_list(self):
        with pytest.raises(InvalidShape):
            build_model({"nodes": {"id": "1"}, "links": []})

    def test_invalid_shape_is_value_error(self):
        with pytest.raises(ValueError):
            build_model({"foo": "bar"})
