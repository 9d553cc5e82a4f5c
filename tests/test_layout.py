"""Tests for the layered (column and tidy tree) layouts."""

import math

import pytest

from hierviz.builder import build_model
from hierviz.config import RenderSettings
from hierviz.layout import bezier_path, column_layout, tree_layout


def _binary_tree(depth, name="n"):
    if depth == 0:
        return {"name": name, "value": "1"}
    return {"name": name, "children": [
        _binary_tree(depth - 1, name + "l"),
        _binary_tree(depth - 1, name + "r"),
    ]}


class TestBezierPath:
    def test_control_points_at_midpoint(self):
        assert bezier_path(0, 0, 10, 10) == "M0,0C5,0,5,10,10,10"

    def test_fractional_coordinates(self):
        assert bezier_path(0.126, 1, 2.5, 3) == "M0.13,1C1.31,1,1.31,3,2.5,3"


# ---------------------------------------------------------------------------
# Column layout
# ---------------------------------------------------------------------------


class TestColumnLayout:
    def test_columns_per_depth(self, graph_model):
        result = column_layout(graph_model, 900, 600)
        assert result.positions["1"] == (50, 280)
        assert result.positions["2"] == (290, 245)
        assert result.positions["3"] == (290, 315)
        assert result.positions["4"] == (530, 245)
        assert result.positions["5"] == (530, 315)
        assert result.node_size == (160, 40)

    def test_shared_x_per_depth(self, graph_model):
        result = column_layout(graph_model, 900, 600)
        for depth, nodes in graph_model.nodes_by_depth().items():
            xs = {result.positions[n.id][0] for n in nodes}
            assert len(xs) == 1

    def test_edge_paths(self, graph_model):
        result = column_layout(graph_model, 900, 600)
        assert len(result.edges) == 4
        first = result.edges[0]
        assert (first.source_id, first.target_id) == ("1", "2")
        assert first.d == "M210,300C250,300,250,265,290,265"

    def test_center_and_bounds(self, graph_model):
        result = column_layout(graph_model, 900, 600)
        assert result.center("1") == (130, 300)
        assert result.bounds == (50, 245, 690, 355)

    def test_custom_spacing(self, graph_model):
        settings = RenderSettings(node_width=100, h_spacing=20, column_origin_x=0)
        result = column_layout(graph_model, 900, 600, settings)
        assert result.positions["4"][0] == 240

    def test_deterministic(self, graph_model):
        assert column_layout(graph_model, 900, 600) == column_layout(graph_model, 900, 600)


# ---------------------------------------------------------------------------
# Tidy tree layout
# ---------------------------------------------------------------------------


class TestTreeLayout:
    def test_four_node_example(self, tree_model):
        result = tree_layout(tree_model, 900, 600)
        assert result.positions["1"] == pytest.approx((120, 300))
        assert result.positions["2"] == pytest.approx((450, 160))
        assert result.positions["3"] == pytest.approx((450, 440))
        assert result.positions["4"] == pytest.approx((780, 440))
        assert result.node_size is None

    def test_edges_follow_hierarchy(self, tree_model):
        result = tree_layout(tree_model, 900, 600)
        assert [(e.source_id, e.target_id) for e in result.edges] == [
            ("1", "2"), ("1", "3"), ("3", "4"),
        ]
        assert result.edges[0].d == "M120,300C285,300,285,160,450,160"

    def test_single_node_centered(self):
        model = build_model({"name": "root", "value": "1"})
        result = tree_layout(model, 900, 600)
        assert result.positions["1"] == pytest.approx((120, 300))

    def test_parents_centered_over_children(self):
        model = build_model(_binary_tree(3))
        result = tree_layout(model, 900, 600)
        for node in model.nodes:
            children = model.children_of(node.id)
            if not children:
                continue
            first = result.positions[children[0].id][1]
            last = result.positions[children[-1].id][1]
            assert result.positions[node.id][1] == pytest.approx((first + last) / 2)

    def test_no_overlap_within_depth(self):
        model = build_model(_binary_tree(4))
        result = tree_layout(model, 900, 600)
        for depth, nodes in model.nodes_by_depth().items():
            xs = {round(result.positions[n.id][0], 6) for n in nodes}
            assert len(xs) == 1
            ys = sorted(result.positions[n.id][1] for n in nodes)
            assert all(b - a > 1 for a, b in zip(ys, ys[1:]))

    def test_cousin_separation(self):
        payload = {"name": "root", "children": [
            {"name": "p1", "children": [{"name": "x1", "value": "1"}, {"name": "x2", "value": "2"}]},
            {"name": "p2", "children": [{"name": "y1", "value": "3"}]},
        ]}
        model = build_model(payload)
        y = {k: v[1] for k, v in tree_layout(model, 900, 600).positions.items()}
        # x1="3", x2="4", y1="6"
        assert y["6"] - y["4"] == pytest.approx(2 * (y["4"] - y["3"]))

        flat = tree_layout(model, 900, 600, RenderSettings(cousin_separation=1.0))
        y = {k: v[1] for k, v in flat.positions.items()}
        assert y["6"] - y["4"] == pytest.approx(y["4"] - y["3"])

    def test_fits_inner_canvas(self):
        model = build_model(_binary_tree(4))
        result = tree_layout(model, 800, 500)
        min_x, min_y, max_x, max_y = result.bounds
        assert min_x == pytest.approx(120)
        assert max_x == pytest.approx(800 - 120)
        assert min_y >= 20
        assert max_y <= 500 - 20

    def test_graph_payload_uses_parents(self, graph_model):
        result = tree_layout(graph_model, 900, 600)
        assert set(result.positions) == {"1", "2", "3", "4", "5"}
        assert all(math.isfinite(c) for p in result.positions.values() for c in p)

    def test_deterministic(self, tree_model):
        assert tree_layout(tree_model, 900, 600) == tree_layout(tree_model, 900, 600)
