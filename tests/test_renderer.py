"""Tests for the column, tree and force renderers."""

import pytest

from hierviz.builder import build_model
from hierviz.models import RenderRequest
from hierviz.palette import ROOT_COLOR
from hierviz.renderer import (
    ColumnGraphRenderer,
    ForceGraphRenderer,
    TreeRenderer,
    node_text,
    renderer_for,
    strip_quotes,
    truncate,
)
from hierviz.scene import Scene


def _draw(renderer, model, **request):
    scene = Scene(900, 600)
    renderer.render(model, scene, RenderRequest(**request))
    return scene


def _layer_classes(scene):
    return [c.get("class") for c in scene.viewport.children]


# ---------------------------------------------------------------------------
# Text helpers
# ---------------------------------------------------------------------------


class TestTextHelpers:
    def test_truncate(self):
        assert truncate("short") == "short"
        assert truncate("x" * 20) == "x" * 20
        assert truncate("x" * 21) == "x" * 20 + "…"
        assert truncate("abcdef", 3) == "abc…"

    def test_strip_quotes(self):
        assert strip_quotes('"x"') == "x"
        assert strip_quotes('"') == '"'
        assert strip_quotes("42") == "42"

    def test_node_text(self, graph_model):
        assert node_text(graph_model.node("1")) == "Object [2 items]"
        assert node_text(graph_model.node("2")) == "name: Ann"


# ---------------------------------------------------------------------------
# Column graph
# ---------------------------------------------------------------------------


class TestColumnGraphRenderer:
    def test_layer_order(self, graph_model):
        scene = _draw(ColumnGraphRenderer(), graph_model)
        assert _layer_classes(scene) == ["edges", "nodes", "labels"]

    def test_elements(self, graph_model, svg_elements):
        scene = _draw(ColumnGraphRenderer(), graph_model)
        svg = scene.to_svg()
        assert len(svg_elements(svg, "rect")) == 5
        assert len(svg_elements(svg, "path")) == 4
        texts = [t.text for t in svg_elements(svg, "text")]
        assert texts[:2] == ["Object [2 items]", "name: Ann"]

    def test_node_groups_positioned(self, graph_model):
        scene = _draw(ColumnGraphRenderer(), graph_model)
        group = scene.elements_for("2")[0]
        assert group.get("transform") == "translate(290,245)"
        rect = group.children[0]
        assert rect.get("width") == 160
        assert rect.get("fill") == "#27ae60"

    def test_root_color(self, graph_model):
        scene = _draw(ColumnGraphRenderer(), graph_model)
        assert scene.elements_for("1")[0].children[0].get("fill") == ROOT_COLOR

    def test_hover(self, graph_model):
        scene = _draw(ColumnGraphRenderer(), graph_model)
        rect = scene.elements_for("2")[0].children[0]
        assert scene.dispatch("2", "mouseover")
        assert rect.get("stroke") == "#66a3ff"
        assert rect.get("stroke-width") == 3
        scene.dispatch("2", "mouseout")
        assert rect.get("stroke") == "#444"
        assert rect.get("stroke-width") == 1

    def test_frame(self, graph_model):
        renderer = ColumnGraphRenderer()
        _draw(renderer, graph_model)
        assert renderer.frame()["1"] == (50, 280)
        assert renderer.simulation is None
        renderer.teardown()
        assert renderer.frame() == {}

    def test_dark_theme(self, graph_model):
        scene = _draw(ColumnGraphRenderer(), graph_model, theme="dark")
        path = scene.viewport.find("link")
        assert path.get("stroke") == "#666"


# ---------------------------------------------------------------------------
# Tree
# ---------------------------------------------------------------------------


class TestTreeRenderer:
    def test_four_node_example(self, tree_model, svg_elements):
        scene = _draw(TreeRenderer(), tree_model, view="tree")
        svg = scene.to_svg()
        assert len(svg_elements(svg, "circle")) == 4
        assert len(svg_elements(svg, "path")) == 3

        values = [t for t in svg_elements(svg, "text") if t.get("class") == "value"]
        assert [(t.get("data-id"), t.text) for t in values] == [("2", "1"), ("4", "x")]

        names = [t for t in svg_elements(svg, "text") if t.get("class") == "name"]
        assert [t.text for t in names] == ["root", "a", "b", "c"]

    def test_label_anchors(self, tree_model):
        scene = _draw(TreeRenderer(), tree_model, view="tree")
        labels = {e.node_id: e for e in scene.layer("labels").children if e.get("class") == "name"}
        assert labels["3"].get("text-anchor") == "end"
        assert labels["3"].get("x") == 450 - 8
        assert labels["4"].get("text-anchor") == "start"

    def test_node_classes(self, tree_model):
        scene = _draw(TreeRenderer(), tree_model, view="tree")
        classes = [g.get("class") for g in scene.layer("nodes").children]
        assert classes == ["node node--internal", "node node--leaf",
                           "node node--internal", "node node--leaf"]

    def test_hover_enlarges(self, tree_model):
        scene = _draw(TreeRenderer(), tree_model, view="tree")
        circle = scene.elements_for("2")[0].children[0]
        scene.dispatch("2", "mouseover")
        assert circle.get("r") == 7.5
        assert circle.get("fill") == "#66a3ff"
        assert circle.get("stroke") == "#66a3ff"
        assert circle.get("stroke-width") == 3
        scene.dispatch("2", "mouseout")
        assert circle.get("r") == 5
        assert circle.get("fill") == "#e74c3c"
        assert circle.get("stroke") == "#fff"
        assert circle.get("stroke-width") == 1.5

    def test_fill_follows_label(self, tree_model):
        scene = _draw(TreeRenderer(), tree_model, view="tree")
        fills = {g.node_id: g.children[0].get("fill") for g in scene.layer("nodes").children}
        assert fills == {"1": "#2c3e50", "2": "#e74c3c", "3": "#2980b9", "4": "#27ae60"}

    def test_scalar_leaf_colors(self):
        model = build_model({"name": "root", "children": [
            {"name": "s", "value": '"x"'},
            {"name": "n", "value": "1"},
            {"name": "t", "value": "true"},
        ]})
        scene = _draw(TreeRenderer(), model, view="tree")
        fills = [g.children[0].get("fill") for g in scene.layer("nodes").children[1:]]
        assert fills == ["#27ae60", "#e74c3c", "#f39c12"]

    def test_null_leaf(self):
        model = build_model({"name": "root", "children": [{"name": "a", "value": None}]})
        scene = _draw(TreeRenderer(), model, view="tree")
        circle = scene.elements_for("2")[0].children[0]
        assert circle.get("fill") == "#95a5a6"
        assert scene.layer("labels").find("value").text == "null"

    def test_empty_composite_has_no_value(self):
        model = build_model({"name": "root", "children": [{"name": "e", "children": []}]})
        scene = _draw(TreeRenderer(), model, view="tree")
        assert [t.text for t in scene.layer("labels").children] == ["root", "e"]
        assert scene.layer("nodes").children[1].get("class") == "node node--leaf"

    def test_long_value_truncated(self):
        model = build_model({"name": "root", "children": [{"name": "k", "value": '"' + "v" * 30 + '"'}]})
        scene = _draw(TreeRenderer(), model, view="tree")
        value = scene.layer("labels").find("value")
        assert value.text == "v" * 20 + "…"


# ---------------------------------------------------------------------------
# Force graph
# ---------------------------------------------------------------------------


class TestForceGraphRenderer:
    def test_elements(self, graph_model, svg_elements):
        renderer = ForceGraphRenderer()
        scene = _draw(renderer, graph_model, graph_layout="force")
        svg = scene.to_svg()
        assert len(svg_elements(svg, "circle")) == 5
        lines = svg_elements(svg, "line")
        assert len(lines) == 4
        assert all(line.get("x1") is not None for line in lines)
        assert renderer.simulation is not None
        assert _layer_classes(scene) == ["edges", "nodes", "labels"]

    def test_on_tick_moves_elements(self, graph_model):
        renderer = ForceGraphRenderer()
        scene = _draw(renderer, graph_model, graph_layout="force")
        sim = renderer.simulation
        sim.run()
        renderer.on_tick(sim)
        circle = scene.elements_for("3")[0]
        x, y = sim.position("3")
        assert (circle.get("cx"), circle.get("cy")) == (x, y)
        assert renderer.frame() == sim.positions()

    def test_drag_inverts_zoom(self, graph_model):
        renderer = ForceGraphRenderer()
        scene = _draw(renderer, graph_model, graph_layout="force")
        touched = []
        renderer.on_interaction = touched.append
        scene.zoom.scale_by(2)

        assert scene.dispatch("3", "dragstart", x=200, y=100)
        sim = renderer.simulation
        assert sim.is_pinned("3")
        assert tuple(sim.fixed[sim.index["3"]]) == (100, 50)

        scene.dispatch("3", "drag", x=300, y=300)
        assert tuple(sim.fixed[sim.index["3"]]) == (150, 150)
        scene.dispatch("3", "dragend")
        assert not sim.is_pinned("3")
        assert touched == ["3", "3", "3"]

    def test_drag_move_without_pointer_ignored(self, graph_model):
        renderer = ForceGraphRenderer()
        scene = _draw(renderer, graph_model, graph_layout="force")
        scene.dispatch("3", "drag")
        assert not renderer.simulation.is_pinned("3")

    def test_teardown(self, graph_model):
        renderer = ForceGraphRenderer()
        scene = _draw(renderer, graph_model, graph_layout="force")
        renderer.teardown()
        assert renderer.simulation is None
        assert renderer.frame() == {}
        # Handlers left on stale elements are inert
        scene.dispatch("3", "dragstart", x=1, y=1)


class TestRendererFor:
    @pytest.mark.parametrize("request_args,cls", [
        ({}, ColumnGraphRenderer),
        ({"graph_layout": "force"}, ForceGraphRenderer),
        ({"view": "tree"}, TreeRenderer),
        ({"view": "tree", "graph_layout": "force"}, TreeRenderer),
    ])
    def test_dispatch(self, request_args, cls):
        assert type(renderer_for(RenderRequest(**request_args))) is cls
