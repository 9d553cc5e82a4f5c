"""
Renderers - Draw a RenderModel into a Scene.

One renderer per view:
- ColumnGraphRenderer: graph view, depth columns of rounded boxes
- ForceGraphRenderer: graph view, force-directed circles with drag
- TreeRenderer: tree view, tidy tree of circles with name/value labels

Every renderer draws three groups inside the viewport, in order: edges,
nodes, labels. A renderer owns the elements it creates for the lifetime of
one render pass; the controller clears the scene before the next one.
"""

import logging
from typing import TYPE_CHECKING, Callable, Optional

from .config import RenderSettings
from .layout import LayoutResult, column_layout, tree_layout
from .models import GraphLayout, RenderRequest, ViewKind
from .palette import ThemePalette, node_color, palette_for
from .scene import Scene, SceneElement, format_number
from .simulation import ForceSimulation

if TYPE_CHECKING:
    from .models import GraphNode, RenderModel

logger = logging.getLogger(__name__)

LAYERS = ("edges", "nodes", "labels")
ELLIPSIS = "…"
FONT_FAMILY = "Arial, sans-serif"


def truncate(text: str, max_chars: int = 20) -> str:
    """Cut `text` to `max_chars` characters, marking the cut with an ellipsis."""
    if len(text) > max_chars:
        return text[:max_chars] + ELLIPSIS
    return text


def strip_quotes(text: str) -> str:
    if len(text) >= 2 and text.startswith('"') and text.endswith('"'):
        return text[1:-1]
    return text


def node_text(node: "GraphNode", max_chars: int = 20) -> str:
    """Box text: `name [value]` for the root, `name: value` below it."""
    value = truncate(node.value, max_chars)
    if node.depth == 0:
        return f"{node.display_name} [{value}]"
    return f"{node.display_name}: {value}"


class InteractiveRenderer:
    """
    Base class for the view renderers.

    Subclasses implement `draw()`. After `render()` the drawn node positions
    are available from `frame()`.
    """

    def __init__(self, settings: RenderSettings | None = None):
        self.settings = settings or RenderSettings()
        self.palette: Optional[ThemePalette] = None
        self.model: Optional["RenderModel"] = None
        self.scene: Optional[Scene] = None
        self.positions: dict[str, tuple[float, float]] = {}

    def render(self, model: "RenderModel", scene: Scene, request: RenderRequest):
        self.model = model
        self.scene = scene
        self.palette = palette_for(request.theme)
        layers = {name: scene.layer(name) for name in LAYERS}
        self.draw(model, request, layers)
        logger.debug("%s drew %d nodes, %d edges",
                     type(self).__name__, len(model.nodes), len(model.edges))

    def draw(self, model: "RenderModel", request: RenderRequest,
             layers: dict[str, SceneElement]):
        raise NotImplementedError

    @property
    def simulation(self) -> Optional[ForceSimulation]:
        return None

    def frame(self) -> dict[str, tuple[float, float]]:
        """Current node positions (box corners for columns, centers otherwise)."""
        return dict(self.positions)

    def teardown(self):
        self.model = None
        self.scene = None
        self.positions = {}


class ColumnGraphRenderer(InteractiveRenderer):
    """Rounded boxes in depth columns joined by Bezier curves."""

    def draw(self, model, request, layers):
        s = self.settings
        palette = self.palette
        layout = column_layout(model, request.width, request.height, s)
        self.positions = dict(layout.positions)
        _draw_paths(layers["edges"], layout, stroke=palette.edge, width=1)

        for node in model.nodes:
            x, y = layout.positions[node.id]
            group = layers["nodes"].append(
                "g", node_id=node.id, class_="node", transform=_translate(x, y)
            )
            rect = group.append(
                "rect",
                width=s.node_width,
                height=s.node_height,
                rx=5,
                ry=5,
                fill=node_color(node.label, node.depth, node.value, bool(node.is_leaf)),
                stroke=palette.node_stroke,
                stroke_width=1,
            )
            _hover_stroke(group, rect, palette.highlight, palette.node_stroke)

            layers["labels"].append(
                "text",
                text=node_text(node, s.label_max_chars),
                node_id=node.id,
                x=x + 10,
                y=y + s.node_height / 2,
                dominant_baseline="middle",
                fill="white",
                font_family=FONT_FAMILY,
                font_size="12px",
            )


class TreeRenderer(InteractiveRenderer):
    """Tidy tree of small circles; leaves also show their value."""

    def draw(self, model, request, layers):
        s = self.settings
        palette = self.palette
        layout = tree_layout(model, request.width, request.height, s)
        self.positions = dict(layout.positions)
        _draw_paths(layers["edges"], layout, stroke=palette.tree_edge, width=1.5)

        radius = s.tree_node_radius
        for node in model.nodes:
            if node.id not in layout.positions:
                continue
            x, y = layout.positions[node.id]
            internal = bool(model.children_of(node.id))
            fill = node_color(node.label, node.depth, node.value, bool(node.is_leaf))

            group = layers["nodes"].append(
                "g",
                node_id=node.id,
                class_="node node--internal" if internal else "node node--leaf",
                transform=_translate(x, y),
            )
            circle = group.append(
                "circle", r=radius, fill=fill,
                stroke=palette.tree_stroke, stroke_width=1.5,
            )
            group.on("mouseover", _setter(
                circle, r=radius * 1.5, fill=palette.highlight,
                stroke=palette.highlight, stroke_width=3,
            ))
            group.on("mouseout", _setter(
                circle, r=radius, fill=fill,
                stroke=palette.tree_stroke, stroke_width=1.5,
            ))

            layers["labels"].append(
                "text",
                text=node.display_name,
                node_id=node.id,
                class_="name",
                x=x - 8 if internal else x + 8,
                y=y,
                dy=".31em",
                text_anchor="end" if internal else "start",
                font_size="12px",
                font_family=FONT_FAMILY,
                fill=palette.text,
            )
            # Empty composites are drawn as leaves but have no value
            if node.is_leaf and not internal and node.value:
                layers["labels"].append(
                    "text",
                    text=truncate(strip_quotes(node.value), s.label_max_chars),
                    node_id=node.id,
                    class_="value",
                    x=x + 8,
                    y=y,
                    dy="1.3em",
                    text_anchor="start",
                    font_size="10px",
                    font_family=FONT_FAMILY,
                    fill=palette.value_text,
                )


class ForceGraphRenderer(InteractiveRenderer):
    """
    Circles and straight lines positioned by a ForceSimulation.

    `on_tick()` is the per-frame hot path: it only rewrites coordinates of
    elements created once in `draw()`.
    """

    def __init__(self, settings: RenderSettings | None = None):
        super().__init__(settings)
        self._simulation: Optional[ForceSimulation] = None
        self._lines: list[tuple[SceneElement, int, int]] = []
        self._circles: list[tuple[SceneElement, int]] = []
        self._labels: list[tuple[SceneElement, int, float]] = []
        # Called after a drag gesture changes the simulation
        self.on_interaction: Optional[Callable[[str], None]] = None

    @property
    def simulation(self) -> Optional[ForceSimulation]:
        return self._simulation

    def draw(self, model, request, layers):
        palette = self.palette
        sim = ForceSimulation(model, request.width, request.height, self.settings)
        self._simulation = sim

        for edge in model.edges:
            line = layers["edges"].append(
                "line",
                class_="link",
                data_source=edge.source_id,
                data_target=edge.target_id,
                stroke=palette.edge,
                stroke_opacity=0.6,
                stroke_width=1.5,
            )
            self._lines.append((line, sim.index[edge.source_id], sim.index[edge.target_id]))

        for node in model.nodes:
            i = sim.index[node.id]
            radius = float(sim.radii[i])
            circle = layers["nodes"].append(
                "circle",
                node_id=node.id,
                class_="node",
                r=radius,
                fill=node_color(node.label, node.depth, node.value, bool(node.is_leaf)),
                stroke=palette.node_stroke,
                stroke_width=1.5,
            )
            _hover_stroke(circle, circle, palette.highlight, palette.node_stroke)
            circle.on("dragstart", self._drag_handler(node.id, "start"))
            circle.on("drag", self._drag_handler(node.id, "move"))
            circle.on("dragend", self._drag_handler(node.id, "end"))
            self._circles.append((circle, i))

            label = layers["labels"].append(
                "text",
                text=truncate(node.display_name, self.settings.label_max_chars),
                node_id=node.id,
                font_size="10px",
                font_family=FONT_FAMILY,
                fill=palette.text,
            )
            self._labels.append((label, i, radius + 4))

        self.on_tick(sim)

    def _drag_handler(self, node_id: str, phase: str) -> Callable[..., None]:
        def handle(x: float | None = None, y: float | None = None, **_):
            sim = self._simulation
            if sim is None:
                return
            if x is not None and y is not None and self.scene is not None:
                x, y = self.scene.zoom.invert(x, y)
            if phase == "start":
                sim.drag_start(node_id, x, y)
            elif phase == "move":
                if x is None or y is None:
                    return
                sim.drag(node_id, x, y)
            else:
                sim.drag_end(node_id)
            if self.on_interaction is not None:
                self.on_interaction(node_id)
        return handle

    def on_tick(self, sim: ForceSimulation):
        """Copy simulation positions onto the drawn elements."""
        pos = sim.pos
        for line, a, b in self._lines:
            line.set(x1=float(pos[a, 0]), y1=float(pos[a, 1]),
                     x2=float(pos[b, 0]), y2=float(pos[b, 1]))
        for circle, i in self._circles:
            circle.set(cx=float(pos[i, 0]), cy=float(pos[i, 1]))
        for label, i, offset in self._labels:
            label.set(x=float(pos[i, 0]) + offset, y=float(pos[i, 1]) + 4)

    def frame(self) -> dict[str, tuple[float, float]]:
        if self._simulation is None:
            return {}
        return self._simulation.positions()

    def teardown(self):
        super().teardown()
        self._simulation = None
        self._lines = []
        self._circles = []
        self._labels = []
        self.on_interaction = None


# --- Drawing helpers ---

def _translate(x: float, y: float) -> str:
    return f"translate({format_number(x)},{format_number(y)})"


def _draw_paths(group: SceneElement, layout: LayoutResult, stroke: str, width: float):
    for edge in layout.edges:
        group.append(
            "path",
            class_="link",
            d=edge.d,
            data_source=edge.source_id,
            data_target=edge.target_id,
            fill="none",
            stroke=stroke,
            stroke_width=width,
        )


def _setter(element: SceneElement, **attrs) -> Callable[..., None]:
    def handle(**_):
        element.set(**attrs)
    return handle


def _hover_stroke(target: SceneElement, shape: SceneElement, highlight: str, stroke: str):
    """Emphasize `shape`'s stroke while the pointer is over `target`."""
    width = shape.get("stroke-width", 1)
    target.on("mouseover", _setter(shape, stroke=highlight, stroke_width=3))
    target.on("mouseout", _setter(shape, stroke=stroke, stroke_width=width))


def renderer_for(request: RenderRequest,
                 settings: RenderSettings | None = None) -> InteractiveRenderer:
    """Pick the renderer for a request's view and graph layout."""
    if request.view == ViewKind.TREE:
        return TreeRenderer(settings)
    if request.graph_layout == GraphLayout.FORCE:
        return ForceGraphRenderer(settings)
    return ColumnGraphRenderer(settings)
