"""
Layered layout algorithms for render models.

Provides the two deterministic layouts:
- Columns: one column per depth, nodes stacked and centered in each column
- Tree: tidy hierarchical layout (Reingold-Tilford, Buchheim/Walker variant)

Both are pure functions of the model and canvas size: the same input always
yields the same positions and edge paths.
"""

from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Optional

from .config import RenderSettings
from .scene import format_number

if TYPE_CHECKING:
    from .models import RenderModel


@dataclass(frozen=True)
class EdgePath:
    """A drawable edge between two positioned nodes."""
    source_id: str
    target_id: str
    d: str  # SVG path data


@dataclass
class LayoutResult:
    """
    Output of a layered layout.

    `positions` holds box top-left corners when `node_size` is set (columns)
    and node centers otherwise (tree).
    """
    positions: dict[str, tuple[float, float]] = field(default_factory=dict)
    edges: list[EdgePath] = field(default_factory=list)
    node_size: Optional[tuple[float, float]] = None

    def center(self, node_id: str) -> tuple[float, float]:
        x, y = self.positions[node_id]
        if self.node_size is None:
            return (x, y)
        w, h = self.node_size
        return (x + w / 2, y + h / 2)

    @property
    def bounds(self) -> tuple[float, float, float, float]:
        """(min_x, min_y, max_x, max_y) of everything placed."""
        if not self.positions:
            return (0.0, 0.0, 0.0, 0.0)
        w, h = self.node_size or (0.0, 0.0)
        xs = [p[0] for p in self.positions.values()]
        ys = [p[1] for p in self.positions.values()]
        return (min(xs), min(ys), max(xs) + w, max(ys) + h)


def bezier_path(x0: float, y0: float, x1: float, y1: float) -> str:
    """Cubic curve with both control points at the horizontal midpoint."""
    mx = (x0 + x1) / 2
    f = format_number
    return f"M{f(x0)},{f(y0)}C{f(mx)},{f(y0)},{f(mx)},{f(y1)},{f(x1)},{f(y1)}"


def column_layout(
    model: "RenderModel",
    width: float,
    height: float,
    settings: RenderSettings | None = None
) -> LayoutResult:
    """
    Place nodes in one column per depth.

    Column i sits at x = origin + i * (node_width + h_spacing). Within a
    column nodes keep model order and the group is vertically centered.
    Edges run from the right-center of the source box to the left-center of
    the target box.

    Args:
        model: The render model
        width: Canvas width (unused, kept for a uniform signature)
        height: Canvas height
        settings: Layout constants

    Returns:
        LayoutResult with box top-left positions
    """
    s = settings or RenderSettings()
    result = LayoutResult(node_size=(s.node_width, s.node_height))

    buckets = model.nodes_by_depth()
    if not buckets:
        return result

    x_positions = {
        depth: s.column_origin_x + depth * (s.node_width + s.h_spacing)
        for depth in range(max(buckets) + 1)
    }

    for depth, nodes_at_depth in buckets.items():
        count = len(nodes_at_depth)
        bucket_height = count * s.node_height + (count - 1) * s.v_spacing
        start_y = (height - bucket_height) / 2
        for i, node in enumerate(nodes_at_depth):
            result.positions[node.id] = (
                x_positions[depth],
                start_y + i * (s.node_height + s.v_spacing),
            )

    for edge in model.edges:
        source = result.positions.get(edge.source_id)
        target = result.positions.get(edge.target_id)
        if source is None or target is None:
            continue
        sx = source[0] + s.node_width
        sy = source[1] + s.node_height / 2
        tx = target[0]
        ty = target[1] + s.node_height / 2
        result.edges.append(EdgePath(edge.source_id, edge.target_id, bezier_path(sx, sy, tx, ty)))

    return result


# --- Tidy tree ---

class _TidyNode:
    """Working record for the Buchheim/Walker walk."""
    __slots__ = ("node_id", "depth", "parent", "children", "A", "a",
                 "z", "m", "c", "s", "t", "i", "x")

    def __init__(self, node_id: str | None, depth: int, i: int):
        self.node_id = node_id
        self.depth = depth
        self.parent: Optional["_TidyNode"] = None
        self.children: list["_TidyNode"] = []
        self.A: Optional["_TidyNode"] = None  # Default ancestor
        self.a: "_TidyNode" = self           # Ancestor
        self.z = 0.0  # Prelim
        self.m = 0.0  # Mod
        self.c = 0.0  # Change
        self.s = 0.0  # Shift
        self.t: Optional["_TidyNode"] = None  # Thread
        self.i = i    # Index among siblings
        self.x = 0.0


def _next_left(v: _TidyNode) -> Optional[_TidyNode]:
    return v.children[0] if v.children else v.t


def _next_right(v: _TidyNode) -> Optional[_TidyNode]:
    return v.children[-1] if v.children else v.t


def _move_subtree(wm: _TidyNode, wp: _TidyNode, shift: float):
    change = shift / (wp.i - wm.i)
    wp.c -= change
    wp.s += shift
    wm.c += change
    wp.z += shift
    wp.m += shift


def _execute_shifts(v: _TidyNode):
    shift = 0.0
    change = 0.0
    for w in reversed(v.children):
        w.z += shift
        w.m += shift
        change += w.c
        shift += w.s + change


def _next_ancestor(vim: _TidyNode, v: _TidyNode, ancestor: _TidyNode) -> _TidyNode:
    return vim.a if vim.a.parent is v.parent else ancestor


class _TidyTree:
    """Buchheim et al. linear-time tidy tree with configurable separation."""

    def __init__(self, cousin_separation: float):
        self.cousin_separation = cousin_separation

    def separation(self, a: _TidyNode, b: _TidyNode) -> float:
        return 1.0 if a.parent is b.parent else self.cousin_separation

    def first_walk(self, v: _TidyNode):
        siblings = v.parent.children
        w = siblings[v.i - 1] if v.i else None
        if v.children:
            _execute_shifts(v)
            midpoint = (v.children[0].z + v.children[-1].z) / 2
            if w is not None:
                v.z = w.z + self.separation(v, w)
                v.m = v.z - midpoint
            else:
                v.z = midpoint
        elif w is not None:
            v.z = w.z + self.separation(v, w)
        v.parent.A = self.apportion(v, w, v.parent.A or siblings[0])

    def apportion(self, v: _TidyNode, w: Optional[_TidyNode], ancestor: _TidyNode) -> _TidyNode:
        if w is None:
            return ancestor

        vip = vop = v
        vim = w
        vom = vip.parent.children[0]
        sip, sop, sim, som = vip.m, vop.m, vim.m, vom.m

        while True:
            vim = _next_right(vim)
            vip = _next_left(vip)
            if vim is None or vip is None:
                break
            vom = _next_left(vom)
            vop = _next_right(vop)
            vop.a = v
            shift = vim.z + sim - vip.z - sip + self.separation(vim, vip)
            if shift > 0:
                _move_subtree(_next_ancestor(vim, v, ancestor), v, shift)
                sip += shift
                sop += shift
            sim += vim.m
            sip += vip.m
            som += vom.m
            sop += vop.m

        if vim is not None and _next_right(vop) is None:
            vop.t = vim
            vop.m += sim - sop
        if vip is not None and _next_left(vom) is None:
            vom.t = vip
            vom.m += sip - som
            ancestor = v
        return ancestor

    @staticmethod
    def second_walk(v: _TidyNode):
        v.x = v.z + v.parent.m
        v.m += v.parent.m

    def run(self, root: _TidyNode) -> list[_TidyNode]:
        """Lay out `root`'s subtree. Returns nodes in pre-order."""
        virtual = _TidyNode(None, -1, 0)
        virtual.children = [root]
        root.parent = virtual

        for node in _post_order(root):
            self.first_walk(node)
        pre_order = _pre_order(root)
        virtual.m = -root.z
        for node in pre_order:
            self.second_walk(node)
        return pre_order


def _pre_order(root: _TidyNode) -> list[_TidyNode]:
    order = []
    stack = [root]
    while stack:
        node = stack.pop()
        order.append(node)
        stack.extend(reversed(node.children))
    return order


def _post_order(root: _TidyNode) -> list[_TidyNode]:
    """Children left to right, then the parent."""
    order = []
    stack = [(root, False)]
    while stack:
        node, expanded = stack.pop()
        if expanded:
            order.append(node)
            continue
        stack.append((node, True))
        stack.extend((child, False) for child in reversed(node.children))
    return order


def tree_layout(
    model: "RenderModel",
    width: float,
    height: float,
    settings: RenderSettings | None = None
) -> LayoutResult:
    """
    Arrange the model as a left-to-right tidy tree.

    Siblings are one unit apart, unrelated subtrees `cousin_separation`
    units apart. The breadth axis is scaled to the inner canvas height and
    the depth axis to the inner width.

    Args:
        model: The render model (hierarchy taken from parent_id)
        width: Canvas width
        height: Canvas height
        settings: Layout constants

    Returns:
        LayoutResult with node center positions
    """
    s = settings or RenderSettings()
    result = LayoutResult()
    if not model.nodes:
        return result

    inner_width = max(1.0, width - s.margin_left - s.margin_right)
    inner_height = max(1.0, height - s.margin_top - s.margin_bottom)

    # Build working nodes from the parent relation
    root_depth = model.root.depth
    tidy: dict[str, _TidyNode] = {}
    stack = [model.root]
    tidy[model.root_id] = _TidyNode(model.root_id, 0, 0)
    while stack:
        node = stack.pop()
        parent = tidy[node.id]
        for child in model.children_of(node.id):
            if child.id in tidy:
                continue
            wrapper = _TidyNode(child.id, child.depth - root_depth, len(parent.children))
            wrapper.parent = parent
            parent.children.append(wrapper)
            tidy[child.id] = wrapper
            stack.append(child)

    engine = _TidyTree(s.cousin_separation)
    ordered = engine.run(tidy[model.root_id])

    # Normalize onto the canvas
    left = right = bottom = ordered[0]
    for node in ordered:
        if node.x < left.x:
            left = node
        if node.x > right.x:
            right = node
        if node.depth > bottom.depth:
            bottom = node
    sep = 1.0 if left is right else engine.separation(left, right) / 2
    tx = sep - left.x
    kx = inner_height / (right.x + sep + tx)
    ky = inner_width / (bottom.depth or 1)

    for node in ordered:
        breadth = (node.x + tx) * kx
        depth = node.depth * ky
        result.positions[node.node_id] = (s.margin_left + depth, s.margin_top + breadth)

    for node in ordered[1:]:
        parent_id = node.parent.node_id
        x0, y0 = result.positions[parent_id]
        x1, y1 = result.positions[node.node_id]
        result.edges.append(EdgePath(parent_id, node.node_id, bezier_path(x0, y0, x1, y1)))

    return result
