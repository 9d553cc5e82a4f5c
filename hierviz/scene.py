"""
Retained-mode scene graph.

A Scene is the drawable state of one render pass: an `svg` root holding a
single `viewport` group that carries the pan/zoom transform. Renderers own
every element below the viewport for the lifetime of the pass and the
controller discards them wholesale with `clear()`.

Scenes serialize to SVG with xml.etree.ElementTree.
"""

import logging
import xml.etree.ElementTree as ET
from dataclasses import dataclass, field
from typing import Any, Callable, Iterator, Optional

logger = logging.getLogger(__name__)

SVG_NS = "http://www.w3.org/2000/svg"

Handler = Callable[..., None]


def format_number(value: float) -> str:
    """Compact, stable text for a coordinate (2 decimals, no trailing zeros)."""
    text = f"{value:.2f}".rstrip("0").rstrip(".")
    return "0" if text in ("-0", "") else text


def _attr_text(value: Any) -> str:
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, float):
        return format_number(value)
    return str(value)


@dataclass
class SceneElement:
    """One drawable (or group) in the scene."""
    tag: str
    attrs: dict[str, Any] = field(default_factory=dict)
    children: list["SceneElement"] = field(default_factory=list)
    text: Optional[str] = None
    node_id: Optional[str] = None  # Model node this element draws, if any
    handlers: dict[str, Handler] = field(default_factory=dict)

    def append(self, tag: str, text: str | None = None, node_id: str | None = None,
               **attrs) -> "SceneElement":
        """Create a child element. Attribute names use `_` for `-`."""
        child = SceneElement(
            tag=tag,
            attrs={k.rstrip("_").replace("_", "-"): v for k, v in attrs.items()},
            text=text,
            node_id=node_id,
        )
        self.children.append(child)
        return child

    def set(self, **attrs) -> "SceneElement":
        for key, value in attrs.items():
            self.attrs[key.rstrip("_").replace("_", "-")] = value
        return self

    def get(self, name: str, default: Any = None) -> Any:
        return self.attrs.get(name, default)

    def on(self, event: str, handler: Handler) -> "SceneElement":
        """Register a gesture handler (mouseover, mouseout, dragstart, drag, dragend)."""
        self.handlers[event] = handler
        return self

    def iter(self) -> Iterator["SceneElement"]:
        """Depth-first, document order."""
        yield self
        for child in self.children:
            yield from child.iter()

    def find(self, css_class: str) -> Optional["SceneElement"]:
        """First descendant carrying `css_class`."""
        for element in self.iter():
            if css_class in str(element.attrs.get("class", "")).split():
                return element
        return None

    def to_element(self) -> ET.Element:
        element = ET.Element(self.tag, {k: _attr_text(v) for k, v in self.attrs.items()})
        if self.node_id is not None:
            element.set("data-id", self.node_id)
        if self.text is not None:
            element.text = self.text
        for child in self.children:
            element.append(child.to_element())
        return element


class ZoomBehavior:
    """
    Pan/zoom state applied to exactly one group.

    Scale is clamped to the configured extent. Node-local transforms are
    never touched.
    """

    def __init__(self, target: SceneElement, scale_extent: tuple[float, float] = (0.1, 4.0)):
        self.target = target
        self.scale_extent = scale_extent
        self.k = 1.0
        self.x = 0.0
        self.y = 0.0
        self._apply()

    def _apply(self):
        self.target.set(transform=self.transform())

    def transform(self) -> str:
        return (f"translate({format_number(self.x)},{format_number(self.y)}) "
                f"scale({format_number(self.k)})")

    def scale_by(self, factor: float, cx: float = 0.0, cy: float = 0.0) -> float:
        """Zoom around the screen point (cx, cy). Returns the new scale."""
        low, high = self.scale_extent
        new_k = min(high, max(low, self.k * factor))
        # Keep the scene point under (cx, cy) fixed
        px, py = self.invert(cx, cy)
        self.k = new_k
        self.x = cx - px * new_k
        self.y = cy - py * new_k
        self._apply()
        return self.k

    def translate_by(self, dx: float, dy: float):
        self.x += dx
        self.y += dy
        self._apply()

    def reset(self):
        self.k, self.x, self.y = 1.0, 0.0, 0.0
        self._apply()

    def invert(self, x: float, y: float) -> tuple[float, float]:
        """Screen point -> scene point."""
        return ((x - self.x) / self.k, (y - self.y) / self.k)


class Scene:
    """
    Scene container sized to the host element.

    Holds the svg root, the viewport group and its ZoomBehavior.
    """

    def __init__(self, width: float, height: float, background: str = "white",
                 scale_extent: tuple[float, float] = (0.1, 4.0)):
        self.width = width
        self.height = height
        self.background = background
        self.scale_extent = scale_extent
        self.root: SceneElement
        self.viewport: SceneElement
        self.zoom: ZoomBehavior
        self._build_root()

    def _build_root(self):
        self.root = SceneElement(tag="svg", attrs={
            "xmlns": SVG_NS,
            "width": self.width,
            "height": self.height,
            "style": f"background-color: {self.background}",
        })
        self.viewport = self.root.append("g", class_="viewport")
        self.zoom = ZoomBehavior(self.viewport, self.scale_extent)

    def clear(self):
        """Drop every drawable. Safe to call any number of times."""
        self._build_root()

    def resize(self, width: float, height: float, background: str | None = None):
        self.width = width
        self.height = height
        if background is not None:
            self.background = background
        self.clear()

    @property
    def is_empty(self) -> bool:
        return not self.viewport.children

    def layer(self, name: str) -> SceneElement:
        """Top-level group inside the viewport (edges, nodes, labels)."""
        existing = self.viewport.find(name)
        if existing is not None:
            return existing
        return self.viewport.append("g", class_=name)

    def elements_for(self, node_id: str) -> list[SceneElement]:
        return [e for e in self.root.iter() if e.node_id == node_id]

    def dispatch(self, node_id: str, event: str, **data) -> bool:
        """
        Deliver a gesture to the handlers registered for `node_id`.

        Returns True if any handler ran.
        """
        handled = False
        for element in self.elements_for(node_id):
            handler = element.handlers.get(event)
            if handler is not None:
                handler(**data)
                handled = True
        if not handled:
            logger.debug("No %s handler for node %s", event, node_id)
        return handled

    def show_message(self, message: str, color: str = "#e74c3c"):
        """Replace the scene content with a centered message."""
        self.clear()
        self.viewport.append(
            "text",
            text=message,
            class_="message",
            x=self.width / 2,
            y=self.height / 2,
            text_anchor="middle",
            dominant_baseline="middle",
            fill=color,
            font_family="Arial, sans-serif",
            font_size="14px",
        )

    def to_svg(self) -> str:
        element = self.root.to_element()
        return ET.tostring(element, encoding="unicode")
