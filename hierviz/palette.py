"""
Color tables.

Node color is a plain lookup from label to color with one default entry, so
an unrecognized label never breaks a render.
"""

from dataclasses import dataclass

from .builder import infer_label
from .models import NodeLabel, Theme

DEFAULT_COLOR = "#34495e"
ROOT_COLOR = "#2c3e50"

LABEL_COLORS: dict[str, str] = {
    NodeLabel.OBJECT.value: "#2980b9",
    NodeLabel.ARRAY.value: "#8e44ad",
    NodeLabel.KEY.value: "#16a085",
    NodeLabel.INDEX.value: "#7f8c8d",
    NodeLabel.STRING.value: "#27ae60",
    NodeLabel.NUMBER.value: "#e74c3c",
    NodeLabel.BOOLEAN.value: "#f39c12",
    NodeLabel.NULL.value: "#95a5a6",
    NodeLabel.VALUE.value: DEFAULT_COLOR,
}


@dataclass(frozen=True)
class ThemePalette:
    """Colors that depend on the light/dark theme."""
    background: str
    edge: str
    node_stroke: str
    text: str
    value_text: str
    tree_edge: str
    tree_stroke: str
    highlight: str
    error: str


THEMES: dict[Theme, ThemePalette] = {
    Theme.LIGHT: ThemePalette(
        background="white",
        edge="#555",
        node_stroke="#444",
        text="#000",
        value_text="#555",
        tree_edge="#ccc",
        tree_stroke="#fff",
        highlight="#66a3ff",
        error="#c0392b",
    ),
    Theme.DARK: ThemePalette(
        background="#1e1e1e",
        edge="#666",
        node_stroke="#555",
        text="#fff",
        value_text="#fff",
        tree_edge="#666",
        tree_stroke="#555",
        highlight="#8ab4f8",
        error="#ff6b6b",
    ),
}


def color_for_label(label: str) -> str:
    return LABEL_COLORS.get(label, DEFAULT_COLOR)


def node_color(label: str, depth: int = 1, value: str | None = None,
               is_leaf: bool = False) -> str:
    """
    Fill color for a node.

    The root gets its own color. Leaves whose label carries no semantic tag
    fall back to a label guessed from the value text (quoted -> String, ...).
    """
    if depth == 0:
        return ROOT_COLOR
    if label not in LABEL_COLORS and is_leaf and value is not None:
        label = infer_label(value)
    return color_for_label(label)


def palette_for(theme: Theme | str) -> ThemePalette:
    return THEMES[Theme(theme)]
