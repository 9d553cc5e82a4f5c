"""
Visualization Session - One client's view state.

Wraps a ViewController and implements:
- Render calls from a payload or from source text
- Pointer gestures forwarded to the active renderer
- Pan/zoom of the viewport
- Frame callbacks for real-time position streaming
"""

import logging
from typing import Any, Callable, Optional

from hierviz.config import RenderSettings
from hierviz.controller import HostElement, RenderFailure, ViewController

logger = logging.getLogger(__name__)

# Wire gesture names -> scene event names
GESTURES = {
    "drag_start": "dragstart",
    "drag": "drag",
    "drag_end": "dragend",
    "hover": "mouseover",
    "unhover": "mouseout",
}


class VisualizationSession:
    """
    Holds the live scene for one client.

    Features:
    - Host size taken from each render call (fallback to the defaults)
    - Frame callbacks fired after every simulation tick
    - Full state snapshot (SVG, positions, transform) on demand
    """

    def __init__(self, settings: RenderSettings | None = None, animate: bool = True):
        self.host = HostElement()
        self.controller = ViewController(host=self.host, settings=settings, animate=animate)
        self._on_frame_callbacks: list[Callable] = []
        self.controller.frame_listeners.append(self._notify_frame)

    # --- Frame callbacks ---

    def on_frame(self, callback: Callable):
        """Register a callback to be called after every simulation frame."""
        self._on_frame_callbacks.append(callback)

    def _notify_frame(self, renderer):
        for callback in self._on_frame_callbacks:
            try:
                callback()
            except Exception:
                logger.exception("Frame callback failed")

    # --- Rendering ---

    def render(self, payload: Any = None, text: str | None = None, fmt: str = "json",
               view: str = "graph", theme: str = "light", graph_layout: str | None = None,
               width: float = 0, height: float = 0) -> Optional[RenderFailure]:
        """Render a payload or source text. Returns the failure, if any."""
        self.host.width = width
        self.host.height = height
        if text is not None:
            return self.controller.render_text(
                text, fmt=fmt, view=view, theme=theme, graph_layout=graph_layout
            )
        return self.controller.render(payload, view=view, theme=theme, graph_layout=graph_layout)

    @property
    def simulating(self) -> bool:
        runner = self.controller.runner
        return runner is not None and runner.running

    # --- Gestures ---

    def gesture(self, kind: str, node_id: str, x: float | None = None,
                y: float | None = None) -> bool:
        """
        Forward a pointer gesture to the node's handlers.

        Returns:
            True if the node handled it
        """
        event = GESTURES[kind]
        data = {}
        if x is not None and y is not None:
            data = {"x": x, "y": y}
        return self.controller.dispatch(node_id, event, **data)

    def zoom(self, factor: float, cx: float | None = None, cy: float | None = None) -> str:
        self.controller.zoom(factor, cx, cy)
        return self.controller.scene.zoom.transform()

    def pan(self, dx: float, dy: float) -> str:
        self.controller.pan(dx, dy)
        return self.controller.scene.zoom.transform()

    # --- State ---

    def frame_message(self) -> dict:
        sim = self.controller.simulation
        return {
            "type": "frame",
            "positions": _positions(self.controller.frame()),
            "alpha": sim.alpha if sim is not None else 0.0,
            "settled": sim.settled if sim is not None else True,
        }

    def get_state(self) -> dict:
        """Get the full view state as JSON-serializable dict."""
        controller = self.controller
        failure = controller.last_failure
        model = controller.model
        return {
            "state": controller.state.value,
            "view": controller.request.view.value if controller.request else None,
            "nodes": len(model) if model is not None else 0,
            "edges": len(model.edges) if model is not None else 0,
            "positions": _positions(controller.frame()),
            "transform": controller.scene.zoom.transform(),
            "simulating": self.simulating,
            "svg": controller.to_svg(),
            "error": failure.to_dict() if failure is not None else None,
        }

    def close(self):
        self.controller.teardown()


def _positions(frame: dict[str, tuple[float, float]]) -> dict[str, list[float]]:
    return {node_id: [round(x, 2), round(y, 2)] for node_id, (x, y) in frame.items()}
