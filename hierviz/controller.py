"""
View controller - Owns the active renderer and its lifecycle.

State machine:

    IDLE --render()--> RENDERING --ok--> IDLE
                                 --InvalidShape / unexpected--> ERROR
    ERROR --render()--> RENDERING ...
    IDLE --animated frame raises--> ERROR

Failures never escape `render()`: the scene is cleared, the message is drawn
in the canvas and a RenderFailure is returned. Empty input is not a failure;
the scene is simply left blank.
"""

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Any, Optional

from .builder import GraphModelBuilder
from .config import RenderSettings
from .errors import ConversionError, EmptyInput, InvalidShape
from .formats import Converter, Format, convert
from .models import GraphLayout, PayloadShape, RenderModel, RenderRequest, Theme, ViewKind
from .palette import palette_for
from .renderer import ForceGraphRenderer, InteractiveRenderer, renderer_for
from .scene import Scene
from .simulation import ForceSimulation, SimulationRunner

logger = logging.getLogger(__name__)


class ViewState(str, Enum):
    IDLE = "idle"
    RENDERING = "rendering"
    ERROR = "error"


@dataclass
class HostElement:
    """The container the scene is sized to. Read at render time only."""
    width: float = 0
    height: float = 0


@dataclass(frozen=True)
class RenderFailure:
    """Why a render did not produce a diagram."""
    kind: str  # "invalid_shape", "conversion" or "internal"
    message: str

    def to_dict(self) -> dict:
        return {"kind": self.kind, "message": self.message}


class ViewController:
    """
    Drives one scene: builds the model, picks the renderer, handles teardown.

    Args:
        host: Element the scene is sized to (fallback size when it reports 0)
        settings: Layout/physics constants
        converter: Text -> payload function used by render_text()
        strict: Treat links to missing nodes as invalid
        animate: Tick the force layout on the event loop when one is running;
            when False it is always settled before render() returns
    """

    def __init__(self, host: HostElement | None = None,
                 settings: RenderSettings | None = None,
                 converter: Converter = convert,
                 strict: bool = False,
                 animate: bool = True):
        self.host = host or HostElement()
        self.settings = settings or RenderSettings()
        self.converter = converter
        self.builder = GraphModelBuilder(strict=strict)
        self.animate = animate

        self.state = ViewState.IDLE
        self.scene = Scene(*self._host_size(), scale_extent=self._scale_extent)
        self.renderer: Optional[InteractiveRenderer] = None
        self.runner: Optional[SimulationRunner] = None
        self.model: Optional[RenderModel] = None
        self.request: Optional[RenderRequest] = None
        self.last_failure: Optional[RenderFailure] = None

        # Called with the renderer after every simulation frame
        self.frame_listeners: list = []

    @property
    def _scale_extent(self) -> tuple[float, float]:
        return (self.settings.zoom_min, self.settings.zoom_max)

    def _host_size(self) -> tuple[float, float]:
        width = self.host.width or self.settings.default_width
        height = self.host.height or self.settings.default_height
        return (width, height)

    @property
    def simulation(self) -> Optional[ForceSimulation]:
        return self.renderer.simulation if self.renderer else None

    # --- Rendering ---

    def render(self, payload: Any, view: ViewKind | str = ViewKind.GRAPH,
               theme: Theme | str = Theme.LIGHT,
               graph_layout: GraphLayout | str | None = None) -> Optional[RenderFailure]:
        """
        Render `payload` into the scene, replacing whatever was there.

        Returns:
            None on success (or empty input), RenderFailure otherwise
        """
        width, height = self._host_size()
        try:
            request = RenderRequest(
                view=view,
                graph_layout=graph_layout or GraphLayout.COLUMNS,
                theme=theme,
                width=width,
                height=height,
            )
        except ValueError as e:
            return self._fail("invalid_shape", f"Invalid render request: {e}", _theme(theme))
        return self.render_request(payload, request)

    def render_request(self, payload: Any, request: RenderRequest) -> Optional[RenderFailure]:
        self.teardown()
        self.scene.resize(request.width, request.height, palette_for(request.theme).background)
        self.state = ViewState.RENDERING
        self.request = request
        self.last_failure = None

        try:
            model = self.builder.build(payload)
            renderer = renderer_for(request, self.settings)
            renderer.render(model, self.scene, request)
            self.model = model
            self.renderer = renderer
            if isinstance(renderer, ForceGraphRenderer):
                self._start_simulation(renderer)
        except EmptyInput as e:
            logger.info("Nothing to render: %s", e)
            self.scene.clear()
            self.state = ViewState.IDLE
            return None
        except InvalidShape as e:
            logger.warning("Invalid payload: %s", e)
            return self._fail("invalid_shape", str(e), request.theme)
        except Exception as e:
            logger.exception("Render failed")
            return self._fail("internal", f"Render failed: {e}", request.theme)

        self.state = ViewState.IDLE
        logger.info("Rendered %d nodes as %s view", len(model), request.view.value)
        return None

    def render_text(self, text: str, fmt: Format | str = Format.JSON,
                    view: ViewKind | str = ViewKind.GRAPH,
                    theme: Theme | str = Theme.LIGHT,
                    graph_layout: GraphLayout | str | None = None,
                    converter: Converter | None = None) -> Optional[RenderFailure]:
        """Convert source text with the converter, then render it."""
        if not text or not text.strip():
            return self.render(None, view, theme, graph_layout)

        shape = PayloadShape.TREE if _value(view) == ViewKind.TREE.value else PayloadShape.GRAPH
        try:
            payload = (converter or self.converter)(text, fmt, shape)
        except ConversionError as e:
            logger.warning("Conversion failed: %s", e)
            return self._fail("conversion", str(e), _theme(theme))
        return self.render(payload, view, theme, graph_layout)

    def _fail(self, kind: str, message: str, theme: Theme) -> RenderFailure:
        failure = RenderFailure(kind=kind, message=message)
        self.teardown()
        self.scene.show_message(message, palette_for(theme).error)
        self.state = ViewState.ERROR
        self.last_failure = failure
        return failure

    # --- Simulation ---

    def _start_simulation(self, renderer: ForceGraphRenderer):
        self.runner = SimulationRunner(
            renderer.simulation, self._on_tick, self.settings.frame_interval,
            on_error=self._on_simulation_error,
        )
        renderer.on_interaction = self._on_interaction
        if not (self.animate and self.runner.wake()):
            # No event loop: settle before returning
            ticks = self.runner.settle()
            logger.debug("Settled force layout in %d ticks", ticks)

    def _on_tick(self, simulation: ForceSimulation):
        if isinstance(self.renderer, ForceGraphRenderer):
            self.renderer.on_tick(simulation)
        for listener in self.frame_listeners:
            listener(self.renderer)

    def _on_simulation_error(self, error: Exception):
        theme = self.request.theme if self.request else Theme.LIGHT
        self._fail("internal", f"Render failed: {error}", theme)

    def _on_interaction(self, node_id: str):
        runner = self.runner
        if runner is None or (self.animate and runner.wake()):
            return
        sim = runner.simulation
        if sim.alpha_target >= sim.alpha_min:
            # Dragging without an event loop: advance one frame per gesture
            sim.tick()
            self._on_tick(sim)
        else:
            runner.settle()

    # --- Interaction ---

    def dispatch(self, node_id: str, event: str, **data) -> bool:
        """Deliver a pointer gesture (mouseover, dragstart, ...) to a node."""
        if self.renderer is None:
            return False
        return self.scene.dispatch(node_id, event, **data)

    def zoom(self, factor: float, cx: float | None = None, cy: float | None = None) -> float:
        width, height = self.scene.width, self.scene.height
        cx = width / 2 if cx is None else cx
        cy = height / 2 if cy is None else cy
        return self.scene.zoom.scale_by(factor, cx, cy)

    def pan(self, dx: float, dy: float):
        self.scene.zoom.translate_by(dx, dy)

    def frame(self) -> dict[str, tuple[float, float]]:
        return self.renderer.frame() if self.renderer else {}

    def to_svg(self) -> str:
        return self.scene.to_svg()

    def teardown(self):
        """Stop any live simulation and drop the scene. Idempotent."""
        if self.runner is not None:
            self.runner.stop()
            self.runner = None
        if self.renderer is not None:
            self.renderer.teardown()
            self.renderer = None
        self.model = None
        self.scene.clear()
        self.state = ViewState.IDLE


def _value(option: Any) -> str:
    return option.value if isinstance(option, Enum) else str(option)


def _theme(theme: Any) -> Theme:
    try:
        return Theme(theme)
    except ValueError:
        return Theme.LIGHT
