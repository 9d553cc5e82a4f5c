"""
hierviz - Hierarchical data visualization engine.

Turns a nodes+links or name/children payload into an interactive 2-D
diagram: layered column graph, force-directed graph or tidy tree.
"""

from .models import (
    # Enums
    NodeLabel,
    ViewKind,
    GraphLayout,
    Theme,
    PayloadShape,
    # Payload models
    GraphNode,
    GraphEdge,
    TreeNode,
    # Render models
    RenderModel,
    RenderRequest,
)

from .errors import VisualizerError, InvalidShape, EmptyInput, ConversionError
from .config import RenderSettings, settings_from_env
from .validation import validate_graph, ValidationIssue, IssueSeverity
from .builder import GraphModelBuilder, build_model
from .layout import LayoutResult, EdgePath, column_layout, tree_layout
from .simulation import ForceSimulation, SimulationRunner, CancellationToken
from .scene import Scene, SceneElement, ZoomBehavior
from .renderer import (
    InteractiveRenderer,
    ColumnGraphRenderer,
    ForceGraphRenderer,
    TreeRenderer,
    renderer_for,
)
from .controller import ViewController, ViewState, HostElement, RenderFailure
from .formats import Format, convert

__version__ = "0.3.0"

__all__ = [
    # Enums
    "NodeLabel",
    "ViewKind",
    "GraphLayout",
    "Theme",
    "PayloadShape",
    # Models
    "GraphNode",
    "GraphEdge",
    "TreeNode",
    "RenderModel",
    "RenderRequest",
    # Errors
    "VisualizerError",
    "InvalidShape",
    "EmptyInput",
    "ConversionError",
    # Config
    "RenderSettings",
    "settings_from_env",
    # Validation
    "validate_graph",
    "ValidationIssue",
    "IssueSeverity",
    # Builder
    "GraphModelBuilder",
    "build_model",
    # Layout
    "LayoutResult",
    "EdgePath",
    "column_layout",
    "tree_layout",
    # Simulation
    "ForceSimulation",
    "SimulationRunner",
    "CancellationToken",
    # Rendering
    "Scene",
    "SceneElement",
    "ZoomBehavior",
    "InteractiveRenderer",
    "ColumnGraphRenderer",
    "ForceGraphRenderer",
    "TreeRenderer",
    "renderer_for",
    # Controller
    "ViewController",
    "ViewState",
    "HostElement",
    "RenderFailure",
    # Converter
    "Format",
    "convert",
]
