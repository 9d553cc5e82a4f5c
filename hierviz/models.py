"""
Core data models for the visualization engine.

These models define the payload shapes the engine accepts and the render
model it builds from them:
- GraphNode / GraphEdge: the nodes+links shape
- TreeNode: the name/children shape
- RenderModel: the immutable, normalized snapshot every layout engine reads
- RenderRequest: the explicit parameter struct for one render call

Field Naming Convention:
- Python attributes are snake_case (`parent_id`, `is_leaf`, `source_id`)
- Payloads produced by converters use `parent`, `is_leaf`, `source`, `target`;
  camelCase (`parentId`, `isLeaf`, `sourceId`) and `from`/`to` are accepted
  on input and converted
"""

from collections import defaultdict
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator


class NodeLabel(str, Enum):
    """Semantic type tags converters attach to nodes."""
    OBJECT = "Object"
    ARRAY = "Array"
    KEY = "Key"
    INDEX = "Index"
    STRING = "String"
    NUMBER = "Number"
    BOOLEAN = "Boolean"
    NULL = "Null"
    VALUE = "Value"


class ViewKind(str, Enum):
    """Which renderer the controller activates."""
    TREE = "tree"
    GRAPH = "graph"


class GraphLayout(str, Enum):
    """Node placement used by the graph view."""
    COLUMNS = "columns"  # Layered by depth, deterministic
    FORCE = "force"      # Force-directed, interactive


class Theme(str, Enum):
    LIGHT = "light"
    DARK = "dark"


class PayloadShape(str, Enum):
    """The two payload shapes a converter can produce."""
    GRAPH = "graph"
    TREE = "tree"


def _rename(data: dict, aliases: dict[str, str]) -> dict:
    """Copy `data` with alias keys renamed to their canonical field names."""
    data = dict(data)
    for alias, name in aliases.items():
        if alias in data and name not in data:
            data[name] = data.pop(alias)
    return data


class GraphNode(BaseModel):
    """A node of the nodes+links shape."""
    model_config = ConfigDict(frozen=True)

    id: str
    label: str = NodeLabel.VALUE.value
    value: str = ""
    depth: Optional[int] = Field(default=None, ge=0)
    parent_id: Optional[str] = None
    is_leaf: Optional[bool] = None
    key: Optional[str] = None  # Member name or index under the parent

    @model_validator(mode='before')
    @classmethod
    def convert_legacy_fields(cls, data: Any) -> Any:
        """Accept the converter field names and camelCase variants."""
        if isinstance(data, dict):
            data = _rename(data, {
                'parent': 'parent_id',
                'parentId': 'parent_id',
                'isLeaf': 'is_leaf',
                'name': 'key',
            })
        return data

    @field_validator('id', 'parent_id', 'key', mode='before')
    @classmethod
    def stringify_ids(cls, value: Any) -> Any:
        if isinstance(value, (int, float)) and not isinstance(value, bool):
            return str(value)
        return value

    @field_validator('value', mode='before')
    @classmethod
    def stringify_value(cls, value: Any) -> Any:
        if value is None:
            return ""
        if isinstance(value, bool):
            return "true" if value else "false"
        if not isinstance(value, str):
            return str(value)
        return value

    @property
    def display_name(self) -> str:
        """Name shown on the node: its key when known, else its label."""
        return self.key if self.key is not None else self.label


class GraphEdge(BaseModel):
    """
    A directed parent -> child link.

    Uses `source_id` and `target_id` as canonical field names.
    Accepts `source`/`target`, `sourceId`/`targetId` and `from`/`to` on input.
    """
    model_config = ConfigDict(frozen=True)

    source_id: str
    target_id: str

    @model_validator(mode='before')
    @classmethod
    def convert_legacy_fields(cls, data: Any) -> Any:
        if isinstance(data, dict):
            data = _rename(data, {
                'source': 'source_id',
                'sourceId': 'source_id',
                'from': 'source_id',
                'target': 'target_id',
                'targetId': 'target_id',
                'to': 'target_id',
            })
        return data

    @field_validator('source_id', 'target_id', mode='before')
    @classmethod
    def stringify_ids(cls, value: Any) -> Any:
        if isinstance(value, (int, float)) and not isinstance(value, bool):
            return str(value)
        return value


class TreeNode(BaseModel):
    """A node of the name/children shape. Exactly one of value/children is set."""
    model_config = ConfigDict(frozen=True)

    name: str
    value: Optional[str] = None
    children: Optional[list["TreeNode"]] = None

    @model_validator(mode='before')
    @classmethod
    def convert_null_value(cls, data: Any) -> Any:
        """A leaf given as `"value": null` shows its JSON spelling."""
        if not isinstance(data, dict) or data.get("children") is not None:
            return data
        if "value" in data and data["value"] is None:
            data = {**data, "value": "null"}
        return data

    @field_validator('name', 'value', mode='before')
    @classmethod
    def stringify(cls, value: Any) -> Any:
        if isinstance(value, bool):
            return "true" if value else "false"
        if isinstance(value, (int, float)):
            return str(value)
        return value

    @model_validator(mode='after')
    def check_value_or_children(self) -> "TreeNode":
        if self.value is not None and self.children is not None:
            raise ValueError(f"Tree node '{self.name}' has both value and children")
        if self.value is None and self.children is None:
            raise ValueError(f"Tree node '{self.name}' has neither value nor children")
        return self

    @property
    def is_leaf(self) -> bool:
        return self.children is None


@dataclass(frozen=True)
class RenderModel:
    """
    Normalized, immutable snapshot of one payload.

    Layout engines read it and keep their own mutable working copies.
    """
    nodes: tuple[GraphNode, ...]
    edges: tuple[GraphEdge, ...]
    root_id: str
    source_shape: PayloadShape = PayloadShape.GRAPH
    issues: tuple = ()
    _index: dict = field(init=False, repr=False, compare=False)
    _children: dict = field(init=False, repr=False, compare=False)

    def __post_init__(self):
        index = {n.id: n for n in self.nodes}
        children: dict[str, list[str]] = defaultdict(list)
        for node in self.nodes:
            if node.parent_id is not None:
                children[node.parent_id].append(node.id)
        object.__setattr__(self, '_index', index)
        object.__setattr__(self, '_children', dict(children))

    def node(self, node_id: str) -> Optional[GraphNode]:
        """Get a node by ID (O(1) lookup)."""
        return self._index.get(node_id)

    def children_of(self, node_id: str) -> list[GraphNode]:
        """Children in model (pre-)order."""
        return [self._index[c] for c in self._children.get(node_id, [])]

    def nodes_by_depth(self) -> dict[int, list[GraphNode]]:
        buckets: dict[int, list[GraphNode]] = defaultdict(list)
        for node in self.nodes:
            buckets[node.depth].append(node)
        return dict(buckets)

    @property
    def root(self) -> GraphNode:
        return self._index[self.root_id]

    @property
    def max_depth(self) -> int:
        return max((n.depth for n in self.nodes), default=0)

    def __len__(self) -> int:
        return len(self.nodes)


class RenderRequest(BaseModel):
    """Everything one render pass needs besides the payload."""
    model_config = ConfigDict(frozen=True)

    view: ViewKind = ViewKind.GRAPH
    graph_layout: GraphLayout = GraphLayout.COLUMNS
    theme: Theme = Theme.LIGHT
    width: float = Field(default=900, gt=0)
    height: float = Field(default=600, gt=0)

    @property
    def uses_simulation(self) -> bool:
        return self.view == ViewKind.GRAPH and self.graph_layout == GraphLayout.FORCE
