"""
Graph model builder - Normalize payloads into a RenderModel.

Accepts either payload shape a converter produces:
- nodes+links: {"nodes": [...], "links": [...]}
- name/children: {"name": ..., "children": [...]} or {"name": ..., "value": ...}

and returns an immutable RenderModel. The payload itself is never mutated.
"""

import json
import logging
import re
from collections import defaultdict, deque
from typing import Any

from pydantic import BaseModel, ValidationError

from .errors import EmptyInput, InvalidShape
from .models import (
    GraphEdge,
    GraphNode,
    NodeLabel,
    PayloadShape,
    RenderModel,
    TreeNode,
)
from .validation import IssueSeverity, dropped_edges, validate_graph

logger = logging.getLogger(__name__)

_NUMBER_RE = re.compile(r"^-?\d+(\.\d+)?([eE][+-]?\d+)?$")


def infer_label(value: str | None) -> str:
    """Guess a semantic label from a leaf's display text."""
    if value is None:
        return NodeLabel.OBJECT.value
    text = value.strip()
    if len(text) >= 2 and text[0] == text[-1] == '"':
        return NodeLabel.STRING.value
    if text in ("true", "false"):
        return NodeLabel.BOOLEAN.value
    if text in ("null", "~", ""):
        return NodeLabel.NULL.value
    if _NUMBER_RE.match(text):
        return NodeLabel.NUMBER.value
    return NodeLabel.VALUE.value


def detect_shape(payload: dict) -> PayloadShape | None:
    """Which payload shape `payload` claims to be, if any."""
    if "nodes" in payload and ("links" in payload or "edges" in payload):
        return PayloadShape.GRAPH
    if "name" in payload and ("children" in payload or "value" in payload):
        return PayloadShape.TREE
    return None


def _first_error(exc: ValidationError) -> str:
    error = exc.errors()[0]
    location = ".".join(str(part) for part in error.get("loc", ()))
    message = error.get("msg", str(exc))
    return f"{location}: {message}" if location else message


class GraphModelBuilder:
    """
    Builds RenderModels from decoded payloads.

    In strict mode a link to a missing node makes the payload invalid;
    otherwise such links are dropped with a warning.
    """

    def __init__(self, strict: bool = False):
        self.strict = strict

    def build(self, payload: Any) -> RenderModel:
        """
        Normalize `payload` into a RenderModel.

        Raises:
            EmptyInput: Nothing to render
            InvalidShape: Payload matches neither shape or breaks an invariant
        """
        data = self._decode(payload)
        shape = detect_shape(data)
        if shape is PayloadShape.GRAPH:
            return self._build_graph(data)
        if shape is PayloadShape.TREE:
            return self._build_tree(data)
        raise InvalidShape(
            "Payload matches neither the nodes/links shape nor the name/children shape"
        )

    # --- Decoding ---

    def _decode(self, payload: Any) -> dict:
        if payload is None:
            raise EmptyInput("No payload")

        if isinstance(payload, bytes):
            payload = payload.decode("utf-8")

        if isinstance(payload, str):
            if not payload.strip():
                raise EmptyInput("Empty payload")
            try:
                payload = json.loads(payload)
            except json.JSONDecodeError as e:
                raise InvalidShape(f"Payload is not valid JSON: {e}") from e

        if isinstance(payload, BaseModel):
            payload = payload.model_dump(exclude_none=True)

        if not isinstance(payload, dict):
            raise InvalidShape(
                f"Payload must be an object, got {type(payload).__name__}"
            )
        if not payload:
            raise EmptyInput("Empty payload")
        return payload

    # --- nodes+links ---

    def _build_graph(self, data: dict) -> RenderModel:
        raw_nodes = data["nodes"]
        raw_links = data["links"] if "links" in data else data["edges"]
        if not isinstance(raw_nodes, list) or not isinstance(raw_links, list):
            raise InvalidShape("'nodes' and 'links' must both be arrays")
        if not raw_nodes:
            raise EmptyInput("Payload has no nodes")

        try:
            nodes = [GraphNode.model_validate(n) for n in raw_nodes]
            edges = [GraphEdge.model_validate(e) for e in raw_links]
        except ValidationError as e:
            raise InvalidShape(f"Invalid node or link ({_first_error(e)})") from e

        nodes = self._derive_structure(nodes, edges)

        issues = validate_graph(nodes, edges, strict=self.strict)
        errors = [i for i in issues if i.severity == IssueSeverity.ERROR]
        if errors:
            message = errors[0].message
            if len(errors) > 1:
                message += f" (and {len(errors) - 1} more)"
            raise InvalidShape(message, issues)

        unreachable = [n.id for n in nodes if n.depth is None]
        if unreachable:
            raise InvalidShape(
                f"Node {unreachable[0]} is not reachable from the root", issues
            )

        drop = dropped_edges(issues)
        if drop:
            logger.warning("Dropped %d unusable edge(s) out of %d", len(drop), len(edges))
        kept = tuple(e for i, e in enumerate(edges) if i not in drop)

        root_id = next(n.id for n in nodes if n.parent_id is None)
        return RenderModel(
            nodes=tuple(nodes),
            edges=kept,
            root_id=root_id,
            source_shape=PayloadShape.GRAPH,
            issues=tuple(issues),
        )

    def _derive_structure(
        self,
        nodes: list[GraphNode],
        edges: list[GraphEdge]
    ) -> list[GraphNode]:
        """
        Fill in parent_id, depth and is_leaf where the payload left them out.

        Payloads from the legacy force-only shape carry bare ids; their
        hierarchy is recovered from the links.
        """
        ids = {n.id for n in nodes}
        usable = [
            e for e in edges
            if e.source_id in ids and e.target_id in ids and e.source_id != e.target_id
        ]

        incoming: dict[str, str] = {}
        outgoing: set[str] = set()
        for edge in usable:
            incoming.setdefault(edge.target_id, edge.source_id)
            outgoing.add(edge.source_id)

        # Parents: keep given ones (an explicit null marks a root), adopt the
        # first incoming link only when the node omitted its parent
        parents = {
            n.id: n.parent_id if "parent_id" in n.model_fields_set else incoming.get(n.id)
            for n in nodes
        }

        # Depths: BFS from the roots, explicit depths win
        children: dict[str, list[str]] = defaultdict(list)
        for node_id, parent_id in parents.items():
            if parent_id is not None:
                children[parent_id].append(node_id)

        given = {n.id: n.depth for n in nodes}
        depths: dict[str, int] = {}
        queue = deque()
        for node_id, parent_id in parents.items():
            if parent_id is None:
                depths[node_id] = given[node_id] if given[node_id] is not None else 0
                queue.append(node_id)
        while queue:
            current = queue.popleft()
            for child in children.get(current, []):
                if child in depths:
                    continue
                depths[child] = given[child] if given[child] is not None else depths[current] + 1
                queue.append(child)

        result = []
        for node in nodes:
            update = {}
            if node.parent_id is None and parents[node.id] is not None:
                update["parent_id"] = parents[node.id]
            if node.depth is None and node.id in depths:
                update["depth"] = depths[node.id]
            if node.is_leaf is None:
                update["is_leaf"] = node.id not in outgoing and node.id not in children
            result.append(node.model_copy(update=update) if update else node)
        return result

    # --- name/children ---

    def _build_tree(self, data: dict) -> RenderModel:
        try:
            root = TreeNode.model_validate(data)
        except ValidationError as e:
            raise InvalidShape(f"Invalid tree ({_first_error(e)})") from e

        nodes: list[GraphNode] = []
        edges: list[GraphEdge] = []
        counter = 0

        # Pre-order walk; ids are assigned in visit order starting at "1"
        stack: list[tuple[TreeNode, int, str | None]] = [(root, 0, None)]
        while stack:
            tree_node, depth, parent_id = stack.pop()
            counter += 1
            node_id = str(counter)

            if tree_node.is_leaf:
                label = infer_label(tree_node.value)
                value = tree_node.value
            else:
                label = _composite_label(tree_node)
                value = f"{len(tree_node.children)} items"

            nodes.append(GraphNode(
                id=node_id,
                label=label,
                value=value,
                depth=depth,
                parent_id=parent_id,
                is_leaf=tree_node.is_leaf,
                key=tree_node.name,
            ))
            if parent_id is not None:
                edges.append(GraphEdge(source_id=parent_id, target_id=node_id))

            for child in reversed(tree_node.children or []):
                stack.append((child, depth + 1, node_id))

        return RenderModel(
            nodes=tuple(nodes),
            edges=tuple(edges),
            root_id=nodes[0].id,
            source_shape=PayloadShape.TREE,
        )


def _composite_label(node: TreeNode) -> str:
    names = [c.name for c in node.children or []]
    if names and names == [str(i) for i in range(len(names))]:
        return NodeLabel.ARRAY.value
    return NodeLabel.OBJECT.value


def build_model(payload: Any, strict: bool = False) -> RenderModel:
    """Build a RenderModel with a one-off builder."""
    return GraphModelBuilder(strict=strict).build(payload)
