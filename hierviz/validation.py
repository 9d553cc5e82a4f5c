"""
Payload validation - Check graph payloads for structural issues.

Used by the model builder to decide whether a payload can be rendered.
ERROR issues make the payload an InvalidShape; WARNING issues mark edges
that are dropped before layout.
"""

from dataclasses import dataclass
from enum import Enum
from typing import TYPE_CHECKING, Sequence

if TYPE_CHECKING:
    from .models import GraphEdge, GraphNode


class IssueSeverity(str, Enum):
    """Severity levels for validation issues."""
    ERROR = "error"      # Payload cannot be rendered
    WARNING = "warning"  # Offending edge is dropped, render continues
    INFO = "info"


@dataclass
class ValidationIssue:
    """A single validation issue found in a payload."""
    severity: IssueSeverity
    message: str
    node_id: str | None = None
    edge_index: int | None = None  # Position in the payload's links list

    def to_dict(self) -> dict:
        """Convert to dictionary for JSON serialization."""
        result = {
            "type": self.severity.value,
            "message": self.message
        }
        if self.node_id:
            result["node_id"] = self.node_id
        if self.edge_index is not None:
            result["edge_index"] = self.edge_index
        return result


def validate_graph(
    nodes: Sequence["GraphNode"],
    edges: Sequence["GraphEdge"],
    strict: bool = False
) -> list[ValidationIssue]:
    """
    Validate a nodes+links payload and return a list of issues.

    Checks for:
    - Duplicate node ids - ERROR
    - Parent references to missing nodes - ERROR
    - Not exactly one root - ERROR
    - Depth not equal to parent depth + 1 (or root depth not 0) - ERROR
    - Dangling edges (source/target doesn't exist) - WARNING, ERROR if strict
    - Self-referencing edges - WARNING
    - Duplicate edges (same source->target) - WARNING

    Cycles are not looked for; inputs are trees/DAGs by construction.

    Args:
        nodes: Nodes with depth and parent_id already filled in
        edges: Links in payload order
        strict: Treat dangling edges as errors

    Returns:
        List of ValidationIssue objects
    """
    issues: list[ValidationIssue] = []

    # Duplicate ids
    by_id: dict[str, "GraphNode"] = {}
    for node in nodes:
        if node.id in by_id:
            issues.append(ValidationIssue(
                severity=IssueSeverity.ERROR,
                message=f"Duplicate node id: {node.id}",
                node_id=node.id
            ))
        else:
            by_id[node.id] = node

    # Parent references
    for node in nodes:
        if node.parent_id is not None and node.parent_id not in by_id:
            issues.append(ValidationIssue(
                severity=IssueSeverity.ERROR,
                message=f"Node {node.id} references non-existent parent: {node.parent_id}",
                node_id=node.id
            ))

    # Exactly one root
    roots = [n.id for n in nodes if n.parent_id is None]
    if len(roots) != 1:
        issues.append(ValidationIssue(
            severity=IssueSeverity.ERROR,
            message=f"Expected exactly one root node, found {len(roots)}"
                    + (f": {', '.join(roots[:5])}" if roots else "")
        ))

    # Depth invariant
    for node in nodes:
        if node.parent_id is None:
            if node.depth not in (None, 0):
                issues.append(ValidationIssue(
                    severity=IssueSeverity.ERROR,
                    message=f"Root node {node.id} has depth {node.depth}, expected 0",
                    node_id=node.id
                ))
            continue
        parent = by_id.get(node.parent_id)
        if parent is None or parent.depth is None or node.depth is None:
            continue
        if node.depth != parent.depth + 1:
            issues.append(ValidationIssue(
                severity=IssueSeverity.ERROR,
                message=f"Node {node.id} has depth {node.depth}, "
                        f"expected {parent.depth + 1} (parent {parent.id})",
                node_id=node.id
            ))

    # Edge references
    seen_pairs: set[tuple[str, str]] = set()
    for i, edge in enumerate(edges):
        missing = [end for end in (edge.source_id, edge.target_id) if end not in by_id]
        if missing:
            issues.append(ValidationIssue(
                severity=IssueSeverity.ERROR if strict else IssueSeverity.WARNING,
                message=f"Edge {edge.source_id}->{edge.target_id} references "
                        f"non-existent node: {', '.join(missing)}",
                edge_index=i
            ))
            continue

        if edge.source_id == edge.target_id:
            issues.append(ValidationIssue(
                severity=IssueSeverity.WARNING,
                message="Self-referencing edge (node points to itself)",
                node_id=edge.source_id,
                edge_index=i
            ))
            continue

        pair = (edge.source_id, edge.target_id)
        if pair in seen_pairs:
            issues.append(ValidationIssue(
                severity=IssueSeverity.WARNING,
                message=f"Duplicate edge from {edge.source_id} to {edge.target_id}",
                edge_index=i
            ))
        else:
            seen_pairs.add(pair)

    return issues


def dropped_edges(issues: list[ValidationIssue]) -> set[int]:
    """Indexes of edges flagged for removal."""
    return {
        i.edge_index for i in issues
        if i.edge_index is not None and i.severity == IssueSeverity.WARNING
    }


def validation_summary(issues: list[ValidationIssue]) -> dict:
    """
    Create a summary of validation issues.

    Args:
        issues: List of validation issues

    Returns:
        Dictionary with counts by severity
    """
    errors = len([i for i in issues if i.severity == IssueSeverity.ERROR])
    return {
        "total": len(issues),
        "errors": errors,
        "warnings": len([i for i in issues if i.severity == IssueSeverity.WARNING]),
        "info": len([i for i in issues if i.severity == IssueSeverity.INFO]),
        "valid": errors == 0
    }
