"""
Diagram validation - Check a diagram tree for structural issues.

The editor never blocks on these; this is an on-demand report for the
defect classes the editing operations do not prevent on their own
(dangling edges, orphaned nested diagrams, drifted tendrils).
"""

from dataclasses import dataclass
from enum import Enum
from typing import TYPE_CHECKING, Optional

from .exposure import resolve_tendril
from .geometry import is_on_border
from .models import TendrilType

if TYPE_CHECKING:
    from .models import Diagram
    from .registry import DiagramRegistry


class IssueSeverity(str, Enum):
    """Severity levels for validation issues."""
    ERROR = "error"      # Invalid state, must be fixed
    WARNING = "warning"  # Potential problem, should review
    INFO = "info"        # Informational, may be intentional


@dataclass
class ValidationIssue:
    """A single validation issue found in a diagram."""
    severity: IssueSeverity
    message: str
    diagram_id: Optional[str] = None
    element_id: Optional[str] = None
    edge_id: Optional[str] = None
    tendril_id: Optional[str] = None

    def to_dict(self) -> dict:
        """Convert to dictionary for JSON serialization."""
        result = {
            "type": self.severity.value,
            "message": self.message
        }
        for key in ("diagram_id", "element_id", "edge_id", "tendril_id"):
            value = getattr(self, key)
            if value:
                result[key] = value
        return result


def _check_edges(diagram: "Diagram", registry: "DiagramRegistry") -> list[ValidationIssue]:
    issues = []
    seen: set[tuple[str, str, str, str]] = set()

    for edge in diagram.edges:
        endpoints = (
            ("source", edge.from_node_id, edge.from_tendril_id, TendrilType.OUTGOING),
            ("target", edge.to_node_id, edge.to_tendril_id, TendrilType.INCOMING),
        )
        for role, element_id, tendril_id, expected in endpoints:
            if diagram.get_element(element_id) is None:
                issues.append(ValidationIssue(
                    severity=IssueSeverity.ERROR,
                    message=f"Edge references non-existent {role} element: {element_id}",
                    diagram_id=diagram.id,
                    edge_id=edge.id,
                ))
                continue
            tendril = resolve_tendril(registry, diagram, element_id, tendril_id)
            if tendril is None:
                issues.append(ValidationIssue(
                    severity=IssueSeverity.ERROR,
                    message=f"Edge references non-existent {role} tendril: {tendril_id}",
                    diagram_id=diagram.id,
                    element_id=element_id,
                    edge_id=edge.id,
                    tendril_id=tendril_id,
                ))
            elif tendril.type != expected:
                issues.append(ValidationIssue(
                    severity=IssueSeverity.ERROR,
                    message=f"Edge {role} tendril must be {expected.value}, found {tendril.type.value}",
                    diagram_id=diagram.id,
                    element_id=element_id,
                    edge_id=edge.id,
                    tendril_id=tendril_id,
                ))

        owner = diagram.get_element(edge.from_node_id)
        if (
            edge.from_node_id == edge.to_node_id
            and owner is not None
            and owner.get_tendril(edge.from_tendril_id) is not None
            and owner.get_tendril(edge.to_tendril_id) is not None
        ):
            issues.append(ValidationIssue(
                severity=IssueSeverity.WARNING,
                message="Self-referencing edge (element connects to itself)",
                diagram_id=diagram.id,
                element_id=edge.from_node_id,
                edge_id=edge.id,
            ))

        key = (edge.from_node_id, edge.from_tendril_id, edge.to_node_id, edge.to_tendril_id)
        if key in seen:
            issues.append(ValidationIssue(
                severity=IssueSeverity.WARNING,
                message=f"Duplicate edge from {edge.from_node_id} to {edge.to_node_id}",
                diagram_id=diagram.id,
                edge_id=edge.id,
            ))
        else:
            seen.add(key)

    return issues


def _check_tendrils(diagram: "Diagram") -> list[ValidationIssue]:
    issues = []
    for element in diagram.elements:
        for tendril in element.tendrils:
            if not is_on_border(tendril.position, element.size):
                issues.append(ValidationIssue(
                    severity=IssueSeverity.ERROR,
                    message=(
                        f"Tendril at ({tendril.position.x}, {tendril.position.y}) "
                        f"is off the border of {element.id}"
                    ),
                    diagram_id=diagram.id,
                    element_id=element.id,
                    tendril_id=tendril.id,
                ))
    return issues


def _check_nested_references(diagram: "Diagram", registry: "DiagramRegistry") -> list[ValidationIssue]:
    issues = []
    for node in diagram.nodes:
        if node.inner_diagram_id and node.inner_diagram_id not in registry:
            issues.append(ValidationIssue(
                severity=IssueSeverity.ERROR,
                message=f"Node references unregistered nested diagram: {node.inner_diagram_id}",
                diagram_id=diagram.id,
                element_id=node.id,
            ))
    return issues


def validate_diagram(diagram: "Diagram", registry: "DiagramRegistry") -> list[ValidationIssue]:
    """
    Validate a single diagram level.

    Checks for:
    - Edges whose element or tendril no longer exists - ERROR
    - Edges whose endpoint tendrils have the wrong direction - ERROR
    - Tendrils off their element's border - ERROR
    - Nested diagram references missing from the registry - ERROR
    - Self-referencing and duplicate edges - WARNING
    - Empty diagram - INFO
    """
    issues: list[ValidationIssue] = []

    if not diagram.elements and not diagram.bounding_boxes:
        issues.append(ValidationIssue(
            severity=IssueSeverity.INFO,
            message="Diagram has no elements",
            diagram_id=diagram.id,
        ))

    issues.extend(_check_edges(diagram, registry))
    issues.extend(_check_tendrils(diagram))
    issues.extend(_check_nested_references(diagram, registry))
    return issues


def validate_diagram_tree(registry: "DiagramRegistry", root_id: str) -> list[ValidationIssue]:
    """
    Validate every diagram reachable from `root_id`, then look for orphans.

    Registered diagrams that cannot be reached from the root are reported as
    WARNING: they are left behind when the owning node goes away.
    """
    issues: list[ValidationIssue] = []
    reachable = registry.reachable_from(root_id)
    for diagram_id in reachable:
        issues.extend(validate_diagram(registry.get(diagram_id), registry))

    for diagram_id in registry.ids():
        if diagram_id not in reachable:
            issues.append(ValidationIssue(
                severity=IssueSeverity.WARNING,
                message=f"Orphaned nested diagram not reachable from the root: {diagram_id}",
                diagram_id=diagram_id,
            ))
    return issues


def validation_summary(issues: list[ValidationIssue]) -> dict:
    """
    Create a summary of validation issues.

    Args:
        issues: List of validation issues

    Returns:
        Dictionary with counts by severity
    """
    return {
        "total": len(issues),
        "errors": len([i for i in issues if i.severity == IssueSeverity.ERROR]),
        "warnings": len([i for i in issues if i.severity == IssueSeverity.WARNING]),
        "info": len([i for i in issues if i.severity == IssueSeverity.INFO]),
        "valid": len([i for i in issues if i.severity == IssueSeverity.ERROR]) == 0
    }
