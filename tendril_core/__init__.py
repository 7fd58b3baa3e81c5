"""
Tendril Diagram Core - Shared models, geometry, navigation, selection and persistence.

This module provides the core functionality used by the editor service, the
HTTP API and the agent tools, ensuring a single source of truth for all
diagram logic.
"""

from .models import (
    # Enums
    TendrilType,
    ElementKind,
    NodeShape,
    # Core models
    Position,
    Size,
    Tendril,
    Node,
    SvgImage,
    BoundingBox,
    Edge,
    Diagram,
    DiagramElement,
    # Request models (for API)
    CreateNodeRequest,
    CreateSvgImageRequest,
    UpdateElementRequest,
    CreateBoundingBoxRequest,
    UpdateBoundingBoxRequest,
    CreateTendrilRequest,
    UpdateTendrilRequest,
    CreateEdgeRequest,
    UpdateEdgeRequest,
    DiagramInfoRequest,
    NodeRefRequest,
    SelectRequest,
    SelectTendrilRequest,
    ImportDiagramRequest,
)

from .geometry import (
    constrain_to_border,
    redistribute_after_resize,
    find_available_position,
    rect_contains_point,
    rect_contains_rect,
    is_on_border,
    elements_in_bounding_box,
)
from .exposure import get_exposed_tendrils, compound_tendril_id, resolve_tendril
from .registry import DiagramRegistry, Navigator
from .selection import Selection, SelectionCategory, TendrilSelection
from .codec import serialize, deserialize, DiagramDecodeError, DecodedTree
from .validation import validate_diagram, validate_diagram_tree, validation_summary, ValidationIssue, IssueSeverity

__all__ = [
    # Enums
    "TendrilType",
    "ElementKind",
    "NodeShape",
    # Models
    "Position",
    "Size",
    "Tendril",
    "Node",
    "SvgImage",
    "BoundingBox",
    "Edge",
    "Diagram",
    "DiagramElement",
    # Request models
    "CreateNodeRequest",
    "CreateSvgImageRequest",
    "UpdateElementRequest",
    "CreateBoundingBoxRequest",
    "UpdateBoundingBoxRequest",
    "CreateTendrilRequest",
    "UpdateTendrilRequest",
    "CreateEdgeRequest",
    "UpdateEdgeRequest",
    "DiagramInfoRequest",
    "NodeRefRequest",
    "SelectRequest",
    "SelectTendrilRequest",
    "ImportDiagramRequest",
    # Geometry
    "constrain_to_border",
    "redistribute_after_resize",
    "find_available_position",
    "rect_contains_point",
    "rect_contains_rect",
    "is_on_border",
    "elements_in_bounding_box",
    # Exposure
    "get_exposed_tendrils",
    "compound_tendril_id",
    "resolve_tendril",
    # Registry & navigation
    "DiagramRegistry",
    "Navigator",
    # Selection
    "Selection",
    "SelectionCategory",
    "TendrilSelection",
    # Persistence
    "serialize",
    "deserialize",
    "DiagramDecodeError",
    "DecodedTree",
    # Validation
    "validate_diagram",
    "validate_diagram_tree",
    "validation_summary",
    "ValidationIssue",
    "IssueSeverity",
]
