"""
Core data models for hierarchical diagrams.

These models define the canonical schema:
- Elements (nodes and SVG images) placed on a canvas, carrying tendrils
- Tendrils: typed connection points sitting on an element's border
- Edges connecting an outgoing tendril to an incoming tendril
- Bounding boxes: plain grouping rectangles without tendrils
- Diagrams owning elements, edges and bounding boxes

Field Naming Convention:
- Python attributes and serialized keys are snake_case (`from_node_id`, `border_color`)
- For backward compatibility, the camelCase keys written by the original
  browser editor (`fromNodeId`, `borderColor`, ...) are accepted on input
- Nested diagrams are referenced by id (`Node.inner_diagram_id`); the
  persistence codec inlines them when writing a tree
"""

import re
import uuid
from enum import Enum
from typing import Annotated, Any, Literal, Optional, Union

from pydantic import BaseModel, Field, model_validator


class TendrilType(str, Enum):
    """Direction of a tendril: edges run from outgoing to incoming."""
    INCOMING = "incoming"
    OUTGOING = "outgoing"


class ElementKind(str, Enum):
    """Discriminant of the diagram element sum type."""
    NODE = "node"
    SVG_IMAGE = "svg_image"


class NodeShape(str, Enum):
    """Visual shapes for nodes on the canvas."""
    RECTANGLE = "rectangle"
    CIRCLE = "circle"
    PILL = "pill"
    CYLINDER = "cylinder"
    DIAMOND = "diamond"
    PARALLELOGRAM = "parallelogram"
    DOCUMENT = "document"
    ROUNDED_RECTANGLE = "roundedRectangle"
    HEXAGON = "hexagon"
    TRIANGLE = "triangle"
    TRAPEZOID = "trapezoid"
    TEXT = "text"
    STICKMAN = "stickman"
    CALLOUT = "callout"
    PROCESS = "process"
    TAPE = "tape"
    CUBE = "cube"


DEFAULT_NODE_WIDTH = 100
DEFAULT_NODE_HEIGHT = 60
DEFAULT_DIAGRAM_NAME = "New Diagram"
DEFAULT_INNER_DIAGRAM_NAME = "Inner Diagram"


def _short_id(prefix: str) -> str:
    return f"{prefix}{uuid.uuid4().hex[:8]}"


def generate_node_id() -> str:
    """Generate a unique node ID."""
    return _short_id("n")


def generate_svg_image_id() -> str:
    """Generate a unique SVG image ID."""
    return _short_id("s")


def generate_bounding_box_id() -> str:
    """Generate a unique bounding box ID."""
    return _short_id("b")


def generate_tendril_id() -> str:
    """Generate a unique tendril ID."""
    return _short_id("t")


def generate_edge_id() -> str:
    """Generate a unique edge ID."""
    return _short_id("e")


def generate_diagram_id() -> str:
    """Generate a unique diagram ID."""
    return f"diagram-{uuid.uuid4().hex[:8]}"


_CAMEL_BOUNDARY = re.compile(r"(?<=[a-z0-9])([A-Z])")


def to_snake_case(key: str) -> str:
    """Convert a camelCase key (``fromNodeId``) to snake_case (``from_node_id``)."""
    return _CAMEL_BOUNDARY.sub(r"_\1", key).lower()


class CanvasModel(BaseModel):
    """Base model that accepts the original editor's camelCase keys."""

    @model_validator(mode="before")
    @classmethod
    def convert_legacy_fields(cls, data: Any) -> Any:
        """Convert legacy camelCase keys to snake_case field names."""
        if isinstance(data, dict):
            converted = {}
            for key, value in data.items():
                snake = to_snake_case(key) if isinstance(key, str) else key
                # An explicit snake_case key wins over its legacy spelling
                if snake in converted and snake != key:
                    continue
                converted[snake] = value
            return converted
        return data


class Position(BaseModel):
    """A point; relative to the owning element for tendrils."""
    x: float = 0
    y: float = 0


class Size(BaseModel):
    """Width and height of a rectangle."""
    width: float = Field(default=DEFAULT_NODE_WIDTH, ge=0)
    height: float = Field(default=DEFAULT_NODE_HEIGHT, ge=0)


class Tendril(CanvasModel):
    """A typed connection point on an element's border."""
    id: str = Field(default_factory=generate_tendril_id)
    name: str = "New Tendril"
    position: Position = Field(default_factory=Position)
    type: TendrilType
    exposed: bool = False
    border_color: str = "#000000"
    border_thickness: float = 2
    notes: str = ""
    attributes: dict[str, Any] = Field(default_factory=dict)

    @property
    def is_incoming(self) -> bool:
        return self.type == TendrilType.INCOMING

    @property
    def is_outgoing(self) -> bool:
        return self.type == TendrilType.OUTGOING


class ElementBase(CanvasModel):
    """Shared shape of everything placed on the canvas."""
    id: str
    label: str = ""
    position: Position = Field(default_factory=Position)
    size: Size = Field(default_factory=Size)
    notes: str = ""
    attributes: dict[str, Any] = Field(default_factory=dict)

    def center(self) -> tuple[float, float]:
        """Get the center point of the element."""
        return (
            self.position.x + self.size.width / 2,
            self.position.y + self.size.height / 2,
        )

    def bounds(self) -> tuple[float, float, float, float]:
        """Get the bounding box (x, y, right, bottom)."""
        return (
            self.position.x,
            self.position.y,
            self.position.x + self.size.width,
            self.position.y + self.size.height,
        )


class Node(ElementBase):
    """A shaped node; may own a nested diagram."""
    kind: Literal["node"] = "node"
    id: str = Field(default_factory=generate_node_id)
    label: str = "New Node"
    shape: NodeShape = NodeShape.RECTANGLE
    border_color: str = "#000000"
    fill_color: str = "#ffffff"
    dotted: bool = False
    tendrils: list[Tendril] = Field(default_factory=list)
    # Weak reference, always dereferenced through the registry
    inner_diagram_id: Optional[str] = None

    @model_validator(mode="before")
    @classmethod
    def convert_name_to_label(cls, data: Any) -> Any:
        """The original editor stored a node's label under 'name'."""
        if isinstance(data, dict) and "name" in data and "label" not in data:
            data = dict(data)
            data["label"] = data.pop("name")
        return data

    def get_tendril(self, tendril_id: str) -> Optional[Tendril]:
        for tendril in self.tendrils:
            if tendril.id == tendril_id:
                return tendril
        return None


class SvgImage(ElementBase):
    """An imported SVG drawing placed on the canvas."""
    kind: Literal["svg_image"] = "svg_image"
    id: str = Field(default_factory=generate_svg_image_id)
    svg_content: str = ""
    file_name: str = ""
    tendrils: list[Tendril] = Field(default_factory=list)

    def get_tendril(self, tendril_id: str) -> Optional[Tendril]:
        for tendril in self.tendrils:
            if tendril.id == tendril_id:
                return tendril
        return None


DiagramElement = Annotated[Union[Node, SvgImage], Field(discriminator="kind")]


class BoundingBox(ElementBase):
    """A grouping rectangle. Carries no tendrils and takes part in no edges."""
    id: str = Field(default_factory=generate_bounding_box_id)
    label: str = "Group"
    fill_color: str = "transparent"
    border_color: str = "#666666"
    rounded: bool = False


class Edge(CanvasModel):
    """
    A directed connection from an outgoing tendril to an incoming tendril.

    The edge only references its endpoints; it owns neither the elements nor
    the tendrils. Tendril ids may be compound ids of propagated tendrils.
    """
    id: str = Field(default_factory=generate_edge_id)
    from_node_id: str
    from_tendril_id: str
    to_node_id: str
    to_tendril_id: str
    name: Optional[str] = None
    notes: str = ""
    attributes: dict[str, Any] = Field(default_factory=dict)

    def references_element(self, element_id: str) -> bool:
        return self.from_node_id == element_id or self.to_node_id == element_id

    def references_tendril(self, element_id: str, tendril_id: str) -> bool:
        return (
            (self.from_node_id == element_id and self.from_tendril_id == tendril_id)
            or (self.to_node_id == element_id and self.to_tendril_id == tendril_id)
        )


def _infer_element_kind(data: dict) -> dict:
    if "kind" in data:
        return data
    data = dict(data)
    if "svgContent" in data or "svg_content" in data:
        data["kind"] = ElementKind.SVG_IMAGE.value
    else:
        data["kind"] = ElementKind.NODE.value
    return data


class Diagram(CanvasModel):
    """
    A single diagram level.

    A diagram owns its elements, edges and bounding boxes. Nested diagrams are
    separate Diagram instances reached through `Node.inner_diagram_id`.
    """
    id: str = Field(default_factory=generate_diagram_id)
    name: str = DEFAULT_DIAGRAM_NAME
    elements: list[DiagramElement] = Field(default_factory=list)
    edges: list[Edge] = Field(default_factory=list)
    bounding_boxes: list[BoundingBox] = Field(default_factory=list)
    attributes: dict[str, Any] = Field(default_factory=dict)

    @model_validator(mode="before")
    @classmethod
    def convert_legacy_layout(cls, data: Any) -> Any:
        """Accept the original 'nodes' list and infer missing element kinds."""
        if isinstance(data, dict):
            data = dict(data)
            if "nodes" in data and "elements" not in data:
                data["elements"] = data.pop("nodes")
            if isinstance(data.get("elements"), list):
                data["elements"] = [
                    _infer_element_kind(e) if isinstance(e, dict) else e
                    for e in data["elements"]
                ]
        return data

    def to_json_dict(self) -> dict:
        """Convert to a JSON-serializable dict (nested diagrams by id only)."""
        return self.model_dump(mode="json")

    @classmethod
    def from_json_dict(cls, data: dict) -> "Diagram":
        """Create a Diagram from a JSON dict (handles legacy formats)."""
        return cls.model_validate(data)

    @property
    def nodes(self) -> list[Node]:
        return [e for e in self.elements if e.kind == ElementKind.NODE]

    @property
    def svg_images(self) -> list[SvgImage]:
        return [e for e in self.elements if e.kind == ElementKind.SVG_IMAGE]

    def get_element(self, element_id: str) -> Optional[Union[Node, SvgImage]]:
        """Get an element by ID (O(n))."""
        for element in self.elements:
            if element.id == element_id:
                return element
        return None

    def get_node(self, node_id: str) -> Optional[Node]:
        """Get an element by ID only if it is a Node."""
        element = self.get_element(node_id)
        if element is not None and element.kind == ElementKind.NODE:
            return element
        return None

    def get_bounding_box(self, box_id: str) -> Optional[BoundingBox]:
        for box in self.bounding_boxes:
            if box.id == box_id:
                return box
        return None

    def get_edge(self, edge_id: str) -> Optional[Edge]:
        """Get an edge by ID (O(n))."""
        for edge in self.edges:
            if edge.id == edge_id:
                return edge
        return None

    def find_node_owning(self, diagram_id: str) -> Optional[Node]:
        """Find the node whose nested diagram is `diagram_id`."""
        for node in self.nodes:
            if node.inner_diagram_id == diagram_id:
                return node
        return None


# --- API Request/Response Models ---

class PositionIn(BaseModel):
    x: float
    y: float


class CreateNodeRequest(BaseModel):
    """Request to create a new node."""
    label: str = "New Node"
    x: float = 0
    y: float = 0
    width: float = Field(default=DEFAULT_NODE_WIDTH, ge=0)
    height: float = Field(default=DEFAULT_NODE_HEIGHT, ge=0)
    shape: NodeShape = NodeShape.RECTANGLE
    border_color: str = "#000000"
    fill_color: str = "#ffffff"
    dotted: bool = False
    notes: str = ""
    attributes: dict[str, Any] = Field(default_factory=dict)


class CreateSvgImageRequest(BaseModel):
    """Request to place an SVG image."""
    svg_content: str
    file_name: str = ""
    label: str = ""
    x: float = 0
    y: float = 0
    width: float = Field(default=DEFAULT_NODE_WIDTH, ge=0)
    height: float = Field(default=DEFAULT_NODE_HEIGHT, ge=0)
    notes: str = ""


class UpdateElementRequest(BaseModel):
    """Partial update of a node or SVG image; fields that do not apply are ignored."""
    label: Optional[str] = None
    x: Optional[float] = None
    y: Optional[float] = None
    width: Optional[float] = Field(default=None, ge=0)
    height: Optional[float] = Field(default=None, ge=0)
    shape: Optional[NodeShape] = None
    border_color: Optional[str] = None
    fill_color: Optional[str] = None
    dotted: Optional[bool] = None
    svg_content: Optional[str] = None
    file_name: Optional[str] = None
    notes: Optional[str] = None
    attributes: Optional[dict[str, Any]] = None


class CreateBoundingBoxRequest(BaseModel):
    """Request to create a bounding box."""
    label: str = "Group"
    x: float = 0
    y: float = 0
    width: float = Field(default=200, ge=0)
    height: float = Field(default=150, ge=0)
    fill_color: str = "transparent"
    border_color: str = "#666666"
    rounded: bool = False
    notes: str = ""


class UpdateBoundingBoxRequest(BaseModel):
    """Partial update of a bounding box."""
    label: Optional[str] = None
    x: Optional[float] = None
    y: Optional[float] = None
    width: Optional[float] = Field(default=None, ge=0)
    height: Optional[float] = Field(default=None, ge=0)
    fill_color: Optional[str] = None
    border_color: Optional[str] = None
    rounded: Optional[bool] = None
    notes: Optional[str] = None


class CreateTendrilRequest(BaseModel):
    """
    Request to add a tendril.

    `position` is snapped to the border; without it the tendril is
    auto-placed, preferring the border facing `target` when given.
    """
    type: TendrilType
    name: str = "New Tendril"
    position: Optional[PositionIn] = None
    target: Optional[PositionIn] = None
    exposed: bool = False
    border_color: str = "#000000"
    border_thickness: float = 2
    notes: str = ""


class UpdateTendrilRequest(BaseModel):
    """Partial update of a tendril."""
    name: Optional[str] = None
    position: Optional[PositionIn] = None
    type: Optional[TendrilType] = None
    exposed: Optional[bool] = None
    border_color: Optional[str] = None
    border_thickness: Optional[float] = None
    notes: Optional[str] = None


class CreateEdgeRequest(CanvasModel):
    """Request to connect two tendrils."""
    from_node_id: str
    from_tendril_id: str
    to_node_id: str
    to_tendril_id: str
    name: Optional[str] = None
    notes: str = ""


class UpdateEdgeRequest(BaseModel):
    """Request to update an existing edge; endpoints are immutable."""
    name: Optional[str] = None
    notes: Optional[str] = None
    attributes: Optional[dict[str, Any]] = None


class DiagramInfoRequest(BaseModel):
    """Request to rename the current diagram."""
    name: str


class NodeRefRequest(BaseModel):
    node_id: str


class SelectRequest(BaseModel):
    """Select (or toggle, with multi_select) an item in one category."""
    category: str
    id: Optional[str] = None
    multi_select: bool = False


class SelectTendrilRequest(BaseModel):
    owner_id: str
    tendril_id: str


class ImportDiagramRequest(BaseModel):
    text: str
