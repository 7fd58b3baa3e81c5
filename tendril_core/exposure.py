"""
Tendril exposure - republish tendrils from a nested diagram at its parent node.

A tendril flagged `exposed` inside a node's nested diagram appears on the node
itself as a propagated tendril with a compound id (`<owner id>-<tendril id>`).
The list is derived on every call, never stored, so toggling `exposed`
inside the nested diagram is visible at the parent immediately.
"""

import logging
from typing import TYPE_CHECKING, Optional

from .models import ElementKind

if TYPE_CHECKING:
    from .models import Diagram, Node, SvgImage, Tendril
    from .registry import DiagramRegistry

logger = logging.getLogger(__name__)

COMPOUND_ID_SEPARATOR = "-"


def compound_tendril_id(owner_id: str, tendril_id: str) -> str:
    """Build the id a propagated tendril carries at the parent level."""
    return f"{owner_id}{COMPOUND_ID_SEPARATOR}{tendril_id}"


def _owner_label(element: "Node | SvgImage") -> str:
    if element.label:
        return element.label
    if element.kind == ElementKind.SVG_IMAGE and element.file_name:
        return element.file_name
    return element.id


def get_exposed_tendrils(registry: "DiagramRegistry", node: "Node") -> list["Tendril"]:
    """
    Collect the exposed tendrils of a node's nested diagram.

    Returns new Tendril records, one per exposed interior tendril, with a
    compound id and a name prefixed by the interior owner's label. Position
    and every other field are copied unchanged.
    """
    if node.inner_diagram_id is None:
        return []
    inner = registry.get(node.inner_diagram_id)
    if inner is None:
        logger.warning(
            "Node %s references unregistered diagram %s", node.id, node.inner_diagram_id
        )
        return []

    propagated = []
    for element in inner.elements:
        for tendril in element.tendrils:
            if not tendril.exposed:
                continue
            propagated.append(tendril.model_copy(
                update={
                    "id": compound_tendril_id(element.id, tendril.id),
                    "name": f"{_owner_label(element)}: {tendril.name}",
                },
                deep=True,
            ))
    return propagated


def find_propagated_tendril(
    registry: "DiagramRegistry",
    node: "Node",
    tendril_id: str,
) -> Optional["Tendril"]:
    """Resolve a compound id by re-running the propagator and matching ids."""
    for tendril in get_exposed_tendrils(registry, node):
        if tendril.id == tendril_id:
            return tendril
    return None


def resolve_tendril(
    registry: "DiagramRegistry",
    diagram: "Diagram",
    owner_id: str,
    tendril_id: str,
) -> Optional["Tendril"]:
    """
    Find a tendril on an element of `diagram`, own or propagated.

    Own tendrils are checked first; propagated ones only exist on nodes with
    a nested diagram.
    """
    element = diagram.get_element(owner_id)
    if element is None:
        return None
    tendril = element.get_tendril(tendril_id)
    if tendril is not None:
        return tendril
    if element.kind == ElementKind.NODE:
        return find_propagated_tendril(registry, element, tendril_id)
    return None
