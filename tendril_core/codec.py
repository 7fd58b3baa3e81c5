"""
Persistence codec - diagram trees to and from JSON text.

The serialized form is one JSON document: the root diagram, with every
node that owns a nested diagram carrying it inline under `inner_diagram`,
recursively. In memory the nesting is by id through the registry, so
encoding walks the registry and decoding rebuilds a fresh registry.
"""

import json
from dataclasses import dataclass
from typing import Any

from pydantic import ValidationError

from .models import Diagram
from .registry import DiagramRegistry

INNER_DIAGRAM_KEYS = ("inner_diagram", "innerDiagram")


class DiagramDecodeError(ValueError):
    """Raised when serialized text is not a valid diagram tree."""


@dataclass
class DecodedTree:
    """Result of decoding: the root diagram and a registry holding the whole tree."""
    root: Diagram
    registry: DiagramRegistry


def diagram_to_tree(diagram: Diagram, registry: DiagramRegistry) -> dict:
    """Convert a diagram and its nested diagrams to one nested dict."""
    data = diagram.to_json_dict()
    for element, element_data in zip(diagram.elements, data["elements"]):
        inner_id = getattr(element, "inner_diagram_id", None)
        if inner_id is None:
            continue
        inner = registry.get(inner_id)
        if inner is None:
            # Unregistered references are dropped so the text stays loadable
            element_data["inner_diagram_id"] = None
        else:
            element_data["inner_diagram"] = diagram_to_tree(inner, registry)
    return data


def serialize(registry: DiagramRegistry, root_id: str, indent: int = 2) -> str:
    """
    Serialize the tree rooted at `root_id` to JSON text.

    Raises:
        ValueError: If `root_id` is not registered
    """
    root = registry.get(root_id)
    if root is None:
        raise ValueError(f"Diagram not registered: {root_id}")
    return json.dumps(diagram_to_tree(root, registry), indent=indent)


def _decode_diagram(data: Any, registry: DiagramRegistry, path: str) -> Diagram:
    if not isinstance(data, dict):
        raise DiagramDecodeError(f"{path}: expected an object, got {type(data).__name__}")

    data = dict(data)
    elements = data.get("elements", data.get("nodes", []))
    if not isinstance(elements, list):
        raise DiagramDecodeError(f"{path}.elements: expected a list")

    stripped = []
    inner_ids: dict[int, str] = {}
    for index, element in enumerate(elements):
        if not isinstance(element, dict):
            stripped.append(element)
            continue
        element = dict(element)
        inner_data = None
        for key in INNER_DIAGRAM_KEYS:
            value = element.pop(key, None)
            if value is not None:
                inner_data = value
        if inner_data is not None:
            inner = _decode_diagram(inner_data, registry, f"{path}.elements[{index}].inner_diagram")
            inner_ids[index] = inner.id
        stripped.append(element)

    data.pop("nodes", None)
    data["elements"] = stripped

    try:
        diagram = Diagram.model_validate(data)
    except ValidationError as e:
        raise DiagramDecodeError(f"{path}: {e}") from e

    # Nesting must form a tree: every reference is backed by its own inlined diagram
    for index, element in enumerate(diagram.elements):
        inner_id = inner_ids.get(index)
        if inner_id is None:
            dangling = getattr(element, "inner_diagram_id", None)
            if dangling is not None:
                raise DiagramDecodeError(
                    f"{path}.elements[{index}]: nested diagram {dangling} is not inlined"
                )
            continue
        if element.kind != "node":
            raise DiagramDecodeError(
                f"{path}.elements[{index}]: only nodes may own a nested diagram"
            )
        element.inner_diagram_id = inner_id

    if diagram.id in registry:
        raise DiagramDecodeError(f"{path}: duplicate diagram id {diagram.id}")
    registry.register(diagram)
    return diagram


def deserialize(text: str) -> DecodedTree:
    """
    Parse JSON text into a diagram tree.

    Every nested diagram is registered in a new registry. A node may only
    reference a nested diagram that is inlined beneath it, which rules out
    cycles and shared subtrees. Nothing outside the returned value is
    touched, so a failure leaves callers' state as is.

    Raises:
        DiagramDecodeError: If the text is not JSON or not a diagram tree
    """
    try:
        data = json.loads(text)
    except (json.JSONDecodeError, TypeError) as e:
        raise DiagramDecodeError(f"Invalid JSON: {e}") from e

    registry = DiagramRegistry()
    root = _decode_diagram(data, registry, "diagram")
    return DecodedTree(root=root, registry=registry)
