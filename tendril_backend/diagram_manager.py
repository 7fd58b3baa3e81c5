"""
Diagram Manager - Editor state for a tree of nested diagrams.

This module implements:
- Registry-backed diagram tree with drill-down navigation
- Element, bounding box, tendril and edge operations on the current diagram
- Tendril geometry side effects (border snapping, redistribution on resize)
- Selection bookkeeping
- Text persistence through an injected persistence port
- Change callbacks carrying the full state snapshot

Operations whose preconditions do not hold (unknown id, wrong tendril
direction, nothing to leave) change nothing and return None/False.
"""

import logging
from typing import Any, Callable, Optional, Union

from tendril_core.codec import DiagramDecodeError, deserialize, serialize
from tendril_core.exposure import get_exposed_tendrils, resolve_tendril
from tendril_core.geometry import (
    constrain_to_border,
    elements_in_bounding_box,
    find_available_position,
    redistribute_after_resize,
)
from tendril_core.models import (
    DEFAULT_DIAGRAM_NAME,
    BoundingBox,
    Diagram,
    Edge,
    ElementKind,
    Node,
    Position,
    Size,
    SvgImage,
    Tendril,
    TendrilType,
)
from tendril_core.registry import DiagramRegistry, Navigator
from tendril_core.selection import Selection, SelectionCategory
from tendril_core.validation import ValidationIssue, validate_diagram_tree

from .persistence import PersistencePort

logger = logging.getLogger(__name__)

Element = Union[Node, SvgImage]
PositionLike = Union[Position, dict, tuple]

# Attributes never set through a generic update
_PROTECTED_FIELDS = {"id", "kind", "tendrils", "inner_diagram_id", "position", "size"}


def _checked_changes(model, changes: dict, protected=_PROTECTED_FIELDS) -> dict:
    """
    Validate generic field changes against the model before anything is written.

    Unknown, protected and None-valued keys are dropped. Returns the coerced
    values (enum members rather than raw strings).

    Raises:
        pydantic.ValidationError: If a value does not fit its field
    """
    fields = {
        key: value for key, value in changes.items()
        if value is not None and key not in protected and key in type(model).model_fields
    }
    if not fields:
        return {}
    validated = type(model).model_validate({**model.model_dump(), **fields})
    return {key: getattr(validated, key) for key in fields}


def _moved(item, kwargs: dict) -> tuple[Optional[Position], Optional[Size]]:
    """Pop x/y/width/height from kwargs and build the new position and size, if any."""
    x = kwargs.pop("x", None)
    y = kwargs.pop("y", None)
    width = kwargs.pop("width", None)
    height = kwargs.pop("height", None)

    position = None
    if x is not None or y is not None:
        position = Position(
            x=item.position.x if x is None else x,
            y=item.position.y if y is None else y,
        )
    size = None
    if width is not None or height is not None:
        size = Size(
            width=item.size.width if width is None else width,
            height=item.size.height if height is None else height,
        )
    return position, size


def _as_position(value: PositionLike) -> Position:
    if isinstance(value, Position):
        return value
    if isinstance(value, dict):
        return Position(x=value["x"], y=value["y"])
    x, y = value
    return Position(x=x, y=y)


def _placement(kwargs: dict) -> dict:
    """Fold flat x/y/width/height keyword arguments into position and size."""
    fields = dict(kwargs)
    x = fields.pop("x", 0)
    y = fields.pop("y", 0)
    fields.setdefault("position", Position(x=x, y=y))
    size = {key: fields.pop(key) for key in ("width", "height") if key in fields}
    if size:
        fields.setdefault("size", Size(**size))
    return fields


class DiagramManager:
    """
    Manages a tree of diagrams, navigation within it, selection and persistence.

    The registry is the single writable store: the current diagram is always
    fetched through it, and nested diagrams are reached by id.

    Every public mutation finishes all dependent work (tendril redistribution,
    edge cascades, selection pruning) before change callbacks run, so
    observers never see a half-applied change.
    """

    def __init__(
        self,
        persistence: Optional[PersistencePort] = None,
        history_hook: Optional[Callable[[str], None]] = None,
    ):
        self._persistence = persistence
        self._history_hook = history_hook
        self._dirty = False
        self._on_change_callbacks: list[Callable[[dict], None]] = []
        self._selection = Selection()
        self._registry = DiagramRegistry()
        root = self._registry.create_diagram(DEFAULT_DIAGRAM_NAME)
        self._navigator = Navigator(self._registry, root.id)

        if persistence is not None:
            self._load_initial()

    def _load_initial(self):
        text = self._persistence.load()
        if not text:
            return
        try:
            decoded = deserialize(text)
        except DiagramDecodeError as e:
            logger.warning("Ignoring stored diagram that failed to decode: %s", e)
            return
        self._install(decoded.registry, decoded.root)

    def _install(self, registry: DiagramRegistry, root: Diagram):
        self._registry = registry
        self._navigator = Navigator(registry, root.id)
        self._selection.clear_all()

    # --- Properties ---

    @property
    def diagram(self) -> Diagram:
        """Get the current diagram."""
        return self._navigator.current

    @property
    def root_diagram(self) -> Diagram:
        return self._navigator.root

    @property
    def registry(self) -> DiagramRegistry:
        return self._registry

    @property
    def navigator(self) -> Navigator:
        return self._navigator

    @property
    def selection(self) -> Selection:
        return self._selection

    @property
    def depth(self) -> int:
        """Number of ancestor diagrams above the current one."""
        return self._navigator.depth

    @property
    def is_dirty(self) -> bool:
        """Check if there are unsaved changes."""
        return self._dirty

    @property
    def can_undo(self) -> bool:
        return False

    @property
    def can_redo(self) -> bool:
        return False

    # --- Change Callbacks ---

    def on_change(self, callback: Callable[[dict], None]):
        """Register a callback receiving the state snapshot after each change."""
        self._on_change_callbacks.append(callback)

    def _notify_change(self):
        """Notify all registered callbacks of a change."""
        if not self._on_change_callbacks:
            return
        state = self.get_state()
        for callback in self._on_change_callbacks:
            callback(state)

    def _changed(self):
        self._dirty = True
        self._notify_change()

    # --- History hook ---

    def _save_to_history(self):
        """Hand the pre-mutation tree to the history hook, if one is installed."""
        if self._history_hook is None:
            return
        self._history_hook(self.export_text())

    # --- Diagram lifecycle ---

    def new_diagram(self, name: str = DEFAULT_DIAGRAM_NAME) -> Diagram:
        """Replace everything with a new empty root diagram."""
        registry = DiagramRegistry()
        root = registry.create_diagram(name)
        self._install(registry, root)
        self._dirty = False
        logger.info("Created diagram %s", root.id)
        self._notify_change()
        return root

    def rename_diagram(self, name: str) -> Diagram:
        """Rename the current diagram."""
        self._save_to_history()
        diagram = self._navigator.rename(name)
        self._changed()
        return diagram

    def get_diagram_name(self, diagram_id: str) -> Optional[str]:
        diagram = self._registry.get(diagram_id)
        return diagram.name if diagram is not None else None

    def list_diagrams(self) -> list[dict]:
        """Every registered diagram with its element and edge counts."""
        reachable = set(self._registry.reachable_from(self._navigator.root_id))
        return [
            {
                "id": d.id,
                "name": d.name,
                "elements": len(d.elements),
                "edges": len(d.edges),
                "bounding_boxes": len(d.bounding_boxes),
                "reachable": d.id in reachable,
            }
            for d in self._registry
        ]

    # --- Navigation ---

    def create_nested_diagram(self, node_id: str) -> Optional[Diagram]:
        """Give a node of the current diagram a nested diagram (or return its existing one)."""
        node = self.diagram.get_node(node_id)
        if node is None:
            logger.debug("create_nested_diagram ignored: no node %s", node_id)
            return None
        if node.inner_diagram_id is not None and node.inner_diagram_id in self._registry:
            return self._registry.get(node.inner_diagram_id)

        self._save_to_history()
        inner = self._navigator.create_nested_diagram(node_id)
        self._changed()
        return inner

    def enter(self, node_id: str) -> bool:
        """Drill into a node's nested diagram."""
        if not self._navigator.enter(node_id):
            return False
        self._selection.clear_all()
        self._notify_change()
        return True

    def leave(self) -> bool:
        """Return to the parent diagram."""
        if not self._navigator.leave():
            return False
        self._selection.clear_all()
        self._notify_change()
        return True

    def current_title(self) -> str:
        return self._navigator.title()

    # --- Element Operations ---

    def get_element(self, element_id: str) -> Optional[Element]:
        return self.diagram.get_element(element_id)

    def add_node(self, **kwargs) -> Node:
        """Add a new node to the current diagram."""
        self._save_to_history()
        node = Node(**_placement(kwargs))
        self.diagram.elements.append(node)
        self._changed()
        return node

    def add_svg_image(self, svg_content: str, **kwargs) -> SvgImage:
        """Place an SVG image on the current diagram."""
        self._save_to_history()
        image = SvgImage(svg_content=svg_content, **_placement(kwargs))
        self.diagram.elements.append(image)
        self._changed()
        return image

    def update_element(self, element_id: str, **kwargs) -> Optional[Element]:
        """
        Update a node or SVG image.

        `x`/`y` move the element; `width`/`height` resize it and respace its
        tendrils so they stay on the outline. Other keys are set when the
        element has such a field; None values are skipped.

        Raises:
            pydantic.ValidationError: If a value does not fit its field; the
                element is left untouched
        """
        element = self.diagram.get_element(element_id)
        if element is None:
            logger.debug("update_element ignored: no element %s", element_id)
            return None

        position, size = _moved(element, kwargs)
        changes = _checked_changes(element, kwargs)

        self._save_to_history()
        if position is not None:
            element.position = position
        if size is not None:
            element.size = size
            redistribute_after_resize(element, size.width, size.height)
        for key, value in changes.items():
            setattr(element, key, value)

        self._changed()
        return element

    def delete_element(self, element_id: str) -> bool:
        """
        Delete an element and every edge touching it.

        A deleted node's nested diagrams are released from the registry.
        """
        diagram = self.diagram
        element = diagram.get_element(element_id)
        if element is None:
            logger.debug("delete_element ignored: no element %s", element_id)
            return False

        self._save_to_history()

        diagram.elements = [e for e in diagram.elements if e.id != element_id]
        removed_edges = [e for e in diagram.edges if e.references_element(element_id)]
        diagram.edges = [e for e in diagram.edges if not e.references_element(element_id)]

        self._selection.forget(element_id)
        for edge in removed_edges:
            self._selection.forget(edge.id)

        if element.kind == ElementKind.NODE and element.inner_diagram_id:
            released = self._registry.release_subtree(element.inner_diagram_id)
            logger.debug("Released nested diagrams %s with node %s", released, element_id)

        self._changed()
        return True

    # --- Bounding Box Operations ---

    def get_bounding_box(self, box_id: str) -> Optional[BoundingBox]:
        return self.diagram.get_bounding_box(box_id)

    def add_bounding_box(self, **kwargs) -> BoundingBox:
        """Add a grouping rectangle to the current diagram."""
        self._save_to_history()
        box = BoundingBox(**_placement(kwargs))
        self.diagram.bounding_boxes.append(box)
        self._changed()
        return box

    def update_bounding_box(self, box_id: str, **kwargs) -> Optional[BoundingBox]:
        box = self.diagram.get_bounding_box(box_id)
        if box is None:
            logger.debug("update_bounding_box ignored: no bounding box %s", box_id)
            return None

        position, size = _moved(box, kwargs)
        changes = _checked_changes(box, kwargs)

        self._save_to_history()
        if position is not None:
            box.position = position
        if size is not None:
            box.size = size
        for key, value in changes.items():
            setattr(box, key, value)

        self._changed()
        return box

    def delete_bounding_box(self, box_id: str) -> bool:
        diagram = self.diagram
        if diagram.get_bounding_box(box_id) is None:
            logger.debug("delete_bounding_box ignored: no bounding box %s", box_id)
            return False

        self._save_to_history()
        diagram.bounding_boxes = [b for b in diagram.bounding_boxes if b.id != box_id]
        self._selection.forget(box_id)
        self._changed()
        return True

    def elements_in_bounding_box(self, box_id: str) -> list[Element]:
        """Elements lying fully inside a bounding box of the current diagram."""
        box = self.diagram.get_bounding_box(box_id)
        if box is None:
            return []
        return elements_in_bounding_box(self.diagram, box)

    # --- Tendril Operations ---

    def get_tendril(self, owner_id: str, tendril_id: str) -> Optional[Tendril]:
        """Find a tendril of an element, including tendrils propagated to a node."""
        return resolve_tendril(self._registry, self.diagram, owner_id, tendril_id)

    def get_exposed_tendrils(self, node_id: str) -> list[Tendril]:
        """Tendrils exposed from inside the node's nested diagram, recomputed on each call."""
        node = self.diagram.get_node(node_id)
        if node is None:
            return []
        return get_exposed_tendrils(self._registry, node)

    def add_tendril(
        self,
        owner_id: str,
        tendril_type: Union[TendrilType, str],
        position: Optional[PositionLike] = None,
        target: Optional[PositionLike] = None,
        **kwargs,
    ) -> Optional[Tendril]:
        """
        Add a tendril to a node or SVG image.

        An explicit `position` (relative to the element) is snapped onto the
        border. Otherwise a free border slot is chosen, facing `target`
        (absolute canvas coordinates) when one is given.
        """
        element = self.diagram.get_element(owner_id)
        if element is None:
            logger.debug("add_tendril ignored: no element %s", owner_id)
            return None

        if position is not None:
            requested = _as_position(position)
            placed = constrain_to_border(requested.x, requested.y, element.size)
        else:
            propagated = []
            if element.kind == ElementKind.NODE:
                propagated = get_exposed_tendrils(self._registry, element)
            placed = find_available_position(
                element,
                target_position=_as_position(target) if target is not None else None,
                extra_tendrils=propagated,
            )

        self._save_to_history()
        tendril = Tendril(type=TendrilType(tendril_type), position=placed, **kwargs)
        element.tendrils.append(tendril)
        self._changed()
        return tendril

    def update_tendril(self, owner_id: str, tendril_id: str, **kwargs) -> Optional[Tendril]:
        """
        Update one of an element's own tendrils.

        A new position is snapped onto the border. Changing the direction
        drops the edges attached to the tendril, since they would no longer
        run from outgoing to incoming.
        """
        element = self.diagram.get_element(owner_id)
        tendril = element.get_tendril(tendril_id) if element is not None else None
        if tendril is None:
            logger.debug("update_tendril ignored: no tendril %s on %s", tendril_id, owner_id)
            return None

        position = kwargs.pop("position", None)
        if position is not None:
            requested = _as_position(position)
            position = constrain_to_border(requested.x, requested.y, element.size)
        changes = _checked_changes(tendril, kwargs, protected={"id", "position"})

        self._save_to_history()
        if position is not None:
            tendril.position = position

        new_type = changes.pop("type", None)
        if new_type is not None and new_type != tendril.type:
            tendril.type = new_type
            self._drop_tendril_edges(owner_id, tendril_id)

        for key, value in changes.items():
            setattr(tendril, key, value)

        self._changed()
        return tendril

    def delete_tendril(self, owner_id: str, tendril_id: str) -> bool:
        """Delete a tendril and every edge attached to that (owner, tendril) pair."""
        element = self.diagram.get_element(owner_id)
        if element is None or element.get_tendril(tendril_id) is None:
            logger.debug("delete_tendril ignored: no tendril %s on %s", tendril_id, owner_id)
            return False

        self._save_to_history()
        element.tendrils = [t for t in element.tendrils if t.id != tendril_id]
        self._drop_tendril_edges(owner_id, tendril_id)
        self._selection.forget_tendril(owner_id, tendril_id)
        self._changed()
        return True

    def _drop_tendril_edges(self, owner_id: str, tendril_id: str):
        diagram = self.diagram
        removed = [e for e in diagram.edges if e.references_tendril(owner_id, tendril_id)]
        diagram.edges = [e for e in diagram.edges if not e.references_tendril(owner_id, tendril_id)]
        for edge in removed:
            self._selection.forget(edge.id)

    # --- Edge Operations ---

    def get_edge(self, edge_id: str) -> Optional[Edge]:
        return self.diagram.get_edge(edge_id)

    def can_connect(
        self,
        from_node_id: str,
        from_tendril_id: str,
        to_node_id: str,
        to_tendril_id: str,
    ) -> bool:
        """
        Check whether an edge between two tendrils is allowed.

        The source must be outgoing and the target incoming. An element may
        not connect to itself unless one end is a propagated tendril.
        """
        diagram = self.diagram
        source = resolve_tendril(self._registry, diagram, from_node_id, from_tendril_id)
        target = resolve_tendril(self._registry, diagram, to_node_id, to_tendril_id)
        if source is None or target is None:
            return False
        if source.type != TendrilType.OUTGOING or target.type != TendrilType.INCOMING:
            return False
        if from_node_id == to_node_id:
            owner = diagram.get_element(from_node_id)
            both_own = (
                owner.get_tendril(from_tendril_id) is not None
                and owner.get_tendril(to_tendril_id) is not None
            )
            if both_own:
                return False
        return True

    def add_edge(
        self,
        from_node_id: str,
        from_tendril_id: str,
        to_node_id: str,
        to_tendril_id: str,
        name: Optional[str] = None,
        notes: str = "",
    ) -> Optional[Edge]:
        """Connect an outgoing tendril to an incoming one; ignored if not allowed."""
        if not self.can_connect(from_node_id, from_tendril_id, to_node_id, to_tendril_id):
            logger.debug(
                "add_edge ignored: %s/%s -> %s/%s is not connectable",
                from_node_id, from_tendril_id, to_node_id, to_tendril_id,
            )
            return None

        self._save_to_history()
        edge = Edge(
            from_node_id=from_node_id,
            from_tendril_id=from_tendril_id,
            to_node_id=to_node_id,
            to_tendril_id=to_tendril_id,
            name=name,
            notes=notes,
        )
        self.diagram.edges.append(edge)
        self._changed()
        return edge

    def update_edge(self, edge_id: str, **kwargs) -> Optional[Edge]:
        """Update an edge's name, notes or attributes."""
        edge = self.diagram.get_edge(edge_id)
        if edge is None:
            logger.debug("update_edge ignored: no edge %s", edge_id)
            return None

        self._save_to_history()
        for key in ("name", "notes", "attributes"):
            value = kwargs.get(key)
            if value is not None:
                setattr(edge, key, value)
        self._changed()
        return edge

    def delete_edge(self, edge_id: str) -> bool:
        """Delete an edge."""
        diagram = self.diagram
        if diagram.get_edge(edge_id) is None:
            logger.debug("delete_edge ignored: no edge %s", edge_id)
            return False

        self._save_to_history()
        diagram.edges = [e for e in diagram.edges if e.id != edge_id]
        self._selection.forget(edge_id)
        self._changed()
        return True

    # --- Selection ---

    def _category_of(self, item_id: str) -> Optional[SelectionCategory]:
        diagram = self.diagram
        element = diagram.get_element(item_id)
        if element is not None:
            if element.kind == ElementKind.NODE:
                return SelectionCategory.NODE
            return SelectionCategory.SVG_IMAGE
        if diagram.get_bounding_box(item_id) is not None:
            return SelectionCategory.BOUNDING_BOX
        if diagram.get_edge(item_id) is not None:
            return SelectionCategory.EDGE
        return None

    def select(
        self,
        category: Union[SelectionCategory, str],
        item_id: Optional[str] = None,
        multi_select: bool = False,
    ) -> bool:
        """
        Select an item of a category, or clear the category with item_id None.

        Returns False (and changes nothing) if `item_id` is not an item of
        that category in the current diagram.
        """
        category = SelectionCategory(category)
        if item_id is not None and self._category_of(item_id) != category:
            logger.debug("select ignored: %s is not a %s", item_id, category.value)
            return False
        self._selection.select(category, item_id, multi_select)
        self._notify_change()
        return True

    def select_item(self, item_id: str, multi_select: bool = False) -> bool:
        """Select any item of the current diagram, inferring its category."""
        category = self._category_of(item_id)
        if category is None:
            logger.debug("select_item ignored: unknown id %s", item_id)
            return False
        return self.select(category, item_id, multi_select)

    def select_tendril(self, owner_id: str, tendril_id: str) -> bool:
        """Select a tendril together with its owning element."""
        category = self._category_of(owner_id)
        if category not in (SelectionCategory.NODE, SelectionCategory.SVG_IMAGE):
            logger.debug("select_tendril ignored: %s does not carry tendrils", owner_id)
            return False
        if self.get_tendril(owner_id, tendril_id) is None:
            logger.debug("select_tendril ignored: no tendril %s on %s", tendril_id, owner_id)
            return False
        self._selection.select_tendril(category, owner_id, tendril_id)
        self._notify_change()
        return True

    def clear_selection(self):
        self._selection.clear_all()
        self._notify_change()

    # --- Persistence ---

    def export_text(self) -> str:
        """Serialize the whole tree, from the root diagram down."""
        return serialize(self._registry, self._navigator.root_id)

    def import_text(self, text: str) -> Diagram:
        """
        Replace the tree with one decoded from text and show its root.

        Raises:
            DiagramDecodeError: If the text is malformed; nothing changes then
        """
        decoded = deserialize(text)
        self._save_to_history()
        self._install(decoded.registry, decoded.root)
        self._dirty = True
        logger.info(
            "Imported diagram %s (%d diagrams)", decoded.root.id, len(decoded.registry)
        )
        self._notify_change()
        return decoded.root

    def save(self) -> str:
        """
        Write the tree to the persistence port.

        Raises:
            ValueError: If no persistence port is configured
        """
        if self._persistence is None:
            raise ValueError("No persistence configured")
        text = self.export_text()
        self._persistence.save(text)
        self._dirty = False
        self._notify_change()
        return text

    def load(self) -> Optional[Diagram]:
        """
        Reload the tree from the persistence port.

        Returns None when nothing has been saved yet.

        Raises:
            ValueError: If no persistence port is configured
            DiagramDecodeError: If the stored text is malformed
        """
        if self._persistence is None:
            raise ValueError("No persistence configured")
        text = self._persistence.load()
        if not text:
            return None
        root = self.import_text(text)
        self._dirty = False
        return root

    # --- Validation ---

    def validate(self) -> list[ValidationIssue]:
        return validate_diagram_tree(self._registry, self._navigator.root_id)

    # --- State ---

    def get_state(self) -> dict[str, Any]:
        """Get the full current state for API responses and change callbacks."""
        diagram = self.diagram
        return {
            "diagram": diagram.to_json_dict(),
            "root_diagram_id": self._navigator.root_id,
            "navigation": {
                "stack": self._navigator.stack_ids,
                "depth": self._navigator.depth,
                "title": self._navigator.title(),
                "can_leave": self._navigator.can_leave,
            },
            "selection": self._selection.to_dict(),
            "exposed_tendrils": {
                node.id: [
                    t.model_dump(mode="json")
                    for t in get_exposed_tendrils(self._registry, node)
                ]
                for node in diagram.nodes
                if node.inner_diagram_id
            },
            "is_dirty": self._dirty,
            "can_undo": self.can_undo,
            "can_redo": self.can_redo,
        }
