"""
Diagram registry and navigation.

The registry is the arena of every diagram: root and nested diagrams are all
stored here by id, and every other structure (node back-references, the
navigation stack) holds ids only. Reads always go back through the registry
so that edits made at one nesting level are visible from every other.
"""

import logging
from typing import Iterator, Optional

from .models import DEFAULT_DIAGRAM_NAME, DEFAULT_INNER_DIAGRAM_NAME, Diagram, Node

logger = logging.getLogger(__name__)


class DiagramRegistry:
    """Id-keyed store of every diagram ever created or loaded."""

    def __init__(self):
        self._diagrams: dict[str, Diagram] = {}

    def __contains__(self, diagram_id: str) -> bool:
        return diagram_id in self._diagrams

    def __len__(self) -> int:
        return len(self._diagrams)

    def __iter__(self) -> Iterator[Diagram]:
        return iter(list(self._diagrams.values()))

    def ids(self) -> list[str]:
        return list(self._diagrams)

    def get(self, diagram_id: str) -> Optional[Diagram]:
        return self._diagrams.get(diagram_id)

    def register(self, diagram: Diagram) -> Diagram:
        """Store (or replace) a diagram under its id."""
        self._diagrams[diagram.id] = diagram
        return diagram

    def create_diagram(self, name: str = DEFAULT_DIAGRAM_NAME) -> Diagram:
        """Allocate, register and return an empty diagram."""
        diagram = Diagram(name=name)
        return self.register(diagram)

    def unregister(self, diagram_id: str) -> Optional[Diagram]:
        return self._diagrams.pop(diagram_id, None)

    def release_subtree(self, diagram_id: str) -> list[str]:
        """
        Unregister a diagram and every diagram nested below it.

        Returns:
            Ids of the diagrams removed, parents before children
        """
        released = []
        pending = [diagram_id]
        while pending:
            current_id = pending.pop(0)
            diagram = self._diagrams.pop(current_id, None)
            if diagram is None:
                continue
            released.append(current_id)
            pending.extend(
                node.inner_diagram_id for node in diagram.nodes if node.inner_diagram_id
            )
        return released

    def reachable_from(self, root_id: str) -> list[str]:
        """Ids of the diagrams in the tree rooted at `root_id` (breadth first)."""
        seen: list[str] = []
        pending = [root_id]
        while pending:
            current_id = pending.pop(0)
            if current_id in seen:
                continue
            diagram = self._diagrams.get(current_id)
            if diagram is None:
                continue
            seen.append(current_id)
            pending.extend(
                node.inner_diagram_id for node in diagram.nodes if node.inner_diagram_id
            )
        return seen


class Navigator:
    """
    Drill-down state over a registry.

    Holds the id of the current diagram and the ids of its ancestors, root
    first. Diagrams are fetched from the registry on every access.
    """

    def __init__(self, registry: DiagramRegistry, root_id: str):
        if root_id not in registry:
            raise ValueError(f"Diagram not registered: {root_id}")
        self._registry = registry
        self._current_id = root_id
        self._stack: list[str] = []

    @property
    def registry(self) -> DiagramRegistry:
        return self._registry

    @property
    def current(self) -> Diagram:
        """The diagram being edited, fetched fresh from the registry."""
        return self._registry.get(self._current_id)

    @property
    def current_id(self) -> str:
        return self._current_id

    @property
    def stack_ids(self) -> list[str]:
        return list(self._stack)

    @property
    def stack(self) -> list[Diagram]:
        """Ancestor diagrams, root first, excluding the current one."""
        return [self._registry.get(diagram_id) for diagram_id in self._stack]

    @property
    def depth(self) -> int:
        return len(self._stack)

    @property
    def can_leave(self) -> bool:
        return bool(self._stack)

    @property
    def root_id(self) -> str:
        return self._stack[0] if self._stack else self._current_id

    @property
    def root(self) -> Diagram:
        return self._registry.get(self.root_id)

    def parent_node(self) -> Optional[Node]:
        """The node in the parent diagram that owns the current diagram."""
        if not self._stack:
            return None
        parent = self._registry.get(self._stack[-1])
        if parent is None:
            return None
        return parent.find_node_owning(self._current_id)

    def title(self) -> str:
        """Header text: the owning node's label when nested, else the diagram name."""
        node = self.parent_node()
        if node is not None:
            return node.label or "Untitled Node"
        return self.current.name or "Untitled"

    def create_nested_diagram(self, node_id: str) -> Optional[Diagram]:
        """
        Give a node of the current diagram its own nested diagram.

        A node that already has one keeps it and that diagram is returned.
        Returns None if `node_id` is not a node of the current diagram.
        """
        current = self.current
        self._registry.register(current)
        node = current.get_node(node_id)
        if node is None:
            logger.debug("create_nested_diagram ignored: %s is not a node", node_id)
            return None
        if node.inner_diagram_id is not None and node.inner_diagram_id in self._registry:
            return self._registry.get(node.inner_diagram_id)

        inner = self._registry.create_diagram(DEFAULT_INNER_DIAGRAM_NAME)
        node.inner_diagram_id = inner.id
        logger.info("Created nested diagram %s for node %s", inner.id, node_id)
        return inner

    def enter(self, node_id: str) -> bool:
        """Drill into a node's nested diagram. Returns False if not possible."""
        node = self.current.get_node(node_id)
        if node is None or node.inner_diagram_id is None:
            logger.debug("enter ignored: %s has no nested diagram", node_id)
            return False
        if node.inner_diagram_id not in self._registry:
            logger.warning(
                "enter ignored: node %s references unregistered diagram %s",
                node_id, node.inner_diagram_id,
            )
            return False

        self._stack.append(self._current_id)
        self._current_id = node.inner_diagram_id
        return True

    def leave(self) -> bool:
        """Return to the parent diagram. Returns False at the root."""
        if not self._stack:
            logger.debug("leave ignored: already at the root diagram")
            return False
        self._current_id = self._stack.pop()
        return True

    def rename(self, name: str) -> Diagram:
        """
        Rename the current diagram.

        The parent's node keeps pointing at the same id, so the back-link
        stays valid without being rewritten.
        """
        current = self.current
        current.name = name
        self._registry.register(current)
        return current

    def reset(self, root_id: str) -> None:
        """Forget the stack and make `root_id` current."""
        if root_id not in self._registry:
            raise ValueError(f"Diagram not registered: {root_id}")
        self._current_id = root_id
        self._stack.clear()
