"""Tests for the diagram registry and drill-down navigation."""

import pytest

from tendril_core.models import Diagram, Node
from tendril_core.registry import DiagramRegistry, Navigator


class TestDiagramRegistry:
    def test_create_and_get(self, registry):
        diagram = registry.create_diagram("Main")
        assert registry.get(diagram.id) is diagram
        assert diagram.id in registry
        assert len(registry) == 1

    def test_unregister(self, registry):
        diagram = registry.create_diagram()
        assert registry.unregister(diagram.id) is diagram
        assert registry.get(diagram.id) is None
        assert registry.unregister(diagram.id) is None

    def test_release_subtree(self, registry):
        """Releasing a diagram also releases everything nested below it."""
        leaf = registry.create_diagram("Leaf")
        middle = registry.register(Diagram(elements=[Node(inner_diagram_id=leaf.id)]))
        keep = registry.create_diagram("Keep")

        released = registry.release_subtree(middle.id)

        assert released == [middle.id, leaf.id]
        assert registry.ids() == [keep.id]

    def test_reachable_from(self, registry):
        leaf = registry.create_diagram("Leaf")
        root = registry.register(Diagram(elements=[Node(inner_diagram_id=leaf.id)]))
        registry.create_diagram("Orphan")

        assert registry.reachable_from(root.id) == [root.id, leaf.id]


class TestNavigator:
    """Entering and leaving nested diagrams."""

    def test_requires_registered_root(self, registry):
        with pytest.raises(ValueError):
            Navigator(registry, "diagram-missing")

    def test_starts_at_root(self, navigator):
        assert navigator.depth == 0
        assert not navigator.can_leave
        assert navigator.current.name == "Root"
        assert navigator.title() == "Root"

    def test_create_nested_diagram(self, navigator):
        node = Node(label="Service")
        navigator.current.elements.append(node)

        inner = navigator.create_nested_diagram(node.id)

        assert inner is not None
        assert node.inner_diagram_id == inner.id
        assert navigator.registry.get(inner.id) is inner

    def test_create_nested_diagram_is_idempotent(self, navigator):
        node = Node()
        navigator.current.elements.append(node)
        first = navigator.create_nested_diagram(node.id)
        second = navigator.create_nested_diagram(node.id)
        assert first is second
        assert len(navigator.registry) == 2

    def test_create_nested_diagram_unknown_node(self, navigator):
        assert navigator.create_nested_diagram("n-missing") is None

    def test_enter_and_leave(self, navigator):
        """Entering pushes the parent; leaving pops it."""
        node = Node(label="Service")
        navigator.current.elements.append(node)
        root_id = navigator.current_id
        inner = navigator.create_nested_diagram(node.id)

        assert navigator.enter(node.id)
        assert navigator.current_id == inner.id
        assert navigator.stack_ids == [root_id]
        assert navigator.depth == 1
        assert navigator.title() == "Service"
        assert navigator.parent_node() is node
        assert navigator.root_id == root_id

        assert navigator.leave()
        assert navigator.current_id == root_id
        assert navigator.depth == 0

    def test_enter_node_without_nested_diagram(self, navigator):
        node = Node()
        navigator.current.elements.append(node)
        assert not navigator.enter(node.id)
        assert navigator.depth == 0

    def test_leave_at_root(self, navigator):
        assert not navigator.leave()

    def test_edits_inside_visible_after_leave(self, navigator):
        """The parent's node keeps seeing the nested diagram it points at."""
        node = Node()
        navigator.current.elements.append(node)
        navigator.create_nested_diagram(node.id)
        navigator.enter(node.id)
        navigator.current.elements.append(Node(label="Inside"))
        navigator.leave()

        inner = navigator.registry.get(navigator.current.get_node(node.id).inner_diagram_id)
        assert [e.label for e in inner.elements] == ["Inside"]

    def test_rename_keeps_back_link(self, navigator):
        node = Node()
        navigator.current.elements.append(node)
        inner = navigator.create_nested_diagram(node.id)
        navigator.enter(node.id)

        navigator.rename("Renamed")
        navigator.leave()

        assert navigator.current.get_node(node.id).inner_diagram_id == inner.id
        assert navigator.registry.get(inner.id).name == "Renamed"

    def test_reset(self, navigator, registry):
        other = registry.create_diagram("Other")
        navigator.reset(other.id)
        assert navigator.current_id == other.id
        assert navigator.depth == 0
        with pytest.raises(ValueError):
            navigator.reset("diagram-missing")

    def test_untitled_nested_node(self, navigator):
        node = Node(label="")
        navigator.current.elements.append(node)
        navigator.create_nested_diagram(node.id)
        navigator.enter(node.id)
        assert navigator.title() == "Untitled Node"


def test_fresh_registry_is_empty():
    assert len(DiagramRegistry()) == 0
