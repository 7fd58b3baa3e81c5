"""Pytest configuration and shared fixtures for the diagram editor tests."""

import pytest

from tendril_backend.diagram_manager import DiagramManager
from tendril_backend.persistence import InMemoryPersistence
from tendril_core.models import Node, Size, Tendril, TendrilType
from tendril_core.registry import DiagramRegistry, Navigator


@pytest.fixture
def manager():
    """Editor with an empty root diagram and no persistence."""
    return DiagramManager()


@pytest.fixture
def persistence():
    return InMemoryPersistence()


@pytest.fixture
def persistent_manager(persistence):
    """Editor backed by in-memory persistence."""
    return DiagramManager(persistence=persistence)


@pytest.fixture
def connected_pair(manager):
    """Nodes A and B with an outgoing tendril on A and an incoming one on B."""
    a = manager.add_node(label="A", x=0, y=0, width=100, height=60)
    b = manager.add_node(label="B", x=300, y=0, width=100, height=60)
    out_a = manager.add_tendril(a.id, TendrilType.OUTGOING)
    in_b = manager.add_tendril(b.id, TendrilType.INCOMING)
    return a, b, out_a, in_b


@pytest.fixture
def nested_setup(manager):
    """
    Node A owning a nested diagram that contains node C with an exposed
    outgoing tendril; returns to the root before handing over.
    """
    a = manager.add_node(label="A", x=0, y=0, width=100, height=60)
    inner = manager.create_nested_diagram(a.id)
    manager.enter(a.id)
    c = manager.add_node(label="C", x=50, y=50)
    exposed = manager.add_tendril(c.id, TendrilType.OUTGOING, exposed=True)
    manager.leave()
    return a, inner, c, exposed


@pytest.fixture
def registry():
    return DiagramRegistry()


@pytest.fixture
def navigator(registry):
    root = registry.create_diagram("Root")
    return Navigator(registry, root.id)


@pytest.fixture
def plain_node():
    """A 100x60 node at the origin without tendrils."""
    return Node(label="Plain", size=Size(width=100, height=60))


@pytest.fixture
def make_tendril():
    """Factory building a tendril at a relative position."""
    def _make(tendril_type, x, y, **kwargs):
        return Tendril(type=tendril_type, position={"x": x, "y": y}, **kwargs)
    return _make
