"""Tests for propagating exposed tendrils to the parent node."""

from tendril_core.exposure import (
    compound_tendril_id,
    find_propagated_tendril,
    get_exposed_tendrils,
    resolve_tendril,
)
from tendril_core.models import Diagram, Node, SvgImage, Tendril, TendrilType


def _nested(registry, *inner_elements):
    """Register a root with node P whose nested diagram holds the given elements."""
    inner = registry.register(Diagram(name="Inner", elements=list(inner_elements)))
    parent = Node(label="P", inner_diagram_id=inner.id)
    root = registry.register(Diagram(name="Root", elements=[parent]))
    return root, parent, inner


class TestGetExposedTendrils:
    """Deriving the propagated tendril list."""

    def test_node_without_nested_diagram(self, registry):
        assert get_exposed_tendrils(registry, Node()) == []

    def test_only_exposed_tendrils_propagate(self, registry):
        exposed = Tendril(name="out", type=TendrilType.OUTGOING, exposed=True)
        hidden = Tendril(name="in", type=TendrilType.INCOMING)
        inner_node = Node(label="C", tendrils=[exposed, hidden])
        _, parent, _ = _nested(registry, inner_node)

        result = get_exposed_tendrils(registry, parent)

        assert len(result) == 1
        assert result[0].id == f"{inner_node.id}-{exposed.id}"
        assert result[0].name == "C: out"
        assert result[0].type == TendrilType.OUTGOING

    def test_position_and_attributes_are_copied(self, registry):
        exposed = Tendril(
            type=TendrilType.INCOMING,
            exposed=True,
            position={"x": 0, "y": 25},
            border_color="#ff0000",
        )
        _, parent, _ = _nested(registry, Node(tendrils=[exposed]))

        (propagated,) = get_exposed_tendrils(registry, parent)
        assert (propagated.position.x, propagated.position.y) == (0, 25)
        assert propagated.border_color == "#ff0000"
        assert propagated.exposed is True

    def test_copies_do_not_alias_interior(self, registry):
        """Mutating a propagated copy leaves the interior tendril alone."""
        exposed = Tendril(type=TendrilType.OUTGOING, exposed=True)
        _, parent, _ = _nested(registry, Node(tendrils=[exposed]))

        (propagated,) = get_exposed_tendrils(registry, parent)
        propagated.position.x = 999
        assert exposed.position.x == 0

    def test_svg_image_owner_label_falls_back_to_file_name(self, registry):
        image = SvgImage(
            label="",
            file_name="logo.svg",
            tendrils=[Tendril(name="feed", type=TendrilType.OUTGOING, exposed=True)],
        )
        _, parent, _ = _nested(registry, image)

        (propagated,) = get_exposed_tendrils(registry, parent)
        assert propagated.name == "logo.svg: feed"

    def test_recomputed_after_interior_change(self, registry):
        """Toggling `exposed` inside is visible at the parent on the next call."""
        tendril = Tendril(type=TendrilType.OUTGOING)
        _, parent, _ = _nested(registry, Node(tendrils=[tendril]))
        assert get_exposed_tendrils(registry, parent) == []

        tendril.exposed = True
        assert len(get_exposed_tendrils(registry, parent)) == 1

    def test_unregistered_nested_diagram(self, registry):
        assert get_exposed_tendrils(registry, Node(inner_diagram_id="diagram-missing")) == []

    def test_only_one_level_propagates(self, registry):
        """Exposed tendrils two levels down are not visible at the top."""
        deep = registry.register(Diagram(elements=[
            Node(tendrils=[Tendril(type=TendrilType.OUTGOING, exposed=True)])
        ]))
        middle_node = Node(inner_diagram_id=deep.id)
        _, parent, _ = _nested(registry, middle_node)

        assert get_exposed_tendrils(registry, parent) == []
        assert len(get_exposed_tendrils(registry, middle_node)) == 1


class TestResolveTendril:
    def test_own_tendril_first(self, registry):
        own = Tendril(type=TendrilType.INCOMING)
        node = Node(tendrils=[own])
        diagram = registry.register(Diagram(elements=[node]))
        assert resolve_tendril(registry, diagram, node.id, own.id) is own

    def test_propagated_tendril_by_compound_id(self, registry):
        exposed = Tendril(type=TendrilType.OUTGOING, exposed=True)
        inner_node = Node(tendrils=[exposed])
        root, parent, _ = _nested(registry, inner_node)
        compound = compound_tendril_id(inner_node.id, exposed.id)

        found = resolve_tendril(registry, root, parent.id, compound)
        assert found is not None
        assert found.id == compound
        assert find_propagated_tendril(registry, parent, compound).id == compound

    def test_unknown_owner_or_tendril(self, registry):
        node = Node()
        diagram = registry.register(Diagram(elements=[node]))
        assert resolve_tendril(registry, diagram, "nope", "t1") is None
        assert resolve_tendril(registry, diagram, node.id, "t1") is None
