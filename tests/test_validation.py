"""Tests for diagram tree validation."""

from tendril_core.models import Diagram, Edge, Node, Tendril, TendrilType
from tendril_core.validation import (
    IssueSeverity,
    ValidationIssue,
    validate_diagram,
    validate_diagram_tree,
    validation_summary,
)


def _pair():
    out = Tendril(type=TendrilType.OUTGOING, position={"x": 100, "y": 30})
    inc = Tendril(type=TendrilType.INCOMING, position={"x": 0, "y": 30})
    a = Node(id="na", tendrils=[out])
    b = Node(id="nb", tendrils=[inc])
    return a, b, out, inc


def _errors(issues):
    return [i for i in issues if i.severity == IssueSeverity.ERROR]


class TestValidateDiagram:
    def test_empty_diagram_is_info(self, registry):
        issues = validate_diagram(Diagram(), registry)
        assert [i.severity for i in issues] == [IssueSeverity.INFO]

    def test_valid_edge(self, registry):
        a, b, out, inc = _pair()
        diagram = Diagram(elements=[a, b], edges=[
            Edge(from_node_id=a.id, from_tendril_id=out.id, to_node_id=b.id, to_tendril_id=inc.id)
        ])
        assert validate_diagram(diagram, registry) == []

    def test_dangling_element(self, registry):
        a, _, out, _ = _pair()
        diagram = Diagram(elements=[a], edges=[
            Edge(from_node_id=a.id, from_tendril_id=out.id, to_node_id="gone", to_tendril_id="t")
        ])
        (issue,) = _errors(validate_diagram(diagram, registry))
        assert "target element" in issue.message

    def test_wrong_direction(self, registry):
        a, b, out, inc = _pair()
        diagram = Diagram(elements=[a, b], edges=[
            Edge(from_node_id=b.id, from_tendril_id=inc.id, to_node_id=a.id, to_tendril_id=out.id)
        ])
        assert len(_errors(validate_diagram(diagram, registry))) == 2

    def test_self_loop_and_duplicate_warn(self, registry):
        out = Tendril(type=TendrilType.OUTGOING, position={"x": 100, "y": 30})
        inc = Tendril(type=TendrilType.INCOMING, position={"x": 0, "y": 30})
        node = Node(tendrils=[out, inc])
        edge = dict(from_node_id=node.id, from_tendril_id=out.id, to_node_id=node.id, to_tendril_id=inc.id)
        diagram = Diagram(elements=[node], edges=[Edge(**edge), Edge(**edge)])

        warnings = [i for i in validate_diagram(diagram, registry) if i.severity == IssueSeverity.WARNING]
        messages = " ".join(w.message for w in warnings)
        assert "Self-referencing" in messages
        assert "Duplicate" in messages

    def test_tendril_off_border(self, registry):
        node = Node(tendrils=[Tendril(type=TendrilType.INCOMING, position={"x": 40, "y": 30})])
        (issue,) = _errors(validate_diagram(Diagram(elements=[node]), registry))
        assert issue.tendril_id == node.tendrils[0].id

    def test_unregistered_nested_reference(self, registry):
        node = Node(inner_diagram_id="diagram-gone")
        (issue,) = _errors(validate_diagram(Diagram(elements=[node]), registry))
        assert "unregistered" in issue.message


class TestValidateTree:
    def test_reports_orphans(self, registry):
        inner = registry.register(Diagram(elements=[Node()]))
        root = registry.register(Diagram(elements=[Node(inner_diagram_id=inner.id)]))
        orphan = registry.create_diagram("Orphan")

        issues = validate_diagram_tree(registry, root.id)
        orphans = [i for i in issues if "Orphaned" in i.message]
        assert [i.diagram_id for i in orphans] == [orphan.id]


def test_summary_and_to_dict():
    issues = [
        ValidationIssue(IssueSeverity.ERROR, "bad", diagram_id="d1", edge_id="e1"),
        ValidationIssue(IssueSeverity.INFO, "fyi"),
    ]
    summary = validation_summary(issues)
    assert summary == {"total": 2, "errors": 1, "warnings": 0, "info": 1, "valid": False}
    assert issues[0].to_dict() == {"type": "error", "message": "bad", "diagram_id": "d1", "edge_id": "e1"}
