"""Tests for tendril border placement."""

import pytest

from tendril_core.geometry import (
    BORDER_ORDER,
    CORNER_MARGIN,
    border_search_order,
    constrain_to_border,
    elements_in_bounding_box,
    find_available_position,
    is_on_border,
    rect_contains_point,
    redistribute_after_resize,
)
from tendril_core.models import BoundingBox, Diagram, Node, Position, Size, TendrilType


SIZE = Size(width=100, height=60)


class TestConstrainToBorder:
    """Snapping points onto the nearest side."""

    @pytest.mark.parametrize("x, y, expected", [
        (5, 30, (0, 30)),
        (98, 30, (100, 30)),
        (50, 2, (50, 0)),
        (50, 59, (50, 60)),
    ])
    def test_snaps_to_nearest_side(self, x, y, expected):
        """Each side wins when the point is closest to it."""
        result = constrain_to_border(x, y, SIZE)
        assert (result.x, result.y) == expected

    def test_clamps_away_from_corners(self):
        """A point near a corner is pulled CORNER_MARGIN along the side."""
        result = constrain_to_border(0, 2, SIZE)
        assert (result.x, result.y) == (0, CORNER_MARGIN)

    def test_point_outside_rectangle(self):
        """Points outside the element still land on its outline."""
        result = constrain_to_border(-5, -5, SIZE)
        assert (result.x, result.y) == (0, CORNER_MARGIN)

    def test_left_wins_tie_with_right(self):
        result = constrain_to_border(50, 100, Size(width=100, height=200))
        assert (result.x, result.y) == (0, 100)

    def test_top_wins_tie_with_bottom(self):
        result = constrain_to_border(50, 30, SIZE)
        assert (result.x, result.y) == (50, 0)

    def test_short_side_snaps_to_midpoint(self):
        result = constrain_to_border(1, 5, Size(width=100, height=12))
        assert (result.x, result.y) == (0, 6)

    def test_result_is_on_border(self):
        for x, y in [(3, 3), (97, 58), (40, 31), (-20, 80), (130, 10)]:
            assert is_on_border(constrain_to_border(x, y, SIZE), SIZE)


class TestIsOnBorder:
    def test_side_midpoints(self):
        assert is_on_border(Position(x=0, y=30), SIZE)
        assert is_on_border(Position(x=100, y=30), SIZE)
        assert is_on_border(Position(x=50, y=0), SIZE)
        assert is_on_border(Position(x=50, y=60), SIZE)

    def test_interior_point(self):
        assert not is_on_border(Position(x=50, y=30), SIZE)

    def test_within_corner_margin(self):
        assert not is_on_border(Position(x=0, y=5), SIZE)


class TestRedistributeAfterResize:
    """Respacing tendrils when an element changes size."""

    def test_incoming_left_outgoing_right(self, plain_node, make_tendril):
        """Incoming tendrils move to x=0, outgoing to the new width, evenly spaced."""
        plain_node.tendrils = [
            make_tendril(TendrilType.INCOMING, 0, 15),
            make_tendril(TendrilType.OUTGOING, 50, 0),
            make_tendril(TendrilType.INCOMING, 100, 40),
        ]
        redistribute_after_resize(plain_node, 200, 90)

        first, outgoing, second = plain_node.tendrils
        assert (first.position.x, first.position.y) == (0, 30)
        assert (second.position.x, second.position.y) == (0, 60)
        assert (outgoing.position.x, outgoing.position.y) == (200, 45)

    def test_positions_stay_on_border(self, plain_node, make_tendril):
        plain_node.tendrils = [make_tendril(TendrilType.OUTGOING, 100, 15) for _ in range(5)]
        redistribute_after_resize(plain_node, 80, 40)
        size = Size(width=80, height=40)
        assert all(is_on_border(t.position, size) for t in plain_node.tendrils)

    def test_short_element_uses_midpoint(self, plain_node, make_tendril):
        """Below two corner margins the sides only have their midpoint."""
        plain_node.tendrils = [
            make_tendril(TendrilType.INCOMING, 0, 15),
            make_tendril(TendrilType.OUTGOING, 100, 15),
        ]
        redistribute_after_resize(plain_node, 100, 12)

        incoming, outgoing = plain_node.tendrils
        assert (incoming.position.x, incoming.position.y) == (0, 6)
        assert (outgoing.position.x, outgoing.position.y) == (100, 6)
        size = Size(width=100, height=12)
        assert all(is_on_border(t.position, size) for t in plain_node.tendrils)

    def test_no_tendrils(self, plain_node):
        redistribute_after_resize(plain_node, 300, 300)
        assert plain_node.tendrils == []


class TestFindAvailablePosition:
    """Free slot search for new tendrils."""

    def test_empty_element_starts_on_left(self, plain_node):
        result = find_available_position(plain_node)
        assert (result.x, result.y) == (0, 15)

    def test_occupied_left_moves_to_right(self, plain_node, make_tendril):
        """A slot exactly SCAN_STEP away is not free, so the 60px left side is full."""
        plain_node.tendrils.append(make_tendril(TendrilType.INCOMING, 0, 15))
        result = find_available_position(plain_node)
        assert (result.x, result.y) == (100, 15)

    def test_taller_element_uses_next_slot(self, make_tendril):
        node = Node(size=Size(width=100, height=100))
        node.tendrils.append(make_tendril(TendrilType.INCOMING, 0, 15))
        result = find_available_position(node)
        assert (result.x, result.y) == (0, 63)

    def test_faces_target_to_the_right(self, plain_node):
        result = find_available_position(plain_node, target_position=Position(x=500, y=40))
        assert (result.x, result.y) == (100, 15)

    def test_faces_target_above(self, plain_node):
        result = find_available_position(plain_node, target_position=Position(x=50, y=-300))
        assert (result.x, result.y) == (15, 0)

    def test_full_element_falls_back_to_right_midpoint(self):
        """An element too small for any scan slot gets the right-side midpoint."""
        node = Node(size=Size(width=20, height=20))
        result = find_available_position(node)
        assert (result.x, result.y) == (20, 10)

    def test_extra_tendrils_count_as_occupied(self, plain_node, make_tendril):
        extra = [make_tendril(TendrilType.OUTGOING, 0, 15)]
        result = find_available_position(plain_node, extra_tendrils=extra)
        assert (result.x, result.y) == (100, 15)


class TestBorderSearchOrder:
    def test_default_order(self, plain_node):
        assert border_search_order(plain_node) == list(BORDER_ORDER)

    def test_target_below_left(self, plain_node):
        order = border_search_order(plain_node, Position(x=40, y=500))
        assert order[:2] == ["bottom", "left"]
        assert sorted(order) == sorted(BORDER_ORDER)


class TestContainment:
    def test_rect_contains_point(self):
        assert rect_contains_point(Position(x=10, y=10), SIZE, Position(x=110, y=70))
        assert not rect_contains_point(Position(x=10, y=10), SIZE, Position(x=111, y=70))

    def test_elements_in_bounding_box(self):
        inside = Node(position=Position(x=20, y=20), size=Size(width=50, height=50))
        straddling = Node(position=Position(x=180, y=20), size=Size(width=50, height=50))
        diagram = Diagram(elements=[inside, straddling])
        box = BoundingBox(position=Position(x=0, y=0), size=Size(width=200, height=150))

        assert [e.id for e in elements_in_bounding_box(diagram, box)] == [inside.id]
