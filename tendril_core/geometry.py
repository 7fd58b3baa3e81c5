"""
Tendril geometry - border placement for connection points.

Provides the pure functions that keep tendrils attached to their element's
outline:
- constrain_to_border: snap a point onto the nearest side of a rectangle
- redistribute_after_resize: respace tendrils after the element changes size
- find_available_position: pick a free slot for a new tendril

All positions handled here are relative to the element's top-left corner.
None of these functions raise; callers check that the element exists.
"""

import math
from typing import TYPE_CHECKING, Iterable, Optional

from .models import Position, Size, TendrilType

if TYPE_CHECKING:
    from .models import BoundingBox, Diagram, ElementBase, Node, SvgImage, Tendril


# Minimum distance between a tendril and a corner of its element
CORNER_MARGIN = 10
# Distance from the corners where the free-slot scan starts and stops
SCAN_INSET = 15
# Nominal label font size; free slots are two label heights apart
LABEL_FONT_SIZE = 12
SCAN_STEP = 2 * LABEL_FONT_SIZE

LEFT = "left"
RIGHT = "right"
TOP = "top"
BOTTOM = "bottom"
BORDER_ORDER = (LEFT, RIGHT, TOP, BOTTOM)


def _clamp(value: float, low: float, high: float) -> float:
    return max(low, min(high, value))


def _along_side(value: float, length: float) -> float:
    """Keep CORNER_MARGIN from both corners; sides too short for that use their midpoint."""
    if length < 2 * CORNER_MARGIN:
        return length / 2
    return _clamp(value, CORNER_MARGIN, length - CORNER_MARGIN)


def _within_margins(value: float, length: float) -> bool:
    if length < 2 * CORNER_MARGIN:
        return value == length / 2
    return CORNER_MARGIN <= value <= length - CORNER_MARGIN


def rect_contains_point(position: Position, size: Size, point: Position) -> bool:
    """Check whether `point` lies inside (or on) the rectangle."""
    return (
        position.x <= point.x <= position.x + size.width
        and position.y <= point.y <= position.y + size.height
    )


def rect_contains_rect(
    outer_position: Position,
    outer_size: Size,
    inner_position: Position,
    inner_size: Size,
) -> bool:
    """Check whether the inner rectangle lies fully inside the outer one."""
    return (
        inner_position.x >= outer_position.x
        and inner_position.y >= outer_position.y
        and inner_position.x + inner_size.width <= outer_position.x + outer_size.width
        and inner_position.y + inner_size.height <= outer_position.y + outer_size.height
    )


def is_on_border(position: Position, size: Size) -> bool:
    """
    Check the tendril border invariant.

    The point must sit on a vertical side with y inside the corner margins,
    or on a horizontal side with x inside the corner margins. A side shorter
    than two margins only has its midpoint.
    """
    on_vertical = position.x in (0, size.width)
    on_horizontal = position.y in (0, size.height)
    if on_vertical and _within_margins(position.y, size.height):
        return True
    if on_horizontal and _within_margins(position.x, size.width):
        return True
    return False


def constrain_to_border(relative_x: float, relative_y: float, size: Size) -> Position:
    """
    Snap a point to the nearest border of a rectangle of the given size.

    Ties are broken in the order left, right, top, bottom. The coordinate
    along the chosen side is clamped to keep CORNER_MARGIN from the corners,
    or set to the midpoint of a side too short for that.

    Args:
        relative_x: X relative to the element's top-left corner
        relative_y: Y relative to the element's top-left corner
        size: Size of the element

    Returns:
        The snapped position
    """
    distances = (
        (LEFT, abs(relative_x)),
        (RIGHT, abs(relative_x - size.width)),
        (TOP, abs(relative_y)),
        (BOTTOM, abs(relative_y - size.height)),
    )
    side = distances[0][0]
    best = distances[0][1]
    for candidate, distance in distances[1:]:
        if distance < best:
            side, best = candidate, distance

    clamped_x = _along_side(relative_x, size.width)
    clamped_y = _along_side(relative_y, size.height)

    if side == LEFT:
        return Position(x=0, y=clamped_y)
    if side == RIGHT:
        return Position(x=size.width, y=clamped_y)
    if side == TOP:
        return Position(x=clamped_x, y=0)
    return Position(x=clamped_x, y=size.height)


def redistribute_after_resize(
    element: "Node | SvgImage",
    new_width: float,
    new_height: float,
) -> None:
    """
    Respace an element's tendrils along its left and right sides.

    Incoming tendrils go to the left border and outgoing ones to the right,
    each group evenly spaced by the new height. Modifies tendrils in-place.
    """
    incoming = [t for t in element.tendrils if t.type == TendrilType.INCOMING]
    outgoing = [t for t in element.tendrils if t.type == TendrilType.OUTGOING]

    for x, group in ((0, incoming), (new_width, outgoing)):
        spacing = new_height / (len(group) + 1)
        for index, tendril in enumerate(group):
            y = spacing * (index + 1)
            tendril.position = Position(
                x=x,
                y=_along_side(y, new_height),
            )


def border_search_order(
    element: "ElementBase",
    target_position: Optional[Position] = None,
) -> list[str]:
    """
    Order in which borders are tried for a new tendril.

    With a target (absolute canvas coordinates) the border facing it comes
    first, then the facing border on the other axis, then the rest in the
    default order.
    """
    if target_position is None:
        return list(BORDER_ORDER)

    center_x, center_y = element.center()
    dx = target_position.x - center_x
    dy = target_position.y - center_y
    horizontal = RIGHT if dx >= 0 else LEFT
    vertical = BOTTOM if dy >= 0 else TOP

    if abs(dx) >= abs(dy):
        preferred = [horizontal, vertical]
    else:
        preferred = [vertical, horizontal]
    return preferred + [side for side in BORDER_ORDER if side not in preferred]


def _border_candidates(side: str, size: Size) -> Iterable[Position]:
    length = size.height if side in (LEFT, RIGHT) else size.width
    offset = SCAN_INSET
    while offset <= length - SCAN_INSET:
        if side == LEFT:
            yield Position(x=0, y=offset)
        elif side == RIGHT:
            yield Position(x=size.width, y=offset)
        elif side == TOP:
            yield Position(x=offset, y=0)
        else:
            yield Position(x=offset, y=size.height)
        offset += SCAN_STEP


def _is_free(candidate: Position, occupied: list[Position]) -> bool:
    return all(
        math.hypot(candidate.x - other.x, candidate.y - other.y) > SCAN_STEP
        for other in occupied
    )


def find_available_position(
    element: "Node | SvgImage",
    target_position: Optional[Position] = None,
    extra_tendrils: Iterable["Tendril"] = (),
) -> Position:
    """
    Find a free border slot for a new tendril.

    Scans each border (see border_search_order) from one SCAN_INSET to the
    other in SCAN_STEP increments and takes the first candidate further than
    SCAN_STEP from every existing tendril.

    Args:
        element: The element receiving the tendril
        target_position: Optional absolute point the tendril should face
        extra_tendrils: Additional occupants, e.g. tendrils propagated from
            the element's nested diagram

    Returns:
        The chosen relative position; the right-border midpoint when full
    """
    occupied = [t.position for t in element.tendrils]
    occupied.extend(t.position for t in extra_tendrils)

    for side in border_search_order(element, target_position):
        for candidate in _border_candidates(side, element.size):
            if _is_free(candidate, occupied):
                return candidate

    return Position(x=element.size.width, y=element.size.height / 2)


def elements_in_bounding_box(diagram: "Diagram", box: "BoundingBox") -> list["Node | SvgImage"]:
    """Elements whose rectangle lies fully inside the bounding box."""
    return [
        element for element in diagram.elements
        if rect_contains_rect(box.position, box.size, element.position, element.size)
    ]
