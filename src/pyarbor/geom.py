"""
Geometric utilities for renderers.

Renderers draw edges between node boxes rather than node centres; these
helpers clip an edge segment against a node's screen rectangle.
"""

from __future__ import annotations

from .point import Point


def intersect_line_line(p1: Point, p2: Point, p3: Point, p4: Point) -> Point:
    """
    Calculate intersection point of two line segments.

    Args:
        p1, p2: Endpoints of the first segment
        p3, p4: Endpoints of the second segment

    Returns:
        The intersection, or Point.NULL if the segments are parallel or
        do not meet
    """
    denom = (p4.y - p3.y) * (p2.x - p1.x) - (p4.x - p3.x) * (p2.y - p1.y)
    if denom == 0.0:
        return Point.NULL

    ua = ((p4.x - p3.x) * (p1.y - p3.y) - (p4.y - p3.y) * (p1.x - p3.x)) / denom
    ub = ((p2.x - p1.x) * (p1.y - p3.y) - (p2.y - p1.y) * (p1.x - p3.x)) / denom

    if ua < 0 or ua > 1 or ub < 0 or ub > 1:
        return Point.NULL

    return Point(p1.x + ua * (p2.x - p1.x), p1.y + ua * (p2.y - p1.y))


def intersect_line_box(p1: Point, p2: Point, box: tuple[float, float, float, float]) -> Point:
    """
    Find where a segment crosses the border of a rectangle.

    Sides are tested top, right, bottom, left; the first hit wins.

    Args:
        p1, p2: Segment endpoints
        box: (x, y, width, height) with (x, y) the top-left corner

    Returns:
        The crossing point, or Point.NULL if the segment misses the border
    """
    bx, by, bw, bh = box

    tl = Point(bx, by)
    tr = Point(bx + bw, by)
    bl = Point(bx, by + bh)
    br = Point(bx + bw, by + bh)

    for a, b in ((tl, tr), (tr, br), (br, bl), (bl, tl)):
        pt = intersect_line_line(p1, p2, a, b)
        if not pt.is_null():
            return pt

    return Point.NULL
