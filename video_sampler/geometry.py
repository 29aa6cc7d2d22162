# video_sampler/geometry.py
"""
Triangle geometry shared by the live overlay and the export rasterizer.

Everything here is pure: normalized annotation descriptors in, pixel-space
vertices / containment answers out. Rendering lives in render.py and always
goes through triangle_vertices() so the exported pixels match the overlay.
"""
from __future__ import annotations

import math
from typing import Iterable, Optional, Sequence, Tuple

from .domain import TriangleAnnotation

Point = Tuple[float, float]
Vertices = Tuple[Point, Point, Point]

# Stroke widths are authored against this frame dimension.
STROKE_REFERENCE_DIM = 1080.0

_DEGENERATE_EPS = 1e-10


def triangle_vertices(x: float, y: float, size: float, width: float, height: float) -> Vertices:
    """
    Apex-up equilateral triangle around centroid (x, y) in pixel space.

    Returns (top, bottom_left, bottom_right).
    """
    min_dim = min(width, height)
    side = size * min_dim
    tri_h = side * math.sqrt(3) / 2.0
    half_base = side / 2.0
    centroid_offset = tri_h / 3.0

    cx = x * width
    cy = y * height

    top = (cx, cy - (tri_h - centroid_offset))
    bottom_left = (cx - half_base, cy + centroid_offset)
    bottom_right = (cx + half_base, cy + centroid_offset)
    return (top, bottom_left, bottom_right)


def annotation_vertices(anno: TriangleAnnotation, width: float, height: float) -> Vertices:
    return triangle_vertices(anno.x, anno.y, anno.size, width, height)


def stroke_width_px(stroke_width: float, width: float, height: float) -> float:
    """Scale a 1080-referenced stroke width to the given frame size (never below 1px)."""
    return max(1.0, (stroke_width * min(width, height)) / STROKE_REFERENCE_DIM)


def barycentric(px: float, py: float, verts: Vertices) -> Optional[Tuple[float, float, float]]:
    """Barycentric weights of (px, py) in pixel space, or None for a degenerate triangle."""
    (ax, ay), (bx, by), (cx, cy) = verts
    det = (by - cy) * (ax - cx) + (cx - bx) * (ay - cy)
    if abs(det) < _DEGENERATE_EPS:
        return None
    a = ((by - cy) * (px - cx) + (cx - bx) * (py - cy)) / det
    b = ((cy - ay) * (px - cx) + (ax - cx) * (py - cy)) / det
    return (a, b, 1.0 - a - b)


def point_in_triangle(px: float, py: float, triangle: TriangleAnnotation, width: float, height: float) -> bool:
    """
    True if the normalized point (px, py) lies inside (or on the edge of) the triangle.

    Degenerate triangles never contain anything.
    """
    weights = barycentric(px * width, py * height, annotation_vertices(triangle, width, height))
    if weights is None:
        return False
    return all(0.0 <= w <= 1.0 for w in weights)


def active_at(annotations: Iterable[TriangleAnnotation], t: float) -> list:
    return [a for a in annotations if a.is_active_at(t)]


def find_topmost_at(
    point: Point,
    time: float,
    annotations: Sequence[TriangleAnnotation],
    width: float,
    height: float,
) -> Optional[TriangleAnnotation]:
    """
    Most recently created active triangle containing the normalized point.

    Annotations are in creation order, so newer ones are drawn on top and win.
    """
    px, py = point
    for anno in reversed(active_at(annotations, time)):
        if point_in_triangle(px, py, anno, width, height):
            return anno
    return None
