# video_sampler/render.py
from __future__ import annotations

from typing import Iterable

from PyQt5.QtCore import QPointF, Qt
from PyQt5.QtGui import QColor, QPainter, QPen, QPolygonF

from .domain import TriangleAnnotation
from .geometry import annotation_vertices, stroke_width_px


def paint_triangle(
    painter: QPainter,
    width: float,
    height: float,
    anno: TriangleAnnotation,
    selected: bool = False,
) -> None:
    """
    Stroke one annotation onto a painter whose coordinate space is width x height.

    Used both for the on-screen overlay and for burn-in on sampled frames,
    so both always agree on vertex positions and stroke width.
    """
    verts = annotation_vertices(anno, width, height)
    poly = QPolygonF([QPointF(px, py) for (px, py) in verts])

    painter.save()
    painter.setRenderHint(QPainter.Antialiasing, True)
    painter.setBrush(Qt.NoBrush)

    pen = QPen(QColor(anno.color))
    pen.setWidthF(stroke_width_px(anno.stroke_width, width, height))
    pen.setJoinStyle(Qt.MiterJoin)
    painter.setPen(pen)
    painter.drawPolygon(poly)

    if selected:
        # Thin dashed outline on top; overlay-only (export never passes selected=True)
        sel = QPen(QColor("#10b981"), 1, Qt.DashLine)
        painter.setPen(sel)
        painter.drawPolygon(poly)

    painter.restore()


def paint_triangles(
    painter: QPainter,
    width: float,
    height: float,
    annotations: Iterable[TriangleAnnotation],
) -> int:
    n = 0
    for anno in annotations:
        paint_triangle(painter, width, height, anno)
        n += 1
    return n
