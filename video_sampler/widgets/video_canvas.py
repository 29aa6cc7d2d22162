# video_sampler/widgets/video_canvas.py
from __future__ import annotations

from typing import Optional, Tuple

from PyQt5.QtCore import QPoint, QRectF, QSize, Qt, pyqtSignal
from PyQt5.QtGui import QColor, QPainter
from PyQt5.QtWidgets import QSizePolicy, QWidget

from ..drag import DragEngine
from ..media import MediaSource
from ..render import paint_triangle
from ..session import EditorSession


def fit_rect(frame_w: int, frame_h: int, box_w: int, box_h: int) -> QRectF:
    """Largest frame_w:frame_h rect centered in a box_w x box_h area."""
    if frame_w <= 0 or frame_h <= 0 or box_w <= 0 or box_h <= 0:
        return QRectF(0, 0, max(0, box_w), max(0, box_h))
    scale = min(box_w / float(frame_w), box_h / float(frame_h))
    w = frame_w * scale
    h = frame_h * scale
    return QRectF((box_w - w) / 2.0, (box_h - h) / 2.0, w, h)


class VideoCanvas(QWidget):
    """
    Shows the media source's current frame letterboxed on black, with the
    triangles active at the playhead drawn on top.

    Pointer handling:
      - press on a triangle starts a position drag
      - a plain click selects the triangle under it or creates a new one

    Emits changed() whenever the session was mutated, notice(title, text) for
    non-error messages (e.g. duplicate triangle).
    """
    changed = pyqtSignal()
    notice = pyqtSignal(str, str)

    def __init__(
        self,
        session: EditorSession,
        engine: DragEngine,
        source: MediaSource,
        parent: Optional[QWidget] = None,
    ):
        super().__init__(parent)
        self._session = session
        self._engine = engine
        self._source = source
        self._enabled_input = True
        self._press_inside = False

        self.setSizePolicy(QSizePolicy.Expanding, QSizePolicy.Expanding)
        self.setMouseTracking(True)

        source.painted.connect(self.update)

    def sizeHint(self) -> QSize:
        return QSize(960, 540)

    def minimumSizeHint(self) -> QSize:
        return QSize(160, 90)

    def set_input_enabled(self, enabled: bool) -> None:
        self._enabled_input = bool(enabled)

    # ---------------- Geometry ----------------

    def video_rect(self) -> QRectF:
        w, h = self._session.frame_size
        return fit_rect(w, h, self.width(), self.height())

    def _normalized(self, pos: QPoint) -> Optional[Tuple[float, float]]:
        r = self.video_rect()
        if r.width() <= 0 or r.height() <= 0 or not r.contains(pos.x(), pos.y()):
            return None
        return ((pos.x() - r.left()) / r.width(), (pos.y() - r.top()) / r.height())

    # ---------------- Painting ----------------

    def paintEvent(self, event):
        painter = QPainter(self)
        painter.fillRect(self.rect(), QColor("#000000"))

        s = self._session
        if not s.has_media():
            painter.setPen(QColor("#8a8a8a"))
            painter.drawText(self.rect(), Qt.AlignCenter, "Open a video to start")
            painter.end()
            return

        r = self.video_rect()
        img = self._source.current_image()
        if img is not None and not img.isNull():
            painter.setRenderHint(QPainter.SmoothPixmapTransform, True)
            painter.drawImage(r, img)

        # Overlay in the video rect's own coordinate space
        painter.save()
        painter.translate(r.left(), r.top())
        for anno in s.active_annotations():
            paint_triangle(painter, r.width(), r.height(), anno, selected=(anno.id == s.selected_id))
        painter.restore()

        painter.end()

    # ---------------- Mouse ----------------

    def mousePressEvent(self, event):
        if event.button() != Qt.LeftButton or not self._enabled_input:
            return super().mousePressEvent(event)
        norm = self._normalized(event.pos())
        self._press_inside = norm is not None
        if norm is not None and self._engine.press_overlay(*norm):
            self.setCursor(Qt.ClosedHandCursor)
            self.update()
            self.changed.emit()
        event.accept()

    def mouseMoveEvent(self, event):
        if self._engine.is_active():
            r = self.video_rect()
            bounds = (r.left(), r.top(), r.width(), r.height())
            if self._engine.move_overlay(event.pos().x(), event.pos().y(), bounds):
                self.update()
                self.changed.emit()
            return

        norm = self._normalized(event.pos())
        if norm is not None and self._session.find_topmost_at(*norm) is not None and self._session.overlay_enabled:
            self.setCursor(Qt.OpenHandCursor)
        elif norm is not None and self._session.has_media():
            self.setCursor(Qt.CrossCursor)
        else:
            self.unsetCursor()
        return super().mouseMoveEvent(event)

    def mouseReleaseEvent(self, event):
        if event.button() != Qt.LeftButton:
            return super().mouseReleaseEvent(event)

        dragged = self._engine.release()
        self.unsetCursor()

        result = None
        norm = self._normalized(event.pos())
        if self._press_inside and norm is not None and self._enabled_input:
            result = self._engine.click_overlay(*norm)
        self._press_inside = False

        if dragged or result is not None:
            self.update()
            self.changed.emit()
        if result is not None and result.notice is not None:
            self.notice.emit(result.notice.title, result.notice.description)
        event.accept()
