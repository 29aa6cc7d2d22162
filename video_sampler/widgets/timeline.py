# video_sampler/widgets/timeline.py
from __future__ import annotations

from dataclasses import dataclass
from typing import List, Optional

from PyQt5.QtCore import QPoint, QRect, Qt, pyqtSignal
from PyQt5.QtGui import QColor, QFontMetrics, QPainter, QPen
from PyQt5.QtWidgets import QScrollArea, QToolTip, QWidget

from ..drag import DragEngine
from ..session import EditorSession
from ..timeutils import time_to_x


@dataclass
class _HitBlock:
    anno_id: str
    rect: QRect
    label: str = ""


class _TimelineCanvas(QWidget):
    changed = pyqtSignal()

    def __init__(self, session: EditorSession, engine: DragEngine, parent: Optional[QWidget] = None):
        super().__init__(parent)

        self._session = session
        self._engine = engine

        # Styling/layout
        self._pad_x = 10
        self._pad_y = 8
        self._scrub_h = 28
        self._lane_h = 22
        self._lane_gap = 6
        self._block_h = 18
        self._handle_w = 8
        self._min_block_w = 6

        self._enabled_input = True

        self.setMouseTracking(True)
        self._cursor_mode: str = ""
        self._resize_to_content()

    def _set_cursor_mode(self, mode: str) -> None:
        mode = (mode or "").strip().lower()
        if mode == self._cursor_mode:
            return
        self._cursor_mode = mode
        if mode == "hand":
            self.setCursor(Qt.PointingHandCursor)
        elif mode == "grab":
            self.setCursor(Qt.OpenHandCursor)
        elif mode == "resize":
            self.setCursor(Qt.SizeHorCursor)
        elif mode == "arrow":
            self.setCursor(Qt.ArrowCursor)
        else:
            self.unsetCursor()

    # ---------------- Public API ----------------

    def set_input_enabled(self, enabled: bool) -> None:
        self._enabled_input = bool(enabled)
        if not enabled:
            self._engine.release()

    def refresh(self) -> None:
        self._resize_to_content()
        self.update()

    # ---------------- Geometry helpers ----------------

    def _resize_to_content(self) -> None:
        lanes = max(1, len(self._session.tracks()))
        height = (
            self._pad_y * 2
            + self._scrub_h
            + self._lane_gap
            + lanes * self._lane_h
            + (lanes - 1) * self._lane_gap
        )
        self.setMinimumHeight(height)
        self.setMinimumWidth(400)

    def _content_width(self) -> int:
        return max(1, self.width() - 2 * self._pad_x)

    def _t_to_x(self, t: float) -> int:
        return self._pad_x + int(round(time_to_x(t, self._content_width(), self._session.duration)))

    def _scrub_rect(self) -> QRect:
        return QRect(self._pad_x, self._pad_y, self._content_width(), self._scrub_h)

    def _lane_top(self, lane_idx: int) -> int:
        return self._pad_y + self._scrub_h + self._lane_gap + lane_idx * (self._lane_h + self._lane_gap)

    def _selection_rect(self) -> Optional[QRect]:
        sel = self._session.selection
        if sel is None or self._session.duration <= 0:
            return None
        x1 = self._t_to_x(sel.start)
        x2 = self._t_to_x(sel.end)
        scrub = self._scrub_rect()
        return QRect(x1, scrub.top(), max(2, x2 - x1), scrub.height())

    def _layout_blocks(self) -> List[_HitBlock]:
        """Block rect per annotation, lane by lane in track order (later entries draw on top)."""
        blocks: List[_HitBlock] = []
        for lane_idx, track in enumerate(self._session.tracks()):
            y_top = self._lane_top(lane_idx)
            for anno in track.annotations:
                x1 = self._t_to_x(anno.start)
                x2 = max(x1 + self._min_block_w, self._t_to_x(anno.end))
                rect = QRect(x1, y_top + (self._lane_h - self._block_h) // 2, x2 - x1, self._block_h)
                blocks.append(_HitBlock(anno_id=anno.id, rect=rect, label=track.label))
        return blocks

    def _edge_rects(self, rect: QRect):
        w = min(self._handle_w, max(1, rect.width() // 2))
        left = QRect(rect.left(), rect.top(), w, rect.height())
        right = QRect(rect.right() - w + 1, rect.top(), w, rect.height())
        return left, right

    # ---------------- Painting ----------------

    def paintEvent(self, event):
        painter = QPainter(self)
        painter.setRenderHint(QPainter.Antialiasing, True)

        s = self._session
        painter.fillRect(self.rect(), QColor("#141414"))

        # Scrub bar + ticks every 10%
        scrub = self._scrub_rect()
        painter.fillRect(scrub, QColor("#1f1f1f"))
        painter.setPen(QPen(QColor("#10b981") if s.select_mode else QColor("#2b2b2b"), 2 if s.select_mode else 1))
        painter.drawRect(scrub)
        painter.setPen(QPen(QColor("#2b2b2b"), 1))
        for i in range(1, 10):
            x = scrub.left() + int(round(scrub.width() * i / 10.0))
            painter.drawLine(x, scrub.top(), x, scrub.bottom())

        # Selection band + handles
        sel_rect = self._selection_rect()
        if sel_rect is not None:
            band = QColor("#10b981")
            band.setAlpha(40)
            painter.fillRect(sel_rect, band)
            handle = QColor("#10b981")
            handle.setAlpha(110)
            for r in self._edge_rects(sel_rect):
                painter.fillRect(r, handle)

        # Track lanes
        fm = QFontMetrics(self.font())
        lanes = max(1, len(s.tracks()))
        painter.setPen(QPen(QColor("#242424"), 1))
        for lane_idx in range(lanes):
            y_mid = self._lane_top(lane_idx) + self._lane_h // 2
            painter.drawLine(self._pad_x, y_mid, self.width() - self._pad_x, y_mid)

        for hb in self._layout_blocks():
            anno = s.store.get(hb.anno_id)
            rect = hb.rect

            fill = QColor(anno.color)
            fill.setAlpha(60)
            painter.fillRect(rect, fill)
            painter.fillRect(QRect(rect.left(), rect.top(), 4, rect.height()), QColor(anno.color))

            if s.selected_id == anno.id:
                pen = QPen(QColor("#10b981"), 2)
            else:
                pen = QPen(QColor(anno.color), 1)
            painter.setPen(pen)
            painter.drawRect(rect)

            edge = QColor(255, 255, 255, 40)
            for r in self._edge_rects(rect):
                painter.fillRect(r, edge)

            if fm.horizontalAdvance(hb.label) + 12 < rect.width():
                painter.setPen(QPen(QColor("#e6e6e6"), 1))
                painter.drawText(rect.adjusted(8, 0, -4, 0), Qt.AlignVCenter | Qt.AlignLeft, hb.label)

        # Playhead
        if s.duration > 0:
            x = self._t_to_x(s.current_time)
            painter.setPen(QPen(QColor("#ff2d2d"), 2))
            painter.drawLine(x, self._pad_y, x, self.height() - self._pad_y)

        painter.end()

    # ---------------- Interaction / hit testing ----------------

    def _hit_test_block(self, pos: QPoint) -> Optional[_HitBlock]:
        # last painted wins (matches draw order)
        for hb in reversed(self._layout_blocks()):
            if hb.rect.contains(pos):
                return hb
        return None

    def _hit_test_edge(self, rect: QRect, pos: QPoint) -> Optional[str]:
        left, right = self._edge_rects(rect)
        if left.contains(pos):
            return "left"
        if right.contains(pos):
            return "right"
        return None

    def _hit_test_selection(self, pos: QPoint) -> Optional[str]:
        rect = self._selection_rect()
        if rect is None or not rect.contains(pos):
            return None
        edge = self._hit_test_edge(rect, pos)
        if edge is not None:
            return edge
        # In select mode a press inside the band starts a new region instead
        return None if self._session.select_mode else "body"

    def _press(self, pos: QPoint) -> bool:
        eng = self._engine
        x = pos.x() - self._pad_x

        sel_part = self._hit_test_selection(pos)
        if sel_part == "left":
            return eng.press_selection_start(x)
        if sel_part == "right":
            return eng.press_selection_end(x)
        if sel_part == "body":
            return eng.press_selection_body(x)

        if self._scrub_rect().contains(pos):
            return eng.press_scrub(x, self._content_width())

        hb = self._hit_test_block(pos)
        if hb is None:
            return False
        edge = self._hit_test_edge(hb.rect, pos)
        if edge == "left":
            return eng.press_annotation_start(hb.anno_id, x)
        if edge == "right":
            return eng.press_annotation_end(hb.anno_id, x)
        return eng.press_annotation_body(hb.anno_id, x)

    def mousePressEvent(self, event):
        if event.button() != Qt.LeftButton or not self._enabled_input:
            return super().mousePressEvent(event)
        if self._press(event.pos()):
            self.update()
            self.changed.emit()
        event.accept()

    def mouseMoveEvent(self, event):
        pos = event.pos()

        if self._engine.is_active():
            if self._engine.move_timeline(pos.x() - self._pad_x, self._content_width()):
                self.update()
                self.changed.emit()
            return

        # Cursor feedback
        if self._hit_test_selection(pos) in ("left", "right"):
            self._set_cursor_mode("resize")
        elif self._hit_test_selection(pos) == "body":
            self._set_cursor_mode("grab")
        elif self._scrub_rect().contains(pos):
            self._set_cursor_mode("hand")
        else:
            hb = self._hit_test_block(pos)
            if hb is None:
                self._set_cursor_mode("arrow")
                QToolTip.hideText()
            else:
                self._set_cursor_mode("resize" if self._hit_test_edge(hb.rect, pos) else "grab")
                anno = self._session.store.get(hb.anno_id)
                if anno is not None:
                    QToolTip.showText(
                        event.globalPos(),
                        f"{anno.label or 'Triangle'} {anno.start:.2f}s -> {anno.end:.2f}s",
                        self,
                    )
        return super().mouseMoveEvent(event)

    def leaveEvent(self, event):
        self._set_cursor_mode("arrow")
        return super().leaveEvent(event)

    def mouseReleaseEvent(self, event):
        if event.button() == Qt.LeftButton and self._engine.release():
            self.update()
            self.changed.emit()
            event.accept()
            return
        return super().mouseReleaseEvent(event)


class TimelineView(QScrollArea):
    """
    Scrollable timeline: scrub bar with the export selection on top, one row
    per triangle track underneath, playhead across both.

    Emits changed() after any gesture step that mutated the session.
    """
    changed = pyqtSignal()

    def __init__(self, session: EditorSession, engine: DragEngine, parent: Optional[QWidget] = None):
        super().__init__(parent)

        self.setWidgetResizable(True)
        self.setHorizontalScrollBarPolicy(Qt.ScrollBarAlwaysOff)
        self.setVerticalScrollBarPolicy(Qt.ScrollBarAsNeeded)

        self.canvas = _TimelineCanvas(session, engine, self)
        self.setWidget(self.canvas)

        self.canvas.changed.connect(self.changed.emit)

    def refresh(self) -> None:
        self.canvas.refresh()

    def set_input_enabled(self, enabled: bool) -> None:
        self.canvas.set_input_enabled(enabled)
