# video_sampler/widgets/frames_panel.py
from __future__ import annotations

from typing import Optional, Sequence, Tuple

from PyQt5.QtCore import QSize, Qt, pyqtSignal
from PyQt5.QtGui import QIcon, QImage, QPixmap
from PyQt5.QtWidgets import (
    QDialog,
    QGroupBox,
    QHBoxLayout,
    QLabel,
    QListWidget,
    QListWidgetItem,
    QPushButton,
    QVBoxLayout,
    QWidget,
)

from ..domain import Frame
from ..timeutils import format_time

THUMB_SIZE = QSize(160, 90)


def frame_pixmap(frame: Frame) -> QPixmap:
    img = QImage.fromData(frame.image)
    return QPixmap.fromImage(img)


class FramePreviewDialog(QDialog):
    """Large view of one sampled frame; Left/Right cycles through the set."""

    def __init__(self, frames: Sequence[Frame], index: int = 0, parent: Optional[QWidget] = None):
        super().__init__(parent)
        self.setWindowTitle("Frame preview")
        self.resize(1000, 640)

        self._frames: Tuple[Frame, ...] = tuple(frames)
        self._index = 0

        lay = QVBoxLayout(self)
        lay.setContentsMargins(6, 6, 6, 6)

        self.image_label = QLabel()
        self.image_label.setAlignment(Qt.AlignCenter)
        self.image_label.setMinimumSize(320, 180)
        self.image_label.setStyleSheet("background-color: black;")
        lay.addWidget(self.image_label, stretch=1)

        nav = QHBoxLayout()
        self.btn_prev = QPushButton("Previous")
        self.btn_next = QPushButton("Next")
        self.caption = QLabel("")
        self.btn_prev.clicked.connect(lambda: self.step(-1))
        self.btn_next.clicked.connect(lambda: self.step(1))
        nav.addWidget(self.btn_prev)
        nav.addStretch()
        nav.addWidget(self.caption)
        nav.addStretch()
        nav.addWidget(self.btn_next)
        lay.addLayout(nav)

        self.set_index(index)

    def current_index(self) -> int:
        return self._index

    def set_index(self, index: int) -> None:
        n = len(self._frames)
        self._index = index % n if n else 0
        self._show()

    def step(self, delta: int) -> None:
        """Move by delta, wrapping around at both ends."""
        self.set_index(self._index + delta)

    def _show(self) -> None:
        if not self._frames:
            self.image_label.clear()
            self.caption.setText("No frames")
            return
        f = self._frames[self._index]
        pm = frame_pixmap(f)
        if not pm.isNull():
            pm = pm.scaled(self.image_label.size(), Qt.KeepAspectRatio, Qt.SmoothTransformation)
        self.image_label.setPixmap(pm)
        self.caption.setText(f"#{f.index}  {format_time(f.time)}  ({self._index + 1}/{len(self._frames)})")

    def resizeEvent(self, event):
        super().resizeEvent(event)
        self._show()

    def keyPressEvent(self, event):
        if event.key() == Qt.Key_Left:
            self.step(-1)
            event.accept()
            return
        if event.key() == Qt.Key_Right:
            self.step(1)
            event.accept()
            return
        super().keyPressEvent(event)


class FramesPanel(QGroupBox):
    """
    Sampled frames as thumbnails, with Clear and Download ZIP actions.

    Emits:
      - clear_requested()
      - download_requested()
    """
    clear_requested = pyqtSignal()
    download_requested = pyqtSignal()

    def __init__(self, parent: Optional[QWidget] = None):
        super().__init__("Sampled frames", parent)
        self._frames: Tuple[Frame, ...] = ()
        self._busy = False
        self._build_ui()

    def _build_ui(self):
        layout = QVBoxLayout()
        layout.setContentsMargins(6, 6, 6, 6)
        layout.setSpacing(6)
        self.setLayout(layout)

        self.list = QListWidget()
        self.list.setViewMode(QListWidget.IconMode)
        self.list.setIconSize(THUMB_SIZE)
        self.list.setResizeMode(QListWidget.Adjust)
        self.list.setMovement(QListWidget.Static)
        self.list.setWrapping(False)
        self.list.setFlow(QListWidget.LeftToRight)
        self.list.setFixedHeight(THUMB_SIZE.height() + 48)
        self.list.itemActivated.connect(self._on_item_activated)
        layout.addWidget(self.list)

        actions = QHBoxLayout()
        self.count_label = QLabel("0 frames")
        self.btn_clear = QPushButton("Clear frames")
        self.btn_download = QPushButton("Download ZIP")
        self.btn_clear.clicked.connect(self.clear_requested.emit)
        self.btn_download.clicked.connect(self.download_requested.emit)
        actions.addWidget(self.count_label)
        actions.addStretch()
        actions.addWidget(self.btn_clear)
        actions.addWidget(self.btn_download)
        layout.addLayout(actions)

        for b in (self.btn_clear, self.btn_download):
            b.setCursor(Qt.PointingHandCursor)

        self._update_enabled_state()

    # ---------------- Public API ----------------

    def set_frames(self, frames: Sequence[Frame]) -> None:
        self._frames = tuple(frames)
        self.list.clear()
        for f in self._frames:
            self.append_frame(f, track=False)
        self._update_enabled_state()

    def append_frame(self, frame: Frame, track: bool = True) -> None:
        """Add one thumbnail (live preview while a run is in flight)."""
        if track:
            self._frames = self._frames + (frame,)
        pm = frame_pixmap(frame)
        if not pm.isNull():
            pm = pm.scaled(THUMB_SIZE, Qt.KeepAspectRatio, Qt.SmoothTransformation)
        item = QListWidgetItem(QIcon(pm), f"{frame.time:.3f}s")
        item.setData(Qt.UserRole, frame.index)
        self.list.addItem(item)
        self._update_enabled_state()

    def frames(self) -> Tuple[Frame, ...]:
        return self._frames

    def set_busy(self, busy: bool) -> None:
        self._busy = bool(busy)
        self._update_enabled_state()

    def open_preview(self, index: int = 0) -> None:
        if not self._frames:
            return
        dlg = FramePreviewDialog(self._frames, index, self)
        dlg.exec_()

    # ---------------- Internals ----------------

    def _update_enabled_state(self):
        n = len(self._frames)
        self.count_label.setText(f"{n} frame{'' if n == 1 else 's'}")
        self.btn_clear.setEnabled(n > 0 and not self._busy)
        self.btn_download.setEnabled(n > 0 and not self._busy)

    def _on_item_activated(self, item: QListWidgetItem):
        row = self.list.row(item)
        self.open_preview(row)
