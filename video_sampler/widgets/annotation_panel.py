# video_sampler/widgets/annotation_panel.py
from __future__ import annotations

from typing import Dict, Optional

from PyQt5.QtCore import Qt, pyqtSignal
from PyQt5.QtWidgets import (
    QButtonGroup,
    QCheckBox,
    QGroupBox,
    QHBoxLayout,
    QLabel,
    QPushButton,
    QSlider,
    QVBoxLayout,
    QWidget,
)

from ..domain import TRIANGLE_COLORS, TriangleAnnotation
from ..session import EditorSession
from ..timeutils import format_time

# New triangles from the button land here (normalized), near the top center
ADD_BUTTON_POSITION = (0.5, 0.2)

_SLIDER_STEPS = 1000


class AnnotationPanel(QGroupBox):
    """
    Right panel: add/delete triangles, size + color of the selected one,
    overlay and burn-in toggles.

    Emits:
      - changed() after any edit to the session
      - notice(title, text) for informational messages
    """
    changed = pyqtSignal()
    notice = pyqtSignal(str, str)

    def __init__(self, session: EditorSession, parent: Optional[QWidget] = None):
        super().__init__("Triangles", parent)
        self._session = session
        self._swatches: Dict[str, QPushButton] = {}
        self._build_ui()
        self.refresh()

    # ---------------- UI ----------------

    def _build_ui(self):
        layout = QVBoxLayout()
        layout.setContentsMargins(6, 6, 6, 6)
        layout.setSpacing(6)
        self.setLayout(layout)

        btn_row = QHBoxLayout()
        btn_row.setSpacing(4)
        self.btn_add = QPushButton("Add triangle")
        self.btn_add.clicked.connect(self._on_add)
        self.btn_delete = QPushButton("Delete selected")
        self.btn_delete.clicked.connect(self._on_delete)
        btn_row.addWidget(self.btn_add)
        btn_row.addWidget(self.btn_delete)
        layout.addLayout(btn_row)

        self.selected_label = QLabel("No triangle selected")
        self.selected_label.setWordWrap(True)
        self.selected_label.setTextInteractionFlags(Qt.TextSelectableByMouse)
        layout.addWidget(self.selected_label)

        # Size
        size_row = QHBoxLayout()
        size_row.addWidget(QLabel("Size:"))
        self.size_slider = QSlider(Qt.Horizontal)
        self.size_slider.setRange(0, _SLIDER_STEPS)
        self.size_slider.valueChanged.connect(self._on_size_changed)
        self.size_value = QLabel("")
        self.size_value.setMinimumWidth(40)
        size_row.addWidget(self.size_slider, stretch=1)
        size_row.addWidget(self.size_value)
        layout.addLayout(size_row)

        # Color swatches
        color_row = QHBoxLayout()
        color_row.setSpacing(4)
        color_row.addWidget(QLabel("Color:"))
        self._color_group = QButtonGroup(self)
        self._color_group.setExclusive(True)
        for hex_color, label in TRIANGLE_COLORS:
            b = QPushButton()
            b.setCheckable(True)
            b.setFixedSize(22, 22)
            b.setToolTip(label)
            b.setStyleSheet(
                f"QPushButton {{ background-color: {hex_color}; border: 1px solid #444; border-radius: 3px; }}"
                "QPushButton:checked { border: 2px solid #10b981; }"
            )
            b.clicked.connect(lambda _checked=False, c=hex_color: self._on_color(c))
            self._color_group.addButton(b)
            self._swatches[hex_color] = b
            color_row.addWidget(b)
        color_row.addStretch()
        layout.addLayout(color_row)

        # Overlay / burn-in
        self.chk_overlay = QCheckBox("Show triangles")
        self.chk_overlay.toggled.connect(self._on_overlay_toggled)
        self.chk_burn_in = QCheckBox("Burn triangles into sampled frames")
        self.chk_burn_in.toggled.connect(self._on_burn_in_toggled)
        layout.addWidget(self.chk_overlay)
        layout.addWidget(self.chk_burn_in)

        layout.addStretch()

        for w in (self.btn_add, self.btn_delete, *self._swatches.values()):
            w.setCursor(Qt.PointingHandCursor)

    # ---------------- Public API ----------------

    def refresh(self) -> None:
        s = self._session
        cfg = s.config
        anno = s.selected()
        has_media = s.has_media()

        self.btn_add.setEnabled(has_media)
        self.btn_delete.setEnabled(anno is not None)
        self.size_slider.setEnabled(anno is not None)
        for b in self._swatches.values():
            b.setEnabled(anno is not None)

        self.size_slider.blockSignals(True)
        self._color_group.blockSignals(True)
        self.chk_overlay.blockSignals(True)
        self.chk_burn_in.blockSignals(True)
        try:
            size = anno.size if anno is not None else cfg.default_size
            self.size_slider.setValue(self._size_to_slider(size))
            self.size_value.setText(f"{size:.3f}")

            color = anno.color if anno is not None else cfg.default_color
            for hex_color, b in self._swatches.items():
                b.setChecked(hex_color == color)

            self.chk_overlay.setChecked(s.overlay_enabled)
            self.chk_burn_in.setChecked(s.burn_in)
            self.chk_burn_in.setEnabled(s.overlay_enabled)
        finally:
            self.size_slider.blockSignals(False)
            self._color_group.blockSignals(False)
            self.chk_overlay.blockSignals(False)
            self.chk_burn_in.blockSignals(False)

        self.selected_label.setText(self._describe(anno))

    def set_input_enabled(self, enabled: bool) -> None:
        self.setEnabled(bool(enabled))
        if enabled:
            self.refresh()

    # ---------------- Internals ----------------

    def _describe(self, anno: Optional[TriangleAnnotation]) -> str:
        if anno is None:
            return "No triangle selected"
        return (
            f"{anno.label or 'Triangle'} at ({anno.x * 100:.0f}%, {anno.y * 100:.0f}%)\n"
            f"{format_time(anno.start)} -> {format_time(anno.end)}"
        )

    def _size_to_slider(self, size: float) -> int:
        cfg = self._session.config
        span = max(1e-9, cfg.max_size - cfg.min_size)
        return int(round((size - cfg.min_size) / span * _SLIDER_STEPS))

    def _slider_to_size(self, value: int) -> float:
        cfg = self._session.config
        return cfg.min_size + (value / float(_SLIDER_STEPS)) * (cfg.max_size - cfg.min_size)

    def _on_add(self):
        result = self._session.add_annotation_at(*ADD_BUTTON_POSITION)
        self.refresh()
        self.changed.emit()
        if result.notice is not None:
            self.notice.emit(result.notice.title, result.notice.description)

    def _on_delete(self):
        if self._session.remove_selected():
            self.refresh()
            self.changed.emit()

    def _on_size_changed(self, value: int):
        anno = self._session.update_selected_style(size=self._slider_to_size(value))
        if anno is not None:
            self.size_value.setText(f"{anno.size:.3f}")
            self.changed.emit()

    def _on_color(self, color: str):
        if self._session.update_selected_style(color=color) is not None:
            self.changed.emit()

    def _on_overlay_toggled(self, on: bool):
        self._session.overlay_enabled = bool(on)
        self.chk_burn_in.setEnabled(bool(on))
        self.changed.emit()

    def _on_burn_in_toggled(self, on: bool):
        self._session.burn_in = bool(on)
        self.changed.emit()
