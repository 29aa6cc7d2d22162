# video_sampler/main_window.py
from __future__ import annotations

import logging
import os
from typing import Optional

from PyQt5.QtCore import Qt
from PyQt5.QtGui import QKeySequence
from PyQt5.QtWidgets import (
    QButtonGroup,
    QDoubleSpinBox,
    QFileDialog,
    QFormLayout,
    QGroupBox,
    QHBoxLayout,
    QLabel,
    QLineEdit,
    QMainWindow,
    QMessageBox,
    QProgressBar,
    QPushButton,
    QShortcut,
    QSplitter,
    QVBoxLayout,
    QWidget,
)

from .config import EditorConfig
from .drag import DragEngine
from .errors import PlaybackRejectedError, UserFacingError
from .export import export_session
from .media import ALLOWED_VIDEO_EXTS, MediaSource, QtMediaSource, validate_local_video_path
from .persistence import save_config
from .sampling import FrameSampler, SamplingRequest, sample_timestamps, sampling_summary
from .session import EditorSession
from .timeutils import format_time
from .upload import (
    UploaderFactory,
    ViamDatasetUploader,
    build_upload_tags,
    parse_tags,
    require_credentials,
    upload_frames,
    validate_target,
)
from .widgets.annotation_panel import AnnotationPanel
from .widgets.frames_panel import FramesPanel
from .widgets.timeline import TimelineView
from .widgets.video_canvas import VideoCanvas

logger = logging.getLogger(__name__)


class MainWindow(QMainWindow):
    def __init__(
        self,
        config: Optional[EditorConfig] = None,
        source: Optional[MediaSource] = None,
        uploader_factory: Optional[UploaderFactory] = None,
        config_path: Optional[str] = None,
    ):
        super().__init__()
        self.setWindowTitle("Video Sampler (Triangle Annotation + Frame Export)")
        self.resize(1500, 950)

        self.cfg: EditorConfig = config or EditorConfig()
        self._config_path = config_path
        self.session = EditorSession(self.cfg)
        self.engine = DragEngine(self.session)
        self.source: MediaSource = source if source is not None else QtMediaSource(self)
        self.sampler = FrameSampler(self.source, self)
        self._uploader_factory: UploaderFactory = uploader_factory or ViamDatasetUploader.connect

        # Burn-in flag and rate of the run in flight (recorded with its frames)
        self._run_burn_in = False
        self._run_hz = self.session.sampling_hz
        self._uploading = False

        self.session.seek_handler = self.source.set_position

        self._build_ui()
        self._wire_source()
        self._wire_sampler()
        self._install_shortcuts()
        self._refresh_all()

    # ---------------- UI ----------------

    def _build_ui(self):
        central = QWidget()
        self.setCentralWidget(central)

        main_layout = QVBoxLayout(central)
        main_layout.setContentsMargins(6, 6, 6, 6)
        main_layout.setSpacing(6)

        # ===== Top: open / reset + source label =====
        top = QHBoxLayout()
        top.setSpacing(8)
        self.btn_open = QPushButton("Open Video")
        self.btn_open.clicked.connect(self._choose_video)
        self.btn_reset = QPushButton("Reset")
        self.btn_reset.clicked.connect(self._reset)
        self.source_label = QLabel("No video loaded")
        self.source_label.setTextInteractionFlags(Qt.TextSelectableByMouse)
        top.addWidget(self.btn_open)
        top.addWidget(self.btn_reset)
        top.addSpacing(12)
        top.addWidget(self.source_label, stretch=1)
        main_layout.addLayout(top)

        # ===== Middle: video + timeline (left), panels (right) =====
        split = QSplitter(Qt.Horizontal)
        main_layout.addWidget(split, stretch=12)

        left = QWidget()
        left_lay = QVBoxLayout(left)
        left_lay.setContentsMargins(0, 0, 0, 0)
        left_lay.setSpacing(6)

        self.canvas = VideoCanvas(self.session, self.engine, self.source)
        self.canvas.changed.connect(self._on_session_changed)
        self.canvas.notice.connect(self._show_notice)
        left_lay.addWidget(self.canvas, stretch=10)

        # Transport
        play_bar = QHBoxLayout()
        play_bar.setSpacing(8)
        self.btn_back = QPushButton(f"-{self.cfg.seek_step:g}s")
        self.btn_play = QPushButton("Play")
        self.btn_fwd = QPushButton(f"+{self.cfg.seek_step:g}s")
        self.btn_back.clicked.connect(lambda: self._seek_by(-self.cfg.seek_step))
        self.btn_play.clicked.connect(self._toggle_play)
        self.btn_fwd.clicked.connect(lambda: self._seek_by(self.cfg.seek_step))
        play_bar.addWidget(self.btn_back)
        play_bar.addWidget(self.btn_play)
        play_bar.addWidget(self.btn_fwd)
        play_bar.addSpacing(12)

        self._rate_group = QButtonGroup(self)
        self._rate_group.setExclusive(True)
        self._rate_buttons = []
        for rate in self.cfg.playback_rates:
            b = QPushButton(f"{rate:g}x")
            b.setCheckable(True)
            b.setChecked(abs(rate - 1.0) < 1e-9)
            b.clicked.connect(lambda _checked=False, r=rate: self._set_rate(r))
            self._rate_group.addButton(b)
            self._rate_buttons.append(b)
            play_bar.addWidget(b)

        play_bar.addSpacing(12)
        self.time_label = QLabel("00:00.000 / 00:00.000")
        play_bar.addWidget(self.time_label)
        play_bar.addStretch()
        left_lay.addLayout(play_bar)

        timeline_box = QGroupBox("Timeline")
        tl_lay = QVBoxLayout(timeline_box)
        tl_lay.setContentsMargins(6, 6, 6, 6)
        self.timeline = TimelineView(self.session, self.engine)
        self.timeline.changed.connect(self._on_session_changed)
        tl_lay.addWidget(self.timeline)
        left_lay.addWidget(timeline_box, stretch=4)

        # Right side
        right = QWidget()
        right_lay = QVBoxLayout(right)
        right_lay.setContentsMargins(0, 0, 0, 0)
        right_lay.setSpacing(6)

        self.annotation_panel = AnnotationPanel(self.session)
        self.annotation_panel.changed.connect(self._on_session_changed)
        self.annotation_panel.notice.connect(self._show_notice)
        right_lay.addWidget(self.annotation_panel, stretch=3)

        right_lay.addWidget(self._build_export_box())
        right_lay.addWidget(self._build_upload_box())
        right_lay.addStretch()

        split.addWidget(left)
        split.addWidget(right)
        split.setStretchFactor(0, 12)
        split.setStretchFactor(1, 4)

        # ===== Bottom: sampled frames =====
        self.frames_panel = FramesPanel()
        self.frames_panel.clear_requested.connect(self._clear_frames)
        self.frames_panel.download_requested.connect(self._download_zip)
        main_layout.addWidget(self.frames_panel, stretch=3)

        self._apply_clickable_cursors()

    def _build_export_box(self) -> QGroupBox:
        box = QGroupBox("Export region")
        lay = QVBoxLayout(box)
        lay.setContentsMargins(6, 6, 6, 6)
        lay.setSpacing(6)

        self.btn_select_mode = QPushButton("Select export region")
        self.btn_select_mode.setCheckable(True)
        self.btn_select_mode.toggled.connect(self._on_select_mode_toggled)
        lay.addWidget(self.btn_select_mode)

        self.selection_label = QLabel("No selection")
        self.selection_label.setWordWrap(True)
        lay.addWidget(self.selection_label)

        hz_row = QHBoxLayout()
        hz_row.addWidget(QLabel("Sampling rate (Hz):"))
        self.spin_hz = QDoubleSpinBox()
        self.spin_hz.setDecimals(2)
        self.spin_hz.setRange(self.cfg.min_sampling_hz, 60.0)
        self.spin_hz.setSingleStep(0.5)
        self.spin_hz.setValue(self.session.sampling_hz)
        self.spin_hz.valueChanged.connect(self._on_hz_changed)
        hz_row.addWidget(self.spin_hz)
        lay.addLayout(hz_row)

        act = QHBoxLayout()
        self.btn_sample = QPushButton("Sample frames")
        self.btn_sample.clicked.connect(self._sample)
        self.btn_cancel_sample = QPushButton("Cancel")
        self.btn_cancel_sample.clicked.connect(self.sampler.cancel)
        act.addWidget(self.btn_sample)
        act.addWidget(self.btn_cancel_sample)
        lay.addLayout(act)

        self.progress = QProgressBar()
        self.progress.setRange(0, 100)
        self.progress.setValue(0)
        lay.addWidget(self.progress)
        return box

    def _build_upload_box(self) -> QGroupBox:
        box = QGroupBox("Dataset upload")
        form = QFormLayout(box)
        form.setContentsMargins(6, 6, 6, 6)

        self.edit_api_key = QLineEdit()
        self.edit_api_key.setEchoMode(QLineEdit.Password)
        self.edit_api_key_id = QLineEdit()
        self.edit_part_id = QLineEdit()
        self.edit_dataset_id = QLineEdit()
        self.edit_tags = QLineEdit()
        self.edit_tags.setPlaceholderText("comma,separated,tags")
        self.btn_upload = QPushButton("Upload frames")
        self.btn_upload.clicked.connect(self._upload)
        self.upload_progress = QProgressBar()
        self.upload_progress.setRange(0, 100)

        form.addRow("API Key:", self.edit_api_key)
        form.addRow("API Key ID:", self.edit_api_key_id)
        form.addRow("Part ID:", self.edit_part_id)
        form.addRow("Dataset ID:", self.edit_dataset_id)
        form.addRow("Extra tags:", self.edit_tags)
        form.addRow(self.btn_upload)
        form.addRow(self.upload_progress)
        return box

    def _apply_clickable_cursors(self) -> None:
        for w in (
            self.btn_open,
            self.btn_reset,
            self.btn_back,
            self.btn_play,
            self.btn_fwd,
            self.btn_select_mode,
            self.btn_sample,
            self.btn_cancel_sample,
            self.btn_upload,
            *self._rate_buttons,
        ):
            w.setCursor(Qt.PointingHandCursor)

    def _install_shortcuts(self) -> None:
        QShortcut(QKeySequence(Qt.Key_Space), self, activated=self._toggle_play)
        QShortcut(QKeySequence(Qt.Key_Delete), self, activated=self._delete_selected)
        QShortcut(QKeySequence(Qt.Key_Backspace), self, activated=self._delete_selected)
        QShortcut(QKeySequence(Qt.Key_Escape), self, activated=self._clear_selected)

    # ---------------- Wiring ----------------

    def _wire_source(self) -> None:
        src = self.source
        src.media_ready.connect(self._on_media_ready)
        src.position_changed.connect(self._on_position)
        src.playback_state_changed.connect(lambda _playing: self._update_play_button())
        src.playback_rejected.connect(self._on_playback_rejected)
        src.load_failed.connect(self._on_load_failed)

    def _wire_sampler(self) -> None:
        sm = self.sampler
        sm.started.connect(self._on_sampling_started)
        sm.frame_captured.connect(self.frames_panel.append_frame)
        sm.progress_changed.connect(self.progress.setValue)
        sm.finished.connect(self._on_sampling_finished)
        sm.failed.connect(self._on_sampling_failed)
        sm.canceled.connect(self._on_sampling_canceled)

    # ---------------- Media ----------------

    def _choose_video(self):
        exts = " ".join(f"*{e}" for e in sorted(ALLOWED_VIDEO_EXTS))
        path, _ = QFileDialog.getOpenFileName(self, "Open Video", "", f"Video files ({exts})")
        if path:
            self.open_video(path)

    def open_video(self, path: str) -> bool:
        ok, msg = validate_local_video_path(path)
        if not ok:
            QMessageBox.warning(self, "Cannot open video", msg)
            return False
        self.sampler.cancel()
        self.engine.release()
        self.session.load_media(os.path.basename(path))
        if isinstance(self.source, QtMediaSource):
            self.source.load(path)
        self._refresh_all()
        return True

    def _reset(self):
        self.sampler.cancel()
        self.engine.release()
        if isinstance(self.source, QtMediaSource):
            self.source.unload()
        self.session.reset()
        self.btn_select_mode.setChecked(False)
        self._refresh_all()

    def _on_media_ready(self, duration: float, width: int, height: int):
        logger.info("media ready duration=%.3fs size=%dx%d", duration, width, height)
        self.session.media_ready(duration, width, height)
        self._refresh_all()

    def _on_position(self, seconds: float):
        if self.engine.is_active():
            # the gesture owns the playhead
            return
        self.session.set_current_time(seconds)
        self._refresh_playhead()

    def _on_load_failed(self, reason: str):
        logger.warning("video failed to load: %s", reason)
        self._reset()
        QMessageBox.warning(self, "Failed to load file", f"Try a different video file.\n\n{reason}")

    def _on_playback_rejected(self, message: str):
        self._update_play_button()
        e = PlaybackRejectedError(message or "Playback was rejected.")
        logger.warning("playback rejected: %s", e.description)
        QMessageBox.warning(self, e.title, e.description)

    # ---------------- Playback ----------------

    def _toggle_play(self):
        if not self.session.has_media() or self.sampler.is_running():
            return
        if self.source.is_paused():
            self.source.play()
        else:
            self.source.pause()
        self._update_play_button()

    def _seek_by(self, delta: float):
        if not self.session.has_media() or self.sampler.is_running():
            return
        self.session.seek_by(delta)
        self._refresh_playhead()

    def _set_rate(self, rate: float):
        self.source.set_playback_rate(rate)

    def _update_play_button(self) -> None:
        self.btn_play.setText("Play" if self.source.is_paused() else "Pause")

    # ---------------- Annotation shortcuts ----------------

    def _delete_selected(self):
        if self.sampler.is_running():
            return
        if self.session.remove_selected():
            self._on_session_changed()

    def _clear_selected(self):
        if self.session.selected_id is not None:
            self.session.select(None)
            self._on_session_changed()

    # ---------------- Export region / sampling ----------------

    def _on_select_mode_toggled(self, on: bool):
        self.session.select_mode = bool(on)
        self.timeline.refresh()

    def _on_hz_changed(self, value: float):
        self.session.set_sampling_hz(value)
        self._refresh_selection_label()

    def _sample(self):
        try:
            request = SamplingRequest.from_session(self.session)
        except UserFacingError as e:
            QMessageBox.warning(self, e.title, e.description)
            return
        self._run_burn_in = request.burn_in
        self._run_hz = request.hz
        self.sampler.start(request)

    def _on_sampling_started(self, total: int):
        # old frames go before the first new capture
        self.session.clear_frames()
        self.frames_panel.set_frames(())
        self.progress.setValue(0)
        self._set_sampling_ui(True)

    def _on_sampling_finished(self, frames):
        self.session.replace_frames(frames, burned_in=self._run_burn_in)
        self.frames_panel.set_frames(self.session.frames)
        self.progress.setValue(100)
        self._set_sampling_ui(False)
        QMessageBox.information(
            self, "Sampling complete", sampling_summary(len(frames), self._run_hz, self.session.sequence_tag)
        )

    def _on_sampling_failed(self, title: str, description: str):
        self.frames_panel.set_frames(self.session.frames)
        self._set_sampling_ui(False)
        QMessageBox.critical(self, title, description)

    def _on_sampling_canceled(self):
        self.frames_panel.set_frames(self.session.frames)
        self.progress.setValue(0)
        self._set_sampling_ui(False)

    def _set_sampling_ui(self, busy: bool) -> None:
        for w in (
            self.btn_open,
            self.btn_back,
            self.btn_play,
            self.btn_fwd,
            self.btn_select_mode,
            self.btn_sample,
            self.spin_hz,
            self.btn_upload,
            *self._rate_buttons,
        ):
            w.setEnabled(not busy)
        self.btn_cancel_sample.setEnabled(busy)
        self.timeline.set_input_enabled(not busy)
        self.canvas.set_input_enabled(not busy)
        self.annotation_panel.set_input_enabled(not busy)
        self.frames_panel.set_busy(busy)
        if not busy:
            self._update_enabled_state()

    # ---------------- Frames ----------------

    def _clear_frames(self):
        self.session.clear_frames()
        self.frames_panel.set_frames(())
        self.progress.setValue(0)

    def _download_zip(self):
        try:
            self.session.require_frames()
        except UserFacingError as e:
            QMessageBox.warning(self, e.title, e.description)
            return
        d = QFileDialog.getExistingDirectory(self, "Save ZIP to folder")
        if not d:
            return
        try:
            path = export_session(self.session, d)
        except UserFacingError as e:
            QMessageBox.warning(self, e.title, e.description)
            return
        except OSError as e:
            logger.error("export failed: %s", e)
            QMessageBox.critical(self, "Export failed", str(e))
            return
        QMessageBox.information(self, "Export complete", f"Saved {len(self.session.frames)} frames to:\n{path}")

    # ---------------- Upload ----------------

    def _upload(self):
        if self._uploading:
            return
        s = self.session
        try:
            s.require_frames()
            api_key, api_key_id = require_credentials(
                self.edit_api_key.text(), self.edit_api_key_id.text(), self.edit_dataset_id.text()
            )
            validate_target(self.edit_part_id.text(), self.edit_dataset_id.text())
        except UserFacingError as e:
            QMessageBox.warning(self, e.title, e.description)
            return

        tags = build_upload_tags(s.sequence_tag, parse_tags(self.edit_tags.text()))
        self._uploading = True
        self.btn_upload.setEnabled(False)
        self.upload_progress.setValue(0)
        try:
            try:
                uploader = self._uploader_factory(api_key, api_key_id)
            except Exception:
                logger.exception("could not connect to the dataset service")
                QMessageBox.critical(self, "Failed to connect to Viam", "Check API Key ID/Key and try again.")
                return

            try:
                result = upload_frames(
                    s.frames,
                    uploader,
                    part_id=self.edit_part_id.text(),
                    dataset_id=self.edit_dataset_id.text(),
                    tags=tags,
                    file_extension=self.cfg.image_extension(),
                    chunk_size=self.cfg.upload_chunk_size,
                    progress=self.upload_progress.setValue,
                )
            except Exception:
                logger.exception("upload failed")
                QMessageBox.critical(
                    self,
                    "Upload failed",
                    "Check network and credentials. Some images may not have been uploaded.",
                )
                return
            finally:
                try:
                    uploader.close()
                except Exception as e:
                    logger.warning("error closing uploader: %s", e)
        finally:
            self._uploading = False
            self.btn_upload.setEnabled(True)

        QMessageBox.information(self, "Upload complete", result.summary())

    # ---------------- Refresh ----------------

    def _show_notice(self, title: str, text: str):
        QMessageBox.information(self, title, text)

    def _on_session_changed(self):
        self._refresh_playhead()
        self.annotation_panel.refresh()
        self._refresh_selection_label()

    def _refresh_playhead(self):
        s = self.session
        self.time_label.setText(f"{format_time(s.current_time)} / {format_time(s.duration)}")
        self.timeline.refresh()
        self.canvas.update()

    def _refresh_selection_label(self):
        sel = self.session.selection
        if sel is None or sel.end <= sel.start:
            self.selection_label.setText("No selection")
            return
        n = len(sample_timestamps(sel.start, sel.end, self.session.sampling_hz))
        self.selection_label.setText(
            f"{format_time(sel.start)} -> {format_time(sel.end)} ({sel.length:.2f}s, {n} frames)"
        )

    def _refresh_all(self):
        s = self.session
        self.source_label.setText(s.source_name or "No video loaded")
        self.setWindowTitle(
            f"Video Sampler - {s.source_name}" if s.source_name else "Video Sampler (Triangle Annotation + Frame Export)"
        )
        self.frames_panel.set_frames(s.frames)
        self.progress.setValue(0)
        self._on_session_changed()
        self._update_enabled_state()

    def _update_enabled_state(self):
        has_media = self.session.has_media()
        running = self.sampler.is_running()
        for w in (self.btn_back, self.btn_play, self.btn_fwd, self.btn_select_mode, *self._rate_buttons):
            w.setEnabled(has_media and not running)
        self.btn_sample.setEnabled(has_media and not running)
        self.btn_cancel_sample.setEnabled(running)
        self.btn_reset.setEnabled(True)
        self.btn_upload.setEnabled(not running and not self._uploading)
        self._update_play_button()

    def closeEvent(self, event):
        self.sampler.cancel()
        if abs(self.cfg.default_sampling_hz - self.session.sampling_hz) > 1e-9:
            self.cfg.default_sampling_hz = self.session.sampling_hz
            try:
                save_config(self.cfg, self._config_path)
            except OSError as e:
                logger.warning("could not save config: %s", e)
        super().closeEvent(event)
