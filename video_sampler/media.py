# video_sampler/media.py
from __future__ import annotations

import logging
import os
from typing import List, Optional, Tuple

from PyQt5.QtCore import QObject, QSize, QTimer, QUrl, pyqtSignal
from PyQt5.QtGui import QImage
from PyQt5.QtMultimedia import (
    QAbstractVideoBuffer,
    QAbstractVideoSurface,
    QMediaContent,
    QMediaPlayer,
    QVideoFrame,
)

from .timeutils import ms_to_seconds, seconds_to_ms

logger = logging.getLogger(__name__)


# Allowed local extensions (strict)
ALLOWED_VIDEO_EXTS = {
    ".mp4", ".mov", ".mkv", ".avi", ".m4v", ".webm",
}


def validate_local_video_path(path: str) -> Tuple[bool, str]:
    if not path:
        return (False, "No file selected.")
    if not os.path.exists(path):
        return (False, f"File does not exist: {path}")
    if not os.path.isfile(path):
        return (False, f"Not a file: {path}")
    _, ext = os.path.splitext(path)
    ext = ext.lower()
    if ext not in ALLOWED_VIDEO_EXTS:
        return (False, f"Unsupported file type '{ext}'. Allowed: {sorted(ALLOWED_VIDEO_EXTS)}")
    return (True, "OK")


class MediaSource(QObject):
    """
    Contract between the editor core and a continuous media source.

    Times are seconds. After set_position() the source must eventually emit
    either `seeked` or `seek_failed`. `painted` fires whenever a new frame has
    actually been rendered, which may be after `seeked`.
    """

    seeked = pyqtSignal(float)
    seek_failed = pyqtSignal(str)
    painted = pyqtSignal()
    position_changed = pyqtSignal(float)
    duration_changed = pyqtSignal(float)
    media_ready = pyqtSignal(float, int, int)   # (duration, width, height)
    playback_state_changed = pyqtSignal(bool)   # playing?
    playback_rejected = pyqtSignal(str)
    load_failed = pyqtSignal(str)            # reason; the file could not be opened

    def native_size(self) -> Tuple[int, int]:
        raise NotImplementedError

    def duration(self) -> float:
        raise NotImplementedError

    def position(self) -> float:
        raise NotImplementedError

    def set_position(self, seconds: float) -> None:
        raise NotImplementedError

    def play(self) -> None:
        raise NotImplementedError

    def pause(self) -> None:
        raise NotImplementedError

    def is_paused(self) -> bool:
        raise NotImplementedError

    def playback_rate(self) -> float:
        raise NotImplementedError

    def set_playback_rate(self, rate: float) -> None:
        raise NotImplementedError

    def current_image(self) -> Optional[QImage]:
        raise NotImplementedError


class _FrameGrabber(QAbstractVideoSurface):
    """Video output that keeps the most recently presented frame as a QImage."""

    frame_ready = pyqtSignal(QImage)

    _FORMATS = [
        QVideoFrame.Format_RGB32,
        QVideoFrame.Format_ARGB32,
        QVideoFrame.Format_ARGB32_Premultiplied,
        QVideoFrame.Format_RGB24,
        QVideoFrame.Format_RGB565,
    ]

    def __init__(self, parent: Optional[QObject] = None):
        super().__init__(parent)
        self._last: Optional[QImage] = None

    def supportedPixelFormats(self, handle_type=QAbstractVideoBuffer.NoHandle) -> List[int]:
        if handle_type == QAbstractVideoBuffer.NoHandle:
            return list(self._FORMATS)
        return []

    def present(self, frame: QVideoFrame) -> bool:
        if not frame.isValid():
            return False
        clone = QVideoFrame(frame)
        if not clone.map(QAbstractVideoBuffer.ReadOnly):
            return False
        try:
            fmt = QVideoFrame.imageFormatFromPixelFormat(clone.pixelFormat())
            if fmt == QImage.Format_Invalid:
                return False
            image = QImage(
                clone.bits(),
                clone.width(),
                clone.height(),
                clone.bytesPerLine(),
                fmt,
            ).copy()
        finally:
            clone.unmap()
        self._last = image
        self.frame_ready.emit(image)
        return True

    def last_image(self) -> Optional[QImage]:
        return self._last

    def clear(self) -> None:
        self._last = None


class QtMediaSource(MediaSource):
    """
    QMediaPlayer-backed media source rendering into an in-memory frame grabber.

    A seek counts as settled on the first position report or presented frame
    after set_position(); player errors while a seek is pending fail it.
    """

    def __init__(self, parent: Optional[QObject] = None):
        super().__init__(parent)

        self._grabber = _FrameGrabber(self)
        self._grabber.frame_ready.connect(self._on_frame)

        self._player = QMediaPlayer(None, QMediaPlayer.VideoSurface)
        self._player.setVideoOutput(self._grabber)
        self._player.setMuted(True)
        self._player.positionChanged.connect(self._on_position_changed)
        self._player.durationChanged.connect(self._on_duration_changed)
        self._player.mediaStatusChanged.connect(self._on_media_status)
        self._player.stateChanged.connect(self._on_state_changed)
        self._player.error.connect(self._on_error)

        self._pending_seek: Optional[float] = None
        self._ready_emitted = False
        self._play_requested = False
        self._loading = False

    # ---------------- Loading ----------------

    def load(self, path: str) -> None:
        self._pending_seek = None
        self._ready_emitted = False
        self._loading = True
        self._play_requested = False
        self._grabber.clear()
        self._player.stop()
        self._player.setMedia(QMediaContent(QUrl.fromLocalFile(path)))
        logger.info("loading media %s", path)

    def unload(self) -> None:
        self._pending_seek = None
        self._ready_emitted = False
        self._loading = False
        self._player.stop()
        self._player.setMedia(QMediaContent())
        self._grabber.clear()

    def _prime_first_frame(self) -> None:
        """Show the first frame without starting playback."""
        self._player.setPosition(0)
        self._player.play()
        self._player.pause()

    def _maybe_emit_ready(self) -> None:
        if self._ready_emitted:
            return
        dur = self.duration()
        w, h = self.native_size()
        if dur > 0 and w > 0 and h > 0:
            self._ready_emitted = True
            self._loading = False
            self.media_ready.emit(dur, w, h)

    # ---------------- MediaSource API ----------------

    def native_size(self) -> Tuple[int, int]:
        img = self._grabber.last_image()
        if img is not None and not img.isNull():
            return (img.width(), img.height())
        res = self._player.metaData("Resolution")
        if isinstance(res, QSize) and res.isValid():
            return (res.width(), res.height())
        return (0, 0)

    def duration(self) -> float:
        return ms_to_seconds(self._player.duration())

    def position(self) -> float:
        return ms_to_seconds(self._player.position())

    def set_position(self, seconds: float) -> None:
        self._pending_seek = max(0.0, float(seconds))
        self._player.setPosition(seconds_to_ms(self._pending_seek))

    def play(self) -> None:
        status = self._player.mediaStatus()
        if status in (QMediaPlayer.NoMedia, QMediaPlayer.InvalidMedia):
            self.playback_rejected.emit("No playable media is loaded.")
            return
        self._play_requested = True
        self._player.play()

    def pause(self) -> None:
        self._play_requested = False
        self._player.pause()

    def is_paused(self) -> bool:
        return self._player.state() != QMediaPlayer.PlayingState

    def playback_rate(self) -> float:
        return float(self._player.playbackRate() or 1.0)

    def set_playback_rate(self, rate: float) -> None:
        self._player.setPlaybackRate(float(rate))

    def current_image(self) -> Optional[QImage]:
        return self._grabber.last_image()

    # ---------------- Player signal handlers ----------------

    def _settle_seek(self) -> None:
        if self._pending_seek is None:
            return
        t = self._pending_seek
        self._pending_seek = None
        self.seeked.emit(t)

    def _on_frame(self, _image: QImage) -> None:
        self._maybe_emit_ready()
        # The first frame after a seek also settles it (some backends skip positionChanged)
        self._settle_seek()
        self.painted.emit()

    def _on_position_changed(self, pos_ms: int) -> None:
        self.position_changed.emit(ms_to_seconds(pos_ms))
        self._settle_seek()

    def _on_duration_changed(self, dur_ms: int) -> None:
        self.duration_changed.emit(ms_to_seconds(dur_ms))
        self._maybe_emit_ready()

    def _on_media_status(self, status) -> None:
        if status == QMediaPlayer.LoadedMedia and not self._ready_emitted:
            # defer so the player finishes its own status handling first
            QTimer.singleShot(0, self._prime_first_frame)
        elif status == QMediaPlayer.InvalidMedia:
            self._fail_load(self._player.errorString() or "The file could not be decoded.")

    def _on_state_changed(self, state) -> None:
        self.playback_state_changed.emit(state == QMediaPlayer.PlayingState)

    def _on_error(self, _err) -> None:
        msg = self._player.errorString() or "media error"
        logger.error("media player error: %s", msg)
        if self._loading:
            self._fail_load(msg)
            return
        if self._pending_seek is not None:
            self._pending_seek = None
            self.seek_failed.emit(msg)
        if self._play_requested:
            self._play_requested = False
            self._player.pause()
            self.playback_rejected.emit(msg)

    def _fail_load(self, reason: str) -> None:
        """Report a file that never became ready. Emitted at most once per load()."""
        if not self._loading:
            return
        self._loading = False
        logger.error("could not load media: %s", reason)
        self.load_failed.emit(reason)
