# video_sampler/sampling.py
"""
Frame sampling: turn the export selection into a sequence of encoded stills.

The capture loop is written as a generator that yields suspension steps
(seek, wait for paint, yield to the event loop). FrameSampler drives it from
Qt signals and timers, so the UI thread never blocks and a new run simply
invalidates the previous one.
"""
from __future__ import annotations

import copy
import logging
from dataclasses import dataclass
from typing import Generator, List, Optional, Tuple, Union

from PyQt5.QtCore import QBuffer, QByteArray, QIODevice, QObject, Qt, QTimer, pyqtSignal
from PyQt5.QtGui import QImage, QPainter

from .domain import Frame, TimeRange, TriangleAnnotation
from .errors import SurfaceUnavailableError, UserFacingError
from .media import MediaSource
from .render import paint_triangles
from .session import EditorSession

logger = logging.getLogger(__name__)

_TIME_EPS = 1e-6


# -----------------------------
# Timestamps
# -----------------------------

def sample_timestamps(start: float, end: float, hz: float) -> List[float]:
    """
    Target times start + i/hz for i = 0, 1, ... up to end (inclusive).

    Each time is computed from its index, not accumulated. The last entry is
    always exactly `end`, so both boundaries are covered for any rate.
    """
    if hz <= 0:
        raise ValueError(f"sampling rate must be positive, got {hz}")
    if end < start:
        raise ValueError(f"selection end {end} before start {start}")

    times: List[float] = []
    i = 0
    while True:
        t = start + i / hz
        if t > end + _TIME_EPS:
            break
        times.append(min(t, end))
        i += 1

    if end - times[-1] <= _TIME_EPS:
        times[-1] = end
    else:
        times.append(end)
    return times


def sampling_summary(count: int, hz: float, sequence_tag: str) -> str:
    """e.g. 11 frames captured at 1.00 Hz. Sequence: sequence_<id>"""
    return f"{count} frame{'' if count == 1 else 's'} captured at {hz:.2f} Hz. Sequence: {sequence_tag}"


# -----------------------------
# Request / steps
# -----------------------------

@dataclass(frozen=True)
class SamplingRequest:
    selection: TimeRange
    hz: float
    width: int
    height: int
    annotations: Tuple[TriangleAnnotation, ...] = ()
    burn_in: bool = True
    image_format: str = "JPG"
    image_quality: int = 92
    seek_timeout_ms: int = 3000
    paint_timeout_ms: int = 100

    @staticmethod
    def from_session(session: EditorSession) -> "SamplingRequest":
        """Validate the session and snapshot everything a run needs. Raises UserFacingError."""
        session.require_media()
        selection = session.require_selection()
        cfg = session.config
        burn_in = session.burn_in_applied()
        annotations = tuple(copy.copy(a) for a in session.annotations()) if burn_in else ()
        return SamplingRequest(
            selection=selection,
            hz=max(cfg.min_sampling_hz, session.sampling_hz),
            width=session.frame_width,
            height=session.frame_height,
            annotations=annotations,
            burn_in=burn_in,
            image_format=cfg.image_format,
            image_quality=cfg.image_quality,
            seek_timeout_ms=cfg.seek_timeout_ms,
            paint_timeout_ms=cfg.paint_timeout_ms,
        )

    def timestamps(self) -> List[float]:
        return sample_timestamps(self.selection.start, self.selection.end, self.hz)


@dataclass(frozen=True)
class SeekStep:
    time: float


@dataclass(frozen=True)
class PaintStep:
    pass


@dataclass(frozen=True)
class YieldStep:
    frame: Frame
    progress: int


Step = Union[SeekStep, PaintStep, YieldStep]


@dataclass(frozen=True)
class SeekOutcome:
    ok: bool
    error: str = ""


# -----------------------------
# Rasterize / encode
# -----------------------------

def create_surface(width: int, height: int) -> QImage:
    surface = QImage(int(width), int(height), QImage.Format_RGB32)
    if width <= 0 or height <= 0 or surface.isNull():
        raise SurfaceUnavailableError(f"Could not allocate a {width}x{height} drawing surface.")
    return surface


def rasterize_frame(
    surface: QImage,
    source: Optional[QImage],
    annotations: Tuple[TriangleAnnotation, ...] = (),
    t: Optional[float] = None,
) -> int:
    """
    Draw the source frame scaled to the surface, then the triangles active at t.

    Returns how many triangles were burned in.
    """
    painter = QPainter(surface)
    if not painter.isActive():
        raise SurfaceUnavailableError("Could not paint on the drawing surface.")
    try:
        painter.fillRect(surface.rect(), Qt.black)
        if source is not None and not source.isNull():
            painter.drawImage(surface.rect(), source)
        active = [a for a in annotations if t is not None and a.is_active_at(t)]
        return paint_triangles(painter, surface.width(), surface.height(), active)
    finally:
        painter.end()


def encode_image(image: QImage, fmt: str = "JPG", quality: int = 92) -> bytes:
    data = QByteArray()
    buf = QBuffer(data)
    buf.open(QIODevice.WriteOnly)
    try:
        ok = image.save(buf, fmt, quality)
    finally:
        buf.close()
    if not ok:
        raise SurfaceUnavailableError(f"Could not encode frame as {fmt}.")
    return bytes(data)


def capture_steps(
    request: SamplingRequest,
    source: MediaSource,
    surface: QImage,
) -> Generator[Step, Optional[SeekOutcome], Tuple[Frame, ...]]:
    """
    The capture loop. Send a SeekOutcome after each SeekStep and None after
    every other step. Returns the captured frames in timestamp order.
    """
    times = request.timestamps()
    total = len(times)
    frames: List[Frame] = []

    for i, t in enumerate(times):
        outcome = yield SeekStep(t)
        if outcome is not None and not outcome.ok:
            # keep going with whatever frame is currently presented
            logger.warning("seek to %.3fs failed (%s); capturing current frame", t, outcome.error)

        yield PaintStep()

        burned = rasterize_frame(surface, source.current_image(), request.annotations, t)
        data = encode_image(surface, request.image_format, request.image_quality)
        logger.debug("frame %d t=%.3fs triangles=%d bytes=%d", i, t, burned, len(data))
        frame = Frame(index=i, time=t, image=data)
        frames.append(frame)

        yield YieldStep(frame=frame, progress=round(100 * (i + 1) / total))

    return tuple(frames)


# -----------------------------
# Qt driver
# -----------------------------

class FrameSampler(QObject):
    """
    Runs capture_steps() against a MediaSource on the Qt event loop.

    Only one run is live at a time: start() cancels any run in flight and
    nothing from the canceled run is ever emitted afterwards. The source's
    playback rate and paused state are restored when a run ends, however
    it ends.
    """

    started = pyqtSignal(int)            # total frames
    progress_changed = pyqtSignal(int)   # 0..100
    frame_captured = pyqtSignal(object)  # Frame
    finished = pyqtSignal(object)        # Tuple[Frame, ...]
    failed = pyqtSignal(str, str)        # title, description
    canceled = pyqtSignal()

    def __init__(self, source: MediaSource, parent: Optional[QObject] = None):
        super().__init__(parent)
        self._source = source
        self._token = 0
        self._gen: Optional[Generator] = None
        self._request: Optional[SamplingRequest] = None
        self._waiting: Optional[str] = None
        self._restore: Optional[Tuple[float, bool]] = None
        self._progress = 0

        self._timer = QTimer(self)
        self._timer.setSingleShot(True)
        self._timer.timeout.connect(self._on_timeout)

        source.seeked.connect(self._on_seeked)
        source.seek_failed.connect(self._on_seek_failed)
        source.painted.connect(self._on_painted)

    def is_running(self) -> bool:
        return self._gen is not None

    def progress(self) -> int:
        return self._progress

    # ---------------- Run lifecycle ----------------

    def start(self, request: SamplingRequest) -> bool:
        """
        Begin a run. Returns False (after emitting failed) if the drawing
        surface cannot be created; in that case nothing has been seeked.
        """
        self.cancel()

        try:
            surface = create_surface(request.width, request.height)
        except UserFacingError as e:
            logger.error("sampling aborted: %s", e)
            self.failed.emit(e.title, e.description)
            return False

        src = self._source
        self._restore = (src.playback_rate(), src.is_paused())
        src.pause()
        src.set_playback_rate(1.0)

        self._token += 1
        self._progress = 0
        self._request = request
        self._gen = capture_steps(request, src, surface)
        total = len(request.timestamps())
        logger.info(
            "sampling %d frames over [%.3f, %.3f] at %.3f Hz burn_in=%s",
            total, request.selection.start, request.selection.end, request.hz, request.burn_in,
        )
        self.started.emit(total)
        self.progress_changed.emit(0)
        self._advance(self._token, None)
        return True

    def cancel(self) -> None:
        if self._gen is None:
            return
        logger.info("sampling canceled at %d%%", self._progress)
        self._teardown()
        self.canceled.emit()

    def _teardown(self) -> None:
        self._token += 1
        self._timer.stop()
        self._waiting = None
        gen, self._gen = self._gen, None
        if gen is not None:
            gen.close()
        self._restore_source()

    def _restore_source(self) -> None:
        if self._restore is None:
            return
        rate, was_paused = self._restore
        self._restore = None
        self._source.set_playback_rate(rate)
        if not was_paused:
            self._source.play()

    # ---------------- Step dispatch ----------------

    def _advance(self, token: int, value: Optional[SeekOutcome]) -> None:
        if token != self._token or self._gen is None:
            return
        try:
            step = self._gen.send(value)
        except StopIteration as stop:
            frames = stop.value or ()
            self._gen = None
            self._teardown()
            logger.info("sampling finished: %d frames", len(frames))
            self.finished.emit(frames)
            return
        except UserFacingError as e:
            logger.error("sampling failed: %s", e)
            self._fail(e.title, e.description)
            return
        except Exception as e:
            logger.exception("sampling crashed")
            self._fail("Sampling failed", str(e) or e.__class__.__name__)
            return

        if isinstance(step, SeekStep):
            self._waiting = "seek"
            self._timer.start(self._request.seek_timeout_ms)
            self._source.set_position(step.time)
        elif isinstance(step, PaintStep):
            self._waiting = "paint"
            self._timer.start(self._request.paint_timeout_ms)
        elif isinstance(step, YieldStep):
            self._progress = step.progress
            self.frame_captured.emit(step.frame)
            if token != self._token:
                # a frame_captured handler canceled or restarted the run
                return
            self.progress_changed.emit(step.progress)
            QTimer.singleShot(0, lambda: self._advance(token, None))

    def _fail(self, title: str, description: str) -> None:
        self._gen = None
        self._teardown()
        self.failed.emit(title, description)

    # ---------------- Source signals ----------------

    def _resume(self, value: Optional[SeekOutcome]) -> None:
        self._timer.stop()
        self._waiting = None
        self._advance(self._token, value)

    def _on_seeked(self, _t: float) -> None:
        if self._waiting == "seek":
            self._resume(SeekOutcome(ok=True))

    def _on_seek_failed(self, message: str) -> None:
        if self._waiting == "seek":
            self._resume(SeekOutcome(ok=False, error=message or "seek failed"))

    def _on_painted(self) -> None:
        if self._waiting == "paint":
            self._resume(None)

    def _on_timeout(self) -> None:
        if self._waiting == "seek":
            self._resume(SeekOutcome(ok=False, error="timed out"))
        elif self._waiting == "paint":
            # no repaint arrived; capture what is presented now
            self._resume(None)
