"""
Test fixtures for the video sampler.

Provides a headless QApplication, an in-memory media source and an event-loop
wait helper so the asynchronous sampling pipeline can be exercised.
"""

import os
import time

os.environ.setdefault("QT_QPA_PLATFORM", "offscreen")

import pytest
from PyQt5.QtCore import QCoreApplication, QEventLoop, Qt, QTimer
from PyQt5.QtGui import QColor, QImage
from PyQt5.QtWidgets import QApplication, QMessageBox

from video_sampler.config import EditorConfig
from video_sampler.drag import DragEngine
from video_sampler.media import MediaSource
from video_sampler.session import EditorSession


class FakeMediaSource(MediaSource):
    """
    Media source backed by a solid-color QImage.

    Seeks answer on the next event-loop turn with `seeked` then `painted`.
    Set fail_seeks to answer with `seek_failed`, or silent to never answer.
    """

    def __init__(self, width=320, height=180, duration=10.0, color=Qt.black):
        super().__init__()
        self._w = width
        self._h = height
        self._duration = duration
        self._pos = 0.0
        self._paused = True
        self._rate = 1.0
        self.fail_seeks = False
        self.silent = False
        self.seek_log = []
        self.paused_during_seeks = []
        self._image = QImage(width, height, QImage.Format_RGB32)
        self._image.fill(QColor(color))

    def native_size(self):
        return (self._w, self._h)

    def duration(self):
        return self._duration

    def position(self):
        return self._pos

    def set_position(self, seconds):
        self.seek_log.append(seconds)
        self.paused_during_seeks.append(self._paused)
        self._pos = seconds
        if self.silent:
            return
        if self.fail_seeks:
            QTimer.singleShot(0, lambda: self.seek_failed.emit("decoder error"))
            return
        QTimer.singleShot(0, lambda t=seconds: self.seeked.emit(t))
        QTimer.singleShot(0, self.painted.emit)

    def play(self):
        self._paused = False
        self.playback_state_changed.emit(True)

    def pause(self):
        self._paused = True
        self.playback_state_changed.emit(False)

    def is_paused(self):
        return self._paused

    def playback_rate(self):
        return self._rate

    def set_playback_rate(self, rate):
        self._rate = rate

    def current_image(self):
        return self._image


@pytest.fixture(scope="session")
def qapp():
    """One headless QApplication for the whole run."""
    app = QApplication.instance() or QApplication([])
    yield app


@pytest.fixture
def make_source(qapp):
    """Factory for FakeMediaSource instances."""
    created = []

    def _make(**kwargs):
        src = FakeMediaSource(**kwargs)
        created.append(src)
        return src

    yield _make
    for src in created:
        src.deleteLater()


@pytest.fixture
def wait_until(qapp):
    """Spin the Qt event loop until predicate() is true or the timeout passes."""

    def _wait(predicate, timeout_ms=5000):
        deadline = time.monotonic() + timeout_ms / 1000.0
        while not predicate():
            if time.monotonic() > deadline:
                return False
            QCoreApplication.processEvents(QEventLoop.AllEvents, 20)
            time.sleep(0.001)
        return True

    return _wait


@pytest.fixture
def message_boxes(monkeypatch):
    """Record (kind, title, text) for every QMessageBox shown instead of opening a modal dialog."""
    shown = []

    def _recorder(kind):
        def _show(parent, title, text, *args, **kwargs):
            shown.append((kind, title, text))
            return QMessageBox.Ok
        return _show

    for kind in ("information", "warning", "critical"):
        monkeypatch.setattr(QMessageBox, kind, _recorder(kind))
    return shown


@pytest.fixture
def config():
    return EditorConfig()


@pytest.fixture
def session(config):
    """Session with a 10 s, 1920x1080 video loaded."""
    s = EditorSession(config)
    s.load_media("clip.mp4")
    s.media_ready(10.0, 1920, 1080)
    return s


@pytest.fixture
def engine(session):
    return DragEngine(session)
