"""
Sampling pipeline tests: timestamps, burn-in, run replacement and source restore.
"""

import logging

import pytest
from PyQt5.QtGui import QColor, QImage

from video_sampler.domain import TimeRange, TriangleAnnotation
from video_sampler.errors import SelectionUnavailableError
from video_sampler.sampling import (
    FrameSampler,
    SamplingRequest,
    create_surface,
    rasterize_frame,
    sample_timestamps,
)
from video_sampler.session import EditorSession


class TestSampleTimestamps:
    def test_two_hz_over_ten_seconds(self):
        times = sample_timestamps(0.0, 10.0, 2.0)
        assert len(times) == 21
        assert times[0] == 0.0
        assert times[-1] == 10.0
        assert times == pytest.approx([i * 0.5 for i in range(21)])

    def test_end_always_included(self):
        assert sample_timestamps(0.0, 1.0, 0.3) == [0.0, 1.0]
        assert sample_timestamps(1.0, 2.5, 1.0) == [1.0, 2.0, 2.5]

    def test_zero_length_range(self):
        assert sample_timestamps(3.0, 3.0, 5.0) == [3.0]

    def test_no_accumulated_drift(self):
        times = sample_timestamps(0.0, 100.0, 10.0)
        assert len(times) == 1001
        assert times[-1] == 100.0
        assert times[700] == pytest.approx(70.0, abs=1e-12)

    def test_strictly_increasing(self):
        times = sample_timestamps(0.25, 7.3, 3.0)
        assert all(b > a for a, b in zip(times, times[1:]))

    def test_rejects_bad_input(self):
        with pytest.raises(ValueError):
            sample_timestamps(0.0, 1.0, 0.0)
        with pytest.raises(ValueError):
            sample_timestamps(2.0, 1.0, 1.0)


def _request(selection=(0.0, 10.0), hz=2.0, annotations=(), burn_in=True, fmt="PNG", **kw):
    return SamplingRequest(
        selection=TimeRange(*selection),
        hz=hz,
        width=kw.pop("width", 320),
        height=kw.pop("height", 180),
        annotations=tuple(annotations),
        burn_in=burn_in,
        image_format=fmt,
        image_quality=kw.pop("quality", -1),
        **kw,
    )


def _has_red_near_bottom_edge(data: bytes) -> bool:
    # bottom edge of a size-0.5 triangle centered on a 320x180 frame sits at y ~ 116
    img = QImage.fromData(data)
    for y in range(112, 121):
        for x in range(150, 171):
            c = QColor(img.pixel(x, y))
            if c.red() > 200 and c.green() < 60 and c.blue() < 60:
                return True
    return False


def _collect(sampler):
    out = {"finished": [], "failed": [], "canceled": 0, "progress": [], "frames": []}
    sampler.finished.connect(lambda frames: out["finished"].append(frames))
    sampler.failed.connect(lambda title, desc: out["failed"].append((title, desc)))
    sampler.canceled.connect(lambda: out.__setitem__("canceled", out["canceled"] + 1))
    sampler.progress_changed.connect(out["progress"].append)
    sampler.frame_captured.connect(out["frames"].append)
    return out


class TestFrameSampler:
    def test_captures_every_timestamp_in_order(self, make_source, wait_until):
        src = make_source()
        sampler = FrameSampler(src)
        out = _collect(sampler)

        assert sampler.start(_request(fmt="JPG", quality=92))
        assert wait_until(lambda: out["finished"])

        frames = out["finished"][0]
        assert len(frames) == 21
        assert [f.index for f in frames] == list(range(21))
        assert frames[-1].time == 10.0
        assert all(f.image[:2] == b"\xff\xd8" for f in frames)  # JPEG SOI
        assert src.seek_log == pytest.approx([f.time for f in frames])
        assert out["progress"] == sorted(out["progress"])
        assert out["progress"][-1] == 100
        assert not sampler.is_running()

    def test_burn_in_only_inside_annotation_range(self, make_source, wait_until):
        src = make_source()
        sampler = FrameSampler(src)
        out = _collect(sampler)
        anno = TriangleAnnotation(
            id="a1", x=0.5, y=0.5, size=0.5, stroke_width=40.0, color="#ff0000", start=2.0, end=4.0,
        )

        sampler.start(_request(annotations=[anno]))
        assert wait_until(lambda: out["finished"])

        frames = out["finished"][0]
        assert len(frames) == 21
        for f in frames:
            assert _has_red_near_bottom_edge(f.image) == (2.0 <= f.time <= 4.0), f.time

    def test_burned_triangle_count_logged_per_frame(self, make_source, wait_until, caplog):
        caplog.set_level(logging.DEBUG, logger="video_sampler.sampling")
        src = make_source()
        sampler = FrameSampler(src)
        out = _collect(sampler)
        anno = TriangleAnnotation(
            id="a1", x=0.5, y=0.5, size=0.5, stroke_width=5.0, color="#ff0000", start=1.0, end=2.0,
        )

        sampler.start(_request(selection=(0.0, 3.0), hz=1.0, annotations=[anno]))
        assert wait_until(lambda: out["finished"])

        lines = [r.getMessage() for r in caplog.records if r.getMessage().startswith("frame ")]
        assert [("triangles=1" in m) for m in lines] == [False, True, True, False]

    def test_second_run_replaces_first(self, make_source, wait_until):
        src = make_source()
        sampler = FrameSampler(src)
        out = _collect(sampler)

        restarted = []

        def restart_after_second_frame(frame):
            if frame.index == 1 and not restarted:
                restarted.append(True)
                sampler.start(_request(selection=(0.0, 4.0), hz=1.0))

        sampler.frame_captured.connect(restart_after_second_frame)
        sampler.start(_request())
        assert wait_until(lambda: out["finished"])
        wait_until(lambda: False, timeout_ms=200)

        assert out["canceled"] == 1
        assert len(out["finished"]) == 1
        assert [f.time for f in out["finished"][0]] == [0.0, 1.0, 2.0, 3.0, 4.0]

    def test_restores_rate_and_playing_state(self, make_source, wait_until):
        src = make_source()
        src.play()
        src.set_playback_rate(1.5)
        sampler = FrameSampler(src)
        out = _collect(sampler)

        sampler.start(_request(selection=(0.0, 2.0), hz=1.0))
        assert src.is_paused()
        assert src.playback_rate() == 1.0
        assert wait_until(lambda: out["finished"])

        assert all(src.paused_during_seeks)
        assert not src.is_paused()
        assert src.playback_rate() == 1.5

    def test_cancel_restores_and_discards(self, make_source, wait_until):
        src = make_source()
        src.set_playback_rate(2.0)
        sampler = FrameSampler(src)
        out = _collect(sampler)

        sampler.frame_captured.connect(lambda frame: sampler.cancel())
        sampler.start(_request())
        assert wait_until(lambda: not sampler.is_running())
        wait_until(lambda: False, timeout_ms=200)

        assert out["canceled"] == 1
        assert out["finished"] == []
        assert out["progress"] == [0]
        assert src.playback_rate() == 2.0
        assert src.is_paused()

    def test_seek_failure_still_captures(self, make_source, wait_until):
        src = make_source()
        src.fail_seeks = True
        sampler = FrameSampler(src)
        out = _collect(sampler)

        sampler.start(_request(selection=(0.0, 2.0), hz=1.0))
        assert wait_until(lambda: out["finished"])
        assert len(out["finished"][0]) == 3
        assert out["failed"] == []

    def test_unresponsive_source_times_out(self, make_source, wait_until):
        src = make_source()
        src.silent = True
        sampler = FrameSampler(src)
        out = _collect(sampler)

        sampler.start(_request(selection=(0.0, 1.0), hz=1.0, seek_timeout_ms=10, paint_timeout_ms=5))
        assert wait_until(lambda: out["finished"], timeout_ms=3000)
        assert len(out["finished"][0]) == 2

    def test_surface_failure_aborts_before_seeking(self, make_source, wait_until):
        src = make_source()
        sampler = FrameSampler(src)
        out = _collect(sampler)
        started = []
        sampler.started.connect(started.append)

        assert sampler.start(_request(width=0, height=0)) is False
        assert out["failed"] and out["failed"][0][0] == "Canvas error"
        assert src.seek_log == []
        assert started == []
        assert not sampler.is_running()


class TestSamplingRequest:
    def test_requires_selection(self):
        s = EditorSession()
        s.load_media("clip.mp4")
        s.media_ready(10.0, 640, 360)
        s.set_selection(None)
        with pytest.raises(SelectionUnavailableError):
            SamplingRequest.from_session(s)

    def test_snapshots_annotations_only_with_burn_in(self, session):
        session.add_annotation_at(0.5, 0.5)
        req = SamplingRequest.from_session(session)
        assert req.burn_in is True
        assert len(req.annotations) == 1

        # later edits do not leak into the snapshot
        session.store.set_position(req.annotations[0].id, 0.1, 0.1)
        assert req.annotations[0].x == 0.5

        session.overlay_enabled = False
        req = SamplingRequest.from_session(session)
        assert req.burn_in is False
        assert req.annotations == ()

    def test_uses_native_frame_size(self, session):
        req = SamplingRequest.from_session(session)
        assert (req.width, req.height) == (1920, 1080)
        assert req.timestamps()[-1] == 10.0


class TestRasterize:
    def test_only_active_triangles_are_drawn(self, qapp):
        surface = create_surface(64, 64)
        anno = TriangleAnnotation(
            id="a", x=0.5, y=0.5, size=0.5, stroke_width=5.0, color="#ff0000", start=1.0, end=2.0,
        )
        assert rasterize_frame(surface, None, (anno,), 1.5) == 1
        assert rasterize_frame(surface, None, (anno,), 2.5) == 0
