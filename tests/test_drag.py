"""
Drag engine tests: timeline gestures, selection bounds, overlay drag and click suppression.
"""

import random

import pytest

from video_sampler.domain import TimeRange
from video_sampler.drag import (
    CreatingSelection,
    DraggingAnnotationPosition,
    Idle,
    MovingAnnotationRange,
    ResizingAnnotationEnd,
    ResizingAnnotationStart,
    Seeking,
)

# 1000 px wide timeline over a 10 s video: 100 px per second
WIDTH = 1000.0
EPS = 1e-9


def _add(session, start, end, x=0.5, y=0.5):
    session.current_time = start
    anno = session.add_annotation_at(x, y).annotation
    session.store.set_time(anno.id, start=start, end=end)
    return anno


class TestScrub:
    def test_press_and_move_seeks(self, session, engine):
        seeks = []
        session.seek_handler = seeks.append

        assert engine.press_scrub(250, WIDTH)
        assert isinstance(engine.state, Seeking)
        engine.move_timeline(700, WIDTH)
        engine.move_timeline(5000, WIDTH)

        assert seeks == pytest.approx([2.5, 7.0, 10.0])
        assert session.current_time == 10.0
        assert engine.release()
        assert isinstance(engine.state, Idle)

    def test_select_mode_creates_selection(self, session, engine):
        session.select_mode = True
        engine.press_scrub(600, WIDTH)
        assert isinstance(engine.state, CreatingSelection)
        engine.move_timeline(200, WIDTH)
        assert session.selection == TimeRange(pytest.approx(2.0), pytest.approx(6.0))

    def test_no_media_no_gesture(self, engine, session):
        session.reset()
        assert engine.press_scrub(100, WIDTH) is False
        assert not engine.is_active()

    def test_width_change_mid_gesture(self, session, engine):
        engine.press_scrub(0, WIDTH)
        engine.move_timeline(250, 500.0)
        assert session.current_time == pytest.approx(5.0)


class TestAnnotationRange:
    def test_move_keeps_length_and_bounds(self, session, engine):
        anno = _add(session, 2.0, 5.0)
        engine.press_annotation_body(anno.id, 300)
        assert isinstance(engine.state, MovingAnnotationRange)
        assert session.selected_id == anno.id

        engine.move_timeline(500, WIDTH)
        assert (anno.start, anno.end) == (pytest.approx(4.0), pytest.approx(7.0))

        engine.move_timeline(2000, WIDTH)
        assert (anno.start, anno.end) == (pytest.approx(7.0), pytest.approx(10.0))

        engine.move_timeline(-2000, WIDTH)
        assert (anno.start, anno.end) == (pytest.approx(0.0), pytest.approx(3.0))

    def test_resize_start_respects_min_length(self, session, engine):
        anno = _add(session, 2.0, 5.0)
        engine.press_annotation_start(anno.id, 200)
        assert isinstance(engine.state, ResizingAnnotationStart)

        engine.move_timeline(900, WIDTH)
        assert anno.end - anno.start >= session.config.min_clip_len - EPS
        assert anno.end == 5.0

        engine.move_timeline(-500, WIDTH)
        assert anno.start == 0.0

    def test_resize_end_respects_min_length_and_duration(self, session, engine):
        anno = _add(session, 2.0, 5.0)
        engine.press_annotation_end(anno.id, 500)
        assert isinstance(engine.state, ResizingAnnotationEnd)

        engine.move_timeline(0, WIDTH)
        assert anno.end - anno.start >= session.config.min_clip_len - EPS

        engine.move_timeline(5000, WIDTH)
        assert anno.end == 10.0

    def test_random_resize_sequences_keep_min_length(self, session, engine):
        rng = random.Random(7)
        anno = _add(session, 4.0, 6.0)
        for _ in range(50):
            press = rng.choice([engine.press_annotation_start, engine.press_annotation_end])
            press(anno.id, rng.uniform(0, WIDTH))
            for _ in range(10):
                engine.move_timeline(rng.uniform(-500, 1500), WIDTH)
                assert anno.end - anno.start >= session.config.min_clip_len - EPS
                assert anno.start >= 0.0
            engine.release()

    def test_unknown_id_is_ignored(self, engine):
        assert engine.press_annotation_body("missing", 10) is False
        assert not engine.is_active()


class TestSelectionDrag:
    def test_random_drags_stay_in_bounds(self, session, engine):
        rng = random.Random(11)
        session.set_selection(TimeRange(2.0, 6.0))
        presses = [engine.press_selection_body, engine.press_selection_start, engine.press_selection_end]
        for _ in range(60):
            rng.choice(presses)(rng.uniform(0, WIDTH))
            for _ in range(10):
                engine.move_timeline(rng.uniform(-800, 1800), WIDTH)
                sel = session.selection
                assert 0.0 <= sel.start <= sel.end <= session.duration
            engine.release()

    def test_move_preserves_length(self, session, engine):
        session.set_selection(TimeRange(2.0, 6.0))
        engine.press_selection_body(400)
        engine.move_timeline(900, WIDTH)
        assert session.selection == TimeRange(pytest.approx(6.0), pytest.approx(10.0))

    def test_requires_selection(self, session, engine):
        session.set_selection(None)
        assert engine.press_selection_body(10) is False
        assert engine.press_selection_start(10) is False


class TestOverlay:
    def test_drag_moves_triangle(self, session, engine):
        anno = session.add_annotation_at(0.5, 0.5).annotation
        assert engine.press_overlay(0.5, 0.5)
        assert isinstance(engine.state, DraggingAnnotationPosition)

        bounds = (100.0, 50.0, 960.0, 540.0)
        engine.move_overlay(100 + 240, 50 + 135, bounds)
        assert (anno.x, anno.y) == (pytest.approx(0.25), pytest.approx(0.25))

        engine.move_overlay(-500, 5000, bounds)
        assert (anno.x, anno.y) == (0.0, 1.0)

    def test_click_after_drag_is_swallowed_once(self, session, engine):
        session.add_annotation_at(0.5, 0.5)
        engine.press_overlay(0.5, 0.5)
        engine.release()

        assert engine.click_overlay(0.5, 0.5) is None
        assert len(session.store) == 1

        engine.press_overlay(0.1, 0.1)
        engine.release()
        result = engine.click_overlay(0.1, 0.1)
        assert result is not None and result.created
        assert len(session.store) == 2

    def test_click_on_existing_selects(self, session, engine):
        first = session.add_annotation_at(0.5, 0.5).annotation
        session.add_annotation_at(0.2, 0.2)
        session.overlay_enabled = False  # no drag starts on press

        engine.press_overlay(0.5, 0.5)
        result = engine.click_overlay(0.5, 0.5)
        assert result.created is False
        assert session.selected_id == first.id

    def test_timeline_moves_ignored_during_overlay_drag(self, session, engine):
        session.add_annotation_at(0.5, 0.5)
        engine.press_overlay(0.5, 0.5)
        assert engine.move_timeline(300, WIDTH) is False
