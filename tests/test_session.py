"""
Editor session and annotation store tests.
"""

import random

import pytest

from video_sampler.domain import Frame, TimeRange, TriangleAnnotation
from video_sampler.errors import MediaUnavailableError, NoFramesError, SelectionUnavailableError
from video_sampler.session import EditorSession
from video_sampler.store import AnnotationStore, group_tracks, track_key


def _anno(id, x=0.5, y=0.5, color="#c0c5ce", start=0.0, end=1.0, size=0.1):
    return TriangleAnnotation(id=id, x=x, y=y, size=size, stroke_width=5.0, color=color, start=start, end=end)


class TestMediaLifecycle:
    def test_default_selection_is_capped(self):
        s = EditorSession()
        s.load_media("long.mp4")
        s.media_ready(120.0, 1280, 720)
        assert s.selection == TimeRange(0.0, 30.0)

        s.load_media("short.mp4")
        s.media_ready(8.5, 1280, 720)
        assert s.selection == TimeRange(0.0, 8.5)

    def test_load_clears_everything_and_new_sequence(self, session):
        session.add_annotation_at(0.3, 0.3)
        session.replace_frames((Frame(0, 0.0, b"x"),), burned_in=True)
        old_tag = session.sequence_tag

        session.load_media("other.mp4")
        assert len(session.store) == 0
        assert session.frames == ()
        assert session.frames_burned_in is False
        assert session.selected_id is None
        assert session.sequence_tag != old_tag
        assert session.sequence_tag.startswith("sequence_")
        assert not session.has_media()

    def test_sequence_tag_stable_between_resets(self, session):
        tag = session.sequence_tag
        session.replace_frames((Frame(0, 0.0, b"x"),))
        session.clear_frames()
        assert session.sequence_tag == tag
        session.reset()
        assert session.sequence_tag != tag

    def test_require_media(self):
        with pytest.raises(MediaUnavailableError):
            EditorSession().require_media()


class TestPlayheadAndSelection:
    def test_seek_is_clamped_and_forwarded(self, session):
        seeks = []
        session.seek_handler = seeks.append
        session.seek(12.0)
        session.seek_by(-20.0)
        assert seeks == [10.0, 0.0]

    def test_require_selection(self, session):
        session.set_selection(TimeRange(4.0, 4.0))
        with pytest.raises(SelectionUnavailableError):
            session.require_selection()
        session.set_selection(TimeRange(1.0, 3.0))
        assert session.require_selection() == TimeRange(1.0, 3.0)

    def test_sampling_rate_floor(self, session):
        assert session.set_sampling_hz(0.0) == session.config.min_sampling_hz
        assert session.set_sampling_hz(4.0) == 4.0


class TestAnnotations:
    def test_add_uses_defaults_at_playhead(self, session):
        session.current_time = 2.0
        result = session.add_annotation_at(0.4, 0.6)
        anno = result.annotation
        assert result.created
        assert (anno.start, anno.end) == (2.0, 5.0)
        assert anno.size == session.config.default_size
        assert anno.color == session.config.default_color
        assert session.selected_id == anno.id

    def test_end_clamped_to_duration(self, session):
        session.current_time = 9.0
        anno = session.add_annotation_at(0.4, 0.6).annotation
        assert anno.end == 10.0

    def test_duplicate_selects_existing(self, session):
        first = session.add_annotation_at(0.501, 0.499).annotation
        session.select(None)
        result = session.add_annotation_at(0.5, 0.5)
        assert result.created is False
        assert result.annotation.id == first.id
        assert result.notice is not None
        assert result.notice.title == "Triangle already exists"
        assert session.selected_id == first.id
        assert len(session.store) == 1

    def test_remove_selected(self, session):
        anno = session.add_annotation_at(0.4, 0.6).annotation
        assert session.remove_selected()
        assert anno.id not in session.store
        assert session.selected_id is None
        assert not session.remove_selected()

    def test_style_update_is_clamped(self, session):
        session.add_annotation_at(0.4, 0.6)
        anno = session.update_selected_style(size=5.0, color="#EF4444")
        assert anno.size == session.config.max_size
        assert anno.color == "#ef4444"
        anno = session.update_selected_style(size=0.0)
        assert anno.size == session.config.min_size

    def test_overlay_disabled_hides_active(self, session):
        session.add_annotation_at(0.4, 0.6)
        assert len(session.active_annotations()) == 1
        session.overlay_enabled = False
        assert session.active_annotations() == []
        assert session.burn_in_applied() is False

    def test_topmost_hit(self, session):
        older = session.add_annotation_at(0.5, 0.5).annotation
        newer = session.add_annotation_at(0.52, 0.5).annotation
        older.size = newer.size = 0.2
        assert session.find_topmost_at(0.5, 0.5).id == newer.id
        assert session.find_topmost_at(0.05, 0.05) is None

    def test_require_frames(self, session):
        with pytest.raises(NoFramesError):
            session.require_frames()


class TestStore:
    def test_duplicate_id_rejected(self):
        store = AnnotationStore([_anno("a")])
        with pytest.raises(ValueError):
            store.add(_anno("a"))

    def test_active_at_is_inclusive(self):
        store = AnnotationStore([_anno("a", start=1.0, end=2.0)])
        assert [a.id for a in store.active_at(1.0)] == ["a"]
        assert [a.id for a in store.active_at(2.0)] == ["a"]
        assert store.active_at(2.01) == []

    def test_set_position_clamps(self):
        store = AnnotationStore([_anno("a")])
        store.set_position("a", -1.0, 3.0)
        assert (store.get("a").x, store.get("a").y) == (0.0, 1.0)


class TestTracks:
    def test_track_key_rounds_percent(self):
        assert track_key(0.504, 0.126, "#ff0000") == "50_13_#ff0000"

    def test_grouping_by_position_and_color(self):
        annos = [
            _anno("a", x=0.5, y=0.5, start=4.0, end=5.0),
            _anno("b", x=0.501, y=0.499, start=1.0, end=2.0),
            _anno("c", x=0.5, y=0.5, color="#ef4444"),
            _anno("d", x=0.2, y=0.2),
        ]
        tracks = {t.key: t for t in group_tracks(annos)}
        assert len(tracks) == 3
        same = tracks["50_50_#c0c5ce"]
        assert same.member_ids() == ["b", "a"]
        assert same.label == "Triangle (50%, 50%)"

    def test_grouping_is_order_independent(self):
        annos = [_anno(str(i), x=(i % 3) / 10.0, start=float(i)) for i in range(12)]
        expected = {t.key: t.member_ids() for t in group_tracks(annos)}
        rng = random.Random(3)
        for _ in range(5):
            shuffled = list(annos)
            rng.shuffle(shuffled)
            assert {t.key: t.member_ids() for t in group_tracks(shuffled)} == expected

    def test_label_taken_from_annotation(self):
        a = _anno("a")
        a.label = "Ball"
        assert group_tracks([a])[0].label == "Ball"
