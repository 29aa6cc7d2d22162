"""
Archive packaging tests.
"""

import io
import json
import zipfile

import pytest

from video_sampler.domain import Frame, TimeRange
from video_sampler.errors import NoFramesError
from video_sampler.export import (
    archive_filename,
    build_archive,
    build_metadata,
    export_session,
    frame_filename,
)

TAG = "sequence_1234"


def _frames(n=3):
    return [Frame(index=i, time=i * 0.5, image=f"img{i}".encode()) for i in range(n)]


class TestNames:
    def test_frame_filename(self):
        assert frame_filename(TAG, Frame(7, 3.5, b"")) == "sequence_1234_0007_3.500s.jpg"
        assert frame_filename(TAG, Frame(12, 10.0, b""), ".png") == "sequence_1234_0012_10.000s.png"

    def test_archive_filename(self):
        assert archive_filename(TAG) == "sequence_1234.zip"


class TestArchive:
    def test_layout_and_metadata(self, session):
        anno = session.add_annotation_at(0.25, 0.75).annotation
        frames = _frames()
        meta = build_metadata(TAG, "clip.mp4", TimeRange(0.0, 1.0), 2.0, frames, [anno], burn_in=True)
        data = build_archive(TAG, frames, meta)

        with zipfile.ZipFile(io.BytesIO(data)) as zf:
            names = sorted(zf.namelist())
            assert names == [
                "sequence_1234/sequence_1234_0000_0.000s.jpg",
                "sequence_1234/sequence_1234_0001_0.500s.jpg",
                "sequence_1234/sequence_1234_0002_1.000s.jpg",
                "sequence_1234/sequence_1234_metadata.json",
            ]
            assert zf.read("sequence_1234/sequence_1234_0001_0.500s.jpg") == b"img1"
            loaded = json.loads(zf.read("sequence_1234/sequence_1234_metadata.json"))

        assert loaded["sequence_tag"] == TAG
        assert loaded["source_video"] == "clip.mp4"
        assert loaded["selection"] == {"start": 0.0, "end": 1.0}
        assert loaded["sampling_hz"] == 2.0
        assert loaded["frames"] == [{"index": i, "time": i * 0.5} for i in range(3)]
        assert loaded["note"]
        (a,) = loaded["annotations"]
        assert a["id"] == anno.id
        assert a["type"] == "triangle"
        assert a["normalized_apex"] == {"x": 0.25, "y": 0.75}
        assert a["normalized_size"] == anno.size
        assert a["stroke_width_ref_px"] == anno.stroke_width
        assert a["applied_to_frames"] is True

    def test_empty_frame_set_rejected(self):
        with pytest.raises(NoFramesError):
            build_archive(TAG, [], {})


class TestExportSession:
    def test_writes_zip_named_after_sequence(self, session, tmp_path):
        session.replace_frames(tuple(_frames(2)), burned_in=False)
        path = export_session(session, str(tmp_path))

        assert path == str(tmp_path / f"{session.sequence_tag}.zip")
        with zipfile.ZipFile(path) as zf:
            meta = json.loads(zf.read(f"{session.sequence_tag}/{session.sequence_tag}_metadata.json"))
        assert meta["source_video"] == "clip.mp4"
        assert len(meta["frames"]) == 2

    def test_nothing_sampled(self, session, tmp_path):
        with pytest.raises(NoFramesError):
            export_session(session, str(tmp_path))
        assert list(tmp_path.iterdir()) == []
