# video_sampler/export.py
from __future__ import annotations

import io
import json
import logging
import os
import zipfile
from typing import Dict, Iterable, Optional, Sequence

from .domain import Frame, TimeRange, TriangleAnnotation
from .errors import NoFramesError
from .persistence import write_bytes_atomic

logger = logging.getLogger(__name__)

METADATA_NOTE = "Intended for Viam Data upload (images only)."


# -----------------------------
# Names
# -----------------------------

def frame_filename(sequence_tag: str, frame: Frame, extension: str = ".jpg") -> str:
    """sequence_<uuid>_0007_3.500s.jpg"""
    return f"{sequence_tag}_{frame.index:04d}_{frame.time:.3f}s{extension}"


def metadata_filename(sequence_tag: str) -> str:
    return f"{sequence_tag}_metadata.json"


def archive_filename(sequence_tag: str) -> str:
    return f"{sequence_tag}.zip"


# -----------------------------
# Metadata
# -----------------------------

def annotation_metadata(anno: TriangleAnnotation, applied_to_frames: bool) -> Dict:
    return {
        "id": anno.id,
        "type": "triangle",
        "start": float(anno.start),
        "end": float(anno.end),
        "normalized_apex": {"x": float(anno.x), "y": float(anno.y)},
        "normalized_size": float(anno.size),
        "color": anno.color,
        "stroke_width_ref_px": float(anno.stroke_width),
        "applied_to_frames": bool(applied_to_frames),
    }


def build_metadata(
    sequence_tag: str,
    source_video: str,
    selection: Optional[TimeRange],
    sampling_hz: float,
    frames: Sequence[Frame],
    annotations: Iterable[TriangleAnnotation],
    burn_in: bool,
) -> Dict:
    return {
        "sequence_tag": sequence_tag,
        "source_video": source_video,
        "selection": selection.to_dict() if selection is not None else None,
        "sampling_hz": float(sampling_hz),
        "frames": [{"index": f.index, "time": float(f.time)} for f in frames],
        "annotations": [annotation_metadata(a, burn_in) for a in annotations],
        "note": METADATA_NOTE,
    }


# -----------------------------
# Archive
# -----------------------------

def build_archive(
    sequence_tag: str,
    frames: Sequence[Frame],
    metadata: Dict,
    extension: str = ".jpg",
) -> bytes:
    """
    Zip the frames plus metadata into memory.

    Layout: <tag>/<tag>_<index>_<time>s.jpg for every frame, and
    <tag>/<tag>_metadata.json.
    """
    if not frames:
        raise NoFramesError("Sample an export region first.")

    buf = io.BytesIO()
    with zipfile.ZipFile(buf, "w", compression=zipfile.ZIP_DEFLATED) as zf:
        for f in frames:
            # already-compressed images
            zf.writestr(
                f"{sequence_tag}/{frame_filename(sequence_tag, f, extension)}",
                f.image,
                compress_type=zipfile.ZIP_STORED,
            )
        zf.writestr(
            f"{sequence_tag}/{metadata_filename(sequence_tag)}",
            json.dumps(metadata, indent=2, ensure_ascii=False),
        )
    return buf.getvalue()


def export_session(session, directory: str) -> str:
    """
    Package the session's sampled frames and write <tag>.zip into directory.

    Returns the written path. Raises NoFramesError if nothing was sampled.
    """
    frames = session.require_frames()
    tag = session.sequence_tag
    cfg = session.config
    metadata = build_metadata(
        sequence_tag=tag,
        source_video=session.source_name,
        selection=session.selection,
        sampling_hz=session.sampling_hz,
        frames=frames,
        annotations=session.annotations(),
        burn_in=session.frames_burned_in,
    )
    data = build_archive(tag, frames, metadata, cfg.image_extension())
    path = os.path.join(directory, archive_filename(tag))
    write_bytes_atomic(path, data)
    logger.info("exported %d frames to %s (%d bytes)", len(frames), path, len(data))
    return path
