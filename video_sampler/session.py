# video_sampler/session.py
from __future__ import annotations

import logging
from typing import Callable, List, Optional, Tuple

from .config import EditorConfig
from .domain import (
    CreateResult,
    Frame,
    Notice,
    TimeRange,
    Track,
    TriangleAnnotation,
    clamp,
    new_id,
    normalize_color,
    sequence_tag_for,
)
from .errors import MediaUnavailableError, NoFramesError, SelectionUnavailableError
from .geometry import find_topmost_at
from .store import AnnotationStore, track_key

logger = logging.getLogger(__name__)


class EditorSession:
    """
    In-memory state for the currently loaded video.

    Owns the annotation store, the export selection, the playhead and the
    last sampled frame set. Nothing here survives a reset or a new load.
    """

    def __init__(self, config: Optional[EditorConfig] = None):
        self.config: EditorConfig = config or EditorConfig()
        self.store = AnnotationStore()

        self.source_name: str = ""
        self.duration: float = 0.0
        self.frame_width: int = 0
        self.frame_height: int = 0
        self.current_time: float = 0.0

        self.selection: Optional[TimeRange] = None
        self.select_mode: bool = False
        self.selected_id: Optional[str] = None

        self.sampling_hz: float = self.config.default_sampling_hz
        self.overlay_enabled: bool = True
        self.burn_in: bool = True

        self.frames: Tuple[Frame, ...] = ()
        self.frames_burned_in: bool = False
        self.sequence_id: str = new_id()

        # Where playhead changes go (the media source, once the UI wires it up)
        self.seek_handler: Optional[Callable[[float], None]] = None

    # ---------------- Media lifecycle ----------------

    def load_media(self, source_name: str) -> None:
        """Start over for a newly chosen file. Size/duration arrive later via media_ready()."""
        self._clear_all()
        self.source_name = source_name or ""
        logger.info("media loaded name=%s sequence=%s", self.source_name, self.sequence_tag)

    def media_ready(self, duration: float, width: int, height: int) -> None:
        self.duration = max(0.0, float(duration or 0.0))
        self.frame_width = max(0, int(width or 0))
        self.frame_height = max(0, int(height or 0))
        self.current_time = 0.0
        default_end = min(self.config.default_selection_cap, self.duration)
        self.selection = TimeRange(0.0, default_end) if default_end > 0 else None

    def reset(self) -> None:
        self._clear_all()
        self.source_name = ""
        logger.info("session reset sequence=%s", self.sequence_tag)

    def _clear_all(self) -> None:
        self.clear_frames()
        self.sequence_id = new_id()
        self.store.clear()
        self.selected_id = None
        self.selection = None
        self.select_mode = False
        self.current_time = 0.0
        self.duration = 0.0
        self.frame_width = 0
        self.frame_height = 0

    def has_media(self) -> bool:
        return self.duration > 0 and self.frame_width > 0 and self.frame_height > 0

    def require_media(self) -> None:
        if not self.has_media():
            raise MediaUnavailableError("Load a video before sampling.")

    @property
    def sequence_tag(self) -> str:
        return sequence_tag_for(self.sequence_id)

    @property
    def frame_size(self) -> Tuple[int, int]:
        return (self.frame_width, self.frame_height)

    # ---------------- Playhead ----------------

    def seek(self, t: float) -> float:
        t = clamp(float(t), 0.0, self.duration)
        self.current_time = t
        if self.seek_handler is not None:
            self.seek_handler(t)
        return t

    def seek_by(self, delta: float) -> float:
        return self.seek(self.current_time + float(delta))

    def set_current_time(self, t: float) -> None:
        """Playhead update coming back from the media source (no seek issued)."""
        self.current_time = max(0.0, float(t))

    # ---------------- Selection ----------------

    def set_selection(self, selection: Optional[TimeRange]) -> None:
        self.selection = selection

    def require_selection(self) -> TimeRange:
        sel = self.selection
        if sel is None or sel.end <= sel.start:
            raise SelectionUnavailableError("Use Select export region to choose a time range.")
        return TimeRange(clamp(sel.start, 0.0, self.duration), clamp(sel.end, 0.0, self.duration))

    def set_sampling_hz(self, hz: float) -> float:
        self.sampling_hz = max(self.config.min_sampling_hz, float(hz))
        return self.sampling_hz

    # ---------------- Annotations ----------------

    def annotations(self) -> List[TriangleAnnotation]:
        return self.store.all()

    def active_annotations(self, t: Optional[float] = None) -> List[TriangleAnnotation]:
        if not self.overlay_enabled:
            return []
        return self.store.active_at(self.current_time if t is None else t)

    def tracks(self) -> List[Track]:
        return self.store.tracks()

    def selected(self) -> Optional[TriangleAnnotation]:
        return self.store.get(self.selected_id)

    def select(self, anno_id: Optional[str]) -> None:
        self.selected_id = anno_id if anno_id in self.store else None

    def find_topmost_at(self, x: float, y: float) -> Optional[TriangleAnnotation]:
        return find_topmost_at((x, y), self.current_time, self.store.all(), self.frame_width, self.frame_height)

    def add_annotation_at(self, x_norm: float, y_norm: float) -> CreateResult:
        """
        Create a default triangle at the playhead, unless one already sits at the
        same canonical position and color; then that one is selected instead.
        """
        cfg = self.config
        x = clamp(float(x_norm), 0.0, 1.0)
        y = clamp(float(y_norm), 0.0, 1.0)
        color = normalize_color(cfg.default_color)

        existing = self.store.find_by_track_key(track_key(x, y, color))
        if existing is not None:
            self.selected_id = existing.id
            return CreateResult(
                annotation=existing,
                created=False,
                notice=Notice(
                    "Triangle already exists",
                    "A triangle already exists at this position. Selected existing triangle.",
                ),
            )

        start = self.current_time
        upper = self.duration if self.duration > 0 else start + cfg.default_annotation_duration
        end = clamp(start + cfg.default_annotation_duration, 0.0, upper)

        anno = TriangleAnnotation(
            id=new_id(),
            x=x,
            y=y,
            size=cfg.default_size,
            stroke_width=cfg.default_stroke_width,
            color=color,
            start=start,
            end=end,
        )
        self.store.add(anno)
        self.selected_id = anno.id
        return CreateResult(annotation=anno, created=True)

    def remove_annotation(self, anno_id: Optional[str]) -> bool:
        if anno_id is None:
            return False
        removed = self.store.remove(anno_id)
        if removed and self.selected_id == anno_id:
            self.selected_id = None
        return removed

    def remove_selected(self) -> bool:
        return self.remove_annotation(self.selected_id)

    def update_selected_style(self, size: Optional[float] = None, color: Optional[str] = None) -> Optional[TriangleAnnotation]:
        if self.selected_id is None:
            return None
        if size is not None:
            size = clamp(float(size), self.config.min_size, self.config.max_size)
        if color is not None:
            color = normalize_color(color)
        return self.store.set_style(self.selected_id, size=size, color=color)

    # ---------------- Frames ----------------

    def replace_frames(self, frames: Tuple[Frame, ...], burned_in: bool = False) -> None:
        self.frames = tuple(frames)
        self.frames_burned_in = bool(burned_in)

    def clear_frames(self) -> None:
        self.frames = ()
        self.frames_burned_in = False

    def require_frames(self) -> Tuple[Frame, ...]:
        if not self.frames:
            raise NoFramesError("Sample an export region first.")
        return self.frames

    def burn_in_applied(self) -> bool:
        return bool(self.burn_in and self.overlay_enabled)
