# video_sampler/drag.py
"""
Pointer-drag interaction engine.

One gesture (press -> moves -> release) is modeled by exactly one DragState
variant. Each variant carries only the fields it needs, so e.g. a resize with
no target id cannot be represented. Widgets translate their mouse events into
the press_* / move_* / release calls below and repaint when a call reports a
change.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import ClassVar, Optional, Tuple, Union

from .domain import CreateResult, TimeRange, clamp
from .session import EditorSession
from .timeutils import dx_to_dt, x_to_time

logger = logging.getLogger(__name__)

TIMELINE = "timeline"
OVERLAY = "overlay"


# -----------------------------
# Gesture variants
# -----------------------------

@dataclass(frozen=True)
class Idle:
    surface: ClassVar[Optional[str]] = None


@dataclass(frozen=True)
class Seeking:
    anchor_x: float
    surface: ClassVar[str] = TIMELINE


@dataclass(frozen=True)
class CreatingSelection:
    anchor_x: float
    anchor_time: float
    surface: ClassVar[str] = TIMELINE


@dataclass(frozen=True)
class MovingAnnotationRange:
    id: str
    anchor_x: float
    orig_start: float
    orig_end: float
    surface: ClassVar[str] = TIMELINE


@dataclass(frozen=True)
class ResizingAnnotationStart:
    id: str
    anchor_x: float
    orig_start: float
    orig_end: float
    surface: ClassVar[str] = TIMELINE


@dataclass(frozen=True)
class ResizingAnnotationEnd:
    id: str
    anchor_x: float
    orig_start: float
    orig_end: float
    surface: ClassVar[str] = TIMELINE


@dataclass(frozen=True)
class MovingSelection:
    anchor_x: float
    orig_start: float
    orig_end: float
    surface: ClassVar[str] = TIMELINE


@dataclass(frozen=True)
class ResizingSelectionStart:
    anchor_x: float
    orig_start: float
    orig_end: float
    surface: ClassVar[str] = TIMELINE


@dataclass(frozen=True)
class ResizingSelectionEnd:
    anchor_x: float
    orig_start: float
    orig_end: float
    surface: ClassVar[str] = TIMELINE


@dataclass(frozen=True)
class DraggingAnnotationPosition:
    id: str
    surface: ClassVar[str] = OVERLAY


DragState = Union[
    Idle,
    Seeking,
    CreatingSelection,
    MovingAnnotationRange,
    ResizingAnnotationStart,
    ResizingAnnotationEnd,
    MovingSelection,
    ResizingSelectionStart,
    ResizingSelectionEnd,
    DraggingAnnotationPosition,
]

# (left, top, width, height) of a surface, measured at event time
Bounds = Tuple[float, float, float, float]


def _shifted(orig_start: float, orig_end: float, dt: float, duration: float) -> Tuple[float, float]:
    length = orig_end - orig_start
    start = clamp(orig_start + dt, 0.0, max(0.0, duration - length))
    return start, start + length


class DragEngine:
    """
    Finite-state machine over DragState for the timeline and the video overlay.

    All timeline math uses the x offset and width the widget reports on each
    event, so a container resize mid-gesture is picked up on the next move.
    """

    def __init__(self, session: EditorSession):
        self.session = session
        self._state: DragState = Idle()
        self._suppress_click: bool = False

    @property
    def state(self) -> DragState:
        return self._state

    @property
    def min_clip_len(self) -> float:
        return self.session.config.min_clip_len

    def is_active(self) -> bool:
        return not isinstance(self._state, Idle)

    def _begin(self, state: DragState) -> None:
        self._state = state
        logger.debug("gesture begin %s", state)

    # ---------------- Timeline presses ----------------

    def press_scrub(self, x: float, width: float) -> bool:
        s = self.session
        if s.duration <= 0:
            return False
        t = x_to_time(x, width, s.duration)
        if s.select_mode:
            s.set_selection(TimeRange(t, t))
            self._begin(CreatingSelection(anchor_x=x, anchor_time=t))
        else:
            s.seek(t)
            self._begin(Seeking(anchor_x=x))
        return True

    def _press_annotation(self, cls, anno_id: str, x: float) -> bool:
        anno = self.session.store.get(anno_id)
        if anno is None:
            return False
        self.session.select(anno_id)
        self._begin(cls(id=anno_id, anchor_x=x, orig_start=anno.start, orig_end=anno.end))
        return True

    def press_annotation_body(self, anno_id: str, x: float) -> bool:
        return self._press_annotation(MovingAnnotationRange, anno_id, x)

    def press_annotation_start(self, anno_id: str, x: float) -> bool:
        return self._press_annotation(ResizingAnnotationStart, anno_id, x)

    def press_annotation_end(self, anno_id: str, x: float) -> bool:
        return self._press_annotation(ResizingAnnotationEnd, anno_id, x)

    def _press_selection(self, cls, x: float) -> bool:
        sel = self.session.selection
        if sel is None:
            return False
        self._begin(cls(anchor_x=x, orig_start=sel.start, orig_end=sel.end))
        return True

    def press_selection_body(self, x: float) -> bool:
        return self._press_selection(MovingSelection, x)

    def press_selection_start(self, x: float) -> bool:
        return self._press_selection(ResizingSelectionStart, x)

    def press_selection_end(self, x: float) -> bool:
        return self._press_selection(ResizingSelectionEnd, x)

    # ---------------- Overlay presses ----------------

    def press_overlay_triangle(self, anno_id: str) -> bool:
        if anno_id not in self.session.store:
            return False
        self.session.select(anno_id)
        self._suppress_click = True
        self._begin(DraggingAnnotationPosition(id=anno_id))
        return True

    def press_overlay(self, x_norm: float, y_norm: float) -> bool:
        """Press on the overlay: starts a position drag if it lands on an active triangle."""
        self._suppress_click = False
        s = self.session
        if not s.has_media() or not s.overlay_enabled:
            return False
        hit = s.find_topmost_at(x_norm, y_norm)
        if hit is None:
            return False
        return self.press_overlay_triangle(hit.id)

    # ---------------- Moves ----------------

    def move_timeline(self, x: float, width: float) -> bool:
        st = self._state
        if st.surface != TIMELINE:
            return False

        s = self.session
        duration = s.duration
        min_len = self.min_clip_len

        if isinstance(st, Seeking):
            s.seek(x_to_time(x, width, duration))
            return True

        if isinstance(st, CreatingSelection):
            t = x_to_time(x, width, duration)
            s.set_selection(TimeRange(min(st.anchor_time, t), max(st.anchor_time, t)))
            return True

        dt = dx_to_dt(x - st.anchor_x, width, duration)

        if isinstance(st, MovingAnnotationRange):
            start, end = _shifted(st.orig_start, st.orig_end, dt, duration)
            s.store.set_time(st.id, start=start, end=end)
        elif isinstance(st, ResizingAnnotationStart):
            # min length wins over the timeline bounds; start never goes negative
            hi = max(0.0, st.orig_end - min_len)
            s.store.set_time(st.id, start=clamp(st.orig_start + dt, 0.0, hi))
        elif isinstance(st, ResizingAnnotationEnd):
            lo = st.orig_start + min_len
            s.store.set_time(st.id, end=clamp(st.orig_end + dt, lo, max(lo, duration)))
        elif isinstance(st, MovingSelection):
            start, end = _shifted(st.orig_start, st.orig_end, dt, duration)
            s.set_selection(TimeRange(start, min(end, duration)))
        elif isinstance(st, ResizingSelectionStart):
            end = s.selection.end if s.selection is not None else st.orig_end
            hi = max(0.0, min(st.orig_end - min_len, end))
            s.set_selection(TimeRange(clamp(st.orig_start + dt, 0.0, hi), end))
        elif isinstance(st, ResizingSelectionEnd):
            start = s.selection.start if s.selection is not None else st.orig_start
            lo = min(max(st.orig_start + min_len, start), duration)
            s.set_selection(TimeRange(start, clamp(st.orig_end + dt, lo, duration)))
        else:
            return False
        return True

    def move_overlay(self, x: float, y: float, bounds: Bounds) -> bool:
        st = self._state
        if not isinstance(st, DraggingAnnotationPosition):
            return False
        left, top, width, height = bounds
        nx = (x - left) / max(1.0, width)
        ny = (y - top) / max(1.0, height)
        return self.session.store.set_position(st.id, nx, ny) is not None

    # ---------------- Release / click ----------------

    def release(self) -> bool:
        """Pointer up or cancel: always back to Idle."""
        was_active = self.is_active()
        if was_active:
            logger.debug("gesture end %s", self._state)
        self._state = Idle()
        return was_active

    cancel = release

    def click_overlay(self, x_norm: float, y_norm: float) -> Optional[CreateResult]:
        """
        A plain click on the overlay.

        The first click after a triangle drag is swallowed. Otherwise: select
        the topmost active triangle under the point, or create a new one.
        """
        if self._suppress_click:
            self._suppress_click = False
            return None
        s = self.session
        if not s.has_media():
            return None
        hit = s.find_topmost_at(x_norm, y_norm)
        if hit is not None:
            s.select(hit.id)
            return CreateResult(annotation=hit, created=False)
        return s.add_annotation_at(x_norm, y_norm)
