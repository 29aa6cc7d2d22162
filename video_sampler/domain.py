# video_sampler/domain.py
from __future__ import annotations

import uuid
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Tuple


# -----------------------------
# Triangle colors
# -----------------------------

# (hex, label) pairs offered by the annotation panel. First entry is the default.
TRIANGLE_COLORS: List[Tuple[str, str]] = [
    ("#c0c5ce", "Gray"),
    ("#f97316", "Orange"),
    ("#10b981", "Green"),
    ("#ef4444", "Red"),
    ("#a855f7", "Purple"),
    ("#111827", "Black"),
]

DEFAULT_TRIANGLE_COLOR = TRIANGLE_COLORS[0][0]


def normalize_color(color_hex: str) -> str:
    """Lowercase '#rrggbb' form; anything unparsable falls back to the default color."""
    s = (color_hex or "").strip()
    if s.startswith("#"):
        s = s[1:]
    if len(s) != 6:
        return DEFAULT_TRIANGLE_COLOR
    try:
        int(s, 16)
    except ValueError:
        return DEFAULT_TRIANGLE_COLOR
    return "#" + s.lower()


def clamp(value: float, lo: float, hi: float) -> float:
    return min(hi, max(lo, value))


def new_id() -> str:
    return str(uuid.uuid4())


def sequence_tag_for(sequence_id: str) -> str:
    return f"sequence_{sequence_id}"


# -----------------------------
# Core Dataclasses
# -----------------------------

@dataclass
class TriangleAnnotation:
    """
    A time-ranged equilateral triangle marker.

    x/y is the centroid in normalized frame coordinates (0..1).
    size is the side length as a fraction of min(frame_width, frame_height).
    stroke_width is a reference width in pixels against a 1080px baseline.
    start/end are seconds on the media clock.
    """
    id: str
    x: float
    y: float
    size: float
    stroke_width: float
    color: str
    start: float
    end: float
    label: Optional[str] = None

    def is_active_at(self, t: float) -> bool:
        return self.start <= t <= self.end

    def to_dict(self) -> Dict:
        return {
            "id": self.id,
            "x": float(self.x),
            "y": float(self.y),
            "size": float(self.size),
            "stroke_width": float(self.stroke_width),
            "color": self.color,
            "start": float(self.start),
            "end": float(self.end),
            "label": self.label,
        }

    @staticmethod
    def from_dict(d: Dict) -> "TriangleAnnotation":
        label = d.get("label")
        return TriangleAnnotation(
            id=str(d.get("id") or new_id()),
            x=float(d.get("x", 0.5)),
            y=float(d.get("y", 0.5)),
            size=float(d.get("size", 0.03)),
            stroke_width=float(d.get("stroke_width", 5.0)),
            color=normalize_color(str(d.get("color", DEFAULT_TRIANGLE_COLOR))),
            start=float(d.get("start", 0.0)),
            end=float(d.get("end", 0.0)),
            label=str(label) if label is not None else None,
        )


@dataclass(frozen=True)
class TimeRange:
    """The single export selection, in seconds."""
    start: float
    end: float

    @property
    def length(self) -> float:
        return self.end - self.start

    def to_dict(self) -> Dict:
        return {"start": float(self.start), "end": float(self.end)}


@dataclass(frozen=True)
class Frame:
    """One captured still. index is capture order, time is the target timestamp."""
    index: int
    time: float
    image: bytes = field(repr=False)


@dataclass(frozen=True)
class Track:
    """
    Derived grouping of annotations believed to be the same tracked triangle.
    Built fresh on every read; never a source of truth.
    """
    key: str
    label: str
    color: str
    annotations: Tuple[TriangleAnnotation, ...]

    def member_ids(self) -> List[str]:
        return [a.id for a in self.annotations]


@dataclass(frozen=True)
class Notice:
    """A user-visible, non-error message (e.g. duplicate triangle)."""
    title: str
    description: str


@dataclass(frozen=True)
class CreateResult:
    annotation: TriangleAnnotation
    created: bool
    notice: Optional[Notice] = None
