# video_sampler/store.py
from __future__ import annotations

import logging
from typing import Dict, Iterable, Iterator, List, Optional

from .domain import TriangleAnnotation, Track, clamp

logger = logging.getLogger(__name__)


# -----------------------------
# Track identity
# -----------------------------

def track_key(x: float, y: float, color: str) -> str:
    """
    Identity key for "the same triangle": rounded percent position + color.

    Two annotations that render at the same canonical spot in the same color
    are treated as one tracked object.
    """
    return f"{round(x * 100)}_{round(y * 100)}_{color}"


def annotation_track_key(anno: TriangleAnnotation) -> str:
    return track_key(anno.x, anno.y, anno.color)


def group_tracks(annotations: Iterable[TriangleAnnotation]) -> List[Track]:
    """
    Group annotations into tracks by identity key.

    Pure function of its input: members inside a track are ordered by
    (start, id) so the result does not depend on input order.
    """
    groups: Dict[str, List[TriangleAnnotation]] = {}
    for anno in annotations:
        groups.setdefault(annotation_track_key(anno), []).append(anno)

    tracks: List[Track] = []
    for key, members in groups.items():
        members.sort(key=lambda a: (a.start, a.id))
        first = members[0]
        label = first.label or f"Triangle ({round(first.x * 100)}%, {round(first.y * 100)}%)"
        tracks.append(Track(key=key, label=label, color=first.color, annotations=tuple(members)))
    return tracks


# -----------------------------
# Store
# -----------------------------

class AnnotationStore:
    """
    Ordered (creation order) collection of triangle annotations.

    Records are mutated in place; ids never change. Views such as
    active_at() and tracks() are recomputed on every call.
    """

    def __init__(self, annotations: Optional[Iterable[TriangleAnnotation]] = None):
        self._items: List[TriangleAnnotation] = list(annotations or [])

    def __len__(self) -> int:
        return len(self._items)

    def __iter__(self) -> Iterator[TriangleAnnotation]:
        return iter(list(self._items))

    def __contains__(self, anno_id: object) -> bool:
        return any(a.id == anno_id for a in self._items)

    def all(self) -> List[TriangleAnnotation]:
        return list(self._items)

    def get(self, anno_id: Optional[str]) -> Optional[TriangleAnnotation]:
        if anno_id is None:
            return None
        for a in self._items:
            if a.id == anno_id:
                return a
        return None

    def add(self, anno: TriangleAnnotation) -> TriangleAnnotation:
        if anno.id in self:
            raise ValueError(f"duplicate annotation id {anno.id}")
        self._items.append(anno)
        logger.debug("annotation added id=%s start=%.3f end=%.3f", anno.id, anno.start, anno.end)
        return anno

    def remove(self, anno_id: str) -> bool:
        before = len(self._items)
        self._items = [a for a in self._items if a.id != anno_id]
        return len(self._items) != before

    def clear(self) -> None:
        self._items = []

    # ---------------- Mutation helpers ----------------

    def set_time(self, anno_id: str, start: Optional[float] = None, end: Optional[float] = None) -> Optional[TriangleAnnotation]:
        anno = self.get(anno_id)
        if anno is None:
            return None
        if start is not None:
            anno.start = float(start)
        if end is not None:
            anno.end = float(end)
        return anno

    def set_position(self, anno_id: str, x: float, y: float) -> Optional[TriangleAnnotation]:
        anno = self.get(anno_id)
        if anno is None:
            return None
        anno.x = clamp(float(x), 0.0, 1.0)
        anno.y = clamp(float(y), 0.0, 1.0)
        return anno

    def set_style(self, anno_id: str, size: Optional[float] = None, color: Optional[str] = None) -> Optional[TriangleAnnotation]:
        anno = self.get(anno_id)
        if anno is None:
            return None
        if size is not None:
            anno.size = float(size)
        if color is not None:
            anno.color = color
        return anno

    # ---------------- Derived views ----------------

    def active_at(self, t: float) -> List[TriangleAnnotation]:
        return [a for a in self._items if a.is_active_at(t)]

    def find_by_track_key(self, key: str) -> Optional[TriangleAnnotation]:
        for a in self._items:
            if annotation_track_key(a) == key:
                return a
        return None

    def tracks(self) -> List[Track]:
        return group_tracks(self._items)
