# video_sampler/timeutils.py
from __future__ import annotations

import math

from .domain import clamp


# -----------------------------
# Time formatting / conversion
# -----------------------------

def format_time(total_seconds: float) -> str:
    """MM:SS.mmm, or HH:MM:SS.mmm once past the hour. Bad input renders as zero."""
    if total_seconds is None or not math.isfinite(total_seconds) or total_seconds < 0:
        total_seconds = 0.0
    hours = int(total_seconds // 3600)
    minutes = int((total_seconds % 3600) // 60)
    seconds = int(total_seconds % 60)
    ms = int((total_seconds - math.floor(total_seconds)) * 1000)
    if hours > 0:
        return f"{hours:02d}:{minutes:02d}:{seconds:02d}.{ms:03d}"
    return f"{minutes:02d}:{seconds:02d}.{ms:03d}"


def seconds_to_ms(sec: float) -> int:
    if sec is None:
        sec = 0.0
    return int(round(float(sec) * 1000.0))


def ms_to_seconds(ms: int) -> float:
    if ms is None:
        ms = 0
    return max(0, int(ms)) / 1000.0


# -----------------------------
# Surface <-> time mapping
# -----------------------------

def x_to_time(x: float, width: float, duration: float) -> float:
    """Map a pixel offset on a surface of the given width to a clamped media time."""
    if duration <= 0:
        return 0.0
    ratio = float(x) / max(1.0, float(width))
    return clamp(ratio * duration, 0.0, duration)


def time_to_x(t: float, width: float, duration: float) -> float:
    if duration <= 0:
        return 0.0
    return (clamp(t, 0.0, duration) / duration) * float(width)


def dx_to_dt(dx: float, width: float, duration: float) -> float:
    """Pointer delta in pixels -> time delta, relative to the surface's current width."""
    return (float(dx) / max(1.0, float(width))) * duration
