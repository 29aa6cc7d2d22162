# video_sampler/__init__.py
'''
video_sampler/
    __init__.py
    __main__.py

    app.py                 # logging + QApplication boot
    main_window.py         # QMainWindow layout + wiring

    domain.py              # dataclasses: TriangleAnnotation, TimeRange, Frame, Track
    config.py              # EditorConfig defaults
    persistence.py         # atomic writes, load/save config.json
    errors.py              # user-facing error kinds (title + description)
    timeutils.py           # time formatting, surface x <-> media time
    geometry.py            # triangle vertices, stroke scaling, hit testing
    render.py              # QPainter triangle drawing (overlay + burn-in)
    store.py               # annotation store + track grouping
    session.py             # EditorSession: media, selection, playhead, frames
    drag.py                # DragState variants + DragEngine gestures
    media.py               # MediaSource contract + QMediaPlayer implementation
    sampling.py            # timestamps, capture loop, FrameSampler driver
    export.py              # zip packaging + metadata.json
    upload.py              # dataset upload orchestration

    widgets/
      video_canvas.py      # letterboxed video + triangle overlay + pointer gestures
      timeline.py          # scrub bar, export selection, per-track annotation rows
      annotation_panel.py  # add/delete, size slider, color swatches, overlay toggle
      frames_panel.py      # sampled thumbnails, preview dialog, clear, download zip
'''

from __future__ import annotations

__all__ = ["__version__", "run_app"]

__version__ = "0.1.0"

from .app import run_app
