# video_sampler/config.py
from __future__ import annotations

import os
from dataclasses import dataclass, field, fields
from typing import Dict, List

from .domain import DEFAULT_TRIANGLE_COLOR, normalize_color


CONFIG_ENV_VAR = "VIDEO_SAMPLER_CONFIG"
LOG_LEVEL_ENV_VAR = "VIDEO_SAMPLER_LOG_LEVEL"
CONFIG_FILENAME = "config.json"


def default_config_path() -> str:
    override = os.environ.get(CONFIG_ENV_VAR, "").strip()
    if override:
        return override
    return os.path.join(os.path.expanduser("~"), ".video_sampler", CONFIG_FILENAME)


@dataclass
class EditorConfig:
    """
    Editor defaults. Stored as JSON (see persistence.load_config / save_config).
    Unknown keys are ignored on load; missing keys keep their defaults.
    """
    # Annotations
    default_annotation_duration: float = 3.0   # seconds
    min_clip_len: float = 0.1                  # seconds, enforced by resize handles
    default_size: float = 0.03
    min_size: float = 0.02
    max_size: float = 0.3
    default_color: str = DEFAULT_TRIANGLE_COLOR
    default_stroke_width: float = 5.0          # px at 1080

    # Selection / sampling
    default_selection_cap: float = 30.0        # seconds
    default_sampling_hz: float = 1.0
    min_sampling_hz: float = 0.1
    image_format: str = "JPG"
    image_quality: int = 92
    seek_timeout_ms: int = 3000
    paint_timeout_ms: int = 100

    # Transport
    seek_step: float = 5.0
    playback_rates: List[float] = field(default_factory=lambda: [0.25, 0.5, 1.0, 1.5, 2.0])

    # Upload
    upload_chunk_size: int = 50

    def image_extension(self) -> str:
        fmt = (self.image_format or "JPG").strip().lower()
        return ".jpg" if fmt in ("jpg", "jpeg") else f".{fmt}"

    def to_dict(self) -> Dict:
        out: Dict = {}
        for f in fields(self):
            v = getattr(self, f.name)
            out[f.name] = list(v) if isinstance(v, (list, tuple)) else v
        out["config_version"] = 1
        return out

    @staticmethod
    def from_dict(d: Dict) -> "EditorConfig":
        cfg = EditorConfig()
        for f in fields(cfg):
            if f.name not in d:
                continue
            raw = d[f.name]
            current = getattr(cfg, f.name)
            try:
                if isinstance(current, bool):
                    value = bool(raw)
                elif isinstance(current, int):
                    value = int(raw)
                elif isinstance(current, float):
                    value = float(raw)
                elif isinstance(current, list):
                    value = [float(x) for x in raw]
                else:
                    value = str(raw)
            except (TypeError, ValueError):
                continue
            setattr(cfg, f.name, value)

        cfg.default_color = normalize_color(cfg.default_color)
        if cfg.min_clip_len <= 0:
            cfg.min_clip_len = 0.1
        if cfg.min_sampling_hz <= 0:
            cfg.min_sampling_hz = 0.1
        if cfg.min_size > cfg.max_size:
            cfg.min_size, cfg.max_size = cfg.max_size, cfg.min_size
        cfg.image_quality = max(-1, min(int(cfg.image_quality), 100))
        if not cfg.playback_rates:
            cfg.playback_rates = [1.0]
        return cfg
