# video_sampler/persistence.py
from __future__ import annotations

import json
import logging
import os
import tempfile
from typing import Dict, Optional

from .config import EditorConfig, default_config_path

logger = logging.getLogger(__name__)


# -----------------------------
# Atomic file helpers
# -----------------------------

def write_bytes_atomic(path: str, data: bytes) -> None:
    d = os.path.dirname(os.path.abspath(path))
    os.makedirs(d, exist_ok=True)
    fd, tmp_path = tempfile.mkstemp(prefix=".tmp_", dir=d)
    try:
        with os.fdopen(fd, "wb") as f:
            f.write(data)
            f.flush()
            os.fsync(f.fileno())
        os.replace(tmp_path, path)
    finally:
        if os.path.exists(tmp_path):
            try:
                os.remove(tmp_path)
            except OSError:
                logger.warning("could not remove temp file %s", tmp_path)


def _atomic_write_json(path: str, payload: Dict) -> None:
    text = json.dumps(payload, indent=2, ensure_ascii=False) + "\n"
    write_bytes_atomic(path, text.encode("utf-8"))


def _read_json(path: str) -> Dict:
    with open(path, "r", encoding="utf-8") as f:
        return json.load(f)


# -----------------------------
# Editor config
# -----------------------------

def load_config(path: Optional[str] = None) -> EditorConfig:
    """
    Loads the editor config JSON.

    If missing or invalid, returns defaults (the file is not created).
    """
    path = path or default_config_path()
    if not os.path.exists(path):
        return EditorConfig()
    try:
        data = _read_json(path)
    except (OSError, ValueError) as e:
        logger.warning("ignoring unreadable config %s: %s", path, e)
        return EditorConfig()
    if not isinstance(data, dict):
        logger.warning("ignoring config %s: expected a JSON object", path)
        return EditorConfig()
    return EditorConfig.from_dict(data)


def save_config(cfg: EditorConfig, path: Optional[str] = None) -> str:
    path = path or default_config_path()
    _atomic_write_json(path, cfg.to_dict())
    return path
