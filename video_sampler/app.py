# video_sampler/app.py
from __future__ import annotations

import logging
import os
import sys
from typing import Optional

from PyQt5.QtWidgets import QApplication

from .config import LOG_LEVEL_ENV_VAR
from .main_window import MainWindow
from .persistence import load_config
from .upload import ViamDatasetUploader

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"


def configure_logging(level: Optional[str] = None) -> logging.Logger:
    """One stream handler on the package logger. Safe to call more than once."""
    level = (level or os.environ.get(LOG_LEVEL_ENV_VAR) or "INFO").upper()
    log = logging.getLogger("video_sampler")
    log.setLevel(getattr(logging, level, logging.INFO))
    if not any(getattr(h, "_video_sampler", False) for h in log.handlers):
        handler = logging.StreamHandler()
        handler.setFormatter(logging.Formatter(LOG_FORMAT))
        handler._video_sampler = True
        log.addHandler(handler)
    return log


def run_app(video_path: Optional[str] = None, config_path: Optional[str] = None) -> int:
    configure_logging()
    app = QApplication(sys.argv)

    cfg = load_config(config_path)
    win = MainWindow(config=cfg, config_path=config_path, uploader_factory=ViamDatasetUploader.connect)
    win.show()

    if video_path:
        win.open_video(video_path)

    return app.exec_()
