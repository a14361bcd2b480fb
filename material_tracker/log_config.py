# material_tracker/log_config.py
from __future__ import annotations

import logging
import os
from logging.handlers import RotatingFileHandler
from typing import Optional

from material_tracker.config import settings as app_settings

LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s:%(lineno)d %(message)s"
LOG_MAX_BYTES = 2 * 1024 * 1024
LOG_BACKUPS = 5

# Datei -> Mindest-Level; debug.log nur im Debug-Modus
LOG_FILES = {"app.log": logging.INFO, "error.log": logging.ERROR}


def configure_logging(log_dir: Optional[str] = None, debug: Optional[bool] = None) -> None:
    """Root-Logger auf rotierende Dateien unter `log_dir` umstellen (idempotent)."""
    log_dir = log_dir or app_settings.LOG_DIR
    if debug is None:
        debug = app_settings.LOG_DEBUG
    os.makedirs(log_dir, exist_ok=True)

    files = dict(LOG_FILES)
    if debug:
        files["debug.log"] = logging.DEBUG

    handlers: list[logging.Handler] = [
        RotatingFileHandler(
            os.path.join(log_dir, name),
            maxBytes=LOG_MAX_BYTES,
            backupCount=LOG_BACKUPS,
            encoding="utf-8",
        )
        for name in files
    ]
    for handler, level in zip(handlers, files.values()):
        handler.setLevel(level)
    if debug:
        handlers.append(logging.StreamHandler())

    root = logging.getLogger()
    for old in root.handlers[:]:
        root.removeHandler(old)
        old.close()

    formatter = logging.Formatter(LOG_FORMAT)
    for handler in handlers:
        handler.setFormatter(formatter)
        root.addHandler(handler)
    root.setLevel(logging.DEBUG if debug else logging.INFO)

    logging.getLogger(__name__).info("Logging initialisiert (debug=%s, dir=%s)", debug, log_dir)
