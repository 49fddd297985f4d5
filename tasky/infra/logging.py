from __future__ import annotations

import logging
from logging.handlers import RotatingFileHandler

from tasky.config import PROJECT_ROOT, SETTINGS, Settings

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s %(message)s"
LOG_FILE = "tasky.log"


def setup_logging(settings: Settings = SETTINGS) -> None:
    directory = PROJECT_ROOT / settings.log_dir
    directory.mkdir(parents=True, exist_ok=True)

    formatter = logging.Formatter(LOG_FORMAT, datefmt="%Y-%m-%d %H:%M:%S")
    handlers: list[logging.Handler] = [
        RotatingFileHandler(directory / LOG_FILE, maxBytes=2_000_000, backupCount=3, encoding="utf-8"),
        logging.StreamHandler(),
    ]
    for handler in handlers:
        handler.setFormatter(formatter)

    logging.basicConfig(level=settings.log_level.upper(), handlers=handlers)
