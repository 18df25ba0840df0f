"""Logging setup for the patch tracker API."""

import logging
import logging.handlers
import pathlib
import sys

from core.config import settings

_logging_initialized = False

LOG_FORMAT = "[%(asctime)s] %(levelname)-8s [%(name)s] %(message)s"


def setup_logging() -> None:
    """Install console + rotating file handlers on the root logger (once)."""
    global _logging_initialized

    if _logging_initialized:
        return
    _logging_initialized = True

    level = getattr(logging, settings.log_level, logging.INFO)

    root_logger = logging.getLogger()
    root_logger.handlers.clear()
    root_logger.setLevel(level)

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setFormatter(logging.Formatter(LOG_FORMAT, datefmt="%H:%M:%S"))
    root_logger.addHandler(console_handler)

    log_dir = pathlib.Path(settings.log_dir)
    log_dir.mkdir(parents=True, exist_ok=True)
    file_handler = logging.handlers.RotatingFileHandler(
        log_dir / "patches.log",
        maxBytes=5 * 1024 * 1024,
        backupCount=5,
        encoding="utf-8",
    )
    file_handler.setFormatter(logging.Formatter(LOG_FORMAT, datefmt="%Y-%m-%d %H:%M:%S"))
    root_logger.addHandler(file_handler)

    # Keep library chatter out of the app log
    logging.getLogger("sqlalchemy.engine").setLevel(logging.WARNING)
    logging.getLogger("apscheduler").setLevel(logging.WARNING)

    logging.getLogger(__name__).info("Logging: level=%s dir=%s", settings.log_level, log_dir.absolute())
