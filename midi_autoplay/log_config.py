"""Logging for the midi_autoplay package.

DEBUG and up go to a size-capped rotating file; stderr gets INFO, or DEBUG
with --verbose.
"""

import logging
import os
import sys
import tempfile
from logging.handlers import RotatingFileHandler

PACKAGE_LOGGER = "midi_autoplay"
LOG_DIR_NAME = "MidiAutoplay"
LOG_FILE_NAME = "app.log"
LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"
MAX_LOG_BYTES = 2 * 1024 * 1024
LOG_BACKUPS = 3

# Path of the active log file, or None when only stderr is in use.
LOG_FILE_PATH: str | None = None


def default_log_dir() -> str:
    return os.path.join(os.environ.get("TEMP", tempfile.gettempdir()), LOG_DIR_NAME)


def file_handler(log_dir: str, formatter: logging.Formatter) -> RotatingFileHandler:
    """Rotating DEBUG handler writing <log_dir>/app.log. Raises OSError if the directory is unusable."""
    os.makedirs(log_dir, exist_ok=True)
    handler = RotatingFileHandler(
        os.path.join(log_dir, LOG_FILE_NAME),
        maxBytes=MAX_LOG_BYTES,
        backupCount=LOG_BACKUPS,
        encoding="utf-8",
    )
    handler.setLevel(logging.DEBUG)
    handler.setFormatter(formatter)
    return handler


def setup_logging(verbose: bool = False, log_dir: str | None = None) -> logging.Logger:
    """(Re)configure the package logger and return it. Safe to call more than once."""
    global LOG_FILE_PATH
    logger = logging.getLogger(PACKAGE_LOGGER)
    for old in list(logger.handlers):
        logger.removeHandler(old)
        old.close()
    logger.setLevel(logging.DEBUG)
    logger.propagate = False

    formatter = logging.Formatter(LOG_FORMAT, datefmt=DATE_FORMAT)
    console = logging.StreamHandler(sys.stderr)
    console.setLevel(logging.DEBUG if verbose else logging.INFO)
    console.setFormatter(formatter)
    logger.addHandler(console)

    LOG_FILE_PATH = None
    target = log_dir or default_log_dir()
    try:
        handler = file_handler(target, formatter)
    except OSError as e:
        logger.warning("No log file (%s); logging to stderr only", e)
    else:
        logger.addHandler(handler)
        LOG_FILE_PATH = handler.baseFilename

    logger.debug("Logging started; file: %s", LOG_FILE_PATH or "(none)")
    return logger
