import logging
import os
from logging.handlers import RotatingFileHandler

import pytest

from midi_autoplay import log_config


@pytest.fixture
def package_logger():
    logger = logging.getLogger(log_config.PACKAGE_LOGGER)
    yield logger
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()
    logger.propagate = True
    logger.setLevel(logging.NOTSET)
    log_config.LOG_FILE_PATH = None


def test_writes_rotating_log_file(tmp_path, package_logger):
    logger = log_config.setup_logging(log_dir=str(tmp_path / 'logs'))
    assert logger is package_logger
    path = tmp_path / 'logs' / 'app.log'
    assert log_config.LOG_FILE_PATH == os.path.abspath(str(path))
    logging.getLogger('midi_autoplay.controller').debug('tick')
    rotating = [h for h in logger.handlers if isinstance(h, RotatingFileHandler)]
    assert len(rotating) == 1
    assert rotating[0].maxBytes == log_config.MAX_LOG_BYTES
    rotating[0].flush()
    assert 'midi_autoplay.controller: tick' in path.read_text(encoding='utf-8')


def test_verbose_lowers_console_level(tmp_path, package_logger):
    log_config.setup_logging(verbose=True, log_dir=str(tmp_path))
    console = [h for h in package_logger.handlers if not isinstance(h, RotatingFileHandler)]
    assert [h.level for h in console] == [logging.DEBUG]


def test_repeat_setup_replaces_handlers(tmp_path, package_logger):
    log_config.setup_logging(log_dir=str(tmp_path))
    log_config.setup_logging(log_dir=str(tmp_path))
    assert len(package_logger.handlers) == 2


def test_unusable_log_dir_falls_back_to_stderr(tmp_path, package_logger):
    blocker = tmp_path / 'blocker'
    blocker.write_text('', encoding='utf-8')
    log_config.setup_logging(log_dir=str(blocker / 'logs'))
    assert log_config.LOG_FILE_PATH is None
    assert not any(isinstance(h, RotatingFileHandler) for h in package_logger.handlers)
