import logging

import pytest

from boring_vault import logging_config
from boring_vault.logging_config import PACKAGE_LOGGER, configure_logging, get_logger, set_log_level


@pytest.fixture
def package_logger(monkeypatch):
    logger = logging.getLogger(PACKAGE_LOGGER)
    handlers = list(logger.handlers)
    level = logger.level
    monkeypatch.setattr(logging_config, "_configured", False)
    yield logger
    for handler in logger.handlers:
        if handler not in handlers:
            handler.close()
    logger.handlers = handlers
    logger.setLevel(level)


def test_get_logger_attaches_no_output_handler(package_logger):
    get_logger("boring_vault.some_module")
    assert not logging_config._configured
    assert package_logger.handlers
    assert all(isinstance(handler, logging.NullHandler) for handler in package_logger.handlers)


def test_configure_logging_adds_console_handler(package_logger):
    configure_logging(level="DEBUG")
    streams = [h for h in package_logger.handlers if type(h) is logging.StreamHandler]
    assert len(streams) == 1
    assert package_logger.level == logging.DEBUG

    configure_logging(level="DEBUG")
    assert len([h for h in package_logger.handlers if type(h) is logging.StreamHandler]) == 1


def test_configure_logging_reads_log_path(package_logger, monkeypatch, tmp_path):
    log_file = tmp_path / "logs" / "client.log"
    monkeypatch.setenv("LOG_PATH", str(log_file))
    configure_logging(console=False)
    get_logger("boring_vault.vault").warning("mint missing")
    for handler in package_logger.handlers:
        handler.flush()
    assert "mint missing" in log_file.read_text(encoding="utf-8")


def test_set_log_level_ignores_unknown_level(package_logger):
    configure_logging(level="INFO")
    set_log_level("LOUD")
    assert package_logger.level == logging.INFO
    set_log_level("error")
    assert package_logger.level == logging.ERROR
