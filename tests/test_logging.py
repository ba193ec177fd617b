"""Tests for the shared logging setup."""

import os
from logging.handlers import RotatingFileHandler

from flask.logging import default_handler

from logger import ledger_logger, setup_logger


def test_app_logger_rotates_into_log_dir(app):
    handlers = [h for h in app.logger.handlers if isinstance(h, RotatingFileHandler)]

    assert len(handlers) == 1
    assert handlers[0].baseFilename == os.path.join(os.path.abspath(app.config["LOG_DIR"]), "app.log")
    assert default_handler not in app.logger.handlers


def test_second_app_reuses_handlers(app):
    from app import create_app
    from conftest import TestConfig

    before = list(app.logger.handlers)
    other = create_app(TestConfig)

    assert other.logger.handlers == before


def test_setup_logger_configures_once():
    before = list(ledger_logger.handlers)

    assert setup_logger("ledger") is ledger_logger
    assert ledger_logger.handlers == before
