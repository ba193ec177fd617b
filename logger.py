# logger.py - logging setup shared by the app factory, the ledger services and scripts
import os
import logging
from logging.handlers import RotatingFileHandler

from flask.logging import default_handler

FILE_FORMAT = "%(asctime)s %(levelname)s: %(message)s [in %(pathname)s:%(lineno)d]"
CONSOLE_FORMAT = "%(name)s - %(levelname)s - %(message)s"


def setup_logger(name, log_file=None, level=logging.INFO, log_dir=None):
    """
    Rotating file logger for `name`, plus a console handler outside production.
    Configures a logger once; later calls return it unchanged.
    """
    log_dir = log_dir or os.environ.get("LOG_DIR", "logs")
    log_file = log_file or os.path.join(log_dir, f"{name}.log")
    os.makedirs(os.path.dirname(log_file) or ".", exist_ok=True)

    logger = logging.getLogger(name)
    # Flask puts its stderr handler on app.logger the first time it is touched
    logger.removeHandler(default_handler)
    if logger.handlers:
        return logger

    logger.setLevel(level)
    logger.propagate = False

    file_handler = RotatingFileHandler(log_file, maxBytes=1024 * 1024, backupCount=10, encoding="utf-8")
    file_handler.setFormatter(logging.Formatter(FILE_FORMAT))
    file_handler.setLevel(level)
    logger.addHandler(file_handler)

    if os.environ.get("FLASK_ENV") != "production":
        console_handler = logging.StreamHandler()
        console_handler.setLevel(logging.DEBUG)
        console_handler.setFormatter(logging.Formatter(CONSOLE_FORMAT))
        logger.addHandler(console_handler)

    return logger


def init_app_logging(app):
    """app.logger writes to LOG_DIR/app.log through the same rotating setup."""
    level = logging.DEBUG if app.debug else logging.INFO
    return setup_logger(app.logger.name, log_dir=app.config.get("LOG_DIR"), level=level)


# Transfer audit trail
ledger_logger = setup_logger("ledger")
