# ------------------------------------------------------------------------
# File: logging_config.py
# Location: signlink/core/logging_config.py
# Description:
#     Shared logging setup for the signlink service. Every module asks for
#     its logger through configure_logging(name, logfile); handlers sit on
#     the top-level "signlink" logger and the level follows LOG_LEVEL.
# ------------------------------------------------------------------------

import logging
import os
from logging.handlers import RotatingFileHandler

LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"

_configured = set()


def _resolve_level(level):
    if level is None:
        level = os.environ.get("LOG_LEVEL", "INFO")
    if isinstance(level, str):
        resolved = logging.getLevelName(level.upper())
        return resolved if isinstance(resolved, int) else logging.INFO
    return level


def configure_logging(name: str, logfile: str = "signlink.log", level=None) -> logging.Logger:
    """
    Return the logger for ``name``.

    Handlers (stderr, plus a rotating LOG_DIR/logfile when LOG_DIR is set)
    live on the top-level package logger only; ``signlink.<area>`` loggers
    propagate to it, so each record is written once.
    """
    logger = logging.getLogger(name)
    logger.setLevel(_resolve_level(level))

    root_name = name.split(".", 1)[0]
    if root_name in _configured:
        return logger

    root_logger = logging.getLogger(root_name)
    if root_logger is not logger:
        root_logger.setLevel(_resolve_level(level))

    formatter = logging.Formatter(LOG_FORMAT)

    stream_handler = logging.StreamHandler()
    stream_handler.setFormatter(formatter)
    root_logger.addHandler(stream_handler)

    log_dir = os.environ.get("LOG_DIR", "")
    if log_dir:
        os.makedirs(log_dir, exist_ok=True)
        file_handler = RotatingFileHandler(
            os.path.join(log_dir, logfile), maxBytes=5 * 1024 * 1024, backupCount=5
        )
        file_handler.setFormatter(formatter)
        root_logger.addHandler(file_handler)

    _configured.add(root_name)
    return logger
