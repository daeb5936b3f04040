"""
SESSION LOGGING
===============
Loggers for the session subsystem and redaction of session identifiers.
"""

# FLOW:
# - get_session_logger() returns a logger under "security.session".
# - redact_session_id() is applied before any id reaches a log line.
# HOW:
# - SESSION_LOG_FILE adds a rotating file handler, like the other security logs.

from __future__ import annotations

import logging
import os
from logging.handlers import RotatingFileHandler


ROOT_LOGGER = "security.session"


def _attach_file_handler(logger: logging.Logger, path: str) -> None:
    if any(isinstance(h, RotatingFileHandler) for h in logger.handlers):
        return

    directory = os.path.dirname(path)
    if directory:
        os.makedirs(directory, exist_ok=True)
    handler = RotatingFileHandler(path, maxBytes=2_000_000, backupCount=3)
    formatter = logging.Formatter("%(asctime)s %(levelname)s %(message)s")
    handler.setFormatter(formatter)

    logger.setLevel(logging.INFO)
    logger.addHandler(handler)


def get_session_logger(name: str | None = None) -> logging.Logger:
    root = logging.getLogger(ROOT_LOGGER)
    log_file = os.getenv("SESSION_LOG_FILE")
    if log_file:
        _attach_file_handler(root, log_file)
    if not name:
        return root
    return root.getChild(name)


def redact_session_id(value: str | None, visible: int = 8) -> str:
    if not value:
        return "-"
    if len(value) <= visible:
        return "***"
    return f"{value[:visible]}***"
