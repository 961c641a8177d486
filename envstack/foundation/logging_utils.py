"""Logging helpers that avoid heavy dependencies."""

from __future__ import annotations

import logging
import os

LOG_FORMAT = "%(asctime)s | %(levelname)s | %(message)s"


def setup_operational_logger(
    environment_name: str,
    *,
    log_file: str | None = None,
    verbose: bool = False,
) -> logging.Logger:
    """
    Configure the logger for one workflow invocation.

    Logs go to stderr (INFO, or DEBUG when verbose) and, when `log_file` is set,
    to a UTF-8 file at DEBUG.
    """

    logger = logging.getLogger(f"envstack.workflow.{environment_name}")
    logger.setLevel(logging.DEBUG)
    logger.handlers.clear()

    formatter = logging.Formatter(LOG_FORMAT)

    stream_handler = logging.StreamHandler()
    stream_handler.setLevel(logging.DEBUG if verbose else logging.INFO)
    stream_handler.setFormatter(formatter)
    logger.addHandler(stream_handler)

    if log_file:
        directory = os.path.dirname(os.path.abspath(log_file))
        os.makedirs(directory, exist_ok=True)
        file_handler = logging.FileHandler(log_file, encoding="utf-8")
        file_handler.setLevel(logging.DEBUG)
        file_handler.setFormatter(formatter)
        logger.addHandler(file_handler)

    logger.propagate = False

    logger.debug("Operational logging initialized for environment %s", environment_name)
    if log_file:
        logger.debug("Operational log file: %s", log_file)
    return logger
