"""Logging setup for the ``imagebed`` package logger."""

import logging

from .config import Settings

LOGGER_NAME = "imagebed"

formatter = logging.Formatter("%(asctime)s - %(levelname)s - %(name)s - %(message)s")


def configure_logging(settings: Settings) -> logging.Logger:
    """Attach console (and optionally file) handlers to the package logger."""
    logger = logging.getLogger(LOGGER_NAME)
    logger.setLevel(getattr(logging, settings.log_level.upper(), logging.INFO))

    # Avoid adding handlers multiple times if the app is rebuilt
    if logger.handlers:
        return logger

    console_handler = logging.StreamHandler()
    console_handler.setFormatter(formatter)
    logger.addHandler(console_handler)

    if settings.enable_logging and settings.log_file:
        settings.log_file.parent.mkdir(parents=True, exist_ok=True)
        file_handler = logging.FileHandler(settings.log_file, encoding="utf-8")
        file_handler.setFormatter(formatter)
        logger.addHandler(file_handler)

    return logger
