"""Logging setup for the photo studio service."""

import logging

_LOGGER_NAME = "photo_studio"
_FORMAT = "%(levelname)s: %(name)s: %(message)s"


def configure_logging(level: int = logging.INFO) -> None:
    """Attach one stream handler to the ``photo_studio`` logger.

    Safe to call repeatedly: later calls only adjust the level, so provider
    and orchestration loggers never emit duplicate lines.
    """
    logger = logging.getLogger(_LOGGER_NAME)
    logger.setLevel(level)
    if logger.handlers:
        return
    handler = logging.StreamHandler()
    handler.setFormatter(logging.Formatter(_FORMAT))
    logger.addHandler(handler)
    logger.propagate = False
