"""Logging setup driven by LoggingConfig."""

import logging

from hackmatch.config import LoggingConfig


def configure_logging(config: LoggingConfig | None = None) -> None:
    """Configure the ``hackmatch`` logger hierarchy."""
    config = config or LoggingConfig()
    level = logging.getLevelName(config.level.upper())
    if not isinstance(level, int):
        level = logging.INFO

    logger = logging.getLogger("hackmatch")
    logger.setLevel(level)

    if not logger.handlers:
        handler = logging.StreamHandler()
        handler.setFormatter(logging.Formatter(config.format))
        logger.addHandler(handler)
    else:
        for handler in logger.handlers:
            handler.setFormatter(logging.Formatter(config.format))
