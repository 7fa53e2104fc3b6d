"""
Logging utilities for the spectral engine.
One module logger per layer, configured with a shared format.
"""

import logging


LOG_FORMAT = '[%(asctime)s.%(msecs)03d] %(levelname)s [%(name)s] %(message)s'
LOG_DATE_FORMAT = '%H:%M:%S'


def setup_logger(name: str, level: int = logging.INFO) -> logging.Logger:
    """Set up a logger with consistent formatting."""
    logger = logging.getLogger(name)
    logger.setLevel(level)

    if not logger.handlers:
        handler = logging.StreamHandler()
        handler.setLevel(level)
        formatter = logging.Formatter(LOG_FORMAT, datefmt=LOG_DATE_FORMAT)
        handler.setFormatter(formatter)
        logger.addHandler(handler)

    return logger


def set_level(level: int):
    """Change the level of every package logger and its handlers."""
    for logger in (dsp_logger, audio_logger):
        logger.setLevel(level)
        for handler in logger.handlers:
            handler.setLevel(level)


# Module loggers
dsp_logger = setup_logger("streamspec.dsp")
audio_logger = setup_logger("streamspec.audio")
