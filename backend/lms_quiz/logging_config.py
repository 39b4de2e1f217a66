"""Logging configuration helpers for the quiz service."""

import logging
from logging import Logger

from lms_quiz.config import get_log_level

LOG_FORMAT = "%(asctime)s | %(levelname)s | %(name)s | %(message)s"


def configure_logging() -> Logger:
    """Configure basic logging for the service and return the package logger."""
    logging.basicConfig(level=get_log_level(), format=LOG_FORMAT)
    return logging.getLogger("lms_quiz")
