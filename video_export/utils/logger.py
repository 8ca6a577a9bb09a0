"""
Logging Configuration
Console logging for the export service, with per-job context for the worker
"""

import logging
import sys
from typing import Any, MutableMapping, Tuple

LOGGER_NAME = "video_export"


class JobLogAdapter(logging.LoggerAdapter):
    """Prefixes every message with the export job it concerns"""

    def process(self, msg: Any, kwargs: MutableMapping[str, Any]) -> Tuple[Any, MutableMapping[str, Any]]:
        return f"[job {self.extra['job_id']}] {msg}", kwargs


def setup_logger(name: str = LOGGER_NAME, debug: bool = False) -> logging.Logger:
    """Set up and configure the application logger"""
    level = logging.DEBUG if debug else logging.INFO
    logger = logging.getLogger(name)
    logger.setLevel(level)

    # Avoid duplicate handlers on reload
    if logger.handlers:
        return logger

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setLevel(level)
    console_handler.setFormatter(logging.Formatter(
        "%(asctime)s | %(levelname)-8s | %(module)s | %(message)s",
        datefmt="%H:%M:%S"
    ))
    logger.addHandler(console_handler)

    return logger


def get_logger(name: str = LOGGER_NAME) -> logging.Logger:
    """Get the configured logger instance"""
    return logging.getLogger(name)


def get_job_logger(job_id: str) -> JobLogAdapter:
    """Logger whose records are tagged with an export job id"""
    return JobLogAdapter(get_logger(), {"job_id": job_id})
