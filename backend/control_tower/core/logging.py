"""Module: logging.

Logging setup for the control tower backend.
"""

from __future__ import annotations

import logging
import sys
from pathlib import Path

from control_tower.core.config import settings

LOG_FORMAT = "%(asctime)s | %(levelname)s | %(name)s | %(message)s"
DATE_FORMAT = "%Y-%m-%dT%H:%M:%S"

_logger = logging.getLogger(__name__)


def configure_logging(level: str | None = None, log_file: str | None = None) -> None:
    """Install stream (and optional file) handlers on the root logger."""
    level_name = (level or settings.log_level).upper()
    log_file = log_file or settings.log_file

    formatter = logging.Formatter(LOG_FORMAT, datefmt=DATE_FORMAT)
    handlers: list[logging.Handler] = []

    stream_handler = logging.StreamHandler(sys.stderr)
    stream_handler.setFormatter(formatter)
    handlers.append(stream_handler)

    file_error: OSError | None = None
    if log_file:
        try:
            Path(log_file).parent.mkdir(parents=True, exist_ok=True)
            file_handler = logging.FileHandler(log_file)
            file_handler.setFormatter(formatter)
            handlers.append(file_handler)
        except OSError as exc:
            file_error = exc

    logging.basicConfig(
        level=getattr(logging, level_name, logging.INFO),
        handlers=handlers,
        force=True,
    )

    if file_error is not None:
        _logger.warning("Failed to open log file %s: %s", log_file, file_error)
