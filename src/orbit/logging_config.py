"""
Centralized logging configuration for Orbit.

Configures the ``orbit`` parent logger so every child logger
(orbit.agent.loop, orbit.agent.round, ...) inherits handlers and level.
Library code only ever calls ``logging.getLogger(__name__)``; handlers
are installed by applications, e.g. the CLI.
"""

import logging
import logging.handlers
from pathlib import Path

LOG_FORMAT = "%(asctime)s | %(levelname)-8s | %(name)s | %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"

_logging_configured = False


def setup_logging(level: str = "INFO", log_file: str | None = None) -> None:
    """
    Configure Orbit logging with stderr and optional file output.

    Only the first call has an effect.

    Args:
        level: Logging level name (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        log_file: Path of a rotating log file; None disables file logging
    """
    global _logging_configured
    if _logging_configured:
        return
    _logging_configured = True

    numeric_level = getattr(logging, level.upper(), logging.INFO)

    parent_logger = logging.getLogger("orbit")
    parent_logger.setLevel(numeric_level)
    parent_logger.propagate = False

    fmt = logging.Formatter(LOG_FORMAT, datefmt=DATE_FORMAT)

    console = logging.StreamHandler()
    console.setLevel(numeric_level)
    console.setFormatter(fmt)
    parent_logger.addHandler(console)

    if log_file is None:
        return

    Path(log_file).parent.mkdir(parents=True, exist_ok=True)
    file_handler = logging.handlers.RotatingFileHandler(
        log_file,
        maxBytes=10 * 1024 * 1024,  # 10 MB
        backupCount=5,
        encoding="utf-8",
    )
    file_handler.setLevel(numeric_level)
    file_handler.setFormatter(fmt)
    parent_logger.addHandler(file_handler)
