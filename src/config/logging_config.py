"""Per-run logging configuration."""

import logging
import sys
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import List, Optional

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
MAX_LOG_BYTES = 5 * 1024 * 1024
LOG_BACKUP_COUNT = 5

# Module loggers (src.config.settings, ...) share the run handlers through this parent
PACKAGE_LOGGER_NAME = "src"


def _build_handlers(log_dir: Optional[str]) -> List[logging.Handler]:
    formatter = logging.Formatter(LOG_FORMAT)

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setFormatter(formatter)
    handlers: List[logging.Handler] = [console_handler]

    if log_dir:
        log_path = Path(log_dir)
        log_path.mkdir(parents=True, exist_ok=True)

        combined_handler = RotatingFileHandler(
            log_path / "combined.log", maxBytes=MAX_LOG_BYTES, backupCount=LOG_BACKUP_COUNT
        )
        combined_handler.setFormatter(formatter)
        handlers.append(combined_handler)

        error_handler = RotatingFileHandler(
            log_path / "error.log", maxBytes=MAX_LOG_BYTES, backupCount=LOG_BACKUP_COUNT
        )
        error_handler.setLevel(logging.ERROR)
        error_handler.setFormatter(formatter)
        handlers.append(error_handler)

    return handlers


def _attach_handlers(target: logging.Logger, level: int, handlers: List[logging.Handler]) -> None:
    target.setLevel(level)
    target.propagate = False
    for handler in handlers:
        target.addHandler(handler)


def setup_logging(
    level: str = "INFO",
    log_dir: Optional[str] = None,
    name: str = "gladly_import"
) -> logging.Logger:
    """
    Build the logger for one import run.

    The root logger is left untouched: handlers are attached to a dedicated
    named logger that is handed to each pipeline component, and to the package
    logger so module-level loggers (e.g. config loading) reach the same sinks.

    Args:
        level: Log level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        log_dir: Optional directory for combined.log and error.log
        name: Logger name

    Returns:
        Configured logger
    """
    numeric_level = getattr(logging, level.upper(), logging.INFO)
    handlers = _build_handlers(log_dir)

    run_logger = logging.getLogger(name)
    package_logger = logging.getLogger(PACKAGE_LOGGER_NAME)
    stale = set(run_logger.handlers) | set(package_logger.handlers)
    for target in (run_logger, package_logger):
        for handler in list(target.handlers):
            target.removeHandler(handler)
    for handler in stale:
        handler.close()

    _attach_handlers(run_logger, numeric_level, handlers)
    _attach_handlers(package_logger, numeric_level, handlers)

    # Keep transport chatter out of the run log
    logging.getLogger("urllib3").setLevel(logging.WARNING)
    logging.getLogger("requests").setLevel(logging.WARNING)

    return run_logger
