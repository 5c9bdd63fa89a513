"""
Centralized Logging Configuration

Every module gets its logger through get_logger(__name__); handlers are
attached once to the root logger by setup_logging().
"""

import logging
import sys
from pathlib import Path
from logging.handlers import RotatingFileHandler
from typing import Optional

from core.config import get_settings

settings = get_settings()

# Third-party loggers that are too chatty at INFO
QUIET_LOGGERS = (
    "uvicorn",
    "uvicorn.access",
    "fastapi",
    "sqlalchemy.engine",
    "sqlalchemy.pool",
    "redis",
    "slowapi",
    "passlib",
)


def setup_logging(
    log_level: Optional[str] = None,
    log_file: Optional[str] = None,
    enable_file_logging: bool = True
) -> logging.Logger:
    """
    Set up centralized logging configuration.

    Args:
        log_level: Logging level name; defaults to LOG_LEVEL from settings
        log_file: Path to the rotating log file; defaults to LOG_FILE.
                  An empty LOG_FILE disables file logging.
        enable_file_logging: Whether to attach the file handler at all

    Returns:
        Root logger instance
    """
    level = (log_level or settings.LOG_LEVEL).upper()
    log_file_path = log_file if log_file is not None else settings.LOG_FILE
    numeric_level = getattr(logging, level, logging.INFO)

    root_logger = logging.getLogger()
    root_logger.setLevel(numeric_level)

    # Remove existing handlers to avoid duplicates on re-import
    root_logger.handlers.clear()

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setLevel(numeric_level)
    console_handler.setFormatter(logging.Formatter(
        '%(asctime)s [%(levelname)-8s] %(name)s: %(message)s',
        datefmt='%H:%M:%S'
    ))
    root_logger.addHandler(console_handler)

    if enable_file_logging and log_file_path:
        try:
            Path(log_file_path).parent.mkdir(parents=True, exist_ok=True)
            file_handler = RotatingFileHandler(
                log_file_path,
                maxBytes=10 * 1024 * 1024,  # 10MB
                backupCount=5,
                encoding='utf-8'
            )
            file_handler.setLevel(numeric_level)
            file_handler.setFormatter(logging.Formatter(
                '%(asctime)s - %(name)s - %(levelname)s - %(message)s',
                datefmt='%Y-%m-%d %H:%M:%S'
            ))
            root_logger.addHandler(file_handler)
        except OSError as e:
            root_logger.warning(f"Failed to set up file logging: {str(e)}")

    for name in QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)

    return root_logger


def get_logger(name: str) -> logging.Logger:
    """
    Get a logger instance for a module.

    Args:
        name: Logger name (typically __name__)

    Returns:
        Logger instance
    """
    return logging.getLogger(name)


# Initialize logging on import
setup_logging()
