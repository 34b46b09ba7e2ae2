"""
Configure logging for the call relay.

Every module logs through the single application logger named by LOGGER_NAME.
configure_logging() attaches a stdout handler and a rotating file handler to it;
calling it again (for example once per test app) replaces those handlers instead
of stacking new ones.
"""

import logging
import os
import sys
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Optional, Union

from app.config.constants import LOGGER_NAME

LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()
LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"

# Rotating log file under ./logs
LOG_FILE = Path("logs") / "call_relay.log"
MAX_LOG_SIZE = 10 * 1024 * 1024  # 10 MB
BACKUP_COUNT = 5


def _resolve_level(level: Optional[str]) -> int:
    name = (level or LOG_LEVEL).upper()
    resolved = logging.getLevelName(name)
    return resolved if isinstance(resolved, int) else logging.INFO


def configure_logging(
    level: Optional[str] = None,
    log_file: Optional[Union[str, Path]] = LOG_FILE,
) -> logging.Logger:
    """
    Configure the application logger with console and file handlers.

    Args:
        level: Level name overriding the LOG_LEVEL environment variable
        log_file: Rotating log file path, or None to log to stdout only

    Returns:
        logging.Logger: The configured application logger
    """
    logger = logging.getLogger(LOGGER_NAME)
    logger.setLevel(_resolve_level(level))

    for handler in logger.handlers[:]:
        logger.removeHandler(handler)
        handler.close()

    formatter = logging.Formatter(LOG_FORMAT)

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setFormatter(formatter)
    logger.addHandler(console_handler)

    if log_file is not None:
        log_path = Path(log_file)
        try:
            log_path.parent.mkdir(parents=True, exist_ok=True)
            file_handler = RotatingFileHandler(
                log_path,
                maxBytes=MAX_LOG_SIZE,
                backupCount=BACKUP_COUNT,
            )
            file_handler.setFormatter(formatter)
            logger.addHandler(file_handler)
        except OSError as e:
            logger.warning(f"Could not set up file logging at {log_path}: {e}")

    # Uvicorn configures the root logger; keep relay lines from printing twice
    logger.propagate = False

    logger.debug(f"Logging configured at {logging.getLevelName(logger.level)}")
    return logger
