"""Centralized logging configuration for ffmovie"""

import logging
from typing import Optional
from pathlib import Path
from datetime import datetime

from rich.logging import RichHandler

from .config import LOG_DIR, LOG_LEVEL


def configure_logging(log_level: Optional[str] = None, file_logging: bool = False,
                      log_dir: Path = LOG_DIR) -> Optional[Path]:
    """
    Configure the "ffmovie" logger with a rich console handler.

    Args:
        log_level: Level name; falls back to LOG_LEVEL from config.
        file_logging: Also write a timestamped log file to log_dir.
        log_dir: Directory for log files, created when needed.

    Returns:
        The log file path when file logging is enabled, otherwise None.
    """
    level = (log_level or LOG_LEVEL).upper()
    logger = logging.getLogger("ffmovie")
    logger.setLevel(logging._nameToLevel.get(level, logging.INFO))

    # Remove existing handlers
    for handler in logger.handlers[:]:
        logger.removeHandler(handler)
        handler.close()

    console_handler = RichHandler(show_path=False, rich_tracebacks=True)
    console_handler.setFormatter(logging.Formatter("%(message)s"))
    logger.addHandler(console_handler)

    log_file = None
    if file_logging:
        log_dir.mkdir(parents=True, exist_ok=True)
        log_file = log_dir / f"ffmovie_{datetime.now().strftime('%Y%m%d_%H%M%S')}.log"
        file_handler = logging.FileHandler(log_file)
        file_handler.setFormatter(logging.Formatter(
            "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
        ))
        logger.addHandler(file_handler)

    logging.captureWarnings(True)
    return log_file
