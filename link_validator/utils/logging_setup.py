"""
Logging configuration for the Link Validator.

This module sets up logging based on configuration settings.
"""

import logging
import sys
from datetime import datetime
from pathlib import Path
from typing import Optional

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"

# Libraries that log every request at INFO
NOISY_LOGGERS = ("httpx", "httpcore", "pymongo", "uvicorn.access")


def setup_logging(
    logging_config=None,
    log_file: Optional[str] = None,
    log_dir: Optional[Path] = None,
) -> Optional[Path]:
    """
    Set up logging configuration.

    Args:
        logging_config: :class:`LoggingConfig` section (defaults apply when None)
        log_file: Optional log file name override
        log_dir: Directory for log files (defaults to ``./logs``)

    Returns:
        Path of the log file, or None when logging to the console only
    """
    log_level = getattr(logging_config, "level", "INFO")
    console_output = getattr(logging_config, "console_output", True)
    if log_file is None:
        log_file = getattr(logging_config, "log_file", None)

    formatter = logging.Formatter(LOG_FORMAT, DATE_FORMAT)
    handlers = []

    # File handler
    log_path = None
    if log_file:
        log_dir = Path(log_dir) if log_dir else Path.cwd() / "logs"
        log_dir.mkdir(parents=True, exist_ok=True)

        timestamp = datetime.now().strftime("%Y%m%d_%H%M%S")
        log_path = log_dir / f"{Path(log_file).stem}_{timestamp}.log"

        file_handler = logging.FileHandler(log_path, encoding="utf-8")
        file_handler.setFormatter(formatter)
        handlers.append(file_handler)

    # Console handler
    if console_output or not handlers:
        console_handler = logging.StreamHandler(sys.stdout)
        console_handler.setFormatter(formatter)
        handlers.append(console_handler)

    logging.basicConfig(
        level=getattr(logging, log_level.upper()), handlers=handlers
    )

    logger = logging.getLogger(__name__)
    if log_path:
        logger.info(f"Link Validator starting - Log file: {log_path}")
    logger.debug(f"Log level: {log_level}")

    for name in NOISY_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)

    return log_path


__all__ = ["setup_logging", "LOG_FORMAT", "DATE_FORMAT"]
