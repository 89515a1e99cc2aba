"""
Runtime configuration read from the environment, plus logging setup.
"""
import logging
import os
from pathlib import Path
from typing import Optional

from dayflow.constants import (
    DEFAULT_DATABASE_URL,
    DEFAULT_TIMEZONE,
    DEFAULT_LOG_DIRECTORY_PROD,
    DEFAULT_LOG_DIRECTORY_DEV,
    DEFAULT_LOG_FILE,
    DEFAULT_LOG_LEVEL,
    LOG_FORMAT,
)

DATABASE_URL = os.getenv("DAYFLOW_DATABASE_URL", DEFAULT_DATABASE_URL)
DEFAULT_USER_TIMEZONE = os.getenv("DAYFLOW_TIMEZONE", DEFAULT_TIMEZONE)

# Optional "HH:MM"; timestamps before it still belong to the previous day
DAY_START_TIME: Optional[str] = os.getenv("DAYFLOW_DAY_START_TIME") or None

LOG_DIR = os.getenv("DAYFLOW_LOG_DIR", DEFAULT_LOG_DIRECTORY_PROD)
LOG_FILE = os.getenv("DAYFLOW_LOG_FILE", DEFAULT_LOG_FILE)
LOG_LEVEL = os.getenv("DAYFLOW_LOG_LEVEL", DEFAULT_LOG_LEVEL)


def configure_logging(log_dir: Optional[str] = None) -> Path:
    """
    Configure root logging with a file handler and a console handler.

    Falls back to a local directory if the configured one is not writable.

    Returns:
        Path of the log file in use
    """
    directory = log_dir or LOG_DIR
    try:
        Path(directory).mkdir(parents=True, exist_ok=True)
        log_path = Path(directory) / LOG_FILE
        file_handler = logging.FileHandler(log_path)
    except PermissionError:
        directory = DEFAULT_LOG_DIRECTORY_DEV
        Path(directory).mkdir(parents=True, exist_ok=True)
        log_path = Path(directory) / LOG_FILE
        file_handler = logging.FileHandler(log_path)

    logging.basicConfig(
        level=getattr(logging, LOG_LEVEL.upper(), logging.INFO),
        format=LOG_FORMAT,
        handlers=[
            file_handler,
            logging.StreamHandler()
        ]
    )
    logging.getLogger("dayflow").info(f"Dayflow logging to: {log_path}")
    return log_path
