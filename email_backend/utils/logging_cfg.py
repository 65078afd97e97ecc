"""
Logging configuration for the mail backend.

Every module logs through ``logging.getLogger(__name__)``; this module wires
the root logger once at startup: a size-rotated file under config.LOG_DIR
with full records, and a terse stderr stream for operators.
"""
import logging
import logging.handlers
import sys
from pathlib import Path
from typing import Optional

from email_backend import config


# Rotate at 10 MB, keep 5 old files
MAX_LOG_SIZE = 10 * 1024 * 1024
BACKUP_COUNT = 5

FILE_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'
CONSOLE_FORMAT = '%(levelname)s - %(message)s'
DATE_FORMAT = '%Y-%m-%d %H:%M:%S'

# SDK loggers that chatter at INFO
NOISY_LOGGERS = (
    "urllib3",
    "requests",
    "googleapiclient.discovery",
    "googleapiclient.discovery_cache",
    "google.auth",
    "google_auth_oauthlib",
    "botocore",
    "boto3",
    "s3transfer",
    "smtplib",
)


def setup_logging(debug: bool = False, log_file: Optional[Path] = None) -> Path:
    """
    Configure the root logger for the mail backend.

    Args:
        debug: Log at DEBUG everywhere. Otherwise the file gets INFO and the
            console only WARNING and above.
        log_file: Override for the log file (defaults to <LOG_DIR>/email_backend.log).

    Returns:
        The path of the log file in use.
    """
    log_file = log_file or config.LOG_DIR / "email_backend.log"
    log_file.parent.mkdir(parents=True, exist_ok=True)
    level = logging.DEBUG if debug else logging.INFO

    root_logger = logging.getLogger()
    root_logger.setLevel(level)
    root_logger.handlers.clear()

    file_handler = logging.handlers.RotatingFileHandler(
        filename=str(log_file),
        maxBytes=MAX_LOG_SIZE,
        backupCount=BACKUP_COUNT,
        encoding='utf-8'
    )
    file_handler.setLevel(level)
    file_handler.setFormatter(logging.Formatter(fmt=FILE_FORMAT, datefmt=DATE_FORMAT))
    root_logger.addHandler(file_handler)

    console_handler = logging.StreamHandler(sys.stderr)
    console_handler.setLevel(logging.DEBUG if debug else logging.WARNING)
    console_handler.setFormatter(logging.Formatter(fmt=CONSOLE_FORMAT))
    root_logger.addHandler(console_handler)

    for name in NOISY_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)

    logging.getLogger(__name__).info(
        f"Logging to {log_file} at {logging.getLevelName(level)}"
    )
    return log_file
