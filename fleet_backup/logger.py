import logging
import logging.handlers
import os
import sys
from typing import Optional

FORMAT = "[%(asctime)s] [%(levelname)s] [%(name)s] - %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"
# boto3 and friends log every request at DEBUG/INFO
NOISY_LOGGERS = ("boto3", "botocore", "s3transfer", "urllib3")


def setup_logging(level: Optional[str] = None, log_file: Optional[str] = None) -> str:
    """
    Configure the root logger for one CLI run and return the effective level.

    level and log_file fall back to $LOG_LEVEL (default INFO) and $LOG_FILE.
    """
    log_level = (level or os.environ.get("LOG_LEVEL", "INFO")).upper()
    log_file = log_file or os.environ.get("LOG_FILE")

    root = logging.getLogger()
    root.setLevel(log_level)
    root.handlers.clear()

    formatter = logging.Formatter(FORMAT, DATE_FORMAT)

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setFormatter(formatter)
    root.addHandler(console_handler)

    if log_file:
        try:
            log_dir = os.path.dirname(log_file)
            if log_dir:
                os.makedirs(log_dir, exist_ok=True)
            file_handler = logging.handlers.RotatingFileHandler(
                log_file, maxBytes=10 * 1024 * 1024, backupCount=5  # 10 MB
            )
            file_handler.setFormatter(formatter)
            root.addHandler(file_handler)
        except OSError as e:
            root.error(f"Failed to create log file handler for {log_file}: {e}")

    library_level = logging.DEBUG if log_level == "DEBUG" else logging.WARNING
    for name in NOISY_LOGGERS:
        logging.getLogger(name).setLevel(library_level)

    root.debug(f"Logging configured with level {log_level}")
    return log_level


def get_logger(name: str) -> logging.Logger:
    """Get a logger instance."""
    return logging.getLogger(name)
