"""
Mandala Planner logging setup.

Log policy:
- logs/system.log: routine operations (INFO+)
- logs/error.log: stack traces (ERROR/CRITICAL)
- console: only what the user should see (WARNING+)

RotatingFileHandler keeps the files bounded.
"""
import logging
import sys
from datetime import datetime
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Optional

LOGS_DIR = Path(__file__).parent.parent / "logs"

MAX_BYTES = 5 * 1024 * 1024  # 5MB
BACKUP_COUNT = 3

ROOT_LOGGER_NAME = "mandala"

FILE_FORMAT = "%(asctime)s | %(levelname)-8s | %(name)s | %(message)s"
CONSOLE_FORMAT = "[%(levelname)s] %(message)s"


def _rotating_handler(filename: str, level: int, formatter: logging.Formatter) -> RotatingFileHandler:
    handler = RotatingFileHandler(
        LOGS_DIR / filename,
        maxBytes=MAX_BYTES,
        backupCount=BACKUP_COUNT,
        encoding="utf-8",
    )
    handler.setLevel(level)
    handler.setFormatter(formatter)
    return handler


def setup_logging(
    log_level: int = logging.INFO,
    console_level: int = logging.WARNING
) -> logging.Logger:
    """
    Initialise the logging system.

    Args:
        log_level: file log level (default INFO)
        console_level: console log level (default WARNING)

    Returns:
        the configured package root logger
    """
    LOGS_DIR.mkdir(parents=True, exist_ok=True)

    logger = logging.getLogger(ROOT_LOGGER_NAME)
    logger.setLevel(logging.DEBUG)  # handlers do the filtering

    # avoid duplicate handlers on repeated setup
    logger.handlers.clear()

    file_format = logging.Formatter(FILE_FORMAT, datefmt="%Y-%m-%d %H:%M:%S")

    logger.addHandler(_rotating_handler("system.log", log_level, file_format))
    logger.addHandler(_rotating_handler("error.log", logging.ERROR, file_format))

    console_handler = logging.StreamHandler(sys.stderr)
    console_handler.setLevel(console_level)
    console_handler.setFormatter(logging.Formatter(CONSOLE_FORMAT))
    logger.addHandler(console_handler)

    return logger


def get_logger(name: Optional[str] = None) -> logging.Logger:
    """
    Return a module logger under the package namespace.

    Args:
        name: module name, e.g. "aggregation", "repository"
    """
    if name:
        return logging.getLogger(f"{ROOT_LOGGER_NAME}.{name}")
    return logging.getLogger(ROOT_LOGGER_NAME)


def log_corruption(key: str, raw_payload: str, error_msg: str) -> None:
    """
    Record a malformed stored payload in the dedicated corruption log.

    Args:
        key: logical storage key whose payload failed to load
        raw_payload: the raw stored text (truncated)
        error_msg: what went wrong
    """
    corruption_log_path = LOGS_DIR / "corruption_dump.log"
    LOGS_DIR.mkdir(parents=True, exist_ok=True)

    with open(corruption_log_path, "a", encoding="utf-8") as f:
        timestamp = datetime.now().isoformat()
        f.write(f"[{timestamp}] Key {key}: {error_msg}\n")
        f.write(f"  Raw: {raw_payload[:500]}\n")
        f.write("-" * 50 + "\n")

    logger = get_logger("repository")
    logger.warning(f"Malformed stored data under '{key}': {error_msg}")
