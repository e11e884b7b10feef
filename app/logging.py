import logging
import re
import sys
import traceback
from datetime import datetime
from pathlib import Path
from typing import Optional, Union

from app.config import settings

LOG_FORMAT = "%(levelname)s | %(name)s | (%(filename)s:%(lineno)d) | %(message)s"

LEVEL_COLORS = {
    "DEBUG": "\033[94m",
    "INFO": "\033[92m",
    "WARNING": "\033[93m",
    "ERROR": "\033[91m",
    "CRITICAL": "\033[1;91m",
}
RESET = "\033[0m"

# Brazilian WhatsApp ids: country code, area code, 8 or 9 digit number
PHONE_PATTERN = re.compile(r"\b(55\d{2})(\d{4,5})(\d{4})\b")


def mask_phone(text: str) -> str:
    """
    Hide the middle digits of customer phone numbers.

    >>> mask_phone("Message from 5583999990000: processed")
    'Message from 5583*****0000: processed'
    """
    return PHONE_PATTERN.sub(
        lambda m: f"{m.group(1)}{'*' * len(m.group(2))}{m.group(3)}", text
    )


class LevelColorFormatter(logging.Formatter):
    """Colours the level name on the console."""

    def format(self, record):
        levelname = record.levelname
        if levelname in LEVEL_COLORS:
            record.levelname = f"{LEVEL_COLORS[levelname]}{levelname}{RESET}"
        try:
            return super().format(record)
        finally:
            record.levelname = levelname


class PhoneMaskFilter(logging.Filter):
    def filter(self, record):
        record.msg = mask_phone(record.getMessage())
        record.args = None
        return True


class ErrorStackFilter(logging.Filter):
    """
    Error records logged without exception info get the caller's stack
    appended, so entries in the daily error file point at their origin.
    """

    def filter(self, record):
        if record.levelno >= logging.ERROR and not record.exc_info:
            if not getattr(record, "_stack_attached", False):
                stack = "".join(traceback.format_stack()[:-2])
                record.msg = f"{record.getMessage()}\nStack:\n{stack}"
                record.args = None
                record._stack_attached = True
        return True


def error_log_path(log_dir: Optional[Union[str, Path]] = None) -> Path:
    """Today's error log, e.g. ``logs/2025-10-20-errors.log``."""
    directory = Path(log_dir or settings.LOG_DIR)
    directory.mkdir(parents=True, exist_ok=True)
    return directory / f"{datetime.now().strftime('%Y-%m-%d')}-errors.log"


def setup_logger(
    name: str,
    level: Optional[Union[int, str]] = None,
    log_file: Optional[Union[str, Path]] = None,
) -> logging.Logger:
    """
    Configure and return a logger for one module of the bot.

    Args:
        name: Logger name (typically __name__)
        level: Logging level, defaults to settings.LOG_LEVEL
        log_file: Optional extra file receiving every record

    Returns:
        Configured logger instance
    """
    logger = logging.getLogger(name)

    if level is None:
        level = settings.LOG_LEVEL
    if isinstance(level, str):
        level = getattr(logging, level.upper(), logging.INFO)
    logger.setLevel(level)

    if logger.handlers:
        return logger

    if settings.LOG_MASK_PHONES:
        logger.addFilter(PhoneMaskFilter())

    console_handler = logging.StreamHandler()
    console_handler.setFormatter(LevelColorFormatter(LOG_FORMAT))
    logger.addHandler(console_handler)

    plain = logging.Formatter(LOG_FORMAT)
    if log_file:
        file_handler = logging.FileHandler(log_file, delay=True)
        file_handler.setFormatter(plain)
        logger.addHandler(file_handler)

    if settings.LOG_TO_FILE:
        error_handler = logging.FileHandler(error_log_path(), delay=True)
        error_handler.setLevel(logging.ERROR)
        error_handler.addFilter(ErrorStackFilter())
        error_handler.setFormatter(plain)
        logger.addHandler(error_handler)

    return logger


def log_exception(
    logger: logging.Logger, message: str, exc: Optional[BaseException] = None
) -> None:
    """
    Log an error together with the traceback of ``exc`` (or of the exception
    currently being handled).
    """
    if exc is None:
        exc_info = sys.exc_info()
        if exc_info[0] is None:
            logger.error(f"{message} (no exception info available)")
            return
    else:
        exc_info = (type(exc), exc, exc.__traceback__)

    tb_text = "".join(traceback.format_exception(*exc_info))
    logger.error(f"{message}: {exc_info[1]}\n{tb_text}")
