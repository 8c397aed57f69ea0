"""Logging configuration for VocabAI."""
import logging
import sys
from logging.handlers import TimedRotatingFileHandler
from pathlib import Path
from typing import Optional, Union

from vocabai.config import LoggingSettings

QUIET_LOGGERS = ("httpx", "httpcore", "gtts", "urllib3", "faker", "sqlalchemy.engine")


def setup_logging(
    settings: LoggingSettings,
    first_message: str = "",
    level: Optional[Union[int, str]] = None,
) -> logging.Logger:
    """Configure logging for the entire application.

    Args:
        settings: Logging settings; ``settings.dir`` enables the rotating file log.
        first_message: Banner written once handlers are in place.
        level: Optional override of ``settings.level``.
    """
    if level is None:
        level = settings.level
    if isinstance(level, str):
        level = logging.getLevelName(level.upper())

    formatter = logging.Formatter(settings.format)

    root_logger = logging.getLogger()
    root_logger.setLevel(level)

    # Remove any existing handlers to avoid duplicates
    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)

    console_handler = logging.StreamHandler(sys.stderr)
    console_handler.setFormatter(formatter)
    root_logger.addHandler(console_handler)

    root_logger.info("================================================")
    if first_message:
        root_logger.info(first_message)
    root_logger.info("Logging configured with level: %s", logging.getLevelName(level))

    if settings.dir:
        try:
            log_dir = Path(settings.dir)
            log_dir.mkdir(parents=True, exist_ok=True)
            log_file = log_dir / "vocabai.log"
            file_handler = TimedRotatingFileHandler(
                log_file,
                when=settings.rotation,
                interval=settings.interval,
                backupCount=settings.backup_count,
                encoding="utf-8",
            )
            file_handler.setFormatter(formatter)
            root_logger.addHandler(file_handler)
            root_logger.info(
                "Log file: %s (rotation: %s, interval: %s, backup_count: %s)",
                log_file,
                settings.rotation,
                settings.interval,
                settings.backup_count,
            )
        except OSError as e:
            print(f"Warning: Could not set up file logging: {e}", file=sys.stderr)

    for name in QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)

    return root_logger
