"""
Logging for Hamburger Grid Bot.

Every module logs through ``get_logger(__name__)``. Loggers write coloured
lines to stdout and plain lines to a rotating file shared by all bots in the
process; bot log lines carry a ``[bot_id]`` prefix so one file can hold
several bots.
"""

import logging
import os
import sys
from logging.handlers import RotatingFileHandler
from pathlib import Path

PACKAGE_LOGGER = "hamburger_bot"

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"

LOG_FILE_NAME = "hamburger_bot.log"
LOG_FILE_MAX_BYTES = 10 * 1024 * 1024
LOG_FILE_BACKUPS = 5


class ColoredFormatter(logging.Formatter):
    """Console formatter: ANSI colour per level."""

    RESET = "\033[0m"
    COLORS = {
        logging.DEBUG: "\033[90m",
        logging.INFO: "\033[92m",
        logging.WARNING: "\033[93m",
        logging.ERROR: "\033[91m",
        logging.CRITICAL: "\033[91m\033[1m",
    }

    def format(self, record: logging.LogRecord) -> str:
        color = self.COLORS.get(record.levelno, self.RESET)
        return f"{color}{super().format(record)}{self.RESET}"


def resolve_level(level: int | str | None = None) -> int:
    """
    Normalize a level name or number.

    None reads ``LOG_LEVEL`` from the environment; unknown names fall back
    to INFO.
    """
    if level is None:
        level = os.getenv("LOG_LEVEL", "INFO")
    if isinstance(level, str):
        return getattr(logging, level.upper(), logging.INFO)
    return level


def default_log_file() -> Path:
    """logs/hamburger_bot.log under the project root, or under $HAMBURGER_LOG_DIR."""
    log_dir = os.getenv("HAMBURGER_LOG_DIR")
    directory = Path(log_dir) if log_dir else Path(__file__).resolve().parents[2] / "logs"
    directory.mkdir(parents=True, exist_ok=True)
    return directory / LOG_FILE_NAME


def _console_handler(level: int) -> logging.Handler:
    handler = logging.StreamHandler(sys.stdout)
    handler.setLevel(level)
    handler.setFormatter(ColoredFormatter(LOG_FORMAT, DATE_FORMAT))
    return handler


def _file_handler(log_file: Path, level: int) -> logging.Handler:
    log_file.parent.mkdir(parents=True, exist_ok=True)
    handler = RotatingFileHandler(
        log_file,
        maxBytes=LOG_FILE_MAX_BYTES,
        backupCount=LOG_FILE_BACKUPS,
        encoding="utf-8",
    )
    handler.setLevel(level)
    handler.setFormatter(logging.Formatter(LOG_FORMAT, DATE_FORMAT))
    return handler


def setup_logger(
    name: str,
    level: int | str | None = None,
    log_file: str | Path | None = None,
) -> logging.Logger:
    """
    Configure a logger with console and rotating file output.

    Calling it again for a logger that already has handlers returns the
    logger unchanged.

    Args:
        name: Logger name, usually the module's ``__name__``
        level: Level name or number (default: $LOG_LEVEL or INFO)
        log_file: Log file path (default: see ``default_log_file``)

    Returns:
        Configured logger

    Example:
        >>> logger = setup_logger("hamburger_bot.bots.hamburger.bot")
        >>> logger.info("[btc-grid] Grid initialized")
    """
    logger = logging.getLogger(name)
    if logger.handlers:
        return logger

    level = resolve_level(level)
    logger.setLevel(level)
    logger.addHandler(_console_handler(level))
    logger.addHandler(_file_handler(Path(log_file) if log_file else default_log_file(), level))

    # Handlers live on each module logger, keep records away from root
    logger.propagate = False
    return logger


def get_logger(name: str) -> logging.Logger:
    """Module logger, configured on first use."""
    logger = logging.getLogger(name)
    if not logger.handlers:
        return setup_logger(name)
    return logger


def set_log_level(level: int | str) -> int:
    """
    Apply a level to every configured package logger and its handlers.

    Used after loading a bots file so its ``log_level`` wins over the
    environment default picked at import time.

    Returns:
        The numeric level applied
    """
    numeric = resolve_level(level)
    for name, logger in logging.Logger.manager.loggerDict.items():
        if not isinstance(logger, logging.Logger):
            continue
        if name != PACKAGE_LOGGER and not name.startswith(f"{PACKAGE_LOGGER}."):
            continue
        logger.setLevel(numeric)
        for handler in logger.handlers:
            handler.setLevel(numeric)
    return numeric
