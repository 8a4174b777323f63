"""
Core module for Hamburger Grid Bot.

Provides logging utilities, the exception hierarchy and market data models.
"""

from .exceptions import (
    ConfigError,
    ExchangeError,
    HamburgerBotError,
    InvalidStateError,
    OrderError,
    SignalUnavailableError,
)
from .logger import get_logger, set_log_level, setup_logger
from .models import Kline, KlineInterval

__all__ = [
    # Logging
    "setup_logger",
    "get_logger",
    "set_log_level",
    # Exceptions
    "HamburgerBotError",
    "ExchangeError",
    "OrderError",
    "SignalUnavailableError",
    "ConfigError",
    "InvalidStateError",
    # Models
    "Kline",
    "KlineInterval",
]
