"""
Custom exceptions for Hamburger Grid Bot.

Exception hierarchy:
    HamburgerBotError (base)
    ├── ExchangeError
    │   └── OrderError
    ├── SignalUnavailableError
    ├── ConfigError
    └── InvalidStateError
"""

from typing import Any


class HamburgerBotError(Exception):
    """Base exception for all bot errors."""

    default_message = "Hamburger bot error occurred"

    def __init__(
        self,
        message: str | None = None,
        code: str | None = None,
        details: dict[str, Any] | None = None,
    ):
        self.message = message or self.default_message
        self.code = code
        self.details = details or {}
        super().__init__(self.message)

    def __str__(self) -> str:
        text = self.message
        if self.code:
            text += f" [{self.code}]"
        if self.details:
            text += f" Details: {self.details}"
        return text


class ExchangeError(HamburgerBotError):
    """Venue call failed (ticker, candles, open or close)."""

    default_message = "Exchange call failed"


class OrderError(ExchangeError):
    """Opening or closing a position was rejected by the exchange."""

    default_message = "Order rejected"

    def __init__(
        self,
        message: str | None = None,
        symbol: str | None = None,
        side: str | None = None,
        code: str | None = None,
        details: dict[str, Any] | None = None,
    ):
        super().__init__(message, code, details)
        self.symbol = symbol
        self.side = side

    def __str__(self) -> str:
        parts = [super().__str__()]
        if self.symbol:
            parts.append(f"symbol={self.symbol}")
        if self.side:
            parts.append(f"side={self.side}")
        return " ".join(parts)


class SignalUnavailableError(HamburgerBotError):
    """No price or candle data for this tick."""

    default_message = "Market signal unavailable"


class ConfigError(HamburgerBotError):
    """Configuration error."""

    default_message = "Configuration error"


class InvalidStateError(HamburgerBotError):
    """Raised when an operation is invalid for the current bot state."""

    default_message = "Invalid bot state"
