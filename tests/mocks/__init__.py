"""Mock exchange and data services for testing."""

from .data_mock import FakeClock, MockCandleSource, MockSignalCalculator, make_klines, make_signals
from .exchange_mock import ExchangeCall, MockGridExchange

__all__ = [
    "MockGridExchange",
    "ExchangeCall",
    "MockCandleSource",
    "MockSignalCalculator",
    "FakeClock",
    "make_signals",
    "make_klines",
]
