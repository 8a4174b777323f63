"""
Mock Grid Exchange for testing.

Simulates the exchange calls the hamburger bot makes without real API calls.
"""

import asyncio
from dataclasses import dataclass
from decimal import Decimal
from typing import Optional

from hamburger_bot.bots.hamburger.models import PositionSide
from hamburger_bot.core.exceptions import ExchangeError, OrderError


@dataclass
class ExchangeCall:
    """Recorded open/close call."""

    symbol: str
    side: PositionSide
    amount: Decimal  # size_usd for opens, coin size for closes
    leverage: Optional[int] = None


class MockGridExchange:
    """
    Mock GridExchange.

    Features:
    - Price control per symbol
    - Failure injection: return False or raise, for opens, closes or tickers
    - Simulated latency to exercise tick serialization
    - Call recording

    Example:
        >>> exchange = MockGridExchange()
        >>> exchange.set_price("BTC", 50000)
        >>> exchange.fail_close = True
    """

    def __init__(self):
        self._prices: dict[str, Decimal] = {}

        self.opens: list[ExchangeCall] = []
        self.closes: list[ExchangeCall] = []
        self.ticker_calls = 0

        # Failure injection
        self.fail_open = False
        self.fail_close = False
        self.raise_on_open = False
        self.raise_on_close = False
        self.raise_on_ticker = False

        # Simulated latency (seconds)
        self.open_delay: float = 0.0
        self.close_delay: float = 0.0

    def set_price(self, symbol: str, price) -> None:
        self._prices[symbol] = Decimal(str(price))

    async def get_ticker(self, symbol: str) -> Decimal:
        self.ticker_calls += 1
        if self.raise_on_ticker:
            raise ExchangeError("Ticker unavailable", code="TIMEOUT")
        if symbol not in self._prices:
            raise ExchangeError(f"No price for {symbol}")
        return self._prices[symbol]

    async def open_position(
        self,
        symbol: str,
        side: PositionSide,
        size_usd: Decimal,
        leverage: int,
    ) -> bool:
        if self.open_delay:
            await asyncio.sleep(self.open_delay)
        if self.raise_on_open:
            raise OrderError("Insufficient margin", symbol=symbol, side=side.value)
        if self.fail_open:
            return False
        self.opens.append(ExchangeCall(symbol, side, size_usd, leverage))
        return True

    async def close_position(
        self,
        symbol: str,
        side: PositionSide,
        size: Decimal,
    ) -> bool:
        if self.close_delay:
            await asyncio.sleep(self.close_delay)
        if self.raise_on_close:
            raise OrderError("Reduce-only rejected", symbol=symbol, side=side.value)
        if self.fail_close:
            return False
        self.closes.append(ExchangeCall(symbol, side, size))
        return True
