"""
Exchange and signal collaborator interfaces.

The bot core never talks to a venue or computes indicators itself; it only
calls into objects implementing these protocols. Uses Protocol for interface
definition to allow easy mocking and testing.
"""

from decimal import Decimal
from typing import List, Protocol, runtime_checkable

from hamburger_bot.bots.hamburger.models import GridSignals, PositionSide
from hamburger_bot.core.models import Kline


@runtime_checkable
class GridExchange(Protocol):
    """
    Protocol defining the exchange calls the grid bot needs.

    Implementations may return False or raise (preferably ExchangeError)
    on failure; the bot treats both as a recoverable failed call.
    """

    async def get_ticker(self, symbol: str) -> Decimal:
        """Return the current mark/last price for a symbol."""
        ...

    async def open_position(
        self,
        symbol: str,
        side: PositionSide,
        size_usd: Decimal,
        leverage: int,
    ) -> bool:
        """Open a market position with size_usd margin at the given leverage."""
        ...

    async def close_position(
        self,
        symbol: str,
        side: PositionSide,
        size: Decimal,
    ) -> bool:
        """Close (reduce-only) size coins of the given side."""
        ...


@runtime_checkable
class CandleSource(Protocol):
    """Protocol for recent candle history."""

    async def get_candles(self, symbol: str, limit: int = 100) -> List[Kline]:
        """Return up to ``limit`` most recent closed candles, oldest first."""
        ...


@runtime_checkable
class SignalCalculator(Protocol):
    """Protocol for the indicator layer (SAR, ATR, volume spike, ROC)."""

    def calculate_signals(self, candles: List[Kline]) -> GridSignals:
        """
        Compute a signal snapshot.

        Raises:
            SignalUnavailableError: Not enough candle history
        """
        ...
