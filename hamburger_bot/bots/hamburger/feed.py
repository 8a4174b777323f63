"""
Price Feed.

Polling driver for a HamburgerBot: fetches ticker and candles, computes the
signal snapshot and hands both to the bot's tick entry point.
"""

import asyncio
from typing import TYPE_CHECKING, Optional

from hamburger_bot.core import get_logger

from .bot import HamburgerBot
from .models import TickResult

if TYPE_CHECKING:
    from hamburger_bot.exchange.base import CandleSource, GridExchange, SignalCalculator

logger = get_logger(__name__)


class PriceFeed:
    """
    Poll market data and drive a bot.

    A failed fetch or signal computation marks the bot stale and skips the
    tick; the next successful poll clears the flag.

    Example:
        >>> feed = PriceFeed(bot, exchange, candles, calculator, interval_seconds=5)
        >>> feed.start()
        >>> ...
        >>> await feed.stop()
    """

    def __init__(
        self,
        bot: HamburgerBot,
        exchange: "GridExchange",
        candle_source: "CandleSource",
        signal_calculator: "SignalCalculator",
        interval_seconds: float = 5.0,
        candle_limit: int = 100,
    ):
        self._bot = bot
        self._exchange = exchange
        self._candle_source = candle_source
        self._signal_calculator = signal_calculator
        self._interval = interval_seconds
        self._candle_limit = candle_limit
        self._task: Optional[asyncio.Task] = None
        self._polls = 0
        self._failures = 0

    @property
    def polls(self) -> int:
        return self._polls

    @property
    def failures(self) -> int:
        return self._failures

    @property
    def is_active(self) -> bool:
        return self._task is not None and not self._task.done()

    async def poll_once(self) -> TickResult:
        """
        Fetch one price/signal snapshot and process it.

        Returns:
            The bot's TickResult, or a skipped result if data was unavailable
        """
        self._polls += 1
        symbol = self._bot.symbol

        try:
            price = await self._exchange.get_ticker(symbol)
            candles = await self._candle_source.get_candles(symbol, self._candle_limit)
            signals = self._signal_calculator.calculate_signals(candles)
        except Exception as e:
            self._failures += 1
            logger.error(f"[{self._bot.bot_id}] Market data poll failed: {e}")
            self._bot.mark_stale(str(e))
            return TickResult.skipped("signal_unavailable")

        self._bot.clear_stale()
        return await self._bot.on_price_update(price, signals)

    async def run(self) -> None:
        """Poll until the bot stops running."""
        logger.info(
            f"[{self._bot.bot_id}] Price feed started (interval {self._interval}s)"
        )
        while self._bot.is_running:
            await self.poll_once()
            await asyncio.sleep(self._interval)
        logger.info(f"[{self._bot.bot_id}] Price feed stopped")

    def start(self) -> asyncio.Task:
        """Run the feed as a background task."""
        if self.is_active:
            return self._task
        self._task = asyncio.create_task(self.run(), name=f"feed_{self._bot.bot_id}")
        return self._task

    async def stop(self) -> None:
        """Cancel the background task, if any."""
        if self._task is None:
            return
        if not self._task.done():
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
        self._task = None
