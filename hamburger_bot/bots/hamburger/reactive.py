"""
Reactive Bias Tracker.

Price-action alternative to the predictive trend filter: the bias follows
the most recent tick-to-tick move instead of an indicator.
"""

from decimal import Decimal
from typing import Optional

from hamburger_bot.core import get_logger

from .models import GridConfig, ReactiveBias

logger = get_logger(__name__)


class ReactiveBiasTracker:
    """
    Single-step reactive bias.

    Each update compares the new price with the price of the previous
    update. A move of at least +threshold flips the bias to LONG, a move of
    at most -threshold flips it to SHORT, anything in between leaves the
    bias unchanged. ``reaction_lookback`` is carried in the config but the
    comparison is always against the immediately preceding tick.
    """

    def __init__(self, config: GridConfig, bot_id: str = ""):
        self._threshold = config.reaction_threshold_pct
        self._lookback = config.reaction_lookback
        self._bot_id = bot_id
        self._bias = ReactiveBias.NEUTRAL
        self._previous_price: Optional[Decimal] = None

    @property
    def bias(self) -> ReactiveBias:
        return self._bias

    @property
    def previous_price(self) -> Optional[Decimal]:
        return self._previous_price

    @property
    def lookback(self) -> int:
        return self._lookback

    def update(self, price: Decimal) -> ReactiveBias:
        """
        Feed one tick price and return the resulting bias.

        The first price only seeds the reference; the bias stays NEUTRAL.
        """
        previous = self._previous_price
        self._previous_price = price

        if previous is None or previous <= 0:
            return self._bias

        change = (price - previous) / previous

        if change >= self._threshold and self._bias != ReactiveBias.LONG:
            logger.info(
                f"[{self._bot_id}] Reactive bias flipped to LONG "
                f"(price change {change * 100:.3f}%)"
            )
            self._bias = ReactiveBias.LONG
        elif change <= -self._threshold and self._bias != ReactiveBias.SHORT:
            logger.info(
                f"[{self._bot_id}] Reactive bias flipped to SHORT "
                f"(price change {change * 100:.3f}%)"
            )
            self._bias = ReactiveBias.SHORT

        return self._bias

    def reset(self, price: Optional[Decimal] = None) -> None:
        """Back to NEUTRAL, optionally re-seeding the reference price."""
        self._bias = ReactiveBias.NEUTRAL
        self._previous_price = price
