"""
Stop Loss / Take Profit Calculator.

Provides calculation logic for initial stop loss and take profit prices,
ratcheting trailing stops, break-even stops and the exit checks of a real
grid position. Pure calculation, no side effects.
"""

from decimal import Decimal
from typing import Optional

from hamburger_bot.core import get_logger

from .models import ExitReason, GridConfig, GridPosition, PositionSide

logger = get_logger(__name__)

# Local early-exit heuristic: exit once the unleveraged loss reaches
# LIQUIDATION_BUFFER_PCT / leverage percent.
LIQUIDATION_BUFFER_PCT = Decimal("90")


class StopCalculator:
    """Calculator for grid position exits."""

    def __init__(self, config: GridConfig) -> None:
        """
        Initialize calculator.

        Args:
            config: Bot configuration (stop_loss_pct, take_profit_pct,
                    ATR multipliers, trailing and break-even switches)
        """
        self._config = config

    def _uses_atr(self, atr: Optional[Decimal]) -> bool:
        return self._config.use_dynamic_sltp and atr is not None and atr > 0

    def _stop_distance(self, reference_price: Decimal, atr: Optional[Decimal]) -> Decimal:
        if self._uses_atr(atr):
            return atr * self._config.sl_atr_multiplier
        return reference_price * self._config.stop_loss_pct

    # =========================================================================
    # Initial Levels
    # =========================================================================

    def calculate_stop_loss(
        self,
        entry_price: Decimal,
        side: PositionSide,
        atr: Optional[Decimal] = None,
    ) -> Decimal:
        """
        Calculate the initial stop loss price.

        Args:
            entry_price: Entry price of the position
            side: Position side
            atr: Current ATR value (used when dynamic SL/TP is enabled)

        Returns:
            Stop loss price
        """
        distance = self._stop_distance(entry_price, atr)
        if side == PositionSide.LONG:
            return max(entry_price - distance, Decimal("0"))
        return entry_price + distance

    def calculate_take_profit(
        self,
        entry_price: Decimal,
        side: PositionSide,
        atr: Optional[Decimal] = None,
    ) -> Decimal:
        """
        Calculate the take profit price.

        Args:
            entry_price: Entry price of the position
            side: Position side
            atr: Current ATR value (used when dynamic SL/TP is enabled)

        Returns:
            Take profit price
        """
        if self._uses_atr(atr):
            distance = atr * self._config.tp_atr_multiplier
        else:
            distance = entry_price * self._config.take_profit_pct

        if side == PositionSide.LONG:
            return entry_price + distance
        return max(entry_price - distance, Decimal("0"))

    # =========================================================================
    # Stop Adjustment
    # =========================================================================

    def calculate_trailing_stop(
        self,
        position: GridPosition,
        atr: Optional[Decimal] = None,
    ) -> Optional[Decimal]:
        """
        Calculate a new trailing stop from the best price since entry.

        Args:
            position: Position with highest/lowest price already updated
            atr: Current ATR value

        Returns:
            New stop loss price if it is tighter than the current one,
            None otherwise. A stop is never loosened.
        """
        if not self._config.use_trailing_stop:
            return None

        if position.is_long:
            reference_price = position.highest_price
            new_stop = reference_price - self._stop_distance(reference_price, atr)
        else:
            reference_price = position.lowest_price
            new_stop = reference_price + self._stop_distance(reference_price, atr)

        return self._tighter(position, new_stop)

    def calculate_break_even_stop(self, position: GridPosition) -> Optional[Decimal]:
        """
        Move the stop to entry once price has covered break_even_threshold_pct
        of the distance to take profit.

        Returns:
            Entry price if the stop should move there, None otherwise
        """
        if not self._config.use_break_even_stop:
            return None

        target_distance = abs(position.take_profit - position.entry_price)
        if target_distance <= 0:
            return None

        if position.is_long:
            progress = position.current_price - position.entry_price
        else:
            progress = position.entry_price - position.current_price

        if progress / target_distance < self._config.break_even_threshold_pct:
            return None

        return self._tighter(position, position.entry_price)

    @staticmethod
    def _tighter(position: GridPosition, new_stop: Decimal) -> Optional[Decimal]:
        # Only return if new stop is better than current
        if position.is_long and new_stop > position.stop_loss:
            return new_stop
        if not position.is_long and new_stop < position.stop_loss:
            return new_stop
        return None

    # =========================================================================
    # Exit Checks
    # =========================================================================

    @staticmethod
    def check_stop_loss_hit(position: GridPosition, price: Decimal) -> bool:
        if position.is_long:
            return price <= position.stop_loss
        return price >= position.stop_loss

    @staticmethod
    def check_take_profit_hit(position: GridPosition, price: Decimal) -> bool:
        if position.is_long:
            return price >= position.take_profit
        return price <= position.take_profit

    @staticmethod
    def check_liquidation_risk(position: GridPosition) -> bool:
        """
        Local early-exit heuristic, not the exchange liquidation price.

        True once unrealized PnL % <= -90 / leverage.
        """
        leverage = max(position.leverage, 1)
        threshold = -LIQUIDATION_BUFFER_PCT / Decimal(leverage)
        return position.unrealized_pnl_pct <= threshold

    def check_exit(self, position: GridPosition) -> Optional[ExitReason]:
        """
        Evaluate exits in priority order: stop loss / trailing stop, take
        profit, liquidation heuristic.

        Returns:
            First matching exit reason, or None
        """
        price = position.current_price
        if self.check_stop_loss_hit(position, price):
            return ExitReason.TRAILING_STOP if position.trailing_active else ExitReason.STOP_LOSS
        if self.check_take_profit_hit(position, price):
            return ExitReason.TAKE_PROFIT
        if self.check_liquidation_risk(position):
            return ExitReason.LIQUIDATION_RISK
        return None
