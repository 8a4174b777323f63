"""
Grid Position Manager.

Owns the lifecycle of real positions: sizing, opening through the exchange,
per-tick PnL and stop updates, exit detection and closing.
"""

from datetime import datetime, timezone
from decimal import Decimal
from typing import TYPE_CHECKING, Callable, Dict, List, Optional

from hamburger_bot.core import get_logger

from .models import (
    ClosedTrade,
    ExitReason,
    GridConfig,
    GridPosition,
    PositionSide,
    PositionSizing,
    VirtualLevel,
)
from .stops import StopCalculator

if TYPE_CHECKING:
    from hamburger_bot.exchange.base import GridExchange

logger = get_logger(__name__)


# =============================================================================
# Exposure Helpers
# =============================================================================


def side_exposure(positions: List[GridPosition]) -> Dict[PositionSide, Decimal]:
    """Committed margin per side."""
    exposure = {PositionSide.LONG: Decimal("0"), PositionSide.SHORT: Decimal("0")}
    for position in positions:
        exposure[position.side] += position.size_usd
    return exposure


def position_bias(positions: List[GridPosition]) -> Decimal:
    """
    |long exposure - short exposure| / total exposure, in percent.

    Returns 0 when nothing is open.
    """
    exposure = side_exposure(positions)
    total = exposure[PositionSide.LONG] + exposure[PositionSide.SHORT]
    if total <= 0:
        return Decimal("0")
    return abs(exposure[PositionSide.LONG] - exposure[PositionSide.SHORT]) / total * Decimal("100")


def outer_positions(positions: List[GridPosition]) -> List[GridPosition]:
    """Lowest and highest entry positions (one item if only one is open)."""
    if not positions:
        return []
    ordered = sorted(positions, key=lambda p: p.entry_price)
    outer = [ordered[0]]
    if ordered[-1] is not ordered[0]:
        outer.append(ordered[-1])
    return outer


def max_position_distance(positions: List[GridPosition], price: Decimal) -> Decimal:
    """Largest distance between an outer position's entry and price, in percent."""
    if not positions or price <= 0:
        return Decimal("0")
    return max(
        abs(p.entry_price - price) / price * Decimal("100")
        for p in outer_positions(positions)
    )


# =============================================================================
# Position Manager
# =============================================================================


class GridPositionManager:
    """
    Real position lifecycle.

    The manager talks to the exchange and updates the position objects it is
    handed, but never adds or removes positions from the bot state; the
    orchestrator applies the outcome of every open and close.

    Example:
        >>> manager = GridPositionManager(config, exchange, bot_id="btc-grid")
        >>> position = await manager.open_position(level, fill_price=Decimal("49400"))
        >>> exit_reason = manager.update_position(position, Decimal("50800"))
    """

    def __init__(
        self,
        config: GridConfig,
        exchange: "GridExchange",
        bot_id: str = "",
        clock: Optional[Callable[[], datetime]] = None,
    ):
        self._config = config
        self._exchange = exchange
        self._bot_id = bot_id
        self._clock = clock or (lambda: datetime.now(timezone.utc))
        self._calculator = StopCalculator(config)
        self._position_counter = 0

    @property
    def calculator(self) -> StopCalculator:
        return self._calculator

    @property
    def leverage(self) -> int:
        """Configured leverage capped by the symbol's tier."""
        return self._config.effective_leverage

    # =========================================================================
    # Sizing
    # =========================================================================

    def calculate_position_size(self) -> Decimal:
        """
        Margin (USD) for the next position.

        Percentage sizing takes position_size (default 1 / max_positions) of
        active capital; fixed sizing uses position_size USD. Never below
        min_position_usd.
        """
        config = self._config
        if config.position_sizing == PositionSizing.FIXED and config.position_size is not None:
            size_usd = config.position_size
        else:
            fraction = config.position_size
            if fraction is None:
                fraction = Decimal("1") / Decimal(config.max_positions)
            size_usd = config.active_capital * fraction

        return max(size_usd, config.min_position_usd)

    # =========================================================================
    # Open / Close
    # =========================================================================

    async def open_position(
        self,
        level: VirtualLevel,
        atr: Optional[Decimal] = None,
        fill_price: Optional[Decimal] = None,
    ) -> Optional[GridPosition]:
        """
        Open a real market position for an admitted level.

        Entry, stop loss and take profit are based on the fill price. Price
        may be several levels past the one being filled, so callers pass the
        current tick price.

        Args:
            level: Admitted virtual level (side and level id)
            atr: Current ATR for dynamic SL/TP
            fill_price: Market price of the order; defaults to the level price

        Returns:
            New position, or None if the exchange rejected or failed
        """
        size_usd = self.calculate_position_size()
        leverage = self.leverage
        entry_price = fill_price if fill_price is not None else level.price
        size = size_usd * Decimal(leverage) / entry_price

        try:
            success = await self._exchange.open_position(
                self._config.symbol, level.side, size_usd, leverage
            )
        except Exception as e:
            logger.error(
                f"[{self._bot_id}] Open {level.side.value} for {level.id} failed: {e}"
            )
            return None

        if not success:
            logger.error(
                f"[{self._bot_id}] Exchange rejected {level.side.value} open for {level.id} "
                f"(${size_usd} x{leverage})"
            )
            return None

        self._position_counter += 1
        now = self._clock()
        position = GridPosition(
            id=f"pos_{self._position_counter}_{int(now.timestamp() * 1000)}",
            symbol=self._config.symbol,
            side=level.side,
            size=size,
            size_usd=size_usd,
            entry_price=entry_price,
            current_price=entry_price,
            stop_loss=self._calculator.calculate_stop_loss(entry_price, level.side, atr),
            take_profit=self._calculator.calculate_take_profit(entry_price, level.side, atr),
            leverage=leverage,
            level_id=level.id,
            entry_time=now,
        )

        logger.info(
            f"[{self._bot_id}] Opened {position.side.value} {position.id} for {level.id} "
            f"@ {entry_price}, margin=${size_usd}, x{leverage}, "
            f"SL={position.stop_loss:.2f}, TP={position.take_profit:.2f}"
        )
        return position

    async def close_position(self, position: GridPosition, reason: ExitReason) -> bool:
        """
        Close a position through the exchange.

        Returns:
            True only on a confirmed close. On failure the position must stay
            in the open set so a later tick can retry.
        """
        try:
            success = await self._exchange.close_position(
                position.symbol, position.side, position.size
            )
        except Exception as e:
            logger.error(
                f"[{self._bot_id}] Close {position.id} ({reason.value}) failed: {e}"
            )
            return False

        if not success:
            logger.error(
                f"[{self._bot_id}] Exchange rejected close of {position.id} ({reason.value})"
            )
            return False

        logger.info(
            f"[{self._bot_id}] Closed {position.side.value} {position.id} ({reason.value}) "
            f"@ {position.current_price}, PnL={position.unrealized_pnl:.4f}"
        )
        return True

    # =========================================================================
    # Per-Tick Update
    # =========================================================================

    def update_position(
        self,
        position: GridPosition,
        price: Decimal,
        atr: Optional[Decimal] = None,
    ) -> Optional[ExitReason]:
        """
        Mark a position to price and evaluate its exits.

        Updates PnL, best/worst price since entry and the stop (trailing
        and break-even ratchets, never loosened), then checks stop loss,
        take profit and the liquidation heuristic in that order.

        Returns:
            Exit reason if the position should be closed, None otherwise
        """
        position.current_price = price
        position.unrealized_pnl = position.calculate_pnl(price)
        position.unrealized_pnl_pct = position.calculate_pnl_pct(price)

        if price > position.highest_price:
            position.highest_price = price
        if price < position.lowest_price:
            position.lowest_price = price

        new_stop = self._calculator.calculate_trailing_stop(position, atr)
        if new_stop is not None:
            logger.debug(
                f"[{self._bot_id}] Trailing stop {position.id}: "
                f"{position.stop_loss:.4f} -> {new_stop:.4f}"
            )
            position.stop_loss = new_stop
            position.trailing_active = True

        break_even = self._calculator.calculate_break_even_stop(position)
        if break_even is not None:
            logger.debug(f"[{self._bot_id}] Break-even stop {position.id} @ {break_even}")
            position.stop_loss = break_even
            position.trailing_active = True

        return self._calculator.check_exit(position)

    def build_trade(
        self,
        position: GridPosition,
        reason: ExitReason,
        exit_time: Optional[datetime] = None,
    ) -> ClosedTrade:
        """Trade record for a confirmed close at the position's current price."""
        exit_price = position.current_price
        fee = (
            position.size * position.entry_price + position.size * exit_price
        ) * self._config.fee_rate
        return ClosedTrade(
            position_id=position.id,
            level_id=position.level_id,
            side=position.side,
            entry_price=position.entry_price,
            exit_price=exit_price,
            size=position.size,
            size_usd=position.size_usd,
            leverage=position.leverage,
            pnl=position.calculate_pnl(exit_price),
            fee=fee,
            entry_time=position.entry_time,
            exit_time=exit_time or self._clock(),
            exit_reason=reason,
        )
