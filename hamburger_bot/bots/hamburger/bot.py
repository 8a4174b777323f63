"""
Hamburger Grid Bot.

Virtual-grid perpetual futures bot:
- Keeps an unbounded ladder of virtual levels around a center price
- Converts crossed levels into real leveraged positions through an
  admission gate capped by max_active_positions
- Lets an AI risk layer cut, close or rebalance exposure on every
  significant tick
- Manages stop loss, trailing stop, take profit and a local liquidation
  heuristic for every real position

Ticks are processed one at a time; a tick arriving while another one is in
flight is dropped.
"""

import asyncio
import copy
from datetime import datetime, timezone
from decimal import Decimal
from typing import TYPE_CHECKING, Any, Callable, Dict, List, Optional

from hamburger_bot.core import get_logger
from hamburger_bot.core.exceptions import InvalidStateError

from .admission import AdmissionGate
from .ai_engine import GridAIEngine
from .models import (
    AIDecision,
    ExitReason,
    GridAction,
    GridConfig,
    GridPerformance,
    GridPosition,
    GridSignals,
    GridState,
    LevelStatus,
    PositionSide,
    RejectReason,
    TickResult,
)
from .position_manager import GridPositionManager, max_position_distance, position_bias
from .reactive import ReactiveBiasTracker
from .virtual_grid import VirtualGrid

if TYPE_CHECKING:
    from hamburger_bot.exchange.base import GridExchange

logger = get_logger(__name__)

# Extreme conditions that mark cut/close operations as priority exits
EXTREME_VOLATILITY_MULTIPLIER = Decimal("3")
EXTREME_ROC_FACTOR = Decimal("2")

OUTER_DISTANCE_SPACINGS = Decimal("3")


class HamburgerBot:
    """
    Grid Bot Orchestrator.

    Single owner and sole writer of the GridState. Composes the virtual
    grid, admission gate, reactive bias tracker, AI engine and position
    manager into one tick pipeline:

        crossings -> admission -> AI decision -> execution -> position exits

    Example:
        >>> bot = HamburgerBot("btc-grid", config, exchange)
        >>> await bot.initialize(Decimal("50000"))
        >>> await bot.start()
        >>> result = await bot.on_price_update(Decimal("50600"), signals)
        >>> await bot.stop()
    """

    def __init__(
        self,
        bot_id: str,
        config: GridConfig,
        exchange: "GridExchange",
        clock: Optional[Callable[[], datetime]] = None,
    ):
        """
        Initialize Hamburger Bot.

        Args:
            bot_id: Unique bot identifier, used as log prefix
            config: Bot configuration
            exchange: Exchange client implementing GridExchange
            clock: Time source returning aware UTC datetimes
        """
        self._bot_id = bot_id
        self._exchange = exchange
        self._clock = clock or (lambda: datetime.now(timezone.utc))

        self._state = GridState(config=config)
        self._build_components(config)

        self._initialized = False
        self._last_price: Optional[Decimal] = None
        self._last_signals: Optional[GridSignals] = None
        self._last_decision: Optional[AIDecision] = None
        self._dropped_ticks = 0

        # Single-flight guard around tick processing and stop
        self._tick_lock = asyncio.Lock()

    def _build_components(self, config: GridConfig) -> None:
        self._grid = VirtualGrid(config, clock=self._clock)
        self._gate = AdmissionGate(config, bot_id=self._bot_id)
        self._reactive = ReactiveBiasTracker(config, bot_id=self._bot_id)
        self._engine = GridAIEngine(config, bot_id=self._bot_id, clock=self._clock)
        self._positions = GridPositionManager(
            config, self._exchange, bot_id=self._bot_id, clock=self._clock
        )

    # =========================================================================
    # Properties
    # =========================================================================

    @property
    def bot_id(self) -> str:
        return self._bot_id

    @property
    def config(self) -> GridConfig:
        return self._state.config

    @property
    def symbol(self) -> str:
        return self._state.config.symbol

    @property
    def is_running(self) -> bool:
        return self._state.is_running

    @property
    def is_initialized(self) -> bool:
        return self._initialized

    @property
    def is_busy(self) -> bool:
        """True while a tick or stop holds the tick lock."""
        return self._tick_lock.locked()

    @property
    def dropped_ticks(self) -> int:
        return self._dropped_ticks

    @property
    def last_decision(self) -> Optional[AIDecision]:
        return self._last_decision

    @property
    def reactive_bias(self):
        return self._reactive.bias

    @property
    def grid_spacing(self) -> Decimal:
        return self._grid.spacing

    # =========================================================================
    # Lifecycle
    # =========================================================================

    async def initialize(self, current_price: Decimal) -> None:
        """
        Build the virtual ladder around current_price with no real positions.

        Does not start ticking.

        Raises:
            InvalidStateError: If running, or real positions are still open
            ValueError: If current_price is not positive
        """
        if self._state.is_running:
            raise InvalidStateError(f"[{self._bot_id}] Cannot initialize while running")
        if self._state.real_positions:
            raise InvalidStateError(
                f"[{self._bot_id}] Cannot initialize with "
                f"{len(self._state.real_positions)} open positions, stop the bot first"
            )

        current_price = Decimal(str(current_price))
        self._reset_grid(current_price)
        self._reactive.reset(current_price)
        self._gate.reset()
        self._initialized = True

        logger.info(
            f"[{self._bot_id}] Initialized {self.symbol} grid at {current_price}: "
            f"{len(self._state.virtual_levels)} virtual levels, "
            f"spacing {self._grid.spacing * 100}%, "
            f"leverage x{self._positions.leverage}, "
            f"max active positions {self.config.max_active_positions}"
        )

    def _reset_grid(self, center_price: Decimal) -> None:
        spacing = None
        if self._last_signals is not None:
            spacing = self._grid.adaptive_spacing(self._last_signals.volatility.multiplier)
        self._state.virtual_levels = self._grid.generate_grid(center_price, spacing)
        self._state.real_positions = []
        self._state.current_price = center_price
        self._last_price = center_price

    async def start(self) -> None:
        """
        Start processing ticks. No-op if already running.

        Raises:
            InvalidStateError: If initialize() was never called
        """
        if self._state.is_running:
            logger.debug(f"[{self._bot_id}] start() ignored, already running")
            return
        if not self._initialized:
            raise InvalidStateError(f"[{self._bot_id}] Cannot start before initialize()")

        self._state.is_running = True
        logger.info(f"[{self._bot_id}] Hamburger bot started for {self.symbol}")

    async def stop(self) -> bool:
        """
        Stop the bot and force-close every open position.

        Marks the bot not-running immediately, waits for an in-flight tick
        to finish, then closes positions. Positions whose close fails stay
        in the open set and are reported through last_error; calling stop()
        again retries them.

        Returns:
            True if every position was closed
        """
        self._state.is_running = False
        logger.info(f"[{self._bot_id}] Stopping hamburger bot for {self.symbol}")

        async with self._tick_lock:
            open_positions = list(self._state.real_positions)
            failed = await self._close_positions(open_positions, ExitReason.BOT_STOP)

        if failed:
            self._state.last_error = (
                f"Failed to close {len(failed)} position(s) on stop: "
                f"{', '.join(p.id for p in failed)}"
            )
            logger.error(f"[{self._bot_id}] {self._state.last_error}")
            return False

        logger.info(f"[{self._bot_id}] Hamburger bot stopped, all positions closed")
        return True

    async def reconfigure(self, config: GridConfig) -> None:
        """
        Replace the configuration of a stopped bot.

        Re-initializes the ladder at the last known price when the bot has
        been initialized before.

        Raises:
            InvalidStateError: If running or positions are still open
        """
        if self._state.is_running:
            raise InvalidStateError(f"[{self._bot_id}] Stop the bot before reconfiguring")
        if self._state.real_positions:
            raise InvalidStateError(
                f"[{self._bot_id}] Cannot reconfigure with open positions"
            )

        self._state.config = config
        self._build_components(config)
        logger.info(f"[{self._bot_id}] Reconfigured: {config.to_dict()}")

        if self._initialized and self._state.current_price > 0:
            await self.initialize(self._state.current_price)

    # =========================================================================
    # Tick Processing
    # =========================================================================

    async def on_price_update(
        self,
        price: Optional[Decimal],
        signals: Optional[GridSignals],
    ) -> TickResult:
        """
        Process one tick.

        Args:
            price: Current price (None when unavailable)
            signals: Signal snapshot for this tick (None when unavailable)

        Returns:
            TickResult describing what happened
        """
        if not self._state.is_running:
            return TickResult.skipped("not_running", price)

        if price is None or signals is None:
            logger.warning(f"[{self._bot_id}] Signal unavailable, skipping tick")
            return TickResult.skipped("signal_unavailable", price)

        price = Decimal(str(price))
        if price <= 0:
            logger.warning(f"[{self._bot_id}] Invalid price {price}, skipping tick")
            return TickResult.skipped("invalid_price", price)

        if self._tick_lock.locked():
            self._dropped_ticks += 1
            logger.warning(
                f"[{self._bot_id}] Tick @ {price} dropped, previous tick still in flight "
                f"(dropped={self._dropped_ticks})"
            )
            return TickResult.skipped("busy", price)

        async with self._tick_lock:
            if not self._state.is_running:
                return TickResult.skipped("not_running", price)
            return await self._process_tick(price, signals)

    async def _process_tick(self, price: Decimal, signals: GridSignals) -> TickResult:
        result = TickResult(processed=True, price=price)
        previous_price = self._last_price
        self._state.current_price = price
        self._last_signals = signals

        reactive_bias = self._reactive.update(price)

        # 1. Virtual grid: cooldowns, extension, crossings
        self._grid.release_cooldowns(self._state.virtual_levels)
        self._state.virtual_levels = self._grid.extend_grid(self._state.virtual_levels, price)
        crossed = self._grid.check_crossings(self._state.virtual_levels, price)
        result.crossed_level_ids = [level.id for level in crossed]

        # 2. Admission
        for level in crossed:
            level.status = LevelStatus.FILLED
            admission = self._gate.evaluate(
                level,
                self._state,
                signals,
                reactive_bias=reactive_bias,
                new_margin=self._positions.calculate_position_size(),
            )

            if not admission.admitted:
                level.status = LevelStatus.PENDING
                result.rejected_levels[level.id] = admission.reason
                if admission.reason == RejectReason.CAPACITY:
                    logger.warning(
                        f"[{self._bot_id}] Capacity exceeded, skipping {level.id}: "
                        f"{admission.detail}"
                    )
                else:
                    logger.info(
                        f"[{self._bot_id}] Level {level.id} rejected "
                        f"({admission.reason.value}): {admission.detail}"
                    )
                continue

            position = await self._positions.open_position(
                level, atr=signals.volatility.value, fill_price=price
            )
            if position is None:
                level.status = LevelStatus.PENDING
                result.rejected_levels[level.id] = RejectReason.EXCHANGE_REJECTED
                self._state.last_error = f"Open for {level.id} failed"
                continue

            self._state.real_positions.append(position)
            result.opened_position_ids.append(position.id)
            logger.info(
                f"[{self._bot_id}] Grid trigger: {level.id} -> {position.id}, "
                f"active {len(self._state.real_positions)}/{self.config.max_active_positions}"
            )

        # 3. AI risk decision
        if crossed or self._should_rebalance(previous_price, price, signals):
            decision = self._engine.make_decision(
                self._state, signals, crossed, spacing=self._grid.spacing
            )
            self._last_decision = decision
            result.decision = decision

            if decision.confidence >= self.config.ai_confidence_threshold:
                result.closed_position_ids.extend(await self._execute_decision(decision))
                result.decision_executed = True
                self._state.last_rebalance = self._clock()
            else:
                logger.info(
                    f"[{self._bot_id}] Discarding {decision.action.value}: confidence "
                    f"{decision.confidence} < {self.config.ai_confidence_threshold}"
                )

        # 4. Position marks and exits
        for position in list(self._state.real_positions):
            exit_reason = self._positions.update_position(
                position, price, atr=signals.volatility.value
            )
            if exit_reason is None:
                continue
            logger.warning(
                f"[{self._bot_id}] {exit_reason.value} hit for {position.side.value} "
                f"{position.id} @ {price} (SL={position.stop_loss:.4f}, "
                f"TP={position.take_profit:.4f}, PnL%={position.unrealized_pnl_pct:.2f})"
            )
            if await self._close_position(position, exit_reason):
                result.closed_position_ids.append(position.id)

        self._update_performance()
        self._last_price = price
        return result

    def _should_rebalance(
        self,
        previous_price: Optional[Decimal],
        price: Decimal,
        signals: GridSignals,
    ) -> bool:
        """Whether the AI layer should be consulted when no level crossed."""
        config = self.config

        if previous_price is not None and previous_price > 0:
            move = abs(price - previous_price) / previous_price
            if move > config.rebalance_threshold_pct:
                return True

        if signals.roc.is_panic or signals.volume.is_spike:
            return True

        positions = self._state.real_positions
        if positions:
            spacing_pct = self._grid.spacing * Decimal("100")
            if max_position_distance(positions, price) > spacing_pct * OUTER_DISTANCE_SPACINGS:
                return True
            if position_bias(positions) > config.max_position_bias_pct * Decimal("100"):
                return True

        return False

    # =========================================================================
    # Decision Execution
    # =========================================================================

    async def _execute_decision(self, decision: AIDecision) -> List[str]:
        """
        Apply an AI decision.

        Returns:
            Ids of positions closed
        """
        signals = decision.signals
        priority = (
            signals.volatility.multiplier > EXTREME_VOLATILITY_MULTIPLIER
            or (
                signals.roc.is_panic
                and abs(signals.roc.value) > signals.roc.panic_threshold * EXTREME_ROC_FACTOR
            )
        )
        action = decision.action

        if action == GridAction.HOLD:
            return []

        if action == GridAction.CUT_LONG:
            targets = self._state.positions_by_side(PositionSide.LONG)
            reason = ExitReason.CUT_LONG
        elif action == GridAction.CUT_SHORT:
            targets = self._state.positions_by_side(PositionSide.SHORT)
            reason = ExitReason.CUT_SHORT
        elif action == GridAction.CLOSE_ALL:
            targets = list(self._state.real_positions)
            reason = ExitReason.CLOSE_ALL
        elif action == GridAction.EMERGENCY_REBALANCE:
            return await self._emergency_rebalance(priority)
        else:
            raise ValueError(f"Unhandled grid action: {action}")

        if priority:
            for position in targets:
                logger.info(f"[{self._bot_id}] Priority exit for {position.id} ({reason.value})")

        failed = await self._close_positions(targets, reason)
        logger.info(
            f"[{self._bot_id}] AI risk manager: {action.value} closed "
            f"{len(targets) - len(failed)}/{len(targets)} positions"
        )
        return [p.id for p in targets if p not in failed]

    async def _emergency_rebalance(self, priority: bool) -> List[str]:
        """Close everything, then regenerate the ladder at the current price."""
        logger.warning(f"[{self._bot_id}] AI risk manager: EMERGENCY REBALANCE triggered")
        targets = list(self._state.real_positions)
        if priority:
            for position in targets:
                logger.info(f"[{self._bot_id}] Priority exit for {position.id} (emergency)")

        failed = await self._close_positions(targets, ExitReason.EMERGENCY_REBALANCE)
        closed_ids = [p.id for p in targets if p not in failed]

        if failed:
            # Keep the ladder so the surviving positions still own their levels
            self._state.last_error = (
                f"Emergency rebalance incomplete, {len(failed)} position(s) still open"
            )
            logger.error(f"[{self._bot_id}] {self._state.last_error}, grid not regenerated")
            return closed_ids

        self._reset_grid(self._state.current_price)
        self._reactive.reset(self._state.current_price)
        self._gate.reset()
        logger.info(
            f"[{self._bot_id}] Grid regenerated at {self._state.current_price} "
            f"(spacing {self._grid.spacing * 100}%)"
        )
        return closed_ids

    # =========================================================================
    # Closing
    # =========================================================================

    async def _close_positions(
        self,
        positions: List[GridPosition],
        reason: ExitReason,
    ) -> List[GridPosition]:
        """
        Close positions one by one; a failure does not stop the others.

        Returns:
            Positions that failed to close (still open)
        """
        failed = []
        for position in positions:
            if not await self._close_position(position, reason):
                failed.append(position)
        return failed

    async def _close_position(self, position: GridPosition, reason: ExitReason) -> bool:
        """
        Close one position and reconcile its level.

        On a confirmed close the position leaves the open set, its trade is
        recorded and its level enters cooldown. On failure nothing changes
        except last_error.
        """
        if not await self._positions.close_position(position, reason):
            self._state.last_error = f"Close of {position.id} ({reason.value}) failed"
            return False

        now = self._clock()
        trade = self._positions.build_trade(position, reason, exit_time=now)
        self._state.performance.record_trade(trade)
        self._state.real_positions = [
            p for p in self._state.real_positions if p.id != position.id
        ]

        level = self._state.find_level(position.level_id)
        if level is not None:
            level.mark_cooldown(now)
        elif position.level_id is not None:
            logger.warning(
                f"[{self._bot_id}] Level {position.level_id} of {position.id} not in ladder"
            )

        self._update_performance()
        return True

    def _update_performance(self) -> None:
        performance = self._state.performance
        investment = self.config.total_investment
        equity = investment + performance.total_pnl + self._state.unrealized_pnl
        performance.update_equity(equity, self._state.margin_in_use, investment)

    # =========================================================================
    # Stale Tracking
    # =========================================================================

    def mark_stale(self, error: str) -> None:
        """Flag that market data or the exchange is unreachable."""
        if not self._state.is_stale:
            logger.warning(f"[{self._bot_id}] Marked stale: {error}")
        self._state.is_stale = True
        self._state.last_error = error

    def clear_stale(self) -> None:
        if self._state.is_stale:
            logger.info(f"[{self._bot_id}] Market data recovered")
        self._state.is_stale = False

    # =========================================================================
    # Snapshots
    # =========================================================================

    def get_state(self) -> GridState:
        """Deep copy of the current state."""
        return copy.deepcopy(self._state)

    def get_positions(self) -> List[GridPosition]:
        return copy.deepcopy(self._state.real_positions)

    def get_performance(self) -> GridPerformance:
        return copy.deepcopy(self._state.performance)

    def get_status(self) -> Dict[str, Any]:
        """
        Get bot status as a JSON-ready dict.

        Returns:
            Dict with success flag, config summary, positions, grid stats,
            performance, reactive bias, stale indicator and last decision
        """
        state = self._state
        nearest = self._grid.get_nearest_levels(state.virtual_levels, state.current_price)
        return {
            "success": True,
            "bot_id": self._bot_id,
            "symbol": self.symbol,
            "is_running": state.is_running,
            "is_initialized": self._initialized,
            "is_stale": state.is_stale,
            "last_error": state.last_error,
            "current_price": str(state.current_price),
            "leverage": self._positions.leverage,
            "grid_spacing_pct": str(self._grid.spacing),
            "config": self.config.to_dict(),
            "positions": [p.to_dict() for p in state.real_positions],
            "position_bias": f"{position_bias(state.real_positions):.2f}",
            "grid": self._grid.grid_stats(state.virtual_levels),
            "nearest_levels": {
                "above": [level.to_dict() for level in nearest["above"]],
                "below": [level.to_dict() for level in nearest["below"]],
            },
            "performance": state.performance.to_dict(),
            "reactive_bias": self._reactive.bias.value,
            "last_rebalance": state.last_rebalance.isoformat() if state.last_rebalance else None,
            "last_decision": self._last_decision.to_dict() if self._last_decision else None,
            "dropped_ticks": self._dropped_ticks,
        }
